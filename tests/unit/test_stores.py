"""Tests for neuramark_identity.stores — blob, record and proof stores."""
from __future__ import annotations

import datetime
from pathlib import Path

import pytest

from neuramark_identity.canonical import content_id
from neuramark_identity.errors import ConflictError, NotFoundError, VersionConflictError
from neuramark_identity.stores import (
    BlobStore,
    DIDRecord,
    FileBlobStore,
    InMemoryBlobStore,
    InMemoryProofStore,
    InMemoryRecordStore,
    Proof,
    ProofStore,
    RecordStore,
)


def _record(user_id: str = "u1", wallets: list[str] | None = None) -> DIDRecord:
    return DIDRecord(
        user_id=user_id,
        did_id=f"did:neuramark:{user_id}",
        document={"id": f"did:neuramark:{user_id}", "wallets": wallets or []},
        current_cid="QmInitial",
    )


def _proof(proof_id: str = "0xabc", user_id: str | None = None) -> Proof:
    return Proof(
        proof_id=proof_id,
        prompt_hash="0xprompt",
        output_hash="0xoutput",
        prompt_cid="QmPrompt",
        output_cid="QmOutput",
        model_info="gpt-4",
        output_type="text",
        tx_hash="0xdef",
        wallet="0xWallet",
        user_id=user_id,
        created_at=datetime.datetime(2024, 1, 1, tzinfo=datetime.timezone.utc),
    )


# ---------------------------------------------------------------------------
# Blob stores
# ---------------------------------------------------------------------------


class TestInMemoryBlobStore:
    def test_satisfies_protocol(self) -> None:
        assert isinstance(InMemoryBlobStore(), BlobStore)

    def test_put_returns_content_id(self) -> None:
        store = InMemoryBlobStore()
        cid = store.put(b"data", "a.json")
        assert cid == content_id(b"data")
        assert store.get(cid) == b"data"

    def test_same_bytes_stored_once(self) -> None:
        store = InMemoryBlobStore()
        first = store.put(b"data", "a.json")
        second = store.put(b"data", "b.json")
        assert first == second
        assert len(store) == 1
        assert store.name_of(first) == "b.json"

    def test_missing_blob_raises(self) -> None:
        with pytest.raises(NotFoundError):
            InMemoryBlobStore().get("QmMissing")


class TestFileBlobStore:
    def test_round_trip_on_disk(self, tmp_path: Path) -> None:
        store = FileBlobStore(tmp_path / "blobs")
        cid = store.put(b"payload", "doc.json")
        assert (tmp_path / "blobs" / cid).read_bytes() == b"payload"
        assert FileBlobStore(tmp_path / "blobs").get(cid) == b"payload"

    def test_no_temp_files_left(self, tmp_path: Path) -> None:
        store = FileBlobStore(tmp_path)
        store.put(b"payload", "doc.json")
        assert [p.name for p in tmp_path.iterdir()] == [content_id(b"payload")]

    def test_missing_blob_raises(self, tmp_path: Path) -> None:
        with pytest.raises(NotFoundError):
            FileBlobStore(tmp_path).get("QmMissing")

    def test_path_traversal_rejected(self, tmp_path: Path) -> None:
        with pytest.raises(NotFoundError):
            FileBlobStore(tmp_path / "blobs").get("../secret")


# ---------------------------------------------------------------------------
# Record store
# ---------------------------------------------------------------------------


class TestInMemoryRecordStore:
    def test_satisfies_protocol(self) -> None:
        assert isinstance(InMemoryRecordStore(), RecordStore)

    def test_create_and_lookup(self) -> None:
        store = InMemoryRecordStore()
        store.create(_record("u1", ["0xabc"]))
        assert store.get_by_key("u1") is not None
        assert store.get_by_did("did:neuramark:u1").user_id == "u1"
        assert store.find_by_wallet("0xABC").user_id == "u1"
        assert store.get_by_key("u2") is None
        assert "u1" in store

    def test_duplicate_create_conflicts(self) -> None:
        store = InMemoryRecordStore()
        store.create(_record())
        with pytest.raises(ConflictError):
            store.create(_record())

    def test_update_bumps_version(self) -> None:
        store = InMemoryRecordStore()
        store.create(_record())
        updated = store.update("u1", {"current_cid": "QmNext"}, expected_version=1)
        assert updated.version == 2
        assert updated.current_cid == "QmNext"

    def test_stale_version_conflicts(self) -> None:
        store = InMemoryRecordStore()
        store.create(_record())
        store.update("u1", {"proof_count": 1}, expected_version=1)
        with pytest.raises(VersionConflictError) as excinfo:
            store.update("u1", {"proof_count": 2}, expected_version=1)
        assert excinfo.value.actual == 2
        assert store.get_by_key("u1").proof_count == 1

    def test_unconditional_update(self) -> None:
        store = InMemoryRecordStore()
        store.create(_record())
        assert store.update("u1", {"proof_count": 3}).version == 2

    def test_update_missing_record(self) -> None:
        with pytest.raises(NotFoundError):
            InMemoryRecordStore().update("ghost", {"proof_count": 1})

    def test_update_rejects_unknown_fields(self) -> None:
        store = InMemoryRecordStore()
        store.create(_record())
        with pytest.raises(ValueError, match="Cannot update"):
            store.update("u1", {"did_id": "did:neuramark:other"})

    def test_find_by_wallet_trims_and_ignores_case(self) -> None:
        store = InMemoryRecordStore()
        store.create(_record("u1", [" 0xAbC "]))
        assert store.find_by_wallet("  0XABC").user_id == "u1"

    def test_find_by_blank_wallet(self) -> None:
        store = InMemoryRecordStore()
        store.create(_record("u1", ["0xabc"]))
        assert store.find_by_wallet("   ") is None

    def test_returned_documents_are_detached(self) -> None:
        store = InMemoryRecordStore()
        store.create(_record("u1", ["0xabc"]))
        store.get_by_key("u1").document["wallets"].append("0xintruder")
        store.get_by_did("did:neuramark:u1").document["id"] = "did:neuramark:mallory"
        store.find_by_wallet("0xabc").document.clear()

        stored = store.get_by_key("u1")
        assert stored.document == {"id": "did:neuramark:u1", "wallets": ["0xabc"]}
        assert stored.version == 1
        assert store.find_by_wallet("0xintruder") is None

    def test_written_documents_are_detached(self) -> None:
        store = InMemoryRecordStore()
        record = _record("u1")
        store.create(record)
        record.document["wallets"].append("0xlate")
        assert store.get_by_key("u1").document["wallets"] == []

        document = {"id": "did:neuramark:u1", "wallets": ["0xnew"]}
        store.update("u1", {"document": document}, expected_version=1)
        document["wallets"].append("0xlater")

        assert store.get_by_key("u1").document["wallets"] == ["0xnew"]

    def test_export_import_round_trip(self, tmp_path: Path) -> None:
        store = InMemoryRecordStore()
        store.create(_record("u1"))
        store.create(_record("u2"))
        store.update("u2", {"proof_count": 4})
        path = tmp_path / "records.ndjson"
        store.export_records(path)

        restored = InMemoryRecordStore()
        restored.import_records(path)
        assert restored.list_keys() == ["u1", "u2"]
        assert restored.get_by_key("u2") == store.get_by_key("u2")

    def test_import_rejects_bad_line(self, tmp_path: Path) -> None:
        path = tmp_path / "records.ndjson"
        path.write_text("{not json}\n", encoding="utf-8")
        with pytest.raises(ValueError, match="line 1"):
            InMemoryRecordStore().import_records(path)


# ---------------------------------------------------------------------------
# Proof store
# ---------------------------------------------------------------------------


class TestInMemoryProofStore:
    def test_satisfies_protocol(self) -> None:
        assert isinstance(InMemoryProofStore(), ProofStore)

    def test_add_and_get(self) -> None:
        store = InMemoryProofStore()
        store.add(_proof())
        assert store.get("0xabc").model_info == "gpt-4"
        assert store.get("0xmissing") is None

    def test_duplicate_add_conflicts(self) -> None:
        store = InMemoryProofStore()
        store.add(_proof())
        with pytest.raises(ConflictError):
            store.add(_proof())

    def test_returned_copies_are_detached(self) -> None:
        store = InMemoryProofStore()
        store.add(_proof())
        copy = store.get("0xabc")
        copy.user_id = "intruder"
        assert store.get("0xabc").user_id is None

    def test_assign_owner_and_attach_credential(self) -> None:
        store = InMemoryProofStore()
        store.add(_proof())
        store.assign_owner("0xabc", "u1")
        updated = store.attach_credential("0xabc", "urn:uuid:1", "QmVC")
        assert (updated.user_id, updated.vc_id, updated.vc_cid) == ("u1", "urn:uuid:1", "QmVC")

    def test_update_missing_proof(self) -> None:
        with pytest.raises(NotFoundError):
            InMemoryProofStore().assign_owner("0xmissing", "u1")

    def test_export_import_round_trip(self, tmp_path: Path) -> None:
        store = InMemoryProofStore()
        store.add(_proof("p1", user_id="u1"))
        store.add(_proof("p2"))
        path = tmp_path / "proofs.ndjson"
        store.export_proofs(path)

        restored = InMemoryProofStore()
        restored.import_proofs(path)
        assert restored.list_ids() == ["p1", "p2"]
        assert restored.get("p1") == store.get("p1")

    def test_wire_form_is_camel_case(self) -> None:
        data = _proof().to_dict()
        assert data["promptCID"] == "QmPrompt"
        assert data["modelInfo"] == "gpt-4"
        assert Proof.from_dict(data) == _proof()
