"""Tests for neuramark_identity.did.document — DID helpers and the document model."""
from __future__ import annotations

import datetime

import pytest
from pydantic import ValidationError

from neuramark_identity.did.document import (
    DEFAULT_DISPLAY_NAME,
    DIDDocument,
    ProofReference,
    format_did,
    format_timestamp,
    generate_did,
    is_valid_did,
    normalize_wallet,
    parse_did,
    parse_timestamp,
)
from neuramark_identity.errors import MalformedInputError

NOW = datetime.datetime(2024, 1, 1, tzinfo=datetime.timezone.utc)


@pytest.fixture()
def document() -> DIDDocument:
    return DIDDocument.new("u1", "a@x.com", "Ann", ["0xABC"], now=NOW)


@pytest.fixture()
def reference() -> ProofReference:
    return ProofReference(
        proof_id="0xabc",
        ipfs_cid="Qm1",
        model="gpt-4",
        timestamp="2024-01-01T00:00:00Z",
        tx_hash="0xdef",
    )


# ---------------------------------------------------------------------------
# DID helpers
# ---------------------------------------------------------------------------


class TestDIDHelpers:
    def test_generate_did(self) -> None:
        assert generate_did("u1") == "did:neuramark:u1"

    def test_generate_did_rejects_empty(self) -> None:
        with pytest.raises(MalformedInputError):
            generate_did("")

    def test_generate_did_rejects_colon(self) -> None:
        with pytest.raises(MalformedInputError):
            generate_did("a:b")

    def test_parse_did_round_trip(self) -> None:
        assert parse_did(generate_did("firebase-uid_42")) == "firebase-uid_42"

    def test_parse_did_rejects_other_method(self) -> None:
        with pytest.raises(MalformedInputError, match="Malformed DID"):
            parse_did("did:key:z6Mk")

    @pytest.mark.parametrize(
        "did, expected",
        [
            ("did:neuramark:u1", True),
            ("did:neuramark:", False),
            ("did:other:u1", False),
            ("neuramark:u1", False),
        ],
    )
    def test_is_valid_did(self, did: str, expected: bool) -> None:
        assert is_valid_did(did) is expected

    def test_format_did_short_unchanged(self) -> None:
        assert format_did("did:neuramark:u1") == "did:neuramark:u1"

    def test_format_did_long_shortened(self) -> None:
        did = "did:neuramark:abcdefgh1234567890ijklmnop"
        assert format_did(did) == "did:neuramark:abcdefgh...ijklmnop"

    def test_format_did_non_did_unchanged(self) -> None:
        assert format_did("not-a-did") == "not-a-did"

    def test_normalize_wallet(self) -> None:
        assert normalize_wallet("  0xAbC ") == "0xabc"

    def test_normalize_wallet_rejects_blank(self) -> None:
        with pytest.raises(MalformedInputError):
            normalize_wallet("   ")


class TestTimestamps:
    def test_format_has_millis_and_z(self) -> None:
        assert format_timestamp(NOW) == "2024-01-01T00:00:00.000Z"

    def test_naive_datetime_treated_as_utc(self) -> None:
        assert format_timestamp(datetime.datetime(2024, 1, 1)) == "2024-01-01T00:00:00.000Z"

    def test_parse_accepts_z(self) -> None:
        assert parse_timestamp("2024-01-01T00:00:00Z") == NOW


# ---------------------------------------------------------------------------
# DIDDocument
# ---------------------------------------------------------------------------


class TestDIDDocument:
    def test_new_document_shape(self, document: DIDDocument) -> None:
        assert document.id == "did:neuramark:u1"
        assert document.verified_proofs == ()
        assert document.created_at == document.updated_at
        assert document.account_id == "u1"

    def test_default_display_name(self) -> None:
        doc = DIDDocument.new("u2", "b@x.com", now=NOW)
        assert doc.name == DEFAULT_DISPLAY_NAME

    def test_wallets_normalized_and_deduplicated(self) -> None:
        doc = DIDDocument.new("u1", "a@x.com", wallets=["0xABC", "0xabc ", "0xDEF"], now=NOW)
        assert doc.wallets == ("0xabc", "0xdef")

    def test_blank_wallet_rejected(self) -> None:
        with pytest.raises(ValidationError, match="Wallet address"):
            DIDDocument.new("u1", "a@x.com", wallets=["0xabc", "  "], now=NOW)

    def test_has_wallet_is_case_insensitive(self, document: DIDDocument) -> None:
        assert document.has_wallet("0XabC")

    def test_wire_format_keys(self, document: DIDDocument) -> None:
        data = document.to_dict()
        assert list(data) == [
            "@context",
            "id",
            "name",
            "email",
            "wallets",
            "verifiedProofs",
            "createdAt",
            "updatedAt",
        ]

    def test_signature_only_serialized_when_present(self, document: DIDDocument) -> None:
        signed = document.model_copy(update={"signature": "zSig"})
        assert signed.to_dict()["signature"] == "zSig"
        assert "signature" not in signed.to_dict(include_signature=False)

    def test_json_round_trip(
        self, document: DIDDocument, reference: ProofReference
    ) -> None:
        with_proof = document.model_copy(update={"verified_proofs": (reference,)})
        restored = DIDDocument.from_json(with_proof.to_json())
        assert restored == with_proof
        assert restored.to_dict()["verifiedProofs"][0]["ipfsCID"] == "Qm1"

    def test_from_dict_rejects_bad_did(self, document: DIDDocument) -> None:
        data = document.to_dict()
        data["id"] = "did:other:u1"
        with pytest.raises(MalformedInputError, match="Invalid DID document"):
            DIDDocument.from_dict(data)

    def test_from_json_rejects_non_object(self) -> None:
        with pytest.raises(MalformedInputError):
            DIDDocument.from_json("[1, 2]")

    def test_from_json_rejects_bad_json(self) -> None:
        with pytest.raises(MalformedInputError, match="Invalid JSON"):
            DIDDocument.from_json("{nope")

    def test_document_is_frozen(self, document: DIDDocument) -> None:
        with pytest.raises(ValidationError):
            document.name = "Other"  # type: ignore[misc]


class TestProofReference:
    def test_wire_aliases(self, reference: ProofReference) -> None:
        assert reference.to_dict() == {
            "proofId": "0xabc",
            "ipfsCID": "Qm1",
            "model": "gpt-4",
            "timestamp": "2024-01-01T00:00:00Z",
            "txHash": "0xdef",
        }

    def test_empty_proof_id_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ProofReference(proof_id="", ipfs_cid="", model="", timestamp="", tx_hash="")
