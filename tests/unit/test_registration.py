"""Tests for neuramark_identity.registration — ProofRegistrar and DIDProofSync."""
from __future__ import annotations

import datetime

import pytest

from neuramark_identity.audit import IdentityAuditLogger
from neuramark_identity.did.manager import DIDDocumentManager, MutationResult
from neuramark_identity.did.actions import DIDAction
from neuramark_identity.errors import (
    ConflictError,
    UpstreamUnavailableError,
)
from neuramark_identity.registration import (
    DIDProofSync,
    ProofRegistrar,
    SyncOutcome,
    reference_for,
)
from neuramark_identity.retry import RetryPolicy
from neuramark_identity.stores import InMemoryBlobStore, InMemoryProofStore, InMemoryRecordStore, Proof

NO_WAIT = RetryPolicy(max_attempts=3, base_delay=0.0)


def _proof(proof_id: str = "0xabc", wallet: str = "0xWallet", user_id: str | None = None) -> Proof:
    return Proof(
        proof_id=proof_id,
        prompt_hash="0xp",
        output_hash="0xo",
        prompt_cid="QmPrompt",
        output_cid="QmOutput",
        model_info="gpt-4",
        output_type="text",
        tx_hash="0xtx",
        wallet=wallet,
        user_id=user_id,
        created_at=datetime.datetime(2024, 1, 1, tzinfo=datetime.timezone.utc),
    )


class _FlakyManager(DIDDocumentManager):
    """Fails the first *failures* mutations with an upstream error."""

    def __init__(self, *args: object, failures: int, **kwargs: object) -> None:
        super().__init__(*args, **kwargs)  # type: ignore[arg-type]
        self.failures = failures
        self.calls = 0

    def mutate(self, account_id: str, action: DIDAction) -> MutationResult:
        self.calls += 1
        if self.calls <= self.failures:
            raise UpstreamUnavailableError("blob gateway down")
        return super().mutate(account_id, action)


@pytest.fixture()
def manager() -> DIDDocumentManager:
    manager = DIDDocumentManager(InMemoryBlobStore(), InMemoryRecordStore(), retry_policy=NO_WAIT)
    manager.create("u1", "a@x.com", "Ann", ["0xwallet"])
    return manager


@pytest.fixture()
def proofs() -> InMemoryProofStore:
    return InMemoryProofStore()


# ---------------------------------------------------------------------------
# reference_for
# ---------------------------------------------------------------------------


class TestReferenceFor:
    def test_fields(self) -> None:
        ref = reference_for(_proof())
        assert ref.to_dict() == {
            "proofId": "0xabc",
            "ipfsCID": "QmOutput",
            "model": "gpt-4",
            "timestamp": "2024-01-01T00:00:00.000Z",
            "txHash": "0xtx",
        }


# ---------------------------------------------------------------------------
# DIDProofSync
# ---------------------------------------------------------------------------


class TestDIDProofSync:
    def test_successful_update(self, manager: DIDDocumentManager) -> None:
        outcomes: list[SyncOutcome] = []
        with DIDProofSync(manager, retry_policy=NO_WAIT) as sync:
            sync.add_listener(outcomes.append)
            outcome = sync.schedule("u1", reference_for(_proof())).result(timeout=5)

        assert outcome.succeeded
        assert outcome.attempts == 1
        assert outcome.cid == manager.get_record("u1").current_cid
        assert outcomes == [outcome]
        assert manager.get_document("u1").proof_ids() == ["0xabc"]

    def test_retries_then_succeeds(self) -> None:
        manager = _FlakyManager(
            InMemoryBlobStore(), InMemoryRecordStore(), retry_policy=NO_WAIT, failures=2
        )
        manager.create("u1", "a@x.com")
        sleeps: list[float] = []
        sync = DIDProofSync(manager, retry_policy=NO_WAIT, sleep=sleeps.append)
        outcome = sync.run("u1", reference_for(_proof()))
        sync.shutdown()

        assert outcome.succeeded
        assert outcome.attempts == 3
        assert len(sleeps) == 2

    def test_gives_up_after_policy(self) -> None:
        manager = _FlakyManager(
            InMemoryBlobStore(), InMemoryRecordStore(), retry_policy=NO_WAIT, failures=10
        )
        manager.create("u1", "a@x.com")
        audit = IdentityAuditLogger()
        sync = DIDProofSync(manager, retry_policy=NO_WAIT, audit_logger=audit, sleep=lambda _: None)
        outcome = sync.run("u1", reference_for(_proof()))
        sync.shutdown()

        assert not outcome.succeeded
        assert outcome.attempts == NO_WAIT.max_attempts
        assert "blob gateway down" in outcome.error
        event = audit.read_log()[-1]
        assert event["event_type"] == "did_sync_failed"

    def test_missing_did_not_retried(self, manager: DIDDocumentManager) -> None:
        sleeps: list[float] = []
        sync = DIDProofSync(manager, retry_policy=NO_WAIT, sleep=sleeps.append)
        outcome = sync.run("ghost", reference_for(_proof()))
        sync.shutdown()
        assert not outcome.succeeded
        assert outcome.attempts == 1
        assert sleeps == []

    def test_repeated_sync_does_not_duplicate(self, manager: DIDDocumentManager) -> None:
        with DIDProofSync(manager, retry_policy=NO_WAIT) as sync:
            sync.run("u1", reference_for(_proof()))
            sync.run("u1", reference_for(_proof()))
        assert manager.get_document("u1").proof_ids() == ["0xabc"]


# ---------------------------------------------------------------------------
# ProofRegistrar
# ---------------------------------------------------------------------------


class TestProofRegistrar:
    def test_links_wallet_owner_and_updates_did(
        self, manager: DIDDocumentManager, proofs: InMemoryProofStore
    ) -> None:
        with DIDProofSync(manager, retry_policy=NO_WAIT) as sync:
            receipt = ProofRegistrar(proofs, manager, sync, retry_policy=NO_WAIT).register(
                _proof(wallet="0xWALLET")
            )
            outcome = receipt.sync.result(timeout=5)

        assert receipt.owner == "u1"
        assert receipt.proof.user_id == "u1"
        assert proofs.get("0xabc").user_id == "u1"
        assert outcome.succeeded
        assert manager.get_document("u1").proof_ids() == ["0xabc"]

    def test_direct_owner(self, manager: DIDDocumentManager, proofs: InMemoryProofStore) -> None:
        with DIDProofSync(manager, retry_policy=NO_WAIT) as sync:
            receipt = ProofRegistrar(proofs, manager, sync, retry_policy=NO_WAIT).register(
                _proof(wallet="0xunlinked", user_id="u1")
            )
            receipt.sync.result(timeout=5)
        assert receipt.owner == "u1"
        assert manager.get_document("u1").proof_ids() == ["0xabc"]

    def test_no_did_still_registers(
        self, manager: DIDDocumentManager, proofs: InMemoryProofStore
    ) -> None:
        with DIDProofSync(manager, retry_policy=NO_WAIT) as sync:
            receipt = ProofRegistrar(proofs, manager, sync, retry_policy=NO_WAIT).register(
                _proof(wallet="0xstranger")
            )
        assert receipt.owner is None
        assert receipt.sync is None
        assert proofs.get("0xabc") is not None

    def test_failed_did_update_keeps_registration(
        self, proofs: InMemoryProofStore
    ) -> None:
        manager = _FlakyManager(
            InMemoryBlobStore(), InMemoryRecordStore(), retry_policy=NO_WAIT, failures=100
        )
        manager.create("u1", "a@x.com", wallets=["0xwallet"])
        with DIDProofSync(manager, retry_policy=NO_WAIT, sleep=lambda _: None) as sync:
            receipt = ProofRegistrar(proofs, manager, sync, retry_policy=NO_WAIT).register(_proof())
            outcome = receipt.sync.result(timeout=5)

        assert not outcome.succeeded
        assert proofs.get("0xabc") is not None
        assert manager.get_document("u1").proof_ids() == []

    def test_duplicate_registration_propagates(
        self, manager: DIDDocumentManager, proofs: InMemoryProofStore
    ) -> None:
        proofs.add(_proof())
        with DIDProofSync(manager, retry_policy=NO_WAIT) as sync:
            with pytest.raises(ConflictError):
                ProofRegistrar(proofs, manager, sync, retry_policy=NO_WAIT).register(_proof())
