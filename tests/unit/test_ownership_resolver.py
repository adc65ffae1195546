"""Tests for neuramark_identity.ownership.resolver — OwnershipResolver."""
from __future__ import annotations

import threading

import pytest

from neuramark_identity.audit import IdentityAuditLogger
from neuramark_identity.did.document import DIDDocument
from neuramark_identity.errors import (
    NotFoundError,
    TransientUpstreamError,
    UnauthorizedError,
    UpstreamUnavailableError,
)
from neuramark_identity.ownership.resolver import OwnershipResolver, OwnershipResult
from neuramark_identity.retry import RetryPolicy
from neuramark_identity.stores.proofs import InMemoryProofStore, Proof

NO_WAIT = RetryPolicy(max_attempts=2, base_delay=0.0)


def _proof(user_id: str | None = None, wallet: str = "0xABC") -> Proof:
    return Proof(
        proof_id="0xproof",
        prompt_hash="0xp",
        output_hash="0xo",
        prompt_cid="QmP",
        output_cid="QmO",
        model_info="gpt-4",
        output_type="text",
        tx_hash="0xtx",
        wallet=wallet,
        user_id=user_id,
    )


@pytest.fixture()
def store() -> InMemoryProofStore:
    return InMemoryProofStore()


@pytest.fixture()
def resolver(store: InMemoryProofStore) -> OwnershipResolver:
    return OwnershipResolver(store, retry_policy=NO_WAIT)


# ---------------------------------------------------------------------------
# resolve_ownership
# ---------------------------------------------------------------------------


class TestDirectOwnership:
    def test_matching_user_id(self, resolver: OwnershipResolver) -> None:
        assert resolver.resolve_ownership(_proof("u1"), "u1", []) == OwnershipResult(True, False)

    def test_other_user_id_wins_over_wallet(self, resolver: OwnershipResolver) -> None:
        result = resolver.resolve_ownership(_proof("u2"), "u1", ["0xabc"])
        assert result == OwnershipResult(owned=False, migrated=False)


class TestWalletOwnership:
    def test_first_call_migrates(
        self, resolver: OwnershipResolver, store: InMemoryProofStore
    ) -> None:
        proof = store.add(_proof())
        result = resolver.resolve_ownership(proof, "u1", ["0xabc"])
        assert result == OwnershipResult(owned=True, migrated=True)
        assert proof.user_id == "u1"
        assert store.get("0xproof").user_id == "u1"

    def test_second_call_is_direct(
        self, resolver: OwnershipResolver, store: InMemoryProofStore
    ) -> None:
        proof = store.add(_proof())
        resolver.resolve_ownership(proof, "u1", ["0xabc"])
        again = resolver.resolve_ownership(store.get("0xproof"), "u1", ["0xabc"])
        assert again == OwnershipResult(owned=True, migrated=False)

    def test_normalizes_both_sides(
        self, resolver: OwnershipResolver, store: InMemoryProofStore
    ) -> None:
        proof = store.add(_proof(wallet=" 0xAbC "))
        assert resolver.resolve_ownership(proof, "u1", ["0XABC"]).owned

    def test_unlinked_wallet(
        self, resolver: OwnershipResolver, store: InMemoryProofStore
    ) -> None:
        proof = store.add(_proof())
        assert resolver.resolve_ownership(proof, "u1", ["0xother"]) == OwnershipResult(False)
        assert store.get("0xproof").user_id is None

    def test_no_wallets(self, resolver: OwnershipResolver, store: InMemoryProofStore) -> None:
        proof = store.add(_proof())
        assert not resolver.resolve_ownership(proof, "u1", []).owned

    def test_blank_account_wallets_ignored(
        self, resolver: OwnershipResolver, store: InMemoryProofStore
    ) -> None:
        proof = store.add(_proof(wallet="0xAbC"))
        assert resolver.resolve_ownership(proof, "u1", ["", "   ", "\t0xabc\n"]).owned

    def test_blank_proof_wallet_not_owned(
        self, resolver: OwnershipResolver, store: InMemoryProofStore
    ) -> None:
        proof = store.add(_proof(wallet="   "))
        assert resolver.resolve_ownership(proof, "u1", ["0xabc"]) == OwnershipResult(False)
        assert store.get("0xproof").user_id is None

    def test_matches_wallet_linked_on_did_document(
        self, resolver: OwnershipResolver, store: InMemoryProofStore
    ) -> None:
        document = DIDDocument.new("u1", "a@x.com", wallets=["  0XABC "])
        proof = store.add(_proof(wallet="0xabc  "))
        assert resolver.resolve_ownership(proof, "u1", document.wallets).owned

    def test_concurrent_migrations_converge(self, store: InMemoryProofStore) -> None:
        store.add(_proof())
        resolver = OwnershipResolver(store, retry_policy=NO_WAIT)
        results: list[OwnershipResult] = []
        barrier = threading.Barrier(4)

        def resolve() -> None:
            barrier.wait()
            results.append(resolver.resolve_ownership(store.get("0xproof"), "u1", ["0xabc"]))

        threads = [threading.Thread(target=resolve) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert all(r.owned for r in results)
        assert store.get("0xproof").user_id == "u1"

    def test_migration_audited(self, store: InMemoryProofStore) -> None:
        audit = IdentityAuditLogger()
        resolver = OwnershipResolver(store, retry_policy=NO_WAIT, audit_logger=audit)
        resolver.resolve_ownership(store.add(_proof()), "u1", ["0xabc"])
        event = audit.read_log()[0]
        assert event["event_type"] == "ownership_migrated"
        assert event["details"] == {"proof_id": "0xproof", "wallet": "0xabc"}

    def test_migration_write_failure(self) -> None:
        class _Unreachable(InMemoryProofStore):
            def assign_owner(self, proof_id: str, user_id: str) -> Proof:
                raise TransientUpstreamError("connection reset")

        store = _Unreachable()
        proof = store.add(_proof())
        with pytest.raises(UpstreamUnavailableError):
            OwnershipResolver(store, retry_policy=NO_WAIT).resolve_ownership(
                proof, "u1", ["0xabc"]
            )
        assert proof.user_id is None


# ---------------------------------------------------------------------------
# authorize
# ---------------------------------------------------------------------------


class TestAuthorize:
    def test_owner_gets_proof(
        self, resolver: OwnershipResolver, store: InMemoryProofStore
    ) -> None:
        store.add(_proof())
        proof = resolver.authorize("0xproof", "u1", ["0xabc"])
        assert proof.user_id == "u1"

    def test_missing_proof(self, resolver: OwnershipResolver) -> None:
        with pytest.raises(NotFoundError):
            resolver.authorize("0xmissing", "u1", [])

    def test_not_owner(self, resolver: OwnershipResolver, store: InMemoryProofStore) -> None:
        store.add(_proof("u2"))
        with pytest.raises(UnauthorizedError, match="does not own"):
            resolver.authorize("0xproof", "u1", ["0xabc"])
