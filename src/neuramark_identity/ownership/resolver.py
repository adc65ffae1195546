"""OwnershipResolver — reconcile account-based and wallet-based proof ownership.

A proof is owned by an account either directly (``proof.user_id`` matches)
or through a wallet the account has linked. Proofs registered before
accounts existed only carry the wallet; the first successful wallet match
writes the account id back onto the proof, so later checks take the
direct branch.

Migration writes are last-write-wins. Every writer stores the same
account id for a given wallet match, so concurrent resolutions converge.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from neuramark_identity.audit import IdentityAuditLogger
from neuramark_identity.did.document import normalize_wallet
from neuramark_identity.errors import NotFoundError, UnauthorizedError
from neuramark_identity.retry import RetryPolicy, call_with_retry
from neuramark_identity.stores.proofs import Proof, ProofStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OwnershipResult:
    """Outcome of :meth:`OwnershipResolver.resolve_ownership`."""

    owned: bool
    migrated: bool = False


def _normalized(addresses: Iterable[str]) -> set[str]:
    return {normalize_wallet(a) for a in addresses if a and a.strip()}


class OwnershipResolver:
    """Decides whether an account owns a proof.

    Parameters
    ----------
    proof_store:
        Store holding registered proofs; receives migration writes.
    retry_policy:
        Backoff for transient proof store failures.
    audit_logger:
        Optional audit trail for migrations.
    """

    def __init__(
        self,
        proof_store: ProofStore,
        retry_policy: RetryPolicy | None = None,
        audit_logger: IdentityAuditLogger | None = None,
    ) -> None:
        self._proofs = proof_store
        self._retry = retry_policy or RetryPolicy()
        self._audit = audit_logger

    def resolve_ownership(
        self, proof: Proof, account_id: str, account_wallets: Iterable[str]
    ) -> OwnershipResult:
        """Return whether *account_id* owns *proof*, migrating legacy proofs.

        On a wallet match ``proof.user_id`` is set in place as well as in the
        store, so the caller's copy reflects the migration.

        Raises
        ------
        UpstreamUnavailableError
            If the migration write keeps failing.
        """
        if proof.user_id:
            return OwnershipResult(owned=proof.user_id == account_id)

        if not proof.wallet or not proof.wallet.strip():
            return OwnershipResult(owned=False)
        wallet = normalize_wallet(proof.wallet)
        if wallet not in _normalized(account_wallets):
            return OwnershipResult(owned=False)

        call_with_retry(
            lambda: self._proofs.assign_owner(proof.proof_id, account_id),
            policy=self._retry,
            description=f"ownership migration for proof {proof.proof_id}",
        )
        proof.user_id = account_id
        logger.info(
            "Migrated proof %s to account %s via wallet %s",
            proof.proof_id,
            account_id,
            wallet,
        )
        if self._audit is not None:
            self._audit.log_ownership_migrated(account_id, proof.proof_id, wallet)
        return OwnershipResult(owned=True, migrated=True)

    def authorize(
        self, proof_id: str, account_id: str, account_wallets: Iterable[str]
    ) -> Proof:
        """Load *proof_id* and require that *account_id* owns it.

        Raises
        ------
        NotFoundError
            If the proof does not exist.
        UnauthorizedError
            If the account neither matches ``user_id`` nor links the wallet.
        """
        proof = call_with_retry(
            lambda: self._proofs.get(proof_id),
            policy=self._retry,
            description=f"proof lookup for {proof_id}",
        )
        if proof is None:
            raise NotFoundError(f"Proof {proof_id!r} not found.")

        result = self.resolve_ownership(proof, account_id, account_wallets)
        if not result.owned:
            raise UnauthorizedError(
                f"Account {account_id!r} does not own proof {proof_id!r}."
            )
        return proof


__all__ = ["OwnershipResolver", "OwnershipResult"]
