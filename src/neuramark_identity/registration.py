"""Proof registration with an asynchronous secondary DID update.

Registering a proof has one primary effect (storing the proof, whose
errors propagate) and one secondary effect (appending a reference to the
owner's DID document). The secondary update runs as a background task
through :class:`DIDProofSync`, with its own retry policy, and reports a
:class:`SyncOutcome` to listeners and the audit trail. The registration
result never depends on it.
"""
from __future__ import annotations

import logging
import time
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass

from neuramark_identity.audit import IdentityAuditLogger
from neuramark_identity.did.actions import AddProof
from neuramark_identity.did.document import ProofReference, format_timestamp
from neuramark_identity.did.manager import DIDDocumentManager
from neuramark_identity.errors import (
    MalformedInputError,
    NeuraMarkIdentityError,
    NotFoundError,
    UpstreamUnavailableError,
)
from neuramark_identity.retry import RetryPolicy, call_with_retry
from neuramark_identity.stores.proofs import Proof, ProofStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncOutcome:
    """Observable result of one background DID update.

    Parameters
    ----------
    account_id:
        Account whose DID document was targeted.
    proof_id:
        Proof being appended.
    succeeded:
        Whether the update was committed.
    attempts:
        Number of mutation attempts made.
    cid:
        Content identifier of the committed document, on success.
    error:
        Message of the last failure, on failure.
    """

    account_id: str
    proof_id: str
    succeeded: bool
    attempts: int
    cid: str | None = None
    error: str | None = None


SyncListener = Callable[[SyncOutcome], None]


def reference_for(proof: Proof) -> ProofReference:
    """Build the DID proof reference recorded for *proof*."""
    return ProofReference(
        proof_id=proof.proof_id,
        ipfs_cid=proof.output_cid,
        model=proof.model_info,
        timestamp=format_timestamp(proof.created_at),
        tx_hash=proof.tx_hash,
    )


class DIDProofSync:
    """Background worker appending proof references to DID documents.

    Parameters
    ----------
    manager:
        Runs the DID mutation protocol.
    retry_policy:
        Attempts and backoff for the whole mutation. Not-found failures are
        not retried.
    max_workers:
        Size of the worker pool.
    audit_logger:
        Optional audit trail for outcomes.
    sleep:
        Injected for tests; defaults to :func:`time.sleep`.

    Example
    -------
    ::

        with DIDProofSync(manager) as sync:
            sync.add_listener(outcomes.append)
            sync.schedule("u1", reference).result()
    """

    def __init__(
        self,
        manager: DIDDocumentManager,
        retry_policy: RetryPolicy | None = None,
        max_workers: int = 2,
        audit_logger: IdentityAuditLogger | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._manager = manager
        self._retry = retry_policy or RetryPolicy()
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="did-proof-sync"
        )
        self._audit = audit_logger
        self._sleep = sleep
        self._listeners: list[SyncListener] = []

    def add_listener(self, listener: SyncListener) -> None:
        self._listeners.append(listener)

    def schedule(self, account_id: str, reference: ProofReference) -> "Future[SyncOutcome]":
        """Queue the update and return a future resolving to its outcome."""
        logger.debug("Scheduling DID update of %s with proof %s", account_id, reference.proof_id)
        return self._executor.submit(self.run, account_id, reference)

    def run(self, account_id: str, reference: ProofReference) -> SyncOutcome:
        """Apply ``AddProof(reference)`` to the account's DID document.

        Never raises for library errors; failures become a failed outcome.
        """
        delays = self._retry.delays()
        attempt = 1
        while True:
            try:
                result = self._manager.mutate(account_id, AddProof(reference))
            except NotFoundError as exc:
                outcome = self._failed(account_id, reference, attempt, exc)
                break
            except NeuraMarkIdentityError as exc:
                delay = next(delays, None)
                if delay is None:
                    outcome = self._failed(account_id, reference, attempt, exc)
                    break
                logger.warning(
                    "DID update of %s with proof %s failed on attempt %d/%d (%s); "
                    "retrying in %.2fs",
                    account_id,
                    reference.proof_id,
                    attempt,
                    self._retry.max_attempts,
                    exc,
                    delay,
                )
                self._sleep(delay)
                attempt += 1
                continue
            outcome = SyncOutcome(
                account_id=account_id,
                proof_id=reference.proof_id,
                succeeded=True,
                attempts=attempt,
                cid=result.cid,
            )
            break

        self._publish(outcome)
        return outcome

    def _failed(
        self,
        account_id: str,
        reference: ProofReference,
        attempts: int,
        exc: NeuraMarkIdentityError,
    ) -> SyncOutcome:
        logger.error(
            "Giving up on DID update of %s with proof %s after %d attempt(s): %s",
            account_id,
            reference.proof_id,
            attempts,
            exc,
        )
        return SyncOutcome(
            account_id=account_id,
            proof_id=reference.proof_id,
            succeeded=False,
            attempts=attempts,
            error=str(exc),
        )

    def _publish(self, outcome: SyncOutcome) -> None:
        if self._audit is not None:
            self._audit.log_sync_outcome(
                outcome.account_id,
                outcome.proof_id,
                outcome.succeeded,
                outcome.attempts,
                outcome.error,
            )
        for listener in list(self._listeners):
            listener(outcome)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> "DIDProofSync":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown(wait=True)


@dataclass(frozen=True)
class RegistrationReceipt:
    """Result of :meth:`ProofRegistrar.register`.

    ``owner`` is the account the proof was linked to, if any. ``sync`` is
    the pending DID update, or ``None`` when no DID document was found.
    """

    proof: Proof
    owner: str | None = None
    sync: "Future[SyncOutcome] | None" = None


class ProofRegistrar:
    """Stores registered proofs and links them to their owner's DID.

    Parameters
    ----------
    proof_store:
        Primary store for proofs.
    manager:
        DID manager used to find the owner by wallet.
    sync:
        Background worker for the DID update.
    retry_policy:
        Backoff for transient store failures.
    """

    def __init__(
        self,
        proof_store: ProofStore,
        manager: DIDDocumentManager,
        sync: DIDProofSync,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        self._proofs = proof_store
        self._manager = manager
        self._sync = sync
        self._retry = retry_policy or RetryPolicy()

    def register(self, proof: Proof) -> RegistrationReceipt:
        """Store *proof* and schedule the owner's DID update.

        Raises
        ------
        ConflictError
            If the proof id is already registered.
        UpstreamUnavailableError
            If the proof store stays unreachable after retries.
        """
        stored = call_with_retry(
            lambda: self._proofs.add(proof),
            policy=self._retry,
            description=f"proof store for {proof.proof_id}",
        )
        logger.info("Registered proof %s from wallet %s", stored.proof_id, stored.wallet)

        try:
            owner = self._find_owner(stored)
        except (MalformedInputError, NotFoundError, UpstreamUnavailableError) as exc:
            logger.warning("Proof %s has no DID to update: %s", stored.proof_id, exc)
            return RegistrationReceipt(proof=stored)

        if stored.user_id is None:
            try:
                stored = call_with_retry(
                    lambda: self._proofs.assign_owner(stored.proof_id, owner),
                    policy=self._retry,
                    description=f"owner link for proof {stored.proof_id}",
                )
            except (NotFoundError, UpstreamUnavailableError) as exc:
                logger.warning(
                    "Could not link proof %s to account %s: %s",
                    stored.proof_id,
                    owner,
                    exc,
                )

        future = self._sync.schedule(owner, reference_for(stored))
        return RegistrationReceipt(proof=stored, owner=owner, sync=future)

    def _find_owner(self, proof: Proof) -> str:
        if proof.user_id:
            return self._manager.get_record(proof.user_id).user_id
        return self._manager.resolve_wallet(proof.wallet).user_id


__all__ = [
    "DIDProofSync",
    "ProofRegistrar",
    "RegistrationReceipt",
    "SyncListener",
    "SyncOutcome",
    "reference_for",
]
