"""DIDDocumentManager — creation and the upload-then-commit mutation protocol.

Mutation protocol
-----------------
::

    read record -> apply(document, action) -> persist(document) -> commit(record)

``persist`` writes the canonical document bytes to the blob store and
returns the content identifier. ``commit`` then points the account's
record at that identifier. ``commit`` is never attempted before
``persist`` succeeded, so a record can never reference a blob that was
not written. A failure between the two steps leaves an orphan blob, which
is harmless.

Concurrency
-----------
Every commit is a conditional write against the version read at the
start of the cycle. When another writer got there first the store raises
:class:`~neuramark_identity.errors.VersionConflictError` and the whole
cycle is re-run against the fresh record, up to ``max_commit_attempts``
times, after which :class:`~neuramark_identity.errors.ConflictError` is
raised. No lock is shared between requests.
"""
from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime

from neuramark_identity.audit import IdentityAuditLogger
from neuramark_identity.canonical import canonicalize
from neuramark_identity.did.actions import (
    AddProof,
    AddWallet,
    DIDAction,
    RemoveWallet,
    apply_action,
)
from neuramark_identity.did.document import (
    DIDDocument,
    normalize_wallet,
    utc_now,
)
from neuramark_identity.errors import (
    ConflictError,
    MalformedInputError,
    NotFoundError,
    VersionConflictError,
)
from neuramark_identity.retry import RetryPolicy, call_with_retry
from neuramark_identity.stores.blob import BlobStore
from neuramark_identity.stores.records import DIDRecord, RecordStore

logger = logging.getLogger(__name__)

_ACTION_LABELS: dict[type, str] = {
    AddProof: "addProof",
    AddWallet: "addWallet",
    RemoveWallet: "removeWallet",
}


@dataclass(frozen=True)
class MutationResult:
    """Outcome of one committed mutation.

    Parameters
    ----------
    document:
        The committed document.
    cid:
        Content identifier of the pinned document.
    record:
        The record as written by the commit.
    attempts:
        Number of read-apply-persist-commit cycles it took.
    """

    document: DIDDocument
    cid: str
    record: DIDRecord
    attempts: int


class DIDDocumentManager:
    """Creates DID documents and runs the mutation protocol against the stores.

    Parameters
    ----------
    blob_store:
        Content-addressed store receiving every document version.
    record_store:
        Keyed store holding the current-pointer record per account.
    retry_policy:
        Backoff for transient blob/record failures.
    max_commit_attempts:
        Bound on optimistic-concurrency retries per mutation.
    audit_logger:
        Optional audit trail.
    clock:
        Returns the current UTC time; injectable for tests.

    Example
    -------
    ::

        manager = DIDDocumentManager(InMemoryBlobStore(), InMemoryRecordStore())
        manager.create("u1", "a@x.com", "Ann")
        result = manager.mutate("u1", AddWallet("0xABC"))
        print(result.document.wallets)  # ('0xabc',)
    """

    def __init__(
        self,
        blob_store: BlobStore,
        record_store: RecordStore,
        *,
        retry_policy: RetryPolicy | None = None,
        max_commit_attempts: int = 5,
        audit_logger: IdentityAuditLogger | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        if max_commit_attempts < 1:
            raise ValueError("max_commit_attempts must be at least 1.")
        self._blobs = blob_store
        self._records = record_store
        self._retry = retry_policy or RetryPolicy()
        self._max_commit_attempts = max_commit_attempts
        self._audit = audit_logger
        self._clock = clock

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create(
        self,
        account_id: str,
        email: str,
        display_name: str | None = None,
        wallets: Iterable[str] = (),
    ) -> DIDDocument:
        """Create, pin and record the DID document for *account_id*.

        Raises
        ------
        MalformedInputError
            If *account_id* or *email* is empty.
        ConflictError
            If a document already exists for *account_id*.
        UpstreamUnavailableError
            If the stores stay unreachable after retries.
        """
        if not account_id or not account_id.strip():
            raise MalformedInputError("account_id is required.")
        if not email or not email.strip():
            raise MalformedInputError("email is required.")

        existing = call_with_retry(
            lambda: self._records.get_by_key(account_id),
            policy=self._retry,
            description=f"record lookup for {account_id}",
        )
        if existing is not None:
            raise ConflictError(f"DID already exists for account {account_id!r}.")

        document = DIDDocument.new(
            account_id,
            email,
            display_name,
            [normalize_wallet(w) for w in wallets],
            now=self._clock(),
        )
        cid = self.persist(document)
        now = self._clock()
        record = DIDRecord(
            user_id=account_id,
            did_id=document.id,
            document=document.to_dict(),
            current_cid=cid,
            proof_count=0,
            created_at=now,
            updated_at=now,
        )
        call_with_retry(
            lambda: self._records.create(record),
            policy=self._retry,
            description=f"record create for {account_id}",
        )
        logger.info("Created %s (cid=%s)", document.id, cid)
        if self._audit is not None:
            self._audit.log_did_created(account_id, document.id, cid)
        return document

    # ------------------------------------------------------------------
    # Protocol steps
    # ------------------------------------------------------------------

    @staticmethod
    def apply(
        document: DIDDocument, action: DIDAction, now: datetime | None = None
    ) -> DIDDocument:
        """Pure transform; see :func:`~neuramark_identity.did.actions.apply_action`."""
        return apply_action(document, action, now=now)

    def persist(self, document: DIDDocument) -> str:
        """Write the canonical document bytes to the blob store and return the CID."""
        data = canonicalize(document.to_dict())
        name = f"did-document-{document.account_id}.json"
        return call_with_retry(
            lambda: self._blobs.put(data, name),
            policy=self._retry,
            description=f"blob write for {document.id}",
        )

    def commit(
        self,
        account_id: str,
        document: DIDDocument,
        cid: str,
        expected_version: int | None = None,
    ) -> DIDRecord:
        """Point the account's record at *cid*.

        Must only be called with a *cid* returned by :meth:`persist`.

        Raises
        ------
        VersionConflictError
            If *expected_version* is stale.
        NotFoundError
            If the account has no record.
        """
        changes = {
            "document": document.to_dict(),
            "current_cid": cid,
            "proof_count": len(document.verified_proofs),
        }
        return call_with_retry(
            lambda: self._records.update(account_id, changes, expected_version),
            policy=self._retry,
            description=f"record commit for {account_id}",
        )

    # ------------------------------------------------------------------
    # Full protocol
    # ------------------------------------------------------------------

    def mutate(self, account_id: str, action: DIDAction) -> MutationResult:
        """Run read -> apply -> persist -> commit with optimistic retries.

        Raises
        ------
        NotFoundError
            If the account has no DID document.
        ConflictError
            If every attempt lost the race to a concurrent writer.
        MalformedInputError
            If *action* is not a known variant.
        UpstreamUnavailableError
            If the stores stay unreachable after retries.
        """
        label = _ACTION_LABELS.get(type(action))
        if label is None:
            raise MalformedInputError(f"Unknown DID action {type(action).__name__!r}.")

        for attempt in range(1, self._max_commit_attempts + 1):
            record = self.get_record(account_id)
            document = DIDDocument.from_dict(record.document)
            updated = apply_action(document, action, now=self._clock())
            cid = self.persist(updated)
            try:
                committed = self.commit(
                    account_id, updated, cid, expected_version=record.version
                )
            except VersionConflictError as exc:
                logger.warning(
                    "Concurrent update of %s on attempt %d/%d (%s); retrying",
                    record.did_id,
                    attempt,
                    self._max_commit_attempts,
                    exc,
                )
                continue

            logger.info(
                "Committed %s to %s (cid=%s, version=%d)",
                label,
                committed.did_id,
                cid,
                committed.version,
            )
            if self._audit is not None:
                self._audit.log_did_updated(
                    account_id, label, cid, committed.version, attempt
                )
            return MutationResult(
                document=updated, cid=cid, record=committed, attempts=attempt
            )

        raise ConflictError(
            f"Could not commit {label} for account {account_id!r} after "
            f"{self._max_commit_attempts} attempts due to concurrent updates."
        )

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get_record(self, account_id: str) -> DIDRecord:
        """Return the current-pointer record for *account_id*.

        Raises
        ------
        NotFoundError
            If the account has no DID document.
        """
        record = call_with_retry(
            lambda: self._records.get_by_key(account_id),
            policy=self._retry,
            description=f"record lookup for {account_id}",
        )
        if record is None:
            raise NotFoundError(f"DID not found for account {account_id!r}.")
        return record

    def get_document(self, account_id: str) -> DIDDocument:
        return DIDDocument.from_dict(self.get_record(account_id).document)

    def exists(self, account_id: str) -> bool:
        return self._records.get_by_key(account_id) is not None

    def resolve_did(self, did: str) -> DIDRecord:
        """Return the record for a DID string.

        Raises
        ------
        NotFoundError
            If no account owns *did*.
        """
        record = call_with_retry(
            lambda: self._records.get_by_did(did),
            policy=self._retry,
            description=f"record lookup for {did}",
        )
        if record is None:
            raise NotFoundError(f"DID {did!r} not found.")
        return record

    def resolve_wallet(self, address: str) -> DIDRecord:
        """Return the record whose document lists *address*.

        Raises
        ------
        NotFoundError
            If no DID document links the wallet.
        """
        wallet = normalize_wallet(address)
        record = call_with_retry(
            lambda: self._records.find_by_wallet(wallet),
            policy=self._retry,
            description=f"wallet lookup for {wallet}",
        )
        if record is None:
            raise NotFoundError(f"No DID links wallet {wallet!r}.")
        return record

    def load_pinned(self, cid: str) -> DIDDocument:
        """Fetch a document version back from the blob store."""
        data = call_with_retry(
            lambda: self._blobs.get(cid),
            policy=self._retry,
            description=f"blob read for {cid}",
        )
        return DIDDocument.from_json(data)


__all__ = ["DIDDocumentManager", "MutationResult"]
