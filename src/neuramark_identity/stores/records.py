"""DID record store — the authoritative current-pointer per account.

Each :class:`DIDRecord` holds the latest document snapshot, the content
identifier of its pinned blob, the proof count and a ``version`` counter.
:meth:`RecordStore.update` accepts an ``expected_version``; a stale
version raises :class:`~neuramark_identity.errors.VersionConflictError`
so callers can retry the whole read-modify-write cycle.

:class:`InMemoryRecordStore` supports export/import to newline-delimited
JSON for simple file-based persistence.
"""
from __future__ import annotations

import copy
import datetime
import json
import threading
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from neuramark_identity.did.document import normalize_wallet
from neuramark_identity.errors import ConflictError, NotFoundError, VersionConflictError


def _now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def _detached(record: DIDRecord) -> DIDRecord:
    return replace(record, document=copy.deepcopy(record.document))


@dataclass(frozen=True)
class DIDRecord:
    """Current-pointer record for one account.

    Parameters
    ----------
    user_id:
        Account identifier; the unique key.
    did_id:
        The account's DID string.
    document:
        Snapshot of the latest DID document in wire form.
    current_cid:
        Content identifier of the pinned blob holding ``document``.
    proof_count:
        ``len(document["verifiedProofs"])`` at commit time.
    created_at:
        UTC datetime the record was created.
    updated_at:
        UTC datetime of the latest commit.
    version:
        Incremented by every update; used for conditional writes.
    """

    user_id: str
    did_id: str
    document: dict[str, Any]
    current_cid: str
    proof_count: int = 0
    created_at: datetime.datetime = field(default_factory=_now)
    updated_at: datetime.datetime = field(default_factory=_now)
    version: int = 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "did_id": self.did_id,
            "document": self.document,
            "current_cid": self.current_cid,
            "proof_count": self.proof_count,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DIDRecord":
        return cls(
            user_id=data["user_id"],
            did_id=data["did_id"],
            document=dict(data["document"]),
            current_cid=data["current_cid"],
            proof_count=int(data.get("proof_count", 0)),
            created_at=datetime.datetime.fromisoformat(data["created_at"]),
            updated_at=datetime.datetime.fromisoformat(data["updated_at"]),
            version=int(data.get("version", 1)),
        )


_UPDATABLE_FIELDS = frozenset({"document", "current_cid", "proof_count"})


@runtime_checkable
class RecordStore(Protocol):
    """The keyed record store consumed by the DID document manager."""

    def get_by_key(self, user_id: str) -> DIDRecord | None: ...

    def get_by_did(self, did_id: str) -> DIDRecord | None: ...

    def find_by_wallet(self, address: str) -> DIDRecord | None: ...

    def create(self, record: DIDRecord) -> DIDRecord: ...

    def update(
        self,
        user_id: str,
        changes: dict[str, Any],
        expected_version: int | None = None,
    ) -> DIDRecord: ...


class InMemoryRecordStore:
    """Thread-safe in-memory :class:`RecordStore` with NDJSON persistence.

    Example
    -------
    ::

        store = InMemoryRecordStore()
        store.create(DIDRecord(user_id="u1", did_id="did:neuramark:u1",
                               document={...}, current_cid="Qm..."))
        store.update("u1", {"proof_count": 1}, expected_version=1)
    """

    def __init__(self) -> None:
        self._records: dict[str, DIDRecord] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_by_key(self, user_id: str) -> DIDRecord | None:
        with self._lock:
            record = self._records.get(user_id)
            return _detached(record) if record is not None else None

    def get_by_did(self, did_id: str) -> DIDRecord | None:
        with self._lock:
            for record in self._records.values():
                if record.did_id == did_id:
                    return _detached(record)
        return None

    def find_by_wallet(self, address: str) -> DIDRecord | None:
        """Return the record whose document lists *address* (case-insensitive)."""
        if not address or not address.strip():
            return None
        needle = normalize_wallet(address)
        with self._lock:
            for record in self._records.values():
                wallets = [str(w) for w in record.document.get("wallets", [])]
                if any(w.strip() and normalize_wallet(w) == needle for w in wallets):
                    return _detached(record)
        return None

    def list_keys(self) -> list[str]:
        with self._lock:
            return sorted(self._records)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(self, record: DIDRecord) -> DIDRecord:
        """Insert *record*.

        Raises
        ------
        ConflictError
            If a record already exists for ``record.user_id``.
        """
        with self._lock:
            if record.user_id in self._records:
                raise ConflictError(
                    f"A DID record already exists for account {record.user_id!r}."
                )
            self._records[record.user_id] = _detached(record)
        return _detached(record)

    def update(
        self,
        user_id: str,
        changes: dict[str, Any],
        expected_version: int | None = None,
    ) -> DIDRecord:
        """Apply *changes* to the record for *user_id* and bump its version.

        Parameters
        ----------
        user_id:
            Record key.
        changes:
            Subset of ``document``, ``current_cid`` and ``proof_count``.
        expected_version:
            When given, the update only happens if the stored version matches.

        Raises
        ------
        NotFoundError
            If no record exists for *user_id*.
        VersionConflictError
            If *expected_version* does not match the stored version.
        ValueError
            If *changes* names a field that cannot be updated.
        """
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update record fields: {sorted(unknown)}")

        with self._lock:
            current = self._records.get(user_id)
            if current is None:
                raise NotFoundError(f"No DID record for account {user_id!r}.")
            if expected_version is not None and current.version != expected_version:
                raise VersionConflictError(user_id, expected_version, current.version)
            if "document" in changes:
                changes = {**changes, "document": copy.deepcopy(changes["document"])}
            updated = replace(
                current,
                **changes,
                updated_at=_now(),
                version=current.version + 1,
            )
            self._records[user_id] = updated
        return _detached(updated)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def export_records(self, path: Path) -> None:
        """Write every record to *path* as newline-delimited JSON."""
        with self._lock:
            records = sorted(self._records.values(), key=lambda r: r.user_id)
        lines = [json.dumps(record.to_dict(), sort_keys=True) for record in records]
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("\n".join(lines), encoding="utf-8")

    def import_records(self, path: Path) -> None:
        """Load records exported by :meth:`export_records`.

        Records for accounts already present are skipped.

        Raises
        ------
        ValueError
            If a line is not valid JSON or lacks required fields.
        """
        content = path.read_text(encoding="utf-8").strip()
        if not content:
            return

        for line_number, raw_line in enumerate(content.splitlines(), start=1):
            raw_line = raw_line.strip()
            if not raw_line:
                continue
            try:
                record = DIDRecord.from_dict(json.loads(raw_line))
            except json.JSONDecodeError as exc:
                raise ValueError(f"Invalid JSON on line {line_number}: {exc}") from exc
            except (KeyError, TypeError) as exc:
                raise ValueError(
                    f"Invalid record on line {line_number}: {exc}"
                ) from exc
            with self._lock:
                self._records.setdefault(record.user_id, record)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, user_id: object) -> bool:
        with self._lock:
            return user_id in self._records


__all__ = ["DIDRecord", "InMemoryRecordStore", "RecordStore"]
