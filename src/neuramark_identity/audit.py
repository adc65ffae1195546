"""IdentityAuditLogger — JSONL audit trail for DID and credential events.

Every business-relevant event (DID created or updated, credential issued
or verified, ownership migrated, background DID sync outcome) is appended
as a single JSON line to the configured log file. If no file path is
configured the logger keeps events in an in-memory buffer that can be
drained via :meth:`IdentityAuditLogger.drain_buffer`.
"""
from __future__ import annotations

import datetime
import json
import threading
from dataclasses import dataclass, field
from pathlib import Path


@dataclass
class AuditEvent:
    """A single auditable identity event.

    Parameters
    ----------
    event_type:
        Short snake_case string identifying the event (e.g. "did_created").
    account_id:
        The account the event is about.
    actor_id:
        The party that triggered the event. Defaults to "system".
    details:
        Arbitrary key-value metadata about the event.
    timestamp:
        UTC datetime of the event. Defaults to now.
    """

    event_type: str
    account_id: str
    actor_id: str = "system"
    details: dict[str, object] = field(default_factory=dict)
    timestamp: datetime.datetime = field(
        default_factory=lambda: datetime.datetime.now(datetime.timezone.utc)
    )

    def to_dict(self) -> dict[str, object]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type,
            "account_id": self.account_id,
            "actor_id": self.actor_id,
            "details": self.details,
        }


class IdentityAuditLogger:
    """Append-only JSONL audit logger.

    Thread-safe. Each call to :meth:`log` appends one JSON line to the
    configured file (or to the in-memory buffer if no path is set).

    Parameters
    ----------
    log_path:
        Path to the JSONL log file. Parent directories are created
        automatically. If None, events are buffered in memory only.
    """

    def __init__(self, log_path: Path | None = None) -> None:
        self._log_path = log_path
        self._buffer: list[str] = []
        self._lock = threading.Lock()

        if log_path is not None:
            log_path.parent.mkdir(parents=True, exist_ok=True)

    def log(self, event: AuditEvent) -> None:
        line = json.dumps(event.to_dict(), separators=(",", ":"), default=str)
        with self._lock:
            if self._log_path is not None:
                with self._log_path.open("a", encoding="utf-8") as fh:
                    fh.write(line + "\n")
            else:
                self._buffer.append(line)

    def log_event(
        self,
        event_type: str,
        account_id: str,
        actor_id: str = "system",
        **details: object,
    ) -> None:
        """Log an event without constructing :class:`AuditEvent` by hand."""
        self.log(
            AuditEvent(
                event_type=event_type,
                account_id=account_id,
                actor_id=actor_id,
                details=dict(details),
            )
        )

    # ------------------------------------------------------------------
    # Convenience event loggers
    # ------------------------------------------------------------------

    def log_did_created(self, account_id: str, did: str, cid: str) -> None:
        self.log_event("did_created", account_id, did=did, cid=cid)

    def log_did_updated(
        self, account_id: str, action: str, cid: str, version: int, attempts: int
    ) -> None:
        self.log_event(
            "did_updated",
            account_id,
            action=action,
            cid=cid,
            version=version,
            attempts=attempts,
        )

    def log_credential_issued(
        self, account_id: str, proof_id: str, credential_id: str, cid: str
    ) -> None:
        self.log_event(
            "credential_issued",
            account_id,
            proof_id=proof_id,
            credential_id=credential_id,
            cid=cid,
        )

    def log_credential_verification(
        self, subject: str, credential_id: str, verified: bool, reason: str | None
    ) -> None:
        self.log_event(
            "credential_verified" if verified else "credential_verification_failed",
            subject,
            credential_id=credential_id,
            reason=reason,
        )

    def log_ownership_migrated(self, account_id: str, proof_id: str, wallet: str) -> None:
        self.log_event("ownership_migrated", account_id, proof_id=proof_id, wallet=wallet)

    def log_sync_outcome(
        self,
        account_id: str,
        proof_id: str,
        succeeded: bool,
        attempts: int,
        error: str | None = None,
    ) -> None:
        self.log_event(
            "did_sync_succeeded" if succeeded else "did_sync_failed",
            account_id,
            proof_id=proof_id,
            attempts=attempts,
            error=error,
        )

    # ------------------------------------------------------------------
    # Buffer access
    # ------------------------------------------------------------------

    def drain_buffer(self) -> list[str]:
        """Return and clear the in-memory event buffer (oldest first)."""
        with self._lock:
            events = list(self._buffer)
            self._buffer.clear()
        return events

    def read_log(self, tail: int | None = None) -> list[dict[str, object]]:
        """Read events back from the log file or buffer.

        Parameters
        ----------
        tail:
            If provided, return only the last *tail* events.
        """
        with self._lock:
            if self._log_path is None or not self._log_path.exists():
                lines = list(self._buffer)
            else:
                lines = self._log_path.read_text(encoding="utf-8").splitlines()

        parsed: list[dict[str, object]] = []
        for line in lines:
            stripped = line.strip()
            if not stripped:
                continue
            try:
                parsed.append(json.loads(stripped))
            except json.JSONDecodeError:
                continue

        if tail is not None:
            return parsed[-tail:]
        return parsed


__all__ = ["AuditEvent", "IdentityAuditLogger"]
