"""Registered content proofs and the store that owns them.

:class:`Proof` is produced by proof registration and consumed read-only
here, with two exceptions: ownership migration writes ``user_id`` and
credential issuance records ``vc_id`` / ``vc_cid``.
"""
from __future__ import annotations

import datetime
import json
import threading
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from neuramark_identity.errors import ConflictError, NotFoundError


def _now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


@dataclass
class Proof:
    """A registered proof of authorship for one AI-generated output.

    Parameters
    ----------
    proof_id:
        On-chain proof identifier.
    prompt_hash, output_hash:
        Content hashes of the prompt and output.
    prompt_cid, output_cid:
        Content identifiers of the stored prompt and output.
    model_info:
        The model that produced the output.
    output_type:
        ``"text"`` or ``"image"``.
    tx_hash:
        Registration transaction hash.
    wallet:
        Wallet address that registered the proof.
    user_id:
        Owning account, when known. Legacy proofs only carry ``wallet``.
    created_at:
        UTC registration time.
    vc_id, vc_cid:
        Id and content identifier of the last credential issued for the proof.
    """

    proof_id: str
    prompt_hash: str
    output_hash: str
    prompt_cid: str
    output_cid: str
    model_info: str
    output_type: str
    tx_hash: str
    wallet: str
    user_id: str | None = None
    created_at: datetime.datetime = field(default_factory=_now)
    vc_id: str | None = None
    vc_cid: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "proofId": self.proof_id,
            "promptHash": self.prompt_hash,
            "outputHash": self.output_hash,
            "promptCID": self.prompt_cid,
            "outputCID": self.output_cid,
            "modelInfo": self.model_info,
            "outputType": self.output_type,
            "txHash": self.tx_hash,
            "wallet": self.wallet,
            "userId": self.user_id,
            "createdAt": self.created_at.isoformat(),
            "vcId": self.vc_id,
            "vcCID": self.vc_cid,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Proof":
        created_raw = data.get("createdAt")
        created_at = (
            datetime.datetime.fromisoformat(created_raw.replace("Z", "+00:00"))
            if created_raw
            else _now()
        )
        return cls(
            proof_id=data["proofId"],
            prompt_hash=data["promptHash"],
            output_hash=data["outputHash"],
            prompt_cid=data["promptCID"],
            output_cid=data["outputCID"],
            model_info=data["modelInfo"],
            output_type=data.get("outputType") or "text",
            tx_hash=data["txHash"],
            wallet=data["wallet"],
            user_id=data.get("userId"),
            created_at=created_at,
            vc_id=data.get("vcId"),
            vc_cid=data.get("vcCID"),
        )


@runtime_checkable
class ProofStore(Protocol):
    def get(self, proof_id: str) -> Proof | None: ...

    def add(self, proof: Proof) -> Proof: ...

    def assign_owner(self, proof_id: str, user_id: str) -> Proof: ...

    def attach_credential(self, proof_id: str, vc_id: str, vc_cid: str) -> Proof: ...


class InMemoryProofStore:
    """Thread-safe in-memory :class:`ProofStore` with NDJSON persistence.

    Stored proofs are copied on the way in and out so callers never share
    mutable state with the store.
    """

    def __init__(self) -> None:
        self._proofs: dict[str, Proof] = {}
        self._lock = threading.Lock()

    def get(self, proof_id: str) -> Proof | None:
        with self._lock:
            proof = self._proofs.get(proof_id)
            return replace(proof) if proof is not None else None

    def add(self, proof: Proof) -> Proof:
        """Store a newly registered proof.

        Raises
        ------
        ConflictError
            If a proof with the same ``proof_id`` already exists.
        """
        with self._lock:
            if proof.proof_id in self._proofs:
                raise ConflictError(f"Proof {proof.proof_id!r} is already stored.")
            self._proofs[proof.proof_id] = replace(proof)
        return replace(proof)

    def _update(self, proof_id: str, **changes: Any) -> Proof:
        with self._lock:
            current = self._proofs.get(proof_id)
            if current is None:
                raise NotFoundError(f"Proof {proof_id!r} not found.")
            updated = replace(current, **changes)
            self._proofs[proof_id] = updated
            return replace(updated)

    def assign_owner(self, proof_id: str, user_id: str) -> Proof:
        return self._update(proof_id, user_id=user_id)

    def attach_credential(self, proof_id: str, vc_id: str, vc_cid: str) -> Proof:
        return self._update(proof_id, vc_id=vc_id, vc_cid=vc_cid)

    def list_ids(self) -> list[str]:
        with self._lock:
            return sorted(self._proofs)

    def export_proofs(self, path: Path) -> None:
        with self._lock:
            proofs = sorted(self._proofs.values(), key=lambda p: p.proof_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            "\n".join(json.dumps(p.to_dict(), sort_keys=True) for p in proofs),
            encoding="utf-8",
        )

    def import_proofs(self, path: Path) -> None:
        content = path.read_text(encoding="utf-8").strip()
        if not content:
            return
        for line_number, raw_line in enumerate(content.splitlines(), start=1):
            raw_line = raw_line.strip()
            if not raw_line:
                continue
            try:
                proof = Proof.from_dict(json.loads(raw_line))
            except json.JSONDecodeError as exc:
                raise ValueError(f"Invalid JSON on line {line_number}: {exc}") from exc
            except (KeyError, TypeError, AttributeError) as exc:
                raise ValueError(f"Invalid proof on line {line_number}: {exc}") from exc
            with self._lock:
                self._proofs.setdefault(proof.proof_id, proof)

    def __len__(self) -> int:
        with self._lock:
            return len(self._proofs)


__all__ = ["InMemoryProofStore", "Proof", "ProofStore"]
