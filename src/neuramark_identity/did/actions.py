"""DID document actions and the pure state-transition function.

Actions form a closed tagged union::

    DIDAction = AddProof | AddWallet | RemoveWallet

:func:`apply_action` matches them exhaustively and performs no I/O.
Invariants kept by every transition:

- ``verifiedProofs`` only grows; existing entries keep their position.
- A ``proofId`` already present is not appended a second time.
- ``wallets`` hold normalized addresses with no duplicates.
- ``updatedAt`` advances on every action and never moves backwards.
"""
from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Union

from pydantic import ValidationError

from neuramark_identity.did.document import (
    DIDDocument,
    ProofReference,
    format_timestamp,
    normalize_wallet,
    parse_timestamp,
    utc_now,
)
from neuramark_identity.errors import MalformedInputError


@dataclass(frozen=True)
class AddProof:
    """Append a proof reference to ``verifiedProofs``."""

    reference: ProofReference


@dataclass(frozen=True)
class AddWallet:
    """Link a wallet address; a no-op for addresses already linked."""

    address: str


@dataclass(frozen=True)
class RemoveWallet:
    """Unlink a wallet address; a no-op for addresses not linked."""

    address: str


DIDAction = Union[AddProof, AddWallet, RemoveWallet]


def _advance(previous: str, now: datetime) -> str:
    if parse_timestamp(previous) >= now:
        return previous
    return format_timestamp(now)


def apply_action(
    document: DIDDocument,
    action: DIDAction,
    now: datetime | None = None,
) -> DIDDocument:
    """Return the document that results from applying *action* to *document*.

    Parameters
    ----------
    document:
        The current document. It is not modified.
    action:
        One of :class:`AddProof`, :class:`AddWallet`, :class:`RemoveWallet`.
    now:
        Clock reading used for ``updatedAt``; defaults to the current UTC time.

    Raises
    ------
    MalformedInputError
        If *action* is not one of the known variants.
    """
    updated_at = _advance(document.updated_at, now or utc_now())

    if isinstance(action, AddProof):
        proofs = document.verified_proofs
        if action.reference.proof_id not in document.proof_ids():
            proofs = proofs + (action.reference,)
        return document.model_copy(
            update={"verified_proofs": proofs, "updated_at": updated_at, "signature": None}
        )

    if isinstance(action, AddWallet):
        address = normalize_wallet(action.address)
        wallets = document.wallets
        if address not in wallets:
            wallets = wallets + (address,)
        return document.model_copy(
            update={"wallets": wallets, "updated_at": updated_at, "signature": None}
        )

    if isinstance(action, RemoveWallet):
        address = normalize_wallet(action.address)
        wallets = tuple(w for w in document.wallets if w != address)
        return document.model_copy(
            update={"wallets": wallets, "updated_at": updated_at, "signature": None}
        )

    raise MalformedInputError(f"Unknown DID action {type(action).__name__!r}.")


def apply_actions(
    document: DIDDocument,
    actions: Iterable[DIDAction],
    now: datetime | None = None,
) -> DIDDocument:
    """Fold :func:`apply_action` over *actions* in order.

    Useful when building a document retroactively for an account that
    already registered proofs.
    """
    for action in actions:
        document = apply_action(document, action, now=now)
    return document


# ------------------------------------------------------------------
# Request parsing
# ------------------------------------------------------------------

ACTION_NAMES: tuple[str, ...] = ("addProof", "addWallet", "removeWallet")


def action_from_request(action: str, data: Mapping[str, Any] | None) -> DIDAction:
    """Build a typed action from a request-style ``(action, data)`` pair.

    Parameters
    ----------
    action:
        ``"addProof"``, ``"addWallet"`` or ``"removeWallet"``.
    data:
        For ``addProof``: ``{proofId, ipfsCID, model, timestamp, txHash}``.
        For the wallet actions: ``{walletAddress}``.

    Raises
    ------
    MalformedInputError
        For an unknown action name or missing payload fields.
    """
    payload: Mapping[str, Any] = data or {}

    if action == "addProof":
        if not payload.get("proofId"):
            raise MalformedInputError("Proof data is required (missing proofId).")
        try:
            reference = ProofReference.model_validate(
                {
                    "proofId": payload.get("proofId"),
                    "ipfsCID": payload.get("ipfsCID", ""),
                    "model": payload.get("model", ""),
                    "timestamp": payload.get("timestamp", ""),
                    "txHash": payload.get("txHash", ""),
                }
            )
        except ValidationError as exc:
            raise MalformedInputError(f"Invalid proof reference: {exc}") from exc
        return AddProof(reference)

    if action in ("addWallet", "removeWallet"):
        address = payload.get("walletAddress")
        if not isinstance(address, str) or not address.strip():
            raise MalformedInputError("Wallet address is required.")
        return AddWallet(address) if action == "addWallet" else RemoveWallet(address)

    raise MalformedInputError(
        f"Unknown action {action!r}. Expected one of: {', '.join(ACTION_NAMES)}"
    )


__all__ = [
    "ACTION_NAMES",
    "AddProof",
    "AddWallet",
    "DIDAction",
    "RemoveWallet",
    "action_from_request",
    "apply_action",
    "apply_actions",
]
