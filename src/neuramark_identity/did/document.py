"""DIDDocument — the per-account identity document for the ``did:neuramark`` method.

DID format
----------
::

    did:neuramark:<accountId>

A document links the account's wallets and the chronological list of
content proofs registered by that account. Documents are immutable
values: every change goes through
:func:`~neuramark_identity.did.actions.apply_action`, which returns a
new document.

Wire format
-----------
::

    {
      "@context": "https://www.w3.org/ns/did/v1",
      "id": "did:neuramark:u1",
      "name": "Ann",
      "email": "a@x.com",
      "wallets": ["0xab..."],
      "verifiedProofs": [{"proofId", "ipfsCID", "model", "timestamp", "txHash"}],
      "createdAt": "2024-01-01T00:00:00.000Z",
      "updatedAt": "2024-01-01T00:00:00.000Z",
      "signature": "z..."            # optional
    }
"""
from __future__ import annotations

import json
import re
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from neuramark_identity.errors import MalformedInputError

# ------------------------------------------------------------------
# DID method constants
# ------------------------------------------------------------------

DID_METHOD: str = "neuramark"
DID_CONTEXT: str = "https://www.w3.org/ns/did/v1"
DEFAULT_DISPLAY_NAME: str = "Anonymous"

_DID_PATTERN = re.compile(r"^did:neuramark:(?P<account_id>[A-Za-z0-9._\-]+)$")


def generate_did(account_id: str) -> str:
    """Return ``did:neuramark:<account_id>``.

    Raises
    ------
    MalformedInputError
        If *account_id* is empty or contains characters not allowed in a DID.
    """
    did = f"did:{DID_METHOD}:{account_id}"
    if not _DID_PATTERN.match(did):
        raise MalformedInputError(
            f"Account id {account_id!r} cannot form a did:{DID_METHOD} DID."
        )
    return did


def parse_did(did: str) -> str:
    """Return the account id encoded in a ``did:neuramark`` DID.

    Raises
    ------
    MalformedInputError
        If *did* is not a well-formed ``did:neuramark`` DID.
    """
    match = _DID_PATTERN.match(did)
    if not match:
        raise MalformedInputError(
            f"Malformed DID {did!r}. Expected format: did:{DID_METHOD}:<accountId>"
        )
    return match.group("account_id")


def is_valid_did(did: str) -> bool:
    """Return ``True`` if *did* is a well-formed ``did:neuramark`` DID."""
    return _DID_PATTERN.match(did) is not None


def format_did(did: str, max_length: int = 20) -> str:
    """Shorten a DID for display.

    Account ids longer than *max_length* are shown as their first and last
    eight characters joined by ``...``. Strings that are not three-part DIDs
    are returned unchanged.
    """
    parts = did.split(":")
    if len(parts) != 3:
        return did
    scheme, method, account_id = parts
    if len(account_id) <= max_length:
        return did
    return f"{scheme}:{method}:{account_id[:8]}...{account_id[-8:]}"


def normalize_wallet(address: str) -> str:
    """Return the normalized (trimmed, lower-cased) form of a wallet address.

    Every insert and every comparison of wallet addresses goes through this
    function.

    Raises
    ------
    MalformedInputError
        If *address* is empty after trimming.
    """
    normalized = address.strip().lower()
    if not normalized:
        raise MalformedInputError("Wallet address must not be empty.")
    return normalized


# ------------------------------------------------------------------
# Timestamps
# ------------------------------------------------------------------


def format_timestamp(moment: datetime) -> str:
    """Render *moment* as an ISO 8601 UTC string with millisecond precision."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    utc = moment.astimezone(timezone.utc)
    return utc.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO 8601 timestamp (``Z`` suffix accepted) into an aware datetime."""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ------------------------------------------------------------------
# Proof reference
# ------------------------------------------------------------------


class ProofReference(BaseModel):
    """One entry of a document's ``verifiedProofs`` list.

    Parameters
    ----------
    proof_id:
        On-chain proof identifier.
    ipfs_cid:
        Primary content identifier of the proof's stored content.
    model:
        The AI model that produced the content.
    timestamp:
        ISO 8601 registration timestamp.
    tx_hash:
        Transaction hash of the registration.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    proof_id: str = Field(alias="proofId", min_length=1)
    ipfs_cid: str = Field(alias="ipfsCID")
    model: str
    timestamp: str
    tx_hash: str = Field(alias="txHash")

    def to_dict(self) -> dict[str, str]:
        """Serialize to the camelCase wire form."""
        return self.model_dump(by_alias=True)


# ------------------------------------------------------------------
# DID Document
# ------------------------------------------------------------------


class DIDDocument(BaseModel):
    """An account's DID document.

    ``wallets`` are normalized with :func:`normalize_wallet` and
    de-duplicated on construction. ``verified_proofs`` is append-only; see
    :mod:`neuramark_identity.did.actions`.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    context: str = Field(default=DID_CONTEXT, alias="@context")
    id: str
    name: str = DEFAULT_DISPLAY_NAME
    email: str
    wallets: tuple[str, ...] = ()
    verified_proofs: tuple[ProofReference, ...] = Field(default=(), alias="verifiedProofs")
    created_at: str = Field(alias="createdAt")
    updated_at: str = Field(alias="updatedAt")
    signature: str | None = None

    @field_validator("id")
    @classmethod
    def validate_did_format(cls, value: str) -> str:
        if not _DID_PATTERN.match(value):
            raise ValueError(
                f"Malformed DID {value!r}. Expected format: did:{DID_METHOD}:<accountId>"
            )
        return value

    @field_validator("wallets")
    @classmethod
    def normalize_wallets(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        seen: list[str] = []
        for address in value:
            normalized = normalize_wallet(address)
            if normalized not in seen:
                seen.append(normalized)
        return tuple(seen)

    @field_validator("created_at", "updated_at")
    @classmethod
    def validate_timestamp(cls, value: str) -> str:
        parse_timestamp(value)
        return value

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def new(
        cls,
        account_id: str,
        email: str,
        display_name: str | None = None,
        wallets: Iterable[str] = (),
        now: datetime | None = None,
    ) -> "DIDDocument":
        """Build a fresh document with no proofs and ``createdAt == updatedAt``."""
        stamp = format_timestamp(now or utc_now())
        return cls(
            id=generate_did(account_id),
            name=display_name or DEFAULT_DISPLAY_NAME,
            email=email,
            wallets=tuple(wallets),
            verified_proofs=(),
            created_at=stamp,
            updated_at=stamp,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @property
    def account_id(self) -> str:
        return parse_did(self.id)

    def has_wallet(self, address: str) -> bool:
        return normalize_wallet(address) in self.wallets

    def proof_ids(self) -> list[str]:
        return [ref.proof_id for ref in self.verified_proofs]

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self, include_signature: bool = True) -> dict[str, Any]:
        """Serialize to the wire form.

        Parameters
        ----------
        include_signature:
            When ``False`` the ``signature`` field is left out, giving the
            payload a detached signature is computed over.
        """
        data: dict[str, Any] = {
            "@context": self.context,
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "wallets": list(self.wallets),
            "verifiedProofs": [ref.to_dict() for ref in self.verified_proofs],
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
        if include_signature and self.signature is not None:
            data["signature"] = self.signature
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DIDDocument":
        """Validate a wire-form dictionary.

        Raises
        ------
        MalformedInputError
            If required fields are missing or invalid.
        """
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise MalformedInputError(f"Invalid DID document: {exc}") from exc

    @classmethod
    def from_json(cls, json_str: str | bytes) -> "DIDDocument":
        try:
            data = json.loads(json_str)
        except json.JSONDecodeError as exc:
            raise MalformedInputError(f"Invalid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise MalformedInputError("A DID document must be a JSON object.")
        return cls.from_dict(data)
