"""Error taxonomy shared by every neuramark-identity subsystem.

Structural and validation failures are raised immediately. Transient
upstream failures are raised by store adapters as
:class:`TransientUpstreamError`, retried by :mod:`neuramark_identity.retry`,
and surface as :class:`UpstreamUnavailableError` once retries run out.

Credential verification failures are deliberately *not* part of this
hierarchy: they are returned as values by
:class:`~neuramark_identity.credentials.verifier.CredentialVerifier`.
"""
from __future__ import annotations


class NeuraMarkIdentityError(Exception):
    """Base exception for all neuramark-identity errors."""


class NotFoundError(NeuraMarkIdentityError, LookupError):
    """Raised when a DID document, record, blob, or proof is absent."""


class ConflictError(NeuraMarkIdentityError):
    """Raised on a duplicate create or when optimistic retries are exhausted."""


class VersionConflictError(ConflictError):
    """Raised by a conditional record update whose expected version is stale."""

    def __init__(self, key: str, expected: int, actual: int) -> None:
        super().__init__(
            f"Record {key!r} is at version {actual}, expected {expected}."
        )
        self.key = key
        self.expected = expected
        self.actual = actual


class UnauthorizedError(NeuraMarkIdentityError, PermissionError):
    """Raised when an account does not own the proof it acts on."""


class MalformedInputError(NeuraMarkIdentityError, ValueError):
    """Raised when required request fields are missing or invalid."""


class MalformedCredentialError(NeuraMarkIdentityError, ValueError):
    """Raised when a credential cannot be parsed or is structurally incomplete."""


class TransientUpstreamError(NeuraMarkIdentityError):
    """Raised by store adapters for failures worth retrying (timeouts, resets)."""


class UpstreamUnavailableError(NeuraMarkIdentityError):
    """Raised when a blob, record, or registry call still fails after retries."""


__all__ = [
    "ConflictError",
    "MalformedCredentialError",
    "MalformedInputError",
    "NeuraMarkIdentityError",
    "NotFoundError",
    "TransientUpstreamError",
    "UnauthorizedError",
    "UpstreamUnavailableError",
    "VersionConflictError",
]
