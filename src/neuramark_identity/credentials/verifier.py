"""CredentialVerifier — offline verification of AI content proof credentials.

Verification flow
-----------------
1. :meth:`CredentialVerifier.parse` — JSON text or mapping to a
   :class:`~neuramark_identity.credentials.models.VerifiableCredential`;
   raises :class:`~neuramark_identity.errors.MalformedCredentialError` for
   structurally unusable input.
2. :meth:`CredentialVerifier.verify` — recomputes the canonical digest of the
   members received (minus ``proof``) and checks the embedded signature
   against the trusted issuer keys. Never raises for a bad or malformed
   signature; returns a typed :class:`CredentialVerificationResult`.
3. :meth:`CredentialVerifier.summarize` / :meth:`CredentialVerifier.status` —
   pure projections for display.
"""
from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import ValidationError

from neuramark_identity.audit import IdentityAuditLogger
from neuramark_identity.canonical import digest, multibase_decode
from neuramark_identity.credentials.issuer import PROOF_PURPOSE, PROOF_TYPE
from neuramark_identity.credentials.keys import PlatformKeyProvider, TrustedKey
from neuramark_identity.credentials.models import CredentialProof, VerifiableCredential
from neuramark_identity.did.document import parse_timestamp, utc_now
from neuramark_identity.errors import MalformedCredentialError

logger = logging.getLogger(__name__)

_REQUIRED_FIELDS: tuple[str, ...] = ("@context", "type", "credentialSubject")


# ------------------------------------------------------------------
# Result types
# ------------------------------------------------------------------


class VerificationFailure(str, Enum):
    """Why a credential failed verification."""

    BAD_SIGNATURE = "BadSignature"
    UNKNOWN_ISSUER = "UnknownIssuer"
    MALFORMED_PROOF = "MalformedProof"


@dataclass(frozen=True)
class CredentialVerificationResult:
    """Outcome of :meth:`CredentialVerifier.verify`.

    Parameters
    ----------
    verified:
        ``True`` only when the signature checks out under a trusted key.
    error:
        The failure reason when ``verified`` is ``False``.
    detail:
        Human-readable explanation of the failure.
    """

    verified: bool
    error: VerificationFailure | None = None
    detail: str = ""

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {"verified": self.verified}
        if self.error is not None:
            data["error"] = self.error.value
            data["detail"] = self.detail
        return data


def _failed(error: VerificationFailure, detail: str) -> CredentialVerificationResult:
    return CredentialVerificationResult(verified=False, error=error, detail=detail)


class CredentialState(str, Enum):
    VALID = "valid"
    INVALID = "invalid"
    EXPIRED = "expired"


@dataclass(frozen=True)
class CredentialStatus:
    status: CredentialState
    label: str

    def to_dict(self) -> dict[str, str]:
        return {"status": self.status.value, "label": self.label}


@dataclass(frozen=True)
class ProofSummary:
    """Human-readable projection of a credential's proof details."""

    owner: str
    model_info: str
    timestamp: str
    proof_id: str
    tx_hash: str
    network: str
    issuer: str
    credential_id: str

    def to_dict(self) -> dict[str, str]:
        return {
            "owner": self.owner,
            "modelInfo": self.model_info,
            "timestamp": self.timestamp,
            "proofId": self.proof_id,
            "txHash": self.tx_hash,
            "network": self.network,
            "issuer": self.issuer,
            "credentialId": self.credential_id,
        }


@dataclass(frozen=True)
class VerificationReport:
    """Everything a public verify endpoint returns for one credential."""

    credential: VerifiableCredential
    result: CredentialVerificationResult
    summary: ProofSummary
    status: CredentialStatus

    @property
    def verified(self) -> bool:
        return self.result.verified

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "verified": self.result.verified,
            "credential": self.credential.to_dict(),
            "proofSummary": self.summary.to_dict(),
            "status": self.status.to_dict(),
        }
        if self.result.error is not None:
            data["error"] = self.result.error.value
        return data


# ------------------------------------------------------------------
# CredentialVerifier
# ------------------------------------------------------------------


class CredentialVerifier:
    """Verifies credentials against a fixed set of trusted issuer keys.

    Parameters
    ----------
    trusted_keys:
        Public keys accepted as issuers, matched on ``proof.verificationMethod``.
    audit_logger:
        Optional audit trail for :meth:`check`.
    clock:
        Returns the current UTC time; used for expiry.

    Example
    -------
    ::

        verifier = CredentialVerifier.for_key_provider(provider)
        result = verifier.verify(credential_json)
        if not result.verified:
            print(result.error)  # VerificationFailure.BAD_SIGNATURE
    """

    def __init__(
        self,
        trusted_keys: Iterable[TrustedKey],
        audit_logger: IdentityAuditLogger | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._keys: dict[str, TrustedKey] = {key.key_id: key for key in trusted_keys}
        self._audit = audit_logger
        self._clock = clock

    @classmethod
    def for_key_provider(
        cls, provider: PlatformKeyProvider, audit_logger: IdentityAuditLogger | None = None
    ) -> "CredentialVerifier":
        return cls([provider.trusted_key()], audit_logger=audit_logger)

    # ------------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------------

    @staticmethod
    def _load(raw: str | bytes | Mapping[str, Any] | VerifiableCredential) -> dict[str, Any]:
        """Return *raw* as a JSON object, keeping every member as received."""
        if isinstance(raw, VerifiableCredential):
            return raw.to_dict()

        if isinstance(raw, (str, bytes)):
            try:
                data = json.loads(raw)
            except json.JSONDecodeError as exc:
                raise MalformedCredentialError(f"Invalid credential JSON: {exc}") from exc
        else:
            data = raw

        if not isinstance(data, Mapping):
            raise MalformedCredentialError("A credential must be a JSON object.")
        return dict(data)

    @staticmethod
    def _parse_loaded(data: Mapping[str, Any]) -> VerifiableCredential:
        missing = [name for name in _REQUIRED_FIELDS if not data.get(name)]
        if missing:
            raise MalformedCredentialError(
                "Invalid W3C Verifiable Credential structure: missing "
                + ", ".join(missing)
            )

        body = {name: value for name, value in data.items() if name != "proof"}
        try:
            credential = VerifiableCredential.model_validate(body)
        except ValidationError as exc:
            raise MalformedCredentialError(f"Invalid credential format: {exc}") from exc

        raw_proof = data.get("proof")
        if raw_proof is None:
            return credential
        try:
            proof = CredentialProof.model_validate(raw_proof)
        except ValidationError:
            logger.debug("Credential %s carries an unusable proof block", credential.id)
            return credential
        return credential.model_copy(update={"proof": proof})

    @classmethod
    def parse(
        cls, raw: str | bytes | Mapping[str, Any] | VerifiableCredential
    ) -> VerifiableCredential:
        """Parse structured input or its JSON text form.

        Only the credential body is validated here. A ``proof`` block that
        does not have the expected shape is left off the result; :meth:`verify`
        reports it as ``MalformedProof``.

        Raises
        ------
        MalformedCredentialError
            If the input is not JSON, not an object, misses ``@context``,
            ``type`` or ``credentialSubject``, or its body fails model validation.
        """
        if isinstance(raw, VerifiableCredential):
            return raw
        return cls._parse_loaded(cls._load(raw))

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    def verify(
        self, credential: str | bytes | Mapping[str, Any] | VerifiableCredential
    ) -> CredentialVerificationResult:
        """Check the credential's signature.

        The digest is computed over the members received, minus ``proof``,
        so any added, removed or nulled field breaks the signature.

        Raises
        ------
        MalformedCredentialError
            Only when the credential body cannot be parsed at all.
        """
        data = self._load(credential)
        return self._verify_loaded(data, self._parse_loaded(data))

    def _verify_loaded(
        self, data: Mapping[str, Any], parsed: VerifiableCredential
    ) -> CredentialVerificationResult:
        raw_proof = data.get("proof")
        if raw_proof is None:
            return _failed(VerificationFailure.MALFORMED_PROOF, "Credential is not signed.")
        if not isinstance(raw_proof, Mapping):
            return _failed(VerificationFailure.MALFORMED_PROOF, "proof must be a JSON object.")
        try:
            proof = CredentialProof.model_validate(dict(raw_proof))
        except ValidationError as exc:
            return _failed(VerificationFailure.MALFORMED_PROOF, f"Invalid proof block: {exc}")

        if proof.type != PROOF_TYPE:
            return _failed(
                VerificationFailure.MALFORMED_PROOF,
                f"Unsupported proof type {proof.type!r}; expected {PROOF_TYPE!r}.",
            )
        if proof.proof_purpose != PROOF_PURPOSE:
            return _failed(
                VerificationFailure.MALFORMED_PROOF,
                f"Unsupported proof purpose {proof.proof_purpose!r}.",
            )

        key = self._keys.get(proof.verification_method)
        if key is None:
            return _failed(
                VerificationFailure.UNKNOWN_ISSUER,
                f"Verification method {proof.verification_method!r} is not trusted.",
            )
        if key.controller != parsed.issuer.id:
            return _failed(
                VerificationFailure.UNKNOWN_ISSUER,
                f"Issuer {parsed.issuer.id!r} does not control {key.key_id!r}.",
            )

        try:
            signature = multibase_decode(proof.proof_value)
        except ValueError as exc:
            return _failed(VerificationFailure.MALFORMED_PROOF, str(exc))
        if len(signature) != 64:
            return _failed(
                VerificationFailure.MALFORMED_PROOF,
                f"Ed25519 signatures are 64 bytes, got {len(signature)}.",
            )

        payload = {name: value for name, value in data.items() if name != "proof"}
        try:
            payload_digest = digest(payload)
        except (TypeError, ValueError) as exc:
            return _failed(
                VerificationFailure.BAD_SIGNATURE,
                f"Credential contents cannot be canonicalized: {exc}",
            )
        if not key.verify(signature, payload_digest):
            return _failed(
                VerificationFailure.BAD_SIGNATURE,
                "Signature does not match the credential contents.",
            )
        return CredentialVerificationResult(verified=True)

    # ------------------------------------------------------------------
    # Projections
    # ------------------------------------------------------------------

    @staticmethod
    def summarize(credential: VerifiableCredential) -> ProofSummary:
        """Extract display fields. Performs no verification."""
        subject = credential.credential_subject
        anchor = subject.blockchain_proof
        return ProofSummary(
            owner=subject.id,
            model_info=subject.model_info,
            timestamp=anchor.timestamp,
            proof_id=anchor.proof_id,
            tx_hash=anchor.transaction_hash,
            network=anchor.network,
            issuer=credential.issuer.name,
            credential_id=credential.id,
        )

    def is_expired(self, credential: VerifiableCredential) -> bool:
        """Return ``True`` if the credential carries an elapsed ``expirationDate``.

        An unparseable expiration date counts as expired.
        """
        if not credential.expiration_date:
            return False
        try:
            expiry = parse_timestamp(credential.expiration_date)
        except ValueError:
            return True
        return self._clock() > expiry

    def status(
        self, credential: VerifiableCredential, result: CredentialVerificationResult
    ) -> CredentialStatus:
        if self.is_expired(credential):
            return CredentialStatus(CredentialState.EXPIRED, "Expired")
        if result.verified:
            return CredentialStatus(CredentialState.VALID, "Valid")
        return CredentialStatus(CredentialState.INVALID, "Invalid Signature")

    def check(
        self, raw: str | bytes | Mapping[str, Any] | VerifiableCredential
    ) -> VerificationReport:
        """Parse, verify, summarize and rate a credential in one call.

        Raises
        ------
        MalformedCredentialError
            Only when *raw* cannot be parsed.
        """
        data = self._load(raw)
        credential = self._parse_loaded(data)
        result = self._verify_loaded(data, credential)
        report = VerificationReport(
            credential=credential,
            result=result,
            summary=self.summarize(credential),
            status=self.status(credential, result),
        )
        if not result.verified:
            logger.info(
                "Credential %s failed verification: %s (%s)",
                credential.id,
                result.error.value if result.error else "unknown",
                result.detail,
            )
        if self._audit is not None:
            self._audit.log_credential_verification(
                credential.credential_subject.id,
                credential.id,
                result.verified,
                result.error.value if result.error else None,
            )
        return report


__all__ = [
    "CredentialState",
    "CredentialStatus",
    "CredentialVerificationResult",
    "CredentialVerifier",
    "ProofSummary",
    "VerificationFailure",
    "VerificationReport",
]
