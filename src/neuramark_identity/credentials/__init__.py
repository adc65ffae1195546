"""Verifiable Credentials for registered AI content proofs.

keys
    Immutable platform Ed25519 key provider and trusted public keys.
models
    W3C Verifiable Credential wire model.
anchors
    On-chain anchor facts and the registry seam.
issuer
    Build, sign and export credentials.
verifier
    Parse, verify, summarize and rate credentials.
service
    Issue-for-proof orchestration with pinning.
"""
from __future__ import annotations

from neuramark_identity.credentials.keys import (
    DEFAULT_KEY_ID,
    PLATFORM_DID,
    PlatformKeyProvider,
    TrustedKey,
)
from neuramark_identity.credentials.models import (
    CREDENTIAL_TYPE,
    VerifiableCredential,
)
from neuramark_identity.credentials.anchors import Anchor, AnchorSource, ConfiguredAnchorSource
from neuramark_identity.credentials.issuer import (
    PROOF_PURPOSE,
    PROOF_TYPE,
    CredentialIssuer,
    credential_id_for,
)
from neuramark_identity.credentials.verifier import (
    CredentialState,
    CredentialStatus,
    CredentialVerificationResult,
    CredentialVerifier,
    ProofSummary,
    VerificationFailure,
    VerificationReport,
)
from neuramark_identity.credentials.service import CredentialService, IssuedCredential

__all__ = [
    "Anchor",
    "AnchorSource",
    "CREDENTIAL_TYPE",
    "ConfiguredAnchorSource",
    "CredentialIssuer",
    "CredentialService",
    "CredentialState",
    "CredentialStatus",
    "CredentialVerificationResult",
    "CredentialVerifier",
    "DEFAULT_KEY_ID",
    "IssuedCredential",
    "PLATFORM_DID",
    "PROOF_PURPOSE",
    "PROOF_TYPE",
    "PlatformKeyProvider",
    "ProofSummary",
    "TrustedKey",
    "VerifiableCredential",
    "VerificationFailure",
    "VerificationReport",
    "credential_id_for",
]
