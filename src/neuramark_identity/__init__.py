"""neuramark-identity — DIDs and Verifiable Credentials for AI content proofs.

Public API
----------
The stable public surface is everything exported from this module.
Anything inside submodules not re-exported here is considered private
and may change without notice.

Example
-------
>>> import neuramark_identity
>>> neuramark_identity.__version__
'0.1.0'

Quick start
-----------
::

    from neuramark_identity import (
        DIDDocumentManager, AddProof, ProofReference,
        InMemoryBlobStore, InMemoryRecordStore,
        PlatformKeyProvider, CredentialIssuer, CredentialVerifier,
    )

    manager = DIDDocumentManager(InMemoryBlobStore(), InMemoryRecordStore())
    manager.create("u1", "a@x.com", "Ann")
    manager.mutate("u1", AddProof(ProofReference(proof_id="0xabc", ...)))
"""
from __future__ import annotations

__version__: str = "0.1.0"

from neuramark_identity.audit import AuditEvent, IdentityAuditLogger
from neuramark_identity.canonical import canonicalize, content_id, digest, digest_hex
from neuramark_identity.config import Settings, load_settings

# ------------------------------------------------------------------
# DID documents
# ------------------------------------------------------------------
from neuramark_identity.did import (
    AddProof,
    AddWallet,
    DIDAction,
    DIDDocument,
    DIDDocumentManager,
    MutationResult,
    ProofReference,
    RemoveWallet,
    action_from_request,
    apply_action,
    apply_actions,
    format_did,
    generate_did,
    is_valid_did,
    parse_did,
    sign_document,
    verify_document_signature,
)

# ------------------------------------------------------------------
# Verifiable Credentials
# ------------------------------------------------------------------
from neuramark_identity.credentials import (
    Anchor,
    ConfiguredAnchorSource,
    CredentialIssuer,
    CredentialService,
    CredentialVerificationResult,
    CredentialVerifier,
    IssuedCredential,
    PlatformKeyProvider,
    TrustedKey,
    VerifiableCredential,
    VerificationFailure,
)

# ------------------------------------------------------------------
# Ownership, registration, stores, errors
# ------------------------------------------------------------------
from neuramark_identity.ownership import OwnershipResolver, OwnershipResult
from neuramark_identity.registration import DIDProofSync, ProofRegistrar, SyncOutcome
from neuramark_identity.retry import RetryPolicy, call_with_retry
from neuramark_identity.stores import (
    DIDRecord,
    FileBlobStore,
    InMemoryBlobStore,
    InMemoryProofStore,
    InMemoryRecordStore,
    Proof,
)
from neuramark_identity.errors import (
    ConflictError,
    MalformedCredentialError,
    MalformedInputError,
    NeuraMarkIdentityError,
    NotFoundError,
    TransientUpstreamError,
    UnauthorizedError,
    UpstreamUnavailableError,
    VersionConflictError,
)

__all__ = [
    "__version__",
    # Audit / config / codec
    "AuditEvent",
    "IdentityAuditLogger",
    "Settings",
    "canonicalize",
    "content_id",
    "digest",
    "digest_hex",
    "load_settings",
    # DID
    "AddProof",
    "AddWallet",
    "DIDAction",
    "DIDDocument",
    "DIDDocumentManager",
    "MutationResult",
    "ProofReference",
    "RemoveWallet",
    "action_from_request",
    "apply_action",
    "apply_actions",
    "format_did",
    "generate_did",
    "is_valid_did",
    "parse_did",
    "sign_document",
    "verify_document_signature",
    # Credentials
    "Anchor",
    "ConfiguredAnchorSource",
    "CredentialIssuer",
    "CredentialService",
    "CredentialVerificationResult",
    "CredentialVerifier",
    "IssuedCredential",
    "PlatformKeyProvider",
    "TrustedKey",
    "VerifiableCredential",
    "VerificationFailure",
    # Ownership / registration
    "DIDProofSync",
    "OwnershipResolver",
    "OwnershipResult",
    "ProofRegistrar",
    "SyncOutcome",
    # Retry / stores
    "DIDRecord",
    "FileBlobStore",
    "InMemoryBlobStore",
    "InMemoryProofStore",
    "InMemoryRecordStore",
    "Proof",
    "RetryPolicy",
    "call_with_retry",
    # Errors
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
