"""DID documents for NeuraMark accounts.

document
    :class:`DIDDocument` and :class:`ProofReference` wire models, DID helpers.
actions
    The ``AddProof`` / ``AddWallet`` / ``RemoveWallet`` actions and the pure
    transition function.
manager
    Creation and the persist-then-commit mutation protocol.
signing
    Optional detached document signature made with the platform key.
"""
from __future__ import annotations

from neuramark_identity.did.actions import (
    ACTION_NAMES,
    AddProof,
    AddWallet,
    DIDAction,
    RemoveWallet,
    action_from_request,
    apply_action,
    apply_actions,
)
from neuramark_identity.did.document import (
    DID_METHOD,
    DIDDocument,
    ProofReference,
    format_did,
    generate_did,
    is_valid_did,
    normalize_wallet,
    parse_did,
)
from neuramark_identity.did.manager import DIDDocumentManager, MutationResult
from neuramark_identity.did.signing import sign_document, verify_document_signature

__all__ = [
    "ACTION_NAMES",
    "AddProof",
    "AddWallet",
    "DIDAction",
    "DIDDocument",
    "DIDDocumentManager",
    "DID_METHOD",
    "MutationResult",
    "ProofReference",
    "RemoveWallet",
    "action_from_request",
    "apply_action",
    "apply_actions",
    "format_did",
    "generate_did",
    "is_valid_did",
    "normalize_wallet",
    "parse_did",
    "sign_document",
    "verify_document_signature",
]
