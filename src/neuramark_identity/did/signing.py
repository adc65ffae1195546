"""Detached signatures over DID documents.

The signature covers the canonical bytes of the document without its
``signature`` field and is stored back into that field as multibase
base58btc. It is an optional, self-describing integrity seal; the
credential protocol does not depend on it.
"""
from __future__ import annotations

from neuramark_identity.canonical import canonicalize, multibase_decode, multibase_encode
from neuramark_identity.credentials.keys import PlatformKeyProvider, TrustedKey
from neuramark_identity.did.document import DIDDocument


def sign_document(document: DIDDocument, key: PlatformKeyProvider) -> DIDDocument:
    """Return a copy of *document* carrying a detached signature."""
    payload = canonicalize(document.to_dict(include_signature=False))
    signature = multibase_encode(key.sign(payload))
    return document.model_copy(update={"signature": signature})


def verify_document_signature(document: DIDDocument, key: TrustedKey) -> bool:
    """Return ``True`` if *document* carries a valid signature from *key*.

    Unsigned documents and undecodable signatures verify as ``False``.
    """
    if not document.signature:
        return False
    try:
        signature = multibase_decode(document.signature)
    except ValueError:
        return False
    if len(signature) != 64:
        return False
    payload = canonicalize(document.to_dict(include_signature=False))
    return key.verify(signature, payload)


__all__ = ["sign_document", "verify_document_signature"]
