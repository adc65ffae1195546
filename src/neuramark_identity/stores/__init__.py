"""Storage seams consumed by neuramark-identity.

blob
    Content-addressed blob store (``put``/``get`` by content identifier).
records
    Keyed DID record store with conditional (versioned) updates.
proofs
    Registered proofs, read by ownership resolution and credential issuance.
"""
from __future__ import annotations

from neuramark_identity.stores.blob import BlobStore, FileBlobStore, InMemoryBlobStore
from neuramark_identity.stores.proofs import InMemoryProofStore, Proof, ProofStore
from neuramark_identity.stores.records import DIDRecord, InMemoryRecordStore, RecordStore

__all__ = [
    "BlobStore",
    "DIDRecord",
    "FileBlobStore",
    "InMemoryBlobStore",
    "InMemoryProofStore",
    "InMemoryRecordStore",
    "Proof",
    "ProofStore",
    "RecordStore",
]
