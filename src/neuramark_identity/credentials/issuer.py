"""CredentialIssuer — build, sign and export AI content proof credentials.

Signing
-------
1. Take the credential's wire form without ``proof``.
2. Canonicalize it (:func:`~neuramark_identity.canonical.canonicalize`).
3. Hash the bytes with SHA-256.
4. Sign the digest with the platform Ed25519 key.
5. Attach ``proof`` with the multibase-encoded signature as ``proofValue``.

Re-issuing a credential for the same proof yields the same credential id
(a name-based UUID of the proof id).
"""
from __future__ import annotations

import json
import logging
import uuid
from collections.abc import Callable
from datetime import datetime

from neuramark_identity.canonical import digest, multibase_encode
from neuramark_identity.credentials.anchors import Anchor
from neuramark_identity.credentials.keys import PlatformKeyProvider
from neuramark_identity.credentials.models import (
    CREDENTIAL_TYPE,
    SUBJECT_TYPE,
    BlockchainProof,
    CredentialProof,
    CredentialSubject,
    IpfsMetadata,
    Issuer,
    VerifiableCredential,
    default_context,
)
from neuramark_identity.did.document import format_timestamp, utc_now
from neuramark_identity.errors import MalformedInputError
from neuramark_identity.stores.proofs import Proof

logger = logging.getLogger(__name__)

PROOF_TYPE: str = "Ed25519Signature2020"
PROOF_PURPOSE: str = "assertionMethod"
DEFAULT_ISSUER_NAME: str = "NeuraMark - AI Content Proof Platform"

CREDENTIAL_NAMESPACE = uuid.uuid5(uuid.NAMESPACE_URL, "https://neuramark.ai/credentials")


def credential_id_for(proof_id: str) -> str:
    """Return the stable credential id for *proof_id*."""
    return f"urn:uuid:{uuid.uuid5(CREDENTIAL_NAMESPACE, proof_id)}"


class CredentialIssuer:
    """Issues and signs credentials with the platform key.

    Parameters
    ----------
    key_provider:
        The platform signing key, loaded once at startup.
    issuer_name:
        Human-readable issuer name embedded in every credential.
    clock:
        Returns the current UTC time; used for ``proof.created``.

    Example
    -------
    ::

        issuer = CredentialIssuer(PlatformKeyProvider.generate())
        unsigned = issuer.issue(proof, "did:neuramark:u1", anchor)
        signed = issuer.sign(unsigned)
        text = issuer.export(signed)
    """

    def __init__(
        self,
        key_provider: PlatformKeyProvider,
        issuer_name: str = DEFAULT_ISSUER_NAME,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._key = key_provider
        self._issuer_name = issuer_name
        self._clock = clock

    @property
    def issuer_did(self) -> str:
        return self._key.controller

    # ------------------------------------------------------------------
    # Issuance
    # ------------------------------------------------------------------

    def issue(self, proof: Proof, subject_did: str, anchor: Anchor) -> VerifiableCredential:
        """Build the unsigned credential for *proof*, owned by *subject_did*.

        Raises
        ------
        MalformedInputError
            If *subject_did* is empty.
        """
        if not subject_did:
            raise MalformedInputError("subject DID is required.")

        subject = CredentialSubject(
            id=subject_did,
            type=SUBJECT_TYPE,
            prompt_hash=proof.prompt_hash,
            output_hash=proof.output_hash,
            prompt_cid=proof.prompt_cid,
            output_cid=proof.output_cid,
            model_info=proof.model_info,
            output_type=proof.output_type,
            blockchain_proof=BlockchainProof(
                network=anchor.network,
                contract_address=anchor.contract_address,
                transaction_hash=anchor.transaction_hash,
                proof_id=proof.proof_id,
                timestamp=anchor.timestamp,
            ),
            ipfs_metadata=IpfsMetadata(
                prompt_cid=proof.prompt_cid,
                output_cid=proof.output_cid,
            ),
        )
        return VerifiableCredential(
            context=default_context(),
            id=credential_id_for(proof.proof_id),
            type=["VerifiableCredential", CREDENTIAL_TYPE],
            issuer=Issuer(id=self.issuer_did, name=self._issuer_name),
            issuance_date=anchor.timestamp,
            credential_subject=subject,
        )

    # ------------------------------------------------------------------
    # Signing
    # ------------------------------------------------------------------

    def sign(self, credential: VerifiableCredential) -> VerifiableCredential:
        """Return *credential* with a platform signature attached.

        Raises
        ------
        MalformedInputError
            If *credential* is already signed.
        """
        if credential.is_signed:
            raise MalformedInputError(f"Credential {credential.id!r} is already signed.")

        payload_digest = digest(credential.signing_payload())
        signature = self._key.sign(payload_digest)
        logger.debug("Signed %s (digest=%s)", credential.id, payload_digest.hex())

        proof = CredentialProof(
            type=PROOF_TYPE,
            created=format_timestamp(self._clock()),
            verification_method=self._key.key_id,
            proof_purpose=PROOF_PURPOSE,
            proof_value=multibase_encode(signature),
        )
        return credential.model_copy(update={"proof": proof})

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    @staticmethod
    def export(credential: VerifiableCredential) -> str:
        """Serialize to canonical, human-readable JSON text.

        Keys are sorted and indentation is fixed, so parsing the text and
        exporting again reproduces it exactly.
        """
        return json.dumps(credential.to_dict(), sort_keys=True, indent=2, ensure_ascii=False)


__all__ = [
    "CREDENTIAL_NAMESPACE",
    "CredentialIssuer",
    "DEFAULT_ISSUER_NAME",
    "PROOF_PURPOSE",
    "PROOF_TYPE",
    "credential_id_for",
]
