"""Issue-for-proof orchestration.

::

    authorize(proof, account) -> anchor_for(proof) -> issue -> sign -> export
        -> pin exported text -> record {vc_id, vc_cid} on the proof

Recording the credential on the proof is a secondary write: when it fails
the credential is still returned and the failure is logged.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from neuramark_identity.audit import IdentityAuditLogger
from neuramark_identity.credentials.anchors import AnchorSource
from neuramark_identity.credentials.issuer import CredentialIssuer
from neuramark_identity.credentials.models import VerifiableCredential
from neuramark_identity.did.document import generate_did
from neuramark_identity.errors import NotFoundError, UpstreamUnavailableError
from neuramark_identity.ownership.resolver import OwnershipResolver
from neuramark_identity.retry import RetryPolicy, call_with_retry
from neuramark_identity.stores.blob import BlobStore
from neuramark_identity.stores.proofs import ProofStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IssuedCredential:
    credential: VerifiableCredential
    text: str
    cid: str

    @property
    def credential_id(self) -> str:
        return self.credential.id


class CredentialService:
    """Issues, signs and pins the credential for one registered proof.

    Parameters
    ----------
    issuer:
        Builds and signs credentials with the platform key.
    anchors:
        Blockchain registry seam supplying anchor facts.
    blob_store:
        Receives the exported credential text.
    proof_store:
        Proofs to issue for; records the issued credential.
    resolver:
        Ownership check run before issuing.
    retry_policy:
        Backoff for transient registry and store failures.
    audit_logger:
        Optional audit trail.
    """

    def __init__(
        self,
        issuer: CredentialIssuer,
        anchors: AnchorSource,
        blob_store: BlobStore,
        proof_store: ProofStore,
        resolver: OwnershipResolver,
        retry_policy: RetryPolicy | None = None,
        audit_logger: IdentityAuditLogger | None = None,
    ) -> None:
        self._issuer = issuer
        self._anchors = anchors
        self._blobs = blob_store
        self._proofs = proof_store
        self._resolver = resolver
        self._retry = retry_policy or RetryPolicy()
        self._audit = audit_logger

    def issue_for_proof(
        self, proof_id: str, account_id: str, account_wallets: Iterable[str] = ()
    ) -> IssuedCredential:
        """Issue the signed credential for *proof_id* on behalf of *account_id*.

        Raises
        ------
        NotFoundError
            If the proof does not exist.
        UnauthorizedError
            If the account does not own the proof.
        UpstreamUnavailableError
            If the registry or blob store stays unreachable after retries.
        """
        proof = self._resolver.authorize(proof_id, account_id, account_wallets)

        anchor = call_with_retry(
            lambda: self._anchors.anchor_for(proof),
            policy=self._retry,
            description=f"anchor lookup for proof {proof_id}",
        )
        credential = self._issuer.sign(
            self._issuer.issue(proof, generate_did(account_id), anchor)
        )
        text = self._issuer.export(credential)

        cid = call_with_retry(
            lambda: self._blobs.put(text.encode("utf-8"), f"neuramark-vc-{proof_id[:16]}.json"),
            policy=self._retry,
            description=f"credential pin for proof {proof_id}",
        )

        try:
            call_with_retry(
                lambda: self._proofs.attach_credential(proof_id, credential.id, cid),
                policy=self._retry,
                description=f"credential record for proof {proof_id}",
            )
        except (UpstreamUnavailableError, NotFoundError) as exc:
            logger.warning(
                "Issued %s for proof %s but could not record it: %s",
                credential.id,
                proof_id,
                exc,
            )

        logger.info("Issued credential %s for proof %s (cid=%s)", credential.id, proof_id, cid)
        if self._audit is not None:
            self._audit.log_credential_issued(account_id, proof_id, credential.id, cid)
        return IssuedCredential(credential=credential, text=text, cid=cid)


__all__ = ["CredentialService", "IssuedCredential"]
