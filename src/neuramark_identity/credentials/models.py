"""Verifiable Credential wire model for AI content proofs.

Implements the W3C Verifiable Credentials Data Model v1.1 shape used by
NeuraMark (https://www.w3.org/TR/vc-data-model/)::

    {
      "@context": [...],
      "id": "urn:uuid:...",
      "type": ["VerifiableCredential", "AIContentProofCredential"],
      "issuer": {"id": "did:neuramark:platform", "name": "..."},
      "issuanceDate": "...",
      "credentialSubject": {
        "id": "did:neuramark:<accountId>", "type": "AIContentProof",
        "promptHash", "outputHash", "promptCID", "outputCID",
        "modelInfo", "outputType",
        "blockchainProof": {network, contractAddress, transactionHash, proofId, timestamp},
        "ipfsMetadata": {promptCID, outputCID}
      },
      "proof": {type, created, verificationMethod, proofPurpose, proofValue}   # once signed
    }

Models accept and keep unknown properties (``extra="allow"``) so that a
credential carrying extra fields still serializes back to exactly the
bytes that were signed.
"""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

VC_BASE_CONTEXT: str = "https://www.w3.org/2018/credentials/v1"
ED25519_2020_CONTEXT: str = "https://w3id.org/security/suites/ed25519-2020/v1"
CREDENTIAL_TYPE: str = "AIContentProofCredential"
SUBJECT_TYPE: str = "AIContentProof"

_TERMS: str = "https://neuramark.ai/credentials#"

NEURAMARK_VC_CONTEXT: dict[str, Any] = {
    "@version": 1.1,
    "@protected": True,
    "AIContentProofCredential": f"{_TERMS}AIContentProofCredential",
    "AIContentProof": f"{_TERMS}AIContentProof",
    "promptHash": f"{_TERMS}promptHash",
    "outputHash": f"{_TERMS}outputHash",
    "promptCID": f"{_TERMS}promptCID",
    "outputCID": f"{_TERMS}outputCID",
    "modelInfo": f"{_TERMS}modelInfo",
    "outputType": f"{_TERMS}outputType",
    "name": "https://schema.org/name",
    "blockchainProof": {
        "@id": f"{_TERMS}blockchainProof",
        "@context": {
            "@version": 1.1,
            "@protected": True,
            "network": f"{_TERMS}network",
            "contractAddress": f"{_TERMS}contractAddress",
            "transactionHash": f"{_TERMS}transactionHash",
            "proofId": f"{_TERMS}proofId",
            "timestamp": {
                "@id": f"{_TERMS}timestamp",
                "@type": "http://www.w3.org/2001/XMLSchema#dateTime",
            },
        },
    },
    "ipfsMetadata": {
        "@id": f"{_TERMS}ipfsMetadata",
        "@context": {
            "@version": 1.1,
            "@protected": True,
            "promptCID": f"{_TERMS}promptCID",
            "outputCID": f"{_TERMS}outputCID",
        },
    },
}


def default_context() -> list[str | dict[str, Any]]:
    return [VC_BASE_CONTEXT, ED25519_2020_CONTEXT, NEURAMARK_VC_CONTEXT]


class _WireModel(BaseModel):
    model_config = ConfigDict(
        populate_by_name=True,
        extra="allow",
        frozen=True,
        protected_namespaces=(),
    )


class Issuer(_WireModel):
    id: str
    name: str


class BlockchainProof(_WireModel):
    network: str
    contract_address: str = Field(alias="contractAddress")
    transaction_hash: str = Field(alias="transactionHash")
    proof_id: str = Field(alias="proofId")
    timestamp: str


class IpfsMetadata(_WireModel):
    prompt_cid: str = Field(alias="promptCID")
    output_cid: str = Field(alias="outputCID")


class CredentialSubject(_WireModel):
    """The AI content proof being attested, owned by the subject DID in ``id``."""

    id: str
    type: str = SUBJECT_TYPE
    prompt_hash: str = Field(alias="promptHash")
    output_hash: str = Field(alias="outputHash")
    prompt_cid: str = Field(alias="promptCID")
    output_cid: str = Field(alias="outputCID")
    model_info: str = Field(alias="modelInfo")
    output_type: str = Field(alias="outputType")
    blockchain_proof: BlockchainProof = Field(alias="blockchainProof")
    ipfs_metadata: IpfsMetadata = Field(alias="ipfsMetadata")

    @field_validator("id")
    @classmethod
    def validate_subject_id(cls, value: str) -> str:
        if not value:
            raise ValueError("credentialSubject.id must not be empty.")
        return value


class CredentialProof(_WireModel):
    type: str
    created: str
    verification_method: str = Field(alias="verificationMethod")
    proof_purpose: str = Field(alias="proofPurpose")
    proof_value: str = Field(alias="proofValue")


class VerifiableCredential(_WireModel):
    """A W3C Verifiable Credential attesting one AI content proof.

    Instances are immutable. Signing returns a new instance with
    :attr:`proof` set; any later change to the other fields invalidates
    that proof.
    """

    context: list[str | dict[str, Any]] = Field(default_factory=default_context, alias="@context")
    id: str
    type: list[str] = Field(default_factory=lambda: ["VerifiableCredential", CREDENTIAL_TYPE])
    issuer: Issuer
    issuance_date: str = Field(alias="issuanceDate")
    expiration_date: str | None = Field(default=None, alias="expirationDate")
    credential_subject: CredentialSubject = Field(alias="credentialSubject")
    proof: CredentialProof | None = None

    @field_validator("type")
    @classmethod
    def validate_type_includes_base(cls, value: list[str]) -> list[str]:
        if "VerifiableCredential" not in value:
            raise ValueError(
                "type list must include 'VerifiableCredential' as required by "
                "the W3C Verifiable Credentials Data Model."
            )
        return value

    @field_validator("context")
    @classmethod
    def validate_context_not_empty(cls, value: list[Any]) -> list[Any]:
        if not value:
            raise ValueError("@context must contain at least one entry.")
        return value

    @property
    def is_signed(self) -> bool:
        return self.proof is not None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the camelCase wire form (``proof`` only when signed)."""
        return self.model_dump(by_alias=True, exclude_none=True)

    def signing_payload(self) -> dict[str, Any]:
        """The wire form without ``proof``: the exact input to signing."""
        data = self.to_dict()
        data.pop("proof", None)
        return data


__all__ = [
    "BlockchainProof",
    "CREDENTIAL_TYPE",
    "CredentialProof",
    "CredentialSubject",
    "ED25519_2020_CONTEXT",
    "IpfsMetadata",
    "Issuer",
    "NEURAMARK_VC_CONTEXT",
    "SUBJECT_TYPE",
    "VC_BASE_CONTEXT",
    "VerifiableCredential",
    "default_context",
]
