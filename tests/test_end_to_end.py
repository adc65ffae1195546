"""End-to-end: create a DID, attach a proof, issue and verify its credential."""
from __future__ import annotations

import datetime

from neuramark_identity import (
    AddProof,
    Anchor,
    CredentialIssuer,
    CredentialService,
    CredentialVerifier,
    DIDDocumentManager,
    DIDProofSync,
    InMemoryBlobStore,
    InMemoryProofStore,
    InMemoryRecordStore,
    OwnershipResolver,
    PlatformKeyProvider,
    Proof,
    ProofReference,
    ProofRegistrar,
    VerificationFailure,
    generate_did,
)
from neuramark_identity.credentials.anchors import ConfiguredAnchorSource


def _proof() -> Proof:
    return Proof(
        proof_id="0xabc",
        prompt_hash="0xprompt",
        output_hash="0xoutput",
        prompt_cid="QmPrompt",
        output_cid="Qm1",
        model_info="gpt-4",
        output_type="text",
        tx_hash="0xdef",
        wallet="0xwallet",
        user_id="u1",
        created_at=datetime.datetime(2024, 1, 1, tzinfo=datetime.timezone.utc),
    )


def test_did_lifecycle_and_credential_round() -> None:
    blobs = InMemoryBlobStore()
    manager = DIDDocumentManager(blobs, InMemoryRecordStore())

    document = manager.create("u1", "a@x.com", "Ann", [])
    assert document.id == "did:neuramark:u1"
    assert document.verified_proofs == ()

    updated = manager.apply(
        document,
        AddProof(
            ProofReference(
                proof_id="0xabc",
                ipfs_cid="Qm1",
                model="gpt-4",
                timestamp="2024-01-01T00:00:00Z",
                tx_hash="0xdef",
            )
        ),
    )
    assert len(updated.verified_proofs) == 1
    assert manager.persist(document) != manager.persist(updated)

    key = PlatformKeyProvider.generate()
    issuer = CredentialIssuer(key)
    anchor = Anchor(
        network="Sepolia",
        contract_address="0xRegistry",
        transaction_hash="0xdef",
        timestamp="2024-01-01T00:00:00Z",
    )
    signed = issuer.sign(issuer.issue(_proof(), "did:neuramark:u1", anchor))
    verifier = CredentialVerifier.for_key_provider(key)
    assert verifier.verify(signed).verified is True

    data = signed.to_dict()
    data["credentialSubject"]["modelInfo"] = "gpt-5"
    tampered = verifier.verify(data)
    assert tampered.verified is False
    assert tampered.error is VerificationFailure.BAD_SIGNATURE


def test_registration_to_verified_credential() -> None:
    blobs = InMemoryBlobStore()
    proofs = InMemoryProofStore()
    manager = DIDDocumentManager(blobs, InMemoryRecordStore())
    manager.create("u1", "a@x.com", "Ann", ["0xWallet"])

    proof = _proof()
    proof.user_id = None
    with DIDProofSync(manager) as sync:
        receipt = ProofRegistrar(proofs, manager, sync).register(proof)
        assert receipt.owner == "u1"
        outcome = receipt.sync.result() if receipt.sync is not None else None
    assert outcome is not None and outcome.succeeded
    assert manager.get_document("u1").proof_ids() == ["0xabc"]

    key = PlatformKeyProvider.generate()
    service = CredentialService(
        CredentialIssuer(key),
        ConfiguredAnchorSource("0xRegistry"),
        blobs,
        proofs,
        OwnershipResolver(proofs),
    )
    issued = service.issue_for_proof("0xabc", "u1")
    assert issued.credential.credential_subject.id == generate_did("u1")
    assert proofs.get("0xabc").vc_cid == issued.cid

    report = CredentialVerifier.for_key_provider(key).check(blobs.get(issued.cid))
    assert report.verified
    assert report.summary.model_info == "gpt-4"
    assert report.status.label == "Valid"
