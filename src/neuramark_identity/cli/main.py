"""CLI entry point for neuramark-identity.

Invoked as::

    neuramark-identity [OPTIONS] COMMAND [ARGS]...

or, during development::

    python -m neuramark_identity.cli.main

Commands
--------
keys generate    Create the platform signing key
did create       Create the DID document for an account
did show         Show an account's DID document
did resolve      Find a DID record by DID string or wallet address
did update       Apply addProof / addWallet / removeWallet to a DID document
proof register   Register a proof and append it to its owner's DID
vc issue         Issue a signed credential for a proof
vc verify        Verify a credential file

State lives in ``--data-dir`` (default ``$NEURAMARK_DATA_DIR`` or
``.neuramark``): pinned blobs under ``blobs/``, records and proofs as
newline-delimited JSON, and the platform key as PEM.
"""
from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import click
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from neuramark_identity.audit import IdentityAuditLogger
from neuramark_identity.config import Settings, load_settings
from neuramark_identity.credentials.anchors import ConfiguredAnchorSource
from neuramark_identity.credentials.issuer import CredentialIssuer
from neuramark_identity.credentials.keys import PlatformKeyProvider
from neuramark_identity.credentials.service import CredentialService
from neuramark_identity.credentials.verifier import CredentialVerifier
from neuramark_identity.did.actions import ACTION_NAMES, action_from_request
from neuramark_identity.did.document import DIDDocument, format_did
from neuramark_identity.did.manager import DIDDocumentManager
from neuramark_identity.did.signing import sign_document
from neuramark_identity.errors import NeuraMarkIdentityError
from neuramark_identity.ownership.resolver import OwnershipResolver
from neuramark_identity.registration import DIDProofSync, ProofRegistrar
from neuramark_identity.stores.blob import FileBlobStore
from neuramark_identity.stores.proofs import InMemoryProofStore, Proof
from neuramark_identity.stores.records import InMemoryRecordStore

console = Console()

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------
# Root group
# ------------------------------------------------------------------


@click.group()
@click.version_option(package_name="neuramark-identity")
@click.option(
    "--data-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory holding blobs, records, proofs and the platform key.",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Logging level (overrides NEURAMARK_LOG_LEVEL).",
)
@click.pass_context
def cli(ctx: click.Context, data_dir: Path | None, log_level: str | None) -> None:
    """NeuraMark DIDs and Verifiable Credentials for AI content proofs"""
    overrides: dict[str, object] = {}
    if data_dir is not None:
        overrides["data_dir"] = data_dir
    if log_level is not None:
        overrides["log_level"] = log_level
    try:
        settings = load_settings(**overrides)
    except ValidationError as exc:
        console.print(f"[red]Error:[/red] invalid configuration: {exc}")
        sys.exit(1)

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = settings


@cli.command(name="version")
def version_command() -> None:
    """Show detailed version information."""
    from neuramark_identity import __version__

    console.print(f"[bold]neuramark-identity[/bold] v{__version__}")


# ------------------------------------------------------------------
# keys
# ------------------------------------------------------------------


@cli.group(name="keys")
def keys_group() -> None:
    """Manage the platform signing key."""


@keys_group.command(name="generate")
@click.option("--force", is_flag=True, default=False, help="Overwrite an existing key file.")
@click.pass_obj
def keys_generate_command(settings: Settings, force: bool) -> None:
    """Generate a new Ed25519 platform signing key."""
    path = settings.resolved_key_path
    if path.exists() and not force:
        console.print(f"[red]Error:[/red] key file {path} already exists (use --force).")
        sys.exit(1)

    provider = PlatformKeyProvider.generate()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(provider.private_pem())
    console.print(f"[green]Key written to[/green] {path}")
    console.print(f"  Key ID:     {provider.key_id}")
    console.print(f"  Public key: {provider.trusted_key().public_key_multibase}")


# ------------------------------------------------------------------
# did
# ------------------------------------------------------------------


@cli.group(name="did")
def did_group() -> None:
    """Manage account DID documents."""


@did_group.command(name="create")
@click.argument("account_id")
@click.option("--email", "-e", required=True, help="Account email address.")
@click.option("--name", "-n", default=None, help="Display name (default: Anonymous).")
@click.option("--wallet", "-w", multiple=True, help="Wallet address to link (repeatable).")
@click.pass_obj
def did_create_command(
    settings: Settings,
    account_id: str,
    email: str,
    name: str | None,
    wallet: tuple[str, ...],
) -> None:
    """Create the DID document for ACCOUNT_ID."""
    workspace = _Workspace(settings)
    try:
        document = workspace.manager.create(account_id, email, name, wallet)
        record = workspace.manager.get_record(account_id)
    except NeuraMarkIdentityError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        sys.exit(1)
    workspace.save()

    console.print(f"[green]Created[/green] [bold]{document.id}[/bold]")
    console.print(f"  CID:     {record.current_cid}")
    console.print(f"  Name:    {document.name}")
    console.print(f"  Wallets: {', '.join(document.wallets) or '(none)'}")


@did_group.command(name="show")
@click.argument("account_id")
@click.option("--json", "as_json", is_flag=True, default=False, help="Print the document as JSON.")
@click.option(
    "--signed",
    is_flag=True,
    default=False,
    help="Attach a detached signature made with the platform key (implies --json).",
)
@click.pass_obj
def did_show_command(settings: Settings, account_id: str, as_json: bool, signed: bool) -> None:
    """Show the DID document for ACCOUNT_ID."""
    workspace = _Workspace(settings)
    try:
        document = workspace.manager.get_document(account_id)
    except NeuraMarkIdentityError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        sys.exit(1)

    if signed:
        document = sign_document(document, _load_key(settings))
        as_json = True
    if as_json:
        click.echo(json.dumps(document.to_dict(), indent=2, ensure_ascii=False))
        return
    _print_document(document)


@did_group.command(name="resolve")
@click.argument("identifier")
@click.pass_obj
def did_resolve_command(settings: Settings, identifier: str) -> None:
    """Resolve IDENTIFIER (a DID or a wallet address) to its DID record."""
    workspace = _Workspace(settings)
    try:
        if identifier.startswith("did:"):
            record = workspace.manager.resolve_did(identifier)
        else:
            record = workspace.manager.resolve_wallet(identifier)
    except NeuraMarkIdentityError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        sys.exit(1)

    console.print(f"[bold]{record.did_id}[/bold]")
    console.print(f"  Account: {record.user_id}")
    console.print(f"  CID:     {record.current_cid}")
    console.print(f"  Proofs:  {record.proof_count}")
    console.print(f"  Version: {record.version}")
    console.print(f"  Updated: {record.updated_at.isoformat()}")


@did_group.command(name="update")
@click.argument("account_id")
@click.argument("action", type=click.Choice(list(ACTION_NAMES)))
@click.option("--wallet", "-w", default=None, help="Wallet address (wallet actions).")
@click.option("--proof-id", default=None, help="Proof id (addProof).")
@click.option("--ipfs-cid", default="", help="Content identifier of the proof output (addProof).")
@click.option("--model", default="", help="Model name (addProof).")
@click.option("--timestamp", default="", help="ISO 8601 proof timestamp (addProof).")
@click.option("--tx-hash", default="", help="Registration transaction hash (addProof).")
@click.pass_obj
def did_update_command(
    settings: Settings,
    account_id: str,
    action: str,
    wallet: str | None,
    proof_id: str | None,
    ipfs_cid: str,
    model: str,
    timestamp: str,
    tx_hash: str,
) -> None:
    """Apply ACTION to the DID document for ACCOUNT_ID."""
    if action == "addProof":
        data: dict[str, object] = {
            "proofId": proof_id,
            "ipfsCID": ipfs_cid,
            "model": model,
            "timestamp": timestamp,
            "txHash": tx_hash,
        }
    else:
        data = {"walletAddress": wallet}

    workspace = _Workspace(settings)
    try:
        result = workspace.manager.mutate(account_id, action_from_request(action, data))
    except NeuraMarkIdentityError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        sys.exit(1)
    workspace.save()

    console.print(f"[green]Updated[/green] [bold]{result.document.id}[/bold] ({action})")
    console.print(f"  CID:     {result.cid}")
    console.print(f"  Version: {result.record.version}")
    console.print(f"  Proofs:  {len(result.document.verified_proofs)}")
    console.print(f"  Wallets: {', '.join(result.document.wallets) or '(none)'}")


# ------------------------------------------------------------------
# proof
# ------------------------------------------------------------------


@cli.group(name="proof")
def proof_group() -> None:
    """Register AI content proofs."""


@proof_group.command(name="register")
@click.option("--proof-id", required=True, help="On-chain proof identifier.")
@click.option("--prompt-hash", required=True)
@click.option("--output-hash", required=True)
@click.option("--prompt-cid", required=True)
@click.option("--output-cid", required=True)
@click.option("--model", required=True, help="Model that produced the output.")
@click.option(
    "--output-type", type=click.Choice(["text", "image"]), default="text", show_default=True
)
@click.option("--tx-hash", required=True, help="Registration transaction hash.")
@click.option("--wallet", "-w", required=True, help="Wallet that registered the proof.")
@click.option("--user-id", default=None, help="Owning account, when known.")
@click.pass_obj
def proof_register_command(
    settings: Settings,
    proof_id: str,
    prompt_hash: str,
    output_hash: str,
    prompt_cid: str,
    output_cid: str,
    model: str,
    output_type: str,
    tx_hash: str,
    wallet: str,
    user_id: str | None,
) -> None:
    """Register a proof and append it to its owner's DID document."""
    proof = Proof(
        proof_id=proof_id,
        prompt_hash=prompt_hash,
        output_hash=output_hash,
        prompt_cid=prompt_cid,
        output_cid=output_cid,
        model_info=model,
        output_type=output_type,
        tx_hash=tx_hash,
        wallet=wallet,
        user_id=user_id,
    )
    workspace = _Workspace(settings)
    with DIDProofSync(
        workspace.manager,
        retry_policy=workspace.retry_policy,
        max_workers=1,
        audit_logger=workspace.audit,
    ) as sync:
        registrar = ProofRegistrar(
            workspace.proofs, workspace.manager, sync, retry_policy=workspace.retry_policy
        )
        try:
            receipt = registrar.register(proof)
        except NeuraMarkIdentityError as exc:
            console.print(f"[red]Error:[/red] {exc}")
            sys.exit(1)
        outcome = receipt.sync.result() if receipt.sync is not None else None
    workspace.save()

    console.print(f"[green]Registered[/green] proof [bold]{proof_id}[/bold]")
    console.print(f"  Owner: {receipt.owner or '(no DID for this wallet)'}")
    if outcome is None:
        return
    if outcome.succeeded:
        console.print(f"  DID updated: {outcome.cid}")
    else:
        console.print(f"  [yellow]DID update failed:[/yellow] {outcome.error}")


# ------------------------------------------------------------------
# vc
# ------------------------------------------------------------------


@cli.group(name="vc")
def vc_group() -> None:
    """Issue and verify Verifiable Credentials."""


@vc_group.command(name="issue")
@click.argument("proof_id")
@click.option("--account", "-a", "account_id", required=True, help="Account requesting the credential.")
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write the credential JSON to this file instead of stdout.",
)
@click.pass_obj
def vc_issue_command(
    settings: Settings, proof_id: str, account_id: str, output: Path | None
) -> None:
    """Issue a signed credential for PROOF_ID owned by ACCOUNT."""
    workspace = _Workspace(settings)
    key = _load_key(settings)
    try:
        anchors = ConfiguredAnchorSource(settings.chain.contract_address, settings.chain.network)
        wallets: tuple[str, ...] = ()
        if workspace.manager.exists(account_id):
            wallets = workspace.manager.get_document(account_id).wallets
        service = CredentialService(
            CredentialIssuer(key, issuer_name=settings.issuer_name),
            anchors,
            workspace.blobs,
            workspace.proofs,
            OwnershipResolver(workspace.proofs, workspace.retry_policy, workspace.audit),
            retry_policy=workspace.retry_policy,
            audit_logger=workspace.audit,
        )
        issued = service.issue_for_proof(proof_id, account_id, wallets)
    except NeuraMarkIdentityError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        sys.exit(1)
    workspace.save()

    if output is not None:
        output.write_text(issued.text, encoding="utf-8")
        console.print(f"[green]Credential written to[/green] {output}")
    else:
        click.echo(issued.text)
    console.print(f"\n  Credential ID: [bold]{issued.credential_id}[/bold]")
    console.print(f"  CID:           {issued.cid}")


@vc_group.command(name="verify")
@click.argument("credential_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--json", "as_json", is_flag=True, default=False, help="Print the report as JSON.")
@click.pass_obj
def vc_verify_command(settings: Settings, credential_file: Path, as_json: bool) -> None:
    """Verify the credential in CREDENTIAL_FILE against the platform key."""
    audit = _audit_logger(settings)
    verifier = CredentialVerifier.for_key_provider(_load_key(settings), audit_logger=audit)
    try:
        report = verifier.check(credential_file.read_text(encoding="utf-8"))
    except NeuraMarkIdentityError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2, ensure_ascii=False))
    else:
        summary = report.summary
        table = Table(title="Credential", show_header=False)
        table.add_column("Field", style="cyan")
        table.add_column("Value")
        table.add_row("Owner", format_did(summary.owner))
        table.add_row("Model", summary.model_info)
        table.add_row("Timestamp", summary.timestamp)
        table.add_row("Proof ID", summary.proof_id)
        table.add_row("Transaction", summary.tx_hash)
        table.add_row("Network", summary.network)
        table.add_row("Issuer", summary.issuer)
        table.add_row("Credential ID", summary.credential_id)
        console.print(table)

        if report.verified:
            console.print(f"\n  [green]{report.status.label}[/green]")
        else:
            reason = report.result.error.value if report.result.error else "unknown"
            console.print(f"\n  [red]{report.status.label}[/red] ({reason})")

    if not report.verified:
        sys.exit(1)


# ------------------------------------------------------------------
# Helpers: file-backed persistence for CLI use
# ------------------------------------------------------------------


def _audit_logger(settings: Settings) -> IdentityAuditLogger | None:
    if settings.audit_log_path is None:
        return None
    return IdentityAuditLogger(settings.audit_log_path)


def _load_key(settings: Settings) -> PlatformKeyProvider:
    """Load the platform key, exiting when it is missing or unreadable."""
    path = settings.resolved_key_path
    if not path.exists():
        console.print(
            f"[red]Error:[/red] no platform key at {path}. Run 'neuramark-identity keys generate'."
        )
        sys.exit(1)
    try:
        return PlatformKeyProvider.from_file(path)
    except ValueError as exc:
        console.print(f"[red]Error:[/red] could not load platform key {path}: {exc}")
        sys.exit(1)


def _load_ndjson(store: InMemoryRecordStore | InMemoryProofStore, path: Path) -> None:
    if not path.exists():
        return
    try:
        if isinstance(store, InMemoryRecordStore):
            store.import_records(path)
        else:
            store.import_proofs(path)
    except ValueError as exc:
        console.print(f"[red]Error:[/red] could not load {path}: {exc}")
        sys.exit(1)


class _Workspace:
    """Stores and services rooted at ``settings.data_dir``."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.retry_policy = settings.retry.to_policy()
        self.audit = _audit_logger(settings)
        self.blobs = FileBlobStore(settings.blob_dir)
        self.records = InMemoryRecordStore()
        self.proofs = InMemoryProofStore()
        _load_ndjson(self.records, settings.records_path)
        _load_ndjson(self.proofs, settings.proofs_path)
        self.manager = DIDDocumentManager(
            self.blobs,
            self.records,
            retry_policy=self.retry_policy,
            max_commit_attempts=settings.commit_attempts,
            audit_logger=self.audit,
        )

    def save(self) -> None:
        self.records.export_records(self.settings.records_path)
        self.proofs.export_proofs(self.settings.proofs_path)
        logger.debug("Saved workspace under %s", self.settings.data_dir)


def _print_document(document: DIDDocument) -> None:
    console.print(f"[bold]{document.id}[/bold]")
    console.print(f"  Name:    {document.name}")
    console.print(f"  Email:   {document.email}")
    console.print(f"  Wallets: {', '.join(document.wallets) or '(none)'}")
    console.print(f"  Created: {document.created_at}")
    console.print(f"  Updated: {document.updated_at}")

    if not document.verified_proofs:
        console.print("  [yellow]No verified proofs.[/yellow]")
        return

    table = Table(title="Verified Proofs", show_header=True)
    table.add_column("Proof ID", style="cyan")
    table.add_column("Model")
    table.add_column("Timestamp")
    table.add_column("Transaction")
    table.add_column("CID")
    for ref in document.verified_proofs:
        table.add_row(ref.proof_id, ref.model, ref.timestamp, ref.tx_hash, ref.ipfs_cid)
    console.print(table)


if __name__ == "__main__":
    cli()
