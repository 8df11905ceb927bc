"""CLI application for Neural Vault using Rich and Typer."""

import asyncio
import base64
import logging
import mimetypes
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from nvault.core.config import setup_logging, validate_embedding_environment
from nvault.core.errors import (
    AuthenticationFailedError,
    BiometricError,
    CorruptDataError,
    InvalidMnemonicError,
    NeuralVaultError,
    UnsupportedError,
)
from nvault.core.factory import build_service
from nvault.core.service import VaultService
from nvault.core.session import VaultSession
from nvault.core.types import Attachment, ProfileRecord

app = typer.Typer(
    name="nvault",
    help="Neural Vault - encrypted notes with semantic search",
    no_args_is_help=True,
)

console = Console()

MnemonicOption = typer.Option(
    None,
    "--mnemonic",
    "-m",
    envvar="NVAULT_MNEMONIC",
    help="Recovery phrase (prompted for when omitted)",
)
BiometricOption = typer.Option(
    False, "--biometric", "-b", help="Unlock with the platform authenticator"
)


def _service(ctx: typer.Context) -> VaultService:
    return build_service(data_dir=(ctx.obj or {}).get("data_dir"))


def _fail(message: str) -> None:
    console.print(f"[red]{message}[/red]")
    raise typer.Exit(1)


def _open(service: VaultService, mnemonic: Optional[str], biometric: bool) -> VaultSession:
    """Unlock a vault from a phrase or the authenticator, or exit."""
    if biometric:
        try:
            return service.unlock_with_biometric()
        except UnsupportedError:
            _fail("Biometric unlock is not available on this device.")
        except BiometricError as e:
            _fail(f"Biometric unlock failed: {e}. Try again or use your phrase.")
        except (InvalidMnemonicError, AuthenticationFailedError, CorruptDataError):
            _fail("Unlock failed: stored vault could not be opened. Use your phrase.")

    phrase = mnemonic or typer.prompt("Recovery phrase", hide_input=True)
    try:
        return service.unlock(phrase)
    except (InvalidMnemonicError, AuthenticationFailedError, CorruptDataError):
        # Same message either way: do not reveal which check failed.
        _fail("Unlock failed: recovery phrase not recognised.")


def _resolve_profile(service: VaultService, prefix: str) -> ProfileRecord:
    """Find a vault by id prefix or exact display name."""
    profiles = service.list_profiles()
    matches = [
        p for p in profiles if p.vault_id.startswith(prefix.lower()) or p.display_name == prefix
    ]
    if len(matches) == 1:
        return matches[0]
    if len(matches) > 1:
        _fail("Multiple vaults match. Be more specific.")
    _fail(f"Vault not found: {prefix}")


def _resolve_note_id(session: VaultSession, prefix: str) -> str:
    matches = [n.id for n in session.notes if n.id.startswith(prefix)]
    if len(matches) == 1:
        return matches[0]
    if len(matches) > 1:
        _fail("Multiple notes match. Be more specific.")
    _fail(f"Note not found: {prefix}")


@app.callback()
def main(
    ctx: typer.Context,
    data_dir: Optional[Path] = typer.Option(
        None,
        "--data-dir",
        envvar="NVAULT_DATA_DIR",
        help="Data directory (default: ~/.neuralvault)",
    ),
    debug: bool = typer.Option(False, "--debug", "-d", help="Enable debug logging"),
):
    """Neural Vault CLI - encrypted notes with semantic search."""
    if debug:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(name)s %(levelname)s: %(message)s",
            datefmt="%H:%M:%S",
        )
    else:
        setup_logging()
    ctx.obj = {"data_dir": data_dir}


@app.command()
def new(
    ctx: typer.Context,
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Display name"),
):
    """Create a vault and print its recovery phrase."""
    service = _service(ctx)
    mnemonic, session = service.create_vault(name=name)
    with session:
        profile = service.registry.require_profile(session.vault_id)
        console.print(
            Panel.fit(
                f"[bold]{mnemonic}[/bold]\n\n"
                "[dim]Write these 12 words down. They are the only way to "
                "recover this vault.[/dim]",
                title=f"{profile.display_name} ({session.vault_id})",
                border_style="cyan",
            )
        )


@app.command()
def profiles(ctx: typer.Context):
    """List vaults known on this device."""
    records = _service(ctx).list_profiles()
    if not records:
        console.print("[dim]No vaults yet. Run 'nvault new'.[/dim]")
        return

    table = Table(title="Vaults", show_header=True)
    table.add_column("ID")
    table.add_column("Name")
    table.add_column("Last Active")
    table.add_column("Biometric")
    for p in records:
        table.add_row(
            p.vault_id,
            p.display_name,
            p.last_active.strftime("%Y-%m-%d %H:%M"),
            "[green]yes[/green]" if p.has_biometric else "",
        )
    console.print(table)


@app.command()
def rename(ctx: typer.Context, vault: str, name: str):
    """Rename a vault."""
    service = _service(ctx)
    profile = _resolve_profile(service, vault)
    updated = service.rename_vault(profile.vault_id, name)
    console.print(f"[green]Renamed to {updated.display_name}[/green]")


@app.command()
def destroy(ctx: typer.Context, vault: str):
    """Permanently delete a vault's notes, profile and biometric binding."""
    service = _service(ctx)
    profile = _resolve_profile(service, vault)
    console.print(
        f"[bold red]This permanently deletes '{profile.display_name}' "
        f"({profile.vault_id}) and every note in it.[/bold red]"
    )
    if not typer.confirm("Are you sure?", default=False):
        raise typer.Exit(1)
    typed = typer.prompt("Type the vault name to confirm")
    if typed != profile.display_name:
        _fail("Name did not match. Nothing was deleted.")
    service.destroy_vault(profile.vault_id)
    console.print("[yellow]Vault destroyed.[/yellow]")


@app.command()
def add(
    ctx: typer.Context,
    text: Optional[str] = typer.Option(None, "--text", "-t", help="Note body"),
    title: str = typer.Option("", "--title", help="Note title"),
    file: Optional[Path] = typer.Option(None, "--file", "-f", help="Attach a file"),
    tag: List[str] = typer.Option([], "--tag", help="Tag (repeatable)"),
    mnemonic: Optional[str] = MnemonicOption,
    biometric: bool = BiometricOption,
):
    """Add a note."""
    attachment = None
    body = text or ""
    if file is not None:
        if not file.is_file():
            _fail(f"File not found: {file}")
        mime_type = mimetypes.guess_type(file.name)[0] or "application/octet-stream"
        probe = Attachment(name=file.name, mime_type=mime_type, data="")
        if probe.is_text:
            data = file.read_text(encoding="utf-8")
            body = body or data
        else:
            data = base64.b64encode(file.read_bytes()).decode("ascii")
        attachment = probe.model_copy(update={"data": data})
        title = title or file.name
    if not body.strip() and attachment is None:
        _fail("Nothing to save: pass --text or --file.")

    with _open(_service(ctx), mnemonic, biometric) as session:
        note = session.add_note(body, title=title, tags=tag, attachment=attachment)
        console.print(f"[green]Saved note {note.id[:8]}[/green]")


@app.command()
def notes(
    ctx: typer.Context,
    mnemonic: Optional[str] = MnemonicOption,
    biometric: bool = BiometricOption,
):
    """List notes in a vault."""
    with _open(_service(ctx), mnemonic, biometric) as session:
        items = session.notes
        if not items:
            console.print("[dim]No notes yet.[/dim]")
            return
        table = Table(title=f"Notes ({len(items)})", show_header=True)
        table.add_column("ID", style="dim")
        table.add_column("Title")
        table.add_column("Tags")
        table.add_column("Updated")
        table.add_column("Indexed")
        for note in items:
            table.add_row(
                note.id[:8],
                note.title or note.text[:40],
                ", ".join(note.tags),
                note.updated_at.strftime("%Y-%m-%d %H:%M"),
                "yes" if note.vector else "",
            )
        console.print(table)


@app.command("delete-note")
def delete_note(
    ctx: typer.Context,
    note_id: str,
    mnemonic: Optional[str] = MnemonicOption,
    biometric: bool = BiometricOption,
):
    """Delete a note by id prefix."""
    with _open(_service(ctx), mnemonic, biometric) as session:
        full_id = _resolve_note_id(session, note_id)
        if not typer.confirm(f"Delete note {full_id[:8]}?", default=False):
            raise typer.Exit(1)
        session.delete_note(full_id)
        console.print("[yellow]Note deleted.[/yellow]")


@app.command()
def search(
    ctx: typer.Context,
    query: str = typer.Argument("", help="Search text"),
    tag: List[str] = typer.Option([], "--tag", help="Require tag (repeatable)"),
    lexical: bool = typer.Option(False, "--lexical", help="Skip semantic search"),
    limit: int = typer.Option(10, "--limit", "-l", help="Max results"),
    mnemonic: Optional[str] = MnemonicOption,
    biometric: bool = BiometricOption,
):
    """Search notes (semantic when an embedding key is configured)."""
    with _open(_service(ctx), mnemonic, biometric) as session:
        if not lexical and session.indexer is None:
            _, message = validate_embedding_environment()
            console.print(f"[dim]{message}[/dim]")
        results = asyncio.run(session.search(query, tag, semantic=not lexical))
        if not results:
            console.print("[dim]No matching notes.[/dim]")
            return
        table = Table(title="Results", show_header=True)
        table.add_column("Score")
        table.add_column("ID", style="dim")
        table.add_column("Title")
        table.add_column("Tags")
        for ranked in results[:limit]:
            table.add_row(
                f"{ranked.score:.3f}" if ranked.score is not None else "-",
                ranked.note.id[:8],
                ranked.note.title or ranked.note.text[:40],
                ", ".join(ranked.note.tags),
            )
        console.print(table)


@app.command()
def tags(
    ctx: typer.Context,
    mnemonic: Optional[str] = MnemonicOption,
    biometric: bool = BiometricOption,
):
    """Show tags and how many notes carry each."""
    with _open(_service(ctx), mnemonic, biometric) as session:
        counts = session.tags()
        if not counts:
            console.print("[dim]No tags yet.[/dim]")
            return
        console.print("  ".join(f"{name} [dim]({count})[/dim]" for name, count in counts))


@app.command()
def index(
    ctx: typer.Context,
    force: bool = typer.Option(False, "--force", help="Re-embed every note"),
    mnemonic: Optional[str] = MnemonicOption,
    biometric: bool = BiometricOption,
):
    """Compute embedding vectors for notes that lack one."""
    with _open(_service(ctx), mnemonic, biometric) as session:
        if session.indexer is None:
            _, message = validate_embedding_environment()
            _fail(message)
        try:
            with console.status("[bold blue]Embedding notes...[/bold blue]"):
                report = asyncio.run(session.index(force=force))
        except NeuralVaultError as e:
            _fail(f"Indexing failed: {e}")
        console.print(f"[green]Embedded {len(report.embedded)} notes[/green]")
        for note_id, reason in report.failed.items():
            console.print(f"[red]  {note_id[:8]}: {reason}[/red]")
        if report.failed:
            raise typer.Exit(1)


@app.command("export")
def export_cmd(
    ctx: typer.Context,
    path: Path,
    mnemonic: Optional[str] = MnemonicOption,
    biometric: bool = BiometricOption,
):
    """Write notes to a plaintext JSON file."""
    if path.suffix != ".json":
        path = path.with_suffix(".json")
    with _open(_service(ctx), mnemonic, biometric) as session:
        path.write_text(session.export_notes(), encoding="utf-8")
        console.print(f"[green]Exported {len(session.notes)} notes to {path}[/green]")


@app.command("import")
def import_cmd(
    ctx: typer.Context,
    path: Path,
    mnemonic: Optional[str] = MnemonicOption,
    biometric: bool = BiometricOption,
):
    """Merge notes from an exported JSON file."""
    if not path.is_file():
        _fail(f"File not found: {path}")
    with _open(_service(ctx), mnemonic, biometric) as session:
        try:
            result = session.import_notes(path.read_bytes())
        except CorruptDataError as e:
            _fail(f"Import failed: {e}")
        console.print(
            f"[green]Imported {len(result.added)} notes[/green]"
            f" [dim]({len(result.duplicates)} already present)[/dim]"
        )


@app.command("biometric-enroll")
def biometric_enroll(
    ctx: typer.Context,
    label: str = typer.Option("", "--label", help="Credential label"),
    mnemonic: Optional[str] = MnemonicOption,
):
    """Allow this vault to be unlocked with the platform authenticator."""
    service = _service(ctx)
    with _open(service, mnemonic, biometric=False) as session:
        try:
            binding = service.enroll_biometric(session, label)
        except UnsupportedError as e:
            _fail(str(e))
        except BiometricError as e:
            _fail(f"Enrollment failed: {e}")
        console.print(f"[green]Biometric unlock enabled ({binding.label})[/green]")


@app.command("biometric-unlock")
def biometric_unlock(
    ctx: typer.Context,
    vault: List[str] = typer.Option([], "--vault", "-v", help="Limit to these vaults"),
):
    """Check that the platform authenticator opens a vault."""
    service = _service(ctx)
    candidates = [_resolve_profile(service, v).vault_id for v in vault]
    try:
        session = service.unlock_with_biometric(candidates or None)
    except UnsupportedError:
        _fail("Biometric unlock is not available on this device.")
    except BiometricError as e:
        _fail(f"Biometric unlock failed: {e}")
    except (InvalidMnemonicError, AuthenticationFailedError, CorruptDataError):
        _fail("Unlock failed: stored vault could not be opened. Use your phrase.")
    with session:
        console.print(
            f"[green]Unlocked {session.vault_id} ({len(session.notes)} notes)[/green]"
        )


def run_cli():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    run_cli()
