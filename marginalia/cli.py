"""
CLI interface for marginalia.

Usage:
    marginalia import paper.md
    marginalia sections doc-1234
    marginalia note doc-1234 sec-5678 "Compare with chapter 2"
    marginalia reimport doc-1234
    marginalia unassigned doc-1234
    marginalia reassign doc-1234 note-42 sec-9999
"""

import json
import os
from dataclasses import asdict
from pathlib import Path
from typing import NoReturn, Optional

import typer
from typing_extensions import Annotated

from .api import DocumentSnapshot, DocumentSummary, Workspace
from .errors import MarginaliaError
from .logging_config import configure_quiet_mode, enable_debug_mode

# Configure quiet mode by default (suppress verbose library output)
# Set MARGINALIA_VERBOSE=1 to enable debug mode via environment
if os.environ.get("MARGINALIA_VERBOSE") == "1":
    enable_debug_mode()
else:
    configure_quiet_mode(quiet=True)


def _verbose_callback(value: bool):
    if value:
        enable_debug_mode()


# Global state for CLI options
_json_output = False
_store_override: Optional[Path] = None


def _json_callback(value: bool):
    global _json_output
    _json_output = value


def _store_callback(value: Optional[Path]):
    global _store_override
    _store_override = value


app = typer.Typer(
    name="marginalia",
    help="Import documents, annotate sections, keep notes across revisions.",
    no_args_is_help=True,
    rich_markup_mode=None,
)


@app.callback()
def main_callback(
    verbose: Annotated[bool, typer.Option(
        "--verbose", "-v",
        help="Enable debug-level logging to stderr",
        callback=_verbose_callback,
        is_eager=True,
    )] = False,
    output_json: Annotated[bool, typer.Option(
        "--json", "-j",
        help="Output as JSON",
        callback=_json_callback,
        is_eager=True,
    )] = False,
    store: Annotated[Optional[Path], typer.Option(
        "--store", "-s",
        envvar="MARGINALIA_STORE_PATH",
        help="Path to the store directory (default: ~/.marginalia/)",
        callback=_store_callback,
        is_eager=True,
    )] = None,
):
    """Import documents, annotate sections, keep notes across revisions."""


def _open_workspace() -> Workspace:
    try:
        return Workspace(_store_override)
    except (OSError, ValueError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


def _fail(error: MarginaliaError) -> NoReturn:
    """Report a domain error and exit non-zero."""
    if _json_output:
        typer.echo(json.dumps({"error": error.to_dict()}, indent=2))
    else:
        typer.echo(f"Error [{error.code.value}]: {error.message}", err=True)
        actions = (error.details or {}).get("actions")
        if actions:
            typer.echo(f"  Try: {', '.join(actions)}", err=True)
    raise typer.Exit(1)


def _emit_json(value) -> None:
    typer.echo(json.dumps(value, indent=2, ensure_ascii=False, default=str))


# -----------------------------------------------------------------------------
# Output Formatting
# -----------------------------------------------------------------------------

def _format_summary(doc: DocumentSummary) -> str:
    revision = f"r{doc.revision_number}" if doc.revision_number else "r-"
    line = f"{doc.id}  {revision}  {doc.title}  ({doc.section_count} sections"
    if doc.unassigned_count:
        line += f", {doc.unassigned_count} unassigned"
    line += ")"
    if not doc.source_status.available:
        line += f"\n  ! {doc.source_status.message}"
    return line


def _render_snapshot(snapshot: DocumentSnapshot) -> str:
    lines = [_format_summary(snapshot.document)]
    outcome = snapshot.outcome
    if outcome is not None and outcome.previous_revision_id is not None:
        lines.append(
            f"  {len(outcome.remapped_note_ids)} notes kept, "
            f"{len(outcome.orphaned_note_ids)} need reassignment"
        )
    for section in snapshot.sections:
        lines.append(f"  {section.id}  {section.anchor_key}  {section.heading}")
    return "\n".join(lines)


def _print_snapshot(snapshot: DocumentSnapshot) -> None:
    if _json_output:
        _emit_json(asdict(snapshot))
    else:
        typer.echo(_render_snapshot(snapshot))


# -----------------------------------------------------------------------------
# Commands
# -----------------------------------------------------------------------------

@app.command("import")
def import_cmd(
    path: Annotated[Path, typer.Argument(help="Path to a .txt, .md or .pdf file")],
):
    """Import a document as a new revision-1 document."""
    with _open_workspace() as ws:
        try:
            snapshot = ws.import_document_from_path(path)
        except MarginaliaError as e:
            _fail(e)
        _print_snapshot(snapshot)


@app.command()
def reimport(
    document_id: Annotated[str, typer.Argument(help="Document ID")],
    force: Annotated[bool, typer.Option(
        "--force", "-f",
        help="Create a revision even if the source content is unchanged",
    )] = False,
):
    """Re-section the source file and carry notes over to a new revision."""
    with _open_workspace() as ws:
        try:
            snapshot = ws.reimport_document(document_id, force=force)
        except MarginaliaError as e:
            _fail(e)
        _print_snapshot(snapshot)


@app.command()
def locate(
    document_id: Annotated[str, typer.Argument(help="Document ID")],
    path: Annotated[Path, typer.Argument(help="New location of the source file")],
):
    """Point a document at a moved source file (no new revision)."""
    with _open_workspace() as ws:
        try:
            snapshot = ws.locate_document(document_id, path)
        except MarginaliaError as e:
            _fail(e)
        _print_snapshot(snapshot)


@app.command()
def documents():
    """List documents in this workspace."""
    with _open_workspace() as ws:
        docs = ws.list_documents()
        if _json_output:
            _emit_json([asdict(doc) for doc in docs])
        elif not docs:
            typer.echo("No documents.")
        else:
            for doc in docs:
                typer.echo(_format_summary(doc))


@app.command()
def sections(
    document_id: Annotated[str, typer.Argument(help="Document ID")],
):
    """List sections of the current revision."""
    with _open_workspace() as ws:
        try:
            snapshot = ws.get_document_snapshot(document_id)
        except MarginaliaError as e:
            _fail(e)
        _print_snapshot(snapshot)


@app.command()
def history(
    document_id: Annotated[str, typer.Argument(help="Document ID")],
):
    """Show the revision history of a document."""
    with _open_workspace() as ws:
        try:
            revisions = ws.list_revisions(document_id)
        except MarginaliaError as e:
            _fail(e)
        if _json_output:
            _emit_json([asdict(rev) for rev in revisions])
            return
        for rev in revisions:
            typer.echo(f"r{rev.revision_number}  {rev.id}  {rev.created_at}  {rev.sha256[:12]}")


@app.command()
def note(
    document_id: Annotated[str, typer.Argument(help="Document ID")],
    section_id: Annotated[str, typer.Argument(help="Section ID (current revision)")],
    content: Annotated[str, typer.Argument(help="Note text")],
):
    """Attach a note to a section."""
    with _open_workspace() as ws:
        try:
            record = ws.create_note(document_id, section_id, content)
        except MarginaliaError as e:
            _fail(e)
        if _json_output:
            _emit_json(asdict(record))
        else:
            typer.echo(record.id)


@app.command()
def unassigned(
    document_id: Annotated[str, typer.Argument(help="Document ID")],
):
    """List notes waiting for a new section after re-import."""
    with _open_workspace() as ws:
        try:
            entries = ws.list_unassigned_notes(document_id)
        except MarginaliaError as e:
            _fail(e)
        if _json_output:
            _emit_json([asdict(entry) for entry in entries])
            return
        if not entries:
            typer.echo("No unassigned notes.")
        for entry in entries:
            typer.echo(f"{entry.note_id}  was: {entry.previous_heading} ({entry.previous_anchor_key})")
            typer.echo(f"  {entry.content}")


@app.command()
def skip(
    document_id: Annotated[str, typer.Argument(help="Document ID")],
    note_id: Annotated[str, typer.Argument(help="Note ID")],
):
    """Leave an unassigned note in the queue for later."""
    with _open_workspace() as ws:
        try:
            ws.skip_for_now(document_id, note_id)
        except MarginaliaError as e:
            _fail(e)
        typer.echo(f"Skipped {note_id}")


@app.command()
def reassign(
    document_id: Annotated[str, typer.Argument(help="Document ID")],
    note_id: Annotated[str, typer.Argument(help="Note ID")],
    section_id: Annotated[str, typer.Argument(help="Target section ID (current revision)")],
):
    """Bind an unassigned note to a section of the current revision."""
    with _open_workspace() as ws:
        try:
            record = ws.reassign(document_id, note_id, section_id)
        except MarginaliaError as e:
            _fail(e)
        if _json_output:
            _emit_json(asdict(record))
        else:
            typer.echo(f"{record.id} -> {record.section_id}")


def main():
    try:
        app()
    except SystemExit:
        raise  # Let typer handle exit codes
    except KeyboardInterrupt:
        raise SystemExit(130)  # Standard exit code for Ctrl+C
    except Exception as e:
        # Log full traceback to file, show clean message to user
        from .errors import log_exception
        log_path = log_exception(e, context="marginalia CLI")
        typer.echo(f"Error: {e}", err=True)
        typer.echo(f"Details logged to {log_path}", err=True)
        raise SystemExit(1)


if __name__ == "__main__":
    main()
