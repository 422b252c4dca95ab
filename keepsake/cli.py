"""
CLI interface for keepsake.

Usage:
    keepsake -u alice create-profile Mom --description "My mother"
    keepsake -u alice submit PROFILE_ID notes.json
    keepsake -u alice search "gardening" --profile Mom
"""

import json
import os
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import typer
from typing_extensions import Annotated

from .api import Keepsake
from .auth import bearer_token
from .errors import KeepsakeError, log_exception
from .logging_config import configure_quiet_mode, enable_debug_mode
from .search import SOURCES
from .types import SearchResults


# Quiet unless KEEPSAKE_VERBOSE=1
if os.environ.get("KEEPSAKE_VERBOSE") == "1":
    enable_debug_mode()
else:
    configure_quiet_mode(quiet=True)


def _verbose_callback(value: bool):
    if value:
        enable_debug_mode()


# Global state for CLI options, reset on every invocation by main_callback
_json_output = False
_store_override: Optional[Path] = None
_user: Optional[str] = None
_token: Optional[str] = None


app = typer.Typer(
    name="keepsake",
    help="Profile notes with semantic search.",
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
    )] = False,
    store: Annotated[Optional[Path], typer.Option(
        "--store", "-s",
        envvar="KEEPSAKE_STORE_PATH",
        help="Path to the store directory (default: ~/.keepsake/)",
    )] = None,
    user: Annotated[Optional[str], typer.Option(
        "--user", "-u",
        envvar="KEEPSAKE_USER",
        help="User id to act as",
    )] = None,
    token: Annotated[Optional[str], typer.Option(
        "--token",
        envvar="KEEPSAKE_TOKEN",
        help="Token or 'Bearer <token>' value, checked against [auth] tokens (overrides --user)",
    )] = None,
):
    """Profile notes with semantic search."""
    global _json_output, _store_override, _user, _token
    _json_output = output_json
    _store_override = store
    _user = user
    _token = token


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------

def _get_keepsake() -> Keepsake:
    """Open the store selected by --store (or the default)."""
    import atexit

    ks = Keepsake(_store_override)
    atexit.register(ks.close)
    return ks


def _current_user(ks: Keepsake) -> str:
    if _token:
        # Accepts a raw token or a full "Bearer <token>" header value
        return ks.authenticate(bearer_token(_token) or _token)
    return _user or ""


def _report(exc: Exception, context: str) -> None:
    log_path = log_exception(exc, context=context, store_path=_store_override)
    typer.echo(f"Error: {exc}", err=True)
    typer.echo(f"Details logged to {log_path}", err=True)


@contextmanager
def _handle_errors(command: str) -> Iterator[None]:
    """Turn keepsake errors into a one-line message and exit status 1."""
    try:
        yield
    except KeepsakeError as e:
        _report(e, f"keepsake {command}")
        raise typer.Exit(1)


def _echo_json(data) -> None:
    typer.echo(json.dumps(data, indent=2, ensure_ascii=False))


def _render_results(results: SearchResults) -> str:
    if results.no_notes:
        return results.message
    lines = [f"{len(results)} of {results.total_searched} notes ({results.used_profile})"]
    for hit in results:
        lines.append(f"{hit.relevance:>8}  {hit.note_id}  {hit.entry or ''}")
    return "\n".join(lines)


def _read_payload(source: Optional[str]) -> dict:
    """Read a submit payload from a file, or stdin for ``-``."""
    if source is None or source == "-":
        text = sys.stdin.read()
    else:
        text = Path(source).expanduser().read_text(encoding="utf-8")
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        typer.echo(f"Error: invalid JSON payload: {e}", err=True)
        raise typer.Exit(1)
    if not isinstance(data, dict):
        typer.echo("Error: payload must be a JSON object", err=True)
        raise typer.Exit(1)
    return data


# -----------------------------------------------------------------------------
# Profiles
# -----------------------------------------------------------------------------

@app.command("profiles")
def list_profiles():
    """List your profiles."""
    with _handle_errors("profiles"):
        ks = _get_keepsake()
        profiles = ks.list_profiles(_current_user(ks))
    if _json_output:
        _echo_json([p.to_record() for p in profiles])
        return
    for p in profiles:
        typer.echo(f"{p.id}  {p.name}  {p.description}")


@app.command("create-profile")
def create_profile(
    name: Annotated[str, typer.Argument(help="Display name, e.g. 'Mom'")],
    description: Annotated[str, typer.Option(
        "--description", "-d",
        help="Who this person is",
    )],
    avatar: Annotated[Optional[str], typer.Option(
        "--avatar",
        help="Avatar reference (URL or path)",
    )] = None,
):
    """Create a profile (at most 5 per user)."""
    with _handle_errors("create-profile"):
        ks = _get_keepsake()
        profile = ks.create_profile(_current_user(ks), name, description, avatar=avatar)
    if _json_output:
        _echo_json(profile.to_record())
    else:
        typer.echo(profile.id)


@app.command("delete-profile")
def delete_profile(
    profile_id: Annotated[str, typer.Argument(help="Profile id")],
):
    """Delete a profile with all of its categories and notes."""
    with _handle_errors("delete-profile"):
        ks = _get_keepsake()
        result = ks.delete_profile(_current_user(ks), profile_id)
    if _json_output:
        _echo_json({"deleted": result.deleted, "mirrorSynced": result.mirror_synced})
        return
    typer.echo(f"Deleted {result.deleted} records")
    if not result.mirror_synced:
        typer.echo("Warning: mirror not updated", err=True)


# -----------------------------------------------------------------------------
# Categories and notes
# -----------------------------------------------------------------------------

@app.command("categories")
def list_categories(
    profile_id: Annotated[str, typer.Argument(help="Profile id")],
):
    """List a profile's categories."""
    with _handle_errors("categories"):
        ks = _get_keepsake()
        categories = ks.list_categories(_current_user(ks), profile_id)
    if _json_output:
        _echo_json([c.to_record() for c in categories])
        return
    for c in categories:
        typer.echo(f"{c.id}  {c.name}")


@app.command("notes")
def list_notes(
    profile_id: Annotated[str, typer.Argument(help="Profile id")],
):
    """List a profile's notes."""
    with _handle_errors("notes"):
        ks = _get_keepsake()
        notes = ks.list_notes(_current_user(ks), profile_id)
    if _json_output:
        # Embeddings are long and not useful on a terminal
        _echo_json([{k: v for k, v in n.to_record().items() if k != "embedding"}
                    for n in notes])
        return
    for n in notes:
        category = f"  [{n.category_id}]" if n.category_id else ""
        typer.echo(f"{n.id}{category}  {n.entry or ''}")


@app.command("submit")
def submit(
    profile_id: Annotated[str, typer.Argument(help="Profile id")],
    source: Annotated[Optional[str], typer.Argument(
        help="JSON file with {\"categories\": [...], \"notes\": [...]}, or - for stdin",
    )] = None,
):
    """
    Save categories and notes for a profile.

    \b
    Examples:
        keepsake submit PROFILE_ID notes.json
        echo '{"notes": [{"entry": "loves gardening"}]}' | keepsake submit PROFILE_ID -
    """
    payload = _read_payload(source)
    with _handle_errors("submit"):
        ks = _get_keepsake()
        ack = ks.submit(
            _current_user(ks), profile_id,
            categories=payload.get("categories"),
            notes=payload.get("notes"),
        )
    if _json_output:
        _echo_json({
            "profileId": ack.profile_id,
            "categoryIds": ack.category_ids,
            "noteIds": ack.note_ids,
        })
    else:
        typer.echo(f"Saved {len(ack.category_ids)} categories, {len(ack.note_ids)} notes")


@app.command("delete-note")
def delete_note(
    profile_id: Annotated[str, typer.Argument(help="Profile id")],
    note_id: Annotated[str, typer.Argument(help="Note id")],
):
    """Delete one note."""
    with _handle_errors("delete-note"):
        ks = _get_keepsake()
        result = ks.delete_note(_current_user(ks), profile_id, note_id)
    if _json_output:
        _echo_json({"deleted": result.deleted, "mirrorSynced": result.mirror_synced})
        return
    typer.echo("Deleted" if result.deleted else "Not found")
    if not result.mirror_synced:
        typer.echo("Warning: mirror not updated", err=True)


# -----------------------------------------------------------------------------
# Query
# -----------------------------------------------------------------------------

@app.command("search")
def search(
    query: Annotated[str, typer.Argument(help="What to look for")],
    profile_id: Annotated[Optional[str], typer.Option(
        "--profile-id",
        help="Limit to this profile id",
    )] = None,
    profile_name: Annotated[Optional[str], typer.Option(
        "--profile", "-p",
        help="Limit to the profile with this name (case-insensitive)",
    )] = None,
    source: Annotated[str, typer.Option(
        "--source",
        help=f"Where to rank from: {' or '.join(SOURCES)}",
    )] = "primary",
    limit: Annotated[Optional[int], typer.Option(
        "--limit", "-n",
        help="Maximum results to return",
    )] = None,
):
    """
    Find notes by semantic similarity.

    \b
    Examples:
        keepsake search "gardening"                 # All profiles
        keepsake search "birthday gift" -p Mom      # One profile, by name
    """
    with _handle_errors("search"):
        ks = _get_keepsake()
        results = ks.search(
            _current_user(ks), query,
            profile_id=profile_id,
            profile_name=profile_name,
            source=source,
            limit=limit,
        )
    if _json_output:
        _echo_json(results.to_dict())
    else:
        typer.echo(_render_results(results))


@app.command("health")
def health():
    """Check that the stores are reachable."""
    with _handle_errors("health"):
        ks = _get_keepsake()
        status = ks.health()
    if _json_output:
        _echo_json(status)
    else:
        for key, value in status.items():
            typer.echo(f"{key}: {value}")
    if not status["ok"]:
        raise typer.Exit(1)


# -----------------------------------------------------------------------------

def main():
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        raise SystemExit(130)
    except Exception as e:
        # Unexpected failures still get a one-line message and a logged traceback
        _report(e, "keepsake")
        raise SystemExit(1)


if __name__ == "__main__":
    main()
