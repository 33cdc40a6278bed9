"""Persistent state management for the Chatflow CLI.

Tracks the "active document" and user preferences.
Stored in `<cli_config_dir>/context.json` (``CHATFLOW_CLI_DIR``).
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from functools import wraps
from pathlib import Path
from typing import Any, Callable

import typer

from chatflow.config import settings
from chatflow.flow import FlowSession
from chatflow.flow.errors import DocumentParseError, DocumentWriteError


@dataclass
class CliContext:
    active_document: str | None = None
    user_preferences: dict[str, Any] = field(default_factory=dict)

    def to_json(self) -> str:
        return json.dumps(asdict(self), indent=2)

    @classmethod
    def from_json(cls, data: str) -> CliContext:
        try:
            raw = json.loads(data)
            return cls(**raw)
        except (json.JSONDecodeError, TypeError):
            return cls()


def _get_context_path() -> Path:
    """Return the path to the context JSON file."""
    return settings.cli_config_dir / "context.json"


def load_context() -> CliContext:
    """Load the CLI context from disk. Returns defaults if missing/corrupt."""
    path = _get_context_path()
    if not path.exists():
        return CliContext()

    try:
        return CliContext.from_json(path.read_text(encoding="utf-8"))
    except OSError:
        return CliContext()


def save_context(ctx: CliContext) -> None:
    """Save the CLI context to disk."""
    settings.cli_config_dir.mkdir(parents=True, exist_ok=True)
    _get_context_path().write_text(ctx.to_json(), encoding="utf-8")


def set_active_document(path: Path) -> None:
    ctx = load_context()
    ctx.active_document = str(path.resolve())
    save_context(ctx)


def require_document(func: Callable) -> Callable:
    """Decorator for CLI commands that operate on the active document.

    Aborts execution if no document is active.
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        ctx = load_context()
        if not ctx.active_document:
            typer.echo("❌ No active document.")
            typer.echo("Run 'doc new <name>' or 'doc open <path>' first.")
            raise typer.Exit(code=1)
        return func(*args, **kwargs)

    return wrapper


def open_active_session() -> FlowSession:
    """Load the active document into a fresh editing session.

    Exits with code 1 if the file is missing or cannot be parsed.
    """
    path = Path(load_context().active_document)
    try:
        return FlowSession.open(path)
    except FileNotFoundError:
        typer.echo(f"❌ Document not found: {path}")
        raise typer.Exit(code=1)
    except DocumentParseError as exc:
        typer.echo(f"❌ Cannot read {path}: {exc}")
        raise typer.Exit(code=1)


def save_session(session: FlowSession) -> None:
    """Write *session* back to its document, exiting with code 1 on failure."""
    try:
        session.save()
    except DocumentWriteError as exc:
        typer.echo(f"❌ {exc}")
        raise typer.Exit(code=1)
