"""Chatflow CLI: entry-point for editing conversation flow documents.

Usage:
    python cli/main.py --help

Command groups:
    doc     create, open and inspect documents
    node    add, edit and link questions
    shell   interactive session with undo/redo and clipboard
    serve   run the HTTP editing service
"""

from __future__ import annotations

import sys
from pathlib import Path

# Ensure the project root is on sys.path so that `from chatflow.xxx import ...`
# works when the CLI is invoked as `python cli/main.py` from any directory.
_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

from typing import Optional

import typer

from chatflow.config import settings
from chatflow.logging_config import configure_logging
from cli.commands.document import doc_app
from cli.commands.node import node_app
from cli.commands.shell import shell

app = typer.Typer(
    name="chatflow",
    help="Chatflow CLI: edit chat-bot conversation flows.",
    no_args_is_help=True,
)


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Override CHATFLOW_LOG_LEVEL."),
) -> None:
    configure_logging(log_level)


app.add_typer(doc_app, name="doc")
app.add_typer(node_app, name="node")
app.command("shell")(shell)


@app.command("serve")
def serve(
    host: Optional[str] = typer.Option(None, help="Bind address (defaults to settings)."),
    port: Optional[int] = typer.Option(None, help="Port (defaults to settings)."),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes."),
) -> None:
    """Run the HTTP editing service."""
    import uvicorn

    host = host or settings.api_host
    port = port or settings.api_port
    typer.echo(f"🚀 Serving on http://{host}:{port}")
    uvicorn.run("chatflow.api:app", host=host, port=port, reload=reload)


# ---------------------------------------------------------------------------
# Entry-point
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    app()
