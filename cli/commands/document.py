"""Flow document commands: create, open, inspect and configure documents."""

from pathlib import Path
from typing import Optional

import typer

from chatflow.config import settings
from chatflow.flow import FlowSession
from chatflow.flow.errors import DocumentParseError
from chatflow.flow.integrity import check_graph, has_errors
from cli.context import (
    load_context,
    open_active_session,
    require_document,
    save_session,
    set_active_document,
)
from cli.rendering import render_list, render_tree

doc_app = typer.Typer(help="Create, open and inspect flow documents.")


@doc_app.command("new")
def doc_new(
    name: str = typer.Argument(..., help="Document name or path."),
    locale: Optional[str] = typer.Option(None, help="Bot locale (defaults to settings)."),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing file."),
) -> None:
    """Create an empty flow document and make it active."""
    path = settings.document_path(name)
    if path.exists() and not force:
        typer.echo(f"❌ {path} already exists. Use --force to overwrite.")
        raise typer.Exit(code=1)

    path.parent.mkdir(parents=True, exist_ok=True)
    session = FlowSession(path=path)
    session.graph.locale = locale or settings.default_locale
    save_session(session)
    set_active_document(path)
    typer.echo(f"✅ Document created: {path}")


@doc_app.command("open")
def doc_open(
    path: Path = typer.Argument(..., help="Path of an existing flow document."),
) -> None:
    """Validate a document and make it the active one."""
    try:
        session = FlowSession.open(path)
    except FileNotFoundError:
        typer.echo(f"❌ Document not found: {path}")
        raise typer.Exit(code=1)
    except DocumentParseError as exc:
        typer.echo(f"❌ Cannot read {path}: {exc}")
        raise typer.Exit(code=1)

    set_active_document(path)
    typer.echo(f"📂 Active document: {session.title} ({len(session.graph)} nodes)")


@doc_app.command("info")
@require_document
def doc_info() -> None:
    """Show the active document's bot settings."""
    session = open_active_session()
    graph = session.graph
    typer.echo(f"Document : {load_context().active_document}")
    typer.echo(f"Nodes    : {len(graph)}")
    typer.echo(f"Entry    : {graph.entry_id or '(none)'}")
    typer.echo(f"Locale   : {graph.locale or '(none)'}")
    typer.echo(f"AI model : {graph.model_name or '(none)'}")
    if graph.model_guidelines:
        typer.echo(f"Guidelines:\n{graph.model_guidelines}")
    if graph.params:
        typer.echo("Params:")
        for key, value in graph.params.items():
            typer.echo(f"  {key} = {value}")


@doc_app.command("show")
@require_document
def doc_show(
    format: str = typer.Option("tree", "--format", help="Output format: tree | list"),
) -> None:
    """Display the conversation as a tree from the entry node, or as a list."""
    session = open_active_session()
    if format == "list":
        typer.echo(render_list(session.graph))
    elif format == "tree":
        typer.echo(render_tree(session.graph))
    else:
        typer.echo(f"Unknown format {format!r}. Use: tree | list")
        raise typer.Exit(code=1)


@doc_app.command("check")
@require_document
def doc_check() -> None:
    """Report integrity problems; exits with code 1 when errors are found."""
    session = open_active_session()
    issues = check_graph(session.graph)
    if not issues:
        typer.echo("✅ No issues found.")
        return
    for issue in issues:
        typer.echo(str(issue))
    if has_errors(issues):
        raise typer.Exit(code=1)


@doc_app.command("set")
@require_document
def doc_set(
    name: Optional[str] = typer.Option(None, help="AI model name."),
    locale: Optional[str] = typer.Option(None, help="Bot locale."),
    guidelines: Optional[str] = typer.Option(None, help="AI model guidelines."),
    script: Optional[str] = typer.Option(None, help="Bot-level script."),
) -> None:
    """Update bot-level settings of the active document."""
    if all(v is None for v in (name, locale, guidelines, script)):
        typer.echo("Nothing to update.")
        raise typer.Exit(code=1)
    session = open_active_session()
    session.graph.set_info(name=name, locale=locale, guidelines=guidelines, script=script)
    save_session(session)
    typer.echo("✅ Settings updated.")


@doc_app.command("param")
@require_document
def doc_param(
    key: str = typer.Argument(..., help="Parameter name."),
    value: Optional[str] = typer.Argument(None, help="Value; omit with --remove."),
    remove: bool = typer.Option(False, "--remove", help="Remove the parameter."),
) -> None:
    """Set or remove a bot parameter."""
    session = open_active_session()
    params = dict(session.graph.params)
    if remove:
        if params.pop(key, None) is None:
            typer.echo(f"❌ No parameter {key!r}.")
            raise typer.Exit(code=1)
    elif value is None:
        typer.echo("❌ A value is required (or pass --remove).")
        raise typer.Exit(code=1)
    elif not key.strip():
        typer.echo("❌ Parameter names cannot be blank.")
        raise typer.Exit(code=1)
    else:
        params[key] = value
    session.graph.set_info(params=params)
    save_session(session)
    typer.echo(f"✅ Parameters: {len(params)}")
