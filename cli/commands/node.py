"""Commands for editing the questions (nodes) of the active document."""

from typing import Optional

import typer

from chatflow.flow import BranchKind, FlowGraph
from chatflow.flow.errors import ConditionError, DocumentParseError, InvalidReference
from chatflow.flow.linking import LinkDrag, unlink
from chatflow.flow.taxonomy import (
    ERROR_ACTIONS,
    SUCCESS_ACTIONS,
    VALIDATION_TYPES,
    is_known_validation,
    selection_choices,
    validate_condition,
)
from cli.context import open_active_session, require_document, save_session
from cli.editor import edit_node_content
from cli.rendering import node_title

node_app = typer.Typer(help="Add, edit and link questions in the active document.")


def _branch_kind(which: str) -> BranchKind:
    try:
        return BranchKind(which.lower())
    except ValueError:
        typer.echo(f"❌ Unknown branch {which!r}. Use: success | error")
        raise typer.Exit(code=1)


@node_app.command("add")
@require_document
def node_add(
    x: int = typer.Argument(0, help="Left edge."),
    y: int = typer.Argument(0, help="Top edge."),
) -> None:
    """Add a default question at (x, y)."""
    session = open_active_session()
    node = session.graph.create_node(x, y)
    save_session(session)
    typer.echo(f"✅ Added {node_title(node)}")
    if session.graph.entry_id == node.id:
        typer.echo("   (entry node)")


@node_app.command("delete")
@require_document
def node_delete(
    node_id: int = typer.Argument(..., help="Node ID."),
) -> None:
    """Delete a question and detach every branch pointing at it."""
    session = open_active_session()
    if node_id not in session.graph:
        typer.echo(f"❌ Node not found: {node_id}")
        raise typer.Exit(code=1)
    referrers = session.graph.referrers(node_id)
    session.graph.delete_node(node_id)
    save_session(session)
    typer.echo(f"✅ Deleted node #{node_id}")
    for other, which in referrers:
        if other.id != node_id:
            typer.echo(f"   detached #{other.id} {which.value}")


@node_app.command("move")
@require_document
def node_move(
    node_id: int = typer.Argument(..., help="Node ID."),
    dx: int = typer.Argument(..., help="Horizontal offset."),
    dy: int = typer.Argument(..., help="Vertical offset."),
) -> None:
    """Move a question by an offset."""
    session = open_active_session()
    try:
        session.graph.move_node(node_id, dx, dy)
    except InvalidReference as exc:
        typer.echo(f"❌ {exc}")
        raise typer.Exit(code=1)
    save_session(session)
    g = session.graph.get_node(node_id).geometry
    typer.echo(f"✅ Node #{node_id} now at {g.x},{g.y}")


@node_app.command("resize")
@require_document
def node_resize(
    node_id: int = typer.Argument(..., help="Node ID."),
    width: int = typer.Argument(..., min=1, help="New width."),
    height: int = typer.Argument(..., min=1, help="New height."),
) -> None:
    """Set a question's size."""
    session = open_active_session()
    try:
        session.graph.resize_node(node_id, width, height)
    except InvalidReference as exc:
        typer.echo(f"❌ {exc}")
        raise typer.Exit(code=1)
    save_session(session)
    typer.echo(f"✅ Node #{node_id} resized to {width}x{height}")


@node_app.command("edit")
@require_document
def node_edit(
    node_id: int = typer.Argument(..., help="Node ID."),
) -> None:
    """Open a question in $EDITOR and apply the changes."""
    session = open_active_session()
    try:
        changed = edit_node_content(session, node_id)
    except (InvalidReference, DocumentParseError, ConditionError) as exc:
        typer.echo(f"❌ {exc}")
        raise typer.Exit(code=1)
    if not changed:
        typer.echo("No changes detected.")
        return
    save_session(session)
    typer.echo(f"✅ Node #{node_id} updated.")


def update_node(
    graph: FlowGraph,
    node_id: int,
    *,
    message: Optional[str] = None,
    validation_type: Optional[str] = None,
    condition: Optional[str] = None,
    script: Optional[str] = None,
) -> None:
    """Apply the given fields to a question as a single recorded edit.

    Raises:
        InvalidReference: If the node is not in the graph.
        ConditionError: If the resulting validation condition is invalid.
    """
    data = graph.get_node(node_id).copy()
    if message is not None:
        data.message = message
    if validation_type is not None:
        if not is_known_validation(validation_type):
            typer.echo(
                f"⚠️ {validation_type!r} is not a known validation type ({', '.join(VALIDATION_TYPES)})"
            )
        data.validation_type = validation_type
    if condition is not None:
        data.validation_condition = condition
    if script is not None:
        data.script = script

    validate_condition(data.validation_type, data.validation_condition)
    graph.edit_node(node_id, data)


def update_branch(
    graph: FlowGraph,
    node_id: int,
    kind: BranchKind,
    *,
    message: Optional[str] = None,
    action: Optional[str] = None,
    value: Optional[str] = None,
) -> None:
    """Apply the given fields to one branch; the link target is kept.

    Raises:
        InvalidReference: If the node is not in the graph.
    """
    branch = graph.get_node(node_id).branch(kind).copy()
    if message is not None:
        branch.message = message
    if action is not None:
        vocabulary = SUCCESS_ACTIONS if kind is BranchKind.SUCCESS else ERROR_ACTIONS
        if action not in vocabulary:
            typer.echo(f"⚠️ {action!r} is not a known {kind.value} action")
        branch.action = action
    if value is not None:
        branch.value = value
    graph.set_branch(node_id, kind, branch)


@node_app.command("set")
@require_document
def node_set(
    node_id: int = typer.Argument(..., help="Node ID."),
    message: Optional[str] = typer.Option(None, help="Question text."),
    type: Optional[str] = typer.Option(None, "--type", help="Validation type."),
    condition: Optional[str] = typer.Option(None, help="Validation condition."),
    script: Optional[str] = typer.Option(None, help="Node script."),
) -> None:
    """Change a question's message, validation or script in one edit."""
    session = open_active_session()
    try:
        update_node(
            session.graph,
            node_id,
            message=message,
            validation_type=type,
            condition=condition,
            script=script,
        )
    except (InvalidReference, ConditionError) as exc:
        typer.echo(f"❌ {exc}")
        raise typer.Exit(code=1)
    save_session(session)
    typer.echo(f"✅ Node #{node_id} updated.")


@node_app.command("branch")
@require_document
def node_branch(
    node_id: int = typer.Argument(..., help="Node ID."),
    which: str = typer.Argument(..., help="success | error"),
    message: Optional[str] = typer.Option(None, help="Reply sent on this branch."),
    action: Optional[str] = typer.Option(None, help="Branch action."),
    value: Optional[str] = typer.Option(None, help="Action value."),
) -> None:
    """Change the reply, action or value of one branch."""
    kind = _branch_kind(which)
    session = open_active_session()
    try:
        update_branch(session.graph, node_id, kind, message=message, action=action, value=value)
    except InvalidReference as exc:
        typer.echo(f"❌ {exc}")
        raise typer.Exit(code=1)
    save_session(session)
    typer.echo(f"✅ Node #{node_id} {kind.value} branch updated.")


@node_app.command("link")
@require_document
def node_link(
    source_id: int = typer.Argument(..., help="Source node ID."),
    which: str = typer.Argument(..., help="success | error"),
    target_id: int = typer.Argument(..., help="Target node ID."),
) -> None:
    """Point a branch of one question at another question."""
    kind = _branch_kind(which)
    session = open_active_session()
    try:
        drag = LinkDrag(session.graph, source_id, kind)
    except InvalidReference as exc:
        typer.echo(f"❌ {exc}")
        raise typer.Exit(code=1)
    if not drag.finish(target_id):
        typer.echo(f"❌ Cannot link #{source_id} to #{target_id}.")
        raise typer.Exit(code=1)
    save_session(session)
    typer.echo(f"🔗 #{source_id} --[{kind.value}]--> #{target_id}")


@node_app.command("unlink")
@require_document
def node_unlink(
    source_id: int = typer.Argument(..., help="Source node ID."),
    which: str = typer.Argument(..., help="success | error"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation."),
) -> None:
    """Remove the link of one branch."""
    kind = _branch_kind(which)
    session = open_active_session()
    try:
        removed = unlink(
            session.graph,
            source_id,
            kind,
            confirm=lambda: yes or typer.confirm(f"Remove the {kind.value} link of #{source_id}?"),
        )
    except InvalidReference as exc:
        typer.echo(f"❌ {exc}")
        raise typer.Exit(code=1)
    if not removed:
        typer.echo("Nothing removed.")
        return
    save_session(session)
    typer.echo(f"✅ #{source_id} {kind.value} link removed.")


@node_app.command("entry")
@require_document
def node_entry(
    node_id: int = typer.Argument(..., help="Node ID."),
) -> None:
    """Make a question the conversation's entry point."""
    session = open_active_session()
    try:
        session.graph.set_entry(node_id)
    except InvalidReference as exc:
        typer.echo(f"❌ {exc}")
        raise typer.Exit(code=1)
    save_session(session)
    typer.echo(f"✅ Entry node is now #{node_id}")


@node_app.command("choices")
@require_document
def node_choices(
    node_id: int = typer.Argument(..., help="Node ID."),
) -> None:
    """List the validation types and branch actions available for a question."""
    session = open_active_session()
    node = session.graph.find_node(node_id)
    if node is None:
        typer.echo(f"❌ Node not found: {node_id}")
        raise typer.Exit(code=1)

    def _show(title: str, current: str, vocabulary) -> None:
        typer.echo(f"{title}:")
        for choice in selection_choices(current, vocabulary):
            marker = "*" if choice == current else " "
            typer.echo(f"  {marker} {choice}")

    _show("Validation", node.validation_type, VALIDATION_TYPES)
    _show("Success action", node.on_success.action, SUCCESS_ACTIONS)
    _show("Error action", node.on_error.action, ERROR_ACTIONS)
