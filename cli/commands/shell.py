"""Interactive editing shell for the active document.

Unlike the one-shot ``node`` commands, the shell keeps one session open, so
undo/redo and the clipboard work across commands.  Changes are written only
on ``save`` (or when confirming on ``quit``).
"""

from __future__ import annotations

import shlex
from typing import Callable

import typer

from chatflow.flow import BranchKind, FlowSession
from chatflow.flow.errors import FlowError
from chatflow.flow.integrity import check_graph
from chatflow.flow.linking import LinkDrag, unlink
from cli.commands.node import update_branch, update_node
from cli.context import open_active_session, require_document, save_session
from cli.rendering import node_title, render_list, render_tree

_HELP = """Commands:
  add X Y              add a question
  del ID | cut ID      delete (or cut) a question
  copy ID              copy a question to the clipboard
  paste X Y            paste the clipboard at (X, Y)
  move ID DX DY        move a question by an offset
  resize ID W H        resize a question
  link ID success|error TARGET
  unlink ID success|error
  entry ID             set the entry question
  set ID message|type|condition|script VALUE
  branch ID success|error message|action|value VALUE
  undo | redo
  show | list | check
  save | quit"""

_NODE_FIELDS = {
    "message": "message",
    "type": "validation_type",
    "condition": "condition",
    "script": "script",
}
_BRANCH_FIELDS = ("message", "action", "value")


class _Shell:
    def __init__(self, session: FlowSession) -> None:
        self.session = session
        self.graph = session.graph
        self.commands: dict[str, Callable[..., None]] = {
            "add": self.add,
            "del": self.delete,
            "cut": self.cut,
            "copy": self.copy,
            "paste": self.paste,
            "move": self.move,
            "resize": self.resize,
            "link": self.link,
            "unlink": self.unlink,
            "entry": self.entry,
            "set": self.set_field,
            "branch": self.set_branch_field,
            "undo": self.undo,
            "redo": self.redo,
            "show": lambda: typer.echo(render_tree(self.graph)),
            "list": lambda: typer.echo(render_list(self.graph)),
            "check": self.check,
            "save": self.save,
            "help": lambda: typer.echo(_HELP),
        }

    def run_line(self, line: str) -> None:
        try:
            words = shlex.split(line)
        except ValueError as exc:
            typer.echo(f"❌ {exc}")
            return
        if not words:
            return
        name, args = words[0], words[1:]
        handler = self.commands.get(name)
        if handler is None:
            typer.echo(f"Unknown command {name!r}. Type 'help'.")
            return
        try:
            handler(*args)
        except TypeError:
            typer.echo(f"Wrong arguments for {name!r}. Type 'help'.")
        except (ValueError, FlowError) as exc:
            typer.echo(f"❌ {exc}")

    def add(self, x: str, y: str) -> None:
        node = self.graph.create_node(int(x), int(y))
        typer.echo(f"✅ Added {node_title(node)}")

    def delete(self, node_id: str) -> None:
        self.graph.delete_node(int(node_id))
        typer.echo(f"✅ Deleted #{node_id}")

    def cut(self, node_id: str) -> None:
        self.session.cut(int(node_id))
        typer.echo(f"✂️  Cut #{node_id}")

    def copy(self, node_id: str) -> None:
        self.session.copy(int(node_id))
        typer.echo(f"📋 Copied #{node_id}")

    def paste(self, x: str, y: str) -> None:
        node = self.session.paste((int(x), int(y)))
        typer.echo(f"✅ Pasted {node_title(node)}")

    def move(self, node_id: str, dx: str, dy: str) -> None:
        self.graph.move_node(int(node_id), int(dx), int(dy))

    def resize(self, node_id: str, width: str, height: str) -> None:
        self.graph.resize_node(int(node_id), int(width), int(height))

    def link(self, node_id: str, which: str, target: str) -> None:
        drag = LinkDrag(self.graph, int(node_id), which)
        if drag.finish(int(target)):
            typer.echo(f"🔗 #{node_id} --[{which}]--> #{target}")
        else:
            typer.echo(f"❌ Cannot link #{node_id} to #{target}.")

    def unlink(self, node_id: str, which: str) -> None:
        if unlink(self.graph, int(node_id), which, confirm=lambda: True):
            typer.echo(f"✅ #{node_id} {which} link removed.")
        else:
            typer.echo("Nothing removed.")

    def entry(self, node_id: str) -> None:
        self.graph.set_entry(int(node_id))

    def set_field(self, node_id: str, field: str, value: str) -> None:
        if field not in _NODE_FIELDS:
            raise ValueError(f"Unknown field {field!r}. Use: {' | '.join(_NODE_FIELDS)}")
        update_node(self.graph, int(node_id), **{_NODE_FIELDS[field]: value})
        typer.echo(f"✅ Node #{node_id} updated.")

    def set_branch_field(self, node_id: str, which: str, field: str, value: str) -> None:
        kind = BranchKind(which.lower())
        if field not in _BRANCH_FIELDS:
            raise ValueError(f"Unknown field {field!r}. Use: {' | '.join(_BRANCH_FIELDS)}")
        update_branch(self.graph, int(node_id), kind, **{field: value})
        typer.echo(f"✅ Node #{node_id} {kind.value} branch updated.")

    def undo(self) -> None:
        typer.echo("↶ Undone." if self.graph.undo() else "Nothing to undo.")

    def redo(self) -> None:
        typer.echo("↷ Redone." if self.graph.redo() else "Nothing to redo.")

    def check(self) -> None:
        issues = check_graph(self.graph)
        if not issues:
            typer.echo("✅ No issues found.")
        for issue in issues:
            typer.echo(str(issue))

    def save(self) -> None:
        self.session.save()
        typer.echo(f"💾 Saved {self.session.title}")


@require_document
def shell() -> None:
    """Edit the active document interactively."""
    session = open_active_session()
    runner = _Shell(session)
    typer.echo(f"Editing {session.title}. Type 'help' for commands.")

    while True:
        line = typer.prompt(">", default="", show_default=False, prompt_suffix=" ")
        if line.strip() in ("quit", "exit"):
            break
        runner.run_line(line)

    if session.modified and typer.confirm("Save changes?", default=True):
        save_session(session)
        typer.echo(f"💾 Saved {session.title}")
