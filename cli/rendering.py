"""Utilities for rendering flow graphs in the CLI."""

from __future__ import annotations

from chatflow.flow import FlowGraph, Node
from chatflow.flow.models import BranchKind

_MAX_TITLE = 40


def node_title(node: Node) -> str:
    """One-line label for a node: id, validation type and shortened message."""
    message = " ".join(node.message.split())
    if len(message) > _MAX_TITLE:
        message = message[: _MAX_TITLE - 1] + "…"
    return f"#{node.id} ({node.validation_type}) {message}"


def render_tree(graph: FlowGraph) -> str:
    """Render the conversation reachable from the entry node as an ASCII tree.

    Each child line is labelled with the branch it hangs from.  A node that
    was already printed is shown as a back-reference instead of being
    expanded again, so cycles terminate.  Nodes unreachable from the entry
    are listed at the end.
    """
    if not len(graph):
        return "(empty flow)"

    lines: list[str] = []
    visited: set[int] = set()

    def _render_node(node_id: int, relation: str, prefix: str, is_last: bool, is_root: bool):
        node = graph.find_node(node_id)
        connector = "└── " if is_last else "├── "
        label = f"[{relation}] " if relation else ""

        if node is None:
            lines.append(f"{prefix}{connector}{label}⚠ missing #{node_id}")
            return
        if node_id in visited:
            lines.append(f"{prefix}{connector}{label}↺ #{node_id}")
            return
        visited.add(node_id)

        if is_root:
            lines.append(f"▶ {node_title(node)}")
            child_prefix = ""
        else:
            lines.append(f"{prefix}{connector}{label}{node_title(node)}")
            child_prefix = prefix + ("    " if is_last else "│   ")

        children = [
            (node.branch(which).move_to, which.value)
            for which in BranchKind
            if node.branch(which).is_linked
        ]
        count = len(children)
        for i, (child_id, rel) in enumerate(children):
            _render_node(child_id, rel, child_prefix, i == count - 1, False)

    if graph.entry_id in graph:
        _render_node(graph.entry_id, "", "", True, True)
    else:
        lines.append("Entry node not found.")

    orphans = [n for n in graph.nodes() if n.id not in visited]
    if orphans:
        lines.append("")
        lines.append("Unreachable:")
        for node in orphans:
            lines.append(f"  {node_title(node)}")

    return "\n".join(lines)


def render_list(graph: FlowGraph) -> str:
    """Render every node with its branch wiring, one block per node."""
    if not len(graph):
        return "(empty flow)"
    lines = []
    for node in graph.nodes():
        marker = "▶" if node.id == graph.entry_id else " "
        g = node.geometry
        lines.append(f"{marker} {node_title(node)}  @ {g.x},{g.y} {g.width}x{g.height}")
        if node.validation_condition:
            lines.append(f"    condition: {node.validation_condition}")
        for which in BranchKind:
            branch = node.branch(which)
            target = f"-> #{branch.move_to}" if branch.is_linked else "-> (none)"
            lines.append(f"    {which.value:<7} {branch.action:<22} {target}")
    return "\n".join(lines)
