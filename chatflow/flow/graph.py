"""The conversation flow graph and its structural operations.

A :class:`FlowGraph` is an arena of :class:`~chatflow.flow.models.Node`
objects keyed by integer id, plus the bot-level metadata saved with it.
Every structural operation pushes exactly one entry onto the graph's
:class:`~chatflow.flow.history.CommandStack`.

Invariants maintained here:

* node ids are unique and never reused within the graph's lifetime;
* a branch target is ``0`` or the id of a node in the graph;
* ``entry_id`` names a node, and is ``0`` only when the graph is empty.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, Optional, Sequence

from chatflow.flow.errors import DocumentBusyError, InvalidReference
from chatflow.flow.history import CommandStack, Operation
from chatflow.flow.models import NO_LINK, Branch, BranchKind, Geometry, Node

logger = logging.getLogger(__name__)


class FlowGraph:
    def __init__(self, locale: str = "") -> None:
        self._nodes: dict[int, Node] = {}
        self._next_id = 1
        self._busy = False
        self.entry_id = 0
        self.locale = locale
        self.model_name = ""
        self.model_guidelines = ""
        self.model_script = ""
        self.params: dict[str, str] = {}
        self.modified = False
        self.history = CommandStack()

    # ------------------------------------------------------------------
    # Read accessors
    # ------------------------------------------------------------------
    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def __iter__(self) -> Iterator[Node]:
        return iter(self.nodes())

    @property
    def next_id(self) -> int:
        return self._next_id

    @property
    def busy(self) -> bool:
        return self._busy

    def get_node(self, node_id: int) -> Node:
        """Return the node with *node_id*.

        Raises:
            InvalidReference: If no such node exists.
        """
        node = self._nodes.get(node_id)
        if node is None:
            raise InvalidReference(node_id)
        return node

    def find_node(self, node_id: int) -> Optional[Node]:
        """Return the node with *node_id*, or ``None``."""
        return self._nodes.get(node_id)

    def all_node_ids(self) -> list[int]:
        return sorted(self._nodes)

    def nodes(self) -> list[Node]:
        """All nodes in id order."""
        return [self._nodes[i] for i in sorted(self._nodes)]

    def referrers(self, node_id: int) -> list[tuple[Node, BranchKind]]:
        """Return ``(node, branch)`` pairs whose branch targets *node_id*."""
        found = []
        for node in self.nodes():
            for which in BranchKind:
                if node.branch(which).move_to == node_id:
                    found.append((node, which))
        return found

    # ------------------------------------------------------------------
    # Structural operations
    # ------------------------------------------------------------------
    def create_node(self, x: int, y: int) -> Node:
        """Add a default node at ``(x, y)`` and return it."""
        self._ensure_editable()
        node = Node(id=self._allocate_id(), geometry=Geometry(x, y))
        self._insert(node)
        self.history.record(Operation.CREATE, node.id, node.copy(), self._adopt_entry(node.id))
        self._touch()
        logger.debug("Created node %d at (%d, %d)", node.id, x, y)
        return node

    def delete_node(self, node_id: int) -> None:
        """Remove a node, clearing every branch that pointed at it.

        Deleting an id that is not in the graph does nothing.
        """
        self._delete(node_id, Operation.DELETE)

    def cut_node(self, node_id: int) -> Optional[Node]:
        """Delete a node as a cut and return its snapshot (``None`` if absent)."""
        return self._delete(node_id, Operation.CUT)

    def move_node(self, node_id: int, dx: int, dy: int) -> None:
        """Offset a node's position by ``(dx, dy)``."""
        self._ensure_editable()
        node = self.get_node(node_id)
        self.history.record(Operation.MOVE, node_id, node.geometry.copy())
        node.geometry.x += dx
        node.geometry.y += dy
        self._touch()

    def resize_node(self, node_id: int, width: int, height: int) -> None:
        self._ensure_editable()
        node = self.get_node(node_id)
        self.history.record(Operation.RESIZE, node_id, node.geometry.copy())
        node.geometry.width = width
        node.geometry.height = height
        self._touch()

    def edit_node(self, node_id: int, data: Node) -> None:
        """Replace message, validation and both branches of a node with *data*'s.

        The id and geometry of the edited node are kept.

        Raises:
            InvalidReference: If the node, or a branch target *data* changes
                to, is not in the graph.  Targets left as they are pass even
                when they dangle.
        """
        self._ensure_editable()
        node = self.get_node(node_id)
        for which in BranchKind:
            self._check_changed_target(node, which, data.branch(which).move_to)
        self.history.record(Operation.EDIT, node_id, node.copy())
        node.copy_content_from(data)
        self._touch()
        logger.debug("Edited node %d", node_id)

    def set_branch(self, node_id: int, which: BranchKind | str, branch: Branch) -> None:
        """Replace one branch of a node.

        Raises:
            InvalidReference: If the node, or a changed ``branch.move_to``, is
                not in the graph.
        """
        self._ensure_editable()
        which = BranchKind(which)
        node = self.get_node(node_id)
        self._check_changed_target(node, which, branch.move_to)
        operation = (
            Operation.SUCCESS_CHANGED if which is BranchKind.SUCCESS else Operation.ERROR_CHANGED
        )
        self.history.record(operation, node_id, node.branch(which).copy())
        node.set_branch(which, branch.copy())
        self._touch()
        logger.debug("Node %d %s branch -> %d", node_id, which.value, branch.move_to)

    def duplicate_into(self, data: Node, at: Sequence[int]) -> Node:
        """Insert a copy of *data* under a fresh id with its top-left at *at*.

        Branch targets are kept as they are, not remapped; targets that do
        not exist in this graph are reset to ``0``.
        """
        self._ensure_editable()
        node = data.copy()
        node.id = self._allocate_id()
        node.geometry.x, node.geometry.y = at[0], at[1]
        for branch in (node.on_success, node.on_error):
            if branch.is_linked and branch.move_to not in self._nodes:
                logger.debug("Pasted node %d drops link to missing node %d", node.id, branch.move_to)
                branch.move_to = NO_LINK
        self._insert(node)
        self.history.record(Operation.PASTE, node.id, node.copy(), self._adopt_entry(node.id))
        self._touch()
        return node

    def set_entry(self, node_id: int) -> None:
        """Make *node_id* the conversation's entry node.

        Raises:
            InvalidReference: If the node is not in the graph.
        """
        self._ensure_editable()
        self.get_node(node_id)
        self.entry_id = node_id
        self._touch()

    def clear(self) -> None:
        """Delete every node, one recorded delete per node."""
        for node_id in self.all_node_ids():
            self.delete_node(node_id)

    def set_info(
        self,
        *,
        name: Optional[str] = None,
        locale: Optional[str] = None,
        guidelines: Optional[str] = None,
        script: Optional[str] = None,
        params: Optional[dict[str, str]] = None,
    ) -> None:
        """Update bot-level settings.  Not recorded in the history."""
        self._ensure_editable()
        if name is not None:
            self.model_name = name
        if locale is not None:
            self.locale = locale
        if guidelines is not None:
            self.model_guidelines = guidelines
        if script is not None:
            self.model_script = script
        if params is not None:
            self.params = dict(params)
        self._touch()

    def undo(self) -> bool:
        """Undo the last edit; ``False`` when the history is empty."""
        self._ensure_editable()
        applied = self.history.undo(self)
        if applied:
            self._touch()
        return applied

    def redo(self) -> bool:
        """Redo the last undone edit; ``False`` when there is none."""
        self._ensure_editable()
        applied = self.history.redo(self)
        if applied:
            self._touch()
        return applied

    # ------------------------------------------------------------------
    # Exclusive access
    # ------------------------------------------------------------------
    @contextmanager
    def exclusive(self) -> Iterator[FlowGraph]:
        """Block structural edits for the duration of the ``with`` block.

        Used while a document load or save is in flight.

        Raises:
            DocumentBusyError: If exclusive access is already held.
        """
        if self._busy:
            raise DocumentBusyError("Document is already being loaded or saved")
        self._busy = True
        try:
            yield self
        finally:
            self._busy = False

    # ------------------------------------------------------------------
    # Internal helpers (also used by the history and the codec)
    # ------------------------------------------------------------------
    def _ensure_editable(self) -> None:
        if self._busy:
            raise DocumentBusyError("Document is being loaded or saved; edits are disabled")

    def _touch(self) -> None:
        self.modified = True

    def _allocate_id(self) -> int:
        node_id = self._next_id
        self._next_id += 1
        return node_id

    def _check_target(self, move_to: int) -> None:
        if move_to != NO_LINK and move_to not in self._nodes:
            raise InvalidReference(move_to, f"Branch target not found: {move_to!r}")

    def _check_changed_target(self, node: Node, which: BranchKind, move_to: int) -> None:
        # Loaded documents may hold dangling moves; only new targets must exist.
        if move_to != node.branch(which).move_to:
            self._check_target(move_to)

    def _insert(self, node: Node) -> None:
        self._nodes[node.id] = node
        if node.id >= self._next_id:
            self._next_id = node.id + 1

    def _remove(self, node_id: int, cascade: bool = True) -> None:
        if cascade:
            for other, which in self.referrers(node_id):
                if other.id != node_id:
                    other.set_branch(which, Branch())
                    logger.debug("Detached node %d %s branch from %d", other.id, which.value, node_id)
        del self._nodes[node_id]

    def _adopt_entry(self, node_id: int) -> int:
        """Make *node_id* the entry if there is none; return the prior entry."""
        prior = self.entry_id
        if prior == NO_LINK:
            self.entry_id = node_id
        return prior

    def _repair_entry(self) -> None:
        if self.entry_id not in self._nodes:
            self.entry_id = min(self._nodes) if self._nodes else NO_LINK

    def _delete(self, node_id: int, operation: Operation) -> Optional[Node]:
        self._ensure_editable()
        node = self._nodes.get(node_id)
        if node is None:
            return None
        snapshot = node.copy()
        prior_entry = self.entry_id
        self._remove(node_id)
        self._repair_entry()
        self.history.record(operation, node_id, snapshot.copy(), prior_entry)
        self._touch()
        logger.debug("Deleted node %d (%s)", node_id, operation.value)
        return snapshot
