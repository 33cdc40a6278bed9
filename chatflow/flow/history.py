"""Undo/redo command stack for a flow graph.

Each structural edit pushes one :class:`HistoryEntry` holding a deep copy of
what the edit is about to overwrite.  Undo and redo apply the inverse (or
forward) effect by *swapping* the live state with the stored snapshot, so the
same entry can travel back and forth between the two stacks indefinitely.

Snapshots per operation
-----------------------
CREATE / PASTE / DELETE / CUT   the whole :class:`Node`
EDIT                            the whole :class:`Node` (content is swapped)
MOVE / RESIZE                   the prior :class:`Geometry`
SUCCESS_CHANGED / ERROR_CHANGED the prior :class:`Branch`

Undoing a delete restores the node (and so the targets of its own
branches) but not the links other nodes lost in the delete's cascade.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Union

from chatflow.flow.models import Branch, BranchKind, Geometry, Node

if TYPE_CHECKING:
    from chatflow.flow.graph import FlowGraph

logger = logging.getLogger(__name__)


class Operation(str, Enum):
    CREATE = "create"
    DELETE = "delete"
    CUT = "cut"
    PASTE = "paste"
    MOVE = "move"
    RESIZE = "resize"
    EDIT = "edit"
    SUCCESS_CHANGED = "success_changed"
    ERROR_CHANGED = "error_changed"


_INSERTING = (Operation.CREATE, Operation.PASTE)
_REMOVING = (Operation.DELETE, Operation.CUT)

Snapshot = Union[Node, Geometry, Branch]


@dataclass
class HistoryEntry:
    operation: Operation
    node_id: int
    snapshot: Snapshot
    # Graph entry id on the other side of this entry; only used by
    # operations that add or remove nodes.
    entry_id: int = 0


class CommandStack:
    """Two unbounded stacks giving linear undo/redo history."""

    def __init__(self) -> None:
        self._undo: list[HistoryEntry] = []
        self._redo: list[HistoryEntry] = []

    @property
    def can_undo(self) -> bool:
        return bool(self._undo)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo)

    @property
    def undo_depth(self) -> int:
        return len(self._undo)

    @property
    def redo_depth(self) -> int:
        return len(self._redo)

    def peek_undo(self) -> HistoryEntry | None:
        return self._undo[-1] if self._undo else None

    def peek_redo(self) -> HistoryEntry | None:
        return self._redo[-1] if self._redo else None

    def record(
        self,
        operation: Operation,
        node_id: int,
        snapshot: Snapshot,
        entry_id: int = 0,
    ) -> HistoryEntry:
        """Push a new entry and drop the redo history."""
        entry = HistoryEntry(operation, node_id, snapshot, entry_id)
        self._undo.append(entry)
        self._redo.clear()
        logger.debug("Recorded %s on node %d", operation.value, node_id)
        return entry

    def clear(self) -> None:
        self._undo.clear()
        self._redo.clear()

    def undo(self, graph: FlowGraph) -> bool:
        """Revert the most recent edit.  Returns ``False`` when there is none."""
        if not self._undo:
            logger.debug("Nothing to undo")
            return False
        entry = self._undo.pop()
        _apply(graph, entry, forward=False)
        self._redo.append(entry)
        return True

    def redo(self, graph: FlowGraph) -> bool:
        """Re-apply the most recently undone edit.  Returns ``False`` when there is none."""
        if not self._redo:
            logger.debug("Nothing to redo")
            return False
        entry = self._redo.pop()
        _apply(graph, entry, forward=True)
        self._undo.append(entry)
        return True


def _apply(graph: FlowGraph, entry: HistoryEntry, forward: bool) -> None:
    op = entry.operation
    logger.debug("%s %s on node %d", "Redo" if forward else "Undo", op.value, entry.node_id)

    if op in _INSERTING or op in _REMOVING:
        # Undoing an insertion and redoing a removal both take the node out.
        if (op in _INSERTING) != forward:
            entry.snapshot = graph.find_node(entry.node_id).copy()
            graph._remove(entry.node_id, cascade=op in _REMOVING)
        else:
            graph._insert(entry.snapshot.copy())
        entry.entry_id, graph.entry_id = graph.entry_id, entry.entry_id
        graph._repair_entry()
        return

    # The remaining operations are self-inverse swaps.
    node = graph.find_node(entry.node_id)
    if op is Operation.EDIT:
        current = node.copy()
        node.copy_content_from(entry.snapshot)
        entry.snapshot = current
    elif op is Operation.MOVE:
        prior = entry.snapshot
        entry.snapshot = node.geometry.copy()
        node.geometry.x, node.geometry.y = prior.x, prior.y
    elif op is Operation.RESIZE:
        prior = entry.snapshot
        entry.snapshot = node.geometry.copy()
        node.geometry.width, node.geometry.height = prior.width, prior.height
    else:
        which = BranchKind.SUCCESS if op is Operation.SUCCESS_CHANGED else BranchKind.ERROR
        current = node.branch(which).copy()
        node.set_branch(which, entry.snapshot.copy())
        entry.snapshot = current
