"""Link drawing between nodes.

Linking a node's success or error output to another node is a
press-drag-release gesture owned by the editing surface.  Its only effect on
the graph is a single :meth:`FlowGraph.set_branch` call when the gesture ends
on a valid, distinct target; anything else leaves the graph and its history
untouched.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from chatflow.flow.graph import FlowGraph
from chatflow.flow.models import Branch, BranchKind

logger = logging.getLogger(__name__)


class LinkDrag:
    """One in-progress link gesture starting at ``source_id``'s *which* output."""

    def __init__(self, graph: FlowGraph, source_id: int, which: BranchKind | str) -> None:
        graph.get_node(source_id)
        self.graph = graph
        self.source_id = source_id
        self.which = BranchKind(which)
        self.active = True

    def finish(self, target_id: Optional[int]) -> bool:
        """Release over *target_id* (``None`` when over empty canvas).

        Returns:
            ``True`` if the link was set, ``False`` if the gesture was
            discarded.
        """
        if not self.active:
            return False
        self.active = False
        if target_id is None or target_id == self.source_id or target_id not in self.graph:
            logger.debug("Discarded link gesture from node %d", self.source_id)
            return False
        source = self.graph.get_node(self.source_id)
        branch = source.branch(self.which).copy()
        branch.move_to = target_id
        self.graph.set_branch(self.source_id, self.which, branch)
        return True

    def cancel(self) -> None:
        self.active = False


def unlink(
    graph: FlowGraph,
    source_id: int,
    which: BranchKind | str,
    confirm: Callable[[], bool],
) -> bool:
    """Remove an existing link after the user confirms.

    Returns:
        ``True`` if the branch was cleared.  Nothing happens when the branch
        has no link or *confirm* returns false.
    """
    node = graph.get_node(source_id)
    if not node.branch(which).is_linked:
        return False
    if not confirm():
        return False
    graph.set_branch(source_id, which, Branch())
    return True
