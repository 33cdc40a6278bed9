"""Dataclass models of a conversation flow.

These are plain Python objects.  The graph owns them in an arena keyed by
node id; every cross-reference between nodes (``Branch.move_to``) is an id,
never an object reference.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import Enum

DEFAULT_NODE_MESSAGE = "New question"
DEFAULT_NODE_WIDTH = 100
DEFAULT_NODE_HEIGHT = 100
NO_LINK = 0


class BranchKind(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


@dataclass
class Branch:
    message: str = ""
    action: str = "nop"
    value: str = ""
    move_to: int = NO_LINK

    @property
    def is_linked(self) -> bool:
        return self.move_to != NO_LINK

    def copy(self) -> Branch:
        return Branch(self.message, self.action, self.value, self.move_to)


@dataclass
class Geometry:
    x: int = 0
    y: int = 0
    width: int = DEFAULT_NODE_WIDTH
    height: int = DEFAULT_NODE_HEIGHT

    def copy(self) -> Geometry:
        return Geometry(self.x, self.y, self.width, self.height)


@dataclass
class Node:
    id: int
    message: str = DEFAULT_NODE_MESSAGE
    validation_type: str = "nop"
    validation_condition: str = ""
    script: str = ""
    on_success: Branch = field(default_factory=Branch)
    on_error: Branch = field(default_factory=Branch)
    geometry: Geometry = field(default_factory=Geometry)

    # ------------------------------------------------------------------
    # Convenience helpers
    # ------------------------------------------------------------------
    def branch(self, which: BranchKind | str) -> Branch:
        return self.on_success if BranchKind(which) is BranchKind.SUCCESS else self.on_error

    def set_branch(self, which: BranchKind | str, branch: Branch) -> None:
        if BranchKind(which) is BranchKind.SUCCESS:
            self.on_success = branch
        else:
            self.on_error = branch

    def targets(self) -> set[int]:
        """Ids this node links to through its branches."""
        return {b.move_to for b in (self.on_success, self.on_error) if b.is_linked}

    def copy(self) -> Node:
        """Deep copy, used for history snapshots and clipboard fragments."""
        return copy.deepcopy(self)

    def copy_content_from(self, other: Node) -> None:
        """Take message, validation and branches from *other* (not id or geometry)."""
        self.message = other.message
        self.validation_type = other.validation_type
        self.validation_condition = other.validation_condition
        self.script = other.script
        self.on_success = other.on_success.copy()
        self.on_error = other.on_error.copy()

