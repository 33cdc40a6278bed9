"""Flow graph package.

Public re-exports so callers can write::

    from chatflow.flow import FlowGraph, FlowSession, codec
"""

from chatflow.flow import codec
from chatflow.flow.errors import (
    ConditionError,
    DocumentBusyError,
    DocumentParseError,
    DocumentWriteError,
    FlowError,
    InvalidReference,
)
from chatflow.flow.graph import FlowGraph
from chatflow.flow.history import CommandStack, HistoryEntry, Operation
from chatflow.flow.models import Branch, BranchKind, Geometry, Node
from chatflow.flow.session import FlowSession

__all__ = [
    "codec",
    "FlowGraph",
    "FlowSession",
    "CommandStack",
    "HistoryEntry",
    "Operation",
    "Node",
    "Branch",
    "BranchKind",
    "Geometry",
    "FlowError",
    "InvalidReference",
    "ConditionError",
    "DocumentParseError",
    "DocumentWriteError",
    "DocumentBusyError",
]
