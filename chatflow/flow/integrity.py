"""Graph-wide consistency checks.

Structural operations keep the graph consistent on their own; these checks
matter for graphs that came from a document (possibly hand-edited or written
by another tool) and for the parts the graph does not police, such as
condition payloads and matching-list targets.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from chatflow.flow.errors import ConditionError
from chatflow.flow.graph import FlowGraph
from chatflow.flow.models import BranchKind
from chatflow.flow.taxonomy import (
    ERROR_ACTIONS,
    SUCCESS_ACTIONS,
    ValidationType,
    is_known_validation,
    parse_matching_list,
    validate_condition,
)


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


@dataclass(frozen=True)
class Issue:
    severity: Severity
    message: str
    node_id: int = 0

    def __str__(self) -> str:
        where = f"node {self.node_id}: " if self.node_id else ""
        return f"[{self.severity.value}] {where}{self.message}"


def check_graph(graph: FlowGraph) -> list[Issue]:
    """Return every issue found in *graph*, errors and warnings mixed, by node id."""
    issues: list[Issue] = []

    if graph.entry_id == 0:
        if len(graph):
            issues.append(Issue(Severity.ERROR, "Entry node is not set"))
    elif graph.entry_id not in graph:
        issues.append(
            Issue(Severity.ERROR, f"Entry node {graph.entry_id} does not exist")
        )

    for node in graph.nodes():
        issues.extend(_check_node(graph, node))
    return issues


def has_errors(issues: list[Issue]) -> bool:
    return any(i.severity is Severity.ERROR for i in issues)


def _check_node(graph: FlowGraph, node) -> list[Issue]:
    issues: list[Issue] = []

    for which, allowed in ((BranchKind.SUCCESS, SUCCESS_ACTIONS), (BranchKind.ERROR, ERROR_ACTIONS)):
        branch = node.branch(which)
        if branch.move_to < 0:
            issues.append(Issue(
                Severity.ERROR, f"{which.value} branch has negative target {branch.move_to}", node.id,
            ))
        elif branch.is_linked and branch.move_to not in graph:
            issues.append(Issue(
                Severity.ERROR, f"{which.value} branch targets missing node {branch.move_to}", node.id,
            ))
        if branch.action not in allowed:
            issues.append(Issue(
                Severity.WARNING, f"{which.value} branch has unrecognised action {branch.action!r}", node.id,
            ))

    if not is_known_validation(node.validation_type):
        issues.append(Issue(
            Severity.WARNING, f"Unrecognised validation type {node.validation_type!r}", node.id,
        ))
        return issues

    try:
        validate_condition(node.validation_type, node.validation_condition)
    except ConditionError as exc:
        issues.append(Issue(Severity.ERROR, str(exc), node.id))
        return issues

    if (
        ValidationType.classify(node.validation_type) is ValidationType.MATCHING_LIST
        and node.validation_condition
    ):
        for entry in parse_matching_list(node.validation_condition):
            if entry.is_node and entry.target not in graph:
                issues.append(Issue(
                    Severity.WARNING,
                    f"Matching list entry {entry.label!r} targets missing node {entry.target}",
                    node.id,
                ))
    return issues
