"""Validation and action vocabularies of a flow graph.

The graph stores validation types and branch actions as raw strings so
that documents written by newer tools still load and save unchanged.  This
module classifies those strings into enums (with an ``UNKNOWN`` variant for
anything unrecognised) and parses the rule-specific condition payloads.

Condition payload formats
-------------------------
``number:interval``   ``"<min>...<max>"`` with ``min <= max``
``text:in_list``      ``"a;b;c"``
``matching_list``     ``"['label', 3]['other', -1]"``, targets are node ids
                      (positive) or :class:`MoveSentinel` values
``matching_values``   ``"['label','value']['label2','value2']"``
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Iterable, Optional

from chatflow.flow.errors import ConditionError

logger = logging.getLogger(__name__)


class ValidationType(str, Enum):
    NOP = "nop"
    TEXT_ANY = "text:any"
    TEXT_EQUAL = "text:equal"
    TEXT_IN_LIST = "text:in_list"
    TEXT_EMAIL = "text:email"
    NUMBER_ANY = "number:any"
    NUMBER_EQUAL = "number:equal"
    NUMBER_INTERVAL = "number:interval"
    BOOLEAN_ANY = "boolean:any"
    MATCHING_LIST = "matching_list"
    MATCHING_VALUES = "matching_values"
    SCRIPT = "script"
    UNKNOWN = "unknown"

    @classmethod
    def classify(cls, tag: str) -> ValidationType:
        """Return the member for *tag*, or ``UNKNOWN`` for unrecognised tags."""
        for member in cls:
            if member is not cls.UNKNOWN and member.value == tag:
                return member
        return cls.UNKNOWN


class BranchAction(str, Enum):
    NOP = "nop"
    USER_LOCALE = "user_locale:user_value"
    VARIABLE_USER_VALUE = "variable:user_value"
    VARIABLE_OPERATION = "variable:operation"
    REPEAT = "repeat"
    SWITCH_TO_AI = "switch_to_ai"
    SWITCH_TO_AGENT = "switch_to_agent"
    RESTART = "restart"
    END = "end"
    UNKNOWN = "unknown"

    @classmethod
    def classify(cls, tag: str) -> BranchAction:
        """Return the member for *tag*, or ``UNKNOWN`` for unrecognised tags."""
        for member in cls:
            if member is not cls.UNKNOWN and member.value == tag:
                return member
        return cls.UNKNOWN


class MoveSentinel(IntEnum):
    """Non-positive matching-list targets that stand for a control action."""

    REPEAT = 0
    END = -1
    RESTART = -2
    SWITCH_TO_AI = -3
    SWITCH_TO_AGENT = -4


# Tags offered by selection controls, in display order.
VALIDATION_TYPES: tuple[str, ...] = tuple(
    m.value for m in ValidationType if m is not ValidationType.UNKNOWN
)
SUCCESS_ACTIONS: tuple[str, ...] = tuple(
    m.value for m in BranchAction if m is not BranchAction.UNKNOWN
)
# The error branch cannot switch the user locale.
ERROR_ACTIONS: tuple[str, ...] = tuple(
    a for a in SUCCESS_ACTIONS if a != BranchAction.USER_LOCALE.value
)


def is_known_validation(tag: str) -> bool:
    return ValidationType.classify(tag) is not ValidationType.UNKNOWN


def selection_choices(current: str, vocabulary: Iterable[str]) -> list[str]:
    """Return the options a selection control should present.

    An unknown *current* value is kept (appended last) so that showing the
    control does not silently drop it, and a warning is logged.
    """
    choices = list(vocabulary)
    if current and current not in choices:
        logger.warning("Presenting unrecognised tag %r; it is kept as-is", current)
        choices.append(current)
    return choices


# ---------------------------------------------------------------------------
# Condition payloads
# ---------------------------------------------------------------------------

_LIST_GROUP = re.compile(r"\['([^']*)'\s*,\s*(-?\d+)\]")
_LIST_FULL = re.compile(r"^(?:\['[^']*'\s*,\s*-?\d+\])+$")
_VALUES_GROUP = re.compile(r"\['([^']*)'\s*,\s*'([^']*)'\]")
_VALUES_FULL = re.compile(r"^(?:\['[^']*'\s*,\s*'[^']*'\])+$")
_INTERVAL_SEPARATOR = "..."


@dataclass(frozen=True)
class MatchingEntry:
    label: str
    target: int

    @property
    def is_node(self) -> bool:
        """True when the target is a node id rather than a sentinel."""
        return self.target > 0

    @property
    def sentinel(self) -> Optional[MoveSentinel]:
        if self.is_node:
            return None
        try:
            return MoveSentinel(self.target)
        except ValueError:
            return None


@dataclass(frozen=True)
class MatchingValue:
    label: str
    value: str


def parse_matching_list(condition: str) -> list[MatchingEntry]:
    """Parse a ``matching_list`` payload.

    >>> parse_matching_list("['yes',2]['no',0]")
    [MatchingEntry(label='yes', target=2), MatchingEntry(label='no', target=0)]

    Raises:
        ConditionError: If the payload is not a sequence of ``['label', n]``
            groups or a target is below the lowest sentinel.
    """
    text = condition.strip()
    if not _LIST_FULL.match(text):
        raise ConditionError(f"Invalid matching list: {condition!r}")
    entries = [
        MatchingEntry(label=label, target=int(target))
        for label, target in _LIST_GROUP.findall(text)
    ]
    for entry in entries:
        if entry.target < MoveSentinel.SWITCH_TO_AGENT:
            raise ConditionError(
                f"Invalid matching list target {entry.target} for {entry.label!r}"
            )
    return entries


def parse_matching_values(condition: str) -> list[MatchingValue]:
    """Parse a ``matching_values`` payload into label/value pairs."""
    text = condition.strip()
    if not _VALUES_FULL.match(text):
        raise ConditionError(f"Invalid matching values: {condition!r}")
    return [
        MatchingValue(label=label, value=value)
        for label, value in _VALUES_GROUP.findall(text)
    ]


def parse_interval(condition: str) -> tuple[float, float]:
    """Parse a ``number:interval`` payload into ``(min, max)``."""
    parts = condition.split(_INTERVAL_SEPARATOR)
    if len(parts) != 2:
        raise ConditionError(f"Invalid interval: {condition!r}")
    try:
        low, high = float(parts[0]), float(parts[1])
    except ValueError as exc:
        raise ConditionError(f"Invalid interval: {condition!r}") from exc
    if low > high:
        raise ConditionError(f"Interval minimum exceeds maximum: {condition!r}")
    return low, high


def parse_in_list(condition: str) -> list[str]:
    """Split a ``text:in_list`` payload on ``;``."""
    if ";" not in condition:
        raise ConditionError(f"In-list condition needs ';' separators: {condition!r}")
    return condition.split(";")


def _is_number(text: str) -> bool:
    try:
        float(text)
    except ValueError:
        return False
    return True


def validate_condition(validation_type: str, condition: str) -> None:
    """Check *condition* against the rules of *validation_type*.

    Empty conditions are always accepted, as are conditions for types
    without a payload grammar (including unknown types).

    Raises:
        ConditionError: If the payload is invalid for the type.
    """
    if not condition:
        return
    kind = ValidationType.classify(validation_type)
    if kind is ValidationType.MATCHING_LIST:
        parse_matching_list(condition)
    elif kind is ValidationType.MATCHING_VALUES:
        parse_matching_values(condition)
    elif kind is ValidationType.NUMBER_INTERVAL:
        parse_interval(condition)
    elif kind is ValidationType.TEXT_IN_LIST:
        parse_in_list(condition)
    elif kind in (ValidationType.NUMBER_ANY, ValidationType.NUMBER_EQUAL):
        if not _is_number(condition):
            raise ConditionError(f"Condition must be a number: {condition!r}")
