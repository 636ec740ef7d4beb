"""Query filters: field-path conditions evaluated against a document.

A filter maps a dotted field path to a condition:

    {"age": 30}                         # literal equality
    {"status": ["open", "pending"]}     # membership
    {"age": {"$gte": 18, "$lt": 65}}    # operator object, AND-combined

Supported operators: $eq $ne $gt $gte $lt $lte $in $nin $exists. Unknown keys
inside an operator object are ignored. Composite operators ($and, $or, $not,
$nor, $where, $elemMatch, $size) are not supported.
"""

from __future__ import annotations

import operator
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable, Union


class _Missing:
    """Value of a field path that does not exist in the document."""

    _instance: _Missing | None = None

    def __new__(cls) -> _Missing:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING = _Missing()


# ── Condition variants ───────────────────────────────────────


@dataclass(frozen=True)
class Literal:
    value: Any


@dataclass(frozen=True)
class Membership:
    values: tuple


@dataclass(frozen=True)
class Operators:
    ops: tuple[tuple[str, Any], ...]


Condition = Union[Literal, Membership, Operators]


def parse_condition(value: Any) -> Condition:
    """Classify a raw filter value into one of the condition variants."""
    if isinstance(value, Mapping) and any(str(k).startswith("$") for k in value):
        return Operators(tuple((k, v) for k, v in value.items() if k in OPERATORS))
    if isinstance(value, (list, tuple)):
        return Membership(tuple(value))
    return Literal(value)


# ── Path resolution ──────────────────────────────────────────


def resolve_path(document: Any, path: str) -> Any:
    """Walk a dotted path through nested mappings and lists.

    List elements are addressed by decimal index ("tags.0"). Returns MISSING
    when any segment is absent.
    """
    current = document
    for part in path.split("."):
        if isinstance(current, Mapping):
            if part not in current:
                return MISSING
            current = current[part]
        elif isinstance(current, list) and part.isdigit():
            index = int(part)
            if index >= len(current):
                return MISSING
            current = current[index]
        else:
            return MISSING
    return current


# ── Comparisons ──────────────────────────────────────────────


def strict_equal(a: Any, b: Any) -> bool:
    """Equality without bool/number coercion."""
    if a is MISSING or b is MISSING:
        return a is b
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b
    if _is_number(a) and _is_number(b):
        return a == b
    if type(a) is not type(b):
        if isinstance(a, Mapping) and isinstance(b, Mapping):
            return _mapping_equal(a, b)
        if isinstance(a, (list, tuple)) and isinstance(b, (list, tuple)):
            return _sequence_equal(a, b)
        return False
    if isinstance(a, Mapping):
        return _mapping_equal(a, b)
    if isinstance(a, (list, tuple)):
        return _sequence_equal(a, b)
    return a == b


def _mapping_equal(a: Mapping, b: Mapping) -> bool:
    if a.keys() != b.keys():
        return False
    return all(strict_equal(a[k], b[k]) for k in a)


def _sequence_equal(a, b) -> bool:
    return len(a) == len(b) and all(strict_equal(x, y) for x, y in zip(a, b))


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _ordered(compare: Callable[[Any, Any], bool]) -> Callable[[Any, Any], bool]:
    """Lift a comparison so that only number/number and str/str pairs can match."""

    def check(value: Any, operand: Any) -> bool:
        if _is_number(value) and _is_number(operand):
            return compare(value, operand)
        if isinstance(value, str) and isinstance(operand, str):
            return compare(value, operand)
        return False

    return check


def _contains(values: Any, value: Any) -> bool:
    return any(strict_equal(value, v) for v in values)


def _in(value: Any, operand: Any) -> bool:
    return isinstance(operand, (list, tuple)) and _contains(operand, value)


def _nin(value: Any, operand: Any) -> bool:
    return not _in(value, operand)


def _exists(value: Any, operand: Any) -> bool:
    return (value is not MISSING) if operand else (value is MISSING)


OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    "$eq": strict_equal,
    "$ne": lambda value, operand: not strict_equal(value, operand),
    "$gt": _ordered(operator.gt),
    "$gte": _ordered(operator.ge),
    "$lt": _ordered(operator.lt),
    "$lte": _ordered(operator.le),
    "$in": _in,
    "$nin": _nin,
    "$exists": _exists,
}


# ── Evaluation ───────────────────────────────────────────────


def evaluate(value: Any, condition: Condition) -> bool:
    """Evaluate one resolved field value against a parsed condition."""
    if isinstance(condition, Operators):
        return all(OPERATORS[name](value, operand) for name, operand in condition.ops)
    if isinstance(condition, Membership):
        return _contains(condition.values, value)
    return strict_equal(value, condition.value)


def matches(document: Mapping[str, Any], filter: Mapping[str, Any] | None) -> bool:
    """Return True when every field condition in `filter` holds for `document`."""
    if not filter:
        return True
    for path, raw in filter.items():
        if not evaluate(resolve_path(document, path), parse_condition(raw)):
            return False
    return True


class FilterEvaluator:
    """Compiled filter: conditions are parsed once and reused per document."""

    def __init__(self, filter: Mapping[str, Any] | None) -> None:
        self._conditions = [
            (path, parse_condition(raw)) for path, raw in (filter or {}).items()
        ]

    def __call__(self, document: Mapping[str, Any]) -> bool:
        return self.matches(document)

    def matches(self, document: Mapping[str, Any]) -> bool:
        for path, condition in self._conditions:
            if not evaluate(resolve_path(document, path), condition):
                return False
        return True
