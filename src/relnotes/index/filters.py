"""Metadata filter predicates for index lookups and queries.

A filter is a mapping. ``$and`` / ``$or`` take a list of filters. Any other
key names a metadata field; its value is either a literal (implicit
``$eq``) or an operator mapping such as ``{"$gte": 3, "$lt": 10}``.

Field operators:
    $eq, $ne         equality / inequality
    $gt, $gte,
    $lt, $lte        ordering, numbers only
    $in, $nin        membership in a list

A field missing from an entry's metadata never satisfies a field condition.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

MetadataValue = int | float | str | bool
Metadata = Mapping[str, MetadataValue]
MetadataFilter = Mapping[str, Any]

_MISSING = object()


def _is_number(value: Any) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


def _ordered(cmp: Callable[[float, float], bool]) -> Callable[[Any, Any], bool]:
    def check(value: Any, operand: Any) -> bool:
        return _is_number(value) and _is_number(operand) and cmp(value, operand)

    return check


def _in(value: Any, operand: Any) -> bool:
    return isinstance(operand, list | tuple | set | frozenset) and value in operand


_FIELD_OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    "$eq": lambda value, operand: value == operand,
    "$ne": lambda value, operand: value != operand,
    "$gt": _ordered(lambda a, b: a > b),
    "$gte": _ordered(lambda a, b: a >= b),
    "$lt": _ordered(lambda a, b: a < b),
    "$lte": _ordered(lambda a, b: a <= b),
    "$in": _in,
    "$nin": lambda value, operand: not _in(value, operand),
}


def _match_field(value: Any, condition: Any) -> bool:
    if value is _MISSING:
        return False
    if not isinstance(condition, Mapping):
        return bool(value == condition)
    for op, operand in condition.items():
        check = _FIELD_OPERATORS.get(op)
        if check is None:
            raise ValueError(f"Unknown filter operator: {op}")
        if not check(value, operand):
            return False
    return True


def matches(metadata: Metadata, flt: MetadataFilter | None) -> bool:
    """Evaluate ``flt`` against one entry's metadata.

    An empty or ``None`` filter matches everything.

    Raises:
        ValueError: If the filter uses an unknown ``$`` operator.
    """
    if not flt:
        return True
    for key, condition in flt.items():
        if key == "$and":
            if not all(matches(metadata, sub) for sub in condition):
                return False
        elif key == "$or":
            if not any(matches(metadata, sub) for sub in condition):
                return False
        elif key.startswith("$"):
            raise ValueError(f"Unknown filter operator: {key}")
        elif not _match_field(metadata.get(key, _MISSING), condition):
            return False
    return True
