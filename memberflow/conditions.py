"""Condition evaluation against a workflow run context."""

from __future__ import annotations

import json
import operator
from collections.abc import Mapping
from typing import Any, Callable, Dict, Optional, Union

from .contracts import Condition

_MISSING = object()

_COMPARATORS: Dict[str, Callable[[Any, Any], bool]] = {
    "==": operator.eq,
    "!=": operator.ne,
    ">": operator.gt,
    "<": operator.lt,
    ">=": operator.ge,
    "<=": operator.le,
    "contains": lambda actual, expected: _stringify(expected) in _stringify(actual),
}


def _stringify(value: Any) -> str:
    """Render ``value`` the way operators write it in condition values."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, default=str)
    return str(value)


def resolve_path(context: Any, path: str) -> Any:
    """Walk ``context`` along a dot-separated ``path``.

    Returns ``None`` as soon as a segment is missing or the current value is
    not a mapping.
    """
    current = context
    for segment in path.split("."):
        if not isinstance(current, Mapping) or segment not in current:
            return None
        current = current[segment]
    return current


def _unpack(condition: Union[Condition, Mapping]) -> tuple[Any, Any, Any]:
    if isinstance(condition, Condition):
        value = condition.value if "value" in condition.model_fields_set else _MISSING
        return condition.field, condition.operator, value
    return (
        condition.get("field"),
        condition.get("operator"),
        condition.get("value", _MISSING),
    )


def evaluate_condition(
    condition: Optional[Union[Condition, Mapping]], context: Any
) -> bool:
    """Evaluate ``condition`` against ``context``. Never raises.

    A missing condition, or one lacking ``field``/``operator``/``value``, is
    vacuously true. Unknown operators and incomparable operands are false.
    """
    if not condition:
        return True
    if not isinstance(condition, (Condition, Mapping)):
        return False

    field, op, expected = _unpack(condition)
    if not field or not op or expected is _MISSING:
        return True

    comparator = _COMPARATORS.get(op)
    if comparator is None:
        return False

    actual = resolve_path(context, str(field))
    try:
        return bool(comparator(actual, expected))
    except TypeError:
        return False
