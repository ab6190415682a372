"""Field/operator/value condition evaluation over arbitrary nested records.

Used by lead scoring rules, workflow conditions, trigger filters and segment
criteria. Evaluation is total: a missing field, an unknown operator or a
type mismatch yields False instead of raising.
"""
from collections.abc import Mapping
from typing import Any, Iterable

MISSING = object()


def resolve_field(record: Any, path: str) -> Any:
    """Follow a dotted path through mappings and attributes.

    Returns the module sentinel ``MISSING`` when any segment is absent.
    """
    current = record
    for part in path.split("."):
        if current is None:
            return MISSING
        if isinstance(current, Mapping):
            if part not in current:
                return MISSING
            current = current[part]
        elif isinstance(current, (list, tuple)) and part.isdigit():
            index = int(part)
            if index >= len(current):
                return MISSING
            current = current[index]
        else:
            current = getattr(current, part, MISSING)
            if current is MISSING:
                return MISSING
    return current


def _lower(value: Any) -> str:
    return str(value).lower()


def _contains(actual: Any, expected: Any) -> bool:
    if isinstance(actual, str):
        return _lower(expected) in actual.lower()
    if isinstance(actual, (list, tuple, set, frozenset)):
        needle = _lower(expected)
        return any(_lower(item) == needle for item in actual)
    return False


def _is_collection(value: Any) -> bool:
    return isinstance(value, (list, tuple, set, frozenset))


def compare(actual: Any, operator: str, expected: Any) -> bool:
    """Apply one operator to an already-resolved value."""
    try:
        if operator == "equals":
            return actual == expected
        if operator == "not_equals":
            return actual != expected
        if operator == "greater_than":
            if isinstance(actual, bool) or actual is None or expected is None:
                return False
            return actual > expected
        if operator == "less_than":
            if isinstance(actual, bool) or actual is None or expected is None:
                return False
            return actual < expected
        if operator == "contains":
            return _contains(actual, expected)
        if operator == "starts_with":
            return isinstance(actual, str) and actual.lower().startswith(_lower(expected))
        if operator == "ends_with":
            return isinstance(actual, str) and actual.lower().endswith(_lower(expected))
        if operator == "in":
            return _is_collection(expected) and actual in expected
        if operator == "not_in":
            return _is_collection(expected) and actual not in expected
        if operator == "exists":
            present = actual is not None
            return present if expected is None or expected is True else not present
    except TypeError:
        return False
    return False


def evaluate(record: Any, field: str, operator: str, expected: Any) -> bool:
    """Evaluate ``record.<field> <operator> expected``."""
    actual = resolve_field(record, field)
    if actual is MISSING:
        # exists=False is the only test a missing field can pass
        return operator == "exists" and expected is False
    return compare(actual, operator, expected)


def evaluate_condition(record: Any, condition: Any) -> bool:
    """Evaluate a condition given as a dict or an object with field/operator/value."""
    if isinstance(condition, Mapping):
        field = condition.get("field")
        operator = condition.get("operator")
        expected = condition.get("value")
    else:
        field = getattr(condition, "field", None)
        operator = getattr(condition, "operator", None)
        expected = getattr(condition, "value", None)
    if not field or not operator:
        return False
    return evaluate(record, field, operator, expected)


def matches_all(record: Any, conditions: Iterable[Any]) -> bool:
    """True when every condition holds (vacuously true for none)."""
    return all(evaluate_condition(record, c) for c in conditions)
