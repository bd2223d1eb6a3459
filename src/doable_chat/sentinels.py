"""Detection of "no value" placeholders in model-generated tool arguments.

Language models regularly send the literal strings "null" or "undefined"
instead of omitting a field, and "unassigned" when they mean "nobody".
"""
from typing import Any

MISSING_SENTINELS = frozenset({"null", "undefined"})
UNASSIGN_SENTINELS = MISSING_SENTINELS | {"unassigned"}


def is_missing(value: Any) -> bool:
    """True for None, blank strings and the "null"/"undefined" literals."""
    if value is None:
        return True
    if isinstance(value, str):
        stripped = value.strip()
        return not stripped or stripped.lower() in MISSING_SENTINELS
    return False


def is_unassign(value: Any) -> bool:
    """True when an assignee value means "clear the assignee"."""
    if is_missing(value):
        return True
    return isinstance(value, str) and value.strip().lower() in UNASSIGN_SENTINELS


def clean(value: Any) -> Any:
    """Return None for sentinel values, the stripped string otherwise."""
    if is_missing(value):
        return None
    if isinstance(value, str):
        return value.strip()
    return value
