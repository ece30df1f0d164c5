"""
In-memory counterparts of the store's filter and ordering semantics.

Used when a query has to be degraded (ordering or filters dropped server-side) and
the result set must be brought back to what the full query would have returned.
"""

from datetime import date, datetime, time, timezone
from typing import Any, Dict, Iterable, List, Tuple

_MISSING = object()

SUPPORTED_OPERATORS = ("==", "!=", "<", "<=", ">", ">=", "array_contains", "array_contains_any", "in", "not-in")

# Firestore SDK spells these with underscores, the web SDK with dashes
OPERATOR_ALIASES = {
    "array-contains": "array_contains",
    "array-contains-any": "array_contains_any",
    "not_in": "not-in",
}


def normalize_operator(op: str) -> str:
    op = OPERATOR_ALIASES.get(op, op)
    if op not in SUPPORTED_OPERATORS:
        raise ValueError(f"Unsupported filter operator: {op}")
    return op


def get_field(record: Dict[str, Any], path: str, default: Any = None) -> Any:
    value: Any = record
    for part in path.split("."):
        if not isinstance(value, dict) or part not in value:
            return default
        value = value[part]
    return value


def _to_epoch_seconds(value: Any) -> Any:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.timestamp()
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc).timestamp()
    if isinstance(value, dict):
        seconds = value.get("seconds", value.get("_seconds"))
        if isinstance(seconds, (int, float)):
            nanos = value.get("nanoseconds", value.get("_nanoseconds", value.get("nanos", 0))) or 0
            return float(seconds) + float(nanos) / 1e9
        return _MISSING
    seconds = getattr(value, "seconds", None)
    if isinstance(seconds, int) and hasattr(value, "nanos"):
        # protobuf Timestamp
        return float(seconds) + float(value.nanos) / 1e9
    return _MISSING


def sort_key(value: Any) -> Tuple[int, Any]:
    """
    Rank a field value on one comparable scale.

    Missing values rank lowest, then numbers and timestamps (compared as epoch seconds),
    then strings, then anything else by its repr.
    """
    if value is None or value is _MISSING:
        return (0, 0.0)
    if isinstance(value, bool):
        return (1, float(value))
    if isinstance(value, (int, float)):
        return (1, float(value))
    epoch = _to_epoch_seconds(value)
    if epoch is not _MISSING:
        return (1, epoch)
    if isinstance(value, str):
        return (2, value)
    return (3, repr(value))


def sort_records(records: Iterable[Dict[str, Any]], field: str, descending: bool = True) -> List[Dict[str, Any]]:
    """Order records by `field` the way a server-side order_by would; ties break on document id."""
    return sorted(
        records,
        key=lambda record: (sort_key(get_field(record, field)), str(record.get("id", ""))),
        reverse=descending,
    )


def matches_filter(record: Dict[str, Any], field: str, op: str, value: Any) -> bool:
    op = normalize_operator(op)
    actual = get_field(record, field, _MISSING)

    if op == "==":
        return actual is not _MISSING and actual == value
    if op == "!=":
        return actual is not _MISSING and actual != value
    if op == "in":
        return actual is not _MISSING and actual in value
    if op == "not-in":
        return actual is not _MISSING and actual not in value
    if op == "array_contains":
        return isinstance(actual, list) and value in actual
    if op == "array_contains_any":
        return isinstance(actual, list) and any(item in actual for item in value)

    if actual is _MISSING or actual is None:
        return False
    left, right = sort_key(actual), sort_key(value)
    if left[0] != right[0]:
        return False
    if op == "<":
        return left < right
    if op == "<=":
        return left <= right
    if op == ">":
        return left > right
    return left >= right


def apply_filters(records: Iterable[Dict[str, Any]], filters: Iterable[Tuple[str, str, Any]]) -> List[Dict[str, Any]]:
    filters = list(filters)
    return [record for record in records if all(matches_filter(record, f, op, v) for f, op, v in filters)]
