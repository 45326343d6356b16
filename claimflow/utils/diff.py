"""
Field-level change detection used for audit metadata.

Values are normalized before comparison so that representation differences
(``Decimal("10.0")`` vs ``"10.00"``, ``date`` vs ISO string, enum vs its
value) do not count as changes.
"""

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

NUMERIC_RE = re.compile(r"^-?\d+(\.\d+)?$")


@dataclass
class FieldChange:
    before: Any
    after: Any


@dataclass
class ChangeSet:
    """Changed field names (patch order) and their normalized before/after values."""

    fields: list[str] = field(default_factory=list)
    changes: dict[str, FieldChange] = field(default_factory=dict)

    def __bool__(self) -> bool:
        return bool(self.fields)

    def to_dict(self) -> dict[str, Any]:
        return {
            "fields": list(self.fields),
            "changes": {
                name: {"before": change.before, "after": change.after}
                for name, change in self.changes.items()
            },
        }


def _decimal_to_str(value: Decimal) -> str:
    text = format(value.normalize(), "f")
    return "0" if text in ("-0", "") else text


def normalize_value(value: Any) -> Any:
    """Convert a value to a JSON-friendly canonical form."""
    if value is None:
        return None
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return _decimal_to_str(value)
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return _decimal_to_str(Decimal(str(value)))
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    return value


def _is_number(value: Any) -> bool:
    return isinstance(value, (Decimal, int, float)) and not isinstance(value, bool)


def values_equal(before: Any, after: Any) -> bool:
    """Compare two values after normalization."""
    left, right = normalize_value(before), normalize_value(after)
    # A numeric column compares by value against a numeric string ("10.50" == Decimal("10.5"))
    if (_is_number(before) or _is_number(after)) and isinstance(left, str) and isinstance(right, str):
        if NUMERIC_RE.match(left) and NUMERIC_RE.match(right):
            return Decimal(left) == Decimal(right)
    return left == right


def compute_changes(before: Mapping[str, Any], patch: Mapping[str, Any]) -> ChangeSet:
    """
    Diff ``patch`` against ``before``, restricted to the keys of ``patch``.

    Keys whose normalized values are equal are omitted.
    """
    result = ChangeSet()
    for key, after_value in patch.items():
        before_value = before.get(key)
        if values_equal(before_value, after_value):
            continue
        result.fields.append(key)
        result.changes[key] = FieldChange(
            before=normalize_value(before_value),
            after=normalize_value(after_value),
        )
    return result
