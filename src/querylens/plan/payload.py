"""
Classification of EXPLAIN query results.

The rows of an EXPLAIN response come in a few shapes:
- no rows at all
- one row whose ``explain`` field holds a structured document (json=1)
- one row per plan line under the ``explain`` field
- rows of some other shape, one plan line in the first column of each

classify_payload() decides the shape once, so the tree builders never
branch on row shape themselves.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Mapping, Sequence, Union


@dataclass(frozen=True)
class EmptyPayload:
    """The query returned no rows."""


@dataclass(frozen=True)
class JsonPayload:
    """A structured plan document."""

    document: Any

    @property
    def text(self) -> str:
        return json.dumps(self.document, indent=2, ensure_ascii=False, default=str)


@dataclass(frozen=True)
class TextPayload:
    """Plan text, one row per line."""

    lines: tuple[str, ...]

    @property
    def text(self) -> str:
        return "\n".join(self.lines)


PlanPayload = Union[EmptyPayload, JsonPayload, TextPayload]


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False, default=str)
    return str(value)


def _first_value(row: Any) -> Any:
    if isinstance(row, Mapping):
        return next(iter(row.values()), None)
    if isinstance(row, (list, tuple)):
        return row[0] if row else None
    return row


def classify_payload(
    rows: Sequence[Any] | None,
    payload_field: str = "explain",
) -> PlanPayload:
    """
    Classify EXPLAIN result rows.

    Only the first row decides between the JSON and text shapes: if it
    carries ``payload_field`` with a non-string value the whole payload is
    that value, if the value is a string every row contributes its own
    value under the field as one line.

    Args:
        rows: Result rows, usually mappings of column name to value.
        payload_field: Column that identifies a plan payload.

    Returns:
        One of EmptyPayload, JsonPayload, TextPayload.
    """
    if not rows:
        return EmptyPayload()

    first = rows[0]
    if isinstance(first, Mapping) and payload_field in first:
        value = first[payload_field]
        if not isinstance(value, str):
            return JsonPayload(document=value)
        return TextPayload(
            lines=tuple(
                _cell_text(row.get(payload_field)) if isinstance(row, Mapping) else _cell_text(row)
                for row in rows
            )
        )

    return TextPayload(lines=tuple(_cell_text(_first_value(row)) for row in rows))
