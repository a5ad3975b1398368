"""
Export of parse results to plain JSON documents.

The exported shape uses the camelCase keys expected by the console's
plan viewer and editor widgets (``rawText``, ``startLine``, ...).
"""

from __future__ import annotations

import json
from typing import Any, Sequence

from querylens.models import Statement
from querylens.plan.models import ExplainResult, PlanNode


def _export_fields(node: PlanNode) -> dict[str, Any]:
    data: dict[str, Any] = {
        "id": node.id,
        "name": node.name,
        "type": node.type,
        "children": [],
    }
    if node.metrics is not None:
        data["metrics"] = node.metrics.model_dump(exclude_none=True)
    if node.raw_data is not None:
        data["rawData"] = node.raw_data
    return data


def export_node(node: PlanNode) -> dict[str, Any]:
    """Serialize a node and its subtree. Absent metrics/rawData are omitted."""
    top = _export_fields(node)
    stack: list[tuple[PlanNode, dict[str, Any]]] = [(node, top)]
    while stack:
        current, data = stack.pop()
        for child in current.children:
            child_data = _export_fields(child)
            data["children"].append(child_data)
            stack.append((child, child_data))
    return top


def export_result(result: ExplainResult) -> dict[str, Any]:
    """Serialize an ExplainResult."""
    return {
        "type": result.kind.value,
        "tree": export_node(result.tree),
        "rawText": result.raw_text,
        "rawJson": result.raw_json,
    }


def export_json(result: ExplainResult) -> str:
    """ExplainResult as an indented JSON document."""
    return json.dumps(export_result(result), indent=2, ensure_ascii=False, default=str)


def export_filename(
    result: ExplainResult,
    timestamp_ms: int,
    extension: str = "json",
) -> str:
    """
    Download file name for an exported result.

    Example:
        >>> export_filename(result, 1700000000000)
        'explain-query-tree-1700000000000.json'
    """
    kind = "-".join(result.kind.value.lower().split())
    return f"explain-{kind}-{timestamp_ms}.{extension}"


def export_statements(statements: Sequence[Statement]) -> list[dict[str, Any]]:
    """Serialize split statements with their spans."""
    return [
        {
            "text": statement.text,
            "startLine": statement.start_line,
            "startColumn": statement.start_column,
            "endLine": statement.end_line,
            "endColumn": statement.end_column,
        }
        for statement in statements
    ]
