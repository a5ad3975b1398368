"""
Parser for EXPLAIN output in JSON and indented-text form.

This module handles:
- Classifying the result rows (empty, JSON document, plan text)
- Building a node tree from a JSON document
- Folding indented operator text into a node tree
- Extracting name and type from a single plan text line

Error handling philosophy: never fail. Every payload, however malformed,
yields some tree. Unknown shapes degrade into less structured trees
(everything under the root, low-information types like "Unknown")
instead of raising.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Iterable, Mapping, NamedTuple, Sequence

from querylens.config import Config, get_config
from querylens.plan.kind import detect_plan_kind
from querylens.plan.models import ROOT_ID, ExplainResult, Metrics, PlanKind, PlanNode
from querylens.plan.payload import EmptyPayload, JsonPayload, classify_payload

logger = logging.getLogger(__name__)

# Keys holding child nodes, in lookup order. Only the first list found is used.
CHILD_KEYS = ("children", "inputs", "plans")

INTEGER_METRICS = ("rows", "bytes")
FLOAT_METRICS = ("time", "cpu_time")


class NodeIdAllocator:
    """
    Hands out ``node-1``, ``node-2``, ... in call order.

    One allocator is shared by a whole parse; calling next_id() before
    building a node's children gives pre-order numbering.
    """

    def __init__(self, prefix: str = "node") -> None:
        self.prefix = prefix
        self.count = 0

    def next_id(self) -> str:
        self.count += 1
        return f"{self.prefix}-{self.count}"


class LineParts(NamedTuple):
    """Name, type and metrics extracted from one plan text line."""
    name: str
    type: str
    metrics: Metrics | None = None


# =============================================================================
# Entry points
# =============================================================================


def parse_plan(
    plan_kind_hint: str | PlanKind | None,
    rows: Sequence[Any] | None,
    config: Config | None = None,
) -> ExplainResult:
    """
    Parse the rows of an EXPLAIN query into a normalized tree.

    Args:
        plan_kind_hint: Requested plan kind ("PIPELINE", PlanKind.AST, ...).
            Unrecognized or missing hints mean PLAN.
        rows: Result rows as mappings of column name to value.
        config: Parser settings. Defaults to get_config().

    Returns:
        ExplainResult. Never raises for malformed rows.

    Example:
        >>> result = parse_plan("PLAN", [{"explain": "Expression (Projection)"}])
        >>> result.tree.children[0].name
        'Projection'
    """
    config = config or get_config()
    kind = PlanKind.from_hint(plan_kind_hint)
    payload = classify_payload(rows, config.plan_payload_field)
    logger.debug("Parsing %s payload as %s", kind.value, type(payload).__name__)

    if isinstance(payload, EmptyPayload):
        return ExplainResult(
            kind=kind,
            tree=PlanNode(id=ROOT_ID, name="Empty Result", type="Root"),
            raw_text="",
        )

    if isinstance(payload, JsonPayload):
        return ExplainResult(
            kind=kind,
            tree=build_json_node(payload.document, config=config),
            raw_text=payload.text,
            raw_json=payload.document,
        )

    text = payload.text
    return ExplainResult(
        kind=kind,
        tree=build_text_tree(text, kind, config=config),
        raw_text=text,
    )


def parse_explain_result(
    query: str,
    rows: Sequence[Any] | None,
    config: Config | None = None,
) -> ExplainResult:
    """Parse EXPLAIN rows, taking the plan kind from the query text."""
    return parse_plan(detect_plan_kind(query), rows, config=config)


# =============================================================================
# JSON documents
# =============================================================================


def build_json_node(
    value: Any,
    parent_type: str | None = None,
    *,
    ids: NodeIdAllocator | None = None,
    depth: int = 0,
    config: Config | None = None,
) -> PlanNode:
    """
    Build a node (and its subtree) from one JSON value.

    - string: leaf named by the string, type inherited from the parent
    - list: "Pipeline" node with one child per element
    - object: name from name/type/description, type from type/kind,
      metrics from rows/bytes/time/cpu_time, children from the first of
      children/inputs/plans that is a list
    - other scalars: leaf named by the value

    The document is walked with an explicit stack, so ids are still
    numbered in pre-order but nesting never consumes Python frames.
    Nesting beyond ``config.max_plan_depth`` is not expanded; the node is
    kept as a leaf with its raw data.
    """
    config = config or get_config()
    ids = ids or NodeIdAllocator()

    top: list[PlanNode] = []
    stack: list[tuple[Any, str | None, int, list[PlanNode]]] = [
        (value, parent_type, depth, top)
    ]

    while stack:
        item, item_parent_type, item_depth, siblings = stack.pop()
        node, items, child_type = _make_json_node(item, item_parent_type, ids.next_id())
        siblings.append(node)

        if not items:
            continue
        if item_depth + 1 >= config.max_plan_depth:
            logger.warning(
                "Plan nesting exceeds %d levels, children of %s not expanded",
                config.max_plan_depth,
                node.id,
            )
            continue

        for child in reversed(items):
            stack.append((child, child_type, item_depth + 1, node.children))

    return top[0]


def _make_json_node(
    value: Any,
    parent_type: str | None,
    node_id: str,
) -> tuple[PlanNode, list[Any] | None, str]:
    """Node for one JSON value, plus the child items and their parent type."""
    if isinstance(value, str):
        return PlanNode(id=node_id, name=value, type=parent_type or "Expression"), None, ""

    if isinstance(value, list):
        return PlanNode(id=node_id, name="Pipeline", type="Pipeline"), value, "Pipeline"

    if isinstance(value, Mapping):
        name = _first_text(value, ("name", "type", "description")) or "Unknown"
        node_type = _first_text(value, ("type", "kind")) or parent_type or "Expression"
        node = PlanNode(
            id=node_id,
            name=name,
            type=node_type,
            metrics=_extract_metrics(value),
            raw_data=value,
        )
        items = next(
            (value[key] for key in CHILD_KEYS if isinstance(value.get(key), list)),
            None,
        )
        return node, items, node_type

    leaf = PlanNode(id=node_id, name=_scalar_text(value), type=parent_type or "Unknown")
    return leaf, None, ""


def _first_text(data: Mapping[str, Any], keys: Sequence[str]) -> str | None:
    """First non-empty value among ``keys``, as text."""
    for key in keys:
        value = data.get(key)
        if value is None or value == "" or isinstance(value, (dict, list)):
            continue
        return _scalar_text(value)
    return None


def _scalar_text(value: Any) -> str:
    if isinstance(value, bool) or value is None:
        return {True: "true", False: "false", None: "null"}[value]
    return str(value)


def _as_number(value: Any) -> int | float | None:
    """Numeric value of a metric field, None if it is not a finite number."""
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        # UInt64 counters are quoted in JSON output; keep them exact.
        try:
            return int(value.strip())
        except ValueError:
            pass
        try:
            value = float(value)
        except ValueError:
            return None
    if not isinstance(value, (int, float)):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return value


def _extract_metrics(data: Mapping[str, Any]) -> Metrics | None:
    values: dict[str, int | float] = {}

    for key in INTEGER_METRICS:
        number = _as_number(data.get(key))
        if isinstance(number, float):
            if not number.is_integer():
                logger.debug("Ignoring fractional %s=%r", key, number)
                continue
            number = int(number)
        if number is not None:
            values[key] = number

    for key in FLOAT_METRICS:
        number = _as_number(data.get(key))
        if number is not None:
            values[key] = float(number)

    return Metrics(**values) if values else None


# =============================================================================
# Indented text
# =============================================================================


def build_text_tree(
    text: str,
    kind: PlanKind = PlanKind.PLAN,
    config: Config | None = None,
) -> PlanNode:
    """
    Fold indented plan text into a tree under a synthetic root.

    Blank lines are dropped, as is a leading banner line starting with
    the header marker. Each line's level is its leading whitespace
    divided by the indentation unit; a line becomes a child of the
    nearest preceding line with a smaller level, so jumps of several
    levels attach to the closest shallower ancestor.

    Example:
        >>> tree = build_text_tree("A\\n  B\\n  C\\nD")
        >>> [(n.name, [c.name for c in n.children]) for n in tree.children]
        [('A', ['B', 'C']), ('D', [])]
    """
    config = config or get_config()
    lines = [line for line in text.split("\n") if line.strip()]

    marker = config.header_marker.lower()
    if lines and lines[0].strip().lower().startswith(marker):
        lines = lines[1:]

    if not lines:
        return PlanNode(id=ROOT_ID, name="Empty", type="Root")

    unit = detect_indent_unit(lines, default=config.default_indent_width)
    logger.debug("Folding %d plan line(s) with indent unit %d", len(lines), unit)

    root = PlanNode(id=ROOT_ID, name="Query Plan", type=kind.value)
    ids = NodeIdAllocator()
    stack: list[tuple[int, PlanNode]] = [(-1, root)]

    for line in lines:
        level = _indent_width(line) // unit
        parts = parse_text_line(line)
        node = PlanNode(
            id=ids.next_id(),
            name=parts.name,
            type=parts.type,
            metrics=parts.metrics,
        )

        while stack[-1][0] >= level:
            stack.pop()

        stack[-1][1].children.append(node)
        stack.append((level, node))

    return root


def detect_indent_unit(lines: Iterable[str], default: int = 2) -> int:
    """
    Guess the indentation unit of plan text.

    The leading whitespace width of the first indented line is taken as
    one level. This is a heuristic: mixed tabs and spaces stay ambiguous,
    and ``default`` is used when no line is indented.
    """
    for line in lines:
        width = _indent_width(line)
        if width > 0 and line.strip():
            return width
    return default


def _indent_width(line: str) -> int:
    return len(line) - len(line.lstrip())


def parse_text_line(line: str) -> LineParts:
    """
    Extract name and type from one line of plan text.

    - ``(Expression)`` -> name "Expression", type "Step"
    - ``Expression (Projection)`` -> name "Projection", type "Expression"
    - ``Expression ((Projection + Before ORDER BY))`` -> name
      "Projection + Before ORDER BY", type "Expression"
    - ``MergeTreeSelect(pool: ReadPool) × 4`` -> name "pool: ReadPool",
      type "MergeTreeSelect"; text after the first group is dropped
    - anything else -> the whole line as name, its first word as type
    """
    text = line.strip()

    if _is_wrapped(text):
        inner = text[1:-1].strip()
        return LineParts(name=inner or text, type="Step")

    # Text after the first group (pipeline multipliers, port counts) is
    # not part of the name.
    open_index = text.find("(")
    close_index = _matching_close(text, open_index) if open_index > 0 else None
    if close_index is not None:
        prefix = text[:open_index].strip()
        if prefix:
            inner = _unwrap(text[open_index + 1:close_index].strip())
            return LineParts(name=inner or prefix, type=prefix)

    words = text.split()
    return LineParts(name=text, type=words[0] if words else "Expression")


def _matching_close(text: str, open_index: int) -> int | None:
    """Index of the parenthesis closing the one at ``open_index``."""
    depth = 0
    for index in range(open_index, len(text)):
        char = text[index]
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth == 0:
                return index
    return None


def _is_wrapped(text: str) -> bool:
    """True if one balanced parenthesis pair spans the whole text."""
    return (
        len(text) >= 2
        and text.startswith("(")
        and _matching_close(text, 0) == len(text) - 1
    )


def _unwrap(text: str) -> str:
    """Remove redundant parentheses around the whole text."""
    while _is_wrapped(text):
        text = text[1:-1].strip()
    return text
