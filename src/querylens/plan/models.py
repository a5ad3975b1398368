"""
Pydantic models for normalized EXPLAIN output.

Every plan dialect (JSON documents, indented operator text) is parsed
into the same shape:
- ExplainResult: Top-level wrapper holding the plan kind, tree and raw payload
- PlanNode: Recursive node with a name, a type and optional metrics

Node ids (``node-1``, ``node-2``, ...) are assigned in pre-order within a
single parse call and carry no meaning across parses. Synthetic roots use
the id ``root``.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Iterator

from pydantic import BaseModel, Field

ROOT_ID = "root"


class PlanKind(str, Enum):
    """
    Flavors of EXPLAIN output.

    Values match the keywords used in the query text, so
    ``PlanKind("QUERY TREE")`` works.
    """
    PLAN = "PLAN"
    PIPELINE = "PIPELINE"
    AST = "AST"
    SYNTAX = "SYNTAX"
    ESTIMATE = "ESTIMATE"
    INDEXES = "INDEXES"
    TABLE_OVERRIDE = "TABLE OVERRIDE"
    QUERY_TREE = "QUERY TREE"

    @classmethod
    def from_hint(cls, hint: "str | PlanKind | None") -> "PlanKind":
        """Parse a kind hint, defaulting to PLAN when unrecognized."""
        if isinstance(hint, PlanKind):
            return hint
        if not hint:
            return cls.PLAN
        normalized = " ".join(hint.replace("_", " ").split()).upper()
        try:
            return cls(normalized)
        except ValueError:
            return cls.PLAN


class Metrics(BaseModel):
    """
    Performance figures attached to a plan node.

    Only the fields present in the source data are set.
    """

    rows: int | None = Field(default=None, description="Rows processed")
    bytes: int | None = Field(default=None, description="Bytes processed")
    time: float | None = Field(default=None, description="Elapsed seconds")
    cpu_time: float | None = Field(default=None, description="CPU seconds")

    @property
    def is_empty(self) -> bool:
        return not self.model_dump(exclude_none=True)

    def get(self, metric: str) -> float | None:
        """Value of a metric by name, None if absent."""
        return getattr(self, metric, None)


class PlanNode(BaseModel):
    """
    One node of the normalized plan tree.

    The tree is a strict hierarchy: each non-root node has exactly one
    parent, and children keep the order of the source.
    """

    id: str = Field(..., description="Synthetic id unique within one parse")
    name: str = Field(..., description="Operator or step name")
    type: str = Field(..., description="Operator category")
    children: list[PlanNode] = Field(default_factory=list)
    metrics: Metrics | None = None
    raw_data: Any | None = Field(
        default=None,
        description="Source JSON object, kept verbatim for display",
    )

    def iter_nodes(self) -> Iterator[PlanNode]:
        """Iterate over this node and all descendants in pre-order."""
        stack: list[PlanNode] = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def find(self, node_id: str) -> PlanNode | None:
        """Find a node by id."""
        for node in self.iter_nodes():
            if node.id == node_id:
                return node
        return None

    @property
    def is_leaf(self) -> bool:
        return not self.children

    @property
    def node_count(self) -> int:
        return sum(1 for _ in self.iter_nodes())

    @property
    def depth(self) -> int:
        """Number of levels in the subtree rooted here (a leaf has depth 1)."""
        deepest = 0
        stack: list[tuple[PlanNode, int]] = [(self, 1)]
        while stack:
            node, level = stack.pop()
            deepest = max(deepest, level)
            stack.extend((child, level + 1) for child in node.children)
        return deepest


class ExplainResult(BaseModel):
    """Normalized result of one EXPLAIN query."""

    kind: PlanKind = Field(default=PlanKind.PLAN)
    tree: PlanNode
    raw_text: str = Field(default="", description="Plan text as displayed")
    raw_json: Any | None = Field(
        default=None,
        description="Structured payload when the plan was returned as JSON",
    )

    @property
    def is_json(self) -> bool:
        return self.raw_json is not None

    @property
    def all_nodes(self) -> list[PlanNode]:
        return list(self.tree.iter_nodes())
