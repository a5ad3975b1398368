"""
Tests for the EXPLAIN plan parser.

Test philosophy:
- Every payload shape (empty, JSON document, text rows, generic rows)
  lands in the same tree model
- Text plans fold by indentation whatever the indent width
- Malformed payloads degrade into simpler trees, never into errors

Fixtures are real-world shaped EXPLAIN outputs.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from querylens.config import Config
from querylens.plan.models import ExplainResult, PlanKind, PlanNode
from querylens.plan.parser import (
    LineParts,
    NodeIdAllocator,
    build_json_node,
    build_text_tree,
    detect_indent_unit,
    parse_explain_result,
    parse_plan,
    parse_text_line,
)
from querylens.plan.payload import (
    EmptyPayload,
    JsonPayload,
    TextPayload,
    classify_payload,
)


# =============================================================================
# Fixtures
# =============================================================================

FIXTURES_DIR = Path(__file__).parent / "fixtures"


def text_rows(name: str) -> list[dict]:
    """Load a text fixture as one ``explain`` row per line."""
    text = (FIXTURES_DIR / name).read_text(encoding="utf-8")
    return [{"explain": line} for line in text.splitlines()]


@pytest.fixture
def plan_rows() -> list[dict]:
    """EXPLAIN PLAN text output, 2-space indentation."""
    return text_rows("plan_text.txt")


@pytest.fixture
def pipeline_rows() -> list[dict]:
    """EXPLAIN PIPELINE text output with a banner and 4-space indentation."""
    return text_rows("pipeline_text.txt")


@pytest.fixture
def json_rows() -> list[dict]:
    """EXPLAIN json=1 response rows."""
    document = json.loads((FIXTURES_DIR / "plan_json_response.json").read_text())
    return document["data"]


def names(node: PlanNode) -> list[str]:
    return [child.name for child in node.children]


# =============================================================================
# Payload classification
# =============================================================================

class TestClassifyPayload:
    """Row shapes are decided once, at the entry point."""

    @pytest.mark.parametrize("rows", [None, []])
    def test_no_rows(self, rows: list | None) -> None:
        assert isinstance(classify_payload(rows), EmptyPayload)

    def test_structured_explain_field(self) -> None:
        payload = classify_payload([{"explain": {"name": "Agg"}}])

        assert payload == JsonPayload(document={"name": "Agg"})

    def test_string_explain_field(self) -> None:
        payload = classify_payload([{"explain": "A"}, {"explain": "  B"}])

        assert payload == TextPayload(lines=("A", "  B"))
        assert payload.text == "A\n  B"

    def test_generic_rows_use_first_column(self) -> None:
        payload = classify_payload([
            {"database": "default", "table": "hits", "rows": 10},
            {"database": "system", "table": "parts", "rows": 3},
        ])

        assert payload == TextPayload(lines=("default", "system"))

    def test_only_first_row_decides(self) -> None:
        payload = classify_payload([{"explain": "A"}, {"other": "B"}, {"explain": None}])

        assert payload == TextPayload(lines=("A", "", ""))

    def test_custom_payload_field(self) -> None:
        payload = classify_payload([{"plan": [1, 2]}], payload_field="plan")

        assert isinstance(payload, JsonPayload)


# =============================================================================
# Dispatch
# =============================================================================

class TestParsePlan:
    """End-to-end parsing of EXPLAIN rows."""

    @pytest.mark.parametrize("rows", [None, []])
    def test_empty_payload(self, rows: list | None) -> None:
        result = parse_plan("PLAN", rows)

        assert isinstance(result, ExplainResult)
        assert result.tree.id == "root"
        assert result.tree.name == "Empty Result"
        assert result.tree.children == []
        assert result.raw_text == ""
        assert result.raw_json is None

    def test_json_payload(self) -> None:
        rows = [{"explain": {"name": "Agg", "rows": 10, "children": [{"name": "Scan"}]}}]

        result = parse_plan("PLAN", rows)

        assert result.tree.name == "Agg"
        assert result.tree.metrics is not None
        assert result.tree.metrics.rows == 10
        assert names(result.tree) == ["Scan"]
        assert result.raw_json == rows[0]["explain"]
        assert json.loads(result.raw_text) == rows[0]["explain"]

    def test_json_fixture(self, json_rows: list[dict]) -> None:
        result = parse_plan("PLAN", json_rows)

        assert result.is_json
        assert result.tree.name == "Aggregating"
        assert names(result.tree) == ["Expression", "Filter"]
        read = result.tree.children[0].children[0]
        assert read.name == "ReadFromMergeTree"
        assert read.type == "Read"
        assert read.metrics is not None
        assert read.metrics.cpu_time == 1.2
        # Bare strings inherit the parent's type
        assert result.tree.children[1].type == "Aggregating"

    def test_text_payload(self, plan_rows: list[dict]) -> None:
        result = parse_plan("PLAN", plan_rows)

        assert not result.is_json
        assert result.raw_text.startswith("Expression ((Projection + Before ORDER BY))")
        assert result.tree.id == "root"
        assert result.tree.name == "Query Plan"
        assert result.tree.type == "PLAN"

        chain = []
        node = result.tree
        while node.children:
            node = node.children[0]
            chain.append((node.name, node.type))

        assert chain == [
            ("Projection + Before ORDER BY", "Expression"),
            ("Aggregating", "Aggregating"),
            ("Before GROUP BY", "Expression"),
            ("WHERE", "Filter"),
            ("default.hits", "ReadFromMergeTree"),
        ]

    def test_pipeline_payload(self, pipeline_rows: list[dict]) -> None:
        result = parse_plan(PlanKind.PIPELINE, pipeline_rows)

        root = result.tree
        assert root.type == "PIPELINE"
        assert names(root) == ["Expression", "ExpressionTransform × 4"]
        assert root.children[0].type == "Step"

        transform = root.children[1]
        assert names(transform) == ["Aggregating", "Resize 4 → 1"]
        aggregating = transform.children[1].children[0]
        assert aggregating.name == "AggregatingTransform × 4"
        assert names(aggregating) == ["ReadFromMergeTree", "MergeTreeThread × 4 0 → 1"]

    def test_generic_rows(self) -> None:
        rows = [{"database": "default", "table": "hits", "parts": 3}]

        result = parse_plan("ESTIMATE", rows)

        assert result.kind == PlanKind.ESTIMATE
        assert names(result.tree) == ["default"]
        assert result.raw_text == "default"

    def test_blank_text_payload(self) -> None:
        result = parse_plan("PLAN", [{"explain": ""}, {"explain": "   "}])

        assert result.tree.name == "Empty"
        assert result.tree.type == "Root"
        assert result.tree.children == []

    @pytest.mark.parametrize(
        "hint, expected",
        [
            (None, PlanKind.PLAN),
            ("", PlanKind.PLAN),
            ("pipeline", PlanKind.PIPELINE),
            ("query_tree", PlanKind.QUERY_TREE),
            ("TABLE  OVERRIDE", PlanKind.TABLE_OVERRIDE),
            ("bogus", PlanKind.PLAN),
            (PlanKind.AST, PlanKind.AST),
        ],
    )
    def test_kind_hint(self, hint: str | PlanKind | None, expected: PlanKind) -> None:
        assert parse_plan(hint, []).kind == expected

    def test_kind_from_query(self, plan_rows: list[dict]) -> None:
        result = parse_explain_result("EXPLAIN SYNTAX SELECT 1", plan_rows)

        assert result.kind == PlanKind.SYNTAX
        assert result.tree.type == "SYNTAX"

    def test_kind_from_non_explain_query_defaults_to_plan(self) -> None:
        assert parse_explain_result("SELECT 1", []).kind == PlanKind.PLAN


# =============================================================================
# JSON documents
# =============================================================================

class TestBuildJsonNode:
    """Recursive build from JSON values."""

    def test_ids_are_preorder(self) -> None:
        document = {
            "name": "a",
            "children": [
                {"name": "b", "children": [{"name": "c"}]},
                {"name": "d"},
            ],
        }

        tree = build_json_node(document)

        assert [(n.id, n.name) for n in tree.iter_nodes()] == [
            ("node-1", "a"),
            ("node-2", "b"),
            ("node-3", "c"),
            ("node-4", "d"),
        ]

    def test_shared_allocator_continues_numbering(self) -> None:
        ids = NodeIdAllocator()

        build_json_node("x", ids=ids)
        node = build_json_node("y", ids=ids)

        assert node.id == "node-2"

    def test_string_leaf(self) -> None:
        node = build_json_node("ReadFromStorage")

        assert node.name == "ReadFromStorage"
        assert node.type == "Expression"
        assert node.children == []

    def test_array_becomes_pipeline(self) -> None:
        node = build_json_node(["x", {"name": "y"}])

        assert (node.name, node.type) == ("Pipeline", "Pipeline")
        assert [(c.name, c.type) for c in node.children] == [
            ("x", "Pipeline"),
            ("y", "Pipeline"),
        ]

    @pytest.mark.parametrize(
        "document, name, node_type",
        [
            ({"name": "n", "type": "t", "description": "d"}, "n", "t"),
            ({"type": "t", "description": "d"}, "t", "t"),
            ({"description": "d", "kind": "k"}, "d", "k"),
            ({"name": "", "description": "d"}, "d", "Expression"),
            ({}, "Unknown", "Expression"),
        ],
    )
    def test_name_and_type_precedence(self, document: dict, name: str, node_type: str) -> None:
        node = build_json_node(document)

        assert (node.name, node.type) == (name, node_type)

    def test_type_inherited_from_parent(self) -> None:
        node = build_json_node({"type": "Join", "children": [{"name": "left"}]})

        assert node.children[0].type == "Join"

    def test_first_child_list_wins(self) -> None:
        document = {
            "name": "a",
            "children": "not a list",
            "inputs": [{"name": "input"}],
            "plans": [{"name": "plan"}],
        }

        node = build_json_node(document)

        assert names(node) == ["input"]

    def test_metrics_only_when_present(self) -> None:
        assert build_json_node({"name": "a"}).metrics is None

        node = build_json_node({"name": "a", "rows": "12", "time": 0.5, "bytes": True})

        assert node.metrics is not None
        assert node.metrics.model_dump(exclude_none=True) == {"rows": 12, "time": 0.5}

    def test_quoted_uint64_metrics_are_exact(self) -> None:
        node = build_json_node({"name": "a", "rows": "9007199254740993", "bytes": " 18446744073709551615 "})

        assert node.metrics is not None
        assert node.metrics.rows == 9007199254740993
        assert node.metrics.bytes == 18446744073709551615

    def test_integral_float_counters(self) -> None:
        node = build_json_node({"name": "a", "rows": 12.0, "bytes": "1e3", "time": "7"})

        assert node.metrics is not None
        assert node.metrics.model_dump(exclude_none=True) == {"rows": 12, "bytes": 1000, "time": 7.0}

    def test_fractional_counters_are_ignored(self) -> None:
        node = build_json_node({"name": "a", "rows": 2.5, "bytes": "3.7", "time": 0.5})

        assert node.metrics is not None
        assert node.metrics.rows is None
        assert node.metrics.bytes is None
        assert node.metrics.time == 0.5

    def test_raw_data_is_source_object(self) -> None:
        document = {"name": "a", "extra": {"nested": [1, 2]}}

        node = build_json_node(document)

        assert node.raw_data == document

    @pytest.mark.parametrize(
        "value, name",
        [(42, "42"), (1.5, "1.5"), (True, "true"), (None, "null")],
    )
    def test_scalar_leaf(self, value: object, name: str) -> None:
        node = build_json_node(value)

        assert node.name == name
        assert node.type == "Unknown"

    def test_depth_limit_truncates(self) -> None:
        document = {"name": "a", "children": [{"name": "b", "children": [{"name": "c"}]}]}

        node = build_json_node(document, config=Config(max_plan_depth=2))

        assert names(node) == ["b"]
        assert node.children[0].children == []
        assert node.children[0].raw_data["children"] == [{"name": "c"}]

    def test_deepest_allowed_nesting(self) -> None:
        document: dict = {"name": "leaf"}
        for level in range(600):
            document = {"name": f"level-{level}", "children": [document]}

        node = build_json_node(document, config=Config(max_plan_depth=500))

        assert node.depth == 500
        assert node.node_count == 500
        assert [n.id for n in node.iter_nodes()][:3] == ["node-1", "node-2", "node-3"]


# =============================================================================
# Indented text
# =============================================================================

class TestBuildTextTree:
    """Indentation folding."""

    def test_indentation_fold(self) -> None:
        tree = build_text_tree("A\n  B\n  C\nD")

        assert names(tree) == ["A", "D"]
        assert names(tree.children[0]) == ["B", "C"]
        assert tree.children[1].children == []

    def test_four_space_unit(self) -> None:
        tree = build_text_tree("A\n    B\n        C\n    D")

        a = tree.children[0]
        assert names(a) == ["B", "D"]
        assert names(a.children[0]) == ["C"]

    def test_indentation_jump_attaches_to_nearest_ancestor(self) -> None:
        tree = build_text_tree("A\n  B\n        C\n  D")

        a = tree.children[0]
        assert names(a) == ["B", "D"]
        assert names(a.children[0]) == ["C"]

    def test_dedent_below_first_level(self) -> None:
        tree = build_text_tree("  A\n    B\nC")

        assert names(tree) == ["A", "C"]
        assert names(tree.children[0]) == ["B"]

    def test_blank_lines_are_ignored(self) -> None:
        tree = build_text_tree("A\n\n   \n  B\n")

        assert names(tree.children[0]) == ["B"]

    def test_header_line_is_dropped(self) -> None:
        tree = build_text_tree("EXPLAIN PLAN\nA\n  B")

        assert names(tree) == ["A"]

    def test_header_only_first_line(self) -> None:
        tree = build_text_tree("A\nexplain B")

        assert names(tree) == ["A", "explain B"]

    def test_ids_follow_line_order(self) -> None:
        tree = build_text_tree("A\n  B\nC")

        assert [n.id for n in tree.iter_nodes()] == ["root", "node-1", "node-2", "node-3"]

    def test_root_type_is_plan_kind(self) -> None:
        tree = build_text_tree("A", PlanKind.QUERY_TREE)

        assert tree.type == "QUERY TREE"

    def test_crlf_line_endings(self) -> None:
        tree = build_text_tree("A\r\n  B\r\n")

        assert names(tree) == ["A"]
        assert names(tree.children[0]) == ["B"]


class TestDetectIndentUnit:
    """Indentation unit heuristic."""

    def test_first_indented_line_sets_unit(self) -> None:
        assert detect_indent_unit(["A", "   B", "      C"]) == 3

    def test_default_when_nothing_is_indented(self) -> None:
        assert detect_indent_unit(["A", "B"]) == 2
        assert detect_indent_unit(["A"], default=4) == 4

    def test_tab_counts_as_one_character(self) -> None:
        assert detect_indent_unit(["A", "\tB"]) == 1


class TestParseTextLine:
    """Name/type extraction from single lines."""

    @pytest.mark.parametrize(
        "line, name, node_type",
        [
            ("Expression (Projection)", "Projection", "Expression"),
            ("(Expression)", "Expression", "Step"),
            ("Expression ((Projection + Before ORDER BY))", "Projection + Before ORDER BY", "Expression"),
            ("ReadFromMergeTree (default.hits)", "default.hits", "ReadFromMergeTree"),
            ("Aggregating", "Aggregating", "Aggregating"),
            ("Resize 4 → 1", "Resize 4 → 1", "Resize"),
            ("Filter ()", "Filter", "Filter"),
            ("Join (a) on (b)", "a", "Join"),
            (
                "MergeTreeSelect(pool: ReadPool, algorithm: Thread) × 4 0 → 1",
                "pool: ReadPool, algorithm: Thread",
                "MergeTreeSelect",
            ),
            ("Sort ((Sorting for ORDER BY)) × 2", "Sorting for ORDER BY", "Sort"),
            ("Sort (broken", "Sort (broken", "Sort"),
            ("(a) (b)", "(a) (b)", "(a)"),
            ("()", "()", "Step"),
            ("  Limit (preliminary LIMIT)  ", "preliminary LIMIT", "Limit"),
        ],
    )
    def test_patterns(self, line: str, name: str, node_type: str) -> None:
        assert parse_text_line(line) == LineParts(name=name, type=node_type)

    def test_text_lines_have_no_metrics(self) -> None:
        assert parse_text_line("Expression (Projection)").metrics is None
