"""EXPLAIN output parsing: payload classification, tree building, metrics."""

from querylens.plan.kind import detect_plan_kind, is_explain_query, is_json_explain
from querylens.plan.metrics import MetricStats, analyze_bottlenecks, bottleneck_score
from querylens.plan.models import ExplainResult, Metrics, PlanKind, PlanNode
from querylens.plan.parser import (
    build_json_node,
    build_text_tree,
    parse_explain_result,
    parse_plan,
    parse_text_line,
)

__all__ = [
    "ExplainResult",
    "Metrics",
    "PlanKind",
    "PlanNode",
    "parse_plan",
    "parse_explain_result",
    "build_json_node",
    "build_text_tree",
    "parse_text_line",
    "detect_plan_kind",
    "is_explain_query",
    "is_json_explain",
    "MetricStats",
    "analyze_bottlenecks",
    "bottleneck_score",
]
