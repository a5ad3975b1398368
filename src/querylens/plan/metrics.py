"""
Bottleneck detection over a parsed plan tree.

Only nodes that carry metrics take part. For each metric a node is a
bottleneck when its value reaches the metric's p90 across the tree.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from querylens.config import get_config
from querylens.plan.models import PlanNode

METRIC_NAMES = ("rows", "bytes", "time", "cpu_time")


@dataclass(frozen=True)
class MetricStats:
    """Distribution of one metric across the nodes that report it."""

    min: float | None = None
    max: float | None = None
    avg: float | None = None
    p90: float | None = None

    @property
    def is_empty(self) -> bool:
        return self.max is None


def nodes_with_metrics(tree: PlanNode) -> list[PlanNode]:
    return [node for node in tree.iter_nodes() if node.metrics is not None]


def metric_stats(
    nodes: Iterable[PlanNode],
    metric: str,
    percentile: float | None = None,
) -> MetricStats:
    """
    Compute min/max/avg and the percentile value of one metric.

    The percentile value is the sorted value at index
    ``floor(count * percentile)``, clamped to the last value.
    """
    if percentile is None:
        percentile = get_config().bottleneck_percentile

    values = sorted(
        value
        for value in (node.metrics.get(metric) for node in nodes if node.metrics)
        if value is not None
    )
    if not values:
        return MetricStats()

    index = min(int(len(values) * percentile), len(values) - 1)
    return MetricStats(
        min=values[0],
        max=values[-1],
        avg=sum(values) / len(values),
        p90=values[index],
    )


def analyze_bottlenecks(tree: PlanNode, percentile: float | None = None) -> set[str]:
    """
    Find bottleneck nodes.

    Returns:
        Ids of nodes whose value for any metric is at or above that
        metric's percentile threshold.
    """
    nodes = nodes_with_metrics(tree)
    if not nodes:
        return set()

    stats = {name: metric_stats(nodes, name, percentile) for name in METRIC_NAMES}
    bottlenecks: set[str] = set()

    for node in nodes:
        assert node.metrics is not None
        for name, stat in stats.items():
            value = node.metrics.get(name)
            if value is not None and stat.p90 is not None and value >= stat.p90:
                bottlenecks.add(node.id)

    return bottlenecks


def bottleneck_score(node: PlanNode, tree: PlanNode) -> float:
    """
    Score how heavy a node is relative to the whole tree, 0 to 100.

    Averages ``value / max * 100`` over the metrics the node reports.
    Nodes without metrics score 0.
    """
    if node.metrics is None:
        return 0.0

    nodes = nodes_with_metrics(tree)
    if not nodes:
        return 0.0

    total = 0.0
    count = 0
    for name in METRIC_NAMES:
        value = node.metrics.get(name)
        if value is None:
            continue
        stat = metric_stats(nodes, name)
        count += 1
        if stat.max:
            total += value / stat.max * 100

    return total / count if count else 0.0
