"""querylens - SQL statement splitting and EXPLAIN plan normalization."""

__version__ = "0.1.0"
__license__ = "MIT"

# Exception hierarchy (import first so other modules can use it)
from querylens.exceptions import (
    QueryLensError,
    ParseError,
    ConfigurationError,
)

from querylens.config import (
    Config,
    get_config,
    reset_config,
)
from querylens.models import Statement
from querylens.splitter import (
    ScannerState,
    find_statement_at,
    split_statements,
    statement_at_cursor,
    statement_label,
)
from querylens.plan import (
    ExplainResult,
    Metrics,
    PlanKind,
    PlanNode,
    analyze_bottlenecks,
    bottleneck_score,
    detect_plan_kind,
    is_explain_query,
    is_json_explain,
    parse_explain_result,
    parse_plan,
)

__all__ = [
    # Exception hierarchy
    "QueryLensError",
    "ParseError",
    "ConfigurationError",
    # Statement splitting
    "Statement",
    "ScannerState",
    "split_statements",
    "find_statement_at",
    "statement_at_cursor",
    "statement_label",
    # Plan parsing
    "ExplainResult",
    "Metrics",
    "PlanKind",
    "PlanNode",
    "parse_plan",
    "parse_explain_result",
    "detect_plan_kind",
    "is_explain_query",
    "is_json_explain",
    # Bottlenecks
    "analyze_bottlenecks",
    "bottleneck_score",
    # Configuration
    "Config",
    "get_config",
    "reset_config",
    # Metadata
    "__version__",
    "__license__",
]
