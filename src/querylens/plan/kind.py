"""
Detect the EXPLAIN flavor requested by a query.

Simple keyword matching on the query text, no SQL parsing. Leading
whitespace and comments before EXPLAIN are ignored.
"""

from __future__ import annotations

import re

from querylens.plan.models import PlanKind

# Whitespace and comments that may precede the EXPLAIN keyword
_LEADING_NOISE = re.compile(r"^(?:\s+|--[^\n]*(?:\n|$)|/\*.*?\*/)*", re.DOTALL)

_EXPLAIN = re.compile(r"EXPLAIN\b", re.IGNORECASE)

# Multi-word kinds are tried first so "QUERY TREE" never matches a single word
_MULTI_WORD_KIND = re.compile(r"\s+(TABLE\s+OVERRIDE|QUERY\s+TREE)\b", re.IGNORECASE)
_SINGLE_WORD_KIND = re.compile(
    r"\s+(PLAN|PIPELINE|AST|SYNTAX|ESTIMATE|INDEXES)\b", re.IGNORECASE
)

# json=1 after at most two kind words and any other settings
_JSON_SETTING = re.compile(
    r"EXPLAIN(?:\s+[A-Z]+){0,2}(?:\s+\w+\s*=\s*\w+\s*,)*\s+JSON\s*=\s*1\b",
    re.IGNORECASE,
)


def _strip_leading_noise(query: str) -> str:
    return _LEADING_NOISE.sub("", query, count=1)


def is_explain_query(query: str) -> bool:
    """True if the first keyword of the query is EXPLAIN."""
    return _EXPLAIN.match(_strip_leading_noise(query)) is not None


def detect_plan_kind(query: str) -> PlanKind | None:
    """
    Detect the plan kind of an EXPLAIN query.

    Returns:
        The requested kind, PLAN for a bare EXPLAIN, None when the query
        is not an EXPLAIN query.

    Example:
        >>> detect_plan_kind("explain query tree select 1")
        <PlanKind.QUERY_TREE: 'QUERY TREE'>
        >>> detect_plan_kind("SELECT 1") is None
        True
    """
    text = _strip_leading_noise(query)
    explain = _EXPLAIN.match(text)
    if explain is None:
        return None

    rest = text[explain.end():]
    match = _MULTI_WORD_KIND.match(rest) or _SINGLE_WORD_KIND.match(rest)
    if match is None:
        return PlanKind.PLAN
    return PlanKind.from_hint(match.group(1))


def is_json_explain(query: str) -> bool:
    """True if an EXPLAIN query requests JSON output with ``json = 1``."""
    return _JSON_SETTING.match(_strip_leading_noise(query)) is not None
