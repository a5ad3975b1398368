"""
Loading of SQL buffers and EXPLAIN payloads from files.

Plan files come in three shapes:
- plain text, as printed by a console client (one plan line per line)
- a JSON array of result rows
- a JSON object, either a response with a ``data`` row list (JSON output
  format of the HTTP interface) or a bare plan document

Unlike the parsers, loading can fail: unreadable files and invalid JSON
raise ParseError.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from querylens.exceptions import ParseError

logger = logging.getLogger(__name__)


def read_text(path: str | Path) -> str:
    """Read a UTF-8 text file."""
    filepath = Path(path)

    if not filepath.is_file():
        raise ParseError(f"File not found: {filepath}", source=str(filepath))

    try:
        return filepath.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ParseError(
            f"Cannot read file: {filepath}",
            source=str(filepath),
            detail=str(e),
        ) from e


def load_plan_rows(
    source: str | Path,
    payload_field: str = "explain",
) -> list[Any]:
    """
    Load EXPLAIN result rows from a file.

    Args:
        source: Path to a text or JSON file.
        payload_field: Column name used when wrapping text lines or a bare
            plan document into rows.

    Returns:
        Rows ready for parse_plan().

    Raises:
        ParseError: If the file cannot be read or holds invalid JSON.
    """
    content = read_text(source)
    stripped = content.strip()

    if not stripped.startswith(("{", "[")):
        return [{payload_field: line} for line in content.splitlines()]

    try:
        data = json.loads(stripped)
    except json.JSONDecodeError as e:
        raise ParseError(
            "Invalid JSON format",
            source=str(source),
            detail=f"Line {e.lineno}, column {e.colno}: {e.msg}",
        ) from e

    if isinstance(data, list):
        return data

    if isinstance(data.get("data"), list):
        logger.debug("Loaded %d row(s) from response document", len(data["data"]))
        return data["data"]

    return [{payload_field: data}]
