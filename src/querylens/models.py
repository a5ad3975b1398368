"""
Statement model produced by the statement splitter.

Positions are 1-based: line 1, column 1 is the first character of the
buffer. Columns count characters, not bytes.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class Statement(BaseModel):
    """
    One semicolon-delimited SQL statement and its source span.

    ``text`` is the trimmed statement content without the terminating
    semicolon. The span runs from the first character of active SQL to
    the last non-whitespace character before the delimiter, both ends
    inclusive.
    """

    model_config = ConfigDict(frozen=True)

    text: str = Field(..., description="Trimmed statement text")
    start_line: int = Field(..., ge=1)
    start_column: int = Field(..., ge=1)
    end_line: int = Field(..., ge=1)
    end_column: int = Field(..., ge=1)

    @property
    def start(self) -> tuple[int, int]:
        return (self.start_line, self.start_column)

    @property
    def end(self) -> tuple[int, int]:
        return (self.end_line, self.end_column)

    def contains(self, line: int, column: int) -> bool:
        """True if the cursor lies inside the span, ends inclusive."""
        return self.start <= (line, column) <= self.end

    def ends_before(self, line: int, column: int) -> bool:
        """True if the whole span lies strictly before the cursor."""
        return self.end < (line, column)
