"""
Statement splitter for semicolon-terminated SQL buffers.

Splits an editor buffer into statements with source spans and resolves
a cursor position back to the statement it belongs to.

The scanner is a single left-to-right pass over the buffer driven by an
explicit ScannerState. It tracks four mutually exclusive modes (single
quote, double quote, line comment, block comment) and never fails:
unterminated literals or comments at the end of the buffer simply leave
the remaining text in the final statement.

Example:
    >>> statements = split_statements("SELECT 1;\\n\\nSELECT ';';")
    >>> [s.text for s in statements]
    ['SELECT 1', "SELECT ';'"]
    >>> find_statement_at(statements, 2, 1)
    0
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import NamedTuple, Sequence

import sqlparse

from querylens.config import get_config
from querylens.models import Statement

logger = logging.getLogger(__name__)

Position = tuple[int, int]


class Step(NamedTuple):
    """
    Outcome of feeding one character to the scanner.

    Attributes:
        width: Characters consumed (2 for ``--``, ``/*``, ``*/`` and
            doubled quotes, else 1).
        significant: The consumed text is active SQL, not whitespace
            and not comment text.
        delimiter: The character is a statement-terminating semicolon.
    """
    width: int
    significant: bool
    delimiter: bool


@dataclass
class ScannerState:
    """
    Mode flags and cursor position of the scanner.

    At most one of the four mode flags is set at any time. A state can be
    seeded by the caller, e.g. ``ScannerState(in_block_comment=True)`` to
    scan a fragment that starts inside a comment.
    """

    in_single_quote: bool = False
    in_double_quote: bool = False
    in_line_comment: bool = False
    in_block_comment: bool = False
    line: int = 1
    column: int = 1

    @property
    def in_quote(self) -> bool:
        return self.in_single_quote or self.in_double_quote

    @property
    def in_comment(self) -> bool:
        return self.in_line_comment or self.in_block_comment

    @property
    def is_active(self) -> bool:
        """True outside every literal and comment."""
        return not (self.in_quote or self.in_comment)

    @property
    def position(self) -> Position:
        return (self.line, self.column)

    def step(self, char: str, next_char: str = "") -> Step:
        """
        Apply the mode transitions for ``char``.

        Only mode flags change here; call advance() with the consumed
        text to move the position.
        """
        if char == "\n":
            self.in_line_comment = False
            return Step(1, False, False)

        # Inside a literal only its own closing quote matters.
        if self.in_quote:
            quote = "'" if self.in_single_quote else '"'
            if char == quote:
                if next_char == quote:
                    return Step(2, True, False)
                self.in_single_quote = False
                self.in_double_quote = False
                return Step(1, True, False)
            return Step(1, not char.isspace(), False)

        if self.in_block_comment:
            if char == "*" and next_char == "/":
                self.in_block_comment = False
                return Step(2, False, False)
            return Step(1, False, False)

        if self.in_line_comment:
            return Step(1, False, False)

        if char == "-" and next_char == "-":
            self.in_line_comment = True
            return Step(2, False, False)

        if char == "/" and next_char == "*":
            self.in_block_comment = True
            return Step(2, False, False)

        if char in ("'", '"'):
            # A doubled quote here is an empty literal: consume it whole.
            if next_char == char:
                return Step(2, True, False)
            if char == "'":
                self.in_single_quote = True
            else:
                self.in_double_quote = True
            return Step(1, True, False)

        if char == ";":
            return Step(1, False, True)

        return Step(1, not char.isspace(), False)

    def advance(self, consumed: str) -> None:
        """Move the position past ``consumed``."""
        for char in consumed:
            if char == "\n":
                self.line += 1
                self.column = 1
            else:
                self.column += 1


@dataclass
class _Segment:
    """Text accumulated since the last delimiter."""

    parts: list[str] = field(default_factory=list)
    start: Position | None = None
    first_visible: Position | None = None
    last_visible: Position | None = None

    def add(self, text: str, first: Position, last: Position, significant: bool) -> None:
        self.parts.append(text)
        if text.isspace():
            return
        if self.first_visible is None:
            self.first_visible = first
        self.last_visible = last
        if significant and self.start is None:
            self.start = first

    def to_statement(self) -> Statement | None:
        text = "".join(self.parts).strip()
        if not text:
            return None

        # Comment-only segments have no active SQL; fall back to the
        # first visible character.
        start = self.start or self.first_visible
        end = self.last_visible
        assert start is not None and end is not None

        return Statement(
            text=text,
            start_line=start[0],
            start_column=start[1],
            end_line=end[0],
            end_column=end[1],
        )


def split_statements(
    buffer: str,
    state: ScannerState | None = None,
) -> list[Statement]:
    """
    Split a SQL buffer into semicolon-terminated statements.

    Semicolons inside quoted literals, quoted identifiers, ``--`` line
    comments and ``/* */`` block comments do not split. Empty statements
    (``;;``) are skipped, and the final statement needs no delimiter.

    A segment holding only comments is still returned as a statement:
    ``"SELECT 1; -- trailing"`` gives ``SELECT 1`` and ``-- trailing``.
    Callers that execute the statement under the cursor should expect
    such comment-only entries.

    Args:
        buffer: Full editor text. May be empty.
        state: Optional initial scanner state. It is copied, never
            mutated.

    Returns:
        Statements in source order.
    """
    state = replace(state) if state is not None else ScannerState()

    statements: list[Statement] = []
    segment = _Segment()
    length = len(buffer)
    index = 0

    while index < length:
        char = buffer[index]
        next_char = buffer[index + 1] if index + 1 < length else ""
        first = state.position

        step = state.step(char, next_char)
        consumed = buffer[index:index + step.width]

        if step.delimiter:
            statement = segment.to_statement()
            if statement is not None:
                statements.append(statement)
            segment = _Segment()
        else:
            last = (first[0], first[1] + step.width - 1)
            segment.add(consumed, first, last, step.significant)

        state.advance(consumed)
        index += step.width

    statement = segment.to_statement()
    if statement is not None:
        statements.append(statement)

    if not state.is_active:
        logger.debug(
            "Buffer ends inside a literal or comment at line %d", state.line
        )
    logger.debug("Split %d statement(s) from %d characters", len(statements), length)
    return statements


def find_statement_at(
    statements: Sequence[Statement],
    line: int,
    column: int,
) -> int | None:
    """
    Find the index of the statement under a cursor.

    A statement whose span contains the cursor wins. A cursor in the gap
    between statements (blank lines, the semicolon itself, trailing
    comments) resolves to the nearest preceding statement, or to the
    first statement when the cursor is before all of them.

    Returns:
        The 0-based index, or None if there are no statements.
    """
    if not statements:
        return None

    for index, statement in enumerate(statements):
        if statement.contains(line, column):
            return index

    preceding: int | None = None
    for index, statement in enumerate(statements):
        if not statement.ends_before(line, column):
            break
        preceding = index

    return preceding if preceding is not None else 0


def statement_at_cursor(buffer: str, line: int, column: int) -> Statement | None:
    """Split ``buffer`` and return the statement under the cursor."""
    statements = split_statements(buffer)
    index = find_statement_at(statements, line, column)
    return statements[index] if index is not None else None


def statement_label(
    statement: Statement,
    index: int,
    max_length: int | None = None,
) -> str:
    """
    Short label for a statement tab or menu entry.

    The first line of the statement, leading comments removed, when it
    is short enough, otherwise ``Query <n>`` with ``n`` the 1-based
    position.
    """
    if max_length is None:
        max_length = get_config().label_max_length

    text = sqlparse.format(statement.text, strip_comments=True).strip() or statement.text
    first_line = text.split("\n", 1)[0].strip()
    if len(first_line) <= max_length:
        return first_line
    return f"Query {index + 1}"
