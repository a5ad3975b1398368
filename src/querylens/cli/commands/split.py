"""Statement commands: split."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from querylens.config import get_config
from querylens.exceptions import QueryLensError
from querylens.loader import read_text
from querylens.output.export import export_statements
from querylens.splitter import find_statement_at, split_statements, statement_label

console = Console()
error_console = Console(stderr=True)


def register(app: typer.Typer) -> None:
    """Register statement commands on the given Typer app."""

    @app.command()
    def split(
        sql_file: Annotated[
            Path,
            typer.Argument(
                help="Path to a SQL file with one or more statements",
                exists=True,
                readable=True,
                resolve_path=True,
            ),
        ],
        line: Annotated[
            Optional[int],
            typer.Option("--line", "-l", min=1, help="Cursor line (1-based)"),
        ] = None,
        column: Annotated[
            int,
            typer.Option("--column", "-c", min=1, help="Cursor column (1-based)"),
        ] = 1,
        json_output: Annotated[
            bool,
            typer.Option("--json", "-j", help="Output statements as JSON"),
        ] = False,
    ) -> None:
        """
        Split a SQL file into statements.

        With --line, print only the statement under that cursor position.

        Examples:

            $ querylens split migrations.sql
            $ querylens split scratch.sql --line 14 --column 3
        """
        try:
            config = get_config()
            statements = split_statements(read_text(sql_file))
        except QueryLensError as e:
            error_console.print(f"[red]Error:[/red] {escape(str(e))}")
            raise typer.Exit(code=1)

        if line is not None:
            index = find_statement_at(statements, line, column)
            if index is None:
                error_console.print("[yellow]No statements found.[/yellow]")
                raise typer.Exit(code=1)
            statements = [statements[index]]

        if json_output:
            console.print_json(json.dumps(export_statements(statements)))
            return

        if line is not None:
            console.print(statements[0].text, markup=False, highlight=False)
            return

        if not statements:
            console.print("[dim]No statements found.[/dim]")
            return

        table = Table(title=f"{len(statements)} statement(s)")
        table.add_column("#", justify="right", style="dim")
        table.add_column("Statement")
        table.add_column("Start", justify="right")
        table.add_column("End", justify="right")

        for index, statement in enumerate(statements):
            table.add_row(
                str(index + 1),
                escape(statement_label(statement, index, config.label_max_length)),
                f"{statement.start_line}:{statement.start_column}",
                f"{statement.end_line}:{statement.end_column}",
            )

        console.print(table)
