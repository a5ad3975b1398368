"""
querylens CLI - SQL statement splitting and EXPLAIN plan viewing.

Usage:
    querylens split queries.sql
    querylens split queries.sql --line 12 --column 4
    querylens explain plan.txt --kind pipeline
    querylens explain plan.json --query "EXPLAIN PLAN json=1 SELECT 1"
    querylens kind "EXPLAIN QUERY TREE SELECT 1"
"""

from __future__ import annotations

import logging
from typing import Annotated, Optional

import typer
from rich.console import Console

from querylens import __version__
from querylens.cli.commands import explain, split

app = typer.Typer(
    name="querylens",
    help="SQL statement splitter and EXPLAIN plan viewer",
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"querylens version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging."),
    ] = False,
) -> None:
    """querylens - SQL statement splitter and EXPLAIN plan viewer."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(levelname)s %(name)s: %(message)s",
        )


split.register(app)
explain.register(app)


if __name__ == "__main__":
    app()
