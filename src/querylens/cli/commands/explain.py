"""Plan commands: explain, kind."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.tree import Tree

from querylens.config import get_config
from querylens.exceptions import QueryLensError
from querylens.loader import load_plan_rows
from querylens.output.export import export_json
from querylens.plan.kind import detect_plan_kind, is_explain_query, is_json_explain
from querylens.plan.metrics import analyze_bottlenecks
from querylens.plan.models import ExplainResult, PlanKind, PlanNode
from querylens.plan.parser import parse_plan

console = Console()
error_console = Console(stderr=True)


def _node_label(node: PlanNode, bottlenecks: set[str]) -> str:
    label = f"[bold]{escape(node.name)}[/bold]"
    if node.type != node.name:
        label += f" [dim]{escape(node.type)}[/dim]"
    if node.metrics is not None:
        figures = ", ".join(
            f"{key}={value}"
            for key, value in node.metrics.model_dump(exclude_none=True).items()
        )
        label += f" [cyan]({figures})[/cyan]"
    if node.id in bottlenecks:
        label = f"[red]{label}[/red]"
    return label


def build_rich_tree(result: ExplainResult) -> Tree:
    """Render a plan tree as a rich Tree, bottlenecks in red."""
    bottlenecks = analyze_bottlenecks(result.tree)
    tree = Tree(_node_label(result.tree, bottlenecks))

    stack: list[tuple[PlanNode, Tree]] = [(result.tree, tree)]
    while stack:
        node, branch = stack.pop()
        for child in node.children:
            stack.append((child, branch.add(_node_label(child, bottlenecks))))

    return tree


def register(app: typer.Typer) -> None:
    """Register plan commands on the given Typer app."""

    @app.command()
    def explain(
        plan_file: Annotated[
            Path,
            typer.Argument(
                help="Path to EXPLAIN output (plain text or JSON rows)",
                exists=True,
                readable=True,
                resolve_path=True,
            ),
        ],
        kind: Annotated[
            Optional[str],
            typer.Option(
                "--kind",
                "-k",
                help="Plan kind (plan, pipeline, ast, syntax, query_tree, ...)",
            ),
        ] = None,
        query: Annotated[
            Optional[str],
            typer.Option("--query", "-q", help="EXPLAIN query that produced the output"),
        ] = None,
        json_output: Annotated[
            bool,
            typer.Option("--json", "-j", help="Output the normalized tree as JSON"),
        ] = False,
    ) -> None:
        """
        Parse EXPLAIN output into a normalized plan tree.

        Examples:

            $ clickhouse-client -q "EXPLAIN PIPELINE SELECT 1" > plan.txt
            $ querylens explain plan.txt --kind pipeline
        """
        try:
            config = get_config()
            rows = load_plan_rows(plan_file, payload_field=config.plan_payload_field)
        except QueryLensError as e:
            error_console.print(f"[red]Error:[/red] {escape(str(e))}")
            raise typer.Exit(code=1)

        hint: str | PlanKind | None = kind
        if hint is None and query is not None:
            hint = detect_plan_kind(query)

        result = parse_plan(hint, rows, config=config)

        if json_output:
            console.print_json(export_json(result))
            return

        console.print(f"[bold]EXPLAIN {result.kind.value}[/bold]")
        console.print(build_rich_tree(result))
        console.print(f"[dim]{result.tree.node_count} node(s)[/dim]")

    @app.command("kind")
    def kind_command(
        query: Annotated[str, typer.Argument(help="SQL query text")],
    ) -> None:
        """
        Show which EXPLAIN flavor a query requests.

        Examples:

            $ querylens kind "EXPLAIN PIPELINE SELECT 1"
        """
        if not is_explain_query(query):
            console.print("[dim]Not an EXPLAIN query.[/dim]")
            raise typer.Exit(code=1)

        plan_kind = detect_plan_kind(query) or PlanKind.PLAN
        fmt = "json" if is_json_explain(query) else "text"
        console.print(f"{plan_kind.value} ({fmt})", markup=False, highlight=False)
