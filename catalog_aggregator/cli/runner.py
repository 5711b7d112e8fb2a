# catalog_aggregator/cli/runner.py

"""Headless CLI commands, each a thin shell around the aggregator façade."""

import json
import logging
import sys
from collections.abc import Awaitable, Callable
from typing import Any

from rich.console import Console
from rich.table import Table

from catalog_aggregator.bootstrap import Application, build_application
from catalog_aggregator.config.settings import Settings
from catalog_aggregator.errors import AggregatorError

logger = logging.getLogger("catalog_aggregator.cli")

# Stderr console for status messages so stdout stays clean for JSON
_err = Console(stderr=True)


def split_category_arg(value: str) -> tuple[int | None, str | None]:
    """Interpret a CLI category argument as an id (digits) or a name."""
    stripped = value.strip()
    if stripped.isdigit():
        return int(stripped), None
    return None, stripped


def _emit_json(payload: dict[str, Any]) -> None:
    json.dump(payload, sys.stdout, ensure_ascii=False, indent=2)
    sys.stdout.write("\n")


def _print_groups_table(result: dict[str, Any]) -> None:
    """Render one row per product group."""
    table = Table(
        title=f"Category {result['categoryQueried']}",
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("#", style="dim", width=4)
    table.add_column("Parent code", style="bold")
    table.add_column("Variants", justify="right")
    table.add_column("Codes", max_width=50)
    table.add_column("Stock", justify="right", style="green")
    table.add_column("Images", justify="right", style="magenta")

    for idx, group in enumerate(result["items"], 1):
        variants = group["variants"]
        table.add_row(
            str(idx),
            group["parentCode"] or "—",
            str(len(variants)),
            ", ".join(str(v.get("productocodigo", "")) for v in variants),
            str(sum(v["totalStock"] for v in variants)),
            str(sum(len(v["images"]) for v in variants)),
        )

    Console().print(table)


def _print_named_table(title: str, rows: list[dict[str, Any]]) -> None:
    table = Table(title=title, show_lines=False, title_style="bold cyan")
    table.add_column("ID", justify="right", style="dim")
    table.add_column("Name")
    for row in rows:
        table.add_row(str(row["id"]), str(row["name"]))
    Console().print(table)


async def _run(
    command: Callable[[Application], Awaitable[int]],
    app: Application | None = None,
) -> int:
    """Build the application, run *command*, map errors to exit code 1."""
    try:
        app = app or build_application()
    except AggregatorError as exc:
        _err.print(f"[red]{exc.code}: {exc.message}[/red]")
        return 1

    try:
        return await command(app)
    except AggregatorError as exc:
        logger.warning("Command failed: %s (%s)", exc.code, exc.message)
        _err.print(f"[red]{exc.code}: {exc.message}[/red]")
        _emit_json(exc.to_dict(include_detail=Settings.DEV_MODE))
        return 1
    finally:
        app.close()


async def run_products(
    category: str,
    warehouse_id: int | None,
    output_format: str,
    app: Application | None = None,
) -> int:
    """Aggregate a category and print it as JSON or a table."""
    category_id, category_name = split_category_arg(category)

    async def command(application: Application) -> int:
        _err.print(
            f"[bold]Aggregating:[/bold] {category}  "
            f"[dim]warehouse={warehouse_id or Settings.DEFAULT_WAREHOUSE_ID}"
            f"[/dim]"
        )
        result = await application.aggregator.aggregate(
            category_id=category_id,
            category_name=category_name,
            warehouse_id=warehouse_id,
        )
        _err.print(
            f"[green]✓ {result['totalGroups']} groups "
            f"for category {result['categoryQueried']}[/green]"
        )
        if output_format == "table":
            _print_groups_table(result)
        else:
            _emit_json(result)
        return 0

    return await _run(command, app)


async def run_categories(
    output_format: str, app: Application | None = None,
) -> int:
    """List categories as ``{id, name}``."""

    async def command(application: Application) -> int:
        result = await application.aggregator.list_categories()
        if output_format == "table":
            _print_named_table("Categories", result["categories"])
        else:
            _emit_json(result)
        return 0

    return await _run(command, app)


async def run_warehouses(
    output_format: str, app: Application | None = None,
) -> int:
    """List warehouses as ``{id, name}``."""

    async def command(application: Application) -> int:
        result = await application.aggregator.list_warehouses()
        if output_format == "table":
            _print_named_table("Warehouses", result["warehouses"])
        else:
            _emit_json(result)
        return 0

    return await _run(command, app)


async def run_health_check(app: Application | None = None) -> int:
    """Probe the upstream and print the health payload."""

    async def command(application: Application) -> int:
        report = await application.health.check()
        status = report["status"]
        colour = {"ok": "green", "slow": "yellow"}.get(status, "red")
        _err.print(
            f"[{colour}]Upstream {status.upper()}[/{colour}] "
            f"[dim]{report['upstream']['latencyMs']}ms "
            f"{report['upstream']['message']}[/dim]"
        )
        _emit_json(report)
        return 0 if report["success"] else 1

    return await _run(command, app)
