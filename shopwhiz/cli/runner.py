# shopwhiz/cli/runner.py

"""Headless CLI runner around the in-process search entry point."""

import json
import logging
import sys

from rich.console import Console
from rich.table import Table

from shopwhiz.config.settings import PipelineConfig
from shopwhiz.models.product import CanonicalProduct
from shopwhiz.services.query_router import (
    QueryRouter,
    SearchOptions,
    SearchResponse,
)

logger = logging.getLogger("shopwhiz.cli")

# Stderr console for status messages so stdout stays clean for JSON
_err = Console(stderr=True)


def _print_table(response: SearchResponse) -> None:
    """Render a Rich table of records to stdout."""
    table = Table(
        title=f"Results ({response.data_source})",
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("#", style="dim", width=4)
    table.add_column("Name", max_width=50)
    table.add_column("Price", justify="right", style="green")
    table.add_column("Rating", justify="center")
    table.add_column("Sentiment", justify="center")
    table.add_column("Source", style="magenta")
    table.add_column("URL", overflow="fold", style="dim")

    for idx, p in enumerate(response.records, 1):
        table.add_row(
            str(idx),
            p.name[:50],
            f"₹{p.price:,.0f}",
            f"{p.rating:.1f} ({p.review_count:,})",
            p.sentiment,
            p.source,
            p.product_url or "-",
        )

    Console().print(table)


def _summary(response: SearchResponse) -> str:
    parts: list[str] = []
    if response.excluded_count:
        parts.append(f"{response.excluded_count} outside price range")
    if response.deduplicated_count:
        parts.append(f"{response.deduplicated_count} deduped")
    if response.invalid_count:
        parts.append(f"{response.invalid_count} invalid")
    detail = f" ({', '.join(parts)})" if parts else ""
    return (
        f"{len(response.records)} records via {response.path}, "
        f"{response.data_source}{detail}"
    )


def write_json(records: list[CanonicalProduct], data_source: str) -> None:
    json.dump(
        {
            "records": [r.to_dict() for r in records],
            "dataSource": data_source,
        },
        sys.stdout,
        ensure_ascii=False,
        indent=2,
    )
    sys.stdout.write("\n")


async def cli_search(
    query: str,
    options: SearchOptions,
    output_format: str,
    config: PipelineConfig | None = None,
    router: QueryRouter | None = None,
) -> int:
    """Run a headless search and return an exit code (0=ok, 1=empty)."""
    config = config or PipelineConfig.from_env()
    router = router or QueryRouter(config)

    mode = "real data" if options.use_real_data else "synthetic"
    _err.print(f"[bold]Searching:[/bold] {query}  [dim]{mode}[/dim]")

    response = await router.resolve(query, options)

    for error_msg in response.errors:
        _err.print(f"[red]Error: {error_msg}[/red]")

    if not response.records:
        _err.print(
            f"[yellow]No products found ({response.data_source}).[/yellow]"
        )
        if output_format == "json":
            write_json([], response.data_source)
        return 1

    _err.print(f"[green]✓ {_summary(response)}[/green]")

    if output_format == "table":
        _print_table(response)
    else:
        write_json(response.records, response.data_source)
    return 0


async def run_health_check(config: PipelineConfig | None = None) -> int:
    """Probe source homepages and report provider availability."""
    from shopwhiz.services.health_checker import HealthChecker

    _err.print("[bold]Running source health check...[/bold]")
    checker = HealthChecker(config or PipelineConfig.from_env())
    results = await checker.check_all()

    table = Table(
        title="Source Health Check",
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("Source", style="bold")
    table.add_column("Status", justify="center")
    table.add_column("Latency", justify="right")
    table.add_column("Notes", style="dim")

    any_down = False
    for r in results:
        if r.status == "ok":
            status = "[green]OK[/green]"
        elif r.status == "slow":
            status = "[yellow]SLOW[/yellow]"
        else:
            status = "[red]DOWN[/red]"
            any_down = True
        latency = f"{r.latency_ms:.0f}ms" if r.latency_ms > 0 else "-"
        table.add_row(r.source_id, status, latency, r.message)

    console = Console()
    console.print(table)

    providers = checker.provider_status()
    if not providers:
        _err.print("[yellow]No generative provider configured.[/yellow]")
    for row in providers:
        state = (
            "[green]active[/green]"
            if row["active"]
            else "[red]cooling down[/red]"
        )
        role = "primary" if row["primary"] else "fallback"
        console.print(f"Provider {row['name']} ({role}): {state}")

    return 1 if any_down else 0
