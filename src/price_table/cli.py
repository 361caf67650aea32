"""Click-based CLI for price-table-server.

Thin wrapper around library modules. The server itself runs inside the
FastAPI lifespan; the other commands are one-shot diagnostics.
"""

from __future__ import annotations

import asyncio
import logging
import os

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

console = Console(stderr=True)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run_async(coro):
    """Run an async coroutine from synchronous Click code."""
    return asyncio.run(coro)


def _load_config(ctx: click.Context):
    """Load config lazily, caching on first call, and set up logging."""
    if "config" not in ctx.obj:
        from price_table.core import load_config

        config = load_config(config_path=ctx.obj.get("config_path"))
        level = "DEBUG" if ctx.obj.get("verbose") else config.logging.level
        _configure_logging(level)
        ctx.obj["config"] = config
    return ctx.obj["config"]


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(name)s: %(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
        force=True,
    )


def _flag(value: bool) -> str:
    return "[green]true[/green]" if value else "[red]false[/red]"


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    envvar="PRICE_TABLE_CONFIG",
    default=None,
    help="Path to price-table.yml config file.",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    default=False,
    help="Enable debug logging.",
)
@click.version_option(package_name="price-table-server")
@click.pass_context
def cli(ctx: click.Context, config: str | None, verbose: bool) -> None:
    """Price Table Server: polled crypto prices over REST and WebSocket."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config
    ctx.obj["verbose"] = verbose
    ctx.obj["console"] = console


# ---------------------------------------------------------------------------
# serve
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--host", type=str, default=None, help="Bind address (default: api.host).")
@click.option("--port", "-p", type=int, default=None, help="Port number (default: api.port).")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None) -> None:
    """Cold start, then serve REST and WebSocket while polling the exchange."""
    import uvicorn

    config = _load_config(ctx)
    host = host or config.api.host
    port = port or config.api.port

    # The app factory reads the same file through the environment
    if ctx.obj.get("config_path"):
        os.environ["PRICE_TABLE_CONFIG"] = ctx.obj["config_path"]

    console.print(
        f"Starting price-table-server on [bold]{host}:{port}[/bold] "
        f"({config.exchange.id.value}, pairs: {', '.join(config.markets.pairs)})"
    )

    uvicorn.run(
        "price_table.api.app:create_app",
        factory=True,
        host=host,
        port=port,
    )


# ---------------------------------------------------------------------------
# fetch
# ---------------------------------------------------------------------------


@cli.command()
@click.option(
    "--pair",
    "pairs",
    multiple=True,
    help="Fiat pair to fetch (repeatable, default: all configured pairs).",
)
@click.pass_context
def fetch(ctx: click.Context, pairs: tuple[str, ...]) -> None:
    """Fetch every asset once and print the result, partial or not."""
    from price_table.acquisition import AcquisitionPipeline, create_source
    from price_table.runtime.telemetry import Telemetry

    config = _load_config(ctx)
    selected = [p.lower() for p in pairs] or config.markets.pairs

    async def _run():
        source = create_source(config.exchange)
        telemetry = Telemetry()
        pipeline = AcquisitionPipeline(source, telemetry)
        try:
            results = {}
            for pair in selected:
                outcome = await pipeline.fetch_one(pair, config.markets.assets, pass_through=True)
                results[pair] = outcome.value
            return results, telemetry.feed_state
        finally:
            await source.close()

    results, feed_state = _run_async(_run())

    table = Table(title=f"Tickers from {config.exchange.id.value}")
    table.add_column("Pair", style="bold")
    table.add_column("Asset")
    table.add_column("Symbol")
    table.add_column("Last", justify="right")
    table.add_column("Success")
    for pair, snapshot in results.items():
        for asset, tick in snapshot.assets.items():
            table.add_row(
                pair.upper(),
                asset,
                tick.symbol or "-",
                f"{tick.last:.5f}" if tick.last is not None else "-",
                _flag(tick.success),
            )
        table.add_section()

    console.print(table)
    console.print(f"Feed state: [bold]{feed_state.value}[/bold]")


# ---------------------------------------------------------------------------
# validate-cache
# ---------------------------------------------------------------------------


@cli.command("validate-cache")
@click.pass_context
def validate_cache(ctx: click.Context) -> None:
    """Check whether the state cache could be used for a warm start."""
    from price_table.core.exceptions import CacheCorruptError, CacheNotFoundError
    from price_table.state.cache import StateCache
    from price_table.state.validator import consolidate, validate_all

    config = _load_config(ctx)
    cache = StateCache(config.cache.path)
    try:
        document = cache.read_document()
    except (CacheNotFoundError, CacheCorruptError) as e:
        console.print(f"[red]{e}[/red]")
        raise SystemExit(1)

    reports = validate_all(document, config.markets.pairs, config.cache.age_limit)
    validity, rows = consolidate(reports)

    table = Table(title=f"State cache {cache.path}")
    for column in rows[0]:
        table.add_column(column, style="bold" if column == "pair" else None)
    for row in rows[1:]:
        table.add_row(*row)
    console.print(table)

    console.print(
        f"current: {_flag(validity.current)}  previous: {_flag(validity.previous)}  "
        f"up_to_date: {_flag(validity.up_to_date)}"
    )
    if not validity.all_valid:
        console.print("[yellow]Cache is not fully usable; a cold start will fetch.[/yellow]")
        raise SystemExit(1)
    console.print("[green]Cache is usable.[/green]")


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
