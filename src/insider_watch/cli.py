"""
Command-line interface for the insider trade watcher.

Usage:
    insider-watch analyze --limit 100 --save
    insider-watch stats --stored
    insider-watch trades --min-score 80
    insider-watch resolve 0xabc... Yes
    insider-watch serve --port 8000
"""

import asyncio
import logging
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from .config import get_config
from .detection.pipeline import DetectionPipeline
from .detection.stats import RecencyBasis
from .models import Statistics
from .storage.database import Database

app = typer.Typer(
    name="insider-watch",
    help="Flag prediction-market trades that look like insider activity",
    add_completion=False,
)

console = Console()


def setup_logging(debug: bool = False):
    """Configure logging."""
    level = logging.DEBUG if debug else getattr(logging, get_config().log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    # Quiet noisy loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def _score_style(score: float) -> str:
    if score >= 80:
        return "red bold"
    if score >= 70:
        return "red"
    return "yellow"


def _short(address: str, width: int = 12) -> str:
    return address[:width] + "..." if len(address) > width else address


def _print_stats(stats: Statistics, title: str) -> None:
    data = stats.to_dict()
    console.print(Panel(
        f"[bold]Suspicious trades:[/bold] {data['total_suspicious_trades']}\n"
        f"[bold]High suspicion (>= 80):[/bold] {data['high_suspicion_trades']}\n"
        f"[bold]Average score:[/bold] {data['average_suspicion_score']}\n"
        f"[bold]Last 24 hours:[/bold] {data['recent_24h']}\n"
        f"[bold]Unique traders:[/bold] {data['unique_suspicious_traders']}",
        title=title,
    ))


@app.command()
def analyze(
    limit: int = typer.Option(100, "--limit", "-l", help="Number of recent trades to analyze"),
    min_score: Optional[float] = typer.Option(
        None,
        "--min-score", "-s",
        help="Minimum suspicion score to flag (0-100)",
    ),
    large_trade: Optional[float] = typer.Option(
        None,
        "--large-trade",
        help="Trade value in USDC considered large",
    ),
    save: bool = typer.Option(False, "--save/--no-save", help="Save flagged trades to database"),
    debug: bool = typer.Option(False, "--debug", "-d", help="Enable debug logging"),
):
    """
    Fetch recent trades from active markets and flag suspicious ones.
    """
    setup_logging(debug)
    config = get_config()
    criteria = config.criteria.with_overrides(
        min_suspicion_score=min_score,
        large_trade_threshold=large_trade,
    )

    async def run():
        console.print(Panel(
            f"[bold]Analyzing up to {limit} recent trades[/bold]",
            title="Insider Watch",
        ))

        db = Database(config.storage.database_path) if save else None
        if db:
            await db.connect()

        try:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                console=console,
            ) as progress:
                progress.add_task("Fetching and scoring trades...", total=None)

                async with DetectionPipeline(database=db, config=config) as pipeline:
                    report = await pipeline.analyze(limit=limit, save=save, criteria=criteria)
        finally:
            if db:
                await db.close()

        console.print()

        if report.analyzed == 0:
            console.print("[yellow]No trades found[/yellow]")
            return

        if report.analyses:
            table = Table(title="Suspicious Trades", show_header=True)
            table.add_column("Score", justify="right")
            table.add_column("Market", max_width=40)
            table.add_column("Trader", style="cyan")
            table.add_column("Outcome")
            table.add_column("Price", justify="right")
            table.add_column("Size", justify="right")
            table.add_column("Reasons", max_width=50)

            for analysis in report.analyses[:30]:
                trade = analysis.trade
                table.add_row(
                    f"[{_score_style(analysis.suspicion_score)}]{analysis.suspicion_score:.1f}[/]",
                    analysis.market.question,
                    _short(trade.maker_address),
                    trade.outcome,
                    f"{float(trade.price):.1%}",
                    f"{float(trade.size):,.0f}",
                    "; ".join(analysis.suspicion_reasons),
                )

            console.print(table)
        else:
            console.print("[green]No suspicious trades found[/green]")

        summary = (
            f"Analyzed [bold]{report.analyzed}[/bold] trades, "
            f"flagged [bold]{report.suspicious}[/bold]"
        )
        if save:
            summary += f", saved [bold]{report.saved}[/bold]"
            if report.failed:
                summary += f" ([red]{report.failed} failed[/red])"
        console.print()
        console.print(Panel(summary, title="Summary"))

    asyncio.run(run())


@app.command()
def stats(
    stored: bool = typer.Option(False, "--stored", help="Summarize stored trades instead of a live run"),
    by_detection: bool = typer.Option(
        False,
        "--by-detection-time",
        help="Count the last 24 hours by when trades were stored (stored mode only)",
    ),
    limit: int = typer.Option(100, "--limit", "-l", help="Trades to analyze in live mode"),
    debug: bool = typer.Option(False, "--debug", "-d"),
):
    """
    Show summary statistics for suspicious trades.
    """
    setup_logging(debug)
    config = get_config()

    async def run():
        if stored:
            recency = RecencyBasis.DETECTED_AT if by_detection else RecencyBasis.TRADE_TIME
            async with Database(config.storage.database_path) as db:
                pipeline = DetectionPipeline(source=None, database=db, config=config)
                result = await pipeline.stored_stats(recency=recency)
            _print_stats(result, "Stored Trade Statistics")
        else:
            async with DetectionPipeline(config=config) as pipeline:
                result = await pipeline.live_stats(limit=limit)
            _print_stats(result, "Live Statistics")

    asyncio.run(run())


@app.command()
def trades(
    limit: int = typer.Option(50, "--limit", "-l"),
    offset: int = typer.Option(0, "--offset", "-o"),
    min_score: float = typer.Option(0.0, "--min-score", "-s"),
):
    """
    List stored suspicious trades, newest detections first.
    """
    async def run():
        async with Database(get_config().storage.database_path) as db:
            records, total = await db.query_suspicious_trades(
                min_score=min_score, limit=limit, offset=offset,
            )

        if not records:
            console.print("[yellow]No stored trades[/yellow]")
            return

        table = Table(title=f"Stored Trades ({offset + 1}-{offset + len(records)} of {total})")
        table.add_column("Detected")
        table.add_column("Score", justify="right")
        table.add_column("Market", max_width=40)
        table.add_column("Trader", style="cyan")
        table.add_column("Outcome")
        table.add_column("P&L", justify="right")

        for record in records:
            profit = "-" if record.profit_amount is None else f"${record.profit_amount:,.2f}"
            table.add_row(
                record.created_at.strftime("%m-%d %H:%M") if record.created_at else "-",
                f"[{_score_style(record.suspicion_score)}]{record.suspicion_score:.1f}[/]",
                record.market_question,
                _short(record.trader_address),
                record.outcome,
                profit,
            )

        console.print(table)

    asyncio.run(run())


@app.command()
def resolve(
    market_id: str = typer.Argument(..., help="Market condition id"),
    winning_outcome: str = typer.Argument(..., help="Winning outcome label, e.g. Yes"),
):
    """
    Record a market's resolution and compute profit for its stored trades.
    """
    config = get_config()

    async def run():
        async with Database(config.storage.database_path) as db:
            pipeline = DetectionPipeline(source=None, database=db, config=config)
            updated = await pipeline.resolve_market(market_id, winning_outcome)

        if updated:
            console.print(f"[green]Resolved {updated} stored trades for {market_id}[/green]")
        else:
            console.print(f"[yellow]No stored trades for {market_id}[/yellow]")

    asyncio.run(run())


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", "--host", "-h", help="Host to bind to"),
    port: int = typer.Option(8000, "--port", "-p", help="Port to bind to"),
    reload: bool = typer.Option(False, "--reload", "-r", help="Enable auto-reload for development"),
    debug: bool = typer.Option(False, "--debug", "-d"),
):
    """
    Start the JSON API server.
    """
    setup_logging(debug)

    console.print(Panel(
        f"[bold]Starting API server[/bold]\n\n"
        f"Listening on [cyan]http://{host}:{port}[/cyan]\n\n"
        f"Press Ctrl+C to stop",
        title="Insider Watch API",
    ))

    from .api import run_server
    run_server(host=host, port=port, reload=reload)


def main():
    """Entry point."""
    app()


if __name__ == "__main__":
    main()
