"""
CLI for the iopulse advisory pipeline.

Commands:
    iopulse advise - Run the 5-stage workflow for a strategy
    iopulse config - Show current configuration
    iopulse version - Print version
"""

from __future__ import annotations

import asyncio
from datetime import timedelta
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from iopulse import __version__
from iopulse.config import Settings, clear_settings_cache, get_settings
from iopulse.cli.progress import AdvisoryProgress
from iopulse.coordinator.workflow import WorkflowOrchestrator
from iopulse.exceptions import ERROR_MESSAGES
from iopulse.logging import setup_logging
from iopulse.types import (
    PreviousRecommendation,
    Recommendation,
    StrategyInput,
    WorkflowResult,
    utc_now,
)

app = typer.Typer(
    name="iopulse",
    help="iopulse - multi-agent crypto hold/swap advisory",
    no_args_is_help=True,
)

console = Console()
error_console = Console(stderr=True)


def _get_settings_safe() -> Settings | None:
    """Get settings, returning None if configuration is invalid."""
    try:
        clear_settings_cache()
        return get_settings()
    except Exception:
        return None


def _previous_from_options(text: str | None, hours: float) -> PreviousRecommendation | None:
    if not text:
        return None
    parsed = Recommendation(text, "")
    return PreviousRecommendation(
        recommendation=text,
        timestamp=utc_now() - timedelta(hours=hours),
        original_duration=parsed.duration or "1 day",
    )


async def _run_workflow(
    orchestrator: WorkflowOrchestrator,
    strategy: StrategyInput,
    previous: PreviousRecommendation | None,
    progress: AdvisoryProgress,
) -> WorkflowResult:
    try:
        return await orchestrator.run_with_updates(strategy, previous, progress.handle)
    finally:
        await orchestrator.close()


def _coin_table(result: WorkflowResult) -> Table:
    holding = result.strategy.coin
    coins = result.qual_analysis or result.quant_analysis or []
    ranked = sorted(
        coins,
        key=lambda c: (c.combined_score is not None, c.combined_score or 0.0, c.quant_score),
        reverse=True,
    )

    table = Table(title="Scored Coins", show_header=True)
    table.add_column("Symbol", style="cyan")
    table.add_column("90d", justify="right")
    table.add_column("30d", justify="right")
    table.add_column("24h", justify="right")
    table.add_column("Quant", justify="right")
    table.add_column("Qual", justify="right")
    table.add_column("Combined", justify="right", style="bold")

    for coin in ranked:
        symbol = f"{coin.symbol} (held)" if coin.symbol == holding else coin.symbol
        table.add_row(
            symbol,
            f"{coin.change_90d:+.1f}%",
            f"{coin.change_30d:+.1f}%",
            f"{coin.change_24h:+.1f}%",
            f"{coin.quant_score:.2f}",
            f"{coin.qualitative_score:.2f}" if coin.qualitative_score is not None else "-",
            f"{coin.combined_score:.2f}" if coin.combined_score is not None else "-",
        )
    return table


@app.command()
def advise(
    name: Annotated[str, typer.Option("--name", help="Strategy name")],
    description: Annotated[str, typer.Option("--description", help="Strategy description")],
    coin: Annotated[str, typer.Option("--coin", help="Currently held coin symbol")],
    amount: Annotated[str, typer.Option("--amount", help="Amount of the held coin")] = "0",
    live: Annotated[
        bool,
        typer.Option("--live", help="Use live market data instead of the simulator"),
    ] = False,
    previous_recommendation: Annotated[
        Optional[str],
        typer.Option("--previous-recommendation", help="Recommendation the user acted on"),
    ] = None,
    previous_hours: Annotated[
        float,
        typer.Option("--previous-hours", help="Hours since the previous recommendation"),
    ] = 24.0,
) -> None:
    """Run the advisory workflow and print a hold/swap recommendation."""
    settings = _get_settings_safe()
    if settings is None:
        error_console.print(
            "[red]Error:[/red] Configuration is invalid. "
            "Run 'iopulse config' to see what's missing."
        )
        raise typer.Exit(1)

    if live:
        settings = settings.model_copy(update={"TOOL_EXECUTOR": "live"})

    setup_logging(settings.LOG_LEVEL)

    strategy = StrategyInput.from_dict(
        {"name": name, "description": description, "coin": coin, "amount": amount}
    )
    previous = _previous_from_options(previous_recommendation, previous_hours)

    console.print()
    console.print(
        Panel(
            f"[bold]Strategy:[/bold] {strategy.name}\n"
            f"[bold]Holding:[/bold] {strategy.amount} {strategy.coin}\n"
            f"[bold]Market Data:[/bold] {settings.TOOL_EXECUTOR}\n"
            f"[bold]Previous:[/bold] {previous.recommendation if previous else 'none'}",
            title="[bold cyan]iopulse Advisory[/bold cyan]",
            border_style="cyan",
        )
    )

    orchestrator = WorkflowOrchestrator.from_settings(settings)
    with AdvisoryProgress(console, strategy.name, strategy.coin) as progress:
        result = asyncio.run(_run_workflow(orchestrator, strategy, previous, progress))
        if result.success:
            progress.mark_complete()

    if not result.success or result.recommendation is None:
        error_type = result.error_type or "analysis_error"
        message = ERROR_MESSAGES[error_type] if settings.PRODUCTION_MODE else result.error
        error_console.print(
            f"\n[red]Error:[/red] {message} "
            f"[dim](stage: {result.failed_stage.value if result.failed_stage else '?'}, "
            f"type: {error_type})[/dim]"
        )
        raise typer.Exit(1)

    recommendation = result.recommendation
    console.print()
    console.print(
        Panel(
            f"[bold]{recommendation.recommendation}[/bold]\n\n"
            f"{recommendation.explanation}\n\n"
            f"[dim]Action: {recommendation.action} | "
            f"Workflow: {result.workflow_id} | "
            f"Duration: {result.total_time_ms / 1000:.1f}s[/dim]",
            title=f"[bold green]{recommendation.action}[/bold green]",
            border_style="green",
        )
    )
    console.print(_coin_table(result))
    console.print()


@app.command()
def config() -> None:
    """Show current configuration.

    Displays all configuration values with the API key redacted.
    """
    console.print()
    console.print("[bold]iopulse Configuration[/bold]")
    console.print()

    settings = _get_settings_safe()

    if settings is None:
        error_console.print("[red]Configuration is invalid or incomplete.[/red]")
        error_console.print()
        error_console.print("Required environment variables:")
        error_console.print("  - LLM_API_KEY")
        error_console.print()
        error_console.print("Create a .env file or set environment variables.")
        error_console.print("See .env.example for a template.")
        raise typer.Exit(1)

    table = Table(title="Settings", show_header=True)
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    for key, value in settings.redacted_display().items():
        display_value = str(value) if value is not None else "[dim]not set[/dim]"
        table.add_row(key, display_value)

    console.print(table)
    console.print()


@app.command()
def version() -> None:
    """Print the version number."""
    console.print(f"iopulse version {__version__}")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
