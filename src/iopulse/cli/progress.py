"""Rich progress display for the advisory workflow."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any

from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from iopulse.types import ProgressEvent, ProgressEventType, Stage


@dataclass
class StageInfo:
    """Display state of one workflow stage."""

    stage: Stage
    status: str = "pending"  # pending, running, complete, error
    detail: str = ""
    started_at: float | None = None
    completed_at: float | None = None
    reported_ms: int | None = None

    @property
    def duration(self) -> float | None:
        """Get duration in seconds."""
        if self.reported_ms is not None:
            return self.reported_ms / 1000
        if self.started_at is None:
            return None
        end = self.completed_at or time.time()
        return end - self.started_at

    @property
    def duration_str(self) -> str:
        d = self.duration
        if d is None:
            return ""
        if d < 10:
            return f"{d:.1f}s"
        if d < 60:
            return f"{d:.0f}s"
        return f"{int(d // 60)}m {int(d % 60)}s"


class AdvisoryProgress:
    """Live progress display fed by workflow ProgressEvents."""

    STATUS_ICONS = {
        "pending": "[dim]...[/dim]",
        "running": "[yellow]...[/yellow]",
        "complete": "[green]OK[/green]",
        "error": "[red]ERR[/red]",
    }

    EVENT_STATUS = {
        ProgressEventType.AGENT_START: "running",
        ProgressEventType.AGENT_COMPLETE: "complete",
        ProgressEventType.AGENT_ERROR: "error",
    }

    def __init__(self, console: Console, strategy_name: str, coin: str) -> None:
        """Initialize progress display.

        Args:
            console: Rich console to write to.
            strategy_name: Strategy being advised on.
            coin: The strategy's current holding.
        """
        self.console = console
        self.strategy_name = strategy_name
        self.coin = coin
        self.started_at = time.time()

        self.stages: dict[Stage, StageInfo] = {stage: StageInfo(stage=stage) for stage in Stage}
        self.is_complete = False
        self.error_message: str | None = None

        self._live: Live | None = None

    def _build_display(self) -> Panel:
        table = Table(show_header=False, box=None, padding=(0, 1))
        table.add_column("Step", width=3, justify="right")
        table.add_column("Status", width=4)
        table.add_column("Agent", width=32)
        table.add_column("Detail", style="dim")
        table.add_column("Time", width=8, justify="right", style="dim")

        for stage in Stage:
            info = self.stages[stage]
            if info.status == "running":
                name_style = "bold yellow"
            elif info.status == "complete":
                name_style = "green"
            elif info.status == "error":
                name_style = "red"
            else:
                name_style = "dim"

            detail = info.detail
            table.add_row(
                f"{stage.step}.",
                self.STATUS_ICONS.get(info.status, ""),
                Text(stage.display_name, style=name_style),
                detail[:45] + "..." if len(detail) > 45 else detail,
                info.duration_str,
            )

        footer = Text()
        footer.append("Holding: ", style="dim")
        footer.append(self.coin or "-", style="cyan")
        footer.append("  |  ", style="dim")
        footer.append("Elapsed: ", style="dim")
        footer.append(f"{time.time() - self.started_at:.0f}s", style="cyan")

        if self.is_complete:
            title = f"[bold green]{self.strategy_name} Advice Ready[/bold green]"
            border_style = "green"
        elif self.error_message:
            title = f"[bold red]{self.strategy_name} Advice Failed[/bold red]"
            border_style = "red"
        else:
            title = f"[bold cyan]Advising {self.strategy_name}...[/bold cyan]"
            border_style = "cyan"

        return Panel(Group(table, Text(""), footer), title=title, border_style=border_style)

    def handle(self, event: ProgressEvent) -> None:
        """Progress sink for WorkflowOrchestrator.run_with_updates."""
        info = self.stages[event.stage]
        info.status = self.EVENT_STATUS[event.type]

        if event.type == ProgressEventType.AGENT_START:
            info.started_at = time.time()
            info.detail = ""
        else:
            info.completed_at = time.time()
            info.reported_ms = event.duration_ms
            if event.type == ProgressEventType.AGENT_ERROR:
                error_type = (event.payload or {}).get("errorType", "analysis_error")
                info.detail = error_type
                self.error_message = event.message
            else:
                info.detail = _describe_output(event.payload)

        if self._live:
            self._live.update(self._build_display())

    def mark_complete(self) -> None:
        self.is_complete = True
        if self._live:
            self._live.update(self._build_display())

    def __enter__(self) -> AdvisoryProgress:
        self._live = Live(
            self._build_display(),
            console=self.console,
            refresh_per_second=4,
            transient=False,
            auto_refresh=True,
            get_renderable=self._build_display,
        )
        self._live.__enter__()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if self._live:
            self._live.update(self._build_display())
            self._live.__exit__(exc_type, exc_val, exc_tb)
            self._live = None


def _describe_output(payload: Any) -> str:
    """One-line summary of a stage output."""
    if isinstance(payload, list):
        if payload and isinstance(payload[0], dict):
            return ", ".join(str(item.get("symbol", "?")) for item in payload)
        return ", ".join(str(item) for item in payload)
    if isinstance(payload, dict):
        if "recommendation" in payload:
            return str(payload["recommendation"])
        if "risk_tolerance" in payload:
            return (
                f"{payload['risk_tolerance']} risk, "
                f"{payload.get('desired_market_cap', '?')} cap, "
                f"{payload.get('investment_horizon', '?')}"
            )
    return ""
