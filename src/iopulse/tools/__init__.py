"""Market-data tools answered during tool-calling stages."""

from iopulse.config import Settings
from iopulse.tools.base import ToolExecutor
from iopulse.tools.live import LiveToolExecutor
from iopulse.tools.simulated import SimulatedToolExecutor


def create_tool_executor(settings: Settings) -> ToolExecutor:
    """Build the executor selected by TOOL_EXECUTOR."""
    if settings.TOOL_EXECUTOR == "live":
        return LiveToolExecutor.from_settings(settings)
    return SimulatedToolExecutor()


__all__ = [
    "LiveToolExecutor",
    "SimulatedToolExecutor",
    "ToolExecutor",
    "create_tool_executor",
]
