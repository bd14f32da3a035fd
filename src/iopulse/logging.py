"""
Structured logging for the advisory pipeline.

Provides:
- Context variables for workflow_id and stage (using contextvars)
- JSONFormatter for machine-readable logs to file
- A rich console handler that prefixes workflow and stage
- ContextLogger wrapper that accepts keyword fields on every call
- setup_logging() and get_logger()
"""

from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Generator

from rich.console import Console
from rich.logging import RichHandler
from rich.text import Text

_workflow_id_var: ContextVar[str | None] = ContextVar("workflow_id", default=None)
_stage_var: ContextVar[str | None] = ContextVar("stage", default=None)


def get_workflow_id() -> str | None:
    """Get the current workflow ID from context."""
    return _workflow_id_var.get()


def get_stage() -> str | None:
    """Get the current stage name from context."""
    return _stage_var.get()


@contextmanager
def log_context(
    workflow_id: str | None = None,
    stage: str | None = None,
) -> Generator[None, None, None]:
    """Scope workflow/stage logging context to a block.

    Each asyncio task gets its own copy of the context variables, so
    concurrent workflows never see each other's IDs.
    """
    workflow_token = _workflow_id_var.set(workflow_id) if workflow_id is not None else None
    stage_token = _stage_var.set(stage) if stage is not None else None
    try:
        yield
    finally:
        if stage_token is not None:
            _stage_var.reset(stage_token)
        if workflow_token is not None:
            _workflow_id_var.reset(workflow_token)


class JSONFormatter(logging.Formatter):
    """JSON Lines formatter with workflow context."""

    def format(self, record: logging.LogRecord) -> str:
        log_obj: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        workflow_id = get_workflow_id()
        stage = get_stage()
        if workflow_id:
            log_obj["workflow_id"] = workflow_id
        if stage:
            log_obj["stage"] = stage

        if hasattr(record, "fields"):
            log_obj["fields"] = record.fields

        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_obj, default=str)


class ContextRichHandler(RichHandler):
    """Rich handler that shows workflow and stage before the message."""

    def get_level_text(self, record: logging.LogRecord) -> Text:
        level_text = super().get_level_text(record)

        parts: list[str] = []
        workflow_id = get_workflow_id()
        stage = get_stage()

        if workflow_id:
            parts.append(f"[dim]{workflow_id[-8:]}[/dim]")
        if stage:
            parts.append(f"[cyan]{stage}[/cyan]")

        if parts:
            level_text.append_text(Text.from_markup(" " + " ".join(parts)))
        return level_text

    def render_message(self, record: logging.LogRecord, message: str) -> Any:
        fields = getattr(record, "fields", None)
        if fields:
            rendered = " ".join(f"{k}={v}" for k, v in fields.items())
            message = f"{message} [dim]{rendered}[/dim]"
        return super().render_message(record, message)


class ContextLogger:
    """Logger wrapper that takes structured fields as keyword arguments.

    `logger.info("Stage complete", stage="profile", duration_ms=120)`
    """

    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger

    @property
    def name(self) -> str:
        return self._logger.name

    def _log(
        self,
        level: int,
        msg: str,
        *args: Any,
        exc_info: bool = False,
        **fields: Any,
    ) -> None:
        self._logger.log(level, msg, *args, exc_info=exc_info, extra={"fields": fields})

    def debug(self, msg: str, *args: Any, **fields: Any) -> None:
        self._log(logging.DEBUG, msg, *args, **fields)

    def info(self, msg: str, *args: Any, **fields: Any) -> None:
        self._log(logging.INFO, msg, *args, **fields)

    def warning(self, msg: str, *args: Any, **fields: Any) -> None:
        self._log(logging.WARNING, msg, *args, **fields)

    def error(self, msg: str, *args: Any, exc_info: bool = False, **fields: Any) -> None:
        self._log(logging.ERROR, msg, *args, exc_info=exc_info, **fields)

    def exception(self, msg: str, *args: Any, **fields: Any) -> None:
        """Log an error with the current traceback."""
        self._log(logging.ERROR, msg, *args, exc_info=True, **fields)


_console: Console | None = None
_setup_done: bool = False


def get_console() -> Console:
    """Get the shared stderr console."""
    global _console
    if _console is None:
        _console = Console(stderr=True)
    return _console


def setup_logging(
    log_level: str = "INFO",
    log_file: Path | None = None,
    console_output: bool = True,
) -> None:
    """Configure the `iopulse` logger tree.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional JSON Lines log file.
        console_output: Whether to log to the rich console.
    """
    global _setup_done

    root_logger = logging.getLogger("iopulse")
    root_logger.setLevel(getattr(logging, log_level.upper()))
    root_logger.handlers.clear()

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        file_handler.setFormatter(JSONFormatter())
        file_handler.setLevel(logging.DEBUG)
        root_logger.addHandler(file_handler)

    if console_output:
        rich_handler = ContextRichHandler(
            console=get_console(),
            show_time=True,
            show_path=False,
            rich_tracebacks=True,
            markup=True,
        )
        rich_handler.setLevel(getattr(logging, log_level.upper()))
        root_logger.addHandler(rich_handler)

    root_logger.propagate = False

    for noisy_logger in ["httpx", "httpcore", "openai", "aiosqlite"]:
        logging.getLogger(noisy_logger).setLevel(logging.WARNING)

    _setup_done = True


def get_logger(name: str) -> ContextLogger:
    """Get a context-aware logger under the `iopulse` namespace."""
    if not _setup_done:
        setup_logging()

    if not name.startswith("iopulse"):
        name = f"iopulse.{name}"

    return ContextLogger(logging.getLogger(name))
