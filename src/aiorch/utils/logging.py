"""
Structured logging for the orchestration engine.

structlog is configured once per process by ``setup_logging``. Components log
through a ``ComponentLogger`` which emits ``<operation>_started``,
``<operation>_completed`` and ``<operation>_failed`` events, optionally echoed
to a rich console.
"""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

import structlog
from rich.console import Console

from ..core.config import Settings, get_settings
from ..models.enums import LogLevel

# Console echo of component operations; switched on by setup_logging
_console_echo = False


def setup_file_logging(
    log_file: Path, max_bytes: int = 10 * 1024 * 1024, backup_count: int = 5  # 10MB
) -> RotatingFileHandler:
    """
    Configure rotating file handler for logs.

    Args:
        log_file: Path to the log file
        max_bytes: Maximum log file size before rotation (default: 10MB)
        backup_count: Number of backup files to keep (default: 5)

    Returns:
        Configured RotatingFileHandler instance
    """
    file_handler = RotatingFileHandler(
        log_file, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    file_handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.processors.JSONRenderer(),
            ],
        )
    )
    return file_handler


def setup_logging(settings: Settings | None = None) -> None:
    """
    Configure structured logging with appropriate processors.

    Sets up structlog with contextvars merging (``request_id`` is bound per
    run), ISO timestamps, log level filtering and optional JSON file logging
    with rotation.
    """
    global _console_echo
    settings = settings or get_settings()
    _console_echo = settings.enable_rich_console
    level_name = settings.log_level.value

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if settings.log_file is not None:
        settings.ensure_log_directory()
        file_handler = setup_file_logging(
            log_file=settings.log_file,
            max_bytes=settings.log_max_bytes,
            backup_count=settings.log_backup_count,
        )

        console_handler = logging.StreamHandler()
        console_handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(
                processors=[
                    structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                    structlog.dev.ConsoleRenderer(),
                ],
            )
        )

        root_logger = logging.getLogger()
        root_logger.addHandler(file_handler)
        root_logger.addHandler(console_handler)
        root_logger.setLevel(getattr(logging, level_name, logging.INFO))

        # Handlers do the rendering
        logger_factory = structlog.stdlib.LoggerFactory()
        processors = shared_processors + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ]
    else:
        logger_factory = structlog.PrintLoggerFactory()  # type: ignore[assignment]
        processors = shared_processors + [
            (
                structlog.processors.JSONRenderer()
                if settings.log_level == LogLevel.DEBUG
                else structlog.dev.ConsoleRenderer()
            ),
        ]

    structlog.configure(
        processors=processors,  # type: ignore[arg-type]
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level_name, logging.INFO)
        ),
        context_class=dict,
        logger_factory=logger_factory,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (typically module name)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


def bind_request_id(request_id: str) -> None:
    """Bind the request id into the structlog context for the current task."""
    structlog.contextvars.bind_contextvars(request_id=request_id)


def unbind_request_id() -> None:
    structlog.contextvars.unbind_contextvars("request_id")


class ComponentLogger:
    """Base class for component-specific structured logging"""

    def __init__(self, component_name: str, console: Console | None = None):
        self.logger = structlog.get_logger(component_name)
        self.component = component_name
        self.console = console or Console(stderr=True)

    def log_operation_start(self, operation: str, details: dict | None = None):
        if _console_echo:
            self.console.print(f"[cyan]▶[/cyan] [{self.component}] Starting: {operation}")
        self.logger.info(f"{operation}_started", component=self.component, **(details or {}))

    def log_operation_complete(
        self, operation: str, duration_ms: float | None = None, details: dict | None = None
    ):
        if _console_echo:
            msg = f"[green]✅[/green] [{self.component}] Completed: {operation}"
            if duration_ms is not None:
                msg += f" ({duration_ms:.0f}ms)"
            self.console.print(msg)

        log_data = details.copy() if details else {}
        log_data["component"] = self.component
        if duration_ms is not None:
            log_data["duration_ms"] = duration_ms

        self.logger.info(f"{operation}_completed", **log_data)

    def log_operation_error(self, operation: str, error: Exception, details: dict | None = None):
        if _console_echo:
            self.console.print(f"[red]❌[/red] [{self.component}] Failed: {operation}: {error}")

        log_data = details.copy() if details else {}
        log_data.update(
            {
                "component": self.component,
                "error_type": type(error).__name__,
                "error_message": str(error),
            }
        )

        self.logger.error(f"{operation}_failed", **log_data, exc_info=error)

    def log_event(self, event: str, level: str = "info", **details: Any):
        """Log a named component event (e.g. ``context_soft_failure``)."""
        getattr(self.logger, level)(event, component=self.component, **details)


# Component-specific loggers
assembler_logger = ComponentLogger("assembler")
prompt_logger = ComponentLogger("prompt")
tool_loop_logger = ComponentLogger("tool_loop")
executor_logger = ComponentLogger("executor")
orchestrator_logger = ComponentLogger("orchestrator")
