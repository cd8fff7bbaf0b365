"""Console output with the Rich library"""

import json
from typing import TYPE_CHECKING, Any, Optional

import structlog
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.theme import Theme
from rich.traceback import install as install_rich_traceback

if TYPE_CHECKING:
    from ..core.config import Settings
    from ..models.schemas import OrchestratorResult
    from ..models.tool import ToolDefinition

AIORCH_THEME = Theme(
    {
        "info": "cyan",
        "warning": "yellow",
        "error": "bold red",
        "success": "bold green",
        "metric": "magenta",
        "token": "blue",
        "latency": "cyan",
        "tool": "blue",
    }
)

_PREVIEW_CHARS = 60


def _preview(value: Any) -> str:
    text = value if isinstance(value, str) else json.dumps(value, default=str)
    return text if len(text) <= _PREVIEW_CHARS else text[: _PREVIEW_CHARS - 3] + "..."


class AIOrchConsole:
    """Singleton console with the aiorch theme"""

    _instance: Optional["AIOrchConsole"] = None

    def __new__(cls) -> "AIOrchConsole":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if not hasattr(self, "initialized"):
            self.console = Console(theme=AIORCH_THEME)
            self.initialized = True

    def print_banner(self):
        self.console.print(
            Panel.fit(
                "[bold cyan]aiorch[/bold cyan] - AI Orchestration Engine\n"
                "[dim]Context assembly, tool-calling loop and response persistence[/dim]",
                border_style="cyan",
            )
        )

    def print_config_summary(self, settings: "Settings", include_secrets: bool = False):
        """Print effective settings as a two-column table"""
        table = Table(title="Configuration", show_header=False, border_style="cyan")
        table.add_column("Setting", style="cyan")
        table.add_column("Value", style="yellow")

        for key, value in settings.export_safe(include_secrets=include_secrets).items():
            if isinstance(value, int) and not isinstance(value, bool):
                display = f"{value:,}"
            elif value is None or value == {}:
                display = "[dim]-[/dim]"
            else:
                display = str(value)
            table.add_row(key, display)

        self.console.print(table)

    def print_tool_definitions(self, tools: "list[ToolDefinition]"):
        table = Table(title="Tools", show_header=True, border_style="cyan")
        table.add_column("Name", style="tool", no_wrap=True)
        table.add_column("Route", style="magenta")
        table.add_column("Description")
        table.add_column("Parameters", style="dim")

        for tool in tools:
            params = ", ".join(tool.input_schema.get("properties", {}).keys())
            table.add_row(tool.name, tool.type.value, tool.description, params or "-")

        self.console.print(table)

    def print_result(self, result: "OrchestratorResult"):
        """Print an orchestration result: content panel, summary and tool calls"""
        self.console.print(Panel(result.content or "[dim](empty)[/dim]", title="Assistant", border_style="green"))

        table = Table(title="Run Summary", show_header=False, border_style="cyan")
        table.add_column("Metric", style="cyan", no_wrap=True)
        table.add_column("Value", style="yellow", justify="right")
        table.add_row("Model", result.model)
        table.add_row("Iterations", str(result.iterations))
        table.add_row("Stopped Reason", result.stopped_reason.value)
        table.add_row("Prompt Tokens", f"{result.usage.prompt_tokens:,}")
        table.add_row("Completion Tokens", f"{result.usage.completion_tokens:,}")
        table.add_row("Total Tokens", f"[token]{result.usage.total_tokens:,}[/token]")
        self.console.print(table)

        if result.tool_calls:
            self.print_tool_calls(result)

    def print_tool_calls(self, result: "OrchestratorResult"):
        table = Table(title="Tool Calls", show_header=True, border_style="cyan")
        table.add_column("Tool", style="tool", no_wrap=True)
        table.add_column("Status")
        table.add_column("Input", style="dim")
        table.add_column("Output / Error", style="dim")
        table.add_column("Duration", style="latency", justify="right")

        for tc in result.tool_calls:
            ok = tc.status.value == "success"
            table.add_row(
                tc.tool_name,
                "[success]success[/success]" if ok else "[error]failure[/error]",
                _preview(tc.input),
                _preview(tc.output) if ok else (tc.error_message or ""),
                f"{tc.duration_ms:.0f}ms",
            )

        self.console.print(table)

    def print_success(self, message: str):
        self.console.print(f"[success]✓[/success] {message}")

    def print_error(self, message: str):
        self.console.print(f"[error]✗[/error] {message}")

    def print_warning(self, message: str):
        self.console.print(f"[warning]⚠[/warning] {message}")

    def print_info(self, message: str):
        self.console.print(f"[info]ℹ[/info] {message}")


# Global console instance
console = AIOrchConsole()


def setup_rich_logging() -> None:
    """
    Install Rich's traceback handler globally.

    structlog configuration is handled separately in utils/logging.py.
    """
    install_rich_traceback(
        show_locals=False,
        width=120,
        extra_lines=3,
        theme="monokai",
        word_wrap=False,
        suppress=[structlog],
    )
