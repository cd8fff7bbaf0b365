"""
Command-line interface for aiorch.

Provides commands to inspect configuration and tools, run the calculator and
ask a one-shot question through the full orchestration pipeline.
"""

import asyncio
import sys
import uuid
from typing import Optional

import typer
from rich.panel import Panel

from . import __version__
from .core.config import get_settings
from .exceptions import ConfigurationError
from .models.contracts import ToolExecutionContext
from .models.schemas import ErrorEvent, MessageDeltaEvent, ToolCompleteEvent
from .utils.rich_logging import console

app = typer.Typer(
    name="aiorch",
    help="AI orchestration engine: context assembly, tool loop and persistence",
    add_completion=False,
)

CLI_USER_ID = "cli-user"


@app.command()
def version():
    """Show version information."""
    console.console.print(f"[bold cyan]aiorch[/bold cyan] version {__version__}")
    console.console.print("AI Orchestration Engine")


@app.command()
def info():
    """
    Display project information.
    """
    console.print_banner()
    panel = Panel(
        f"""[bold]Version:[/bold] {__version__}

[bold]Pipeline:[/bold]
  • Context Assembler - chat, history, memories, knowledge, tools
  • Prompt Builder    - layered system prompt with immutable safety rules
  • Tool Loop         - bounded completion / tool-call iterations
  • Orchestrator      - persists the assistant response

[dim]For help: aiorch --help[/dim]
        """,
        title="Project Info",
        border_style="cyan",
    )
    console.console.print(panel)


@app.command()
def config(
    include_secrets: bool = typer.Option(
        False,
        "--include-secrets",
        help="Show API keys and secrets (WARNING: sensitive data)",
    ),
):
    """
    Display the effective configuration.

    Values are resolved from arguments, AIORCH_* environment variables,
    .env and the [tool.aiorch] section of pyproject.toml.
    """
    console.print_config_summary(get_settings(), include_secrets=include_secrets)
    if not include_secrets:
        console.console.print("[dim]Note: secrets hidden. Use --include-secrets to show them.[/dim]")


@app.command()
def tools():
    """List the built-in local tools."""
    from .tools.registry import get_local_tool_definitions

    console.print_tool_definitions(get_local_tool_definitions())


@app.command()
def calc(expression: str = typer.Argument(..., help="Math expression, e.g. 'sqrt(16) + 2^3'")):
    """
    Evaluate an expression with the calculator tool.

    The call goes through the tool executor, exactly as a model-requested
    call would.
    """
    from .tools.executor import ToolExecutor

    settings = get_settings()
    executor = ToolExecutor.with_builtin_tools(default_timeout=settings.tool_call_timeout)
    context = ToolExecutionContext(
        user_id=CLI_USER_ID, chat_id="cli", request_id=f"cli-{uuid.uuid4().hex[:8]}"
    )
    result = asyncio.run(executor.execute("calculator", {"expression": expression}, context))

    if not result.success:
        console.print_error(result.error_message or "Calculation failed")
        sys.exit(1)
    console.print_success(f"{result.output['expression']} = {result.output['result']}")


async def _run_answer(orchestrator, request: dict):
    async with orchestrator:
        return await orchestrator.run(request)


async def _stream_answer(orchestrator, request: dict) -> bool:
    ok = True
    async with orchestrator:
        async for event in orchestrator.stream(request):
            if isinstance(event, ToolCompleteEvent):
                console.print_info(
                    f"{event.tool_name}: {event.status.value} ({event.duration_ms:.0f}ms)"
                )
            elif isinstance(event, MessageDeltaEvent):
                console.console.print(event.content)
            elif isinstance(event, ErrorEvent):
                console.print_error(f"{event.code}: {event.message}")
                ok = False
    return ok


@app.command()
def ask(
    message: str = typer.Argument(..., help="User message"),
    model: Optional[str] = typer.Option(None, "--model", help="Override the configured model"),
    max_iterations: Optional[int] = typer.Option(
        None, "--max-iterations", min=1, help="Override the tool-loop iteration bound"
    ),
    stream: bool = typer.Option(False, "--stream", help="Print stream events instead of a summary"),
    system_prompt: Optional[str] = typer.Option(None, "--system", help="Active system prompt"),
):
    """
    Ask one question through the full pipeline.

    Runs against in-memory collaborators (a fresh chat with the built-in
    tools) and the configured LLM backend.
    """
    from .core.orchestrator import Orchestrator
    from .services.in_memory import InMemoryServices
    from .tools.registry import get_local_tool_definitions
    from .utils.logging import setup_logging

    settings = get_settings()
    setup_logging(settings)

    services = InMemoryServices()
    services.tools = get_local_tool_definitions()
    services.active_prompt = system_prompt
    chat_id = services.create_chat(CLI_USER_ID)

    try:
        orchestrator = Orchestrator.from_settings(services, settings)
    except ConfigurationError as e:
        console.print_error(e.user_message)
        console.console.print("[dim]Set AIORCH_LLM_API_KEY or add it to .env[/dim]")
        sys.exit(1)

    overrides = {}
    if model:
        overrides["model"] = model
    if max_iterations:
        overrides["max_iterations"] = max_iterations
    request = {
        "user_message": message,
        "chat_id": chat_id,
        "user_id": CLI_USER_ID,
        "config_overrides": overrides or None,
    }

    if stream:
        if not asyncio.run(_stream_answer(orchestrator, request)):
            sys.exit(1)
        return

    result = asyncio.run(_run_answer(orchestrator, request))
    if not result.success:
        console.print_error(f"{result.code}: {result.error.message}")
        sys.exit(1)

    for warning in result.warnings:
        console.print_warning(warning)
    console.print_result(result.data)


def main():
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
