"""Run a modification request against a project directory."""

import asyncio
from pathlib import Path

import typer
from rich.console import Console

from miniapp_factory.cli.context import load_app_config, open_project, parse_provider
from miniapp_factory.config import ProviderId
from miniapp_factory.core.error_handler import safe_entrypoint
from miniapp_factory.runtime.events import (
    ProviderFallbackEvent,
    ProviderSelectedEvent,
    SessionEvent,
)
from miniapp_factory.runtime.session import AIClient
from miniapp_factory.runtime.transform import TransformResult, TransformRunner
from miniapp_factory.tools import ProjectFile
from miniapp_factory.utils.logging import get_logger

log = get_logger("cli.transform")
console = Console()


def print_result(result: TransformResult, *, dry_run: bool) -> None:
    for index, (call, message) in enumerate(
        zip(result.tool_calls, result.messages, strict=True), start=1
    ):
        console.print(f"[green]✓[/green] {index}. [bold]{call.tool}[/bold]: {message}")
    console.print(
        f"\n{len(result.tool_calls)} tool call(s) applied, "
        f"{len(result.files)} file(s) in project"
        + (" [yellow](dry run, nothing written)[/yellow]" if dry_run else "")
    )


def _show_progress(event: SessionEvent) -> None:
    if isinstance(event, ProviderSelectedEvent):
        console.print(f"[dim]→ trying {event.label}[/dim]")
    elif isinstance(event, ProviderFallbackEvent):
        console.print(f"[dim]✗ {event.label}: {event.error_message}[/dim]")


async def _run_transform(
    client: AIClient,
    files: list[ProjectFile],
    prompt: str,
    *,
    model: str | None,
    provider: ProviderId | None,
    timeout: float,
) -> TransformResult:
    runner = TransformRunner(client, listener=_show_progress)
    try:
        return await runner.run(
            files, prompt, model=model, provider_id=provider, timeout=timeout
        )
    finally:
        await client.aclose()


@safe_entrypoint("cli.transform")
def transform(
    project_dir: Path = typer.Argument(..., help="Project directory"),
    prompt: str = typer.Argument(..., help="Modification request"),
    model: str | None = typer.Option(None, "--model", "-m", help="Model to try first"),
    provider: str | None = typer.Option(
        None, "--provider", "-p", help="Provider to try first"
    ),
    timeout: float = typer.Option(
        120.0, "--timeout", help="Per-attempt deadline in seconds"
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Show what would change without writing files"
    ),
    config_file: Path | None = typer.Option(
        None, "--config-file", help="Extra YAML configuration file"
    ),
    log_level: str | None = typer.Option(
        None, "--log-level", help="Logging level (e.g., DEBUG, INFO, WARNING)"
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Log tracebacks on failure"
    ),
) -> None:
    """Ask the AI for tool calls and apply them to the project's files."""
    config = load_app_config(config_file, log_level)
    provider_id = parse_provider(provider)
    store, name = open_project(project_dir, config)
    files = store.get_files(name)

    client = AIClient.from_config(config)

    log.info(f"Transforming {name}", extra={"files": len(files)})
    result = asyncio.run(
        _run_transform(
            client,
            files,
            prompt,
            model=model,
            provider=provider_id,
            timeout=timeout,
        )
    )

    if not dry_run:
        store.set_files(name, result.files)
    print_result(result, dry_run=dry_run)
