"""Show provider state and the fallback chain a session would use."""

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from miniapp_factory.cli.context import load_app_config, parse_provider
from miniapp_factory.core.error_handler import safe_entrypoint
from miniapp_factory.providers import ProviderRegistry, build_fallback_chain
from miniapp_factory.utils.logging import get_logger

log = get_logger("cli.providers")
console = Console()


def _providers_table(registry: ProviderRegistry) -> Table:
    table = Table(title="Providers")
    table.add_column("Provider", style="cyan")
    table.add_column("Enabled")
    table.add_column("API key")
    table.add_column("Default model")
    table.add_column("Fallback model")

    for provider_id, state in registry.snapshot().items():
        key_status = (
            f"[green]set[/green] ({state.api_key_env})"
            if state.api_key
            else f"[red]missing[/red] ({state.api_key_env})"
        )
        table.add_row(
            provider_id.value,
            "yes" if state.enabled else "[dim]no[/dim]",
            key_status,
            state.default_model,
            state.fallback_model or "-",
        )
    return table


@safe_entrypoint("cli.providers")
def providers(
    provider: str | None = typer.Option(
        None, "--provider", "-p", help="Provider to try first"
    ),
    model: str | None = typer.Option(None, "--model", "-m", help="Model to try first"),
    config_file: Path | None = typer.Option(
        None, "--config-file", help="Extra YAML configuration file"
    ),
    log_level: str | None = typer.Option(
        None, "--log-level", help="Logging level (e.g., DEBUG, INFO, WARNING)"
    ),
) -> None:
    """List providers and the fallback chain for the given request."""
    config = load_app_config(config_file, log_level)
    provider_id = parse_provider(provider)

    registry = ProviderRegistry(config.ai)
    console.print(_providers_table(registry))

    chain = build_fallback_chain(
        registry,
        provider_id=provider_id,
        model=model,
        retry_provider=config.ai.retry_provider,
    )
    if not chain:
        console.print(
            "[red]No usable provider.[/red] Set an API key for at least one AI provider."
        )
        raise typer.Exit(code=1)

    steps = Table(title="Fallback chain")
    steps.add_column("#", justify="right")
    steps.add_column("Step", style="cyan")
    steps.add_column("Attempts", justify="right")
    for index, step in enumerate(chain, start=1):
        steps.add_row(str(index), step.label, str(step.max_attempts))
    console.print(steps)
