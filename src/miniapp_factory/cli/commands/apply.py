"""Apply a saved tool-call payload to a project directory."""

from pathlib import Path

import typer

from miniapp_factory.cli.commands.transform import print_result
from miniapp_factory.cli.context import load_app_config, open_project
from miniapp_factory.core.error_handler import safe_entrypoint
from miniapp_factory.core.exceptions import CLIError
from miniapp_factory.runtime.transform import apply_transform
from miniapp_factory.tools import extract_tool_calls
from miniapp_factory.utils.logging import get_logger

log = get_logger("cli.apply")


@safe_entrypoint("cli.apply")
def apply(
    project_dir: Path = typer.Argument(..., help="Project directory"),
    tool_calls_file: Path = typer.Argument(
        ..., help="File holding a model reply or a JSON array of tool calls"
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
    """Apply tool calls from a file without calling any AI provider."""
    config = load_app_config(config_file, log_level)
    store, name = open_project(project_dir, config)

    try:
        payload = tool_calls_file.read_text(encoding="utf-8")
    except OSError as e:
        raise CLIError(f"Cannot read {tool_calls_file}: {e}") from e

    calls = extract_tool_calls(payload)
    log.info(f"Applying {len(calls)} tool call(s) to {name}")
    result = apply_transform(store.get_files(name), calls)

    if not dry_run:
        store.set_files(name, result.files)
    print_result(result, dry_run=dry_run)
