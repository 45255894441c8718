"""Config, logging and project lookup shared by the CLI commands."""

from pathlib import Path

from miniapp_factory.config import AppConfig, ConfigManager, ProviderId
from miniapp_factory.core.exceptions import CLIError
from miniapp_factory.storage import DirectoryProjectStore
from miniapp_factory.utils.logging import get_logger, setup_logging

log = get_logger("cli.context")

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def load_app_config(config_file: Path | None, log_level: str | None) -> AppConfig:
    """Load configuration and configure logging.

    ``log_level`` overrides the configured level when given.
    """
    manager = ConfigManager(config_paths=[config_file] if config_file else None)
    if config_file is not None and not Path(config_file).expanduser().exists():
        raise CLIError(f"Config file not found: {config_file}")

    config = manager.global_config
    level = (log_level or config.runtime.log_level).upper()
    if level not in LOG_LEVELS:
        raise CLIError(f"Invalid log level: {log_level}")
    setup_logging(level)
    return config


def parse_provider(value: str | None) -> ProviderId | None:
    if value is None:
        return None
    try:
        return ProviderId(value.strip().lower())
    except ValueError as e:
        choices = ", ".join(p.value for p in ProviderId)
        raise CLIError(f"Unknown provider: {value} (choose from {choices})") from e


def open_project(project: Path, config: AppConfig) -> tuple[DirectoryProjectStore, str]:
    """Resolve ``project`` to a store and project name.

    Relative paths that do not exist are looked up under
    ``runtime.projects_root``.
    """
    path = project.expanduser()
    if not path.is_absolute() and not path.exists():
        path = Path(config.runtime.projects_root).expanduser() / path
    path = path.resolve()

    if not path.is_dir():
        raise CLIError(f"Project directory not found: {project}")
    log.debug(f"Using project directory {path}")
    return DirectoryProjectStore(path.parent), path.name
