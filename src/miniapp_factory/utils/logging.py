import logging
import sys
from typing import TextIO

# Emojis per level
EMOJI_MAP = {
    "DEBUG": "🐞",
    "INFO": "💡",
    "WARNING": "⚠️",
    "ERROR": "🔥",
    "CRITICAL": "💀",
}

# Extra fields whose values must never reach a log line
SENSITIVE_KEYS = ("api_key", "apikey", "authorization", "token", "secret")

_DEFAULT_ATTRS = frozenset(
    logging.LogRecord(
        name="",
        level=logging.NOTSET,
        pathname="",
        lineno=0,
        msg="",
        args=(),
        exc_info=None,
    ).__dict__
) | {"message", "asctime", "taskName"}


def _is_sensitive(key: str) -> bool:
    lowered = key.lower()
    return any(marker in lowered for marker in SENSITIVE_KEYS)


class EmojiFormatter(logging.Formatter):
    """Formatter that adds emojis, subsystem context, and extra fields.

    Extra fields passed through ``extra=`` are appended as ``key=value`` pairs;
    values of secret-looking keys are replaced with ``***``.
    """

    def format(self, record: logging.LogRecord) -> str:
        emoji = EMOJI_MAP.get(record.levelname, "")
        log_line = (
            f"{emoji} [{record.levelname:<8}] ({record.name}) {record.getMessage()}"
        )

        extra_attrs = {
            k: ("***" if _is_sensitive(k) else v)
            for k, v in record.__dict__.items()
            if k not in _DEFAULT_ATTRS and not k.startswith("_")
        }

        if extra_attrs:
            extra_str = " ".join(f"{k}={v!r}" for k, v in extra_attrs.items())
            log_line = f"{log_line} | {extra_str}"

        if record.exc_info:
            log_line = f"{log_line}\n{self.formatException(record.exc_info)}"

        return log_line


def setup_logging(level: int | str = logging.INFO, stream: TextIO | None = None) -> None:
    """Configure root logger with emoji formatter."""
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(EmojiFormatter())

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(handler)

    # The HTTP stack is chatty at DEBUG and logs request headers
    for noisy in ("httpx", "httpcore", "openai"):
        logging.getLogger(noisy).setLevel(max(level, logging.WARNING))


# Helper for subsystems
def get_logger(name: str) -> logging.Logger:
    """Get a subsystem logger under the ``miniapp_factory`` namespace."""
    if name.startswith("miniapp_factory"):
        return logging.getLogger(name)
    return logging.getLogger(f"miniapp_factory.{name}")
