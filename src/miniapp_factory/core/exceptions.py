class FactoryError(Exception):
    """Base exception for all mini-app factory errors.

    The message is automatically prefixed with the subsystem name in square brackets.
    """

    subsystem = "core"

    def __init__(self, message: str, *, subsystem: str | None = None) -> None:
        self.subsystem = subsystem or self.subsystem
        self.message = message
        super().__init__(f"[{self.subsystem}] {message}")


# ─── Subsystem-level exceptions ───────────────────────────────────────────────


class ConfigError(FactoryError):
    """Raised for configuration loading or parsing errors."""

    subsystem = "config"


class LLMError(FactoryError):
    """Raised for issues specific to LLM communication or generation."""

    subsystem = "llm"


class SessionError(LLMError):
    """Raised when a session turn fails after the whole fallback chain.

    ``category`` is one of ``timeout``, ``network``, ``authentication`` or
    ``generic``; ``message`` is the normalized, caller-facing text.
    """

    subsystem = "session"

    def __init__(self, message: str, *, category: str = "generic") -> None:
        self.category = category
        super().__init__(message)


class ToolCallParseError(FactoryError):
    """Raised when a model response cannot be turned into tool calls.

    ``category`` is ``invalid_json`` when no JSON could be recovered and
    ``invalid_payload`` when JSON was found but had the wrong shape.
    """

    subsystem = "tools"

    def __init__(self, message: str, *, category: str = "invalid_payload") -> None:
        self.category = category
        super().__init__(message)


class ToolExecutionError(FactoryError):
    """Raised when a tool call sequence cannot be applied to a project."""

    subsystem = "tools"


class StorageError(FactoryError):
    """Raised for project store read/write failures."""

    subsystem = "storage"


class CLIError(FactoryError):
    """Raised for CLI-specific logic or user input issues."""

    subsystem = "cli"
