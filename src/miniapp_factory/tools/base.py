from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, ValidationError

from miniapp_factory.tools.types import ProjectFile, ToolResult
from miniapp_factory.utils.logging import get_logger

logger = get_logger("tools.base")


class ToolArgumentError(ValueError):
    """Raised when tool arguments fail validation; ``message`` is caller-facing."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ToolOperationError(Exception):
    """Raised by a tool when the edit cannot be applied; ``message`` is caller-facing."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ToolArguments(BaseModel):
    """Base input model for edit tools.

    ``field_errors`` maps a field name to the message reported when that
    field is missing or has the wrong type. Validators that raise
    :class:`ToolArgumentError` report their own message instead.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    field_errors: ClassVar[dict[str, str]] = {}
    default_error: ClassVar[str] = "Invalid arguments"

    @classmethod
    def parse(cls, args: Any) -> ToolArguments:
        if not isinstance(args, dict):
            raise ToolArgumentError(cls.default_error)
        try:
            return cls.model_validate(args)
        except ValidationError as e:
            raise ToolArgumentError(cls._message_for(e)) from e

    @classmethod
    def _message_for(cls, error: ValidationError) -> str:
        fields = {name: info.alias or name for name, info in cls.model_fields.items()}
        by_alias = {alias: name for name, alias in fields.items()}
        for detail in error.errors():
            loc = detail.get("loc") or ()
            field = by_alias.get(loc[0], loc[0]) if loc else None
            if detail.get("type") == "value_error":
                cause = (detail.get("ctx") or {}).get("error")
                if isinstance(cause, ToolArgumentError):
                    return cause.message
            if field in cls.field_errors:
                return cls.field_errors[field]
        return cls.default_error

    def to_args(self) -> dict[str, Any]:
        """Normalized arguments in their wire form (camelCase aliases)."""
        return self.model_dump(by_alias=True, exclude_none=True)


class EditTool(ABC):
    """Base class for edit tools.

    Subclasses define an inner ``Input`` model (a :class:`ToolArguments`) and
    implement :meth:`run`, which must not mutate the files it receives.
    """

    name: ClassVar[str] = ""
    description: ClassVar[str] = ""

    class Input(ToolArguments):
        pass

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)

        if cls.__dict__.get("__abstractmethods__", None):
            return

        if "run" not in cls.__dict__:
            raise TypeError(
                f"Can't instantiate abstract class {cls.__name__} "
                f"without implementing the 'run' method"
            )

        if not (hasattr(cls, "Input") and issubclass(cls.Input, ToolArguments)):
            raise TypeError(
                f"Tool '{cls.__name__}' must define an inner 'Input' class "
                f"that inherits from ToolArguments"
            )

    @abstractmethod
    def run(self, args: Input, files: list[ProjectFile]) -> ToolResult:
        """Apply the tool to ``files`` and describe the change.

        Args:
            args: Validated arguments
            files: Current project files (read-only)
        """

    @classmethod
    def get_input_schema(cls) -> dict:
        """Get the JSON Schema for the tool's input."""
        return cls.Input.model_json_schema(by_alias=True)
