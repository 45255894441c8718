"""Registration of edit tools under their wire names."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

from .base import EditTool

T = TypeVar("T", bound=EditTool)


@dataclass(frozen=True)
class ToolRegistration:
    """A registered tool.

    Attributes:
        name: Wire name used in tool calls (e.g. ``replaceContent``)
        tool_class: The tool class
        description: Human-readable description used in prompts
    """

    name: str
    tool_class: type[EditTool]
    description: str = ""

    @property
    def input_schema(self) -> dict:
        return self.tool_class.get_input_schema()


# Global registry
_TOOL_REGISTRY: dict[str, ToolRegistration] = {}


def register_tool(
    *, name: str, description: str | None = None
) -> Callable[[type[T]], type[T]]:
    """Decorator to register a tool class under ``name``."""

    def decorator(tool_class: type[T]) -> type[T]:
        if name in _TOOL_REGISTRY:
            raise ValueError(f"Tool '{name}' is already registered")
        doc_lines = (tool_class.__doc__ or "").strip().splitlines()
        text = description or (doc_lines[0] if doc_lines else "")
        tool_class.name = name
        tool_class.description = text
        _TOOL_REGISTRY[name] = ToolRegistration(
            name=name, tool_class=tool_class, description=text
        )
        return tool_class

    return decorator


def get_tool(name: str) -> ToolRegistration | None:
    return _TOOL_REGISTRY.get(name)


def list_tools() -> list[ToolRegistration]:
    """Registered tools in registration order."""
    return list(_TOOL_REGISTRY.values())
