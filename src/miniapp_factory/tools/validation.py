"""Argument validation shared by all edit tools."""

from __future__ import annotations

import posixpath
import re
from typing import Annotated, Any

from pydantic import AfterValidator, StrictStr

from miniapp_factory.tools.base import ToolArgumentError, ToolArguments
from miniapp_factory.tools.tool_registry import get_tool
from miniapp_factory.tools.types import ALLOWED_TOOLS

MAX_PATH_DEPTH = 8

_DRIVE_RE = re.compile(r"^[A-Za-z]:")


def normalize_tool_path(value: Any) -> str | None:
    """Return a safe project-relative path, or ``None`` if it could escape the root.

    Rejected: empty paths, ``.``, absolute paths (``/x``, ``C:x``, ``\\\\x``),
    any ``..`` segment, NUL bytes, and paths deeper than ``MAX_PATH_DEPTH``.
    Backslashes are treated as separators; a leading ``./`` is dropped.
    """
    if not isinstance(value, str):
        return None
    raw = value.strip().replace("\\", "/")
    if not raw or "\x00" in raw:
        return None
    if raw.startswith("/") or _DRIVE_RE.match(raw):
        return None

    while raw.startswith("./"):
        raw = raw[2:]
    if any(segment == ".." for segment in raw.split("/")):
        return None

    normalized = posixpath.normpath(raw)
    if normalized in ("", "."):
        return None
    if len(normalized.split("/")) > MAX_PATH_DEPTH:
        return None
    return normalized


def _require_safe_path(value: str) -> str:
    normalized = normalize_tool_path(value)
    if normalized is None:
        raise ValueError("path escapes the project root")
    return normalized


def _require_text(value: str) -> str:
    if not value.strip():
        raise ValueError("must not be blank")
    return value.strip()


SafePath = Annotated[StrictStr, AfterValidator(_require_safe_path)]
Selector = Annotated[StrictStr, AfterValidator(_require_text)]


def validate_tool_call(name: Any, args: Any) -> ToolArguments:
    """Validate a tool call against the tool's argument model.

    Returns the parsed, normalized arguments.

    Raises:
        ToolArgumentError: With the caller-facing message for the first defect
    """
    if not isinstance(name, str) or name not in ALLOWED_TOOLS:
        raise ToolArgumentError(f"Tool not allowed: {name}")
    registration = get_tool(name)
    if registration is None:
        raise ToolArgumentError(f"Tool not allowed: {name}")
    return registration.tool_class.Input.parse(args)
