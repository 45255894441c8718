"""Entry points for applying tool calls to project files."""

from __future__ import annotations

import json
from collections.abc import Iterable
from typing import Any

from miniapp_factory.core.exceptions import ToolExecutionError
from miniapp_factory.tools.base import ToolArgumentError, ToolOperationError
from miniapp_factory.tools.project_files import apply_tool_result
from miniapp_factory.tools.tool_registry import get_tool
from miniapp_factory.tools.types import ProjectFile, ToolCall, ToolResult
from miniapp_factory.tools.validation import validate_tool_call
from miniapp_factory.utils.logging import get_logger

logger = get_logger("tools.tool_executor")

_PREVIEW_CHARS = 400


def _preview(args: Any) -> str:
    text = json.dumps(args, default=str, ensure_ascii=False)
    return text if len(text) <= _PREVIEW_CHARS else text[:_PREVIEW_CHARS] + "…"


def execute_tool(
    name: str, args: dict[str, Any], files: Iterable[ProjectFile]
) -> ToolResult:
    """Validate and run one tool against ``files``.

    The input list and its files are never modified; the result describes
    what changed. Validation and operation failures come back as a failed
    :class:`ToolResult`, never as an exception.
    """
    snapshot = list(files)

    try:
        parsed = validate_tool_call(name, args)
    except ToolArgumentError as e:
        logger.info(f"Rejected {name}: {e.message}")
        return ToolResult.fail(e.message)

    registration = get_tool(name)
    if registration is None:
        return ToolResult.fail(f"Unknown tool: {name}")
    logger.debug(f"Executing {name}", extra={"args": _preview(args)})

    try:
        result = registration.tool_class().run(parsed, snapshot)
    except ToolOperationError as e:
        logger.info(f"{name} failed: {e.message}")
        return ToolResult.fail(e.message)

    logger.debug(f"{name}: {result.message}")
    return result


def execute_tool_call(call: ToolCall, files: Iterable[ProjectFile]) -> ToolResult:
    return execute_tool(call.tool, call.args, files)


def apply_tool_calls(
    calls: Iterable[ToolCall], files: Iterable[ProjectFile]
) -> list[ProjectFile]:
    """Run ``calls`` in order on a working copy and return the final file list.

    Raises:
        ToolExecutionError: At the first failing call; ``files`` is untouched
    """
    working = list(files)
    for index, call in enumerate(calls, start=1):
        result = execute_tool_call(call, working)
        if not result.success:
            raise ToolExecutionError(
                f"Tool call {index} ({call.tool}) failed: {result.message}"
            )
        working = apply_tool_result(working, result)
    return working
