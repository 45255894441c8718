"""Tool-call extraction and the structured edit engine."""

from . import edit_tools  # noqa: F401  registers the tool vocabulary
from .base import EditTool, ToolArgumentError, ToolArguments, ToolOperationError
from .extraction import extract_tool_calls, normalize_tool_call, strip_code_fence
from .project_files import apply_tool_result, find_file, validate_project_files
from .tool_executor import apply_tool_calls, execute_tool, execute_tool_call
from .tool_registry import get_tool, list_tools, register_tool
from .types import (
    ALLOWED_TOOLS,
    FileLanguage,
    FileType,
    ProjectFile,
    ToolCall,
    ToolName,
    ToolResult,
)
from .validation import normalize_tool_path, validate_tool_call

__all__ = [
    "ALLOWED_TOOLS",
    "EditTool",
    "FileLanguage",
    "FileType",
    "ProjectFile",
    "ToolArgumentError",
    "ToolArguments",
    "ToolCall",
    "ToolName",
    "ToolOperationError",
    "ToolResult",
    "apply_tool_calls",
    "apply_tool_result",
    "execute_tool",
    "execute_tool_call",
    "extract_tool_calls",
    "find_file",
    "get_tool",
    "list_tools",
    "normalize_tool_call",
    "normalize_tool_path",
    "register_tool",
    "strip_code_fence",
    "validate_project_files",
    "validate_tool_call",
]
