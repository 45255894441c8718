"""Types shared by the tool-call extractor and the execution engine."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class FileLanguage(str, Enum):
    HTML = "html"
    CSS = "css"
    JAVASCRIPT = "javascript"


class FileType(str, Enum):
    PAGE = "page"
    PARTIAL = "partial"
    STYLE = "style"
    SCRIPT = "script"


class ToolName(str, Enum):
    """The fixed vocabulary of edit operations."""

    UPDATE_FILE = "updateFile"
    REPLACE_CONTENT = "replaceContent"
    REPLACE_ELEMENT = "replaceElement"
    INSERT_CONTENT = "insertContent"
    DELETE_CONTENT = "deleteContent"
    CREATE_FILE = "createFile"
    DELETE_FILE = "deleteFile"
    RENAME_FILE = "renameFile"
    UPDATE_STYLE = "updateStyle"
    BATCH_EDIT = "batchEdit"


ALLOWED_TOOLS = frozenset(t.value for t in ToolName)

FILE_TYPE_ALIASES = {
    "html": FileType.PAGE,
    "css": FileType.STYLE,
    "js": FileType.SCRIPT,
    "javascript": FileType.SCRIPT,
}


def language_for_path(path: str) -> FileLanguage:
    """Infer the language from the extension; unknown extensions are html."""
    lowered = path.lower()
    if lowered.endswith(".css"):
        return FileLanguage.CSS
    if lowered.endswith(".js"):
        return FileLanguage.JAVASCRIPT
    return FileLanguage.HTML


def file_type_for_path(path: str) -> FileType:
    language = language_for_path(path)
    if language is FileLanguage.CSS:
        return FileType.STYLE
    if language is FileLanguage.JAVASCRIPT:
        return FileType.SCRIPT
    return FileType.PAGE


class ProjectFile(BaseModel):
    """One file of a web project, held in memory.

    Instances are immutable; edits produce new instances via ``model_copy``.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    path: str
    content: str
    language: FileLanguage
    file_type: FileType = Field(alias="fileType")

    @classmethod
    def from_path(
        cls, path: str, content: str, file_type: FileType | None = None
    ) -> ProjectFile:
        return cls(
            path=path,
            content=content,
            language=language_for_path(path),
            file_type=file_type or file_type_for_path(path),
        )

    def with_content(self, content: str) -> ProjectFile:
        return self.model_copy(update={"content": content})


class ToolCall(BaseModel):
    """A normalized tool invocation: name plus argument mapping."""

    model_config = ConfigDict(frozen=True)

    tool: str = Field(min_length=1)
    args: dict[str, Any] = Field(default_factory=dict)


class ToolResult(BaseModel):
    """Outcome of one tool execution.

    A failed result never carries changed files.
    """

    success: bool
    message: str
    updated_files: list[ProjectFile] | None = None
    deleted_paths: list[str] | None = None

    @classmethod
    def ok(
        cls,
        message: str,
        *,
        updated_files: list[ProjectFile] | None = None,
        deleted_paths: list[str] | None = None,
    ) -> ToolResult:
        return cls(
            success=True,
            message=message,
            updated_files=updated_files,
            deleted_paths=deleted_paths,
        )

    @classmethod
    def fail(cls, message: str) -> ToolResult:
        return cls(success=False, message=message)
