"""The edit tool vocabulary.

Every tool receives validated arguments and a read-only list of project
files, and returns a :class:`ToolResult` describing the new or removed files.
Failures are raised as :class:`ToolOperationError`.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from typing import Annotated, Any, ClassVar, Literal

from bs4 import Tag
from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    SerializeAsAny,
    StrictStr,
    field_validator,
)

from miniapp_factory.tools.base import (
    EditTool,
    ToolArgumentError,
    ToolArguments,
    ToolOperationError,
)
from miniapp_factory.tools.document import HtmlDocument, InvalidSelectorError
from miniapp_factory.tools.project_files import (
    apply_tool_result,
    find_file,
    primary_stylesheet,
)
from miniapp_factory.tools.stylesheet import Stylesheet, StylesheetParseError
from miniapp_factory.tools.tool_registry import get_tool, register_tool
from miniapp_factory.tools.types import (
    FILE_TYPE_ALIASES,
    FileLanguage,
    FileType,
    ProjectFile,
    ToolResult,
    file_type_for_path,
    language_for_path,
)
from miniapp_factory.tools.validation import SafePath, Selector, validate_tool_call
from miniapp_factory.utils.logging import get_logger

logger = get_logger("tools.edit_tools")

_CSS_PROPERTY_RE = re.compile(r"^-{0,2}[A-Za-z_][A-Za-z0-9_-]*$")


def _require_file(files: list[ProjectFile], path: str) -> ProjectFile:
    file = find_file(files, path)
    if file is None:
        raise ToolOperationError(f"File not found: {path}")
    return file


def _edit_matches(
    files: list[ProjectFile],
    path: str,
    selector: str,
    operation: str,
    edit: Callable[[HtmlDocument, list[Tag]], None],
) -> ProjectFile:
    """Parse ``path``, resolve ``selector`` and apply ``edit`` to the matches."""
    file = _require_file(files, path)
    if file.language is not FileLanguage.HTML:
        raise ToolOperationError(f"{operation} not supported for {file.language.value}")

    document = HtmlDocument(file.content)
    try:
        matches = document.select(selector)
    except InvalidSelectorError as e:
        raise ToolOperationError(str(e)) from e
    if not matches:
        raise ToolOperationError(f"Selector not found: {selector}")

    edit(document, matches)
    return file.with_content(document.serialize())


# ─── Selector-based document edits ────────────────────────────────────────────


@register_tool(name="replaceContent")
class ReplaceContentTool(EditTool):
    """Replace the inner content of every element matching a selector"""

    class Input(ToolArguments):
        file: SafePath
        selector: Selector
        new_content: StrictStr = Field(alias="newContent")
        old_content: StrictStr | None = Field(default=None, alias="oldContent")

        field_errors: ClassVar[dict[str, str]] = {
            "file": "Invalid file path",
            "selector": "Invalid selector or newContent",
            "new_content": "Invalid selector or newContent",
            "old_content": "Invalid oldContent",
        }

    def run(self, args: Input, files: list[ProjectFile]) -> ToolResult:
        def edit(document: HtmlDocument, matches: list[Tag]) -> None:
            if args.old_content:
                for tag in matches:
                    if args.old_content not in document.inner_html(tag):
                        raise ToolOperationError(
                            f"Old content mismatch for selector: {args.selector}"
                        )
            for tag in matches:
                if document.is_attached(tag):
                    document.set_inner_html(tag, args.new_content)

        updated = _edit_matches(files, args.file, args.selector, "Replacement", edit)
        return ToolResult.ok("Content replaced", updated_files=[updated])


@register_tool(name="replaceElement")
class ReplaceElementTool(EditTool):
    """Replace every element matching a selector, tags included"""

    class Input(ToolArguments):
        file: SafePath
        selector: Selector
        new_content: StrictStr = Field(alias="newContent")

        field_errors: ClassVar[dict[str, str]] = {
            "file": "Invalid file path",
            "selector": "Invalid selector or newContent",
            "new_content": "Invalid selector or newContent",
        }

    def run(self, args: Input, files: list[ProjectFile]) -> ToolResult:
        def edit(document: HtmlDocument, matches: list[Tag]) -> None:
            for tag in matches:
                if document.is_attached(tag):
                    document.replace_element(tag, args.new_content)

        updated = _edit_matches(
            files, args.file, args.selector, "Element replacement", edit
        )
        return ToolResult.ok("Element replaced", updated_files=[updated])


@register_tool(name="insertContent")
class InsertContentTool(EditTool):
    """Insert markup before, after, or inside every matching element"""

    class Input(ToolArguments):
        file: SafePath
        selector: Selector
        position: Literal["before", "after", "prepend", "append"]
        content: StrictStr

        field_errors: ClassVar[dict[str, str]] = {
            "file": "Invalid file path",
            "selector": "Invalid selector or content",
            "content": "Invalid selector or content",
            "position": "Invalid position",
        }

    def run(self, args: Input, files: list[ProjectFile]) -> ToolResult:
        def edit(document: HtmlDocument, matches: list[Tag]) -> None:
            for tag in matches:
                if document.is_attached(tag):
                    document.insert(tag, args.position, args.content)

        updated = _edit_matches(files, args.file, args.selector, "Insertion", edit)
        return ToolResult.ok("Content inserted", updated_files=[updated])


@register_tool(name="deleteContent")
class DeleteContentTool(EditTool):
    """Remove every element matching a selector"""

    class Input(ToolArguments):
        file: SafePath
        selector: Selector

        field_errors: ClassVar[dict[str, str]] = {
            "file": "Invalid file path",
            "selector": "Invalid selector",
        }

    def run(self, args: Input, files: list[ProjectFile]) -> ToolResult:
        def edit(document: HtmlDocument, matches: list[Tag]) -> None:
            for tag in matches:
                if document.is_attached(tag):
                    document.remove(tag)

        updated = _edit_matches(files, args.file, args.selector, "Deletion", edit)
        return ToolResult.ok("Content deleted", updated_files=[updated])


# ─── Whole-file operations ────────────────────────────────────────────────────


def _coerce_file_type(value: Any) -> Any:
    if isinstance(value, str):
        lowered = value.strip().lower()
        return FILE_TYPE_ALIASES.get(lowered, lowered)
    return value


@register_tool(name="updateFile")
class UpdateFileTool(EditTool):
    """Overwrite a file's content, creating the file if it does not exist"""

    class Input(ToolArguments):
        file: SafePath
        content: StrictStr

        field_errors: ClassVar[dict[str, str]] = {
            "file": "Invalid file path",
            "content": "Invalid content",
        }

    def run(self, args: Input, files: list[ProjectFile]) -> ToolResult:
        existing = find_file(files, args.file)
        if existing is not None:
            return ToolResult.ok(
                "File updated", updated_files=[existing.with_content(args.content)]
            )
        created = ProjectFile.from_path(args.file, args.content)
        return ToolResult.ok("File created", updated_files=[created])


@register_tool(name="createFile")
class CreateFileTool(EditTool):
    """Create a new file; fails if the path is taken"""

    class Input(ToolArguments):
        path: SafePath
        content: StrictStr
        file_type: Annotated[FileType | None, BeforeValidator(_coerce_file_type)] = (
            Field(default=None, alias="fileType")
        )

        field_errors: ClassVar[dict[str, str]] = {
            "path": "Invalid path",
            "content": "Invalid content",
            "file_type": "Invalid fileType",
        }

    def run(self, args: Input, files: list[ProjectFile]) -> ToolResult:
        if find_file(files, args.path) is not None:
            raise ToolOperationError(f"File already exists: {args.path}")
        created = ProjectFile.from_path(args.path, args.content, args.file_type)
        return ToolResult.ok("File created", updated_files=[created])


@register_tool(name="deleteFile")
class DeleteFileTool(EditTool):
    """Delete a file"""

    class Input(ToolArguments):
        path: SafePath

        field_errors: ClassVar[dict[str, str]] = {"path": "Invalid path"}

    def run(self, args: Input, files: list[ProjectFile]) -> ToolResult:
        _require_file(files, args.path)
        return ToolResult.ok("File deleted", deleted_paths=[args.path])


@register_tool(name="renameFile")
class RenameFileTool(EditTool):
    """Move a file to a new path"""

    class Input(ToolArguments):
        from_path: SafePath = Field(alias="from")
        to_path: SafePath = Field(alias="to")

        field_errors: ClassVar[dict[str, str]] = {
            "from_path": "Invalid rename paths",
            "to_path": "Invalid rename paths",
        }

    def run(self, args: Input, files: list[ProjectFile]) -> ToolResult:
        source = _require_file(files, args.from_path)
        if find_file(files, args.to_path) is not None:
            raise ToolOperationError(f"Destination already exists: {args.to_path}")

        same_language = language_for_path(args.to_path) is source.language
        renamed = ProjectFile(
            path=args.to_path,
            content=source.content,
            language=language_for_path(args.to_path),
            file_type=source.file_type
            if same_language
            else file_type_for_path(args.to_path),
        )
        return ToolResult.ok(
            "File renamed", updated_files=[renamed], deleted_paths=[args.from_path]
        )


# ─── Stylesheet edits ─────────────────────────────────────────────────────────


@register_tool(name="updateStyle")
class UpdateStyleTool(EditTool):
    """Merge or replace declarations of a CSS rule in the primary stylesheet"""

    class Input(ToolArguments):
        selector: Selector
        properties: dict[str, Any]
        action: Literal["merge", "replace"] = "merge"

        field_errors: ClassVar[dict[str, str]] = {
            "selector": "Invalid selector",
            "properties": "Invalid properties",
            "action": "Invalid action",
        }

        @field_validator("properties")
        @classmethod
        def validate_properties(cls, v: dict[str, Any]) -> dict[str, str]:
            for name, value in v.items():
                if not isinstance(value, str):
                    raise ToolArgumentError("CSS properties must be strings")
                if not _CSS_PROPERTY_RE.match(name.strip()) or any(
                    char in value for char in "{};"
                ):
                    raise ToolArgumentError("Invalid properties")
            return {name.strip(): value.strip() for name, value in v.items()}

    def run(self, args: Input, files: list[ProjectFile]) -> ToolResult:
        file = primary_stylesheet(files)
        if file is None:
            raise ToolOperationError("Style file not found (create styles.css first)")

        try:
            stylesheet = Stylesheet(file.content)
        except StylesheetParseError as e:
            raise ToolOperationError(f"CSS parse error: {e}") from e

        stylesheet.update_rule(args.selector, args.properties, args.action)
        return ToolResult.ok(
            "Styles updated",
            updated_files=[file.with_content(stylesheet.serialize())],
        )


# ─── Batches ──────────────────────────────────────────────────────────────────


class BatchOperation(BaseModel):
    """One validated step of a batch."""

    model_config = ConfigDict(frozen=True)

    name: str
    arguments: SerializeAsAny[ToolArguments]


@register_tool(name="batchEdit")
class BatchEditTool(EditTool):
    """Apply several operations atomically: all succeed or nothing changes"""

    class Input(ToolArguments):
        operations: list[Any]

        field_errors: ClassVar[dict[str, str]] = {
            "operations": "Invalid operations list",
        }

        @field_validator("operations")
        @classmethod
        def validate_operations(cls, v: list[Any]) -> list[BatchOperation]:
            if not v:
                raise ToolArgumentError("Invalid operations list")
            operations = []
            for op in v:
                if not isinstance(op, dict):
                    raise ToolArgumentError("Invalid batch operation structure")
                name = op.get("name", op.get("tool"))
                arguments = op.get("arguments", op.get("args"))
                if not isinstance(name, str) or not isinstance(arguments, dict):
                    raise ToolArgumentError("Invalid batch operation structure")
                operations.append(
                    BatchOperation(
                        name=name, arguments=validate_tool_call(name, arguments)
                    )
                )
            return operations

    def run(self, args: Input, files: list[ProjectFile]) -> ToolResult:
        original = {f.path: f for f in files}
        # Working copy; only returned to the caller when every step succeeds
        working = list(files)

        for index, op in enumerate(args.operations, start=1):
            registration = get_tool(op.name)
            if registration is None:
                raise ToolOperationError(f"Tool not allowed: {op.name}")
            result = registration.tool_class().run(op.arguments, working)
            if not result.success:
                return result
            logger.debug(
                f"Batch step {index}/{len(args.operations)} applied",
                extra={"tool": op.name},
            )
            working = apply_tool_result(working, result)

        final_paths = {f.path for f in working}
        changed = [f for f in working if original.get(f.path) != f]
        deleted = [path for path in original if path not in final_paths]
        return ToolResult.ok(
            "Batch edits applied",
            updated_files=changed or None,
            deleted_paths=deleted or None,
        )
