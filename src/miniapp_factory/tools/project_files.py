"""Helpers over an in-memory list of project files."""

from __future__ import annotations

from collections.abc import Iterable

from miniapp_factory.tools.types import FileType, ProjectFile, ToolResult

ENTRY_PAGE = "index.html"
PRIMARY_STYLESHEET = "styles.css"


def find_file(files: Iterable[ProjectFile], path: str) -> ProjectFile | None:
    return next((f for f in files if f.path == path), None)


def primary_stylesheet(files: Iterable[ProjectFile]) -> ProjectFile | None:
    """``styles.css`` if present, otherwise the first style file."""
    files = list(files)
    return find_file(files, PRIMARY_STYLESHEET) or next(
        (f for f in files if f.file_type is FileType.STYLE), None
    )


def apply_tool_result(
    files: Iterable[ProjectFile], result: ToolResult
) -> list[ProjectFile]:
    """Fold a successful result into a new file list.

    Deleted paths are removed, updated files replace their namesakes in place
    and new files are appended. A failed result returns the files unchanged.
    """
    current = list(files)
    if not result.success:
        return current

    deleted = set(result.deleted_paths or ())
    current = [f for f in current if f.path not in deleted]

    for updated in result.updated_files or ():
        for index, existing in enumerate(current):
            if existing.path == updated.path:
                current[index] = updated
                break
        else:
            current.append(updated)
    return current


def validate_project_files(files: Iterable[ProjectFile]) -> list[str]:
    """Problems that make a file list unusable as a project; empty when valid."""
    problems: list[str] = []
    seen: set[str] = set()
    for f in files:
        if f.path in seen:
            problems.append(f"Duplicate file path: {f.path}")
        seen.add(f.path)
    if ENTRY_PAGE not in seen:
        problems.append(f"Project must contain {ENTRY_PAGE}")
    return problems
