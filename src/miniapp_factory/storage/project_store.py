"""Where project files live between transforms.

Only the narrow read/replace interface is defined here; the CLI uses the
directory-backed store and tests use the in-memory one.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from pathlib import Path
from typing import Protocol, runtime_checkable

import yaml

from miniapp_factory.core.exceptions import StorageError
from miniapp_factory.tools import FileType, ProjectFile, normalize_tool_path
from miniapp_factory.tools.types import file_type_for_path
from miniapp_factory.utils.logging import get_logger

logger = get_logger("storage.project_store")

WEB_SUFFIXES = frozenset({".html", ".htm", ".css", ".js"})

# File types that differ from what the extension implies, keyed by path
MANIFEST_NAME = ".miniapp-files.yaml"

_PROJECT_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


def validate_project_name(name: str) -> str:
    if not isinstance(name, str) or not _PROJECT_NAME_RE.match(name) or ".." in name:
        raise StorageError(f"Invalid project name: {name!r}")
    return name


@runtime_checkable
class ProjectStore(Protocol):
    """Read and replace the complete file list of a named project."""

    def get_files(self, name: str) -> list[ProjectFile]:
        """Return the project's files.

        Raises:
            StorageError: If the project does not exist or cannot be read
        """
        ...

    def set_files(self, name: str, files: Iterable[ProjectFile]) -> None:
        """Replace the project's files with ``files``."""
        ...


class InMemoryProjectStore:
    def __init__(self, projects: dict[str, list[ProjectFile]] | None = None):
        self._projects: dict[str, list[ProjectFile]] = {
            name: list(files) for name, files in (projects or {}).items()
        }

    def get_files(self, name: str) -> list[ProjectFile]:
        if name not in self._projects:
            raise StorageError(f"Project not found: {name}")
        return list(self._projects[name])

    def set_files(self, name: str, files: Iterable[ProjectFile]) -> None:
        self._projects[validate_project_name(name)] = list(files)

    def __contains__(self, name: object) -> bool:
        return name in self._projects


class DirectoryProjectStore:
    """Projects as directories under ``root``.

    Only web files (``.html``, ``.htm``, ``.css``, ``.js``) belong to the file
    list; hidden entries are skipped and other files are left alone. A file
    type the extension cannot express (a ``partial`` page, say) is kept in
    the hidden ``.miniapp-files.yaml`` manifest.
    """

    def __init__(self, root: Path | str):
        self.root = Path(root)

    def project_dir(self, name: str) -> Path:
        return self.root / validate_project_name(name)

    def _iter_web_files(self, base: Path) -> list[Path]:
        paths = []
        for path in sorted(base.rglob("*")):
            relative = path.relative_to(base)
            if any(part.startswith(".") for part in relative.parts):
                continue
            if path.is_file() and path.suffix.lower() in WEB_SUFFIXES:
                paths.append(path)
        return paths

    def _read_manifest(self, base: Path) -> dict[str, FileType]:
        path = base / MANIFEST_NAME
        if not path.is_file():
            return {}
        try:
            raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except (OSError, yaml.YAMLError) as e:
            raise StorageError(f"Failed to read {MANIFEST_NAME}: {e}") from e
        if not isinstance(raw, dict):
            raise StorageError(f"Invalid {MANIFEST_NAME}: expected a mapping")

        file_types = {}
        for relative, value in raw.items():
            try:
                file_types[str(relative)] = FileType(value)
            except ValueError:
                logger.warning(
                    f"Ignoring unknown file type in {MANIFEST_NAME}",
                    extra={"path": relative, "file_type": value},
                )
        return file_types

    def _write_manifest(self, base: Path, overrides: dict[str, str]) -> None:
        path = base / MANIFEST_NAME
        if overrides:
            path.write_text(yaml.safe_dump(overrides, sort_keys=True), encoding="utf-8")
        elif path.exists():
            path.unlink()

    def get_files(self, name: str) -> list[ProjectFile]:
        base = self.project_dir(name)
        if not base.is_dir():
            raise StorageError(f"Project not found: {name}")

        file_types = self._read_manifest(base)
        files = []
        for path in self._iter_web_files(base):
            relative = path.relative_to(base).as_posix()
            try:
                content = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                raise StorageError(f"Failed to read {relative}: {e}") from e
            files.append(
                ProjectFile.from_path(relative, content, file_types.get(relative))
            )

        logger.debug(f"Loaded project {name}", extra={"files": len(files)})
        return files

    def set_files(self, name: str, files: Iterable[ProjectFile]) -> None:
        """Write ``files`` and remove web files that are no longer listed."""
        base = self.project_dir(name)
        files = list(files)

        targets: dict[Path, ProjectFile] = {}
        overrides: dict[str, str] = {}
        for f in files:
            safe = normalize_tool_path(f.path)
            if safe is None:
                raise StorageError(f"Refusing to write unsafe path: {f.path}")
            targets[base / safe] = f
            if f.file_type is not file_type_for_path(safe):
                overrides[safe] = f.file_type.value

        stale = (
            [p for p in self._iter_web_files(base) if p not in targets]
            if base.is_dir()
            else []
        )

        try:
            for target, f in targets.items():
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_text(f.content, encoding="utf-8")
            for path in stale:
                path.unlink()
            self._write_manifest(base, overrides)
        except OSError as e:
            raise StorageError(f"Failed to write project {name}: {e}") from e

        logger.info(
            f"Saved project {name}",
            extra={"written": len(targets), "removed": len(stale)},
        )
