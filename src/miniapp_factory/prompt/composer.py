from __future__ import annotations

import json
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateNotFound

from miniapp_factory.core.exceptions import FactoryError
from miniapp_factory.tools import ProjectFile, list_tools
from miniapp_factory.tools.types import FileLanguage
from miniapp_factory.utils.logging import get_logger

log = get_logger("prompt.composer")

DEFAULT_TEMPLATE_ROOT = Path(__file__).resolve().parent / "templates"

_FENCE_LANGUAGES = {
    FileLanguage.HTML: "html",
    FileLanguage.CSS: "css",
    FileLanguage.JAVASCRIPT: "javascript",
}


class PromptTemplateError(FactoryError):
    """Raised when a prompt template is missing."""

    subsystem = "prompt"


class PromptComposer:
    """Render the tool-calling prompts sent to the model for a transform."""

    SYSTEM_TEMPLATE = "system.j2"
    USER_TEMPLATE = "user.j2"

    def __init__(self, *, template_root: Path | None = None) -> None:
        self.template_root = Path(template_root) if template_root else DEFAULT_TEMPLATE_ROOT
        self._env: Environment | None = None

    @property
    def env(self) -> Environment:
        """Get or create the Jinja2 environment."""
        if self._env is None:
            self._env = self._create_environment()
        return self._env

    def _create_environment(self) -> Environment:
        # Prompts embed raw HTML, so nothing is autoescaped
        return Environment(
            loader=FileSystemLoader(self.template_root),
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
            undefined=StrictUndefined,
            keep_trailing_newline=False,
        )

    def tool_catalog(self) -> list[dict[str, Any]]:
        """Tool name, description and pretty-printed argument schema."""
        return [
            {
                "name": registration.name,
                "description": registration.description,
                "schema": json.dumps(registration.input_schema, indent=2, sort_keys=True),
            }
            for registration in list_tools()
        ]

    def render_system_prompt(self) -> str:
        return self._render(self.SYSTEM_TEMPLATE, {"tools": self.tool_catalog()})

    def render_user_prompt(self, files: Iterable[ProjectFile], request: str) -> str:
        payload = {
            "files": [
                {
                    "path": f.path,
                    "file_type": f.file_type.value,
                    "fence": _FENCE_LANGUAGES.get(f.language, ""),
                    "content": f.content,
                }
                for f in files
            ],
            "request": request.strip(),
        }
        return self._render(self.USER_TEMPLATE, payload)

    def _render(self, template_name: str, payload: dict[str, Any]) -> str:
        try:
            template = self.env.get_template(template_name)
        except TemplateNotFound as e:
            raise PromptTemplateError(
                f"Prompt template {template_name} not found in {self.template_root}"
            ) from e
        rendered = template.render(**payload).strip()
        log.debug(f"Rendered {template_name}", extra={"chars": len(rendered)})
        return rendered


__all__ = ["PromptComposer", "PromptTemplateError"]
