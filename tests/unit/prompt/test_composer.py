"""Unit tests for the PromptComposer class."""

import json

import pytest
from jinja2 import UndefinedError

from miniapp_factory.prompt import PromptComposer, PromptTemplateError
from miniapp_factory.tools import ALLOWED_TOOLS, ProjectFile


@pytest.fixture
def composer():
    return PromptComposer()


@pytest.fixture
def files():
    return [
        ProjectFile.from_path("index.html", "<h1>Hi</h1>"),
        ProjectFile.from_path("styles.css", "h1 { color: red; }"),
        ProjectFile.from_path("parts/nav.html", "<nav></nav>", file_type="partial"),
    ]


class TestSystemPrompt:
    def test_lists_every_tool_with_schema(self, composer):
        prompt = composer.render_system_prompt()

        for name in ALLOWED_TOOLS:
            assert f"## {name}\n" in prompt
        assert '"newContent"' in prompt
        assert "Arguments schema:" in prompt

    def test_describes_response_format(self, composer):
        prompt = composer.render_system_prompt()

        assert prompt.startswith("You are an expert web developer")
        assert '{"tool": "<tool name>", "args": { ... }}' in prompt
        assert "index.html" in prompt

    def test_tool_catalog_schema_is_valid_json(self, composer):
        catalog = {entry["name"]: entry for entry in composer.tool_catalog()}

        schema = json.loads(catalog["renameFile"]["schema"])
        assert set(schema["properties"]) == {"from", "to"}
        assert catalog["deleteFile"]["description"] == "Delete a file"

    def test_environment_is_created_once(self, composer):
        assert composer.env is composer.env


class TestUserPrompt:
    def test_renders_files_and_request(self, composer, files):
        prompt = composer.render_user_prompt(files, "  Make the heading blue \n")

        assert prompt.startswith("Current project files:")
        assert "### index.html (page)\n```html\n<h1>Hi</h1>\n```" in prompt
        assert "### styles.css (style)\n```css\nh1 { color: red; }\n```" in prompt
        assert "### parts/nav.html (partial)" in prompt
        assert prompt.endswith("Modification Request:\n\nMake the heading blue")

    def test_markup_is_not_escaped(self, composer):
        prompt = composer.render_user_prompt(
            [ProjectFile.from_path("index.html", '<a href="/x">&amp;</a>')], "go"
        )
        assert '<a href="/x">&amp;</a>' in prompt

    def test_empty_project(self, composer):
        prompt = composer.render_user_prompt([], "Create a landing page")

        assert "(no files)" in prompt
        assert "###" not in prompt


class TestTemplateRoot:
    def test_custom_templates(self, tmp_path):
        (tmp_path / "system.j2").write_text("Tools: {{ tools | length }}\n")

        composer = PromptComposer(template_root=tmp_path)

        assert composer.render_system_prompt() == f"Tools: {len(ALLOWED_TOOLS)}"

    def test_missing_template(self, tmp_path):
        composer = PromptComposer(template_root=tmp_path)

        with pytest.raises(PromptTemplateError) as exc_info:
            composer.render_user_prompt([], "x")

        assert str(exc_info.value).startswith("[prompt] Prompt template user.j2 not found")

    def test_undefined_variables_are_errors(self, tmp_path):
        (tmp_path / "user.j2").write_text("{{ project_name }}")

        with pytest.raises(UndefinedError):
            PromptComposer(template_root=tmp_path).render_user_prompt([], "x")
