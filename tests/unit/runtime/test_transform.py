"""Tests for applying model-produced tool calls to a project."""

import json
from unittest.mock import MagicMock

import pytest

from fakes import FakeGenerator

from miniapp_factory.core.exceptions import (
    SessionError,
    ToolCallParseError,
    ToolExecutionError,
)
from miniapp_factory.prompt import PromptComposer
from miniapp_factory.providers import ProviderTimeoutError
from miniapp_factory.runtime.session import AISession
from miniapp_factory.runtime.transform import TransformRunner, apply_transform
from miniapp_factory.tools import ProjectFile, ToolCall, find_file


@pytest.fixture
def files():
    return [
        ProjectFile.from_path("index.html", "<html><body><h1>Old</h1></body></html>"),
        ProjectFile.from_path("styles.css", "h1 { color: red; }\n"),
    ]


RETITLE = {
    "tool": "replaceContent",
    "args": {"file": "index.html", "selector": "h1", "newContent": "New"},
}


class TestApplyTransform:
    def test_applies_calls_and_collects_messages(self, files):
        calls = [
            ToolCall(**RETITLE),
            ToolCall(tool="createFile", args={"path": "app.js", "content": ""}),
        ]

        result = apply_transform(files, calls)

        assert find_file(result.files, "index.html").content == (
            "<html><body><h1>New</h1></body></html>"
        )
        assert find_file(result.files, "app.js") is not None
        assert result.messages == ["Content replaced", "File created"]
        assert result.tool_calls == calls

    def test_failing_call_leaves_originals(self, files):
        before = list(files)
        calls = [
            ToolCall(**RETITLE),
            ToolCall(tool="deleteFile", args={"path": "missing.html"}),
        ]

        with pytest.raises(ToolExecutionError, match="File not found: missing.html"):
            apply_transform(files, calls)

        assert files == before

    def test_result_must_keep_entry_page(self, files):
        calls = [ToolCall(tool="renameFile", args={"from": "index.html", "to": "home.html"})]

        with pytest.raises(ToolExecutionError) as exc_info:
            apply_transform(files, calls)

        assert exc_info.value.message == "Project must contain index.html"


class TestTransformRunner:
    @pytest.fixture
    def client_for(self, executor, make_chain):
        def _make(generator):
            session = AISession(make_chain(("groq:kimi", generator)), executor=executor)
            client = MagicMock()
            client.create_session.return_value = session
            return client, session

        return _make

    async def test_run_applies_reply(self, files, client_for):
        generator = FakeGenerator(f"Here you go:\n```json\n{json.dumps([RETITLE])}\n```")
        client, session = client_for(generator)
        composer = PromptComposer()
        events = []

        runner = TransformRunner(client, composer, listener=events.append)
        result = await runner.run(
            files, "Rename the heading", model="kimi", provider_id="groq", timeout=30
        )

        assert find_file(result.files, "index.html").content.count("New") == 1
        client.create_session.assert_called_once_with(
            model="kimi",
            provider_id="groq",
            system_prompt=composer.render_system_prompt(),
            timeout=30,
        )
        (messages,) = generator.calls
        assert "Rename the heading" in messages[-1]["content"]
        assert "index.html" in messages[-1]["content"]
        assert [e.type for e in events] == ["provider.selected", "assistant.message"]
        assert session.destroyed

    async def test_unparseable_reply(self, files, client_for):
        client, session = client_for(FakeGenerator("I cannot help with that."))

        with pytest.raises(ToolCallParseError) as exc_info:
            await TransformRunner(client).run(files, "do something")

        assert exc_info.value.category == "invalid_json"
        assert session.destroyed

    async def test_session_failure_propagates(self, files, client_for):
        client, session = client_for(FakeGenerator(ProviderTimeoutError("slow")))

        with pytest.raises(SessionError) as exc_info:
            await TransformRunner(client).run(files, "do something")

        assert exc_info.value.category == "timeout"
        assert session.destroyed
