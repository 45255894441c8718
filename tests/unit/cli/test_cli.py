"""Tests for the maf command line."""

import json
import logging
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from typer.testing import CliRunner

from miniapp_factory.cli.main import app
from miniapp_factory.providers import FallbackExecutor, FallbackStep, ProviderId
from miniapp_factory.runtime.session import AISession

runner = CliRunner()

INDEX = "<html><body><h1>Old</h1></body></html>"

RETITLE = [
    {
        "tool": "replaceContent",
        "args": {"file": "index.html", "selector": "h1", "newContent": "New"},
    }
]


@pytest.fixture(autouse=True)
def _restore_root_logging(monkeypatch, tmp_path):
    """Keep CLI logging setup from leaking into other tests."""
    monkeypatch.chdir(tmp_path)
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def project(tmp_path):
    path = tmp_path / "shop"
    path.mkdir()
    (path / "index.html").write_text(INDEX, encoding="utf-8")
    return path


@pytest.fixture
def calls_file(tmp_path):
    path = tmp_path / "calls.json"
    path.write_text(f"```json\n{json.dumps(RETITLE)}\n```", encoding="utf-8")
    return path


class TestProvidersCommand:
    def test_no_keys_exits_with_error(self):
        result = runner.invoke(app, ["providers"])

        assert result.exit_code == 1
        assert "No usable provider." in result.output

    def test_shows_fallback_chain(self, monkeypatch):
        monkeypatch.setenv("CEREBRAS_API_KEY", "test-key")

        result = runner.invoke(app, ["providers", "--provider", "cerebras"])

        assert result.exit_code == 0
        assert "Fallback chain" in result.output
        assert "cerebras:llama-3.3-70b" in result.output

    def test_unknown_provider(self, monkeypatch):
        monkeypatch.setenv("GROQ_API_KEY", "test-key")

        result = runner.invoke(app, ["providers", "-p", "acme"])

        assert result.exit_code == 1

    def test_missing_config_file(self, tmp_path):
        result = runner.invoke(
            app, ["providers", "--config-file", str(tmp_path / "nope.yaml")]
        )

        assert result.exit_code == 1


class TestApplyCommand:
    def test_applies_and_writes(self, project, calls_file):
        result = runner.invoke(app, ["apply", str(project), str(calls_file)])

        assert result.exit_code == 0, result.output
        assert "replaceContent" in result.output
        assert "1 tool call(s) applied" in result.output
        assert "<h1>New</h1>" in (project / "index.html").read_text(encoding="utf-8")

    def test_dry_run_writes_nothing(self, project, calls_file):
        result = runner.invoke(
            app, ["apply", str(project), str(calls_file), "--dry-run"]
        )

        assert result.exit_code == 0
        assert "dry run" in result.output
        assert (project / "index.html").read_text(encoding="utf-8") == INDEX

    def test_failing_call_leaves_project_untouched(self, project, tmp_path):
        bad = tmp_path / "bad.json"
        bad.write_text(
            json.dumps(
                RETITLE + [{"tool": "deleteFile", "args": {"path": "missing.html"}}]
            ),
            encoding="utf-8",
        )

        result = runner.invoke(app, ["apply", str(project), str(bad)])

        assert result.exit_code == 1
        assert (project / "index.html").read_text(encoding="utf-8") == INDEX

    def test_unparseable_payload(self, project, tmp_path):
        bad = tmp_path / "reply.txt"
        bad.write_text("Sorry, I can't do that.", encoding="utf-8")

        result = runner.invoke(app, ["apply", str(project), str(bad)])

        assert result.exit_code == 1

    def test_missing_project(self, tmp_path, calls_file):
        result = runner.invoke(app, ["apply", str(tmp_path / "nope"), str(calls_file)])

        assert result.exit_code == 1

    def test_relative_project_resolved_from_cwd(self, project, calls_file):
        result = runner.invoke(app, ["apply", "shop", str(calls_file)])

        assert result.exit_code == 0
        assert "<h1>New</h1>" in (project / "index.html").read_text(encoding="utf-8")


class ScriptedGenerator:
    def __init__(self, reply: str):
        self.reply = reply

    async def generate(self, messages):
        return self.reply


def _client_replying(reply: str) -> MagicMock:
    step = FallbackStep(
        label="groq:test-model",
        provider_id=ProviderId.GROQ,
        model="test-model",
        factory=lambda: ScriptedGenerator(reply),
    )
    client = MagicMock()
    client.create_session.return_value = AISession(
        (step,), executor=FallbackExecutor(base_delay=0.0)
    )
    client.aclose = AsyncMock()
    return client


class TestTransformCommand:
    def test_transforms_project(self, project):
        client = _client_replying(json.dumps(RETITLE))

        with patch(
            "miniapp_factory.cli.commands.transform.AIClient.from_config",
            return_value=client,
        ):
            result = runner.invoke(
                app, ["transform", str(project), "Rename the heading", "-p", "groq"]
            )

        assert result.exit_code == 0, result.output
        assert "trying groq:test-model" in result.output
        assert "<h1>New</h1>" in (project / "index.html").read_text(encoding="utf-8")
        assert client.create_session.call_args.kwargs["provider_id"] is ProviderId.GROQ
        client.aclose.assert_awaited_once()

    def test_bad_reply_keeps_files(self, project):
        client = _client_replying("I'd rather not.")

        with patch(
            "miniapp_factory.cli.commands.transform.AIClient.from_config",
            return_value=client,
        ):
            result = runner.invoke(app, ["transform", str(project), "do it"])

        assert result.exit_code == 1
        assert (project / "index.html").read_text(encoding="utf-8") == INDEX
        client.aclose.assert_awaited_once()

    def test_no_provider_configured(self, project):
        result = runner.invoke(app, ["transform", str(project), "do it"])

        assert result.exit_code == 1
        assert (project / "index.html").read_text(encoding="utf-8") == INDEX
