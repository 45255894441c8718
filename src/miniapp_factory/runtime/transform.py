"""One prompt-to-files transform: ask the model for tool calls and apply them."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from miniapp_factory.core.exceptions import ToolExecutionError
from miniapp_factory.prompt import PromptComposer
from miniapp_factory.providers import ProviderId
from miniapp_factory.runtime.events import EventListener
from miniapp_factory.runtime.session import AIClient, AISession, with_session
from miniapp_factory.tools import (
    ProjectFile,
    ToolCall,
    apply_tool_result,
    execute_tool_call,
    extract_tool_calls,
    validate_project_files,
)
from miniapp_factory.utils.logging import get_logger

logger = get_logger("runtime.transform")


@dataclass
class TransformResult:
    """Files after the transform, the calls that produced them and their messages."""

    files: list[ProjectFile]
    tool_calls: list[ToolCall] = field(default_factory=list)
    messages: list[str] = field(default_factory=list)


def apply_transform(
    files: Iterable[ProjectFile], calls: Iterable[ToolCall]
) -> TransformResult:
    """Apply ``calls`` in order to a working copy of ``files``.

    Stops at the first failing call. The caller's list is never modified;
    the working copy is returned only when every call succeeded and the
    result is still a valid project.

    Raises:
        ToolExecutionError: With the failing call's message, or the project problems
    """
    working = list(files)
    applied: list[ToolCall] = []
    messages: list[str] = []

    for call in calls:
        result = execute_tool_call(call, working)
        if not result.success:
            logger.warning(
                f"Tool call {call.tool} failed",
                extra={"applied": len(applied), "reason": result.message},
            )
            raise ToolExecutionError(result.message)
        working = apply_tool_result(working, result)
        applied.append(call)
        messages.append(result.message)

    problems = validate_project_files(working)
    if problems:
        raise ToolExecutionError("; ".join(problems))

    return TransformResult(files=working, tool_calls=applied, messages=messages)


class TransformRunner:
    """Runs a modification request against a project's files.

    ``listener`` (if given) is subscribed to every session the runner opens.
    """

    def __init__(
        self,
        client: AIClient,
        composer: PromptComposer | None = None,
        *,
        listener: EventListener | None = None,
    ):
        self.client = client
        self.composer = composer or PromptComposer()
        self.listener = listener

    async def run(
        self,
        files: Iterable[ProjectFile],
        prompt: str,
        *,
        model: str | None = None,
        provider_id: ProviderId | str | None = None,
        timeout: float | None = 120.0,
    ) -> TransformResult:
        """Transform ``files`` according to ``prompt``.

        The session is destroyed whether or not the turn succeeds.

        Raises:
            ProviderConfigurationError: If no provider is usable
            SessionError: If no step of the fallback chain produced a reply
            ToolCallParseError: If the reply holds no usable tool calls
            ToolExecutionError: If a call fails or the result is not a valid project
        """
        original = list(files)
        user_prompt = self.composer.render_user_prompt(original, prompt)

        async def turn(session: AISession) -> str:
            if self.listener is not None:
                session.on(self.listener)
            return await session.send_and_wait(user_prompt, timeout=timeout)

        reply = await with_session(
            self.client,
            turn,
            model=model,
            provider_id=provider_id,
            system_prompt=self.composer.render_system_prompt(),
            timeout=timeout,
        )

        calls = extract_tool_calls(reply)
        logger.info("Extracted tool calls", extra={"count": len(calls)})
        return apply_transform(original, calls)
