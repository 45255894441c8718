"""Recover a list of tool calls from free-form model output.

Models wrap JSON in code fences, add prose around it, leave trailing commas,
and use a handful of different key names for the same thing. Everything here
is pure and idempotent: extracting from the JSON dump of an extracted list
yields the same list.
"""

from __future__ import annotations

import json
import re
from typing import Annotated, Any

from pydantic import Field, TypeAdapter, ValidationError

from miniapp_factory.core.exceptions import ToolCallParseError
from miniapp_factory.tools.types import ToolCall

MAX_TOOL_CALLS = 100

INVALID_JSON_MESSAGE = "Invalid JSON in tool calls"
INVALID_PAYLOAD_MESSAGE = "Invalid tool calls payload"

_TOOL_ARRAY_RE = re.compile(r'\[\s*\{\s*"tool"\s*:[\s\S]*\}\s*\]')
_FENCED_BLOCK_RE = re.compile(r"```(?:[\w+-]+)?(?::[^\n]+)?\n([\s\S]*?)\n?```")
_LEADING_FENCE_RE = re.compile(r"^```(?:[\w+-]+)?(?::[^\n]+)?\n?")
_TRAILING_FENCE_RE = re.compile(r"\n?```$")
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")

_ToolCallList = TypeAdapter(
    Annotated[list[ToolCall], Field(min_length=1, max_length=MAX_TOOL_CALLS)]
)


def strip_code_fence(text: str) -> str:
    """Return the body of the first fenced block, or ``text`` without stray fences."""
    match = _FENCED_BLOCK_RE.search(text)
    if match:
        return match.group(1).strip()
    stripped = _LEADING_FENCE_RE.sub("", text.strip())
    return _TRAILING_FENCE_RE.sub("", stripped).strip()


def remove_trailing_commas(text: str) -> str:
    """Drop commas that directly precede a closing ``}`` or ``]``.

    Commas inside string literals are left alone.
    """
    result: list[str] = []
    in_string = False
    escaped = False
    i = 0
    while i < len(text):
        char = text[i]
        if in_string:
            result.append(char)
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            i += 1
            continue

        if char == '"':
            in_string = True
        elif char == ",":
            j = i + 1
            while j < len(text) and text[j].isspace():
                j += 1
            if j < len(text) and text[j] in "}]":
                i += 1
                continue
        result.append(char)
        i += 1
    return "".join(result)


def find_balanced_array(text: str) -> str | None:
    """Return the first complete ``[...]`` span, honoring string literals."""
    start = text.find("[")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char == "[":
            depth += 1
        elif char == "]":
            depth -= 1
            if depth == 0:
                return text[start : index + 1]
    return None


def _candidates(text: str) -> list[str]:
    trimmed = text.strip()
    balanced = find_balanced_array(trimmed)
    ordered = [trimmed]
    if balanced:
        ordered.append(balanced)
    ordered.append(remove_trailing_commas(trimmed))
    if balanced:
        ordered.append(remove_trailing_commas(balanced))
    return list(dict.fromkeys(c for c in ordered if c))


def _parse_first(candidates: list[str]) -> Any:
    for candidate in candidates:
        try:
            return json.loads(candidate)
        except json.JSONDecodeError:
            continue
    raise ToolCallParseError(INVALID_JSON_MESSAGE, category="invalid_json")


def _parse_arguments(raw: Any) -> dict[str, Any]:
    if raw is None:
        return {}
    if isinstance(raw, str):
        text = raw.strip()
        if not text:
            return {}
        try:
            raw = json.loads(text)
        except json.JSONDecodeError:
            try:
                raw = json.loads(remove_trailing_commas(text))
            except json.JSONDecodeError as e:
                raise ToolCallParseError(
                    INVALID_JSON_MESSAGE, category="invalid_json"
                ) from e
    if not isinstance(raw, dict):
        raise ToolCallParseError(INVALID_PAYLOAD_MESSAGE, category="invalid_payload")
    return raw


def normalize_tool_call(entry: Any) -> ToolCall:
    """Turn one payload entry into a :class:`ToolCall`.

    The name comes from ``tool``, ``name`` or ``function.name``; arguments
    from ``args``, ``arguments``, ``input`` or ``function.arguments`` (a JSON
    string is parsed). Missing arguments become ``{}``.
    """
    if not isinstance(entry, dict):
        raise ToolCallParseError(INVALID_PAYLOAD_MESSAGE, category="invalid_payload")

    function = entry.get("function")
    function = function if isinstance(function, dict) else {}

    name = entry.get("tool") or entry.get("name") or function.get("name")
    if not isinstance(name, str) or not name.strip():
        raise ToolCallParseError(INVALID_PAYLOAD_MESSAGE, category="invalid_payload")

    raw_args = None
    for key in ("args", "arguments", "input"):
        if entry.get(key) is not None:
            raw_args = entry[key]
            break
    else:
        raw_args = function.get("arguments")

    return ToolCall(tool=name.strip(), args=_parse_arguments(raw_args))


def _entries(payload: Any) -> list[Any]:
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        wrapped = payload.get("toolCalls", payload.get("tool_calls"))
        if isinstance(wrapped, list):
            return wrapped
        return [payload]
    raise ToolCallParseError(INVALID_PAYLOAD_MESSAGE, category="invalid_payload")


def extract_tool_calls(text: str) -> list[ToolCall]:
    """Parse model output into 1 to 100 normalized tool calls.

    Raises:
        ToolCallParseError: ``invalid_json`` when no JSON could be recovered,
            ``invalid_payload`` when the JSON has the wrong shape or size.
    """
    if not isinstance(text, str) or not text.strip():
        raise ToolCallParseError(INVALID_JSON_MESSAGE, category="invalid_json")

    match = _TOOL_ARRAY_RE.search(text)
    source = match.group(0) if match else strip_code_fence(text)

    candidates = _candidates(source)
    if match:
        # The greedy match may run into trailing prose; the fence-stripped
        # text is a second chance.
        for candidate in _candidates(strip_code_fence(text)):
            if candidate not in candidates:
                candidates.append(candidate)

    payload = _parse_first(candidates)
    calls = [normalize_tool_call(entry) for entry in _entries(payload)]

    try:
        return _ToolCallList.validate_python(calls)
    except ValidationError as e:
        raise ToolCallParseError(
            INVALID_PAYLOAD_MESSAGE, category="invalid_payload"
        ) from e
