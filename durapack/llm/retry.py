"""Retry prompt that asks a provider to continue an interrupted response."""

from __future__ import annotations

from xml.sax.saxutils import escape

from durapack.llm.types import ContentPart, Event, Message, StreamDelta, Text, ToolCall

INTERRUPTED_INSTRUCTIONS = (
    "You were asked the same question previously, but the response was interrupted before completion.\n"
    "Please continue your response from where you left off.\n"
    "Do not include the part of the response that was already seen."
)
ORIGINAL_QUESTION_LABEL = "Here is the original question:"
PARTIAL_RESPONSE_LABEL = "Here is the partial response that was successfully received:"


def _attribute(value: str) -> str:
    return escape(value, {'"': "&quot;", "\n": "&#10;"})


def render_tool_call(tool_call: ToolCall) -> str:
    return (
        f'<tool-call id="{_attribute(tool_call.id)}" name="{_attribute(tool_call.name)}" '
        f'arguments="{_attribute(tool_call.arguments_json)}"/>'
    )


def partial_content(partial_result: list[StreamDelta]) -> list[ContentPart]:
    """Content already delivered, with tool calls rendered as text tags."""
    content: list[ContentPart] = []
    for delta in partial_result:
        content.extend(delta.content or [])
        for tool_call in delta.tool_calls or []:
            content.append(Text(render_tool_call(tool_call)))
    return content


def build_retry_prompt(
    original_events: list[Event],
    partial_result: list[StreamDelta],
) -> list[Event]:
    """Rebuild the request so the provider resumes after ``partial_result``.

    Tool-call attributes are XML-escaped so arbitrary JSON arguments survive.
    """
    return [
        Message(
            role="system",
            content=[Text(INTERRUPTED_INSTRUCTIONS), Text(ORIGINAL_QUESTION_LABEL)],
        ),
        *original_events,
        Message(role="user", content=[Text(PARTIAL_RESPONSE_LABEL), *partial_content(partial_result)]),
    ]


def build_labelled_retry_prompt(
    original_events: list[Event],
    partial_result: list[StreamDelta],
) -> list[Event]:
    """Variant for chat-completion style APIs that only honour one leading system message."""
    return [
        Message.text("system", " ".join(INTERRUPTED_INSTRUCTIONS.splitlines())),
        Message.text("user", ORIGINAL_QUESTION_LABEL),
        *original_events,
        Message(role="user", content=[Text(PARTIAL_RESPONSE_LABEL), *partial_content(partial_result)]),
    ]
