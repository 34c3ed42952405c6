"""OpenRouter chat-completion chunk decoder.

The finish reason arrives in one chunk and usage in a later one; both are
merged into the single ``Finish`` event. Streamed tool calls are keyed by
index and emitted once a chunk no longer mentions their index.
"""

from __future__ import annotations

import json
from typing import Any

from durapack.errors import ProviderError, error_code_from_status
from durapack.llm.decoders.base import StreamDecoder, decode_error
from durapack.llm.types import (
    FinishReason,
    Finish,
    ResponseMetadata,
    StreamDelta,
    StreamEvent,
    Text,
    ToolCall,
    Usage,
)

FINISH_REASONS: dict[str, FinishReason] = {
    "stop": "stop",
    "length": "length",
    "tool_calls": "tool_calls",
    "content_filter": "content_filter",
    "error": "error",
}


def convert_finish_reason(reason: str) -> FinishReason:
    return FINISH_REASONS.get(reason, "other")


def convert_usage(raw: dict[str, Any]) -> Usage:
    return Usage(
        input_tokens=raw.get("prompt_tokens"),
        output_tokens=raw.get("completion_tokens"),
        total_tokens=raw.get("total_tokens"),
    )


class OpenRouterDecoder(StreamDecoder):
    provider = "openrouter"

    def decode(self, raw: Any) -> StreamEvent | None:
        if isinstance(raw, str) and raw.startswith(": "):
            return self.ignore("comment")

        payload = self.parse_json(raw)
        kind = payload.get("object") if isinstance(payload, dict) else None
        if kind is None:
            raise decode_error("Unexpected stream event format, does not have 'object' field")
        if kind != "chat.completion.chunk":
            return self.ignore(kind)

        usage = payload.get("usage")
        if isinstance(usage, dict):
            created = payload.get("created")
            return Finish(
                metadata=ResponseMetadata(
                    finish_reason=self.finish_reason,
                    usage=convert_usage(usage),
                    provider_id=payload.get("id"),
                    timestamp=None if created is None else str(created),
                )
            )

        choices = payload.get("choices") or []
        if not choices:
            return None
        choice = choices[0]

        finish_reason = choice.get("finish_reason")
        if isinstance(finish_reason, str):
            self.finish_reason = convert_finish_reason(finish_reason)

        error = choice.get("error")
        if isinstance(error, dict):
            raise self._choice_error(error)

        delta = choice.get("delta") or {}
        text = delta.get("content")
        content = [Text(text)] if isinstance(text, str) and text else None

        seen_indices: set[int] = set()
        tool_calls: list[ToolCall] = []
        for tool_call in delta.get("tool_calls") or []:
            function = tool_call.get("function") or {}
            tool_id = tool_call.get("id")
            name = function.get("name")
            arguments = function.get("arguments") or ""
            index = tool_call.get("index")
            if tool_id and name and index is None:
                tool_calls.append(ToolCall(id=tool_id, name=name, arguments_json=arguments))
            elif tool_id and name:
                self.start_fragment(index, tool_id, name, arguments)
                seen_indices.add(index)
            elif index is not None:
                self.append_fragment(index, arguments)
                seen_indices.add(index)
            else:
                raise decode_error(f"Unexpected tool call format: {tool_call!r}")

        for index in sorted(self.json_fragments):
            if index not in seen_indices:
                completed = self.finish_fragment(index)
                if completed is not None:
                    tool_calls.append(completed)

        if content is None and not tool_calls:
            return None
        return StreamDelta(content=content, tool_calls=tool_calls or None)

    def _choice_error(self, error: dict[str, Any]) -> ProviderError:
        code = error.get("code")
        status = code if isinstance(code, int) and 100 <= code <= 599 else 500
        metadata = error.get("metadata")
        return ProviderError(
            error_code_from_status(status),
            str(error.get("message", "")),
            None if metadata is None else json.dumps(metadata, sort_keys=True),
        )
