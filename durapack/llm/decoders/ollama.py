"""Ollama NDJSON chat stream decoder."""

from __future__ import annotations

import json
from typing import Any

from durapack.llm.decoders.base import StreamDecoder, decode_error
from durapack.llm.types import Finish, ResponseMetadata, StreamDelta, StreamEvent, Text, ToolCall, Usage

DURATION_FIELDS = ("total_duration", "load_duration", "prompt_eval_duration", "eval_duration")


def _count(payload: dict[str, Any], key: str) -> int:
    value = payload.get(key)
    return value if isinstance(value, int) and not isinstance(value, bool) else 0


def done_metadata(payload: dict[str, Any]) -> ResponseMetadata:
    """Metadata of the ``done: true`` line; absent counters default to 0."""
    input_tokens = _count(payload, "prompt_eval_count")
    output_tokens = _count(payload, "eval_count")
    provider_metadata = {key: _count(payload, key) for key in DURATION_FIELDS}
    provider_metadata["context"] = payload.get("context")
    created_at = payload.get("created_at")
    return ResponseMetadata(
        finish_reason="stop",
        usage=Usage(
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            total_tokens=input_tokens + output_tokens,
        ),
        provider_id="ollama",
        timestamp=created_at if isinstance(created_at, str) else None,
        provider_metadata_json=json.dumps(provider_metadata, separators=(",", ":"), sort_keys=True),
    )


def message_tool_calls(payload: dict[str, Any], message: dict[str, Any]) -> list[ToolCall]:
    created_at = payload.get("created_at")
    tool_id = f"ollama-{created_at if isinstance(created_at, str) else ''}"
    calls: list[ToolCall] = []
    for call in message.get("tool_calls") or []:
        function = call.get("function") if isinstance(call, dict) else None
        if not isinstance(function, dict):
            continue
        arguments = function.get("arguments", {})
        calls.append(
            ToolCall(
                id=tool_id,
                name=str(function.get("name", "")),
                arguments_json=arguments if isinstance(arguments, str) else json.dumps(arguments),
            )
        )
    return calls


class OllamaDecoder(StreamDecoder):
    provider = "ollama"

    def decode(self, raw: Any) -> StreamEvent | None:
        payload = self.parse_json(raw.strip() if isinstance(raw, str) else raw)
        if not isinstance(payload, dict):
            raise decode_error("Unexpected NDJSON line, expected an object")

        if "error" in payload and not payload.get("done"):
            raise decode_error(str(payload["error"]))

        if payload.get("done") is True:
            return Finish(metadata=done_metadata(payload))

        message = payload.get("message")
        if not isinstance(message, dict):
            return self.ignore("no-message")

        text = message.get("content")
        content = [Text(text)] if isinstance(text, str) and text else None
        tool_calls = message_tool_calls(payload, message)
        if content is None and not tool_calls:
            return None
        return StreamDelta(content=content, tool_calls=tool_calls or None)
