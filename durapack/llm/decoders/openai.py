"""OpenAI Responses API stream decoder."""

from __future__ import annotations

import json
from typing import Any

from durapack.errors import ErrorCode, ProviderError, error_code_from_status
from durapack.llm.decoders.base import StreamDecoder, decode_error, require_object
from durapack.llm.types import Finish, ResponseMetadata, StreamDelta, StreamEvent, Text, ToolCall, Usage


def parse_error_code(code: Any) -> ErrorCode:
    """Responses API errors carry HTTP-like numeric codes as strings."""
    try:
        status = int(str(code))
    except ValueError:
        return "internal_error"
    if not 100 <= status <= 599:
        return "internal_error"
    return error_code_from_status(status)


def create_response_metadata(response: dict[str, Any]) -> ResponseMetadata:
    usage = response.get("usage")
    metadata = response.get("metadata")
    created_at = response.get("created_at")
    return ResponseMetadata(
        finish_reason=None,
        usage=(
            None
            if not isinstance(usage, dict)
            else Usage(
                input_tokens=usage.get("input_tokens"),
                output_tokens=usage.get("output_tokens"),
                total_tokens=usage.get("total_tokens"),
            )
        ),
        provider_id=response.get("id"),
        timestamp=None if created_at is None else str(created_at),
        provider_metadata_json=None if not metadata else json.dumps(metadata, sort_keys=True),
    )


def response_error(response: dict[str, Any]) -> ProviderError:
    error = response.get("error")
    if isinstance(error, dict):
        return ProviderError(
            parse_error_code(error.get("code")),
            str(error.get("message", "")),
            json.dumps(error, sort_keys=True),
        )
    return ProviderError("unknown", "Unknown error")


class OpenAIDecoder(StreamDecoder):
    provider = "openai"

    def decode(self, raw: Any) -> StreamEvent | None:
        payload = self.parse_json(raw)
        kind = payload.get("type") if isinstance(payload, dict) else None
        if kind is None:
            raise decode_error("Unexpected stream event format, does not have 'type' field")

        if kind == "response.failed":
            raise response_error(require_object(payload, "response"))

        if kind == "response.completed":
            return Finish(metadata=create_response_metadata(require_object(payload, "response")))

        if kind == "response.output_text.delta":
            delta = payload.get("delta")
            if not isinstance(delta, str):
                raise decode_error("Unexpected stream event format, does not have 'delta' field")
            return StreamDelta(content=[Text(delta)])

        if kind == "response.output_item.done":
            item = require_object(payload, "item")
            if item.get("type") != "function_call":
                return None
            return StreamDelta(
                tool_calls=[
                    ToolCall(
                        id=str(item.get("call_id", "")),
                        name=str(item.get("name", "")),
                        arguments_json=str(item.get("arguments", "")),
                    )
                ]
            )

        return self.ignore(kind)
