"""Anthropic Messages API server-sent event decoder."""

from __future__ import annotations

from typing import Any

from durapack.errors import ProviderError
from durapack.llm.decoders.base import StreamDecoder, decode_error, require_int, require_object
from durapack.llm.types import (
    FinishReason,
    Finish,
    ResponseMetadata,
    StreamDelta,
    StreamEvent,
    Text,
    Usage,
)

STOP_REASONS: dict[str, FinishReason] = {
    "end_turn": "other",
    "max_tokens": "length",
    "stop_sequence": "stop",
    "tool_use": "tool_calls",
    "refusal": "content_filter",
}

ERROR_TYPES: dict[str, str] = {
    "authentication_error": "authentication_failed",
    "permission_error": "authentication_failed",
    "rate_limit_error": "rate_limit_exceeded",
    "invalid_request_error": "invalid_request",
    "not_found_error": "model_not_found",
}


def stop_reason_to_finish_reason(stop_reason: str) -> FinishReason:
    return STOP_REASONS.get(stop_reason, "other")


def convert_usage(raw: dict[str, Any], previous: Usage | None = None) -> Usage:
    input_tokens = raw.get("input_tokens")
    output_tokens = raw.get("output_tokens")
    if input_tokens is None and previous is not None:
        input_tokens = previous.input_tokens
    if output_tokens is None and previous is not None:
        output_tokens = previous.output_tokens
    total = None
    if input_tokens is not None and output_tokens is not None:
        total = input_tokens + output_tokens
    return Usage(input_tokens=input_tokens, output_tokens=output_tokens, total_tokens=total)


class AnthropicDecoder(StreamDecoder):
    provider = "anthropic"

    def decode(self, raw: Any) -> StreamEvent | None:
        payload = self.parse_json(raw)
        kind = payload.get("type") if isinstance(payload, dict) else None
        if kind is None:
            raise decode_error("Unexpected stream event format, does not have 'type' field")

        if kind == "error":
            error = payload.get("error") or {}
            code = ERROR_TYPES.get(str(error.get("type")), "internal_error")
            raise ProviderError(code, str(error.get("message", "Unknown error")), raw)

        if kind == "message_start":
            message = payload.get("message") or {}
            self._merge_usage(message.get("usage"))
            if message.get("id"):
                self.response_metadata.provider_id = message["id"]
            return None

        if kind == "content_block_start":
            index = require_int(payload, "index")
            block = require_object(payload, "content_block")
            if block.get("type") == "tool_use":
                self.start_fragment(index, str(block.get("id", "")), str(block.get("name", "")))
            return None

        if kind == "content_block_delta":
            delta = require_object(payload, "delta")
            delta_type = delta.get("type")
            if delta_type == "text_delta":
                return StreamDelta(content=[Text(str(delta.get("text", "")))])
            if delta_type == "input_json_delta":
                self.append_fragment(require_int(payload, "index"), str(delta.get("partial_json", "")))
                return None
            return self.ignore(delta_type)

        if kind == "content_block_stop":
            tool_call = self.finish_fragment(require_int(payload, "index"))
            if tool_call is None:
                return None
            return StreamDelta(tool_calls=[tool_call])

        if kind == "message_delta":
            delta = payload.get("delta") or {}
            stop_reason = delta.get("stop_reason")
            if isinstance(stop_reason, str):
                self.response_metadata.finish_reason = stop_reason_to_finish_reason(stop_reason)
            self._merge_usage(payload.get("usage"))
            return None

        if kind == "message_stop":
            self._merge_usage(payload.get("usage"))
            metadata = self.response_metadata
            self.response_metadata = ResponseMetadata()
            return Finish(metadata=metadata)

        return self.ignore(kind)

    def _merge_usage(self, raw: Any) -> None:
        if isinstance(raw, dict):
            self.response_metadata.usage = convert_usage(raw, self.response_metadata.usage)
