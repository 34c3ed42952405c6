"""AWS Bedrock ``converse_stream`` native event decoder.

Bedrock reports the stop reason in ``messageStop`` and usage in a trailing
``metadata`` event; the two are merged into one ``Finish``. A pending stop is
flushed when the event stream ends without metadata.
"""

from __future__ import annotations

import json
from typing import Any

from durapack.errors import ErrorCode, ProviderError
from durapack.llm.decoders.base import StreamDecoder, decode_error
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
    "end_turn": "stop",
    "stop_sequence": "stop",
    "max_tokens": "length",
    "tool_use": "tool_calls",
    "content_filtered": "content_filter",
    "guardrail_intervened": "content_filter",
}

EXCEPTION_EVENTS: dict[str, ErrorCode] = {
    "internalServerException": "internal_error",
    "modelStreamErrorException": "internal_error",
    "serviceUnavailableException": "internal_error",
    "validationException": "invalid_request",
    "throttlingException": "rate_limit_exceeded",
}


class BedrockDecoder(StreamDecoder):
    provider = "bedrock"

    def __init__(self) -> None:
        super().__init__()
        self._stopped = False

    def decode(self, raw: Any) -> StreamEvent | None:
        if isinstance(raw, str):
            raw = self.parse_json(raw)
        if not isinstance(raw, dict) or len(raw) != 1:
            raise decode_error(f"Unexpected Bedrock stream event: {raw!r}")
        ((kind, body),) = raw.items()
        self.log.debug("decoder.raw_chunk", chunk_type=kind)

        if kind in EXCEPTION_EVENTS:
            message = body.get("message", kind) if isinstance(body, dict) else kind
            raise ProviderError(EXCEPTION_EVENTS[kind], str(message), json.dumps(raw, default=str))

        if kind == "contentBlockStart":
            tool_use = (body.get("start") or {}).get("toolUse")
            if isinstance(tool_use, dict):
                self.start_fragment(
                    int(body.get("contentBlockIndex", 0)),
                    str(tool_use.get("toolUseId", "")),
                    str(tool_use.get("name", "")),
                )
            return None

        if kind == "contentBlockDelta":
            delta = body.get("delta") or {}
            if "text" in delta:
                return StreamDelta(content=[Text(str(delta["text"]))])
            tool_use = delta.get("toolUse")
            if isinstance(tool_use, dict):
                self.append_fragment(int(body.get("contentBlockIndex", 0)), str(tool_use.get("input", "")))
                return None
            return self.ignore("contentBlockDelta")

        if kind == "contentBlockStop":
            tool_call = self.finish_fragment(int(body.get("contentBlockIndex", 0)))
            return None if tool_call is None else StreamDelta(tool_calls=[tool_call])

        if kind == "messageStop":
            stop_reason = body.get("stopReason")
            self.response_metadata.finish_reason = STOP_REASONS.get(str(stop_reason), "other")
            self._stopped = True
            return None

        if kind == "metadata":
            usage = body.get("usage") or {}
            metrics = body.get("metrics")
            final = ResponseMetadata(
                usage=Usage(
                    input_tokens=usage.get("inputTokens"),
                    output_tokens=usage.get("outputTokens"),
                    total_tokens=usage.get("totalTokens"),
                ),
                provider_metadata_json=None if not metrics else json.dumps(metrics, sort_keys=True),
            )
            return self._finish(self.response_metadata.merged(final))

        return self.ignore(kind)

    def flush(self) -> StreamEvent | None:
        if self._stopped:
            return self._finish(self.response_metadata)
        return None

    def _finish(self, metadata: ResponseMetadata) -> Finish:
        self._stopped = False
        self.response_metadata = ResponseMetadata()
        return Finish(metadata=metadata)
