"""Anthropic Messages API chat provider."""

from __future__ import annotations

import json
from typing import Any

from durapack.config import ANTHROPIC_API_KEY_ENV, get_config_key
from durapack.errors import ProviderError
from durapack.llm.decoders.anthropic import AnthropicDecoder, convert_usage, stop_reason_to_finish_reason
from durapack.llm.stream import ChatStream
from durapack.llm.types import (
    Config,
    ContentPart,
    Event,
    Image,
    Message,
    Response,
    ResponseMetadata,
    Text,
    ToolCall,
    ToolFailure,
    ToolResults,
)
from durapack.providers.http import HttpClient
from durapack.streaming.chunks import SseChunkSource

MESSAGES_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"
DEFAULT_MAX_TOKENS = 4096


def content_to_blocks(parts: list[ContentPart]) -> list[dict[str, Any]]:
    blocks: list[dict[str, Any]] = []
    for part in parts:
        if isinstance(part, Text):
            blocks.append({"type": "text", "text": part.text})
        elif isinstance(part, Image) and part.url is not None:
            blocks.append({"type": "image", "source": {"type": "url", "url": part.url}})
        elif isinstance(part, Image):
            blocks.append(
                {
                    "type": "image",
                    "source": {
                        "type": "base64",
                        "media_type": part.mime_type or "image/png",
                        "data": part.data,
                    },
                }
            )
    return blocks


def convert_tool_choice(tool_choice: str) -> dict[str, Any]:
    if tool_choice in ("auto", "any", "none"):
        return {"type": tool_choice}
    return {"type": "tool", "name": tool_choice}


def _tool_result_block(result: Any) -> dict[str, Any]:
    if isinstance(result, ToolFailure):
        return {
            "type": "tool_result",
            "tool_use_id": result.id,
            "content": result.error_message,
            "is_error": True,
        }
    return {"type": "tool_result", "tool_use_id": result.id, "content": result.result_json}


def events_to_request(events: list[Event], config: Config) -> dict[str, Any]:
    """Build a Messages API request; system messages move to ``system``."""
    messages: list[dict[str, Any]] = []
    system: list[dict[str, Any]] = []
    for event in events:
        if isinstance(event, Message) and event.role == "system":
            system.extend(content_to_blocks(event.content))
        elif isinstance(event, Message):
            role = "assistant" if event.role == "assistant" else "user"
            messages.append({"role": role, "content": content_to_blocks(event.content)})
        elif isinstance(event, Response):
            if event.content:
                messages.append({"role": "assistant", "content": content_to_blocks(event.content)})
            if event.tool_calls:
                messages.append(
                    {
                        "role": "assistant",
                        "content": [
                            {
                                "type": "tool_use",
                                "id": call.id,
                                "name": call.name,
                                "input": json.loads(call.arguments_json or "{}"),
                            }
                            for call in event.tool_calls
                        ],
                    }
                )
        elif isinstance(event, ToolResults):
            for result in event.results:
                messages.append({"role": "user", "content": [_tool_result_block(result)]})

    options = config.provider_options
    request: dict[str, Any] = {
        "model": config.model,
        "max_tokens": config.max_tokens or DEFAULT_MAX_TOKENS,
        "messages": messages,
        "stream": False,
    }
    if system:
        request["system"] = system
    if config.temperature is not None:
        request["temperature"] = config.temperature
    if config.stop_sequences:
        request["stop_sequences"] = list(config.stop_sequences)
    if config.tools:
        request["tools"] = [
            {
                "name": tool.name,
                "description": tool.description,
                "input_schema": json.loads(tool.parameters_schema),
            }
            for tool in config.tools
        ]
    if config.tool_choice:
        request["tool_choice"] = convert_tool_choice(config.tool_choice)
    if "user_id" in options:
        request["metadata"] = {"user_id": options["user_id"]}
    if "top_k" in options:
        request["top_k"] = int(options["top_k"])
    if "top_p" in options:
        request["top_p"] = float(options["top_p"])
    return request


def process_response(body: dict[str, Any]) -> Response:
    content: list[ContentPart] = []
    tool_calls: list[ToolCall] = []
    for block in body.get("content") or []:
        kind = block.get("type")
        if kind == "text":
            content.append(Text(block.get("text", "")))
        elif kind == "tool_use":
            tool_calls.append(
                ToolCall(
                    id=block.get("id", ""),
                    name=block.get("name", ""),
                    arguments_json=json.dumps(block.get("input", {})),
                )
            )
    stop_reason = body.get("stop_reason")
    usage = body.get("usage")
    return Response(
        id=body.get("id", ""),
        content=content,
        tool_calls=tool_calls,
        metadata=ResponseMetadata(
            finish_reason=None if stop_reason is None else stop_reason_to_finish_reason(stop_reason),
            usage=None if not isinstance(usage, dict) else convert_usage(usage),
        ),
    )


class AnthropicChat:
    name = "anthropic"
    required_config = (ANTHROPIC_API_KEY_ENV,)

    def __init__(self, *, http: HttpClient | None = None, url: str = MESSAGES_URL) -> None:
        self.http = http or HttpClient()
        self.url = url

    def _headers(self) -> dict[str, str]:
        return {
            "x-api-key": get_config_key(ANTHROPIC_API_KEY_ENV),
            "anthropic-version": ANTHROPIC_VERSION,
            "content-type": "application/json",
        }

    def send(self, events: list[Event], config: Config) -> Response:
        body = self.http.post_json(
            self.url,
            headers=self._headers(),
            payload=events_to_request(events, config),
            details="Anthropic messages request failed",
        )
        if not isinstance(body, dict):
            raise ProviderError("internal_error", "Anthropic returned a non-object response")
        return process_response(body)

    def stream(self, events: list[Event], config: Config) -> ChatStream:
        request = events_to_request(events, config)
        request["stream"] = True
        response = self.http.post(
            self.url,
            headers=self._headers(),
            payload=request,
            details="Anthropic streaming request failed",
            stream=True,
        )
        return ChatStream(SseChunkSource.from_response(response), AnthropicDecoder())
