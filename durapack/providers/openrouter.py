"""OpenRouter chat-completions provider."""

from __future__ import annotations

import json
from typing import Any

from durapack.config import OPENROUTER_API_KEY_ENV, get_config_key
from durapack.errors import ProviderError, error_code_from_status
from durapack.llm.decoders.openrouter import OpenRouterDecoder, convert_finish_reason, convert_usage
from durapack.llm.retry import build_labelled_retry_prompt
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
from durapack.providers.http import HttpClient, bearer_headers
from durapack.streaming.chunks import SseChunkSource

COMPLETIONS_URL = "https://openrouter.ai/api/v1/chat/completions"


def _message_content(parts: list[ContentPart]) -> list[dict[str, Any]]:
    content: list[dict[str, Any]] = []
    for part in parts:
        if isinstance(part, Text):
            content.append({"type": "text", "text": part.text})
        elif isinstance(part, Image):
            url = part.url or f"data:{part.mime_type or 'image/png'};base64,{part.data}"
            image_url: dict[str, Any] = {"url": url}
            if part.detail is not None:
                image_url["detail"] = part.detail
            content.append({"type": "image_url", "image_url": image_url})
    return content


def events_to_messages(events: list[Event]) -> list[dict[str, Any]]:
    messages: list[dict[str, Any]] = []
    for event in events:
        if isinstance(event, Message):
            message: dict[str, Any] = {"role": event.role, "content": _message_content(event.content)}
            if event.name:
                message["name"] = event.name
            messages.append(message)
        elif isinstance(event, Response):
            assistant: dict[str, Any] = {
                "role": "assistant",
                "content": "".join(part.text for part in event.content if isinstance(part, Text)),
            }
            if event.tool_calls:
                assistant["tool_calls"] = [
                    {
                        "id": call.id,
                        "type": "function",
                        "function": {"name": call.name, "arguments": call.arguments_json},
                    }
                    for call in event.tool_calls
                ]
            messages.append(assistant)
        elif isinstance(event, ToolResults):
            for result in event.results:
                content = (
                    f'{{ "error": {json.dumps(result.error_message)} }}'
                    if isinstance(result, ToolFailure)
                    else result.result_json
                )
                messages.append({"role": "tool", "tool_call_id": result.id, "content": content})
    return messages


def events_to_request(events: list[Event], config: Config) -> dict[str, Any]:
    request: dict[str, Any] = {
        "model": config.model,
        "messages": events_to_messages(events),
        "stream": False,
    }
    if config.temperature is not None:
        request["temperature"] = config.temperature
    if config.max_tokens is not None:
        request["max_tokens"] = config.max_tokens
    if config.stop_sequences:
        request["stop"] = list(config.stop_sequences)
    if config.tools:
        request["tools"] = [
            {
                "type": "function",
                "function": {
                    "name": tool.name,
                    "description": tool.description,
                    "parameters": json.loads(tool.parameters_schema),
                },
            }
            for tool in config.tools
        ]
    if config.tool_choice:
        request["tool_choice"] = config.tool_choice
    for key in ("top_p", "frequency_penalty", "presence_penalty"):
        if key in config.provider_options:
            request[key] = float(config.provider_options[key])
    return request


def process_response(body: dict[str, Any]) -> Response:
    error = body.get("error")
    if isinstance(error, dict):
        raise ProviderError(
            error_code_from_status(int(error.get("code", 500))),
            str(error.get("message", "")),
            json.dumps(error, sort_keys=True),
        )
    choices = body.get("choices") or []
    if not choices:
        raise ProviderError("internal_error", "No choices in response")
    choice = choices[0]
    message = choice.get("message") or {}
    content: list[ContentPart] = []
    if message.get("content"):
        content.append(Text(message["content"]))
    tool_calls = [
        ToolCall(
            id=call.get("id", ""),
            name=(call.get("function") or {}).get("name", ""),
            arguments_json=(call.get("function") or {}).get("arguments", ""),
        )
        for call in message.get("tool_calls") or []
    ]
    finish_reason = choice.get("finish_reason")
    usage = body.get("usage")
    created = body.get("created")
    return Response(
        id=body.get("id", ""),
        content=content,
        tool_calls=tool_calls,
        metadata=ResponseMetadata(
            finish_reason=None if finish_reason is None else convert_finish_reason(finish_reason),
            usage=None if not isinstance(usage, dict) else convert_usage(usage),
            provider_id=body.get("id"),
            timestamp=None if created is None else str(created),
        ),
    )


class OpenRouterChat:
    name = "openrouter"
    required_config = (OPENROUTER_API_KEY_ENV,)
    retry_prompt = staticmethod(build_labelled_retry_prompt)

    def __init__(self, *, http: HttpClient | None = None, url: str = COMPLETIONS_URL) -> None:
        self.http = http or HttpClient()
        self.url = url

    def send(self, events: list[Event], config: Config) -> Response:
        body = self.http.post_json(
            self.url,
            headers=bearer_headers(get_config_key(OPENROUTER_API_KEY_ENV)),
            payload=events_to_request(events, config),
            details="OpenRouter completions request failed",
        )
        return process_response(body)

    def stream(self, events: list[Event], config: Config) -> ChatStream:
        request = events_to_request(events, config)
        request["stream"] = True
        response = self.http.post(
            self.url,
            headers=bearer_headers(get_config_key(OPENROUTER_API_KEY_ENV)),
            payload=request,
            details="OpenRouter streaming request failed",
            stream=True,
        )
        return ChatStream(SseChunkSource.from_response(response), OpenRouterDecoder())
