"""Ollama local chat provider (NDJSON streaming)."""

from __future__ import annotations

import json
from typing import Any

from durapack.config import DEFAULT_OLLAMA_BASE_URL, OLLAMA_BASE_URL_ENV, get_optional_config
from durapack.errors import ProviderError
from durapack.llm.decoders.ollama import OllamaDecoder, done_metadata, message_tool_calls
from durapack.llm.retry import build_labelled_retry_prompt
from durapack.llm.stream import ChatStream
from durapack.llm.types import Config, ContentPart, Event, Image, Message, Response, Text, ToolFailure, ToolResults
from durapack.providers.http import HttpClient
from durapack.streaming.chunks import NdjsonChunkSource


def base_url() -> str:
    return (get_optional_config(OLLAMA_BASE_URL_ENV, DEFAULT_OLLAMA_BASE_URL) or DEFAULT_OLLAMA_BASE_URL).rstrip("/")


def _message(role: str, parts: list[ContentPart]) -> dict[str, Any]:
    message: dict[str, Any] = {
        "role": role,
        "content": "".join(part.text for part in parts if isinstance(part, Text)),
    }
    images = [part.data for part in parts if isinstance(part, Image) and part.data is not None]
    if images:
        message["images"] = images
    return message


def events_to_messages(events: list[Event]) -> list[dict[str, Any]]:
    messages: list[dict[str, Any]] = []
    for event in events:
        if isinstance(event, Message):
            messages.append(_message(event.role, event.content))
        elif isinstance(event, Response):
            message = _message("assistant", event.content)
            if event.tool_calls:
                message["tool_calls"] = [
                    {"function": {"name": call.name, "arguments": json.loads(call.arguments_json or "{}")}}
                    for call in event.tool_calls
                ]
            messages.append(message)
        elif isinstance(event, ToolResults):
            for result in event.results:
                content = result.error_message if isinstance(result, ToolFailure) else result.result_json
                messages.append({"role": "tool", "content": content})
    return messages


def events_to_request(events: list[Event], config: Config, *, stream: bool) -> dict[str, Any]:
    options: dict[str, Any] = {}
    if config.temperature is not None:
        options["temperature"] = config.temperature
    if config.max_tokens is not None:
        options["num_predict"] = config.max_tokens
    if config.stop_sequences:
        options["stop"] = list(config.stop_sequences)
    for key in ("top_k", "seed", "num_ctx"):
        if key in config.provider_options:
            options[key] = int(config.provider_options[key])
    if "top_p" in config.provider_options:
        options["top_p"] = float(config.provider_options["top_p"])

    request: dict[str, Any] = {
        "model": config.model,
        "messages": events_to_messages(events),
        "stream": stream,
    }
    if options:
        request["options"] = options
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
    if "keep_alive" in config.provider_options:
        request["keep_alive"] = config.provider_options["keep_alive"]
    return request


def process_response(body: dict[str, Any]) -> Response:
    if "error" in body:
        raise ProviderError("internal_error", str(body["error"]), json.dumps(body, sort_keys=True))
    message = body.get("message") or {}
    content: list[ContentPart] = []
    if message.get("content"):
        content.append(Text(message["content"]))
    metadata = done_metadata(body)
    return Response(
        id=f"ollama-{body.get('created_at', '')}",
        content=content,
        tool_calls=message_tool_calls(body, message),
        metadata=metadata,
    )


class OllamaChat:
    name = "ollama"
    required_config: tuple[str, ...] = ()
    retry_prompt = staticmethod(build_labelled_retry_prompt)

    def __init__(self, *, http: HttpClient | None = None) -> None:
        self.http = http or HttpClient()

    def send(self, events: list[Event], config: Config) -> Response:
        body = self.http.post_json(
            f"{base_url()}/api/chat",
            headers={"Content-Type": "application/json"},
            payload=events_to_request(events, config, stream=False),
            details="Ollama chat request failed",
        )
        return process_response(body)

    def stream(self, events: list[Event], config: Config) -> ChatStream:
        response = self.http.post(
            f"{base_url()}/api/chat",
            headers={"Content-Type": "application/json"},
            payload=events_to_request(events, config, stream=True),
            details="Ollama streaming request failed",
            stream=True,
        )
        return ChatStream(NdjsonChunkSource.from_response(response), OllamaDecoder())
