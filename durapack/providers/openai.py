"""OpenAI providers: Responses API chat, embeddings and audio transcription."""

from __future__ import annotations

import json
from typing import Any

from durapack.capabilities.embed import (
    EMBED_GENERATE,
    EmbedConfig,
    Embedding,
    EmbeddingResponse,
    EmbedUsage,
    RerankResponse,
)
from durapack.capabilities.stt import LanguageInfo, TranscriptionRequest, TranscriptionResult, TranscriptionSegment
from durapack.config import OPENAI_API_KEY_ENV, get_config_key
from durapack.errors import ProviderError, unsupported
from durapack.llm.decoders.openai import OpenAIDecoder, create_response_metadata, response_error
from durapack.llm.stream import ChatStream
from durapack.llm.types import (
    Config,
    ContentPart,
    Event,
    Image,
    Message,
    Response,
    Text,
    ToolCall,
    ToolFailure,
    ToolResults,
)
from durapack.providers.http import HttpClient, bearer_headers, parse_json_body
from durapack.streaming.chunks import SseChunkSource

BASE_URL = "https://api.openai.com/v1"
DEFAULT_EMBEDDING_MODEL = "text-embedding-3-small"
DEFAULT_TRANSCRIPTION_MODEL = "whisper-1"


def _content_item(role: str, part: ContentPart) -> dict[str, Any]:
    if isinstance(part, Text):
        return {"type": "output_text" if role == "assistant" else "input_text", "text": part.text}
    if not isinstance(part, Image):
        raise unsupported(f"{type(part).__name__} content for OpenAI")
    url = part.url or f"data:{part.mime_type or 'image/png'};base64,{part.data}"
    return {"type": "input_image", "image_url": url, "detail": part.detail or "auto"}


def _tool_result_item(result: Any) -> dict[str, Any]:
    if isinstance(result, ToolFailure):
        output = json.dumps({"error": {"code": result.error_code or "", "message": result.error_message}})
    else:
        output = f'{{ "success": {result.result_json} }}'
    return {"type": "function_call_output", "call_id": result.id, "output": output}


def events_to_input_items(events: list[Event]) -> list[dict[str, Any]]:
    items: list[dict[str, Any]] = []
    for event in events:
        if isinstance(event, Message):
            items.append(
                {
                    "type": "message",
                    "role": event.role,
                    "content": [_content_item(event.role, part) for part in event.content],
                }
            )
        elif isinstance(event, Response):
            if event.content:
                items.append(
                    {
                        "type": "message",
                        "role": "assistant",
                        "content": [_content_item("assistant", part) for part in event.content],
                    }
                )
            items.extend(
                {"type": "function_call", "call_id": call.id, "name": call.name, "arguments": call.arguments_json}
                for call in event.tool_calls
            )
        elif isinstance(event, ToolResults):
            items.extend(_tool_result_item(result) for result in event.results)
    return items


def create_request(events: list[Event], config: Config) -> dict[str, Any]:
    tools = []
    for tool in config.tools:
        try:
            parameters = json.loads(tool.parameters_schema)
        except json.JSONDecodeError as error:
            raise ProviderError(
                "internal_error", f"Failed to parse tool parameters for {tool.name}: {error}"
            ) from error
        tools.append(
            {
                "type": "function",
                "name": tool.name,
                "description": tool.description,
                "parameters": parameters,
                "strict": True,
            }
        )
    request: dict[str, Any] = {
        "model": config.model,
        "input": events_to_input_items(events),
        "stream": False,
    }
    if config.temperature is not None:
        request["temperature"] = config.temperature
    if config.max_tokens is not None:
        request["max_output_tokens"] = config.max_tokens
    if tools:
        request["tools"] = tools
    if config.tool_choice:
        request["tool_choice"] = config.tool_choice
    if "top_p" in config.provider_options:
        request["top_p"] = float(config.provider_options["top_p"])
    if "user" in config.provider_options:
        request["user"] = config.provider_options["user"]
    return request


def parse_response(body: dict[str, Any]) -> Response:
    if body.get("error"):
        raise response_error(body)
    content: list[ContentPart] = []
    tool_calls: list[ToolCall] = []
    for item in body.get("output") or []:
        kind = item.get("type")
        if kind == "message":
            for part in item.get("content") or []:
                if part.get("type") == "output_text":
                    content.append(Text(part.get("text", "")))
        elif kind == "function_call":
            tool_calls.append(
                ToolCall(
                    id=item.get("call_id", ""),
                    name=item.get("name", ""),
                    arguments_json=item.get("arguments", ""),
                )
            )
    return Response(
        id=body.get("id", ""),
        content=content,
        tool_calls=tool_calls,
        metadata=create_response_metadata(body),
    )


class OpenAIChat:
    name = "openai"
    required_config = (OPENAI_API_KEY_ENV,)

    def __init__(self, *, http: HttpClient | None = None, base_url: str = BASE_URL) -> None:
        self.http = http or HttpClient()
        self.base_url = base_url.rstrip("/")

    def send(self, events: list[Event], config: Config) -> Response:
        body = self.http.post_json(
            f"{self.base_url}/responses",
            headers=bearer_headers(get_config_key(OPENAI_API_KEY_ENV)),
            payload=create_request(events, config),
            details="OpenAI responses request failed",
        )
        return parse_response(body)

    def stream(self, events: list[Event], config: Config) -> ChatStream:
        request = create_request(events, config)
        request["stream"] = True
        response = self.http.post(
            f"{self.base_url}/responses",
            headers=bearer_headers(get_config_key(OPENAI_API_KEY_ENV)),
            payload=request,
            details="OpenAI streaming request failed",
            stream=True,
        )
        return ChatStream(SseChunkSource.from_response(response), OpenAIDecoder())


class OpenAIEmbed:
    name = "openai"
    required_config = (OPENAI_API_KEY_ENV,)
    capabilities = frozenset({EMBED_GENERATE})

    def __init__(self, *, http: HttpClient | None = None, base_url: str = BASE_URL) -> None:
        self.http = http or HttpClient()
        self.base_url = base_url.rstrip("/")

    def generate(self, inputs: list[ContentPart], config: EmbedConfig) -> EmbeddingResponse:
        texts = []
        for part in inputs:
            if not isinstance(part, Text):
                raise unsupported("image inputs for OpenAI embeddings")
            texts.append(part.text)
        model = config.model or DEFAULT_EMBEDDING_MODEL
        payload: dict[str, Any] = {"model": model, "input": texts, "encoding_format": "float"}
        if config.dimensions is not None:
            payload["dimensions"] = config.dimensions
        if config.user is not None:
            payload["user"] = config.user
        body = self.http.post_json(
            f"{self.base_url}/embeddings",
            headers=bearer_headers(get_config_key(OPENAI_API_KEY_ENV)),
            payload=payload,
            details="OpenAI embeddings request failed",
        )
        usage = body.get("usage") or {}
        return EmbeddingResponse(
            embeddings=[
                Embedding(index=int(item["index"]), vector=[float(value) for value in item["embedding"]])
                for item in body.get("data", [])
            ],
            model=body.get("model", model),
            usage=EmbedUsage(input_tokens=usage.get("prompt_tokens"), total_tokens=usage.get("total_tokens")),
        )

    def rerank(self, query: str, documents: list[str], config: EmbedConfig) -> RerankResponse:
        raise unsupported("rerank is not available on openai")


class OpenAIStt:
    name = "openai"
    required_config = (OPENAI_API_KEY_ENV,)

    def __init__(self, *, http: HttpClient | None = None, base_url: str = BASE_URL) -> None:
        self.http = http or HttpClient()
        self.base_url = base_url.rstrip("/")

    def transcribe(self, request: TranscriptionRequest) -> TranscriptionResult:
        options = request.options
        model = options.model or DEFAULT_TRANSCRIPTION_MODEL
        data: dict[str, Any] = {"model": model, "response_format": "verbose_json"}
        if options.language:
            data["language"] = options.language
        if options.prompt:
            data["prompt"] = options.prompt
        response = self.http.post(
            f"{self.base_url}/audio/transcriptions",
            headers={"Authorization": f"Bearer {get_config_key(OPENAI_API_KEY_ENV)}"},
            details="OpenAI transcription request failed",
            data=data,
            files={"file": (f"audio.{request.audio_format}", request.audio, f"audio/{request.audio_format}")},
        )
        body = parse_json_body(response, "OpenAI transcription request failed")
        return TranscriptionResult(
            request_id=request.request_id,
            transcript=body.get("text", ""),
            language=body.get("language"),
            model=model,
            duration_seconds=body.get("duration"),
            audio_size_bytes=len(request.audio),
            segments=[
                TranscriptionSegment(
                    start_seconds=float(segment.get("start", 0.0)),
                    end_seconds=float(segment.get("end", 0.0)),
                    text=segment.get("text", ""),
                )
                for segment in body.get("segments") or []
            ],
        )

    def list_languages(self) -> list[LanguageInfo]:
        return [
            LanguageInfo(code="en", name="English"),
            LanguageInfo(code="de", name="German", native_name="Deutsch"),
            LanguageInfo(code="es", name="Spanish", native_name="Español"),
            LanguageInfo(code="fr", name="French", native_name="Français"),
            LanguageInfo(code="ja", name="Japanese", native_name="日本語"),
        ]
