"""Chat data model shared by every LLM provider."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Union

Role = Literal["user", "assistant", "system", "tool"]
ROLES: frozenset[str] = frozenset({"user", "assistant", "system", "tool"})

FinishReason = Literal["stop", "length", "tool_calls", "content_filter", "error", "other"]
FINISH_REASONS: frozenset[str] = frozenset(
    {"stop", "length", "tool_calls", "content_filter", "error", "other"}
)

ImageDetail = Literal["low", "high", "auto"]


@dataclass(slots=True)
class Text:
    text: str

    def to_dict(self) -> dict[str, Any]:
        return {"type": "text", "text": self.text}


@dataclass(slots=True)
class Image:
    """Image given either by ``url`` or by inline base64 ``data``."""

    url: str | None = None
    data: str | None = None
    mime_type: str | None = None
    detail: ImageDetail | None = None

    def __post_init__(self) -> None:
        if (self.url is None) == (self.data is None):
            raise ValueError("Image needs exactly one of url or data")

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": "image",
            "url": self.url,
            "data": self.data,
            "mime_type": self.mime_type,
            "detail": self.detail,
        }


ContentPart = Union[Text, Image]


def content_part_from_dict(raw: dict[str, Any]) -> ContentPart:
    kind = raw.get("type")
    if kind == "text":
        return Text(text=raw["text"])
    if kind == "image":
        return Image(
            url=raw.get("url"),
            data=raw.get("data"),
            mime_type=raw.get("mime_type"),
            detail=raw.get("detail"),
        )
    raise ValueError(f"Unsupported content part type: {kind}")


@dataclass(slots=True)
class Message:
    role: Role
    content: list[ContentPart]
    name: str | None = None

    def __post_init__(self) -> None:
        if self.role not in ROLES:
            raise ValueError(f"Unsupported role: {self.role}")

    @classmethod
    def text(cls, role: Role, text: str) -> "Message":
        return cls(role=role, content=[Text(text)])

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": "message",
            "role": self.role,
            "name": self.name,
            "content": [part.to_dict() for part in self.content],
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "Message":
        return cls(
            role=raw["role"],
            name=raw.get("name"),
            content=[content_part_from_dict(part) for part in raw.get("content", [])],
        )


@dataclass(slots=True)
class ToolCall:
    id: str
    name: str
    arguments_json: str

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "arguments_json": self.arguments_json}

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "ToolCall":
        return cls(id=raw["id"], name=raw["name"], arguments_json=raw.get("arguments_json", ""))


@dataclass(slots=True)
class ToolDefinition:
    name: str
    parameters_schema: str
    description: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "parameters_schema": self.parameters_schema,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "ToolDefinition":
        return cls(
            name=raw["name"],
            description=raw.get("description"),
            parameters_schema=raw.get("parameters_schema", "{}"),
        )


@dataclass(slots=True)
class ToolSuccess:
    id: str
    name: str
    result_json: str
    execution_time_ms: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": "success",
            "id": self.id,
            "name": self.name,
            "result_json": self.result_json,
            "execution_time_ms": self.execution_time_ms,
        }


@dataclass(slots=True)
class ToolFailure:
    id: str
    name: str
    error_message: str
    error_code: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": "error",
            "id": self.id,
            "name": self.name,
            "error_message": self.error_message,
            "error_code": self.error_code,
        }


ToolResult = Union[ToolSuccess, ToolFailure]


def tool_result_from_dict(raw: dict[str, Any]) -> ToolResult:
    kind = raw.get("type")
    if kind == "success":
        return ToolSuccess(
            id=raw["id"],
            name=raw["name"],
            result_json=raw["result_json"],
            execution_time_ms=raw.get("execution_time_ms"),
        )
    if kind == "error":
        return ToolFailure(
            id=raw["id"],
            name=raw["name"],
            error_message=raw["error_message"],
            error_code=raw.get("error_code"),
        )
    raise ValueError(f"Unsupported tool result type: {kind}")


@dataclass(slots=True)
class Usage:
    input_tokens: int | None = None
    output_tokens: int | None = None
    total_tokens: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "total_tokens": self.total_tokens,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "Usage":
        return cls(
            input_tokens=raw.get("input_tokens"),
            output_tokens=raw.get("output_tokens"),
            total_tokens=raw.get("total_tokens"),
        )


@dataclass(slots=True)
class ResponseMetadata:
    finish_reason: FinishReason | None = None
    usage: Usage | None = None
    provider_id: str | None = None
    timestamp: str | None = None
    provider_metadata_json: str | None = None

    def merged(self, later: "ResponseMetadata") -> "ResponseMetadata":
        """Combine with metadata reported later in the same stream; later fields win."""
        return ResponseMetadata(
            finish_reason=later.finish_reason or self.finish_reason,
            usage=later.usage or self.usage,
            provider_id=later.provider_id or self.provider_id,
            timestamp=later.timestamp or self.timestamp,
            provider_metadata_json=later.provider_metadata_json or self.provider_metadata_json,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "finish_reason": self.finish_reason,
            "usage": None if self.usage is None else self.usage.to_dict(),
            "provider_id": self.provider_id,
            "timestamp": self.timestamp,
            "provider_metadata_json": self.provider_metadata_json,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "ResponseMetadata":
        usage = raw.get("usage")
        return cls(
            finish_reason=raw.get("finish_reason"),
            usage=None if usage is None else Usage.from_dict(usage),
            provider_id=raw.get("provider_id"),
            timestamp=raw.get("timestamp"),
            provider_metadata_json=raw.get("provider_metadata_json"),
        )


@dataclass(slots=True)
class Response:
    content: list[ContentPart] = field(default_factory=list)
    tool_calls: list[ToolCall] = field(default_factory=list)
    metadata: ResponseMetadata = field(default_factory=ResponseMetadata)
    id: str = ""

    def text(self) -> str:
        return "".join(part.text for part in self.content if isinstance(part, Text))

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": "response",
            "id": self.id,
            "content": [part.to_dict() for part in self.content],
            "tool_calls": [call.to_dict() for call in self.tool_calls],
            "metadata": self.metadata.to_dict(),
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "Response":
        return cls(
            id=raw.get("id", ""),
            content=[content_part_from_dict(part) for part in raw.get("content", [])],
            tool_calls=[ToolCall.from_dict(call) for call in raw.get("tool_calls", [])],
            metadata=ResponseMetadata.from_dict(raw.get("metadata") or {}),
        )


@dataclass(slots=True)
class ToolResults:
    results: list[ToolResult]

    def to_dict(self) -> dict[str, Any]:
        return {"type": "tool_results", "results": [result.to_dict() for result in self.results]}

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "ToolResults":
        return cls(results=[tool_result_from_dict(item) for item in raw.get("results", [])])


Event = Union[Message, Response, ToolResults]


def event_from_dict(raw: dict[str, Any]) -> Event:
    kind = raw.get("type")
    if kind == "message":
        return Message.from_dict(raw)
    if kind == "response":
        return Response.from_dict(raw)
    if kind == "tool_results":
        return ToolResults.from_dict(raw)
    raise ValueError(f"Unsupported event type: {kind}")


@dataclass(slots=True)
class StreamDelta:
    """Partial content and/or complete tool calls delivered in one tick."""

    content: list[ContentPart] | None = None
    tool_calls: list[ToolCall] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": "delta",
            "content": None if self.content is None else [part.to_dict() for part in self.content],
            "tool_calls": (
                None if self.tool_calls is None else [call.to_dict() for call in self.tool_calls]
            ),
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "StreamDelta":
        content = raw.get("content")
        tool_calls = raw.get("tool_calls")
        return cls(
            content=None if content is None else [content_part_from_dict(part) for part in content],
            tool_calls=None if tool_calls is None else [ToolCall.from_dict(call) for call in tool_calls],
        )


Delta = StreamDelta


@dataclass(slots=True)
class Finish:
    metadata: ResponseMetadata = field(default_factory=ResponseMetadata)

    def to_dict(self) -> dict[str, Any]:
        return {"type": "finish", "metadata": self.metadata.to_dict()}

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "Finish":
        return cls(metadata=ResponseMetadata.from_dict(raw.get("metadata") or {}))


StreamEvent = Union[StreamDelta, Finish]


def stream_event_from_dict(raw: dict[str, Any]) -> StreamEvent:
    kind = raw.get("type")
    if kind == "delta":
        return StreamDelta.from_dict(raw)
    if kind == "finish":
        return Finish.from_dict(raw)
    raise ValueError(f"Unsupported stream event type: {kind}")


@dataclass(slots=True)
class Config:
    model: str
    temperature: float | None = None
    max_tokens: int | None = None
    stop_sequences: list[str] | None = None
    tools: list[ToolDefinition] = field(default_factory=list)
    tool_choice: str | None = None
    provider_options: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "model": self.model,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "stop_sequences": self.stop_sequences,
            "tools": [tool.to_dict() for tool in self.tools],
            "tool_choice": self.tool_choice,
            "provider_options": dict(self.provider_options),
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "Config":
        return cls(
            model=raw["model"],
            temperature=raw.get("temperature"),
            max_tokens=raw.get("max_tokens"),
            stop_sequences=raw.get("stop_sequences"),
            tools=[ToolDefinition.from_dict(tool) for tool in raw.get("tools", [])],
            tool_choice=raw.get("tool_choice"),
            provider_options=dict(raw.get("provider_options") or {}),
        )


def events_to_dicts(events: list[Event]) -> list[dict[str, Any]]:
    return [event.to_dict() for event in events]


def stream_text(events: list[StreamEvent]) -> str:
    """Concatenate the text content carried by delta events."""
    chunks: list[str] = []
    for event in events:
        if isinstance(event, StreamDelta):
            for part in event.content or []:
                if isinstance(part, Text):
                    chunks.append(part.text)
    return "".join(chunks)
