"""AWS Bedrock Converse chat provider (boto3)."""

from __future__ import annotations

import base64
import json
from typing import Any, Callable, Iterator

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from durapack.config import (
    AWS_ACCESS_KEY_ID_ENV,
    AWS_REGION_ENV,
    AWS_SECRET_ACCESS_KEY_ENV,
    get_config_key,
)
from durapack.errors import ErrorCode, ProviderError
from durapack.llm.decoders.bedrock import EXCEPTION_EVENTS, STOP_REASONS, BedrockDecoder
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
    Usage,
)
from durapack.streaming.chunks import ChunkSourceError, IteratorChunkSource

CLIENT_ERROR_CODES: dict[str, ErrorCode] = {
    "AccessDeniedException": "authentication_failed",
    "UnrecognizedClientException": "authentication_failed",
    "ThrottlingException": "rate_limit_exceeded",
    "ValidationException": "invalid_request",
    "ResourceNotFoundException": "model_not_found",
}

ClientFactory = Callable[[], Any]


def default_client() -> Any:
    return boto3.client(
        "bedrock-runtime",
        region_name=get_config_key(AWS_REGION_ENV),
        aws_access_key_id=get_config_key(AWS_ACCESS_KEY_ID_ENV),
        aws_secret_access_key=get_config_key(AWS_SECRET_ACCESS_KEY_ENV),
    )


def from_client_error(error: ClientError) -> ProviderError:
    details = error.response.get("Error", {})
    code = str(details.get("Code", ""))
    return ProviderError(
        CLIENT_ERROR_CODES.get(code, "internal_error"),
        str(details.get("Message", error)),
        json.dumps(details, default=str, sort_keys=True),
    )


def _content_blocks(parts: list[ContentPart]) -> list[dict[str, Any]]:
    blocks: list[dict[str, Any]] = []
    for part in parts:
        if isinstance(part, Text):
            blocks.append({"text": part.text})
        elif isinstance(part, Image):
            if part.data is None:
                raise ProviderError("unsupported", "Unsupported: image urls on bedrock")
            image_format = (part.mime_type or "image/png").split("/")[-1]
            blocks.append(
                {"image": {"format": image_format, "source": {"bytes": base64.b64decode(part.data)}}}
            )
    return blocks


def converse_arguments(events: list[Event], config: Config) -> dict[str, Any]:
    messages: list[dict[str, Any]] = []
    system: list[dict[str, Any]] = []
    for event in events:
        if isinstance(event, Message) and event.role == "system":
            system.extend({"text": part.text} for part in event.content if isinstance(part, Text))
        elif isinstance(event, Message):
            role = "assistant" if event.role == "assistant" else "user"
            messages.append({"role": role, "content": _content_blocks(event.content)})
        elif isinstance(event, Response):
            content = _content_blocks(event.content)
            content.extend(
                {
                    "toolUse": {
                        "toolUseId": call.id,
                        "name": call.name,
                        "input": json.loads(call.arguments_json or "{}"),
                    }
                }
                for call in event.tool_calls
            )
            messages.append({"role": "assistant", "content": content})
        elif isinstance(event, ToolResults):
            messages.append(
                {
                    "role": "user",
                    "content": [
                        {
                            "toolResult": {
                                "toolUseId": result.id,
                                "content": [
                                    {"text": result.error_message}
                                    if isinstance(result, ToolFailure)
                                    else {"json": json.loads(result.result_json)}
                                ],
                                "status": "error" if isinstance(result, ToolFailure) else "success",
                            }
                        }
                        for result in event.results
                    ],
                }
            )

    inference: dict[str, Any] = {}
    if config.max_tokens is not None:
        inference["maxTokens"] = config.max_tokens
    if config.temperature is not None:
        inference["temperature"] = config.temperature
    if config.stop_sequences:
        inference["stopSequences"] = list(config.stop_sequences)
    if "top_p" in config.provider_options:
        inference["topP"] = float(config.provider_options["top_p"])

    arguments: dict[str, Any] = {"modelId": config.model, "messages": messages}
    if system:
        arguments["system"] = system
    if inference:
        arguments["inferenceConfig"] = inference
    if config.tools:
        arguments["toolConfig"] = {
            "tools": [
                {
                    "toolSpec": {
                        "name": tool.name,
                        "description": tool.description or tool.name,
                        "inputSchema": {"json": json.loads(tool.parameters_schema)},
                    }
                }
                for tool in config.tools
            ]
        }
    return arguments


def process_response(body: dict[str, Any]) -> Response:
    content: list[ContentPart] = []
    tool_calls: list[ToolCall] = []
    for block in ((body.get("output") or {}).get("message") or {}).get("content") or []:
        if "text" in block:
            content.append(Text(block["text"]))
        elif "toolUse" in block:
            tool_use = block["toolUse"]
            tool_calls.append(
                ToolCall(
                    id=tool_use.get("toolUseId", ""),
                    name=tool_use.get("name", ""),
                    arguments_json=json.dumps(tool_use.get("input", {})),
                )
            )
    usage = body.get("usage") or {}
    metrics = body.get("metrics")
    request_id = (body.get("ResponseMetadata") or {}).get("RequestId", "")
    return Response(
        id=request_id,
        content=content,
        tool_calls=tool_calls,
        metadata=ResponseMetadata(
            finish_reason=STOP_REASONS.get(str(body.get("stopReason")), "other"),
            usage=Usage(
                input_tokens=usage.get("inputTokens"),
                output_tokens=usage.get("outputTokens"),
                total_tokens=usage.get("totalTokens"),
            ),
            provider_id=request_id or None,
            provider_metadata_json=None if not metrics else json.dumps(metrics, sort_keys=True),
        ),
    )


def stream_events(events: Any) -> Iterator[Any]:
    """Yield native stream events; service errors become exception events for the decoder."""
    try:
        for event in events:
            yield event
    except ClientError as error:
        details = error.response.get("Error", {})
        code = str(details.get("Code", ""))
        kind = code[:1].lower() + code[1:]
        if kind not in EXCEPTION_EVENTS:
            kind = "internalServerException"
        yield {kind: {"message": str(details.get("Message", error))}}
    except BotoCoreError as error:
        raise ChunkSourceError(f"An error occurred while reading event stream: {error}") from error


class BedrockChat:
    name = "bedrock"
    required_config = (AWS_ACCESS_KEY_ID_ENV, AWS_SECRET_ACCESS_KEY_ENV, AWS_REGION_ENV)

    def __init__(self, *, client_factory: ClientFactory | None = None) -> None:
        self.client_factory = client_factory or default_client

    def send(self, events: list[Event], config: Config) -> Response:
        arguments = converse_arguments(events, config)
        try:
            body = self.client_factory().converse(**arguments)
        except ClientError as error:
            raise from_client_error(error) from error
        except BotoCoreError as error:
            raise ProviderError("internal_error", f"Bedrock converse request failed: {error}") from error
        return process_response(body)

    def stream(self, events: list[Event], config: Config) -> ChatStream:
        arguments = converse_arguments(events, config)
        try:
            response = self.client_factory().converse_stream(**arguments)
        except ClientError as error:
            raise from_client_error(error) from error
        except BotoCoreError as error:
            raise ProviderError("internal_error", f"Bedrock converse_stream request failed: {error}") from error
        stream = response["stream"]
        closer = getattr(stream, "close", None)
        return ChatStream(IteratorChunkSource(stream_events(stream), closer=closer), BedrockDecoder())
