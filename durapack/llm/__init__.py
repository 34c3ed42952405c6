"""Chat capability: data model, decoders, streams and durable facade."""

from durapack.llm.durable import ChatStreamDriver, DurableChatStream, DurableLLM
from durapack.llm.provider import ChatProvider, assemble_stream_response
from durapack.llm.retry import build_labelled_retry_prompt, build_retry_prompt, render_tool_call
from durapack.llm.session import ChatSession, ChatSessionStream
from durapack.llm.stream import ChatStream
from durapack.llm.types import (
    Config,
    ContentPart,
    Delta,
    Event,
    Finish,
    FinishReason,
    Image,
    Message,
    Response,
    ResponseMetadata,
    Role,
    StreamDelta,
    StreamEvent,
    Text,
    ToolCall,
    ToolDefinition,
    ToolFailure,
    ToolResult,
    ToolResults,
    ToolSuccess,
    Usage,
    event_from_dict,
    stream_event_from_dict,
    stream_text,
)

__all__ = [
    "ChatProvider",
    "ChatSession",
    "ChatSessionStream",
    "ChatStream",
    "ChatStreamDriver",
    "Config",
    "ContentPart",
    "Delta",
    "DurableChatStream",
    "DurableLLM",
    "Event",
    "Finish",
    "FinishReason",
    "Image",
    "Message",
    "Response",
    "ResponseMetadata",
    "Role",
    "StreamDelta",
    "StreamEvent",
    "Text",
    "ToolCall",
    "ToolDefinition",
    "ToolFailure",
    "ToolResult",
    "ToolResults",
    "ToolSuccess",
    "Usage",
    "assemble_stream_response",
    "build_labelled_retry_prompt",
    "build_retry_prompt",
    "event_from_dict",
    "render_tool_call",
    "stream_event_from_dict",
    "stream_text",
]
