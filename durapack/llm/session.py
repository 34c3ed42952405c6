"""Conversation helper that keeps the chat history between calls."""

from __future__ import annotations

from durapack.llm.durable import DurableChatStream, DurableLLM
from durapack.llm.types import (
    Config,
    Event,
    Finish,
    Message,
    Response,
    ResponseMetadata,
    StreamDelta,
    StreamEvent,
    ToolResult,
    ToolResults,
)
from durapack.streaming.chunks import Pollable


class ChatSession:
    """Accumulates messages, tool results and responses into one history."""

    def __init__(self, llm: DurableLLM, config: Config) -> None:
        self.llm = llm
        self.config = config
        self._events: list[Event] = []

    def add_message(self, message: Message) -> None:
        self._events.append(message)

    def add_messages(self, messages: list[Message]) -> None:
        self._events.extend(messages)

    def add_tool_result(self, tool_result: ToolResult) -> None:
        self._events.append(ToolResults(results=[tool_result]))

    def add_tool_results(self, tool_results: list[ToolResult]) -> None:
        self._events.append(ToolResults(results=list(tool_results)))

    def get_chat_events(self) -> list[Event]:
        return list(self._events)

    def set_chat_events(self, events: list[Event]) -> None:
        self._events = list(events)

    def send(self) -> Response:
        response = self.llm.send(self.get_chat_events(), self.config)
        self._events.append(response)
        return response

    def stream(self) -> "ChatSessionStream":
        return ChatSessionStream(self._events, self.llm.stream(self.get_chat_events(), self.config))


class ChatSessionStream:
    """Stream adapter that appends the assembled response on ``Finish``."""

    def __init__(self, history: list[Event], inner: DurableChatStream) -> None:
        self._history = history
        self._inner = inner
        self._response: Response | None = Response(metadata=ResponseMetadata())

    def _add_stream_events(self, events: list[StreamEvent]) -> None:
        for event in events:
            if self._response is None:
                return
            if isinstance(event, StreamDelta):
                self._response.content.extend(event.content or [])
                self._response.tool_calls.extend(event.tool_calls or [])
            elif isinstance(event, Finish):
                self._response.metadata = event.metadata
                self._response.id = event.metadata.provider_id or ""
                self._history.append(self._response)
                self._response = None

    def poll_next(self) -> list[StreamEvent] | None:
        events = self._inner.poll_next()
        if events:
            self._add_stream_events(events)
        return events

    def get_next(self) -> list[StreamEvent]:
        events = self._inner.get_next()
        self._add_stream_events(events)
        return events

    def subscribe(self) -> Pollable:
        return self._inner.subscribe()

    def close(self) -> None:
        self._inner.close()
