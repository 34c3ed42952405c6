"""Chat provider contract."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol

from durapack.llm.stream import ChatStream
from durapack.llm.types import Config, Event, Finish, Response, StreamDelta, StreamEvent


class ChatProvider(Protocol):
    """Protocol implemented by each chat provider variant."""

    name: str
    required_config: tuple[str, ...]

    def send(self, events: list[Event], config: Config) -> Response:
        """Run one request/response exchange."""

    def stream(self, events: list[Event], config: Config) -> ChatStream:
        """Open a live stream; transport failures surface through the stream."""


def assemble_stream_response(events: Iterable[StreamEvent]) -> Response:
    """Fold streamed events into the response they describe."""
    response = Response()
    for event in events:
        if isinstance(event, StreamDelta):
            response.content.extend(event.content or [])
            response.tool_calls.extend(event.tool_calls or [])
        elif isinstance(event, Finish):
            response.metadata = event.metadata
            response.id = event.metadata.provider_id or ""
    return response
