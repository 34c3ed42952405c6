"""Non-durable pollable chat stream over a chunk source and a decoder."""

from __future__ import annotations

from durapack.errors import ProviderError, internal_error
from durapack.llm.decoders.base import StreamDecoder
from durapack.llm.types import Finish, StreamEvent
from durapack.streaming.chunks import (
    END,
    PENDING,
    SSE_DONE,
    ChunkSource,
    ChunkSourceError,
    Pollable,
    ReadyPollable,
)


class ChatStream:
    """Pull-based stream of canonical events.

    ``poll_next`` returns ``None`` while nothing is ready and ``[]`` once the
    stream finished; a failure is raised once and finishes the stream.
    """

    def __init__(
        self,
        source: ChunkSource | None,
        decoder: StreamDecoder | None,
        *,
        failure: ProviderError | None = None,
    ) -> None:
        if (source is None or decoder is None) and failure is None:
            raise ValueError("ChatStream needs a chunk source and a decoder, or a failure")
        self._source = source
        self._decoder = decoder
        self._failure = failure
        self._finished = False

    @classmethod
    def failed(cls, error: ProviderError) -> "ChatStream":
        return cls(None, None, failure=error)

    @property
    def finished(self) -> bool:
        return self._finished

    def subscribe(self) -> Pollable:
        if self._source is None:
            return ReadyPollable()
        return self._source.subscribe()

    def poll_next(self) -> list[StreamEvent] | None:
        if self._finished:
            return []

        if self._source is None or self._decoder is None:
            self._finish()
            raise self._failure or internal_error("chat stream has no chunk source")

        try:
            chunk = self._source.poll()
        except ChunkSourceError as error:
            self._finish()
            raise internal_error(str(error)) from error

        if chunk is PENDING:
            return None
        if chunk is END:
            final = self._flush()
            self._finish()
            return [final] if final is not None else []
        if chunk == SSE_DONE:
            return None

        try:
            event = self._decoder.decode(chunk)
        except ProviderError:
            self._finish()
            raise
        if event is None:
            return None
        if isinstance(event, Finish):
            self._finish()
        return [event]

    def get_next(self) -> list[StreamEvent]:
        pollable = self.subscribe()
        while True:
            pollable.block()
            events = self.poll_next()
            if events is not None:
                return events

    def _flush(self) -> StreamEvent | None:
        if self._decoder is None:
            return None
        try:
            return self._decoder.flush()
        except ProviderError:
            self._finish()
            raise

    def _finish(self) -> None:
        self._finished = True
        self.close()

    def close(self) -> None:
        if self._source is not None:
            self._source.close()
