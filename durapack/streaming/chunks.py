"""Pull-based chunk sources over SSE, NDJSON and native event streams."""

from __future__ import annotations

from enum import Enum
from typing import Any, Callable, Iterable, Iterator, Protocol

import requests


class ChunkSignal(Enum):
    PENDING = "pending"
    END = "end"


PENDING = ChunkSignal.PENDING
END = ChunkSignal.END

SSE_DONE = "[DONE]"


class ChunkSourceError(Exception):
    """The underlying transport failed while reading a chunk."""


class Pollable(Protocol):
    """Readiness token for the cooperative scheduler."""

    def ready(self) -> bool:
        ...

    def block(self) -> None:
        ...


class ReadyPollable:
    """Always ready; blocking sources wait inside ``poll`` instead."""

    def ready(self) -> bool:
        return True

    def block(self) -> None:
        return None


class LazyPollable:
    """Pollable handed out before a live source exists.

    Until a live pollable is attached it reports ready, so replayed values are
    served without waiting.
    """

    def __init__(self) -> None:
        self._inner: Pollable | None = None

    @property
    def attached(self) -> bool:
        return self._inner is not None

    def attach(self, pollable: Pollable) -> None:
        self._inner = pollable

    def ready(self) -> bool:
        return True if self._inner is None else self._inner.ready()

    def block(self) -> None:
        if self._inner is not None:
            self._inner.block()


class ChunkSource(Protocol):
    def poll(self) -> Any:
        """Return the next chunk, ``PENDING`` or ``END``."""
        ...

    def subscribe(self) -> Pollable:
        ...

    def close(self) -> None:
        ...


class IteratorChunkSource:
    """Chunk source over any iterator of items.

    Items equal to ``PENDING`` are surfaced as "not ready yet". Used directly
    for native typed event streams and as the base of the line-oriented
    sources.
    """

    def __init__(
        self,
        items: Iterable[Any],
        *,
        closer: Callable[[], None] | None = None,
    ) -> None:
        self._items: Iterator[Any] = iter(items)
        self._closer = closer
        self._ended = False
        self._closed = False
        self.reads = 0

    @classmethod
    def from_response(cls, response: Any, **kwargs: Any) -> "IteratorChunkSource":
        """Wrap a streaming ``requests`` response, closing it with the source."""
        return cls(response.iter_lines(), closer=response.close, **kwargs)

    def _next_item(self) -> Any:
        if self._ended or self._closed:
            return END
        try:
            item = next(self._items)
        except StopIteration:
            self._ended = True
            return END
        except (requests.RequestException, OSError) as error:
            self._ended = True
            raise ChunkSourceError(f"An error occurred while reading event stream: {error}") from error
        self.reads += 1
        return item

    def poll(self) -> Any:
        return self._next_item()

    def subscribe(self) -> Pollable:
        return ReadyPollable()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._closer is not None:
            self._closer()


def _decode_line(raw_line: Any) -> str:
    line = raw_line.decode("utf-8") if isinstance(raw_line, bytes) else str(raw_line)
    return line.rstrip("\r\n")


class NdjsonChunkSource(IteratorChunkSource):
    """One JSON document per line; blank lines are skipped."""

    def poll(self) -> Any:
        while True:
            item = self._next_item()
            if isinstance(item, ChunkSignal):
                return item
            if item is None:
                continue
            line = _decode_line(item).strip()
            if line:
                return line


class SseChunkSource(IteratorChunkSource):
    """Server-sent events: returns the ``data`` payload of each dispatched event.

    ``data:`` lines accumulate until a blank line dispatches the event; lines
    starting with ``:`` are comments. ``[DONE]`` payloads are passed through
    for the consumer to skip.
    """

    def __init__(
        self,
        items: Iterable[Any],
        *,
        closer: Callable[[], None] | None = None,
    ) -> None:
        super().__init__(items, closer=closer)
        self._data_lines: list[str] = []
        self.last_event_type: str | None = None

    def poll(self) -> Any:
        while True:
            item = self._next_item()
            if item is END:
                return self._dispatch() if self._data_lines else END
            if item is PENDING:
                return PENDING
            if item is None:
                continue

            line = _decode_line(item)
            if not line:
                if self._data_lines:
                    return self._dispatch()
                continue
            if line.startswith(":"):
                continue

            field, _, value = line.partition(":")
            if value.startswith(" "):
                value = value[1:]
            if field == "data":
                self._data_lines.append(value)
            elif field == "event":
                self.last_event_type = value

    def _dispatch(self) -> str:
        data = "\n".join(self._data_lines)
        self._data_lines = []
        return data
