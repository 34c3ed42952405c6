import pytest
import requests

from durapack.streaming.chunks import (
    END,
    PENDING,
    SSE_DONE,
    ChunkSourceError,
    IteratorChunkSource,
    LazyPollable,
    NdjsonChunkSource,
    SseChunkSource,
)


class _FakeStreamingResponse:
    def __init__(self, lines: list[bytes]) -> None:
        self._lines = lines
        self.closed = False

    def iter_lines(self):
        return iter(self._lines)

    def close(self) -> None:
        self.closed = True


def _drain(source) -> list:
    items = []
    while True:
        item = source.poll()
        if item is END:
            return items
        items.append(item)


def test_sse_source_dispatches_data_on_blank_line() -> None:
    source = SseChunkSource(
        [
            b": keep-alive",
            b"event: message_start",
            b"data: {\"a\":1}",
            b"",
            b"data: line one",
            b"data: line two",
            b"",
            b"data: [DONE]",
            b"",
        ]
    )

    assert _drain(source) == ["{\"a\":1}", "line one\nline two", SSE_DONE]
    assert source.last_event_type == "message_start"


def test_sse_source_dispatches_trailing_event_without_blank_line() -> None:
    source = SseChunkSource(["data: tail"])

    assert source.poll() == "tail"
    assert source.poll() is END
    assert source.poll() is END


def test_ndjson_source_skips_blank_lines_and_decodes_bytes() -> None:
    source = NdjsonChunkSource([b"{\"a\":1}\n", b"", "  ", "{\"b\":2}"])

    assert _drain(source) == ["{\"a\":1}", "{\"b\":2}"]


def test_pending_items_are_surfaced() -> None:
    source = IteratorChunkSource(["a", PENDING, "b"])

    assert [source.poll(), source.poll(), source.poll(), source.poll()] == ["a", PENDING, "b", END]
    assert source.reads == 3


def test_from_response_closes_response_with_source() -> None:
    response = _FakeStreamingResponse([b"data: x", b""])
    source = SseChunkSource.from_response(response)

    assert source.poll() == "x"
    source.close()
    source.close()

    assert response.closed
    assert source.poll() is END


def test_transport_failure_becomes_chunk_source_error() -> None:
    def broken():
        yield b"{\"a\":1}"
        raise requests.ConnectionError("connection reset")

    source = NdjsonChunkSource(broken())

    assert source.poll() == "{\"a\":1}"
    with pytest.raises(ChunkSourceError, match="connection reset"):
        source.poll()
    assert source.poll() is END


def test_lazy_pollable_is_ready_until_attached() -> None:
    class _NotReady:
        blocked = 0

        def ready(self) -> bool:
            return False

        def block(self) -> None:
            self.blocked += 1

    pollable = LazyPollable()
    assert pollable.ready()
    pollable.block()

    inner = _NotReady()
    pollable.attach(inner)

    assert pollable.attached
    assert not pollable.ready()
    pollable.block()
    assert inner.blocked == 1
