import json

import pytest

from durapack.errors import ProviderError
from durapack.llm import ChatStream, Finish, StreamDelta, Text, assemble_stream_response, stream_text
from durapack.llm.decoders import AnthropicDecoder, OllamaDecoder
from durapack.streaming.chunks import PENDING, IteratorChunkSource, NdjsonChunkSource, SseChunkSource


def _ollama_stream(*lines: dict) -> ChatStream:
    return ChatStream(NdjsonChunkSource([json.dumps(line) for line in lines]), OllamaDecoder())


def test_poll_next_yields_events_then_empty_forever() -> None:
    stream = _ollama_stream(
        {"message": {"content": "Hel"}, "done": False},
        {"message": {"content": "lo"}, "done": False},
        {"done": True, "prompt_eval_count": 1, "eval_count": 2},
    )

    first = stream.poll_next()
    second = stream.poll_next()
    final = stream.poll_next()

    assert first == [StreamDelta(content=[Text("Hel")])]
    assert second == [StreamDelta(content=[Text("lo")])]
    assert isinstance(final[0], Finish)
    assert stream.finished
    assert stream.poll_next() == []
    assert stream.poll_next() == []


def test_pending_chunk_returns_none() -> None:
    source = IteratorChunkSource([PENDING, json.dumps({"done": True})])
    stream = ChatStream(source, OllamaDecoder())

    assert stream.poll_next() is None
    assert isinstance(stream.get_next()[0], Finish)


def test_sse_done_marker_is_skipped() -> None:
    source = SseChunkSource(["data: [DONE]", "", "data: {\"type\":\"message_stop\"}", ""])
    stream = ChatStream(source, AnthropicDecoder())

    assert stream.poll_next() is None
    assert isinstance(stream.poll_next()[0], Finish)


def test_stream_end_without_finish_returns_empty_list() -> None:
    stream = _ollama_stream({"message": {"content": "cut"}, "done": False})

    assert stream.poll_next() == [StreamDelta(content=[Text("cut")])]
    assert stream.poll_next() == []
    assert stream.finished


def test_decoder_error_finishes_stream() -> None:
    stream = ChatStream(NdjsonChunkSource(["{\"error\": \"boom\"}"]), OllamaDecoder())

    with pytest.raises(ProviderError, match="boom"):
        stream.poll_next()
    assert stream.finished
    assert stream.poll_next() == []


def test_transport_error_becomes_internal_error() -> None:
    def broken():
        raise OSError("socket closed")
        yield  # pragma: no cover

    stream = ChatStream(NdjsonChunkSource(broken()), OllamaDecoder())

    with pytest.raises(ProviderError) as raised:
        stream.poll_next()
    assert raised.value.code == "internal_error"
    assert stream.poll_next() == []


def test_failed_stream_raises_once() -> None:
    error = ProviderError("authentication_failed", "bad key")
    stream = ChatStream.failed(error)

    with pytest.raises(ProviderError) as raised:
        stream.get_next()
    assert raised.value == error
    assert stream.poll_next() == []


def test_get_next_skips_chunks_that_emit_nothing() -> None:
    stream = _ollama_stream(
        {"message": {"content": ""}, "done": False},
        {"message": {"content": "x"}, "done": False},
    )

    assert stream.get_next() == [StreamDelta(content=[Text("x")])]


def test_assemble_stream_response_and_stream_text() -> None:
    stream = _ollama_stream(
        {"message": {"content": "a"}, "done": False},
        {"message": {"content": "b"}, "done": False},
        {"done": True},
    )
    events = []
    while not stream.finished:
        events.extend(stream.get_next())

    response = assemble_stream_response(events)

    assert stream_text(events) == "ab"
    assert response.text() == "ab"
    assert response.metadata.finish_reason == "stop"
    assert response.id == "ollama"


def test_stream_without_decoder_or_failure_is_rejected() -> None:
    with pytest.raises(ValueError, match="chunk source and a decoder"):
        ChatStream(NdjsonChunkSource([]), None)
