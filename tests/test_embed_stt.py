import pytest

from durapack.capabilities import (
    DurableEmbed,
    DurableStt,
    EmbedConfig,
    TranscriptionOptions,
    TranscriptionRequest,
)
from durapack.errors import ProviderError
from durapack.llm import Text
from durapack.oplog import InMemoryOplog, oplog_scope
from durapack.providers.fake import FakeEmbed, FakeStt


def test_generate_is_recorded_and_replayed() -> None:
    provider = FakeEmbed()
    embed = DurableEmbed(provider)
    oplog = InMemoryOplog()

    with oplog_scope(oplog):
        response = embed.generate([Text("alpha"), Text("beta")], EmbedConfig(dimensions=4))

    assert [embedding.index for embedding in response.embeddings] == [0, 1]
    assert all(len(embedding.vector) == 4 for embedding in response.embeddings)
    assert oplog.entries[0].function_name == "generate"

    with oplog_scope(oplog.rehydrate()):
        replayed = embed.generate([Text("alpha"), Text("beta")], EmbedConfig(dimensions=4))

    assert replayed == response
    assert provider.calls == 1


def test_rerank_orders_by_relevance() -> None:
    embed = DurableEmbed(FakeEmbed())

    response = embed.rerank("red apple", ["green pear", "red apple pie", "apple"], EmbedConfig())

    assert [result.index for result in response.results] == [1, 2, 0]
    assert response.results[0].relevance_score == 1.0


def test_rerank_without_capability_is_unsupported_and_unrecorded() -> None:
    provider = FakeEmbed(capabilities=frozenset({"generate"}))
    oplog = InMemoryOplog()

    with oplog_scope(oplog), pytest.raises(ProviderError) as raised:
        DurableEmbed(provider).rerank("q", ["d"], EmbedConfig())

    assert raised.value.code == "unsupported"
    assert provider.calls == 0
    assert len(oplog) == 0


def test_transcribe_records_result() -> None:
    stt = DurableStt(FakeStt())
    oplog = InMemoryOplog()
    request = TranscriptionRequest(
        request_id="r1",
        audio=b"\x00\x01\x02",
        audio_format="mp3",
        options=TranscriptionOptions(language="de"),
    )

    with oplog_scope(oplog):
        result = stt.transcribe(request)

    assert result.transcript == "3 bytes of mp3 audio"
    assert result.language == "de"
    assert oplog.entries[0].function_name == "transcribe"


def test_transcribe_many_collects_failures_in_one_entry() -> None:
    provider = FakeStt()
    stt = DurableStt(provider)
    oplog = InMemoryOplog()
    requests = [
        TranscriptionRequest(request_id="ok", audio=b"abc"),
        TranscriptionRequest(request_id="empty", audio=b""),
    ]

    with oplog_scope(oplog):
        result = stt.transcribe_many(requests)

    assert [item.request_id for item in result.successes] == ["ok"]
    assert [item.request_id for item in result.failures] == ["empty"]
    assert result.failures[0].error.code == "invalid_request"
    assert len(oplog) == 1

    with oplog_scope(oplog.rehydrate()):
        replayed = stt.transcribe_many(requests)

    assert replayed == result
    assert provider.calls == 2


def test_list_languages_is_not_recorded() -> None:
    oplog = InMemoryOplog()

    with oplog_scope(oplog):
        languages = DurableStt(FakeStt()).list_languages()

    assert languages[0].code == "en"
    assert len(oplog) == 0
