from typing import Any

import pytest
from botocore.exceptions import ClientError

from durapack.errors import ProviderError
from durapack.llm import Config, DurableLLM, Finish, Message, StreamDelta, Text, ToolResults, ToolSuccess
from durapack.providers.bedrock import BedrockChat, converse_arguments


class _EventStream:
    def __init__(self, events: list[dict[str, Any]], error: Exception | None = None) -> None:
        self.events = events
        self.error = error
        self.closed = False

    def __iter__(self):
        yield from self.events
        if self.error is not None:
            raise self.error

    def close(self) -> None:
        self.closed = True


class _FakeBedrockClient:
    def __init__(self, *, body: dict[str, Any] | None = None, stream: _EventStream | None = None, error: Exception | None = None) -> None:
        self.body = body
        self.stream = stream
        self.error = error
        self.calls: list[dict[str, Any]] = []

    def converse(self, **kwargs: Any) -> dict[str, Any]:
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return self.body or {}

    def converse_stream(self, **kwargs: Any) -> dict[str, Any]:
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return {"stream": self.stream}


@pytest.fixture(autouse=True)
def _aws_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "AKIDTEST")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "secret")
    monkeypatch.setenv("AWS_REGION", "us-east-1")


def _client_error(code: str, message: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": message}}, "Converse")


def test_converse_arguments_split_system_and_inference_config() -> None:
    arguments = converse_arguments(
        [
            Message.text("system", "be brief"),
            Message.text("user", "hi"),
            ToolResults(results=[ToolSuccess(id="t1", name="calc", result_json="{\"v\": 2}")]),
        ],
        Config(model="anthropic.claude", max_tokens=100, provider_options={"top_p": "0.9"}),
    )

    assert arguments["modelId"] == "anthropic.claude"
    assert arguments["system"] == [{"text": "be brief"}]
    assert arguments["messages"][0] == {"role": "user", "content": [{"text": "hi"}]}
    assert arguments["messages"][1]["content"][0]["toolResult"]["content"] == [{"json": {"v": 2}}]
    assert arguments["inferenceConfig"] == {"maxTokens": 100, "topP": 0.9}


def test_send_maps_converse_output() -> None:
    client = _FakeBedrockClient(
        body={
            "output": {"message": {"content": [{"text": "Hello"}]}},
            "stopReason": "end_turn",
            "usage": {"inputTokens": 1, "outputTokens": 2, "totalTokens": 3},
            "ResponseMetadata": {"RequestId": "req-1"},
        }
    )
    llm = DurableLLM(BedrockChat(client_factory=lambda: client))

    response = llm.send([Message.text("user", "hi")], Config(model="m"))

    assert response.text() == "Hello"
    assert response.id == "req-1"
    assert response.metadata.finish_reason == "stop"
    assert response.metadata.usage.total_tokens == 3


def test_client_error_maps_to_provider_error() -> None:
    client = _FakeBedrockClient(error=_client_error("AccessDeniedException", "denied"))

    with pytest.raises(ProviderError) as raised:
        DurableLLM(BedrockChat(client_factory=lambda: client)).send([Message.text("user", "hi")], Config(model="m"))

    assert raised.value.code == "authentication_failed"
    assert raised.value.message == "denied"


def test_stream_decodes_native_events_and_closes() -> None:
    stream = _EventStream(
        [
            {"messageStart": {"role": "assistant"}},
            {"contentBlockDelta": {"contentBlockIndex": 0, "delta": {"text": "Hi"}}},
            {"messageStop": {"stopReason": "end_turn"}},
            {"metadata": {"usage": {"inputTokens": 1, "outputTokens": 1, "totalTokens": 2}}},
        ]
    )
    llm = DurableLLM(BedrockChat(client_factory=lambda: _FakeBedrockClient(stream=stream)))

    durable = llm.stream([Message.text("user", "hi")], Config(model="m"))
    events = []
    while not durable.finished:
        events.extend(durable.get_next())

    assert events[0] == StreamDelta(content=[Text("Hi")])
    assert isinstance(events[1], Finish)
    assert events[1].metadata.finish_reason == "stop"
    assert events[1].metadata.usage.total_tokens == 2
    assert stream.closed


def test_mid_stream_service_error_becomes_exception_event() -> None:
    stream = _EventStream(
        [{"contentBlockDelta": {"contentBlockIndex": 0, "delta": {"text": "partial"}}}],
        error=_client_error("ThrottlingException", "slow down"),
    )
    llm = DurableLLM(BedrockChat(client_factory=lambda: _FakeBedrockClient(stream=stream)))

    durable = llm.stream([Message.text("user", "hi")], Config(model="m"))
    assert durable.get_next() == [StreamDelta(content=[Text("partial")])]
    with pytest.raises(ProviderError) as raised:
        durable.get_next()

    assert raised.value.code == "rate_limit_exceeded"
    assert durable.finished


def test_unknown_service_error_is_internal() -> None:
    stream = _EventStream([], error=_client_error("SomethingNewException", "odd"))
    llm = DurableLLM(BedrockChat(client_factory=lambda: _FakeBedrockClient(stream=stream)))

    with pytest.raises(ProviderError) as raised:
        llm.stream([Message.text("user", "hi")], Config(model="m")).get_next()

    assert raised.value.code == "internal_error"
