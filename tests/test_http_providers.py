import json
from typing import Any

import pytest
import requests

from durapack.capabilities import DurableEmbed, EmbedConfig, SearchParams, VectorRecord
from durapack.errors import ProviderError
from durapack.llm import (
    Config,
    DurableLLM,
    Finish,
    Message,
    Response,
    StreamDelta,
    Text,
    ToolCall,
    ToolFailure,
    ToolResults,
    stream_text,
)
from durapack.oplog import InMemoryOplog, oplog_scope
from durapack.providers import HttpClient
from durapack.providers.anthropic import AnthropicChat, events_to_request
from durapack.providers.brave import BraveWebSearch
from durapack.providers.cohere import CohereEmbed
from durapack.providers.ollama import OllamaChat
from durapack.providers.openai import OpenAIChat, OpenAIEmbed, events_to_input_items
from durapack.providers.openrouter import OpenRouterChat
from durapack.providers.qdrant import QdrantVector


class _FakeResponse:
    def __init__(self, status_code: int = 200, body: Any = None, lines: list[str] | None = None) -> None:
        self.status_code = status_code
        self._body = body
        self._lines = lines or []
        self.text = "" if body is None else json.dumps(body)
        self.closed = False

    def json(self) -> Any:
        if self._body is None:
            raise ValueError("no body")
        return self._body

    def iter_lines(self):
        return iter(line.encode("utf-8") for line in self._lines)

    def close(self) -> None:
        self.closed = True


class _Recorder:
    def __init__(self, *responses: _FakeResponse) -> None:
        self.responses = list(responses)
        self.calls: list[dict[str, Any]] = []

    def __call__(self, *args: Any, **kwargs: Any) -> _FakeResponse:
        self.calls.append({"args": args, **kwargs})
        return self.responses.pop(0)


def test_anthropic_send_builds_messages_request(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")
    post = _Recorder(
        _FakeResponse(
            body={
                "id": "msg_1",
                "content": [{"type": "text", "text": "Hi"}, {"type": "tool_use", "id": "t1", "name": "calc", "input": {"a": 1}}],
                "stop_reason": "tool_use",
                "usage": {"input_tokens": 3, "output_tokens": 4},
            }
        )
    )
    llm = DurableLLM(AnthropicChat(http=HttpClient(request_post=post)))

    response = llm.send(
        [Message.text("system", "be brief"), Message.text("user", "Hello")],
        Config(model="claude-test", temperature=0.2, provider_options={"top_k": "5"}),
    )

    call = post.calls[0]
    assert call["args"][0] == "https://api.anthropic.com/v1/messages"
    assert call["headers"]["x-api-key"] == "sk-test"
    assert call["headers"]["anthropic-version"] == "2023-06-01"
    assert call["json"]["system"] == [{"type": "text", "text": "be brief"}]
    assert call["json"]["messages"] == [{"role": "user", "content": [{"type": "text", "text": "Hello"}]}]
    assert call["json"]["top_k"] == 5
    assert response.text() == "Hi"
    assert response.tool_calls == [ToolCall(id="t1", name="calc", arguments_json="{\"a\": 1}")]
    assert response.metadata.finish_reason == "tool_calls"
    assert response.metadata.usage.total_tokens == 7


def test_anthropic_stream_decodes_server_sent_events(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")
    sse = [
        'data: {"type":"message_start","message":{"id":"msg_2","usage":{"input_tokens":1}}}',
        "",
        'data: {"type":"content_block_delta","index":0,"delta":{"type":"text_delta","text":"Hey"}}',
        "",
        'data: {"type":"message_delta","delta":{"stop_reason":"end_turn"},"usage":{"output_tokens":1}}',
        "",
        'data: {"type":"message_stop"}',
        "",
    ]
    response = _FakeResponse(lines=sse)
    post = _Recorder(response)
    llm = DurableLLM(AnthropicChat(http=HttpClient(request_post=post)))

    with llm.stream([Message.text("user", "hi")], Config(model="claude-test")) as stream:
        events = []
        while not stream.finished:
            events.extend(stream.get_next())

    assert post.calls[0]["stream"] is True
    assert post.calls[0]["json"]["stream"] is True
    assert events[0] == StreamDelta(content=[Text("Hey")])
    assert isinstance(events[-1], Finish)
    assert events[-1].metadata.finish_reason == "other"
    assert response.closed


def test_http_status_maps_to_error_code(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")
    post = _Recorder(_FakeResponse(status_code=429, body={"error": {"type": "rate_limit_error"}}))
    llm = DurableLLM(AnthropicChat(http=HttpClient(request_post=post)))
    oplog = InMemoryOplog()

    with oplog_scope(oplog), pytest.raises(ProviderError) as raised:
        llm.send([Message.text("user", "hi")], Config(model="claude-test"))

    assert raised.value.code == "rate_limit_exceeded"
    assert "rate_limit_error" in raised.value.provider_error_json
    assert "err" in oplog.entries[0].result


def test_transport_failure_is_internal_error() -> None:
    def post(*args: Any, **kwargs: Any) -> None:
        raise requests.ConnectionError("refused")

    with pytest.raises(ProviderError) as raised:
        HttpClient(request_post=post).post("http://localhost", headers={}, details="local request")

    assert raised.value.code == "internal_error"
    assert "refused" in raised.value.message


def test_tool_results_become_user_tool_result_blocks() -> None:
    from durapack.llm import ToolFailure, ToolResults

    request = events_to_request(
        [ToolResults(results=[ToolFailure(id="t1", name="calc", error_message="div by zero")])],
        Config(model="m"),
    )

    assert request["messages"] == [
        {"role": "user", "content": [{"type": "tool_result", "tool_use_id": "t1", "content": "div by zero", "is_error": True}]}
    ]


def test_ollama_stream_reads_ndjson(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OLLAMA_BASE_URL", "http://ollama.local:11434/")
    lines = [
        json.dumps({"message": {"role": "assistant", "content": "Once "}, "done": False}),
        json.dumps({"message": {"role": "assistant", "content": "more"}, "done": False}),
        json.dumps({"done": True, "prompt_eval_count": 2, "eval_count": 2}),
    ]
    post = _Recorder(_FakeResponse(lines=lines))
    llm = DurableLLM(OllamaChat(http=HttpClient(request_post=post)))

    stream = llm.stream([Message.text("user", "go")], Config(model="llama", max_tokens=10))
    events = []
    while not stream.finished:
        events.extend(stream.get_next())

    assert post.calls[0]["args"][0] == "http://ollama.local:11434/api/chat"
    assert post.calls[0]["json"]["options"] == {"num_predict": 10}
    assert post.calls[0]["json"]["stream"] is True
    assert stream_text(events) == "Once more"
    assert events[-1].metadata.usage.total_tokens == 4


def test_cohere_generate_and_rerank(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("COHERE_API_KEY", "co-test")
    post = _Recorder(
        _FakeResponse(body={"id": "e1", "embeddings": {"float": [[0.1, 0.2]]}, "meta": {"billed_units": {"input_tokens": 3}}}),
        _FakeResponse(body={"results": [{"index": 1, "relevance_score": 0.9}, {"index": 0, "relevance_score": 0.1}]}),
    )
    embed = DurableEmbed(CohereEmbed(http=HttpClient(request_post=post)))

    embeddings = embed.generate([Text("hello")], EmbedConfig(task_type="retrieval_document", dimensions=2))
    reranked = embed.rerank("q", ["first", "second"], EmbedConfig(provider_options={"top_n": "2"}))

    assert post.calls[0]["args"][0].endswith("/v2/embed")
    assert post.calls[0]["json"]["input_type"] == "search_document"
    assert post.calls[0]["json"]["output_dimension"] == 2
    assert post.calls[0]["headers"]["Authorization"] == "Bearer co-test"
    assert embeddings.embeddings[0].vector == [0.1, 0.2]
    assert embeddings.usage.input_tokens == 3
    assert post.calls[1]["json"]["top_n"] == 2
    assert [(result.index, result.document) for result in reranked.results] == [(1, "second"), (0, "first")]


def test_cohere_rejects_mixed_inputs_before_http() -> None:
    from durapack.llm import Image

    post = _Recorder()
    provider = CohereEmbed(http=HttpClient(request_post=post))

    with pytest.raises(ProviderError) as raised:
        provider.generate([Text("a"), Image(url="https://img")], EmbedConfig())

    assert raised.value.code == "unsupported"
    assert post.calls == []


def test_brave_pages_with_offset(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BRAVE_API_KEY", "brave-test")
    page = {
        "query": {"more_results_available": True},
        "web": {"results": [{"title": "T", "url": "https://a.example", "description": "d", "meta_url": {"hostname": "a.example"}}]},
    }
    last = {"query": {"more_results_available": False}, "web": {"results": []}}
    get = _Recorder(_FakeResponse(body=page), _FakeResponse(body=last))
    provider = BraveWebSearch(http=HttpClient(request_get=get))

    session = provider.start_session(SearchParams(query="durable", include_domains=["docs.io"], max_results=5))
    first = session.next_page()
    metadata = session.get_metadata()
    second = session.next_page()

    assert get.calls[0]["headers"]["X-Subscription-Token"] == "brave-test"
    assert get.calls[0]["params"] == {"q": "durable site:docs.io", "count": 5, "offset": 0}
    assert get.calls[1]["params"]["offset"] == 1
    assert first[0].display_url == "a.example"
    assert metadata.next_page_token == "1"
    assert second == []
    assert session.finished
    assert session.next_page() == []
    assert provider.session_to_state(session) == {"page": 2, "finished": True}


def test_qdrant_operations(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("QDRANT_URL", "http://qdrant.local:6333/")
    monkeypatch.setenv("QDRANT_API_KEY", "q-key")
    request = _Recorder(
        _FakeResponse(body={"result": True}),
        _FakeResponse(body={"result": {"status": "acknowledged"}}),
        _FakeResponse(body={"result": [{"id": "a", "score": 0.8, "payload": {"lang": "en"}}]}),
    )
    provider = QdrantVector(http=HttpClient(request=request))

    info = provider.upsert_collection("docs", 3, "dot_product")
    batch = provider.upsert_vectors("docs", [VectorRecord(id="a", vector=[1.0, 0.0, 0.0])])
    hits = provider.search_vectors("docs", [1.0, 0.0, 0.0], 5, {"lang": "en"})

    assert request.calls[0]["args"] == ("PUT", "http://qdrant.local:6333/collections/docs")
    assert request.calls[0]["json"] == {"vectors": {"size": 3, "distance": "Dot"}}
    assert request.calls[0]["headers"]["api-key"] == "q-key"
    assert request.calls[1]["params"] == {"wait": "true"}
    assert request.calls[2]["json"]["filter"] == {"must": [{"key": "lang", "match": {"value": "en"}}]}
    assert info.metric == "dot_product"
    assert batch.success_count == 1
    assert hits[0].id == "a"
    assert hits[0].metadata == {"lang": "en"}


def test_unparseable_body_is_internal_error(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("QDRANT_URL", "http://qdrant.local:6333")
    provider = QdrantVector(http=HttpClient(request=_Recorder(_FakeResponse(body=None))))

    with pytest.raises(ProviderError, match="failed to parse response body"):
        provider.list_collections()


def test_openai_send_posts_responses_input(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "sk-openai")
    post = _Recorder(
        _FakeResponse(
            body={
                "id": "resp_1",
                "output": [
                    {"type": "message", "content": [{"type": "output_text", "text": "Paris"}]},
                    {"type": "function_call", "call_id": "c1", "name": "lookup", "arguments": "{}"},
                ],
                "usage": {"input_tokens": 4, "output_tokens": 1, "total_tokens": 5},
            }
        )
    )
    llm = DurableLLM(OpenAIChat(http=HttpClient(request_post=post)))

    response = llm.send([Message.text("user", "Capital of France?")], Config(model="gpt-test", max_tokens=16))

    call = post.calls[0]
    assert call["args"][0] == "https://api.openai.com/v1/responses"
    assert call["headers"]["Authorization"] == "Bearer sk-openai"
    assert call["json"]["max_output_tokens"] == 16
    assert call["json"]["input"] == [
        {"type": "message", "role": "user", "content": [{"type": "input_text", "text": "Capital of France?"}]}
    ]
    assert response.text() == "Paris"
    assert response.tool_calls == [ToolCall(id="c1", name="lookup", arguments_json="{}")]
    assert response.metadata.provider_id == "resp_1"


def test_openai_embed_rejects_images_and_rerank(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "sk-openai")
    post = _Recorder(
        _FakeResponse(
            body={
                "model": "text-embedding-3-small",
                "data": [{"index": 0, "embedding": [0.5, 0.25]}],
                "usage": {"prompt_tokens": 2, "total_tokens": 2},
            }
        )
    )
    embed = OpenAIEmbed(http=HttpClient(request_post=post))

    result = embed.generate([Text("hello")], EmbedConfig(dimensions=2))

    assert post.calls[0]["json"] == {
        "model": "text-embedding-3-small",
        "input": ["hello"],
        "encoding_format": "float",
        "dimensions": 2,
    }
    assert result.embeddings[0].vector == [0.5, 0.25]
    with pytest.raises(ProviderError) as raised:
        embed.rerank("q", ["doc"], EmbedConfig())
    assert raised.value.code == "unsupported"


def test_openrouter_send_flattens_history(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OPENROUTER_API_KEY", "or-key")
    post = _Recorder(
        _FakeResponse(
            body={
                "id": "gen-1",
                "choices": [{"message": {"content": "done"}, "finish_reason": "stop"}],
                "usage": {"prompt_tokens": 9, "completion_tokens": 1, "total_tokens": 10},
            }
        )
    )
    llm = DurableLLM(OpenRouterChat(http=HttpClient(request_post=post)))
    history = [
        Message.text("user", "run it"),
        Response(id="gen-0", content=[], tool_calls=[ToolCall(id="t1", name="run", arguments_json="{}")]),
        ToolResults(results=[ToolFailure(id="t1", name="run", error_message="boom")]),
    ]

    response = llm.send(history, Config(model="router/test", stop_sequences=["END"]))

    messages = post.calls[0]["json"]["messages"]
    assert messages[1]["tool_calls"][0]["function"] == {"name": "run", "arguments": "{}"}
    assert messages[2] == {"role": "tool", "tool_call_id": "t1", "content": '{ "error": "boom" }'}
    assert post.calls[0]["json"]["stop"] == ["END"]
    assert response.text() == "done"
    assert response.metadata.finish_reason == "stop"
    assert response.metadata.usage.total_tokens == 10


def test_openrouter_error_body_maps_status(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OPENROUTER_API_KEY", "or-key")
    post = _Recorder(_FakeResponse(body={"error": {"code": 401, "message": "bad key"}}))
    chat = OpenRouterChat(http=HttpClient(request_post=post))

    with pytest.raises(ProviderError) as raised:
        chat.send([Message.text("user", "hi")], Config(model="router/test"))

    assert raised.value.code == "authentication_failed"


def test_openai_rejects_unknown_content_parts() -> None:
    class Audio:
        pass

    with pytest.raises(ProviderError) as raised:
        events_to_input_items([Message(role="user", content=[Audio()])])  # type: ignore[list-item]

    assert raised.value.code == "unsupported"
    assert "Audio content for OpenAI" in raised.value.message
