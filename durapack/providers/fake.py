"""Deterministic in-process providers for local runs and tests."""

from __future__ import annotations

import hashlib
import json
import math
from typing import Any

from durapack.capabilities.embed import (
    EMBED_GENERATE,
    EMBED_RERANK,
    EmbedConfig,
    Embedding,
    EmbeddingResponse,
    EmbedUsage,
    RerankResponse,
    RerankResult,
)
from durapack.capabilities.stt import LanguageInfo, TranscriptionRequest, TranscriptionResult
from durapack.capabilities.vector import (
    BatchResult,
    CollectionInfo,
    DistanceMetric,
    SearchHit,
    VectorRecord,
)
from durapack.capabilities.video import GenerationConfig, MediaInput, Video, VideoResult
from durapack.capabilities.websearch import SearchMetadata, SearchParams, SearchResult
from durapack.errors import ProviderError, model_not_found
from durapack.llm.decoders.ollama import OllamaDecoder
from durapack.llm.retry import PARTIAL_RESPONSE_LABEL
from durapack.llm.stream import ChatStream
from durapack.llm.types import (
    Config,
    ContentPart,
    Event,
    Message,
    Response,
    ResponseMetadata,
    Text,
    Usage,
)
from durapack.streaming.chunks import NdjsonChunkSource

DEFAULT_CHUNKS = ("Once upon ", "a time.")
FAKE_TIMESTAMP = "2026-01-01T00:00:00Z"


def delivered_text(events: list[Event]) -> str | None:
    """Text already delivered according to a retry prompt, or None for a fresh request."""
    for event in reversed(events):
        if not isinstance(event, Message) or event.role != "user" or not event.content:
            continue
        first = event.content[0]
        if isinstance(first, Text) and first.text == PARTIAL_RESPONSE_LABEL:
            return "".join(part.text for part in event.content[1:] if isinstance(part, Text))
    return None


def remaining_chunks(chunks: tuple[str, ...], delivered: str) -> list[str]:
    """Chunks left after ``delivered``; a chunk cut in the middle is split."""
    remaining: list[str] = []
    consumed = 0
    for chunk in chunks:
        end = consumed + len(chunk)
        if end <= len(delivered):
            consumed = end
            continue
        remaining.append(chunk[max(0, len(delivered) - consumed):])
        consumed = end
    return remaining


class FakeChat:
    """Streams a fixed story as Ollama-style NDJSON lines.

    When asked to continue an interrupted response it resumes right after the
    text already delivered.
    """

    name = "fake"
    required_config: tuple[str, ...] = ()

    def __init__(
        self,
        chunks: tuple[str, ...] | list[str] = DEFAULT_CHUNKS,
        *,
        models: tuple[str, ...] | None = None,
        stream_error: ProviderError | None = None,
    ) -> None:
        self.chunks = tuple(chunks)
        self.models = models
        self.stream_error = stream_error
        self.requests: list[list[Event]] = []
        self.sources: list[NdjsonChunkSource] = []

    def _check_model(self, config: Config) -> None:
        if self.models is not None and config.model not in self.models:
            raise model_not_found(config.model)

    def _chunks_for(self, events: list[Event]) -> list[str]:
        delivered = delivered_text(events)
        if delivered is None:
            return list(self.chunks)
        return remaining_chunks(self.chunks, delivered)

    def send(self, events: list[Event], config: Config) -> Response:
        self._check_model(config)
        self.requests.append(list(events))
        text = "".join(self._chunks_for(events))
        return Response(
            id="fake-response",
            content=[Text(text)],
            metadata=ResponseMetadata(
                finish_reason="stop",
                usage=Usage(input_tokens=len(events), output_tokens=len(text), total_tokens=len(events) + len(text)),
                provider_id="fake",
                timestamp=FAKE_TIMESTAMP,
            ),
        )

    def stream(self, events: list[Event], config: Config) -> ChatStream:
        self._check_model(config)
        self.requests.append(list(events))
        if self.stream_error is not None:
            raise self.stream_error
        lines = [
            json.dumps({"created_at": FAKE_TIMESTAMP, "message": {"role": "assistant", "content": chunk}, "done": False})
            for chunk in self._chunks_for(events)
        ]
        lines.append(
            json.dumps(
                {
                    "created_at": FAKE_TIMESTAMP,
                    "message": {"role": "assistant", "content": ""},
                    "done": True,
                    "prompt_eval_count": len(events),
                    "eval_count": len(lines),
                }
            )
        )
        source = NdjsonChunkSource(lines)
        self.sources.append(source)
        return ChatStream(source, OllamaDecoder())


def _hash_vector(text: str, dimensions: int) -> list[float]:
    digest = hashlib.sha256(text.encode("utf-8")).digest()
    raw = [digest[index % len(digest)] / 255.0 for index in range(dimensions)]
    norm = math.sqrt(sum(value * value for value in raw)) or 1.0
    return [round(value / norm, 6) for value in raw]


def _tokens(text: str) -> set[str]:
    return {token for token in text.lower().split() if token}


class FakeEmbed:
    name = "fake"
    required_config: tuple[str, ...] = ()

    def __init__(self, capabilities: frozenset[str] = frozenset({EMBED_GENERATE, EMBED_RERANK})) -> None:
        self.capabilities = capabilities
        self.calls = 0

    def generate(self, inputs: list[ContentPart], config: EmbedConfig) -> EmbeddingResponse:
        self.calls += 1
        dimensions = config.dimensions or 8
        embeddings = []
        for index, part in enumerate(inputs):
            key = part.text if isinstance(part, Text) else json.dumps(part.to_dict(), sort_keys=True)
            embeddings.append(Embedding(index=index, vector=_hash_vector(key, dimensions)))
        return EmbeddingResponse(
            embeddings=embeddings,
            model=config.model or "fake-embed",
            usage=EmbedUsage(input_tokens=len(inputs), total_tokens=len(inputs)),
        )

    def rerank(self, query: str, documents: list[str], config: EmbedConfig) -> RerankResponse:
        self.calls += 1
        query_tokens = _tokens(query)
        scored = [
            RerankResult(
                index=index,
                relevance_score=len(query_tokens & _tokens(document)) / (len(query_tokens) or 1),
                document=document,
            )
            for index, document in enumerate(documents)
        ]
        scored.sort(key=lambda result: (-result.relevance_score, result.index))
        return RerankResponse(results=scored, model=config.model or "fake-rerank")


class FakeStt:
    name = "fake"
    required_config: tuple[str, ...] = ()

    def __init__(self) -> None:
        self.calls = 0

    def transcribe(self, request: TranscriptionRequest) -> TranscriptionResult:
        self.calls += 1
        if not request.audio:
            raise ProviderError("invalid_request", f"Empty audio for request {request.request_id}")
        return TranscriptionResult(
            request_id=request.request_id,
            transcript=f"{len(request.audio)} bytes of {request.audio_format} audio",
            language=request.options.language or "en",
            model=request.options.model or "fake-stt",
            audio_size_bytes=len(request.audio),
        )

    def list_languages(self) -> list[LanguageInfo]:
        return [LanguageInfo(code="en", name="English")]


class FakeSearchSession:
    def __init__(self, pages: list[list[SearchResult]], params: SearchParams, page: int = 0) -> None:
        self.pages = pages
        self.params = params
        self.page = page

    def next_page(self) -> list[SearchResult]:
        if self.page >= len(self.pages):
            return []
        results = self.pages[self.page]
        self.page += 1
        return list(results)

    def get_metadata(self) -> SearchMetadata | None:
        return SearchMetadata(
            query=self.params.query,
            total_results=sum(len(page) for page in self.pages),
            current_page=max(0, self.page - 1),
            next_page_token=str(self.page) if self.page < len(self.pages) else None,
        )


class FakeWebSearch:
    name = "fake"
    required_config: tuple[str, ...] = ()

    def __init__(self, pages: list[list[SearchResult]] | None = None) -> None:
        self.pages = pages if pages is not None else [
            [SearchResult(title=f"Result {page}.{index}", url=f"https://example.com/{page}/{index}", snippet="")
             for index in range(2)]
            for page in range(3)
        ]
        self.sessions_started = 0
        self.sessions_restored = 0

    def start_session(self, params: SearchParams) -> FakeSearchSession:
        self.sessions_started += 1
        return FakeSearchSession(self.pages, params)

    def search_once(self, params: SearchParams) -> tuple[list[SearchResult], SearchMetadata | None]:
        session = FakeSearchSession(self.pages, params)
        return session.next_page(), session.get_metadata()

    def session_to_state(self, session: FakeSearchSession) -> dict[str, Any]:
        return {"page": session.page}

    def session_from_state(self, state: dict[str, Any], params: SearchParams) -> FakeSearchSession:
        self.sessions_restored += 1
        return FakeSearchSession(self.pages, params, page=int(state.get("page", 0)))


class FakeVideo:
    """In-memory job table; a job succeeds after ``polls_until_done`` polls."""

    name = "fake"
    required_config: tuple[str, ...] = ()

    def __init__(self, polls_until_done: int = 1) -> None:
        self.polls_until_done = polls_until_done
        self.jobs: dict[str, dict[str, Any]] = {}

    def generate(self, media: MediaInput, config: GenerationConfig) -> str:
        job_id = f"job-{len(self.jobs) + 1}"
        self.jobs[job_id] = {"status": "pending", "polls": 0, "duration": config.duration_seconds}
        return job_id

    def _job(self, job_id: str) -> dict[str, Any]:
        if job_id not in self.jobs:
            raise ProviderError("invalid_request", f"Unknown job: {job_id}")
        return self.jobs[job_id]

    def poll(self, job_id: str) -> VideoResult:
        job = self._job(job_id)
        if job["status"] in ("pending", "running"):
            job["polls"] += 1
            job["status"] = "succeeded" if job["polls"] >= self.polls_until_done else "running"
        videos = []
        if job["status"] == "succeeded":
            videos.append(Video(uri=f"memory://{job_id}.mp4", duration_seconds=job["duration"]))
        return VideoResult(job_id=job_id, status=job["status"], videos=videos)

    def cancel(self, job_id: str) -> str:
        job = self._job(job_id)
        if job["status"] == "succeeded":
            raise ProviderError("invalid_request", f"Job {job_id} already finished")
        job["status"] = "cancelled"
        return job_id


def similarity(metric: DistanceMetric, left: list[float], right: list[float]) -> float:
    if metric == "dot_product":
        return sum(a * b for a, b in zip(left, right))
    if metric == "euclidean":
        return -math.sqrt(sum((a - b) ** 2 for a, b in zip(left, right)))
    norm = math.sqrt(sum(a * a for a in left)) * math.sqrt(sum(b * b for b in right))
    return 0.0 if norm == 0 else sum(a * b for a, b in zip(left, right)) / norm


class MemoryVector:
    """Vector store kept in process memory."""

    name = "memory"
    required_config: tuple[str, ...] = ()

    def __init__(self) -> None:
        self.collections: dict[str, CollectionInfo] = {}
        self.records: dict[str, dict[str, VectorRecord]] = {}

    def _collection(self, name: str) -> CollectionInfo:
        if name not in self.collections:
            raise ProviderError("invalid_request", f"Unknown collection: {name}")
        return self.collections[name]

    def upsert_collection(self, name: str, dimension: int, metric: DistanceMetric) -> CollectionInfo:
        stored = self.records.setdefault(name, {})
        self.collections[name] = CollectionInfo(
            name=name, dimension=dimension, metric=metric, vector_count=len(stored)
        )
        return CollectionInfo.from_dict(self.collections[name].to_dict())

    def list_collections(self) -> list[str]:
        return sorted(self.collections)

    def upsert_vectors(self, collection: str, records: list[VectorRecord]) -> BatchResult:
        info = self._collection(collection)
        result = BatchResult(success_count=0)
        for record in records:
            if len(record.vector) != info.dimension:
                result.failure_count += 1
                result.errors.append(f"{record.id}: expected {info.dimension} dimensions, got {len(record.vector)}")
                continue
            self.records[collection][record.id] = record
            result.success_count += 1
        info.vector_count = len(self.records[collection])
        return result

    def get_vectors(self, collection: str, ids: list[str]) -> list[VectorRecord]:
        self._collection(collection)
        stored = self.records[collection]
        return [stored[record_id] for record_id in ids if record_id in stored]

    def delete_vectors(self, collection: str, ids: list[str]) -> int:
        info = self._collection(collection)
        stored = self.records[collection]
        deleted = sum(1 for record_id in ids if stored.pop(record_id, None) is not None)
        info.vector_count = len(stored)
        return deleted

    def search_vectors(
        self,
        collection: str,
        query: list[float],
        limit: int,
        metadata_filter: dict[str, Any] | None = None,
    ) -> list[SearchHit]:
        info = self._collection(collection)
        hits = [
            SearchHit(
                id=record.id,
                score=similarity(info.metric, query, record.vector),
                metadata=dict(record.metadata),
            )
            for record in self.records[collection].values()
            if all(record.metadata.get(key) == value for key, value in (metadata_filter or {}).items())
        ]
        hits.sort(key=lambda hit: (-hit.score, hit.id))
        return hits[:limit]
