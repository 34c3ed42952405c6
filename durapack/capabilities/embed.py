"""Embedding capability: durable ``generate`` and ``rerank``."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

from durapack.config import require_config
from durapack.durability import ModelCodec, durable_call
from durapack.errors import unsupported
from durapack.llm.types import ContentPart

NAMESPACE = "durakit.embed"

EMBED_GENERATE = "generate"
EMBED_RERANK = "rerank"


@dataclass(slots=True)
class EmbedConfig:
    model: str | None = None
    dimensions: int | None = None
    task_type: str | None = None
    truncation: bool | None = None
    user: str | None = None
    provider_options: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "model": self.model,
            "dimensions": self.dimensions,
            "task_type": self.task_type,
            "truncation": self.truncation,
            "user": self.user,
            "provider_options": dict(self.provider_options),
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "EmbedConfig":
        return cls(
            model=raw.get("model"),
            dimensions=raw.get("dimensions"),
            task_type=raw.get("task_type"),
            truncation=raw.get("truncation"),
            user=raw.get("user"),
            provider_options=dict(raw.get("provider_options") or {}),
        )


@dataclass(slots=True)
class Embedding:
    index: int
    vector: list[float]

    def to_dict(self) -> dict[str, Any]:
        return {"index": self.index, "vector": list(self.vector)}

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "Embedding":
        return cls(index=int(raw["index"]), vector=[float(value) for value in raw["vector"]])


@dataclass(slots=True)
class EmbedUsage:
    input_tokens: int | None = None
    total_tokens: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"input_tokens": self.input_tokens, "total_tokens": self.total_tokens}

    @classmethod
    def from_dict(cls, raw: dict[str, Any] | None) -> "EmbedUsage | None":
        if raw is None:
            return None
        return cls(input_tokens=raw.get("input_tokens"), total_tokens=raw.get("total_tokens"))


@dataclass(slots=True)
class EmbeddingResponse:
    embeddings: list[Embedding]
    model: str
    usage: EmbedUsage | None = None
    provider_metadata_json: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "embeddings": [embedding.to_dict() for embedding in self.embeddings],
            "model": self.model,
            "usage": None if self.usage is None else self.usage.to_dict(),
            "provider_metadata_json": self.provider_metadata_json,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "EmbeddingResponse":
        return cls(
            embeddings=[Embedding.from_dict(item) for item in raw.get("embeddings", [])],
            model=raw.get("model", ""),
            usage=EmbedUsage.from_dict(raw.get("usage")),
            provider_metadata_json=raw.get("provider_metadata_json"),
        )


@dataclass(slots=True)
class RerankResult:
    index: int
    relevance_score: float
    document: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "relevance_score": self.relevance_score,
            "document": self.document,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "RerankResult":
        return cls(
            index=int(raw["index"]),
            relevance_score=float(raw["relevance_score"]),
            document=raw.get("document"),
        )


@dataclass(slots=True)
class RerankResponse:
    results: list[RerankResult]
    model: str
    usage: EmbedUsage | None = None
    provider_metadata_json: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "results": [result.to_dict() for result in self.results],
            "model": self.model,
            "usage": None if self.usage is None else self.usage.to_dict(),
            "provider_metadata_json": self.provider_metadata_json,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "RerankResponse":
        return cls(
            results=[RerankResult.from_dict(item) for item in raw.get("results", [])],
            model=raw.get("model", ""),
            usage=EmbedUsage.from_dict(raw.get("usage")),
            provider_metadata_json=raw.get("provider_metadata_json"),
        )


class EmbedProvider(Protocol):
    name: str
    required_config: tuple[str, ...]
    capabilities: frozenset[str]

    def generate(self, inputs: list[ContentPart], config: EmbedConfig) -> EmbeddingResponse:
        """Embed each input."""

    def rerank(self, query: str, documents: list[str], config: EmbedConfig) -> RerankResponse:
        """Order ``documents`` by relevance to ``query``."""


class DurableEmbed:
    """Embedding facade; capabilities a provider lacks fail before any I/O."""

    def __init__(self, provider: EmbedProvider) -> None:
        self.provider = provider

    def _require(self, capability: str) -> None:
        if capability not in self.provider.capabilities:
            raise unsupported(f"{capability} is not available on {self.provider.name}")

    def _check_config(self) -> None:
        require_config(self.provider.required_config)

    def generate(self, inputs: list[ContentPart], config: EmbedConfig) -> EmbeddingResponse:
        return durable_call(
            NAMESPACE,
            EMBED_GENERATE,
            "write_remote",
            {"inputs": [part.to_dict() for part in inputs], "config": config.to_dict()},
            lambda: self.provider.generate(list(inputs), config),
            codec=ModelCodec(EmbeddingResponse),
            preflight=lambda: self._require(EMBED_GENERATE),
            live_preflight=self._check_config,
        )

    def rerank(self, query: str, documents: list[str], config: EmbedConfig) -> RerankResponse:
        return durable_call(
            NAMESPACE,
            EMBED_RERANK,
            "write_remote",
            {"query": query, "documents": list(documents), "config": config.to_dict()},
            lambda: self.provider.rerank(query, list(documents), config),
            codec=ModelCodec(RerankResponse),
            preflight=lambda: self._require(EMBED_RERANK),
            live_preflight=self._check_config,
        )
