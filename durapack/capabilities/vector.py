"""Vector store capability."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Protocol

from durapack.config import require_config
from durapack.durability import JSON_CODEC, ListCodec, ModelCodec, durable_call

NAMESPACE = "durakit.vector"

DistanceMetric = Literal["cosine", "euclidean", "dot_product"]


@dataclass(slots=True)
class CollectionInfo:
    name: str
    dimension: int
    metric: DistanceMetric = "cosine"
    vector_count: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "dimension": self.dimension,
            "metric": self.metric,
            "vector_count": self.vector_count,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "CollectionInfo":
        return cls(
            name=raw["name"],
            dimension=int(raw["dimension"]),
            metric=raw.get("metric", "cosine"),
            vector_count=raw.get("vector_count"),
        )


@dataclass(slots=True)
class VectorRecord:
    id: str
    vector: list[float]
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "vector": list(self.vector), "metadata": dict(self.metadata)}

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "VectorRecord":
        return cls(
            id=str(raw["id"]),
            vector=[float(value) for value in raw.get("vector", [])],
            metadata=dict(raw.get("metadata") or {}),
        )


@dataclass(slots=True)
class BatchResult:
    success_count: int
    failure_count: int = 0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success_count": self.success_count,
            "failure_count": self.failure_count,
            "errors": list(self.errors),
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "BatchResult":
        return cls(
            success_count=int(raw["success_count"]),
            failure_count=int(raw.get("failure_count", 0)),
            errors=list(raw.get("errors") or []),
        )


@dataclass(slots=True)
class SearchHit:
    id: str
    score: float
    vector: list[float] | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "score": self.score,
            "vector": None if self.vector is None else list(self.vector),
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "SearchHit":
        vector = raw.get("vector")
        return cls(
            id=str(raw["id"]),
            score=float(raw["score"]),
            vector=None if vector is None else [float(value) for value in vector],
            metadata=dict(raw.get("metadata") or {}),
        )


class VectorProvider(Protocol):
    name: str
    required_config: tuple[str, ...]

    def upsert_collection(self, name: str, dimension: int, metric: DistanceMetric) -> CollectionInfo:
        ...

    def list_collections(self) -> list[str]:
        ...

    def upsert_vectors(self, collection: str, records: list[VectorRecord]) -> BatchResult:
        ...

    def get_vectors(self, collection: str, ids: list[str]) -> list[VectorRecord]:
        ...

    def delete_vectors(self, collection: str, ids: list[str]) -> int:
        ...

    def search_vectors(
        self,
        collection: str,
        query: list[float],
        limit: int,
        metadata_filter: dict[str, Any] | None = None,
    ) -> list[SearchHit]:
        ...


class DurableVector:
    def __init__(self, provider: VectorProvider) -> None:
        self.provider = provider

    def _check_config(self) -> None:
        require_config(self.provider.required_config)

    def upsert_collection(self, name: str, dimension: int, metric: DistanceMetric = "cosine") -> CollectionInfo:
        return durable_call(
            NAMESPACE,
            "upsert_collection",
            "write_remote",
            {"name": name, "dimension": dimension, "metric": metric},
            lambda: self.provider.upsert_collection(name, dimension, metric),
            codec=ModelCodec(CollectionInfo),
            live_preflight=self._check_config,
        )

    def list_collections(self) -> list[str]:
        return durable_call(
            NAMESPACE,
            "list_collections",
            "read_remote",
            {},
            self.provider.list_collections,
            codec=JSON_CODEC,
            live_preflight=self._check_config,
        )

    def upsert_vectors(self, collection: str, records: list[VectorRecord]) -> BatchResult:
        return durable_call(
            NAMESPACE,
            "upsert_vectors",
            "write_remote",
            {"collection": collection, "records": [record.to_dict() for record in records]},
            lambda: self.provider.upsert_vectors(collection, list(records)),
            codec=ModelCodec(BatchResult),
            live_preflight=self._check_config,
        )

    def get_vectors(self, collection: str, ids: list[str]) -> list[VectorRecord]:
        return durable_call(
            NAMESPACE,
            "get_vectors",
            "read_remote",
            {"collection": collection, "ids": list(ids)},
            lambda: self.provider.get_vectors(collection, list(ids)),
            codec=ListCodec(ModelCodec(VectorRecord)),
            live_preflight=self._check_config,
        )

    def delete_vectors(self, collection: str, ids: list[str]) -> int:
        return durable_call(
            NAMESPACE,
            "delete_vectors",
            "write_remote",
            {"collection": collection, "ids": list(ids)},
            lambda: self.provider.delete_vectors(collection, list(ids)),
            live_preflight=self._check_config,
        )

    def search_vectors(
        self,
        collection: str,
        query: list[float],
        limit: int = 10,
        metadata_filter: dict[str, Any] | None = None,
    ) -> list[SearchHit]:
        return durable_call(
            NAMESPACE,
            "search_vectors",
            "read_remote",
            {
                "collection": collection,
                "query": list(query),
                "limit": limit,
                "filter": metadata_filter,
            },
            lambda: self.provider.search_vectors(collection, list(query), limit, metadata_filter),
            codec=ListCodec(ModelCodec(SearchHit)),
            live_preflight=self._check_config,
        )
