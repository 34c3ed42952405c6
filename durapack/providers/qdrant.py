"""Qdrant vector store provider over the REST API."""

from __future__ import annotations

from typing import Any

from durapack.capabilities.vector import (
    BatchResult,
    CollectionInfo,
    DistanceMetric,
    SearchHit,
    VectorRecord,
)
from durapack.config import QDRANT_API_KEY_ENV, QDRANT_URL_ENV, get_config_key, get_optional_config
from durapack.providers.http import HttpClient

DISTANCES: dict[str, str] = {"cosine": "Cosine", "euclidean": "Euclid", "dot_product": "Dot"}


def metadata_filter_to_qdrant(metadata_filter: dict[str, Any] | None) -> dict[str, Any] | None:
    """Equality filter on payload keys; every condition must match."""
    if not metadata_filter:
        return None
    return {
        "must": [{"key": key, "match": {"value": value}} for key, value in sorted(metadata_filter.items())]
    }


class QdrantVector:
    name = "qdrant"
    required_config = (QDRANT_URL_ENV,)

    def __init__(self, *, http: HttpClient | None = None) -> None:
        self.http = http or HttpClient()

    def _url(self, path: str) -> str:
        return f"{get_config_key(QDRANT_URL_ENV).rstrip('/')}{path}"

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        api_key = get_optional_config(QDRANT_API_KEY_ENV)
        if api_key:
            headers["api-key"] = api_key
        return headers

    def _call(self, method: str, path: str, operation: str, payload: Any = None, params: dict[str, Any] | None = None) -> Any:
        body = self.http.request_json(
            method,
            self._url(path),
            headers=self._headers(),
            payload=payload,
            params=params,
            details=f"Qdrant {operation} failed",
        )
        return body.get("result") if isinstance(body, dict) else None

    def upsert_collection(self, name: str, dimension: int, metric: DistanceMetric) -> CollectionInfo:
        self._call(
            "PUT",
            f"/collections/{name}",
            "create collection",
            payload={"vectors": {"size": dimension, "distance": DISTANCES[metric]}},
        )
        return CollectionInfo(name=name, dimension=dimension, metric=metric, vector_count=0)

    def list_collections(self) -> list[str]:
        result = self._call("GET", "/collections", "list collections") or {}
        return sorted(item["name"] for item in result.get("collections", []))

    def upsert_vectors(self, collection: str, records: list[VectorRecord]) -> BatchResult:
        self._call(
            "PUT",
            f"/collections/{collection}/points",
            "upsert points",
            payload={
                "points": [
                    {"id": record.id, "vector": list(record.vector), "payload": dict(record.metadata)}
                    for record in records
                ]
            },
            params={"wait": "true"},
        )
        return BatchResult(success_count=len(records))

    def get_vectors(self, collection: str, ids: list[str]) -> list[VectorRecord]:
        result = self._call(
            "POST",
            f"/collections/{collection}/points",
            "get points",
            payload={"ids": list(ids), "with_payload": True, "with_vector": True},
        )
        return [
            VectorRecord(
                id=str(point["id"]),
                vector=[float(value) for value in point.get("vector") or []],
                metadata=dict(point.get("payload") or {}),
            )
            for point in result or []
        ]

    def delete_vectors(self, collection: str, ids: list[str]) -> int:
        self._call(
            "POST",
            f"/collections/{collection}/points/delete",
            "delete points",
            payload={"points": list(ids)},
            params={"wait": "true"},
        )
        return len(ids)

    def search_vectors(
        self,
        collection: str,
        query: list[float],
        limit: int,
        metadata_filter: dict[str, Any] | None = None,
    ) -> list[SearchHit]:
        payload: dict[str, Any] = {"vector": list(query), "limit": limit, "with_payload": True}
        qdrant_filter = metadata_filter_to_qdrant(metadata_filter)
        if qdrant_filter is not None:
            payload["filter"] = qdrant_filter
        result = self._call("POST", f"/collections/{collection}/points/search", "search points", payload=payload)
        return [
            SearchHit(
                id=str(point["id"]),
                score=float(point["score"]),
                metadata=dict(point.get("payload") or {}),
            )
            for point in result or []
        ]
