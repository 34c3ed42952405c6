"""Cohere embeddings and rerank provider."""

from __future__ import annotations

import json
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
from durapack.config import COHERE_API_KEY_ENV, get_config_key
from durapack.errors import unsupported
from durapack.llm.types import ContentPart, Image, Text
from durapack.providers.http import HttpClient, bearer_headers

BASE_URL = "https://api.cohere.ai"
DEFAULT_EMBED_MODEL = "embed-english-v3.0"
DEFAULT_RERANK_MODEL = "rerank-v3.5"

INPUT_TYPES = {
    None: "search_query",
    "retrieval_query": "search_query",
    "retrieval_document": "search_document",
    "classification": "classification",
    "clustering": "clustering",
}


def _billed_usage(body: dict[str, Any]) -> EmbedUsage | None:
    billed = (body.get("meta") or {}).get("billed_units") or {}
    tokens = billed.get("input_tokens")
    return None if tokens is None else EmbedUsage(input_tokens=tokens, total_tokens=tokens)


def embed_request(inputs: list[ContentPart], config: EmbedConfig) -> dict[str, Any]:
    texts = [part.text for part in inputs if isinstance(part, Text)]
    images = [
        part.url or f"data:{part.mime_type or 'image/png'};base64,{part.data}"
        for part in inputs
        if isinstance(part, Image)
    ]
    if texts and images:
        raise unsupported("mixing text and image inputs in one Cohere embed request")
    request: dict[str, Any] = {
        "model": config.model or DEFAULT_EMBED_MODEL,
        "embedding_types": ["float"],
    }
    if images:
        request["input_type"] = "image"
        request["images"] = images
    else:
        if config.task_type not in INPUT_TYPES:
            raise unsupported(f"task_type {config.task_type}")
        request["input_type"] = INPUT_TYPES[config.task_type]
        request["texts"] = texts
    if config.dimensions is not None:
        request["output_dimension"] = config.dimensions
    if config.truncation is not None:
        request["truncate"] = "END" if config.truncation else "NONE"
    return request


class CohereEmbed:
    name = "cohere"
    required_config = (COHERE_API_KEY_ENV,)
    capabilities = frozenset({EMBED_GENERATE, EMBED_RERANK})

    def __init__(self, *, http: HttpClient | None = None, base_url: str = BASE_URL) -> None:
        self.http = http or HttpClient()
        self.base_url = base_url.rstrip("/")

    def generate(self, inputs: list[ContentPart], config: EmbedConfig) -> EmbeddingResponse:
        request = embed_request(inputs, config)
        body = self.http.post_json(
            f"{self.base_url}/v2/embed",
            headers=bearer_headers(get_config_key(COHERE_API_KEY_ENV)),
            payload=request,
            details="Cohere embed request failed",
        )
        vectors = (body.get("embeddings") or {}).get("float") or []
        return EmbeddingResponse(
            embeddings=[
                Embedding(index=index, vector=[float(value) for value in vector])
                for index, vector in enumerate(vectors)
            ],
            model=request["model"],
            usage=_billed_usage(body),
            provider_metadata_json=None if "id" not in body else json.dumps({"id": body["id"]}),
        )

    def rerank(self, query: str, documents: list[str], config: EmbedConfig) -> RerankResponse:
        model = config.model or DEFAULT_RERANK_MODEL
        request: dict[str, Any] = {"model": model, "query": query, "documents": list(documents)}
        if "top_n" in config.provider_options:
            request["top_n"] = int(config.provider_options["top_n"])
        body = self.http.post_json(
            f"{self.base_url}/v2/rerank",
            headers=bearer_headers(get_config_key(COHERE_API_KEY_ENV)),
            payload=request,
            details="Cohere rerank request failed",
        )
        return RerankResponse(
            results=[
                RerankResult(
                    index=int(item["index"]),
                    relevance_score=float(item["relevance_score"]),
                    document=documents[int(item["index"])],
                )
                for item in body.get("results", [])
            ],
            model=model,
            usage=_billed_usage(body),
        )
