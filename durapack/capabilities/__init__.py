"""Durable facades for the non-chat capabilities."""

from durapack.capabilities.embed import (
    DurableEmbed,
    EmbedConfig,
    Embedding,
    EmbeddingResponse,
    EmbedProvider,
    EmbedUsage,
    RerankResponse,
    RerankResult,
)
from durapack.capabilities.stt import (
    DurableStt,
    FailedTranscription,
    LanguageInfo,
    MultiTranscriptionResult,
    SttProvider,
    TranscriptionOptions,
    TranscriptionRequest,
    TranscriptionResult,
    TranscriptionSegment,
)
from durapack.capabilities.vector import (
    BatchResult,
    CollectionInfo,
    DurableVector,
    SearchHit,
    VectorProvider,
    VectorRecord,
)
from durapack.capabilities.video import (
    DurableVideo,
    GenerationConfig,
    MediaInput,
    Video,
    VideoProvider,
    VideoResult,
)
from durapack.capabilities.websearch import (
    DurableSearchSession,
    DurableWebSearch,
    SearchMetadata,
    SearchParams,
    SearchResult,
    WebSearchProvider,
)

__all__ = [
    "BatchResult",
    "CollectionInfo",
    "DurableEmbed",
    "DurableSearchSession",
    "DurableStt",
    "DurableVector",
    "DurableVideo",
    "DurableWebSearch",
    "EmbedConfig",
    "EmbedProvider",
    "EmbedUsage",
    "Embedding",
    "EmbeddingResponse",
    "FailedTranscription",
    "GenerationConfig",
    "LanguageInfo",
    "MediaInput",
    "MultiTranscriptionResult",
    "RerankResponse",
    "RerankResult",
    "SearchHit",
    "SearchMetadata",
    "SearchParams",
    "SearchResult",
    "SttProvider",
    "TranscriptionOptions",
    "TranscriptionRequest",
    "TranscriptionResult",
    "TranscriptionSegment",
    "VectorProvider",
    "VectorRecord",
    "Video",
    "VideoProvider",
    "VideoResult",
    "WebSearchProvider",
]
