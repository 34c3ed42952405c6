"""Chunk sources and the durable streaming session engine."""

from durapack.streaming.chunks import (
    END,
    PENDING,
    SSE_DONE,
    ChunkSignal,
    ChunkSource,
    ChunkSourceError,
    IteratorChunkSource,
    LazyPollable,
    NdjsonChunkSource,
    Pollable,
    ReadyPollable,
    SseChunkSource,
)
from durapack.streaming.session import DurableSession, SessionDriver

__all__ = [
    "END",
    "PENDING",
    "SSE_DONE",
    "ChunkSignal",
    "ChunkSource",
    "ChunkSourceError",
    "DurableSession",
    "IteratorChunkSource",
    "LazyPollable",
    "NdjsonChunkSource",
    "Pollable",
    "ReadyPollable",
    "SessionDriver",
    "SseChunkSource",
]
