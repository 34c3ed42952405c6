"""Stable public API surface for durakit.

This module is the supported import path for library users.
"""

from __future__ import annotations

from contextlib import ExitStack
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from durapack import __version__
from durapack.capabilities import (
    DurableEmbed,
    DurableSearchSession,
    DurableStt,
    DurableVector,
    DurableVideo,
    DurableWebSearch,
    EmbedConfig,
    GenerationConfig,
    MediaInput,
    SearchParams,
    TranscriptionRequest,
    VectorRecord,
)
from durapack.durability import Durability, durable_call
from durapack.errors import ErrorCode, ProviderError
from durapack.llm import (
    ChatSession,
    Config,
    DurableChatStream,
    DurableLLM,
    Finish,
    Message,
    Response,
    StreamDelta,
    Text,
    build_retry_prompt,
)
from durapack.log import init_logging
from durapack.oplog import (
    InMemoryOplog,
    OplogError,
    ReplayMismatchError,
    offline_network_guard,
    oplog_scope,
    persistence_level,
    read_oplog,
    write_oplog,
)
from durapack.providers import (
    create_chat,
    create_embed,
    create_stt,
    create_vector,
    create_video,
    create_websearch,
    list_providers,
    register_provider,
)


@dataclass(slots=True)
class _RecordScope:
    """Context manager that records durable calls and writes the oplog on exit."""

    path: str | Path
    metadata: dict[str, Any]
    oplog: InMemoryOplog = field(default_factory=InMemoryOplog)
    _stack: ExitStack | None = field(default=None, init=False, repr=False)

    def __enter__(self) -> InMemoryOplog:
        self._stack = ExitStack()
        self._stack.enter_context(oplog_scope(self.oplog))
        return self.oplog

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> bool:
        if self._stack is None:
            return False
        self._stack.close()
        write_oplog(self.oplog, self.path, metadata={"api": "durakit.record", **self.metadata})
        return False


@dataclass(slots=True)
class _ReplayScope:
    """Context manager that serves durable calls from a recorded oplog."""

    path: str | Path
    offline: bool
    _stack: ExitStack | None = field(default=None, init=False, repr=False)

    def __enter__(self) -> InMemoryOplog:
        oplog = read_oplog(self.path)
        self._stack = ExitStack()
        if self.offline:
            self._stack.enter_context(offline_network_guard())
        self._stack.enter_context(oplog_scope(oplog))
        return oplog

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> bool:
        if self._stack is not None:
            self._stack.close()
        return False


def record(path: str | Path, *, metadata: dict[str, Any] | None = None) -> _RecordScope:
    """Record every durable call made inside the block to an oplog file.

    The file is written even when the block raises, so recorded errors can be
    replayed.
    """
    return _RecordScope(path=path, metadata=dict(metadata or {}))


def replay(path: str | Path, *, offline: bool = True) -> _ReplayScope:
    """Serve durable calls from ``path``; once it runs out, calls go live again.

    With ``offline`` (the default) outbound connections are refused for the
    whole block, so a call past the end of the recording fails with
    ``RuntimeError`` instead of reaching a provider. Pass ``offline=False`` to
    resume an interrupted run live.
    """
    return _ReplayScope(path=path, offline=offline)


__all__ = [
    "__version__",
    "ChatSession",
    "Config",
    "Durability",
    "DurableChatStream",
    "DurableEmbed",
    "DurableLLM",
    "DurableSearchSession",
    "DurableStt",
    "DurableVector",
    "DurableVideo",
    "DurableWebSearch",
    "EmbedConfig",
    "ErrorCode",
    "Finish",
    "GenerationConfig",
    "InMemoryOplog",
    "MediaInput",
    "Message",
    "OplogError",
    "ProviderError",
    "ReplayMismatchError",
    "Response",
    "SearchParams",
    "StreamDelta",
    "Text",
    "TranscriptionRequest",
    "VectorRecord",
    "build_retry_prompt",
    "create_chat",
    "create_embed",
    "create_stt",
    "create_vector",
    "create_video",
    "create_websearch",
    "durable_call",
    "init_logging",
    "list_providers",
    "oplog_scope",
    "persistence_level",
    "read_oplog",
    "record",
    "register_provider",
    "replay",
    "write_oplog",
]
