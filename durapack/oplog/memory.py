"""Oplog contract and the in-memory reference host."""

from __future__ import annotations

from typing import Any, Iterable, Protocol

from durapack.oplog.exceptions import OplogError, ReplayMismatchError
from durapack.oplog.models import OplogEntry


class Oplog(Protocol):
    """Append-only per-workflow log consumed by durable calls."""

    def is_live(self) -> bool:
        ...

    def begin(self, namespace: str, function_name: str, function_kind: str) -> OplogEntry:
        ...

    def append(
        self,
        namespace: str,
        function_name: str,
        function_kind: str,
        input_value: Any,
        result: dict[str, Any],
    ) -> OplogEntry:
        ...


class InMemoryOplog:
    """Replays supplied entries in order, then records a live tail."""

    def __init__(self, entries: Iterable[OplogEntry] = ()) -> None:
        self._entries: list[OplogEntry] = list(entries)
        self._cursor = 0

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> list[OplogEntry]:
        return list(self._entries)

    @property
    def replay_cursor(self) -> int:
        return self._cursor

    def is_live(self) -> bool:
        return self._cursor >= len(self._entries)

    def begin(self, namespace: str, function_name: str, function_kind: str) -> OplogEntry:
        if self.is_live():
            raise ReplayMismatchError(
                f"No recorded entry left for {namespace}::{function_name}"
            )

        entry = self._entries[self._cursor]
        expected = (namespace, function_name, function_kind)
        recorded = (entry.namespace, entry.function_name, entry.function_kind)
        if recorded != expected:
            raise ReplayMismatchError(
                f"Oplog entry {entry.index} was recorded for "
                f"{entry.namespace}::{entry.function_name} ({entry.function_kind}), "
                f"replay requested {namespace}::{function_name} ({function_kind})"
            )
        if entry.hash is not None and entry.hash != entry.compute_hash():
            raise ReplayMismatchError(f"Oplog entry {entry.index} is corrupt: hash mismatch")

        self._cursor += 1
        return entry

    def append(
        self,
        namespace: str,
        function_name: str,
        function_kind: str,
        input_value: Any,
        result: dict[str, Any],
    ) -> OplogEntry:
        if not self.is_live():
            raise OplogError(
                f"Cannot append {namespace}::{function_name} while "
                f"{len(self._entries) - self._cursor} recorded entries are unreplayed"
            )
        entry = OplogEntry(
            index=len(self._entries),
            namespace=namespace,
            function_name=function_name,
            function_kind=function_kind,
            input=input_value,
            result=result,
        ).with_hash()
        self._entries.append(entry)
        self._cursor = len(self._entries)
        return entry

    def rehydrate(self, limit: int | None = None) -> "InMemoryOplog":
        """Return a fresh oplog that replays this log (or its first ``limit`` entries)."""
        entries = self._entries if limit is None else self._entries[:limit]
        return InMemoryOplog(entries)
