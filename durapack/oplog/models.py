"""Oplog entry model."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

from durapack.core.hashing import compute_entry_hash

FunctionKind = Literal["read_remote", "write_remote"]

FUNCTION_KINDS: frozenset[str] = frozenset({"read_remote", "write_remote"})


@dataclass(slots=True)
class OplogEntry:
    """One durable call: its input and its Ok/Err outcome.

    ``result`` is either ``{"ok": value}`` or ``{"err": error_dict}``.
    """

    index: int
    namespace: str
    function_name: str
    function_kind: str
    input: Any
    result: dict[str, Any]
    hash: str | None = None

    def __post_init__(self) -> None:
        if self.function_kind not in FUNCTION_KINDS:
            raise ValueError(f"Unsupported function kind: {self.function_kind}")
        if len(self.result) != 1 or not ({"ok", "err"} & set(self.result)):
            raise ValueError("Oplog result must hold exactly one of 'ok' or 'err'")

    @property
    def is_error(self) -> bool:
        return "err" in self.result

    def compute_hash(self) -> str:
        return compute_entry_hash(
            self.namespace,
            self.function_name,
            self.function_kind,
            self.input,
            self.result,
        )

    def with_hash(self) -> "OplogEntry":
        """Return a copy with deterministic hash computed."""
        return OplogEntry(
            index=self.index,
            namespace=self.namespace,
            function_name=self.function_name,
            function_kind=self.function_kind,
            input=self.input,
            result=dict(self.result),
            hash=self.compute_hash(),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "namespace": self.namespace,
            "function_name": self.function_name,
            "function_kind": self.function_kind,
            "input": self.input,
            "result": self.result,
            "hash": self.hash or self.compute_hash(),
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "OplogEntry":
        return cls(
            index=int(raw["index"]),
            namespace=raw["namespace"],
            function_name=raw["function_name"],
            function_kind=raw["function_kind"],
            input=raw.get("input"),
            result=dict(raw["result"]),
            hash=raw.get("hash"),
        )
