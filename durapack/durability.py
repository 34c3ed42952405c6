"""Durable call wrapper: record remote effects live, reproduce them on replay."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Generic, Protocol, TypeVar

from durapack.core.canonical import canonical_json
from durapack.errors import ProviderError
from durapack.log import get_logger, init_logging
from durapack.oplog.exceptions import OplogError, ReplayMismatchError
from durapack.oplog.memory import Oplog
from durapack.oplog.models import FUNCTION_KINDS, FunctionKind
from durapack.oplog.scope import get_current_oplog, get_persistence_level, persistence_level

T = TypeVar("T")

_log = get_logger("durability")


class ValueCodec(Protocol[T]):
    """Converts a call result to and from its persisted JSON form."""

    def encode(self, value: T) -> Any:
        ...

    def decode(self, raw: Any) -> T:
        ...


@dataclass(frozen=True, slots=True)
class JsonCodec:
    """Values that are already JSON-compatible."""

    def encode(self, value: Any) -> Any:
        return value

    def decode(self, raw: Any) -> Any:
        return raw


@dataclass(frozen=True, slots=True)
class ModelCodec(Generic[T]):
    """Models exposing ``to_dict`` / ``from_dict``."""

    model: type[T]

    def encode(self, value: T) -> Any:
        return value.to_dict()  # type: ignore[attr-defined]

    def decode(self, raw: Any) -> T:
        return self.model.from_dict(raw)  # type: ignore[attr-defined]


@dataclass(frozen=True, slots=True)
class ListCodec(Generic[T]):
    item: ValueCodec[T]

    def encode(self, value: list[T]) -> Any:
        return [self.item.encode(item) for item in value]

    def decode(self, raw: Any) -> list[T]:
        return [self.item.decode(item) for item in raw]


@dataclass(frozen=True, slots=True)
class OptionalCodec(Generic[T]):
    item: ValueCodec[T]

    def encode(self, value: T | None) -> Any:
        return None if value is None else self.item.encode(value)

    def decode(self, raw: Any) -> T | None:
        return None if raw is None else self.item.decode(raw)


JSON_CODEC = JsonCodec()


class Durability:
    """Handle bound to one named remote function.

    With no active oplog, or inside a ``persist_nothing`` scope, the handle is
    always live and persisting is a no-op.
    """

    def __init__(
        self,
        namespace: str,
        function_name: str,
        kind: FunctionKind,
        *,
        oplog: Oplog | None = None,
    ) -> None:
        if kind not in FUNCTION_KINDS:
            raise ValueError(f"Unsupported function kind: {kind}")
        self.namespace = namespace
        self.function_name = function_name
        self.kind = kind
        self._oplog = oplog if oplog is not None else get_current_oplog()

    @property
    def recording(self) -> bool:
        return self._oplog is not None and get_persistence_level() != "persist_nothing"

    def _active_oplog(self) -> Oplog:
        if self._oplog is None:
            raise OplogError(f"No active oplog for {self.namespace}::{self.function_name}")
        return self._oplog

    def is_live(self) -> bool:
        if not self.recording:
            return True
        return self._active_oplog().is_live()

    def persist(self, input_value: Any, value: T, *, codec: ValueCodec[T] = JSON_CODEC) -> T:
        if self.recording:
            self._active_oplog().append(
                self.namespace,
                self.function_name,
                self.kind,
                input_value,
                {"ok": codec.encode(value)},
            )
        return value

    def persist_error(self, input_value: Any, error: ProviderError) -> None:
        if self.recording:
            self._active_oplog().append(
                self.namespace,
                self.function_name,
                self.kind,
                input_value,
                {"err": error.to_dict()},
            )

    def replay(self, input_value: Any, *, codec: ValueCodec[T] = JSON_CODEC) -> T:
        """Return the recorded value, re-raising a recorded ``ProviderError``.

        ``input_value`` must canonicalize to the recorded input; a different
        request never receives another call's result.
        """
        entry = self._active_oplog().begin(self.namespace, self.function_name, self.kind)
        if canonical_json(entry.input) != canonical_json(input_value):
            raise ReplayMismatchError(
                f"Oplog entry {entry.index} for {self.namespace}::{self.function_name} "
                "was recorded with a different input"
            )
        _log.debug(
            "durable.replay",
            namespace=self.namespace,
            function=self.function_name,
            index=entry.index,
            error=entry.is_error,
        )
        if entry.is_error:
            raise ProviderError.from_dict(entry.result["err"])
        return codec.decode(entry.result["ok"])


def durable_call(
    namespace: str,
    function_name: str,
    kind: FunctionKind,
    input_value: Any,
    operation: Callable[[], T],
    *,
    codec: ValueCodec[T] = JSON_CODEC,
    preflight: Callable[[], None] | None = None,
    live_preflight: Callable[[], None] | None = None,
) -> T:
    """Run ``operation`` once and record it, or reproduce it from the oplog.

    ``preflight`` runs before the oplog is consulted (capability checks) and
    ``live_preflight`` only before a live execution (configuration checks).
    Failures of either leave no entry behind.
    """
    init_logging()
    if preflight is not None:
        preflight()

    durability = Durability(namespace, function_name, kind)
    if not durability.is_live():
        return durability.replay(input_value, codec=codec)

    if live_preflight is not None:
        live_preflight()
    _log.debug("durable.live", namespace=namespace, function=function_name)
    with persistence_level("persist_nothing"):
        try:
            value = operation()
        except ProviderError as error:
            failure = error
        else:
            failure = None

    if failure is not None:
        durability.persist_error(input_value, failure)
        raise failure
    return durability.persist(input_value, value, codec=codec)
