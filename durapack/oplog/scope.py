"""Context-scoped active oplog and persistence level."""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Callable, Iterator, Literal, TypeVar

from durapack.oplog.memory import Oplog

T = TypeVar("T")

PersistenceLevel = Literal["persist_nothing", "smart"]

PERSISTENCE_LEVELS: frozenset[str] = frozenset({"persist_nothing", "smart"})

_CURRENT_OPLOG: ContextVar["Oplog | None"] = ContextVar(
    "durapack_current_oplog", default=None
)
_PERSISTENCE_LEVEL: ContextVar[str] = ContextVar(
    "durapack_persistence_level", default="smart"
)


def get_current_oplog() -> Oplog | None:
    return _CURRENT_OPLOG.get()


@contextmanager
def oplog_scope(oplog: Oplog) -> Iterator[Oplog]:
    """Make ``oplog`` the active log for durable calls within the block."""
    token = _CURRENT_OPLOG.set(oplog)
    try:
        yield oplog
    finally:
        _CURRENT_OPLOG.reset(token)


def get_persistence_level() -> str:
    return _PERSISTENCE_LEVEL.get()


@contextmanager
def persistence_level(level: PersistenceLevel) -> Iterator[None]:
    """Scope a persistence level.

    Under ``persist_nothing`` nested durable calls run live and leave no
    oplog entries.
    """
    if level not in PERSISTENCE_LEVELS:
        raise ValueError(f"Unsupported persistence level: {level}")
    token = _PERSISTENCE_LEVEL.set(level)
    try:
        yield
    finally:
        _PERSISTENCE_LEVEL.reset(token)


def with_persistence_level(level: PersistenceLevel, fn: Callable[[], T]) -> T:
    with persistence_level(level):
        return fn()
