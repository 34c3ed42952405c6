"""Oplog contract, reference host, scoping and file I/O."""

from durapack.oplog.exceptions import (
    OplogChecksumError,
    OplogError,
    OplogValidationError,
    ReplayMismatchError,
)
from durapack.oplog.io import build_oplog_envelope, read_oplog, read_oplog_envelope, write_oplog
from durapack.oplog.memory import InMemoryOplog, Oplog
from durapack.oplog.models import FUNCTION_KINDS, FunctionKind, OplogEntry
from durapack.oplog.offline import offline_network_guard
from durapack.oplog.scope import (
    PersistenceLevel,
    get_current_oplog,
    get_persistence_level,
    oplog_scope,
    persistence_level,
    with_persistence_level,
)

__all__ = [
    "FUNCTION_KINDS",
    "FunctionKind",
    "InMemoryOplog",
    "Oplog",
    "OplogChecksumError",
    "OplogEntry",
    "OplogError",
    "OplogValidationError",
    "PersistenceLevel",
    "ReplayMismatchError",
    "build_oplog_envelope",
    "get_current_oplog",
    "get_persistence_level",
    "offline_network_guard",
    "oplog_scope",
    "persistence_level",
    "read_oplog",
    "read_oplog_envelope",
    "with_persistence_level",
    "write_oplog",
]
