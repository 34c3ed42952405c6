"""Oplog file read/write utilities."""

from __future__ import annotations

from datetime import datetime, timezone
import json
from pathlib import Path
from typing import Any, Iterable

from durapack.core.canonical import canonicalize
from durapack.core.hashing import sha256_digest
from durapack.oplog.exceptions import OplogChecksumError, OplogValidationError
from durapack.oplog.memory import InMemoryOplog
from durapack.oplog.models import OplogEntry
from durapack.oplog.schema import DEFAULT_OPLOG_VERSION, validate_oplog_envelope


def compute_oplog_checksum(envelope_without_checksum: dict[str, Any]) -> str:
    return sha256_digest(envelope_without_checksum)


def build_oplog_envelope(
    entries: Iterable[OplogEntry],
    *,
    version: str = DEFAULT_OPLOG_VERSION,
    metadata: dict[str, Any] | None = None,
) -> dict[str, Any]:
    envelope: dict[str, Any] = {
        "version": version,
        "metadata": {
            "created_at": _utcnow_iso(),
            **(metadata or {}),
        },
        "payload": {
            "entries": [entry.with_hash().to_dict() for entry in entries],
        },
    }
    envelope = canonicalize(envelope)
    envelope["checksum"] = compute_oplog_checksum(envelope)
    validate_oplog_envelope(envelope)
    return envelope


def write_oplog(
    oplog: InMemoryOplog | Iterable[OplogEntry],
    path: str | Path,
    *,
    version: str = DEFAULT_OPLOG_VERSION,
    metadata: dict[str, Any] | None = None,
) -> dict[str, Any]:
    entries = oplog.entries if isinstance(oplog, InMemoryOplog) else list(oplog)
    envelope = build_oplog_envelope(entries, version=version, metadata=metadata)
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(
        json.dumps(envelope, indent=2, ensure_ascii=True, sort_keys=True) + "\n",
        encoding="utf-8",
    )
    return envelope


def read_oplog_envelope(path: str | Path) -> dict[str, Any]:
    """Read and validate an oplog file with checksum verification."""
    target = Path(path)
    try:
        raw_text = target.read_text(encoding="utf-8")
    except UnicodeDecodeError as error:
        raise OplogValidationError(f"Oplog is not valid UTF-8 text: {target}") from error

    try:
        envelope = json.loads(raw_text)
    except json.JSONDecodeError as error:
        raise OplogValidationError(f"Oplog is not valid JSON: {target} ({error})") from error

    if not isinstance(envelope, dict):
        raise OplogValidationError(f"Oplog root must be an object: {target}")

    validate_oplog_envelope(envelope)

    checksum_actual = envelope.get("checksum")
    checksum_expected = compute_oplog_checksum(
        {
            "version": envelope["version"],
            "metadata": envelope["metadata"],
            "payload": envelope["payload"],
        }
    )
    if checksum_actual != checksum_expected:
        raise OplogChecksumError(
            "Oplog checksum mismatch: "
            f"expected {checksum_expected}, got {checksum_actual}"
        )
    return envelope


def read_oplog(path: str | Path) -> InMemoryOplog:
    """Load an oplog file as a replaying in-memory oplog."""
    envelope = read_oplog_envelope(path)
    return InMemoryOplog(
        OplogEntry.from_dict(raw) for raw in envelope["payload"]["entries"]
    )


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")
