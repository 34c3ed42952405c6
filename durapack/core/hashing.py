"""Stable hashing for oplog entries and files."""

from __future__ import annotations

import hashlib
from typing import Any

from durapack.core.canonical import canonical_json


def sha256_digest(value: Any) -> str:
    payload = canonical_json(value)
    digest = hashlib.sha256(payload.encode("utf-8")).hexdigest()
    return f"sha256:{digest}"


def compute_entry_hash(
    namespace: str,
    function_name: str,
    function_kind: str,
    input_value: Any,
    result: dict[str, Any],
) -> str:
    """Compute a deterministic hash for one oplog entry.

    The entry index is not part of the hash so identical calls hash equally
    wherever they appear in a log.
    """
    return sha256_digest(
        {
            "namespace": namespace,
            "function_name": function_name,
            "function_kind": function_kind,
            "input": input_value,
            "result": result,
        }
    )
