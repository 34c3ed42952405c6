"""Deterministic JSON canonicalization for oplog payloads."""

from __future__ import annotations

import json
import math
from typing import Any


def canonicalize(value: Any) -> Any:
    """Normalize a JSON-compatible value to a deterministic representation.

    Mapping keys are sorted and stringified, tuples become lists and text line
    endings are left untouched: recorded payloads must replay byte-for-byte.
    """
    if isinstance(value, dict):
        return {
            str(key): canonicalize(value[key])
            for key in sorted(value.keys(), key=lambda raw: str(raw))
        }

    if isinstance(value, (list, tuple)):
        return [canonicalize(item) for item in value]

    if isinstance(value, bool) or value is None:
        return value

    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            raise ValueError("NaN and infinity are not supported in canonical JSON")
        return value

    if isinstance(value, (int, str)):
        return value

    raise TypeError(f"value of type {type(value).__name__} is not JSON-serializable")


def canonical_json(value: Any) -> str:
    """Serialize a value to stable canonical JSON."""
    return json.dumps(
        canonicalize(value),
        ensure_ascii=True,
        separators=(",", ":"),
        sort_keys=True,
    )
