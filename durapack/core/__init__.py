"""Core canonicalization and hashing helpers."""

from durapack.core.canonical import canonical_json, canonicalize
from durapack.core.hashing import compute_entry_hash, sha256_digest

__all__ = [
    "canonical_json",
    "canonicalize",
    "compute_entry_hash",
    "sha256_digest",
]
