import pytest

from durapack.core.canonical import canonical_json, canonicalize
from durapack.core.hashing import compute_entry_hash, sha256_digest


def test_equivalent_mappings_canonicalize_to_same_json() -> None:
    left = {"config": {"model": "m", "temperature": 0.5}, "events": [{"role": "user"}]}
    right = {"events": [{"role": "user"}], "config": {"temperature": 0.5, "model": "m"}}

    assert canonical_json(left) == canonical_json(right)


def test_list_order_and_line_endings_are_preserved() -> None:
    payload = {"chunks": ["b", "a"], "text": "one\r\ntwo"}

    canonical = canonicalize(payload)

    assert canonical["chunks"] == ["b", "a"]
    assert canonical["text"] == "one\r\ntwo"


def test_tuples_become_lists() -> None:
    assert canonicalize({"pair": (1, 2)}) == {"pair": [1, 2]}


def test_non_finite_floats_are_rejected() -> None:
    with pytest.raises(ValueError, match="NaN"):
        canonicalize({"score": float("nan")})


def test_unsupported_types_are_rejected() -> None:
    with pytest.raises(TypeError, match="bytes"):
        canonicalize({"audio": b"raw"})


def test_sha256_digest_is_prefixed_and_stable() -> None:
    first = sha256_digest({"b": 1, "a": 2})
    second = sha256_digest({"a": 2, "b": 1})

    assert first == second
    assert first.startswith("sha256:")


def test_entry_hash_depends_on_result() -> None:
    ok = compute_entry_hash("durakit.llm", "send", "write_remote", {"x": 1}, {"ok": "a"})
    other = compute_entry_hash("durakit.llm", "send", "write_remote", {"x": 1}, {"ok": "b"})

    assert ok != other
