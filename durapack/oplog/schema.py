"""JSON schema and validation for oplog files."""

from __future__ import annotations

import re
from typing import Any

from jsonschema import Draft202012Validator

from durapack.oplog.exceptions import OplogValidationError

SUPPORTED_MAJOR_VERSION = 1
DEFAULT_OPLOG_VERSION = "1.0"

_VERSION_PATTERN = re.compile(r"^(?P<major>\d+)\.(?P<minor>\d+)$")

_HASH_SCHEMA = {"type": "string", "pattern": r"^sha256:[0-9a-f]{64}$"}

OPLOG_SCHEMA_V1: dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "title": "durakit oplog",
    "type": "object",
    "required": ["version", "metadata", "payload", "checksum"],
    "additionalProperties": False,
    "properties": {
        "version": {"type": "string", "pattern": r"^\d+\.\d+$"},
        "metadata": {"type": "object"},
        "payload": {
            "type": "object",
            "required": ["entries"],
            "additionalProperties": False,
            "properties": {
                "entries": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "required": [
                            "index",
                            "namespace",
                            "function_name",
                            "function_kind",
                            "input",
                            "result",
                            "hash",
                        ],
                        "additionalProperties": False,
                        "properties": {
                            "index": {"type": "integer", "minimum": 0},
                            "namespace": {"type": "string", "minLength": 1},
                            "function_name": {"type": "string", "minLength": 1},
                            "function_kind": {"enum": ["read_remote", "write_remote"]},
                            "input": {},
                            "result": {
                                "type": "object",
                                "minProperties": 1,
                                "maxProperties": 1,
                                "properties": {
                                    "ok": {},
                                    "err": {
                                        "type": "object",
                                        "required": ["code", "message"],
                                    },
                                },
                                "additionalProperties": False,
                            },
                            "hash": _HASH_SCHEMA,
                        },
                    },
                }
            },
        },
        "checksum": _HASH_SCHEMA,
    },
}


def parse_oplog_version(version: str) -> tuple[int, int]:
    """Parse major/minor oplog file version."""
    match = _VERSION_PATTERN.fullmatch(version.strip())
    if match is None:
        raise OplogValidationError(f"Invalid oplog version: {version}")
    return int(match.group("major")), int(match.group("minor"))


def validate_oplog_envelope(envelope: dict[str, Any]) -> None:
    """Validate oplog file shape and supported version contract."""
    version = str(envelope.get("version", "")).strip()
    major, _minor = parse_oplog_version(version)

    if major != SUPPORTED_MAJOR_VERSION:
        raise OplogValidationError(
            "Unsupported oplog major version: "
            f"{version}. Supported major: {SUPPORTED_MAJOR_VERSION}.x"
        )

    validator = Draft202012Validator(OPLOG_SCHEMA_V1)
    errors = sorted(validator.iter_errors(envelope), key=lambda err: list(err.path))
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.path) or "$"
        raise OplogValidationError(f"Invalid oplog at {location}: {first.message}")

    for position, entry in enumerate(envelope["payload"]["entries"]):
        if entry["index"] != position:
            raise OplogValidationError(
                f"Invalid oplog at payload.entries.{position}: index {entry['index']} out of order"
            )
