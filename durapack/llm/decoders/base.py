"""Shared decoder state for provider stream formats."""

from __future__ import annotations

from dataclasses import dataclass
import json
from typing import Any

from durapack.errors import ProviderError, internal_error
from durapack.llm.types import FinishReason, ResponseMetadata, StreamEvent, ToolCall
from durapack.log import get_logger


@dataclass(slots=True)
class ToolCallFragment:
    """Tool call whose JSON arguments are still arriving."""

    index: int
    id: str
    name: str
    json: str = ""

    def to_tool_call(self) -> ToolCall:
        return ToolCall(id=self.id, name=self.name, arguments_json=self.json)


class StreamDecoder:
    """Converts raw provider chunks into canonical stream events.

    ``decode`` returns at most one event per chunk and ``flush`` is called once
    when the chunk source ends. Subclasses set ``provider``.
    """

    provider = "unknown"

    def __init__(self) -> None:
        self.json_fragments: dict[int, ToolCallFragment] = {}
        self.response_metadata = ResponseMetadata()
        self.finish_reason: FinishReason | None = None
        self.log = get_logger("decoder", provider=self.provider)

    def decode(self, raw: Any) -> StreamEvent | None:
        raise NotImplementedError

    def flush(self) -> StreamEvent | None:
        return None

    def start_fragment(self, index: int, tool_id: str, name: str, initial_json: str = "") -> None:
        self.json_fragments[index] = ToolCallFragment(
            index=index, id=tool_id, name=name, json=initial_json
        )

    def append_fragment(self, index: int, partial_json: str) -> bool:
        """Append to the fragment at ``index``; False when no start was seen."""
        fragment = self.json_fragments.get(index)
        if fragment is None:
            self.log.debug("decoder.orphan_fragment", index=index)
            return False
        fragment.json += partial_json
        return True

    def finish_fragment(self, index: int) -> ToolCall | None:
        fragment = self.json_fragments.pop(index, None)
        return None if fragment is None else fragment.to_tool_call()

    def parse_json(self, raw: str) -> Any:
        self.log.debug("decoder.raw_chunk", raw=raw)
        try:
            return json.loads(raw)
        except json.JSONDecodeError as error:
            raise decode_error(f"Failed to deserialize stream event: {error}") from error

    def ignore(self, kind: Any) -> None:
        self.log.debug("decoder.ignored_chunk", chunk_type=kind)
        return None


def decode_error(message: str) -> ProviderError:
    return internal_error(message)


def require_int(payload: dict[str, Any], key: str) -> int:
    value = payload.get(key)
    if isinstance(value, bool) or not isinstance(value, int):
        raise decode_error(f"Unexpected stream event format, does not have '{key}' field")
    return value


def require_object(payload: Any, key: str) -> dict[str, Any]:
    value = payload.get(key) if isinstance(payload, dict) else None
    if not isinstance(value, dict):
        raise decode_error(f"Unexpected stream event format, does not have '{key}' field")
    return value
