"""Durable chat facade: one-shot ``send`` and resumable ``stream``."""

from __future__ import annotations

from typing import Any, Callable

from durapack.config import require_config
from durapack.durability import ModelCodec, durable_call
from durapack.errors import ProviderError
from durapack.log import init_logging
from durapack.llm.provider import ChatProvider
from durapack.llm.retry import build_retry_prompt
from durapack.llm.stream import ChatStream
from durapack.llm.types import (
    Config,
    Event,
    Finish,
    Response,
    ResponseMetadata,
    StreamDelta,
    StreamEvent,
    events_to_dicts,
    stream_event_from_dict,
)
from durapack.oplog.exceptions import ReplayMismatchError
from durapack.streaming.chunks import Pollable, ReadyPollable
from durapack.streaming.session import DurableSession

NAMESPACE = "durakit.llm"
REPLAY_STATE_SCHEMA_VERSION = 1

RetryPromptBuilder = Callable[[list[Event], list[StreamDelta]], list[Event]]


def retry_prompt_for(provider: ChatProvider) -> RetryPromptBuilder:
    """Provider-specific retry prompt, falling back to the shared one."""
    return getattr(provider, "retry_prompt", build_retry_prompt)


def request_input(events: list[Event], config: Config) -> dict[str, Any]:
    return {"events": events_to_dicts(events), "config": config.to_dict()}


class ChatStreamDriver:
    """Live side of a durable chat stream.

    Its replay state only counts delivered deltas; the deltas themselves are
    recovered from the replayed steps when the stream has to be resumed.
    """

    def __init__(self, provider: ChatProvider, events: list[Event], config: Config) -> None:
        self.provider = provider
        self.events = list(events)
        self.config = config
        self.delivered_deltas = 0
        self.resumed = False
        self._stream: ChatStream | None = None

    def _open_stream(self, events: list[Event]) -> ChatStream:
        try:
            return self.provider.stream(events, self.config)
        except ProviderError as error:
            return ChatStream.failed(error)

    def open(self) -> None:
        self._stream = self._open_stream(self.events)

    def pull(self) -> list[StreamEvent] | None:
        if self._stream is None:
            raise RuntimeError("chat stream pulled before it was opened")
        events = self._stream.poll_next()
        if events:
            self.delivered_deltas += sum(isinstance(event, StreamDelta) for event in events)
        return events

    def snapshot(self) -> dict[str, Any]:
        return {
            "schema_version": REPLAY_STATE_SCHEMA_VERSION,
            "provider": self.provider.name,
            "model": self.config.model,
            "delivered_deltas": self.delivered_deltas,
            "resumed": self.resumed,
        }

    def restore(self, state: dict[str, Any], history: list[list[StreamEvent] | None]) -> None:
        if state.get("schema_version") != REPLAY_STATE_SCHEMA_VERSION:
            raise ReplayMismatchError(
                f"Unsupported chat stream replay state version: {state.get('schema_version')!r}"
            )
        partial = [
            event
            for value in history
            for event in (value or [])
            if isinstance(event, StreamDelta)
        ]
        self.delivered_deltas = len(partial)
        if partial:
            self.resumed = True
            self._stream = self._open_stream(retry_prompt_for(self.provider)(self.events, partial))
        else:
            self._stream = self._open_stream(self.events)

    def is_final(self, value: list[StreamEvent] | None) -> bool:
        if value is None:
            return False
        return not value or any(isinstance(event, Finish) for event in value)

    def terminal_value(self) -> list[StreamEvent]:
        return []

    def encode_value(self, value: list[StreamEvent] | None) -> Any:
        return None if value is None else [event.to_dict() for event in value]

    def decode_value(self, raw: Any) -> list[StreamEvent] | None:
        return None if raw is None else [stream_event_from_dict(item) for item in raw]

    def subscribe(self) -> Pollable:
        return ReadyPollable() if self._stream is None else self._stream.subscribe()

    def close(self) -> None:
        if self._stream is not None:
            self._stream.close()


class DurableChatStream:
    """Chat stream whose every poll is recorded and replayable."""

    def __init__(self, session: DurableSession[list[StreamEvent] | None]) -> None:
        self._session = session
        self._metadata: ResponseMetadata | None = None

    @property
    def session(self) -> DurableSession[list[StreamEvent] | None]:
        return self._session

    @property
    def finished(self) -> bool:
        return self._session.finished

    def poll_next(self) -> list[StreamEvent] | None:
        return self._observe(self._session.step())

    def get_next(self) -> list[StreamEvent]:
        events = self._session.next_blocking()
        self._observe(events)
        return events

    def subscribe(self) -> Pollable:
        return self._session.subscribe()

    def get_metadata(self) -> ResponseMetadata | None:
        return self._metadata

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> "DurableChatStream":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _observe(self, events: list[StreamEvent] | None) -> list[StreamEvent] | None:
        for event in events or []:
            if isinstance(event, Finish):
                self._metadata = event.metadata
        return events


class DurableLLM:
    """Chat capability facade over one provider."""

    def __init__(self, provider: ChatProvider) -> None:
        self.provider = provider

    def _check_config(self) -> None:
        require_config(self.provider.required_config)

    def send(self, events: list[Event], config: Config) -> Response:
        return durable_call(
            NAMESPACE,
            "send",
            "write_remote",
            request_input(events, config),
            lambda: self.provider.send(list(events), config),
            codec=ModelCodec(Response),
            live_preflight=self._check_config,
        )

    def stream(self, events: list[Event], config: Config) -> DurableChatStream:
        init_logging()
        driver = ChatStreamDriver(self.provider, events, config)
        session = DurableSession.start(
            driver,
            request_input(events, config),
            namespace=NAMESPACE,
            start_name="stream",
            step_name="poll_next",
            live_preflight=self._check_config,
        )
        return DurableChatStream(session)
