"""Durable streaming session engine.

A session records its start as a ``write_remote`` entry holding the initial
replay state and every step as a ``read_remote`` entry holding
``{"value": ..., "state": ...}``. On rehydration the steps are served from the
oplog; when the oplog runs out before the session finished, the driver
rebuilds a live source from the last replay state and the values replayed so
far (the Replay->Live transition, which happens at most once).
"""

from __future__ import annotations

from typing import Any, Callable, Generic, Protocol, TypeVar

from durapack.durability import Durability
from durapack.errors import ProviderError
from durapack.log import get_logger, init_logging
from durapack.oplog.scope import persistence_level
from durapack.streaming.chunks import LazyPollable, Pollable

V = TypeVar("V")

_log = get_logger("streaming.session")


class SessionDriver(Protocol[V]):
    """Live side of a durable session, supplied per capability."""

    def open(self) -> None:
        """Open the live source for the original request."""
        ...

    def pull(self) -> V:
        """Produce the next step value from the live source."""
        ...

    def snapshot(self) -> dict[str, Any]:
        """Serializable replay state after the last step."""
        ...

    def restore(self, state: dict[str, Any], history: list[V]) -> None:
        """Re-open a live source continuing after ``history``."""
        ...

    def is_final(self, value: V) -> bool:
        ...

    def terminal_value(self) -> V:
        """Value returned by every step once the session finished."""
        ...

    def encode_value(self, value: V) -> Any:
        ...

    def decode_value(self, raw: Any) -> V:
        ...

    def subscribe(self) -> Pollable:
        ...

    def close(self) -> None:
        ...


class DurableSession(Generic[V]):
    """Record/replay wrapper around a live session driver."""

    def __init__(
        self,
        driver: SessionDriver[V],
        *,
        namespace: str,
        step_name: str,
        live: bool,
        replay_state: dict[str, Any],
    ) -> None:
        self.driver = driver
        self.namespace = namespace
        self.step_name = step_name
        self.replay_state = replay_state
        self.history: list[V] = []
        self._live = live
        self._finished = False
        self._closed = False
        self._pollables: list[LazyPollable] = []
        self._subscription: Pollable | None = None

    @classmethod
    def start(
        cls,
        driver: SessionDriver[V],
        params: Any,
        *,
        namespace: str,
        start_name: str,
        step_name: str,
        live_preflight: Callable[[], None] | None = None,
    ) -> "DurableSession[V]":
        """Open ``driver`` live and record its state, or restore the recorded state."""
        init_logging()
        durability = Durability(namespace, start_name, "write_remote")
        if not durability.is_live():
            state = durability.replay(params)
            return cls(driver, namespace=namespace, step_name=step_name, live=False, replay_state=state)

        if live_preflight is not None:
            live_preflight()
        with persistence_level("persist_nothing"):
            try:
                driver.open()
            except ProviderError as error:
                failure = error
            else:
                failure = None
        if failure is not None:
            durability.persist_error(params, failure)
            raise failure

        state = durability.persist(params, driver.snapshot())
        return cls(driver, namespace=namespace, step_name=step_name, live=True, replay_state=state)

    @property
    def is_live(self) -> bool:
        return self._live

    @property
    def finished(self) -> bool:
        return self._finished

    def step(self) -> V:
        """Run one recorded step of the session."""
        if self._finished:
            return self.driver.terminal_value()

        durability = Durability(self.namespace, self.step_name, "read_remote")
        if durability.is_live():
            return self._live_step(durability)
        return self._replay_step(durability)

    def _live_step(self, durability: Durability) -> V:
        if not self._live:
            self._go_live()

        with persistence_level("persist_nothing"):
            try:
                value = self.driver.pull()
            except ProviderError as error:
                failure = error
            else:
                failure = None
        if failure is not None:
            self._finished = True
            durability.persist_error({}, failure)
            self._release()
            raise failure

        self.replay_state = self.driver.snapshot()
        durability.persist(
            {},
            {"value": self.driver.encode_value(value), "state": self.replay_state},
        )
        if self.driver.is_final(value):
            self._finished = True
            self._release()
        return value

    def _replay_step(self, durability: Durability) -> V:
        try:
            recorded = durability.replay({})
        except ProviderError:
            self._finished = True
            raise
        value = self.driver.decode_value(recorded["value"])
        self.replay_state = recorded["state"]
        self.history.append(value)
        if self.driver.is_final(value):
            self._finished = True
        return value

    def _go_live(self) -> None:
        _log.info(
            "session.replay_to_live",
            namespace=self.namespace,
            replayed_steps=len(self.history),
        )
        with persistence_level("persist_nothing"):
            self.driver.restore(self.replay_state, list(self.history))
            for pollable in self._pollables:
                pollable.attach(self.driver.subscribe())
        self._live = True

    def subscribe(self) -> Pollable:
        if self._live and not self._finished:
            return self.driver.subscribe()
        pollable = LazyPollable()
        self._pollables.append(pollable)
        return pollable

    def next_blocking(self) -> V:
        """Block on the subscription until a step yields a non-pending value."""
        if self._subscription is None:
            self._subscription = self.subscribe()
        while True:
            self._subscription.block()
            value = self.step()
            if value is not None:
                return value

    def _release(self) -> None:
        if self._live and not self._closed:
            self._closed = True
            with persistence_level("persist_nothing"):
                self.driver.close()

    def close(self) -> None:
        """Drop the session; a live source is closed without recording anything."""
        self._pollables.clear()
        self._subscription = None
        self._release()

    def __enter__(self) -> "DurableSession[V]":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
