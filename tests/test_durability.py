import pytest

from durapack.durability import Durability, ModelCodec, durable_call
from durapack.errors import ProviderError
from durapack.llm import Response, Text
from durapack.oplog import (
    InMemoryOplog,
    OplogError,
    ReplayMismatchError,
    oplog_scope,
    persistence_level,
    with_persistence_level,
)


class _Counter:
    def __init__(self) -> None:
        self.calls = 0

    def __call__(self) -> dict[str, int]:
        self.calls += 1
        return {"value": self.calls}


def test_live_call_records_exactly_one_entry() -> None:
    oplog = InMemoryOplog()
    operation = _Counter()

    with oplog_scope(oplog):
        result = durable_call("test.ns", "fetch", "read_remote", {"q": 1}, operation)

    assert result == {"value": 1}
    assert operation.calls == 1
    assert len(oplog) == 1
    entry = oplog.entries[0]
    assert (entry.namespace, entry.function_name, entry.function_kind) == ("test.ns", "fetch", "read_remote")
    assert entry.input == {"q": 1}
    assert entry.result == {"ok": {"value": 1}}
    assert entry.hash is not None


def test_replay_returns_recorded_value_without_running_operation() -> None:
    oplog = InMemoryOplog()
    with oplog_scope(oplog):
        recorded = durable_call("test.ns", "fetch", "read_remote", {}, _Counter())

    replay_operation = _Counter()
    replayed_log = oplog.rehydrate()
    with oplog_scope(replayed_log):
        replayed = durable_call("test.ns", "fetch", "read_remote", {}, replay_operation)

    assert replayed == recorded
    assert replay_operation.calls == 0
    assert replayed_log.is_live()
    assert len(replayed_log) == 1


def test_model_codec_round_trips_through_oplog() -> None:
    oplog = InMemoryOplog()
    response = Response(id="r1", content=[Text("Hi")])
    with oplog_scope(oplog):
        durable_call("test.ns", "send", "write_remote", {}, lambda: response, codec=ModelCodec(Response))

    with oplog_scope(oplog.rehydrate()):
        replayed = durable_call(
            "test.ns",
            "send",
            "write_remote",
            {},
            lambda: pytest.fail("operation must not run on replay"),
            codec=ModelCodec(Response),
        )

    assert replayed == response


def test_provider_error_is_persisted_and_reraised_on_replay() -> None:
    error = ProviderError("rate_limit_exceeded", "slow down", '{"retry_after": 3}')

    def failing() -> None:
        raise error

    oplog = InMemoryOplog()
    with oplog_scope(oplog), pytest.raises(ProviderError) as recorded:
        durable_call("test.ns", "fetch", "read_remote", {}, failing)

    assert recorded.value == error
    assert oplog.entries[0].result == {"err": error.to_dict()}

    with oplog_scope(oplog.rehydrate()), pytest.raises(ProviderError) as replayed:
        durable_call("test.ns", "fetch", "read_remote", {}, _Counter())

    assert replayed.value == error


def test_nested_durable_calls_inside_operation_are_not_recorded() -> None:
    oplog = InMemoryOplog()

    def outer() -> str:
        durable_call("test.ns", "inner", "read_remote", {}, lambda: "inner")
        return "outer"

    with oplog_scope(oplog):
        durable_call("test.ns", "outer", "write_remote", {}, outer)

    assert [entry.function_name for entry in oplog.entries] == ["outer"]


def test_persist_nothing_scope_leaves_no_entries() -> None:
    oplog = InMemoryOplog()
    with oplog_scope(oplog), persistence_level("persist_nothing"):
        durable_call("test.ns", "fetch", "read_remote", {}, _Counter())

    assert len(oplog) == 0


def test_without_oplog_calls_pass_through() -> None:
    operation = _Counter()

    assert durable_call("test.ns", "fetch", "read_remote", {}, operation) == {"value": 1}
    assert durable_call("test.ns", "fetch", "read_remote", {}, operation) == {"value": 2}
    assert Durability("test.ns", "fetch", "read_remote").is_live()


def test_preflight_failure_leaves_no_entry() -> None:
    def preflight() -> None:
        raise ProviderError("unsupported", "Unsupported: rerank")

    oplog = InMemoryOplog()
    operation = _Counter()
    with oplog_scope(oplog), pytest.raises(ProviderError, match="unsupported"):
        durable_call("test.ns", "rerank", "write_remote", {}, operation, preflight=preflight)

    assert operation.calls == 0
    assert len(oplog) == 0


def test_live_preflight_is_skipped_on_replay() -> None:
    oplog = InMemoryOplog()
    with oplog_scope(oplog):
        durable_call("test.ns", "fetch", "read_remote", {}, _Counter())

    def missing_key() -> None:
        raise ProviderError("authentication_failed", "Missing config key: API_KEY")

    with oplog_scope(oplog.rehydrate()):
        replayed = durable_call("test.ns", "fetch", "read_remote", {}, _Counter(), live_preflight=missing_key)

    assert replayed == {"value": 1}


def test_replay_of_different_function_is_a_mismatch() -> None:
    oplog = InMemoryOplog()
    with oplog_scope(oplog):
        durable_call("test.ns", "fetch", "read_remote", {}, _Counter())

    with oplog_scope(oplog.rehydrate()), pytest.raises(ReplayMismatchError, match="test.ns::fetch"):
        durable_call("test.ns", "store", "write_remote", {}, _Counter())


def test_unknown_function_kind_is_rejected() -> None:
    with pytest.raises(ValueError, match="Unsupported function kind"):
        Durability("test.ns", "fetch", "remote")  # type: ignore[arg-type]


def test_replay_with_different_input_is_a_mismatch() -> None:
    oplog = InMemoryOplog()
    with oplog_scope(oplog):
        durable_call("test.ns", "fetch", "read_remote", {"q": 1}, _Counter())

    operation = _Counter()
    with oplog_scope(oplog.rehydrate()), pytest.raises(ReplayMismatchError, match="different input"):
        durable_call("test.ns", "fetch", "read_remote", {"q": 2}, operation)

    assert operation.calls == 0


def test_replay_input_comparison_ignores_key_order_and_tuples() -> None:
    oplog = InMemoryOplog()
    with oplog_scope(oplog):
        durable_call("test.ns", "fetch", "read_remote", {"a": 1, "b": [1, 2]}, _Counter())

    with oplog_scope(oplog.rehydrate()):
        replayed = durable_call("test.ns", "fetch", "read_remote", {"b": (1, 2), "a": 1}, _Counter())

    assert replayed == {"value": 1}


def test_replay_without_oplog_raises_oplog_error() -> None:
    with pytest.raises(OplogError, match="No active oplog for test.ns::fetch"):
        Durability("test.ns", "fetch", "read_remote").replay({})


def test_with_persistence_level_suppresses_nested_writes() -> None:
    oplog = InMemoryOplog()
    operation = _Counter()

    with oplog_scope(oplog):
        result = with_persistence_level(
            "persist_nothing",
            lambda: durable_call("test.ns", "fetch", "read_remote", {}, operation),
        )
        durable_call("test.ns", "after", "read_remote", {}, operation)

    assert result == {"value": 1}
    assert [entry.function_name for entry in oplog.entries] == ["after"]
