from dataclasses import dataclass
from importlib.metadata import PackageNotFoundError, version as package_version
import json
from pathlib import Path
from typing import Any

import typer

from durapack.errors import ProviderError
from durapack.llm import Config, DurableLLM, Event, Message, StreamEvent, event_from_dict, stream_text
from durapack.oplog import (
    InMemoryOplog,
    OplogError,
    offline_network_guard,
    oplog_scope,
    read_oplog,
    read_oplog_envelope,
    write_oplog,
)
from durapack.providers import ProviderRegistryError, create_chat, list_providers

app = typer.Typer(help="Durakit CLI")


@dataclass(slots=True)
class _OutputOptions:
    quiet: bool = False
    stable_json: bool = True


_OUTPUT_OPTIONS = _OutputOptions()


def _resolve_cli_version() -> str:
    try:
        return package_version("durakit")
    except PackageNotFoundError:
        from durapack import __version__ as local_version

        return local_version


def _version_callback(value: bool) -> None:
    if not value:
        return
    typer.echo(_resolve_cli_version(), color=False)
    raise typer.Exit()


@app.callback()
def app_options(
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show durakit version and exit.",
    ),
    quiet: bool = typer.Option(
        False,
        "--quiet",
        help="Suppress non-error text output.",
    ),
    stable_json: bool = typer.Option(
        True,
        "--stable-json/--pretty-json",
        help="Emit stable compact JSON (or pretty JSON).",
    ),
) -> None:
    """Global output controls for all CLI commands."""
    _OUTPUT_OPTIONS.quiet = quiet
    _OUTPUT_OPTIONS.stable_json = stable_json


def _echo(message: str, *, err: bool = False) -> None:
    if _OUTPUT_OPTIONS.quiet and not err:
        return
    typer.echo(message, err=err)


def _echo_json(payload: dict[str, Any]) -> None:
    if _OUTPUT_OPTIONS.stable_json:
        rendered = json.dumps(payload, ensure_ascii=True, sort_keys=True, separators=(",", ":"))
    else:
        rendered = json.dumps(payload, ensure_ascii=True, sort_keys=True, indent=2)
    typer.echo(rendered)


def _fail(message: str, *, json_output: bool, **fields: Any) -> None:
    if json_output:
        _echo_json({"status": "error", "exit_code": 1, "message": message, **fields})
    else:
        _echo(message, err=True)


def _run_chat(llm: DurableLLM, events: list[Event], config: Config, *, stream: bool) -> dict[str, Any]:
    if not stream:
        response = llm.send(events, config)
        return {"text": response.text(), "finish_reason": response.metadata.finish_reason}

    received: list[StreamEvent] = []
    with llm.stream(events, config) as chat_stream:
        while not chat_stream.finished:
            received.extend(chat_stream.get_next())
        metadata = chat_stream.get_metadata()
    return {
        "text": stream_text(received),
        "finish_reason": None if metadata is None else metadata.finish_reason,
    }


@app.command()
def providers(
    capability: str | None = typer.Option(
        None,
        "--capability",
        help="Only list providers of this capability (chat, embed, stt, websearch, video, vector).",
    ),
    json_output: bool = typer.Option(False, "--json", help="Emit machine-readable output."),
) -> None:
    """List registered providers."""
    keys = list_providers(capability)
    if json_output:
        _echo_json(
            {
                "status": "ok",
                "exit_code": 0,
                "providers": [{"capability": cap, "name": name} for cap, name in keys],
            }
        )
        return
    for cap, name in keys:
        _echo(f"{cap}\t{name}")


@app.command()
def chat(
    provider: str = typer.Option("fake", "--provider", help="Chat provider name."),
    model: str = typer.Option(..., "--model", help="Model identifier."),
    prompt: str = typer.Option(..., "--prompt", help="User prompt."),
    system: str | None = typer.Option(None, "--system", help="Optional system message."),
    stream: bool = typer.Option(False, "--stream", help="Use the streaming API."),
    oplog_path: Path = typer.Option(..., "--oplog", help="Where to write the recorded oplog."),
    json_output: bool = typer.Option(False, "--json", help="Emit machine-readable output."),
) -> None:
    """Run one durable chat call live and record its oplog."""
    events: list[Event] = []
    if system:
        events.append(Message.text("system", system))
    events.append(Message.text("user", prompt))
    config = Config(model=model)

    try:
        llm = create_chat(provider)
    except ProviderRegistryError as error:
        _fail(f"chat failed: {error}", json_output=json_output, oplog_path=None)
        raise typer.Exit(code=1) from error

    oplog = InMemoryOplog()
    failure: ProviderError | None = None
    result: dict[str, Any] = {}
    with oplog_scope(oplog):
        try:
            result = _run_chat(llm, events, config, stream=stream)
        except ProviderError as error:
            failure = error

    write_oplog(
        oplog,
        oplog_path,
        metadata={"provider": provider, "model": model, "stream": stream},
    )

    if failure is not None:
        _fail(
            f"chat failed: {failure}",
            json_output=json_output,
            error=failure.to_dict(),
            oplog_path=str(oplog_path),
        )
        raise typer.Exit(code=1)

    if json_output:
        _echo_json(
            {
                "status": "ok",
                "exit_code": 0,
                "message": "chat recorded",
                "oplog_path": str(oplog_path),
                "entries": len(oplog),
                **result,
            }
        )
        return
    _echo(result["text"])
    _echo(f"recorded {len(oplog)} oplog entries to {oplog_path}")


@app.command()
def replay(
    path: Path = typer.Argument(..., help="Oplog file written by `durakit chat`."),
    json_output: bool = typer.Option(False, "--json", help="Emit machine-readable output."),
) -> None:
    """Replay a recorded chat oplog with outbound network blocked."""
    try:
        envelope = read_oplog_envelope(path)
        oplog = read_oplog(path)
    except (OplogError, FileNotFoundError) as error:
        _fail(f"replay failed: {error}", json_output=json_output, oplog_path=str(path))
        raise typer.Exit(code=1) from error

    metadata = envelope["metadata"]
    entries = envelope["payload"]["entries"]
    if not entries:
        _fail("replay failed: oplog has no entries", json_output=json_output, oplog_path=str(path))
        raise typer.Exit(code=1)
    request = entries[0]["input"]
    events = [event_from_dict(raw) for raw in request["events"]]
    config = Config.from_dict(request["config"])

    try:
        llm = create_chat(str(metadata.get("provider", "fake")))
        with offline_network_guard(), oplog_scope(oplog):
            result = _run_chat(llm, events, config, stream=bool(metadata.get("stream")))
    except (ProviderError, OplogError, ProviderRegistryError) as error:
        _fail(f"replay failed: {error}", json_output=json_output, oplog_path=str(path))
        raise typer.Exit(code=1) from error

    if json_output:
        _echo_json(
            {
                "status": "ok",
                "exit_code": 0,
                "message": "replay completed",
                "oplog_path": str(path),
                "fully_replayed": oplog.is_live(),
                **result,
            }
        )
        return
    _echo(result["text"])


@app.command()
def inspect(
    path: Path = typer.Argument(..., help="Oplog file to inspect."),
    json_output: bool = typer.Option(False, "--json", help="Emit machine-readable output."),
) -> None:
    """List the entries of an oplog file."""
    try:
        envelope = read_oplog_envelope(path)
    except (OplogError, FileNotFoundError) as error:
        _fail(f"inspect failed: {error}", json_output=json_output, oplog_path=str(path))
        raise typer.Exit(code=1) from error

    rows = [
        {
            "index": entry["index"],
            "namespace": entry["namespace"],
            "function_name": entry["function_name"],
            "function_kind": entry["function_kind"],
            "outcome": "err" if "err" in entry["result"] else "ok",
        }
        for entry in envelope["payload"]["entries"]
    ]
    if json_output:
        _echo_json(
            {
                "status": "ok",
                "exit_code": 0,
                "version": envelope["version"],
                "metadata": envelope["metadata"],
                "entries": rows,
            }
        )
        return
    for row in rows:
        _echo(
            f"{row['index']:>4} {row['function_kind']:<12} "
            f"{row['namespace']}.{row['function_name']} {row['outcome']}"
        )
