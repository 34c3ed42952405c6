import socket
import threading
from http.server import BaseHTTPRequestHandler, HTTPServer
from pathlib import Path
from typing import Iterator

import pytest
import requests

import durakit
from durakit import Config, Message
from durapack.oplog import offline_network_guard
from durapack.providers import HttpClient
from durapack.providers.fake import FakeChat


class _OkHandler(BaseHTTPRequestHandler):
    def do_GET(self) -> None:
        body = b'{"ok": true}'
        self.send_response(200)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format: str, *args: object) -> None:
        pass


@pytest.fixture
def local_url() -> Iterator[str]:
    server = HTTPServer(("127.0.0.1", 0), _OkHandler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield f"http://127.0.0.1:{server.server_address[1]}/"
    finally:
        server.shutdown()
        server.server_close()
        thread.join()


def test_public_api_exports_are_importable() -> None:
    for name in durakit.__all__:
        assert hasattr(durakit, name), name


def test_record_then_replay_round_trip(tmp_path: Path) -> None:
    path = tmp_path / "runs" / "story.oplog.json"
    llm = durakit.DurableLLM(FakeChat())

    with durakit.record(path, metadata={"suite": "public-api"}) as oplog:
        response = llm.send([Message.text("user", "story")], Config(model="fake-1"))

    assert len(oplog) == 1
    assert path.exists()

    provider = FakeChat(chunks=("never",))
    with durakit.replay(path) as replaying:
        replayed = durakit.DurableLLM(provider).send([Message.text("user", "story")], Config(model="fake-1"))

    assert replayed == response
    assert replaying.is_live()
    assert provider.requests == []


def test_record_writes_oplog_even_when_block_raises(tmp_path: Path) -> None:
    path = tmp_path / "failed.json"
    failing = FakeChat(models=("only-this",))

    with pytest.raises(durakit.ProviderError):
        with durakit.record(path):
            durakit.DurableLLM(failing).send([Message.text("user", "hi")], Config(model="other"))

    oplog = durakit.read_oplog(path)
    assert "err" in oplog.entries[0].result
    with durakit.replay(path), pytest.raises(durakit.ProviderError) as raised:
        durakit.DurableLLM(FakeChat()).send([Message.text("user", "hi")], Config(model="other"))
    assert raised.value.code == "model_not_found"


def test_offline_replay_blocks_network(tmp_path: Path) -> None:
    path = tmp_path / "empty.json"
    with durakit.record(path):
        pass

    with durakit.replay(path):
        with pytest.raises(RuntimeError, match="offline replay"):
            socket.create_connection(("127.0.0.1", 9))

    assert socket.create_connection is not None


def test_replay_can_stay_online(tmp_path: Path) -> None:
    path = tmp_path / "empty.json"
    with durakit.record(path):
        pass
    original = socket.create_connection

    with durakit.replay(path, offline=False):
        assert socket.create_connection is original


def test_offline_guard_refuses_requests_connections(local_url: str) -> None:
    assert requests.get(local_url, timeout=5).status_code == 200

    with offline_network_guard():
        with pytest.raises(RuntimeError, match="offline replay"):
            requests.get(local_url, timeout=5)
        with pytest.raises(RuntimeError, match="offline replay"):
            HttpClient(timeout_seconds=5).get_json(local_url, headers={}, details="local request failed")

    assert requests.get(local_url, timeout=5).json() == {"ok": True}


def test_replay_scope_blocks_http_past_the_recording(tmp_path: Path, local_url: str) -> None:
    path = tmp_path / "empty.json"
    with durakit.record(path):
        pass

    with durakit.replay(path):
        with pytest.raises(RuntimeError, match="offline replay"):
            requests.get(local_url, timeout=5)

    with durakit.replay(path, offline=False):
        assert requests.get(local_url, timeout=5).status_code == 200
