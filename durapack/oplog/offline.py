"""Network isolation for offline replay."""

from __future__ import annotations

from contextlib import contextmanager
import socket
from typing import Iterator


@contextmanager
def offline_network_guard() -> Iterator[None]:
    """Block outbound network connection attempts during replay.

    ``socket.socket.connect`` is patched as well as ``socket.create_connection``:
    urllib3, and therefore ``requests``, connects through its own helper.
    """
    original_create_connection = socket.create_connection
    original_connect = socket.socket.connect
    original_connect_ex = socket.socket.connect_ex

    def blocked(*_args, **_kwargs):
        raise RuntimeError("offline replay forbids outbound network calls")

    socket.create_connection = blocked
    socket.socket.connect = blocked  # type: ignore[method-assign]
    socket.socket.connect_ex = blocked  # type: ignore[method-assign]
    try:
        yield
    finally:
        socket.create_connection = original_create_connection
        socket.socket.connect = original_connect  # type: ignore[method-assign]
        socket.socket.connect_ex = original_connect_ex  # type: ignore[method-assign]
