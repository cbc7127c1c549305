"""
Loopback servers replaying crafted replies, for end to end tests of the handlers.
"""

import contextlib
import socket
import threading

import pytest


def recv_exact(conn: socket.socket, size: int) -> bytes:
    data = b""
    while len(data) < size:
        chunk = conn.recv(size - len(data))
        if not chunk:
            raise ConnectionAbortedError
        data += chunk
    return data


class ScriptedServer:
    """Serve exactly one TCP connection or UDP exchange with `handler`, in a thread."""

    recv_exact = staticmethod(recv_exact)

    def __init__(self, kind: int, handler) -> None:
        self.kind = kind
        self.handler = handler
        self.received: list[bytes] = []
        if kind == socket.SOCK_STREAM:
            self.sock = socket.create_server(("127.0.0.1", 0))
        else:
            self.sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
            self.sock.bind(("127.0.0.1", 0))
        self.sock.settimeout(5)
        self.port = self.sock.getsockname()[1]
        self.thread = threading.Thread(target=self._serve, daemon=True)

    def _serve(self) -> None:
        # The client resets its connections, the handler may see that as an error.
        with contextlib.suppress(OSError):
            if self.kind == socket.SOCK_STREAM:
                conn, _ = self.sock.accept()
                with conn:
                    conn.settimeout(5)
                    self.handler(self, conn)
            else:
                self.handler(self, self.sock)

    def start(self) -> "ScriptedServer":
        self.thread.start()
        return self

    def close(self) -> None:
        self.thread.join(timeout=5)
        self.sock.close()


@pytest.fixture
def tcp_server():
    servers = []

    def start(handler) -> ScriptedServer:
        server = ScriptedServer(socket.SOCK_STREAM, handler).start()
        servers.append(server)
        return server

    yield start
    for server in servers:
        server.close()


@pytest.fixture
def udp_server():
    servers = []

    def start(handler) -> ScriptedServer:
        server = ScriptedServer(socket.SOCK_DGRAM, handler).start()
        servers.append(server)
        return server

    yield start
    for server in servers:
        server.close()


@pytest.fixture
def closed_port() -> int:
    """A local port nothing listens on."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return port
