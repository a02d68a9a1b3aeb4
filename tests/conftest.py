import asyncio
import socket
import threading

import pytest

from webroot_server.config import ServerConfig
from webroot_server.server import FileServer
from webroot_server.webroot import initialize_webroot


def recv_all(sock: socket.socket, timeout: float = 5.0) -> bytes:
    sock.settimeout(timeout)
    chunks = []
    while True:
        try:
            data = sock.recv(4096)
        except (TimeoutError, socket.timeout):
            break
        if not data:
            break
        chunks.append(data)
    return b"".join(chunks)


def parse_response(raw: bytes):
    """Split a raw response into (status, headers, body); header names are lower-cased."""
    try:
        header_raw, body = raw.split(b"\r\n\r\n", 1)
    except ValueError:
        return (0, {}, raw)
    lines = header_raw.decode("iso-8859-1", errors="replace").split("\r\n")
    parts = lines[0].split() if lines else []
    status = int(parts[1]) if len(parts) >= 2 and parts[1].isdigit() else 0
    headers = {}
    for line in lines[1:]:
        if ":" in line:
            k, v = line.split(":", 1)
            headers[k.strip().lower()] = v.strip()
    return (status, headers, body)


def send_raw(port: int, payload: bytes, timeout: float = 5.0) -> bytes:
    with socket.create_connection(("127.0.0.1", port), timeout=timeout) as sock:
        sock.sendall(payload)
        return recv_all(sock, timeout)


def get_raw(port: int, path: str, method: str = "GET"):
    request = f"{method} {path} HTTP/1.1\r\nHost: localhost\r\nConnection: close\r\n\r\n".encode("utf-8")
    return parse_response(send_raw(port, request))


class ServerThread:
    """Runs a FileServer on its own event loop in a background thread."""

    def __init__(self, config: ServerConfig):
        self.config = config
        self.server = FileServer(config)
        self.loop = asyncio.new_event_loop()
        self.thread = threading.Thread(target=self.loop.run_forever, daemon=True)

    @property
    def port(self) -> int:
        return self.server.port

    @property
    def base_url(self) -> str:
        return f"http://127.0.0.1:{self.port}"

    def start(self) -> "ServerThread":
        self.thread.start()
        asyncio.run_coroutine_threadsafe(self.server.start(), self.loop).result(timeout=5)
        return self

    def stop(self):
        asyncio.run_coroutine_threadsafe(self.server.stop(), self.loop).result(timeout=5)
        self.loop.call_soon_threadsafe(self.loop.stop)
        self.thread.join(timeout=5)
        self.loop.close()


@pytest.fixture
def webroot(tmp_path):
    return initialize_webroot(tmp_path / "webroot")


@pytest.fixture
def make_server(webroot):
    started = []

    def _make(**overrides):
        options = dict(port=0, webroot=webroot, log_file=None, request_timeout=2.0)
        options.update(overrides)
        server = ServerThread(ServerConfig(**options)).start()
        started.append(server)
        return server

    yield _make
    for server in started:
        server.stop()


@pytest.fixture
def server(make_server):
    return make_server()


class FakeWriter:
    """Stands in for asyncio.StreamWriter and records what was written."""

    def __init__(self, closing=False, fail_on_drain=False):
        self.data = bytearray()
        self.writes = []
        self.closing = closing
        self.fail_on_drain = fail_on_drain
        self.closed = False

    def write(self, data):
        self.writes.append(bytes(data))
        self.data.extend(data)

    async def drain(self):
        if self.fail_on_drain:
            raise ConnectionResetError("peer reset")

    def is_closing(self):
        return self.closing or self.closed

    def close(self):
        self.closed = True

    async def wait_closed(self):
        pass

    def get_extra_info(self, name, default=None):
        return ("127.0.0.1", 50000) if name == "peername" else default
