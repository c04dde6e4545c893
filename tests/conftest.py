from __future__ import annotations

import socket
import sys
import threading
from dataclasses import dataclass, field
from email.message import Message
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT / "installers" / "bootstrap"))
sys.path.insert(0, str(ROOT / "packages" / "core"))


@dataclass
class RecordedRequest:
    method: str
    path: str
    headers: Message
    body: bytes


@dataclass
class LocalServer:
    base_url: str
    routes: dict[str, tuple[int, dict[str, str], bytes]] = field(default_factory=dict)
    requests: list[RecordedRequest] = field(default_factory=list)

    def url(self, path: str) -> str:
        return self.base_url + path

    def route(self, path: str, status: int = 200, body: bytes = b"", headers: dict[str, str] | None = None) -> None:
        self.routes[path] = (status, dict(headers or {}), body)

    def redirect(self, path: str, location: str, status: int = 302) -> None:
        self.route(path, status=status, headers={"Location": location})


def _make_handler(state: LocalServer):
    class Handler(BaseHTTPRequestHandler):
        def do_GET(self) -> None:
            self._record(b"")
            self._respond()

        def do_POST(self) -> None:
            length = int(self.headers.get("Content-Length", "0") or 0)
            self._record(self.rfile.read(length))
            self._respond()

        def _record(self, body: bytes) -> None:
            state.requests.append(
                RecordedRequest(method=self.command, path=self.path, headers=self.headers, body=body)
            )

        def _respond(self) -> None:
            status, headers, body = state.routes.get(self.path, (404, {}, b"not found"))
            self.send_response(status)
            for key, value in headers.items():
                self.send_header(key, value)
            if "Content-Length" not in headers:
                self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)

        def log_message(self, format, *args) -> None:
            pass

    return Handler


@pytest.fixture
def http_server(monkeypatch):
    # Keep urllib from routing loopback traffic through an ambient proxy.
    monkeypatch.setenv("no_proxy", "*")
    monkeypatch.setenv("NO_PROXY", "*")

    state = LocalServer(base_url="")
    server = ThreadingHTTPServer(("127.0.0.1", 0), _make_handler(state))
    state.base_url = f"http://127.0.0.1:{server.server_address[1]}"
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield state
    finally:
        server.shutdown()
        server.server_close()
        thread.join(timeout=5)


@pytest.fixture
def closed_port_url(monkeypatch) -> str:
    monkeypatch.setenv("no_proxy", "*")
    monkeypatch.setenv("NO_PROXY", "*")
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]
    return f"http://127.0.0.1:{port}"


@pytest.fixture
def isolated_env(monkeypatch, tmp_path):
    for key in (
        "DAZZER_ARTIFACT_BASE_URL",
        "DAZZER_API_BASE_URL",
        "DAZZER_INSTALL_ROOT",
        "DAZZER_NO_ANALYTICS",
        "DAZZER_CA_BUNDLE",
        "DAZZER_ALLOW_INSECURE_TLS",
    ):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("DAZZER_CONFIG", str(tmp_path / "config.json"))
    return tmp_path
