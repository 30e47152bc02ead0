"""Test configuration for pytest."""

from __future__ import annotations

import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Callable, Dict, List, Optional

import pytest

from tests.helpers import parse_multipart


class RecordedRequest:
    """What the local server saw for one POST."""

    def __init__(self, method: str, path: str, headers: Dict[str, str], body: bytes):
        self.method = method
        self.path = path
        self.headers = headers
        self.body = body

    @property
    def content_type(self) -> str:
        return self.headers.get("Content-Type", "")

    def multipart(self):
        return parse_multipart(self.content_type, self.body)


class LocalGraphQLServer:
    """Threaded HTTP server answering through a per-test reply function."""

    def __init__(self):
        self.requests: List[RecordedRequest] = []
        self.reply: Callable[[RecordedRequest], tuple] = lambda _req: (200, b'{"data": null}', {})
        self.release = threading.Event()
        # seconds between body bytes; None writes the body at once
        self.trickle_delay: Optional[float] = None
        server = self

        class _Handler(BaseHTTPRequestHandler):
            def do_POST(self):  # noqa: N802
                length = int(self.headers.get("Content-Length") or 0)
                recorded = RecordedRequest(
                    "POST",
                    self.path,
                    {key: value for key, value in self.headers.items()},
                    self.rfile.read(length),
                )
                server.requests.append(recorded)
                status, body, headers = server.reply(recorded)
                if isinstance(body, str):
                    body = body.encode("utf-8")
                try:
                    self.send_response(status)
                    for key, value in (headers or {}).items():
                        self.send_header(key, value)
                    self.send_header("Content-Length", str(len(body)))
                    self.end_headers()
                    if server.trickle_delay is None:
                        self.wfile.write(body)
                        return
                    for index in range(len(body)):
                        self.wfile.write(body[index : index + 1])
                        self.wfile.flush()
                        if server.release.wait(server.trickle_delay):
                            break
                except (BrokenPipeError, ConnectionResetError):
                    pass

            def log_message(self, format, *args):  # noqa: A002
                pass

        self._httpd = ThreadingHTTPServer(("127.0.0.1", 0), _Handler)
        self._httpd.daemon_threads = True
        self._thread = threading.Thread(target=self._httpd.serve_forever, daemon=True)

    @property
    def url(self) -> str:
        host, port = self._httpd.server_address[:2]
        return f"http://{host}:{port}/graphql"

    def start(self) -> "LocalGraphQLServer":
        self._thread.start()
        return self

    def stop(self) -> None:
        self.release.set()
        self._httpd.shutdown()
        self._httpd.server_close()

    @property
    def last(self) -> Optional[RecordedRequest]:
        return self.requests[-1] if self.requests else None


@pytest.fixture(autouse=True)
def no_proxy_env(monkeypatch: pytest.MonkeyPatch):
    """Keep proxy settings from the environment away from local requests."""
    for name in ("HTTP_PROXY", "HTTPS_PROXY", "ALL_PROXY", "http_proxy", "https_proxy", "all_proxy"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("NO_PROXY", "127.0.0.1,localhost")
    monkeypatch.setenv("no_proxy", "127.0.0.1,localhost")


@pytest.fixture
def graphql_server():
    """Local HTTP server; set ``graphql_server.reply`` to control responses."""
    server = LocalGraphQLServer().start()
    try:
        yield server
    finally:
        server.stop()
