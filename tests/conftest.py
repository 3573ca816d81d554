from __future__ import annotations

import json
import socket
import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Iterator, List

import pytest


class _Handler(BaseHTTPRequestHandler):
    server: "StubServer"

    def do_GET(self) -> None:  # noqa: N802
        self.server.hits.append(self.path)
        if self.server.delay_s:
            time.sleep(self.server.delay_s)

        payload = self.server.payload
        if isinstance(payload, (dict, list)):
            raw = json.dumps(payload).encode("utf-8")
            ctype = "application/json; charset=utf-8"
        else:
            raw = str(payload).encode("utf-8")
            ctype = f"text/plain; charset={self.server.charset}"

        try:
            self.send_response(self.server.status)
            self.send_header("Content-Type", ctype)
            self.send_header("Content-Length", str(len(raw)))
            self.end_headers()
            if self.server.drip_s:
                for i in range(len(raw)):
                    self.wfile.write(raw[i:i + 1])
                    self.wfile.flush()
                    time.sleep(self.server.drip_s)
            else:
                self.wfile.write(raw)
        except (BrokenPipeError, ConnectionResetError):
            pass

    def log_message(self, format: str, *args: Any) -> None:
        pass


class StubServer(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(self) -> None:
        super().__init__(("127.0.0.1", 0), _Handler)
        self.hits: List[str] = []
        self.status = 200
        self.payload: Any = {"ok": True}
        self.delay_s = 0.0
        self.drip_s = 0.0  # per-byte pause while sending the body
        self.charset = "utf-8"

    @property
    def url(self) -> str:
        host, port = self.server_address[:2]
        return f"http://{host}:{port}/api/cron/resume-stalled"


@pytest.fixture
def stub_server() -> Iterator[StubServer]:
    server = StubServer()
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield server
    finally:
        server.shutdown()
        server.server_close()


@pytest.fixture
def dead_url() -> str:
    # Grab a free port and release it so nothing is listening there
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]
    return f"http://127.0.0.1:{port}/unreachable"
