from __future__ import annotations

import socketserver
import threading
from typing import Dict, List

import pytest

CLOSE = object()


class _Handler(socketserver.StreamRequestHandler):
    def handle(self):
        upsd: FakeUpsd = self.server.upsd  # type: ignore[attr-defined]
        for raw in self.rfile:
            line = raw.decode("utf-8").rstrip("\r\n")
            upsd.commands.append(line)
            reply = upsd.responses.get(line)
            if reply is None:
                reply = upsd.default_reply(line)
            if reply is CLOSE:
                return
            self.wfile.write("".join(f"{r}\n" for r in reply).encode("utf-8"))
            self.wfile.flush()


class FakeUpsd:
    """Minimal upsd: answers each command line with scripted reply lines."""

    CLOSE = CLOSE

    def __init__(self) -> None:
        self.responses: Dict[str, object] = {}
        self.commands: List[str] = []
        self.connections = 0

        upsd = self

        class _Server(socketserver.ThreadingTCPServer):
            allow_reuse_address = True
            daemon_threads = True

            def verify_request(self, request, client_address):
                upsd.connections += 1
                return True

        self._server = _Server(("127.0.0.1", 0), _Handler)
        self._server.upsd = self  # type: ignore[attr-defined]
        self.host, self.port = self._server.server_address[:2]
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)

    def default_reply(self, line: str):
        if line.startswith(("USERNAME ", "PASSWORD ")):
            return ["OK"]
        return ["ERR UNKNOWN-COMMAND"]

    def set_var(self, device: str, name: str, value: str) -> None:
        self.responses[f"GET VAR {device} {name}"] = [f'VAR {device} {name} "{value}"']

    def set_status(self, device: str = "ups", charge="100", runtime="1200", status="OL", power="250"):
        self.set_var(device, "battery.charge", charge)
        self.set_var(device, "battery.runtime", runtime)
        self.set_var(device, "ups.status", status)
        if power is None:
            self.responses[f"GET VAR {device} output.power"] = ["ERR VAR-NOT-SUPPORTED"]
        else:
            self.set_var(device, "output.power", power)

    def start(self) -> None:
        self._thread.start()

    def stop(self) -> None:
        self._server.shutdown()
        self._server.server_close()


@pytest.fixture
def upsd():
    server = FakeUpsd()
    server.start()
    yield server
    server.stop()
