from __future__ import annotations

import hmac
import logging
import threading
import time
from typing import Optional

import uvicorn
from fastapi import FastAPI, Header
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from . import __version__, openmetrics
from .errors import MetricsServerError
from .models import JsonMetricsResponse
from .settings import MetricsSettings
from .store import MetricsStore

logger = logging.getLogger("power-guard.http")


def is_authorized(authorization: Optional[str], bearer_token: Optional[str]) -> bool:
    if bearer_token is None:
        return True
    if authorization is None:
        return False
    expected = f"Bearer {bearer_token}"
    return hmac.compare_digest(authorization.encode("utf-8"), expected.encode("utf-8"))


# ─────────────────────────────────────────────
# App factory
# ─────────────────────────────────────────────

def create_app(store: MetricsStore, cfg: MetricsSettings) -> FastAPI:
    app = FastAPI(title="power-guard", version=__version__)

    # Plain `def` handlers run in the threadpool, so the blocking read lock
    # never stalls the event loop.

    @app.get("/health")
    def health():
        return PlainTextResponse("OK")

    @app.get("/metrics")
    def metrics(authorization: Optional[str] = Header(default=None)):
        if not is_authorized(authorization, cfg.bearer_token):
            return PlainTextResponse("Unauthorized", status_code=401)

        latest = store.latest()
        if latest is None:
            return PlainTextResponse("No metrics available", status_code=503)

        record, captured_at = latest
        if cfg.format == "json":
            payload = JsonMetricsResponse(timestamp=int(captured_at), metrics=record)
            return JSONResponse(payload.model_dump(mode="json"))

        return Response(content=openmetrics.render(record), media_type=openmetrics.CONTENT_TYPE)

    return app


# ─────────────────────────────────────────────
# Server thread
# ─────────────────────────────────────────────

class MetricsServer:
    """
    Serves the metrics app with uvicorn on a daemon thread, next to the
    monitor loop.
    """

    def __init__(self, store: MetricsStore, cfg: MetricsSettings, host: str = "0.0.0.0") -> None:
        self.cfg = cfg
        self.host = host
        self.app = create_app(store, cfg)
        self._server = uvicorn.Server(
            uvicorn.Config(self.app, host=host, port=cfg.port, log_level="info")
        )
        self._thread: Optional[threading.Thread] = None

    def start(self, startup_timeout: float = 10.0) -> None:
        """Start serving; raises MetricsServerError if the listener never comes up."""
        logger.info("Starting metrics server on port %d", self.cfg.port)
        self._thread = threading.Thread(target=self._server.run, name="metrics-http", daemon=True)
        self._thread.start()

        deadline = time.monotonic() + startup_timeout
        while not self._server.started:
            if not self._thread.is_alive():
                raise MetricsServerError(f"Failed to bind metrics server to {self.host}:{self.cfg.port}")
            if time.monotonic() >= deadline:
                raise MetricsServerError(
                    f"Metrics server did not start within {startup_timeout:.0f}s"
                )
            time.sleep(0.05)
        logger.info("Metrics server started")

    def stop(self) -> None:
        self._server.should_exit = True
        if self._thread is not None:
            self._thread.join(timeout=5)
