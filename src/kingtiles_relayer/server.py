"""Entrypoint for running the relayer API service under uvicorn."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from kingtiles_relayer.infrastructure.http.middleware import request_logging_middleware
from kingtiles_relayer.infrastructure.http.routes import add_session_routes
from kingtiles_relayer.infrastructure.observability.logging import (
    configure_logging,
    enable_cloud_logging,
    init_logging,
    shutdown_logging,
)
from kingtiles_relayer.infrastructure.observability.tracing import configure_tracing
from kingtiles_relayer.runtime.bootstrap import build_runtime, close_runtime_resources
from kingtiles_relayer.runtime.event_listener import create_event_listener
from kingtiles_relayer.runtime.settings import Settings
from kingtiles_relayer.runtime.watchdog import create_watchdog

init_logging()
configure_tracing(service_name="kingtiles-relayer")
_settings = Settings.load()
if _settings.enable_cloud_logging:
    gcp_project = _settings.gcp_project_id
    if gcp_project is None:
        raise RuntimeError("Cloud logging enabled but no GCP project configured")
    enable_cloud_logging(gcp_project=gcp_project, cloud_log_labels={"service": "kingtiles-relayer"})
else:
    configure_logging(cloud_logging_enabled=False)

_runtime = build_runtime(_settings)
_watchdog = create_watchdog(_runtime)
_event_listener = create_event_listener(_runtime)

logger = logging.getLogger("kingtiles_relayer.server")

WORKER_STOP_TIMEOUT_SECONDS = 10.0


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    summary = await _runtime.recovery.recover()
    logger.info("startup recovery finished", extra={"data": {"recovered": summary.recovered}})
    _event_listener.start()
    _watchdog.start()
    yield
    await _watchdog.stop(timeout=WORKER_STOP_TIMEOUT_SECONDS)
    await _event_listener.stop(timeout=WORKER_STOP_TIMEOUT_SECONDS)
    await close_runtime_resources(_runtime)
    shutdown_logging()


def create_app() -> FastAPI:
    app = FastAPI(title="King Tiles Relayer", version="0.1.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_settings.cors_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )
    app.middleware("http")(request_logging_middleware)

    add_session_routes(app, _runtime.route_deps_provider)

    return app


app = create_app()


def main() -> None:
    import uvicorn

    config = uvicorn.Config(
        app,
        host=_runtime.settings.listen_host,
        port=_runtime.settings.port,
        timeout_graceful_shutdown=int(WORKER_STOP_TIMEOUT_SECONDS),
        # logging already setup
        log_config=None,
    )
    uvicorn.Server(config).run()


__all__ = ["app", "main"]
