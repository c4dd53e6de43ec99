# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
The snpm registry server.

One FastAPI application carries both transports on the same port:

  POST /publish     - request/response publish (snpm.serving.http)
  WS   /session     - streaming publish session (snpm.serving.session)
  GET  /status      - uptime and publish counters

The pipeline factory and counters live on `app.state.registry`, so each
app instance is self-contained and tests can build as many as they like.
"""

import logging
from typing import Any, Optional

import uvicorn
from fastapi import FastAPI

from snpm import __version__
from snpm.config.schema import RegistryConfig, default_registry_config
from snpm.logging.logger import get_logger
from snpm.publish.pipeline import PipelineFactory
from snpm.serving.http.core import publish_endpoint
from snpm.serving.server.state import RegistryState
from snpm.serving.session.core import session_endpoint

logger: logging.Logger = get_logger(__name__)

_LOCAL_HOSTS = ("127.0.0.1", "localhost", "::1")


def create_app(
    config: Optional[RegistryConfig] = None,
    factory: Optional[PipelineFactory] = None,
) -> FastAPI:
    """
    Build the registry application.

    Args:
        config: Registry settings; defaults when None.
        factory: Pipeline factory; one is built from `config` when None.
            Tests pass a factory wired to fake collaborators.
    """
    config = config or default_registry_config()
    state = RegistryState(config=config, factory=factory or PipelineFactory(config))

    app = FastAPI(title="snpm registry", version=__version__)
    app.state.registry = state

    app.add_api_route("/publish", publish_endpoint, methods=["POST"])
    app.add_api_websocket_route("/session", session_endpoint)

    @app.get("/status")
    def status() -> dict[str, Any]:
        return {
            "version": __version__,
            **state.status.snapshot(),
        }

    return app


def run_server(app: FastAPI, host: str, port: int) -> None:
    """
    Serve the registry and block until it shuts down (Ctrl+C).
    """
    if host not in _LOCAL_HOSTS:
        logger.warning(
            "Registry binding to non-localhost address; publishes run untrusted builds",
            extra={"host": host},
        )

    logger.info("Server listening", extra={"host": host, "port": port})

    try:
        uvicorn.run(app, host=host, port=port, log_level="warning")
    finally:
        logger.info("Server stopped")
