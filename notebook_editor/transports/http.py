"""Streamable HTTP transport implementation."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Mapping

import uvicorn
from fastmcp import FastMCP
from fastmcp.utilities.logging import temporary_log_level
from starlette.applications import Starlette

from ..logging import get_logger

logger = get_logger(__name__)


@dataclass(slots=True)
class HttpTransportConfig:
    """Configuration for the HTTP transport layer."""

    host: str
    port: int
    http_path: str
    metrics_path: str
    enable_metrics: bool


def describe_routes(config: HttpTransportConfig) -> Mapping[str, str]:
    """Return a mapping of logical endpoints to their configured paths."""

    routes: dict[str, str] = {"http": _normalise_path(config.http_path)}
    if config.enable_metrics:
        routes["metrics"] = _normalise_path(config.metrics_path)
    return routes


def build_app(server: FastMCP, config: HttpTransportConfig) -> Starlette:
    """Create the Starlette application serving MCP requests and custom routes."""

    app = server.http_app(path=_normalise_path(config.http_path), transport="http")
    app.state.path = _normalise_path(config.http_path)
    return app


def run_http(server: FastMCP, config: HttpTransportConfig) -> None:
    """Run the FastMCP streamable HTTP transport using uvicorn."""

    routes = describe_routes(config)
    context = {
        "host": config.host,
        "port": config.port,
        "routes": routes,
    }

    async def _serve() -> None:
        app = build_app(server, config)
        log_level = logger.level if isinstance(logger.level, int) else None

        uvicorn_config = uvicorn.Config(
            app,
            host=config.host,
            port=config.port,
            timeout_graceful_shutdown=0,
            lifespan="on",
        )
        server_instance = uvicorn.Server(uvicorn_config)

        logger.info(
            "transport.http.serve",
            extra={
                "context": {
                    **context,
                    "path": app.state.path,
                }
            },
        )

        with temporary_log_level(level=log_level):
            await server_instance.serve()

    logger.info("transport.http.start", extra={"context": context})
    try:
        asyncio.run(_serve())
    except KeyboardInterrupt:
        logger.info("transport.http.interrupted", extra={"context": context})
        raise
    except Exception:
        logger.exception("transport.http.failed", extra={"context": context})
        raise
    else:
        logger.info("transport.http.stop", extra={"context": context})


def _normalise_path(path: str) -> str:
    if not path.startswith("/"):
        path = "/" + path
    if len(path) > 1 and path.endswith("/"):
        path = path.rstrip("/")
    return path
