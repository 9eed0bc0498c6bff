from __future__ import annotations

from typing import Any

import pytest
from fastmcp import FastMCP

from notebook_editor.transports.http import HttpTransportConfig, build_app, describe_routes, run_http


def _config(**overrides: Any) -> HttpTransportConfig:
    values: dict[str, Any] = {
        "host": "127.0.0.1",
        "port": 0,
        "http_path": "/mcp",
        "metrics_path": "/metrics",
        "enable_metrics": False,
    }
    values.update(overrides)
    return HttpTransportConfig(**values)


def test_describe_routes_respects_metrics_toggle() -> None:
    assert describe_routes(_config()) == {"http": "/mcp"}
    assert describe_routes(_config(enable_metrics=True, http_path="api/", metrics_path="stats")) == {
        "http": "/api",
        "metrics": "/stats",
    }


def test_build_app_mounts_mcp_endpoint() -> None:
    server = FastMCP(name="test-http")

    app = build_app(server, _config(http_path="/notebooks/"))

    assert app.state.path == "/notebooks"
    assert any(getattr(route, "path", None) == "/notebooks" for route in app.routes)


def test_run_http_invokes_uvicorn(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: dict[str, Any] = {}

    class DummyConfig:  # mimics uvicorn.Config signature
        def __init__(self, app, host, port, **kwargs):
            captured["app"] = app
            captured["host"] = host
            captured["port"] = port
            captured["kwargs"] = kwargs
            self.app = app

    class DummyServer:
        def __init__(self, config):
            captured["config"] = config

        async def serve(self) -> None:
            captured["served"] = True

    monkeypatch.setattr("notebook_editor.transports.http.uvicorn.Config", DummyConfig)
    monkeypatch.setattr("notebook_editor.transports.http.uvicorn.Server", DummyServer)

    server = FastMCP(name="test-http")

    run_http(server, _config())

    assert captured["host"] == "127.0.0.1"
    assert captured["port"] == 0
    assert captured["kwargs"]["lifespan"] == "on"
    assert captured["served"] is True
    assert captured["app"].state.path == "/mcp"
