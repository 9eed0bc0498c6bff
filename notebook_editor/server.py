"""FastMCP server entrypoint for the Notebook Editor MCP service."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from functools import wraps
from typing import Any, Callable, Mapping, TypeVar

from fastmcp import FastMCP
from mcp.types import ToolAnnotations
from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response

from . import metrics, operations, queries
from .config import Config, ConfigError, load_config
from .errors import CONFIG_ERROR, NotebookEditorError
from .logging import configure_logging, get_logger
from .models import CELL_TYPES, Notebook, OperationResult
from .store import NotebookStore
from .transports import HttpTransportConfig, run_http, run_stdio
from .validation import validate_notebook

LOGGER = get_logger(__name__)
SERVER = FastMCP(name="notebook-editor")

T = TypeVar("T")


@dataclass(slots=True)
class AppState:
    config: Config
    store: NotebookStore


APP_STATE: AppState | None = None
_METRICS_ROUTE_NAME = "__notebook_editor_metrics__"


def _remove_metrics_route() -> None:
    routes = getattr(SERVER, "_additional_http_routes", None)
    if not routes:
        return
    routes[:] = [route for route in routes if getattr(route, "name", None) != _METRICS_ROUTE_NAME]


def _register_metrics_route(path: str) -> None:
    _remove_metrics_route()

    @SERVER.custom_route(path, methods=["GET"], name=_METRICS_ROUTE_NAME, include_in_schema=False)
    async def metrics_endpoint(_request: Request) -> Response:
        registry = metrics.get_registry_optional()
        if registry is None:
            return PlainTextResponse("metrics unavailable\n", status_code=503)
        body = metrics.format_prometheus(registry.snapshot())
        return PlainTextResponse(body, media_type="text/plain; version=0.0.4")


def initialize_app(config: Config) -> None:
    """Initialise application state for tool handlers."""

    global APP_STATE
    store = NotebookStore(config)
    metrics.install_registry(metrics.MetricsRegistry())
    if config.enable_metrics:
        _register_metrics_route(config.metrics_path)
    else:
        _remove_metrics_route()
    APP_STATE = AppState(config=config, store=store)
    LOGGER.info(
        "app.initialized",
        extra={
            "context": {
                "root_dir": str(config.root_dir),
                "allowed_roots": [str(root) for root in config.allowed_roots],
                "source_style": config.source_style,
            }
        },
    )


def shutdown_app() -> None:
    """Clear application state and detach the metrics registry."""

    global APP_STATE
    if APP_STATE is None:
        return
    metrics.install_registry(None)
    _remove_metrics_route()
    APP_STATE = None


def get_store() -> NotebookStore:
    if APP_STATE is None:
        raise NotebookEditorError(CONFIG_ERROR, "Server is not initialised")
    return APP_STATE.store


def success(payload: Mapping[str, Any]) -> dict[str, Any]:
    return {"ok": True, **payload}


def failure(error: NotebookEditorError) -> dict[str, Any]:
    metrics.record_error(error.code)
    return {"ok": False, "error": error.to_dict()}


def _tool_error_guard(func):
    """Convert domain errors raised by a handler into structured failure responses."""

    @wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except NotebookEditorError as exc:
            LOGGER.debug(
                "notebook.tool.failed",
                extra={"context": {"tool": func.__name__, "code": exc.code, "message": exc.message}},
            )
            return failure(exc)

    return wrapper


async def _mutate(tool: str, path: str, mutate: Callable[[Notebook], OperationResult]) -> dict[str, Any]:
    # File I/O runs off the event loop; the store serialises per notebook path.
    store = get_store()
    result = await asyncio.to_thread(store.update, path, mutate)
    metrics.record_operation(tool)
    LOGGER.debug("notebook.tool.mutate", extra={"context": {"tool": tool, "path": path}})
    return success({"path": path, **result.to_dict()})


async def _query(tool: str, path: str, reader: Callable[[Notebook], T]) -> T:
    store = get_store()
    value = await asyncio.to_thread(store.read, path, reader)
    metrics.record_operation(tool)
    return value


# ----------------------------------------------------------------------
# Notebook lifecycle
# ----------------------------------------------------------------------


@_tool_error_guard
async def _notebook_create_impl(path: str) -> dict[str, Any]:
    store = get_store()
    resolved = await asyncio.to_thread(store.create, path, operations.create_notebook())
    metrics.record_operation("notebook_create")
    return success({"message": f"Created new notebook at: {path}", "path": path, "absolute_path": str(resolved)})


@_tool_error_guard
async def _notebook_delete_impl(path: str) -> dict[str, Any]:
    store = get_store()
    await asyncio.to_thread(store.delete, path)
    metrics.record_operation("notebook_delete")
    return success({"message": f"Deleted notebook: {path}", "path": path})


@_tool_error_guard
async def _notebook_rename_impl(old_path: str, new_path: str) -> dict[str, Any]:
    store = get_store()
    await asyncio.to_thread(store.rename, old_path, new_path)
    metrics.record_operation("notebook_rename")
    return success(
        {
            "message": f"Renamed notebook from {old_path} to {new_path}",
            "old_path": old_path,
            "new_path": new_path,
        }
    )


@_tool_error_guard
async def _notebook_read_impl(path: str) -> dict[str, Any]:
    notebook = await _query("notebook_read", path, lambda nb: nb.to_dict())
    return success({"message": f"Read notebook {path}", "path": path, "notebook": notebook})


# ----------------------------------------------------------------------
# Cell editing
# ----------------------------------------------------------------------


@_tool_error_guard
async def _notebook_read_cell_impl(path: str, cell_index: int) -> dict[str, Any]:
    def reader(nb: Notebook) -> dict[str, Any]:
        source = queries.read_cell(nb, cell_index)
        return {"cell_type": nb.cells[cell_index].cell_type, "source": source}

    cell = await _query("notebook_read_cell", path, reader)
    return success({"message": f"Read cell {cell_index}", "path": path, "cell_index": cell_index, **cell})


@_tool_error_guard
async def _notebook_add_cell_impl(path: str, cell_type: str, source: str, index: int) -> dict[str, Any]:
    return await _mutate(
        "notebook_add_cell",
        path,
        lambda nb: operations.insert_cell(nb, index, cell_type, source),
    )


@_tool_error_guard
async def _notebook_bulk_add_cells_impl(path: str, cells: list[dict[str, Any]], index: int) -> dict[str, Any]:
    return await _mutate(
        "notebook_bulk_add_cells",
        path,
        lambda nb: operations.bulk_insert_cells(nb, index, cells),
    )


@_tool_error_guard
async def _notebook_edit_cell_impl(path: str, cell_index: int, new_source: str) -> dict[str, Any]:
    return await _mutate(
        "notebook_edit_cell",
        path,
        lambda nb: operations.replace_source(nb, cell_index, new_source),
    )


@_tool_error_guard
async def _notebook_delete_cell_impl(path: str, cell_index: int) -> dict[str, Any]:
    return await _mutate("notebook_delete_cell", path, lambda nb: operations.delete_cell(nb, cell_index))


@_tool_error_guard
async def _notebook_change_cell_type_impl(path: str, cell_index: int, new_type: str) -> dict[str, Any]:
    return await _mutate(
        "notebook_change_cell_type",
        path,
        lambda nb: operations.change_cell_type(nb, cell_index, new_type),
    )


@_tool_error_guard
async def _notebook_duplicate_cell_impl(path: str, cell_index: int, count: int = 1) -> dict[str, Any]:
    return await _mutate(
        "notebook_duplicate_cell",
        path,
        lambda nb: operations.duplicate_cell(nb, cell_index, count),
    )


@_tool_error_guard
async def _notebook_move_cell_impl(path: str, from_index: int, to_index: int) -> dict[str, Any]:
    return await _mutate(
        "notebook_move_cell",
        path,
        lambda nb: operations.move_cell(nb, from_index, to_index),
    )


@_tool_error_guard
async def _notebook_split_cell_impl(path: str, cell_index: int, line_number: int) -> dict[str, Any]:
    return await _mutate(
        "notebook_split_cell",
        path,
        lambda nb: operations.split_cell(nb, cell_index, line_number),
    )


@_tool_error_guard
async def _notebook_merge_cells_impl(path: str, cell_index: int) -> dict[str, Any]:
    return await _mutate("notebook_merge_cells", path, lambda nb: operations.merge_cells(nb, cell_index))


@_tool_error_guard
async def _notebook_get_cell_count_impl(path: str) -> dict[str, Any]:
    count = await _query("notebook_get_cell_count", path, queries.cell_count)
    return success({"message": f"Notebook has {count} cells", "path": path, "cell_count": count})


# ----------------------------------------------------------------------
# Metadata and outputs
# ----------------------------------------------------------------------


@_tool_error_guard
async def _notebook_read_metadata_impl(path: str) -> dict[str, Any]:
    metadata = await _query("notebook_read_metadata", path, queries.read_notebook_metadata)
    return success({"message": f"Read metadata for {path}", "path": path, "metadata": metadata})


@_tool_error_guard
async def _notebook_edit_metadata_impl(path: str, metadata: dict[str, Any]) -> dict[str, Any]:
    return await _mutate(
        "notebook_edit_metadata",
        path,
        lambda nb: operations.edit_notebook_metadata(nb, metadata),
    )


@_tool_error_guard
async def _notebook_read_cell_metadata_impl(path: str, cell_index: int) -> dict[str, Any]:
    metadata = await _query(
        "notebook_read_cell_metadata",
        path,
        lambda nb: queries.read_cell_metadata(nb, cell_index),
    )
    return success(
        {
            "message": f"Read metadata for cell {cell_index}",
            "path": path,
            "cell_index": cell_index,
            "metadata": metadata,
        }
    )


@_tool_error_guard
async def _notebook_edit_cell_metadata_impl(path: str, cell_index: int, metadata: dict[str, Any]) -> dict[str, Any]:
    return await _mutate(
        "notebook_edit_cell_metadata",
        path,
        lambda nb: operations.edit_cell_metadata(nb, cell_index, metadata),
    )


@_tool_error_guard
async def _notebook_read_cell_output_impl(path: str, cell_index: int) -> dict[str, Any]:
    outputs = await _query(
        "notebook_read_cell_output",
        path,
        lambda nb: queries.read_cell_outputs(nb, cell_index),
    )
    return success(
        {
            "message": f"Read {len(outputs)} output(s) for cell {cell_index}",
            "path": path,
            "cell_index": cell_index,
            "outputs": outputs,
        }
    )


@_tool_error_guard
async def _notebook_edit_cell_output_impl(path: str, cell_index: int, outputs: list[dict[str, Any]]) -> dict[str, Any]:
    return await _mutate(
        "notebook_edit_cell_output",
        path,
        lambda nb: operations.edit_cell_outputs(nb, cell_index, outputs),
    )


@_tool_error_guard
async def _notebook_clear_cell_outputs_impl(path: str, cell_index: int) -> dict[str, Any]:
    return await _mutate(
        "notebook_clear_cell_outputs",
        path,
        lambda nb: operations.clear_cell_outputs(nb, cell_index),
    )


@_tool_error_guard
async def _notebook_clear_all_outputs_impl(path: str) -> dict[str, Any]:
    return await _mutate("notebook_clear_all_outputs", path, operations.clear_all_outputs)


# ----------------------------------------------------------------------
# Inspection
# ----------------------------------------------------------------------


@_tool_error_guard
async def _notebook_validate_impl(path: str) -> dict[str, Any]:
    store = get_store()
    payload = await asyncio.to_thread(store.load_raw, path)
    result = validate_notebook(payload)
    metrics.record_operation("notebook_validate")
    return success({"message": result.reason, "path": path, **result.to_dict()})


@_tool_error_guard
async def _notebook_get_info_impl(path: str) -> dict[str, Any]:
    info = await _query("notebook_get_info", path, queries.notebook_info)
    return success({"message": f"Notebook info for {path}", "path": path, **info})


@_tool_error_guard
async def _notebook_get_outline_impl(path: str) -> dict[str, Any]:
    entries = await _query("notebook_get_outline", path, queries.outline)
    message = queries.format_outline(entries) if entries else "Notebook has no cells"
    return success({"message": message, "path": path, "outline": [entry.to_dict() for entry in entries]})


@_tool_error_guard
async def _notebook_search_impl(path: str, query: str, case_sensitive: bool = False) -> dict[str, Any]:
    hits = await _query("notebook_search", path, lambda nb: queries.search(nb, query, case_sensitive))
    return success(
        {
            "message": f"Found matches in {len(hits)} cell(s)",
            "path": path,
            "query": query,
            "results": [hit.to_dict() for hit in hits],
        }
    )


@_tool_error_guard
async def _notebook_get_server_path_context_impl(path: str) -> dict[str, Any]:
    store = get_store()
    context = await asyncio.to_thread(store.describe_path, path)
    metrics.record_operation("notebook_get_server_path_context")
    return success({"message": f"Path context for {path}", **context})


# ----------------------------------------------------------------------
# Tool registration
# ----------------------------------------------------------------------

_READ_ONLY = ToolAnnotations(readOnlyHint=True)
_DESTRUCTIVE = ToolAnnotations(readOnlyHint=False, destructiveHint=True)

notebook_create = SERVER.tool(
    name="notebook_create",
    description="Create a new, empty notebook (nbformat 4, Python 3 kernelspec) at the given path.",
)(_notebook_create_impl)

notebook_delete = SERVER.tool(
    name="notebook_delete",
    annotations=_DESTRUCTIVE,
    description="Delete a notebook file.",
)(_notebook_delete_impl)

notebook_rename = SERVER.tool(
    name="notebook_rename",
    description="Rename or move a notebook file. Fails when the target already exists.",
)(_notebook_rename_impl)

notebook_read = SERVER.tool(
    name="notebook_read",
    annotations=_READ_ONLY,
    description="Read the whole notebook document.",
)(_notebook_read_impl)

notebook_read_cell = SERVER.tool(
    name="notebook_read_cell",
    annotations=_READ_ONLY,
    description="Read the source text of one cell by zero-based index.",
)(_notebook_read_cell_impl)

notebook_add_cell = SERVER.tool(
    name="notebook_add_cell",
    description=(
        "Add a new code, markdown or raw cell after the cell at `index`.\n\n"
        "Use index -1 to insert at the top of the notebook."
    ),
)(_notebook_add_cell_impl)

notebook_bulk_add_cells = SERVER.tool(
    name="notebook_bulk_add_cells",
    description=(
        "Add several cells as one contiguous block after the cell at `index` (-1 inserts at the top).\n\n"
        "Each entry is an object with `cell_type` and `source`."
    ),
)(_notebook_bulk_add_cells_impl)

notebook_edit_cell = SERVER.tool(
    name="notebook_edit_cell",
    description="Replace the source text of a cell.",
)(_notebook_edit_cell_impl)

notebook_delete_cell = SERVER.tool(
    name="notebook_delete_cell",
    annotations=_DESTRUCTIVE,
    description="Delete a cell by index.",
)(_notebook_delete_cell_impl)

notebook_change_cell_type = SERVER.tool(
    name="notebook_change_cell_type",
    description=(
        "Change a cell's type, keeping its source and metadata.\n\n"
        "Converting to or from code discards outputs and execution count."
    ),
)(_notebook_change_cell_type_impl)

notebook_duplicate_cell = SERVER.tool(
    name="notebook_duplicate_cell",
    description="Insert `count` copies of a cell directly after it. Copies of code cells start without outputs.",
)(_notebook_duplicate_cell_impl)

notebook_move_cell = SERVER.tool(
    name="notebook_move_cell",
    description=(
        "Move a cell: remove it from `from_index`, then insert it at `to_index` "
        "in the shortened notebook."
    ),
)(_notebook_move_cell_impl)

notebook_split_cell = SERVER.tool(
    name="notebook_split_cell",
    description="Split a cell in two so that zero-based `line_number` starts the new cell.",
)(_notebook_split_cell_impl)

notebook_merge_cells = SERVER.tool(
    name="notebook_merge_cells",
    description="Merge a cell with the cell that follows it, joining sources with a newline.",
)(_notebook_merge_cells_impl)

notebook_get_cell_count = SERVER.tool(
    name="notebook_get_cell_count",
    annotations=_READ_ONLY,
    description="Return the number of cells in a notebook.",
)(_notebook_get_cell_count_impl)

notebook_read_metadata = SERVER.tool(
    name="notebook_read_metadata",
    annotations=_READ_ONLY,
    description="Read notebook-level metadata.",
)(_notebook_read_metadata_impl)

notebook_edit_metadata = SERVER.tool(
    name="notebook_edit_metadata",
    description="Merge keys into notebook-level metadata. Top-level keys are replaced, others kept.",
)(_notebook_edit_metadata_impl)

notebook_read_cell_metadata = SERVER.tool(
    name="notebook_read_cell_metadata",
    annotations=_READ_ONLY,
    description="Read the metadata of one cell.",
)(_notebook_read_cell_metadata_impl)

notebook_edit_cell_metadata = SERVER.tool(
    name="notebook_edit_cell_metadata",
    description="Merge keys into a cell's metadata.",
)(_notebook_edit_cell_metadata_impl)

notebook_read_cell_output = SERVER.tool(
    name="notebook_read_cell_output",
    annotations=_READ_ONLY,
    description="Read the outputs of a cell. Non-code cells have no outputs.",
)(_notebook_read_cell_output_impl)

notebook_edit_cell_output = SERVER.tool(
    name="notebook_edit_cell_output",
    description="Replace the outputs of a code cell.",
)(_notebook_edit_cell_output_impl)

notebook_clear_cell_outputs = SERVER.tool(
    name="notebook_clear_cell_outputs",
    description="Clear outputs and execution count of one cell.",
)(_notebook_clear_cell_outputs_impl)

notebook_clear_all_outputs = SERVER.tool(
    name="notebook_clear_all_outputs",
    description="Clear outputs and execution counts of every code cell.",
)(_notebook_clear_all_outputs_impl)

notebook_validate = SERVER.tool(
    name="notebook_validate",
    annotations=_READ_ONLY,
    description="Check a notebook file against the nbformat 4 structure and report every problem found.",
)(_notebook_validate_impl)

notebook_get_info = SERVER.tool(
    name="notebook_get_info",
    annotations=_READ_ONLY,
    description="Summarise a notebook: cell counts by type, format version, kernel and language.",
)(_notebook_get_info_impl)

notebook_get_outline = SERVER.tool(
    name="notebook_get_outline",
    annotations=_READ_ONLY,
    description=(
        "List every cell with its type, line count and a title taken from the first "
        "markdown heading or the first def/class line."
    ),
)(_notebook_get_outline_impl)

notebook_search = SERVER.tool(
    name="notebook_search",
    annotations=_READ_ONLY,
    description="Search cell sources for a plain substring and report matching lines (1-based).",
)(_notebook_search_impl)

notebook_get_server_path_context = SERVER.tool(
    name="notebook_get_server_path_context",
    annotations=_READ_ONLY,
    description=(
        "Describe how the server resolves a path: absolute form, existence, allowed roots, "
        "OS path style and platform. Use it to build valid notebook paths."
    ),
)(_notebook_get_server_path_context_impl)

# ----------------------------------------------------------------------
# Argument and result schemas
# ----------------------------------------------------------------------

_PATH_PROPERTY = {
    "type": "string",
    "minLength": 1,
    "description": "Notebook path, absolute or relative to the server root directory.",
}

_CELL_INDEX_PROPERTY = {
    "type": "integer",
    "description": "Zero-based cell index.",
}

_CELL_TYPE_PROPERTY = {
    "type": "string",
    "enum": list(CELL_TYPES),
    "description": "Cell type.",
}

_RESULT_SUCCESS_CONSTRAINT = {
    "if": {"properties": {"ok": {"const": True}}},
    "then": {"required": ["message"]},
    "else": {"required": ["error"]},
}

notebook_add_cell.parameters = {
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "path": dict(_PATH_PROPERTY),
        "cell_type": dict(_CELL_TYPE_PROPERTY),
        "source": {"type": "string", "description": "Source text of the new cell."},
        "index": {
            "type": "integer",
            "description": "Index after which to insert the cell; -1 inserts at the top.",
        },
    },
    "required": ["path", "cell_type", "source", "index"],
}

notebook_bulk_add_cells.parameters = {
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "path": dict(_PATH_PROPERTY),
        "cells": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "cell_type": dict(_CELL_TYPE_PROPERTY),
                    "source": {"type": "string"},
                },
                "required": ["cell_type", "source"],
            },
            "description": "Cells to insert, in order.",
        },
        "index": {
            "type": "integer",
            "description": "Index after which to insert the block; -1 inserts at the top.",
        },
    },
    "required": ["path", "cells", "index"],
}

notebook_change_cell_type.parameters = {
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "path": dict(_PATH_PROPERTY),
        "cell_index": dict(_CELL_INDEX_PROPERTY),
        "new_type": dict(_CELL_TYPE_PROPERTY),
    },
    "required": ["path", "cell_index", "new_type"],
}

notebook_duplicate_cell.parameters = {
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "path": dict(_PATH_PROPERTY),
        "cell_index": dict(_CELL_INDEX_PROPERTY),
        "count": {
            "type": "integer",
            "minimum": 1,
            "default": 1,
            "description": "Number of copies to insert.",
        },
    },
    "required": ["path", "cell_index"],
}

notebook_search.parameters = {
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "path": dict(_PATH_PROPERTY),
        "query": {"type": "string", "minLength": 1, "description": "Plain substring to look for."},
        "case_sensitive": {"type": "boolean", "default": False, "description": "Match case exactly."},
    },
    "required": ["path", "query"],
}

notebook_validate.output_schema = {
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "ok": {"type": "boolean"},
        "error": {"type": ["object", "null"]},
        "message": {"type": "string"},
        "path": {"type": "string"},
        "valid": {"type": "boolean"},
        "reason": {"type": "string"},
        "errors": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "message": {"type": "string"},
                    "path": {"type": "array"},
                },
                "required": ["message", "path"],
            },
        },
    },
    "required": ["ok"],
    "allOf": [
        {
            "if": {"properties": {"ok": {"const": True}}},
            "then": {"required": ["valid", "reason", "errors"]},
            "else": {"required": ["error"]},
        }
    ],
}

notebook_get_info.output_schema = {
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "ok": {"type": "boolean"},
        "error": {"type": ["object", "null"]},
        "message": {"type": "string"},
        "path": {"type": "string"},
        "cell_count": {"type": "integer", "minimum": 0},
        "code_cells": {"type": "integer", "minimum": 0},
        "markdown_cells": {"type": "integer", "minimum": 0},
        "raw_cells": {"type": "integer", "minimum": 0},
        "nbformat": {"type": "integer"},
        "nbformat_minor": {"type": "integer"},
        "kernel": {"type": "string"},
        "language": {"type": "string"},
    },
    "required": ["ok"],
    "allOf": [_RESULT_SUCCESS_CONSTRAINT],
}

notebook_get_outline.output_schema = {
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "ok": {"type": "boolean"},
        "error": {"type": ["object", "null"]},
        "message": {"type": "string"},
        "path": {"type": "string"},
        "outline": {
            "type": "array",
            "items": {
                "type": "object",
                "additionalProperties": False,
                "properties": {
                    "index": {"type": "integer", "minimum": 0},
                    "cell_type": {"type": "string"},
                    "title": {"type": ["string", "null"]},
                    "line_count": {"type": "integer", "minimum": 1},
                    "label": {"type": "string"},
                },
                "required": ["index", "cell_type", "title", "line_count", "label"],
            },
        },
    },
    "required": ["ok"],
    "allOf": [_RESULT_SUCCESS_CONSTRAINT],
}


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for running the Notebook Editor server."""

    configure_logging()
    try:
        config = load_config(argv)
    except ConfigError as exc:
        LOGGER.error("config.invalid", extra={"context": {"error": str(exc)}})
        raise SystemExit(2) from exc

    configure_logging(config.log_level)
    LOGGER.info(
        "Configuration loaded",
        extra={
            "context": {
                "root_dir": str(config.root_dir),
                "enable_stdio": config.enable_stdio,
                "enable_http": config.enable_http,
                "enable_metrics": config.enable_metrics,
                "source_style": config.source_style,
            }
        },
    )

    initialize_app(config)

    try:
        if config.enable_stdio:
            run_stdio(SERVER)
        else:
            LOGGER.info("Stdio transport disabled")

        if config.enable_http:
            http_config = HttpTransportConfig(
                host=config.http_host,
                port=config.http_port,
                http_path=config.http_path,
                metrics_path=config.metrics_path,
                enable_metrics=config.enable_metrics,
            )
            run_http(SERVER, http_config)
        else:
            LOGGER.info("HTTP transport disabled")
    finally:
        shutdown_app()


if __name__ == "__main__":  # pragma: no cover - manual invocation only
    main()
