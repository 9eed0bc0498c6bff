"""Domain models for notebooks, cells, and operation results."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, ClassVar, Literal, Mapping, Sequence
from uuid import uuid4

from .errors import INVALID_CELL_TYPE, SCHEMA_VIOLATION, NotebookEditorError
from .source import normalize_source

NBFORMAT_MAJOR = 4
NBFORMAT_MINOR = 4

CELL_TYPES: tuple[str, ...] = ("code", "markdown", "raw")

SourceStyle = Literal["string", "lines"]

# Persisted cell keys modelled explicitly; everything else is carried in ``extra``.
_MODELLED_CELL_KEYS = frozenset({"cell_type", "source", "metadata", "execution_count", "outputs"})


def default_notebook_metadata() -> dict[str, Any]:
    return {
        "kernelspec": {
            "display_name": "Python 3",
            "language": "python",
            "name": "python3",
        },
        "language_info": {
            "name": "python",
        },
    }


@dataclass(slots=True)
class _CellBase:
    source: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)
    extra: dict[str, Any] = field(default_factory=dict)

    cell_type: ClassVar[str]

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"cell_type": self.cell_type}
        payload.update(copy.deepcopy(self.extra))
        payload["metadata"] = copy.deepcopy(self.metadata)
        payload["source"] = self.source
        return payload


@dataclass(slots=True)
class MarkdownCell(_CellBase):
    """Rendered text cell."""

    cell_type: ClassVar[str] = "markdown"


@dataclass(slots=True)
class RawCell(_CellBase):
    """Untyped raw text cell."""

    cell_type: ClassVar[str] = "raw"


@dataclass(slots=True)
class CodeCell(_CellBase):
    """Executable cell; the only variant carrying execution state."""

    execution_count: int | None = None
    outputs: list[dict[str, Any]] = field(default_factory=list)

    cell_type: ClassVar[str] = "code"

    def to_dict(self) -> dict[str, Any]:
        payload = _CellBase.to_dict(self)
        payload["execution_count"] = self.execution_count
        payload["outputs"] = copy.deepcopy(self.outputs)
        return payload

    def reset_execution(self) -> None:
        self.execution_count = None
        self.outputs = []


Cell = CodeCell | MarkdownCell | RawCell

_CELL_CLASSES: dict[str, type[_CellBase]] = {
    "code": CodeCell,
    "markdown": MarkdownCell,
    "raw": RawCell,
}


def _cell_class(cell_type: Any) -> type[_CellBase]:
    try:
        return _CELL_CLASSES[cell_type]
    except (KeyError, TypeError):
        raise NotebookEditorError(
            INVALID_CELL_TYPE,
            f"Invalid cell type: {cell_type!r} (expected one of {', '.join(CELL_TYPES)})",
            details={"cell_type": cell_type},
        ) from None


def new_cell(cell_type: str, source: str | Sequence[str] = "") -> Cell:
    """Build a fresh cell with empty metadata and normalized source."""

    cls = _cell_class(cell_type)
    return cls(source=normalize_source(source))  # type: ignore[return-value]


def retype_cell(cell: Cell, new_type: str) -> Cell:
    """Return ``cell`` converted to ``new_type``.

    Entering ``code`` always starts from a clean execution state and leaving
    ``code`` discards it; prior outputs are never restored.
    """

    cls = _cell_class(new_type)
    extra = copy.deepcopy(cell.extra)
    if cls is CodeCell:
        extra.pop("attachments", None)
    return cls(source=cell.source, metadata=copy.deepcopy(cell.metadata), extra=extra)  # type: ignore[return-value]


def copy_cell(cell: Cell) -> Cell:
    """Deep, independent copy of ``cell`` with execution state reset."""

    duplicate = copy.deepcopy(cell)
    if isinstance(duplicate, CodeCell):
        duplicate.reset_execution()
    if "id" in duplicate.extra:
        duplicate.extra["id"] = uuid4().hex[:8]
    return duplicate


def detect_source_style(payload: Mapping[str, Any]) -> SourceStyle:
    """Report how a persisted notebook stores its cell sources.

    Any fragment list means "lines"; only string sources mean "string". A
    notebook without sources follows the Jupyter convention of line lists.
    """

    cells = payload.get("cells") if isinstance(payload, Mapping) else None
    sources = [cell.get("source") for cell in cells or [] if isinstance(cell, Mapping)]
    if any(isinstance(source, list) for source in sources):
        return "lines"
    if any(isinstance(source, str) for source in sources):
        return "string"
    return "lines"


def cell_from_dict(payload: Mapping[str, Any], *, index: int | None = None) -> Cell:
    where = f" at index {index}" if index is not None else ""
    if not isinstance(payload, Mapping):
        raise NotebookEditorError(SCHEMA_VIOLATION, f"Cell{where} must be an object")
    cell_type = payload.get("cell_type")
    if cell_type not in _CELL_CLASSES:
        raise NotebookEditorError(SCHEMA_VIOLATION, f"Invalid cell_type{where}: {cell_type}")
    if "source" not in payload:
        raise NotebookEditorError(SCHEMA_VIOLATION, f"Missing 'source' in cell{where}")
    source = payload["source"]
    fragments_ok = isinstance(source, list) and all(isinstance(item, str) for item in source)
    if not isinstance(source, str) and not fragments_ok:
        raise NotebookEditorError(SCHEMA_VIOLATION, f"Cell source{where} must be a string or list of strings")
    metadata = payload.get("metadata") or {}
    if not isinstance(metadata, Mapping):
        raise NotebookEditorError(SCHEMA_VIOLATION, f"Cell metadata{where} must be an object")

    extra = {key: copy.deepcopy(value) for key, value in payload.items() if key not in _MODELLED_CELL_KEYS}
    common = {
        "source": normalize_source(source),
        "metadata": copy.deepcopy(dict(metadata)),
        "extra": extra,
    }
    if cell_type != "code":
        return _CELL_CLASSES[cell_type](**common)  # type: ignore[return-value]

    outputs = payload.get("outputs") or []
    if not isinstance(outputs, list):
        raise NotebookEditorError(SCHEMA_VIOLATION, f"Cell outputs{where} must be an array")
    return CodeCell(
        execution_count=payload.get("execution_count"),
        outputs=copy.deepcopy(outputs),
        **common,
    )


@dataclass(slots=True)
class Notebook:
    """In-memory notebook: ordered cells, document metadata, format version."""

    cells: list[Cell] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)
    nbformat: int = NBFORMAT_MAJOR
    nbformat_minor: int = NBFORMAT_MINOR
    source_style: SourceStyle = "lines"

    @classmethod
    def empty(cls) -> "Notebook":
        return cls(cells=[], metadata=default_notebook_metadata())

    def __len__(self) -> int:
        return len(self.cells)

    def to_dict(self) -> dict[str, Any]:
        """Encode with canonical string sources; the store decides on line splitting."""

        return {
            "cells": [cell.to_dict() for cell in self.cells],
            "metadata": copy.deepcopy(self.metadata),
            "nbformat": self.nbformat,
            "nbformat_minor": self.nbformat_minor,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Notebook":
        if not isinstance(payload, Mapping):
            raise NotebookEditorError(SCHEMA_VIOLATION, "Notebook must be a JSON object")
        raw_cells = payload.get("cells", [])
        if not isinstance(raw_cells, list):
            raise NotebookEditorError(SCHEMA_VIOLATION, "'cells' must be an array")
        metadata = payload.get("metadata") or {}
        if not isinstance(metadata, Mapping):
            raise NotebookEditorError(SCHEMA_VIOLATION, "'metadata' must be an object")
        nbformat = payload.get("nbformat", NBFORMAT_MAJOR)
        if nbformat != NBFORMAT_MAJOR:
            raise NotebookEditorError(
                SCHEMA_VIOLATION,
                f"Unsupported nbformat {nbformat!r}; only version {NBFORMAT_MAJOR} is supported",
                details={"nbformat": nbformat},
            )
        nbformat_minor = payload.get("nbformat_minor", NBFORMAT_MINOR)
        if not isinstance(nbformat_minor, int):
            raise NotebookEditorError(SCHEMA_VIOLATION, "'nbformat_minor' must be an integer")

        cells = [cell_from_dict(item, index=index) for index, item in enumerate(raw_cells)]
        return cls(
            cells=cells,
            metadata=copy.deepcopy(dict(metadata)),
            nbformat=nbformat,
            nbformat_minor=nbformat_minor,
            source_style=detect_source_style(payload),
        )


@dataclass(slots=True)
class OperationResult:
    """Outcome of a mutation: the notebook to persist plus a readable summary."""

    notebook: Notebook
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"message": self.message}
        payload.update(self.details)
        return payload


@dataclass(slots=True)
class ValidationResult:
    """Result of a structural notebook check."""

    valid: bool = True
    reason: str = "Notebook validation passed"
    errors: list[dict[str, Any]] = field(default_factory=list)

    def add_error(self, message: str, *, path: Sequence[Any] = ()) -> None:
        if self.valid:
            self.reason = f"Validation failed: {message}"
        self.valid = False
        self.errors.append({"message": message, "path": list(path)})

    def to_dict(self) -> dict[str, Any]:
        return {
            "valid": self.valid,
            "reason": self.reason,
            "errors": list(self.errors),
        }
