"""Read-only projections over a notebook."""

from __future__ import annotations

import copy
import re
from dataclasses import dataclass, field
from typing import Any

from .models import CELL_TYPES, CodeCell, Notebook
from .operations import check_index
from .source import source_lines

__all__ = [
    "UNKNOWN",
    "LineMatch",
    "OutlineEntry",
    "SearchHit",
    "cell_count",
    "format_outline",
    "notebook_info",
    "outline",
    "read_cell",
    "read_cell_metadata",
    "read_cell_outputs",
    "read_notebook_metadata",
    "search",
]

UNKNOWN = "unknown"

_HEADING_PATTERN = re.compile(r"^#+\s+(.+)", re.MULTILINE)
_DEF_PATTERN = re.compile(r"^def\s+(\w+)", re.MULTILINE)
_CLASS_PATTERN = re.compile(r"^class\s+(\w+)", re.MULTILINE)


@dataclass(slots=True)
class OutlineEntry:
    index: int
    cell_type: str
    line_count: int
    title: str | None = None

    @property
    def label(self) -> str:
        label = f"Cell {self.index} ({self.cell_type})"
        if self.title:
            label += f" - {self.title}"
        return f"{label} ({self.line_count} lines)"

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "cell_type": self.cell_type,
            "title": self.title,
            "line_count": self.line_count,
            "label": self.label,
        }


@dataclass(slots=True)
class LineMatch:
    line_number: int
    content: str

    def to_dict(self) -> dict[str, Any]:
        return {"line_number": self.line_number, "content": self.content}


@dataclass(slots=True)
class SearchHit:
    cell_index: int
    cell_type: str
    matches: list[LineMatch] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "cell_index": self.cell_index,
            "cell_type": self.cell_type,
            "matches": [match.to_dict() for match in self.matches],
        }


def read_cell(notebook: Notebook, index: int) -> str:
    check_index(notebook, index)
    return notebook.cells[index].source


def read_cell_metadata(notebook: Notebook, index: int) -> dict[str, Any]:
    check_index(notebook, index)
    return copy.deepcopy(notebook.cells[index].metadata or {})


def read_cell_outputs(notebook: Notebook, index: int) -> list[dict[str, Any]]:
    check_index(notebook, index)
    cell = notebook.cells[index]
    if isinstance(cell, CodeCell):
        return copy.deepcopy(cell.outputs)
    return []


def read_notebook_metadata(notebook: Notebook) -> dict[str, Any]:
    return copy.deepcopy(notebook.metadata)


def cell_count(notebook: Notebook) -> int:
    return len(notebook.cells)


def _extract_title(cell_type: str, source: str) -> str | None:
    # Lexical scan only: the first matching line wins.
    if cell_type == "markdown":
        heading = _HEADING_PATTERN.search(source)
        return heading.group(1) if heading else None
    if cell_type == "code":
        definition = _DEF_PATTERN.search(source)
        if definition:
            return f"def {definition.group(1)}()"
        klass = _CLASS_PATTERN.search(source)
        if klass:
            return f"class {klass.group(1)}"
    return None


def outline(notebook: Notebook) -> list[OutlineEntry]:
    """Summarise every cell as index, type, best-effort title and line count."""

    return [
        OutlineEntry(
            index=index,
            cell_type=cell.cell_type,
            line_count=len(source_lines(cell.source)),
            title=_extract_title(cell.cell_type, cell.source),
        )
        for index, cell in enumerate(notebook.cells)
    ]


def format_outline(entries: list[OutlineEntry]) -> str:
    return "\n".join(entry.label for entry in entries)


def search(notebook: Notebook, query: str, case_sensitive: bool = False) -> list[SearchHit]:
    """Find cells whose source contains ``query`` as a plain substring.

    Each hit lists the individual lines (1-based, stripped) containing the
    query; a query spanning a newline matches the cell but no single line.
    """

    needle = query if case_sensitive else query.lower()
    hits: list[SearchHit] = []
    for index, cell in enumerate(notebook.cells):
        haystack = cell.source if case_sensitive else cell.source.lower()
        if needle not in haystack:
            continue
        matches = [
            LineMatch(line_number=number, content=line.strip())
            for number, line in enumerate(source_lines(cell.source), start=1)
            if needle in (line if case_sensitive else line.lower())
        ]
        hits.append(SearchHit(cell_index=index, cell_type=cell.cell_type, matches=matches))
    return hits


def notebook_info(notebook: Notebook) -> dict[str, Any]:
    """Aggregate cell counts and kernel/language identifiers."""

    counts = {cell_type: 0 for cell_type in CELL_TYPES}
    for cell in notebook.cells:
        counts[cell.cell_type] += 1

    metadata = notebook.metadata or {}
    kernelspec = metadata.get("kernelspec")
    language_info = metadata.get("language_info")
    kernel = kernelspec.get("name") if isinstance(kernelspec, dict) else None
    language = language_info.get("name") if isinstance(language_info, dict) else None

    return {
        "cell_count": len(notebook.cells),
        "code_cells": counts["code"],
        "markdown_cells": counts["markdown"],
        "raw_cells": counts["raw"],
        "nbformat": notebook.nbformat,
        "nbformat_minor": notebook.nbformat_minor,
        "kernel": kernel or UNKNOWN,
        "language": language or UNKNOWN,
    }
