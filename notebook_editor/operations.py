"""Index-addressed mutations applied to an in-memory notebook.

Every operation validates its arguments against the current notebook shape
before touching it, so a raised :class:`NotebookEditorError` always leaves the
notebook exactly as it was received.
"""

from __future__ import annotations

from typing import Any, Mapping, Sequence

from .errors import (
    INDEX_OUT_OF_BOUNDS,
    INVALID_CELL_TYPE,
    VALIDATION_ERROR,
    NotebookEditorError,
)
from .logging import get_logger
from .models import (
    CodeCell,
    Notebook,
    OperationResult,
    copy_cell,
    new_cell,
    retype_cell,
)
from .source import source_lines

__all__ = [
    "bulk_insert_cells",
    "change_cell_type",
    "check_index",
    "clear_all_outputs",
    "clear_cell_outputs",
    "create_notebook",
    "delete_cell",
    "duplicate_cell",
    "edit_cell_metadata",
    "edit_cell_outputs",
    "edit_notebook_metadata",
    "insert_cell",
    "merge_cells",
    "move_cell",
    "replace_source",
    "split_cell",
]

logger = get_logger(__name__)


def check_index(notebook: Notebook, index: int, *, label: str = "Cell index") -> int:
    if not isinstance(index, int) or isinstance(index, bool):
        raise NotebookEditorError(VALIDATION_ERROR, f"{label} must be an integer")
    if index < 0 or index >= len(notebook.cells):
        raise NotebookEditorError(
            INDEX_OUT_OF_BOUNDS,
            f"{label} {index} out of bounds",
            details={"index": index, "cell_count": len(notebook.cells)},
        )
    return index


def _coerce_mapping(value: Any, field_name: str) -> dict[str, Any]:
    if not isinstance(value, Mapping):
        raise NotebookEditorError(VALIDATION_ERROR, f"{field_name} must be an object")
    return dict(value)


def _insert_position(notebook: Notebook, index: int) -> int:
    """Resolve the anchor ``index`` to the position new cells will occupy.

    The anchor itself is not bounds-checked; out-of-range anchors land where
    list insertion puts them.
    """

    if not isinstance(index, int) or isinstance(index, bool):
        raise NotebookEditorError(VALIDATION_ERROR, "Insert index must be an integer")
    position = index + 1
    size = len(notebook.cells)
    if position < 0:
        return max(size + position, 0)
    return min(position, size)


def create_notebook() -> Notebook:
    return Notebook.empty()


def insert_cell(notebook: Notebook, index: int, cell_type: str, source: str) -> OperationResult:
    """Insert a new cell right after ``index``; ``-1`` inserts at the top."""

    position = _insert_position(notebook, index)
    cell = new_cell(cell_type, source)
    notebook.cells.insert(position, cell)
    logger.debug("notebook.cell.insert", extra={"context": {"position": position, "cell_type": cell_type}})
    return OperationResult(
        notebook,
        f"Added {cell_type} cell at index {position}",
        {"index": position},
    )


def bulk_insert_cells(notebook: Notebook, index: int, cells: Sequence[Mapping[str, Any]]) -> OperationResult:
    """Insert ``cells`` as one contiguous block starting at ``index + 1``."""

    position = _insert_position(notebook, index)
    if isinstance(cells, (str, bytes)) or not isinstance(cells, Sequence):
        raise NotebookEditorError(VALIDATION_ERROR, "Cells must be an array of {cell_type, source} objects")
    built = []
    for offset, entry in enumerate(cells):
        if not isinstance(entry, Mapping):
            raise NotebookEditorError(VALIDATION_ERROR, f"Cell entry {offset} must be an object")
        cell_type = entry.get("cell_type", entry.get("type"))
        try:
            built.append(new_cell(cell_type, entry.get("source", "")))
        except NotebookEditorError as exc:
            raise NotebookEditorError(
                INVALID_CELL_TYPE,
                f"Cell entry {offset}: {exc.message}",
                details={"entry": offset, "cell_type": cell_type},
            ) from exc
    notebook.cells[position:position] = built
    logger.debug("notebook.cell.bulk_insert", extra={"context": {"position": position, "count": len(built)}})
    return OperationResult(
        notebook,
        f"Added {len(built)} cells at index {position}",
        {"index": position, "count": len(built)},
    )


def replace_source(notebook: Notebook, index: int, source: str) -> OperationResult:
    check_index(notebook, index)
    if not isinstance(source, str):
        raise NotebookEditorError(VALIDATION_ERROR, "New source must be a string")
    notebook.cells[index].source = source
    return OperationResult(notebook, f"Updated cell {index}", {"index": index})


def delete_cell(notebook: Notebook, index: int) -> OperationResult:
    check_index(notebook, index)
    del notebook.cells[index]
    return OperationResult(notebook, f"Deleted cell {index}", {"index": index})


def change_cell_type(notebook: Notebook, index: int, new_type: str) -> OperationResult:
    check_index(notebook, index)
    notebook.cells[index] = retype_cell(notebook.cells[index], new_type)
    return OperationResult(
        notebook,
        f"Changed cell {index} type to {new_type}",
        {"index": index, "cell_type": new_type},
    )


def duplicate_cell(notebook: Notebook, index: int, count: int = 1) -> OperationResult:
    """Insert ``count`` independent copies of a cell directly after it.

    Copies of code cells never carry outputs or an execution count.
    """

    check_index(notebook, index)
    if not isinstance(count, int) or isinstance(count, bool) or count < 1:
        raise NotebookEditorError(VALIDATION_ERROR, "Count must be an integer >= 1", details={"count": count})
    original = notebook.cells[index]
    notebook.cells[index + 1 : index + 1] = [copy_cell(original) for _ in range(count)]
    return OperationResult(
        notebook,
        f"Duplicated cell {index} {count} time(s)",
        {"index": index, "count": count},
    )


def move_cell(notebook: Notebook, from_index: int, to_index: int) -> OperationResult:
    """Remove the cell at ``from_index`` and insert it at ``to_index``.

    ``to_index`` addresses the already-shortened sequence.
    """

    check_index(notebook, from_index, label="Source index")
    check_index(notebook, to_index, label="Target index")
    cell = notebook.cells.pop(from_index)
    notebook.cells.insert(to_index, cell)
    return OperationResult(
        notebook,
        f"Moved cell from index {from_index} to {to_index}",
        {"from_index": from_index, "to_index": to_index},
    )


def split_cell(notebook: Notebook, index: int, line_number: int) -> OperationResult:
    """Split a cell so that ``line_number`` starts a new cell of the same type."""

    check_index(notebook, index)
    cell = notebook.cells[index]
    lines = source_lines(cell.source)
    if not isinstance(line_number, int) or isinstance(line_number, bool):
        raise NotebookEditorError(VALIDATION_ERROR, "Line number must be an integer")
    if line_number < 0 or line_number >= len(lines):
        raise NotebookEditorError(
            INDEX_OUT_OF_BOUNDS,
            f"Line number {line_number} out of bounds",
            details={"line_number": line_number, "line_count": len(lines)},
        )
    tail = new_cell(cell.cell_type, "\n".join(lines[line_number:]))
    cell.source = "\n".join(lines[:line_number])
    notebook.cells.insert(index + 1, tail)
    return OperationResult(
        notebook,
        f"Split cell {index} at line {line_number}",
        {"index": index, "line_number": line_number},
    )


def merge_cells(notebook: Notebook, index: int) -> OperationResult:
    """Append the next cell's source to cell ``index`` and drop the next cell.

    The merged cell keeps the type, metadata and execution state of ``index``.
    """

    if not isinstance(index, int) or isinstance(index, bool):
        raise NotebookEditorError(VALIDATION_ERROR, "Cell index must be an integer")
    if index < 0 or index >= len(notebook.cells) - 1:
        raise NotebookEditorError(
            INDEX_OUT_OF_BOUNDS,
            "Cannot merge: cell index out of bounds or no next cell",
            details={"index": index, "cell_count": len(notebook.cells)},
        )
    current = notebook.cells[index]
    following = notebook.cells.pop(index + 1)
    current.source = current.source + "\n" + following.source
    return OperationResult(
        notebook,
        f"Merged cell {index} with cell {index + 1}",
        {"index": index},
    )


def edit_cell_metadata(notebook: Notebook, index: int, metadata: Mapping[str, Any]) -> OperationResult:
    check_index(notebook, index)
    updates = _coerce_mapping(metadata, "Metadata")
    notebook.cells[index].metadata.update(updates)
    return OperationResult(notebook, f"Updated metadata for cell {index}", {"index": index})


def edit_cell_outputs(notebook: Notebook, index: int, outputs: Sequence[Mapping[str, Any]]) -> OperationResult:
    check_index(notebook, index)
    cell = notebook.cells[index]
    if not isinstance(cell, CodeCell):
        raise NotebookEditorError(
            INVALID_CELL_TYPE,
            f"Cell {index} is not a code cell",
            details={"index": index, "cell_type": cell.cell_type},
        )
    if isinstance(outputs, (str, bytes)) or not isinstance(outputs, Sequence):
        raise NotebookEditorError(VALIDATION_ERROR, "Outputs must be an array of objects")
    replacement = [_coerce_mapping(output, f"Output {position}") for position, output in enumerate(outputs)]
    cell.outputs = replacement
    return OperationResult(
        notebook,
        f"Updated outputs for cell {index}",
        {"index": index, "output_count": len(replacement)},
    )


def clear_cell_outputs(notebook: Notebook, index: int) -> OperationResult:
    check_index(notebook, index)
    cell = notebook.cells[index]
    if isinstance(cell, CodeCell):
        cell.reset_execution()
    return OperationResult(notebook, f"Cleared outputs for cell {index}", {"index": index})


def clear_all_outputs(notebook: Notebook) -> OperationResult:
    cleared = 0
    for cell in notebook.cells:
        if isinstance(cell, CodeCell):
            cell.reset_execution()
            cleared += 1
    return OperationResult(notebook, "Cleared all outputs", {"cleared_cells": cleared})


def edit_notebook_metadata(notebook: Notebook, metadata: Mapping[str, Any]) -> OperationResult:
    updates = _coerce_mapping(metadata, "Metadata")
    notebook.metadata.update(updates)
    return OperationResult(notebook, "Updated notebook metadata", {"keys": sorted(updates)})
