from __future__ import annotations

import pytest

from notebook_editor import queries
from notebook_editor.errors import INDEX_OUT_OF_BOUNDS, NotebookEditorError
from notebook_editor.models import CodeCell, Notebook, default_notebook_metadata, new_cell


def _notebook(*cells: tuple[str, str], metadata: dict | None = None) -> Notebook:
    return Notebook(
        cells=[new_cell(cell_type, source) for cell_type, source in cells],
        metadata=default_notebook_metadata() if metadata is None else metadata,
    )


def test_read_cell_returns_source() -> None:
    notebook = _notebook(("code", "x = 1"), ("markdown", "text"))

    assert queries.read_cell(notebook, 1) == "text"

    with pytest.raises(NotebookEditorError) as excinfo:
        queries.read_cell(notebook, 2)
    assert excinfo.value.code == INDEX_OUT_OF_BOUNDS


def test_read_cell_metadata_returns_a_copy() -> None:
    notebook = _notebook(("code", "x"))
    notebook.cells[0].metadata["tags"] = ["a"]

    metadata = queries.read_cell_metadata(notebook, 0)
    metadata["tags"].append("b")

    assert notebook.cells[0].metadata == {"tags": ["a"]}


def test_read_cell_outputs_defaults_to_empty() -> None:
    notebook = Notebook(
        cells=[
            new_cell("markdown", "m"),
            CodeCell(source="1", outputs=[{"output_type": "execute_result"}]),
        ]
    )

    assert queries.read_cell_outputs(notebook, 0) == []
    assert queries.read_cell_outputs(notebook, 1) == [{"output_type": "execute_result"}]


def test_cell_count_and_notebook_metadata() -> None:
    notebook = _notebook(("code", "a"), ("raw", "b"))

    assert queries.cell_count(notebook) == 2
    assert queries.read_notebook_metadata(notebook)["kernelspec"]["name"] == "python3"


@pytest.mark.parametrize(
    ("cell_type", "source", "title"),
    [
        ("markdown", "# Title", "Title"),
        ("markdown", "Intro text\n## Section two\n# Later", "Section two"),
        ("markdown", "no heading here", None),
        ("code", "import os\n\ndef load(path):\n    return path", "def load()"),
        ("code", "class Parser(Base):\n    pass", "class Parser"),
        ("code", "class Holder:\n    def method(self):\n        pass", "class Holder"),
        ("code", "x = 1", None),
        ("raw", "# not a heading for raw", None),
    ],
)
def test_outline_titles(cell_type: str, source: str, title: str | None) -> None:
    notebook = _notebook((cell_type, source))

    (entry,) = queries.outline(notebook)

    assert entry.title == title
    assert entry.cell_type == cell_type


def test_outline_labels_and_format() -> None:
    notebook = _notebook(("markdown", "# Title\nbody"), ("code", "x = 1"))

    entries = queries.outline(notebook)

    assert entries[0].label == "Cell 0 (markdown) - Title (2 lines)"
    assert entries[1].label == "Cell 1 (code) (1 lines)"
    assert queries.format_outline(entries) == "Cell 0 (markdown) - Title (2 lines)\nCell 1 (code) (1 lines)"
    assert entries[0].to_dict()["line_count"] == 2


def test_search_reports_matching_lines() -> None:
    notebook = _notebook(
        ("code", "import numpy as np\n  value = np.array([1])\nprint(value)"),
        ("markdown", "Nothing relevant"),
    )

    hits = queries.search(notebook, "np.")

    assert len(hits) == 1
    hit = hits[0].to_dict()
    assert hit["cell_index"] == 0
    assert hit["cell_type"] == "code"
    assert hit["matches"] == [{"line_number": 2, "content": "value = np.array([1])"}]


def test_search_case_sensitivity() -> None:
    notebook = _notebook(("markdown", "Hello World"), ("code", "hello again"))

    assert [hit.cell_index for hit in queries.search(notebook, "Hello", case_sensitive=True)] == [0]
    assert [hit.cell_index for hit in queries.search(notebook, "HELLO")] == [0, 1]


def test_search_across_newline_matches_cell_without_lines() -> None:
    notebook = _notebook(("code", "first\nsecond"))

    (hit,) = queries.search(notebook, "first\nsecond")

    assert hit.matches == []


def test_notebook_info_counts_and_identifiers() -> None:
    notebook = _notebook(("code", "a"), ("code", "b"), ("markdown", "c"), ("raw", "d"))

    info = queries.notebook_info(notebook)

    assert info == {
        "cell_count": 4,
        "code_cells": 2,
        "markdown_cells": 1,
        "raw_cells": 1,
        "nbformat": 4,
        "nbformat_minor": 4,
        "kernel": "python3",
        "language": "python",
    }


def test_notebook_info_defaults_to_unknown() -> None:
    notebook = _notebook(metadata={"kernelspec": "not-a-mapping"})

    info = queries.notebook_info(notebook)

    assert info["kernel"] == queries.UNKNOWN
    assert info["language"] == queries.UNKNOWN
    assert info["cell_count"] == 0
