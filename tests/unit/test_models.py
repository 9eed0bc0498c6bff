from __future__ import annotations

import pytest

from notebook_editor import models
from notebook_editor.errors import INVALID_CELL_TYPE, SCHEMA_VIOLATION, NotebookEditorError


def test_new_code_cell_has_fresh_execution_state() -> None:
    cell = models.new_cell("code", "print(1)")

    assert isinstance(cell, models.CodeCell)
    assert cell.execution_count is None
    assert cell.outputs == []
    assert cell.metadata == {}
    assert cell.to_dict() == {
        "cell_type": "code",
        "metadata": {},
        "source": "print(1)",
        "execution_count": None,
        "outputs": [],
    }


@pytest.mark.parametrize("cell_type", ["markdown", "raw"])
def test_non_code_cells_never_emit_execution_fields(cell_type: str) -> None:
    cell = models.new_cell(cell_type, ["# Heading\n", "body"])

    payload = cell.to_dict()

    assert cell.source == "# Heading\nbody"
    assert payload["cell_type"] == cell_type
    assert "outputs" not in payload
    assert "execution_count" not in payload


def test_new_cell_rejects_unknown_type() -> None:
    with pytest.raises(NotebookEditorError) as excinfo:
        models.new_cell("heading", "x")

    assert excinfo.value.code == INVALID_CELL_TYPE


def test_retype_out_of_code_and_back_never_restores_outputs() -> None:
    cell = models.CodeCell(
        source="print(1)",
        metadata={"tags": ["keep"]},
        execution_count=4,
        outputs=[{"output_type": "stream", "name": "stdout", "text": "1\n"}],
    )

    markdown = models.retype_cell(cell, "markdown")
    assert isinstance(markdown, models.MarkdownCell)
    assert markdown.source == "print(1)"
    assert markdown.metadata == {"tags": ["keep"]}
    assert "outputs" not in markdown.to_dict()

    code_again = models.retype_cell(markdown, "code")
    assert isinstance(code_again, models.CodeCell)
    assert code_again.outputs == []
    assert code_again.execution_count is None


def test_retype_to_code_drops_attachments() -> None:
    cell = models.MarkdownCell(source="![img](attachment:a.png)", extra={"attachments": {"a.png": {}}, "id": "abc"})

    code = models.retype_cell(cell, "code")

    assert "attachments" not in code.extra
    assert code.extra["id"] == "abc"


def test_copy_cell_is_independent_and_resets_execution() -> None:
    original = models.CodeCell(
        source="x",
        metadata={"nested": {"value": 1}},
        extra={"id": "cell-1"},
        execution_count=2,
        outputs=[{"output_type": "execute_result"}],
    )

    duplicate = models.copy_cell(original)
    duplicate.metadata["nested"]["value"] = 99

    assert original.metadata["nested"]["value"] == 1
    assert original.outputs == [{"output_type": "execute_result"}]
    assert duplicate.outputs == []
    assert duplicate.execution_count is None
    assert duplicate.extra["id"] != "cell-1"


def test_empty_notebook_defaults() -> None:
    notebook = models.Notebook.empty()

    payload = notebook.to_dict()

    assert list(payload) == ["cells", "metadata", "nbformat", "nbformat_minor"]
    assert payload["cells"] == []
    assert payload["nbformat"] == 4
    assert payload["nbformat_minor"] == 4
    assert payload["metadata"]["kernelspec"]["name"] == "python3"
    assert payload["metadata"]["language_info"]["name"] == "python"


def test_round_trip_preserves_untouched_fields() -> None:
    payload = {
        "cells": [
            {
                "cell_type": "code",
                "execution_count": 3,
                "id": "a1b2c3",
                "metadata": {"collapsed": False},
                "outputs": [{"output_type": "stream", "name": "stdout", "text": ["1\n"]}],
                "source": ["print(1)\n", "x = 2"],
            },
            {
                "cell_type": "markdown",
                "attachments": {"img.png": {"image/png": "AAAA"}},
                "metadata": {},
                "source": ["# Title\n"],
            },
        ],
        "metadata": {"kernelspec": {"name": "python3"}, "custom": [1, 2]},
        "nbformat": 4,
        "nbformat_minor": 5,
    }

    notebook = models.Notebook.from_dict(payload)

    assert notebook.source_style == "lines"
    assert notebook.cells[0].source == "print(1)\nx = 2"
    encoded = notebook.to_dict()
    assert encoded["cells"][0]["source"] == "print(1)\nx = 2"
    assert encoded["cells"][1]["source"] == "# Title\n"
    for original, written in zip(payload["cells"], encoded["cells"]):
        assert {key: value for key, value in written.items() if key != "source"} == {
            key: value for key, value in original.items() if key != "source"
        }
    assert encoded["metadata"] == payload["metadata"]
    assert encoded["nbformat_minor"] == 5


def test_string_sources_stay_strings() -> None:
    payload = {
        "cells": [{"cell_type": "raw", "metadata": {}, "source": "plain\ntext"}],
        "metadata": {},
        "nbformat": 4,
        "nbformat_minor": 4,
    }

    notebook = models.Notebook.from_dict(payload)

    assert notebook.source_style == "string"
    assert notebook.to_dict() == payload


@pytest.mark.parametrize(
    "payload",
    [
        {"cells": [], "metadata": {}, "nbformat": 3, "nbformat_minor": 0},
        {"cells": [{"cell_type": "heading", "source": ""}], "metadata": {}, "nbformat": 4, "nbformat_minor": 4},
        {"cells": [{"cell_type": "code"}], "metadata": {}, "nbformat": 4, "nbformat_minor": 4},
        {"cells": "nope", "metadata": {}, "nbformat": 4, "nbformat_minor": 4},
        {"cells": [{"cell_type": "code", "metadata": {}, "source": ["x = 1\n", 2]}], "metadata": {}, "nbformat": 4, "nbformat_minor": 4},
        ["not", "a", "notebook"],
    ],
)
def test_from_dict_rejects_malformed_payloads(payload) -> None:
    with pytest.raises(NotebookEditorError) as excinfo:
        models.Notebook.from_dict(payload)

    assert excinfo.value.code == SCHEMA_VIOLATION


def test_operation_result_flattens_details() -> None:
    result = models.OperationResult(models.Notebook.empty(), "Deleted cell 2", {"index": 2})

    assert result.to_dict() == {"message": "Deleted cell 2", "index": 2}


def test_validation_result_reason_uses_first_error() -> None:
    result = models.ValidationResult()
    assert result.to_dict() == {"valid": True, "reason": "Notebook validation passed", "errors": []}

    result.add_error("first problem", path=["cells"])
    result.add_error("second problem")

    assert result.valid is False
    assert result.reason == "Validation failed: first problem"
    assert result.errors == [
        {"message": "first problem", "path": ["cells"]},
        {"message": "second problem", "path": []},
    ]


def test_non_string_source_fragment_is_rejected_with_its_index() -> None:
    with pytest.raises(NotebookEditorError) as excinfo:
        models.cell_from_dict({"cell_type": "code", "metadata": {}, "source": ["x = 1\n", 2]}, index=0)

    assert excinfo.value.code == SCHEMA_VIOLATION
    assert excinfo.value.message == "Cell source at index 0 must be a string or list of strings"


@pytest.mark.parametrize(
    ("sources", "expected"),
    [
        (["a", ["b\n", "c"]], "lines"),
        (["a", "b"], "string"),
        ([], "lines"),
    ],
)
def test_detect_source_style(sources: list, expected: str) -> None:
    payload = {"cells": [{"cell_type": "raw", "metadata": {}, "source": source} for source in sources]}

    assert models.detect_source_style(payload) == expected
