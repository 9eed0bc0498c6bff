from __future__ import annotations

import gc
import json
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest

from notebook_editor import load_config, metrics, operations
from notebook_editor.errors import (
    ALREADY_EXISTS,
    INDEX_OUT_OF_BOUNDS,
    NOT_FOUND,
    PATH_NOT_ALLOWED,
    SCHEMA_VIOLATION,
    VALIDATION_ERROR,
    NotebookEditorError,
)
from notebook_editor.store import NotebookStore, StoreError


def _store(tmp_path: Path, *extra_argv: str) -> NotebookStore:
    config = load_config(argv=["--root-dir", str(tmp_path), *extra_argv], environ={})
    return NotebookStore(config)


def test_create_writes_empty_notebook(tmp_path: Path) -> None:
    store = _store(tmp_path)

    resolved = store.create("nested/dir/demo.ipynb", operations.create_notebook())

    assert resolved == (tmp_path / "nested" / "dir" / "demo.ipynb").resolve()
    text = resolved.read_text(encoding="utf-8")
    assert text.endswith("}\n")
    assert '\n "cells": []' in text
    payload = json.loads(text)
    assert list(payload) == ["cells", "metadata", "nbformat", "nbformat_minor"]
    assert payload["metadata"]["kernelspec"]["name"] == "python3"


def test_create_refuses_to_overwrite(tmp_path: Path) -> None:
    store = _store(tmp_path)
    store.create("demo.ipynb", operations.create_notebook())

    with pytest.raises(StoreError) as excinfo:
        store.create("demo.ipynb", operations.create_notebook())

    assert excinfo.value.code == ALREADY_EXISTS


@pytest.mark.parametrize("path", ["notes.txt", "", "   "])
def test_resolve_rejects_non_notebook_paths(tmp_path: Path, path: str) -> None:
    store = _store(tmp_path)

    with pytest.raises(StoreError) as excinfo:
        store.resolve(path)

    assert excinfo.value.code == VALIDATION_ERROR


def test_allowed_roots_are_enforced(tmp_path: Path) -> None:
    allowed = tmp_path / "allowed"
    store = _store(tmp_path, "--allowed-roots", str(allowed))

    assert store.resolve("allowed/ok.ipynb") == (allowed / "ok.ipynb").resolve()
    for path in ("outside.ipynb", "allowed/../escape.ipynb", str(tmp_path.parent / "x.ipynb")):
        with pytest.raises(StoreError) as excinfo:
            store.resolve(path)
        assert excinfo.value.code == PATH_NOT_ALLOWED


def test_update_persists_mutation(tmp_path: Path) -> None:
    store = _store(tmp_path)
    store.create("demo.ipynb", operations.create_notebook())

    result = store.update("demo.ipynb", lambda nb: operations.insert_cell(nb, -1, "code", "print(1)\n"))

    assert result.message == "Added code cell at index 0"
    reloaded = store.load("demo.ipynb")
    assert [cell.source for cell in reloaded.cells] == ["print(1)\n"]


def test_failed_update_writes_nothing(tmp_path: Path) -> None:
    store = _store(tmp_path)
    path = store.create("demo.ipynb", operations.create_notebook())
    before = path.read_bytes()

    with pytest.raises(NotebookEditorError) as excinfo:
        store.update("demo.ipynb", lambda nb: operations.delete_cell(nb, 0))

    assert excinfo.value.code == INDEX_OUT_OF_BOUNDS
    assert path.read_bytes() == before
    assert sorted(p.name for p in tmp_path.iterdir()) == ["demo.ipynb"]


def test_load_missing_and_corrupt_files(tmp_path: Path) -> None:
    store = _store(tmp_path)

    with pytest.raises(StoreError) as missing:
        store.load("absent.ipynb")
    assert missing.value.code == NOT_FOUND

    (tmp_path / "broken.ipynb").write_text("{not json", encoding="utf-8")
    with pytest.raises(StoreError) as broken:
        store.load("broken.ipynb")
    assert broken.value.code == SCHEMA_VIOLATION


def test_preserve_keeps_fragment_sources(tmp_path: Path) -> None:
    payload = {
        "cells": [{"cell_type": "markdown", "metadata": {}, "source": ["# Title\n", "body"]}],
        "metadata": {},
        "nbformat": 4,
        "nbformat_minor": 5,
    }
    (tmp_path / "lines.ipynb").write_text(json.dumps(payload), encoding="utf-8")
    store = _store(tmp_path)

    store.update("lines.ipynb", lambda nb: operations.edit_cell_metadata(nb, 0, {"tag": 1}))

    written = json.loads((tmp_path / "lines.ipynb").read_text(encoding="utf-8"))
    assert written["cells"][0]["source"] == ["# Title\n", "body"]
    assert written["cells"][0]["metadata"] == {"tag": 1}
    assert written["nbformat_minor"] == 5


@pytest.mark.parametrize(
    ("style", "expected"),
    [("lines", ["a\n", "b"]), ("string", "a\nb")],
)
def test_source_style_override(tmp_path: Path, style: str, expected: object) -> None:
    store = _store(tmp_path, "--source-style", style)
    store.create("demo.ipynb", operations.create_notebook())

    store.update("demo.ipynb", lambda nb: operations.insert_cell(nb, -1, "code", "a\nb"))

    written = json.loads((tmp_path / "demo.ipynb").read_text(encoding="utf-8"))
    assert written["cells"][0]["source"] == expected


def test_fragment_outputs_survive_a_rewrite(tmp_path: Path) -> None:
    payload = {
        "cells": [
            {
                "cell_type": "code",
                "execution_count": 1,
                "metadata": {},
                "outputs": [{"name": "stdout", "output_type": "stream", "text": ["1\n", "2\n"]}],
                "source": ["print(1)\n", "print(2)"],
            }
        ],
        "metadata": {},
        "nbformat": 4,
        "nbformat_minor": 4,
    }
    (tmp_path / "run.ipynb").write_text(json.dumps(payload), encoding="utf-8")
    store = _store(tmp_path)

    loaded = store.load("run.ipynb")
    assert loaded.cells[0].source == "print(1)\nprint(2)"
    assert loaded.cells[0].outputs[0]["text"] == "1\n2\n"

    store.update("run.ipynb", lambda nb: operations.edit_cell_metadata(nb, 0, {"tag": 1}))

    written = json.loads((tmp_path / "run.ipynb").read_text(encoding="utf-8"))
    assert written["cells"][0]["outputs"] == payload["cells"][0]["outputs"]
    assert written["cells"][0]["source"] == ["print(1)\n", "print(2)"]


def test_non_string_source_fragment_is_a_schema_violation(tmp_path: Path) -> None:
    payload = {
        "cells": [{"cell_type": "code", "execution_count": None, "metadata": {}, "outputs": [], "source": ["x = 1\n", 2]}],
        "metadata": {},
        "nbformat": 4,
        "nbformat_minor": 4,
    }
    (tmp_path / "bad.ipynb").write_text(json.dumps(payload), encoding="utf-8")
    store = _store(tmp_path)

    with pytest.raises(StoreError) as excinfo:
        store.load("bad.ipynb")

    assert excinfo.value.code == SCHEMA_VIOLATION
    assert excinfo.value.message == "Validation failed: Cell source at index 0 must be a string or list of strings"


def test_path_locks_are_released_when_unused(tmp_path: Path) -> None:
    store = _store(tmp_path)
    resolved = store.resolve("demo.ipynb")

    lock = store.lock_for(resolved)
    assert store.lock_for(resolved) is lock
    del lock
    gc.collect()

    assert resolved not in store._path_locks


def test_rename_and_delete(tmp_path: Path) -> None:
    store = _store(tmp_path)
    store.create("old.ipynb", operations.create_notebook())
    store.create("taken.ipynb", operations.create_notebook())

    with pytest.raises(StoreError) as taken:
        store.rename("old.ipynb", "taken.ipynb")
    assert taken.value.code == ALREADY_EXISTS

    source, target = store.rename("old.ipynb", "moved/new.ipynb")
    assert not source.exists()
    assert target.is_file()

    with pytest.raises(StoreError) as missing:
        store.rename("old.ipynb", "again.ipynb")
    assert missing.value.code == NOT_FOUND

    store.delete("moved/new.ipynb")
    assert not target.exists()
    with pytest.raises(StoreError) as gone:
        store.delete("moved/new.ipynb")
    assert gone.value.code == NOT_FOUND


def test_describe_path_reports_resolution(tmp_path: Path) -> None:
    store = _store(tmp_path, "--allowed-roots", str(tmp_path / "work"))
    (tmp_path / "work").mkdir()

    context = store.describe_path("work")

    assert context["absolute_path"] == str((tmp_path / "work").resolve())
    assert context["exists"] is True
    assert context["is_directory"] is True
    assert context["is_notebook"] is False
    assert context["allowed"] is True
    assert context["os_path_style"] in {"posix", "windows"}
    assert store.describe_path("elsewhere/x.ipynb")["allowed"] is False


def test_concurrent_updates_are_serialised(tmp_path: Path) -> None:
    store = _store(tmp_path)
    store.create("busy.ipynb", operations.create_notebook())

    def _append(position: int) -> None:
        store.update("busy.ipynb", lambda nb: operations.insert_cell(nb, len(nb) - 1, "code", str(position)))

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(_append, range(24)))

    notebook = store.load("busy.ipynb")
    assert sorted(int(cell.source) for cell in notebook.cells) == list(range(24))


def test_writes_are_counted_in_metrics(tmp_path: Path) -> None:
    registry = metrics.MetricsRegistry()
    metrics.install_registry(registry)
    try:
        store = _store(tmp_path)
        store.create("demo.ipynb", operations.create_notebook())
        store.update("demo.ipynb", operations.clear_all_outputs)
    finally:
        metrics.install_registry(None)

    assert registry.snapshot().notebooks_written == 2


def test_cell_without_metadata_mapping_fails_to_load(tmp_path: Path) -> None:
    payload = {
        "cells": [{"cell_type": "markdown", "source": "text"}],
        "metadata": {},
        "nbformat": 4,
        "nbformat_minor": 4,
    }
    (tmp_path / "bare.ipynb").write_text(json.dumps(payload), encoding="utf-8")
    store = _store(tmp_path)

    with pytest.raises(StoreError) as excinfo:
        store.load("bare.ipynb")

    assert excinfo.value.code == SCHEMA_VIOLATION
    assert excinfo.value.message.startswith("Notebook could not be decoded")
