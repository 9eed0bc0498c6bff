"""File-backed persistence for notebooks with per-path locking."""

from __future__ import annotations

import os
import sys
import tempfile
import weakref
from collections.abc import Callable, Iterator
from contextlib import ExitStack, contextmanager
from functools import wraps
from pathlib import Path
from threading import RLock
from typing import Any, TypeVar

import nbformat
from nbformat.reader import NotJSONError, parse_json

from . import metrics
from .config import Config
from .errors import (
    ALREADY_EXISTS,
    INTERNAL_ERROR,
    NOT_FOUND,
    PATH_NOT_ALLOWED,
    SCHEMA_VIOLATION,
    VALIDATION_ERROR,
    NotebookEditorError,
)
from .logging import get_logger
from .models import Notebook, OperationResult, detect_source_style
from .validation import validate_notebook

logger = get_logger(__name__)

NOTEBOOK_SUFFIX = ".ipynb"

T = TypeVar("T")


class StoreError(NotebookEditorError):
    """Raised when notebook files cannot be resolved, read or written."""


def synchronized(method):
    @wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._lock:
            return method(self, *args, **kwargs)

    return wrapper


class NotebookStore:
    """Loads and atomically writes ``.ipynb`` files under the configured roots.

    Each resolved path has its own re-entrant lock; :meth:`update` and
    :meth:`read` hold it for the whole load-apply-store cycle so concurrent
    tool calls against one notebook never interleave. A path's lock is dropped
    once no call holds it.
    """

    def __init__(self, config: Config) -> None:
        self._root = config.root_dir
        self._allowed_roots = tuple(config.allowed_roots)
        self._source_style = config.source_style
        self._lock = RLock()
        self._path_locks: weakref.WeakValueDictionary[Path, RLock] = weakref.WeakValueDictionary()

    @property
    def root_dir(self) -> Path:
        return self._root

    @property
    def allowed_roots(self) -> tuple[Path, ...]:
        return self._allowed_roots

    # ------------------------------------------------------------------
    # Path handling
    # ------------------------------------------------------------------

    def resolve(self, path: str, *, require_notebook: bool = True) -> Path:
        if not isinstance(path, str) or not path.strip():
            raise StoreError(VALIDATION_ERROR, "Path must be a non-empty string")
        candidate = Path(path.strip()).expanduser()
        if not candidate.is_absolute():
            candidate = self._root / candidate
        resolved = candidate.resolve()
        if not self.is_allowed(resolved):
            raise StoreError(
                PATH_NOT_ALLOWED,
                f"Path {path} is outside the allowed roots",
                details={"path": str(resolved), "allowed_roots": [str(root) for root in self._allowed_roots]},
            )
        if require_notebook and resolved.suffix != NOTEBOOK_SUFFIX:
            raise StoreError(
                VALIDATION_ERROR,
                f"Notebook path must end with {NOTEBOOK_SUFFIX}",
                details={"path": str(resolved)},
            )
        return resolved

    def is_allowed(self, resolved: Path) -> bool:
        if not self._allowed_roots:
            return True
        return any(resolved == root or resolved.is_relative_to(root) for root in self._allowed_roots)

    @synchronized
    def lock_for(self, resolved: Path) -> RLock:
        lock = self._path_locks.get(resolved)
        if lock is None:
            lock = RLock()
            self._path_locks[resolved] = lock
        return lock

    @contextmanager
    def _locked(self, *paths: Path) -> Iterator[None]:
        # Fixed acquisition order keeps two-path operations deadlock free.
        with ExitStack() as stack:
            for resolved in sorted(set(paths)):
                stack.enter_context(self.lock_for(resolved))
            yield

    # ------------------------------------------------------------------
    # Load / store
    # ------------------------------------------------------------------

    def load_raw(self, path: str) -> Any:
        """Return the parsed JSON payload without decoding it into a model."""

        resolved = self.resolve(path)
        with self._locked(resolved):
            return self._parse(resolved, self._read_text(resolved))

    def load(self, path: str) -> Notebook:
        resolved = self.resolve(path)
        with self._locked(resolved):
            return self._decode(resolved, self._read_text(resolved))

    def read(self, path: str, reader: Callable[[Notebook], T]) -> T:
        """Apply ``reader`` to the current notebook while holding its lock."""

        resolved = self.resolve(path)
        with self._locked(resolved):
            notebook = self._decode(resolved, self._read_text(resolved))
            return reader(notebook)

    def update(self, path: str, mutate: Callable[[Notebook], OperationResult]) -> OperationResult:
        """Run one load-mutate-store transaction.

        Nothing is written when ``mutate`` raises.
        """

        resolved = self.resolve(path)
        with self._locked(resolved):
            notebook = self._decode(resolved, self._read_text(resolved))
            result = mutate(notebook)
            self._write(resolved, result.notebook)
        return result

    # ------------------------------------------------------------------
    # File lifecycle
    # ------------------------------------------------------------------

    def create(self, path: str, notebook: Notebook) -> Path:
        resolved = self.resolve(path)
        with self._locked(resolved):
            if resolved.exists():
                raise StoreError(ALREADY_EXISTS, f"Notebook already exists: {path}", details={"path": str(resolved)})
            self._ensure_parent(resolved)
            self._write(resolved, notebook)
        logger.info("notebook.store.create", extra={"context": {"path": str(resolved)}})
        return resolved

    def delete(self, path: str) -> Path:
        resolved = self.resolve(path)
        with self._locked(resolved):
            if not resolved.is_file():
                raise StoreError(NOT_FOUND, f"Notebook not found: {path}", details={"path": str(resolved)})
            try:
                resolved.unlink()
            except OSError as exc:
                raise StoreError(INTERNAL_ERROR, f"Unable to delete notebook: {path}", details={"path": str(resolved)}) from exc
        logger.info("notebook.store.delete", extra={"context": {"path": str(resolved)}})
        return resolved

    def rename(self, old_path: str, new_path: str) -> tuple[Path, Path]:
        source = self.resolve(old_path)
        target = self.resolve(new_path)
        with self._locked(source, target):
            if not source.is_file():
                raise StoreError(NOT_FOUND, f"Notebook not found: {old_path}", details={"path": str(source)})
            if target.exists():
                raise StoreError(ALREADY_EXISTS, f"Notebook already exists: {new_path}", details={"path": str(target)})
            self._ensure_parent(target)
            try:
                os.replace(source, target)
            except OSError as exc:
                raise StoreError(
                    INTERNAL_ERROR,
                    f"Unable to rename notebook {old_path} to {new_path}",
                    details={"old_path": str(source), "new_path": str(target)},
                ) from exc
        logger.info("notebook.store.rename", extra={"context": {"old_path": str(source), "new_path": str(target)}})
        return source, target

    def describe_path(self, path: str) -> dict[str, Any]:
        """Report how the server sees ``path`` without touching the file."""

        if not isinstance(path, str) or not path.strip():
            raise StoreError(VALIDATION_ERROR, "Path must be a non-empty string")
        raw = Path(path.strip()).expanduser()
        absolute = (raw if raw.is_absolute() else self._root / raw).resolve()
        return {
            "path": path,
            "absolute_path": str(absolute),
            "exists": absolute.exists(),
            "is_file": absolute.is_file(),
            "is_directory": absolute.is_dir(),
            "dirname": str(absolute.parent),
            "basename": absolute.name,
            "extname": absolute.suffix,
            "is_notebook": absolute.suffix == NOTEBOOK_SUFFIX,
            "allowed": self.is_allowed(absolute),
            "root_dir": str(self._root),
            "allowed_roots": [str(root) for root in self._allowed_roots],
            "os_path_style": "windows" if os.name == "nt" else "posix",
            "platform": sys.platform,
        }

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _read_text(self, resolved: Path) -> str:
        if not resolved.is_file():
            raise StoreError(NOT_FOUND, f"Notebook not found: {resolved}", details={"path": str(resolved)})
        try:
            return resolved.read_text(encoding="utf-8")
        except OSError as exc:
            raise StoreError(INTERNAL_ERROR, f"Unable to read notebook: {resolved}", details={"path": str(resolved)}) from exc

    def _parse(self, resolved: Path, text: str) -> Any:
        try:
            return parse_json(text)
        except NotJSONError as exc:
            raise StoreError(SCHEMA_VIOLATION, "Notebook is not valid JSON", details={"path": str(resolved)}) from exc

    def _decode(self, resolved: Path, text: str) -> Notebook:
        """Decode a notebook file into the model.

        The raw payload is checked first so a malformed file surfaces as the
        same message ``notebook_validate`` reports; nbformat then rejoins line
        lists in sources and outputs.
        """

        payload = self._parse(resolved, text)
        check = validate_notebook(payload)
        if not check.valid:
            raise StoreError(SCHEMA_VIOLATION, check.reason, details={"path": str(resolved), "errors": check.errors})
        try:
            node = nbformat.reads(text, as_version=nbformat.NO_CONVERT)
        except (AttributeError, TypeError, ValueError) as exc:
            raise StoreError(
                SCHEMA_VIOLATION,
                f"Notebook could not be decoded: {exc}",
                details={"path": str(resolved)},
            ) from exc
        notebook = Notebook.from_dict(node)
        notebook.source_style = detect_source_style(payload)
        return notebook

    def _encode(self, notebook: Notebook) -> str:
        style = notebook.source_style if self._source_style == "preserve" else self._source_style
        node = nbformat.from_dict(notebook.to_dict())
        text = nbformat.writes(node, version=nbformat.NO_CONVERT, split_lines=style == "lines")
        return text if text.endswith("\n") else text + "\n"

    def _write(self, resolved: Path, notebook: Notebook) -> None:
        text = self._encode(notebook)
        try:
            fd, temp_name = tempfile.mkstemp(dir=resolved.parent, prefix=f".{resolved.name}.", suffix=".tmp")
        except OSError as exc:
            raise StoreError(INTERNAL_ERROR, f"Unable to write notebook: {resolved}", details={"path": str(resolved)}) from exc
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(text)
            os.replace(temp_name, resolved)
        except OSError as exc:
            Path(temp_name).unlink(missing_ok=True)
            raise StoreError(INTERNAL_ERROR, f"Unable to write notebook: {resolved}", details={"path": str(resolved)}) from exc
        metrics.record_write()
        logger.debug(
            "notebook.store.write",
            extra={"context": {"path": str(resolved), "cells": len(notebook.cells), "bytes": len(text)}},
        )

    def _ensure_parent(self, resolved: Path) -> None:
        try:
            resolved.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StoreError(
                INTERNAL_ERROR,
                f"Unable to create directory: {resolved.parent}",
                details={"path": str(resolved.parent)},
            ) from exc
