"""Conversions between persisted cell sources and canonical text."""

from __future__ import annotations

from typing import Sequence

__all__ = ["normalize_source", "source_lines", "line_count"]


def normalize_source(source: str | Sequence[str]) -> str:
    """Return the canonical string form of a cell source.

    Fragment sequences are concatenated as-is; fragments already carry their
    own line terminators. Re-fragmenting happens only when a notebook is
    written back to disk.
    """

    if isinstance(source, str):
        return source
    return "".join(source)


def source_lines(text: str) -> list[str]:
    return text.split("\n")


def line_count(text: str) -> int:
    return len(source_lines(text))
