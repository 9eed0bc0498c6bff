"""Centralized error codes and helper utilities."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

__all__ = [
    "INDEX_OUT_OF_BOUNDS",
    "INVALID_CELL_TYPE",
    "SCHEMA_VIOLATION",
    "VALIDATION_ERROR",
    "NOT_FOUND",
    "ALREADY_EXISTS",
    "PATH_NOT_ALLOWED",
    "CONFIG_ERROR",
    "INTERNAL_ERROR",
    "NotebookEditorError",
    "error_payload",
]

INDEX_OUT_OF_BOUNDS = "INDEX_OUT_OF_BOUNDS"
INVALID_CELL_TYPE = "INVALID_CELL_TYPE"
SCHEMA_VIOLATION = "SCHEMA_VIOLATION"
VALIDATION_ERROR = "VALIDATION_ERROR"
NOT_FOUND = "NOT_FOUND"
ALREADY_EXISTS = "ALREADY_EXISTS"
PATH_NOT_ALLOWED = "PATH_NOT_ALLOWED"
CONFIG_ERROR = "CONFIG_ERROR"
INTERNAL_ERROR = "INTERNAL_ERROR"


@dataclass(slots=True)
class NotebookEditorError(Exception):
    """Domain-specific exception carrying an error code and message."""

    code: str
    message: str
    details: Mapping[str, Any] | None = None

    def __str__(self) -> str:  # pragma: no cover - delegation to message
        return self.message

    def to_dict(self) -> dict[str, Any]:
        return error_payload(self.code, self.message, details=self.details)


def error_payload(code: str, message: str, *, details: Mapping[str, Any] | None = None) -> dict[str, Any]:
    """Build a structured error payload used in tool responses."""

    payload: dict[str, Any] = {
        "code": code,
        "message": message,
    }
    if details:
        payload["details"] = dict(details)
    return payload
