"""Process-wide counters for tool calls, error codes and notebook writes.

Tool handlers and the store report into whichever registry is installed; with
none installed every ``record_*`` helper is a no-op. ``format_prometheus``
renders a snapshot for the ``GET {metrics_path}`` route.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from threading import RLock
from time import monotonic
from typing import Iterable, Mapping

_PREFIX = "notebook_editor"

_active_lock = RLock()
_active: "MetricsRegistry | None" = None


@dataclass(frozen=True)
class MetricsSnapshot:
    operations: Mapping[str, int]
    errors: Mapping[str, int]
    notebooks_written: int
    uptime_seconds: float


class MetricsRegistry:
    """Counts tool invocations by name, failures by error code, and file writes."""

    __slots__ = ("_tools", "_codes", "_writes", "_lock", "_started_at")

    def __init__(self) -> None:
        self._tools: Counter[str] = Counter()
        self._codes: Counter[str] = Counter()
        self._writes = 0
        self._lock = RLock()
        self._started_at = monotonic()

    def record_operation(self, name: str, *, count: int = 1) -> None:
        tool = name.strip().lower()
        if tool and count > 0:
            with self._lock:
                self._tools[tool] += count

    def record_error(self, code: str, *, count: int = 1) -> None:
        code = code.strip().upper()
        if code and count > 0:
            with self._lock:
                self._codes[code] += count

    def record_write(self, *, count: int = 1) -> None:
        if count > 0:
            with self._lock:
                self._writes += count

    def snapshot(self) -> MetricsSnapshot:
        """Copy the counters; tools that were never called are absent."""

        with self._lock:
            return MetricsSnapshot(
                operations=dict(self._tools),
                errors=dict(self._codes),
                notebooks_written=self._writes,
                uptime_seconds=max(monotonic() - self._started_at, 0.0),
            )

    def reset(self) -> None:
        with self._lock:
            self._tools.clear()
            self._codes.clear()
            self._writes = 0
            self._started_at = monotonic()


def install_registry(registry: MetricsRegistry | None) -> None:
    """Make ``registry`` the active one; ``None`` turns recording off."""

    global _active
    with _active_lock:
        _active = registry


def get_registry_optional() -> MetricsRegistry | None:
    with _active_lock:
        return _active


def record_operation(name: str, *, count: int = 1) -> None:
    registry = get_registry_optional()
    if registry is not None:
        registry.record_operation(name, count=count)


def record_error(code: str, *, count: int = 1) -> None:
    registry = get_registry_optional()
    if registry is not None:
        registry.record_error(code, count=count)


def record_write(*, count: int = 1) -> None:
    registry = get_registry_optional()
    if registry is not None:
        registry.record_write(count=count)


def _family(name: str, kind: str, help_text: str, samples: Iterable[str]) -> list[str]:
    metric = f"{_PREFIX}_{name}"
    return [f"# HELP {metric} {help_text}", f"# TYPE {metric} {kind}", *(f"{metric}{sample}" for sample in samples)]


def format_prometheus(snapshot: MetricsSnapshot) -> str:
    """Render ``snapshot`` in the Prometheus text exposition format (0.0.4)."""

    calls = [f'{{op="{tool}"}} {value}' for tool, value in sorted(snapshot.operations.items())]
    failures = [f'{{code="{code}"}} {value}' for code, value in sorted(snapshot.errors.items())]
    lines = [
        *_family("ops_total", "counter", "Notebook tool calls by tool name.", calls),
        *_family("errors_total", "counter", "Failed tool calls by error code.", failures),
        *_family("notebooks_written_total", "counter", "Notebook files written to disk.", [f" {snapshot.notebooks_written}"]),
        *_family("uptime_seconds", "gauge", "Seconds since the registry was created or reset.", [f" {snapshot.uptime_seconds:.6f}"]),
    ]
    return "\n".join(lines) + "\n"
