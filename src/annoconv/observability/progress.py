"""Progress events for long-running read-only scans."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import asdict, dataclass
import logging
from typing import Any, Callable, Iterator

from annoconv.observability.logging import get_logger, log_event


_LOGGER = get_logger("annoconv.progress")

# Number of completed files between two progress events.
PROGRESS_EVERY = 100


@dataclass(frozen=True, slots=True)
class ScanProgress:
    """One progress payload."""

    current: int
    total: int
    percentage: float
    message: str

    @classmethod
    def of(cls, current: int, total: int, message: str) -> ScanProgress:
        percentage = current / total * 100.0 if total > 0 else 0.0
        return cls(current=current, total=total, percentage=percentage, message=message)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


ProgressCallback = Callable[[str, ScanProgress], None]


def should_report(current: int, total: int) -> bool:
    """True every PROGRESS_EVERY files and on the last one."""

    return current == total or current % PROGRESS_EVERY == 0


class ProgressEmitter:
    """Deliver progress payloads to a caller callback under one event name.

    Callback failures are logged and never interrupt the scan.
    """

    def __init__(self, event_name: str, callback: ProgressCallback) -> None:
        self.event_name = event_name
        self._callback = callback

    def _send(self, progress: ScanProgress) -> None:
        try:
            self._callback(self.event_name, progress)
        except Exception as exc:
            log_event(
                _LOGGER,
                "progress_emit_failed",
                level=logging.WARNING,
                event_name=self.event_name,
                error=f"{type(exc).__name__}: {exc}",
            )

    def emit(self, current: int, total: int, message: str) -> None:
        self._send(ScanProgress.of(current, total, message))

    def complete(self, message: str) -> None:
        self._send(ScanProgress(current=100, total=100, percentage=100.0, message=message))

    def error(self, message: str) -> None:
        self._send(ScanProgress(current=0, total=0, percentage=0.0, message=message))


@contextmanager
def reporting_failure(progress: ProgressEmitter | None, action: str) -> Iterator[None]:
    """Send an error payload before re-raising anything the block raises."""

    try:
        yield
    except Exception as exc:
        if progress is not None:
            progress.error(f"{action} failed: {exc}")
        raise
