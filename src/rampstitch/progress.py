"""Progress events emitted by jobs to an optional observer callback.

The observer is a one-way side channel: jobs never read anything back
from it, and an observer that raises is logged and ignored rather than
allowed to break the job.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

STATUSES = ("idle", "processing", "complete", "error")


@dataclass(frozen=True)
class ProgressEvent:
    status: str
    message: str
    percent: float
    current_item: int | None = None
    total_items: int | None = None
    error: str | None = None

    def __post_init__(self):
        if self.status not in STATUSES:
            raise ValueError(f"Unknown progress status: '{self.status}'")


ProgressCallback = Callable[[ProgressEvent], None]


class ProgressReporter:
    """Wraps an optional observer and clamps percentages to 0..100."""

    def __init__(self, callback: ProgressCallback | None = None, total_items: int | None = None):
        self.callback = callback
        self.total_items = total_items
        self.last: ProgressEvent = ProgressEvent("idle", "Ready", 0)

    def emit(
        self,
        status: str,
        message: str,
        percent: float,
        current_item: int | None = None,
        error: str | None = None,
    ) -> ProgressEvent:
        event = ProgressEvent(
            status=status,
            message=message,
            percent=max(0.0, min(100.0, float(percent))),
            current_item=current_item,
            total_items=self.total_items,
            error=error,
        )
        self.last = event
        if self.callback is not None:
            try:
                self.callback(event)
            except Exception as e:
                logger.warning(f"Progress observer raised, ignoring: {e}")
        return event

    def processing(self, message: str, percent: float, current_item: int | None = None):
        return self.emit("processing", message, percent, current_item=current_item)

    def complete(self, message: str):
        return self.emit("complete", message, 100)

    def failed(self, error: BaseException):
        text = str(error) or type(error).__name__
        return self.emit("error", f"Error: {text}", 0, error=text)


def print_progress(event: ProgressEvent) -> None:
    """Observer for CLIs: one `[ 42%] message` line per event."""
    print(f"[{event.percent:3.0f}%] {event.message}", flush=True)
