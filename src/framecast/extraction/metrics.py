"""
Extraction Metrics
==================

Service-wide counters for the /metrics endpoint.

Updated only from event-loop callbacks, so no locking is needed.
"""

from framecast.errors import (
    DecodeFailureError,
    DecodeTimeoutError,
    InvalidArgumentError,
    SourceNotFoundError,
)


class ExtractionMetrics:
    """Counters across all extraction runs."""

    __slots__ = (
        "requests",
        "completed",
        "frames_delivered",
        "under_deliveries",
        "invalid_requests",
        "missing_sources",
        "decode_failures",
        "timeouts",
        "ignored_events",
        "in_flight",
        "total_generation_seconds",
    )

    def __init__(self) -> None:
        self.requests: int = 0
        self.completed: int = 0
        self.frames_delivered: int = 0
        self.under_deliveries: int = 0
        self.invalid_requests: int = 0
        self.missing_sources: int = 0
        self.decode_failures: int = 0
        self.timeouts: int = 0
        self.ignored_events: int = 0
        self.in_flight: int = 0
        self.total_generation_seconds: float = 0.0

    def record_success(self, frames: int, under_delivered: bool, elapsed: float) -> None:
        self.completed += 1
        self.frames_delivered += frames
        self.total_generation_seconds += elapsed
        if under_delivered:
            self.under_deliveries += 1

    def record_error(self, error: Exception) -> None:
        """Count a failed request by error kind."""
        if isinstance(error, DecodeTimeoutError):
            self.timeouts += 1
            self.decode_failures += 1
        elif isinstance(error, DecodeFailureError):
            self.decode_failures += 1
        elif isinstance(error, InvalidArgumentError):
            self.invalid_requests += 1
        elif isinstance(error, SourceNotFoundError):
            self.missing_sources += 1

    def to_dict(self) -> dict:
        """Export metrics as dict."""
        avg = (
            self.total_generation_seconds / self.completed
            if self.completed
            else 0.0
        )
        return {
            "requests": self.requests,
            "completed": self.completed,
            "frames_delivered": self.frames_delivered,
            "under_deliveries": self.under_deliveries,
            "invalid_requests": self.invalid_requests,
            "missing_sources": self.missing_sources,
            "decode_failures": self.decode_failures,
            "timeouts": self.timeouts,
            "ignored_events": self.ignored_events,
            "in_flight": self.in_flight,
            "avg_generation_seconds": round(avg, 4),
        }
