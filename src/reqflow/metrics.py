"""Metrics collection for the request client."""

import threading
from dataclasses import dataclass, field
from typing import ClassVar


@dataclass
class ClientMetrics:
    """Metrics for requests issued through the pipeline.

    Singleton class that tracks request counts by status, failures by error
    class, durations and transport pool reuse.
    """

    http_requests_total: dict[int, int] = field(default_factory=dict)
    http_failures_total: dict[str, int] = field(default_factory=dict)
    http_duration_ms_total: float = 0.0
    http_request_count: int = 0
    transports_created_total: int = 0
    transports_reused_total: int = 0

    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    _instance: ClassVar["ClientMetrics | None"] = None
    _instance_lock: ClassVar[threading.Lock] = threading.Lock()

    @classmethod
    def get_instance(cls) -> "ClientMetrics":
        """Get singleton metrics instance."""
        with cls._instance_lock:
            if cls._instance is None:
                cls._instance = cls()
            return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset metrics (primarily for testing)."""
        with cls._instance_lock:
            cls._instance = None

    def record_request(self, status_code: int, duration_ms: float) -> None:
        """Record a completed HTTP exchange.

        Args:
            status_code: HTTP status code of the final response.
            duration_ms: Duration in milliseconds.
        """
        with self._lock:
            self.http_requests_total[status_code] = (
                self.http_requests_total.get(status_code, 0) + 1
            )
            self.http_duration_ms_total += duration_ms
            self.http_request_count += 1

    def record_failure(self, error_class: str) -> None:
        """Record a pipeline failure.

        Args:
            error_class: Exception class name of the failure.
        """
        with self._lock:
            self.http_failures_total[error_class] = (
                self.http_failures_total.get(error_class, 0) + 1
            )

    def record_transport_created(self) -> None:
        """Record a new pooled transport."""
        with self._lock:
            self.transports_created_total += 1

    def record_transport_reused(self) -> None:
        """Record a pooled transport reused from the idle list."""
        with self._lock:
            self.transports_reused_total += 1

    def to_dict(self) -> dict[str, int | float | dict[str, int] | dict[int, int]]:
        """Convert metrics to dictionary.

        Returns:
            Dictionary of metric name to value.
        """
        with self._lock:
            return {
                "http_requests_total": dict(self.http_requests_total),
                "http_failures_total": dict(self.http_failures_total),
                "http_duration_ms_total": self.http_duration_ms_total,
                "http_request_count": self.http_request_count,
                "transports_created_total": self.transports_created_total,
                "transports_reused_total": self.transports_reused_total,
            }

    @property
    def avg_duration_ms(self) -> float:
        """Calculate average request duration.

        Returns:
            Average duration in milliseconds.
        """
        if self.http_request_count == 0:
            return 0.0
        return self.http_duration_ms_total / self.http_request_count
