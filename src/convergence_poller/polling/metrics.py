"""
Metrics collection for polling sessions.

This module records the outcome of finished sessions and provides
aggregate insight into how long resources take to converge.
"""

import threading
from collections import Counter, deque
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import structlog

from ..models import SessionStatus

logger = structlog.get_logger(__name__)


@dataclass
class SessionMetrics:
    """Metrics for a single finished polling session."""

    session_id: str
    started_at: datetime
    duration_seconds: float
    attempts: int
    outcome: SessionStatus
    last_label: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.outcome is SessionStatus.SUCCEEDED

    @property
    def probe_rate(self) -> float:
        """Get probes per second."""
        return (
            self.attempts / self.duration_seconds if self.duration_seconds > 0 else 0.0
        )


class MetricsCollector:
    """
    Central metrics collector for polling sessions.

    Sessions may finish on different threads, so every update is made under
    a lock.
    """

    def __init__(self, max_history: int = 100) -> None:
        self.start_time = datetime.now()
        self.max_history = max_history
        self.history: deque[SessionMetrics] = deque(maxlen=max_history)
        self.outcomes: Counter[SessionStatus] = Counter()
        self.total_sessions = 0
        self.total_attempts = 0
        self._lock = threading.Lock()

    def record_session(self, metrics: SessionMetrics) -> None:
        """Record metrics from a finished session."""
        with self._lock:
            self.history.append(metrics)
            self.outcomes[metrics.outcome] += 1
            self.total_sessions += 1
            self.total_attempts += metrics.attempts

        logger.debug(
            "Recorded session metrics",
            session_id=metrics.session_id,
            outcome=metrics.outcome.value,
            attempts=metrics.attempts,
            duration=metrics.duration_seconds,
        )

    @property
    def success_rate(self) -> float:
        """Get session success rate as percentage."""
        with self._lock:
            if not self.total_sessions:
                return 0.0
            return self.outcomes[SessionStatus.SUCCEEDED] / self.total_sessions * 100

    def get_averages(self) -> dict[str, float]:
        """Get average metrics over the recorded history."""
        with self._lock:
            sessions = list(self.history)

        if not sessions:
            return {"avg_duration": 0.0, "avg_attempts": 0.0}

        return {
            "avg_duration": sum(s.duration_seconds for s in sessions) / len(sessions),
            "avg_attempts": sum(s.attempts for s in sessions) / len(sessions),
        }

    def get_percentiles(self) -> dict[str, float]:
        """Get duration percentiles of converged sessions."""
        with self._lock:
            durations = sorted(s.duration_seconds for s in self.history if s.succeeded)

        if not durations:
            return {}

        n = len(durations)
        return {
            "p50_duration": durations[n // 2],
            "p90_duration": durations[int(n * 0.9)],
            "p99_duration": durations[int(n * 0.99)],
        }

    def get_summary(self) -> dict[str, Any]:
        """Get a summary of all recorded sessions."""
        with self._lock:
            outcomes = {status.value: count for status, count in self.outcomes.items()}
            total_sessions = self.total_sessions
            total_attempts = self.total_attempts

        return {
            "uptime_seconds": (datetime.now() - self.start_time).total_seconds(),
            "total_sessions": total_sessions,
            "total_attempts": total_attempts,
            "outcomes": outcomes,
            "success_rate": self.success_rate,
            **self.get_averages(),
            **self.get_percentiles(),
        }
