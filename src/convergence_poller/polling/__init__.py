"""
Polling engine for the convergence poller.

This package contains the polling loop, its interval schedule and the
session metrics collector.
"""

from .backoff import IntervalSchedule
from .metrics import MetricsCollector, SessionMetrics
from .poller import (
    AsyncConvergencePoller,
    ConvergencePoller,
    ConvergenceSession,
    wait_for_state,
    wait_for_state_async,
)

__all__ = [
    "AsyncConvergencePoller",
    "ConvergencePoller",
    "ConvergenceSession",
    "IntervalSchedule",
    "MetricsCollector",
    "SessionMetrics",
    "wait_for_state",
    "wait_for_state_async",
]
