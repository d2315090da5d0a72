"""
Convergence Poller

A polling engine that waits for cloud resources to converge to a target
state after asynchronous lifecycle operations.
"""

__version__ = "0.1.0"
__author__ = "Convergence Poller"
__email__ = "support@example.com"

from .cancellation import CancellationToken
from .config import Settings
from .exceptions import (
    ConvergencePollerError,
    ProbeError,
    ResourceNotFoundError,
    UnexpectedStateError,
    WaitCancelledError,
    WaitTimeoutError,
)
from .models import ProbeResult, SessionStatus, UnknownStatePolicy, WaitSpec
from .polling import (
    AsyncConvergencePoller,
    ConvergencePoller,
    MetricsCollector,
    wait_for_state,
    wait_for_state_async,
)

__all__ = [
    "Settings",
    "WaitSpec",
    "ProbeResult",
    "SessionStatus",
    "UnknownStatePolicy",
    "CancellationToken",
    "ConvergencePoller",
    "AsyncConvergencePoller",
    "MetricsCollector",
    "wait_for_state",
    "wait_for_state_async",
    "ConvergencePollerError",
    "ProbeError",
    "WaitTimeoutError",
    "WaitCancelledError",
    "UnexpectedStateError",
    "ResourceNotFoundError",
]
