"""
Custom exceptions for the convergence poller.

This module defines the error taxonomy raised by a polling session. Every
error is terminal for the session that raised it.
"""

from collections.abc import Iterable
from typing import Any


class ConvergencePollerError(Exception):
    """Base exception for convergence poller errors."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.code = code or "CONVERGENCE_POLLER_ERROR"
        self.context = context or {}


class ProbeError(ConvergencePollerError):
    """Exception for a failed status query (network, auth, not found)."""

    def __init__(
        self,
        message: str,
        resource_id: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, "PROBE_ERROR", context)
        self.resource_id = resource_id


class WaitTimeoutError(ConvergencePollerError, TimeoutError):
    """Exception for a session that did not converge within its timeout."""

    def __init__(
        self,
        timeout: float,
        elapsed: float,
        attempts: int,
        last_label: str | None = None,
        last_snapshot: Any = None,
        target: Iterable[str] = (),
    ):
        self.timeout = timeout
        self.elapsed = elapsed
        self.attempts = attempts
        self.last_label = last_label
        self.last_snapshot = last_snapshot
        self.target = frozenset(target)

        message = (
            f"Operation did not converge within {timeout:g}s, "
            f"last observed status = {last_label!r}"
        )
        super().__init__(
            message,
            "WAIT_TIMEOUT_ERROR",
            {
                "timeout": timeout,
                "elapsed": elapsed,
                "attempts": attempts,
                "last_label": last_label,
                "target": sorted(self.target),
            },
        )


class WaitCancelledError(ConvergencePollerError):
    """Exception for a session aborted by its caller."""

    def __init__(
        self,
        message: str = "Wait cancelled",
        reason: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, "WAIT_CANCELLED_ERROR", context)
        self.reason = reason


class UnexpectedStateError(ConvergencePollerError):
    """Exception for a status label outside both pending and target sets."""

    def __init__(
        self,
        label: str,
        pending: Iterable[str] = (),
        target: Iterable[str] = (),
        last_snapshot: Any = None,
    ):
        self.label = label
        self.pending = frozenset(pending)
        self.target = frozenset(target)
        self.last_snapshot = last_snapshot
        super().__init__(
            f"Unexpected state {label!r}, wanted target {sorted(self.target)}",
            "UNEXPECTED_STATE_ERROR",
            {"label": label, "pending": sorted(self.pending)},
        )


class ResourceNotFoundError(ConvergencePollerError):
    """Exception for a resource that stayed absent for too many probes."""

    def __init__(self, checks: int, context: dict[str, Any] | None = None):
        super().__init__(
            f"Resource not found after {checks} consecutive checks",
            "RESOURCE_NOT_FOUND_ERROR",
            context,
        )
        self.checks = checks


class ConfigurationError(ConvergencePollerError):
    """Exception for configuration related errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message, "CONFIGURATION_ERROR", context)
