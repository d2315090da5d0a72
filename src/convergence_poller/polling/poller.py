"""
Convergence poller for asynchronous resource lifecycle operations.

This module drives a bounded, cancellable polling loop against a
caller-supplied status probe. Each probe result is classified against the
pending and target labels of a wait specification until the session
succeeds, times out, fails or is cancelled.
"""

import asyncio
import time
import uuid
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any

import structlog

from ..cancellation import CancelSignal
from ..exceptions import (
    ResourceNotFoundError,
    UnexpectedStateError,
    WaitCancelledError,
    WaitTimeoutError,
)
from ..models import (
    ProbeResult,
    SessionState,
    SessionStatus,
    UnknownStatePolicy,
    WaitSpec,
)
from .backoff import IntervalSchedule
from .metrics import MetricsCollector, SessionMetrics

logger = structlog.get_logger(__name__)

Probe = Callable[..., Any]
AsyncProbe = Callable[..., Awaitable[Any]]


def _accepts_cancel(probe: Any) -> bool:
    return getattr(probe, "accepts_cancel", False) is True


class ConvergenceSession:
    """
    Classification state machine for one polling session.

    The session owns its SessionState exclusively and knows nothing about
    sleeping or invoking probes; the engines drive it.
    """

    def __init__(
        self,
        spec: WaitSpec,
        clock: Callable[[], float] = time.monotonic,
        session_id: str | None = None,
    ):
        self.spec = spec
        self.clock = clock
        self.session_id = session_id or uuid.uuid4().hex[:12]
        self.started_wall = datetime.now()
        self.state = SessionState(started_at=clock())
        self.deadline = self.state.started_at + spec.timeout
        self.schedule = IntervalSchedule.for_spec(spec)
        self.log = logger.bind(
            session_id=self.session_id,
            target=sorted(spec.target),
        )

    def _tick(self) -> float:
        now = self.clock()
        self.state.elapsed = now - self.state.started_at
        return now

    def remaining(self) -> float:
        return max(0.0, self.deadline - self._tick())

    def timed_out(self) -> bool:
        return self._tick() >= self.deadline

    def next_interval(self) -> float:
        """Sleep before the next probe, clipped to the remaining time."""
        return min(self.schedule.interval(self.state.attempts), self.remaining())

    def begin_attempt(self) -> None:
        """Count a probe about to be issued."""
        self.state.attempts += 1

    def observe(self, result: ProbeResult) -> bool:
        """
        Classify one probe result.

        Args:
            result: Result of the probe that just completed

        Returns:
            True if the session converged, False to keep polling

        Raises:
            The probe's own error, UnexpectedStateError or ResourceNotFoundError
        """
        state = self.state
        self._tick()

        if result.error is not None:
            self.probe_failed(result.error)
            raise result.error

        if result.absent:
            return self._observe_absent()

        state.not_found_count = 0
        state.last_snapshot = result.snapshot
        state.last_label = result.label

        self.log.debug(
            "Probe observed state",
            attempt=state.attempts,
            label=result.label,
            elapsed=round(state.elapsed, 3),
        )

        kind = self.spec.classify(result.label)
        if kind == "target":
            state.target_occurrences += 1
            if state.target_occurrences >= self.spec.consecutive_target:
                self._succeed()
                return True
            return False

        state.target_occurrences = 0
        if kind == "pending":
            return False

        return self._observe_unknown(result.label)

    def _observe_absent(self) -> bool:
        state = self.state
        state.last_snapshot = None
        state.target_occurrences = 0

        # Nothing to find is the goal of a wait with no target labels
        if not self.spec.target:
            self._succeed()
            return True

        state.not_found_count += 1
        self.log.debug(
            "Resource not found",
            attempt=state.attempts,
            not_found_count=state.not_found_count,
        )
        if state.not_found_count > self.spec.not_found_checks:
            state.transition(SessionStatus.FAILED)
            self.log.error(
                "Resource stayed absent",
                checks=state.not_found_count,
                attempts=state.attempts,
            )
            raise ResourceNotFoundError(
                state.not_found_count,
                context={"session_id": self.session_id, "attempts": state.attempts},
            )
        return False

    def _observe_unknown(self, label: str) -> bool:
        policy = self.spec.unknown_state_policy
        if policy is UnknownStatePolicy.FAIL:
            self.state.transition(SessionStatus.FAILED)
            self.log.error("Unexpected state", label=label)
            raise UnexpectedStateError(
                label,
                pending=self.spec.pending,
                target=self.spec.target,
                last_snapshot=self.state.last_snapshot,
            )

        if policy is UnknownStatePolicy.WARN and label not in self.state.warned_labels:
            self.state.warned_labels.add(label)
            self.log.warning(
                "Unknown state treated as pending",
                label=label,
                pending=sorted(self.spec.pending),
            )
        return False

    def _succeed(self) -> None:
        self.state.transition(SessionStatus.SUCCEEDED)
        self.log.info(
            "Resource converged",
            label=self.state.last_label,
            attempts=self.state.attempts,
            elapsed=round(self.state.elapsed, 3),
        )

    def probe_failed(self, error: BaseException) -> None:
        """Record a probe-level error; the caller re-raises it."""
        if self.state.status.is_terminal:
            return
        status = (
            SessionStatus.CANCELLED
            if isinstance(error, WaitCancelledError)
            else SessionStatus.FAILED
        )
        self.state.transition(status)
        self.log.error(
            "Probe failed",
            error=str(error),
            error_type=type(error).__name__,
            attempts=self.state.attempts,
        )

    def timeout_error(self) -> WaitTimeoutError:
        self._tick()
        self.state.transition(SessionStatus.TIMED_OUT)
        self.log.warning(
            "Resource did not converge",
            last_label=self.state.last_label,
            attempts=self.state.attempts,
            elapsed=round(self.state.elapsed, 3),
        )
        return WaitTimeoutError(
            timeout=self.spec.timeout,
            elapsed=self.state.elapsed,
            attempts=self.state.attempts,
            last_label=self.state.last_label,
            last_snapshot=self.state.last_snapshot,
            target=self.spec.target,
        )

    def cancelled_error(self, reason: str | None = None) -> WaitCancelledError:
        self._tick()
        self.state.transition(SessionStatus.CANCELLED)
        self.log.info(
            "Wait cancelled",
            reason=reason,
            last_label=self.state.last_label,
            attempts=self.state.attempts,
        )
        return WaitCancelledError(
            f"Wait cancelled after {self.state.attempts} probes",
            reason=reason,
            context={
                "session_id": self.session_id,
                "last_label": self.state.last_label,
                "elapsed": self.state.elapsed,
            },
        )

    def close(self) -> None:
        """Mark a session interrupted by a non-session exception as cancelled."""
        if not self.state.status.is_terminal:
            self._tick()
            self.state.transition(SessionStatus.CANCELLED)

    def to_metrics(self) -> SessionMetrics:
        return SessionMetrics(
            session_id=self.session_id,
            started_at=self.started_wall,
            duration_seconds=self.state.elapsed,
            attempts=self.state.attempts,
            outcome=self.state.status,
            last_label=self.state.last_label,
        )


class ConvergencePoller:
    """
    Blocking convergence poller.

    Each call to ``wait`` runs one session on the calling thread. The poller
    holds no per-session state, so one instance may serve many threads.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] | None = None,
        metrics: MetricsCollector | None = None,
    ):
        """
        Initialize the poller.

        Args:
            clock: Monotonic clock in seconds
            sleep: Sleep function replacing the real one. When given it is used
                for every pause and a cancellation signal is checked after
                each pause instead of interrupting it.
            metrics: Optional collector for finished sessions
        """
        self.clock = clock
        self.sleep = sleep
        self.metrics = metrics

    def wait(
        self,
        spec: WaitSpec,
        probe: Probe,
        cancel: CancelSignal | None = None,
    ) -> Any:
        """
        Poll until the resource converges.

        Args:
            spec: Wait specification
            probe: Callable performing one status query
            cancel: Optional cancellation signal

        Returns:
            The snapshot that reached a target label (None for absent targets)

        Raises:
            WaitTimeoutError: Target not reached within the timeout
            WaitCancelledError: Cancellation was signalled
            UnexpectedStateError: Unknown label under the fail policy
            ResourceNotFoundError: Resource absent for too many probes
            Exception: Whatever the probe raised, unmodified
        """
        session = ConvergenceSession(spec, clock=self.clock)
        session.log.debug(
            "Starting wait",
            pending=sorted(spec.pending),
            timeout=spec.timeout,
            poll_interval=spec.poll_interval,
        )

        try:
            if spec.initial_delay > 0:
                self._pause(
                    session, min(spec.initial_delay, session.remaining()), cancel
                )

            while True:
                if session.timed_out():
                    raise session.timeout_error()
                self._check_cancel(session, cancel)

                result = self._invoke(session, probe, cancel)
                if session.observe(result):
                    return session.state.last_snapshot

                if session.timed_out():
                    raise session.timeout_error()
                self._pause(session, session.next_interval(), cancel)
        finally:
            session.close()
            if self.metrics is not None:
                self.metrics.record_session(session.to_metrics())

    def _invoke(
        self,
        session: ConvergenceSession,
        probe: Probe,
        cancel: CancelSignal | None,
    ) -> ProbeResult:
        session.begin_attempt()
        try:
            raw = probe(cancel) if _accepts_cancel(probe) else probe()
            return ProbeResult.coerce(raw)
        except Exception as e:
            session.probe_failed(e)
            raise

    def _check_cancel(
        self, session: ConvergenceSession, cancel: CancelSignal | None
    ) -> None:
        if cancel is not None and cancel.is_set():
            raise session.cancelled_error(getattr(cancel, "reason", None))

    def _pause(
        self,
        session: ConvergenceSession,
        seconds: float,
        cancel: CancelSignal | None,
    ) -> None:
        if self.sleep is not None:
            if seconds > 0:
                self.sleep(seconds)
            self._check_cancel(session, cancel)
            return

        if cancel is None:
            if seconds > 0:
                time.sleep(seconds)
            return

        if cancel.wait(max(seconds, 0.0)):
            raise session.cancelled_error(getattr(cancel, "reason", None))


class AsyncConvergencePoller:
    """
    Asyncio convergence poller.

    Probes are awaited; sleeping yields to the event loop. Cancelling the
    task running ``wait`` propagates ``asyncio.CancelledError``; setting the
    optional cancellation event raises ``WaitCancelledError``.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] | None = None,
        metrics: MetricsCollector | None = None,
    ):
        self.clock = clock
        self.sleep = sleep
        self.metrics = metrics

    async def wait(
        self,
        spec: WaitSpec,
        probe: AsyncProbe,
        cancel: asyncio.Event | None = None,
    ) -> Any:
        """Poll until the resource converges; see ConvergencePoller.wait."""
        session = ConvergenceSession(spec, clock=self.clock)
        session.log.debug(
            "Starting async wait",
            pending=sorted(spec.pending),
            timeout=spec.timeout,
            poll_interval=spec.poll_interval,
        )

        try:
            if spec.initial_delay > 0:
                await self._pause(
                    session, min(spec.initial_delay, session.remaining()), cancel
                )

            while True:
                if session.timed_out():
                    raise session.timeout_error()
                if cancel is not None and cancel.is_set():
                    raise session.cancelled_error()

                result = await self._invoke(session, probe, cancel)
                if session.observe(result):
                    return session.state.last_snapshot

                if session.timed_out():
                    raise session.timeout_error()
                await self._pause(session, session.next_interval(), cancel)
        finally:
            session.close()
            if self.metrics is not None:
                self.metrics.record_session(session.to_metrics())

    async def _invoke(
        self,
        session: ConvergenceSession,
        probe: AsyncProbe,
        cancel: asyncio.Event | None,
    ) -> ProbeResult:
        session.begin_attempt()
        try:
            raw = await (probe(cancel) if _accepts_cancel(probe) else probe())
            return ProbeResult.coerce(raw)
        except Exception as e:
            session.probe_failed(e)
            raise

    async def _pause(
        self,
        session: ConvergenceSession,
        seconds: float,
        cancel: asyncio.Event | None,
    ) -> None:
        if self.sleep is not None:
            if seconds > 0:
                await self.sleep(seconds)
            if cancel is not None and cancel.is_set():
                raise session.cancelled_error()
            return

        if cancel is None:
            if seconds > 0:
                await asyncio.sleep(seconds)
            return

        try:
            await asyncio.wait_for(cancel.wait(), timeout=max(seconds, 0.0))
        except asyncio.TimeoutError:
            return
        raise session.cancelled_error()


def wait_for_state(
    spec: WaitSpec,
    probe: Probe,
    cancel: CancelSignal | None = None,
    metrics: MetricsCollector | None = None,
) -> Any:
    """Run one blocking polling session with the default clock and sleep."""
    return ConvergencePoller(metrics=metrics).wait(spec, probe, cancel=cancel)


async def wait_for_state_async(
    spec: WaitSpec,
    probe: AsyncProbe,
    cancel: asyncio.Event | None = None,
    metrics: MetricsCollector | None = None,
) -> Any:
    """Run one asyncio polling session with the default clock and sleep."""
    return await AsyncConvergencePoller(metrics=metrics).wait(
        spec, probe, cancel=cancel
    )
