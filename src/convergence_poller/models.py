"""
Data models for the convergence poller.

This module defines the immutable wait specification, the per-probe result
and the mutable state owned by one polling session.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

if TYPE_CHECKING:
    from .config import Settings


class UnknownStatePolicy(str, Enum):
    """How a session treats a label that is neither pending nor target."""

    PENDING = "pending"
    WARN = "warn"
    FAIL = "fail"


class SessionStatus(str, Enum):
    """Lifecycle status of a polling session."""

    RUNNING = "running"
    SUCCEEDED = "succeeded"
    TIMED_OUT = "timed_out"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self is not SessionStatus.RUNNING


@dataclass(frozen=True)
class ProbeResult:
    """Outcome of one status query."""

    snapshot: Any
    label: str
    error: BaseException | None = None

    @property
    def absent(self) -> bool:
        """True when the probe found no resource and reported no label."""
        return self.snapshot is None and not self.label

    @classmethod
    def coerce(cls, value: Any) -> "ProbeResult":
        """Accept a ProbeResult or a ``(snapshot, label)`` tuple."""
        if isinstance(value, ProbeResult):
            return value
        if isinstance(value, tuple) and len(value) == 2:
            snapshot, label = value
            return cls(snapshot=snapshot, label=label)
        raise TypeError(
            f"Probe must return ProbeResult or (snapshot, label), got {type(value)}"
        )


def _seconds(value: Any) -> Any:
    if isinstance(value, timedelta):
        return value.total_seconds()
    return value


def _label_set(value: Any) -> Any:
    if value is None:
        return frozenset()
    if isinstance(value, str):
        return frozenset({value})
    if isinstance(value, Iterable):
        return frozenset(value)
    return value


class WaitSpec(BaseModel):
    """Immutable configuration for one polling session."""

    model_config = ConfigDict(frozen=True)

    pending: frozenset[str] = Field(
        default_factory=frozenset, description="Labels still in progress"
    )
    target: frozenset[str] = Field(
        default_factory=frozenset, description="Labels meaning converged"
    )
    initial_delay: float = Field(
        default=0.0, ge=0, description="Seconds to wait before the first probe"
    )
    poll_interval: float = Field(
        default=10.0, gt=0, description="Minimum seconds between probes"
    )
    max_poll_interval: float | None = Field(
        default=None, description="Upper bound for a growing poll interval"
    )
    backoff_factor: float = Field(
        default=2.0, ge=1, description="Interval growth per attempt"
    )
    timeout: float = Field(
        default=1200.0, gt=0, description="Maximum session duration in seconds"
    )
    unknown_state_policy: UnknownStatePolicy = Field(
        default=UnknownStatePolicy.PENDING,
        description="Handling of labels outside pending and target",
    )
    not_found_checks: int = Field(
        default=20, ge=0, description="Tolerated consecutive absent snapshots"
    )
    consecutive_target: int = Field(
        default=1, ge=1, description="Target observations required in a row"
    )

    @field_validator("pending", "target", mode="before")
    @classmethod
    def parse_labels(cls, v: Any) -> Any:
        """Wrap a single label in a set."""
        return _label_set(v)

    @field_validator(
        "initial_delay", "poll_interval", "max_poll_interval", "timeout", mode="before"
    )
    @classmethod
    def parse_duration(cls, v: Any) -> Any:
        """Accept timedelta values as seconds."""
        return _seconds(v)

    @model_validator(mode="after")
    def validate_labels_and_intervals(self) -> "WaitSpec":
        overlap = self.pending & self.target
        if overlap:
            raise ValueError(
                f"Labels cannot be both pending and target: {sorted(overlap)}"
            )
        if (
            self.max_poll_interval is not None
            and self.max_poll_interval < self.poll_interval
        ):
            raise ValueError("max_poll_interval must not be below poll_interval")
        return self

    @property
    def effective_max_interval(self) -> float:
        if self.max_poll_interval is None:
            return self.poll_interval
        return self.max_poll_interval

    def classify(self, label: str) -> str:
        """Return ``"target"``, ``"pending"`` or ``"unknown"`` for a label."""
        if label in self.target:
            return "target"
        if label in self.pending:
            return "pending"
        return "unknown"

    @classmethod
    def from_settings(
        cls,
        pending: Iterable[str] | str,
        target: Iterable[str] | str,
        settings: "Settings | None" = None,
        **overrides: Any,
    ) -> "WaitSpec":
        """
        Build a wait specification from configured defaults.

        Args:
            pending: Labels still in progress
            target: Labels meaning converged
            settings: Settings to read defaults from (global settings if None)
            **overrides: Field values that take precedence over the defaults

        Returns:
            Wait specification
        """
        if settings is None:
            from .config import get_settings

            settings = get_settings()

        defaults = settings.wait_defaults
        values: dict[str, Any] = {
            "initial_delay": defaults.initial_delay_seconds,
            "poll_interval": defaults.poll_interval_seconds,
            "max_poll_interval": defaults.max_poll_interval_seconds,
            "backoff_factor": defaults.backoff_factor,
            "timeout": defaults.timeout_seconds,
            "not_found_checks": defaults.not_found_checks,
            "unknown_state_policy": defaults.unknown_state_policy,
        }
        values.update(overrides)
        return cls(pending=pending, target=target, **values)


@dataclass
class SessionState:
    """Mutable state owned exclusively by one running poll loop."""

    started_at: float
    status: SessionStatus = SessionStatus.RUNNING
    attempts: int = 0
    elapsed: float = 0.0
    last_snapshot: Any = None
    last_label: str | None = None
    target_occurrences: int = 0
    not_found_count: int = 0
    warned_labels: set[str] = field(default_factory=set)

    def transition(self, status: SessionStatus) -> None:
        """Move out of running; terminal statuses are irreversible."""
        if self.status.is_terminal:
            raise RuntimeError(
                f"Session already finished as {self.status.value}, "
                f"cannot move to {status.value}"
            )
        self.status = status
