"""
Interval schedule for the polling loop.

The interval starts at the configured poll interval and grows by the backoff
factor per attempt up to the maximum. It never drops below the poll interval.
"""

from ..models import WaitSpec


class IntervalSchedule:
    """Computes the sleep between consecutive probes of one session."""

    def __init__(
        self,
        minimum: float,
        maximum: float | None = None,
        factor: float = 2.0,
    ):
        if minimum <= 0:
            raise ValueError(f"Minimum interval must be positive, got {minimum}")
        self.minimum = minimum
        self.maximum = max(minimum, maximum if maximum is not None else minimum)
        self.factor = factor

    @classmethod
    def for_spec(cls, spec: WaitSpec) -> "IntervalSchedule":
        return cls(
            minimum=spec.poll_interval,
            maximum=spec.effective_max_interval,
            factor=spec.backoff_factor,
        )

    def interval(self, attempt: int) -> float:
        """
        Get the sleep that follows a given probe.

        Args:
            attempt: 1-based number of the probe that just completed

        Returns:
            Interval in seconds, between minimum and maximum
        """
        if self.maximum == self.minimum or attempt <= 1:
            return self.minimum

        # Stop growing once the cap is reached
        grown = self.minimum
        for _ in range(attempt - 1):
            grown *= self.factor
            if grown >= self.maximum:
                return self.maximum
        return max(self.minimum, grown)
