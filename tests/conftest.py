"""
Pytest configuration and fixtures for convergence poller tests.
"""

from typing import Any

import pytest

import convergence_poller.config
from convergence_poller.models import ProbeResult
from convergence_poller.polling import AsyncConvergencePoller, ConvergencePoller


class FakeClock:
    """Monotonic clock that only advances when something sleeps on it."""

    def __init__(self, start: float = 0.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds

    async def async_sleep(self, seconds: float) -> None:
        self.sleep(seconds)


class ScriptedProbe:
    """
    Probe replaying a script of labels.

    Each item is a label, a ``None`` (absent resource) or an exception to
    raise. The last item repeats once the script is exhausted.
    """

    def __init__(self, script: list[Any], clock: FakeClock | None = None):
        self.script = script
        self.clock = clock
        self.calls = 0
        self.call_times: list[float] = []

    def next_result(self) -> ProbeResult:
        item = self.script[min(self.calls, len(self.script) - 1)]
        self.calls += 1
        if self.clock is not None:
            self.call_times.append(self.clock.now)
        if isinstance(item, BaseException):
            raise item
        if item is None:
            return ProbeResult(snapshot=None, label="")
        return ProbeResult(snapshot={"id": "res-1", "status": item}, label=item)

    def __call__(self) -> ProbeResult:
        return self.next_result()


class AsyncScriptedProbe(ScriptedProbe):
    """Awaitable variant of ScriptedProbe."""

    async def __call__(self) -> ProbeResult:  # type: ignore[override]
        return self.next_result()


@pytest.fixture
def fake_clock() -> FakeClock:
    """Fake monotonic clock starting at zero."""
    return FakeClock()


@pytest.fixture
def poller(fake_clock: FakeClock) -> ConvergencePoller:
    """Blocking poller driven by the fake clock."""
    return ConvergencePoller(clock=fake_clock, sleep=fake_clock.sleep)


@pytest.fixture
def async_poller(fake_clock: FakeClock) -> AsyncConvergencePoller:
    """Asyncio poller driven by the fake clock."""
    return AsyncConvergencePoller(clock=fake_clock, sleep=fake_clock.async_sleep)


@pytest.fixture
def scripted_probe(fake_clock: FakeClock):
    """Factory for scripted probes bound to the fake clock."""

    def factory(*script: Any) -> ScriptedProbe:
        return ScriptedProbe(list(script), clock=fake_clock)

    return factory


@pytest.fixture
def async_scripted_probe(fake_clock: FakeClock):
    """Factory for async scripted probes bound to the fake clock."""

    def factory(*script: Any) -> AsyncScriptedProbe:
        return AsyncScriptedProbe(list(script), clock=fake_clock)

    return factory


@pytest.fixture
def reset_settings():
    """Clear the cached global settings around a test."""
    convergence_poller.config._settings_instance = None
    yield
    convergence_poller.config._settings_instance = None
