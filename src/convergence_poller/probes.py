"""
Probe builders for the convergence poller.

A probe performs exactly one status query and extracts one label from the
returned snapshot. The builders here wrap a caller's ``fetch`` callable,
which carries its own client and identifiers, with the label extraction
patterns shared by many lifecycle call sites.
"""

import functools
from collections.abc import Callable
from typing import Any, TypeVar

from .exceptions import ProbeError
from .models import ProbeResult

F = TypeVar("F", bound=Callable[..., Any])

Fetch = Callable[..., Any]


def cancellable(probe: F) -> F:
    """
    Mark a probe or fetch as taking the session's cancellation signal.

    The callable is wrapped rather than modified, so bound methods and other
    objects that reject new attributes can be marked too.
    """
    if getattr(probe, "accepts_cancel", False) is True:
        return probe

    @functools.wraps(probe)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        return probe(*args, **kwargs)

    wrapper.accepts_cancel = True  # type: ignore[attr-defined]
    return wrapper  # type: ignore[return-value]


def _call(fetch: Fetch, args: tuple[Any, ...]) -> Any:
    if getattr(fetch, "accepts_cancel", False) is True:
        return fetch(*args)
    return fetch()


def _wrap(
    fetch: Fetch, probe: Callable[..., ProbeResult]
) -> Callable[..., ProbeResult]:
    if getattr(fetch, "accepts_cancel", False) is True:
        return cancellable(probe)
    return probe


def status_probe(
    fetch: Fetch, extract_label: Callable[[Any], str]
) -> Callable[..., ProbeResult]:
    """
    Build a probe from a fetch function and a label extractor.

    Args:
        fetch: Performs the status query and returns a snapshot (None if absent)
        extract_label: Maps a snapshot to its status label

    Returns:
        Probe usable with ConvergencePoller
    """

    def probe(*args: Any) -> ProbeResult:
        snapshot = _call(fetch, args)
        if snapshot is None:
            return ProbeResult(snapshot=None, label="")
        return ProbeResult(snapshot=snapshot, label=extract_label(snapshot))

    return _wrap(fetch, probe)


def presence_probe(
    fetch: Fetch,
    is_ready: Callable[[Any], bool],
    ready_label: str = "READY",
    pending_label: str = "build",
) -> Callable[..., ProbeResult]:
    """Build a probe labelled ready once a predicate on the snapshot holds."""
    return status_probe(
        fetch, lambda snapshot: ready_label if is_ready(snapshot) else pending_label
    )


def health_gated_label(
    status: str | None,
    health: str | None,
    target_status: str,
    healthy: str = "OK",
    warning_label: str = "WARNING",
) -> str:
    """
    Combine a status and a health sub-condition into one label.

    The result is ``target_status`` only when the status matches and the
    health is ``healthy``; anything else collapses into ``warning_label``.
    """
    if status == target_status and health == healthy:
        return target_status
    return warning_label


def health_gated_probe(
    fetch: Fetch,
    get_status: Callable[[Any], str | None],
    get_health: Callable[[Any], str | None],
    target_status: str,
    healthy: str = "OK",
    warning_label: str = "WARNING",
) -> Callable[..., ProbeResult]:
    """Build a probe that only reports the target once the resource is healthy."""
    return status_probe(
        fetch,
        lambda snapshot: health_gated_label(
            get_status(snapshot),
            get_health(snapshot),
            target_status,
            healthy=healthy,
            warning_label=warning_label,
        ),
    )


def gone_probe(
    fetch: Fetch,
    extract_label: Callable[[Any], str],
    not_found: tuple[type[BaseException], ...] = (ProbeError,),
    is_not_found: Callable[[BaseException], bool] | None = None,
) -> Callable[..., ProbeResult]:
    """
    Build a probe for delete waits.

    Exceptions of the ``not_found`` types (optionally narrowed by
    ``is_not_found``) become an absent snapshot, which a wait with an empty
    target treats as success. Any other exception propagates.
    """

    def probe(*args: Any) -> ProbeResult:
        try:
            snapshot = _call(fetch, args)
        except not_found as e:
            if is_not_found is not None and not is_not_found(e):
                raise
            return ProbeResult(snapshot=None, label="")
        if snapshot is None:
            return ProbeResult(snapshot=None, label="")
        return ProbeResult(snapshot=snapshot, label=extract_label(snapshot))

    return _wrap(fetch, probe)
