"""
Tests for the probe builders.
"""

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from convergence_poller.exceptions import ProbeError
from convergence_poller.models import ProbeResult, WaitSpec
from convergence_poller.probes import (
    cancellable,
    gone_probe,
    health_gated_label,
    health_gated_probe,
    presence_probe,
    status_probe,
)


class TestHealthGatedLabel:
    """Test the composition of status and health into one label."""

    def test_target_requires_status_and_health(self):
        """Test that only a matching status with OK health is the target."""
        assert health_gated_label("SHUTOFF", "OK", "SHUTOFF") == "SHUTOFF"

    @pytest.mark.parametrize(
        "status,health",
        [("SHUTOFF", "WARNING"), ("ACTIVE", "OK"), ("SHUTOFF", None), (None, None)],
    )
    def test_anything_else_is_warning(self, status, health):
        """Test that partial matches collapse into the warning label."""
        assert health_gated_label(status, health, "SHUTOFF") == "WARNING"

    def test_custom_labels(self):
        """Test custom healthy and warning values."""
        assert (
            health_gated_label(
                "ACTIVE",
                "CRITICAL",
                "ACTIVE",
                healthy="GREEN",
                warning_label="degraded",
            )
            == "degraded"
        )


class TestProbeBuilders:
    """Test probe construction from fetch functions."""

    def test_status_probe_extracts_label(self):
        """Test that the extracted label accompanies the snapshot."""
        instance = {"status": "BUILD"}
        probe = status_probe(lambda: instance, lambda snapshot: snapshot["status"])

        assert probe() == ProbeResult(snapshot=instance, label="BUILD")

    def test_status_probe_absent_snapshot(self):
        """Test that a missing resource yields an absent snapshot."""
        extract = MagicMock()
        probe = status_probe(lambda: None, extract)

        result = probe()

        assert result.snapshot is None
        extract.assert_not_called()

    def test_presence_probe_waits_for_predicate(self):
        """Test a network that becomes ready once its VLAN id is assigned."""
        networks = iter(
            [SimpleNamespace(vlan_id=None), SimpleNamespace(vlan_id=42)]
        )
        probe = presence_probe(
            lambda: next(networks),
            lambda network: network.vlan_id is not None,
            ready_label="NETWORK_READY",
        )

        assert probe().label == "build"
        assert probe().label == "NETWORK_READY"

    def test_health_gated_probe(self, poller):
        """Test a stop operation that completes only once healthy."""
        snapshots = iter(
            [
                {"status": "ACTIVE", "health": "OK"},
                {"status": "SHUTOFF", "health": "WARNING"},
                {"status": "SHUTOFF", "health": "OK"},
            ]
        )
        probe = health_gated_probe(
            lambda: next(snapshots),
            get_status=lambda s: s["status"],
            get_health=lambda s: s["health"],
            target_status="SHUTOFF",
        )
        spec = WaitSpec(
            pending={"ACTIVE", "WARNING"},
            target={"SHUTOFF"},
            poll_interval=1,
            timeout=60,
        )

        snapshot = poller.wait(spec, probe)

        assert snapshot == {"status": "SHUTOFF", "health": "OK"}

    def test_fetch_errors_propagate(self):
        """Test that fetch failures are not converted by status_probe."""
        error = ProbeError("timeout talking to control plane")

        def fetch():
            raise error

        with pytest.raises(ProbeError) as exc_info:
            status_probe(fetch, str)()

        assert exc_info.value is error


class TestGoneProbe:
    """Test the delete-wait adapter."""

    def test_not_found_error_becomes_absent(self, poller):
        """Test that a not-found error ends a delete wait successfully."""
        responses = iter([{"status": "DELETING"}, ProbeError("404 not found")])

        def fetch():
            response = next(responses)
            if isinstance(response, Exception):
                raise response
            return response

        spec = WaitSpec(pending={"DELETING"}, target=set(), poll_interval=5, timeout=60)

        assert poller.wait(spec, gone_probe(fetch, lambda s: s["status"])) is None

    def test_predicate_narrows_not_found(self):
        """Test that errors rejected by the predicate still propagate."""
        error = ProbeError("500 internal error")

        def fetch():
            raise error

        probe = gone_probe(
            fetch,
            lambda s: s["status"],
            is_not_found=lambda e: "404" in str(e),
        )

        with pytest.raises(ProbeError) as exc_info:
            probe()

        assert exc_info.value is error

    def test_other_exceptions_propagate(self):
        """Test that exception types outside not_found propagate."""

        def fetch():
            raise PermissionError("forbidden")

        with pytest.raises(PermissionError):
            gone_probe(fetch, str)()


class TestCancellableFetch:
    """Test forwarding of the cancellation signal through builders."""

    def test_builder_forwards_signal(self):
        """Test that a cancellable fetch makes the built probe cancellable."""
        fetch = MagicMock(return_value={"status": "ACTIVE"})
        probe = status_probe(cancellable(fetch), lambda s: s["status"])
        signal = object()

        result = probe(signal)

        assert probe.accepts_cancel is True
        fetch.assert_called_once_with(signal)
        assert result.label == "ACTIVE"

    def test_plain_fetch_is_not_cancellable(self):
        """Test that plain fetches produce plain probes."""
        probe = status_probe(lambda: {"status": "ACTIVE"}, lambda s: s["status"])

        assert getattr(probe, "accepts_cancel", False) is False

    def test_bound_method_can_be_marked(self):
        """Test that a client method can be marked without modifying it."""

        class NetworkClient:
            def __init__(self):
                self.signals = []

            def get_network(self, signal):
                self.signals.append(signal)
                return {"status": "ACTIVE"}

        client = NetworkClient()
        fetch = cancellable(client.get_network)
        probe = status_probe(fetch, lambda s: s["status"])
        signal = object()

        result = probe(signal)

        assert fetch.accepts_cancel is True
        assert fetch.__name__ == "get_network"
        assert client.signals == [signal]
        assert result.label == "ACTIVE"
        assert not hasattr(client.get_network, "accepts_cancel")

    def test_marking_twice_keeps_one_wrapper(self):
        """Test that marking an already cancellable callable is a no-op."""
        fetch = cancellable(lambda signal: {"status": "ACTIVE"})

        assert cancellable(fetch) is fetch
