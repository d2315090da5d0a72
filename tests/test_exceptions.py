"""
Tests for the exception taxonomy.
"""

import pytest

from convergence_poller.exceptions import (
    ConfigurationError,
    ConvergencePollerError,
    ProbeError,
    ResourceNotFoundError,
    UnexpectedStateError,
    WaitCancelledError,
    WaitTimeoutError,
)


class TestExceptionTaxonomy:
    """Test error codes, context and hierarchy."""

    @pytest.mark.parametrize(
        "error,code",
        [
            (ProbeError("boom"), "PROBE_ERROR"),
            (WaitTimeoutError(60, 60, 6, "build"), "WAIT_TIMEOUT_ERROR"),
            (WaitCancelledError(), "WAIT_CANCELLED_ERROR"),
            (UnexpectedStateError("ERROR"), "UNEXPECTED_STATE_ERROR"),
            (ResourceNotFoundError(21), "RESOURCE_NOT_FOUND_ERROR"),
            (ConfigurationError("bad"), "CONFIGURATION_ERROR"),
        ],
    )
    def test_codes(self, error, code):
        """Test that every error carries its code and shares the base class."""
        assert isinstance(error, ConvergencePollerError)
        assert error.code == code

    def test_base_error_defaults(self):
        """Test default code and context of the base error."""
        error = ConvergencePollerError("failed")

        assert error.code == "CONVERGENCE_POLLER_ERROR"
        assert error.context == {}
        assert str(error) == "failed"

    def test_timeout_error_diagnostic(self):
        """Test the timeout message and carried state."""
        snapshot = {"id": "pvm-1", "status": "BUILD"}
        error = WaitTimeoutError(
            timeout=3600,
            elapsed=3600.5,
            attempts=42,
            last_label="BUILD",
            last_snapshot=snapshot,
            target={"ACTIVE"},
        )

        assert isinstance(error, TimeoutError)
        assert str(error) == (
            "Operation did not converge within 3600s, last observed status = 'BUILD'"
        )
        assert error.last_snapshot is snapshot
        assert error.context["attempts"] == 42
        assert error.context["target"] == ["ACTIVE"]

    def test_probe_error_resource_id(self):
        """Test that probe errors keep the resource identifier."""
        error = ProbeError("not found", resource_id="net-1", context={"status": 404})

        assert error.resource_id == "net-1"
        assert error.context == {"status": 404}

    def test_unexpected_state_message(self):
        """Test the unexpected state message."""
        error = UnexpectedStateError("ERROR", pending={"build"}, target={"ACTIVE"})

        assert "'ERROR'" in str(error)
        assert error.pending == frozenset({"build"})
