"""Tests for the error hierarchy."""

from pathlib import Path

from buildkit.core.errors import (
    ArtifactServiceError,
    BuildkitError,
    ConfigurationError,
    InvalidArtifactNameError,
    MissingParameterError,
    QuotaExceededError,
    TargetFetchError,
)


class TestHierarchy:
    def test_service_errors_share_a_base(self):
        assert issubclass(QuotaExceededError, ArtifactServiceError)
        assert issubclass(InvalidArtifactNameError, ArtifactServiceError)
        assert issubclass(ArtifactServiceError, BuildkitError)

    def test_missing_parameter_is_a_configuration_error(self):
        err = MissingParameterError("run_id", "Missing run ID.")
        assert isinstance(err, ConfigurationError)
        assert err.parameter == "run_id"

    def test_service_error_keeps_status_and_body(self):
        err = ArtifactServiceError("Server replied with status 500.", status_code=500, body="oops")
        assert err.status_code == 500
        assert err.body == "oops"

    def test_target_fetch_error_names_request(self):
        err = TargetFetchError("backend", "LocalFile(/src)", Path("/out/backend"))
        message = str(err)
        assert "backend" in message
        assert "LocalFile(/src)" in message
        assert str(Path("/out/backend")) in message
