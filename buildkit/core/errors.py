"""Exception hierarchy shared by every buildkit component.

    BuildkitError
        ├── ConfigurationError        missing/invalid settings or parameters
        │     └── MissingParameterError
        ├── ResolutionError           no matching release, asset or artifact
        ├── ArtifactServiceError      non-2xx reply from a remote service
        │     ├── QuotaExceededError
        │     └── InvalidArtifactNameError
        ├── ArchiveError              unsupported or malformed archive
        ├── UploadError               file uploads failed with continue-on-error off
        └── TargetFetchError          top-level failure for one target request

Lower layers raise the specific type; upper layers wrap with
`raise TargetFetchError(...) from exc` so the chained traceback reads from
the request down to the HTTP status.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from buildkit.actions.types import UploadSummary


class BuildkitError(Exception):
    """Base class for all toolkit errors."""


class ConfigurationError(BuildkitError):
    """Raised before any network call when required configuration is absent."""


class MissingParameterError(ConfigurationError):
    """A source kind was chosen without one of its required parameters."""

    def __init__(self, parameter: str, message: str) -> None:
        super().__init__(message)
        self.parameter = parameter


class ResolutionError(BuildkitError):
    """A release, asset or artifact matching the search criteria was not found."""


class ArtifactServiceError(BuildkitError):
    """A remote service replied with a non-success status.

    `body` holds the response text when it could be read and decoded.
    """

    def __init__(
        self,
        message: str,
        status_code: int,
        body: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class QuotaExceededError(ArtifactServiceError):
    """Artifact storage quota hit. Not retryable."""


class InvalidArtifactNameError(ArtifactServiceError):
    """The service rejected the artifact name. Not retryable."""


class ArchiveError(BuildkitError):
    pass


class UploadError(BuildkitError):
    """One or more files failed to upload and continue-on-error was off."""

    def __init__(self, message: str, summary: "UploadSummary") -> None:
        super().__init__(message)
        self.summary = summary


class TargetFetchError(BuildkitError):
    """Could not complete a fetch or build request for a target."""

    def __init__(
        self,
        target: str,
        source: str,
        destination: Path,
    ) -> None:
        super().__init__(
            f"Could not complete request for target '{target}' "
            f"from source {source} into {destination}."
        )
        self.target = target
        self.source = source
        self.destination = destination
