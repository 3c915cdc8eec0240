"""Client for the GitHub Actions artifact service of the current run."""

from buildkit.actions.context import API_VERSION, ActionsContext
from buildkit.actions.download import download_artifact, download_single_file_artifact
from buildkit.actions.env import is_in_env
from buildkit.actions.session import SessionClient
from buildkit.actions.types import (
    ContentRange,
    FileToDownload,
    FileToUpload,
    UploadOptions,
    UploadResult,
    UploadSummary,
)
from buildkit.actions.upload import (
    discover_recursive,
    upload_artifact,
    upload_directory,
    upload_single_file,
)

__all__ = [
    "API_VERSION",
    "ActionsContext",
    "ContentRange",
    "FileToDownload",
    "FileToUpload",
    "SessionClient",
    "UploadOptions",
    "UploadResult",
    "UploadSummary",
    "discover_recursive",
    "download_artifact",
    "download_single_file_artifact",
    "is_in_env",
    "upload_artifact",
    "upload_directory",
    "upload_single_file",
]
