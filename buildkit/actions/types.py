"""Types for the artifact transfer layer.

FileToUpload   : one local file and its path inside the artifact
FileToDownload : one container entry and where it lands locally
ContentRange   : inclusive byte range of an upload chunk
UploadResult   : outcome of a single file upload
UploadSummary  : aggregate over an artifact upload
UploadOptions  : chunking, concurrency and error policy
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Optional

from buildkit.actions.models import ContainerEntry
from buildkit.core.config import Settings
from buildkit.fs import validate_relative_path

DEFAULT_CHUNK_SIZE = 8 * 1024 * 1024
DEFAULT_FILE_CONCURRENCY = 10


@dataclass(frozen=True)
class FileToUpload:
    """`remote_path` is relative to the artifact and excludes its name."""

    local_path: Path
    remote_path: PurePosixPath

    @classmethod
    def under_root(cls, root: Path, local_path: Path) -> "FileToUpload":
        relative = Path(local_path).relative_to(root)
        return cls(local_path=Path(local_path), remote_path=PurePosixPath(relative.as_posix()))

    @classmethod
    def single(cls, local_path: Path) -> "FileToUpload":
        local_path = Path(local_path)
        if not local_path.name:
            raise ValueError(f"Cannot upload {local_path}: it has no file name.")
        return cls(local_path=local_path, remote_path=PurePosixPath(local_path.name))


@dataclass(frozen=True)
class FileToDownload:
    target: Path
    remote_source_location: str

    @classmethod
    def from_entry(
        cls,
        target_root: Path,
        entry: ContainerEntry,
        artifact_name: str,
    ) -> "FileToDownload":
        """Map a container entry to a local path under `target_root`.

        Raises:
            ValueError: If the entry path is not relative, escapes the root,
                does not start with the artifact name, or has no content
                location.
        """
        validate_relative_path(entry.path)
        parts = PurePosixPath(entry.path.replace("\\", "/")).parts
        if not parts or parts[0] != artifact_name:
            raise ValueError(
                f"Entry path {entry.path!r} does not start with the artifact name "
                f"{artifact_name!r}."
            )
        if not entry.content_location:
            raise ValueError(f"Entry {entry.path!r} has no content location.")
        return cls(
            target=Path(target_root).joinpath(*parts[1:]),
            remote_source_location=entry.content_location,
        )


@dataclass(frozen=True)
class ContentRange:
    start: int
    end: int
    total: Optional[int] = None

    @classmethod
    def whole(cls, length: int) -> "ContentRange":
        # A zero-length file renders as "bytes 0--1/0".
        return cls(start=0, end=length - 1, total=length)

    def __len__(self) -> int:
        return self.end - self.start + 1

    def __str__(self) -> str:
        total = "*" if self.total is None else str(self.total)
        return f"bytes {self.start}-{self.end}/{total}"


@dataclass
class UploadResult:
    path: PurePosixPath
    is_success: bool
    successful_upload_size: int
    total_size: int
    skipped: bool = False
    error: Optional[str] = None


@dataclass
class UploadSummary:
    artifact_name: str
    total_size: int = 0
    attempted_size: int = 0
    uploaded_count: int = 0
    failed_count: int = 0
    skipped_count: int = 0
    failed_paths: list[PurePosixPath] = field(default_factory=list)

    def record(self, result: UploadResult) -> None:
        if result.skipped:
            self.skipped_count += 1
            return
        self.attempted_size += result.total_size
        self.total_size += result.successful_upload_size
        if result.is_success:
            self.uploaded_count += 1
        else:
            self.failed_count += 1
            self.failed_paths.append(result.path)

    @property
    def is_success(self) -> bool:
        return self.failed_count == 0 and self.skipped_count == 0


@dataclass(frozen=True)
class UploadOptions:
    chunk_size: int = DEFAULT_CHUNK_SIZE
    file_concurrency: int = DEFAULT_FILE_CONCURRENCY
    continue_on_error: bool = True
    retention_days: Optional[int] = None

    def __post_init__(self) -> None:
        if self.chunk_size < 1:
            raise ValueError("chunk_size must be positive")
        if self.file_concurrency < 1:
            raise ValueError("file_concurrency must be positive")

    @classmethod
    def from_settings(cls, settings: Settings) -> "UploadOptions":
        return cls(
            chunk_size=settings.upload_chunk_size,
            file_concurrency=settings.upload_file_concurrency,
            continue_on_error=settings.upload_continue_on_error,
            retention_days=settings.artifact_retention_days,
        )
