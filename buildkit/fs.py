"""Filesystem helpers used when materializing artifacts.

Destinations are populated all-or-nothing: work happens in a sibling
staging directory that is renamed over the destination on success and
removed on failure.

Security:
  - `validate_relative_path()` rejects any path containing `..` components,
    absolute paths and null bytes. Remote container listings are untrusted
    and are checked before anything is written locally.
"""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
import uuid
from pathlib import Path, PurePosixPath
from typing import AsyncIterable

logger = logging.getLogger(__name__)


def validate_relative_path(path: str) -> None:
    """Reject paths that could escape the directory they are joined to.

    Raises:
        ValueError: If the path is empty, absolute, or contains `..`
            components or null bytes.
    """
    if not path:
        raise ValueError("Path must not be empty")
    if "\x00" in path:
        raise ValueError(f"Invalid path: null byte detected: {path!r}")
    normalized = PurePosixPath(path.replace("\\", "/"))
    if normalized.is_absolute():
        raise ValueError(f"Invalid path: expected a relative path: {path!r}")
    if ".." in normalized.parts:
        raise ValueError(f"Invalid path: path traversal detected: {path!r}")


def create_dir_if_missing(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def remove_if_exists(path: Path) -> None:
    """Remove a file or a whole directory tree. Missing paths are ignored."""
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    elif path.exists() or path.is_symlink():
        path.unlink()


def _mirror(source: Path, destination: Path) -> None:
    if not source.is_dir():
        raise FileNotFoundError(f"Source directory {source} does not exist.")
    remove_if_exists(destination)
    create_dir_if_missing(destination.parent)
    shutil.copytree(source, destination, symlinks=True)


async def mirror_directory(source: Path, destination: Path) -> None:
    """Make `destination` an exact copy of the `source` directory tree.

    Anything previously present at `destination` is removed.
    """
    logger.debug("Mirroring %s to %s", source, destination)
    await asyncio.to_thread(_mirror, Path(source), Path(destination))


def staging_dir_for(destination: Path) -> Path:
    """Return a fresh sibling path where `destination` can be prepared."""
    suffix = uuid.uuid4().hex[:8]
    return destination.parent / f".{destination.name}.partial-{suffix}"


def promote(staging: Path, destination: Path) -> None:
    """Atomically replace `destination` with the prepared `staging` directory."""
    remove_if_exists(destination)
    os.replace(staging, destination)


async def write_stream_to_file(chunks: AsyncIterable[bytes], path: Path) -> int:
    """Write an async stream of byte chunks to `path`. Returns bytes written."""
    create_dir_if_missing(path.parent)
    written = 0
    with open(path, "wb") as out:
        async for chunk in chunks:
            if chunk:
                await asyncio.to_thread(out.write, chunk)
                written += len(chunk)
    return written
