"""Archive extraction for downloaded bundles.

Supported formats are deduced from the filename:
  - .zip
  - .tar, .tar.gz / .tgz, .tar.xz / .txz, .tar.bz2 / .tbz2

Tar members are extracted with the "data" filter, which rejects absolute
paths, `..` components and links pointing outside the output directory.
`zipfile` sanitizes member names itself.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
import tarfile
import tempfile
import zipfile
from pathlib import Path
from typing import Optional

from buildkit.core.errors import ArchiveError
from buildkit.fs import create_dir_if_missing, validate_relative_path

logger = logging.getLogger(__name__)

# Longest suffixes first so ".tar.gz" wins over ".gz"-less ".tar" checks.
_TAR_MODES: list[tuple[str, str]] = [
    (".tar.gz", "r:gz"),
    (".tar.xz", "r:xz"),
    (".tar.bz2", "r:bz2"),
    (".tgz", "r:gz"),
    (".txz", "r:xz"),
    (".tbz2", "r:bz2"),
    (".tar", "r:"),
]


def _tar_mode(filename: str) -> Optional[str]:
    lowered = filename.lower()
    for suffix, mode in _TAR_MODES:
        if lowered.endswith(suffix):
            return mode
    return None


def is_archive_name(filename: str) -> bool:
    """True if the filename has an extension this module can extract."""
    return filename.lower().endswith(".zip") or _tar_mode(filename) is not None


def extract(archive_path: Path, output_dir: Path) -> None:
    """Extract the whole archive into `output_dir` (created if missing)."""
    archive_path = Path(archive_path)
    create_dir_if_missing(output_dir)
    logger.info("Unpacking %s to %s", archive_path.name, output_dir)

    if archive_path.name.lower().endswith(".zip"):
        try:
            with zipfile.ZipFile(archive_path) as archive:
                archive.extractall(output_dir)
        except zipfile.BadZipFile as exc:
            raise ArchiveError(f"{archive_path} is not a valid zip archive.") from exc
        return

    mode = _tar_mode(archive_path.name)
    if mode is None:
        raise ArchiveError(f"Unrecognized archive extension: {archive_path.name}")
    try:
        with tarfile.open(archive_path, mode) as archive:
            archive.extractall(output_dir, filter="data")
    except tarfile.TarError as exc:
        raise ArchiveError(f"Failed to unpack {archive_path}: {exc}") from exc


def extract_item(
    archive_path: Path,
    item: Optional[str],
    output_dir: Path,
) -> None:
    """Extract one top-level entry of the archive as `output_dir`.

    When `item` is a directory its contents become the contents of
    `output_dir`; when it is a file it is placed inside `output_dir`.
    With `item=None` the archive must have exactly one top-level entry,
    which is used.
    """
    output_dir = Path(output_dir)
    create_dir_if_missing(output_dir.parent)
    with tempfile.TemporaryDirectory(dir=output_dir.parent, prefix=".unpack-") as tmp:
        tmp_path = Path(tmp)
        extract(archive_path, tmp_path)

        if item is None:
            entries = list(tmp_path.iterdir())
            if len(entries) != 1:
                names = sorted(e.name for e in entries)
                raise ArchiveError(
                    f"Expected a single top-level entry in {archive_path.name}, "
                    f"found {len(entries)}: {names}"
                )
            source = entries[0]
        else:
            validate_relative_path(item)
            source = tmp_path / item
            if not source.exists():
                raise ArchiveError(f"Archive {archive_path.name} has no entry {item!r}.")

        create_dir_if_missing(output_dir)
        if source.is_dir():
            for child in source.iterdir():
                shutil.move(str(child), str(output_dir / child.name))
        else:
            shutil.move(str(source), str(output_dir / source.name))


async def extract_archive(archive_path: Path, output_dir: Path) -> None:
    await asyncio.to_thread(extract, archive_path, output_dir)


async def extract_archive_item(
    archive_path: Path,
    item: Optional[str],
    output_dir: Path,
) -> None:
    await asyncio.to_thread(extract_item, archive_path, item, output_dir)
