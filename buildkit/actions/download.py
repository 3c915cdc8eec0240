"""Download artifacts stored in the current run's artifact area."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from buildkit.actions.models import ArtifactResponse
from buildkit.actions.session import SessionClient
from buildkit.actions.types import DEFAULT_FILE_CONCURRENCY, FileToDownload
from buildkit.core.errors import ResolutionError
from buildkit.core.logging import bound_artifact
from buildkit.fs import write_stream_to_file

logger = logging.getLogger(__name__)


async def find_artifact(session: SessionClient, artifact_name: str) -> ArtifactResponse:
    artifacts = await session.list_artifacts()
    for artifact in artifacts:
        if artifact.name == artifact_name:
            return artifact
    available = sorted(a.name for a in artifacts)
    raise ResolutionError(
        f"No artifact named {artifact_name!r} in the current run. "
        f"Available: {available}"
    )


async def list_files(
    session: SessionClient,
    artifact_name: str,
    output_dir: Path,
) -> list[FileToDownload]:
    """Files of the artifact, mapped to paths under `output_dir`.

    Raises:
        ValueError: If any entry path escapes `output_dir` or does not
            belong to the artifact.
    """
    artifact = await find_artifact(session, artifact_name)
    entries = await session.get_container_items(
        artifact.file_container_resource_url, artifact_name
    )
    return [
        FileToDownload.from_entry(output_dir, entry, artifact_name)
        for entry in entries
        if entry.is_file
    ]


async def _fetch(session: SessionClient, file: FileToDownload) -> int:
    return await write_stream_to_file(
        session.download_item(file.remote_source_location), file.target
    )


async def download_artifact(
    session: SessionClient,
    artifact_name: str,
    output_dir: Path,
    file_concurrency: int = DEFAULT_FILE_CONCURRENCY,
) -> list[Path]:
    """Download every file of the artifact into `output_dir`.

    Paths inside the artifact are preserved. Returns the written paths.
    """
    output_dir = Path(output_dir).absolute()
    with bound_artifact(artifact_name):
        files = await list_files(session, artifact_name, output_dir)
        logger.info("Downloading %d files of artifact %s", len(files), artifact_name)

        semaphore = asyncio.Semaphore(file_concurrency)

        async def fetch_limited(file: FileToDownload) -> int:
            async with semaphore:
                return await _fetch(session, file)

        # The first failure cancels the remaining downloads and waits for them.
        try:
            async with asyncio.TaskGroup() as group:
                tasks = [group.create_task(fetch_limited(f)) for f in files]
        except ExceptionGroup as errors:
            raise errors.exceptions[0]
        logger.info(
            "Downloaded %d bytes into %s", sum(t.result() for t in tasks), output_dir
        )
        output_dir.mkdir(parents=True, exist_ok=True)
        return [f.target for f in files]


async def download_single_file_artifact(
    session: SessionClient,
    artifact_name: str,
    output_path: Path,
) -> Path:
    """Download an artifact holding exactly one file into `output_path`."""
    output_path = Path(output_path).absolute()
    with bound_artifact(artifact_name):
        files = await list_files(session, artifact_name, output_path.parent)
        if len(files) != 1:
            raise ResolutionError(
                f"Expected artifact {artifact_name!r} to contain a single file, "
                f"found {len(files)}."
            )
        await _fetch(session, FileToDownload(output_path, files[0].remote_source_location))
        logger.info("Downloaded artifact %s to %s", artifact_name, output_path)
        return output_path
