"""Artifact uploader: publishes a set of files as one CI artifact.

The upload flow:
1. Create the artifact's file container
2. Upload files concurrently, each through the chunked file upload
3. PATCH the artifact with the total number of bytes uploaded

Work distribution:
  One producer feeds a bounded queue of files. `file_concurrency` workers
  each take one file at a time and report an `UploadResult` on a second
  queue. A single aggregator task owns the `UploadSummary`.

Error policy:
  continue_on_error=True  : failures are recorded, remaining files go on.
  continue_on_error=False : the first failure stops dispatch of new files.
                            Uploads already in flight still finish. Files
                            left in the queue are recorded as skipped and
                            `UploadError` is raised after finalization.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path, PurePosixPath
from typing import Iterable, Optional

import httpx

from buildkit.actions.session import SessionClient
from buildkit.actions.types import FileToUpload, UploadOptions, UploadResult, UploadSummary
from buildkit.core.errors import BuildkitError, UploadError
from buildkit.core.logging import bound_artifact

logger = logging.getLogger(__name__)


class ArtifactUploader:
    """Uploads files into an already created container."""

    def __init__(
        self,
        session: SessionClient,
        artifact_name: str,
        upload_url: str,
        options: UploadOptions,
    ) -> None:
        self.session = session
        self.artifact_name = artifact_name
        self.upload_url = upload_url
        self.options = options
        self.aborted = False

    async def run(self, files: list[FileToUpload]) -> UploadSummary:
        summary = UploadSummary(artifact_name=self.artifact_name)
        jobs: asyncio.Queue[Optional[FileToUpload]] = asyncio.Queue(
            maxsize=self.options.file_concurrency * 2
        )
        results: asyncio.Queue[Optional[UploadResult]] = asyncio.Queue()
        worker_count = min(self.options.file_concurrency, max(len(files), 1))

        async def produce() -> None:
            for job in files:
                await jobs.put(job)
            for _ in range(worker_count):
                await jobs.put(None)

        async def work() -> None:
            while True:
                job = await jobs.get()
                if job is None:
                    return
                if self.aborted:
                    await results.put(
                        UploadResult(
                            path=job.remote_path,
                            is_success=False,
                            successful_upload_size=0,
                            total_size=0,
                            skipped=True,
                        )
                    )
                    continue
                await results.put(await self._upload_one(job))

        async def aggregate() -> None:
            while True:
                result = await results.get()
                if result is None:
                    return
                summary.record(result)

        aggregator = asyncio.create_task(aggregate())
        try:
            async with asyncio.TaskGroup() as group:
                group.create_task(produce())
                for _ in range(worker_count):
                    group.create_task(work())
        except ExceptionGroup as errors:
            raise errors.exceptions[0]
        finally:
            await results.put(None)
            await aggregator
        return summary

    async def _upload_one(self, job: FileToUpload) -> UploadResult:
        # Files are stored under "<artifact name>/<remote path>" in the container.
        item_path = PurePosixPath(self.artifact_name) / job.remote_path
        try:
            total_size = (await asyncio.to_thread(job.local_path.stat)).st_size
        except OSError as exc:
            logger.error("Cannot read %s: %s", job.local_path, exc)
            self._on_failure()
            return UploadResult(job.remote_path, False, 0, 0, error=str(exc))

        try:
            sent = await self.session.upload_file(
                self.options.chunk_size,
                self.upload_url,
                job.local_path,
                item_path,
            )
        except (httpx.HTTPError, BuildkitError, OSError) as exc:
            logger.error("Failed to upload %s: %s", item_path, exc)
            self._on_failure()
            return UploadResult(job.remote_path, False, 0, total_size, error=str(exc))

        logger.debug("Uploaded %s (%d bytes)", item_path, sent)
        return UploadResult(job.remote_path, True, sent, total_size)

    def _on_failure(self) -> None:
        if not self.options.continue_on_error and not self.aborted:
            logger.warning("Stopping artifact upload after the first failure.")
            self.aborted = True


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


def discover_recursive(root: Path) -> list[FileToUpload]:
    """All regular files below `root`, with remote paths relative to it."""
    root = Path(root)
    return [
        FileToUpload.under_root(root, path)
        for path in sorted(root.rglob("*"))
        if path.is_file()
    ]


async def upload_artifact(
    session: SessionClient,
    files: Iterable[FileToUpload],
    artifact_name: str,
    options: Optional[UploadOptions] = None,
) -> UploadSummary:
    """Upload `files` as the artifact `artifact_name` of the current run.

    The artifact size is patched exactly once, after all uploads ended,
    with the sum of successfully uploaded bytes.

    Raises:
        QuotaExceededError, InvalidArtifactNameError: Container creation
            was refused; nothing is uploaded.
        UploadError: A file failed and `continue_on_error` is off.
    """
    options = options or UploadOptions()
    files = list(files)

    with bound_artifact(artifact_name):
        logger.info("Uploading %d files as artifact %s", len(files), artifact_name)
        container = await session.create_container(artifact_name, options.retention_days)
        uploader = ArtifactUploader(
            session,
            artifact_name,
            container.file_container_resource_url,
            options,
        )
        summary = await uploader.run(files)
        await session.patch_artifact_size(artifact_name, summary.total_size)

        logger.info(
            "Uploaded %d/%d files (%d of %d bytes) for artifact %s",
            summary.uploaded_count,
            len(files),
            summary.total_size,
            summary.attempted_size,
            artifact_name,
        )
        if summary.failed_count and not options.continue_on_error:
            raise UploadError(
                f"Upload of artifact {artifact_name} failed for "
                f"{summary.failed_count} file(s); {summary.skipped_count} skipped.",
                summary,
            )
        return summary


async def upload_directory(
    session: SessionClient,
    root: Path,
    artifact_name: str,
    options: Optional[UploadOptions] = None,
) -> UploadSummary:
    files = await asyncio.to_thread(discover_recursive, root)
    return await upload_artifact(session, files, artifact_name, options)


async def upload_single_file(
    session: SessionClient,
    path: Path,
    artifact_name: str,
    options: Optional[UploadOptions] = None,
) -> UploadSummary:
    return await upload_artifact(session, [FileToUpload.single(path)], artifact_name, options)
