"""Obtaining a target: build it locally or fetch it from an external source.

State machine for one request:

    Requested → Resolving → Building | Downloading → Adapting → Ready
                                   ↘ Failed

Destinations are all-or-nothing. Everything is produced in a sibling
staging directory. The staged content is validated by the target and, for
local builds in CI, uploaded before it replaces the destination. On any
failure the staging directory is removed and the destination is left as
it was.

Locally built targets are uploaded to the current run's artifact area when
running inside CI with uploads enabled. Fetched targets never are.
"""

from __future__ import annotations

import asyncio
import logging
import tempfile
from dataclasses import replace
from enum import Enum
from pathlib import Path
from typing import Optional

from buildkit.actions.download import download_artifact
from buildkit.actions.upload import upload_directory
from buildkit.archive import extract_archive, is_archive_name
from buildkit.cache import DownloadFile, ExtractedArchive
from buildkit.core.errors import ArchiveError, TargetFetchError
from buildkit.core.logging import bound_target
from buildkit.fs import mirror_directory, promote, remove_if_exists, staging_dir_for
from buildkit.github import client as github
from buildkit.project.context import BuildContext
from buildkit.project.resolve import BuildInputResolver, SourceArgs, resolve_source
from buildkit.project.source import (
    BuildLocally,
    CiRunSource,
    External,
    ExternalSource,
    GetTargetJob,
    LocalFileSource,
    OngoingCiRunSource,
    ReleaseSource,
    describe,
)
from buildkit.project.types import Artifact, Target

logger = logging.getLogger(__name__)


class FetchState(str, Enum):
    REQUESTED = "requested"
    RESOLVING = "resolving"
    BUILDING = "building"
    DOWNLOADING = "downloading"
    ADAPTING = "adapting"
    READY = "ready"
    FAILED = "failed"


def _enter(state: FetchState, target: Target, detail: str = "") -> FetchState:
    logger.info("Target %s: %s%s", target.name, state.value, f" ({detail})" if detail else "")
    return state


# ---------------------------------------------------------------------------
# External sources
# ---------------------------------------------------------------------------


async def _fetch_ongoing_ci_run(
    context: BuildContext,
    source: OngoingCiRunSource,
    output: Path,
) -> None:
    async with context.artifact_session() as session:
        await download_artifact(session, source.artifact_name, output)


async def _fetch_ci_run(context: BuildContext, source: CiRunSource, output: Path) -> None:
    """Download the run artifact zip and unpack the archive nested inside it.

    Run artifacts are zipped by the service, so the produced archive sits
    inside another archive. Neither archive ends up in `output`.
    """
    artifact = await github.find_run_artifact(
        context.github_token, source.repository, source.run_id, source.artifact_name
    )
    with tempfile.TemporaryDirectory(dir=output.parent, prefix=".ci-run-") as tmp:
        tmp_path = Path(tmp)
        outer = await github.download_run_artifact(
            context.github_token,
            artifact,
            tmp_path / f"{artifact.name}.zip",
            timeout=context.settings.http_timeout,
        )
        unpacked = tmp_path / "unpacked"
        await extract_archive(outer, unpacked)

        inner = sorted(p for p in unpacked.iterdir() if p.is_file() and is_archive_name(p.name))
        if len(inner) > 1:
            raise ArchiveError(
                f"Run artifact {artifact.name} holds {len(inner)} archives, expected one."
            )
        if inner:
            await extract_archive(inner[0], output)
        else:
            logger.debug("Run artifact %s has no nested archive, using it as is.", artifact.name)
            await mirror_directory(unpacked, output)


async def _fetch_release(
    context: BuildContext,
    target: Target,
    source: ReleaseSource,
    output: Path,
) -> None:
    asset = await github.get_asset(context.github_token, source.repository, source.asset_id)
    download = DownloadFile(
        url=asset.url,
        headers=github.asset_download_headers(context.github_token),
        timeout=context.settings.http_timeout,
        filename=asset.name,
    )
    extracted = await context.cache.get(
        ExtractedArchive(download, target.release_archive_entry(asset))
    )
    await mirror_directory(extracted, output)


async def _fetch_external(
    context: BuildContext,
    target: Target,
    source: ExternalSource,
    output: Path,
) -> None:
    match source:
        case LocalFileSource(path=path):
            await mirror_directory(Path(path), output)
        case OngoingCiRunSource():
            await _fetch_ongoing_ci_run(context, source, output)
        case CiRunSource():
            await _fetch_ci_run(context, source, output)
        case ReleaseSource():
            await _fetch_release(context, target, source, output)
        case _:
            raise TypeError(f"Unknown external source: {source!r}")


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


async def get_target(context: BuildContext, target: Target, job: GetTargetJob) -> Artifact:
    """Materialize `target` at `job.destination` and return its artifact.

    Raises:
        TargetFetchError: Wrapping the underlying failure.
    """
    destination = job.destination
    source_name = describe(job.source)
    staging: Optional[Path] = None

    with bound_target(target.name):
        _enter(FetchState.REQUESTED, target, f"{source_name} -> {destination}")
        try:
            _enter(FetchState.RESOLVING, target, source_name)
            destination.parent.mkdir(parents=True, exist_ok=True)
            staging = staging_dir_for(destination)
            staging.mkdir()

            match job.source:
                case BuildLocally(build_input=build_input):
                    _enter(FetchState.BUILDING, target)
                    await target.build(build_input, staging)
                case External(source=external):
                    _enter(FetchState.DOWNLOADING, target)
                    await _fetch_external(context, target, external, staging)

            _enter(FetchState.ADAPTING, target)
            artifact = await target.adapt_artifact(staging)

            if isinstance(job.source, BuildLocally) and context.upload_artifacts:
                async with context.artifact_session() as session:
                    await upload_directory(
                        session,
                        staging,
                        target.artifact_name,
                        context.upload_options(),
                    )

            await asyncio.to_thread(promote, staging, destination)
            staging = None
            artifact = replace(artifact, path=destination)
        except Exception as exc:
            _enter(FetchState.FAILED, target, str(exc))
            if staging is not None:
                await asyncio.to_thread(remove_if_exists, staging)
            raise TargetFetchError(target.name, source_name, destination) from exc

        _enter(FetchState.READY, target, str(artifact.path))
        return artifact


async def fetch_target(
    context: BuildContext,
    target: Target,
    args: SourceArgs,
    build_input_resolver: Optional[BuildInputResolver] = None,
) -> Artifact:
    """Resolve `args` into a job and run it."""
    job = await resolve_source(context, target, args, build_input_resolver)
    return await get_target(context, target, job)
