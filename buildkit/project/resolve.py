"""Turning user-level source parameters into a `GetTargetJob`.

Parameter checks happen before any network call, so a missing run id or
release designator fails fast with `MissingParameterError`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Optional

from buildkit.core.errors import BuildkitError, MissingParameterError, ResolutionError
from buildkit.github import client as github
from buildkit.github.models import Release
from buildkit.project.context import BuildContext
from buildkit.project.source import (
    BuildLocally,
    CiRunSource,
    External,
    GetTargetJob,
    LocalFileSource,
    OngoingCiRunSource,
    ReleaseSource,
    Source,
)
from buildkit.project.types import Target

logger = logging.getLogger(__name__)

BuildInputResolver = Callable[[BuildContext, Any], Any]


class SourceKind(str, Enum):
    BUILD = "build"
    LOCAL = "local"
    CI_RUN = "ci-run"
    CURRENT_CI_RUN = "current-ci-run"
    RELEASE = "release"


@dataclass
class SourceArgs:
    source: SourceKind
    output_path: Path
    path: Optional[Path] = None
    run_id: Optional[int] = None
    artifact_name: Optional[str] = None
    release: Optional[str] = None
    build_args: Any = None


async def resolve_release_designator(
    context: BuildContext,
    target: Target,
    designator: str,
) -> ReleaseSource:
    """Pick the release named by `designator` and the target's asset in it.

    "latest" is the repository's latest release, "nightly" the newest
    nightly, and anything else is matched as a substring of the tag.
    """
    repo = context.remote_repo
    token = context.github_token
    try:
        release: Release
        if designator == "latest":
            release = await github.latest_release(token, repo)
        elif designator == "nightly":
            release = await github.latest_nightly_release(token, repo)
        else:
            release = await github.find_release_by_text(token, repo, designator)
        try:
            asset = target.find_asset(release.assets)
        except ResolutionError as exc:
            raise ResolutionError(
                f"Failed to find a relevant asset in the release '{release.tag_name}'."
            ) from exc
    except BuildkitError as exc:
        raise ResolutionError(
            f"Failed to resolve release designator `{designator}` in {repo}."
        ) from exc

    logger.info("Resolved %s to asset %s of release %s", designator, asset.name, release.tag_name)
    return ReleaseSource(repository=repo, asset_id=asset.id)


async def resolve_source(
    context: BuildContext,
    target: Target,
    args: SourceArgs,
    build_input_resolver: Optional[BuildInputResolver] = None,
) -> GetTargetJob:
    source: Source
    match SourceKind(args.source):
        case SourceKind.BUILD:
            if args.build_args is None:
                raise MissingParameterError(
                    "build_args", f"Missing build arguments for target {target.name}."
                )
            resolver = build_input_resolver or target.resolve_build_input
            source = BuildLocally(resolver(context, args.build_args))
        case SourceKind.LOCAL:
            if args.path is None:
                raise MissingParameterError(
                    "path", f"Missing path, please provide the {target.name} source path."
                )
            source = External(LocalFileSource(Path(args.path)))
        case SourceKind.CI_RUN:
            if args.run_id is None:
                raise MissingParameterError(
                    "run_id", f"Missing run ID, please provide the {target.name} run id."
                )
            source = External(
                CiRunSource(
                    repository=context.remote_repo,
                    run_id=args.run_id,
                    artifact_name=args.artifact_name or target.artifact_name,
                )
            )
        case SourceKind.CURRENT_CI_RUN:
            source = External(
                OngoingCiRunSource(artifact_name=args.artifact_name or target.artifact_name)
            )
        case SourceKind.RELEASE:
            if not args.release:
                raise MissingParameterError(
                    "release", f"Missing release designator for target {target.name}."
                )
            source = External(await resolve_release_designator(context, target, args.release))

    return GetTargetJob(source=source, destination=args.output_path)
