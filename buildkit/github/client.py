"""GitHub REST API client for releases and workflow run artifacts.

Uses httpx for async HTTP calls. A token is optional for public
repositories, but unauthenticated calls are heavily rate limited.

Operations:
1. Release lookup: all releases, the latest one, by tag text, newest nightly
2. Asset metadata and download headers
3. Workflow run artifacts: listing and zip download
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import httpx

from buildkit.core.errors import ResolutionError
from buildkit.fs import write_stream_to_file
from buildkit.github.models import Asset, Release, WorkflowArtifact
from buildkit.http import USER_AGENT, check_response

logger = logging.getLogger(__name__)

GITHUB_API_BASE = "https://api.github.com"
PER_PAGE = 100


@dataclass(frozen=True)
class RepoContext:
    owner: str
    name: str

    @classmethod
    def parse(cls, text: str) -> "RepoContext":
        owner, _, name = text.partition("/")
        if not owner or not name or "/" in name:
            raise ValueError(f"Repository must be given as 'owner/name', got {text!r}")
        return cls(owner=owner, name=name)

    def __str__(self) -> str:
        return f"{self.owner}/{self.name}"

    @property
    def api_url(self) -> str:
        return f"{GITHUB_API_BASE}/repos/{self.owner}/{self.name}"


def _auth_headers(token: str, accept: str = "application/vnd.github+json") -> dict[str, str]:
    headers = {
        "Accept": accept,
        "X-GitHub-Api-Version": "2022-11-28",
        "User-Agent": USER_AGENT,
    }
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return headers


def asset_download_headers(token: str) -> dict[str, str]:
    """Headers that make the asset API URL return the binary content."""
    return _auth_headers(token, accept="application/octet-stream")


# ---------------------------------------------------------------------------
# Releases
# ---------------------------------------------------------------------------


async def list_releases(token: str, repo: RepoContext) -> list[Release]:
    """All releases of the repository, newest first."""
    releases: list[Release] = []
    page = 1
    async with httpx.AsyncClient() as client:
        while True:
            response = await client.get(
                f"{repo.api_url}/releases",
                headers=_auth_headers(token),
                params={"per_page": PER_PAGE, "page": page},
            )
            await check_response(response)
            batch = [Release.model_validate(item) for item in response.json()]
            releases.extend(batch)
            if len(batch) < PER_PAGE:
                return releases
            page += 1


async def latest_release(token: str, repo: RepoContext) -> Release:
    async with httpx.AsyncClient() as client:
        response = await client.get(
            f"{repo.api_url}/releases/latest",
            headers=_auth_headers(token),
        )
        if response.status_code == 404:
            raise ResolutionError(f"Repository {repo} has no published release.")
        await check_response(response)
        return Release.model_validate(response.json())


async def find_release_by_text(token: str, repo: RepoContext, text: str) -> Release:
    """First release (newest first) whose tag contains `text`."""
    for release in await list_releases(token, repo):
        if text in release.tag_name:
            return release
    raise ResolutionError(f"No release with a tag containing {text!r} in {repo}.")


async def latest_nightly_release(token: str, repo: RepoContext) -> Release:
    """Most recently created non-draft release tagged as a nightly."""
    nightlies = [
        release
        for release in await list_releases(token, repo)
        if not release.draft and "nightly" in release.tag_name
    ]
    if not nightlies:
        raise ResolutionError(f"No nightly release found in {repo}.")
    return max(nightlies, key=lambda release: release.created_at)


async def get_asset(token: str, repo: RepoContext, asset_id: int) -> Asset:
    async with httpx.AsyncClient() as client:
        response = await client.get(
            f"{repo.api_url}/releases/assets/{asset_id}",
            headers=_auth_headers(token),
        )
        await check_response(response)
        return Asset.model_validate(response.json())


# ---------------------------------------------------------------------------
# Workflow run artifacts
# ---------------------------------------------------------------------------


async def list_run_artifacts(
    token: str,
    repo: RepoContext,
    run_id: int,
) -> list[WorkflowArtifact]:
    artifacts: list[WorkflowArtifact] = []
    page = 1
    async with httpx.AsyncClient() as client:
        while True:
            response = await client.get(
                f"{repo.api_url}/actions/runs/{run_id}/artifacts",
                headers=_auth_headers(token),
                params={"per_page": PER_PAGE, "page": page},
            )
            await check_response(response)
            batch = [
                WorkflowArtifact.model_validate(item)
                for item in response.json().get("artifacts", [])
            ]
            artifacts.extend(batch)
            if len(batch) < PER_PAGE:
                return artifacts
            page += 1


async def find_run_artifact(
    token: str,
    repo: RepoContext,
    run_id: int,
    artifact_name: str,
) -> WorkflowArtifact:
    artifacts = await list_run_artifacts(token, repo, run_id)
    for artifact in artifacts:
        if artifact.name == artifact_name:
            return artifact
    raise ResolutionError(
        f"Run {run_id} of {repo} has no artifact named {artifact_name!r}. "
        f"Available: {sorted(a.name for a in artifacts)}"
    )


async def download_run_artifact(
    token: str,
    artifact: WorkflowArtifact,
    output_path: Path,
    timeout: Optional[float] = 60.0,
) -> Path:
    """Download the zip of a run artifact to `output_path`.

    The API answers with a redirect to blob storage; httpx drops the
    Authorization header when following it to another host.
    """
    if artifact.expired:
        raise ResolutionError(f"Artifact {artifact.name!r} has expired.")
    logger.info("Downloading run artifact %s (%d bytes)", artifact.name, artifact.size_in_bytes)
    async with httpx.AsyncClient(follow_redirects=True, timeout=timeout) as client:
        async with client.stream(
            "GET",
            artifact.archive_download_url,
            headers=_auth_headers(token),
        ) as response:
            await check_response(response)
            await write_stream_to_file(response.aiter_bytes(), output_path)
    return output_path
