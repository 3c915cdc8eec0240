"""Artifact service session bound to the current run."""

from __future__ import annotations

from pathlib import Path, PurePosixPath
from typing import AsyncIterator, Optional

import httpx

from buildkit.actions import raw
from buildkit.actions.context import ActionsContext
from buildkit.actions.models import (
    ArtifactResponse,
    ContainerEntry,
    CreateArtifactResponse,
    PatchArtifactSizeResponse,
)
from buildkit.core.config import Settings


class SessionClient:
    """Bundles the JSON and binary clients with the run's artifact URL.

    Use as an async context manager so both clients are closed:

        async with SessionClient.from_settings(settings) as session:
            await session.list_artifacts()
    """

    def __init__(
        self,
        json_client: httpx.AsyncClient,
        binary_client: httpx.AsyncClient,
        artifact_url: str,
    ) -> None:
        self.json_client = json_client
        self.binary_client = binary_client
        self.artifact_url = artifact_url

    @classmethod
    def new(cls, context: ActionsContext, timeout: float = 60.0) -> "SessionClient":
        return cls(
            json_client=context.json_client(timeout),
            binary_client=context.binary_client(timeout),
            artifact_url=context.artifact_url,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "SessionClient":
        return cls.new(ActionsContext.from_settings(settings), settings.http_timeout)

    async def __aenter__(self) -> "SessionClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.json_client.aclose()
        await self.binary_client.aclose()

    async def create_container(
        self,
        artifact_name: str,
        retention_days: Optional[int] = None,
    ) -> CreateArtifactResponse:
        return await raw.create_container(
            self.json_client, self.artifact_url, artifact_name, retention_days
        )

    async def list_artifacts(self) -> list[ArtifactResponse]:
        return await raw.list_artifacts(self.json_client, self.artifact_url)

    async def get_container_items(
        self,
        container_url: str,
        artifact_name: str,
    ) -> list[ContainerEntry]:
        return await raw.get_container_items(self.json_client, container_url, artifact_name)

    async def patch_artifact_size(
        self,
        artifact_name: str,
        size: int,
    ) -> PatchArtifactSizeResponse:
        return await raw.patch_artifact_size(
            self.json_client, self.artifact_url, artifact_name, size
        )

    async def upload_file(
        self,
        chunk_size: int,
        upload_url: str,
        local_path: Path,
        remote_path: PurePosixPath,
    ) -> int:
        return await raw.upload_file(
            self.binary_client, chunk_size, upload_url, local_path, remote_path
        )

    def download_item(self, content_location: str) -> AsyncIterator[bytes]:
        return raw.download_item(self.binary_client, content_location)
