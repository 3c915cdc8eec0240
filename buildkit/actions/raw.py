"""Endpoints of the artifact service.

Each function performs one request (or one sequence of chunk requests for
`upload_file`) on a caller-provided client. The clients carry the auth and
content-type headers, see `ActionsContext`.

Upload protocol for an artifact:
1. POST the artifact URL to create a file container
2. PUT each file (in chunks) to the container URL with `itemPath`
3. PATCH the artifact URL with the total size to finalize it
"""

from __future__ import annotations

import asyncio
import logging
import zlib
from pathlib import Path, PurePosixPath
from typing import AsyncIterator, Optional

import httpx

from buildkit.actions.context import API_VERSION
from buildkit.actions.models import (
    ArtifactResponse,
    ContainerEntry,
    CreateArtifactRequest,
    CreateArtifactResponse,
    ListArtifactsResponse,
    PatchArtifactSize,
    PatchArtifactSizeResponse,
    QueryArtifactResponse,
)
from buildkit.actions.types import ContentRange
from buildkit.core.errors import (
    ArtifactServiceError,
    InvalidArtifactNameError,
    QuotaExceededError,
)
from buildkit.http import check_response

logger = logging.getLogger(__name__)


def _with_query(url: str, **params: str) -> httpx.URL:
    return httpx.URL(url).copy_merge_params(params)


# ---------------------------------------------------------------------------
# Container management
# ---------------------------------------------------------------------------


async def create_container(
    client: httpx.AsyncClient,
    artifact_url: str,
    artifact_name: str,
    retention_days: Optional[int] = None,
) -> CreateArtifactResponse:
    """Create the file container for a new artifact.

    Raises:
        QuotaExceededError: On 403.
        InvalidArtifactNameError: On 400.
        ArtifactServiceError: On any other non-success status.
    """

    def refine(status: int, err: ArtifactServiceError) -> ArtifactServiceError:
        if status == 403:
            return QuotaExceededError(
                "Artifact storage quota has been hit. Unable to upload any new "
                f"artifacts. {err}",
                status_code=status,
                body=err.body,
            )
        if status == 400:
            return InvalidArtifactNameError(
                "Server rejected the request. Is the artifact name "
                f"{artifact_name} valid? {err}",
                status_code=status,
                body=err.body,
            )
        return err

    body = CreateArtifactRequest(name=artifact_name, retention_days=retention_days)
    response = await client.post(artifact_url, json=body.to_wire())
    await check_response(response, refine)
    container = CreateArtifactResponse.model_validate(response.json())
    logger.debug(
        "Created container %s for artifact %s",
        container.container_id,
        artifact_name,
    )
    return container


async def list_artifacts(
    client: httpx.AsyncClient,
    artifact_url: str,
) -> list[ArtifactResponse]:
    response = await client.get(artifact_url)
    await check_response(response)
    return ListArtifactsResponse.model_validate(response.json()).value


async def get_container_items(
    client: httpx.AsyncClient,
    container_url: str,
    artifact_name: str,
) -> list[ContainerEntry]:
    response = await client.get(_with_query(container_url, itemPath=artifact_name))
    await check_response(response)
    return QueryArtifactResponse.model_validate(response.json()).value


async def patch_artifact_size(
    client: httpx.AsyncClient,
    artifact_url: str,
    artifact_name: str,
    size: int,
) -> PatchArtifactSizeResponse:
    """Finalize the artifact by declaring its total uploaded size."""
    response = await client.patch(
        _with_query(artifact_url, artifactName=artifact_name),
        json=PatchArtifactSize(size=size).to_wire(),
    )
    await check_response(response)
    return PatchArtifactSizeResponse.model_validate(response.json())


# ---------------------------------------------------------------------------
# Upload
# ---------------------------------------------------------------------------


async def upload_file_chunk(
    client: httpx.AsyncClient,
    upload_url: str,
    body: bytes,
    content_range: ContentRange,
    remote_path: PurePosixPath,
) -> httpx.Response:
    response = await client.put(
        _with_query(upload_url, itemPath=remote_path.as_posix()),
        content=body,
        headers={
            "Content-Length": str(len(body)),
            "Content-Range": str(content_range),
        },
    )
    return await check_response(response)


async def upload_file(
    client: httpx.AsyncClient,
    chunk_size: int,
    upload_url: str,
    local_path: Path,
    remote_path: PurePosixPath,
) -> int:
    """Upload one file, returning the number of bytes sent.

    Files not larger than `chunk_size` go in a single request. Larger
    files are split into sequential chunks of at most `chunk_size` bytes
    with contiguous, increasing ranges.
    """
    size = (await asyncio.to_thread(local_path.stat)).st_size
    if size <= chunk_size:
        body = await asyncio.to_thread(local_path.read_bytes)
        await upload_file_chunk(
            client, upload_url, body, ContentRange.whole(len(body)), remote_path
        )
        return len(body)

    logger.debug(
        "Uploading %s (%d bytes) in chunks of %d bytes",
        remote_path,
        size,
        chunk_size,
    )
    sent = 0
    with open(local_path, "rb") as source:
        while sent < size:
            body = await asyncio.to_thread(source.read, chunk_size)
            if not body:
                break
            content_range = ContentRange(sent, sent + len(body) - 1, size)
            await upload_file_chunk(client, upload_url, body, content_range, remote_path)
            sent += len(body)
    return sent


# ---------------------------------------------------------------------------
# Download
# ---------------------------------------------------------------------------


async def download_item(
    client: httpx.AsyncClient,
    content_location: str,
) -> AsyncIterator[bytes]:
    """Stream the content of one container item.

    httpx decodes `Content-Encoding: gzip` transparently. The artifact
    service may instead flag a gzipped body with an `Accept-Encoding: gzip`
    response header, which httpx leaves alone, so that case is decompressed
    here. Either way the yielded bytes are the original file content.
    """
    headers = {
        "Accept": f"application/octet-stream;api-version={API_VERSION}",
        "Accept-Encoding": "gzip",
    }
    async with client.stream("GET", content_location, headers=headers) as response:
        await check_response(response)
        if not _is_flagged_gzip(response):
            async for chunk in response.aiter_bytes():
                yield chunk
            return

        decompressor = zlib.decompressobj(16 + zlib.MAX_WBITS)
        async for chunk in response.aiter_bytes():
            data = decompressor.decompress(chunk)
            if data:
                yield data
        tail = decompressor.flush()
        if tail:
            yield tail


def _is_flagged_gzip(response: httpx.Response) -> bool:
    if "content-encoding" in response.headers:
        return False
    return "gzip" in response.headers.get("accept-encoding", "").lower()
