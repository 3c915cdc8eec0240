"""Cached HTTP download of a single file."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import httpx

from buildkit.cache.store import Cache
from buildkit.cache.types import Storable
from buildkit.fs import validate_relative_path, write_stream_to_file
from buildkit.http import (
    USER_AGENT,
    check_response,
    filename_from_response,
    filename_from_url,
)

logger = logging.getLogger(__name__)

DEFAULT_FILENAME = "data"


@dataclass(frozen=True)
class DownloadFile(Storable[Path]):
    """One streamed GET of `url`; the output is the path of the stored file.

    Only the URL identifies the entry. Headers (e.g. auth) and the filename
    hint do not change what is downloaded and stay out of the key.
    """

    url: str
    headers: dict[str, str] = field(default_factory=dict, compare=False, hash=False)
    timeout: float = field(default=60.0, compare=False)
    # Used when the server does not name the file in Content-Disposition.
    filename: Optional[str] = field(default=None, compare=False)

    def key(self) -> Any:
        return {"url": self.url}

    def digest_bytes(self) -> bytes:
        return self.url.encode()

    async def generate(self, cache: Cache, store: Path) -> str:
        headers = {"User-Agent": USER_AGENT, **self.headers}
        logger.info("Downloading %s", self.url)
        async with httpx.AsyncClient(
            follow_redirects=True,
            timeout=self.timeout,
        ) as client:
            async with client.stream("GET", self.url, headers=headers) as response:
                await check_response(response)
                filename = (
                    filename_from_response(response)
                    or self.filename
                    or filename_from_url(str(response.url))
                    or filename_from_url(self.url)
                    or DEFAULT_FILENAME
                )
                validate_relative_path(filename)
                size = await write_stream_to_file(response.aiter_bytes(), store / filename)
        logger.debug("Downloaded %d bytes into %s", size, filename)
        return filename

    async def adapt(self, store: Path, metadata: Optional[str]) -> Path:
        if not isinstance(metadata, str):
            raise FileNotFoundError(f"Cache metadata does not name a file: {metadata!r}")
        path = store / metadata
        if not path.is_file():
            raise FileNotFoundError(f"Cached download {path} is missing.")
        return path
