"""On-disk content-addressable cache.

Layout under the cache root:

    <code>/       payload directory filled by `Storable.generate()`
    <code>.json   completion marker: {"key": ..., "metadata": ...}

The marker is written only after generation succeeded, so an entry
directory without a marker is leftover from an interrupted run and is
regenerated from scratch. Entries are never evicted.
"""

from __future__ import annotations

import asyncio
import base64
import hashlib
import json
import logging
import os
import tempfile
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Optional, TypeVar

from buildkit.cache.types import CACHE_VERSION, Storable
from buildkit.core.config import Settings
from buildkit.fs import create_dir_if_missing, remove_if_exists

logger = logging.getLogger(__name__)

Output = TypeVar("Output")

_MISSING = object()


def digest(storable: Storable) -> str:
    """Entry name for a storable: unpadded base64url of a SHA-224 digest.

    The storable's type takes part in the digest so two kinds of storable
    sharing a key never share an entry.
    """
    kind = type(storable)
    hasher = hashlib.sha224()
    hasher.update(bytes([CACHE_VERSION]))
    hasher.update(storable.digest_bytes())
    hasher.update(f"{kind.__module__}.{kind.__qualname__}".encode())
    return base64.urlsafe_b64encode(hasher.digest()).rstrip(b"=").decode("ascii")


class Cache:
    """Memoizes storables under `root`. Creates the root if missing."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root).absolute()
        create_dir_if_missing(self.root)
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = {}

    @classmethod
    def from_settings(cls, settings: Settings) -> "Cache":
        return cls(settings.cache_path)

    def entry_dir(self, storable: Storable) -> Path:
        return self.root / digest(storable)

    @asynccontextmanager
    async def _locked(self, code: str) -> AsyncIterator[None]:
        """Serialize work on one entry. The lock is dropped once nobody waits on it."""
        lock = self._locks.setdefault(code, asyncio.Lock())
        self._waiters[code] = self._waiters.get(code, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[code] -= 1
            if not self._waiters[code]:
                del self._waiters[code]
                del self._locks[code]

    async def get(self, storable: Storable[Output]) -> Output:
        code = digest(storable)
        entry_dir = self.root / code
        marker = self.root / f"{code}.json"

        async with self._locked(code):
            metadata = _read_marker(marker)
            if metadata is not _MISSING:
                try:
                    output = await storable.adapt(entry_dir, metadata)
                except OSError as exc:
                    logger.warning(
                        "Cached entry %s could not be used (%s); regenerating.",
                        code,
                        exc,
                    )
                else:
                    logger.debug("Found %s in cache, skipping generation.", code)
                    return output

            logger.debug("Entry %s not in cache, generating.", code)
            remove_if_exists(marker)
            remove_if_exists(entry_dir)
            create_dir_if_missing(entry_dir)
            metadata = await storable.generate(self, entry_dir)
            _write_marker(marker, {"key": storable.key(), "metadata": metadata})
            logger.info("Stored cache entry %s.", code)
            return await storable.adapt(entry_dir, metadata)


def _read_marker(marker: Path) -> Any:
    """Metadata from the marker, or `_MISSING` if absent or unreadable."""
    try:
        data = json.loads(marker.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return _MISSING
    except (OSError, ValueError) as exc:
        logger.warning("Ignoring unreadable cache marker %s: %s", marker, exc)
        return _MISSING
    if not isinstance(data, dict) or "metadata" not in data:
        logger.warning("Ignoring malformed cache marker %s", marker)
        return _MISSING
    return data["metadata"]


def _write_marker(marker: Path, payload: dict) -> None:
    fd, tmp_name = tempfile.mkstemp(dir=marker.parent, prefix=f".{marker.name}.")
    tmp: Optional[Path] = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as out:
            json.dump(payload, out)
            out.flush()
            os.fsync(out.fileno())
        os.replace(tmp, marker)
        tmp = None
    finally:
        if tmp is not None:
            tmp.unlink(missing_ok=True)
