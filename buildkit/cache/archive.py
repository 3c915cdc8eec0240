"""Cached extraction of an archive produced by another storable."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from buildkit.archive import extract_archive, extract_archive_item
from buildkit.cache.store import Cache
from buildkit.cache.types import Storable


@dataclass(frozen=True)
class ExtractedArchive(Storable[Path]):
    """Unpacks the archive that `archive_source` yields.

    With `path_to_extract` set only that top-level entry is kept, and its
    contents become the entry directory. The output is the entry directory.
    """

    archive_source: Storable[Path]
    path_to_extract: Optional[str] = None

    def key(self) -> Any:
        return {
            "archive": self.archive_source.key(),
            "archive_kind": type(self.archive_source).__qualname__,
            "path_to_extract": self.path_to_extract,
        }

    async def generate(self, cache: Cache, store: Path) -> None:
        archive_path = await cache.get(self.archive_source)
        if self.path_to_extract is None:
            await extract_archive(archive_path, store)
        else:
            await extract_archive_item(archive_path, self.path_to_extract, store)
        return None

    async def adapt(self, store: Path, metadata: Any) -> Path:
        if not store.is_dir():
            raise FileNotFoundError(f"Extracted archive {store} is missing.")
        return store
