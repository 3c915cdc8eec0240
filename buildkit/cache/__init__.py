"""Content-addressable on-disk cache for downloads and extracted archives."""

from buildkit.cache.archive import ExtractedArchive
from buildkit.cache.download import DownloadFile
from buildkit.cache.store import Cache, digest
from buildkit.cache.types import CACHE_VERSION, Storable

__all__ = [
    "CACHE_VERSION",
    "Cache",
    "DownloadFile",
    "ExtractedArchive",
    "Storable",
    "digest",
]
