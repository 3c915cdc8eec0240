"""Types for the cache module.

A `Storable` describes one cacheable computation:

  key()          : JSON-serializable identity, stored in the marker file
  digest_bytes() : bytes hashed into the entry name (defaults to the key)
  generate()     : fills the entry directory, returns JSON-serializable metadata
  adapt()        : turns entry directory + metadata into the typed output

Metadata must not contain absolute paths so the cache stays relocatable.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Any, Generic, TypeVar

if TYPE_CHECKING:
    from buildkit.cache.store import Cache

# Bump to invalidate every existing entry after a layout change.
CACHE_VERSION = 1

Output = TypeVar("Output")


class Storable(ABC, Generic[Output]):
    @abstractmethod
    def key(self) -> Any:
        ...

    def digest_bytes(self) -> bytes:
        return json.dumps(self.key(), sort_keys=True, separators=(",", ":")).encode()

    @abstractmethod
    async def generate(self, cache: "Cache", store: Path) -> Any:
        ...

    @abstractmethod
    async def adapt(self, store: Path, metadata: Any) -> Output:
        ...
