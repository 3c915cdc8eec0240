"""Target and artifact types.

A `Target` is one buildable component of the product. Every target can be
produced by building it locally or by fetching a previously produced copy
from one of the external sources (see `buildkit.project.source`).

How a component is compiled is outside this toolkit: each target receives
a `Builder` callable that fills an output directory from a build input.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional

from buildkit.core.errors import ConfigurationError, ResolutionError
from buildkit.github.models import Asset

if TYPE_CHECKING:
    from buildkit.project.context import BuildContext

# (build input, output directory) -> None
Builder = Callable[[Any, Path], Awaitable[None]]


@dataclass(frozen=True)
class Artifact:
    """A target materialized on disk."""

    target: str
    path: Path


class Target(ABC):
    """Base class for the closed set of product targets."""

    name: str = ""
    builder: Optional[Builder] = None

    @property
    @abstractmethod
    def artifact_name(self) -> str:
        """Stable name under which the target is stored in CI artifacts.

        Unrelated to release asset names.
        """

    def resolve_build_input(self, context: "BuildContext", build_args: Any) -> Any:
        return build_args

    async def build(self, build_input: Any, output_path: Path) -> None:
        if self.builder is None:
            raise ConfigurationError(f"No builder is configured for target {self.name}.")
        await self.builder(build_input, output_path)

    async def adapt_artifact(self, path: Path) -> Artifact:
        if not path.is_dir():
            raise FileNotFoundError(f"Artifact directory {path} does not exist.")
        return Artifact(target=self.name, path=path)

    def find_asset(self, assets: list[Asset]) -> Asset:
        raise ResolutionError(f"Target {self.name} is not published as a release asset.")

    def release_archive_entry(self, asset: Asset) -> Optional[str]:
        """Top-level archive entry holding the target, None for the whole archive."""
        return None
