"""The product's targets."""

from __future__ import annotations

import platform
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from buildkit.archive import is_archive_name
from buildkit.core.errors import ResolutionError
from buildkit.github.models import Asset
from buildkit.project.types import Artifact, Builder, Target

WASM_ARTIFACT_NAME = "gui_wasm"
GUI_ARTIFACT_NAME = "gui_content"

# Assets this large are assumed to be bundles even without "bundle" in the name.
BUNDLE_SIZE_THRESHOLD = 200_000_000

_OS_NAMES = {"Linux": "linux", "Darwin": "macos", "Windows": "windows"}
_ARCH_NAMES = {"x86_64": "amd64", "amd64": "amd64", "arm64": "aarch64", "aarch64": "aarch64"}


def current_os() -> str:
    return _OS_NAMES.get(platform.system(), platform.system().lower())


def current_arch() -> str:
    machine = platform.machine()
    return _ARCH_NAMES.get(machine.lower(), machine.lower())


@dataclass(frozen=True)
class Wasm(Target):
    builder: Optional[Builder] = field(default=None, compare=False)
    name: str = "wasm"

    @property
    def artifact_name(self) -> str:
        return WASM_ARTIFACT_NAME


@dataclass(frozen=True)
class Gui(Target):
    builder: Optional[Builder] = field(default=None, compare=False)
    name: str = "gui"

    @property
    def artifact_name(self) -> str:
        return GUI_ARTIFACT_NAME


@dataclass(frozen=True)
class Backend(Target):
    """Project manager bundle for one operating system."""

    target_os: str = field(default_factory=current_os)
    arch: str = field(default_factory=current_arch)
    builder: Optional[Builder] = field(default=None, compare=False)
    name: str = "backend"

    @property
    def artifact_name(self) -> str:
        # No version in the name so bundles can be referenced without knowing it.
        return f"project-manager-{self.target_os}"

    def matches_platform(self, asset_name: str) -> bool:
        # e.g. "project-manager-bundle-2022.1.1-nightly.2022-04-16-linux-amd64.tar.gz"
        if self.target_os not in asset_name:
            return False
        # Apple Silicon also runs amd64 bundles under emulation.
        return self.arch in asset_name or (self.arch == "aarch64" and "amd64" in asset_name)

    def find_asset(self, assets: list[Asset]) -> Asset:
        for asset in assets:
            name = asset.name
            if (
                self.matches_platform(name)
                and is_archive_name(name)
                and "project-manager" in name
                and ("bundle" in name or asset.size > BUNDLE_SIZE_THRESHOLD)
            ):
                return asset
        raise ResolutionError(
            f"Failed to find a release asset with the project manager bundle for "
            f"{self.target_os}-{self.arch}."
        )

    def release_archive_entry(self, asset: Asset) -> Optional[str]:
        return "enso"

    async def adapt_artifact(self, path: Path) -> Artifact:
        artifact = await super().adapt_artifact(path)
        if not (path / "bin").is_dir():
            raise FileNotFoundError(f"Project manager bundle at {path} has no bin directory.")
        return artifact
