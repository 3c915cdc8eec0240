"""Where a target comes from.

    Source
     ├── BuildLocally(build_input)
     └── External(source)
           ├── OngoingCiRunSource(artifact_name)
           ├── CiRunSource(repository, run_id, artifact_name)
           ├── LocalFileSource(path)
           └── ReleaseSource(repository, asset_id)
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Union

from buildkit.github.client import RepoContext


@dataclass(frozen=True)
class OngoingCiRunSource:
    artifact_name: str


@dataclass(frozen=True)
class CiRunSource:
    repository: RepoContext
    run_id: int
    artifact_name: str


@dataclass(frozen=True)
class LocalFileSource:
    path: Path


@dataclass(frozen=True)
class ReleaseSource:
    repository: RepoContext
    asset_id: int


ExternalSource = Union[OngoingCiRunSource, CiRunSource, LocalFileSource, ReleaseSource]


@dataclass(frozen=True)
class BuildLocally:
    build_input: Any


@dataclass(frozen=True)
class External:
    source: ExternalSource


Source = Union[BuildLocally, External]


def describe(source: Source) -> str:
    """Short human-readable form used in logs and errors."""
    match source:
        case BuildLocally():
            return "BuildLocally"
        case External(source=OngoingCiRunSource(artifact_name=name)):
            return f"OngoingCiRun({name})"
        case External(source=CiRunSource(repository=repo, run_id=run_id, artifact_name=name)):
            return f"CiRun({repo}, run {run_id}, {name})"
        case External(source=LocalFileSource(path=path)):
            return f"LocalFile({path})"
        case External(source=ReleaseSource(repository=repo, asset_id=asset_id)):
            return f"Release({repo}, asset {asset_id})"
    raise TypeError(f"Unknown source: {source!r}")


@dataclass(frozen=True)
class GetTargetJob:
    """A resolved request: obtain the target from `source` into `destination`."""

    source: Source
    destination: Path

    def __post_init__(self) -> None:
        object.__setattr__(self, "destination", Path(self.destination).absolute())
