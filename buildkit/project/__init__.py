"""Targets, their sources, and the fetch/build orchestrator."""

from buildkit.project.context import BuildContext
from buildkit.project.orchestrator import FetchState, fetch_target, get_target
from buildkit.project.resolve import SourceArgs, SourceKind, resolve_source
from buildkit.project.source import (
    BuildLocally,
    CiRunSource,
    External,
    GetTargetJob,
    LocalFileSource,
    OngoingCiRunSource,
    ReleaseSource,
)
from buildkit.project.targets import Backend, Gui, Wasm
from buildkit.project.types import Artifact, Target

__all__ = [
    "Artifact",
    "Backend",
    "BuildContext",
    "BuildLocally",
    "CiRunSource",
    "External",
    "FetchState",
    "GetTargetJob",
    "Gui",
    "LocalFileSource",
    "OngoingCiRunSource",
    "ReleaseSource",
    "SourceArgs",
    "SourceKind",
    "Target",
    "Wasm",
    "fetch_target",
    "get_target",
    "resolve_source",
]
