"""Explicit per-process context handed to resolution and the orchestrator."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from buildkit.actions.env import is_in_env
from buildkit.actions.session import SessionClient
from buildkit.actions.types import UploadOptions
from buildkit.cache import Cache
from buildkit.core.config import Settings, get_settings
from buildkit.github.client import RepoContext


@dataclass
class BuildContext:
    """Built once at startup; components receive it instead of reading globals."""

    settings: Settings
    cache: Cache
    remote_repo: RepoContext

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "BuildContext":
        settings = settings or get_settings()
        return cls(
            settings=settings,
            cache=Cache.from_settings(settings),
            remote_repo=RepoContext.parse(settings.repo_remote),
        )

    @property
    def github_token(self) -> str:
        return self.settings.github_token

    @property
    def in_ci(self) -> bool:
        return is_in_env(self.settings)

    @property
    def upload_artifacts(self) -> bool:
        """Locally built targets are published only inside a CI job."""
        return self.settings.upload_artifacts and self.in_ci

    def upload_options(self) -> UploadOptions:
        return UploadOptions.from_settings(self.settings)

    def artifact_session(self) -> SessionClient:
        """New session for the current run's artifact area. Close after use."""
        return SessionClient.from_settings(self.settings)
