"""Artifact service connection details for the current CI run.

The runner exports three variables that identify the run and authorize
access to its artifact area:

  ACTIONS_RUNTIME_URL    base URL of the service (ends with '/')
  ACTIONS_RUNTIME_TOKEN  bearer token
  GITHUB_RUN_ID          id of the run owning the artifacts

Two clients are built from them: a JSON client for container management
and a binary client for chunk uploads.
"""

from __future__ import annotations

from dataclasses import dataclass

import httpx

from buildkit.core.config import Settings
from buildkit.core.errors import ConfigurationError
from buildkit.http import USER_AGENT

API_VERSION = "6.0-preview"


@dataclass(frozen=True)
class ActionsContext:
    runtime_url: str
    runtime_token: str
    run_id: str

    @classmethod
    def from_settings(cls, settings: Settings) -> "ActionsContext":
        missing = [
            name
            for name, value in (
                ("ACTIONS_RUNTIME_URL", settings.actions_runtime_url),
                ("ACTIONS_RUNTIME_TOKEN", settings.actions_runtime_token),
                ("GITHUB_RUN_ID", settings.github_run_id),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(
                "Artifact service is not available, missing environment "
                f"variables: {', '.join(missing)}"
            )
        return cls(
            runtime_url=settings.actions_runtime_url,
            runtime_token=settings.actions_runtime_token,
            run_id=settings.github_run_id,
        )

    @property
    def artifact_url(self) -> str:
        base = self.runtime_url if self.runtime_url.endswith("/") else self.runtime_url + "/"
        return (
            f"{base}_apis/pipelines/workflows/{self.run_id}/artifacts"
            f"?api-version={API_VERSION}"
        )

    def _common_headers(self) -> dict[str, str]:
        return {
            "Accept": f"application/json;api-version={API_VERSION}",
            "Authorization": f"Bearer {self.runtime_token}",
            "User-Agent": USER_AGENT,
        }

    def json_client(self, timeout: float = 60.0) -> httpx.AsyncClient:
        headers = self._common_headers()
        headers["Content-Type"] = "application/json"
        return httpx.AsyncClient(headers=headers, timeout=timeout)

    def binary_client(self, timeout: float = 60.0) -> httpx.AsyncClient:
        headers = self._common_headers()
        headers["Content-Type"] = "application/octet-stream"
        headers["Connection"] = "Keep-Alive"
        headers["Keep-Alive"] = "3"
        return httpx.AsyncClient(headers=headers, timeout=timeout)
