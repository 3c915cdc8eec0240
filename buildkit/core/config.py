from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_cache_path() -> Path:
    return Path.home() / ".buildkit" / "cache"


class Settings(BaseSettings):
    """Toolkit settings loaded from environment variables.

    The CI identity fields use the names the hosting GitHub Actions runner
    exports, so no prefix is applied:

    ──────────────────────────────
    • ACTIONS_RUNTIME_URL     base URL of the artifact service
    • ACTIONS_RUNTIME_TOKEN   bearer token for the artifact service
    • GITHUB_RUN_ID           id of the currently executing run
    • GITHUB_ACTIONS          "true" when running inside a job

    Everything else has a default suitable for a developer machine.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Where downloads and extracted archives are memoized between runs.
    cache_path: Path = _default_cache_path()

    # Remote repository used for release and CI run lookups, "owner/name".
    repo_remote: str = "enso-org/enso"

    @field_validator("repo_remote")
    @classmethod
    def validate_repo_remote(cls, v: str) -> str:
        owner, _, name = v.partition("/")
        if not owner or not name or "/" in name:
            raise ValueError(f"Repository must be given as 'owner/name', got {v!r}")
        return v

    # GitHub REST API token. Optional, but unauthenticated calls hit rate
    # limits quickly.
    github_token: str = ""

    # GitHub Actions runner identity.
    github_actions: bool = False
    actions_runtime_url: str = ""
    actions_runtime_token: str = ""
    github_run_id: str = ""

    # Upload behaviour for the CI artifact service.
    upload_artifacts: bool = True
    upload_chunk_size: int = 8 * 1024 * 1024
    upload_file_concurrency: int = 10
    upload_continue_on_error: bool = True
    artifact_retention_days: int | None = None

    @field_validator("upload_chunk_size", "upload_file_concurrency")
    @classmethod
    def must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be a positive integer")
        return v

    # Seconds; applies to every HTTP request made by the toolkit.
    http_timeout: float = 60.0

    # App
    debug: bool = True


def get_settings() -> Settings:
    return Settings()
