"""GitHub Actions runner environment detection."""

from typing import Optional

from buildkit.core.config import Settings, get_settings


def is_in_env(settings: Optional[Settings] = None) -> bool:
    """True when running inside a GitHub Actions job (GITHUB_ACTIONS=true)."""
    settings = settings or get_settings()
    return settings.github_actions
