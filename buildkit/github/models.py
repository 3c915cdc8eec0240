"""Subset of the GitHub REST API payloads used by the toolkit."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class _GitHubModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class Asset(_GitHubModel):
    id: int
    name: str
    size: int
    # API URL; GET with `Accept: application/octet-stream` yields the content.
    url: str
    browser_download_url: Optional[str] = None
    content_type: Optional[str] = None


class Release(_GitHubModel):
    id: int
    tag_name: str
    name: Optional[str] = None
    draft: bool = False
    prerelease: bool = False
    created_at: datetime
    published_at: Optional[datetime] = None
    assets: list[Asset] = []


class WorkflowArtifact(_GitHubModel):
    id: int
    name: str
    size_in_bytes: int = 0
    archive_download_url: str
    expired: bool = False
