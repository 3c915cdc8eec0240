"""Shared HTTP helpers on top of httpx.

`check_response()` is the single place where non-2xx replies become
`ArtifactServiceError`s. The error message always carries the status and,
when the body could be read and decoded, the body text. Callers refine the
error (e.g. 403 → quota exceeded) through `additional_context`.
"""

from __future__ import annotations

import re
from pathlib import PurePosixPath
from typing import Callable, Optional
from urllib.parse import unquote, urlparse

import httpx

from buildkit.core.errors import ArtifactServiceError

USER_AGENT = "buildkit"

ErrorContext = Callable[[int, ArtifactServiceError], ArtifactServiceError]

_FILENAME_RE = re.compile(r"filename\*?=(?:UTF-8'')?\"?([^\";]+)\"?", re.IGNORECASE)


async def check_response(
    response: httpx.Response,
    additional_context: Optional[ErrorContext] = None,
) -> httpx.Response:
    """Return the response unchanged if it succeeded, raise otherwise.

    Works for streamed responses as well: the body is read before the
    error is built.
    """
    if response.is_success:
        return response

    message = f"Server replied with status {response.status_code}."
    body: Optional[str] = None
    try:
        raw = await response.aread()
    except httpx.HTTPError as exc:
        message += f" Also failed to obtain the response body: {exc}"
    else:
        try:
            body = raw.decode("utf-8")
        except UnicodeDecodeError:
            body = None
        if body:
            message += f" Error response body was: {body}"

    error = ArtifactServiceError(message, status_code=response.status_code, body=body)
    if additional_context is not None:
        error = additional_context(response.status_code, error)
    raise error


def filename_from_url(url: str) -> Optional[str]:
    """Last path segment of the URL, or None if it has none."""
    name = PurePosixPath(unquote(urlparse(url).path)).name
    return name or None


def filename_from_response(response: httpx.Response) -> Optional[str]:
    """Filename declared by the Content-Disposition header, if any."""
    disposition = response.headers.get("content-disposition")
    if not disposition:
        return None
    match = _FILENAME_RE.search(disposition)
    if not match:
        return None
    name = PurePosixPath(unquote(match.group(1)).replace("\\", "/")).name
    return name or None
