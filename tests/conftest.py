"""Shared test fixtures for the buildkit test suite.

HTTP never leaves the process: `route_http` swaps `httpx.AsyncClient` for a
factory that injects an `httpx.MockTransport`, so every client created by
the code under test (with its real headers and timeouts) talks to a
handler function instead of the network.

`artifact_service` is an in-memory artifact service implementing the
container protocol: create, chunked PUT, PATCH size, list and download.
"""

import gzip
import json
import re
from pathlib import Path
from typing import Callable
from urllib.parse import quote, unquote

import httpx
import pytest

from buildkit.actions.context import ActionsContext
from buildkit.core.config import Settings

RUNTIME_URL = "https://pipelines.example/runtime/"
RUNTIME_TOKEN = "runtime-token"
RUN_ID = "4242"
FILES_HOST = "https://files.example"

_RANGE_RE = re.compile(r"bytes (\d+)-(-?\d+)/(\d+|\*)")


# ---------------------------------------------------------------------------
# HTTP routing
# ---------------------------------------------------------------------------


@pytest.fixture
def route_http(monkeypatch) -> Callable:
    """Install a request handler for every httpx.AsyncClient created afterwards."""
    real_client = httpx.AsyncClient

    def install(handler):
        transport = httpx.MockTransport(handler)

        def factory(*args, **kwargs):
            kwargs["transport"] = transport
            return real_client(*args, **kwargs)

        monkeypatch.setattr(httpx, "AsyncClient", factory)
        return transport

    return install


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@pytest.fixture
def make_settings(tmp_path) -> Callable[..., Settings]:
    """Settings isolated from the real environment and .env files."""

    def build(**overrides) -> Settings:
        values = dict(
            cache_path=tmp_path / "cache",
            repo_remote="acme/product",
            github_token="gh-token",
            github_actions=False,
            actions_runtime_url="",
            actions_runtime_token="",
            github_run_id="",
            upload_artifacts=True,
            upload_chunk_size=8 * 1024 * 1024,
            upload_file_concurrency=4,
            upload_continue_on_error=True,
            artifact_retention_days=None,
            debug=True,
        )
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return build


@pytest.fixture
def ci_settings(make_settings) -> Settings:
    """Settings of a process running inside a CI job."""
    return make_settings(
        github_actions=True,
        actions_runtime_url=RUNTIME_URL,
        actions_runtime_token=RUNTIME_TOKEN,
        github_run_id=RUN_ID,
    )


# ---------------------------------------------------------------------------
# Fake artifact service
# ---------------------------------------------------------------------------


class FakeArtifactService:
    def __init__(self) -> None:
        self.context = ActionsContext(RUNTIME_URL, RUNTIME_TOKEN, RUN_ID)
        # artifact name -> {item path -> content}
        self.containers: dict[str, dict[str, bytearray]] = {}
        self.sizes: dict[str, int] = {}
        self.requests: list[httpx.Request] = []
        self.patches: list[tuple[str, int]] = []
        self.chunk_ranges: dict[str, list[str]] = {}
        self.fail_items: set[str] = set()
        self.create_status = 201
        self.create_body = ""
        self.gzip_downloads = False

    # -- helpers for assertions ---------------------------------------------

    def requests_with(self, method: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method]

    def files_of(self, artifact_name: str) -> dict[str, bytes]:
        prefix = f"{artifact_name}/"
        return {
            path[len(prefix):]: bytes(data)
            for path, data in self.containers.get(artifact_name, {}).items()
        }

    def seed(self, artifact_name: str, files: dict[str, bytes]) -> None:
        container = self.containers.setdefault(artifact_name, {})
        for relative, data in files.items():
            container[f"{artifact_name}/{relative}"] = bytearray(data)
        self.sizes[artifact_name] = sum(len(d) for d in files.values())

    # -- request handling ---------------------------------------------------

    def _container_url(self, name: str) -> str:
        return f"{FILES_HOST}/container/{quote(name)}"

    def _artifact_json(self, name: str) -> dict:
        return {
            "containerId": 1,
            "size": self.sizes.get(name, -1),
            "signedContent": None,
            "fileContainerResourceUrl": self._container_url(name),
            "type": "actions_storage",
            "name": name,
            "url": f"{RUNTIME_URL}artifacts/{quote(name)}",
        }

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path.endswith(f"/workflows/{RUN_ID}/artifacts"):
            if request.method == "POST":
                if self.create_status != 201:
                    return httpx.Response(self.create_status, text=self.create_body)
                name = json.loads(request.content)["Name"]
                self.containers.setdefault(name, {})
                return httpx.Response(
                    201,
                    json={**self._artifact_json(name), "expiresOn": "2030-01-01T00:00:00Z"},
                )
            if request.method == "GET":
                names = [n for n in self.containers if n in self.sizes]
                return httpx.Response(
                    200,
                    json={"count": len(names), "value": [self._artifact_json(n) for n in names]},
                )
            if request.method == "PATCH":
                name = request.url.params["artifactName"]
                size = json.loads(request.content)["Size"]
                self.patches.append((name, size))
                self.sizes[name] = size
                return httpx.Response(200, json=self._artifact_json(name))

        if path.startswith("/container/"):
            name = unquote(path[len("/container/"):])
            item = request.url.params["itemPath"]
            if request.method == "PUT":
                return self._put_chunk(name, item, request)
            if request.method == "GET":
                return self._list_items(name, item)

        if path.startswith("/content/"):
            name, _, item = unquote(path[len("/content/"):]).partition("|")
            data = bytes(self.containers[name][item])
            if self.gzip_downloads:
                return httpx.Response(
                    200,
                    content=gzip.compress(data),
                    headers={"Content-Encoding": "gzip"},
                )
            return httpx.Response(200, content=data)

        return httpx.Response(404, text=f"no route for {request.method} {request.url}")

    def _put_chunk(self, name: str, item: str, request: httpx.Request) -> httpx.Response:
        if item in self.fail_items:
            return httpx.Response(500, text="storage failure")
        header = request.headers["Content-Range"]
        self.chunk_ranges.setdefault(item, []).append(header)
        start = int(_RANGE_RE.match(header).group(1))
        content = request.content
        assert int(request.headers["Content-Length"]) == len(content)
        stored = self.containers[name].setdefault(item, bytearray())
        if len(stored) < start:
            stored.extend(b"\0" * (start - len(stored)))
        stored[start:start + len(content)] = content
        return httpx.Response(200, json={})

    def _list_items(self, name: str, prefix: str) -> httpx.Response:
        entries = [
            {
                "containerId": 1,
                "path": prefix,
                "itemType": "folder",
                "contentLocation": None,
            }
        ]
        for item in sorted(self.containers.get(name, {})):
            entries.append(
                {
                    "containerId": 1,
                    "path": item,
                    "itemType": "file",
                    "fileLength": len(self.containers[name][item]),
                    "contentLocation": f"{FILES_HOST}/content/{quote(name + '|' + item)}",
                }
            )
        return httpx.Response(200, json={"count": len(entries), "value": entries})


@pytest.fixture
def artifact_service(route_http) -> FakeArtifactService:
    service = FakeArtifactService()
    route_http(service.handler)
    return service


# ---------------------------------------------------------------------------
# Filesystem
# ---------------------------------------------------------------------------


def write_tree(root: Path, files: dict[str, bytes]) -> Path:
    for relative, data in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
    return root


def read_tree(root: Path) -> dict[str, bytes]:
    return {
        path.relative_to(root).as_posix(): path.read_bytes()
        for path in sorted(root.rglob("*"))
        if path.is_file()
    }


@pytest.fixture
def tree_io():
    """(write_tree, read_tree) helpers for directory fixtures."""
    return write_tree, read_tree
