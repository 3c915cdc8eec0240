"""Tests for source resolution."""

from pathlib import Path

import httpx
import pytest

from buildkit.core.errors import MissingParameterError, ResolutionError
from buildkit.project.context import BuildContext
from buildkit.project.resolve import SourceArgs, SourceKind, resolve_source
from buildkit.project.source import (
    BuildLocally,
    CiRunSource,
    External,
    LocalFileSource,
    OngoingCiRunSource,
    ReleaseSource,
)
from buildkit.project.targets import Backend, Wasm

PM_LINUX = "project-manager-bundle-{version}-linux-amd64.tar.gz"


@pytest.fixture
def context(make_settings):
    return BuildContext.from_settings(make_settings())


@pytest.fixture
def no_network(route_http):
    def handler(request):
        raise AssertionError(f"unexpected request to {request.url}")

    route_http(handler)


@pytest.fixture
def releases_api(route_http):
    def pm_release(id_, tag, created, asset_id):
        return {
            "id": id_,
            "tag_name": tag,
            "created_at": created,
            "assets": [
                {
                    "id": asset_id,
                    "name": PM_LINUX.format(version=tag),
                    "size": 10,
                    "url": f"https://api.github.com/assets/{asset_id}",
                },
                {"id": asset_id + 1, "name": "checksums.txt", "size": 1, "url": "u"},
            ],
        }

    newest = pm_release(2, "2024.2.1", "2024-05-01T00:00:00Z", 200)
    older = pm_release(1, "2024.1.1", "2024-04-01T00:00:00Z", 100)

    def handler(request):
        if request.url.path.endswith("/releases/latest"):
            return httpx.Response(200, json=newest)
        if request.url.path.endswith("/releases"):
            return httpx.Response(200, json=[newest, older])
        return httpx.Response(404, text="Not Found")

    route_http(handler)


def args(kind, tmp_path, **kwargs):
    return SourceArgs(source=kind, output_path=tmp_path / "out", **kwargs)


class TestResolveSource:
    async def test_build_uses_resolver(self, context, tmp_path, no_network):
        job = await resolve_source(
            context,
            Wasm(),
            args(SourceKind.BUILD, tmp_path, build_args={"profile": "dev"}),
            build_input_resolver=lambda ctx, build_args: ("resolved", build_args["profile"]),
        )

        assert job.source == BuildLocally(("resolved", "dev"))
        assert job.destination == (tmp_path / "out").absolute()

    async def test_build_requires_build_args(self, context, tmp_path, no_network):
        with pytest.raises(MissingParameterError) as excinfo:
            await resolve_source(context, Wasm(), args(SourceKind.BUILD, tmp_path))
        assert excinfo.value.parameter == "build_args"

    async def test_local_path_is_not_checked(self, context, tmp_path, no_network):
        job = await resolve_source(
            context, Wasm(), args(SourceKind.LOCAL, tmp_path, path=Path("/does/not/exist"))
        )
        assert job.source == External(LocalFileSource(Path("/does/not/exist")))

    async def test_ci_run_requires_run_id(self, context, tmp_path, no_network):
        with pytest.raises(MissingParameterError) as excinfo:
            await resolve_source(context, Wasm(), args(SourceKind.CI_RUN, tmp_path))
        assert excinfo.value.parameter == "run_id"

    async def test_ci_run_defaults_artifact_name(self, context, tmp_path, no_network):
        job = await resolve_source(context, Wasm(), args(SourceKind.CI_RUN, tmp_path, run_id=77))

        assert job.source == External(CiRunSource(context.remote_repo, 77, "gui_wasm"))

    async def test_ci_run_artifact_name_override(self, context, tmp_path, no_network):
        job = await resolve_source(
            context, Wasm(), args(SourceKind.CI_RUN, tmp_path, run_id=77, artifact_name="custom")
        )
        assert job.source.source.artifact_name == "custom"

    async def test_current_ci_run(self, context, tmp_path, no_network):
        job = await resolve_source(context, Wasm(), args("current-ci-run", tmp_path))
        assert job.source == External(OngoingCiRunSource("gui_wasm"))

    async def test_release_requires_designator(self, context, tmp_path, no_network):
        with pytest.raises(MissingParameterError) as excinfo:
            await resolve_source(context, Backend(), args(SourceKind.RELEASE, tmp_path))
        assert excinfo.value.parameter == "release"


class TestReleaseDesignator:
    async def test_latest_selects_asset_of_newest_release(self, context, tmp_path, releases_api):
        job = await resolve_source(
            context,
            Backend(target_os="linux", arch="amd64"),
            args(SourceKind.RELEASE, tmp_path, release="latest"),
        )
        assert job.source == External(ReleaseSource(context.remote_repo, 200))

    async def test_tag_substring(self, context, tmp_path, releases_api):
        job = await resolve_source(
            context,
            Backend(target_os="linux", arch="amd64"),
            args(SourceKind.RELEASE, tmp_path, release="2024.1"),
        )
        assert job.source.source.asset_id == 100

    async def test_unknown_designator(self, context, tmp_path, releases_api):
        with pytest.raises(ResolutionError, match="1999"):
            await resolve_source(
                context,
                Backend(target_os="linux", arch="amd64"),
                args(SourceKind.RELEASE, tmp_path, release="1999"),
            )

    async def test_release_without_matching_asset(self, context, tmp_path, releases_api):
        with pytest.raises(ResolutionError) as excinfo:
            await resolve_source(
                context,
                Backend(target_os="windows", arch="amd64"),
                args(SourceKind.RELEASE, tmp_path, release="latest"),
            )
        assert "latest" in str(excinfo.value)
        assert "2024.2.1" in str(excinfo.value.__cause__)
