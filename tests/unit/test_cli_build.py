from pathlib import Path

import pytest
from click.testing import CliRunner

from pageforge.build.layout import BuildLayout
from pageforge.build.pipeline import BuildResult
from pageforge.build.state import BuildState, PageInfo
from pageforge.cli.main import cli, format_summary
from pageforge.errors import InvalidPagesError
from pageforge.ids import new_preview_props
from pageforge.manifests.assembler import PrerenderManifest
from pageforge.routing.manifest import CustomRoutes, build_routes_manifest


def make_result(tmp_path: Path, custom_routes: CustomRoutes | None = None) -> BuildResult:
    state = BuildState(
        project_dir=tmp_path,
        pages_dir=tmp_path / "pages",
        layout=BuildLayout(tmp_path / ".pageforge", "bid"),
        preview=new_preview_props(),
        mapped_pages={"/": "a", "/post/[id]": "b", "/feed": "c"},
    )
    bundle = tmp_path / "x.py"
    state.page_infos = {
        "/": PageInfo(size=10, total_size=20, server_bundle=bundle, static=True),
        "/post/[id]": PageInfo(
            size=30, total_size=40, server_bundle=bundle, is_ssg=True, ssg_page_routes=["/post/1"]
        ),
        "/feed": PageInfo(size=50, total_size=60, server_bundle=bundle),
    }
    state.static_pages = {"/"}
    state.ssg_pages = {"/post/[id]"}
    return BuildResult(
        state=state,
        routes_manifest=build_routes_manifest(state.page_keys, custom_routes or CustomRoutes()),
        prerender_manifest=PrerenderManifest(preview=state.preview),
    )


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch: pytest.MonkeyPatch) -> list[tuple]:
    calls: list[tuple] = []
    monkeypatch.setattr(
        "pageforge.cli.main.configure_logging",
        lambda level, json_output=None: calls.append((level, json_output)),
    )
    return calls


def test_format_summary(tmp_path: Path) -> None:
    summary = format_summary(make_result(tmp_path))
    lines = summary.splitlines()
    assert lines[0] == "build id: bid"
    assert any(line.startswith("○ /") and "10 B" in line for line in lines)
    assert any(line.startswith("● /post/[id]") for line in lines)
    assert "  ├ /post/1" in lines
    assert any(line.startswith("λ /feed") for line in lines)


def test_format_summary_lists_custom_routes(tmp_path: Path) -> None:
    routes = CustomRoutes(
        redirects=[{"source": "/old", "destination": "/new", "permanent": True}],
        rewrites=[{"source": "/blog/:slug", "destination": "/post/:slug"}],
        headers=[{"source": "/(.*)", "headers": [{"key": "x-frame", "value": "DENY"}]}],
    )
    lines = format_summary(make_result(tmp_path, routes)).splitlines()

    redirects = lines.index("Redirects")
    assert lines[redirects + 1 : redirects + 4] == [
        "┌ source: /old",
        "├ destination: /new",
        "└ statusCode: 308",
    ]
    rewrites = lines.index("Rewrites")
    assert lines[rewrites + 1 : rewrites + 3] == [
        "┌ source: /blog/:slug",
        "└ destination: /post/:slug",
    ]
    headers = lines.index("Headers")
    assert lines[headers + 1 :] == ["┌ source: /(.*)", "└ headers:", "  └ x-frame: DENY"]


def test_format_summary_omits_empty_custom_routes(tmp_path: Path) -> None:
    lines = format_summary(make_result(tmp_path)).splitlines()
    assert not {"Redirects", "Rewrites", "Headers"} & set(lines)


def test_build_passes_overrides(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, quiet_logging: list[tuple]
) -> None:
    seen = {}

    async def fake_run_build(project_dir: Path, *, config):
        seen["project_dir"] = project_dir
        seen["config"] = config
        return make_result(tmp_path)

    monkeypatch.setattr("pageforge.cli.main.run_build", fake_run_build)
    result = CliRunner().invoke(
        cli,
        [
            "build",
            str(tmp_path),
            "--compiler",
            "bundler:compile",
            "--exporter",
            "bundler:export",
            "--cpus",
            "3",
            "--worker-threads",
            "--target",
            "serverless",
            "--json-logs",
        ],
    )

    assert result.exit_code == 0, result.output
    assert "build id: bid" in result.output
    config = seen["config"]
    assert seen["project_dir"] == tmp_path
    assert config.compiler == "bundler:compile"
    assert config.exporter == "bundler:export"
    assert config.cpus == 3
    assert config.worker_threads is True
    assert config.target == "serverless"
    assert quiet_logging == [("INFO", True)]


def test_build_errors_exit_nonzero(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    async def failing_run_build(project_dir: Path, *, config):
        raise InvalidPagesError(["/broken"])

    monkeypatch.setattr("pageforge.cli.main.run_build", failing_run_build)
    result = CliRunner().invoke(cli, ["build", str(tmp_path)])

    assert result.exit_code == 1
    assert "pages/broken" in result.output


def test_invalid_cpus(tmp_path: Path) -> None:
    result = CliRunner().invoke(cli, ["build", str(tmp_path), "--cpus", "0"])
    assert result.exit_code == 1
    assert "--cpus must be > 0" in result.output


def test_invalid_config_file(tmp_path: Path) -> None:
    (tmp_path / "pageforge.config.json").write_text("{broken")
    result = CliRunner().invoke(cli, ["build", str(tmp_path)])
    assert result.exit_code == 1
    assert "invalid JSON" in result.output
