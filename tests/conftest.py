import json
import textwrap
from collections.abc import Callable
from pathlib import Path

import pytest

from pageforge.analysis.pool import ExecutorAnalysisPool
from pageforge.build.compiler import CompilerResult, CompileTarget
from pageforge.config import BuildConfig, get_settings
from pageforge.export.orchestrator import ExportConfig, ExportOptions
from pageforge.pages import PAGES_DIR_ALIAS
from pageforge.routing.utils import normalize_page_path

BUILTIN_SOURCES = {
    "pageforge/pages/_app": """
        def _get_initial_props(ctx):
            return {}

        def default(props):
            return props

        default.get_initial_props = _get_initial_props
        default.orig_get_initial_props = _get_initial_props
    """,
    "pageforge/pages/_error": """
        def default(props):
            return "error"

        def _get_initial_props(ctx):
            return {"status": 500}

        default.get_initial_props = _get_initial_props
        default.orig_get_initial_props = _get_initial_props
    """,
    "pageforge/pages/_document": """
        def default(props):
            return "<html></html>"
    """,
}

STATIC_PAGE = """
def default(props):
    return "static"
"""


@pytest.fixture(autouse=True)
def test_env(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("PAGEFORGE_ENV", "test")
    monkeypatch.delenv("PAGEFORGE_CPUS", raising=False)
    monkeypatch.delenv("PAGEFORGE_WORKER_THREADS", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def make_project(tmp_path: Path) -> Callable[..., Path]:
    """Create a project with ``pages`` given as {relative path: source}."""

    def _make(pages: dict[str, str], public: list[str] | None = None) -> Path:
        root = tmp_path / "app"
        pages_dir = root / "pages"
        pages_dir.mkdir(parents=True, exist_ok=True)
        for rel, source in pages.items():
            path = pages_dir / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(textwrap.dedent(source), encoding="utf-8")
        for rel in public or []:
            path = root / "public" / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text("asset", encoding="utf-8")
        return root

    return _make


class FakeCompiler:
    """Copies page sources into server bundles and writes the manifests a bundler would."""

    def __init__(
        self,
        errors: list[str] | None = None,
        amp_pages: list[str] | None = None,
    ) -> None:
        self.errors = errors or []
        self.amp_pages = amp_pages or []
        self.calls: list[bool] = []

    def __call__(self, target: CompileTarget) -> CompilerResult:
        self.calls.append(target.is_server)
        if self.errors:
            return CompilerResult(errors=list(self.errors))
        serverless = target.config.target != "server"
        server_dir = target.dist_dir / ("serverless" if serverless else "server")
        if target.is_server:
            for rel, alias in target.entrypoints.items():
                dest = server_dir / rel
                dest.parent.mkdir(parents=True, exist_ok=True)
                if alias.startswith(PAGES_DIR_ALIAS):
                    source = (target.pages_dir / alias[len(PAGES_DIR_ALIAS) + 1 :]).read_text()
                else:
                    source = textwrap.dedent(BUILTIN_SOURCES[alias])
                dest.write_text(source, encoding="utf-8")
            manifest = {}
            for page in target.mapped_pages:
                normalized = normalize_page_path(page)
                prefix = "pages" if serverless else f"static/{target.build_id}/pages"
                manifest[page] = f"{prefix}{normalized}.py"
            (server_dir / "pages-manifest.json").write_text(json.dumps(manifest))
            return CompilerResult()

        build_pages: dict[str, list[str]] = {}
        for rel, alias in target.entrypoints.items():
            dest = target.dist_dir / rel
            dest.parent.mkdir(parents=True, exist_ok=True)
            dest.write_text(f"// {alias}\n" * 10, encoding="utf-8")
        for page in target.mapped_pages:
            if page == "/_document":
                continue
            build_pages[page] = [f"static/{target.build_id}/pages{normalize_page_path(page)}.js"]
        (target.dist_dir / "build-manifest.json").write_text(json.dumps({"pages": build_pages}))
        return CompilerResult(amp_pages=list(self.amp_pages))


class FakeExporter:
    """Writes an HTML (and JSON, unless rendering a fallback) file per exported path."""

    def __init__(self, revalidate: dict[str, int | bool] | None = None) -> None:
        self.revalidate = revalidate or {}
        self.path_map: dict[str, dict] = {}

    def __call__(self, root_dir: Path, options: ExportOptions, config: ExportConfig) -> None:
        default_map = {page: {"page": page} for page in options.pages}
        self.path_map = config.export_path_map(default_map)
        for path, entry in self.path_map.items():
            file = normalize_page_path(path).lstrip("/")
            html = options.outdir / f"{file}.html"
            html.parent.mkdir(parents=True, exist_ok=True)
            html.write_text(f"<html>{entry['page']}</html>")
            (options.outdir / f"{file}.amp.html").write_text("<html amp></html>")
            if entry.get("query"):
                continue
            (options.outdir / f"{file}.json").write_text(json.dumps({"pageProps": {}}))
            config.initial_page_revalidation_map[path] = self.revalidate.get(path, False)


@pytest.fixture
def fake_compiler() -> FakeCompiler:
    return FakeCompiler()


@pytest.fixture
def fake_exporter() -> FakeExporter:
    return FakeExporter()


@pytest.fixture
def thread_pool_factory() -> Callable[[BuildConfig], ExecutorAnalysisPool]:
    def _factory(config: BuildConfig) -> ExecutorAnalysisPool:
        return ExecutorAnalysisPool(2, worker_threads=True)

    return _factory


@pytest.fixture
def build_config() -> BuildConfig:
    return BuildConfig(cpus=2, worker_threads=True, build_id="test-build")


@pytest.fixture
def static_page_source() -> str:
    return STATIC_PAGE
