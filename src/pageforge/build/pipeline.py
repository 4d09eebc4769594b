"""One-shot production build: route compile, bundle, analyze, export, manifests."""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from pageforge.analysis.classifier import (
    apply_amp_pages,
    classify_pages,
    raise_for_invalid_pages,
    resolve_global_flags,
)
from pageforge.analysis.pool import AnalysisPool, ExecutorAnalysisPool
from pageforge.build.compiler import (
    CompileTarget,
    Compiler,
    create_entrypoints,
    raise_for_compile_errors,
    run_compilers,
)
from pageforge.build.layout import BuildLayout
from pageforge.build.state import BuildState
from pageforge.config import BuildConfig, is_target_like_serverless, load_build_config, resolve_hook
from pageforge.errors import CompileError, ConfigError
from pageforge.export.orchestrator import Exporter, export_pages
from pageforge.ids import generate_build_id, new_preview_props
from pageforge.logging import bind_context, clear_context
from pageforge.manifests.assembler import (
    PrerenderManifest,
    assemble_manifests,
    with_data_routes,
    write_build_id,
)
from pageforge.manifests.io import read_json
from pageforge.pages import (
    collect_pages,
    create_pages_mapping,
    find_pages_dir,
    is_custom_page,
    verify_public_dir,
)
from pageforge.routing.manifest import (
    RoutesManifest,
    build_routes_manifest,
    load_custom_routes,
    write_routes_manifest,
)

logger = logging.getLogger(__name__)

BUILD_DIR_NOT_WRITEABLE = "> Build directory is not writeable."

PoolFactory = Callable[[BuildConfig], AnalysisPool]


@dataclass(slots=True)
class BuildResult:
    state: BuildState
    routes_manifest: RoutesManifest
    prerender_manifest: PrerenderManifest


def default_pool_factory(config: BuildConfig) -> AnalysisPool:
    return ExecutorAnalysisPool(config.cpus, worker_threads=config.worker_threads)


def is_writeable(directory: Path) -> bool:
    return directory.is_dir() and os.access(directory, os.W_OK)


def _resolve_collaborator(explicit: Any, dotted: str | None, name: str) -> Any:
    if explicit is not None:
        return explicit
    if not dotted:
        raise ConfigError(f"no {name} configured; set `{name}` in the build config")
    return resolve_hook(dotted)


def prepare_state(project_dir: Path, config: BuildConfig) -> BuildState:
    """Discover pages and create the state for a new build id."""
    build_id = config.build_id or generate_build_id(config.generate_build_id)
    layout = BuildLayout(
        dist_dir=project_dir / config.dist_dir,
        build_id=build_id,
        serverless=is_target_like_serverless(config.target),
        modern=config.modern,
    )
    pages_dir = find_pages_dir(project_dir)
    mapped_pages = create_pages_mapping(
        collect_pages(pages_dir, config.page_extensions), config.page_extensions
    )
    verify_public_dir(project_dir / "public", mapped_pages)
    return BuildState(
        project_dir=project_dir,
        pages_dir=pages_dir,
        layout=layout,
        preview=new_preview_props(),
        mapped_pages=mapped_pages,
        has_custom_error_page=is_custom_page(mapped_pages, "/_error"),
        has_pages_404=is_custom_page(mapped_pages, "/404"),
    )


async def compile_bundles(state: BuildState, compiler: Compiler, config: BuildConfig) -> list[str]:
    """Run the bundler and return the pages it reported as AMP."""
    client_entries, server_entries = create_entrypoints(state.mapped_pages, state.layout)

    def target(is_server: bool, entrypoints: dict[str, str]) -> CompileTarget:
        return CompileTarget(
            is_server=is_server,
            build_id=state.build_id,
            dist_dir=state.dist_dir,
            pages_dir=state.pages_dir,
            entrypoints=entrypoints,
            mapped_pages=dict(state.mapped_pages),
            config=config,
            preview=state.preview,
        )

    result = await run_compilers(
        compiler,
        target(False, client_entries),
        target(True, server_entries),
        serverless=state.layout.serverless,
    )
    raise_for_compile_errors(result)

    pages_manifest = read_json(state.layout.pages_manifest_path)
    if pages_manifest is None:
        raise CompileError(f"bundler did not emit {state.layout.pages_manifest_path}")
    state.pages_manifest = {str(k): str(v) for k, v in pages_manifest.items()}
    return list(result.amp_pages)


async def analyze_pages(
    state: BuildState,
    config: BuildConfig,
    pool_factory: PoolFactory,
) -> BuildState:
    build_manifest = read_json(state.layout.build_manifest_path)
    if build_manifest is None:
        raise CompileError(f"bundler did not emit {state.layout.build_manifest_path}")

    pool = pool_factory(config)
    try:
        await resolve_global_flags(state, pool, config.runtime_config)
        await classify_pages(state, pool, config.runtime_config, build_manifest)
    finally:
        pool.end()
    raise_for_invalid_pages(state)
    return state


async def run_build(
    project_dir: Path,
    *,
    config: BuildConfig | None = None,
    compiler: Compiler | None = None,
    exporter: Exporter | None = None,
    pool_factory: PoolFactory = default_pool_factory,
) -> BuildResult:
    project_dir = project_dir.resolve()
    if not is_writeable(project_dir):
        raise ConfigError(BUILD_DIR_NOT_WRITEABLE)

    config = config or load_build_config(project_dir)
    compiler = _resolve_collaborator(compiler, config.compiler, "compiler")
    exporter = _resolve_collaborator(exporter, config.exporter, "exporter")
    custom_routes = load_custom_routes(config)

    state = prepare_state(project_dir, config)
    bind_context(build_id=state.build_id)
    try:
        logger.info("Creating an optimized production build")
        initial_routes = build_routes_manifest(state.page_keys, custom_routes, config.base_path)
        # server bundles read the rewrites, so this lands before compiling
        write_routes_manifest(state.dist_dir, initial_routes)

        amp_pages = await compile_bundles(state, compiler, config)
        logger.info("Automatically optimizing pages")
        await analyze_pages(state, config, pool_factory)

        routes_manifest = with_data_routes(state, initial_routes) or initial_routes
        if routes_manifest is not initial_routes:
            write_routes_manifest(state.dist_dir, routes_manifest)

        apply_amp_pages(state, amp_pages)
        write_build_id(state.dist_dir, state.build_id)
        export_pages(state, exporter, config)
        prerender_manifest = assemble_manifests(state, config)
    finally:
        clear_context()

    logger.info("Build %s finished with %d pages", state.build_id, len(state.mapped_pages))
    return BuildResult(
        state=state,
        routes_manifest=routes_manifest,
        prerender_manifest=prerender_manifest,
    )
