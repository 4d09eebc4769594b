"""Materialize static and SSG pages through the exporter and relocate the output."""

from __future__ import annotations

import logging
import os
import shutil
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal, Protocol

from pageforge.build.state import BuildState, SsgRoute
from pageforge.config import BuildConfig
from pageforge.errors import ExportError
from pageforge.manifests.assembler import data_route_for
from pageforge.manifests.io import write_json
from pageforge.routing.utils import is_dynamic_route, normalize_page_path

logger = logging.getLogger(__name__)

FALLBACK_QUERY_FLAG = "__pageforge_fallback"

PathMap = dict[str, dict[str, Any]]


@dataclass(slots=True)
class ExportOptions:
    pages: list[str]
    outdir: Path
    threads: int = 1
    silent: bool = True
    build_export: bool = True


@dataclass(slots=True)
class ExportConfig:
    build_config: BuildConfig
    export_path_map: Callable[[PathMap], PathMap]
    initial_page_revalidation_map: dict[str, int | bool] = field(default_factory=dict)
    export_trailing_slash: bool = False


class Exporter(Protocol):
    def __call__(self, root_dir: Path, options: ExportOptions, config: ExportConfig) -> None: ...


def build_export_path_map(state: BuildState) -> Callable[[PathMap], PathMap]:
    """Return the path map hook handed to the exporter."""

    def export_path_map(default_map: PathMap) -> PathMap:
        path_map = dict(default_map)
        for page in state.tbd_prerender_routes:
            if page in state.ssg_fallback_pages:
                path_map[page] = {"page": page, "query": {FALLBACK_QUERY_FLAG: True}}
            else:
                path_map.pop(page, None)
        for page in state.ordered(set(state.additional_ssg_paths)):
            for route in state.additional_ssg_paths[page]:
                path_map[route] = {"page": page}
        if state.use_static_404:
            path_map["/404"] = {"page": "/404" if state.has_pages_404 else "/_error"}
        return path_map

    return export_path_map


def remove_export_dir(outdir: Path) -> None:
    try:
        shutil.rmtree(outdir)
    except FileNotFoundError:
        pass


def move_exported_page(
    state: BuildState,
    outdir: Path,
    page: str,
    file: str,
    is_ssg: bool,
    ext: Literal["html", "json"],
) -> Path:
    layout = state.layout
    file = f"{file}.{ext}"
    source = outdir / file.lstrip("/")
    relative_dest = layout.relative_output(file)
    dest = layout.server_dir / relative_dest

    if not is_ssg:
        state.pages_manifest[page] = relative_dest
        if page == "/":
            state.pages_manifest["/index"] = relative_dest
        if page == "/.amp":
            state.pages_manifest["/index.amp"] = relative_dest

    if not source.is_file():
        raise ExportError(f"exported file for {page} is missing: {source}")
    dest.parent.mkdir(parents=True, exist_ok=True)
    try:
        os.replace(source, dest)
    except OSError as exc:
        raise ExportError(f"failed to move {source} to {dest}: {exc}") from exc
    return dest


def _remove_static_server_bundles(state: BuildState) -> None:
    for page in state.ordered(state.static_pages):
        bundle = state.page_infos[page].server_bundle
        try:
            bundle.unlink()
        except FileNotFoundError as exc:
            raise ExportError(f"server bundle for static page {page} is missing: {bundle}") from exc


def _relocate(state: BuildState, outdir: Path, export_config: ExportConfig) -> None:
    revalidation = export_config.initial_page_revalidation_map

    # a custom /404 is handled with the other pages
    if not state.has_pages_404 and state.use_static_404:
        move_exported_page(state, outdir, "/404", "/404", False, "html")

    for page in state.ordered(state.static_pages | state.ssg_pages):
        is_ssg = page in state.ssg_pages
        is_dynamic = is_dynamic_route(page)
        file = normalize_page_path(page)
        has_amp = page in state.hybrid_amp_pages

        # dynamic SSG pages only have a generic render when fallback is on
        if not (is_ssg and is_dynamic and page not in state.ssg_fallback_pages):
            move_exported_page(state, outdir, page, file, is_ssg, "html")
            if has_amp:
                move_exported_page(state, outdir, f"{page}.amp", f"{file}.amp", is_ssg, "html")

        if not is_ssg:
            continue
        if not is_dynamic:
            move_exported_page(state, outdir, page, file, True, "json")
            state.final_prerender_routes[page] = SsgRoute(
                initial_revalidate_seconds=revalidation.get(page, False),
                src_route=None,
                data_route=data_route_for(state.build_id, page),
            )
            continue
        for route in state.additional_ssg_paths.get(page, []):
            move_exported_page(state, outdir, route, route, True, "html")
            move_exported_page(state, outdir, route, route, True, "json")
            if has_amp:
                move_exported_page(state, outdir, f"{route}.amp", f"{route}.amp", True, "html")
            state.final_prerender_routes[route] = SsgRoute(
                initial_revalidate_seconds=revalidation.get(route, False),
                src_route=page,
                data_route=data_route_for(state.build_id, route),
            )


def export_pages(state: BuildState, exporter: Exporter, config: BuildConfig) -> BuildState:
    """Export static and SSG pages and move the output into the server layout."""
    outdir = state.layout.export_dir
    state.tbd_prerender_routes = [
        page for page in state.ordered(state.ssg_pages) if is_dynamic_route(page)
    ]
    if not state.static_pages and not state.ssg_pages and not state.use_static_404:
        logger.info("No pages to export")
        remove_export_dir(outdir)
        return state

    pages = state.ordered(state.static_pages | state.ssg_pages)
    options = ExportOptions(pages=pages, outdir=outdir, threads=config.cpus)
    export_config = ExportConfig(
        build_config=config,
        export_path_map=build_export_path_map(state),
        export_trailing_slash=False,
    )
    logger.info("Exporting %d pages", len(pages))
    exporter(state.project_dir, options, export_config)

    _remove_static_server_bundles(state)
    _relocate(state, outdir, export_config)

    remove_export_dir(outdir)
    write_json(state.layout.pages_manifest_path, state.pages_manifest)
    return state
