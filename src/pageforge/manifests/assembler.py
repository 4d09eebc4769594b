"""Fold classification and export results into the persisted manifests."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path

from pageforge.build.layout import BUILD_ID_FILE, BuildLayout
from pageforge.build.state import BuildState, SsgRoute
from pageforge.config import BuildConfig
from pageforge.ids import PreviewProps
from pageforge.manifests.io import remove_if_exists, write_json
from pageforge.routing.manifest import RoutesManifest
from pageforge.routing.utils import (
    escape_regex,
    get_route_regex,
    get_sorted_routes,
    is_dynamic_route,
    normalize_page_path,
    to_source,
)

logger = logging.getLogger(__name__)

PRERENDER_MANIFEST = "prerender-manifest.json"
EXPORT_MARKER = "export-marker.json"
EXPORT_DETAIL = "export-detail.json"
DATA_ROUTE_PREFIX = "/_next/data"
CLIENT_SSG_MANIFEST = "_ssgManifest.js"
CLIENT_SSG_MANIFEST_MODULE = "_ssgManifest.module.js"
PRERENDER_MANIFEST_VERSION = 2

_OPTIONAL_SLASH_SUFFIX = to_source("(?:/)?$")
_JSON_SUFFIX = "\\.json$"


def data_route_for(build_id: str, page: str) -> str:
    return f"{DATA_ROUTE_PREFIX}/{build_id}{normalize_page_path(page)}.json"


def data_route_regex(build_id: str, page: str) -> str:
    """Regex source matching the data endpoint of ``page``.

    Dynamic pages reuse the page regex with the optional trailing slash
    replaced by a required ``.json`` suffix.
    """
    data_route = data_route_for(build_id, page)
    if is_dynamic_route(page):
        source = get_route_regex(data_route[: -len(".json")]).source
        if not source.endswith(_OPTIONAL_SLASH_SUFFIX):
            raise ValueError(f"unexpected route regex for {page}: {source}")
        return source[: -len(_OPTIONAL_SLASH_SUFFIX)] + _JSON_SUFFIX
    return "^" + to_source(escape_regex(data_route)) + "$"


def build_data_routes(state: BuildState) -> list[dict[str, str]]:
    pages = get_sorted_routes(state.server_props_pages | state.ssg_pages)
    return [
        {"page": page, "dataRouteRegex": data_route_regex(state.build_id, page)}
        for page in pages
    ]


def with_data_routes(state: BuildState, initial: RoutesManifest) -> RoutesManifest | None:
    """Second routes-manifest snapshot, or None when there are no data routes."""
    if not state.server_props_pages and not state.ssg_pages:
        return None
    return initial.with_data_routes(build_data_routes(state))


@dataclass(slots=True)
class DynamicSsgRoute:
    route_regex: str
    data_route: str
    data_route_regex: str
    fallback: str | bool

    def to_json(self) -> dict[str, object]:
        return {
            "routeRegex": self.route_regex,
            "dataRoute": self.data_route,
            "dataRouteRegex": self.data_route_regex,
            "fallback": self.fallback,
        }


@dataclass(slots=True)
class PrerenderManifest:
    preview: PreviewProps
    routes: dict[str, SsgRoute] = field(default_factory=dict)
    dynamic_routes: dict[str, DynamicSsgRoute] = field(default_factory=dict)
    version: int = PRERENDER_MANIFEST_VERSION

    def to_json(self) -> dict[str, object]:
        return {
            "version": self.version,
            "routes": {route: entry.to_json() for route, entry in sorted(self.routes.items())},
            "dynamicRoutes": {
                route: entry.to_json() for route, entry in sorted(self.dynamic_routes.items())
            },
            "preview": self.preview.to_json(),
        }

    def client_ssg_routes(self) -> list[str]:
        """Routes the client may fetch fresh data for without a full reload."""
        static_routes = [route for route, entry in self.routes.items() if entry.src_route is None]
        return sorted({*static_routes, *self.dynamic_routes})


def build_prerender_manifest(state: BuildState) -> PrerenderManifest:
    manifest = PrerenderManifest(preview=state.preview)
    if not state.ssg_pages:
        return manifest
    manifest.routes = dict(state.final_prerender_routes)
    for route in state.tbd_prerender_routes:
        normalized = normalize_page_path(route)
        manifest.dynamic_routes[route] = DynamicSsgRoute(
            route_regex=get_route_regex(route).source,
            data_route=data_route_for(state.build_id, route),
            data_route_regex=data_route_regex(state.build_id, route),
            fallback=(
                f"{normalized.lstrip('/')}.html" if route in state.ssg_fallback_pages else False
            ),
        )
    return manifest


def write_prerender_manifest(dist_dir: Path, manifest: PrerenderManifest) -> Path:
    return write_json(dist_dir / PRERENDER_MANIFEST, manifest.to_json())


def client_ssg_manifest_content(manifest: PrerenderManifest) -> str:
    routes = json.dumps(manifest.client_ssg_routes())
    return f"self.__SSG_MANIFEST=new Set({routes});self.__SSG_MANIFEST_CB&&self.__SSG_MANIFEST_CB()"


def write_client_ssg_manifest(layout: BuildLayout, manifest: PrerenderManifest) -> list[Path]:
    names = [CLIENT_SSG_MANIFEST]
    if layout.modern:
        names.append(CLIENT_SSG_MANIFEST_MODULE)
    content = client_ssg_manifest_content(manifest)
    written: list[Path] = []
    for name in names:
        path = layout.client_static_dir / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        written.append(path)
    return written


def write_export_marker(dist_dir: Path, config: BuildConfig) -> Path:
    path = write_json(
        dist_dir / EXPORT_MARKER,
        {
            "version": 1,
            "hasExportPathMap": config.has_export_path_map,
            "exportTrailingSlash": config.export_trailing_slash,
        },
    )
    remove_if_exists(dist_dir / EXPORT_DETAIL)
    return path


def write_build_id(dist_dir: Path, build_id: str) -> Path:
    path = dist_dir / BUILD_ID_FILE
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(build_id, encoding="utf-8")
    return path


def assemble_manifests(state: BuildState, config: BuildConfig) -> PrerenderManifest:
    """Write the prerender manifest, client SSG manifest and export marker."""
    manifest = build_prerender_manifest(state)
    write_prerender_manifest(state.dist_dir, manifest)
    if state.ssg_pages:
        write_client_ssg_manifest(state.layout, manifest)
    write_export_marker(state.dist_dir, config)
    logger.info(
        "Wrote prerender manifest with %d routes and %d dynamic routes",
        len(manifest.routes),
        len(manifest.dynamic_routes),
    )
    return manifest
