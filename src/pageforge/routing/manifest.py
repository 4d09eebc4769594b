"""Routes manifest snapshots.

The manifest is produced twice per build: once before compilation so
server bundles can read the rewrites, and once after analysis with the
data routes added. Both snapshots are immutable; the second is written over
the first.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from pageforge.config import BuildConfig
from pageforge.manifests.io import write_json
from pageforge.routing.custom_routes import build_custom_route, check_custom_routes
from pageforge.routing.utils import get_route_regex, get_sorted_routes, is_dynamic_route

ROUTES_MANIFEST = "routes-manifest.json"


@dataclass(frozen=True, slots=True)
class RoutesManifest:
    base_path: str
    redirects: tuple[dict[str, Any], ...]
    rewrites: tuple[dict[str, Any], ...]
    headers: tuple[dict[str, Any], ...]
    dynamic_routes: tuple[dict[str, str], ...]
    data_routes: tuple[dict[str, str], ...] | None = None
    version: int = 1
    pages404: bool = True

    def with_data_routes(self, data_routes: list[dict[str, str]]) -> RoutesManifest:
        return replace(self, data_routes=tuple(data_routes))

    def to_json(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "version": self.version,
            "pages404": self.pages404,
            "basePath": self.base_path,
            "redirects": list(self.redirects),
            "rewrites": list(self.rewrites),
            "headers": list(self.headers),
            "dynamicRoutes": list(self.dynamic_routes),
        }
        if self.data_routes is not None:
            payload["dataRoutes"] = list(self.data_routes)
        return payload


@dataclass(slots=True)
class CustomRoutes:
    redirects: list[dict[str, Any]] = field(default_factory=list)
    rewrites: list[dict[str, Any]] = field(default_factory=list)
    headers: list[dict[str, Any]] = field(default_factory=list)


def load_custom_routes(config: BuildConfig) -> CustomRoutes:
    check_custom_routes(config.redirects, "redirect")
    check_custom_routes(config.rewrites, "rewrite")
    check_custom_routes(config.headers, "header")
    return CustomRoutes(
        redirects=list(config.redirects),
        rewrites=list(config.rewrites),
        headers=list(config.headers),
    )


def dynamic_route_entries(page_keys: list[str]) -> list[dict[str, str]]:
    dynamic = [page for page in page_keys if is_dynamic_route(page)]
    return [
        {"page": page, "regex": get_route_regex(page).source}
        for page in get_sorted_routes(dynamic)
    ]


def build_routes_manifest(
    page_keys: list[str],
    custom_routes: CustomRoutes,
    base_path: str = "",
) -> RoutesManifest:
    return RoutesManifest(
        base_path=base_path,
        redirects=tuple(build_custom_route(r, "redirect") for r in custom_routes.redirects),
        rewrites=tuple(build_custom_route(r, "rewrite") for r in custom_routes.rewrites),
        headers=tuple(build_custom_route(r, "header") for r in custom_routes.headers),
        dynamic_routes=tuple(dynamic_route_entries(page_keys)),
    )


def write_routes_manifest(dist_dir: Path, manifest: RoutesManifest) -> Path:
    return write_json(dist_dir / ROUTES_MANIFEST, manifest.to_json())
