"""Build-scoped state threaded through the pipeline stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from pageforge.build.layout import BuildLayout
from pageforge.ids import PreviewProps


@dataclass(slots=True)
class PageInfo:
    size: int
    total_size: int
    server_bundle: Path
    static: bool = False
    is_ssg: bool = False
    is_hybrid_amp: bool = False
    is_amp: bool = False
    ssg_page_routes: list[str] | None = None
    has_ssg_fallback: bool = False


@dataclass(slots=True)
class SsgRoute:
    initial_revalidate_seconds: int | bool
    src_route: str | None
    data_route: str

    def to_json(self) -> dict[str, object]:
        return {
            "initialRevalidateSeconds": self.initial_revalidate_seconds,
            "srcRoute": self.src_route,
            "dataRoute": self.data_route,
        }


@dataclass(slots=True)
class BuildState:
    """Everything one build learns about its pages.

    The classification sets are written only from the aggregator's
    completion handlers, which run on the event loop thread one at a time.
    """

    project_dir: Path
    pages_dir: Path
    layout: BuildLayout
    preview: PreviewProps
    mapped_pages: dict[str, str]
    has_custom_error_page: bool = False
    has_pages_404: bool = False

    ssg_pages: set[str] = field(default_factory=set)
    ssg_fallback_pages: set[str] = field(default_factory=set)
    static_pages: set[str] = field(default_factory=set)
    server_props_pages: set[str] = field(default_factory=set)
    invalid_pages: set[str] = field(default_factory=set)
    hybrid_amp_pages: set[str] = field(default_factory=set)
    additional_ssg_paths: dict[str, list[str]] = field(default_factory=dict)
    page_infos: dict[str, PageInfo] = field(default_factory=dict)
    pages_manifest: dict[str, str] = field(default_factory=dict)

    custom_app_get_initial_props: bool | None = None
    has_non_static_error_page: bool = False

    tbd_prerender_routes: list[str] = field(default_factory=list)
    final_prerender_routes: dict[str, SsgRoute] = field(default_factory=dict)

    @property
    def build_id(self) -> str:
        return self.layout.build_id

    @property
    def dist_dir(self) -> Path:
        return self.layout.dist_dir

    @property
    def page_keys(self) -> list[str]:
        """Page keys in discovery order."""
        return list(self.mapped_pages)

    def ordered(self, pages: set[str]) -> list[str]:
        return [page for page in self.mapped_pages if page in pages]

    @property
    def use_static_404(self) -> bool:
        """Export a static 404 unless ``_app`` or a dynamic ``_error`` forbids it."""
        return not self.custom_app_get_initial_props and (
            not self.has_non_static_error_page or self.has_pages_404
        )
