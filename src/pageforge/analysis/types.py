"""Worker protocol types."""

from dataclasses import dataclass


@dataclass(slots=True)
class PageAnalysisResult:
    is_static: bool = False
    has_static_props: bool = False
    has_server_props: bool = False
    is_hybrid_amp: bool = False
    is_amp_only: bool = False
    prerender_routes: list[str] | None = None
    prerender_fallback: bool = False
