"""Page path helpers: dynamic route detection, route regexes and ordering.

Regex sources are emitted with ``/`` escaped as ``\\/`` so the same string
is valid for the runtime server's regex engine and for Python ``re``.
"""

from __future__ import annotations

import posixpath
import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from urllib.parse import unquote

from pageforge.errors import ConfigError

_DYNAMIC_ROUTE_RE = re.compile(r"/\[[^/]+?\](?=/|$)")
_PARAM_SEGMENT_RE = re.compile(r"^\[(?P<name>.+)\]$")
_REGEX_SPECIALS_RE = re.compile(r"[|\\{}()\[\]^$+*?.-]")


@dataclass(frozen=True, slots=True)
class RouteGroup:
    pos: int
    repeat: bool


@dataclass(frozen=True, slots=True)
class RouteRegex:
    source: str
    groups: dict[str, RouteGroup]

    def compile(self) -> re.Pattern[str]:
        return re.compile(self.source, re.IGNORECASE)


def escape_regex(value: str) -> str:
    return _REGEX_SPECIALS_RE.sub(lambda match: "\\" + match.group(0), value)


def to_source(pattern: str) -> str:
    return pattern.replace("/", "\\/")


def is_dynamic_route(page: str) -> bool:
    return bool(_DYNAMIC_ROUTE_RE.search(page))


def dynamic_segment_count(page: str) -> int:
    return sum(1 for segment in page.split("/") if _PARAM_SEGMENT_RE.match(segment))


def get_sorted_routes(pages: Iterable[str]) -> list[str]:
    """Order routes so the least ambiguous match comes first."""
    return sorted(set(pages), key=lambda page: (dynamic_segment_count(page), page))


def get_route_regex(route: str) -> RouteRegex:
    normalized = route.rstrip("/") or "/"
    groups: dict[str, RouteGroup] = {}
    if normalized == "/":
        return RouteRegex(source=to_source("^/(?:/)?$"), groups=groups)

    parts: list[str] = []
    for segment in normalized.split("/")[1:]:
        match = _PARAM_SEGMENT_RE.match(segment)
        if match is None:
            parts.append("/" + escape_regex(segment))
            continue
        name = match.group("name")
        repeat = name.startswith("...")
        if repeat:
            name = name[3:]
        groups[name] = RouteGroup(pos=len(groups) + 1, repeat=repeat)
        parts.append("/(.+?)" if repeat else "/([^/]+?)")
    return RouteRegex(source=to_source("^" + "".join(parts) + "(?:/)?$"), groups=groups)


def get_route_matcher(route_regex: RouteRegex) -> Callable[[str], dict[str, object] | None]:
    pattern = route_regex.compile()

    def match(pathname: str) -> dict[str, object] | None:
        result = pattern.match(pathname)
        if result is None:
            return None
        params: dict[str, object] = {}
        for name, group in route_regex.groups.items():
            value = result.group(group.pos)
            if value is None:
                continue
            if group.repeat:
                params[name] = [unquote(part) for part in value.split("/")]
            else:
                params[name] = unquote(value)
        return params

    return match


def normalize_page_path(page: str) -> str:
    if page == "/":
        page = "/index"
    elif re.match(r"^/index(/|$)", page):
        page = f"/index{page}"
    if not page.startswith("/"):
        page = f"/{page}"
    resolved = posixpath.normpath(page)
    if page != resolved:
        raise ConfigError(f"requested and resolved page mismatch: {page} -> {resolved}")
    return page


def remove_trailing_slash(path: str) -> str:
    return path[:-1] if path.endswith("/") and path != "/" else path
