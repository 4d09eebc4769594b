"""Page discovery: pages directory, page mapping, public-file conflicts and bundle sizes."""

from __future__ import annotations

import gzip
import logging
import re
from collections.abc import Iterable
from pathlib import Path

from pageforge.errors import ConfigError

logger = logging.getLogger(__name__)

PAGES_DIR_ALIAS = "private-pageforge-pages"
BUILTIN_PAGES = {
    "/_app": "pageforge/pages/_app",
    "/_error": "pageforge/pages/_error",
    "/_document": "pageforge/pages/_document",
}
RESERVED_PAGE_RE = re.compile(r"^/(_app|_error|_document|api)(/|$)")
PUBLIC_DIR_MIDDLEWARE_CONFLICT = (
    "You can not have a '_next' folder inside of your public folder. This conflicts with "
    "the internal '/_next' route."
)


def is_reserved_page(page: str) -> bool:
    return bool(RESERVED_PAGE_RE.match(page))


def find_pages_dir(project_dir: Path) -> Path:
    for candidate in (project_dir / "pages", project_dir / "src" / "pages"):
        if candidate.is_dir():
            return candidate
    raise ConfigError(
        "> Couldn't find a `pages` directory. Please create one under the project root"
    )


def _recursive_read_dir(root: Path, pattern: re.Pattern[str]) -> list[str]:
    found: list[str] = []
    for path in sorted(root.rglob("*")):
        if not path.is_file():
            continue
        relative = "/" + path.relative_to(root).as_posix()
        if pattern.search(relative):
            found.append(relative)
    return found


def collect_pages(pages_dir: Path, page_extensions: list[str]) -> list[str]:
    extensions = "|".join(re.escape(ext) for ext in page_extensions)
    return _recursive_read_dir(pages_dir, re.compile(rf"\.(?:{extensions})$"))


def create_pages_mapping(page_paths: Iterable[str], page_extensions: list[str]) -> dict[str, str]:
    """Map each page key to its bundler alias, in discovery order."""
    extensions = "|".join(re.escape(ext) for ext in page_extensions)
    strip_ext = re.compile(rf"\.+({extensions})$")
    mapping: dict[str, str] = {}
    sources: dict[str, str] = {}
    for page_path in page_paths:
        page = strip_ext.sub("", page_path.replace("\\", "/"))
        page = re.sub(r"/index$", "", page)
        page_key = page or "/"
        if page_key in mapping:
            logger.warning(
                "Duplicate page detected. pages%s and pages%s both resolve to %s.",
                sources[page_key],
                page_path,
                page_key,
            )
        else:
            sources[page_key] = page_path
        mapping[page_key] = f"{PAGES_DIR_ALIAS}{page_path}"
    for page_key, builtin in BUILTIN_PAGES.items():
        mapping.setdefault(page_key, builtin)
    return mapping


def is_custom_page(mapped_pages: dict[str, str], page: str) -> bool:
    return mapped_pages.get(page, "").startswith(PAGES_DIR_ALIAS)


def list_public_files(public_dir: Path) -> list[str]:
    if not public_dir.is_dir():
        return []
    return _recursive_read_dir(public_dir, re.compile(r".*"))


def find_conflicting_public_files(
    public_files: Iterable[str],
    mapped_pages: dict[str, str],
) -> list[str]:
    conflicts: list[str] = []
    for file in public_files:
        normalized = re.sub(r"/index$", "", file.replace("\\", "/")) or "/"
        if normalized in mapped_pages:
            conflicts.append(normalized)
    return conflicts


def verify_public_dir(public_dir: Path, mapped_pages: dict[str, str]) -> None:
    if not public_dir.is_dir():
        return
    if (public_dir / "_next").exists():
        raise ConfigError(PUBLIC_DIR_MIDDLEWARE_CONFLICT)
    conflicts = find_conflicting_public_files(list_public_files(public_dir), mapped_pages)
    if conflicts:
        verb = " was" if len(conflicts) == 1 else "s were"
        raise ConfigError(
            f"Conflicting public and page file{verb} found.\n" + "\n".join(conflicts)
        )


def _gzip_size(path: str) -> int:
    return len(gzip.compress(Path(path).read_bytes(), mtime=0))


def _filter_modern(files: list[str], modern: bool) -> list[str]:
    return [file for file in files if file.endswith(".module.js") == modern]


def _common_files(pages: dict[str, list[str]], modern: bool) -> set[str]:
    counted = [
        set(_filter_modern(files, modern))
        for page, files in pages.items()
        if not is_reserved_page(page)
    ]
    if len(counted) < 2:
        return set()
    return set.intersection(*counted)


def get_page_sizes(
    page: str,
    dist_dir: Path,
    build_manifest: dict[str, object],
    modern: bool = False,
) -> tuple[int, int]:
    """Return (self size, total size) in gzipped bytes for a page's client files."""
    raw_pages = build_manifest.get("pages")
    pages: dict[str, list[str]] = raw_pages if isinstance(raw_pages, dict) else {}
    page_files = _filter_modern(list(pages.get(page, [])), modern)
    app_files = _filter_modern(list(pages.get("/_app", [])), modern)
    common = _common_files(pages, modern) | set(app_files)

    self_files = [file for file in dict.fromkeys(page_files) if file not in common]
    all_files = list(dict.fromkeys([*page_files, *app_files]))
    self_size = sum(_gzip_size(str(dist_dir / file)) for file in self_files)
    total_size = sum(_gzip_size(str(dist_dir / file)) for file in all_files)
    return self_size, total_size
