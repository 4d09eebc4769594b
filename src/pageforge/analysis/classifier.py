"""Drive the analysis pool over every page and aggregate the results."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any, TypeVar

from pageforge.analysis.inspector import has_custom_get_initial_props, is_page_static
from pageforge.analysis.pool import AnalysisPool
from pageforge.analysis.types import PageAnalysisResult
from pageforge.build.state import BuildState, PageInfo
from pageforge.errors import ConfigError, InvalidPagesError, is_invalid_default_export
from pageforge.pages import get_page_sizes, is_reserved_page
from pageforge.routing.utils import normalize_page_path

logger = logging.getLogger(__name__)

T = TypeVar("T")

PAGES_404_GET_INITIAL_PROPS_ERROR = (
    "`pages/404` can not have get_initial_props/get_server_side_props, "
    "it must be static or use get_static_props"
)


async def _run(pool: AnalysisPool, fn: Callable[..., T], *args: Any) -> T:
    return await asyncio.wrap_future(pool.submit(fn, *args))


def first_non_reserved_page(page_keys: Iterable[str]) -> str | None:
    for page in page_keys:
        if not is_reserved_page(page):
            return page
    return None


async def resolve_global_flags(
    state: BuildState,
    pool: AnalysisPool,
    runtime_config: dict[str, Any],
) -> BuildState:
    """Decide the build-wide flags before any page is classified.

    ``custom_app_get_initial_props`` is taken from the first non-reserved page
    in discovery order and is frozen for the rest of the build.
    """
    layout = state.layout
    first_page = first_non_reserved_page(state.page_keys)
    if first_page is not None:
        bundle = (
            layout.server_bundle(normalize_page_path(first_page))
            if layout.serverless
            else layout.app_bundle()
        )
        state.custom_app_get_initial_props = await _run(
            pool, has_custom_get_initial_props, str(bundle), runtime_config
        )
        if state.custom_app_get_initial_props:
            logger.warning(
                "You have opted-out of Automatic Static Optimization due to "
                "`get_initial_props` in `pages/_app`. This does not opt-out pages with "
                "`get_static_props`"
            )

    state.has_non_static_error_page = state.has_custom_error_page and await _run(
        pool, has_custom_get_initial_props, str(layout.error_bundle()), runtime_config
    )
    return state


def remove_client_bundles(paths: Iterable[Path]) -> None:
    for path in paths:
        try:
            path.unlink()
        except FileNotFoundError:
            continue


def _record_result(
    state: BuildState,
    page: str,
    normalized: str,
    result: PageAnalysisResult,
    info: PageInfo,
) -> None:
    if result.is_hybrid_amp:
        info.is_hybrid_amp = True
        state.hybrid_amp_pages.add(page)

    if result.is_amp_only:
        remove_client_bundles(state.layout.client_bundles(normalized))

    if result.has_static_props:
        state.ssg_pages.add(page)
        info.is_ssg = True
        if result.prerender_routes is not None:
            state.additional_ssg_paths[page] = list(result.prerender_routes)
            info.ssg_page_routes = list(result.prerender_routes)
        if result.prerender_fallback:
            info.has_ssg_fallback = True
            state.ssg_fallback_pages.add(page)
    elif result.has_server_props:
        state.server_props_pages.add(page)
    elif result.is_static and not state.custom_app_get_initial_props:
        state.static_pages.add(page)
        info.static = True

    if state.has_pages_404 and page == "/404":
        if not result.is_static and not result.has_static_props:
            raise ConfigError(PAGES_404_GET_INITIAL_PROPS_ERROR)
        # the 404 server bundle must stay when _app has get_initial_props
        if state.custom_app_get_initial_props and not result.has_static_props:
            state.static_pages.discard(page)
            info.static = False


async def _classify_page(
    state: BuildState,
    pool: AnalysisPool,
    page: str,
    runtime_config: dict[str, Any],
    build_manifest: dict[str, object],
) -> None:
    layout = state.layout
    normalized = normalize_page_path(page)
    server_bundle = layout.server_bundle(normalized)

    analysis: asyncio.Future[PageAnalysisResult] | None = None
    if not is_reserved_page(page):
        analysis = asyncio.wrap_future(
            pool.submit(is_page_static, page, str(server_bundle), runtime_config)
        )
    try:
        # gzip sizing runs off the loop while the worker analyzes the bundle
        size, total_size = await asyncio.to_thread(
            get_page_sizes, page, layout.dist_dir, build_manifest, layout.modern
        )
    except BaseException:
        if analysis is not None:
            analysis.cancel()
        raise
    info = PageInfo(size=size, total_size=total_size, server_bundle=server_bundle)
    state.pages_manifest[page] = layout.bundle_relative(normalized)

    if analysis is not None:
        try:
            result = await analysis
        except Exception as exc:
            if not is_invalid_default_export(exc):
                raise
            state.invalid_pages.add(page)
        else:
            _record_result(state, page, normalized, result, info)

    state.page_infos[page] = info


async def classify_pages(
    state: BuildState,
    pool: AnalysisPool,
    runtime_config: dict[str, Any],
    build_manifest: dict[str, object],
) -> BuildState:
    """Classify every page concurrently.

    All pages are submitted at once; the pool bounds how many run. Result
    handling happens on the event loop thread, so updates to the state never
    interleave. The first fatal error cancels the remaining pages.
    """
    tasks = [
        asyncio.create_task(_classify_page(state, pool, page, runtime_config, build_manifest))
        for page in state.page_keys
    ]
    try:
        await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise

    logger.info(
        "Analyzed %d pages: %d static, %d ssg, %d server props, %d invalid",
        len(tasks),
        len(state.static_pages),
        len(state.ssg_pages),
        len(state.server_props_pages),
        len(state.invalid_pages),
    )
    return state


def raise_for_invalid_pages(state: BuildState) -> None:
    if state.invalid_pages:
        raise InvalidPagesError(sorted(state.invalid_pages))


def apply_amp_pages(state: BuildState, amp_pages: Iterable[str]) -> BuildState:
    for page in amp_pages:
        info = state.page_infos.get(page)
        if info is not None:
            info.is_amp = True
    return state
