"""Default analysis worker entry points.

Server bundles are Python modules. Each call executes the bundle in a fresh
namespace with ``runpy`` and inspects what it defines:

- ``default``: the page component (required, must be callable)
- ``default.get_initial_props``: legacy per-request data hook
- ``get_static_props`` / ``get_static_paths``: build-time data hooks
- ``get_server_side_props``: per-request server data hook
- ``config``: ``{"amp": True}`` or ``{"amp": "hybrid"}``

The functions are module-level so a process pool can pickle them.
"""

from __future__ import annotations

import asyncio
import inspect
import runpy
import threading
from collections.abc import Mapping
from pathlib import Path
from typing import Any
from urllib.parse import quote

from pageforge.analysis.types import PageAnalysisResult
from pageforge.errors import ConfigError, InvalidDefaultExportError, PageAnalysisError
from pageforge.routing.utils import (
    get_route_matcher,
    get_route_regex,
    is_dynamic_route,
    normalize_page_path,
    remove_trailing_slash,
)

SSG_GET_INITIAL_PROPS_CONFLICT = (
    "You can not use get_initial_props with get_static_props. To use SSG, please remove "
    "your get_initial_props"
)
SERVER_PROPS_GET_INIT_PROPS_CONFLICT = (
    "You can not use get_initial_props with get_server_side_props. Please remove "
    "get_initial_props."
)
SERVER_PROPS_SSG_CONFLICT = (
    "You can not use get_static_props with get_server_side_props. To use SSG, please remove "
    "get_server_side_props"
)
_EXPECTED_STATIC_PATHS = "Expected: { paths: [], fallback: boolean }"

# runpy swaps sys.argv[0] and a sys.modules entry while a bundle runs
_LOAD_LOCK = threading.Lock()


def _load_bundle(bundle: str, runtime_config: Mapping[str, Any]) -> dict[str, Any]:
    path = Path(bundle)
    if not path.is_file():
        raise PageAnalysisError(f"server bundle not found: {bundle}")
    with _LOAD_LOCK:
        return runpy.run_path(
            str(path),
            init_globals={"__runtime_config__": dict(runtime_config)},
            run_name="__pageforge_bundle__",
        )


def _call_hook(hook: Any, *args: Any) -> Any:
    result = hook(*args)
    if inspect.isawaitable(result):
        return asyncio.run(_await(result))
    return result


async def _await(awaitable: Any) -> Any:
    return await awaitable


def has_custom_get_initial_props(bundle: str, runtime_config: Mapping[str, Any]) -> bool:
    """True if the bundle's component overrides the framework's get_initial_props."""
    namespace = _load_bundle(bundle, runtime_config)
    component = namespace.get("default")
    if component is None:
        return False
    hook = getattr(component, "get_initial_props", None)
    return hook is not None and hook is not getattr(component, "orig_get_initial_props", None)


def _build_param_path(page: str, params: Mapping[str, Any], groups: Mapping[str, Any]) -> str:
    built = page
    for name, group in groups.items():
        value = params.get(name)
        if group.repeat:
            if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
                raise PageAnalysisError(
                    f"A required parameter ({name}) was not provided as an array in "
                    f"get_static_paths for {page}"
                )
            built = built.replace(f"[...{name}]", "/".join(quote(v, safe="") for v in value))
        else:
            if not isinstance(value, str):
                raise PageAnalysisError(
                    f"A required parameter ({name}) was not provided as a string in "
                    f"get_static_paths for {page}"
                )
            built = built.replace(f"[{name}]", quote(value, safe=""))
    return built


def _checked_path(page: str, path: str) -> str:
    try:
        normalize_page_path(path)
    except ConfigError as exc:
        raise PageAnalysisError(
            f"The path `{path}` returned from get_static_paths in {page} resolves outside "
            "the page directory"
        ) from exc
    return path


def _collect_static_paths(page: str, hook: Any) -> tuple[list[str], bool]:
    result = _call_hook(hook)
    if not isinstance(result, dict):
        raise PageAnalysisError(
            f"Invalid value returned from get_static_paths in {page}. Received "
            f"{type(result).__name__} {_EXPECTED_STATIC_PATHS}"
        )
    invalid_keys = [key for key in result if key not in ("paths", "fallback")]
    if invalid_keys:
        raise PageAnalysisError(
            f"Extra keys returned from get_static_paths in {page} ({', '.join(invalid_keys)}) "
            f"{_EXPECTED_STATIC_PATHS}"
        )
    fallback = result.get("fallback")
    if not isinstance(fallback, bool):
        raise PageAnalysisError(
            f"The `fallback` key must be returned from get_static_paths in {page}.\n"
            f"{_EXPECTED_STATIC_PATHS}"
        )
    paths = result.get("paths")
    if not isinstance(paths, list):
        raise PageAnalysisError(
            f"Invalid `paths` value returned from get_static_paths in {page}.\n"
            "`paths` must be an array of strings or objects of shape { params: [key: string] }"
        )

    route_regex = get_route_regex(page)
    matcher = get_route_matcher(route_regex)
    prerender: dict[str, None] = {}
    for entry in paths:
        if isinstance(entry, str):
            entry = remove_trailing_slash(entry)
            if matcher(entry) is None:
                raise PageAnalysisError(
                    f"The provided path `{entry}` does not match the page: `{page}`."
                )
            prerender[_checked_path(page, entry)] = None
            continue
        if not isinstance(entry, dict):
            raise PageAnalysisError(
                f"Invalid entry returned from get_static_paths in {page}: {entry!r}"
            )
        invalid = [key for key in entry if key != "params"]
        if invalid:
            raise PageAnalysisError(
                f"Additional keys were returned from get_static_paths in page \"{page}\". "
                "URL Parameters intended for this dynamic route must be nested under the "
                f"`params` key, i.e.:\n\n\treturn {{ params: {{ {invalid[0]}: ... }} }}\n\n"
                f"Keys that need to be moved: {', '.join(invalid)}."
            )
        params = entry.get("params") or {}
        if not isinstance(params, dict):
            raise PageAnalysisError(f"`params` must be an object in get_static_paths for {page}")
        built = _build_param_path(page, params, route_regex.groups)
        prerender[_checked_path(page, built)] = None
    return list(prerender), fallback


def is_page_static(
    page: str,
    server_bundle: str,
    runtime_config: Mapping[str, Any],
) -> PageAnalysisResult:
    """Report how a page renders. Raises InvalidDefaultExportError for non-pages."""
    namespace = _load_bundle(server_bundle, runtime_config)
    component = namespace.get("default")
    if component is None or isinstance(component, str) or not callable(component):
        raise InvalidDefaultExportError()

    has_get_initial_props = getattr(component, "get_initial_props", None) is not None
    has_static_props = namespace.get("get_static_props") is not None
    has_static_paths = namespace.get("get_static_paths") is not None
    has_server_props = namespace.get("get_server_side_props") is not None

    if namespace.get("get_static_params") is not None:
        raise PageAnalysisError(
            f"get_static_params was replaced with get_static_paths. Please update your "
            f"code in {page}."
        )
    if has_get_initial_props and has_static_props:
        raise PageAnalysisError(SSG_GET_INITIAL_PROPS_CONFLICT)
    if has_get_initial_props and has_server_props:
        raise PageAnalysisError(SERVER_PROPS_GET_INIT_PROPS_CONFLICT)
    if has_static_props and has_server_props:
        raise PageAnalysisError(SERVER_PROPS_SSG_CONFLICT)
    if has_static_props and not has_static_paths and is_dynamic_route(page):
        raise PageAnalysisError(
            f"get_static_paths is required for dynamic SSG pages and is missing for '{page}'."
        )
    if has_static_paths and not has_static_props:
        raise PageAnalysisError(
            f"get_static_paths was added without a get_static_props in {page}. Without "
            "get_static_props, get_static_paths does nothing"
        )

    prerender_routes: list[str] | None = None
    prerender_fallback = False
    if has_static_props and has_static_paths:
        prerender_routes, prerender_fallback = _collect_static_paths(
            page, namespace["get_static_paths"]
        )

    config = namespace.get("config") or {}
    amp = config.get("amp") if isinstance(config, dict) else None
    return PageAnalysisResult(
        is_static=not has_static_props and not has_get_initial_props and not has_server_props,
        has_static_props=has_static_props,
        has_server_props=has_server_props,
        is_hybrid_amp=amp == "hybrid",
        is_amp_only=amp is True,
        prerender_routes=prerender_routes,
        prerender_fallback=prerender_fallback,
    )
