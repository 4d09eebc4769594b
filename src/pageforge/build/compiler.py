"""Bundler collaborator protocol and compile-stage error handling."""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from pageforge.build.layout import BuildLayout
from pageforge.config import BuildConfig
from pageforge.errors import CompileError
from pageforge.ids import PreviewProps
from pageforge.pages import PAGES_DIR_ALIAS
from pageforge.routing.utils import normalize_page_path

logger = logging.getLogger(__name__)

POLYFILL_ALIAS = "__pageforge_polyfill__"
_MISSING_DEFAULT_EXPORT = "does not contain a default export"
_PAGE_NAME_RE = re.compile(rf"'{PAGES_DIR_ALIAS}/(?P<page_name>[^']*)'")
_ANSI_RE = re.compile(r"\x1b\[[0-9;]*m")


@dataclass(slots=True)
class CompileTarget:
    is_server: bool
    build_id: str
    dist_dir: Path
    pages_dir: Path
    entrypoints: dict[str, str]
    mapped_pages: dict[str, str]
    config: BuildConfig
    preview: PreviewProps


@dataclass(slots=True)
class CompilerResult:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    amp_pages: list[str] = field(default_factory=list)


class Compiler(Protocol):
    def __call__(self, target: CompileTarget) -> CompilerResult: ...


def create_entrypoints(
    mapped_pages: dict[str, str],
    layout: BuildLayout,
) -> tuple[dict[str, str], dict[str, str]]:
    """Return (client, server) entrypoints: output path -> page alias."""
    client: dict[str, str] = {}
    server: dict[str, str] = {}
    for page, alias in mapped_pages.items():
        normalized = normalize_page_path(page)
        server[layout.bundle_relative(normalized)] = alias
        if page == "/_document":
            continue
        client[f"static/{layout.build_id}/pages{normalized}.js"] = alias
    return client, server


def _merge(*results: CompilerResult) -> CompilerResult:
    merged = CompilerResult()
    for result in results:
        merged.errors.extend(result.errors)
        merged.warnings.extend(result.warnings)
        merged.amp_pages.extend(result.amp_pages)
    return merged


async def run_compilers(
    compiler: Compiler,
    client_target: CompileTarget,
    server_target: CompileTarget,
    serverless: bool,
) -> CompilerResult:
    """Run the client and server passes.

    Serverless-like targets only start the server pass once the client pass
    compiled cleanly.
    """
    if serverless:
        client_result = await asyncio.to_thread(compiler, client_target)
        if client_result.errors:
            return _merge(client_result)
        server_result = await asyncio.to_thread(compiler, server_target)
        return _merge(client_result, server_result)

    client_result, server_result = await asyncio.gather(
        asyncio.to_thread(compiler, client_target),
        asyncio.to_thread(compiler, server_target),
    )
    return _merge(client_result, server_result)


def format_messages(result: CompilerResult) -> CompilerResult:
    return CompilerResult(
        errors=[_ANSI_RE.sub("", message).strip() for message in result.errors],
        warnings=[_ANSI_RE.sub("", message).strip() for message in result.warnings],
        amp_pages=list(result.amp_pages),
    )


def raise_for_compile_errors(result: CompilerResult) -> None:
    """Raise a CompileError for the first error, upgraded when recognised."""
    result = format_messages(result)
    if not result.errors:
        if result.warnings:
            logger.warning("Compiled with warnings.\n\n%s", "\n\n".join(result.warnings))
        else:
            logger.info("Compiled successfully.")
        return

    # the rest are usually the same problem restated
    error = result.errors[0]
    logger.error("Failed to compile.\n\n%s", error)

    if PAGES_DIR_ALIAS in error and _MISSING_DEFAULT_EXPORT in error:
        match = _PAGE_NAME_RE.search(error)
        page_name = match.group("page_name") if match else None
        raise CompileError(
            "build failed: found page without a valid component as default export in "
            f"pages/{page_name}"
        )
    if PAGES_DIR_ALIAS in error or POLYFILL_ALIAS in error:
        raise CompileError("> bundler config resolve.alias was incorrectly overridden.")
    raise CompileError("> Build failed because of bundler errors")
