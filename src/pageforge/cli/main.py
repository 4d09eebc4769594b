"""Click CLI group: build command."""

import asyncio
from pathlib import Path

import click

from pageforge.build.pipeline import BuildResult, run_build
from pageforge.build.state import BuildState
from pageforge.config import get_settings, load_build_config
from pageforge.errors import PageforgeError
from pageforge.logging import configure_logging


@click.group()
def cli() -> None:
    """Pageforge production build CLI."""


def _page_kind(state: BuildState, page: str) -> str:
    if page in state.ssg_pages:
        return "●"
    if page in state.static_pages:
        return "○"
    return "λ"


def format_custom_routes(result: BuildResult) -> list[str]:
    manifest = result.routes_manifest
    lines: list[str] = []
    if manifest.redirects:
        lines.extend(["", "Redirects"])
        for rule in manifest.redirects:
            lines.append(f"┌ source: {rule['source']}")
            lines.append(f"├ destination: {rule['destination']}")
            lines.append(f"└ statusCode: {rule['statusCode']}")
    if manifest.rewrites:
        lines.extend(["", "Rewrites"])
        for rule in manifest.rewrites:
            lines.append(f"┌ source: {rule['source']}")
            lines.append(f"└ destination: {rule['destination']}")
    if manifest.headers:
        lines.extend(["", "Headers"])
        for rule in manifest.headers:
            lines.append(f"┌ source: {rule['source']}")
            lines.append("└ headers:")
            for header in rule["headers"]:
                lines.append(f"  └ {header['key']}: {header['value']}")
    return lines


def format_summary(result: BuildResult) -> str:
    state = result.state
    lines = [f"build id: {state.build_id}", ""]
    width = max((len(page) for page in state.mapped_pages), default=4)
    for page in state.page_keys:
        info = state.page_infos.get(page)
        sizes = f"{info.size:>8} B {info.total_size:>8} B" if info else ""
        lines.append(f"{_page_kind(state, page)} {page:<{width}}  {sizes}".rstrip())
        for route in (info.ssg_page_routes or []) if info else []:
            lines.append(f"  ├ {route}")
    lines.extend(
        [
            "",
            "λ  (Server)  server-side renders at runtime",
            "○  (Static)  automatically rendered as static HTML",
            "●  (SSG)     automatically generated as static HTML + JSON",
        ]
    )
    lines.extend(format_custom_routes(result))
    return "\n".join(lines)


@cli.command()
@click.argument(
    "project_dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=Path("."),
)
@click.option("--compiler", type=str, default=None, help="Dotted path of the bundler hook.")
@click.option("--exporter", type=str, default=None, help="Dotted path of the exporter hook.")
@click.option("--cpus", type=int, default=None, help="Number of analysis workers.")
@click.option("--worker-threads", is_flag=True, help="Analyze pages in threads, not processes.")
@click.option(
    "--target",
    type=click.Choice(["server", "serverless", "experimental-serverless-trace"]),
    default=None,
)
@click.option("--json-logs", is_flag=True, help="Emit JSON log lines.")
def build(
    project_dir: Path,
    compiler: str | None,
    exporter: str | None,
    cpus: int | None,
    worker_threads: bool,
    target: str | None,
    json_logs: bool,
) -> None:
    """Build PROJECT_DIR for production."""
    settings = get_settings()
    configure_logging(settings.log_level, json_output=True if json_logs else None)

    overrides: dict[str, object] = {}
    if compiler:
        overrides["compiler"] = compiler
    if exporter:
        overrides["exporter"] = exporter
    if cpus is not None:
        if cpus <= 0:
            raise click.ClickException("--cpus must be > 0")
        overrides["cpus"] = cpus
    if worker_threads:
        overrides["worker_threads"] = True
    if target:
        overrides["target"] = target

    try:
        config = load_build_config(project_dir, overrides, settings)
        result = asyncio.run(run_build(project_dir, config=config))
    except PageforgeError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(format_summary(result))


def main() -> None:
    cli()
