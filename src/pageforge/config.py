"""Environment settings and per-project build configuration."""

from __future__ import annotations

import importlib
import json
import os
from collections.abc import Callable
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from pageforge.errors import ConfigError

Target = Literal["server", "serverless", "experimental-serverless-trace"]

SERVERLESS_TARGETS = ("serverless", "experimental-serverless-trace")
DEFAULT_PAGE_EXTENSIONS = ["py"]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    pageforge_env: str = Field(alias="PAGEFORGE_ENV", default="dev")
    log_level: str = Field(alias="LOG_LEVEL", default="INFO")
    config_file: str = Field(alias="PAGEFORGE_CONFIG_FILE", default="pageforge.config.json")
    cpus: int = Field(alias="PAGEFORGE_CPUS", default=0)
    worker_threads: int = Field(alias="PAGEFORGE_WORKER_THREADS", default=0)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


def _default_cpus() -> int:
    return max(1, os.cpu_count() or 1)


class BuildConfig(BaseModel):
    """Project build configuration, read from ``pageforge.config.json``."""

    model_config = ConfigDict(extra="forbid", arbitrary_types_allowed=True)

    dist_dir: str = ".pageforge"
    page_extensions: list[str] = Field(default_factory=lambda: list(DEFAULT_PAGE_EXTENSIONS))
    target: Target = "server"
    base_path: str = ""
    redirects: list[dict[str, Any]] = Field(default_factory=list)
    rewrites: list[dict[str, Any]] = Field(default_factory=list)
    headers: list[dict[str, Any]] = Field(default_factory=list)
    cpus: int = Field(default_factory=_default_cpus, ge=1)
    worker_threads: bool = False
    modern: bool = False
    public_runtime_config: dict[str, Any] = Field(default_factory=dict)
    server_runtime_config: dict[str, Any] = Field(default_factory=dict)
    export_trailing_slash: bool = False
    has_export_path_map: bool = False
    build_id: str | None = None
    generate_build_id: Callable[[], str | None] | None = Field(default=None, exclude=True)
    compiler: str | None = None
    exporter: str | None = None

    @property
    def runtime_config(self) -> dict[str, dict[str, Any]]:
        return {
            "publicRuntimeConfig": self.public_runtime_config,
            "serverRuntimeConfig": self.server_runtime_config,
        }


def is_target_like_serverless(target: str) -> bool:
    return target in SERVERLESS_TARGETS


def load_build_config(
    project_dir: Path,
    overrides: dict[str, Any] | None = None,
    settings: Settings | None = None,
) -> BuildConfig:
    settings = settings or get_settings()
    raw: dict[str, Any] = {}
    config_path = project_dir / settings.config_file
    if config_path.exists():
        try:
            decoded = json.loads(config_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ConfigError(f"invalid JSON in {config_path.name}: {exc}") from exc
        if not isinstance(decoded, dict):
            raise ConfigError(f"{config_path.name} must contain a JSON object")
        raw.update(decoded)
    if settings.cpus > 0:
        raw.setdefault("cpus", settings.cpus)
    if settings.worker_threads:
        raw.setdefault("worker_threads", True)
    raw.update(overrides or {})
    try:
        return BuildConfig.model_validate(raw)
    except ValidationError as exc:
        raise ConfigError(f"invalid build configuration:\n{exc}") from exc


def resolve_hook(dotted: str) -> Any:
    """Import ``package.module:attr`` (or ``package.module.attr``)."""
    module_name, sep, attr = dotted.partition(":")
    if not sep:
        module_name, _, attr = dotted.rpartition(".")
    if not module_name or not attr:
        raise ConfigError(f"invalid hook path: {dotted!r}")
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise ConfigError(f"cannot import {module_name!r} for hook {dotted!r}") from exc
    try:
        return getattr(module, attr)
    except AttributeError as exc:
        raise ConfigError(f"{module_name!r} has no attribute {attr!r}") from exc
