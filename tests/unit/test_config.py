import json
from pathlib import Path

import pytest

from pageforge.config import (
    BuildConfig,
    get_settings,
    is_target_like_serverless,
    load_build_config,
    resolve_hook,
)
from pageforge.errors import ConfigError
from pageforge.ids import generate_build_id, new_build_id, new_preview_props


def test_defaults() -> None:
    config = BuildConfig()
    assert config.dist_dir == ".pageforge"
    assert config.page_extensions == ["py"]
    assert config.target == "server"
    assert config.cpus >= 1
    assert config.runtime_config == {"publicRuntimeConfig": {}, "serverRuntimeConfig": {}}


def test_load_from_file_with_overrides(tmp_path: Path) -> None:
    (tmp_path / "pageforge.config.json").write_text(
        json.dumps({"target": "serverless", "base_path": "/docs", "cpus": 3})
    )
    config = load_build_config(tmp_path, overrides={"cpus": 5})
    assert config.target == "serverless"
    assert config.base_path == "/docs"
    assert config.cpus == 5


def test_env_settings_are_defaults(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PAGEFORGE_CPUS", "7")
    monkeypatch.setenv("PAGEFORGE_WORKER_THREADS", "1")
    get_settings.cache_clear()
    config = load_build_config(tmp_path)
    assert config.cpus == 7
    assert config.worker_threads is True

    (tmp_path / "pageforge.config.json").write_text(json.dumps({"cpus": 2}))
    assert load_build_config(tmp_path).cpus == 2


@pytest.mark.parametrize(
    "content",
    ["{not json", "[1, 2]", json.dumps({"unknown_key": 1}), json.dumps({"target": "edge"})],
)
def test_invalid_config_files(tmp_path: Path, content: str) -> None:
    (tmp_path / "pageforge.config.json").write_text(content)
    with pytest.raises(ConfigError):
        load_build_config(tmp_path)


def test_serverless_targets() -> None:
    assert is_target_like_serverless("serverless")
    assert is_target_like_serverless("experimental-serverless-trace")
    assert not is_target_like_serverless("server")


def test_resolve_hook() -> None:
    assert resolve_hook("json:dumps") is json.dumps
    assert resolve_hook("json.loads") is json.loads
    with pytest.raises(ConfigError, match="cannot import"):
        resolve_hook("pageforge_missing_module:thing")
    with pytest.raises(ConfigError, match="has no attribute"):
        resolve_hook("json:nothing_here")
    with pytest.raises(ConfigError, match="invalid hook path"):
        resolve_hook("nodots")


def test_build_ids() -> None:
    assert new_build_id() != new_build_id()
    assert generate_build_id(lambda: " custom ") == "custom"
    assert generate_build_id(lambda: None)
    with pytest.raises(ConfigError):
        generate_build_id(lambda: "   ")


def test_preview_props_are_fresh() -> None:
    first, second = new_preview_props(), new_preview_props()
    assert first != second
    assert len(first.preview_mode_id) == 32
    assert len(first.preview_mode_signing_key) == 64
