"""Tests for specmaster.config -- XDG paths, atomic writes, precedence."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest

from specmaster.config import (
    _atomic_write,
    get_cache_dir,
    get_config_dir,
    get_data_dir,
    load_global_config,
    load_project_config,
    resolve_config,
    save_global_config,
    set_config_value,
)
from specmaster.exceptions import ConfigError
from specmaster.models import CacheConfig, GlobalConfig, OutputConfig, StreamOptions


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write_json(path: Path, data: Any) -> None:
    """Write a dict as JSON to *path*, creating parent dirs."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")


@pytest.fixture
def xdg_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setattr("specmaster.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
    return tmp_path / "specmaster"


# ---------------------------------------------------------------------------
# XDG path resolution
# ---------------------------------------------------------------------------


class TestXDGPathsLinux:
    """XDG paths on Linux (the default XDG platform)."""

    def test_config_dir_xdg_default(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("specmaster.config._is_xdg_platform", lambda: True)
        monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))

        result = get_config_dir()
        assert result == tmp_path / ".config" / "specmaster"
        assert result.is_dir()

    def test_config_dir_xdg_custom(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        custom = tmp_path / "custom_config"
        monkeypatch.setattr("specmaster.config._is_xdg_platform", lambda: True)
        monkeypatch.setenv("XDG_CONFIG_HOME", str(custom))

        assert get_config_dir() == custom / "specmaster"

    def test_cache_dir_xdg_default(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("specmaster.config._is_xdg_platform", lambda: True)
        monkeypatch.delenv("XDG_CACHE_HOME", raising=False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))

        result = get_cache_dir()
        assert result == tmp_path / ".cache" / "specmaster"
        assert result.is_dir()

    def test_data_dir_xdg_custom(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        custom = tmp_path / "custom_data"
        monkeypatch.setattr("specmaster.config._is_xdg_platform", lambda: True)
        monkeypatch.setenv("XDG_DATA_HOME", str(custom))

        result = get_data_dir()
        assert result == custom / "specmaster"
        assert result.is_dir()

    def test_empty_env_value_falls_back(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("specmaster.config._is_xdg_platform", lambda: True)
        monkeypatch.setenv("XDG_DATA_HOME", "")
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))

        assert get_data_dir() == tmp_path / ".local" / "share" / "specmaster"


class TestXDGPathsFallback:
    """Fallback paths on non-XDG platforms (macOS, Windows)."""

    @pytest.mark.parametrize(
        "getter, segments",
        [
            (get_config_dir, ()),
            (get_cache_dir, ("cache",)),
            (get_data_dir, ("logs",)),
        ],
    )
    def test_fallback(
        self, getter, segments: tuple[str, ...], tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr("specmaster.config._is_xdg_platform", lambda: False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))

        result = getter()
        assert result == tmp_path.joinpath(".specmaster", *segments)
        assert result.is_dir()


# ---------------------------------------------------------------------------
# Atomic writes
# ---------------------------------------------------------------------------


class TestAtomicWrite:
    def test_creates_file_with_content(self, tmp_path: Path) -> None:
        target = tmp_path / "a" / "b" / "test.txt"
        _atomic_write(target, "hello world")
        assert target.read_text(encoding="utf-8") == "hello world"

    def test_overwrites_existing_file(self, tmp_path: Path) -> None:
        target = tmp_path / "test.txt"
        target.write_text("old content", encoding="utf-8")
        _atomic_write(target, "new content")
        assert target.read_text(encoding="utf-8") == "new content"
        assert list(tmp_path.iterdir()) == [target]

    def test_no_temp_files_left_on_error(self, tmp_path: Path) -> None:
        target = tmp_path / "test.txt"
        with patch("specmaster.config.os.fsync", side_effect=OSError("disk error")):
            with pytest.raises(OSError, match="disk error"):
                _atomic_write(target, "will fail")
        assert list(tmp_path.iterdir()) == []


# ---------------------------------------------------------------------------
# Global config
# ---------------------------------------------------------------------------


class TestGlobalConfig:
    def test_load_returns_defaults_when_missing(self, xdg_config: Path) -> None:
        cfg = load_global_config()
        assert cfg == GlobalConfig()
        assert cfg.stream.chunk_size == 64 * 1024
        assert cfg.stream.max_memory_mb == 100
        assert cfg.stream.max_file_size_mb == 50
        assert cfg.stream.prioritize_endpoints is True
        assert cfg.cache.enabled is True
        assert cfg.output.format == "auto"

    def test_save_and_load_roundtrip(self, xdg_config: Path) -> None:
        original = GlobalConfig(
            stream=StreamOptions(chunk_size=1024, enable_compression=True),
            cache=CacheConfig(ttl_seconds=60),
            output=OutputConfig(format="json", show_progress=False),
        )
        save_global_config(original)
        assert load_global_config() == original
        data = json.loads((xdg_config / "config.json").read_text(encoding="utf-8"))
        assert data["stream"]["chunk_size"] == 1024

    def test_load_invalid_json_raises_config_error(self, xdg_config: Path) -> None:
        xdg_config.mkdir(parents=True, exist_ok=True)
        (xdg_config / "config.json").write_text("{invalid json!!!", encoding="utf-8")

        with pytest.raises(ConfigError, match="Invalid global config"):
            load_global_config()

    def test_load_invalid_schema_raises_config_error(self, xdg_config: Path) -> None:
        _write_json(xdg_config / "config.json", {"stream": {"chunk_size": 0}})
        with pytest.raises(ConfigError, match="Invalid global config"):
            load_global_config()


class TestSetConfigValue:
    def test_int_is_coerced(self) -> None:
        cfg = set_config_value(GlobalConfig(), "stream.chunk_size", "2048")
        assert cfg.stream.chunk_size == 2048

    @pytest.mark.parametrize("raw, expected", [("true", True), ("1", True), ("no", False)])
    def test_bool_is_coerced(self, raw: str, expected: bool) -> None:
        cfg = set_config_value(GlobalConfig(), "cache.enabled", raw)
        assert cfg.cache.enabled is expected

    def test_string(self) -> None:
        cfg = set_config_value(GlobalConfig(), "output.format", "plain")
        assert cfg.output.format == "plain"

    def test_original_is_unchanged(self) -> None:
        original = GlobalConfig()
        set_config_value(original, "stream.chunk_size", "10")
        assert original.stream.chunk_size == 64 * 1024

    @pytest.mark.parametrize("key", ["stream.nope", "nope.chunk_size", "stream"])
    def test_unknown_key(self, key: str) -> None:
        with pytest.raises(ConfigError):
            set_config_value(GlobalConfig(), key, "1")

    def test_bad_integer(self) -> None:
        with pytest.raises(ConfigError, match="Expected integer"):
            set_config_value(GlobalConfig(), "stream.max_memory_mb", "lots")

    def test_validation_failure(self) -> None:
        with pytest.raises(ConfigError, match="Invalid value"):
            set_config_value(GlobalConfig(), "stream.chunk_size", "0")


# ---------------------------------------------------------------------------
# Project-local config
# ---------------------------------------------------------------------------


class TestProjectConfig:
    def test_load_returns_none_when_missing(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        assert load_project_config() is None

    def test_load_valid_project_config(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        _write_json(tmp_path / "specmaster.json", {"stream": {"chunk_size": 512}})
        assert load_project_config() == {"stream": {"chunk_size": 512}}

    def test_load_invalid_json_raises_config_error(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.chdir(tmp_path)
        (tmp_path / "specmaster.json").write_text("broken{", encoding="utf-8")
        with pytest.raises(ConfigError, match="Invalid project config"):
            load_project_config()

    def test_non_object_raises_config_error(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        _write_json(tmp_path / "specmaster.json", [1, 2])
        with pytest.raises(ConfigError, match="must be a JSON object"):
            load_project_config()


# ---------------------------------------------------------------------------
# Precedence resolution
# ---------------------------------------------------------------------------


class TestResolveConfig:
    """Test the full precedence chain: CLI > env > project > global > defaults."""

    @pytest.fixture(autouse=True)
    def _isolate(self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        self.tmp_path = isolated_config
        monkeypatch.setattr("specmaster.config._is_xdg_platform", lambda: True)

    def test_defaults(self) -> None:
        assert resolve_config() == GlobalConfig()

    def test_project_overrides_global_per_field(self) -> None:
        save_global_config(GlobalConfig(stream=StreamOptions(chunk_size=100, max_memory_mb=7)))
        _write_json(self.tmp_path / "specmaster.json", {"stream": {"chunk_size": 200}})

        cfg = resolve_config()
        assert cfg.stream.chunk_size == 200
        assert cfg.stream.max_memory_mb == 7

    def test_env_overrides_project(self, monkeypatch: pytest.MonkeyPatch) -> None:
        _write_json(self.tmp_path / "specmaster.json", {"stream": {"chunk_size": 200}})
        monkeypatch.setenv("SPECMASTER_CHUNK_SIZE", "300")
        monkeypatch.setenv("SPECMASTER_MAX_FILE_SIZE_MB", "5")

        cfg = resolve_config()
        assert cfg.stream.chunk_size == 300
        assert cfg.stream.max_file_size_mb == 5

    def test_cli_overrides_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SPECMASTER_MAX_MEMORY_MB", "20")
        cfg = resolve_config(cli_overrides={"stream": {"max_memory_mb": 30, "chunk_size": None}})
        assert cfg.stream.max_memory_mb == 30
        assert cfg.stream.chunk_size == 64 * 1024

    def test_no_cache_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SPECMASTER_NO_CACHE", "yes")
        assert resolve_config().cache.enabled is False

    def test_bad_env_integer(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SPECMASTER_CHUNK_SIZE", "big")
        with pytest.raises(ConfigError, match="must be an integer"):
            resolve_config()

    def test_invalid_effective_value(self) -> None:
        with pytest.raises(ConfigError, match="Invalid effective configuration"):
            resolve_config(cli_overrides={"stream": {"chunk_size": -1}})

    def test_cli_format_overrides_global(self) -> None:
        save_global_config(GlobalConfig(output=OutputConfig(format="plain")))
        assert resolve_config(cli_format="json").output.format == "json"
