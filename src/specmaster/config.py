"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for specmaster:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.specmaster/`` on macOS and Windows. See :func:`get_config_dir`,
  :func:`get_cache_dir` and :func:`get_data_dir`.
* **Global config** -- A single :class:`~specmaster.models.GlobalConfig`
  JSON file storing stream tuning, cache and output defaults.
* **Project config** -- An optional ``./specmaster.json`` whose keys are
  layered over the global config.
* **Precedence resolution** -- :func:`resolve_config` merges CLI flags,
  environment variables, project-local config, and global config into the
  final effective configuration.

All file writes use an atomic temp-file-then-rename strategy
(:func:`_atomic_write`) to prevent data loss on crash or power failure.
"""

from __future__ import annotations

import json
import logging
import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from specmaster.exceptions import ConfigError
from specmaster.models import GlobalConfig

logger = logging.getLogger(__name__)

_APP_NAME = "specmaster"
_CONFIG_FILENAME = "config.json"
_PROJECT_CONFIG_FILENAME = "specmaster.json"

# Environment variable -> (section, field)
_ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "SPECMASTER_CHUNK_SIZE": ("stream", "chunk_size"),
    "SPECMASTER_MAX_MEMORY_MB": ("stream", "max_memory_mb"),
    "SPECMASTER_MAX_FILE_SIZE_MB": ("stream", "max_file_size_mb"),
}


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from an env var with fallback segments under $HOME."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    return Path.home().joinpath(*default_segments)


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/specmaster/`` (default
    ``~/.config/specmaster/``). On macOS/Windows: ``~/.specmaster/``.

    Returns:
        Absolute path to the configuration directory (guaranteed to exist).
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_cache_dir() -> Path:
    """Return the cache directory, creating it if necessary.

    Holds the parse-result cache. Cached data can be safely deleted at any
    time.

    On Linux/BSD: ``$XDG_CACHE_HOME/specmaster/`` (default
    ``~/.cache/specmaster/``). On macOS/Windows: ``~/.specmaster/cache/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CACHE_HOME", (".cache",)) / _APP_NAME
    else:
        path = _fallback_base_dir() / "cache"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/specmaster/`` (default
    ``~/.local/share/specmaster/``). On macOS/Windows: ``~/.specmaster/logs/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is an atomic rename on POSIX systems. On any failure the
    temp file is removed and the exception re-raised.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None
        os.replace(tmp_path, path)
    except BaseException:
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- Global config ---


def _global_config_path() -> Path:
    return get_config_dir() / _CONFIG_FILENAME


def load_global_config() -> GlobalConfig:
    """Load the global configuration from the XDG config directory.

    Returns:
        The deserialised :class:`~specmaster.models.GlobalConfig`. If the
        file does not exist, a default instance is returned.

    Raises:
        ConfigError: If the file exists but contains invalid JSON or fails
            Pydantic validation.
    """
    path = _global_config_path()
    if not path.is_file():
        return GlobalConfig()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return GlobalConfig.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid global config at {path}: {exc}") from exc


def save_global_config(config: GlobalConfig) -> None:
    """Persist the global configuration atomically to disk."""
    data = config.model_dump(mode="json")
    _atomic_write(_global_config_path(), json.dumps(data, indent=2) + "\n")
    logger.debug("Saved global config to %s", _global_config_path())


def set_config_value(config: GlobalConfig, key: str, value: str) -> GlobalConfig:
    """Return a copy of *config* with the dotted *key* set to *value*.

    The string value is coerced to the type of the field it replaces (bool,
    int or str) and the result is re-validated.

    Args:
        config: The configuration to update.
        key: Dot-separated field path such as ``stream.chunk_size``.
        value: Raw string value from the command line.

    Returns:
        A new, validated :class:`~specmaster.models.GlobalConfig`.

    Raises:
        ConfigError: If the key is unknown, the value cannot be coerced, or
            validation fails.
    """
    data = config.model_dump(mode="json")

    keys = key.split(".")
    target = data
    for k in keys[:-1]:
        if k not in target or not isinstance(target[k], dict):
            raise ConfigError(f"Invalid config key: {key}")
        target = target[k]

    final_key = keys[-1]
    if final_key not in target or isinstance(target[final_key], dict):
        raise ConfigError(f"Unknown config key: {key}")

    current = target[final_key]
    coerced: Any
    if isinstance(current, bool):
        coerced = value.lower() in ("true", "1", "yes")
    elif isinstance(current, int):
        try:
            coerced = int(value)
        except ValueError:
            raise ConfigError(f"Expected integer for {key}, got: {value}") from None
    else:
        coerced = value
    target[final_key] = coerced

    try:
        return GlobalConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid value for {key}: {exc}") from exc


# --- Project-local config ---


def load_project_config() -> Optional[dict[str, Any]]:
    """Load project-local configuration from ``./specmaster.json``.

    The file uses the same shape as the global config, and any subset of
    its sections may be present (for example only ``{"stream": {...}}``).

    Returns:
        The parsed JSON as a dict, or ``None`` if the file does not exist.

    Raises:
        ConfigError: If the file exists but is not a JSON object.
    """
    path = Path.cwd() / _PROJECT_CONFIG_FILENAME
    if not path.is_file():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid project config at {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Project config at {path} must be a JSON object")
    return data


def _merge_sections(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for section, values in overlay.items():
        if isinstance(values, dict) and isinstance(merged.get(section), dict):
            merged[section] = {**merged[section], **values}
        else:
            merged[section] = values
    return merged


def _env_overrides() -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for var, (section, field) in _ENV_OVERRIDES.items():
        raw = os.environ.get(var)
        if not raw:
            continue
        try:
            value = int(raw)
        except ValueError:
            raise ConfigError(f"{var} must be an integer, got: {raw}") from None
        overrides.setdefault(section, {})[field] = value

    no_cache = os.environ.get("SPECMASTER_NO_CACHE", "")
    if no_cache.lower() in ("1", "true", "yes"):
        overrides.setdefault("cache", {})["enabled"] = False
    return overrides


# --- Precedence resolution ---


def resolve_config(
    cli_overrides: Optional[dict[str, Any]] = None,
    cli_format: Optional[str] = None,
) -> GlobalConfig:
    """Resolve config with full precedence chain.

    Precedence (high to low):
        1. CLI flags (``cli_overrides``, ``cli_format``)
        2. Environment variables (``SPECMASTER_CHUNK_SIZE``,
           ``SPECMASTER_MAX_MEMORY_MB``, ``SPECMASTER_MAX_FILE_SIZE_MB``,
           ``SPECMASTER_NO_CACHE``)
        3. Project config (``./specmaster.json``)
        4. User config (``~/.config/specmaster/config.json``)
        5. Defaults

    Args:
        cli_overrides: Section-keyed overrides such as
            ``{"stream": {"chunk_size": 1024}}``. ``None`` values are ignored.
        cli_format: Output format override.

    Returns:
        The effective :class:`~specmaster.models.GlobalConfig`.

    Raises:
        ConfigError: If any layer is invalid.
    """
    data = load_global_config().model_dump(mode="json")

    project = load_project_config()
    if project is not None:
        data = _merge_sections(data, project)

    data = _merge_sections(data, _env_overrides())

    if cli_overrides:
        cleaned = {
            section: {k: v for k, v in values.items() if v is not None}
            for section, values in cli_overrides.items()
        }
        data = _merge_sections(data, cleaned)

    if cli_format is not None:
        data = _merge_sections(data, {"output": {"format": cli_format}})

    try:
        return GlobalConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid effective configuration: {exc}") from exc
