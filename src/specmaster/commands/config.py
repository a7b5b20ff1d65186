"""Config commands -- view and modify global configuration.

Provides the ``specmaster config`` sub-command group for reading,
updating, and resetting the user's global configuration file
(:class:`~specmaster.models.GlobalConfig`), plus clearing the parse
cache. Settings are persisted in the specmaster config directory and
control defaults such as chunk size, memory ceiling and cache TTL.
"""

from __future__ import annotations

import typer

from specmaster.output import format_response, info, success


config_app = typer.Typer(no_args_is_help=True)


@config_app.command("show")
def config_show(
    effective: bool = typer.Option(
        False,
        "--effective",
        "-e",
        help="Show the resolved config (project file and environment applied).",
    ),
) -> None:
    """Show current configuration.

    Prints the config directory path followed by the configuration as
    formatted output (table or JSON, depending on the active output mode).
    With ``--effective`` the project-local ``specmaster.json`` and
    ``SPECMASTER_*`` environment variables are applied first.

    Example::

        specmaster config show
        specmaster config show --effective --json
    """
    from specmaster.config import get_config_dir, load_global_config, resolve_config

    config = resolve_config() if effective else load_global_config()
    info(f"Config directory: {get_config_dir()}")
    format_response(config.model_dump(mode="json"))


@config_app.command("set")
def config_set(
    key: str = typer.Argument(
        help="Config key (dot notation, e.g., 'stream.chunk_size')."
    ),
    value: str = typer.Argument(help="Value to set."),
) -> None:
    """Set a configuration value.

    Uses dot notation for nested keys. The value is coerced to match the
    existing field's type (bool, int, or str) and validated against
    :class:`~specmaster.models.GlobalConfig` before saving.

    Raises:
        ConfigError: If the key path is invalid, the value cannot be
            coerced, or validation fails.

    Example::

        specmaster config set stream.chunk_size 16384
        specmaster config set output.format json
        specmaster config set cache.ttl_seconds 600
    """
    from specmaster.config import load_global_config, save_global_config, set_config_value

    updated = set_config_value(load_global_config(), key, value)
    save_global_config(updated)

    section, _, field = key.rpartition(".")
    current = updated.model_dump(mode="json")
    for part in section.split(".") if section else []:
        current = current[part]
    success(f"Set {key} = {current[field]}")


@config_app.command("reset")
def config_reset(
    ctx: typer.Context,
) -> None:
    """Reset configuration to defaults.

    Replaces the persisted global config with a fresh
    :class:`~specmaster.models.GlobalConfig`. Asks for confirmation
    unless ``--force`` is active.

    Example::

        specmaster config reset
        specmaster --force config reset
    """
    from specmaster.config import save_global_config
    from specmaster.models import GlobalConfig

    force = ctx.obj.get("force", False) if ctx.obj else False
    if not force:
        confirmed = typer.confirm("Reset all config to defaults?")
        if not confirmed:
            info("Cancelled.")
            raise typer.Exit()

    save_global_config(GlobalConfig())
    success("Configuration reset to defaults.")


@config_app.command("clear-cache")
def config_clear_cache() -> None:
    """Remove every cached parse result.

    Example::

        specmaster config clear-cache
    """
    from specmaster.cache import ParseCache
    from specmaster.config import get_cache_dir
    from specmaster.models import CacheConfig

    cache = ParseCache(get_cache_dir(), CacheConfig(enabled=True))
    try:
        removed = cache.stats()["size"]
        cache.clear()
    finally:
        cache.close()
    success(f"Removed {removed} cached parse result(s).")
