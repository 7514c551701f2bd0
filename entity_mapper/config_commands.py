"""Configuration commands for entity mapper CLI."""

from cyclopts import App

from entity_mapper.config import DEFAULTS, get_config

config_app = App(name="config", help="Manage configuration")


def _scope(global_: bool) -> str:
    return "global" if global_ else "local"


@config_app.command
def set(key: str, value: str, global_: bool = False) -> None:
    """Set a configuration setting.

    Args:
        key: Configuration key, one of database.name, database.description, database.size, order, models
        value: Configuration value
        global_: If True, set in global config. If False, set in local config.
    """
    config = get_config(use_global=global_)
    config.set(key, value)
    print(f"Set {key} = {value} ({_scope(global_)})")


@config_app.command
def unset(key: str, global_: bool = False) -> None:
    """Unset a configuration setting, restoring its default."""
    config = get_config(use_global=global_)
    config.unset(key)
    print(f"Unset {key} ({_scope(global_)})")


@config_app.command
def get(key: str, global_: bool = False) -> None:
    """Get the effective value of a configuration setting."""
    config = get_config(use_global=global_)
    value = config.get(key)
    if value is None:
        print(f"{key} is not set")
    else:
        print(f"{key} = {value}")


@config_app.command(name="list")
def list_config(global_: bool = False, defaults: bool = False) -> None:
    """List configuration settings.

    Args:
        global_: If True, list global config only. If False, list merged config.
        defaults: Also show built-in defaults for keys that are not set
    """
    config = get_config(use_global=global_)
    settings = config.list()
    if defaults:
        settings = {**{k: v for k, v in DEFAULTS.items() if v is not None}, **settings}

    if not settings:
        print(f"No {_scope(global_)} configuration settings")
        return

    print("Configuration settings:\n")
    for key, value in settings.items():
        print(f"{key} = {value}")
