"""Tests for YAML configuration."""

from pathlib import Path

import pytest
import yaml

from entity_mapper.config import Config
from entity_mapper.models import DrainOrder


@pytest.fixture
def home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the home directory and working directory at temporary locations."""
    home = tmp_path / "home"
    work = tmp_path / "work"
    home.mkdir()
    work.mkdir()
    monkeypatch.setattr(Path, "home", lambda: home)
    monkeypatch.chdir(work)
    return home


def test_defaults(home: Path) -> None:
    """Test the built-in defaults of an empty config."""
    config = Config()
    assert config.database_name == "entity-mapper.db"
    assert config.database_description == ""
    assert config.database_size == 5 * 1024 * 1024
    assert config.drain_order is DrainOrder.DEPENDENCY
    assert config.get("models") is None
    assert config.list() == {}


def test_set_and_get(home: Path) -> None:
    """Test that values are written to the local YAML file."""
    config = Config()
    config.set("database.name", "app.db")
    config.set("database.size", "1024")

    assert config.database_name == "app.db"
    assert config.database_size == 1024
    with open(Path.cwd() / ".entity-mapper" / "config.yaml") as f:
        assert yaml.safe_load(f) == {"database.name": "app.db", "database.size": "1024"}


def test_set_unknown_key(home: Path) -> None:
    with pytest.raises(ValueError, match="Unknown config key"):
        Config().set("database.password", "secret")


def test_set_invalid_order(home: Path) -> None:
    config = Config()
    with pytest.raises(ValueError):
        config.set("order", "random")
    config.set("order", "registration")
    assert config.drain_order is DrainOrder.REGISTRATION


def test_unset_restores_default(home: Path) -> None:
    config = Config()
    config.set("database.name", "app.db")
    config.unset("database.name")
    assert config.database_name == "entity-mapper.db"


def test_global_fallback(home: Path) -> None:
    """Test that local values take precedence over global ones."""
    global_config = Config(use_global=True)
    global_config.set("database.name", "global.db")
    global_config.set("models", "app.models")

    local = Config()
    local.set("database.name", "local.db")

    assert local.database_name == "local.db"
    assert local.get("models") == "app.models"
    assert local.list() == {"database.name": "local.db", "models": "app.models"}
    assert Config(use_global=True).database_name == "global.db"


def test_invalid_file(home: Path) -> None:
    config_dir = Path.cwd() / ".entity-mapper"
    config_dir.mkdir()
    (config_dir / "config.yaml").write_text("- just\n- a list\n")
    with pytest.raises(ValueError, match="must contain a mapping"):
        Config()
