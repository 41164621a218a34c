"""Shared test fixtures."""

from pathlib import Path
from unittest.mock import MagicMock

import pytest

import linref.settings as settings_module
from linref.aliases import AliasStore
from linref.cache import EntityCache, PersistentCache
from linref.models import Entity, EntityType, Validation
from linref.settings import ConfigStore


@pytest.fixture
def isolated(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Run in an empty working directory with a throwaway global config dir and no LINREF_* env."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(settings_module, "GLOBAL_DIR", tmp_path / "home" / ".config" / "linref")
    for var in ("LINEAR_API_KEY", *(f"LINREF_{key.value.upper()}" for key in settings_module.ConfigKey)):
        monkeypatch.delenv(var, raising=False)
    return tmp_path


@pytest.fixture
def alias_store(tmp_path: Path) -> AliasStore:
    return AliasStore(
        global_path=tmp_path / "global" / "aliases.json",
        project_path=tmp_path / "project" / "aliases.json",
    )


@pytest.fixture
def config_store(tmp_path: Path) -> ConfigStore:
    return ConfigStore(
        global_path=tmp_path / "global" / "config.json",
        project_path=tmp_path / "project" / "config.json",
        overrides={},
    )


@pytest.fixture
def entity_cache(tmp_path: Path) -> EntityCache:
    return EntityCache(persistent=PersistentCache(tmp_path / "cache"), ttl_seconds=3600)


@pytest.fixture
def teams() -> list[Entity]:
    return [
        Entity(id="team_eng", name="Engineering", key="ENG"),
        Entity(id="team_des", name="Design", key="DES"),
        Entity(id="team_ops", name="Operations", key="OPS"),
    ]


@pytest.fixture
def members() -> list[Entity]:
    return [
        Entity(id="user_jane", name="Jane Doe", display_name="jane", email="jane@example.com"),
        Entity(id="user_john", name="John Doe", display_name="johnd", email="john@example.com"),
    ]


@pytest.fixture
def provider(teams: list[Entity], members: list[Entity]) -> MagicMock:
    """EntityProvider double: lists the fixtures above, accepts any ID."""
    listings = {EntityType.TEAM: teams, EntityType.MEMBER: members}
    mock = MagicMock()
    mock.list_entities.side_effect = lambda entity_type, team_id=None: list(listings.get(entity_type, []))
    mock.validate_exists.return_value = Validation(valid=True, name="Engineering")
    return mock
