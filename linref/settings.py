"""Settings resolution across an env override layer and two scoped config files."""

import logging
from collections.abc import Mapping
from enum import StrEnum
from pathlib import Path
from typing import Any

from pydantic import AliasChoices, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from linref.errors import ConfigKeyError, InvalidValueError
from linref.models import ConfigLocation, ConfigSource, EffectiveValue, EntityType, Scope
from linref.store import JsonDocument

logger = logging.getLogger(__name__)

GLOBAL_DIR = Path.home() / ".config" / "linref"
PROJECT_DIR = Path(".linref")  # relative to the working directory
CONFIG_FILENAME = "config.json"

DEFAULT_CACHE_TTL_MINUTES = 60
MAX_CACHE_TTL_MINUTES = 1440

_TRUE_WORDS = {"true", "1", "yes", "on"}
_FALSE_WORDS = {"false", "0", "no", "off"}


class ConfigKey(StrEnum):
    API_KEY = "api_key"
    DEFAULT_TEAM = "default_team"
    DEFAULT_INITIATIVE = "default_initiative"
    DEFAULT_ISSUE_TEMPLATE = "default_issue_template"
    DEFAULT_PROJECT_TEMPLATE = "default_project_template"
    DEFAULT_MILESTONE_TEMPLATE = "default_milestone_template"
    CACHE_TTL_MINUTES = "cache_ttl_minutes"
    PERSISTENT_CACHE = "persistent_cache"


# Keys whose value is a remote ID; callers resolve and validate these before set_value.
ENTITY_KEYS: dict[ConfigKey, EntityType] = {
    ConfigKey.DEFAULT_TEAM: EntityType.TEAM,
    ConfigKey.DEFAULT_INITIATIVE: EntityType.INITIATIVE,
    ConfigKey.DEFAULT_ISSUE_TEMPLATE: EntityType.ISSUE_TEMPLATE,
    ConfigKey.DEFAULT_PROJECT_TEMPLATE: EntityType.PROJECT_TEMPLATE,
}


def scope_dir(scope: Scope) -> Path:
    return GLOBAL_DIR if scope == Scope.GLOBAL else PROJECT_DIR


class EnvOverrides(BaseSettings):
    """Runtime overrides: LINREF_<KEY> env vars or a .env file in cwd."""

    model_config = SettingsConfigDict(
        env_prefix="LINREF_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    api_key: SecretStr | None = Field(default=None, validation_alias=AliasChoices("LINREF_API_KEY", "LINEAR_API_KEY"))
    default_team: str | None = None
    default_initiative: str | None = None
    default_issue_template: str | None = None
    default_project_template: str | None = None
    default_milestone_template: str | None = None
    cache_ttl_minutes: str | None = None
    persistent_cache: str | None = None

    def as_mapping(self) -> dict[str, str]:
        values: dict[str, str] = {}
        for key in ConfigKey:
            raw = getattr(self, key.value)
            if isinstance(raw, SecretStr):
                raw = raw.get_secret_value()
            if raw:
                values[key.value] = raw
        return values


def _check_key(key: str) -> ConfigKey:
    try:
        return ConfigKey(key)
    except ValueError:
        raise ConfigKeyError(key, [k.value for k in ConfigKey]) from None


def _stringify(value: Any) -> str | None:
    """Coerce a stored value to the string form; None/"" mean "not defined here"."""
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def normalize_value(key: ConfigKey, value: str) -> str:
    """Check a value's syntax and return the form that gets stored."""
    value = value.strip()
    if not value:
        raise InvalidValueError(key, "value cannot be empty")
    if key == ConfigKey.CACHE_TTL_MINUTES:
        try:
            minutes = int(value)
        except ValueError:
            raise InvalidValueError(key, "must be a whole number of minutes") from None
        if not 1 <= minutes <= MAX_CACHE_TTL_MINUTES:
            raise InvalidValueError(key, f"must be between 1 and {MAX_CACHE_TTL_MINUTES} minutes")
        return str(minutes)
    if key == ConfigKey.PERSISTENT_CACHE:
        word = value.lower()
        if word in _TRUE_WORDS:
            return "true"
        if word in _FALSE_WORDS:
            return "false"
        raise InvalidValueError(key, "must be true or false")
    return value


def mask_secret(value: str | None) -> str:
    if value is None:
        return "(not set)"
    if len(value) <= 7:
        return "***"
    return f"{value[:4]}***{value[-3:]}"


class ConfigStore:
    """Effective configuration over env overrides, the project file and the global file.

    Precedence (highest to lowest):
    1. LINREF_<KEY> env var (LINEAR_API_KEY also accepted for api_key), or .env in cwd
    2. .linref/config.json in the working directory
    3. ~/.config/linref/config.json

    The first source that defines a key wins; sources are never merged.
    """

    def __init__(
        self,
        global_path: Path | None = None,
        project_path: Path | None = None,
        overrides: Mapping[str, str] | None = None,
    ) -> None:
        self.global_doc = JsonDocument(global_path or scope_dir(Scope.GLOBAL) / CONFIG_FILENAME, "global config")
        self.project_doc = JsonDocument(project_path or scope_dir(Scope.PROJECT) / CONFIG_FILENAME, "project config")
        self._overrides = dict(overrides) if overrides is not None else EnvOverrides().as_mapping()

    def document(self, scope: Scope) -> JsonDocument:
        return self.global_doc if scope == Scope.GLOBAL else self.project_doc

    def _sources(self) -> list[tuple[ConfigLocation, Mapping[str, Any]]]:
        return [
            (ConfigLocation(source=ConfigSource.ENV), self._overrides),
            (ConfigLocation(source=ConfigSource.PROJECT, path=self.project_doc.path), self.project_doc.load()),
            (ConfigLocation(source=ConfigSource.GLOBAL, path=self.global_doc.path), self.global_doc.load()),
        ]

    @staticmethod
    def _first_defined(key: ConfigKey, sources: list[tuple[ConfigLocation, Mapping[str, Any]]]) -> EffectiveValue:
        for location, values in sources:
            value = _stringify(values.get(key.value))
            if value is not None:
                return EffectiveValue(key=key.value, value=value, location=location)
        return EffectiveValue(key=key.value, value=None, location=ConfigLocation(source=ConfigSource.NONE))

    def get_effective(self, key: str) -> EffectiveValue:
        return self._first_defined(_check_key(key), self._sources())

    def list_effective(self) -> list[EffectiveValue]:
        sources = self._sources()
        return [self._first_defined(key, sources) for key in ConfigKey]

    def get(self, key: str) -> str | None:
        return self.get_effective(key).value

    def set_value(self, key: str, value: str, scope: Scope) -> str:
        """Persist value in exactly one scope file and return the stored form."""
        config_key = _check_key(key)
        stored = normalize_value(config_key, value)
        with self.document(scope).edit() as data:
            data[config_key.value] = stored
        logger.debug("Set %s in %s config", config_key, scope)
        return stored

    def unset_value(self, key: str, scope: Scope) -> bool:
        """Remove key from one scope file. Returns False if that scope did not define it."""
        config_key = _check_key(key)
        doc = self.document(scope)
        if config_key.value not in doc.load():
            return False
        with doc.edit() as data:
            data.pop(config_key.value, None)
        logger.debug("Unset %s in %s config", config_key, scope)
        return True

    # -- typed accessors ----------------------------------------------------

    def cache_ttl_seconds(self) -> int:
        effective = self.get_effective(ConfigKey.CACHE_TTL_MINUTES)
        if effective.value is None:
            return DEFAULT_CACHE_TTL_MINUTES * 60
        try:
            minutes = int(normalize_value(ConfigKey.CACHE_TTL_MINUTES, effective.value))
        except InvalidValueError as exc:
            logger.warning("%s (from %s); using %d minutes", exc, effective.location.source, DEFAULT_CACHE_TTL_MINUTES)
            minutes = DEFAULT_CACHE_TTL_MINUTES
        return minutes * 60

    def persistent_cache_enabled(self) -> bool:
        value = self.get(ConfigKey.PERSISTENT_CACHE)
        return value is None or value.strip().lower() not in _FALSE_WORDS
