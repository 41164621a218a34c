"""Shared pydantic models and enums: the contract between stores, providers and main.py."""

from datetime import UTC, datetime
from enum import StrEnum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator


class EntityType(StrEnum):
    TEAM = "team"
    INITIATIVE = "initiative"
    PROJECT = "project"
    MEMBER = "member"
    ISSUE_LABEL = "issue-label"
    PROJECT_LABEL = "project-label"
    WORKFLOW_STATE = "workflow-state"
    PROJECT_TEMPLATE = "project-template"
    ISSUE_TEMPLATE = "issue-template"
    PROJECT_STATUS = "project-status"

    @classmethod
    def parse(cls, text: str) -> "EntityType | None":
        """Map user input (singular, plural or squashed spelling) to an entity type."""
        key = text.strip().lower().replace("_", "-")
        if key in _ENTITY_SYNONYMS:
            return _ENTITY_SYNONYMS[key]
        squashed = key.replace("-", "")
        for candidate, entity_type in _ENTITY_SYNONYMS.items():
            if candidate.replace("-", "") == squashed:
                return entity_type
        return None


_ENTITY_SYNONYMS: dict[str, EntityType] = {
    "team": EntityType.TEAM,
    "teams": EntityType.TEAM,
    "initiative": EntityType.INITIATIVE,
    "initiatives": EntityType.INITIATIVE,
    "project": EntityType.PROJECT,
    "projects": EntityType.PROJECT,
    "member": EntityType.MEMBER,
    "members": EntityType.MEMBER,
    "user": EntityType.MEMBER,
    "users": EntityType.MEMBER,
    "issue-label": EntityType.ISSUE_LABEL,
    "issue-labels": EntityType.ISSUE_LABEL,
    "project-label": EntityType.PROJECT_LABEL,
    "project-labels": EntityType.PROJECT_LABEL,
    "workflow-state": EntityType.WORKFLOW_STATE,
    "workflow-states": EntityType.WORKFLOW_STATE,
    "project-template": EntityType.PROJECT_TEMPLATE,
    "project-templates": EntityType.PROJECT_TEMPLATE,
    "issue-template": EntityType.ISSUE_TEMPLATE,
    "issue-templates": EntityType.ISSUE_TEMPLATE,
    "project-status": EntityType.PROJECT_STATUS,
    "project-statuses": EntityType.PROJECT_STATUS,
}


# Types whose listing can be narrowed to a single team.
TEAM_SCOPED_TYPES = frozenset({EntityType.MEMBER, EntityType.ISSUE_LABEL, EntityType.WORKFLOW_STATE})


class Scope(StrEnum):
    GLOBAL = "global"
    PROJECT = "project"


class Entity(BaseModel):
    """A remote object as listed by the provider and stored in the caches."""

    model_config = ConfigDict(frozen=True)

    id: str  # opaque Linear ID
    name: str
    key: str | None = None  # team key, e.g. ENG
    display_name: str | None = None  # members only
    email: str | None = None  # members only
    team_id: str | None = None  # workflow states, team-scoped labels
    color: str | None = None
    kind: str | None = None  # template type, state/status type
    position: float | None = None

    @property
    def names(self) -> list[str]:
        """Every human-facing string this entity can be looked up by."""
        return [n for n in (self.name, self.display_name, self.email, self.key) if n]


class Validation(BaseModel):
    """Returned by EntityProvider.validate_exists."""

    model_config = ConfigDict(frozen=True)

    valid: bool
    name: str | None = None
    error: str | None = None


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class ConfigSource(StrEnum):
    ENV = "env"
    PROJECT = "project"
    GLOBAL = "global"
    NONE = "none"


class ConfigLocation(BaseModel):
    model_config = ConfigDict(frozen=True)

    source: ConfigSource
    path: Path | None = None


class EffectiveValue(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str
    value: str | None
    location: ConfigLocation

    @property
    def is_set(self) -> bool:
        return self.value is not None


# ---------------------------------------------------------------------------
# Aliases
# ---------------------------------------------------------------------------


class AliasStatus(StrEnum):
    OK = "ok"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    INVALID = "invalid"


class AliasResult(BaseModel):
    """Outcome of an alias mutation. Conflicts and misses are results, not exceptions."""

    model_config = ConfigDict(frozen=True)

    status: AliasStatus
    entity_type: EntityType
    alias: str
    scope: Scope
    id: str | None = None
    previous_id: str | None = None  # set when an overwrite or conflict involved another ID
    message: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == AliasStatus.OK


class AliasMatch(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    scope: Scope
    path: Path


class AliasRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    entity_type: EntityType
    alias: str
    id: str
    scope: Scope
    shadowed: bool = False  # global alias hidden by a project alias of the same name


class BrokenAlias(BaseModel):
    model_config = ConfigDict(frozen=True)

    record: AliasRecord
    error: str


# ---------------------------------------------------------------------------
# Sync
# ---------------------------------------------------------------------------


class SyncedAlias(BaseModel):
    model_config = ConfigDict(frozen=True)

    alias: str
    id: str
    name: str


class SkippedEntity(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    reason: str
    slug: str | None = None


class SlugConflict(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    base_slug: str
    assigned: str | None  # None when the entity was skipped instead of suffixed


class SyncReport(BaseModel):
    entity_type: EntityType
    scope: Scope
    dry_run: bool = False
    created: list[SyncedAlias] = []
    skipped: list[SkippedEntity] = []
    conflicts: list[SlugConflict] = []


# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------


class CacheSource(StrEnum):
    SESSION = "session"
    PERSISTENT = "persistent"
    REMOTE = "remote"


class CacheEntry(BaseModel):
    """On-disk document for one entity type: {fetchedAt, ttlSeconds, entities}."""

    model_config = ConfigDict(populate_by_name=True)

    fetched_at: datetime = Field(alias="fetchedAt")
    ttl_seconds: int = Field(alias="ttlSeconds")
    entities: list[Entity] = []

    @field_validator("fetched_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        # Hand-edited files may carry naive timestamps
        return value if value.tzinfo else value.replace(tzinfo=UTC)


class CacheStat(BaseModel):
    model_config = ConfigDict(frozen=True)

    entity_type: EntityType
    session_count: int | None  # None when the session tier holds nothing
    persistent_count: int | None
    age_seconds: float | None = None
    fresh: bool = False


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


class ResolvedBy(StrEnum):
    ALIAS = "alias"
    LITERAL = "literal"
    CACHE = "cache"
    NAME = "name"


class Resolution(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    resolved_by: ResolvedBy
    name: str | None = None
    scope: Scope | None = None  # alias scope when resolved_by == alias
