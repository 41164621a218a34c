"""Two-tier entity cache.

Session tier: an in-process dict, valid until the process exits or it is
cleared. Persistent tier: one JSON document per entity type under
.linref/cache/, each with its own fetchedAt/ttlSeconds, so refreshing or
clearing one type never touches another. A stale or unreadable document is a
miss, never an error; the next successful fetch overwrites it.
"""

import logging
from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from pathlib import Path

from pydantic import ValidationError

from linref.models import CacheEntry, CacheSource, CacheStat, Entity, EntityType, Scope
from linref.settings import DEFAULT_CACHE_TTL_MINUTES, ConfigStore, scope_dir
from linref.store import JsonDocument

logger = logging.getLogger(__name__)

CACHE_DIRNAME = "cache"

# Types worth keeping across runs; the rest live in the session tier only.
PERSISTENT_TYPES = frozenset(
    {
        EntityType.TEAM,
        EntityType.INITIATIVE,
        EntityType.MEMBER,
        EntityType.ISSUE_TEMPLATE,
        EntityType.PROJECT_TEMPLATE,
        EntityType.WORKFLOW_STATE,
        EntityType.PROJECT_STATUS,
    }
)


def cache_dir() -> Path:
    return scope_dir(Scope.PROJECT) / CACHE_DIRNAME


class SessionCache:
    def __init__(self) -> None:
        self._entries: dict[EntityType, list[Entity]] = {}

    def get(self, entity_type: EntityType) -> list[Entity] | None:
        entities = self._entries.get(entity_type)
        return list(entities) if entities is not None else None

    def put(self, entity_type: EntityType, entities: Iterable[Entity]) -> None:
        self._entries[entity_type] = list(entities)

    def clear(self, entity_type: EntityType | None = None) -> None:
        if entity_type is None:
            self._entries.clear()
        else:
            self._entries.pop(entity_type, None)


class PersistentCache:
    def __init__(self, directory: Path | None = None) -> None:
        self.directory = directory or cache_dir()

    def _doc(self, entity_type: EntityType) -> JsonDocument:
        return JsonDocument(self.directory / f"{entity_type.value}.json", f"{entity_type} cache")

    def path(self, entity_type: EntityType) -> Path:
        return self._doc(entity_type).path

    def read(self, entity_type: EntityType) -> CacheEntry | None:
        data = self._doc(entity_type).load()
        if not data:
            return None
        try:
            return CacheEntry.model_validate(data)
        except ValidationError as exc:
            logger.warning("Ignoring malformed %s cache at %s: %s", entity_type, self.path(entity_type), exc)
            return None

    def write(self, entity_type: EntityType, entities: Iterable[Entity], ttl_seconds: int) -> CacheEntry:
        entry = CacheEntry(fetched_at=datetime.now(UTC), ttl_seconds=ttl_seconds, entities=list(entities))
        self._doc(entity_type).save(entry.model_dump(mode="json", by_alias=True, exclude_none=True))
        return entry

    @staticmethod
    def is_fresh(entry: CacheEntry, now: datetime | None = None) -> bool:
        now = now or datetime.now(UTC)
        return (now - entry.fetched_at).total_seconds() < entry.ttl_seconds

    def clear(self, entity_type: EntityType | None = None) -> list[EntityType]:
        """Delete cache documents and return the types that had one."""
        types = [entity_type] if entity_type else list(EntityType)
        return [et for et in types if self._doc(et).delete()]


class EntityCache:
    """Session tier, then fresh persistent tier, then the fetch callable.

    One instance is built per command and handed to whoever needs entity
    listings; there is no module-level instance.
    """

    def __init__(
        self,
        session: SessionCache | None = None,
        persistent: PersistentCache | None = None,
        ttl_seconds: int = DEFAULT_CACHE_TTL_MINUTES * 60,
        persistent_enabled: bool = True,
    ) -> None:
        self.session = session if session is not None else SessionCache()
        self.persistent = persistent if persistent is not None else PersistentCache()
        self.ttl_seconds = ttl_seconds
        self.persistent_enabled = persistent_enabled

    @classmethod
    def from_config(cls, config: ConfigStore) -> "EntityCache":
        return cls(ttl_seconds=config.cache_ttl_seconds(), persistent_enabled=config.persistent_cache_enabled())

    def _uses_persistent(self, entity_type: EntityType) -> bool:
        return self.persistent_enabled and entity_type in PERSISTENT_TYPES

    def entities(
        self, entity_type: EntityType, fetch: Callable[[], list[Entity]]
    ) -> tuple[list[Entity], CacheSource]:
        cached = self.session.get(entity_type)
        if cached is not None:
            return cached, CacheSource.SESSION

        if self._uses_persistent(entity_type):
            entry = self.persistent.read(entity_type)
            if entry is not None and self.persistent.is_fresh(entry):
                self.session.put(entity_type, entry.entities)
                return list(entry.entities), CacheSource.PERSISTENT

        # Remote errors propagate; nothing is cached on failure.
        fetched = fetch()
        self.session.put(entity_type, fetched)
        if self._uses_persistent(entity_type):
            try:
                self.persistent.write(entity_type, fetched, self.ttl_seconds)
            except OSError as exc:
                logger.warning("Could not save %s cache: %s", entity_type, exc)
        return list(fetched), CacheSource.REMOTE

    def clear(self, entity_type: EntityType | None = None) -> list[EntityType]:
        self.session.clear(entity_type)
        return self.persistent.clear(entity_type)

    def stats(self, now: datetime | None = None) -> list[CacheStat]:
        now = now or datetime.now(UTC)
        stats: list[CacheStat] = []
        for entity_type in EntityType:
            session = self.session.get(entity_type)
            entry = self.persistent.read(entity_type) if entity_type in PERSISTENT_TYPES else None
            stats.append(
                CacheStat(
                    entity_type=entity_type,
                    session_count=len(session) if session is not None else None,
                    persistent_count=len(entry.entities) if entry else None,
                    age_seconds=(now - entry.fetched_at).total_seconds() if entry else None,
                    fresh=self.persistent.is_fresh(entry, now) if entry else False,
                )
            )
        return stats
