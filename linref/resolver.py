"""Turn a user-supplied token (alias, raw ID or name) into a remote ID.

Strategies, first success wins:
1. alias in the project scope, then the global scope
2. token already shaped like an ID of that type: accepted as-is, not checked remotely
3. name lookup over the entity cache (remote listing on a miss): exact, then prefix
"""

import logging
import re
from collections.abc import Callable

from linref.aliases import AliasStore
from linref.cache import EntityCache
from linref.errors import AmbiguousError, NotFoundError
from linref.models import TEAM_SCOPED_TYPES, CacheSource, Entity, EntityType, Resolution, ResolvedBy
from linref.providers.base import EntityProvider

logger = logging.getLogger(__name__)

_UUID = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE)
_PREFIXED = re.compile(r"^[a-z]+_[a-z0-9]+$", re.IGNORECASE)

ID_PREFIXES: dict[EntityType, tuple[str, ...]] = {
    EntityType.TEAM: ("team_",),
    EntityType.INITIATIVE: ("init_",),
    EntityType.PROJECT: ("proj_",),
    EntityType.MEMBER: ("user_",),
    EntityType.ISSUE_LABEL: ("label_",),
    EntityType.PROJECT_LABEL: ("label_",),
    EntityType.WORKFLOW_STATE: ("state_", "workflow_"),
    EntityType.PROJECT_TEMPLATE: ("template_",),
    EntityType.ISSUE_TEMPLATE: ("template_",),
    EntityType.PROJECT_STATUS: ("status_",),
}

IdPredicate = Callable[[EntityType, str], bool]


def looks_like_id(entity_type: EntityType, token: str) -> bool:
    """UUIDs for any type; `prefix_xxx` only when the prefix belongs to entity_type."""
    if _UUID.match(token):
        return True
    if _PREFIXED.match(token):
        return token.lower().startswith(ID_PREFIXES[entity_type])
    return False


def match_entity(entity_type: EntityType, token: str, entities: list[Entity]) -> Entity:
    """Case-insensitive exact match over each entity's names, then prefix match."""
    needle = token.casefold()
    exact = [e for e in entities if any(n.casefold() == needle for n in e.names)]
    candidates = exact or [e for e in entities if any(n.casefold().startswith(needle) for n in e.names)]
    if not candidates:
        raise NotFoundError(entity_type, token)
    if len(candidates) > 1:
        raise AmbiguousError(entity_type, token, candidates)
    return candidates[0]


class Resolver:
    def __init__(
        self,
        aliases: AliasStore,
        cache: EntityCache,
        provider: EntityProvider,
        is_literal_id: IdPredicate = looks_like_id,
    ) -> None:
        self.aliases = aliases
        self.cache = cache
        self.provider = provider
        self.is_literal_id = is_literal_id

    def resolve(self, entity_type: EntityType, token: str, team_id: str | None = None) -> Resolution:
        token = token.strip()
        if not token:
            raise NotFoundError(entity_type, token)

        match = self.aliases.resolve(entity_type, token)
        if match is not None:
            logger.debug("Resolved %s '%s' via %s alias", entity_type, token, match.scope)
            return Resolution(id=match.id, resolved_by=ResolvedBy.ALIAS, scope=match.scope)

        if self.is_literal_id(entity_type, token):
            return Resolution(id=token, resolved_by=ResolvedBy.LITERAL)

        entities, resolved_by = self._listing(entity_type, team_id)
        entity = match_entity(entity_type, token, entities)
        logger.debug("Resolved %s '%s' by name to %s (%s)", entity_type, token, entity.id, resolved_by)
        return Resolution(id=entity.id, resolved_by=resolved_by, name=entity.name)

    def _listing(self, entity_type: EntityType, team_id: str | None) -> tuple[list[Entity], ResolvedBy]:
        if team_id and entity_type in TEAM_SCOPED_TYPES:
            # Team-filtered listings differ from the cached workspace-wide ones.
            return self.provider.list_entities(entity_type, team_id=team_id), ResolvedBy.NAME
        entities, source = self.cache.entities(entity_type, lambda: self.provider.list_entities(entity_type))
        return entities, ResolvedBy.NAME if source == CacheSource.REMOTE else ResolvedBy.CACHE
