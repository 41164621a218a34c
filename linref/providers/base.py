"""Abstract base class for remote entity providers."""

from abc import ABC, abstractmethod

from linref.models import Entity, EntityType, Validation


class EntityProvider(ABC):
    @abstractmethod
    def list_entities(self, entity_type: EntityType, team_id: str | None = None) -> list[Entity]:
        """Return every entity of a type in remote listing order, optionally narrowed to one team."""

    @abstractmethod
    def validate_exists(self, entity_type: EntityType, entity_id: str) -> Validation: ...
