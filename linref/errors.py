"""Exception taxonomy.

Alias conflicts and misses are returned as AliasResult values; the exceptions
here cover resolution failures, bad configuration input and remote failures.
"""

from linref.models import Entity, EntityType


class LinrefError(Exception):
    """Base class for every error linref raises on purpose."""


class ConfigKeyError(LinrefError):
    def __init__(self, key: str, valid: list[str]) -> None:
        self.key = key
        self.valid = valid
        super().__init__(f"Unknown config key '{key}'. Valid keys: {', '.join(valid)}")


class InvalidValueError(LinrefError):
    def __init__(self, key: str, reason: str) -> None:
        self.key = key
        self.reason = reason
        super().__init__(f"Invalid value for '{key}': {reason}")


class ResolutionError(LinrefError):
    def __init__(self, entity_type: EntityType, token: str, message: str) -> None:
        self.entity_type = entity_type
        self.token = token
        super().__init__(message)


class NotFoundError(ResolutionError):
    def __init__(self, entity_type: EntityType, token: str) -> None:
        super().__init__(entity_type, token, f"No {entity_type} matches '{token}' (alias, ID or name)")


class AmbiguousError(ResolutionError):
    def __init__(self, entity_type: EntityType, token: str, candidates: list[Entity]) -> None:
        self.candidates = candidates
        names = ", ".join(f"{c.name} ({c.id})" for c in candidates)
        super().__init__(entity_type, token, f"'{token}' matches {len(candidates)} {entity_type}s: {names}")


class RemoteUnavailableError(LinrefError):
    """The remote API could not be reached or answered with an HTTP error."""


class AuthenticationError(LinrefError):
    """The remote API rejected the configured API key."""
