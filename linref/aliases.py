"""Alias bookkeeping across the global and project scopes.

Each scope is one JSON document shaped {entity_type: {alias: id}}. Lookups
scan the project document first, then the global one, so a project alias
shadows a global alias of the same name. Shadowing is never merged away:
both entries stay on disk and `list_aliases` reports the hidden one.
"""

import logging
from pathlib import Path
from typing import Any

from linref.models import (
    AliasMatch,
    AliasRecord,
    AliasResult,
    AliasStatus,
    BrokenAlias,
    EntityType,
    Scope,
)
from linref.providers.base import EntityProvider
from linref.settings import scope_dir
from linref.store import JsonDocument

logger = logging.getLogger(__name__)

ALIASES_FILENAME = "aliases.json"

# Lookup order: first scope that defines the alias wins.
SCOPE_PRIORITY = (Scope.PROJECT, Scope.GLOBAL)


def normalize_alias(alias: str) -> str:
    return alias.strip().lower()


def _alias_problem(alias: str) -> str | None:
    if not alias:
        return "Alias cannot be empty"
    if any(ch.isspace() for ch in alias):
        return "Alias cannot contain spaces"
    return None


class AliasStore:
    def __init__(self, global_path: Path | None = None, project_path: Path | None = None) -> None:
        self._docs = {
            Scope.GLOBAL: JsonDocument(global_path or scope_dir(Scope.GLOBAL) / ALIASES_FILENAME, "global aliases"),
            Scope.PROJECT: JsonDocument(project_path or scope_dir(Scope.PROJECT) / ALIASES_FILENAME, "project aliases"),
        }

    def path(self, scope: Scope) -> Path:
        return self._docs[scope].path

    # -- loading ------------------------------------------------------------

    @staticmethod
    def _section(data: dict[str, Any], entity_type: EntityType) -> dict[str, str]:
        """Return the alias map for one type, dropping entries that are not alias -> id strings."""
        section = data.get(entity_type.value)
        if section is None:
            return {}
        if not isinstance(section, dict):
            logger.warning("Ignoring malformed '%s' section in aliases file", entity_type)
            return {}
        return {normalize_alias(k): v for k, v in section.items() if isinstance(k, str) and isinstance(v, str)}

    def scope_aliases(self, entity_type: EntityType, scope: Scope) -> dict[str, str]:
        return self._section(self._docs[scope].load(), entity_type)

    def _all_scopes(self, entity_type: EntityType) -> list[tuple[Scope, dict[str, str]]]:
        return [(scope, self.scope_aliases(entity_type, scope)) for scope in SCOPE_PRIORITY]

    # -- lookups ------------------------------------------------------------

    def resolve(self, entity_type: EntityType, alias: str) -> AliasMatch | None:
        key = normalize_alias(alias)
        if not key:
            return None
        for scope, aliases in self._all_scopes(entity_type):
            if key in aliases:
                return AliasMatch(id=aliases[key], scope=scope, path=self.path(scope))
        return None

    def reverse_index(self, entity_type: EntityType) -> dict[str, set[str]]:
        """id -> aliases that currently resolve to it, over the effective (shadow-aware) view."""
        effective: dict[str, str] = {}
        for _, aliases in reversed(self._all_scopes(entity_type)):
            effective.update(aliases)
        index: dict[str, set[str]] = {}
        for alias, target in effective.items():
            index.setdefault(target, set()).add(alias)
        return index

    def aliases_for(self, entity_type: EntityType, entity_id: str) -> set[str]:
        return self.reverse_index(entity_type).get(entity_id, set())

    def list_aliases(self, entity_type: EntityType | None = None) -> list[AliasRecord]:
        types = [entity_type] if entity_type else list(EntityType)
        records: list[AliasRecord] = []
        for et in types:
            project = self.scope_aliases(et, Scope.PROJECT)
            global_ = self.scope_aliases(et, Scope.GLOBAL)
            for alias, target in sorted(project.items()):
                records.append(AliasRecord(entity_type=et, alias=alias, id=target, scope=Scope.PROJECT))
            for alias, target in sorted(global_.items()):
                records.append(
                    AliasRecord(entity_type=et, alias=alias, id=target, scope=Scope.GLOBAL, shadowed=alias in project)
                )
        return records

    # -- mutations ----------------------------------------------------------

    def add(
        self,
        entity_type: EntityType,
        alias: str,
        entity_id: str,
        scope: Scope,
        allow_overwrite: bool = False,
    ) -> AliasResult:
        key = normalize_alias(alias)
        result = dict(entity_type=entity_type, alias=key, scope=scope, id=entity_id)
        if problem := _alias_problem(key):
            return AliasResult(status=AliasStatus.INVALID, message=problem, **result)
        if not entity_id.strip():
            return AliasResult(status=AliasStatus.INVALID, message="Target ID cannot be empty", **result)

        # Only the target scope counts; the same alias in the other scope is shadowing.
        previous = self.scope_aliases(entity_type, scope).get(key)
        if previous is not None and not allow_overwrite:
            message = (
                f"Alias '{key}' already points to this {entity_type}"
                if previous == entity_id
                else f"Alias '{key}' already exists for {entity_type} in {scope} scope"
            )
            return AliasResult(status=AliasStatus.CONFLICT, previous_id=previous, message=message, **result)

        with self._docs[scope].edit() as data:
            section = self._section(data, entity_type)
            section[key] = entity_id
            data[entity_type.value] = section

        logger.debug("Added %s alias %s -> %s (%s)", entity_type, key, entity_id, scope)
        return AliasResult(status=AliasStatus.OK, previous_id=previous, **result)

    def add_many(self, entity_type: EntityType, entries: dict[str, str], scope: Scope) -> None:
        """Write several alias -> id pairs in one replace of the scope file, overwriting as needed."""
        if not entries:
            return
        with self._docs[scope].edit() as data:
            section = self._section(data, entity_type)
            section.update({normalize_alias(k): v for k, v in entries.items()})
            data[entity_type.value] = section

    def remove(self, entity_type: EntityType, alias: str, scope: Scope) -> AliasResult:
        key = normalize_alias(alias)
        doc = self._docs[scope]
        section = self._section(doc.load(), entity_type)
        if key not in section:
            return AliasResult(
                status=AliasStatus.NOT_FOUND,
                entity_type=entity_type,
                alias=key,
                scope=scope,
                message=f"Alias '{key}' not found in {scope} aliases for {entity_type}",
            )
        with doc.edit() as data:
            section = self._section(data, entity_type)
            removed = section.pop(key)
            data[entity_type.value] = section
        return AliasResult(status=AliasStatus.OK, entity_type=entity_type, alias=key, scope=scope, id=removed)

    def rename(self, entity_type: EntityType, old: str, new: str, scope: Scope) -> AliasResult:
        old_key, new_key = normalize_alias(old), normalize_alias(new)
        result = dict(entity_type=entity_type, alias=new_key, scope=scope)
        if problem := _alias_problem(new_key):
            return AliasResult(status=AliasStatus.INVALID, message=problem, **result)
        section = self.scope_aliases(entity_type, scope)
        if old_key not in section:
            return AliasResult(
                status=AliasStatus.NOT_FOUND,
                message=f"Alias '{old_key}' not found in {scope} aliases for {entity_type}",
                **result,
            )
        if new_key in section:
            return AliasResult(
                status=AliasStatus.CONFLICT,
                previous_id=section[new_key],
                message=f"Alias '{new_key}' already exists for {entity_type} in {scope} scope",
                **result,
            )
        with self._docs[scope].edit() as data:
            section = self._section(data, entity_type)
            target = section.pop(old_key)
            section[new_key] = target
            data[entity_type.value] = section
        return AliasResult(status=AliasStatus.OK, id=target, **result)

    def clear(self, entity_type: EntityType, scope: Scope, preview: bool = False) -> list[str]:
        """Drop every alias of one type from one scope and return what was (or would be) removed."""
        doc = self._docs[scope]
        removed = sorted(self._section(doc.load(), entity_type))
        if preview or not removed:
            return removed
        with doc.edit() as data:
            data[entity_type.value] = {}
        return removed


def validate_aliases(store: AliasStore, provider: EntityProvider) -> list[BrokenAlias]:
    """Check every effective alias against the remote API and return the ones that no longer resolve."""
    broken: list[BrokenAlias] = []
    for record in store.list_aliases():
        if record.shadowed:
            continue
        validation = provider.validate_exists(record.entity_type, record.id)
        if not validation.valid:
            broken.append(BrokenAlias(record=record, error=validation.error or "Unknown error"))
    return broken
