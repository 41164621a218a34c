"""Derive aliases from entity names.

Each entity's display name is slugged; collisions inside the batch or with
aliases already in the destination scope get -2, -3, ... suffixes in input
order, so the first entity seen keeps the bare slug. Given the same input
order the result is always the same.
"""

import logging
import re
import unicodedata
from collections.abc import Sequence

from linref.aliases import AliasStore
from linref.models import Entity, EntityType, Scope, SkippedEntity, SlugConflict, SyncedAlias, SyncReport

logger = logging.getLogger(__name__)

ALREADY_ALIASED = "already aliased"
DUPLICATE_SLUG = "duplicate slug"
EMPTY_SLUG = "empty slug"


def slugify(text: str) -> str:
    """Lowercase, strip accents, collapse every run of other characters to '-'.

    "Design System" -> "design-system"; "Café Ops" -> "cafe-ops"
    """
    decomposed = unicodedata.normalize("NFKD", text)
    unaccented = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return re.sub(r"[^a-z0-9]+", "-", unaccented.lower()).strip("-")


class SlugSyncEngine:
    def __init__(self, store: AliasStore) -> None:
        self.store = store

    def sync(
        self,
        entity_type: EntityType,
        entities: Sequence[Entity],
        scope: Scope,
        force: bool = False,
        dry_run: bool = False,
        auto_suffix: bool = True,
    ) -> SyncReport:
        existing = self.store.scope_aliases(entity_type, scope)
        aliased_ids = set(existing.values())
        assigned: set[str] = set()  # slugs handed out in this batch
        report = SyncReport(entity_type=entity_type, scope=scope, dry_run=dry_run)

        def is_taken(slug: str, entity_id: str) -> bool:
            owner = existing.get(slug)
            return slug in assigned or (owner is not None and owner != entity_id)

        for entity in entities:
            if entity.id in aliased_ids and not force:
                report.skipped.append(SkippedEntity(id=entity.id, name=entity.name, reason=ALREADY_ALIASED))
                continue

            base = slugify(entity.name)
            if not base:
                report.skipped.append(SkippedEntity(id=entity.id, name=entity.name, reason=EMPTY_SLUG))
                continue

            slug = base
            if is_taken(base, entity.id):
                if not auto_suffix:
                    report.skipped.append(
                        SkippedEntity(id=entity.id, name=entity.name, reason=DUPLICATE_SLUG, slug=base)
                    )
                    report.conflicts.append(SlugConflict(id=entity.id, name=entity.name, base_slug=base, assigned=None))
                    continue
                n = 2
                while is_taken(f"{base}-{n}", entity.id):
                    n += 1
                slug = f"{base}-{n}"
                report.conflicts.append(SlugConflict(id=entity.id, name=entity.name, base_slug=base, assigned=slug))

            assigned.add(slug)
            report.created.append(SyncedAlias(alias=slug, id=entity.id, name=entity.name))

        if not dry_run:
            self.store.add_many(entity_type, {a.alias: a.id for a in report.created}, scope)
        logger.debug(
            "Synced %s aliases into %s scope: %d created, %d skipped, %d conflicts%s",
            entity_type,
            scope,
            len(report.created),
            len(report.skipped),
            len(report.conflicts),
            " (dry run)" if dry_run else "",
        )
        return report
