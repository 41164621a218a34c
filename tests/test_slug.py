"""Tests for slugify and SlugSyncEngine."""

import pytest

from linref.aliases import AliasStore
from linref.models import Entity, EntityType, Scope
from linref.sync import ALREADY_ALIASED, DUPLICATE_SLUG, EMPTY_SLUG, SlugSyncEngine, slugify


class TestSlugify:
    @pytest.mark.parametrize(
        "name, slug",
        [
            ("Design System", "design-system"),
            ("Design‑System", "design-system"),
            ("  Platform / Infra  ", "platform-infra"),
            ("Café Ops", "cafe-ops"),
            ("Q3 2024 -- Roadmap!", "q3-2024-roadmap"),
            ("UPPER_snake", "upper-snake"),
        ],
    )
    def test_slugs(self, name: str, slug: str) -> None:
        assert slugify(name) == slug

    @pytest.mark.parametrize("name", ["", "   ", "!!!", "日本語"])
    def test_empty(self, name: str) -> None:
        assert slugify(name) == ""

    def test_output_alphabet(self) -> None:
        slug = slugify("a  b__c--d..é")
        assert slug == "a-b-c-d-e"
        assert "--" not in slug


def _entities(*names: str) -> list[Entity]:
    return [Entity(id=f"init_{i}", name=name) for i, name in enumerate(names, start=1)]


class TestSync:
    def test_creates_aliases(self, alias_store: AliasStore) -> None:
        report = SlugSyncEngine(alias_store).sync(
            EntityType.INITIATIVE, _entities("Q3 Roadmap", "Hiring"), Scope.GLOBAL
        )
        assert [(a.alias, a.id) for a in report.created] == [("q3-roadmap", "init_1"), ("hiring", "init_2")]
        assert alias_store.resolve(EntityType.INITIATIVE, "hiring").id == "init_2"

    def test_collisions_get_suffixes_in_input_order(self, alias_store: AliasStore) -> None:
        entities = _entities("Design System", "Design‑System", "design system")
        report = SlugSyncEngine(alias_store).sync(EntityType.INITIATIVE, entities, Scope.GLOBAL)
        assert [a.alias for a in report.created] == ["design-system", "design-system-2", "design-system-3"]
        assert [(c.base_slug, c.assigned) for c in report.conflicts] == [
            ("design-system", "design-system-2"),
            ("design-system", "design-system-3"),
        ]

    def test_deterministic(self, tmp_path) -> None:
        entities = _entities("Ops", "OPS", "Ops!")
        first = SlugSyncEngine(AliasStore(tmp_path / "a.json", tmp_path / "a-p.json")).sync(
            EntityType.INITIATIVE, entities, Scope.GLOBAL
        )
        second = SlugSyncEngine(AliasStore(tmp_path / "b.json", tmp_path / "b-p.json")).sync(
            EntityType.INITIATIVE, entities, Scope.GLOBAL
        )
        assert first.created == second.created

    def test_existing_alias_of_other_entity_is_suffixed(self, alias_store: AliasStore) -> None:
        alias_store.add(EntityType.INITIATIVE, "hiring", "init_manual", Scope.GLOBAL)
        report = SlugSyncEngine(alias_store).sync(EntityType.INITIATIVE, _entities("Hiring"), Scope.GLOBAL)
        assert [a.alias for a in report.created] == ["hiring-2"]
        assert alias_store.resolve(EntityType.INITIATIVE, "hiring").id == "init_manual"

    def test_other_scope_does_not_collide(self, alias_store: AliasStore) -> None:
        alias_store.add(EntityType.INITIATIVE, "hiring", "init_manual", Scope.GLOBAL)
        report = SlugSyncEngine(alias_store).sync(EntityType.INITIATIVE, _entities("Hiring"), Scope.PROJECT)
        assert [a.alias for a in report.created] == ["hiring"]

    def test_resync_skips_already_aliased(self, alias_store: AliasStore) -> None:
        engine = SlugSyncEngine(alias_store)
        entities = _entities("Design System", "Design‑System")
        engine.sync(EntityType.INITIATIVE, entities, Scope.GLOBAL)
        before = alias_store.path(Scope.GLOBAL).read_text()

        report = engine.sync(EntityType.INITIATIVE, entities, Scope.GLOBAL)
        assert report.created == []
        assert {s.reason for s in report.skipped} == {ALREADY_ALIASED}
        assert alias_store.path(Scope.GLOBAL).read_text() == before

    def test_force_rederives_without_stealing(self, alias_store: AliasStore) -> None:
        alias_store.add(EntityType.INITIATIVE, "q3", "init_1", Scope.GLOBAL)
        report = SlugSyncEngine(alias_store).sync(
            EntityType.INITIATIVE, _entities("Q3 Roadmap"), Scope.GLOBAL, force=True
        )
        assert [a.alias for a in report.created] == ["q3-roadmap"]
        assert alias_store.aliases_for(EntityType.INITIATIVE, "init_1") == {"q3", "q3-roadmap"}

    def test_no_auto_suffix_skips_duplicates(self, alias_store: AliasStore) -> None:
        report = SlugSyncEngine(alias_store).sync(
            EntityType.INITIATIVE, _entities("Design System", "Design-System"), Scope.GLOBAL, auto_suffix=False
        )
        assert [a.alias for a in report.created] == ["design-system"]
        assert [(s.id, s.reason, s.slug) for s in report.skipped] == [("init_2", DUPLICATE_SLUG, "design-system")]
        assert report.conflicts[0].assigned is None

    def test_empty_slug_skipped(self, alias_store: AliasStore) -> None:
        report = SlugSyncEngine(alias_store).sync(EntityType.INITIATIVE, _entities("???"), Scope.GLOBAL)
        assert report.created == []
        assert report.skipped[0].reason == EMPTY_SLUG

    def test_dry_run_writes_nothing(self, alias_store: AliasStore) -> None:
        report = SlugSyncEngine(alias_store).sync(
            EntityType.INITIATIVE, _entities("Hiring"), Scope.GLOBAL, dry_run=True
        )
        assert report.dry_run
        assert [a.alias for a in report.created] == ["hiring"]
        assert not alias_store.path(Scope.GLOBAL).exists()

    def test_created_aliases_are_unique(self, alias_store: AliasStore) -> None:
        names = ["A", "a", "A!", "a-2", "A 2", "b"]
        report = SlugSyncEngine(alias_store).sync(EntityType.INITIATIVE, _entities(*names), Scope.GLOBAL)
        aliases = [a.alias for a in report.created]
        assert len(aliases) == len(set(aliases)) == len(names)
