from uuid import uuid4

import pytest

from sisgeagro.domain.entities import Entity
from sisgeagro.exceptions import (
    ConflictingEntityError,
    EntityNotFoundError,
    MissingFieldError,
)


class TestResolve:
    def test_same_fiscal_id_resolves_to_same_entity(self, entity_resolver, repos):
        first = entity_resolver.resolve("Agro SA", "30-11111111-1")
        second = entity_resolver.resolve("Agro SA", "30-11111111-1")

        assert first.id == second.id
        assert len(list(repos.entities.list_all())) == 1

    def test_new_name_for_known_fiscal_id_renames(self, entity_resolver, repos):
        original = entity_resolver.resolve("Agro SA", "30-11111111-1")

        renamed = entity_resolver.resolve("Agro Sociedad Anonima", "30-11111111-1")

        assert renamed.id == original.id
        assert repos.entities.get(original.id).name == "Agro Sociedad Anonima"

    def test_explicit_id_is_fetched(self, entity_resolver, repos):
        entity = Entity(name="Campo Norte", fiscal_id="20-33333333-3")
        repos.entities.add(entity)

        assert entity_resolver.resolve(None, None, entity.id).id == entity.id

    def test_unknown_explicit_id_raises(self, entity_resolver):
        with pytest.raises(EntityNotFoundError):
            entity_resolver.resolve(None, None, uuid4())

    @pytest.mark.parametrize(
        ("name", "fiscal_id", "field"),
        [("", "30-1", "entityName"), ("Agro SA", " ", "entityCuitCuil")],
    )
    def test_name_and_fiscal_id_are_required(self, entity_resolver, name, fiscal_id, field):
        with pytest.raises(MissingFieldError, match=field):
            entity_resolver.resolve(name, fiscal_id)


class TestResolveForEdit:
    def test_without_fiscal_id_keeps_current(self, entity_resolver, repos):
        current = Entity(name="Agro SA", fiscal_id="30-11111111-1")
        repos.entities.add(current)

        assert entity_resolver.resolve_for_edit("Otro nombre", "", current) is current

    def test_fiscal_id_match_wins(self, entity_resolver, repos):
        existing = Entity(name="Acopio SRL", fiscal_id="30-22222222-2")
        repos.entities.add(existing)

        resolved = entity_resolver.resolve_for_edit("whatever", "30-22222222-2", None)

        assert resolved.id == existing.id

    def test_name_under_other_fiscal_id_conflicts(self, entity_resolver, repos):
        repos.entities.add(Entity(name="Agro SA", fiscal_id="30-11111111-1"))

        with pytest.raises(ConflictingEntityError) as exc_info:
            entity_resolver.resolve_for_edit("Agro SA", "30-99999999-9", None)

        assert exc_info.value.status_code == 409
        assert exc_info.value.context["existing_fiscal_id"] == "30-11111111-1"

    def test_unknown_pair_is_inserted_with_current_name(self, entity_resolver, repos):
        current = Entity(name="Agro SA", fiscal_id="30-11111111-1")
        repos.entities.add(current)

        resolved = entity_resolver.resolve_for_edit(None, "27-44444444-4", current)

        assert resolved.id != current.id
        assert resolved.name == "Agro SA"
        assert repos.entities.get_by_fiscal_id("27-44444444-4") is not None


class TestResolveMany:
    def test_deduplicates_by_fiscal_id_keeping_first_name(self, entity_resolver, repos):
        resolved = entity_resolver.resolve_many(
            [
                ("Agro SA", "30-11111111-1"),
                ("Agro S.A.", "30-11111111-1"),
                ("Acopio SRL", "30-22222222-2"),
            ]
        )

        assert set(resolved) == {"30-11111111-1", "30-22222222-2"}
        assert resolved["30-11111111-1"].name == "Agro SA"
        assert len(list(repos.entities.list_all())) == 2

    def test_reuses_existing_rows(self, entity_resolver, repos):
        existing = entity_resolver.resolve("Agro SA", "30-11111111-1")

        resolved = entity_resolver.resolve_many([("Agro SA", "30-11111111-1")])

        assert resolved["30-11111111-1"].id == existing.id

    def test_empty_input(self, entity_resolver):
        assert entity_resolver.resolve_many([]) == {}
