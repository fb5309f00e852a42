"""Resolution of counterparties by fiscal id."""

from collections.abc import Iterable
from uuid import UUID

from sisgeagro.domain.entities import Entity
from sisgeagro.exceptions import ConflictingEntityError, EntityNotFoundError, MissingFieldError
from sisgeagro.logging_config import get_logger
from sisgeagro.repositories.interfaces import EntityRepository

logger = get_logger(__name__)


class EntityResolver:
    """Find or create the Entity behind a (name, fiscal id) pair.

    The fiscal id is the natural key: resolving the same pair twice yields the
    same row. Store errors propagate unchanged.
    """

    def __init__(self, entity_repo: EntityRepository) -> None:
        self._entity_repo = entity_repo

    def resolve(
        self,
        name: str | None,
        fiscal_id: str | None,
        entity_id: UUID | None = None,
    ) -> Entity:
        if entity_id is not None:
            entity = self._entity_repo.get(entity_id)
            if entity is None:
                raise EntityNotFoundError(entity_id)
            return entity

        name = (name or "").strip()
        fiscal_id = (fiscal_id or "").strip()
        if not name:
            raise MissingFieldError("entityName")
        if not fiscal_id:
            raise MissingFieldError("entityCuitCuil")

        entity = self._entity_repo.upsert_by_fiscal_id(
            Entity(name=name, fiscal_id=fiscal_id)
        )
        logger.debug("entity_resolved", entity_id=str(entity.id), fiscal_id=fiscal_id)
        return entity

    def resolve_for_edit(
        self,
        name: str | None,
        fiscal_id: str | None,
        current: Entity | None,
    ) -> Entity | None:
        """Resolve the counterparty of an edited movement.

        A fiscal id match wins. Failing that, a name already registered under
        another fiscal id is rejected; otherwise a new entity is inserted.
        Without a fiscal id the current entity is kept.
        """
        fiscal_id = (fiscal_id or "").strip()
        if not fiscal_id:
            return current

        existing = self._entity_repo.get_by_fiscal_id(fiscal_id)
        if existing is not None:
            return existing

        name = (name or "").strip()
        if not name and current is not None:
            name = current.name
        if not name:
            raise MissingFieldError("entityName")

        same_name = self._entity_repo.get_by_name(name)
        if same_name is not None and same_name.fiscal_id != fiscal_id:
            logger.warning(
                "conflicting_entity_rejected",
                name=name,
                existing_fiscal_id=same_name.fiscal_id,
                fiscal_id=fiscal_id,
            )
            raise ConflictingEntityError(name, same_name.fiscal_id, fiscal_id)

        entity = Entity(name=name, fiscal_id=fiscal_id)
        self._entity_repo.add(entity)
        logger.info("entity_created", entity_id=str(entity.id), fiscal_id=fiscal_id)
        return entity

    def resolve_many(self, pairs: Iterable[tuple[str, str]]) -> dict[str, Entity]:
        """Upsert distinct (name, fiscal id) pairs in one batch, keyed by fiscal id.

        When a fiscal id appears with several names, the first one is kept.
        """
        distinct: dict[str, Entity] = {}
        for name, fiscal_id in pairs:
            fiscal_id = fiscal_id.strip()
            if fiscal_id and fiscal_id not in distinct:
                distinct[fiscal_id] = Entity(name=name.strip(), fiscal_id=fiscal_id)
        if not distinct:
            return {}

        stored = self._entity_repo.upsert_many_by_fiscal_id(list(distinct.values()))
        return {entity.fiscal_id: entity for entity in stored}
