"""Tests for PostgreSQL repository implementations."""

import os
from datetime import date
from decimal import Decimal

import pytest

# Check for PostgreSQL availability
POSTGRES_URL = os.environ.get("POSTGRES_URL")
SKIP_POSTGRES = POSTGRES_URL is None

pytestmark = [
    pytest.mark.postgres,
    pytest.mark.skipif(
        SKIP_POSTGRES, reason="PostgreSQL not available (POSTGRES_URL env var not set)"
    ),
]

if not SKIP_POSTGRES:
    from sisgeagro.container import build_bulk_importer, build_movement_service
    from sisgeagro.domain.entities import Category, Entity, Subcategory, TaxDefinition
    from sisgeagro.domain.movements import Bill, TaxSelection
    from sisgeagro.exceptions import (
        DatabaseError,
        DuplicateBillNumberError,
        MovementNotFoundError,
    )
    from sisgeagro.repositories.postgres import (
        PostgresDatabase,
        create_postgres_repositories,
    )

TABLES = (
    "notifications",
    "notification_settings",
    "profiles",
    "movement_taxes",
    "movements",
    "operations",
    "bills",
    "payments",
    "taxes",
    "subcategories",
    "categories",
    "entities",
)


@pytest.fixture
def pg_db() -> "PostgresDatabase":
    """Create a PostgreSQL database for testing."""
    assert POSTGRES_URL is not None
    database = PostgresDatabase(POSTGRES_URL)
    database.initialize()
    # Clean up tables before test
    conn = database.get_connection()
    with conn.cursor() as cur:
        for table in TABLES:
            cur.execute(f"DELETE FROM {table}")
    conn.commit()
    yield database
    database.close()


@pytest.fixture
def pg_repos(pg_db):
    return create_postgres_repositories(pg_db)


@pytest.fixture
def pg_movement_service(pg_repos, email_sender, settings):
    return build_movement_service(pg_repos, email_sender, settings)


class TestPostgresDatabase:
    def test_failed_read_does_not_poison_connection(self, pg_db, pg_repos) -> None:
        with pytest.raises(DatabaseError):
            pg_db.fetchone("SELECT * FROM no_such_table")

        assert pg_db.fetchone("SELECT 1 AS one")["one"] == 1
        assert list(pg_repos.entities.list_all()) == []


class TestPostgresEntityRepository:
    def test_upsert_renames_by_fiscal_id(self, pg_repos) -> None:
        first = pg_repos.entities.upsert_by_fiscal_id(Entity(name="Agro SA", fiscal_id="30-1"))

        second = pg_repos.entities.upsert_by_fiscal_id(
            Entity(name="Agro S.A.", fiscal_id="30-1")
        )

        assert second.id == first.id
        assert second.name == "Agro S.A."

    def test_upsert_many(self, pg_repos) -> None:
        stored = pg_repos.entities.upsert_many_by_fiscal_id(
            [Entity(name="Agro SA", fiscal_id="30-1"), Entity(name="Acopio", fiscal_id="30-2")]
        )

        assert {e.fiscal_id for e in stored} == {"30-1", "30-2"}


class TestPostgresTaxonomy:
    def test_subcategory_lookup_is_scoped_and_case_insensitive(self, pg_repos) -> None:
        category = Category(description="Insumos")
        pg_repos.categories.add(category)
        pg_repos.subcategories.add(Subcategory(description="Semillas", category_id=category.id))

        assert pg_repos.categories.find_by_description("insumos").id == category.id
        assert pg_repos.subcategories.find_by_description("semillas", category.id) is not None


class TestPostgresBills:
    def test_duplicate_bill_number(self, pg_repos) -> None:
        pg_repos.bills.add(Bill("A-1", date(2024, 3, 1), Decimal("10"), None))

        with pytest.raises(DuplicateBillNumberError):
            pg_repos.bills.add(Bill("A-1", date(2024, 3, 2), Decimal("10"), None))


class TestPostgresMovementLifecycle:
    def test_create_edit_delete(self, pg_movement_service, pg_repos, make_draft) -> None:
        tax = TaxDefinition(name="IVA", percentage=Decimal("21"))
        pg_repos.taxes.add(tax)

        created = pg_movement_service.create(
            make_draft(selected_taxes=[TaxSelection(tax_id=tax.id)])
        )
        edited = pg_movement_service.edit(created.id, {"amount": "2000"})
        pg_movement_service.delete(created.id)

        assert created.taxes[0].calculated_amount == Decimal("210")
        assert edited.amount == Decimal("2000")
        with pytest.raises(MovementNotFoundError):
            pg_movement_service.get(created.id)

    def test_bulk_import(self, pg_repos, settings, sample_rows) -> None:
        results = build_bulk_importer(pg_repos, settings).import_rows(sample_rows, "u")

        assert [r.success for r in results] == [True, True]
        assert len(pg_repos.movements.list_views()) == 2
