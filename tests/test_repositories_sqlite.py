"""Tests for SQLite repository implementations."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from sisgeagro.domain.entities import Category, Entity, Subcategory, TaxDefinition
from sisgeagro.domain.movements import Bill, MovementTaxLine, PaymentMethod
from sisgeagro.domain.notifications import NotificationSettings
from sisgeagro.exceptions import DuplicateBillNumberError, IntegrityError
from sisgeagro.repositories.sqlite import SQLiteDatabase


class TestSQLiteDatabase:
    def test_initialize_is_idempotent(self, db: SQLiteDatabase) -> None:
        db.initialize()

        tables = {
            row[0]
            for row in db.get_connection().execute(
                "SELECT name FROM sqlite_master WHERE type = 'table'"
            )
        }
        assert {"entities", "bills", "movements", "movement_taxes", "notifications"} <= tables

    def test_failed_write_is_rolled_back(self, db: SQLiteDatabase, count_rows) -> None:
        with pytest.raises(IntegrityError):
            with db.transaction() as conn:
                conn.execute(
                    "INSERT INTO payments (id, payment_type) VALUES (?, ?)", ("p1", "Efectivo")
                )
                conn.execute(
                    "INSERT INTO payments (id, payment_type) VALUES (?, ?)", ("p1", "Efectivo")
                )

        assert count_rows("payments") == 0


class TestEntityRepository:
    def test_upsert_renames_by_fiscal_id(self, repos) -> None:
        first = repos.entities.upsert_by_fiscal_id(Entity(name="Agro SA", fiscal_id="30-1"))

        second = repos.entities.upsert_by_fiscal_id(Entity(name="Agro S.A.", fiscal_id="30-1"))

        assert second.id == first.id
        assert second.name == "Agro S.A."

    def test_duplicate_fiscal_id_on_add(self, repos) -> None:
        repos.entities.add(Entity(name="Agro SA", fiscal_id="30-1"))

        with pytest.raises(IntegrityError):
            repos.entities.add(Entity(name="Otro", fiscal_id="30-1"))

    def test_get_by_name(self, repos) -> None:
        entity = Entity(name="Agro SA", fiscal_id="30-1")
        repos.entities.add(entity)

        assert repos.entities.get_by_name("Agro SA").id == entity.id
        assert repos.entities.get_by_name("agro sa") is None


class TestTaxonomyRepositories:
    def test_find_category_ignores_case(self, repos) -> None:
        category = Category(description="Insumos")
        repos.categories.add(category)

        assert repos.categories.find_by_description("insumos").id == category.id

    def test_subcategory_lookup_is_scoped_to_category(self, repos) -> None:
        first, second = Category(description="Gastos"), Category(description="Ventas")
        repos.categories.add_many([first, second])
        repos.subcategories.add(Subcategory(description="Varios", category_id=first.id))

        assert repos.subcategories.find_by_description("VARIOS", first.id) is not None
        assert repos.subcategories.find_by_description("VARIOS", second.id) is None

    def test_subcategory_requires_existing_category(self, repos) -> None:
        with pytest.raises(IntegrityError):
            repos.subcategories.add(Subcategory(description="Varios", category_id=uuid4()))


class TestTaxRepository:
    def test_percentage_keeps_digits(self, repos) -> None:
        tax = TaxDefinition(name="IIBB", percentage=Decimal("3.50"))
        repos.taxes.add(tax)

        assert str(repos.taxes.get(tax.id).percentage) == "3.50"

    def test_percentage_may_be_absent(self, repos) -> None:
        tax = TaxDefinition(name="Sellos")
        repos.taxes.add(tax)

        assert repos.taxes.get(tax.id).percentage is None

    def test_list_by_names(self, repos, iva) -> None:
        repos.taxes.add(TaxDefinition(name="IIBB", percentage=Decimal("3")))

        assert [t.id for t in repos.taxes.list_by_names(["IVA"])] == [iva.id]
        assert repos.taxes.list_by_names([]) == []


class TestBillRepository:
    def test_bill_number_is_unique(self, repos) -> None:
        repos.bills.add(Bill("A-1", date(2024, 3, 1), Decimal("10"), None))

        with pytest.raises(DuplicateBillNumberError):
            repos.bills.add(Bill("A-1", date(2024, 3, 2), Decimal("20"), None))

    def test_batch_is_all_or_nothing(self, repos, count_rows) -> None:
        bills = [
            Bill("A-1", date(2024, 3, 1), Decimal("10"), None),
            Bill("A-2", date(2024, 3, 1), Decimal("10"), None),
            Bill("A-1", date(2024, 3, 1), Decimal("10"), None),
        ]

        with pytest.raises(DuplicateBillNumberError):
            repos.bills.add_many(bills)

        assert count_rows("bills") == 0

    def test_update(self, repos) -> None:
        bill = Bill("A-1", date(2024, 3, 1), Decimal("10"), None)
        repos.bills.add(bill)
        bill.amount = Decimal("12.75")

        repos.bills.update(bill)

        assert repos.bills.get(bill.id).amount == Decimal("12.75")


class TestPaymentRepository:
    def test_update_and_delete(self, repos) -> None:
        payment = PaymentMethod(payment_type="Efectivo")
        repos.payments.add(payment)
        payment.payment_type = "Cheque"

        repos.payments.update(payment)
        assert repos.payments.get(payment.id).payment_type == "Cheque"

        repos.payments.delete(payment.id)
        assert repos.payments.get(payment.id) is None


class TestMovementRepository:
    def test_delete_reports_whether_a_row_went(
        self, movement_service, make_draft, repos
    ) -> None:
        view = movement_service.create(make_draft())
        repos.movement_taxes.delete_by_movement(view.id)

        assert repos.movements.delete(view.id) is True
        assert repos.movements.delete(view.id) is False

    def test_view_carries_tax_lines(self, movement_service, make_draft, repos, iva) -> None:
        view = movement_service.create(make_draft())
        repos.movement_taxes.add_many(
            [MovementTaxLine(movement_id=view.id, tax_id=iva.id, calculated_amount=None)]
        )

        reloaded = repos.movements.get_view(view.id)

        assert [(t.tax_name, t.percentage) for t in reloaded.taxes] == [("IVA", Decimal("21"))]
        assert reloaded.taxes_total == Decimal("0")

    def test_list_views_newest_first(self, movement_service, make_draft, repos) -> None:
        first = movement_service.create(make_draft())
        second = movement_service.create(make_draft(bill_number="A-0002"))

        assert [v.id for v in repos.movements.list_views()] == [second.id, first.id]


class TestNotificationSettingsRepository:
    def test_upsert_replaces(self, repos) -> None:
        repos.notification_settings.upsert(NotificationSettings(user_id="u"))
        repos.notification_settings.upsert(
            NotificationSettings(user_id="u", email_notifications=False)
        )

        assert repos.notification_settings.get("u").email_notifications is False
        assert repos.notification_settings.list_email_enabled() == []
