"""PostgreSQL implementations of repository interfaces."""

from __future__ import annotations

import contextlib
from collections import defaultdict
from collections.abc import Iterable, Iterator, Sequence
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

import psycopg2
import psycopg2.extras

from sisgeagro.domain.entities import Category, Entity, Subcategory, TaxDefinition
from sisgeagro.domain.movements import (
    Bill,
    Movement,
    MovementFilter,
    MovementTaxLine,
    MovementView,
    Operation,
    PaymentMethod,
    TaxLineView,
)
from sisgeagro.domain.notifications import Notification, NotificationSettings, Profile
from sisgeagro.domain.value_objects import MovementType
from sisgeagro.exceptions import DatabaseError, integrity_error_from_driver
from sisgeagro.repositories.interfaces import (
    BillRepository,
    CategoryRepository,
    EntityRepository,
    MovementRepository,
    MovementTaxRepository,
    NotificationRepository,
    NotificationSettingsRepository,
    OperationRepository,
    PaymentRepository,
    ProfileRepository,
    Repositories,
    SubcategoryRepository,
    TaxRepository,
)
from sisgeagro.repositories.queries import (
    MOVEMENT_VIEW_SELECT,
    TAX_LINE_VIEW_SELECT,
    movement_filter_clause,
    optional_decimal,
    optional_uuid,
    row_to_movement_view,
    row_to_tax_line_view,
)


class PostgresDatabase:
    """PostgreSQL database connection manager."""

    def __init__(self, connection_string: str) -> None:
        self._connection_string = connection_string
        self._connection: psycopg2.extensions.connection | None = None

    def get_connection(self) -> psycopg2.extensions.connection:
        """Get or create the database connection."""
        if self._connection is None or self._connection.closed:
            self._connection = psycopg2.connect(
                self._connection_string,
                cursor_factory=psycopg2.extras.RealDictCursor,
            )
        return self._connection

    @contextlib.contextmanager
    def transaction(self) -> Iterator[Any]:
        """Yield a cursor for one write, committing on success.

        On failure the transaction is rolled back and the driver error is
        re-raised as a DatabaseError (or an IntegrityError subclass).
        """
        conn = self.get_connection()
        try:
            with conn.cursor() as cur:
                yield cur
        except psycopg2.IntegrityError as e:
            conn.rollback()
            raise integrity_error_from_driver(str(e)) from e
        except psycopg2.Error as e:
            conn.rollback()
            raise DatabaseError(str(e)) from e
        except Exception:
            conn.rollback()
            raise
        conn.commit()

    def fetchone(self, query: str, params: Sequence[Any] = ()) -> Any:
        # A failed read rolls back like a failed write.
        with self.transaction() as cur:
            cur.execute(query, params)
            return cur.fetchone()

    def fetchall(self, query: str, params: Sequence[Any] = ()) -> list[Any]:
        with self.transaction() as cur:
            cur.execute(query, params)
            return cur.fetchall()

    def initialize(self) -> None:
        """Create all database tables."""
        with self.transaction() as cur:
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS entities (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    fiscal_id TEXT NOT NULL UNIQUE,
                    created_at TEXT NOT NULL
                );
                CREATE INDEX IF NOT EXISTS idx_entities_name ON entities(name);

                CREATE TABLE IF NOT EXISTS categories (
                    id TEXT PRIMARY KEY,
                    description TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS subcategories (
                    id TEXT PRIMARY KEY,
                    description TEXT NOT NULL,
                    category_id TEXT NOT NULL REFERENCES categories(id)
                );
                CREATE INDEX IF NOT EXISTS idx_subcategories_category ON subcategories(category_id);

                CREATE TABLE IF NOT EXISTS taxes (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    percentage TEXT
                );

                CREATE TABLE IF NOT EXISTS payments (
                    id TEXT PRIMARY KEY,
                    payment_type TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS bills (
                    id TEXT PRIMARY KEY,
                    bill_number TEXT NOT NULL UNIQUE,
                    bill_date TEXT NOT NULL,
                    amount TEXT NOT NULL,
                    entity_id TEXT REFERENCES entities(id)
                );

                CREATE TABLE IF NOT EXISTS operations (
                    id TEXT PRIMARY KEY,
                    payment_id TEXT NOT NULL REFERENCES payments(id),
                    bill_id TEXT NOT NULL REFERENCES bills(id)
                );

                CREATE TABLE IF NOT EXISTS movements (
                    id TEXT PRIMARY KEY,
                    description TEXT NOT NULL,
                    movement_type TEXT NOT NULL,
                    operation_id TEXT NOT NULL REFERENCES operations(id),
                    subcategory_id TEXT NOT NULL REFERENCES subcategories(id),
                    created_by TEXT NOT NULL,
                    verified BOOLEAN NOT NULL DEFAULT FALSE,
                    is_tax_payment BOOLEAN NOT NULL DEFAULT FALSE,
                    related_tax_id TEXT REFERENCES taxes(id),
                    created_at TEXT NOT NULL
                );
                CREATE INDEX IF NOT EXISTS idx_movements_type ON movements(movement_type);
                CREATE INDEX IF NOT EXISTS idx_movements_created_at ON movements(created_at);

                CREATE TABLE IF NOT EXISTS movement_taxes (
                    id TEXT PRIMARY KEY,
                    movement_id TEXT NOT NULL REFERENCES movements(id),
                    tax_id TEXT NOT NULL REFERENCES taxes(id),
                    calculated_amount TEXT
                );
                CREATE INDEX IF NOT EXISTS idx_movement_taxes_movement ON movement_taxes(movement_id);

                CREATE TABLE IF NOT EXISTS profiles (
                    id TEXT PRIMARY KEY,
                    email TEXT NOT NULL,
                    username TEXT
                );

                CREATE TABLE IF NOT EXISTS notification_settings (
                    user_id TEXT PRIMARY KEY,
                    email_notifications BOOLEAN NOT NULL DEFAULT TRUE,
                    app_notifications BOOLEAN NOT NULL DEFAULT TRUE,
                    expense_threshold TEXT,
                    updated_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS notifications (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    type TEXT NOT NULL,
                    title TEXT NOT NULL,
                    body TEXT NOT NULL,
                    link TEXT,
                    read BOOLEAN NOT NULL DEFAULT FALSE,
                    created_at TEXT NOT NULL
                );
                CREATE INDEX IF NOT EXISTS idx_notifications_user ON notifications(user_id);
                """
            )

    def close(self) -> None:
        """Close the database connection."""
        if self._connection is not None:
            self._connection.close()
            self._connection = None


class PostgresEntityRepository(EntityRepository):
    """PostgreSQL implementation of EntityRepository."""

    _UPSERT = """
        INSERT INTO entities (id, name, fiscal_id, created_at)
        VALUES (%s, %s, %s, %s)
        ON CONFLICT (fiscal_id) DO UPDATE SET name = EXCLUDED.name
    """

    def __init__(self, database: PostgresDatabase) -> None:
        self._db = database

    def add(self, entity: Entity) -> None:
        with self._db.transaction() as cur:
            cur.execute(
                "INSERT INTO entities (id, name, fiscal_id, created_at) VALUES (%s, %s, %s, %s)",
                self._params(entity),
            )

    def get(self, entity_id: UUID) -> Entity | None:
        row = self._db.fetchone("SELECT * FROM entities WHERE id = %s", (str(entity_id),))
        if row is None:
            return None
        return self._row_to_entity(row)

    def get_by_fiscal_id(self, fiscal_id: str) -> Entity | None:
        row = self._db.fetchone(
            "SELECT * FROM entities WHERE fiscal_id = %s", (fiscal_id,)
        )
        if row is None:
            return None
        return self._row_to_entity(row)

    def get_by_name(self, name: str) -> Entity | None:
        row = self._db.fetchone(
            "SELECT * FROM entities WHERE name = %s ORDER BY created_at LIMIT 1", (name,)
        )
        if row is None:
            return None
        return self._row_to_entity(row)

    def upsert_by_fiscal_id(self, entity: Entity) -> Entity:
        with self._db.transaction() as cur:
            cur.execute(self._UPSERT + " RETURNING *", self._params(entity))
            row = cur.fetchone()
        return self._row_to_entity(row)

    def upsert_many_by_fiscal_id(self, entities: Sequence[Entity]) -> list[Entity]:
        if not entities:
            return []
        with self._db.transaction() as cur:
            cur.executemany(self._UPSERT, [self._params(e) for e in entities])
        rows = self._db.fetchall(
            "SELECT * FROM entities WHERE fiscal_id = ANY(%s)",
            ([e.fiscal_id for e in entities],),
        )
        return [self._row_to_entity(row) for row in rows]

    def list_all(self) -> Iterable[Entity]:
        rows = self._db.fetchall("SELECT * FROM entities ORDER BY name")
        return [self._row_to_entity(row) for row in rows]

    def _params(self, entity: Entity) -> tuple:
        return (
            str(entity.id),
            entity.name,
            entity.fiscal_id,
            entity.created_at.isoformat(),
        )

    def _row_to_entity(self, row: Any) -> Entity:
        return Entity(
            name=row["name"],
            fiscal_id=row["fiscal_id"],
            id=UUID(row["id"]),
            created_at=datetime.fromisoformat(row["created_at"]),
        )


class PostgresCategoryRepository(CategoryRepository):
    """PostgreSQL implementation of CategoryRepository."""

    def __init__(self, database: PostgresDatabase) -> None:
        self._db = database

    def add(self, category: Category) -> None:
        self.add_many([category])

    def add_many(self, categories: Sequence[Category]) -> None:
        if not categories:
            return
        with self._db.transaction() as cur:
            cur.executemany(
                "INSERT INTO categories (id, description) VALUES (%s, %s)",
                [(str(c.id), c.description) for c in categories],
            )

    def get(self, category_id: UUID) -> Category | None:
        row = self._db.fetchone(
            "SELECT * FROM categories WHERE id = %s", (str(category_id),)
        )
        if row is None:
            return None
        return self._row_to_category(row)

    def find_by_description(self, description: str) -> Category | None:
        row = self._db.fetchone(
            "SELECT * FROM categories WHERE description ILIKE %s LIMIT 1",
            (_escape_like(description.strip().upper()),),
        )
        if row is None:
            return None
        return self._row_to_category(row)

    def list_by_descriptions(self, descriptions: Sequence[str]) -> list[Category]:
        if not descriptions:
            return []
        rows = self._db.fetchall(
            "SELECT * FROM categories WHERE description = ANY(%s)", (list(descriptions),)
        )
        return [self._row_to_category(row) for row in rows]

    def list_all(self) -> Iterable[Category]:
        rows = self._db.fetchall("SELECT * FROM categories ORDER BY description")
        return [self._row_to_category(row) for row in rows]

    def _row_to_category(self, row: Any) -> Category:
        return Category(description=row["description"], id=UUID(row["id"]))


class PostgresSubcategoryRepository(SubcategoryRepository):
    """PostgreSQL implementation of SubcategoryRepository."""

    def __init__(self, database: PostgresDatabase) -> None:
        self._db = database

    def add(self, subcategory: Subcategory) -> None:
        self.add_many([subcategory])

    def add_many(self, subcategories: Sequence[Subcategory]) -> None:
        if not subcategories:
            return
        with self._db.transaction() as cur:
            cur.executemany(
                "INSERT INTO subcategories (id, description, category_id) VALUES (%s, %s, %s)",
                [(str(s.id), s.description, str(s.category_id)) for s in subcategories],
            )

    def get(self, subcategory_id: UUID) -> Subcategory | None:
        row = self._db.fetchone(
            "SELECT * FROM subcategories WHERE id = %s", (str(subcategory_id),)
        )
        if row is None:
            return None
        return self._row_to_subcategory(row)

    def find_by_description(
        self, description: str, category_id: UUID
    ) -> Subcategory | None:
        row = self._db.fetchone(
            """
            SELECT * FROM subcategories
            WHERE description ILIKE %s AND category_id = %s
            LIMIT 1
            """,
            (_escape_like(description.strip().upper()), str(category_id)),
        )
        if row is None:
            return None
        return self._row_to_subcategory(row)

    def list_by_descriptions(self, descriptions: Sequence[str]) -> list[Subcategory]:
        if not descriptions:
            return []
        rows = self._db.fetchall(
            "SELECT * FROM subcategories WHERE description = ANY(%s)",
            (list(descriptions),),
        )
        return [self._row_to_subcategory(row) for row in rows]

    def list_all(self) -> Iterable[Subcategory]:
        rows = self._db.fetchall("SELECT * FROM subcategories ORDER BY description")
        return [self._row_to_subcategory(row) for row in rows]

    def _row_to_subcategory(self, row: Any) -> Subcategory:
        return Subcategory(
            description=row["description"],
            category_id=UUID(row["category_id"]),
            id=UUID(row["id"]),
        )


class PostgresTaxRepository(TaxRepository):
    """PostgreSQL implementation of TaxRepository."""

    def __init__(self, database: PostgresDatabase) -> None:
        self._db = database

    def add(self, tax: TaxDefinition) -> None:
        self.add_many([tax])

    def add_many(self, taxes: Sequence[TaxDefinition]) -> None:
        if not taxes:
            return
        with self._db.transaction() as cur:
            cur.executemany(
                "INSERT INTO taxes (id, name, percentage) VALUES (%s, %s, %s)",
                [
                    (
                        str(t.id),
                        t.name,
                        str(t.percentage) if t.percentage is not None else None,
                    )
                    for t in taxes
                ],
            )

    def get(self, tax_id: UUID) -> TaxDefinition | None:
        row = self._db.fetchone("SELECT * FROM taxes WHERE id = %s", (str(tax_id),))
        if row is None:
            return None
        return self._row_to_tax(row)

    def list_by_ids(self, tax_ids: Sequence[UUID]) -> list[TaxDefinition]:
        if not tax_ids:
            return []
        rows = self._db.fetchall(
            "SELECT * FROM taxes WHERE id = ANY(%s)",
            ([str(tax_id) for tax_id in tax_ids],),
        )
        return [self._row_to_tax(row) for row in rows]

    def list_by_names(self, names: Sequence[str]) -> list[TaxDefinition]:
        if not names:
            return []
        rows = self._db.fetchall(
            "SELECT * FROM taxes WHERE name = ANY(%s)", (list(names),)
        )
        return [self._row_to_tax(row) for row in rows]

    def list_all(self) -> Iterable[TaxDefinition]:
        rows = self._db.fetchall("SELECT * FROM taxes ORDER BY name")
        return [self._row_to_tax(row) for row in rows]

    def _row_to_tax(self, row: Any) -> TaxDefinition:
        return TaxDefinition(
            name=row["name"],
            percentage=optional_decimal(row["percentage"]),
            id=UUID(row["id"]),
        )


class PostgresPaymentRepository(PaymentRepository):
    """PostgreSQL implementation of PaymentRepository."""

    def __init__(self, database: PostgresDatabase) -> None:
        self._db = database

    def add(self, payment: PaymentMethod) -> None:
        self.add_many([payment])

    def add_many(self, payments: Sequence[PaymentMethod]) -> None:
        if not payments:
            return
        with self._db.transaction() as cur:
            cur.executemany(
                "INSERT INTO payments (id, payment_type) VALUES (%s, %s)",
                [(str(p.id), p.payment_type) for p in payments],
            )

    def get(self, payment_id: UUID) -> PaymentMethod | None:
        row = self._db.fetchone(
            "SELECT * FROM payments WHERE id = %s", (str(payment_id),)
        )
        if row is None:
            return None
        return PaymentMethod(payment_type=row["payment_type"], id=UUID(row["id"]))

    def update(self, payment: PaymentMethod) -> None:
        with self._db.transaction() as cur:
            cur.execute(
                "UPDATE payments SET payment_type = %s WHERE id = %s",
                (payment.payment_type, str(payment.id)),
            )

    def delete(self, payment_id: UUID) -> None:
        with self._db.transaction() as cur:
            cur.execute("DELETE FROM payments WHERE id = %s", (str(payment_id),))

    def list_payment_types(self) -> list[str]:
        rows = self._db.fetchall(
            "SELECT DISTINCT payment_type FROM payments ORDER BY payment_type"
        )
        return [row["payment_type"] for row in rows]


class PostgresBillRepository(BillRepository):
    """PostgreSQL implementation of BillRepository."""

    def __init__(self, database: PostgresDatabase) -> None:
        self._db = database

    def add(self, bill: Bill) -> None:
        self.add_many([bill])

    def add_many(self, bills: Sequence[Bill]) -> None:
        if not bills:
            return
        with self._db.transaction() as cur:
            cur.executemany(
                """
                INSERT INTO bills (id, bill_number, bill_date, amount, entity_id)
                VALUES (%s, %s, %s, %s, %s)
                """,
                [
                    (
                        str(b.id),
                        b.bill_number,
                        b.bill_date.isoformat(),
                        str(b.amount),
                        str(b.entity_id) if b.entity_id else None,
                    )
                    for b in bills
                ],
            )

    def get(self, bill_id: UUID) -> Bill | None:
        row = self._db.fetchone("SELECT * FROM bills WHERE id = %s", (str(bill_id),))
        if row is None:
            return None
        return Bill(
            bill_number=row["bill_number"],
            bill_date=date.fromisoformat(row["bill_date"]),
            amount=Decimal(row["amount"]),
            entity_id=optional_uuid(row["entity_id"]),
            id=UUID(row["id"]),
        )

    def update(self, bill: Bill) -> None:
        with self._db.transaction() as cur:
            cur.execute(
                """
                UPDATE bills SET
                    bill_number = %s,
                    bill_date = %s,
                    amount = %s,
                    entity_id = %s
                WHERE id = %s
                """,
                (
                    bill.bill_number,
                    bill.bill_date.isoformat(),
                    str(bill.amount),
                    str(bill.entity_id) if bill.entity_id else None,
                    str(bill.id),
                ),
            )

    def delete(self, bill_id: UUID) -> None:
        with self._db.transaction() as cur:
            cur.execute("DELETE FROM bills WHERE id = %s", (str(bill_id),))


class PostgresOperationRepository(OperationRepository):
    """PostgreSQL implementation of OperationRepository."""

    def __init__(self, database: PostgresDatabase) -> None:
        self._db = database

    def add(self, operation: Operation) -> None:
        self.add_many([operation])

    def add_many(self, operations: Sequence[Operation]) -> None:
        if not operations:
            return
        with self._db.transaction() as cur:
            cur.executemany(
                "INSERT INTO operations (id, payment_id, bill_id) VALUES (%s, %s, %s)",
                [(str(o.id), str(o.payment_id), str(o.bill_id)) for o in operations],
            )

    def get(self, operation_id: UUID) -> Operation | None:
        row = self._db.fetchone(
            "SELECT * FROM operations WHERE id = %s", (str(operation_id),)
        )
        if row is None:
            return None
        return Operation(
            payment_id=UUID(row["payment_id"]),
            bill_id=UUID(row["bill_id"]),
            id=UUID(row["id"]),
        )

    def delete(self, operation_id: UUID) -> None:
        with self._db.transaction() as cur:
            cur.execute("DELETE FROM operations WHERE id = %s", (str(operation_id),))


class PostgresMovementRepository(MovementRepository):
    """PostgreSQL implementation of MovementRepository."""

    def __init__(self, database: PostgresDatabase) -> None:
        self._db = database

    def add(self, movement: Movement) -> None:
        self.add_many([movement])

    def add_many(self, movements: Sequence[Movement]) -> None:
        if not movements:
            return
        with self._db.transaction() as cur:
            cur.executemany(
                """
                INSERT INTO movements (id, description, movement_type, operation_id, subcategory_id,
                                       created_by, verified, is_tax_payment, related_tax_id, created_at)
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                """,
                [
                    (
                        str(m.id),
                        m.description,
                        m.movement_type.value,
                        str(m.operation_id),
                        str(m.subcategory_id),
                        m.created_by,
                        m.verified,
                        m.is_tax_payment,
                        str(m.related_tax_id) if m.related_tax_id else None,
                        m.created_at.isoformat(),
                    )
                    for m in movements
                ],
            )

    def get(self, movement_id: UUID) -> Movement | None:
        row = self._db.fetchone(
            "SELECT * FROM movements WHERE id = %s", (str(movement_id),)
        )
        if row is None:
            return None
        return Movement(
            description=row["description"],
            movement_type=MovementType(row["movement_type"]),
            operation_id=UUID(row["operation_id"]),
            subcategory_id=UUID(row["subcategory_id"]),
            created_by=row["created_by"],
            verified=row["verified"],
            is_tax_payment=row["is_tax_payment"],
            related_tax_id=optional_uuid(row["related_tax_id"]),
            id=UUID(row["id"]),
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    def update(self, movement: Movement) -> None:
        with self._db.transaction() as cur:
            cur.execute(
                """
                UPDATE movements SET
                    description = %s,
                    movement_type = %s,
                    subcategory_id = %s,
                    verified = %s,
                    is_tax_payment = %s,
                    related_tax_id = %s
                WHERE id = %s
                """,
                (
                    movement.description,
                    movement.movement_type.value,
                    str(movement.subcategory_id),
                    movement.verified,
                    movement.is_tax_payment,
                    str(movement.related_tax_id) if movement.related_tax_id else None,
                    str(movement.id),
                ),
            )

    def delete(self, movement_id: UUID) -> bool:
        with self._db.transaction() as cur:
            cur.execute("DELETE FROM movements WHERE id = %s", (str(movement_id),))
            deleted = cur.rowcount
        return deleted > 0

    def get_view(self, movement_id: UUID) -> MovementView | None:
        row = self._db.fetchone(
            MOVEMENT_VIEW_SELECT + " WHERE m.id = %s", (str(movement_id),)
        )
        if row is None:
            return None
        taxes = self._tax_lines_for([row["id"]])
        return row_to_movement_view(row, taxes.get(row["id"]))

    def list_views(
        self, movement_filter: MovementFilter | None = None
    ) -> list[MovementView]:
        where, params = movement_filter_clause(movement_filter, placeholder="%s")
        rows = self._db.fetchall(
            MOVEMENT_VIEW_SELECT + where + " ORDER BY m.created_at DESC, m.id",
            params,
        )
        taxes = self._tax_lines_for([row["id"] for row in rows])
        return [row_to_movement_view(row, taxes.get(row["id"])) for row in rows]

    def _tax_lines_for(self, movement_ids: list[str]) -> dict[str, list[TaxLineView]]:
        grouped: dict[str, list[TaxLineView]] = defaultdict(list)
        if not movement_ids:
            return grouped
        rows = self._db.fetchall(
            TAX_LINE_VIEW_SELECT + " WHERE mt.movement_id = ANY(%s) ORDER BY t.name",
            (movement_ids,),
        )
        for row in rows:
            grouped[row["movement_id"]].append(row_to_tax_line_view(row))
        return grouped


class PostgresMovementTaxRepository(MovementTaxRepository):
    """PostgreSQL implementation of MovementTaxRepository."""

    def __init__(self, database: PostgresDatabase) -> None:
        self._db = database

    def add_many(self, lines: Sequence[MovementTaxLine]) -> None:
        if not lines:
            return
        with self._db.transaction() as cur:
            cur.executemany(
                """
                INSERT INTO movement_taxes (id, movement_id, tax_id, calculated_amount)
                VALUES (%s, %s, %s, %s)
                """,
                [
                    (
                        str(line.id),
                        str(line.movement_id),
                        str(line.tax_id),
                        str(line.calculated_amount)
                        if line.calculated_amount is not None
                        else None,
                    )
                    for line in lines
                ],
            )

    def list_by_movement(self, movement_id: UUID) -> list[MovementTaxLine]:
        rows = self._db.fetchall(
            "SELECT * FROM movement_taxes WHERE movement_id = %s", (str(movement_id),)
        )
        return [
            MovementTaxLine(
                movement_id=UUID(row["movement_id"]),
                tax_id=UUID(row["tax_id"]),
                calculated_amount=optional_decimal(row["calculated_amount"]),
                id=UUID(row["id"]),
            )
            for row in rows
        ]

    def delete_by_movement(self, movement_id: UUID) -> None:
        with self._db.transaction() as cur:
            cur.execute(
                "DELETE FROM movement_taxes WHERE movement_id = %s", (str(movement_id),)
            )


class PostgresProfileRepository(ProfileRepository):
    """PostgreSQL implementation of ProfileRepository."""

    def __init__(self, database: PostgresDatabase) -> None:
        self._db = database

    def upsert(self, profile: Profile) -> None:
        with self._db.transaction() as cur:
            cur.execute(
                """
                INSERT INTO profiles (id, email, username) VALUES (%s, %s, %s)
                ON CONFLICT (id) DO UPDATE SET
                    email = EXCLUDED.email,
                    username = EXCLUDED.username
                """,
                (profile.id, profile.email, profile.username),
            )

    def get(self, user_id: str) -> Profile | None:
        row = self._db.fetchone("SELECT * FROM profiles WHERE id = %s", (user_id,))
        if row is None:
            return None
        return Profile(id=row["id"], email=row["email"], username=row["username"])


class PostgresNotificationSettingsRepository(NotificationSettingsRepository):
    """PostgreSQL implementation of NotificationSettingsRepository."""

    def __init__(self, database: PostgresDatabase) -> None:
        self._db = database

    def upsert(self, settings: NotificationSettings) -> None:
        with self._db.transaction() as cur:
            cur.execute(
                """
                INSERT INTO notification_settings
                    (user_id, email_notifications, app_notifications, expense_threshold, updated_at)
                VALUES (%s, %s, %s, %s, %s)
                ON CONFLICT (user_id) DO UPDATE SET
                    email_notifications = EXCLUDED.email_notifications,
                    app_notifications = EXCLUDED.app_notifications,
                    expense_threshold = EXCLUDED.expense_threshold,
                    updated_at = EXCLUDED.updated_at
                """,
                (
                    settings.user_id,
                    settings.email_notifications,
                    settings.app_notifications,
                    str(settings.expense_threshold)
                    if settings.expense_threshold is not None
                    else None,
                    settings.updated_at.isoformat(),
                ),
            )

    def get(self, user_id: str) -> NotificationSettings | None:
        row = self._db.fetchone(
            "SELECT * FROM notification_settings WHERE user_id = %s", (user_id,)
        )
        if row is None:
            return None
        return self._row_to_settings(row)

    def list_email_enabled(self) -> list[NotificationSettings]:
        rows = self._db.fetchall(
            "SELECT * FROM notification_settings WHERE email_notifications = TRUE"
        )
        return [self._row_to_settings(row) for row in rows]

    def _row_to_settings(self, row: Any) -> NotificationSettings:
        return NotificationSettings(
            user_id=row["user_id"],
            email_notifications=row["email_notifications"],
            app_notifications=row["app_notifications"],
            expense_threshold=optional_decimal(row["expense_threshold"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )


class PostgresNotificationRepository(NotificationRepository):
    """PostgreSQL implementation of NotificationRepository."""

    def __init__(self, database: PostgresDatabase) -> None:
        self._db = database

    def add(self, notification: Notification) -> None:
        with self._db.transaction() as cur:
            cur.execute(
                """
                INSERT INTO notifications (id, user_id, type, title, body, link, read, created_at)
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
                """,
                (
                    str(notification.id),
                    notification.user_id,
                    notification.type,
                    notification.title,
                    notification.body,
                    notification.link,
                    notification.read,
                    notification.created_at.isoformat(),
                ),
            )

    def list_by_user(self, user_id: str) -> list[Notification]:
        rows = self._db.fetchall(
            "SELECT * FROM notifications WHERE user_id = %s ORDER BY created_at DESC",
            (user_id,),
        )
        return [
            Notification(
                user_id=row["user_id"],
                type=row["type"],
                title=row["title"],
                body=row["body"],
                link=row["link"],
                read=row["read"],
                id=UUID(row["id"]),
                created_at=datetime.fromisoformat(row["created_at"]),
            )
            for row in rows
        ]


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def create_postgres_repositories(database: PostgresDatabase) -> Repositories:
    return Repositories(
        entities=PostgresEntityRepository(database),
        categories=PostgresCategoryRepository(database),
        subcategories=PostgresSubcategoryRepository(database),
        taxes=PostgresTaxRepository(database),
        payments=PostgresPaymentRepository(database),
        bills=PostgresBillRepository(database),
        operations=PostgresOperationRepository(database),
        movements=PostgresMovementRepository(database),
        movement_taxes=PostgresMovementTaxRepository(database),
        profiles=PostgresProfileRepository(database),
        notification_settings=PostgresNotificationSettingsRepository(database),
        notifications=PostgresNotificationRepository(database),
    )
