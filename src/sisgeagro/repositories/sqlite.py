"""SQLite implementations of repository interfaces."""

from __future__ import annotations

import contextlib
import sqlite3
from collections import defaultdict
from collections.abc import Iterable, Iterator, Sequence
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from uuid import UUID

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
    placeholders,
    row_to_movement_view,
    row_to_tax_line_view,
)


class SQLiteDatabase:
    """SQLite database connection manager."""

    def __init__(
        self, path: str | Path = ":memory:", check_same_thread: bool = True
    ) -> None:
        self._path = str(path)
        self._check_same_thread = check_same_thread
        self._connection: sqlite3.Connection | None = None

    @property
    def path(self) -> str:
        return self._path

    def get_connection(self) -> sqlite3.Connection:
        """Get or create the database connection."""
        if self._connection is None:
            self._connection = sqlite3.connect(
                self._path, check_same_thread=self._check_same_thread
            )
            self._connection.row_factory = sqlite3.Row
            # Enable foreign keys
            self._connection.execute("PRAGMA foreign_keys = ON")
        return self._connection

    @contextlib.contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run one write, committing on success.

        On failure the statement is rolled back and the driver error is
        re-raised as a DatabaseError (or an IntegrityError subclass).
        """
        conn = self.get_connection()
        try:
            yield conn
        except sqlite3.IntegrityError as e:
            conn.rollback()
            raise integrity_error_from_driver(str(e)) from e
        except sqlite3.Error as e:
            conn.rollback()
            raise DatabaseError(str(e)) from e
        except Exception:
            conn.rollback()
            raise
        conn.commit()

    def initialize(self) -> None:
        """Create all database tables."""
        conn = self.get_connection()
        conn.executescript(
            """
            -- Counterparties
            CREATE TABLE IF NOT EXISTS entities (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                fiscal_id TEXT NOT NULL UNIQUE,
                created_at TEXT NOT NULL
            );
            CREATE INDEX IF NOT EXISTS idx_entities_name ON entities(name);

            -- Taxonomy. No unique constraint on descriptions.
            CREATE TABLE IF NOT EXISTS categories (
                id TEXT PRIMARY KEY,
                description TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS subcategories (
                id TEXT PRIMARY KEY,
                description TEXT NOT NULL,
                category_id TEXT NOT NULL,
                FOREIGN KEY (category_id) REFERENCES categories(id)
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
                entity_id TEXT,
                FOREIGN KEY (entity_id) REFERENCES entities(id)
            );

            CREATE TABLE IF NOT EXISTS operations (
                id TEXT PRIMARY KEY,
                payment_id TEXT NOT NULL,
                bill_id TEXT NOT NULL,
                FOREIGN KEY (payment_id) REFERENCES payments(id),
                FOREIGN KEY (bill_id) REFERENCES bills(id)
            );

            CREATE TABLE IF NOT EXISTS movements (
                id TEXT PRIMARY KEY,
                description TEXT NOT NULL,
                movement_type TEXT NOT NULL,
                operation_id TEXT NOT NULL,
                subcategory_id TEXT NOT NULL,
                created_by TEXT NOT NULL,
                verified INTEGER NOT NULL DEFAULT 0,
                is_tax_payment INTEGER NOT NULL DEFAULT 0,
                related_tax_id TEXT,
                created_at TEXT NOT NULL,
                FOREIGN KEY (operation_id) REFERENCES operations(id),
                FOREIGN KEY (subcategory_id) REFERENCES subcategories(id),
                FOREIGN KEY (related_tax_id) REFERENCES taxes(id)
            );
            CREATE INDEX IF NOT EXISTS idx_movements_type ON movements(movement_type);
            CREATE INDEX IF NOT EXISTS idx_movements_created_at ON movements(created_at);

            CREATE TABLE IF NOT EXISTS movement_taxes (
                id TEXT PRIMARY KEY,
                movement_id TEXT NOT NULL,
                tax_id TEXT NOT NULL,
                calculated_amount TEXT,
                FOREIGN KEY (movement_id) REFERENCES movements(id),
                FOREIGN KEY (tax_id) REFERENCES taxes(id)
            );
            CREATE INDEX IF NOT EXISTS idx_movement_taxes_movement ON movement_taxes(movement_id);

            -- Notification recipients
            CREATE TABLE IF NOT EXISTS profiles (
                id TEXT PRIMARY KEY,
                email TEXT NOT NULL,
                username TEXT
            );

            CREATE TABLE IF NOT EXISTS notification_settings (
                user_id TEXT PRIMARY KEY,
                email_notifications INTEGER NOT NULL DEFAULT 1,
                app_notifications INTEGER NOT NULL DEFAULT 1,
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
                read INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL
            );
            CREATE INDEX IF NOT EXISTS idx_notifications_user ON notifications(user_id);
            """
        )
        conn.commit()

    def close(self) -> None:
        """Close the database connection."""
        if self._connection is not None:
            self._connection.close()
            self._connection = None


class SQLiteEntityRepository(EntityRepository):
    """SQLite implementation of EntityRepository."""

    _UPSERT = """
        INSERT INTO entities (id, name, fiscal_id, created_at)
        VALUES (?, ?, ?, ?)
        ON CONFLICT(fiscal_id) DO UPDATE SET name = excluded.name
    """

    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    def add(self, entity: Entity) -> None:
        with self._db.transaction() as conn:
            conn.execute(
                "INSERT INTO entities (id, name, fiscal_id, created_at) VALUES (?, ?, ?, ?)",
                self._params(entity),
            )

    def get(self, entity_id: UUID) -> Entity | None:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM entities WHERE id = ?", (str(entity_id),)
        ).fetchone()
        if row is None:
            return None
        return self._row_to_entity(row)

    def get_by_fiscal_id(self, fiscal_id: str) -> Entity | None:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM entities WHERE fiscal_id = ?", (fiscal_id,)
        ).fetchone()
        if row is None:
            return None
        return self._row_to_entity(row)

    def get_by_name(self, name: str) -> Entity | None:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM entities WHERE name = ? ORDER BY created_at LIMIT 1",
            (name,),
        ).fetchone()
        if row is None:
            return None
        return self._row_to_entity(row)

    def upsert_by_fiscal_id(self, entity: Entity) -> Entity:
        with self._db.transaction() as conn:
            conn.execute(self._UPSERT, self._params(entity))
        stored = self.get_by_fiscal_id(entity.fiscal_id)
        if stored is None:
            raise DatabaseError(f"Entity with fiscal id {entity.fiscal_id} vanished after upsert")
        return stored

    def upsert_many_by_fiscal_id(self, entities: Sequence[Entity]) -> list[Entity]:
        if not entities:
            return []
        with self._db.transaction() as conn:
            conn.executemany(self._UPSERT, [self._params(e) for e in entities])
        fiscal_ids = [e.fiscal_id for e in entities]
        conn = self._db.get_connection()
        rows = conn.execute(
            f"SELECT * FROM entities WHERE fiscal_id IN ({placeholders(len(fiscal_ids))})",
            fiscal_ids,
        ).fetchall()
        return [self._row_to_entity(row) for row in rows]

    def list_all(self) -> Iterable[Entity]:
        conn = self._db.get_connection()
        rows = conn.execute("SELECT * FROM entities ORDER BY name").fetchall()
        return [self._row_to_entity(row) for row in rows]

    def _params(self, entity: Entity) -> tuple:
        return (
            str(entity.id),
            entity.name,
            entity.fiscal_id,
            entity.created_at.isoformat(),
        )

    def _row_to_entity(self, row: sqlite3.Row) -> Entity:
        return Entity(
            name=row["name"],
            fiscal_id=row["fiscal_id"],
            id=UUID(row["id"]),
            created_at=datetime.fromisoformat(row["created_at"]),
        )


class SQLiteCategoryRepository(CategoryRepository):
    """SQLite implementation of CategoryRepository."""

    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    def add(self, category: Category) -> None:
        self.add_many([category])

    def add_many(self, categories: Sequence[Category]) -> None:
        if not categories:
            return
        with self._db.transaction() as conn:
            conn.executemany(
                "INSERT INTO categories (id, description) VALUES (?, ?)",
                [(str(c.id), c.description) for c in categories],
            )

    def get(self, category_id: UUID) -> Category | None:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM categories WHERE id = ?", (str(category_id),)
        ).fetchone()
        if row is None:
            return None
        return self._row_to_category(row)

    def find_by_description(self, description: str) -> Category | None:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM categories WHERE UPPER(description) = UPPER(?) ORDER BY rowid LIMIT 1",
            (description.strip().upper(),),
        ).fetchone()
        if row is None:
            return None
        return self._row_to_category(row)

    def list_by_descriptions(self, descriptions: Sequence[str]) -> list[Category]:
        if not descriptions:
            return []
        conn = self._db.get_connection()
        rows = conn.execute(
            f"SELECT * FROM categories WHERE description IN ({placeholders(len(descriptions))}) "
            "ORDER BY rowid",
            list(descriptions),
        ).fetchall()
        return [self._row_to_category(row) for row in rows]

    def list_all(self) -> Iterable[Category]:
        conn = self._db.get_connection()
        rows = conn.execute("SELECT * FROM categories ORDER BY description").fetchall()
        return [self._row_to_category(row) for row in rows]

    def _row_to_category(self, row: sqlite3.Row) -> Category:
        return Category(description=row["description"], id=UUID(row["id"]))


class SQLiteSubcategoryRepository(SubcategoryRepository):
    """SQLite implementation of SubcategoryRepository."""

    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    def add(self, subcategory: Subcategory) -> None:
        self.add_many([subcategory])

    def add_many(self, subcategories: Sequence[Subcategory]) -> None:
        if not subcategories:
            return
        with self._db.transaction() as conn:
            conn.executemany(
                "INSERT INTO subcategories (id, description, category_id) VALUES (?, ?, ?)",
                [(str(s.id), s.description, str(s.category_id)) for s in subcategories],
            )

    def get(self, subcategory_id: UUID) -> Subcategory | None:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM subcategories WHERE id = ?", (str(subcategory_id),)
        ).fetchone()
        if row is None:
            return None
        return self._row_to_subcategory(row)

    def find_by_description(
        self, description: str, category_id: UUID
    ) -> Subcategory | None:
        conn = self._db.get_connection()
        row = conn.execute(
            """
            SELECT * FROM subcategories
            WHERE UPPER(description) = UPPER(?) AND category_id = ?
            ORDER BY rowid LIMIT 1
            """,
            (description.strip().upper(), str(category_id)),
        ).fetchone()
        if row is None:
            return None
        return self._row_to_subcategory(row)

    def list_by_descriptions(self, descriptions: Sequence[str]) -> list[Subcategory]:
        if not descriptions:
            return []
        conn = self._db.get_connection()
        rows = conn.execute(
            f"SELECT * FROM subcategories WHERE description IN ({placeholders(len(descriptions))}) "
            "ORDER BY rowid",
            list(descriptions),
        ).fetchall()
        return [self._row_to_subcategory(row) for row in rows]

    def list_all(self) -> Iterable[Subcategory]:
        conn = self._db.get_connection()
        rows = conn.execute(
            "SELECT * FROM subcategories ORDER BY description"
        ).fetchall()
        return [self._row_to_subcategory(row) for row in rows]

    def _row_to_subcategory(self, row: sqlite3.Row) -> Subcategory:
        return Subcategory(
            description=row["description"],
            category_id=UUID(row["category_id"]),
            id=UUID(row["id"]),
        )


class SQLiteTaxRepository(TaxRepository):
    """SQLite implementation of TaxRepository."""

    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    def add(self, tax: TaxDefinition) -> None:
        self.add_many([tax])

    def add_many(self, taxes: Sequence[TaxDefinition]) -> None:
        if not taxes:
            return
        with self._db.transaction() as conn:
            conn.executemany(
                "INSERT INTO taxes (id, name, percentage) VALUES (?, ?, ?)",
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
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM taxes WHERE id = ?", (str(tax_id),)
        ).fetchone()
        if row is None:
            return None
        return self._row_to_tax(row)

    def list_by_ids(self, tax_ids: Sequence[UUID]) -> list[TaxDefinition]:
        if not tax_ids:
            return []
        conn = self._db.get_connection()
        rows = conn.execute(
            f"SELECT * FROM taxes WHERE id IN ({placeholders(len(tax_ids))})",
            [str(tax_id) for tax_id in tax_ids],
        ).fetchall()
        return [self._row_to_tax(row) for row in rows]

    def list_by_names(self, names: Sequence[str]) -> list[TaxDefinition]:
        if not names:
            return []
        conn = self._db.get_connection()
        rows = conn.execute(
            f"SELECT * FROM taxes WHERE name IN ({placeholders(len(names))}) ORDER BY rowid",
            list(names),
        ).fetchall()
        return [self._row_to_tax(row) for row in rows]

    def list_all(self) -> Iterable[TaxDefinition]:
        conn = self._db.get_connection()
        rows = conn.execute("SELECT * FROM taxes ORDER BY name").fetchall()
        return [self._row_to_tax(row) for row in rows]

    def _row_to_tax(self, row: sqlite3.Row) -> TaxDefinition:
        return TaxDefinition(
            name=row["name"],
            percentage=optional_decimal(row["percentage"]),
            id=UUID(row["id"]),
        )


class SQLitePaymentRepository(PaymentRepository):
    """SQLite implementation of PaymentRepository."""

    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    def add(self, payment: PaymentMethod) -> None:
        self.add_many([payment])

    def add_many(self, payments: Sequence[PaymentMethod]) -> None:
        if not payments:
            return
        with self._db.transaction() as conn:
            conn.executemany(
                "INSERT INTO payments (id, payment_type) VALUES (?, ?)",
                [(str(p.id), p.payment_type) for p in payments],
            )

    def get(self, payment_id: UUID) -> PaymentMethod | None:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM payments WHERE id = ?", (str(payment_id),)
        ).fetchone()
        if row is None:
            return None
        return PaymentMethod(payment_type=row["payment_type"], id=UUID(row["id"]))

    def update(self, payment: PaymentMethod) -> None:
        with self._db.transaction() as conn:
            conn.execute(
                "UPDATE payments SET payment_type = ? WHERE id = ?",
                (payment.payment_type, str(payment.id)),
            )

    def delete(self, payment_id: UUID) -> None:
        with self._db.transaction() as conn:
            conn.execute("DELETE FROM payments WHERE id = ?", (str(payment_id),))

    def list_payment_types(self) -> list[str]:
        conn = self._db.get_connection()
        rows = conn.execute(
            "SELECT DISTINCT payment_type FROM payments ORDER BY payment_type"
        ).fetchall()
        return [row["payment_type"] for row in rows]


class SQLiteBillRepository(BillRepository):
    """SQLite implementation of BillRepository."""

    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    def add(self, bill: Bill) -> None:
        self.add_many([bill])

    def add_many(self, bills: Sequence[Bill]) -> None:
        if not bills:
            return
        with self._db.transaction() as conn:
            conn.executemany(
                """
                INSERT INTO bills (id, bill_number, bill_date, amount, entity_id)
                VALUES (?, ?, ?, ?, ?)
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
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM bills WHERE id = ?", (str(bill_id),)
        ).fetchone()
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
        with self._db.transaction() as conn:
            conn.execute(
                """
                UPDATE bills SET
                    bill_number = ?,
                    bill_date = ?,
                    amount = ?,
                    entity_id = ?
                WHERE id = ?
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
        with self._db.transaction() as conn:
            conn.execute("DELETE FROM bills WHERE id = ?", (str(bill_id),))


class SQLiteOperationRepository(OperationRepository):
    """SQLite implementation of OperationRepository."""

    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    def add(self, operation: Operation) -> None:
        self.add_many([operation])

    def add_many(self, operations: Sequence[Operation]) -> None:
        if not operations:
            return
        with self._db.transaction() as conn:
            conn.executemany(
                "INSERT INTO operations (id, payment_id, bill_id) VALUES (?, ?, ?)",
                [(str(o.id), str(o.payment_id), str(o.bill_id)) for o in operations],
            )

    def get(self, operation_id: UUID) -> Operation | None:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM operations WHERE id = ?", (str(operation_id),)
        ).fetchone()
        if row is None:
            return None
        return Operation(
            payment_id=UUID(row["payment_id"]),
            bill_id=UUID(row["bill_id"]),
            id=UUID(row["id"]),
        )

    def delete(self, operation_id: UUID) -> None:
        with self._db.transaction() as conn:
            conn.execute("DELETE FROM operations WHERE id = ?", (str(operation_id),))


class SQLiteMovementRepository(MovementRepository):
    """SQLite implementation of MovementRepository."""

    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    def add(self, movement: Movement) -> None:
        self.add_many([movement])

    def add_many(self, movements: Sequence[Movement]) -> None:
        if not movements:
            return
        with self._db.transaction() as conn:
            conn.executemany(
                """
                INSERT INTO movements (id, description, movement_type, operation_id, subcategory_id,
                                       created_by, verified, is_tax_payment, related_tax_id, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        str(m.id),
                        m.description,
                        m.movement_type.value,
                        str(m.operation_id),
                        str(m.subcategory_id),
                        m.created_by,
                        1 if m.verified else 0,
                        1 if m.is_tax_payment else 0,
                        str(m.related_tax_id) if m.related_tax_id else None,
                        m.created_at.isoformat(),
                    )
                    for m in movements
                ],
            )

    def get(self, movement_id: UUID) -> Movement | None:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM movements WHERE id = ?", (str(movement_id),)
        ).fetchone()
        if row is None:
            return None
        return self._row_to_movement(row)

    def update(self, movement: Movement) -> None:
        with self._db.transaction() as conn:
            conn.execute(
                """
                UPDATE movements SET
                    description = ?,
                    movement_type = ?,
                    subcategory_id = ?,
                    verified = ?,
                    is_tax_payment = ?,
                    related_tax_id = ?
                WHERE id = ?
                """,
                (
                    movement.description,
                    movement.movement_type.value,
                    str(movement.subcategory_id),
                    1 if movement.verified else 0,
                    1 if movement.is_tax_payment else 0,
                    str(movement.related_tax_id) if movement.related_tax_id else None,
                    str(movement.id),
                ),
            )

    def delete(self, movement_id: UUID) -> bool:
        with self._db.transaction() as conn:
            cursor = conn.execute(
                "DELETE FROM movements WHERE id = ?", (str(movement_id),)
            )
        return cursor.rowcount > 0

    def get_view(self, movement_id: UUID) -> MovementView | None:
        conn = self._db.get_connection()
        row = conn.execute(
            MOVEMENT_VIEW_SELECT + " WHERE m.id = ?", (str(movement_id),)
        ).fetchone()
        if row is None:
            return None
        taxes = self._tax_lines_for([row["id"]])
        return row_to_movement_view(row, taxes.get(row["id"]))

    def list_views(
        self, movement_filter: MovementFilter | None = None
    ) -> list[MovementView]:
        where, params = movement_filter_clause(movement_filter)
        conn = self._db.get_connection()
        rows = conn.execute(
            MOVEMENT_VIEW_SELECT + where + " ORDER BY m.created_at DESC, m.rowid DESC",
            params,
        ).fetchall()
        taxes = self._tax_lines_for([row["id"] for row in rows])
        return [row_to_movement_view(row, taxes.get(row["id"])) for row in rows]

    def _tax_lines_for(self, movement_ids: list[str]) -> dict[str, list[TaxLineView]]:
        grouped: dict[str, list[TaxLineView]] = defaultdict(list)
        if not movement_ids:
            return grouped
        conn = self._db.get_connection()
        rows = conn.execute(
            TAX_LINE_VIEW_SELECT
            + f" WHERE mt.movement_id IN ({placeholders(len(movement_ids))}) ORDER BY t.name",
            movement_ids,
        ).fetchall()
        for row in rows:
            grouped[row["movement_id"]].append(row_to_tax_line_view(row))
        return grouped

    def _row_to_movement(self, row: sqlite3.Row) -> Movement:
        return Movement(
            description=row["description"],
            movement_type=MovementType(row["movement_type"]),
            operation_id=UUID(row["operation_id"]),
            subcategory_id=UUID(row["subcategory_id"]),
            created_by=row["created_by"],
            verified=bool(row["verified"]),
            is_tax_payment=bool(row["is_tax_payment"]),
            related_tax_id=optional_uuid(row["related_tax_id"]),
            id=UUID(row["id"]),
            created_at=datetime.fromisoformat(row["created_at"]),
        )


class SQLiteMovementTaxRepository(MovementTaxRepository):
    """SQLite implementation of MovementTaxRepository."""

    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    def add_many(self, lines: Sequence[MovementTaxLine]) -> None:
        if not lines:
            return
        with self._db.transaction() as conn:
            conn.executemany(
                """
                INSERT INTO movement_taxes (id, movement_id, tax_id, calculated_amount)
                VALUES (?, ?, ?, ?)
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
        conn = self._db.get_connection()
        rows = conn.execute(
            "SELECT * FROM movement_taxes WHERE movement_id = ?", (str(movement_id),)
        ).fetchall()
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
        with self._db.transaction() as conn:
            conn.execute(
                "DELETE FROM movement_taxes WHERE movement_id = ?", (str(movement_id),)
            )


class SQLiteProfileRepository(ProfileRepository):
    """SQLite implementation of ProfileRepository."""

    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    def upsert(self, profile: Profile) -> None:
        with self._db.transaction() as conn:
            conn.execute(
                """
                INSERT INTO profiles (id, email, username) VALUES (?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    email = excluded.email,
                    username = excluded.username
                """,
                (profile.id, profile.email, profile.username),
            )

    def get(self, user_id: str) -> Profile | None:
        conn = self._db.get_connection()
        row = conn.execute("SELECT * FROM profiles WHERE id = ?", (user_id,)).fetchone()
        if row is None:
            return None
        return Profile(id=row["id"], email=row["email"], username=row["username"])


class SQLiteNotificationSettingsRepository(NotificationSettingsRepository):
    """SQLite implementation of NotificationSettingsRepository."""

    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    def upsert(self, settings: NotificationSettings) -> None:
        with self._db.transaction() as conn:
            conn.execute(
                """
                INSERT INTO notification_settings
                    (user_id, email_notifications, app_notifications, expense_threshold, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(user_id) DO UPDATE SET
                    email_notifications = excluded.email_notifications,
                    app_notifications = excluded.app_notifications,
                    expense_threshold = excluded.expense_threshold,
                    updated_at = excluded.updated_at
                """,
                (
                    settings.user_id,
                    1 if settings.email_notifications else 0,
                    1 if settings.app_notifications else 0,
                    str(settings.expense_threshold)
                    if settings.expense_threshold is not None
                    else None,
                    settings.updated_at.isoformat(),
                ),
            )

    def get(self, user_id: str) -> NotificationSettings | None:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM notification_settings WHERE user_id = ?", (user_id,)
        ).fetchone()
        if row is None:
            return None
        return self._row_to_settings(row)

    def list_email_enabled(self) -> list[NotificationSettings]:
        conn = self._db.get_connection()
        rows = conn.execute(
            "SELECT * FROM notification_settings WHERE email_notifications = 1"
        ).fetchall()
        return [self._row_to_settings(row) for row in rows]

    def _row_to_settings(self, row: sqlite3.Row) -> NotificationSettings:
        return NotificationSettings(
            user_id=row["user_id"],
            email_notifications=bool(row["email_notifications"]),
            app_notifications=bool(row["app_notifications"]),
            expense_threshold=optional_decimal(row["expense_threshold"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )


class SQLiteNotificationRepository(NotificationRepository):
    """SQLite implementation of NotificationRepository."""

    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    def add(self, notification: Notification) -> None:
        with self._db.transaction() as conn:
            conn.execute(
                """
                INSERT INTO notifications (id, user_id, type, title, body, link, read, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    str(notification.id),
                    notification.user_id,
                    notification.type,
                    notification.title,
                    notification.body,
                    notification.link,
                    1 if notification.read else 0,
                    notification.created_at.isoformat(),
                ),
            )

    def list_by_user(self, user_id: str) -> list[Notification]:
        conn = self._db.get_connection()
        rows = conn.execute(
            "SELECT * FROM notifications WHERE user_id = ? ORDER BY created_at DESC",
            (user_id,),
        ).fetchall()
        return [
            Notification(
                user_id=row["user_id"],
                type=row["type"],
                title=row["title"],
                body=row["body"],
                link=row["link"],
                read=bool(row["read"]),
                id=UUID(row["id"]),
                created_at=datetime.fromisoformat(row["created_at"]),
            )
            for row in rows
        ]


def create_sqlite_repositories(database: SQLiteDatabase) -> Repositories:
    return Repositories(
        entities=SQLiteEntityRepository(database),
        categories=SQLiteCategoryRepository(database),
        subcategories=SQLiteSubcategoryRepository(database),
        taxes=SQLiteTaxRepository(database),
        payments=SQLitePaymentRepository(database),
        bills=SQLiteBillRepository(database),
        operations=SQLiteOperationRepository(database),
        movements=SQLiteMovementRepository(database),
        movement_taxes=SQLiteMovementTaxRepository(database),
        profiles=SQLiteProfileRepository(database),
        notification_settings=SQLiteNotificationSettingsRepository(database),
        notifications=SQLiteNotificationRepository(database),
    )
