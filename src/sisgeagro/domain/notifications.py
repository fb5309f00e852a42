from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from uuid import UUID, uuid4


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass
class Profile:
    id: str
    email: str
    username: str | None = None


@dataclass
class NotificationSettings:
    user_id: str
    email_notifications: bool = True
    app_notifications: bool = True
    expense_threshold: Decimal | None = Decimal("5000")
    updated_at: datetime = field(default_factory=_utc_now)

    def applies_to(self, amount: Decimal) -> bool:
        """True when a movement of this amount reaches the recipient's threshold."""
        return self.email_notifications and amount >= (
            self.expense_threshold or Decimal("0")
        )


@dataclass
class Notification:
    user_id: str
    type: str
    title: str
    body: str
    link: str | None = None
    read: bool = False
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=_utc_now)
