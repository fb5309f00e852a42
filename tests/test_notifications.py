from decimal import Decimal

import pytest

from sisgeagro.container import build_notification_service
from sisgeagro.domain.notifications import NotificationSettings, Profile
from sisgeagro.domain.value_objects import MOVEMENT_THRESHOLD_NOTIFICATION
from sisgeagro.exceptions import EmailDeliveryError, MissingFieldError
from sisgeagro.services.notifications import LoggingEmailSender


@pytest.fixture
def notifications(repos, email_sender, settings):
    return build_notification_service(repos, email_sender, settings)


@pytest.fixture
def recipients(repos):
    repos.profiles.upsert(Profile(id="owner", email="owner@example.com"))
    repos.notification_settings.upsert(
        NotificationSettings(user_id="owner", expense_threshold=Decimal("10000"))
    )
    repos.profiles.upsert(Profile(id="clerk", email="clerk@example.com"))
    repos.notification_settings.upsert(
        NotificationSettings(user_id="clerk", expense_threshold=Decimal("500"))
    )
    repos.notification_settings.upsert(
        NotificationSettings(user_id="muted", email_notifications=False)
    )


class TestNotificationSettings:
    def test_applies_from_threshold_up(self):
        settings = NotificationSettings(user_id="u", expense_threshold=Decimal("100"))

        assert settings.applies_to(Decimal("100"))
        assert not settings.applies_to(Decimal("99.99"))

    def test_disabled_email_never_applies(self):
        settings = NotificationSettings(user_id="u", email_notifications=False)

        assert not settings.applies_to(Decimal("1000000"))


@pytest.mark.usefixtures("recipients")
class TestNotifyMovementCreated:
    def test_only_recipients_under_the_amount_are_notified(self, notifications, email_sender):
        reached = notifications.notify_movement_created(Decimal("2000"))

        assert reached == 1
        assert [m["to"] for m in email_sender.sent] == ["clerk@example.com"]
        assert "$2000" in email_sender.sent[0]["text"]

    def test_records_in_app_notification(self, notifications, repos):
        notifications.notify_movement_created(Decimal("20000"))

        (notification,) = repos.notifications.list_by_user("owner")
        assert notification.type == MOVEMENT_THRESHOLD_NOTIFICATION
        assert notification.title == "Movimiento por encima del umbral"
        assert notification.body == "Se ha registrado un movimiento por $20000."
        assert notification.link == "/dashboard/tabla"
        assert notification.read is False

    def test_refused_delivery_still_counts(self, repos, settings, refusing_email_sender):
        service = build_notification_service(repos, refusing_email_sender, settings)

        assert service.notify_movement_created(Decimal("600")) == 1

    def test_sender_exception_is_swallowed(self, notifications, email_sender, repos):
        def explode(*args, **kwargs):
            raise OSError("connection refused")

        email_sender.send = explode

        assert notifications.notify_movement_created(Decimal("600")) == 1
        assert len(repos.notifications.list_by_user("clerk")) == 1

    def test_recipient_without_profile_is_skipped(self, notifications, repos, email_sender):
        repos.notification_settings.upsert(
            NotificationSettings(user_id="ghost", expense_threshold=Decimal("0"))
        )

        notifications.notify_movement_created(Decimal("600"))

        assert {m["to"] for m in email_sender.sent} == {"clerk@example.com"}


class TestSendEmail:
    def test_sends(self, notifications, email_sender):
        notifications.send_email("a@example.com", "Hola", "Texto", "<p>Texto</p>")

        assert email_sender.sent == [
            {"to": "a@example.com", "subject": "Hola", "text": "Texto", "html": "<p>Texto</p>"}
        ]

    @pytest.mark.parametrize("missing", ["to", "subject", "text"])
    def test_required_fields(self, notifications, missing):
        fields = {"to": "a@example.com", "subject": "Hola", "text": "Texto"}
        fields[missing] = " "

        with pytest.raises(MissingFieldError, match=missing):
            notifications.send_email(**fields)

    def test_refused_delivery_raises(self, repos, settings, refusing_email_sender):
        service = build_notification_service(repos, refusing_email_sender, settings)

        with pytest.raises(EmailDeliveryError) as exc_info:
            service.send_email("a@example.com", "Hola", "Texto")

        assert exc_info.value.status_code == 500
        assert exc_info.value.message == "Error sending email to a@example.com"


class TestProfilesAndSettings:
    def test_profile_requires_email(self, notifications):
        with pytest.raises(MissingFieldError, match="email"):
            notifications.save_profile(Profile(id="u", email=""))

    def test_settings_round_trip(self, notifications):
        notifications.update_settings(
            NotificationSettings(user_id="u", app_notifications=False, expense_threshold=None)
        )

        stored = notifications.get_settings("u")
        assert stored.app_notifications is False
        assert stored.expense_threshold is None


def test_logging_sender_reports_delivery():
    assert LoggingEmailSender().send("a@example.com", "s", "t") is True
