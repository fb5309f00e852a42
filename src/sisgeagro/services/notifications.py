"""Threshold notifications raised when a movement is created.

Delivery is best effort: every failure is logged and swallowed so that a
broken mail relay never undoes or fails a movement.
"""

import smtplib
from abc import ABC, abstractmethod
from decimal import Decimal
from email.message import EmailMessage
from uuid import UUID

from sisgeagro.config import Settings
from sisgeagro.domain.notifications import Notification, NotificationSettings, Profile
from sisgeagro.domain.value_objects import MOVEMENT_THRESHOLD_NOTIFICATION
from sisgeagro.exceptions import EmailDeliveryError, MissingFieldError
from sisgeagro.logging_config import get_logger
from sisgeagro.repositories.interfaces import (
    NotificationRepository,
    NotificationSettingsRepository,
    ProfileRepository,
)

logger = get_logger(__name__)

THRESHOLD_EMAIL_SUBJECT = "Nuevo movimiento por encima del umbral"
THRESHOLD_NOTIFICATION_TITLE = "Movimiento por encima del umbral"


class EmailSender(ABC):
    @abstractmethod
    def send(self, to: str, subject: str, text: str, html: str | None = None) -> bool:
        """Deliver one message; False when the relay refused it."""


class SmtpEmailSender(EmailSender):
    def __init__(
        self,
        host: str,
        port: int = 587,
        username: str | None = None,
        password: str | None = None,
        use_tls: bool = True,
        mail_from: str = "no-reply@localhost",
        timeout: float = 10.0,
    ) -> None:
        self._host = host
        self._port = port
        self._username = username
        self._password = password
        self._use_tls = use_tls
        self._mail_from = mail_from
        self._timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "SmtpEmailSender":
        if not settings.smtp_host:
            raise ValueError("smtp_host is not configured")
        return cls(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_username,
            password=settings.smtp_password,
            use_tls=settings.smtp_use_tls,
            mail_from=settings.mail_from,
            timeout=settings.smtp_timeout,
        )

    def send(self, to: str, subject: str, text: str, html: str | None = None) -> bool:
        message = EmailMessage()
        message["From"] = self._mail_from
        message["To"] = to
        message["Subject"] = subject
        message.set_content(text)
        if html:
            message.add_alternative(html, subtype="html")

        try:
            with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as smtp:
                if self._use_tls:
                    smtp.starttls()
                if self._username:
                    smtp.login(self._username, self._password or "")
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            logger.warning("email_send_failed", to=to, host=self._host, error=str(e))
            return False

        logger.info("email_sent", to=to, subject=subject)
        return True


class LoggingEmailSender(EmailSender):
    """Stand-in used when no SMTP relay is configured: logs instead of sending."""

    def send(self, to: str, subject: str, text: str, html: str | None = None) -> bool:
        logger.info("email_logged_not_sent", to=to, subject=subject, text=text)
        return True


class NotificationService:
    def __init__(
        self,
        settings_repo: NotificationSettingsRepository,
        profile_repo: ProfileRepository,
        notification_repo: NotificationRepository,
        email_sender: EmailSender,
        link: str = "/dashboard/tabla",
    ) -> None:
        self._settings_repo = settings_repo
        self._profile_repo = profile_repo
        self._notification_repo = notification_repo
        self._email_sender = email_sender
        self._link = link

    def notify_movement_created(
        self, amount: Decimal, movement_id: UUID | None = None
    ) -> int:
        """Email and notify every recipient whose threshold the amount reaches.

        Returns the number of recipients reached. Never raises.
        """
        try:
            recipients = self._settings_repo.list_email_enabled()
        except Exception as e:
            logger.warning("notification_recipients_unavailable", error=str(e))
            return 0

        reached = 0
        for recipient in recipients:
            if not recipient.applies_to(amount):
                continue
            try:
                profile = self._profile_repo.get(recipient.user_id)
            except Exception as e:
                logger.warning(
                    "notification_profile_lookup_failed",
                    user_id=recipient.user_id,
                    error=str(e),
                )
                continue
            if profile is None or not profile.email:
                logger.debug("notification_recipient_without_email", user_id=recipient.user_id)
                continue

            self._send_threshold_email(profile.email, amount)
            self._record_in_app(recipient.user_id, amount)
            reached += 1

        if reached:
            logger.info(
                "movement_threshold_notified",
                movement_id=str(movement_id) if movement_id else None,
                recipients=reached,
            )
        return reached

    def send_email(self, to: str, subject: str, text: str, html: str | None = None) -> None:
        """Send one email on request; unlike threshold emails, failures surface.

        Raises:
            MissingFieldError: If to, subject or text is blank.
            EmailDeliveryError: If the relay refused the message.
        """
        for name, value in (("to", to), ("subject", subject), ("text", text)):
            if not (value or "").strip():
                raise MissingFieldError(name)
        if not self._email_sender.send(to, subject, text, html):
            raise EmailDeliveryError(to)

    def update_settings(self, settings: NotificationSettings) -> NotificationSettings:
        self._settings_repo.upsert(settings)
        logger.info(
            "notification_settings_updated",
            user_id=settings.user_id,
            email_notifications=settings.email_notifications,
        )
        return settings

    def get_settings(self, user_id: str) -> NotificationSettings | None:
        return self._settings_repo.get(user_id)

    def save_profile(self, profile: Profile) -> Profile:
        if not profile.email.strip():
            raise MissingFieldError("email")
        self._profile_repo.upsert(profile)
        return profile

    def list_notifications(self, user_id: str) -> list[Notification]:
        return self._notification_repo.list_by_user(user_id)

    def _send_threshold_email(self, to: str, amount: Decimal) -> None:
        try:
            delivered = self._email_sender.send(
                to,
                THRESHOLD_EMAIL_SUBJECT,
                f"Se ha registrado un movimiento por ${amount}.\n",
                f"<p>Se ha registrado un movimiento por <b>${amount}</b>.</p>",
            )
        except Exception as e:
            logger.warning("notification_email_failed", to=to, error=str(e))
            return
        if not delivered:
            logger.warning("notification_email_not_delivered", to=to)

    def _record_in_app(self, user_id: str, amount: Decimal) -> None:
        try:
            self._notification_repo.add(
                Notification(
                    user_id=user_id,
                    type=MOVEMENT_THRESHOLD_NOTIFICATION,
                    title=THRESHOLD_NOTIFICATION_TITLE,
                    body=f"Se ha registrado un movimiento por ${amount}.",
                    link=self._link,
                )
            )
        except Exception as e:
            logger.warning("notification_insert_failed", user_id=user_id, error=str(e))
