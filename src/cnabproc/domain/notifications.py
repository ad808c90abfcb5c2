"""Processing outcome notifications."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from cnabproc.database.base import Database
from cnabproc.domain.entities import File, FileStatus, NotificationAttempt
from cnabproc.domain.errors import ProcessingError
from cnabproc.logging_config import get_logger
from cnabproc.utils.clock import Clock

logger = get_logger(__name__)

PROCESSING_COMPLETED = "ProcessingCompleted"
PROCESSING_FAILED = "ProcessingFailed"

STATUS_SENT = "Sent"
STATUS_FAILED = "Failed"


@dataclass(frozen=True)
class Notification:
    """Message telling an uploader how their file ended."""

    file_id: str
    notification_type: str
    recipient: str
    subject: str
    body: str


class NotificationDeliveryError(Exception):
    """A notifier could not deliver a notification."""


class Notifier(ABC):
    """Delivery channel for notifications."""

    @abstractmethod
    def deliver(self, notification: Notification) -> None:
        """Send a notification.

        Raises:
            NotificationDeliveryError: If delivery failed
        """
        pass


class LoggingNotifier(Notifier):
    """Notifier that writes notifications to the log."""

    def deliver(self, notification: Notification) -> None:
        logger.info(
            "Notify %s: %s - %s", notification.recipient, notification.subject, notification.body
        )


def build_notification(file: File, recipient: str) -> Notification:
    """Build the notification for a file in a terminal status."""
    if file.status is FileStatus.PROCESSED:
        return Notification(
            file_id=file.id,
            notification_type=PROCESSING_COMPLETED,
            recipient=recipient,
            subject=f"File {file.name} processed",
            body=f"File {file.name} ({file.id}) was processed successfully.",
        )
    return Notification(
        file_id=file.id,
        notification_type=PROCESSING_FAILED,
        recipient=recipient,
        subject=f"File {file.name} rejected",
        body=f"File {file.name} ({file.id}) was rejected: {file.error_message}",
    )


class NotificationService:
    """Deliver outcome notifications and record each attempt."""

    def __init__(
        self,
        db: Database,
        clock: Clock,
        notifier: Optional[Notifier] = None,
        default_recipient: Optional[str] = None,
    ):
        """Initialize notification service.

        Args:
            db: Database instance
            clock: Clock used for attempt timestamps
            notifier: Delivery channel (defaults to LoggingNotifier)
            default_recipient: Used when the file has no uploader
        """
        self.db = db
        self.clock = clock
        self.notifier = notifier or LoggingNotifier()
        self.default_recipient = default_recipient

    def notify(self, file: File) -> Optional[NotificationAttempt]:
        """Notify the uploader that ``file`` reached a terminal status.

        Delivery and bookkeeping failures are logged and never change the
        file's outcome.

        Returns:
            Recorded attempt, or None if nothing was sent or recorded
        """
        if not file.status.is_terminal:
            logger.debug("File %s is %s; no notification", file.id, file.status.value)
            return None
        recipient = file.uploaded_by or self.default_recipient
        if not recipient:
            logger.debug("File %s has no notification recipient", file.id)
            return None

        notification = build_notification(file, recipient)
        status = STATUS_SENT
        error_message = None
        try:
            self.notifier.deliver(notification)
        except NotificationDeliveryError as e:
            status = STATUS_FAILED
            error_message = str(e)
            logger.warning(
                "Notification %s for file %s failed: %s",
                notification.notification_type,
                file.id,
                e,
            )

        try:
            return self.db.add_notification_attempt(
                file_id=file.id,
                notification_type=notification.notification_type,
                recipient=recipient,
                status=status,
                attempted_at=self.clock.now(),
                error_message=error_message,
            )
        except ProcessingError as e:
            logger.warning("Could not record notification for file %s: %s", file.id, e)
            return None
