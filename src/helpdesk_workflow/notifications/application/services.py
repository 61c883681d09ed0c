"""
Notification Application Services
=================================

Single boundary for creating notifications.

Delivery is best-effort: workflow services call ``notify_best_effort`` after
their own transaction has committed, so a slow or failing notification
store can never undo or block a status change.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional

from helpdesk_workflow.config import (
    Settings, NotificationType, NotificationPriority, get_settings
)
from helpdesk_workflow.core import (
    ApplicationException,
    ForbiddenException,
    ResourceNotFoundException,
)
from helpdesk_workflow.core.concurrency import bounded
from helpdesk_workflow.notifications.domain import Notification, NotificationIntent
from helpdesk_workflow.shared.application import IUserDirectory
from helpdesk_workflow.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


# ========== Repository Interface ==========

class INotificationRepository(ABC):
    """Interface for the notification store."""

    @abstractmethod
    async def insert(self, notification: Notification) -> Notification:
        """Persist a new notification and return it with its id."""

    @abstractmethod
    async def get_by_id(self, notification_id: str) -> Optional[Notification]:
        """Get notification by id."""

    @abstractmethod
    async def mark_read(self, notification_id: str) -> Notification:
        """Set the read flag."""

    @abstractmethod
    async def list_for_recipient(
        self,
        recipient_id: str,
        unread_only: bool = False,
        limit: int = 50
    ) -> List[Notification]:
        """Notifications of one recipient, newest first."""


# ========== Application Service ==========

class NotificationDispatcher:
    """
    Creates notification records addressed to one recipient.

    ``notify`` raises on store failures so callers that care can react;
    ``notify_best_effort`` is what the workflow uses and only logs.
    """

    def __init__(
        self,
        repository: INotificationRepository,
        user_directory: Optional[IUserDirectory] = None,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self._repository = repository
        self._users = user_directory
        self._settings = settings or get_settings()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def notify(
        self,
        recipient_id: Optional[str],
        notification_type: NotificationType,
        title: str,
        message: str,
        ticket_id: Optional[str] = None,
        priority: NotificationPriority = NotificationPriority.MEDIUM
    ) -> Optional[Notification]:
        """
        Create and persist one notification.

        Returns:
            The stored notification, or None when the recipient is empty or
            unknown (logged as a warning, never an error)

        Raises:
            ServiceUnavailableException: If the store did not answer in time
            RepositoryException: If the store rejected the write
        """
        if not recipient_id:
            logger.warning(
                "Notification skipped: empty recipient",
                extra={"notification_type": notification_type.value, "ticket_id": ticket_id}
            )
            return None

        if self._users is not None:
            recipient = await bounded(
                self._users.get_user(recipient_id),
                self._settings.notification_timeout_seconds,
                "identity"
            )
            if recipient is None:
                logger.warning(
                    "Notification skipped: unknown recipient",
                    extra={
                        "recipient_id": recipient_id,
                        "notification_type": notification_type.value,
                        "ticket_id": ticket_id,
                    }
                )
                return None

        notification = Notification(
            recipient_id=recipient_id,
            type=notification_type,
            title=title,
            message=message,
            ticket_id=ticket_id,
            priority=priority,
            created_at=self._clock(),
        )

        stored = await bounded(
            self._repository.insert(notification),
            self._settings.notification_timeout_seconds,
            "notification store"
        )

        logger.info(
            "Notification created",
            extra={
                "notification_id": stored.id,
                "recipient_id": recipient_id,
                "notification_type": notification_type.value,
                "ticket_id": ticket_id,
            }
        )
        return stored

    async def notify_best_effort(
        self,
        recipient_id: Optional[str],
        notification_type: NotificationType,
        title: str,
        message: str,
        ticket_id: Optional[str] = None,
        priority: NotificationPriority = NotificationPriority.MEDIUM
    ) -> Optional[Notification]:
        """
        Like ``notify`` but logs delivery failures instead of raising.

        Driver errors from the identity lookup or the store are logged too.
        """
        try:
            return await self.notify(
                recipient_id, notification_type, title, message, ticket_id, priority
            )
        except ApplicationException as e:
            logger.error(
                "Notification delivery failed",
                extra={
                    "recipient_id": recipient_id,
                    "notification_type": notification_type.value,
                    "ticket_id": ticket_id,
                    "error": e.message,
                }
            )
            return None
        except Exception as e:
            logger.error(
                "Notification delivery failed unexpectedly",
                extra={
                    "recipient_id": recipient_id,
                    "notification_type": notification_type.value,
                    "ticket_id": ticket_id,
                    "error": str(e),
                },
                exc_info=True
            )
            return None

    async def dispatch(self, intents: Iterable[NotificationIntent]) -> int:
        """Send collected intents best-effort; returns how many were stored."""
        sent = 0
        for intent in intents:
            stored = await self.notify_best_effort(
                intent.recipient_id,
                intent.type,
                intent.title,
                intent.message,
                ticket_id=intent.ticket_id,
                priority=intent.priority,
            )
            if stored is not None:
                sent += 1
        return sent

    async def mark_read(self, notification_id: str, user_id: str) -> Notification:
        """
        Flip the read flag on behalf of the recipient.

        Raises:
            ResourceNotFoundException: If the notification does not exist
            ForbiddenException: If ``user_id`` is not the recipient
        """
        notification = await bounded(
            self._repository.get_by_id(notification_id),
            self._settings.notification_timeout_seconds,
            "notification store"
        )
        if notification is None:
            raise ResourceNotFoundException("Notification", notification_id)

        if notification.recipient_id != user_id:
            raise ForbiddenException(user_id, "mark another user's notification as read")

        if notification.read:
            return notification

        return await bounded(
            self._repository.mark_read(notification_id),
            self._settings.notification_timeout_seconds,
            "notification store"
        )

    async def list_for_recipient(
        self,
        recipient_id: str,
        unread_only: bool = False,
        limit: int = 50
    ) -> List[Notification]:
        return await bounded(
            self._repository.list_for_recipient(recipient_id, unread_only, limit),
            self._settings.notification_timeout_seconds,
            "notification store"
        )
