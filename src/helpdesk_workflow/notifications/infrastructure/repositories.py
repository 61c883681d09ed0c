"""
Notification Infrastructure Repositories
========================================

Notifications are written through their own session, never through the
workflow unit of work: a failed notification cannot roll back a transition.
"""

from typing import List, Optional

from sqlalchemy import and_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from helpdesk_workflow.config import NotificationPriority, NotificationType
from helpdesk_workflow.core import RepositoryException, ResourceNotFoundException
from helpdesk_workflow.infrastructure.database import as_utc
from helpdesk_workflow.notifications.application import INotificationRepository
from helpdesk_workflow.notifications.domain import Notification
from helpdesk_workflow.notifications.infrastructure.models import NotificationModel


class SQLAlchemyNotificationRepository(INotificationRepository):
    """SQLAlchemy implementation of the notification store."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    async def insert(self, notification: Notification) -> Notification:
        model = NotificationModel(
            recipient_id=notification.recipient_id,
            type=notification.type.value,
            title=notification.title,
            message=notification.message,
            ticket_id=notification.ticket_id,
            priority=notification.priority.value,
            read=notification.read,
            created_at=notification.created_at,
        )
        try:
            async with self._session_maker() as session:
                async with session.begin():
                    session.add(model)
                return self._to_domain(model)
        except SQLAlchemyError as e:
            raise RepositoryException(
                "Failed to store notification",
                {"recipient_id": notification.recipient_id, "error": str(e)}
            ) from e

    async def get_by_id(self, notification_id: str) -> Optional[Notification]:
        async with self._session_maker() as session:
            result = await session.execute(
                select(NotificationModel).where(NotificationModel.id == notification_id)
            )
            model = result.scalar_one_or_none()
            return self._to_domain(model) if model else None

    async def mark_read(self, notification_id: str) -> Notification:
        async with self._session_maker() as session:
            async with session.begin():
                result = await session.execute(
                    update(NotificationModel)
                    .where(NotificationModel.id == notification_id)
                    .values(read=True)
                )
                if result.rowcount == 0:
                    raise ResourceNotFoundException("Notification", notification_id)

        notification = await self.get_by_id(notification_id)
        if notification is None:
            raise ResourceNotFoundException("Notification", notification_id)
        return notification

    async def list_for_recipient(
        self,
        recipient_id: str,
        unread_only: bool = False,
        limit: int = 50
    ) -> List[Notification]:
        conditions = [NotificationModel.recipient_id == recipient_id]
        if unread_only:
            conditions.append(NotificationModel.read.is_(False))

        stmt = (
            select(NotificationModel)
            .where(and_(*conditions))
            .order_by(NotificationModel.created_at.desc())
            .limit(limit)
        )
        async with self._session_maker() as session:
            result = await session.execute(stmt)
            return [self._to_domain(m) for m in result.scalars().all()]

    @staticmethod
    def _to_domain(model: NotificationModel) -> Notification:
        return Notification(
            id=model.id,
            recipient_id=model.recipient_id,
            type=NotificationType(model.type),
            title=model.title,
            message=model.message,
            ticket_id=model.ticket_id,
            priority=NotificationPriority(model.priority),
            read=model.read,
            created_at=as_utc(model.created_at),
        )
