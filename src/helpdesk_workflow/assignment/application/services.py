"""
Assignment Application Services
===============================

Assignment is the ``assignee_id`` + ``status`` pair on the ticket; there is
no separate entity. Taking an ``open`` ticket moves it to ``in_progress``
through the status engine, in the same unit of work as the assignee write.
"""

from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from helpdesk_workflow.config import (
    Settings, TicketStatus, UserRole, NotificationType, NotificationPriority,
    get_settings
)
from helpdesk_workflow.core import (
    ForbiddenException,
    InvalidStateException,
    ValidationException,
)
from helpdesk_workflow.core.concurrency import bounded, retry_on_conflict
from helpdesk_workflow.notifications.domain import NotificationIntent
from helpdesk_workflow.shared.application import IUnitOfWork, User
from helpdesk_workflow.shared.infrastructure.logging import get_logger
from helpdesk_workflow.tickets.application import StatusTransitionEngine, TransitionMetadata
from helpdesk_workflow.tickets.domain import Ticket

logger = get_logger(__name__)


def _display(user: User) -> str:
    return user.full_name or user.id


class AssignmentManager:
    """Self-assign, transfer and unassign tickets."""

    def __init__(
        self,
        uow_factory: Callable[[], IUnitOfWork],
        engine: StatusTransitionEngine,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self._uow_factory = uow_factory
        self._engine = engine
        self._settings = settings or get_settings()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def self_assign(self, ticket_id: str, agent_id: str) -> Ticket:
        """
        Take an unassigned, active ticket.

        Raises:
            ForbiddenException: If the actor is not an agent
            InvalidStateException: If the ticket is assigned or resolved/closed
        """
        async def attempt() -> Tuple[Ticket, List[NotificationIntent]]:
            agent = await self._engine.resolve_actor(agent_id)
            if agent.role != UserRole.AGENT:
                raise ForbiddenException(agent_id, "self-assign tickets")

            async with self._uow_factory() as uow:
                ticket = await self._engine.load_ticket(uow, ticket_id)
                self._require_active(ticket)
                if ticket.assignee_id is not None:
                    raise InvalidStateException(
                        f"Ticket {ticket.ticket_number} is already assigned",
                        {"ticket_id": ticket.id, "assignee_id": ticket.assignee_id}
                    )

                # Nobody is notified of a self-action
                updated, _ = await self._reassign(
                    uow, ticket, agent, agent_id,
                    f"{_display(agent)} assigned the ticket to themselves"
                )
                return updated, []

        updated, intents = await self._run(attempt, "self_assign")
        logger.info(
            "Ticket self-assigned",
            extra={"ticket_id": ticket_id, "agent_id": agent_id, "status": updated.status.value}
        )
        await self._engine.after_commit(updated, agent_id, "assigned", intents)
        return updated

    async def transfer(
        self,
        ticket_id: str,
        from_agent_id: str,
        to_agent_id: str,
        reason: Optional[str] = None
    ) -> Ticket:
        """
        Hand a ticket to another agent.

        ``from_agent_id`` is the acting user: an admin or the current assignee.

        Raises:
            ForbiddenException: If the actor is neither admin nor current assignee
            InvalidStateException: If the ticket is resolved/closed or already
                held by the target
            ValidationException: If the target is not an existing agent/admin
        """
        reason = (reason or "").strip() or None

        async def attempt() -> Tuple[Ticket, List[NotificationIntent]]:
            actor = await self._engine.resolve_actor(from_agent_id)

            async with self._uow_factory() as uow:
                ticket = await self._engine.load_ticket(uow, ticket_id)
                if not (actor.is_admin or ticket.is_assigned_to(actor.id)):
                    raise ForbiddenException(
                        from_agent_id, f"transfer ticket {ticket.ticket_number}"
                    )
                self._require_active(ticket)

                target = await self._engine.find_user(to_agent_id) if to_agent_id else None
                if target is None or not target.is_staff:
                    raise ValidationException(
                        "Tickets can only be transferred to an agent or admin",
                        {"ticket_id": ticket.id, "to_agent_id": to_agent_id}
                    )
                if ticket.is_assigned_to(to_agent_id):
                    raise InvalidStateException(
                        f"Ticket {ticket.ticket_number} is already assigned to {to_agent_id}",
                        {"ticket_id": ticket.id, "assignee_id": to_agent_id}
                    )

                text = f"{_display(actor)} transferred the ticket to {_display(target)}"
                if reason:
                    text += f"\nReason: {reason}"
                previous = ticket.assignee_id
                updated, _ = await self._reassign(uow, ticket, actor, to_agent_id, text)

                intents: List[NotificationIntent] = []
                if to_agent_id != actor.id:
                    intents.append(NotificationIntent(
                        recipient_id=to_agent_id,
                        type=NotificationType.TICKET_ASSIGNED,
                        title="Ticket Assigned",
                        message=f"Ticket {ticket.ticket_number} \"{ticket.title}\" "
                                f"was assigned to you by {_display(actor)}."
                                + (f" Reason: {reason}" if reason else ""),
                        ticket_id=ticket.id,
                        priority=NotificationPriority.HIGH,
                    ))
                if previous and previous not in (actor.id, to_agent_id):
                    intents.append(self._assignment_changed(ticket, previous, actor))
                return updated, intents

        updated, intents = await self._run(attempt, "transfer")
        logger.info(
            "Ticket transferred",
            extra={
                "ticket_id": ticket_id,
                "actor_id": from_agent_id,
                "to_agent_id": to_agent_id,
                "status": updated.status.value,
            }
        )
        await self._engine.after_commit(updated, from_agent_id, "transferred", intents)
        return updated

    async def unassign(self, ticket_id: str, actor_id: str) -> Ticket:
        """
        Clear the assignee. Admin only; the status is left as it is.

        Raises:
            ForbiddenException: If the actor is not an admin
            InvalidStateException: If the ticket is resolved/closed or unassigned
        """
        async def attempt() -> Tuple[Ticket, List[NotificationIntent]]:
            actor = await self._engine.resolve_actor(actor_id)
            if not actor.is_admin:
                raise ForbiddenException(actor_id, "unassign tickets")

            async with self._uow_factory() as uow:
                ticket = await self._engine.load_ticket(uow, ticket_id)
                self._require_active(ticket)
                if ticket.assignee_id is None:
                    raise InvalidStateException(
                        f"Ticket {ticket.ticket_number} is not assigned",
                        {"ticket_id": ticket.id}
                    )

                previous = ticket.assignee_id
                updated = await uow.tickets.update(
                    ticket.id,
                    {"assignee_id": None, "updated_at": self._clock()},
                    ticket.version
                )
                await uow.activity_log.append(
                    ticket.id, actor.id, f"{_display(actor)} removed the assignee"
                )

                intents = []
                if previous != actor.id:
                    intents.append(self._assignment_changed(ticket, previous, actor))
                return updated, intents

        updated, intents = await self._run(attempt, "unassign")
        logger.info("Ticket unassigned", extra={"ticket_id": ticket_id, "actor_id": actor_id})
        await self._engine.after_commit(updated, actor_id, "unassigned", intents)
        return updated

    # ========== Internals ==========

    async def _run(self, attempt, operation_name: str):
        return await retry_on_conflict(
            lambda: bounded(attempt(), self._settings.operation_timeout_seconds, "persistence"),
            self._settings.conflict_retries,
            operation_name,
        )

    async def _reassign(
        self,
        uow: IUnitOfWork,
        ticket: Ticket,
        actor: User,
        assignee_id: str,
        text: str
    ) -> Tuple[Ticket, List[NotificationIntent]]:
        """Write the new assignee; an open ticket also moves to in_progress."""
        changes: Dict[str, Any] = {"assignee_id": assignee_id}

        if ticket.status == TicketStatus.OPEN:
            updated, intents = await self._engine.apply(
                uow, ticket, actor, TicketStatus.IN_PROGRESS,
                TransitionMetadata(),
                changes=changes,
                announce_requester=False,
                announce_assignee=False,
            )
        else:
            changes["updated_at"] = self._clock()
            updated = await uow.tickets.update(ticket.id, changes, ticket.version)
            intents = []

        await uow.activity_log.append(ticket.id, actor.id, text)
        return updated, intents

    @staticmethod
    def _require_active(ticket: Ticket) -> None:
        if ticket.is_terminal:
            raise InvalidStateException(
                f"Ticket {ticket.ticket_number} is {ticket.status.value}; "
                "assignment can only change while it is active",
                {"ticket_id": ticket.id, "status": ticket.status.value}
            )

    @staticmethod
    def _assignment_changed(ticket: Ticket, previous: str, actor: User) -> NotificationIntent:
        return NotificationIntent(
            recipient_id=previous,
            type=NotificationType.ASSIGNMENT_CHANGED,
            title="Assignment Changed",
            message=f"Ticket {ticket.ticket_number} is no longer assigned to you "
                    f"(changed by {_display(actor)}).",
            ticket_id=ticket.id,
            priority=NotificationPriority.HIGH,
        )
