"""
Ticket Application Services
===========================

``StatusTransitionEngine`` is the only writer of ticket status.

Each operation is one read-validate-write cycle inside a unit of work:
the ticket is read, the edge is checked against the declared state
machine, and the write is conditioned on the version that was read.
Notifications and change events go out only after the commit.
"""

from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from helpdesk_workflow.config import (
    Settings, TicketStatus, UserRole, NotificationType, NotificationPriority,
    SYSTEM_ACTOR_ID, get_settings
)
from helpdesk_workflow.core import (
    ForbiddenException,
    InvalidStateException,
    InvalidTransitionException,
    ResourceNotFoundException,
    ValidationException,
)
from helpdesk_workflow.core.concurrency import bounded, retry_on_conflict
from helpdesk_workflow.notifications.application import NotificationDispatcher
from helpdesk_workflow.notifications.domain import NotificationIntent
from helpdesk_workflow.shared.application import (
    IUnitOfWork, IUserDirectory, SYSTEM_USER, User
)
from helpdesk_workflow.shared.events import ChangeFeed, TicketChanged
from helpdesk_workflow.shared.infrastructure.logging import get_logger
from helpdesk_workflow.sla.application import SLADeadlineTracker
from helpdesk_workflow.tickets.application.dto import TransitionMetadata
from helpdesk_workflow.tickets.domain import (
    ActivityLogEntry, Edge, Ticket, actor_may_take, allowed_targets, find_edge
)

logger = get_logger(__name__)

MetadataInput = Union[TransitionMetadata, Dict[str, Any], None]

_STATUS_LABELS = {
    TicketStatus.OPEN: "Open",
    TicketStatus.IN_PROGRESS: "In Progress",
    TicketStatus.RESOLVED: "Resolved",
    TicketStatus.CLOSED: "Closed",
}


def status_label(status: TicketStatus) -> str:
    return _STATUS_LABELS[status]


class StatusTransitionEngine:
    """
    Authoritative state machine for ticket status.

    Other workflow services (assignment, reopen review) call ``apply`` inside
    their own unit of work so that their writes and the status change commit
    together.
    """

    def __init__(
        self,
        uow_factory: Callable[[], IUnitOfWork],
        user_directory: IUserDirectory,
        tracker: SLADeadlineTracker,
        dispatcher: NotificationDispatcher,
        change_feed: Optional[ChangeFeed] = None,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self._uow_factory = uow_factory
        self._users = user_directory
        self._tracker = tracker
        self._dispatcher = dispatcher
        self._feed = change_feed or ChangeFeed()
        self._settings = settings or get_settings()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @property
    def change_feed(self) -> ChangeFeed:
        return self._feed

    # ========== Public operations ==========

    async def transition(
        self,
        ticket_id: str,
        actor_id: str,
        target_status: Union[TicketStatus, str],
        metadata: MetadataInput = None
    ) -> Ticket:
        """
        Move a ticket along a direct edge of the state machine.

        Raises:
            ResourceNotFoundException: If the ticket does not exist
            ForbiddenException: If the actor lacks role or ownership
            InvalidTransitionException: If the edge is not declared
            ValidationException: If resolving without resolution notes
            ConcurrentModificationException: If the retry also conflicted
            ServiceUnavailableException: If persistence timed out
        """
        target = self._coerce_status(target_status)
        meta = self._coerce_metadata(metadata)

        async def attempt() -> Tuple[Ticket, List[NotificationIntent]]:
            actor = await self.resolve_actor(actor_id)
            async with self._uow_factory() as uow:
                ticket = await self.load_ticket(uow, ticket_id)
                return await self.apply(uow, ticket, actor, target, meta)

        updated, intents = await retry_on_conflict(
            lambda: bounded(attempt(), self._settings.operation_timeout_seconds, "persistence"),
            self._settings.conflict_retries,
            "transition",
        )

        logger.info(
            "Ticket status changed",
            extra={
                "ticket_id": ticket_id,
                "actor_id": actor_id,
                "status": updated.status.value,
                "version": updated.version,
            }
        )
        await self.after_commit(updated, actor_id, "status_changed", intents)
        return updated

    async def close_expired(self, as_of: Optional[datetime] = None) -> List[Ticket]:
        """
        Close resolved tickets whose visibility window has passed.

        Runs as the system actor, one unit of work per ticket. A ticket that
        changed in the meantime (reopened, closed by someone else) is skipped.
        """
        as_of = as_of or self._clock()
        cutoff = as_of - timedelta(hours=self._settings.auto_close_after_hours)

        async def load() -> List[Ticket]:
            async with self._uow_factory() as uow:
                return await uow.tickets.list({"status": TicketStatus.RESOLVED}, limit=10_000)

        candidates = await bounded(load(), self._settings.operation_timeout_seconds, "persistence")
        expired = [t for t in candidates if t.resolved_at is not None and t.resolved_at <= cutoff]

        closed: List[Ticket] = []
        for ticket in expired:
            try:
                closed.append(await self._close_one(ticket.id))
            except (InvalidTransitionException, ResourceNotFoundException) as e:
                logger.info(
                    "Auto-close skipped",
                    extra={"ticket_id": ticket.id, "reason": e.message}
                )

        logger.info(
            "Auto-close completed",
            extra={"candidates": len(expired), "closed": len(closed)}
        )
        return closed

    async def get_ticket(self, ticket_id: str) -> Ticket:
        async def load() -> Ticket:
            async with self._uow_factory() as uow:
                return await self.load_ticket(uow, ticket_id)

        return await bounded(load(), self._settings.operation_timeout_seconds, "persistence")

    async def activity_log(self, ticket_id: str) -> List[ActivityLogEntry]:
        async def load() -> List[ActivityLogEntry]:
            async with self._uow_factory() as uow:
                await self.load_ticket(uow, ticket_id)
                return await uow.activity_log.list_for_ticket(ticket_id)

        return await bounded(load(), self._settings.operation_timeout_seconds, "persistence")

    def available_targets(self, ticket: Ticket, actor: User) -> List[TicketStatus]:
        """Direct targets ``actor`` may move ``ticket`` to right now."""
        targets = []
        for target in allowed_targets(ticket.status):
            edge = find_edge(ticket.status, target)
            if edge is None or not actor_may_take(edge, ticket, actor):
                continue
            if edge.requires_assignee and ticket.assignee_id is None:
                continue
            targets.append(target)
        return sorted(targets, key=lambda s: list(TicketStatus).index(s))

    # ========== Building blocks for the other workflow services ==========

    async def find_user(self, user_id: str) -> Optional[User]:
        if user_id == SYSTEM_ACTOR_ID:
            return SYSTEM_USER

        return await bounded(
            self._users.get_user(user_id),
            self._settings.operation_timeout_seconds,
            "identity"
        )

    async def list_staff(self) -> List[User]:
        return await bounded(
            self._users.list_by_roles([UserRole.AGENT, UserRole.ADMIN]),
            self._settings.operation_timeout_seconds,
            "identity"
        )

    async def resolve_actor(self, actor_id: str) -> User:
        """Look up the acting user; unknown actors are not allowed to act."""
        user = await self.find_user(actor_id)
        if user is None:
            raise ForbiddenException(actor_id, "act on tickets (unknown user)")
        return user

    @staticmethod
    async def load_ticket(uow: IUnitOfWork, ticket_id: str) -> Ticket:
        ticket = await uow.tickets.get_by_id(ticket_id)
        if ticket is None:
            raise ResourceNotFoundException("Ticket", ticket_id)
        return ticket

    def authorize(
        self,
        ticket: Ticket,
        actor: User,
        target: TicketStatus,
        metadata: TransitionMetadata,
        via_reopen: bool = False,
        changes: Optional[Dict[str, Any]] = None
    ) -> Edge:
        """
        Validate a status change against ``ticket`` as read.

        ``changes`` are written together with the status (e.g. a new
        assignee); an agent qualifies if they are the assignee before or
        after them.
        """
        snapshot = replace(ticket, **changes) if changes else ticket

        if not self._may_change_status(ticket, snapshot, actor, via_reopen):
            raise ForbiddenException(
                actor.id, f"change the status of ticket {ticket.ticket_number}"
            )

        edge = find_edge(ticket.status, target, via_reopen)
        if edge is None:
            raise InvalidTransitionException(ticket.id, ticket.status.value, target.value)

        if not (actor_may_take(edge, ticket, actor) or actor_may_take(edge, snapshot, actor)):
            raise ForbiddenException(
                actor.id,
                f"move ticket {ticket.ticket_number} from "
                f"'{ticket.status.value}' to '{target.value}'"
            )

        if edge.requires_assignee and snapshot.assignee_id is None:
            raise InvalidStateException(
                f"Ticket {ticket.ticket_number} must be assigned before work starts",
                {"ticket_id": ticket.id, "target": target.value}
            )

        if edge.requires_resolution_notes and not metadata.resolution_notes:
            raise ValidationException(
                "Resolution notes are required to resolve a ticket",
                {"ticket_id": ticket.id}
            )
        return edge

    async def apply(
        self,
        uow: IUnitOfWork,
        ticket: Ticket,
        actor: User,
        target: TicketStatus,
        metadata: Optional[TransitionMetadata] = None,
        via_reopen: bool = False,
        changes: Optional[Dict[str, Any]] = None,
        announce_requester: bool = True,
        announce_assignee: bool = True
    ) -> Tuple[Ticket, List[NotificationIntent]]:
        """
        Validate and write a status change inside ``uow``.

        Returns the updated ticket and the notifications to send once the
        caller's unit of work has committed.
        """
        metadata = metadata or TransitionMetadata()
        edge = self.authorize(ticket, actor, target, metadata, via_reopen, changes)

        now = self._clock()
        patch: Dict[str, Any] = {"status": target, "updated_at": now}
        if changes:
            patch.update(changes)
        patch.update(self._tracker.lifecycle_stamps(ticket, target, now, via_reopen))
        if edge.requires_resolution_notes:
            patch["resolution_notes"] = metadata.resolution_notes

        updated = await uow.tickets.update(ticket.id, patch, ticket.version)
        await uow.activity_log.append(
            ticket.id, actor.id, self._describe(ticket.status, target, metadata)
        )

        intents = self._announcements(
            updated, actor, ticket.status, announce_requester, announce_assignee
        )
        return updated, intents

    async def after_commit(
        self,
        ticket: Ticket,
        actor_id: str,
        kind: str,
        intents: List[NotificationIntent]
    ) -> None:
        """Publish the change event and send the collected notifications."""
        await self._feed.publish(
            TicketChanged(
                entity_id=ticket.id,
                version=ticket.version,
                kind=kind,
                actor_id=actor_id,
                occurred_at=self._clock(),
                status=ticket.status.value,
                assignee_id=ticket.assignee_id,
            )
        )
        await self._dispatcher.dispatch(intents)

    # ========== Internals ==========

    async def _close_one(self, ticket_id: str) -> Ticket:
        async def attempt() -> Tuple[Ticket, List[NotificationIntent]]:
            async with self._uow_factory() as uow:
                ticket = await self.load_ticket(uow, ticket_id)
                return await self.apply(
                    uow, ticket, SYSTEM_USER, TicketStatus.CLOSED,
                    TransitionMetadata(comment="Closed automatically after the resolution window"),
                    announce_assignee=False,
                )

        updated, intents = await retry_on_conflict(
            lambda: bounded(attempt(), self._settings.operation_timeout_seconds, "persistence"),
            self._settings.conflict_retries,
            "auto_close",
        )
        logger.info("Ticket closed automatically", extra={"ticket_id": ticket_id})
        await self.after_commit(updated, SYSTEM_ACTOR_ID, "auto_closed", intents)
        return updated

    @staticmethod
    def _may_change_status(
        ticket: Ticket,
        snapshot: Ticket,
        actor: User,
        via_reopen: bool
    ) -> bool:
        if actor.role in (UserRole.ADMIN, UserRole.SYSTEM):
            return True
        if actor.role != UserRole.AGENT:
            return False
        return via_reopen or ticket.is_assigned_to(actor.id) or snapshot.is_assigned_to(actor.id)

    @staticmethod
    def _describe(
        source: TicketStatus,
        target: TicketStatus,
        metadata: TransitionMetadata
    ) -> str:
        text = f"Status changed from {status_label(source)} to {status_label(target)}"
        if target == TicketStatus.RESOLVED and metadata.resolution_notes:
            text += f"\nResolution: {metadata.resolution_notes}"
        if metadata.comment:
            text += f"\n{metadata.comment}"
        return text

    @staticmethod
    def _announcements(
        ticket: Ticket,
        actor: User,
        previous: TicketStatus,
        announce_requester: bool,
        announce_assignee: bool
    ) -> List[NotificationIntent]:
        intents: List[NotificationIntent] = []
        label = status_label(ticket.status)

        if announce_requester and ticket.requester_id != actor.id:
            intents.append(NotificationIntent(
                recipient_id=ticket.requester_id,
                type=NotificationType.STATUS_CHANGED,
                title=f"Ticket {label}",
                message=f"Your ticket {ticket.ticket_number} moved from "
                        f"{status_label(previous)} to {label}.",
                ticket_id=ticket.id,
                priority=NotificationPriority.MEDIUM,
            ))
            if ticket.status == TicketStatus.RESOLVED:
                intents.append(NotificationIntent(
                    recipient_id=ticket.requester_id,
                    type=NotificationType.FEEDBACK_REQUEST,
                    title="How did we do?",
                    message=f"Ticket {ticket.ticket_number} was resolved. "
                            "Please rate the support you received.",
                    ticket_id=ticket.id,
                    priority=NotificationPriority.LOW,
                ))

        if (announce_assignee and ticket.assignee_id
                and ticket.assignee_id not in (actor.id, ticket.requester_id)):
            intents.append(NotificationIntent(
                recipient_id=ticket.assignee_id,
                type=NotificationType.STATUS_CHANGED,
                title=f"Ticket {label}",
                message=f"Ticket {ticket.ticket_number} moved from "
                        f"{status_label(previous)} to {label}.",
                ticket_id=ticket.id,
                priority=NotificationPriority.MEDIUM,
            ))
        return intents

    @staticmethod
    def _coerce_status(value: Union[TicketStatus, str]) -> TicketStatus:
        try:
            return TicketStatus(value)
        except ValueError:
            raise ValidationException(
                f"Unknown ticket status '{value}'",
                {"status": str(value)}
            ) from None

    @staticmethod
    def _coerce_metadata(metadata: MetadataInput) -> TransitionMetadata:
        if metadata is None:
            return TransitionMetadata()
        if isinstance(metadata, TransitionMetadata):
            return metadata
        return TransitionMetadata(**metadata)
