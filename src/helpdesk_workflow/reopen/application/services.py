"""
Reopen Request Application Services
===================================

``ReopenRequestWorkflow`` is the one sanctioned route from resolved/closed
back to an active status.

An approval writes the request and reopens the ticket in a single unit of
work: if the ticket cannot be reopened the review is rolled back as well,
so a request is never left approved over a ticket that stayed closed.
"""

from datetime import datetime, timezone
from typing import Callable, List, Optional, Tuple, Union

from helpdesk_workflow.config import (
    Settings, ReopenStatus, TicketStatus, NotificationType, NotificationPriority,
    get_settings
)
from helpdesk_workflow.core import (
    AlreadyReviewedException,
    ApplicationException,
    ForbiddenException,
    InvalidStateException,
    ResourceNotFoundException,
    ValidationException,
)
from helpdesk_workflow.core.concurrency import bounded, retry_on_conflict
from helpdesk_workflow.notifications.application import NotificationDispatcher
from helpdesk_workflow.notifications.domain import NotificationIntent
from helpdesk_workflow.reopen.domain import ReopenRequest
from helpdesk_workflow.shared.application import IUnitOfWork
from helpdesk_workflow.shared.events import ReopenRequestChanged
from helpdesk_workflow.shared.infrastructure.logging import get_logger
from helpdesk_workflow.tickets.application import StatusTransitionEngine, TransitionMetadata
from helpdesk_workflow.tickets.domain import Ticket

logger = get_logger(__name__)


class ReopenRequestWorkflow:
    """Create and review reopen requests."""

    def __init__(
        self,
        uow_factory: Callable[[], IUnitOfWork],
        engine: StatusTransitionEngine,
        dispatcher: NotificationDispatcher,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self._uow_factory = uow_factory
        self._engine = engine
        self._dispatcher = dispatcher
        self._settings = settings or get_settings()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def create_request(
        self,
        ticket_id: str,
        requester_id: str,
        reason: str
    ) -> ReopenRequest:
        """
        Ask for a resolved or closed ticket to be reopened.

        Raises:
            ValidationException: If the reason is empty
            ResourceNotFoundException: If the ticket does not exist
            ForbiddenException: If the caller is not the ticket's requester
            InvalidStateException: If the ticket is active or already has a
                pending request
        """
        reason = (reason or "").strip()
        if not reason:
            raise ValidationException(
                "A reason is required to request a reopen",
                {"ticket_id": ticket_id}
            )

        async def attempt() -> Tuple[ReopenRequest, Ticket]:
            requester = await self._engine.resolve_actor(requester_id)

            async with self._uow_factory() as uow:
                ticket = await self._engine.load_ticket(uow, ticket_id)
                if ticket.requester_id != requester.id:
                    raise ForbiddenException(
                        requester_id, f"request a reopen of ticket {ticket.ticket_number}"
                    )
                await self._require_reopenable(uow, ticket)

                # A concurrent insert for the same ticket violates the pending
                # uniqueness and surfaces as a conflict; the retry then sees it.
                request = await uow.reopen_requests.insert(ReopenRequest(
                    ticket_id=ticket.id,
                    requester_id=requester.id,
                    reason=reason,
                    created_at=self._clock(),
                ))
                await uow.activity_log.append(
                    ticket.id, requester.id, f"Reopen requested\nReason: {reason}"
                )
                return request, ticket

        request, ticket = await self._run(attempt, "create_reopen_request")
        logger.info(
            "Reopen request created",
            extra={"request_id": request.id, "ticket_id": ticket_id, "requester_id": requester_id}
        )

        await self._publish(request, requester_id, "reopen_requested")
        await self._dispatcher.dispatch(await self._staff_intents(ticket, reason))
        return request

    async def review(
        self,
        request_id: str,
        reviewer_id: str,
        decision: Union[ReopenStatus, str],
        comment: Optional[str] = None
    ) -> ReopenRequest:
        """
        Approve or reject a pending request.

        Approval reopens the ticket to ``open`` in the same transaction.
        Either way the original requester receives one ``status_changed``
        notification.

        Raises:
            ValidationException: If the decision is not approved/rejected
            ForbiddenException: If the reviewer is not an agent or admin
            ResourceNotFoundException: If the request does not exist
            AlreadyReviewedException: If the request already left pending
        """
        decision = self._coerce_decision(decision)
        comment = (comment or "").strip() or None

        async def attempt() -> Tuple[ReopenRequest, Optional[Ticket], List[NotificationIntent]]:
            reviewer = await self._engine.resolve_actor(reviewer_id)
            if not reviewer.is_staff:
                raise ForbiddenException(reviewer_id, "review reopen requests")

            async with self._uow_factory() as uow:
                request = await uow.reopen_requests.get_by_id(request_id)
                if request is None:
                    raise ResourceNotFoundException("ReopenRequest", request_id)
                if not request.is_pending:
                    raise AlreadyReviewedException(request.id, request.status.value)

                reviewed = await uow.reopen_requests.update(
                    request.id,
                    {
                        "status": decision,
                        "reviewed_at": self._clock(),
                        "reviewer_id": reviewer.id,
                        "reviewer_comment": comment,
                    },
                    request.version
                )

                ticket = await self._engine.load_ticket(uow, request.ticket_id)
                intents: List[NotificationIntent] = []
                if decision == ReopenStatus.APPROVED:
                    summary = f"Reopen request approved\nReason: {request.reason}"
                    if comment:
                        summary += f"\nReviewer comment: {comment}"
                    ticket, intents = await self._engine.apply(
                        uow, ticket, reviewer, TicketStatus.OPEN,
                        TransitionMetadata(comment=summary),
                        via_reopen=True,
                        announce_requester=False,
                    )
                else:
                    text = "Reopen request rejected"
                    if comment:
                        text += f"\nReviewer comment: {comment}"
                    await uow.activity_log.append(ticket.id, reviewer.id, text)

                intents.insert(0, self._decision_intent(reviewed, ticket, comment))
                return reviewed, ticket if decision == ReopenStatus.APPROVED else None, intents

        reviewed, reopened, intents = await self._run(attempt, "review_reopen_request")
        logger.info(
            "Reopen request reviewed",
            extra={
                "request_id": request_id,
                "reviewer_id": reviewer_id,
                "decision": decision.value,
                "ticket_id": reviewed.ticket_id,
            }
        )

        await self._publish(reviewed, reviewer_id, f"reopen_{decision.value}")
        if reopened is not None:
            await self._engine.after_commit(reopened, reviewer_id, "reopened", intents)
        else:
            await self._dispatcher.dispatch(intents)
        return reviewed

    async def get_request(self, request_id: str) -> ReopenRequest:
        async def load() -> ReopenRequest:
            async with self._uow_factory() as uow:
                request = await uow.reopen_requests.get_by_id(request_id)
                if request is None:
                    raise ResourceNotFoundException("ReopenRequest", request_id)
                return request

        return await bounded(load(), self._settings.operation_timeout_seconds, "persistence")

    async def list_requests(
        self,
        filters: Optional[dict] = None,
        limit: int = 100,
        offset: int = 0
    ) -> List[ReopenRequest]:
        """Requests newest first, filtered by ticket_id, status and requester_id."""
        async def load() -> List[ReopenRequest]:
            async with self._uow_factory() as uow:
                return await uow.reopen_requests.list(filters or {}, limit, offset)

        return await bounded(load(), self._settings.operation_timeout_seconds, "persistence")

    async def can_request_reopen(self, ticket_id: str, user_id: str) -> bool:
        """Whether ``create_request`` would currently accept ``user_id``."""
        async def check() -> bool:
            async with self._uow_factory() as uow:
                ticket = await self._engine.load_ticket(uow, ticket_id)
                if ticket.requester_id != user_id:
                    return False
                await self._require_reopenable(uow, ticket)
                return True

        try:
            return await bounded(check(), self._settings.operation_timeout_seconds, "persistence")
        except (ResourceNotFoundException, InvalidStateException):
            return False

    # ========== Internals ==========

    async def _run(self, attempt, operation_name: str):
        return await retry_on_conflict(
            lambda: bounded(attempt(), self._settings.operation_timeout_seconds, "persistence"),
            self._settings.conflict_retries,
            operation_name,
        )

    @staticmethod
    async def _require_reopenable(uow: IUnitOfWork, ticket: Ticket) -> None:
        if not ticket.is_terminal:
            raise InvalidStateException(
                f"Ticket {ticket.ticket_number} is {ticket.status.value}; "
                "only resolved or closed tickets can be reopened",
                {"ticket_id": ticket.id, "status": ticket.status.value}
            )
        pending = await uow.reopen_requests.get_pending_for_ticket(ticket.id)
        if pending is not None:
            raise InvalidStateException(
                f"Ticket {ticket.ticket_number} already has a pending reopen request",
                {"ticket_id": ticket.id, "request_id": pending.id}
            )

    async def _publish(self, request: ReopenRequest, actor_id: str, kind: str) -> None:
        await self._engine.change_feed.publish(
            ReopenRequestChanged(
                entity_id=request.id,
                version=request.version,
                kind=kind,
                actor_id=actor_id,
                occurred_at=self._clock(),
                ticket_id=request.ticket_id,
                status=request.status.value,
            )
        )

    async def _staff_intents(self, ticket: Ticket, reason: str) -> List[NotificationIntent]:
        try:
            staff = await self._engine.list_staff()
        except ApplicationException as e:
            logger.warning(
                "Staff lookup failed, reopen request not announced",
                extra={"ticket_id": ticket.id, "error": e.message}
            )
            return []

        return [
            NotificationIntent(
                recipient_id=member.id,
                type=NotificationType.TICKET_UPDATED,
                title="Reopen Requested",
                message=f"The requester asked to reopen ticket {ticket.ticket_number}: {reason}",
                ticket_id=ticket.id,
                priority=NotificationPriority.MEDIUM,
            )
            for member in staff
        ]

    @staticmethod
    def _decision_intent(
        request: ReopenRequest,
        ticket: Ticket,
        comment: Optional[str]
    ) -> NotificationIntent:
        if request.status == ReopenStatus.APPROVED:
            title = "Reopen Request Approved"
            message = (
                f"Your request to reopen ticket {ticket.ticket_number} was approved. "
                "The ticket is open again."
            )
        else:
            title = "Reopen Request Rejected"
            message = (
                f"Your request to reopen ticket {ticket.ticket_number} was rejected. "
                f"The ticket stays {ticket.status.value}."
            )
        if comment:
            message += f" Comment: {comment}"

        return NotificationIntent(
            recipient_id=request.requester_id,
            type=NotificationType.STATUS_CHANGED,
            title=title,
            message=message,
            ticket_id=ticket.id,
            priority=NotificationPriority.MEDIUM,
        )

    @staticmethod
    def _coerce_decision(decision: Union[ReopenStatus, str]) -> ReopenStatus:
        try:
            value = ReopenStatus(decision)
        except ValueError:
            value = None
        if value not in (ReopenStatus.APPROVED, ReopenStatus.REJECTED):
            raise ValidationException(
                f"Decision must be 'approved' or 'rejected', got '{decision}'",
                {"decision": str(decision)}
            )
        return value
