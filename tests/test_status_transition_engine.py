# tests/test_status_transition_engine.py
from datetime import timedelta

import pytest

from helpdesk_workflow.config import NotificationType, TicketStatus, UserRole
from helpdesk_workflow.core import (
    ConcurrentModificationException,
    ForbiddenException,
    InvalidStateException,
    InvalidTransitionException,
    ResourceNotFoundException,
    ServiceUnavailableException,
    ValidationException,
)
from helpdesk_workflow.notifications.application import NotificationDispatcher
from helpdesk_workflow.shared.events import TicketChanged
from helpdesk_workflow.tickets.application import (
    StatusTransitionEngine, TicketResponse, TransitionMetadata
)
from helpdesk_workflow.tickets.domain import User

from conftest import T0, InMemoryUnitOfWork, InMemoryUserDirectory, make_ticket


def types_for(env, recipient_id):
    return [n.type for n in env.notifications.for_recipient(recipient_id)]


async def test_admin_starts_work_on_open_ticket(env):
    env.store.add_ticket(make_ticket(assignee_id="a-2"))

    ticket = await env.engine.transition("t-1", "adm", "in_progress")

    assert ticket.status == TicketStatus.IN_PROGRESS
    assert ticket.first_response_at == env.clock.now
    assert ticket.version == 1
    assert env.store.tickets["t-1"] == ticket

    log = await env.engine.activity_log("t-1")
    assert len(log) == 1
    assert log[0].actor_id == "adm"
    assert "Open to In Progress" in log[0].text

    assert types_for(env, "u-req") == [NotificationType.STATUS_CHANGED]
    assert isinstance(env.events[-1], TicketChanged)
    assert env.events[-1].version == 1
    assert env.events[-1].status == "in_progress"


async def test_assigned_agent_resolves_with_notes(env):
    env.store.add_ticket(make_ticket(status=TicketStatus.IN_PROGRESS, assignee_id="a-1"))

    ticket = await env.engine.transition(
        "t-1", "a-1", TicketStatus.RESOLVED, {"resolution_notes": "Replaced the fuser"}
    )

    assert ticket.status == TicketStatus.RESOLVED
    assert ticket.resolved_at == env.clock.now
    assert ticket.resolution_notes == "Replaced the fuser"
    # resolving is the path that asks the requester for feedback
    assert types_for(env, "u-req") == [
        NotificationType.STATUS_CHANGED, NotificationType.FEEDBACK_REQUEST
    ]
    # the assignee did it themselves
    assert types_for(env, "a-1") == []

    log = await env.engine.activity_log("t-1")
    assert "Resolution: Replaced the fuser" in log[0].text


async def test_admin_resolve_notifies_assignee(env):
    env.store.add_ticket(make_ticket(status=TicketStatus.IN_PROGRESS, assignee_id="a-1"))

    await env.engine.transition(
        "t-1", "adm", "resolved", TransitionMetadata(resolution_notes="done")
    )

    assert types_for(env, "a-1") == [NotificationType.STATUS_CHANGED]


async def test_resolve_without_notes_is_rejected_without_writes(env):
    env.store.add_ticket(make_ticket(status=TicketStatus.IN_PROGRESS, assignee_id="a-1"))

    with pytest.raises(ValidationException):
        await env.engine.transition("t-1", "a-1", "resolved", {"resolution_notes": "   "})

    assert env.store.tickets["t-1"].version == 0
    assert env.store.activity == []
    assert env.notifications.items == []
    assert env.events == []


async def test_agent_not_assigned_is_forbidden(env):
    env.store.add_ticket(make_ticket(status=TicketStatus.IN_PROGRESS, assignee_id="a-1"))

    with pytest.raises(ForbiddenException):
        await env.engine.transition("t-1", "a-2", "resolved", {"resolution_notes": "x"})


async def test_end_user_and_unknown_actor_are_forbidden(env):
    env.store.add_ticket(make_ticket())

    with pytest.raises(ForbiddenException):
        await env.engine.transition("t-1", "u-req", "in_progress")
    with pytest.raises(ForbiddenException):
        await env.engine.transition("t-1", "ghost", "in_progress")


async def test_agent_cannot_move_back_to_open(env):
    env.store.add_ticket(make_ticket(status=TicketStatus.IN_PROGRESS, assignee_id="a-1"))

    with pytest.raises(ForbiddenException):
        await env.engine.transition("t-1", "a-1", "open")

    ticket = await env.engine.transition("t-1", "adm", "open")
    assert ticket.status == TicketStatus.OPEN
    assert ticket.assignee_id == "a-1"


@pytest.mark.parametrize("source,target", [
    (TicketStatus.RESOLVED, TicketStatus.OPEN),
    (TicketStatus.RESOLVED, TicketStatus.IN_PROGRESS),
    (TicketStatus.CLOSED, TicketStatus.OPEN),
    (TicketStatus.CLOSED, TicketStatus.RESOLVED),
    (TicketStatus.OPEN, TicketStatus.RESOLVED),
    (TicketStatus.OPEN, TicketStatus.OPEN),
])
async def test_undeclared_edges_are_invalid(env, source, target):
    resolved_at = T0 if source in (TicketStatus.RESOLVED, TicketStatus.CLOSED) else None
    env.store.add_ticket(make_ticket(status=source, resolved_at=resolved_at))

    with pytest.raises(InvalidTransitionException):
        await env.engine.transition("t-1", "adm", target, {"resolution_notes": "x"})

    assert env.store.tickets["t-1"].status == source


async def test_unknown_ticket_and_status(env):
    with pytest.raises(ResourceNotFoundException):
        await env.engine.transition("missing", "adm", "in_progress")

    env.store.add_ticket(make_ticket())
    with pytest.raises(ValidationException):
        await env.engine.transition("t-1", "adm", "escalated")


async def test_close_keeps_resolution_time(env):
    resolved_at = T0 + timedelta(minutes=30)
    env.store.add_ticket(make_ticket(
        status=TicketStatus.RESOLVED, assignee_id="a-1", resolved_at=resolved_at
    ))

    ticket = await env.engine.transition("t-1", "a-1", "closed")

    assert ticket.status == TicketStatus.CLOSED
    assert ticket.closed_at == env.clock.now
    assert ticket.resolved_at == resolved_at


async def test_close_expired_acts_as_system(env):
    env.store.add_ticket(make_ticket(
        id="t-old", ticket_number="TCK-1", status=TicketStatus.RESOLVED, resolved_at=T0
    ))
    env.store.add_ticket(make_ticket(
        id="t-new", ticket_number="TCK-2", status=TicketStatus.RESOLVED,
        resolved_at=T0 + timedelta(hours=40)
    ))
    env.clock.advance(hours=50)

    closed = await env.engine.close_expired()

    assert [t.id for t in closed] == ["t-old"]
    assert env.store.tickets["t-old"].status == TicketStatus.CLOSED
    assert env.store.tickets["t-new"].status == TicketStatus.RESOLVED
    log = await env.engine.activity_log("t-old")
    assert log[0].actor_id == "system"
    assert "automatically" in log[0].text


async def test_notification_failure_does_not_fail_transition(env):
    env.store.add_ticket(make_ticket(assignee_id="a-2"))
    env.notifications.fail = True

    ticket = await env.engine.transition("t-1", "adm", "in_progress")

    assert ticket.status == TicketStatus.IN_PROGRESS
    assert env.notifications.items == []


async def test_slow_notification_store_does_not_fail_transition(env):
    env.store.add_ticket(make_ticket(assignee_id="a-2"))
    env.notifications.delay = 2.0

    ticket = await env.engine.transition("t-1", "adm", "in_progress")

    assert ticket.status == TicketStatus.IN_PROGRESS
    assert env.notifications.items == []


async def test_slow_persistence_is_unavailable_and_leaves_no_trace(env):
    env.store.add_ticket(make_ticket(assignee_id="a-2"))
    env.store.delay = 2.0

    with pytest.raises(ServiceUnavailableException):
        await env.engine.transition("t-1", "adm", "in_progress")

    assert env.store.tickets["t-1"].status == TicketStatus.OPEN
    assert env.notifications.items == []


async def test_available_targets(env):
    ticket = make_ticket(status=TicketStatus.IN_PROGRESS, assignee_id="a-1")

    agent = User(id="a-1", role=UserRole.AGENT)
    admin = User(id="adm", role=UserRole.ADMIN)
    assert env.engine.available_targets(ticket, agent) == [TicketStatus.RESOLVED]
    assert env.engine.available_targets(ticket, admin) == [TicketStatus.OPEN, TicketStatus.RESOLVED]
    assert env.engine.available_targets(make_ticket(), admin) == []
    assert env.engine.available_targets(make_ticket(assignee_id="a-1"), admin) == [
        TicketStatus.IN_PROGRESS
    ]


async def test_ticket_response_dto(env):
    env.store.add_ticket(make_ticket())
    ticket = await env.engine.get_ticket("t-1")

    response = TicketResponse.from_domain(ticket)
    assert response.status == "open"
    assert response.priority == "high"
    assert response.version == 0


async def test_lost_race_is_retried_from_fresh_read(env):
    env.store.add_ticket(make_ticket(assignee_id="a-2"))
    env.store.interference["t-1"] = 1

    ticket = await env.engine.transition("t-1", "adm", "in_progress")

    assert ticket.status == TicketStatus.IN_PROGRESS
    assert ticket.version == 2
    assert env.store.rollbacks == 1
    # the losing attempt left nothing behind
    assert len(await env.engine.activity_log("t-1")) == 1
    assert len(env.notifications.for_recipient("u-req")) == 1


async def test_conflict_surfaces_when_retry_also_loses(env):
    env.store.add_ticket(make_ticket(assignee_id="a-2"))
    env.store.interference["t-1"] = 2

    with pytest.raises(ConcurrentModificationException):
        await env.engine.transition("t-1", "adm", "in_progress")

    assert env.store.tickets["t-1"].status == TicketStatus.OPEN
    assert env.store.activity == []
    assert env.events == []


async def test_unassigned_ticket_cannot_start(env):
    env.store.add_ticket(make_ticket())

    with pytest.raises(InvalidStateException):
        await env.engine.transition("t-1", "adm", "in_progress")

    assert env.store.tickets["t-1"].status == TicketStatus.OPEN
    assert env.store.activity == []
    assert env.notifications.items == []


class BrokenDirectory(InMemoryUserDirectory):
    async def get_user(self, user_id):
        raise RuntimeError("identity service exploded")


async def test_recipient_lookup_failure_does_not_fail_resolve(
    store, users, tracker, notifications, feed, settings, clock
):
    dispatcher = NotificationDispatcher(notifications, BrokenDirectory([]), settings, clock)
    engine = StatusTransitionEngine(
        lambda: InMemoryUnitOfWork(store), users, tracker, dispatcher, feed, settings, clock
    )
    store.add_ticket(make_ticket(status=TicketStatus.IN_PROGRESS, assignee_id="a-1"))

    ticket = await engine.transition("t-1", "a-1", "resolved", {"resolution_notes": "fixed"})

    assert ticket.status == TicketStatus.RESOLVED
    assert store.tickets["t-1"].status == TicketStatus.RESOLVED
    assert notifications.items == []
