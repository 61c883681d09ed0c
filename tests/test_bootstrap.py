# tests/test_bootstrap.py
import pytest

from helpdesk_workflow.bootstrap import HelpdeskWorkflow
from helpdesk_workflow.config import NotificationType, ReopenStatus, Settings, TicketStatus
from helpdesk_workflow.core import InvalidStateException
from helpdesk_workflow.infrastructure.database import get_session_context, get_session_maker
from helpdesk_workflow.infrastructure.database.unit_of_work import SQLAlchemyUnitOfWork
from helpdesk_workflow.tickets.infrastructure.models import UserModel

from conftest import make_ticket


@pytest.fixture
async def workflow(tmp_path, root_handlers):
    settings = Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'helpdesk.db'}",
        sla_config_path=tmp_path / "sla_policy.yaml",
    )
    workflow = HelpdeskWorkflow(settings)
    await workflow.start(create_schema=True, watch_policy=False)

    async with get_session_context() as session:
        session.add_all([
            UserModel(id="u-req", role="user", full_name="Rita Requester"),
            UserModel(id="a-1", role="agent", full_name="Ann Agent"),
            UserModel(id="a-2", role="agent", full_name="Bob Agent"),
            UserModel(id="adm", role="admin", full_name="Ada Admin"),
        ])
    async with SQLAlchemyUnitOfWork(get_session_maker()) as uow:
        await uow.tickets.add(make_ticket(id="t-2", ticket_number="TCK-0002"))

    yield workflow
    await workflow.stop()


async def test_ticket_lifecycle_against_sqlite(workflow):
    events = []
    workflow.change_feed.subscribe(events.append)

    ticket = await workflow.assignment.self_assign("t-2", "a-1")
    assert ticket.status == TicketStatus.IN_PROGRESS
    assert ticket.assignee_id == "a-1"
    with pytest.raises(InvalidStateException):
        await workflow.assignment.self_assign("t-2", "a-2")

    ticket = await workflow.engine.transition(
        "t-2", "a-1", "resolved", {"resolution_notes": "Cleaned the rollers"}
    )
    assert ticket.status == TicketStatus.RESOLVED
    assert ticket.version == 2

    request = await workflow.reopen.create_request("t-2", "u-req", "issue recurred")
    reviewed = await workflow.reopen.review(request.id, "adm", "approved")
    assert reviewed.status == ReopenStatus.APPROVED

    ticket = await workflow.engine.get_ticket("t-2")
    assert ticket.status == TicketStatus.OPEN
    assert ticket.resolution_notes is None
    assert ticket.reopened_at is not None

    received = await workflow.dispatcher.list_for_recipient("u-req")
    assert sorted(n.type.value for n in received) == sorted([
        NotificationType.STATUS_CHANGED.value,
        NotificationType.FEEDBACK_REQUEST.value,
        NotificationType.STATUS_CHANGED.value,
    ])
    staff_notices = await workflow.dispatcher.list_for_recipient("a-2")
    assert [n.type for n in staff_notices] == [NotificationType.TICKET_UPDATED]

    log = await workflow.engine.activity_log("t-2")
    assert len(log) == 5
    assert [e.kind for e in events] == [
        "assigned", "status_changed", "reopen_requested", "reopen_approved", "reopened"
    ]


async def test_sla_sweep_and_auto_close_run_against_sqlite(workflow):
    summary = await workflow.escalation.check_warnings()
    assert summary["tickets_evaluated"] == 1

    assert await workflow.engine.close_expired() == []


async def test_start_is_idempotent(workflow):
    engine = workflow.engine
    await workflow.start()
    assert workflow.engine is engine
