# tests/test_notifications.py
import pytest

from helpdesk_workflow.config import NotificationPriority, NotificationType
from helpdesk_workflow.core import (
    ForbiddenException,
    RepositoryException,
    ResourceNotFoundException,
    ServiceUnavailableException,
)
from helpdesk_workflow.notifications.domain import NotificationIntent


async def test_notify_stores_one_record(dispatcher, notifications, clock):
    stored = await dispatcher.notify(
        "u-req", NotificationType.STATUS_CHANGED, "Ticket Resolved", "All done",
        ticket_id="t-1", priority=NotificationPriority.LOW
    )

    assert stored.id == "n-1"
    assert stored.created_at == clock.now
    assert stored.read is False
    assert notifications.items == [stored]
    assert stored.to_dict()["type"] == "status_changed"


@pytest.mark.parametrize("recipient", [None, "", "ghost"])
async def test_missing_or_unknown_recipient_is_skipped(dispatcher, notifications, recipient):
    result = await dispatcher.notify(
        recipient, NotificationType.TICKET_UPDATED, "Hello", "Anyone there?"
    )

    assert result is None
    assert notifications.items == []


async def test_notify_surfaces_store_failures(dispatcher, notifications):
    notifications.fail = True
    with pytest.raises(RepositoryException):
        await dispatcher.notify("u-req", NotificationType.TICKET_UPDATED, "t", "m")

    notifications.fail = False
    notifications.delay = 1.0
    with pytest.raises(ServiceUnavailableException):
        await dispatcher.notify("u-req", NotificationType.TICKET_UPDATED, "t", "m")


async def test_best_effort_swallows_failures(dispatcher, notifications):
    notifications.fail = True

    result = await dispatcher.notify_best_effort(
        "u-req", NotificationType.TICKET_UPDATED, "t", "m"
    )

    assert result is None


async def test_dispatch_counts_stored_intents(dispatcher, notifications):
    intents = [
        NotificationIntent("u-req", NotificationType.STATUS_CHANGED, "a", "b", "t-1"),
        NotificationIntent("ghost", NotificationType.STATUS_CHANGED, "a", "b", "t-1"),
        NotificationIntent(
            "a-1", NotificationType.TICKET_ASSIGNED, "c", "d", "t-1",
            priority=NotificationPriority.HIGH
        ),
    ]

    assert await dispatcher.dispatch(intents) == 2
    assert [n.recipient_id for n in notifications.items] == ["u-req", "a-1"]
    assert notifications.items[1].priority == NotificationPriority.HIGH


async def test_dispatch_of_nothing(dispatcher):
    assert await dispatcher.dispatch([]) == 0


async def test_mark_read_by_recipient_only(dispatcher):
    stored = await dispatcher.notify("u-req", NotificationType.TICKET_UPDATED, "t", "m")

    with pytest.raises(ForbiddenException):
        await dispatcher.mark_read(stored.id, "u-other")
    assert stored.read is False

    first = await dispatcher.mark_read(stored.id, "u-req")
    again = await dispatcher.mark_read(stored.id, "u-req")
    assert first.read and again.read

    with pytest.raises(ResourceNotFoundException):
        await dispatcher.mark_read("n-404", "u-req")


async def test_list_for_recipient(dispatcher):
    first = await dispatcher.notify("u-req", NotificationType.TICKET_UPDATED, "one", "m")
    second = await dispatcher.notify("u-req", NotificationType.TICKET_UPDATED, "two", "m")
    await dispatcher.notify("a-1", NotificationType.TICKET_UPDATED, "other", "m")
    await dispatcher.mark_read(first.id, "u-req")

    assert [n.id for n in await dispatcher.list_for_recipient("u-req")] == [second.id, first.id]
    assert [n.id for n in await dispatcher.list_for_recipient("u-req", unread_only=True)] == [
        second.id
    ]
