# tests/conftest.py
import asyncio
import copy
import logging
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from typing import Dict, List, Optional

import pytest

from helpdesk_workflow.assignment.application import AssignmentManager
from helpdesk_workflow.config import (
    Priority, ReopenStatus, Settings, TicketStatus, UserRole
)
from helpdesk_workflow.core import (
    ConcurrentModificationException,
    RepositoryException,
    ResourceNotFoundException,
)
from helpdesk_workflow.notifications.application import (
    INotificationRepository, NotificationDispatcher
)
from helpdesk_workflow.notifications.domain import Notification
from helpdesk_workflow.reopen.application import ReopenRequestWorkflow
from helpdesk_workflow.reopen.domain import ReopenRequest
from helpdesk_workflow.shared.application import (
    IActivityLogRepository, IReopenRequestRepository, ITicketRepository,
    IUnitOfWork, IUserDirectory, User
)
from helpdesk_workflow.shared.events import ChangeFeed
from helpdesk_workflow.sla.application import SLADeadlineTracker, StaticPolicyProvider
from helpdesk_workflow.tickets.application import StatusTransitionEngine
from helpdesk_workflow.tickets.domain import ActivityLogEntry, Ticket

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


class FixedClock:
    """Manually advanced clock."""

    def __init__(self, now: datetime = T0 + timedelta(hours=1)):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def make_ticket(**overrides) -> Ticket:
    data = dict(
        id="t-1",
        ticket_number="TCK-0001",
        title="Printer on fire",
        description="Third floor printer is smoking",
        status=TicketStatus.OPEN,
        priority=Priority.HIGH,
        category="hardware",
        requester_id="u-req",
        created_at=T0,
        updated_at=T0,
    )
    data.update(overrides)
    return Ticket(**data)


# ========== In-memory collaborators ==========

class InMemoryStore:
    """Tables shared by every unit of work of one test."""

    def __init__(self):
        self.tickets: Dict[str, Ticket] = {}
        self.requests: Dict[str, ReopenRequest] = {}
        self.activity: List[ActivityLogEntry] = []
        self.delay = 0.0
        # ticket_id -> number of upcoming updates that lose a race
        self.interference: Dict[str, int] = {}
        # ticket_id -> number of pending lookups that miss a concurrent insert
        self.stale_pending_reads: Dict[str, int] = {}
        # writes committed by other transactions survive our rollbacks
        self._foreign: Dict[str, Ticket] = {}
        self.commits = 0
        self.rollbacks = 0

    def add_ticket(self, ticket: Ticket) -> Ticket:
        self.tickets[ticket.id] = ticket
        return ticket

    def snapshot(self):
        return copy.copy(self.tickets), copy.copy(self.requests), list(self.activity)

    def restore(self, state) -> None:
        self.tickets, self.requests, self.activity = state
        self.tickets.update(self._foreign)
        self._foreign.clear()

    def write_elsewhere(self, ticket: Ticket) -> None:
        self.tickets[ticket.id] = ticket
        self._foreign[ticket.id] = ticket

    async def pause(self) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)


class InMemoryTicketRepository(ITicketRepository):
    def __init__(self, store: InMemoryStore):
        self._store = store

    async def get_by_id(self, ticket_id):
        await self._store.pause()
        return self._store.tickets.get(ticket_id)

    async def update(self, ticket_id, patch, expected_version):
        current = self._store.tickets.get(ticket_id)
        if current is None:
            raise ResourceNotFoundException("Ticket", ticket_id)

        if self._store.interference.get(ticket_id):
            # Another writer got there first
            self._store.interference[ticket_id] -= 1
            current = replace(current, version=current.version + 1)
            self._store.write_elsewhere(current)

        if current.version != expected_version:
            raise ConcurrentModificationException("Ticket", ticket_id, expected_version)

        updated = replace(current, **patch, version=expected_version + 1)
        self._store.tickets[ticket_id] = updated
        return updated

    async def list(self, filters, limit=100, offset=0):
        tickets = list(self._store.tickets.values())
        if "status" in filters:
            wanted = filters["status"]
            wanted = set(wanted) if isinstance(wanted, (list, tuple, set)) else {wanted}
            tickets = [t for t in tickets if t.status in wanted]
        tickets.sort(key=lambda t: t.created_at, reverse=True)
        return tickets[offset:offset + limit]


class InMemoryReopenRequestRepository(IReopenRequestRepository):
    def __init__(self, store: InMemoryStore):
        self._store = store

    async def get_by_id(self, request_id):
        return self._store.requests.get(request_id)

    def _pending(self, ticket_id) -> Optional[ReopenRequest]:
        for request in self._store.requests.values():
            if request.ticket_id == ticket_id and request.is_pending:
                return request
        return None

    async def get_pending_for_ticket(self, ticket_id):
        if self._store.stale_pending_reads.get(ticket_id):
            self._store.stale_pending_reads[ticket_id] -= 1
            return None
        return self._pending(ticket_id)

    async def insert(self, request):
        if self._pending(request.ticket_id) is not None:
            raise ConcurrentModificationException("ReopenRequest", request.ticket_id)
        stored = replace(request, id=f"r-{len(self._store.requests) + 1}", version=0)
        self._store.requests[stored.id] = stored
        return stored

    async def update(self, request_id, patch, expected_version):
        current = self._store.requests.get(request_id)
        if current is None:
            raise ResourceNotFoundException("ReopenRequest", request_id)
        if current.version != expected_version:
            raise ConcurrentModificationException("ReopenRequest", request_id, expected_version)
        updated = replace(current, **patch, version=expected_version + 1)
        self._store.requests[request_id] = updated
        return updated

    async def list(self, filters, limit=100, offset=0):
        requests = list(self._store.requests.values())
        for key in ("ticket_id", "requester_id"):
            if filters.get(key):
                requests = [r for r in requests if getattr(r, key) == filters[key]]
        if filters.get("status"):
            requests = [r for r in requests if r.status == ReopenStatus(filters["status"])]
        requests.sort(key=lambda r: r.created_at, reverse=True)
        return requests[offset:offset + limit]


class InMemoryActivityLogRepository(IActivityLogRepository):
    def __init__(self, store: InMemoryStore):
        self._store = store

    async def append(self, ticket_id, actor_id, text, internal=False):
        entry = ActivityLogEntry(
            ticket_id=ticket_id,
            actor_id=actor_id,
            text=text,
            internal=internal,
            id=str(len(self._store.activity) + 1),
        )
        self._store.activity.append(entry)
        return entry

    async def list_for_ticket(self, ticket_id):
        return [e for e in self._store.activity if e.ticket_id == ticket_id]


class InMemoryUnitOfWork(IUnitOfWork):
    """Snapshot on begin, restore on rollback."""

    def __init__(self, store: InMemoryStore):
        self._store = store
        self._snapshot = None

    async def begin(self):
        self._snapshot = self._store.snapshot()
        self.tickets = InMemoryTicketRepository(self._store)
        self.reopen_requests = InMemoryReopenRequestRepository(self._store)
        self.activity_log = InMemoryActivityLogRepository(self._store)

    async def commit(self):
        self._snapshot = None
        self._store.commits += 1

    async def rollback(self):
        self._store.restore(self._snapshot)
        self._snapshot = None
        self._store.rollbacks += 1


class InMemoryNotificationRepository(INotificationRepository):
    def __init__(self):
        self.items: List[Notification] = []
        self.delay = 0.0
        self.fail = False

    async def insert(self, notification):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise RepositoryException("notification store is down")
        notification.id = f"n-{len(self.items) + 1}"
        self.items.append(notification)
        return notification

    async def get_by_id(self, notification_id):
        return next((n for n in self.items if n.id == notification_id), None)

    async def mark_read(self, notification_id):
        notification = await self.get_by_id(notification_id)
        notification.mark_read()
        return notification

    async def list_for_recipient(self, recipient_id, unread_only=False, limit=50):
        items = [n for n in self.items if n.recipient_id == recipient_id]
        if unread_only:
            items = [n for n in items if not n.read]
        return list(reversed(items))[:limit]

    def for_recipient(self, recipient_id: str) -> List[Notification]:
        return [n for n in self.items if n.recipient_id == recipient_id]


class InMemoryUserDirectory(IUserDirectory):
    def __init__(self, users: List[User]):
        self.users = {u.id: u for u in users}

    async def get_user(self, user_id):
        return self.users.get(user_id)

    async def list_by_roles(self, roles):
        return [u for u in self.users.values() if u.role in roles]


# ========== Fixtures ==========

@pytest.fixture
def settings(tmp_path):
    return Settings(
        operation_timeout_seconds=1.0,
        notification_timeout_seconds=0.5,
        conflict_retries=1,
        sla_config_path=tmp_path / "sla_policy.yaml",
    )


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def users():
    return InMemoryUserDirectory([
        User(id="u-req", role=UserRole.USER, full_name="Rita Requester"),
        User(id="u-other", role=UserRole.USER, full_name="Olga Other"),
        User(id="a-1", role=UserRole.AGENT, full_name="Ann Agent"),
        User(id="a-2", role=UserRole.AGENT, full_name="Bob Agent"),
        User(id="adm", role=UserRole.ADMIN, full_name="Ada Admin"),
    ])


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def notifications():
    return InMemoryNotificationRepository()


@pytest.fixture
def tracker(settings, clock):
    return SLADeadlineTracker(StaticPolicyProvider(), settings, clock)


@pytest.fixture
def dispatcher(notifications, users, settings, clock):
    return NotificationDispatcher(notifications, users, settings, clock)


@pytest.fixture
def feed():
    return ChangeFeed()


@pytest.fixture
def engine(store, users, tracker, dispatcher, feed, settings, clock):
    return StatusTransitionEngine(
        lambda: InMemoryUnitOfWork(store), users, tracker, dispatcher, feed, settings, clock
    )


@pytest.fixture
def assignment(store, engine, settings, clock):
    return AssignmentManager(lambda: InMemoryUnitOfWork(store), engine, settings, clock)


@pytest.fixture
def reopen(store, engine, dispatcher, settings, clock):
    return ReopenRequestWorkflow(
        lambda: InMemoryUnitOfWork(store), engine, dispatcher, settings, clock
    )


@pytest.fixture
def root_handlers():
    """Undo setup_logging for the rest of the session."""
    root = logging.getLogger()
    saved, level = list(root.handlers), root.level
    yield
    root.handlers[:] = saved
    root.setLevel(level)


@pytest.fixture
def events(feed):
    received = []
    feed.subscribe(received.append)
    return received


@pytest.fixture
def env(store, notifications, engine, assignment, reopen, clock, events):
    return SimpleNamespace(
        store=store,
        notifications=notifications,
        engine=engine,
        assignment=assignment,
        reopen=reopen,
        clock=clock,
        events=events,
    )
