"""
Change Events
=============

Version-stamped events published after every committed mutation.

Callers (UI adapters, caches, websocket bridges) subscribe to the feed
instead of polling or keeping their own refresh counters.
"""

import inspect
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable, List, Optional, Union

from helpdesk_workflow.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ChangeEvent:
    """Base class for workflow change events."""
    entity_id: str = ""
    version: int = 0
    kind: str = ""
    actor_id: Optional[str] = None
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class TicketChanged(ChangeEvent):
    """A ticket row was written (status, assignee or timestamps)."""
    status: str = ""
    assignee_id: Optional[str] = None


@dataclass(frozen=True)
class ReopenRequestChanged(ChangeEvent):
    """A reopen request was created or reviewed."""
    ticket_id: str = ""
    status: str = ""


Subscriber = Callable[[ChangeEvent], Union[None, Awaitable[None]]]


class ChangeFeed:
    """
    In-process publisher for change events.

    Subscribers may be plain callables or coroutine functions. A failing
    subscriber is logged and skipped; it never fails the mutation that
    produced the event.
    """

    def __init__(self):
        self._subscribers: List[Subscriber] = []

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        """Register a subscriber and return a function that removes it."""
        self._subscribers.append(subscriber)

        def unsubscribe() -> None:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

        return unsubscribe

    async def publish(self, event: ChangeEvent) -> None:
        for subscriber in list(self._subscribers):
            try:
                result = subscriber(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(
                    "Change subscriber failed",
                    extra={
                        "event_kind": event.kind,
                        "entity_id": event.entity_id,
                        "error": str(e),
                    },
                )
