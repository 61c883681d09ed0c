"""
Ticket Status State Machine
===========================

The legal status edges, declared once.

Direct edges may be taken by ``StatusTransitionEngine.transition``. Reopen
edges lead back from resolved/closed and are only reachable through an
approved reopen request.
"""

from dataclasses import dataclass
from typing import Dict, FrozenSet, Optional, Tuple

from helpdesk_workflow.config import TicketStatus, UserRole
from helpdesk_workflow.shared.application.identity import User
from helpdesk_workflow.tickets.domain.entities import Ticket


@dataclass(frozen=True)
class Edge:
    """One permitted status change and who may take it."""
    source: TicketStatus
    target: TicketStatus
    roles: FrozenSet[UserRole]
    # Agents must be the current assignee; admins and the system never need to be
    requires_assignment: bool = True
    requires_resolution_notes: bool = False
    # The ticket must carry an assignee once the edge is taken
    requires_assignee: bool = False


_WORKERS = frozenset({UserRole.AGENT, UserRole.ADMIN})

DIRECT_EDGES: Dict[Tuple[TicketStatus, TicketStatus], Edge] = {
    (TicketStatus.OPEN, TicketStatus.IN_PROGRESS): Edge(
        TicketStatus.OPEN, TicketStatus.IN_PROGRESS, _WORKERS,
        requires_assignee=True
    ),
    (TicketStatus.IN_PROGRESS, TicketStatus.RESOLVED): Edge(
        TicketStatus.IN_PROGRESS, TicketStatus.RESOLVED, _WORKERS,
        requires_resolution_notes=True
    ),
    (TicketStatus.IN_PROGRESS, TicketStatus.OPEN): Edge(
        TicketStatus.IN_PROGRESS, TicketStatus.OPEN, frozenset({UserRole.ADMIN})
    ),
    (TicketStatus.RESOLVED, TicketStatus.CLOSED): Edge(
        TicketStatus.RESOLVED, TicketStatus.CLOSED,
        frozenset({UserRole.AGENT, UserRole.ADMIN, UserRole.SYSTEM})
    ),
}

REOPEN_EDGES: Dict[Tuple[TicketStatus, TicketStatus], Edge] = {
    (source, target): Edge(source, target, _WORKERS, requires_assignment=False)
    for source in (TicketStatus.RESOLVED, TicketStatus.CLOSED)
    for target in (TicketStatus.OPEN, TicketStatus.IN_PROGRESS)
}


def find_edge(
    source: TicketStatus,
    target: TicketStatus,
    via_reopen: bool = False
) -> Optional[Edge]:
    """Return the edge for ``source -> target`` or None if it is not legal."""
    table = REOPEN_EDGES if via_reopen else DIRECT_EDGES
    return table.get((source, target))


def allowed_targets(source: TicketStatus) -> FrozenSet[TicketStatus]:
    """Statuses reachable from ``source`` by a direct transition."""
    return frozenset(t for (s, t) in DIRECT_EDGES if s == source)


def actor_may_take(edge: Edge, ticket: Ticket, actor: User) -> bool:
    """Check role and ownership of ``actor`` for ``edge`` on ``ticket``."""
    if actor.role not in edge.roles:
        return False
    if actor.role == UserRole.AGENT and edge.requires_assignment:
        return ticket.is_assigned_to(actor.id)
    return True
