# tests/test_sla_tracker.py
from datetime import timedelta

import pytest
from pydantic import ValidationError

from helpdesk_workflow.config import Priority, SLAState, SLAType, TicketStatus
from helpdesk_workflow.sla.application import (
    SLADeadlineTracker, StaticPolicyProvider, TicketSLAResponse
)
from helpdesk_workflow.sla.domain import SLAPolicy, SLATarget

from conftest import T0, make_ticket


def hours(n):
    return T0 + timedelta(hours=n)


@pytest.fixture
def tracker_24h(settings):
    # high priority: 2h response, 24h resolution
    policy = SLAPolicy(priority_targets={"high": {"response_hours": 2, "resolution_hours": 24}})
    return SLADeadlineTracker(StaticPolicyProvider(policy), settings)


def test_default_deadlines_for_high_priority(tracker):
    deadlines = tracker.compute_deadlines(make_ticket())
    assert deadlines.response_deadline == hours(2)
    assert deadlines.resolution_deadline == hours(8)


def test_category_override_wins_over_priority_default(settings):
    policy = SLAPolicy(category_overrides={
        "Billing": {"high": SLATarget(response_hours=1, resolution_hours=4)}
    })
    tracker = SLADeadlineTracker(StaticPolicyProvider(policy), settings)

    billing = tracker.compute_deadlines(make_ticket(category="billing"))
    assert billing.resolution_deadline == hours(4)

    # other priorities of the category fall back to the defaults
    low = tracker.compute_deadlines(make_ticket(category="billing", priority=Priority.LOW))
    assert low.resolution_deadline == hours(72)


def test_policy_rejects_unknown_priority():
    with pytest.raises(ValidationError):
        SLAPolicy(priority_targets={"critical": {"response_hours": 1, "resolution_hours": 2}})


def test_resolution_shorter_than_response_rejected():
    with pytest.raises(ValidationError):
        SLATarget(response_hours=4, resolution_hours=2)


def test_resolved_within_window_is_not_breached(tracker_24h):
    # T1: high, 24h resolution, resolved after 20h
    ticket = make_ticket(
        status=TicketStatus.RESOLVED,
        first_response_at=hours(1),
        resolved_at=hours(20),
        updated_at=hours(20),
    )
    assert tracker_24h.is_breached(ticket, as_of=hours(30)) is False
    assert tracker_24h.is_breached(ticket, as_of=hours(30), sla_type=SLAType.RESOLUTION) is False


def test_resolved_late_is_breached_regardless_of_as_of(tracker_24h):
    ticket = make_ticket(
        status=TicketStatus.RESOLVED,
        first_response_at=hours(1),
        resolved_at=hours(25),
        updated_at=hours(25),
    )
    assert tracker_24h.is_breached(ticket, as_of=hours(25)) is True


def test_open_ticket_past_deadlines_is_breached(tracker):
    ticket = make_ticket()
    assert tracker.is_breached(ticket, as_of=hours(1)) is False
    assert tracker.is_breached(ticket, as_of=hours(3), sla_type=SLAType.RESPONSE) is True
    assert tracker.is_breached(ticket, as_of=hours(3), sla_type=SLAType.RESOLUTION) is False


def test_response_clock_relieved_once_ticket_leaves_open(tracker):
    ticket = make_ticket(status=TicketStatus.IN_PROGRESS, first_response_at=hours(1))
    assert tracker.is_breached(ticket, as_of=hours(5), sla_type=SLAType.RESPONSE) is False

    # rows without a first response stamp are relieved by status alone
    legacy = make_ticket(status=TicketStatus.IN_PROGRESS)
    assert tracker.is_breached(legacy, as_of=hours(5), sla_type=SLAType.RESPONSE) is False
    assert tracker.metrics(legacy, as_of=hours(5)).response_state == SLAState.MET


def test_late_first_response_stays_breached(tracker):
    ticket = make_ticket(status=TicketStatus.IN_PROGRESS, first_response_at=hours(3))
    assert tracker.is_breached(ticket, as_of=hours(4), sla_type=SLAType.RESPONSE) is True


def test_reopened_ticket_resolution_clock_runs_again(tracker):
    ticket = make_ticket(
        status=TicketStatus.OPEN,
        first_response_at=hours(1),
        resolved_at=hours(5),
        reopened_at=hours(6),
        updated_at=hours(6),
    )
    assert tracker.is_breached(ticket, as_of=hours(7), sla_type=SLAType.RESOLUTION) is False
    assert tracker.is_breached(ticket, as_of=hours(9), sla_type=SLAType.RESOLUTION) is True
    assert tracker.metrics(ticket, as_of=hours(9)).resolution_state == SLAState.BREACHED


def test_metrics_reports_at_risk_near_deadline(tracker):
    # 20 minutes of a 2h response window left
    metrics = tracker.metrics(make_ticket(), as_of=hours(1) + timedelta(minutes=40))

    assert metrics.response_state == SLAState.AT_RISK
    assert metrics.response_remaining_seconds == pytest.approx(20 * 60)
    assert metrics.resolution_state == SLAState.ON_TRACK
    assert metrics.most_urgent_state == SLAState.AT_RISK
    assert metrics.next_deadline == hours(2)

    response = TicketSLAResponse.from_metrics(metrics)
    assert response.overall_state == "at_risk"


def test_compliance_rate_over_resolved_tickets(tracker):
    met = make_ticket(id="t-1", status=TicketStatus.RESOLVED, resolved_at=hours(5), updated_at=hours(5))
    late = make_ticket(id="t-2", status=TicketStatus.CLOSED, resolved_at=hours(10), updated_at=hours(11))
    unresolved = make_ticket(id="t-3")
    tickets = [met, late, unresolved]
    before = [t.version for t in tickets], [t.resolved_at for t in tickets]

    assert tracker.compliance_rate(tickets) == 50.0
    # reporting never touches the tickets
    assert ([t.version for t in tickets], [t.resolved_at for t in tickets]) == before


def test_compliance_rate_without_resolved_tickets(tracker):
    assert tracker.compliance_rate([]) == 100.0
    assert tracker.compliance_rate([make_ticket()]) == 100.0


def test_compliance_summary(tracker):
    tickets = [
        make_ticket(id="t-1", status=TicketStatus.RESOLVED, first_response_at=hours(1),
                    resolved_at=hours(5), updated_at=hours(5)),
        make_ticket(id="t-2"),
    ]
    summary = tracker.compliance_summary(tickets, as_of=hours(9))

    assert summary.total_tickets == 2
    assert summary.resolved_tickets == 1
    assert summary.breached_count == 1
    assert summary.compliance_rate == 100.0


def test_lifecycle_stamps(tracker):
    now = hours(3)
    ticket = make_ticket()
    assert tracker.lifecycle_stamps(ticket, TicketStatus.IN_PROGRESS, now) == {
        "first_response_at": now
    }

    working = make_ticket(status=TicketStatus.IN_PROGRESS, first_response_at=hours(1))
    assert tracker.lifecycle_stamps(working, TicketStatus.RESOLVED, now) == {
        "resolved_at": now, "closed_at": None
    }

    closed = make_ticket(status=TicketStatus.CLOSED, resolved_at=hours(2), closed_at=hours(2))
    assert tracker.lifecycle_stamps(closed, TicketStatus.OPEN, now, via_reopen=True) == {
        "closed_at": None, "resolution_notes": None, "reopened_at": now
    }
