"""
SLA Value Objects
==================

Immutable value objects for the SLA domain.

Value objects are defined by their attributes rather than an identity.
They are immutable and can be freely shared.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from helpdesk_workflow.config import Priority, SLAState, VALID_PRIORITIES


class SLACalculator:
    """
    Pure functions for SLA calculations.

    Stateless utility class - all clock arithmetic in one place.
    """

    @staticmethod
    def calculate_deadline(created_at: datetime, hours: float) -> datetime:
        """Deadline of a clock that starts at ``created_at``."""
        return created_at + timedelta(hours=hours)

    @staticmethod
    def is_breached(
        deadline: datetime,
        as_of: datetime,
        met_at: Optional[datetime] = None
    ) -> bool:
        """
        Compare the milestone time (or ``as_of`` while it is pending)
        against the deadline.
        """
        effective = met_at or as_of
        return effective > deadline

    @staticmethod
    def calculate_status(
        created_at: datetime,
        deadline: datetime,
        current_time: datetime,
        met_at: Optional[datetime] = None,
        warning_threshold_percent: int = 25
    ) -> SLAState:
        """
        Calculate current SLA state.

        Args:
            created_at: When the clock started
            deadline: The SLA deadline
            current_time: Evaluation time
            met_at: When the protected milestone happened, if it did
            warning_threshold_percent: Remaining-window percentage for "at_risk"
        """
        if met_at is not None:
            return SLAState.MET if met_at <= deadline else SLAState.BREACHED

        _, percentage, is_breached = SLACalculator.calculate_remaining_metrics(
            created_at, deadline, current_time
        )

        if is_breached:
            return SLAState.BREACHED
        if percentage <= warning_threshold_percent:
            return SLAState.AT_RISK
        return SLAState.ON_TRACK

    @staticmethod
    def calculate_remaining_metrics(
        created_at: datetime,
        deadline: datetime,
        current_time: datetime,
        met_at: Optional[datetime] = None
    ) -> tuple[float, float, bool]:
        """
        Calculate remaining time metrics.

        Returns:
            Tuple of (remaining_seconds, percentage_remaining, is_breached)
        """
        if met_at is not None:
            return 0.0, 0.0, met_at > deadline

        remaining = (deadline - current_time).total_seconds()
        total = (deadline - created_at).total_seconds()

        if total <= 0:
            percentage = 0.0
        else:
            percentage = max(0.0, min(100.0, (remaining / total) * 100))

        return max(0.0, remaining), percentage, remaining < 0

    @staticmethod
    def should_alert(
        current_state: SLAState,
        previous_state: Optional[SLAState] = None
    ) -> bool:
        """Alert only when a clock enters at_risk or breached."""
        if current_state == SLAState.BREACHED:
            return previous_state != SLAState.BREACHED
        if current_state == SLAState.AT_RISK:
            return previous_state not in (SLAState.AT_RISK, SLAState.BREACHED)
        return False


class SLATarget(BaseModel):
    """Response and resolution windows, in hours."""

    model_config = ConfigDict(frozen=True)

    response_hours: float = Field(gt=0, description="Hours until first response is due")
    resolution_hours: float = Field(gt=0, description="Hours until resolution is due")

    @model_validator(mode="after")
    def validate_order(self) -> "SLATarget":
        if self.resolution_hours < self.response_hours:
            raise ValueError("resolution_hours cannot be shorter than response_hours")
        return self


DEFAULT_TARGETS: Dict[str, SLATarget] = {
    Priority.URGENT.value: SLATarget(response_hours=1, resolution_hours=4),
    Priority.HIGH.value: SLATarget(response_hours=2, resolution_hours=8),
    Priority.MEDIUM.value: SLATarget(response_hours=4, resolution_hours=24),
    Priority.LOW.value: SLATarget(response_hours=8, resolution_hours=72),
}


class SLAPolicy(BaseModel):
    """
    SLA policy table loaded from YAML.

    A category override for a priority wins over the priority default.
    Category keys are matched case-insensitively.

    Example:
        priority_targets:
          high: {response_hours: 2, resolution_hours: 8}
        category_overrides:
          billing:
            high: {response_hours: 1, resolution_hours: 4}
    """

    model_config = ConfigDict(frozen=True)

    priority_targets: Dict[str, SLATarget] = Field(
        default_factory=dict,
        validate_default=True,
        description="Default targets by priority"
    )
    category_overrides: Dict[str, Dict[str, SLATarget]] = Field(
        default_factory=dict,
        description="Per-category targets by priority"
    )

    @field_validator("priority_targets")
    @classmethod
    def validate_priority_targets(cls, v: Dict[str, SLATarget]) -> Dict[str, SLATarget]:
        """Fill in any missing priority with the built-in default."""
        unknown = set(v) - {p.value for p in VALID_PRIORITIES}
        if unknown:
            raise ValueError(f"unknown priorities in priority_targets: {sorted(unknown)}")

        targets = dict(v)
        for priority in VALID_PRIORITIES:
            targets.setdefault(priority.value, DEFAULT_TARGETS[priority.value])
        return targets

    @field_validator("category_overrides")
    @classmethod
    def validate_category_overrides(
        cls,
        v: Dict[str, Dict[str, SLATarget]]
    ) -> Dict[str, Dict[str, SLATarget]]:
        valid = {p.value for p in VALID_PRIORITIES}
        normalized = {}
        for category, targets in v.items():
            unknown = set(targets) - valid
            if unknown:
                raise ValueError(
                    f"unknown priorities for category '{category}': {sorted(unknown)}"
                )
            normalized[category.strip().lower()] = dict(targets)
        return normalized

    def get_target(self, priority: Priority, category: Optional[str] = None) -> SLATarget:
        """Resolve the target for a ticket's priority and category."""
        key = Priority(priority).value
        if category:
            override = self.category_overrides.get(category.strip().lower(), {})
            if key in override:
                return override[key]
        return self.priority_targets[key]


@dataclass(frozen=True)
class SLADeadlines:
    """Response and resolution deadlines of one ticket."""
    ticket_id: str
    response_deadline: datetime
    resolution_deadline: datetime
