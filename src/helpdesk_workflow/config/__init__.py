"""
Configuration Module
====================

Workflow settings and domain constants using Pydantic.

Settings are loaded once and injected into the services at construction
time; nothing in the domain layer reads configuration on its own.
"""

from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Workflow settings loaded from environment variables.

    Uses Pydantic for validation and bounds checking.
    """

    # ========== Application ==========
    app_name: str = Field(default="helpdesk-workflow", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root logging level")

    # ========== Database ==========
    database_url: str = Field(
        default="postgresql+asyncpg://localhost:5432/helpdesk",
        description="Database connection URL (async driver)"
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size", ge=1)
    db_max_overflow: int = Field(default=10, description="Max overflow connections", ge=0)

    # ========== Workflow ==========
    operation_timeout_seconds: float = Field(
        default=5.0,
        description="Upper bound for one persistence unit of work",
        ge=0.1,
        le=60
    )
    notification_timeout_seconds: float = Field(
        default=2.0,
        description="Upper bound for a single notification write",
        ge=0.1,
        le=30
    )
    conflict_retries: int = Field(
        default=1,
        description="Automatic retries after an optimistic-lock conflict",
        ge=0,
        le=5
    )
    auto_close_after_hours: float = Field(
        default=48,
        description="Hours a resolved ticket stays visible before auto-close",
        ge=1,
        le=720
    )
    session_timeout_minutes: int = Field(
        default=30,
        description="Idle session timeout handed to the web layer",
        ge=5,
        le=480
    )

    # ========== SLA Configuration ==========
    sla_config_path: Path = Field(
        default=Path("sla_policy.yaml"),
        description="Path to SLA policy YAML file"
    )
    sla_warning_threshold_percent: int = Field(
        default=25,
        description="Percentage of the SLA window remaining that marks a clock at risk",
        ge=1,
        le=99
    )

    # ========== Slack Escalation ==========
    slack_webhook_url: Optional[str] = Field(
        default=None,
        description="Slack webhook URL for SLA breach escalation"
    )
    slack_channel: str = Field(
        default="#support-escalations",
        description="Slack channel for SLA breach escalation"
    )
    slack_timeout_seconds: float = Field(
        default=5.0,
        description="Timeout for Slack API calls",
        ge=0.1,
        le=30
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="HELPDESK_",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is one of allowed values."""
        allowed = {"development", "staging", "production"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR"}
        level = v.upper()
        if level not in allowed:
            raise ValueError(f"log_level must be one of {allowed}")
        return level


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# ========== Constants ==========

class TicketStatus(str, Enum):
    """Ticket lifecycle statuses."""
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CLOSED = "closed"


class Priority(str, Enum):
    """Ticket priority levels."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class UserRole(str, Enum):
    """Roles supplied by the identity provider."""
    USER = "user"
    AGENT = "agent"
    ADMIN = "admin"
    SYSTEM = "system"


class ReopenStatus(str, Enum):
    """Reopen request review states."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class NotificationType(str, Enum):
    """Kinds of in-app notifications."""
    TICKET_CREATED = "ticket_created"
    TICKET_UPDATED = "ticket_updated"
    TICKET_ASSIGNED = "ticket_assigned"
    ASSIGNMENT_CHANGED = "assignment_changed"
    STATUS_CHANGED = "status_changed"
    COMMENT_ADDED = "comment_added"
    PRIORITY_CHANGED = "priority_changed"
    FEEDBACK_REQUEST = "feedback_request"
    SLA_WARNING = "sla_warning"
    SLA_BREACH = "sla_breach"


class NotificationPriority(str, Enum):
    """Notification urgency."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class SLAType(str, Enum):
    """Types of SLA clocks."""
    RESPONSE = "response"
    RESOLUTION = "resolution"


class SLAState(str, Enum):
    """SLA clock states."""
    ON_TRACK = "on_track"
    AT_RISK = "at_risk"
    BREACHED = "breached"
    MET = "met"


# Actor id used for transitions the workflow performs on its own
SYSTEM_ACTOR_ID = "system"


# ========== Lists for validation ==========

VALID_STATUSES = [s for s in TicketStatus]
VALID_PRIORITIES = [p for p in Priority]
VALID_ROLES = [r for r in UserRole]
VALID_NOTIFICATION_TYPES = [t for t in NotificationType]
VALID_SLA_TYPES = [t for t in SLAType]

ACTIVE_STATUSES = (TicketStatus.OPEN, TicketStatus.IN_PROGRESS)
TERMINAL_STATUSES = (TicketStatus.RESOLVED, TicketStatus.CLOSED)
STAFF_ROLES = (UserRole.AGENT, UserRole.ADMIN)
