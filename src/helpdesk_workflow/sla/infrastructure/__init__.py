"""
SLA Infrastructure Layer
=========================

Infrastructure implementations for SLA tracking:
- External: YAML policy hot-reload, Slack breach alerts
"""

from helpdesk_workflow.sla.infrastructure.external import (
    SLAPolicyManager,
    SlackClient,
    SlackMessage,
    CircuitBreaker,
    CircuitState,
)

__all__ = [
    "SLAPolicyManager",
    "SlackClient",
    "SlackMessage",
    "CircuitBreaker",
    "CircuitState",
]
