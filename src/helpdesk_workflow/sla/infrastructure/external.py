"""
SLA External Service Integrations
==================================

External services for SLA tracking:
- YAML policy file with hot-reload
- Slack webhook alerts for breaches
"""

import asyncio
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import httpx
import yaml
from pydantic import ValidationError
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from helpdesk_workflow.config import Settings, SLAType, get_settings
from helpdesk_workflow.core.exceptions import ConfigurationException
from helpdesk_workflow.shared.infrastructure.logging import get_logger
from helpdesk_workflow.sla.application.services import ISLAPolicyProvider
from helpdesk_workflow.sla.domain import SLAPolicy
from helpdesk_workflow.tickets.domain import Ticket

logger = get_logger(__name__)


class PolicyFileHandler(FileSystemEventHandler):
    """Watchdog event handler for SLA policy file changes."""

    def __init__(self, manager: "SLAPolicyManager", policy_path: Path):
        self.manager = manager
        self.policy_path = policy_path
        super().__init__()

    def on_modified(self, event):
        if event.is_directory:
            return
        if Path(event.src_path).resolve() == self.policy_path.resolve():
            logger.info("SLA policy file changed", extra={"path": str(event.src_path)})
            self.manager.reload()


class SLAPolicyManager(ISLAPolicyProvider):
    """
    Thread-safe SLA policy holder with hot-reload support.

    A missing file means the built-in priority defaults. A file that fails
    validation is rejected on first load; on reload the previous policy stays
    in force.
    """

    def __init__(self):
        self._policy: Optional[SLAPolicy] = None
        self._lock = threading.Lock()
        self._path: Optional[Path] = None
        self._observer = None

    def load(self, path: Path) -> SLAPolicy:
        """Initial policy load."""
        self._path = Path(path)
        policy = self._load_from_file(self._path)
        with self._lock:
            self._policy = policy
        return policy

    def _load_from_file(self, path: Path) -> SLAPolicy:
        if not path.exists():
            logger.warning(
                "SLA policy file not found, using defaults",
                extra={"path": str(path)}
            )
            return SLAPolicy()

        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}

        try:
            return SLAPolicy(**data)
        except (TypeError, ValidationError) as e:
            raise ConfigurationException(
                f"Invalid SLA policy file {path}",
                details={"error": str(e)}
            ) from e

    def reload(self) -> bool:
        """Reload policy from file; keeps the current one on failure."""
        if self._path is None:
            return False

        try:
            new_policy = self._load_from_file(self._path)
        except (ConfigurationException, yaml.YAMLError, OSError) as e:
            logger.error(
                "Failed to reload SLA policy",
                extra={"path": str(self._path), "error": str(e)}
            )
            return False

        with self._lock:
            self._policy = new_policy
        logger.info("SLA policy reloaded successfully")
        return True

    def start_watching(self) -> None:
        """
        Start watching the policy file for changes.

        Skipped when the file does not exist or the platform has no
        file-system notifications.
        """
        if self._path is None:
            raise RuntimeError("Policy not loaded. Call load() first.")

        if not self._path.exists():
            logger.info(
                "SLA policy file doesn't exist, skipping file watch",
                extra={"path": str(self._path)}
            )
            return

        try:
            self._observer = Observer()
            handler = PolicyFileHandler(self, self._path)
            self._observer.schedule(handler, str(self._path.parent), recursive=False)
            self._observer.start()
            logger.info("Started watching SLA policy file", extra={"path": str(self._path)})
        except OSError as e:
            logger.warning(
                "File watching not available, using static policy",
                extra={"error": str(e)}
            )
            self._observer = None

    def stop_watching(self) -> None:
        """Stop watching (safe to call even if not watching)."""
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None

    @property
    def policy(self) -> SLAPolicy:
        with self._lock:
            if self._policy is None:
                raise RuntimeError("SLA policy not loaded")
            return self._policy

    def get_policy(self) -> SLAPolicy:
        return self.policy


class CircuitState:
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """
    Circuit breaker for the Slack webhook.

    States:
    - CLOSED: requests pass through
    - OPEN: after N failures, reject requests for M seconds
    - HALF_OPEN: after the timeout, let one test request through
    """

    def __init__(self, failure_threshold: int = 5, recovery_timeout: float = 60.0):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time: Optional[float] = None

    @property
    def state(self) -> str:
        if self._state == CircuitState.OPEN and self._last_failure_time is not None:
            if time.monotonic() - self._last_failure_time >= self.recovery_timeout:
                self._state = CircuitState.HALF_OPEN
        return self._state

    def allow_request(self) -> bool:
        return self.state in (CircuitState.CLOSED, CircuitState.HALF_OPEN)

    def record_success(self) -> None:
        self._failure_count = 0
        self._state = CircuitState.CLOSED

    def record_failure(self) -> None:
        self._failure_count += 1
        self._last_failure_time = time.monotonic()

        if self._failure_count >= self.failure_threshold:
            self._state = CircuitState.OPEN
            logger.warning(
                "Circuit breaker opened",
                extra={
                    "failure_count": self._failure_count,
                    "recovery_timeout": self.recovery_timeout
                }
            )


@dataclass
class SlackMessage:
    """Slack breach alert."""
    ticket_id: str
    ticket_number: str
    title: str
    priority: str
    sla_type: str
    status: str
    assignee_id: Optional[str]
    created_at: str

    @classmethod
    def for_breach(cls, ticket: Ticket, sla_type: SLAType) -> "SlackMessage":
        return cls(
            ticket_id=ticket.id,
            ticket_number=ticket.ticket_number,
            title=ticket.title,
            priority=ticket.priority.value,
            sla_type=sla_type.value,
            status=ticket.status.value,
            assignee_id=ticket.assignee_id,
            created_at=ticket.created_at.isoformat(),
        )


class SlackClient:
    """
    Slack webhook client with circuit breaker and retry logic.

    Failures are logged and reported as ``False``; they never reach the
    caller as exceptions.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        max_retries: int = 3,
        backoff_seconds: float = 1.0
    ):
        self._settings = settings or get_settings()
        self._http_client = http_client
        self._max_retries = max_retries
        self._backoff_seconds = backoff_seconds
        self._circuit_breaker = CircuitBreaker(failure_threshold=5, recovery_timeout=60)

    @property
    def circuit_breaker(self) -> CircuitBreaker:
        return self._circuit_breaker

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=self._settings.slack_timeout_seconds
            )
        return self._http_client

    def _build_message(self, data: SlackMessage) -> Dict[str, Any]:
        """Build Slack Block Kit message."""
        assignee = data.assignee_id or "unassigned"
        blocks = [
            {
                "type": "header",
                "text": {
                    "type": "plain_text",
                    "text": f"SLA Breach: {data.ticket_number}",
                }
            },
            {
                "type": "section",
                "fields": [
                    {"type": "mrkdwn", "text": f"*Ticket:*\n{data.ticket_number} {data.title}"},
                    {"type": "mrkdwn", "text": f"*Priority:*\n{data.priority.title()}"},
                    {"type": "mrkdwn", "text": f"*SLA Type:*\n{data.sla_type.title()}"},
                    {"type": "mrkdwn", "text": f"*Status:*\n{data.status}"},
                    {"type": "mrkdwn", "text": f"*Assignee:*\n{assignee}"},
                ]
            },
            {
                "type": "context",
                "elements": [
                    {"type": "mrkdwn", "text": f"Created: {data.created_at}"}
                ]
            }
        ]

        return {"channel": self._settings.slack_channel, "blocks": blocks}

    async def send_breach(self, ticket: Ticket, sla_type: SLAType) -> bool:
        return await self.send_alert(SlackMessage.for_breach(ticket, sla_type))

    async def send_alert(self, data: SlackMessage) -> bool:
        """
        Post an alert to the Slack webhook.

        Returns:
            True if sent successfully, False otherwise
        """
        if not self._settings.slack_webhook_url:
            logger.debug("Slack webhook URL not configured, skipping notification")
            return False

        if not self._circuit_breaker.allow_request():
            logger.warning(
                "Circuit breaker open, skipping Slack notification",
                extra={"ticket_id": data.ticket_id}
            )
            return False

        message = self._build_message(data)

        for attempt in range(self._max_retries):
            try:
                client = await self._get_client()
                response = await client.post(self._settings.slack_webhook_url, json=message)

                if response.status_code == 200:
                    self._circuit_breaker.record_success()
                    logger.info(
                        "Slack notification sent",
                        extra={"ticket_id": data.ticket_id, "sla_type": data.sla_type}
                    )
                    return True

                logger.warning(
                    "Slack webhook returned non-200",
                    extra={"status_code": response.status_code, "attempt": attempt + 1}
                )
            except httpx.HTTPError as e:
                logger.error(
                    "Slack notification failed",
                    extra={
                        "error": str(e),
                        "attempt": attempt + 1,
                        "ticket_id": data.ticket_id
                    }
                )

            if attempt < self._max_retries - 1:
                await asyncio.sleep(self._backoff_seconds * 2 ** attempt)

        self._circuit_breaker.record_failure()
        return False

    async def close(self) -> None:
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None
