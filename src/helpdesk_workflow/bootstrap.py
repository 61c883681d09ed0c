"""
Helpdesk Workflow - Composition Root
====================================

Wires settings, logging, database, SLA policy and the workflow services.

STARTUP:
1. Setup structured logging
2. Initialize database (and create tables when asked to)
3. Load the SLA policy and start watching it
4. Build dispatcher, tracker and the workflow services

SHUTDOWN:
1. Stop the policy watcher
2. Close the Slack client
3. Close database connections

Usage:
    workflow = HelpdeskWorkflow()
    await workflow.start()
    ticket = await workflow.assignment.self_assign(ticket_id, agent_id)
    await workflow.stop()
"""

from typing import Optional

from helpdesk_workflow.assignment.application import AssignmentManager
from helpdesk_workflow.config import Settings, get_settings
from helpdesk_workflow.infrastructure.database import (
    close_database,
    create_tables,
    get_session_maker,
    init_database,
)
from helpdesk_workflow.infrastructure.database.unit_of_work import SQLAlchemyUnitOfWork
from helpdesk_workflow.notifications.application import NotificationDispatcher
from helpdesk_workflow.notifications.infrastructure import SQLAlchemyNotificationRepository
from helpdesk_workflow.reopen.application import ReopenRequestWorkflow
from helpdesk_workflow.shared.events import ChangeFeed
from helpdesk_workflow.shared.infrastructure.logging import get_logger, setup_logging
from helpdesk_workflow.sla.application import SLADeadlineTracker, SLAEscalationService
from helpdesk_workflow.sla.infrastructure import SLAPolicyManager, SlackClient
from helpdesk_workflow.tickets.application import StatusTransitionEngine
from helpdesk_workflow.tickets.infrastructure import SQLAlchemyUserDirectory

logger = get_logger(__name__)


class HelpdeskWorkflow:
    """Owns the lifecycle of every workflow collaborator."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.change_feed = ChangeFeed()

        self.policy_manager: Optional[SLAPolicyManager] = None
        self.slack_client: Optional[SlackClient] = None
        self.dispatcher: Optional[NotificationDispatcher] = None
        self.tracker: Optional[SLADeadlineTracker] = None
        self.engine: Optional[StatusTransitionEngine] = None
        self.assignment: Optional[AssignmentManager] = None
        self.reopen: Optional[ReopenRequestWorkflow] = None
        self.escalation: Optional[SLAEscalationService] = None
        self._started = False

    async def start(self, create_schema: bool = False, watch_policy: bool = True) -> None:
        if self._started:
            logger.warning("Helpdesk workflow already started")
            return

        settings = self.settings
        setup_logging(settings.log_level, settings.environment)
        logger.info(
            "Starting helpdesk workflow",
            extra={"version": settings.app_version, "environment": settings.environment}
        )

        init_database(settings)
        if create_schema:
            logger.info("Creating database tables")
            await create_tables()
        session_maker = get_session_maker()

        logger.info("Loading SLA policy", extra={"path": str(settings.sla_config_path)})
        self.policy_manager = SLAPolicyManager()
        self.policy_manager.load(settings.sla_config_path)
        if watch_policy:
            self.policy_manager.start_watching()

        users = SQLAlchemyUserDirectory(session_maker)

        def uow_factory() -> SQLAlchemyUnitOfWork:
            return SQLAlchemyUnitOfWork(session_maker)

        self.slack_client = SlackClient(settings)
        self.dispatcher = NotificationDispatcher(
            SQLAlchemyNotificationRepository(session_maker), users, settings
        )
        self.tracker = SLADeadlineTracker(self.policy_manager, settings)
        self.engine = StatusTransitionEngine(
            uow_factory, users, self.tracker, self.dispatcher, self.change_feed, settings
        )
        self.assignment = AssignmentManager(uow_factory, self.engine, settings)
        self.reopen = ReopenRequestWorkflow(uow_factory, self.engine, self.dispatcher, settings)
        self.escalation = SLAEscalationService(
            uow_factory, self.tracker, self.dispatcher, self.slack_client, settings
        )

        self._started = True
        logger.info("Helpdesk workflow started")

    async def stop(self) -> None:
        if not self._started:
            return

        logger.info("Shutting down helpdesk workflow")
        if self.policy_manager is not None:
            self.policy_manager.stop_watching()
        if self.slack_client is not None:
            await self.slack_client.close()
        await close_database()

        self._started = False
        logger.info("Helpdesk workflow stopped")

    async def __aenter__(self) -> "HelpdeskWorkflow":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()
