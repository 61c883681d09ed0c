"""
Reopen Request Infrastructure Repositories
==========================================
"""

from typing import Any, Dict, List, Optional

from sqlalchemy import and_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk_workflow.config import ReopenStatus
from helpdesk_workflow.core import (
    ConcurrentModificationException,
    ResourceNotFoundException,
)
from helpdesk_workflow.infrastructure.database import as_utc
from helpdesk_workflow.reopen.domain import ReopenRequest
from helpdesk_workflow.reopen.infrastructure.models import ReopenRequestModel
from helpdesk_workflow.shared.application import IReopenRequestRepository
from helpdesk_workflow.tickets.infrastructure.repositories import column_values

_MUTABLE_COLUMNS = frozenset({"status", "reviewed_at", "reviewer_id", "reviewer_comment"})


class SQLAlchemyReopenRequestRepository(IReopenRequestRepository):
    """
    SQLAlchemy implementation of reopen request repository.

    Works on the session of the surrounding unit of work.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    async def _get_model(self, request_id: str) -> Optional[ReopenRequestModel]:
        stmt = (
            select(ReopenRequestModel)
            .where(ReopenRequestModel.id == request_id)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_id(self, request_id: str) -> Optional[ReopenRequest]:
        model = await self._get_model(request_id)
        return self._to_domain(model) if model else None

    async def get_pending_for_ticket(self, ticket_id: str) -> Optional[ReopenRequest]:
        stmt = select(ReopenRequestModel).where(and_(
            ReopenRequestModel.ticket_id == ticket_id,
            ReopenRequestModel.status == ReopenStatus.PENDING.value,
        ))
        result = await self._session.execute(stmt)
        model = result.scalars().first()
        return self._to_domain(model) if model else None

    async def insert(self, request: ReopenRequest) -> ReopenRequest:
        model = ReopenRequestModel(**column_values({
            "ticket_id": request.ticket_id,
            "requester_id": request.requester_id,
            "reason": request.reason,
            "status": request.status,
            "created_at": request.created_at,
            "version": 0,
        }))
        if request.id:
            model.id = request.id

        # The unit of work rolls back on the raised conflict
        self._session.add(model)
        try:
            await self._session.flush()
        except IntegrityError:
            raise ConcurrentModificationException("ReopenRequest", request.ticket_id) from None

        return self._to_domain(model)

    async def update(
        self,
        request_id: str,
        patch: Dict[str, Any],
        expected_version: int
    ) -> ReopenRequest:
        values = column_values({k: v for k, v in patch.items() if k in _MUTABLE_COLUMNS})
        values["version"] = expected_version + 1

        stmt = (
            update(ReopenRequestModel)
            .where(and_(
                ReopenRequestModel.id == request_id,
                ReopenRequestModel.version == expected_version,
            ))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)

        if result.rowcount == 0:
            if await self._get_model(request_id) is None:
                raise ResourceNotFoundException("ReopenRequest", request_id)
            raise ConcurrentModificationException("ReopenRequest", request_id, expected_version)

        return self._to_domain(await self._get_model(request_id))

    async def list(
        self,
        filters: dict,
        limit: int = 100,
        offset: int = 0
    ) -> List[ReopenRequest]:
        stmt = select(ReopenRequestModel)

        conditions = []
        if filters.get("ticket_id"):
            conditions.append(ReopenRequestModel.ticket_id == filters["ticket_id"])
        if filters.get("status"):
            conditions.append(ReopenRequestModel.status == ReopenStatus(filters["status"]).value)
        if filters.get("requester_id"):
            conditions.append(ReopenRequestModel.requester_id == filters["requester_id"])

        if conditions:
            stmt = stmt.where(and_(*conditions))

        stmt = stmt.order_by(ReopenRequestModel.created_at.desc()).limit(limit).offset(offset)

        result = await self._session.execute(stmt)
        return [self._to_domain(m) for m in result.scalars().all()]

    @staticmethod
    def _to_domain(model: ReopenRequestModel) -> ReopenRequest:
        return ReopenRequest(
            id=model.id,
            ticket_id=model.ticket_id,
            requester_id=model.requester_id,
            reason=model.reason,
            status=ReopenStatus(model.status),
            created_at=as_utc(model.created_at),
            reviewed_at=as_utc(model.reviewed_at),
            reviewer_id=model.reviewer_id,
            reviewer_comment=model.reviewer_comment,
            version=model.version,
        )
