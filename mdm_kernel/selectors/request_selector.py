"""
Module: mdm_kernel.selectors.request_selector
Responsibility: Read-only listing of requests and the dashboard statistics.
Architecture position: Kernel > Selectors.  May import from models/,
    domain/ and selectors/base.py.  MUST NOT import from services/.

Invariants enforced:
    - Read-only: no mutations performed on any queried data.
    - DTO convention: all public methods return RequestInfo / RequestStats.
    - Listings are ordered newest first (created_at, then id as tiebreak).

Failure modes:
    - RequestNotFoundError from ``get`` only; listings return empty lists.
"""

from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from mdm_kernel.domain.dtos import RequestInfo, RequestStats
from mdm_kernel.domain.values import CompanyStatus, RequestStatus
from mdm_kernel.exceptions import RequestNotFoundError
from mdm_kernel.models.request import CompanyRequest
from mdm_kernel.selectors.base import BaseSelector


class RequestSelector(BaseSelector):
    def __init__(self, session: Session):
        super().__init__(session)

    def get(self, request_id: str) -> RequestInfo:
        record = self.session.get(CompanyRequest, request_id)
        if record is None:
            raise RequestNotFoundError(request_id)
        return record.to_dto()

    def list_requests(
        self,
        status: str | None = None,
        origin: str | None = None,
        is_golden: bool | None = None,
        assigned_to: str | None = None,
    ) -> list[RequestInfo]:
        """All requests matching every supplied filter, newest first."""
        query = select(CompanyRequest)
        if status:
            query = query.where(CompanyRequest.status == status)
        if origin:
            query = query.where(CompanyRequest.origin == origin)
        if is_golden is not None:
            query = query.where(CompanyRequest.is_golden.is_(is_golden))
        if assigned_to:
            query = query.where(CompanyRequest.assigned_to == assigned_to)
        return self._newest_first(query)

    def list_quarantine(self) -> list[RequestInfo]:
        return self._newest_first(
            select(CompanyRequest).where(CompanyRequest.status == RequestStatus.QUARANTINE.value)
        )

    def list_golden(self, include_masters: bool = True) -> list[RequestInfo]:
        """Golden records; built master records too unless ``include_masters`` is off."""
        condition = CompanyRequest.is_golden.is_(True)
        if include_masters:
            condition = or_(condition, CompanyRequest.is_master.is_(True))
        return self._newest_first(
            select(CompanyRequest).where(condition, CompanyRequest.is_merged.is_(False))
        )

    def stats(self) -> RequestStats:
        total = self._count()
        return RequestStats(
            total=total,
            pending=self._count(CompanyRequest.status == RequestStatus.PENDING.value),
            approved=self._count(CompanyRequest.status == RequestStatus.APPROVED.value),
            rejected=self._count(CompanyRequest.status == RequestStatus.REJECTED.value),
            quarantined=self._count(CompanyRequest.status == RequestStatus.QUARANTINE.value),
            golden=self._count(CompanyRequest.is_golden.is_(True)),
            active=self._count(CompanyRequest.company_status == CompanyStatus.ACTIVE.value),
            blocked=self._count(CompanyRequest.company_status == CompanyStatus.BLOCKED.value),
            by_origin=self._breakdown(CompanyRequest.origin),
            by_status=self._breakdown(CompanyRequest.status),
            by_source_system=self._breakdown(CompanyRequest.source_system),
            by_request_type=self._breakdown(CompanyRequest.request_type),
            by_original_request_type=self._breakdown(CompanyRequest.original_request_type),
        )

    def _newest_first(self, query) -> list[RequestInfo]:
        query = query.order_by(CompanyRequest.created_at.desc(), CompanyRequest.id.desc())
        return [record.to_dto() for record in self.session.scalars(query)]

    def _count(self, *conditions: Any) -> int:
        query = select(func.count()).select_from(CompanyRequest)
        if conditions:
            query = query.where(*conditions)
        return self.session.scalar(query) or 0

    def _breakdown(self, column) -> dict[str, int]:
        rows = self.session.execute(
            select(column, func.count()).group_by(column).order_by(column)
        ).all()
        return {(key if key is not None else "unknown"): count for key, count in rows}
