"""
AdminService -- bulk clearing of request data and store-level counts.

Responsibility:
    Deletes whole categories of requests (duplicates, quarantine, golden,
    plain requests, or everything) through the same cascade and history
    purge path as a single delete, and reports the counts an administrator
    looks at before doing so.

Architecture position:
    Kernel > Services.

Invariants enforced:
    - A cleared request takes its contacts, documents, issues and workflow
      history with it; no orphaned history survives a clear.
    - Categories are disjoint except ``all``: ``duplicates`` never touches
      golden records and ``requests`` excludes every other category.

Failure modes:
    - InvalidCommandError: unknown data type (raised before any query).
"""

from enum import Enum

from sqlalchemy import and_, func, not_, or_, select
from sqlalchemy.orm import Session

from mdm_kernel.domain.clock import Clock
from mdm_kernel.domain.dtos import DataStats
from mdm_kernel.domain.policy import WorkflowPolicy
from mdm_kernel.domain.values import RequestStatus
from mdm_kernel.exceptions import InvalidCommandError
from mdm_kernel.logging_config import get_logger
from mdm_kernel.models.request import CompanyRequest
from mdm_kernel.services.audit_log import AuditLogService
from mdm_kernel.services.base import BaseService

logger = get_logger("services.admin")


class ClearDataType(str, Enum):
    ALL = "all"
    DUPLICATES = "duplicates"
    QUARANTINE = "quarantine"
    GOLDEN = "golden"
    REQUESTS = "requests"


_DUPLICATE_RELATED = (RequestStatus.DUPLICATE.value, RequestStatus.LINKED.value)


def _selection(data_type: ClearDataType):
    if data_type is ClearDataType.DUPLICATES:
        return and_(
            or_(
                CompanyRequest.status.in_(_DUPLICATE_RELATED),
                CompanyRequest.is_master.is_(True),
            ),
            CompanyRequest.is_golden.is_(False),
        )
    if data_type is ClearDataType.QUARANTINE:
        return CompanyRequest.status == RequestStatus.QUARANTINE.value
    if data_type is ClearDataType.GOLDEN:
        return CompanyRequest.is_golden.is_(True)
    if data_type is ClearDataType.REQUESTS:
        return and_(
            CompanyRequest.is_golden.is_(False),
            CompanyRequest.is_master.is_(False),
            not_(
                CompanyRequest.status.in_(
                    [*_DUPLICATE_RELATED, RequestStatus.QUARANTINE.value]
                )
            ),
        )
    return None


class AdminService(BaseService):
    def __init__(
        self,
        session: Session,
        auditor: AuditLogService,
        clock: Clock | None = None,
        policy: WorkflowPolicy | None = None,
    ):
        super().__init__(session, clock, policy)
        self._auditor = auditor

    def clear(self, data_type: str | ClearDataType) -> int:
        """Delete every request of ``data_type``; returns how many were removed."""
        try:
            kind = ClearDataType(data_type)
        except ValueError:
            raise InvalidCommandError("clear", f"unknown data type {data_type!r}") from None

        query = select(CompanyRequest)
        condition = _selection(kind)
        if condition is not None:
            query = query.where(condition)
        records = list(self.session.scalars(query))

        for record in records:
            self.session.delete(record)
        self.session.flush()

        if kind is ClearDataType.ALL:
            self._auditor.purge_all()
        else:
            for record in records:
                self._auditor.purge(record.id)

        logger.warning(
            "request_data_cleared",
            extra={"data_type": kind.value, "cleared_count": len(records)},
        )
        return len(records)

    def data_stats(self) -> DataStats:
        def count(*conditions) -> int:
            query = select(func.count()).select_from(CompanyRequest)
            if conditions:
                query = query.where(*conditions)
            return self.session.scalar(query) or 0

        return DataStats(
            masters=count(CompanyRequest.is_master.is_(True)),
            quarantine=count(CompanyRequest.status == RequestStatus.QUARANTINE.value),
            golden=count(CompanyRequest.is_golden.is_(True)),
            total=count(),
            pending=count(CompanyRequest.status == RequestStatus.PENDING.value),
        )
