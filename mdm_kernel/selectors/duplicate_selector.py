"""
Module: mdm_kernel.selectors.duplicate_selector
Responsibility: Read-only projections over duplicate groups (records sharing
    a tax number) and the field recommendation for a group.
Architecture position: Kernel > Selectors.  Scoring itself lives in
    ``domain.quality``; this selector only loads the group.

Invariants enforced:
    - Merged records never appear in any projection.
    - Unprocessed duplicates are records in Duplicate, New or Draft that are
      neither a master nor linked to one.
    - Group members are ordered master first, then oldest first.

Failure modes:
    - DuplicateGroupNotFoundError: no non-merged record for a tax number.
    - MasterRecordNotFoundError: group requested for a non-master id.
"""

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from mdm_kernel.domain.dtos import DuplicateGroup, DuplicateGroupSummary, RequestInfo
from mdm_kernel.domain.quality import FieldRecommendation, recommend
from mdm_kernel.domain.values import DUPLICATE_CANDIDATE_STATUSES
from mdm_kernel.exceptions import DuplicateGroupNotFoundError, MasterRecordNotFoundError
from mdm_kernel.models.request import CompanyRequest
from mdm_kernel.selectors.base import BaseSelector

_GROUP_ORDER = (
    CompanyRequest.is_master.desc(),
    CompanyRequest.created_at.asc(),
    CompanyRequest.id.asc(),
)


def _unprocessed():
    return (
        CompanyRequest.status.in_([s.value for s in DUPLICATE_CANDIDATE_STATUSES]),
        CompanyRequest.is_master.is_(False),
        CompanyRequest.master_id.is_(None),
        CompanyRequest.is_merged.is_(False),
    )


class DuplicateSelector(BaseSelector):
    def __init__(self, session: Session):
        super().__init__(session)

    def list_duplicates(self) -> list[RequestInfo]:
        query = (
            select(CompanyRequest)
            .where(*_unprocessed())
            .order_by(CompanyRequest.created_at.desc(), CompanyRequest.id.desc())
        )
        return [record.to_dto() for record in self.session.scalars(query)]

    def duplicate_groups(self) -> list[DuplicateGroupSummary]:
        """Tax numbers with more than one unprocessed record, largest group first."""
        size = func.count(CompanyRequest.id)
        rows = self.session.execute(
            select(CompanyRequest.tax, func.min(CompanyRequest.first_name), size)
            .where(*_unprocessed(), CompanyRequest.tax.is_not(None))
            .group_by(CompanyRequest.tax)
            .having(size > 1)
            .order_by(size.desc(), CompanyRequest.tax)
        ).all()

        summaries = []
        for tax_number, first_name, count in rows:
            ids = self.session.scalars(
                select(CompanyRequest.id)
                .where(*_unprocessed(), CompanyRequest.tax == tax_number)
                .order_by(CompanyRequest.created_at, CompanyRequest.id)
            ).all()
            summaries.append(
                DuplicateGroupSummary(
                    tax_number=tax_number,
                    group_name=f"{first_name} Group",
                    record_count=count,
                    record_ids=tuple(ids),
                )
            )
        return summaries

    def records_by_tax(self, tax_number: str) -> DuplicateGroup:
        records = self._by_tax(tax_number)
        master = next((r for r in records if r.is_master), None)
        return DuplicateGroup(
            tax_number=tax_number,
            group_name=f"{master.first_name} Group" if master else f"Tax {tax_number} Group",
            records=tuple(r.to_dto() for r in records),
            master_id=master.id if master else None,
        )

    def records_by_master(self, master_id: str) -> DuplicateGroup:
        master = self.session.get(CompanyRequest, master_id)
        if master is None or not master.is_master:
            raise MasterRecordNotFoundError(master_id)

        records = self.session.scalars(
            select(CompanyRequest)
            .where(
                (CompanyRequest.id == master_id) | (CompanyRequest.master_id == master_id),
                CompanyRequest.is_merged.is_(False),
            )
            .order_by(*_GROUP_ORDER)
        ).all()
        return DuplicateGroup(
            tax_number=master.tax,
            group_name=f"{master.first_name} Group",
            records=tuple(r.to_dto() for r in records),
            master_id=master_id,
        )

    def recommend_fields(self, tax_number: str) -> dict[str, FieldRecommendation]:
        """Best value per field across the group, with scored alternatives."""
        return recommend(record.snapshot() for record in self._by_tax(tax_number))

    def _by_tax(self, tax_number: str) -> list[CompanyRequest]:
        records = list(
            self.session.scalars(
                select(CompanyRequest)
                .where(CompanyRequest.tax == tax_number, CompanyRequest.is_merged.is_(False))
                .order_by(*_GROUP_ORDER)
            )
        )
        if not records:
            raise DuplicateGroupNotFoundError(tax_number)
        return records
