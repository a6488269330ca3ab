"""Tests for AdminService: category clears and store counts."""

import pytest
from sqlalchemy import func, select

from mdm_kernel.domain.values import RequestStatus
from mdm_kernel.exceptions import InvalidCommandError
from mdm_kernel.models.request import CompanyRequest
from mdm_kernel.models.workflow_event import WorkflowEvent
from mdm_kernel.services.admin_service import ClearDataType
from tests.factories import COMPLIANCE, REVIEWER


@pytest.fixture
def populated(create_request, duplicate_group, workflow_service, golden_service):
    """One record per category; returns their ids by category."""
    golden = create_request(tax="300000000000001")
    workflow_service.approve(golden, actor=REVIEWER)
    golden_service.compliance_approve(golden, actor=COMPLIANCE)

    quarantine = create_request(
        tax="300000000000002",
        status=RequestStatus.QUARANTINE,
        row={"request_type": "quarantine"},
    )
    duplicates = duplicate_group(tax="300000000000003", size=2)
    plain = create_request(tax="300000000000004")
    return {
        "golden": [golden],
        "quarantine": [quarantine],
        "duplicates": duplicates,
        "requests": [plain],
    }


def _ids(session):
    return set(session.scalars(select(CompanyRequest.id)))


def _event_ids(session):
    return set(session.scalars(select(WorkflowEvent.request_id)))


class TestClear:
    @pytest.mark.parametrize("category", ["duplicates", "quarantine", "golden", "requests"])
    def test_category_cleared_with_history(self, populated, admin_service, session, category):
        removed = admin_service.clear(category)

        expected = set(populated[category])
        assert removed == len(expected)
        assert not expected & _ids(session)
        assert not expected & _event_ids(session)

        survivors = {i for k, ids in populated.items() if k != category for i in ids}
        assert survivors <= _ids(session)

    def test_all(self, populated, admin_service, session, captured_logs):
        assert admin_service.clear(ClearDataType.ALL) == 5
        assert _ids(session) == set()
        assert session.scalar(select(func.count()).select_from(WorkflowEvent)) == 0
        assert any(r["message"] == "workflow_history_cleared" for r in captured_logs())

    def test_duplicates_spare_golden_masters(self, create_request, admin_service, session):
        golden_master = create_request(
            status=RequestStatus.APPROVED,
            row={
                "is_master": True,
                "is_golden": True,
                "golden_record_code": "GR-KEEP01",
                "company_status": "Active",
            },
        )
        built_master = create_request(row={"is_master": True})

        assert admin_service.clear("duplicates") == 1
        assert _ids(session) == {golden_master}
        assert built_master not in _ids(session)

    def test_unknown_type(self, admin_service):
        with pytest.raises(InvalidCommandError):
            admin_service.clear("everything")


class TestDataStats:
    def test_counts(self, populated, admin_service, create_request):
        create_request(row={"is_master": True})
        stats = admin_service.data_stats()

        assert stats.total == 6
        assert stats.golden == 1
        assert stats.quarantine == 1
        assert stats.masters == 1
        assert stats.pending == 2

    def test_empty_store(self, admin_service):
        stats = admin_service.data_stats()
        assert (stats.total, stats.pending, stats.golden) == (0, 0, 0)
