"""Tests for RequestSelector listings and dashboard statistics."""

import pytest

from mdm_kernel.domain.dtos import BuildMasterCommand
from mdm_kernel.domain.values import RequestStatus
from mdm_kernel.exceptions import RequestNotFoundError
from tests.factories import COMPLIANCE, DATA_ENTRY, REVIEWER


class TestGet:
    def test_get(self, create_request, request_selector):
        request_id = create_request()
        info = request_selector.get(request_id)
        assert info.id == request_id
        assert info.first_name == "Almarai Trading Co"

    def test_unknown(self, request_selector):
        with pytest.raises(RequestNotFoundError):
            request_selector.get("REQ-9999")


class TestListRequests:
    def test_newest_first(self, create_request, request_selector, deterministic_clock):
        first = create_request()
        deterministic_clock.advance(60)
        second = create_request()
        third = create_request()

        assert [r.id for r in request_selector.list_requests()] == [third, second, first]

    def test_filters_combine(self, create_request, workflow_service, request_selector):
        approved = create_request()
        create_request()
        create_request(row={"origin": "quarantine"})
        workflow_service.approve(approved, actor=REVIEWER)

        assert [r.id for r in request_selector.list_requests(status="Approved")] == [approved]
        assert [r.id for r in request_selector.list_requests(assigned_to="compliance")] == [approved]
        assert len(request_selector.list_requests(status="Pending")) == 2
        assert len(request_selector.list_requests(status="Pending", origin="quarantine")) == 1
        assert request_selector.list_requests(is_golden=True) == []

    def test_quarantine_list(self, create_request, request_selector):
        quarantined = create_request(status=RequestStatus.QUARANTINE)
        create_request()
        assert [r.id for r in request_selector.list_quarantine()] == [quarantined]


class TestListGolden:
    def test_golden_and_masters(
        self, create_request, duplicate_group, workflow_service, golden_service,
        duplicate_service, request_selector,
    ):
        golden = create_request()
        workflow_service.approve(golden, actor=REVIEWER)
        golden_service.compliance_approve(golden, actor=COMPLIANCE)

        members = duplicate_group(tax="322222222200003", size=2)
        master = duplicate_service.build_master(
            BuildMasterCommand(
                tax_number="322222222200003",
                selected_fields={"first_name": members[0]},
                duplicate_ids=tuple(members),
            ),
            actor=DATA_ENTRY,
        ).master_id

        assert {r.id for r in request_selector.list_golden()} == {golden, master}
        assert [r.id for r in request_selector.list_golden(include_masters=False)] == [golden]


class TestStats:
    def test_counts_and_breakdowns(self, create_request, workflow_service, golden_service, request_selector):
        golden = create_request()
        workflow_service.approve(golden, actor=REVIEWER)
        golden_service.compliance_block(golden, "Sanctions list match", actor=COMPLIANCE)
        rejected = create_request()
        workflow_service.reject(rejected, "Incomplete", actor=REVIEWER)
        create_request(status=RequestStatus.QUARANTINE, row={"request_type": "quarantine"})
        create_request(row={"source_system": None})

        stats = request_selector.stats()

        assert stats.total == 4
        assert stats.pending == 1
        assert stats.approved == 1
        assert stats.rejected == 1
        assert stats.quarantined == 1
        assert stats.golden == 1
        assert stats.active == 0
        assert stats.blocked == 1
        assert stats.by_status == {"Approved": 1, "Pending": 1, "Quarantine": 1, "Rejected": 1}
        assert stats.by_origin == {"dataEntry": 4}
        assert stats.by_source_system == {"Data Steward": 3, "unknown": 1}
        assert stats.by_request_type == {"new": 3, "quarantine": 1}
        assert stats.by_original_request_type == {"new": 4}

    def test_empty(self, request_selector):
        stats = request_selector.stats()
        assert stats.total == 0
        assert stats.by_status == {}
