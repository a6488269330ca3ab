"""Tests for DuplicateSelector: candidate listing, grouping and recommendations."""

import pytest

from mdm_kernel.domain.dtos import BuildMasterCommand
from mdm_kernel.domain.values import RequestStatus
from mdm_kernel.exceptions import DuplicateGroupNotFoundError, MasterRecordNotFoundError
from tests.factories import DATA_ENTRY

TAX_A = "311111111100003"
TAX_B = "322222222200003"


@pytest.fixture
def built_group(duplicate_group, duplicate_service):
    """Three-member group: two linked to a built master, one quarantined."""
    members = duplicate_group(tax=TAX_A, size=3)
    result = duplicate_service.build_master(
        BuildMasterCommand(
            tax_number=TAX_A,
            selected_fields={"first_name": members[1]},
            duplicate_ids=(members[0], members[1]),
            quarantine_ids=(members[2],),
        ),
        actor=DATA_ENTRY,
    )
    return members, result.master_id


class TestListDuplicates:
    def test_only_unprocessed_candidates(self, create_request, duplicate_group, duplicate_selector):
        members = duplicate_group(tax=TAX_A, size=2)
        draft = create_request(status=RequestStatus.DRAFT, tax=TAX_B)
        create_request(tax=TAX_B)
        create_request(status=RequestStatus.DUPLICATE, row={"master_id": "REQ-0099"})
        create_request(status=RequestStatus.DUPLICATE, row={"is_master": True})

        ids = [r.id for r in duplicate_selector.list_duplicates()]
        assert ids == [draft, members[1], members[0]]

    def test_processed_members_drop_out(self, built_group, duplicate_selector):
        assert duplicate_selector.list_duplicates() == []


class TestDuplicateGroups:
    def test_groups_largest_first(self, create_request, duplicate_group, duplicate_selector):
        a = duplicate_group(tax=TAX_A, size=3)
        b = duplicate_group(tax=TAX_B, size=2)
        create_request(status=RequestStatus.DUPLICATE, tax="333333333300003")

        groups = duplicate_selector.duplicate_groups()

        assert [(g.tax_number, g.record_count) for g in groups] == [(TAX_A, 3), (TAX_B, 2)]
        assert groups[0].record_ids == tuple(a)
        assert groups[1].record_ids == tuple(b)
        assert groups[1].group_name == "Gulf Foods Group"

    def test_no_groups_once_resolved(self, built_group, duplicate_selector):
        assert duplicate_selector.duplicate_groups() == []


class TestRecordsByTax:
    def test_master_first(self, built_group, duplicate_selector):
        members, master_id = built_group
        group = duplicate_selector.records_by_tax(TAX_A)

        assert group.master_id == master_id
        assert [r.id for r in group.records] == [master_id, *members]
        assert group.group_name == "Gulf Foods Group"
        assert group.record_count == 4

    def test_without_master(self, duplicate_group, duplicate_selector):
        members = duplicate_group(tax=TAX_B, size=2)
        group = duplicate_selector.records_by_tax(TAX_B)
        assert group.master_id is None
        assert group.group_name == f"Tax {TAX_B} Group"
        assert [r.id for r in group.records] == members

    def test_merged_records_excluded(self, built_group, duplicate_service, duplicate_selector):
        members, master_id = built_group
        duplicate_service.merge(master_id, [members[0]], actor=DATA_ENTRY)
        ids = [r.id for r in duplicate_selector.records_by_tax(TAX_A).records]
        assert members[0] not in ids

    def test_unknown_tax(self, duplicate_selector):
        with pytest.raises(DuplicateGroupNotFoundError):
            duplicate_selector.records_by_tax("399999999900003")


class TestRecordsByMaster:
    def test_master_and_linked(self, built_group, duplicate_selector):
        members, master_id = built_group
        group = duplicate_selector.records_by_master(master_id)
        assert [r.id for r in group.records] == [master_id, members[0], members[1]]
        assert group.tax_number == TAX_A

    def test_non_master(self, built_group, duplicate_selector):
        members, _ = built_group
        with pytest.raises(MasterRecordNotFoundError):
            duplicate_selector.records_by_master(members[0])


class TestRecommendFields:
    def test_best_value_per_field(self, duplicate_group, duplicate_selector):
        members = duplicate_group(tax=TAX_A, size=3)
        recommendations = duplicate_selector.recommend_fields(TAX_A)

        email = recommendations["email_address"]
        assert email.recommended.record_id == members[0]
        assert email.recommended.value == "info@gulffoods.example"
        assert email.recommended.quality == 100
        assert [c.record_id for c in email.alternatives] == [members[2]]
        assert email.has_conflict is True

        city = recommendations["city"]
        assert city.recommended.value == "Riyadh"
        assert city.has_conflict is False
        assert city.recommended.source_system == "Data Steward"

    def test_unknown_tax(self, duplicate_selector):
        with pytest.raises(DuplicateGroupNotFoundError):
            duplicate_selector.recommend_fields("399999999900003")
