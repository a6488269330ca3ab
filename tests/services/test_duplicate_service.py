"""
Tests for DuplicateResolutionService: building a master from a duplicate
group, merging linked duplicates into it, and resubmitting a rejected master.
"""

import pytest
from sqlalchemy import select

from mdm_kernel.domain.dtos import (
    BuildMasterCommand,
    ContactInput,
    DocumentInput,
    ResubmitMasterCommand,
)
from mdm_kernel.domain.invariants import check_request_invariants
from mdm_kernel.domain.values import RequestStatus
from mdm_kernel.exceptions import (
    DuplicateGroupNotFoundError,
    InvalidCommandError,
    InvalidTransitionError,
    MasterRecordNotFoundError,
    MissingFieldError,
    RequestNotFoundError,
)
from mdm_kernel.models.request import CompanyRequest
from tests.factories import DATA_ENTRY, REVIEWER

TAX = "311111111100003"


@pytest.fixture
def group(duplicate_group):
    """REQ-0001..REQ-0003, all Duplicate, sharing TAX."""
    return duplicate_group(tax=TAX, size=3)


@pytest.fixture
def build_command(group):
    return BuildMasterCommand(
        tax_number=TAX,
        selected_fields={
            "first_name": group[0],
            "email_address": group[2],
            "street": "MANUAL_ENTRY",
            "city": "MANUAL_3",
        },
        duplicate_ids=(group[0], group[1]),
        quarantine_ids=(group[2],),
        manual_fields={"street": "Tahlia Street"},
        contacts=(ContactInput(email="ops@gulffoods.example"),),
        documents=(DocumentInput(name="cr.pdf"),),
    )


@pytest.fixture
def built(duplicate_service, build_command):
    return duplicate_service.build_master(build_command, actor=DATA_ENTRY)


def _actions(history_selector, request_id):
    return [e.action for e in history_selector.history(request_id)]


class TestBuildMaster:
    def test_result(self, built, group):
        assert built.master_id == "REQ-0004"
        assert built.tax_number == TAX
        assert built.linked_ids == (group[0], group[1])
        assert built.quarantined_ids == (group[2],)
        assert built.contacts_added == 1
        assert built.documents_added == 1

    def test_master_record(self, built, workflow_service, group):
        master = workflow_service.get(built.master_id)

        assert master.status == "Pending"
        assert master.origin == "masterBuilder"
        assert master.is_master is True
        assert master.master_id is None
        assert master.request_type == master.original_request_type == "duplicate"
        assert master.source_system == "Master Builder"
        assert master.assigned_to == "reviewer"
        assert master.confidence == pytest.approx(0.95)
        assert master.build_strategy == "manual"

        assert master.tax == TAX
        assert master.first_name == "Gulf Foods LLC"
        assert master.fields["email_address"] == "sales@gulffoods.example"
        assert master.fields["street"] == "Tahlia Street"
        assert master.fields["city"] is None

    def test_provenance(self, built, workflow_service, group):
        master = workflow_service.get(built.master_id)

        assert master.selected_field_sources["street"] == "MANUAL_ENTRY"
        provenance = master.built_from_records
        assert provenance["true_duplicates"] == [group[0], group[1]]
        assert provenance["quarantine_records"] == [group[2]]
        assert provenance["total_processed"] == 3
        assert [r["id"] for r in provenance["records"]] == group

    def test_children_defaulted(self, built, workflow_service):
        master = workflow_service.get(built.master_id)

        contact = master.contacts[0]
        assert contact.name == "ops"
        assert contact.preferred_language == "EN"
        assert contact.source == "Master Builder"
        assert contact.added_by == "alice"
        assert master.documents[0].source == "Master Builder"

    def test_members_linked_and_quarantined(self, built, workflow_service, group):
        for linked_id in (group[0], group[1]):
            linked = workflow_service.get(linked_id)
            assert linked.status == "Linked"
            assert linked.master_id == built.master_id

        quarantined = workflow_service.get(group[2])
        assert quarantined.status == "Quarantine"
        assert quarantined.request_type == "quarantine"
        assert quarantined.original_request_type == "new"
        assert quarantined.master_id is None
        assert quarantined.assigned_to == "data_entry"

    def test_history(self, built, history_selector, group):
        assert _actions(history_selector, built.master_id) == ["MASTER_BUILT"]
        assert _actions(history_selector, group[0])[-1] == "LINKED_TO_MASTER"

        moved = history_selector.history(group[2])[-1]
        assert moved.action == "MOVED_TO_QUARANTINE"
        assert moved.payload.previous_request_type == "new"
        assert moved.payload.new_request_type == "quarantine"
        assert moved.payload.previous_master_id == built.master_id

        summary = history_selector.history(built.master_id)[0].payload
        assert (summary.linked_count, summary.quarantine_count) == (2, 1)

    def test_every_record_sound(self, built, session):
        for record in session.scalars(select(CompanyRequest)):
            assert check_request_invariants(record) == []

    def test_from_quarantine(self, duplicate_service, build_command):
        command = BuildMasterCommand(
            tax_number=build_command.tax_number,
            selected_fields=build_command.selected_fields,
            duplicate_ids=build_command.duplicate_ids,
            from_quarantine=True,
        )
        result = duplicate_service.build_master(command, actor=DATA_ENTRY)
        master = duplicate_service.session.get(CompanyRequest, result.master_id)
        assert master.request_type == "quarantine"
        assert master.built_from_records["from_quarantine"] is True

    @pytest.mark.parametrize(
        "overrides,missing",
        [
            ({"tax_number": None}, "tax_number"),
            ({"selected_fields": {}}, "selected_fields"),
            ({"duplicate_ids": ()}, "duplicate_ids"),
        ],
    )
    def test_required_inputs(self, duplicate_service, overrides, missing):
        values = {
            "tax_number": TAX,
            "selected_fields": {"first_name": "REQ-0001"},
            "duplicate_ids": ("REQ-0001",),
        }
        values.update(overrides)
        with pytest.raises(MissingFieldError) as exc_info:
            duplicate_service.build_master(BuildMasterCommand(**values), actor=DATA_ENTRY)
        assert exc_info.value.field_name == missing

    def test_unknown_group(self, duplicate_service):
        command = BuildMasterCommand(
            tax_number="399999999900003",
            selected_fields={"first_name": "REQ-0001"},
            duplicate_ids=("REQ-0001",),
        )
        with pytest.raises(DuplicateGroupNotFoundError):
            duplicate_service.build_master(command, actor=DATA_ENTRY)

    def test_merged_member_cannot_be_quarantined(self, duplicate_service, create_request, group):
        merged = create_request(
            tax=TAX,
            status=RequestStatus.MERGED,
            row={"is_merged": True, "merged_into_id": "REQ-0042"},
        )
        command = BuildMasterCommand(
            tax_number=TAX,
            selected_fields={"first_name": group[0]},
            duplicate_ids=(group[0],),
            quarantine_ids=(merged,),
        )
        with pytest.raises(InvalidTransitionError):
            duplicate_service.build_master(command, actor=DATA_ENTRY)

    def test_bystander_left_out_of_provenance(self, duplicate_service, workflow_service, group):
        command = BuildMasterCommand(
            tax_number=TAX,
            selected_fields={"first_name": group[0]},
            duplicate_ids=(group[0],),
        )
        result = duplicate_service.build_master(command, actor=DATA_ENTRY)

        provenance = workflow_service.get(result.master_id).built_from_records
        assert [r["id"] for r in provenance["records"]] == [group[0]]
        assert workflow_service.get(group[1]).status == "Duplicate"

    def test_other_tax_group_not_quarantined(
        self, duplicate_service, workflow_service, history_selector, create_request, group
    ):
        outsider = create_request(tax="999999999900001", status=RequestStatus.DUPLICATE)
        command = BuildMasterCommand(
            tax_number=TAX,
            selected_fields={"first_name": group[0]},
            duplicate_ids=(group[0],),
            quarantine_ids=(outsider,),
        )
        result = duplicate_service.build_master(command, actor=DATA_ENTRY)

        assert outsider not in result.quarantined_ids
        untouched = workflow_service.get(outsider)
        assert untouched.status == "Duplicate"
        assert untouched.request_type != "quarantine"
        assert _actions(history_selector, outsider) == ["CREATE"]


class TestMerge:
    def test_merges_linked_duplicates_only(self, built, duplicate_service, workflow_service, group):
        result = duplicate_service.merge(
            built.master_id,
            [group[0], group[1], group[2], built.master_id, "MANUAL_9", "REQ-9999"],
            actor=DATA_ENTRY,
        )

        assert result.merged_ids == (group[0], group[1])
        assert result.merged_count == 2

        for merged_id in result.merged_ids:
            merged = workflow_service.get(merged_id)
            assert merged.status == "Merged"
            assert merged.is_merged is True
            assert merged.merged_into_id == built.master_id
        assert workflow_service.get(group[2]).status == "Quarantine"

    def test_history(self, built, duplicate_service, history_selector, group):
        duplicate_service.merge(built.master_id, [group[0]], actor=DATA_ENTRY)

        merged = history_selector.history(group[0])[-1]
        assert merged.action == "MERGED"
        assert merged.payload.master_id == built.master_id
        assert merged.payload.master_name == "Gulf Foods LLC"

        rollup = history_selector.history(built.master_id)[-1]
        assert rollup.action == "MERGE_MASTER"
        assert rollup.payload.merged_ids == (group[0],)

    def test_second_merge_is_empty(self, built, duplicate_service, history_selector, group):
        duplicate_service.merge(built.master_id, [group[0]], actor=DATA_ENTRY)
        result = duplicate_service.merge(built.master_id, [group[0]], actor=DATA_ENTRY)

        assert result.merged_ids == ()
        assert _actions(history_selector, built.master_id).count("MERGE_MASTER") == 1

    def test_merged_record_never_moves(self, built, duplicate_service, workflow_service, group):
        duplicate_service.merge(built.master_id, [group[0]], actor=DATA_ENTRY)
        with pytest.raises(InvalidTransitionError):
            workflow_service.approve(group[0], actor=REVIEWER)
        with pytest.raises(InvalidTransitionError):
            workflow_service.reject(group[0], "no", actor=REVIEWER)

    def test_target_must_be_a_master(self, duplicate_service, group):
        with pytest.raises(MasterRecordNotFoundError):
            duplicate_service.merge(group[0], [group[1]], actor=DATA_ENTRY)
        with pytest.raises(MasterRecordNotFoundError):
            duplicate_service.merge("REQ-9999", [group[1]], actor=DATA_ENTRY)

    def test_inputs_required(self, duplicate_service):
        with pytest.raises(MissingFieldError):
            duplicate_service.merge(None, ["REQ-0001"])
        with pytest.raises(MissingFieldError):
            duplicate_service.merge("REQ-0001", [])


@pytest.fixture
def rejected_master(built, workflow_service):
    workflow_service.reject(built.master_id, "Wrong street", actor=REVIEWER)
    return built.master_id


class TestResubmitMaster:
    def _command(self, group, master_id, **overrides):
        values = dict(
            tax_number=TAX,
            selected_fields={"first_name": group[1], "tax": group[0], "city": group[0]},
            duplicate_ids=(group[0], group[1]),
            original_record_id=master_id,
            is_resubmission=True,
            contacts=(ContactInput(name="Huda Alqahtani", preferred_language="AR"),),
        )
        values.update(overrides)
        return ResubmitMasterCommand(**values)

    def test_master_corrected_in_place(
        self, rejected_master, duplicate_service, workflow_service, group
    ):
        result = duplicate_service.resubmit_master(
            self._command(group, rejected_master), actor=DATA_ENTRY
        )

        assert result.master_id == rejected_master
        master = workflow_service.get(rejected_master)
        assert master.status == "Pending"
        assert master.reject_reason is None
        assert master.assigned_to == "reviewer"
        assert master.is_master is True
        assert master.first_name == "Gulf Foods"
        assert master.fields["city"] == "Riyadh"
        assert master.fields["street"] == "Tahlia Street"
        assert master.request_type == master.original_request_type == "duplicate"

    def test_children_replaced(self, rejected_master, duplicate_service, workflow_service, group):
        duplicate_service.resubmit_master(self._command(group, rejected_master), actor=DATA_ENTRY)
        master = workflow_service.get(rejected_master)
        assert [c.name for c in master.contacts] == ["Huda Alqahtani"]
        assert master.documents == ()

    def test_provenance_marks_resubmission(
        self, rejected_master, duplicate_service, workflow_service, group
    ):
        duplicate_service.resubmit_master(self._command(group, rejected_master), actor=DATA_ENTRY)
        provenance = workflow_service.get(rejected_master).built_from_records
        assert provenance["resubmission"] is True
        assert provenance["original_request_type"] == "duplicate"
        assert rejected_master not in [r["id"] for r in provenance["records"]]

    def test_history(self, rejected_master, duplicate_service, history_selector, group):
        duplicate_service.resubmit_master(self._command(group, rejected_master), actor=DATA_ENTRY)

        event = history_selector.history(rejected_master)[-1]
        assert event.action == "MASTER_RESUBMITTED"
        assert (event.from_status, event.to_status) == ("Rejected", "Pending")
        assert event.payload.previous_reject_reason == "Wrong street"
        assert event.payload.linked_count == 2

        relinked = history_selector.history(group[0])[-1]
        assert relinked.action == "LINKED_TO_MASTER"
        assert relinked.payload.resubmission is True

    def test_requires_flag(self, rejected_master, duplicate_service, group):
        with pytest.raises(InvalidCommandError):
            duplicate_service.resubmit_master(
                self._command(group, rejected_master, is_resubmission=False)
            )

    def test_requires_original(self, duplicate_service, group):
        with pytest.raises(MissingFieldError):
            duplicate_service.resubmit_master(self._command(group, None))

    def test_unknown_original(self, duplicate_service, group):
        with pytest.raises(RequestNotFoundError):
            duplicate_service.resubmit_master(self._command(group, "REQ-9999"))
