"""Tests for HistorySelector: ordered history and the lineage view."""

from mdm_kernel.domain.dtos import ContactInput, DocumentInput
from mdm_kernel.domain.events import CreatePayload, MasterApprovePayload, UpdatePayload
from tests.factories import DATA_ENTRY, REVIEWER


class TestHistory:
    def test_ordered_and_typed(self, create_request, workflow_service, history_selector):
        request_id = create_request()
        workflow_service.update(request_id, {"city": "Jeddah"}, actor=DATA_ENTRY)
        workflow_service.approve(request_id, actor=REVIEWER)

        history = history_selector.history(request_id)

        assert [e.sequence for e in history] == [1, 2, 3]
        assert [e.action for e in history] == ["CREATE", "UPDATE", "MASTER_APPROVE"]
        assert isinstance(history[0].payload, CreatePayload)
        assert isinstance(history[1].payload, UpdatePayload)
        assert isinstance(history[2].payload, MasterApprovePayload)
        assert [e.performed_by for e in history] == ["alice", "alice", "rita"]

    def test_unknown_request_has_no_history(self, history_selector):
        assert history_selector.history("REQ-9999") == []


class TestLineage:
    def test_field_changes_newest_first(self, create_request, workflow_service, history_selector):
        request_id = create_request()
        workflow_service.update(request_id, {"city": "Jeddah"}, actor=DATA_ENTRY)
        workflow_service.update(request_id, {"city": "Dammam"}, reason="HQ moved", actor=DATA_ENTRY)

        lineage = history_selector.lineage(request_id)

        assert [(c.old_value, c.new_value) for c in lineage.field_changes] == [
            ("Jeddah", "Dammam"),
            ("Riyadh", "Jeddah"),
        ]
        latest = lineage.field_changes[0]
        assert latest.field == "city"
        assert latest.field_name == "City"
        assert latest.type == "field"
        assert latest.action == "UPDATE"
        assert latest.performed_by == "alice"
        assert latest.source == "data_entry"
        assert latest.note == "HQ moved"

    def test_changes_split_by_kind(self, create_request, workflow_service, history_selector):
        request_id = create_request()
        workflow_service.update(
            request_id,
            {"email_address": "procurement@almarai.example"},
            contacts=[ContactInput(name="Nora Aziz", email="nora@almarai.example")],
            documents=[DocumentInput(name="vat.pdf")],
            actor=DATA_ENTRY,
        )

        lineage = history_selector.lineage(request_id)

        assert [c.field for c in lineage.field_changes] == ["email_address"]
        assert [c.field for c in lineage.contact_changes] == ["Contact: Nora Aziz"]
        assert [c.field for c in lineage.document_changes] == ["Document: vat.pdf"]
        assert [e.action for e in lineage.events] == ["UPDATE", "CREATE"]

    def test_empty_lineage(self, history_selector):
        lineage = history_selector.lineage("REQ-9999")
        assert lineage.field_changes == ()
        assert lineage.events == ()
