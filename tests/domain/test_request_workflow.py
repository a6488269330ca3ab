"""The request workflow definition and the per-record invariants."""

from types import SimpleNamespace

import pytest

from mdm_kernel.domain.invariants import (
    RequestInvariant,
    check_request_invariants,
    enforce_request_invariants,
)
from mdm_kernel.domain.values import RequestStatus
from mdm_kernel.domain.workflow import REQUEST_WORKFLOW, RequestAction, Transition, Workflow
from mdm_kernel.exceptions import InvariantViolationError


class TestRequestWorkflow:
    def test_initial_state_is_pending(self):
        assert REQUEST_WORKFLOW.initial_state == RequestStatus.PENDING.value

    def test_merged_is_the_only_terminal_state(self):
        assert REQUEST_WORKFLOW.terminal_states == frozenset({RequestStatus.MERGED.value})

    @pytest.mark.parametrize("action", list(RequestAction))
    def test_merged_has_no_way_out(self, action):
        assert REQUEST_WORKFLOW.find(RequestStatus.MERGED.value, action.value) is None

    def test_complete_quarantine_only_from_quarantine(self):
        transition = REQUEST_WORKFLOW.find(
            RequestStatus.QUARANTINE.value, RequestAction.COMPLETE_QUARANTINE.value
        )
        assert transition.to_state == RequestStatus.PENDING.value
        assert (
            REQUEST_WORKFLOW.find(
                RequestStatus.PENDING.value, RequestAction.COMPLETE_QUARANTINE.value
            )
            is None
        )

    @pytest.mark.parametrize(
        "action,target",
        [
            (RequestAction.APPROVE, RequestStatus.APPROVED),
            (RequestAction.REJECT, RequestStatus.REJECTED),
            (RequestAction.LINK, RequestStatus.LINKED),
            (RequestAction.MERGE, RequestStatus.MERGED),
            (RequestAction.RESUBMIT, RequestStatus.PENDING),
        ],
    )
    def test_review_actions_from_rejected(self, action, target):
        transition = REQUEST_WORKFLOW.find(RequestStatus.REJECTED.value, action.value)
        assert transition.to_state == target.value

    def test_terminal_state_with_outgoing_transition_is_refused(self):
        with pytest.raises(ValueError, match="Terminal state"):
            Workflow(
                name="broken",
                description="",
                initial_state="a",
                states=("a", "b"),
                transitions=(Transition("b", "a", "reopen"),),
                terminal_states=frozenset({"b"}),
            )

    def test_unknown_state_is_refused(self):
        with pytest.raises(ValueError, match="unknown state"):
            Workflow(
                name="broken",
                description="",
                initial_state="a",
                states=("a",),
                transitions=(Transition("a", "z", "go"),),
            )


def _record(**overrides):
    values = dict(
        id="REQ-0001",
        is_master=False,
        master_id=None,
        is_golden=False,
        golden_record_code=None,
        company_status=None,
        is_merged=False,
        merged_into_id=None,
        status=RequestStatus.PENDING.value,
        original_request_type="new",
    )
    values.update(overrides)
    return SimpleNamespace(**values)


class TestRequestInvariants:
    def test_sound_record(self):
        assert check_request_invariants(_record()) == []

    def test_master_must_be_unlinked(self):
        violations = check_request_invariants(_record(is_master=True, master_id="REQ-0009"))
        assert violations[0][0] is RequestInvariant.MASTER_UNLINKED

    def test_golden_needs_code_and_live_status(self):
        kinds = {v[0] for v in check_request_invariants(_record(is_golden=True))}
        assert kinds == {RequestInvariant.GOLDEN_CODED, RequestInvariant.GOLDEN_LIVE}

    def test_blocked_golden_is_live(self):
        record = _record(is_golden=True, golden_record_code="GR-ABC123", company_status="Blocked")
        assert check_request_invariants(record) == []

    def test_merge_flag_and_target_move_together(self):
        kinds = {v[0] for v in check_request_invariants(_record(merged_into_id="REQ-0002"))}
        assert RequestInvariant.MERGE_TARGETED in kinds

    def test_merged_record_has_merged_status(self):
        record = _record(is_merged=True, merged_into_id="REQ-0002", status="Linked")
        kinds = {v[0] for v in check_request_invariants(record)}
        assert kinds == {RequestInvariant.MERGED_STATUS}

    def test_enforce_raises_first_violation(self):
        with pytest.raises(InvariantViolationError) as exc_info:
            enforce_request_invariants(_record(original_request_type=None))
        assert exc_info.value.invariant == RequestInvariant.TYPE_ORIGIN.value
        assert exc_info.value.request_id == "REQ-0001"
