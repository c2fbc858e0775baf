"""
Tests for the Settlement Gate.
"""

import threading
from unittest.mock import patch

import pytest

from offboarding_engine.engine import StateManager
from offboarding_engine.exceptions import (
    AlreadyTriggeredError,
    ConnectorError,
    GateNotSatisfiedError,
    NotFoundError,
    StoreError,
)
from offboarding_engine.models import (
    MarkerStatus,
    TerminationInitiation,
    TerminationReason,
    TerminationRequest,
    TerminationStatus,
)
from offboarding_engine.service import OffboardingService

from helpers import FIXED_NOW, FUTURE_DATE, clear_everything, replace_failing_on


class TestTriggerFinalSettlement:
    """Test cases for trigger_final_settlement."""

    def test_full_clearance_flow(self, service, payroll):
        """Test triggering settlement for a fully cleared case."""
        request = service.create_termination_request("EMP001", "EMPLOYEE", "RELOCATION", FUTURE_DATE)
        service.decide_termination_request(
            request.id, "APPROVE", "hr-1",
            departments=["IT", "Finance", "Facilities"], equipment=["Laptop"], card_returned=False,
        )
        checklist = service.get_clearance_checklist_by_termination_id(request.id)

        for department in ["IT", "Finance", "Facilities"]:
            service.update_clearance_department_item(checklist.id, department, "APPROVED", actor_id="approver")
        service.update_clearance_equipment_item(checklist.id, "Laptop", True)
        service.update_clearance_card_return(checklist.id, True)

        assert service.get_clearance_completion_status(checklist.id).fully_cleared

        result = service.trigger_final_settlement(request.id, actor_id="hr-1")

        assert result.termination_id == request.id
        assert result.employee_id == "EMP001"
        assert result.triggered_at == FIXED_NOW
        assert result.acknowledgement.reference.startswith("FS-")
        assert payroll.initiated[0]["termination_id"] == request.id

        record = service.state_manager.get_settlement(request.id)
        assert record.triggered_by == "hr-1"
        assert record.acknowledgement == result.acknowledgement

    def test_rejected_department_blocks_settlement(self, service, approved_case, payroll):
        """Test that a rejected department blocks settlement."""
        request, checklist = approved_case
        service.update_clearance_department_item(checklist.id, "IT", "APPROVED", actor_id="it-1")
        service.update_clearance_department_item(checklist.id, "Finance", "REJECTED", "Open loan", "fin-1")
        service.update_clearance_department_item(checklist.id, "Facilities", "APPROVED", actor_id="fac-1")
        service.update_clearance_equipment_item(checklist.id, "Laptop", True)
        service.update_clearance_card_return(checklist.id, True)

        completion = service.get_clearance_completion_status(checklist.id)
        assert not completion.fully_cleared
        assert completion.pending_departments == ["Finance"]

        with pytest.raises(GateNotSatisfiedError) as exc_info:
            service.trigger_final_settlement(request.id)

        error = exc_info.value
        assert error.reason == "not fully cleared"
        assert error.pending_departments == ["Finance"]
        assert error.pending_equipment == []
        assert error.card_returned is True
        assert payroll.initiated == []

    @pytest.mark.parametrize("skip", ["department", "equipment", "card"])
    def test_each_outstanding_slot_blocks_settlement(self, service, approved_case, payroll, skip):
        """Test that each open slot type blocks settlement."""
        request, checklist = approved_case
        for item in checklist.items:
            if not (skip == "department" and item.department == "Facilities"):
                service.update_clearance_department_item(checklist.id, item.department, "APPROVED", actor_id="a")
        if skip != "equipment":
            service.update_clearance_equipment_item(checklist.id, "Laptop", True)
        if skip != "card":
            service.update_clearance_card_return(checklist.id, True)

        with pytest.raises(GateNotSatisfiedError) as exc_info:
            service.trigger_final_settlement(request.id)

        details = exc_info.value.to_dict()["details"]
        assert details["reason"] == "not fully cleared"
        assert details["pending_departments"] == (["Facilities"] if skip == "department" else [])
        assert details["pending_equipment"] == (["Laptop"] if skip == "equipment" else [])
        assert details["card_returned"] is (skip != "card")
        assert payroll.initiated == []

    def test_pending_request_not_approved(self, service, payroll):
        """Test that pending requests cannot be settled."""
        request = service.create_termination_request("EMP001", "EMPLOYEE", "PERSONAL", FUTURE_DATE)

        with pytest.raises(GateNotSatisfiedError) as exc_info:
            service.trigger_final_settlement(request.id)

        assert exc_info.value.reason == "not approved"
        assert exc_info.value.status_code == 409
        assert payroll.initiated == []

    def test_rejected_request_not_approved(self, service):
        """Test that rejected requests cannot be settled."""
        request = service.create_termination_request("EMP001", "EMPLOYEE", "PERSONAL", FUTURE_DATE)
        service.decide_termination_request(request.id, "REJECT", "hr-1")

        with pytest.raises(GateNotSatisfiedError) as exc_info:
            service.trigger_final_settlement(request.id)

        assert exc_info.value.reason == "not approved"

    def test_unknown_request(self, service):
        """Test triggering settlement for an unknown request."""
        with pytest.raises(NotFoundError):
            service.trigger_final_settlement("missing")

    def test_approved_request_without_checklist(self, service, payroll):
        """Test an approved request that has no checklist."""
        with service.state_manager.transaction() as state:
            state.put_termination_request(TerminationRequest(
                id="TR-ORPHAN",
                employee_id="EMP003",
                initiator=TerminationInitiation.HR,
                reason=TerminationReason.OTHER,
                termination_date=FUTURE_DATE,
                status=TerminationStatus.APPROVED,
                decided_at=FIXED_NOW,
            ))

        with pytest.raises(NotFoundError):
            service.trigger_final_settlement("TR-ORPHAN")

        assert payroll.initiated == []

    def test_second_trigger_is_rejected_without_calling_payroll(self, service, approved_case, payroll):
        """Test that a replay is refused without calling payroll."""
        request, checklist = approved_case
        clear_everything(service, checklist)
        first = service.trigger_final_settlement(request.id)

        with pytest.raises(AlreadyTriggeredError) as exc_info:
            service.trigger_final_settlement(request.id)

        assert exc_info.value.details["reference"] == first.acknowledgement.reference
        assert len(payroll.initiated) == 1

    def test_replay_reported_even_if_checklist_reopened(self, service, approved_case, payroll):
        """Test that a replay is reported before the gate checks."""
        request, checklist = approved_case
        clear_everything(service, checklist)
        service.trigger_final_settlement(request.id)
        service.update_clearance_card_return(checklist.id, False)

        with pytest.raises(AlreadyTriggeredError):
            service.trigger_final_settlement(request.id)

        assert len(payroll.initiated) == 1

    def test_payroll_failure_records_nothing(self, service, approved_case, payroll):
        """Test that a payroll failure allows a later retry."""
        request, checklist = approved_case
        clear_everything(service, checklist)
        payroll.fail_next = True

        with pytest.raises(ConnectorError) as exc_info:
            service.trigger_final_settlement(request.id)

        assert exc_info.value.status_code == 502
        assert service.state_manager.get_settlement(request.id) is None

        # A retry goes through once payroll recovers
        result = service.trigger_final_settlement(request.id)
        assert result.acknowledgement.reference
        assert len(payroll.initiated) == 1

    def test_concurrent_triggers_call_payroll_once(self, service, approved_case, payroll):
        """Test that concurrent triggers call payroll once."""
        request, checklist = approved_case
        clear_everything(service, checklist)

        barrier = threading.Barrier(6)
        results = []
        errors = []

        def trigger():
            barrier.wait()
            try:
                results.append(service.trigger_final_settlement(request.id))
            except AlreadyTriggeredError as e:
                errors.append(e)

        threads = [threading.Thread(target=trigger) for _ in range(6)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(results) == 1
        assert len(errors) == 5
        assert len(payroll.initiated) == 1


class TestPreviewFinalSettlement:
    """Test cases for preview_final_settlement."""

    def test_preview_lists_blockers(self, service, approved_case):
        """Test that the preview lists every blocker."""
        request, checklist = approved_case
        service.update_clearance_department_item(checklist.id, "IT", "APPROVED", actor_id="it-1")

        preview = service.preview_final_settlement(request.id)

        assert preview.has_checklist
        assert not preview.can_trigger
        assert not preview.already_triggered
        assert preview.blockers == [
            "Finance clearance pending",
            "Facilities clearance pending",
            "Laptop not returned",
            "Access card not returned",
        ]
        assert preview.completion.pending_departments == ["Finance", "Facilities"]

    def test_preview_pending_request(self, service):
        """Test previewing a pending request."""
        request = service.create_termination_request("EMP001", "EMPLOYEE", "PERSONAL", FUTURE_DATE)

        preview = service.preview_final_settlement(request.id)

        assert preview.termination_status == TerminationStatus.PENDING
        assert not preview.has_checklist
        assert preview.completion is None
        assert preview.blockers == ["Termination request is PENDING"]

    def test_preview_has_no_side_effects(self, service, approved_case, payroll):
        """Test that previewing contacts nothing and records nothing."""
        request, checklist = approved_case
        clear_everything(service, checklist)

        preview = service.preview_final_settlement(request.id)

        assert preview.can_trigger
        assert preview.blockers == []
        assert payroll.initiated == []
        assert service.state_manager.get_settlement(request.id) is None

    def test_preview_after_trigger(self, service, approved_case):
        """Test previewing after settlement was triggered."""
        request, checklist = approved_case
        clear_everything(service, checklist)
        service.trigger_final_settlement(request.id)

        preview = service.preview_final_settlement(request.id)

        assert preview.already_triggered
        assert not preview.can_trigger

    def test_preview_unknown_request(self, service):
        """Test previewing an unknown request."""
        with pytest.raises(NotFoundError):
            service.preview_final_settlement("missing")


class TestSettlementMarkerDurability:
    """Test cases for the settlement marker around the payroll call."""

    REPLACE = "offboarding_engine.engine.state_manager.os.replace"

    @pytest.fixture
    def cleared_case(self, persistent_service):
        request = persistent_service.create_termination_request("EMP001", "EMPLOYEE", "RELOCATION", FUTURE_DATE)
        persistent_service.decide_termination_request(request.id, "APPROVE", "hr-1",
                                                      departments=["IT"], equipment=["Laptop"])
        clear_everything(persistent_service, persistent_service.get_clearance_checklist_by_termination_id(request.id))
        return request

    def test_pending_marker_recorded_before_payroll_call(self, service, approved_case, payroll):
        """Test that the case is marked as triggering before payroll is contacted."""
        request, checklist = approved_case
        clear_everything(service, checklist)
        seen = []
        initiate = payroll.initiate_final_settlement

        def observe(termination_id, employee_id):
            seen.append(service.state_manager.get_settlement(termination_id))
            return initiate(termination_id, employee_id)

        with patch.object(payroll, "initiate_final_settlement", side_effect=observe):
            service.trigger_final_settlement(request.id)

        assert seen[0].status == MarkerStatus.PENDING
        assert seen[0].acknowledgement is None
        assert service.state_manager.get_settlement(request.id).status == MarkerStatus.COMPLETED

    def test_save_failure_after_payroll_never_repeats_payroll(self, persistent_service, cleared_case,
                                                              payroll, state_path, connectors, clock):
        """Test that a lost marker save after payroll accepted never calls payroll again."""
        with patch(self.REPLACE, side_effect=replace_failing_on(2)):
            with pytest.raises(StoreError):
                persistent_service.trigger_final_settlement(cleared_case.id)

        assert len(payroll.initiated) == 1

        with pytest.raises(AlreadyTriggeredError) as exc_info:
            persistent_service.trigger_final_settlement(cleared_case.id)
        assert exc_info.value.details["reference"] == payroll.initiated[0]["reference"]

        # The file still holds the pending marker, so a restarted engine refuses too
        restarted = OffboardingService(state_manager=StateManager(state_path), connectors=connectors, clock=clock)
        with pytest.raises(AlreadyTriggeredError) as exc_info:
            restarted.trigger_final_settlement(cleared_case.id)
        assert exc_info.value.details["status"] == "PENDING"

        assert len(payroll.initiated) == 1

    def test_save_failure_before_payroll_allows_retry(self, persistent_service, cleared_case, payroll):
        """Test that a failed marker save leaves payroll untouched and the case retryable."""
        with patch(self.REPLACE, side_effect=replace_failing_on(1)):
            with pytest.raises(StoreError):
                persistent_service.trigger_final_settlement(cleared_case.id)

        assert payroll.initiated == []
        assert persistent_service.state_manager.get_settlement(cleared_case.id) is None

        result = persistent_service.trigger_final_settlement(cleared_case.id)

        assert result.acknowledgement.reference == payroll.initiated[0]["reference"]
        assert len(payroll.initiated) == 1
