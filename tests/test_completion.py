"""
Tests for the Completion Evaluator.
"""

import pytest

from offboarding_engine.engine import evaluate_completion
from offboarding_engine.models import (
    ApprovalStatus,
    ClearanceChecklist,
    DepartmentClearanceItem,
    EquipmentItem,
)


def make_checklist(departments=None, equipment=None, card_returned=True):
    return ClearanceChecklist(
        id="CL-1",
        termination_id="TR-1",
        items=[
            DepartmentClearanceItem(department=name, status=status)
            for name, status in (departments or {}).items()
        ],
        equipment_list=[
            EquipmentItem(name=name, returned=returned)
            for name, returned in (equipment or {}).items()
        ],
        card_returned=card_returned,
    )


class TestEvaluateCompletion:
    """Test cases for evaluate_completion."""

    def test_fully_cleared(self):
        """Test a checklist with everything cleared."""
        checklist = make_checklist(
            {"IT": ApprovalStatus.APPROVED, "Finance": ApprovalStatus.APPROVED},
            {"Laptop": True},
        )

        completion = evaluate_completion(checklist)

        assert completion.checklist_id == "CL-1"
        assert completion.all_departments_cleared
        assert completion.all_equipment_returned
        assert completion.card_returned
        assert completion.fully_cleared
        assert completion.pending_departments == []
        assert completion.pending_equipment == []

    @pytest.mark.parametrize("departments,equipment,card_returned", [
        ({"IT": ApprovalStatus.PENDING}, {"Laptop": True}, True),
        ({"IT": ApprovalStatus.REJECTED}, {"Laptop": True}, True),
        ({"IT": ApprovalStatus.APPROVED}, {"Laptop": False}, True),
        ({"IT": ApprovalStatus.APPROVED}, {"Laptop": True}, False),
    ])
    def test_any_single_blocker_prevents_clearance(self, departments, equipment, card_returned):
        """Test that any one open slot blocks clearance."""
        completion = evaluate_completion(make_checklist(departments, equipment, card_returned))
        assert not completion.fully_cleared

    def test_rejected_counts_as_pending_in_checklist_order(self):
        """Test that rejected items stay pending in checklist order."""
        checklist = make_checklist({
            "IT": ApprovalStatus.PENDING,
            "Finance": ApprovalStatus.REJECTED,
            "Facilities": ApprovalStatus.APPROVED,
            "HR": ApprovalStatus.PENDING,
        }, {"Laptop": False, "Monitor": True, "Phone": False})

        completion = evaluate_completion(checklist)

        assert completion.pending_departments == ["IT", "Finance", "HR"]
        assert completion.pending_equipment == ["Laptop", "Phone"]
        assert not completion.all_departments_cleared
        assert not completion.all_equipment_returned

    def test_empty_lists_are_vacuously_cleared(self):
        """Test that empty lists count as cleared."""
        completion = evaluate_completion(make_checklist({}, {}, card_returned=True))

        assert completion.all_departments_cleared
        assert completion.all_equipment_returned
        assert completion.fully_cleared

    def test_empty_lists_still_need_card(self):
        """Test that the card is required even with empty lists."""
        completion = evaluate_completion(make_checklist({}, {}, card_returned=False))

        assert completion.all_departments_cleared
        assert not completion.fully_cleared

    def test_evaluation_is_pure_and_idempotent(self):
        """Test that evaluation does not change the checklist."""
        checklist = make_checklist({"IT": ApprovalStatus.REJECTED}, {"Laptop": False}, False)
        before = checklist.model_copy(deep=True)

        first = evaluate_completion(checklist)
        second = evaluate_completion(checklist)

        assert first == second
        assert checklist == before
