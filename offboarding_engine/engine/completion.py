"""
Completion Evaluator for the Offboarding Engine.

Derives whether a clearance checklist is fully cleared and which items are
still outstanding. The result is never stored on the checklist; it is
recomputed from the items every time it is needed.
"""

from ..models import ApprovalStatus, ClearanceChecklist, ClearanceCompletionStatus


def evaluate_completion(checklist: ClearanceChecklist) -> ClearanceCompletionStatus:
    """
    Evaluate the clearance status of a checklist.

    A department counts as cleared only when APPROVED; a REJECTED sign-off is
    pending until it is re-resolved. Empty department or equipment lists are
    vacuously cleared.

    Args:
        checklist: The checklist to evaluate

    Returns:
        ClearanceCompletionStatus for the checklist's current state
    """
    pending_departments = [
        item.department for item in checklist.items if item.status != ApprovalStatus.APPROVED
    ]
    pending_equipment = [item.name for item in checklist.equipment_list if not item.returned]

    all_departments_cleared = not pending_departments
    all_equipment_returned = not pending_equipment

    return ClearanceCompletionStatus(
        checklist_id=checklist.id,
        all_departments_cleared=all_departments_cleared,
        all_equipment_returned=all_equipment_returned,
        card_returned=checklist.card_returned,
        fully_cleared=all_departments_cleared and all_equipment_returned and checklist.card_returned,
        pending_departments=pending_departments,
        pending_equipment=pending_equipment,
    )
