"""
Clearance Checklist Workflow for the Offboarding Engine.

Owns the department sign-offs, equipment returns and access-card flag of a
separation case. The set of slots is fixed when the checklist is created;
afterwards every write targets exactly one slot and is applied atomically
under the store lock, so independent actors never lose each other's updates.
"""

import logging
from typing import Any, Iterable, List, Optional

from ..engine.completion import evaluate_completion
from ..engine.state_manager import StateManager
from ..exceptions import InvalidStateError, NotFoundError, ValidationError
from ..models import (
    ApprovalStatus,
    ClearanceChecklist,
    ClearanceCompletionStatus,
    DepartmentClearanceItem,
    EquipmentItem,
    TerminationStatus,
)
from .base_workflow import BaseWorkflow
from .helpers import coerce_enum, normalize_departments, normalize_equipment, require_text

logger = logging.getLogger(__name__)


class ClearanceChecklistWorkflow(BaseWorkflow):
    """
    Workflow for creating and signing off clearance checklists.

    Each slot (department item, equipment item, card flag) carries the commit
    sequence of its last write as ``revision``. Writes to the same slot are
    ordered by that sequence (last committed wins). Passing
    ``expected_revision`` makes a write a compare-and-set that fails instead
    of overwriting a newer value.
    """

    def create_for_termination(
        self,
        termination_id: str,
        departments: Iterable[str],
        equipment: Optional[Iterable[Any]] = None,
        card_returned: bool = False,
    ) -> ClearanceChecklist:
        """
        Create the checklist for an approved termination request.

        Called from the approval transition, inside its transaction.

        Args:
            termination_id: Approved termination request id
            departments: Departments that must sign off (non-empty, unique)
            equipment: Equipment to be returned
            card_returned: Whether the access card is already back

        Returns:
            The new ClearanceChecklist with every item PENDING
        """
        department_names = normalize_departments(departments)
        seeds = normalize_equipment(equipment)

        with self.state_manager.transaction() as state:
            termination = state.get_termination_request(termination_id)
            if termination is None:
                raise NotFoundError(
                    f"Termination request with ID {termination_id} not found",
                    {"termination_id": termination_id},
                )

            if termination.status != TerminationStatus.APPROVED:
                raise InvalidStateError(
                    "Clearance checklist can only be created for approved termination requests",
                    {"termination_id": termination_id, "status": termination.status.value},
                )

            if state.get_checklist_by_termination(termination_id) is not None:
                raise InvalidStateError(
                    "Clearance checklist already exists for this termination request",
                    {"termination_id": termination_id},
                )

            now = self._now()
            sequence = state.next_sequence()

            checklist = ClearanceChecklist(
                id=self._new_id(),
                termination_id=termination_id,
                items=[
                    DepartmentClearanceItem(department=name, updated_at=now, revision=sequence)
                    for name in department_names
                ],
                equipment_list=[
                    EquipmentItem(
                        name=seed.name,
                        equipment_id=seed.equipment_id,
                        condition=seed.condition,
                        updated_at=now,
                        revision=sequence,
                    )
                    for seed in seeds
                ],
                card_returned=bool(card_returned),
                card_updated_at=now,
                card_revision=sequence,
                created_at=now,
                updated_at=now,
            )
            state.put_checklist(checklist)

        logger.info(
            f"Clearance checklist {checklist.id} created for termination {termination_id}: "
            f"departments={department_names}, equipment={len(seeds)}"
        )
        return checklist

    def update_department_item(
        self,
        checklist_id: str,
        department: str,
        new_status: Any,
        comments: Optional[str] = None,
        actor_id: Optional[str] = None,
        expected_revision: Optional[int] = None,
    ) -> ClearanceChecklist:
        """
        Record a department's sign-off decision.

        REJECTED is not terminal for an item; the department may later approve.

        Args:
            checklist_id: Checklist id
            department: One of the checklist's departments
            new_status: PENDING, APPROVED or REJECTED
            comments: Comments supplied with the decision (kept if omitted)
            actor_id: Who made the decision
            expected_revision: Compare-and-set guard on the item's revision

        Returns:
            The updated checklist
        """
        status = coerce_enum(ApprovalStatus, new_status, "status")
        actor = require_text(actor_id, "actor_id")

        with self.state_manager.transaction() as state:
            checklist = self._load(state, checklist_id)

            index = checklist.find_item(department)
            if index is None:
                raise NotFoundError(
                    f"Department {department} not found in clearance checklist",
                    {
                        "checklist_id": checklist_id,
                        "department": department,
                        "departments": [item.department for item in checklist.items],
                    },
                )

            item = checklist.items[index]
            self._check_revision(item.revision, expected_revision, f"department {item.department}")

            now = self._now()
            items = list(checklist.items)
            items[index] = item.model_copy(update={
                "status": status,
                "comments": comments if comments is not None else item.comments,
                "updated_at": now,
                "updated_by": actor,
                "revision": state.next_sequence(),
            })
            updated = checklist.model_copy(update={"items": items, "updated_at": now})
            state.put_checklist(updated)

        logger.info(f"{item.department} clearance set to {status.value} by {actor} on checklist {checklist_id}")
        self._log_completion(updated)
        return updated

    def update_equipment_item(
        self,
        checklist_id: str,
        equipment_name: str,
        returned: bool,
        condition: Optional[str] = None,
        actor_id: Optional[str] = None,
        expected_revision: Optional[int] = None,
    ) -> ClearanceChecklist:
        """
        Record the return of a piece of equipment.

        Args:
            checklist_id: Checklist id
            equipment_name: Name of one of the checklist's equipment items
            returned: Whether the item is back
            condition: Condition on return (kept if omitted)
            actor_id: Custodian recording the return
            expected_revision: Compare-and-set guard on the item's revision

        Returns:
            The updated checklist
        """
        if not isinstance(returned, bool):
            raise ValidationError("returned must be a boolean", {"field": "returned"})

        with self.state_manager.transaction() as state:
            checklist = self._load(state, checklist_id)

            index = checklist.find_equipment(equipment_name)
            if index is None:
                raise NotFoundError(
                    f"Equipment {equipment_name} not found in clearance checklist",
                    {
                        "checklist_id": checklist_id,
                        "equipment": equipment_name,
                        "equipment_list": [item.name for item in checklist.equipment_list],
                    },
                )

            item = checklist.equipment_list[index]
            self._check_revision(item.revision, expected_revision, f"equipment {equipment_name}")

            now = self._now()
            equipment_list = list(checklist.equipment_list)
            equipment_list[index] = item.model_copy(update={
                "returned": returned,
                "condition": condition if condition is not None else item.condition,
                "updated_at": now,
                "updated_by": actor_id,
                "revision": state.next_sequence(),
            })
            updated = checklist.model_copy(update={"equipment_list": equipment_list, "updated_at": now})
            state.put_checklist(updated)

        logger.info(f"Equipment {equipment_name} returned={returned} on checklist {checklist_id}")
        self._log_completion(updated)
        return updated

    def update_card_return(
        self,
        checklist_id: str,
        returned: bool,
        actor_id: Optional[str] = None,
        expected_revision: Optional[int] = None,
    ) -> ClearanceChecklist:
        """
        Record whether the access card has been returned.

        Args:
            checklist_id: Checklist id
            returned: Whether the card is back
            actor_id: Who recorded it
            expected_revision: Compare-and-set guard on the card revision

        Returns:
            The updated checklist
        """
        if not isinstance(returned, bool):
            raise ValidationError("returned must be a boolean", {"field": "returned"})

        with self.state_manager.transaction() as state:
            checklist = self._load(state, checklist_id)
            self._check_revision(checklist.card_revision, expected_revision, "access card")

            now = self._now()
            updated = checklist.model_copy(update={
                "card_returned": returned,
                "card_updated_at": now,
                "card_updated_by": actor_id,
                "card_revision": state.next_sequence(),
                "updated_at": now,
            })
            state.put_checklist(updated)

        logger.info(f"Access card returned={returned} on checklist {checklist_id}")
        self._log_completion(updated)
        return updated

    def get_by_id(self, checklist_id: str) -> ClearanceChecklist:
        """Get a checklist by id."""
        checklist = self.state_manager.get_checklist(checklist_id)
        if checklist is None:
            raise NotFoundError(
                f"Clearance checklist with ID {checklist_id} not found",
                {"checklist_id": checklist_id},
            )
        return checklist

    def get_by_termination_id(self, termination_id: str) -> ClearanceChecklist:
        """Get the checklist of a termination request."""
        checklist = self.state_manager.get_checklist_by_termination(termination_id)
        if checklist is None:
            raise NotFoundError(
                f"Clearance checklist not found for termination request {termination_id}",
                {"termination_id": termination_id},
            )
        return checklist

    def list_checklists(self) -> List[ClearanceChecklist]:
        """Get all checklists, newest first."""
        return self.state_manager.list_checklists()

    def get_completion_status(self, checklist_id: str) -> ClearanceCompletionStatus:
        """Evaluate a checklist's current persisted state."""
        return evaluate_completion(self.get_by_id(checklist_id))

    def _load(self, state: StateManager, checklist_id: str) -> ClearanceChecklist:
        checklist = state.get_checklist(checklist_id)
        if checklist is None:
            raise NotFoundError(
                f"Clearance checklist with ID {checklist_id} not found",
                {"checklist_id": checklist_id},
            )
        return checklist

    @staticmethod
    def _check_revision(current: int, expected: Optional[int], slot: str):
        if expected is not None and current != expected:
            raise InvalidStateError(
                f"Concurrent update on {slot}: expected revision {expected}, found {current}",
                {"slot": slot, "expected_revision": expected, "current_revision": current},
            )

    @staticmethod
    def _log_completion(checklist: ClearanceChecklist):
        completion = evaluate_completion(checklist)
        if completion.fully_cleared:
            logger.info(f"Checklist {checklist.id} fully cleared; final settlement may proceed")
        else:
            logger.debug(
                f"Checklist {checklist.id} pending: departments={completion.pending_departments}, "
                f"equipment={completion.pending_equipment}, card_returned={completion.card_returned}"
            )
