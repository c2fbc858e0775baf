"""
Termination Request Workflow for the Offboarding Engine.

Handles the lifecycle of a separation case: creation, the single approve or
reject decision, and the administrative operations allowed while a request
is still open. Approving a request creates its clearance checklist in the
same store transaction.
"""

import logging
from typing import Any, Iterable, List, Optional

from ..engine.state_manager import StateManager
from ..exceptions import InvalidStateError, NotFoundError
from ..models import (
    ClearanceDecision,
    TerminationInitiation,
    TerminationReason,
    TerminationRequest,
    TerminationStatus,
)
from .base_workflow import BaseWorkflow
from .clearance import ClearanceChecklistWorkflow
from .helpers import coerce_enum, parse_termination_date, require_text

logger = logging.getLogger(__name__)


class TerminationRequestWorkflow(BaseWorkflow):
    """
    Workflow for termination requests.

    A request starts PENDING and is decided exactly once. An employee may
    hold at most one open (PENDING or APPROVED) request at a time.
    """

    def __init__(self, *args, clearance: Optional[ClearanceChecklistWorkflow] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.clearance = clearance or ClearanceChecklistWorkflow(
            self.state_manager, self.policy, self.connectors, self.clock
        )

    def create(
        self,
        employee_id: str,
        initiator: Any,
        reason: Any,
        termination_date: Any,
        comments: Optional[str] = None,
    ) -> TerminationRequest:
        """
        Open a new separation case.

        Args:
            employee_id: Employee being separated
            initiator: EMPLOYEE, HR or MANAGER
            reason: TerminationReason member or its name
            termination_date: Nominal last working day
            comments: Employee comments

        Returns:
            The new PENDING TerminationRequest
        """
        employee_id = require_text(employee_id, "employee_id")
        initiation = coerce_enum(TerminationInitiation, initiator, "initiator")
        termination_reason = coerce_enum(TerminationReason, reason, "reason")
        last_day = parse_termination_date(termination_date)

        with self.state_manager.transaction() as state:
            for existing in state.get_requests_by_employee(employee_id):
                if existing.is_active:
                    raise InvalidStateError(
                        f"Employee {employee_id} already has a {existing.status.value.lower()} termination request",
                        {"employee_id": employee_id, "termination_id": existing.id,
                         "status": existing.status.value},
                    )

            now = self._now()
            request = TerminationRequest(
                id=self._new_id(),
                employee_id=employee_id,
                initiator=initiation,
                reason=termination_reason,
                termination_date=last_day,
                employee_comments=comments,
                status=TerminationStatus.PENDING,
                created_at=now,
                updated_at=now,
            )
            state.put_termination_request(request)

        logger.info(
            f"Termination request {request.id} created for {employee_id} "
            f"by {initiation.value} ({termination_reason.value}, last day {last_day})"
        )
        return request

    def decide(
        self,
        request_id: str,
        decision: Any,
        decider_id: str,
        comments: Optional[str] = None,
        departments: Optional[Iterable[str]] = None,
        equipment: Optional[Iterable[Any]] = None,
        card_returned: bool = False,
    ) -> TerminationRequest:
        """
        Approve or reject a pending request.

        On approval the clearance checklist is created in the same
        transaction; if that fails the request stays PENDING.

        Args:
            request_id: Termination request id
            decision: APPROVE or REJECT
            decider_id: Who took the decision
            comments: HR comments
            departments: Departments that must sign off (policy default if omitted)
            equipment: Equipment to return (policy default if omitted)
            card_returned: Whether the access card is already back

        Returns:
            The decided TerminationRequest
        """
        clearance_decision = coerce_enum(ClearanceDecision, decision, "decision")
        decider = require_text(decider_id, "decider_id")

        with self.state_manager.transaction() as state:
            request = self._load(state, request_id)

            if request.status != TerminationStatus.PENDING:
                raise InvalidStateError(
                    f"Termination request {request_id} has already been {request.status.value.lower()}",
                    {"termination_id": request_id, "status": request.status.value},
                )

            now = self._now()
            new_status = (
                TerminationStatus.APPROVED
                if clearance_decision == ClearanceDecision.APPROVE
                else TerminationStatus.REJECTED
            )
            decided = request.model_copy(update={
                "status": new_status,
                "hr_comments": comments,
                "decided_by": decider,
                "decided_at": now,
                "updated_at": now,
            })
            state.put_termination_request(decided)

            if new_status == TerminationStatus.APPROVED:
                self.clearance.create_for_termination(
                    request_id,
                    departments if departments is not None else self.policy.get_departments(),
                    equipment if equipment is not None else self.policy.get_equipment(),
                    card_returned=card_returned,
                )

        logger.info(f"Termination request {request_id} {new_status.value.lower()} by {decider}")
        return decided

    def get_by_id(self, request_id: str) -> TerminationRequest:
        """Get a termination request by id."""
        request = self.state_manager.get_termination_request(request_id)
        if request is None:
            raise NotFoundError(
                f"Termination request with ID {request_id} not found",
                {"termination_id": request_id},
            )
        return request

    def list_by_employee(self, employee_id: str) -> List[TerminationRequest]:
        """Get an employee's requests, newest first."""
        return self.state_manager.get_requests_by_employee(employee_id)

    def list_requests(
        self,
        status: Optional[Any] = None,
        initiator: Optional[Any] = None,
        employee_id: Optional[str] = None,
    ) -> List[TerminationRequest]:
        """
        List requests, newest first, optionally filtered.

        Args:
            status: Only requests with this status
            initiator: Only requests started by this initiator
            employee_id: Only requests for this employee
        """
        requests = self.state_manager.list_termination_requests()

        if status is not None:
            wanted_status = coerce_enum(TerminationStatus, status, "status")
            requests = [r for r in requests if r.status == wanted_status]
        if initiator is not None:
            wanted_initiator = coerce_enum(TerminationInitiation, initiator, "initiator")
            requests = [r for r in requests if r.initiator == wanted_initiator]
        if employee_id:
            requests = [r for r in requests if r.employee_id == employee_id]

        return requests

    def update_termination_date(self, request_id: str, termination_date: Any) -> TerminationRequest:
        """Reschedule the last working day of a pending request."""
        last_day = parse_termination_date(termination_date)

        with self.state_manager.transaction() as state:
            request = self._load(state, request_id)

            if request.status != TerminationStatus.PENDING:
                raise InvalidStateError(
                    f"Cannot change the termination date of a {request.status.value.lower()} request",
                    {"termination_id": request_id, "status": request.status.value},
                )

            updated = request.model_copy(update={"termination_date": last_day, "updated_at": self._now()})
            state.put_termination_request(updated)

        logger.info(f"Termination request {request_id} rescheduled to {last_day}")
        return updated

    def delete(self, request_id: str) -> TerminationRequest:
        """Delete a pending or rejected request. Approved cases are kept."""
        with self.state_manager.transaction() as state:
            request = self._load(state, request_id)

            if request.status == TerminationStatus.APPROVED:
                raise InvalidStateError(
                    "Cannot delete an approved termination request",
                    {"termination_id": request_id, "status": request.status.value},
                )

            state.delete_termination_request(request_id)

        logger.info(f"Termination request {request_id} deleted")
        return request

    def _load(self, state: StateManager, request_id: str) -> TerminationRequest:
        request = state.get_termination_request(request_id)
        if request is None:
            raise NotFoundError(
                f"Termination request with ID {request_id} not found",
                {"termination_id": request_id},
            )
        return request
