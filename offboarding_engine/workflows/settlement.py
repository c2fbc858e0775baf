"""
Settlement Gate for the Offboarding Engine.

Guards the irreversible hand-off to payroll: final settlement is initiated
only for an approved, fully cleared case, and at most once per case.
"""

import logging
from typing import Optional

from ..engine.completion import evaluate_completion
from ..exceptions import (
    AlreadyTriggeredError,
    ConnectorError,
    GateNotSatisfiedError,
    NotFoundError,
    StoreError,
)
from ..models import (
    MarkerStatus,
    SettlementAcknowledgement,
    SettlementPreview,
    SettlementRecord,
    SettlementTriggerResult,
    TerminationRequest,
    TerminationStatus,
)
from .base_workflow import BaseWorkflow

logger = logging.getLogger(__name__)


class SettlementGate(BaseWorkflow):
    """
    Final-settlement gate.

    The whole check-then-initiate sequence for a case runs under that case's
    key lock, so concurrent triggers call payroll once and every later caller
    sees the recorded marker.
    """

    def trigger_final_settlement(self, termination_id: str,
                                 actor_id: Optional[str] = None) -> SettlementTriggerResult:
        """
        Initiate final settlement for a fully cleared case.

        Args:
            termination_id: Termination request id
            actor_id: Who triggered the settlement

        Returns:
            SettlementTriggerResult with the payroll acknowledgement

        Raises:
            NotFoundError: Unknown request, or approved request without a checklist
            AlreadyTriggeredError: Settlement already initiated for this case
            GateNotSatisfiedError: Not approved or not fully cleared
            ConnectorError: Payroll rejected or failed the initiation
            StoreError: A marker could not be saved; once payroll has been
                contacted the marker is kept in memory and replays are refused
        """
        with self.state_manager.key_lock(f"settlement:{termination_id}"):
            request = self._load_request(termination_id)

            existing = self.state_manager.get_settlement(termination_id)
            if existing is not None:
                raise AlreadyTriggeredError(
                    f"Final settlement already triggered for termination request {termination_id}",
                    {
                        "termination_id": termination_id,
                        "status": existing.status.value,
                        "triggered_at": existing.triggered_at.isoformat(),
                        "reference": existing.acknowledgement.reference if existing.acknowledgement else None,
                    },
                )

            if request.status != TerminationStatus.APPROVED:
                raise GateNotSatisfiedError("not approved")

            checklist = self.state_manager.get_checklist_by_termination(termination_id)
            if checklist is None:
                logger.error(f"Approved termination request {termination_id} has no clearance checklist")
                raise NotFoundError(
                    f"Clearance checklist not found for termination request {termination_id}",
                    {"termination_id": termination_id},
                )

            completion = evaluate_completion(checklist)
            if not completion.fully_cleared:
                raise GateNotSatisfiedError(
                    "not fully cleared",
                    pending_departments=completion.pending_departments,
                    pending_equipment=completion.pending_equipment,
                    card_returned=completion.card_returned,
                )

            # The PENDING marker is durable before payroll is contacted, so an
            # unknown outcome blocks every later trigger instead of repeating it.
            record = SettlementRecord(
                termination_id=termination_id,
                employee_id=request.employee_id,
                triggered_at=self._now(),
                triggered_by=actor_id,
                status=MarkerStatus.PENDING,
            )
            with self.state_manager.transaction() as state:
                state.put_settlement(record)

            payroll = self._connector("payroll")
            result = payroll.initiate_final_settlement(termination_id, request.employee_id)
            if not result:
                logger.error(f"Payroll initiation failed for termination {termination_id}: {result.error}")
                with self.state_manager.transaction(retain_on_store_error=True) as state:
                    state.delete_settlement(termination_id)
                raise ConnectorError(
                    f"Payroll initiation failed: {result.message}",
                    {"system": payroll.get_system_name(), "termination_id": termination_id,
                     "error": result.error},
                )

            data = result.data or {}
            acknowledgement = SettlementAcknowledgement(
                reference=str(data.get("reference", "")),
                message=data.get("message") or result.message,
            )
            record = record.model_copy(update={
                "status": MarkerStatus.COMPLETED,
                "acknowledgement": acknowledgement,
            })

            try:
                with self.state_manager.transaction(retain_on_store_error=True) as state:
                    state.put_settlement(record)
            except StoreError:
                logger.error(
                    f"Payroll accepted settlement {acknowledgement.reference} for termination "
                    f"{termination_id} but the marker could not be saved"
                )
                raise

        logger.info(
            f"Final settlement triggered for termination {termination_id} "
            f"(employee {request.employee_id}, reference {acknowledgement.reference})"
        )
        return SettlementTriggerResult(
            termination_id=termination_id,
            employee_id=request.employee_id,
            triggered_at=record.triggered_at,
            acknowledgement=acknowledgement,
        )

    def preview_final_settlement(self, termination_id: str) -> SettlementPreview:
        """
        Report everything blocking the final settlement of a case.

        Has no side effects; payroll is never contacted.
        """
        request = self._load_request(termination_id)
        checklist = self.state_manager.get_checklist_by_termination(termination_id)
        already_triggered = self.state_manager.get_settlement(termination_id) is not None

        blockers = []
        if already_triggered:
            blockers.append("Final settlement already triggered")
        if request.status != TerminationStatus.APPROVED:
            blockers.append(f"Termination request is {request.status.value}")

        completion = None
        if checklist is None:
            if request.status == TerminationStatus.APPROVED:
                blockers.append("Clearance checklist is missing")
        else:
            completion = evaluate_completion(checklist)
            for department in completion.pending_departments:
                blockers.append(f"{department} clearance pending")
            for equipment in completion.pending_equipment:
                blockers.append(f"{equipment} not returned")
            if not completion.card_returned:
                blockers.append("Access card not returned")

        return SettlementPreview(
            termination_id=termination_id,
            employee_id=request.employee_id,
            termination_status=request.status,
            has_checklist=checklist is not None,
            completion=completion,
            already_triggered=already_triggered,
            can_trigger=not blockers,
            blockers=blockers,
        )

    def _load_request(self, termination_id: str) -> TerminationRequest:
        request = self.state_manager.get_termination_request(termination_id)
        if request is None:
            raise NotFoundError(
                f"Termination request with ID {termination_id} not found",
                {"termination_id": termination_id},
            )
        return request
