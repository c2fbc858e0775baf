"""
Offboarding Service.

Single entry point exposing every engine operation. The HTTP API and the
CLI are thin adapters over this class.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from .config import EngineConfig
from .connectors import BaseConnector, create_connectors
from .engine import ClearancePolicy, StateManager
from .models import (
    ClearanceChecklist,
    ClearanceCompletionStatus,
    PendingAccessRevocation,
    RevocationResult,
    SettlementPreview,
    SettlementTriggerResult,
    TerminationRequest,
)
from .workflows import (
    AccessRevocationScheduler,
    ClearanceChecklistWorkflow,
    SettlementGate,
    TerminationRequestWorkflow,
)
from .workflows.base_workflow import Clock

logger = logging.getLogger(__name__)


class OffboardingService:
    """Facade over the offboarding workflows sharing one store."""

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        state_manager: Optional[StateManager] = None,
        policy: Optional[ClearancePolicy] = None,
        connectors: Optional[Dict[str, BaseConnector]] = None,
        clock: Optional[Clock] = None,
    ):
        """
        Initialize the service.

        Components not passed explicitly are built from ``config``.

        Args:
            config: Engine configuration (defaults to in-memory, mock mode)
            state_manager: Shared store
            policy: Clearance policy
            connectors: Collaborator connectors keyed by system name
            clock: Current-time source; injectable for tests
        """
        self.config = config or EngineConfig()
        self.state_manager = state_manager or StateManager(self.config.storage_path)
        self.policy = policy or ClearancePolicy(self.config.policy_path)
        self.connectors = connectors if connectors is not None else create_connectors(
            self.config.connectors.model_dump(), mock_mode=self.config.mock_mode
        )

        shared = (self.state_manager, self.policy, self.connectors, clock)
        self.clearance = ClearanceChecklistWorkflow(*shared)
        self.terminations = TerminationRequestWorkflow(*shared, clearance=self.clearance)
        self.settlement = SettlementGate(*shared)
        self.revocations = AccessRevocationScheduler(*shared)

        logger.info(f"Offboarding service ready (mock_mode={self.config.mock_mode})")

    # Termination requests

    def create_termination_request(self, employee_id: str, initiator: Any, reason: Any,
                                   termination_date: Any, comments: Optional[str] = None) -> TerminationRequest:
        return self.terminations.create(employee_id, initiator, reason, termination_date, comments)

    def decide_termination_request(self, request_id: str, decision: Any, decider_id: str,
                                   comments: Optional[str] = None,
                                   departments: Optional[Iterable[str]] = None,
                                   equipment: Optional[Iterable[Any]] = None,
                                   card_returned: bool = False) -> TerminationRequest:
        return self.terminations.decide(request_id, decision, decider_id, comments,
                                        departments=departments, equipment=equipment,
                                        card_returned=card_returned)

    def get_termination_request_by_id(self, request_id: str) -> TerminationRequest:
        return self.terminations.get_by_id(request_id)

    def list_termination_requests_by_employee(self, employee_id: str) -> List[TerminationRequest]:
        return self.terminations.list_by_employee(employee_id)

    def list_termination_requests(self, status: Optional[Any] = None, initiator: Optional[Any] = None,
                                  employee_id: Optional[str] = None) -> List[TerminationRequest]:
        return self.terminations.list_requests(status=status, initiator=initiator, employee_id=employee_id)

    def update_termination_date(self, request_id: str, termination_date: Any) -> TerminationRequest:
        return self.terminations.update_termination_date(request_id, termination_date)

    def delete_termination_request(self, request_id: str) -> TerminationRequest:
        return self.terminations.delete(request_id)

    # Clearance checklists

    def get_clearance_checklist_by_id(self, checklist_id: str) -> ClearanceChecklist:
        return self.clearance.get_by_id(checklist_id)

    def get_clearance_checklist_by_termination_id(self, termination_id: str) -> ClearanceChecklist:
        return self.clearance.get_by_termination_id(termination_id)

    def list_clearance_checklists(self) -> List[ClearanceChecklist]:
        return self.clearance.list_checklists()

    def update_clearance_department_item(self, checklist_id: str, department: str, new_status: Any,
                                         comments: Optional[str] = None, actor_id: Optional[str] = None,
                                         expected_revision: Optional[int] = None) -> ClearanceChecklist:
        return self.clearance.update_department_item(checklist_id, department, new_status, comments,
                                                     actor_id, expected_revision=expected_revision)

    def update_clearance_equipment_item(self, checklist_id: str, equipment_name: str, returned: bool,
                                        condition: Optional[str] = None, actor_id: Optional[str] = None,
                                        expected_revision: Optional[int] = None) -> ClearanceChecklist:
        return self.clearance.update_equipment_item(checklist_id, equipment_name, returned, condition,
                                                    actor_id, expected_revision=expected_revision)

    def update_clearance_card_return(self, checklist_id: str, returned: bool, actor_id: Optional[str] = None,
                                     expected_revision: Optional[int] = None) -> ClearanceChecklist:
        return self.clearance.update_card_return(checklist_id, returned, actor_id,
                                                 expected_revision=expected_revision)

    def get_clearance_completion_status(self, checklist_id: str) -> ClearanceCompletionStatus:
        return self.clearance.get_completion_status(checklist_id)

    # Final settlement

    def trigger_final_settlement(self, termination_id: str,
                                 actor_id: Optional[str] = None) -> SettlementTriggerResult:
        return self.settlement.trigger_final_settlement(termination_id, actor_id)

    def preview_final_settlement(self, termination_id: str) -> SettlementPreview:
        return self.settlement.preview_final_settlement(termination_id)

    # Access revocation

    def list_pending_access_revocations(self) -> List[PendingAccessRevocation]:
        return self.revocations.list_pending_revocations()

    def revoke_system_access(self, employee_id: str, actor_id: Optional[str] = None) -> RevocationResult:
        return self.revocations.revoke_access(employee_id, actor_id)

    def health_check(self) -> Dict[str, Any]:
        """Report component status and store statistics."""
        return {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "storage": "persistent" if self.state_manager.storage_path else "in-memory",
            "connectors": {
                system: {
                    "mock_mode": connector.is_mock_mode(),
                    "configured": connector.validate_config(),
                }
                for system, connector in self.connectors.items()
            },
            "state": self.state_manager.get_state_summary(),
        }
