"""
Core data models for the Offboarding Engine.

This module defines the Pydantic models used throughout the system
for termination requests, clearance checklists, derived completion
status, settlement and access-revocation records.
"""

from datetime import date, datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


class TerminationInitiation(str, Enum):
    """Who started the separation case."""
    EMPLOYEE = "EMPLOYEE"
    HR = "HR"
    MANAGER = "MANAGER"


class TerminationReason(str, Enum):
    """Reasons for separation, voluntary and involuntary."""
    PERSONAL = "PERSONAL"
    CAREER_CHANGE = "CAREER_CHANGE"
    RELOCATION = "RELOCATION"
    HEALTH = "HEALTH"
    RETIREMENT = "RETIREMENT"
    PERFORMANCE = "PERFORMANCE"
    MISCONDUCT = "MISCONDUCT"
    REDUNDANCY = "REDUNDANCY"
    CONTRACT_END = "CONTRACT_END"
    OTHER = "OTHER"

    @property
    def is_voluntary(self) -> bool:
        return self in _VOLUNTARY_REASONS


_VOLUNTARY_REASONS = {
    TerminationReason.PERSONAL,
    TerminationReason.CAREER_CHANGE,
    TerminationReason.RELOCATION,
    TerminationReason.HEALTH,
    TerminationReason.RETIREMENT,
}


class TerminationStatus(str, Enum):
    """Lifecycle status of a termination request. APPROVED and REJECTED are terminal."""
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class ClearanceDecision(str, Enum):
    """Decision an approver takes on a pending termination request."""
    APPROVE = "APPROVE"
    REJECT = "REJECT"


class ApprovalStatus(str, Enum):
    """Sign-off status of a single department clearance item."""
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class MarkerStatus(str, Enum):
    """
    Progress of an external side effect recorded for a case.

    PENDING is written before the collaborator is called and COMPLETED once
    it has answered, so a case whose call outcome is unknown is never called
    again.
    """
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"


class TerminationRequest(BaseModel):
    """A single separation case."""
    id: str = Field(..., description="Opaque identifier assigned at creation")
    employee_id: str = Field(..., description="Reference to the externally owned employee record")
    initiator: TerminationInitiation
    reason: TerminationReason
    termination_date: date = Field(..., description="Nominal last working day")
    employee_comments: Optional[str] = None
    status: TerminationStatus = TerminationStatus.PENDING
    hr_comments: Optional[str] = Field(None, description="Comments supplied with the decision")
    decided_by: Optional[str] = None
    decided_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def is_active(self) -> bool:
        """A rejected request does not block a new one."""
        return self.status != TerminationStatus.REJECTED


class DepartmentClearanceItem(BaseModel):
    """One department's sign-off record within a checklist."""
    department: str
    status: ApprovalStatus = ApprovalStatus.PENDING
    comments: Optional[str] = None
    updated_at: Optional[datetime] = None
    updated_by: Optional[str] = None
    revision: int = Field(0, description="Commit sequence of the last write to this item")


class EquipmentSeed(BaseModel):
    """Equipment to be returned, as supplied when the checklist is created."""
    name: str
    equipment_id: Optional[str] = None
    condition: Optional[str] = None


class EquipmentItem(BaseModel):
    """Equipment return tracking within a checklist."""
    name: str
    equipment_id: Optional[str] = None
    condition: Optional[str] = None
    returned: bool = False
    updated_at: Optional[datetime] = None
    updated_by: Optional[str] = None
    revision: int = 0


class ClearanceChecklist(BaseModel):
    """Department sign-offs, equipment returns and the access-card flag for one case."""
    id: str
    termination_id: str
    items: List[DepartmentClearanceItem] = Field(default_factory=list)
    equipment_list: List[EquipmentItem] = Field(default_factory=list)
    card_returned: bool = False
    card_updated_at: Optional[datetime] = None
    card_updated_by: Optional[str] = None
    card_revision: int = 0
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    def find_item(self, department: str) -> Optional[int]:
        """Index of the item for a department (case-insensitive), or None."""
        key = department.strip().casefold()
        for index, item in enumerate(self.items):
            if item.department.casefold() == key:
                return index
        return None

    def find_equipment(self, name: str) -> Optional[int]:
        """Index of the equipment item with this name, or None."""
        for index, item in enumerate(self.equipment_list):
            if item.name == name:
                return index
        return None


class ClearanceCompletionStatus(BaseModel):
    """Derived clearance status; recomputed on every read, never stored."""
    checklist_id: str
    all_departments_cleared: bool
    all_equipment_returned: bool
    card_returned: bool
    fully_cleared: bool
    pending_departments: List[str] = Field(default_factory=list)
    pending_equipment: List[str] = Field(default_factory=list)


class PendingAccessRevocation(BaseModel):
    """Read-only view over an approved termination without a recorded revocation."""
    employee_id: str
    termination_id: str
    employee_name: str = ""
    employee_number: str = ""
    work_email: Optional[str] = None
    termination_reason: TerminationReason
    termination_date: date
    approved_at: datetime
    days_since_approval: int
    is_urgent: bool


class RevocationRecord(BaseModel):
    """Marker recording that system access was revoked for a case."""
    termination_id: str
    employee_id: str
    revoked_at: datetime = Field(default_factory=utc_now)
    revoked_by: Optional[str] = None
    system_roles_disabled: int = 0
    status: MarkerStatus = MarkerStatus.COMPLETED


class RevocationResult(BaseModel):
    """Outcome of a revoke-access call."""
    employee_id: str
    termination_id: str
    system_roles_disabled: int
    already_revoked: bool = False
    revoked_at: datetime
    message: str = ""


class SettlementAcknowledgement(BaseModel):
    """Acknowledgement returned by the payroll initiation collaborator."""
    reference: str
    accepted: bool = True
    message: str = ""


class SettlementRecord(BaseModel):
    """The single-writer "triggered" marker for a case."""
    termination_id: str
    employee_id: str
    triggered_at: datetime = Field(default_factory=utc_now)
    triggered_by: Optional[str] = None
    status: MarkerStatus = MarkerStatus.COMPLETED
    acknowledgement: Optional[SettlementAcknowledgement] = None


class SettlementTriggerResult(BaseModel):
    """Result of a successful final-settlement trigger."""
    termination_id: str
    employee_id: str
    triggered_at: datetime
    acknowledgement: SettlementAcknowledgement


class SettlementPreview(BaseModel):
    """Everything standing between a case and its final-settlement trigger."""
    termination_id: str
    employee_id: str
    termination_status: TerminationStatus
    has_checklist: bool
    completion: Optional[ClearanceCompletionStatus] = None
    already_triggered: bool = False
    can_trigger: bool = False
    blockers: List[str] = Field(default_factory=list)
