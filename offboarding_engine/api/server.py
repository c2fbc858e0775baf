"""
FastAPI Server for the Offboarding Engine.

Provides REST API endpoints for termination requests, clearance sign-offs,
the final-settlement gate and access revocation.
"""

import logging
import os
from contextlib import asynccontextmanager
from datetime import date
from typing import List, Optional

import uvicorn
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .. import __version__
from ..config import load_config
from ..exceptions import OffboardingError
from ..models import (
    ApprovalStatus,
    ClearanceChecklist,
    ClearanceCompletionStatus,
    ClearanceDecision,
    EquipmentSeed,
    PendingAccessRevocation,
    RevocationResult,
    SettlementPreview,
    SettlementTriggerResult,
    TerminationInitiation,
    TerminationReason,
    TerminationRequest,
)
from ..service import OffboardingService

logger = logging.getLogger(__name__)


# Pydantic models for API requests
class TerminationRequestCreate(BaseModel):
    """Termination request submission."""
    employee_id: str = Field(..., description="Employee being separated")
    initiator: TerminationInitiation = Field(..., description="EMPLOYEE, HR or MANAGER")
    reason: TerminationReason
    termination_date: date = Field(..., description="Last working day (ISO format)")
    comments: Optional[str] = Field(None, description="Employee comments")


class DecisionRequest(BaseModel):
    """Approve or reject a pending termination request."""
    decision: ClearanceDecision
    decider_id: str = Field(..., description="Who takes the decision")
    comments: Optional[str] = None
    departments: Optional[List[str]] = Field(None, description="Departments that must sign off")
    equipment: Optional[List[EquipmentSeed]] = Field(None, description="Equipment to be returned")
    card_returned: bool = False


class TerminationDateUpdate(BaseModel):
    """Reschedule a pending termination request."""
    termination_date: date


class DepartmentItemUpdate(BaseModel):
    """Department sign-off."""
    status: ApprovalStatus
    actor_id: str
    comments: Optional[str] = None
    expected_revision: Optional[int] = Field(None, description="Fail instead of overwriting a newer write")


class EquipmentItemUpdate(BaseModel):
    """Equipment return."""
    returned: bool
    condition: Optional[str] = None
    actor_id: Optional[str] = None
    expected_revision: Optional[int] = None


class CardReturnUpdate(BaseModel):
    """Access card return."""
    returned: bool
    actor_id: Optional[str] = None
    expected_revision: Optional[int] = None


class ActorRequest(BaseModel):
    """Body carrying only the acting user."""
    actor_id: Optional[str] = None


# Global service (initialized on startup)
service: Optional[OffboardingService] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    global service

    if service is None:
        logger.info("Initializing Offboarding Engine API server components")
        service = OffboardingService(load_config(os.environ.get("OFFBOARDING_CONFIG")))
        logger.info("Offboarding Engine API server components initialized")

    yield

    logger.info("Shutting down Offboarding Engine API server")


# Create FastAPI app
app = FastAPI(
    title="Offboarding Engine API",
    description="Employee separation workflow - termination requests, clearance and final settlement",
    version=__version__,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(OffboardingError)
async def offboarding_error_handler(request: Request, exc: OffboardingError):
    """Render engine errors with their status code and structured details."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def _get_service() -> OffboardingService:
    if service is None:
        raise HTTPException(status_code=503, detail="Offboarding service not available")
    return service


@app.get("/")
def root():
    """Root endpoint."""
    return {"message": "Offboarding Engine API", "version": __version__, "status": "running"}


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return _get_service().health_check()


# Termination requests

@app.post("/termination-requests", response_model=TerminationRequest, status_code=201)
def create_termination_request(body: TerminationRequestCreate):
    """Open a new separation case."""
    return _get_service().create_termination_request(
        body.employee_id, body.initiator, body.reason, body.termination_date, body.comments
    )


@app.get("/termination-requests", response_model=List[TerminationRequest])
def list_termination_requests(
    status: Optional[str] = Query(None, description="Filter by status"),
    initiator: Optional[str] = Query(None, description="Filter by initiator"),
    employee_id: Optional[str] = Query(None, description="Filter by employee"),
):
    """List termination requests, newest first."""
    return _get_service().list_termination_requests(status=status, initiator=initiator, employee_id=employee_id)


@app.get("/termination-requests/{request_id}", response_model=TerminationRequest)
def get_termination_request(request_id: str):
    """Get a termination request."""
    return _get_service().get_termination_request_by_id(request_id)


@app.patch("/termination-requests/{request_id}/decision", response_model=TerminationRequest)
def decide_termination_request(request_id: str, body: DecisionRequest):
    """
    Approve or reject a termination request.

    Approval creates the clearance checklist atomically with the decision.
    """
    return _get_service().decide_termination_request(
        request_id,
        body.decision,
        body.decider_id,
        body.comments,
        departments=body.departments,
        equipment=body.equipment,
        card_returned=body.card_returned,
    )


@app.patch("/termination-requests/{request_id}/termination-date", response_model=TerminationRequest)
def update_termination_date(request_id: str, body: TerminationDateUpdate):
    """Reschedule a pending termination request."""
    return _get_service().update_termination_date(request_id, body.termination_date)


@app.delete("/termination-requests/{request_id}")
def delete_termination_request(request_id: str):
    """Delete a termination request that has not been approved."""
    request = _get_service().delete_termination_request(request_id)
    return {"message": "Termination request deleted successfully", "id": request.id}


@app.get("/employees/{employee_id}/termination-requests", response_model=List[TerminationRequest])
def list_employee_termination_requests(employee_id: str):
    """List an employee's termination requests, newest first."""
    return _get_service().list_termination_requests_by_employee(employee_id)


# Clearance checklists

@app.get("/clearance-checklists", response_model=List[ClearanceChecklist])
def list_clearance_checklists():
    """List clearance checklists, newest first."""
    return _get_service().list_clearance_checklists()


@app.get("/clearance-checklists/termination/{termination_id}", response_model=ClearanceChecklist)
def get_clearance_checklist_by_termination(termination_id: str):
    """Get the checklist of a termination request."""
    return _get_service().get_clearance_checklist_by_termination_id(termination_id)


@app.get("/clearance-checklists/{checklist_id}", response_model=ClearanceChecklist)
def get_clearance_checklist(checklist_id: str):
    """Get a clearance checklist."""
    return _get_service().get_clearance_checklist_by_id(checklist_id)


@app.get("/clearance-checklists/{checklist_id}/status", response_model=ClearanceCompletionStatus)
def get_clearance_completion_status(checklist_id: str):
    """Evaluate a checklist's completion."""
    return _get_service().get_clearance_completion_status(checklist_id)


@app.patch("/clearance-checklists/{checklist_id}/items/{department}", response_model=ClearanceChecklist)
def update_department_item(checklist_id: str, department: str, body: DepartmentItemUpdate):
    """Record a department sign-off."""
    return _get_service().update_clearance_department_item(
        checklist_id, department, body.status, body.comments, body.actor_id,
        expected_revision=body.expected_revision,
    )


@app.patch("/clearance-checklists/{checklist_id}/equipment/{equipment_name}", response_model=ClearanceChecklist)
def update_equipment_item(checklist_id: str, equipment_name: str, body: EquipmentItemUpdate):
    """Record an equipment return."""
    return _get_service().update_clearance_equipment_item(
        checklist_id, equipment_name, body.returned, body.condition, body.actor_id,
        expected_revision=body.expected_revision,
    )


@app.patch("/clearance-checklists/{checklist_id}/card-return", response_model=ClearanceChecklist)
def update_card_return(checklist_id: str, body: CardReturnUpdate):
    """Record the access card return."""
    return _get_service().update_clearance_card_return(
        checklist_id, body.returned, body.actor_id, expected_revision=body.expected_revision
    )


# Final settlement

@app.get("/final-settlement/{termination_id}/preview", response_model=SettlementPreview)
def preview_final_settlement(termination_id: str):
    """List what still blocks the final settlement of a case."""
    return _get_service().preview_final_settlement(termination_id)


@app.post("/final-settlement/{termination_id}", response_model=SettlementTriggerResult)
def trigger_final_settlement(termination_id: str, body: Optional[ActorRequest] = None):
    """Initiate final settlement for a fully cleared case."""
    actor_id = body.actor_id if body else None
    return _get_service().trigger_final_settlement(termination_id, actor_id)


# Access revocation

@app.get("/access-revocations/pending", response_model=List[PendingAccessRevocation])
def list_pending_access_revocations():
    """Approved cases whose access has not been revoked, most urgent first."""
    return _get_service().list_pending_access_revocations()


@app.post("/access-revocations/{employee_id}", response_model=RevocationResult)
def revoke_system_access(employee_id: str, body: Optional[ActorRequest] = None):
    """Disable an employee's system roles."""
    actor_id = body.actor_id if body else None
    return _get_service().revoke_system_access(employee_id, actor_id)


def start_server(host: str = "0.0.0.0", port: int = 8000, reload: bool = False):
    """Start the FastAPI server."""
    uvicorn.run(
        "offboarding_engine.api.server:app",
        host=host,
        port=port,
        reload=reload,
        log_level="info"
    )


if __name__ == "__main__":
    start_server()
