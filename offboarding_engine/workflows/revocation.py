"""
Access Revocation Scheduler for the Offboarding Engine.

Tracks approved separations whose system access has not been revoked yet,
ranks them by urgency, and performs the revocation through the identity
collaborator.
"""

import logging
from typing import List, Optional

from ..exceptions import ConnectorError, InvalidStateError, NotFoundError, StoreError
from ..models import (
    MarkerStatus,
    PendingAccessRevocation,
    RevocationRecord,
    RevocationResult,
    TerminationRequest,
    TerminationStatus,
)
from .base_workflow import BaseWorkflow

logger = logging.getLogger(__name__)


class AccessRevocationScheduler(BaseWorkflow):
    """Scheduler for revoking the system access of separated employees."""

    def list_pending_revocations(self) -> List[PendingAccessRevocation]:
        """
        List approved cases without a recorded revocation.

        A case is urgent when its last working day has been reached or it was
        approved more than ``urgent_after_days`` days ago. Urgent cases come
        first; within each group the earliest termination date comes first.

        Returns:
            PendingAccessRevocation list
        """
        now = self._now()
        today = now.date()
        threshold = self.policy.urgent_after_days
        directory = self._connector("directory")

        pending = []
        for request in self.state_manager.get_requests_by_status(TerminationStatus.APPROVED):
            if self.state_manager.get_revocation(request.id) is not None:
                continue

            approved_at = request.decided_at or request.updated_at
            days_since_approval = (now - approved_at).days
            is_urgent = request.termination_date <= today or days_since_approval > threshold

            entry = PendingAccessRevocation(
                employee_id=request.employee_id,
                termination_id=request.id,
                termination_reason=request.reason,
                termination_date=request.termination_date,
                approved_at=approved_at,
                days_since_approval=days_since_approval,
                is_urgent=is_urgent,
            )

            lookup = directory.get_employee(request.employee_id)
            if lookup:
                employee = lookup.data or {}
                entry = entry.model_copy(update={
                    "employee_name": employee.get("name") or "",
                    "employee_number": employee.get("employee_number") or "",
                    "work_email": employee.get("work_email"),
                })
            else:
                logger.warning(f"Employee {request.employee_id} not found in directory: {lookup.message}")

            pending.append(entry)

        pending.sort(key=lambda p: (not p.is_urgent, p.termination_date))

        logger.info(
            f"{len(pending)} pending access revocations "
            f"({sum(1 for p in pending if p.is_urgent)} urgent)"
        )
        return pending

    def revoke_access(self, employee_id: str, actor_id: Optional[str] = None) -> RevocationResult:
        """
        Revoke the system access of an employee with an approved separation.

        Revoking an already revoked case is a no-op that reports zero roles
        disabled and does not contact the identity system.

        Args:
            employee_id: Employee whose access is revoked
            actor_id: Who requested the revocation

        Returns:
            RevocationResult with the number of roles disabled
        """
        request = self._approved_request(employee_id)

        with self.state_manager.key_lock(f"revocation:{request.id}"):
            existing = self.state_manager.get_revocation(request.id)
            if existing is not None:
                logger.info(f"Access for {employee_id} already revoked at {existing.revoked_at} "
                            f"({existing.status.value})")
                return RevocationResult(
                    employee_id=employee_id,
                    termination_id=request.id,
                    system_roles_disabled=0,
                    already_revoked=True,
                    revoked_at=existing.revoked_at,
                    message="System access was already revoked",
                )

            record = RevocationRecord(
                termination_id=request.id,
                employee_id=employee_id,
                revoked_at=self._now(),
                revoked_by=actor_id,
                status=MarkerStatus.PENDING,
            )
            with self.state_manager.transaction() as state:
                state.put_revocation(record)

            identity = self._connector("identity")
            result = identity.disable_roles(employee_id)
            if not result:
                logger.error(f"Failed to disable roles for {employee_id}: {result.error}")
                with self.state_manager.transaction(retain_on_store_error=True) as state:
                    state.delete_revocation(request.id)
                raise ConnectorError(
                    f"Identity system failed to disable roles: {result.message}",
                    {"system": identity.get_system_name(), "employee_id": employee_id,
                     "error": result.error},
                )

            count = int((result.data or {}).get("count", 0))
            record = record.model_copy(update={
                "status": MarkerStatus.COMPLETED,
                "system_roles_disabled": count,
            })

            try:
                with self.state_manager.transaction(retain_on_store_error=True) as state:
                    state.put_revocation(record)
            except StoreError:
                logger.error(f"Disabled {count} roles for {employee_id} but the revocation could not be saved")
                raise

        logger.info(f"Revoked {count} system roles for {employee_id} (termination {request.id})")
        return RevocationResult(
            employee_id=employee_id,
            termination_id=request.id,
            system_roles_disabled=count,
            revoked_at=record.revoked_at,
            message=f"System access revoked successfully. {count} roles disabled.",
        )

    def _approved_request(self, employee_id: str) -> TerminationRequest:
        requests = self.state_manager.get_requests_by_employee(employee_id)
        if not requests:
            raise NotFoundError(
                f"No termination request found for employee {employee_id}",
                {"employee_id": employee_id},
            )

        for request in requests:
            if request.status == TerminationStatus.APPROVED:
                return request

        raise InvalidStateError(
            f"Employee {employee_id} has no approved termination request",
            {"employee_id": employee_id, "statuses": [r.status.value for r in requests]},
        )
