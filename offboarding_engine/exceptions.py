"""
Error taxonomy for the Offboarding Engine.

Every error maps to an HTTP status code and carries structured details so a
presentation layer can render a specific message (which department is
pending, which gate condition failed) rather than a generic failure.

Exception Hierarchy:
    OffboardingError (base)
    ├── ValidationError (400)
    ├── NotFoundError (404)
    ├── InvalidStateError (409)
    ├── GateNotSatisfiedError (409)
    ├── AlreadyTriggeredError (409)
    ├── ConnectorError (502)
    └── StoreError (500)

None of these are retried by the engine.
"""

from typing import Any, Dict, List, Optional


class OffboardingError(Exception):
    """
    Base exception for all engine errors.

    Attributes:
        status_code: HTTP status code for the error
        error_type: String identifier for the error type
        message: Human-readable error message
        details: Additional context about the error
    """
    status_code = 500
    error_type = "OffboardingError"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert the error to a JSON-serializable dictionary."""
        result = {
            "error": self.error_type,
            "message": self.message,
            "status_code": self.status_code,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        return f"{self.error_type}: {self.message}"

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}('{self.message}', status_code={self.status_code})>"


class ValidationError(OffboardingError):
    """Malformed or missing input; the caller's fault."""
    status_code = 400
    error_type = "ValidationError"


class NotFoundError(OffboardingError):
    """A referenced entity does not exist."""
    status_code = 404
    error_type = "NotFoundError"


class InvalidStateError(OffboardingError):
    """The operation is not legal in the entity's current lifecycle state."""
    status_code = 409
    error_type = "InvalidStateError"


class GateNotSatisfiedError(OffboardingError):
    """
    Final-settlement preconditions are unmet.

    Carries the specific unmet conditions so the caller can tell the user
    exactly what is still outstanding.
    """
    status_code = 409
    error_type = "GateNotSatisfiedError"

    def __init__(
        self,
        reason: str,
        pending_departments: Optional[List[str]] = None,
        pending_equipment: Optional[List[str]] = None,
        card_returned: Optional[bool] = None,
    ):
        self.reason = reason
        self.pending_departments = list(pending_departments or [])
        self.pending_equipment = list(pending_equipment or [])
        self.card_returned = card_returned

        details: Dict[str, Any] = {"reason": reason}
        if pending_departments is not None:
            details["pending_departments"] = self.pending_departments
        if pending_equipment is not None:
            details["pending_equipment"] = self.pending_equipment
        if card_returned is not None:
            details["card_returned"] = card_returned

        super().__init__(f"Final settlement gate not satisfied: {reason}", details)


class AlreadyTriggeredError(OffboardingError):
    """Final settlement has already fired for this case."""
    status_code = 409
    error_type = "AlreadyTriggeredError"


class ConnectorError(OffboardingError):
    """An external collaborator (payroll, identity, directory) call failed."""
    status_code = 502
    error_type = "ConnectorError"


class StoreError(OffboardingError):
    """The persistent store could not commit a change."""
    status_code = 500
    error_type = "StoreError"
