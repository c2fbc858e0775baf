"""
Base Connector Classes for the Offboarding Engine.

This module provides the interfaces for the external collaborators the
engine consumes (employee directory, payroll initiation, identity/access
control), together with in-memory mock backends for development and tests.
"""

import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class ConnectorResult:
    """Result of a connector operation."""

    def __init__(self, success: bool, message: str = "", data: Optional[Any] = None,
                 error: Optional[str] = None):
        self.success = success
        self.message = message
        self.data = data
        self.error = error

    def __bool__(self):
        return self.success

    def __str__(self):
        return f"{'✓' if self.success else '✗'} {self.message}"


class BaseConnector(ABC):
    """
    Abstract base class for all collaborator connectors.

    Holds configuration and mock-mode state common to every connector.
    """

    system_name = "base"

    def __init__(self, config: Optional[Dict[str, Any]] = None, mock_mode: bool = False):
        """
        Initialize the connector.

        Args:
            config: Configuration dictionary with endpoints, credentials, timeouts
            mock_mode: If True, the connector is an in-memory simulation
        """
        self.config = config or {}
        self.mock_mode = mock_mode

        logger.info(f"Initialized {self.__class__.__name__} (mock_mode={mock_mode})")

    def validate_config(self) -> bool:
        """
        Validate that the connector has all required configuration.

        Returns:
            True if configuration is valid, False otherwise
        """
        return True

    def get_system_name(self) -> str:
        """Get the name of the system this connector talks to."""
        return self.system_name

    def is_mock_mode(self) -> bool:
        """Check if this connector is running in mock mode."""
        return self.mock_mode


class EmployeeDirectory(BaseConnector):
    """Read-only access to externally owned employee records."""

    system_name = "directory"

    @abstractmethod
    def get_employee(self, employee_id: str) -> ConnectorResult:
        """
        Look up an employee.

        Args:
            employee_id: Employee identifier

        Returns:
            ConnectorResult with data {name, employee_number, work_email} if found
        """


class PayrollConnector(BaseConnector):
    """Payroll initiation collaborator; computes nothing itself."""

    system_name = "payroll"

    @abstractmethod
    def initiate_final_settlement(self, termination_id: str, employee_id: str) -> ConnectorResult:
        """
        Ask payroll to start the final settlement for a case.

        Args:
            termination_id: Termination request id
            employee_id: Employee being settled

        Returns:
            ConnectorResult with data {reference, message} on acceptance
        """


class IdentityConnector(BaseConnector):
    """Identity/access control collaborator."""

    system_name = "identity"

    @abstractmethod
    def disable_roles(self, employee_id: str) -> ConnectorResult:
        """
        Disable every system role held by an employee.

        Args:
            employee_id: Employee identifier

        Returns:
            ConnectorResult with data {count} of roles disabled
        """


class MockEmployeeDirectory(EmployeeDirectory):
    """In-memory employee directory."""

    def __init__(self, config: Optional[Dict[str, Any]] = None,
                 employees: Optional[Dict[str, Dict[str, Any]]] = None):
        super().__init__(config, mock_mode=True)
        self.employees: Dict[str, Dict[str, Any]] = dict(employees or {})

    def add_employee(self, employee_id: str, name: str, employee_number: str = "",
                     work_email: Optional[str] = None):
        """Register an employee in the mock directory."""
        self.employees[employee_id] = {
            "name": name,
            "employee_number": employee_number,
            "work_email": work_email,
        }

    def get_employee(self, employee_id: str) -> ConnectorResult:
        """Mock employee lookup."""
        employee = self.employees.get(employee_id)
        if employee is None:
            return ConnectorResult(False, f"Employee {employee_id} not found",
                                   error=f"Employee {employee_id} not found")
        return ConnectorResult(True, f"Found employee {employee_id}", dict(employee))


class MockPayrollConnector(PayrollConnector):
    """In-memory payroll initiation that records every call."""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        super().__init__(config, mock_mode=True)
        self.initiated: List[Dict[str, Any]] = []
        self.fail_next = False

    def initiate_final_settlement(self, termination_id: str, employee_id: str) -> ConnectorResult:
        """Mock settlement initiation."""
        if self.fail_next:
            self.fail_next = False
            return ConnectorResult(False, "Payroll unavailable", error="service unavailable")

        reference = f"FS-{uuid.uuid4().hex[:12].upper()}"
        self.initiated.append({
            "termination_id": termination_id,
            "employee_id": employee_id,
            "reference": reference,
            "initiated_at": datetime.now(timezone.utc),
        })

        logger.info(f"Mock initiated final settlement {reference} for termination {termination_id}")
        return ConnectorResult(True, f"Final settlement initiated for {employee_id}",
                               {"reference": reference, "message": "Final settlement queued"})

    def get_mock_state(self) -> Dict[str, Any]:
        """Get current mock state for inspection."""
        return {"initiated": list(self.initiated)}


class MockIdentityConnector(IdentityConnector):
    """In-memory identity system holding active roles per employee."""

    def __init__(self, config: Optional[Dict[str, Any]] = None,
                 roles: Optional[Dict[str, List[str]]] = None):
        super().__init__(config, mock_mode=True)
        self.roles: Dict[str, List[str]] = {k: list(v) for k, v in (roles or {}).items()}
        self.disabled: Dict[str, List[str]] = {}
        self.calls: List[str] = []

    def grant_role(self, employee_id: str, role_name: str):
        """Give an employee an active role."""
        self.roles.setdefault(employee_id, [])
        if role_name not in self.roles[employee_id]:
            self.roles[employee_id].append(role_name)

    def disable_roles(self, employee_id: str) -> ConnectorResult:
        """Mock role disabling."""
        self.calls.append(employee_id)
        active = self.roles.pop(employee_id, [])
        self.disabled.setdefault(employee_id, []).extend(active)

        logger.info(f"Mock disabled {len(active)} roles for {employee_id}")
        return ConnectorResult(True, f"Disabled {len(active)} roles for {employee_id}", {"count": len(active)})

    def get_mock_state(self) -> Dict[str, Any]:
        """Get current mock state for inspection."""
        return {"roles": self.roles, "disabled": self.disabled, "calls": list(self.calls)}
