"""
Connectors Package for the Offboarding Engine.

This package provides the collaborator integrations the engine consumes:
the employee directory, payroll initiation and identity/access control.
"""

from typing import Any, Dict, Optional

from .base_connector import (
    BaseConnector,
    ConnectorResult,
    EmployeeDirectory,
    IdentityConnector,
    MockEmployeeDirectory,
    MockIdentityConnector,
    MockPayrollConnector,
    PayrollConnector,
)
from .http_connector import HTTPEmployeeDirectory, HTTPIdentityConnector, HTTPPayrollConnector

_CONNECTOR_CLASSES = {
    "directory": (MockEmployeeDirectory, HTTPEmployeeDirectory),
    "payroll": (MockPayrollConnector, HTTPPayrollConnector),
    "identity": (MockIdentityConnector, HTTPIdentityConnector),
}


def _get_connector_class(system: str, mock: bool = False):
    """Get the connector class for a collaborator."""
    if system not in _CONNECTOR_CLASSES:
        raise ValueError(f"Unknown collaborator: {system}")
    mock_class, real_class = _CONNECTOR_CLASSES[system]
    return mock_class if mock else real_class


def create_connectors(connectors_config: Optional[Dict[str, Any]] = None,
                      mock_mode: bool = True) -> Dict[str, BaseConnector]:
    """
    Build one connector per collaborator.

    Args:
        connectors_config: Per-collaborator settings keyed by system name
        mock_mode: Use in-memory mock backends instead of HTTP

    Returns:
        Dictionary with "directory", "payroll" and "identity" connectors
    """
    connectors_config = connectors_config or {}
    return {
        system: _get_connector_class(system, mock=mock_mode)(connectors_config.get(system))
        for system in _CONNECTOR_CLASSES
    }


__all__ = [
    "BaseConnector",
    "ConnectorResult",
    "EmployeeDirectory",
    "PayrollConnector",
    "IdentityConnector",
    "MockEmployeeDirectory",
    "MockPayrollConnector",
    "MockIdentityConnector",
    "HTTPEmployeeDirectory",
    "HTTPPayrollConnector",
    "HTTPIdentityConnector",
    "create_connectors",
]
