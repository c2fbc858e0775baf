"""
HTTP Connectors for the Offboarding Engine.

Real collaborator backends that talk JSON over HTTP using requests.
Transport failures are reported as failed ConnectorResults; the workflows
decide whether that is fatal.
"""

import logging
from typing import Any, Dict, Optional

import requests

from .base_connector import ConnectorResult, EmployeeDirectory, IdentityConnector, PayrollConnector

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10


class HTTPConnectorMixin:
    """Shared session handling for JSON-over-HTTP collaborators."""

    config: Dict[str, Any]

    def _init_session(self, session: Optional[requests.Session] = None):
        self.base_url = str(self.config.get("base_url", "")).rstrip("/")
        self.timeout = float(self.config.get("timeout", DEFAULT_TIMEOUT))
        self.session = session or requests.Session()
        self.session.headers.update({"Accept": "application/json"})

        api_key = self.config.get("api_key")
        if api_key:
            self.session.headers.update({"Authorization": f"Bearer {api_key}"})

    def validate_config(self) -> bool:
        """An HTTP connector needs at least a base URL."""
        return bool(self.base_url)

    def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> ConnectorResult:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(method, url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"{method} {url} failed: {e}")
            return ConnectorResult(False, f"Request to {url} failed", error=str(e))

        if response.status_code == 404:
            return ConnectorResult(False, f"{url} not found", error="not found")

        if not response.ok:
            logger.error(f"{method} {url} returned {response.status_code}: {response.text[:200]}")
            return ConnectorResult(
                False,
                f"{method} {url} returned {response.status_code}",
                error=f"HTTP {response.status_code}",
            )

        try:
            data = response.json() if response.content else {}
        except ValueError as e:
            return ConnectorResult(False, f"Invalid JSON from {url}", error=str(e))
        if not isinstance(data, dict):
            return ConnectorResult(False, f"Unexpected response body from {url}", error="expected a JSON object")

        return ConnectorResult(True, f"{method} {url} succeeded", data)


class HTTPEmployeeDirectory(HTTPConnectorMixin, EmployeeDirectory):
    """Employee directory served at ``GET {base_url}/employees/{id}``."""

    def __init__(self, config: Optional[Dict[str, Any]] = None, session: Optional[requests.Session] = None):
        super().__init__(config, mock_mode=False)
        self._init_session(session)

    def get_employee(self, employee_id: str) -> ConnectorResult:
        result = self._request("GET", f"/employees/{employee_id}")
        if not result.success:
            return result

        data = result.data or {}
        result.data = {
            "name": data.get("name") or data.get("full_name") or "",
            "employee_number": data.get("employee_number", ""),
            "work_email": data.get("work_email"),
        }
        return result


class HTTPPayrollConnector(HTTPConnectorMixin, PayrollConnector):
    """Payroll initiation served at ``POST {base_url}/final-settlements``."""

    def __init__(self, config: Optional[Dict[str, Any]] = None, session: Optional[requests.Session] = None):
        super().__init__(config, mock_mode=False)
        self._init_session(session)

    def initiate_final_settlement(self, termination_id: str, employee_id: str) -> ConnectorResult:
        result = self._request(
            "POST",
            "/final-settlements",
            {"termination_id": termination_id, "employee_id": employee_id},
        )
        if result.success and not (result.data or {}).get("reference"):
            return ConnectorResult(False, "Payroll acknowledgement missing reference",
                                   error="missing reference")
        return result


class HTTPIdentityConnector(HTTPConnectorMixin, IdentityConnector):
    """Identity system served at ``POST {base_url}/employees/{id}/roles/disable``."""

    def __init__(self, config: Optional[Dict[str, Any]] = None, session: Optional[requests.Session] = None):
        super().__init__(config, mock_mode=False)
        self._init_session(session)

    def disable_roles(self, employee_id: str) -> ConnectorResult:
        result = self._request("POST", f"/employees/{employee_id}/roles/disable")
        if not result.success:
            return result

        raw_count = (result.data or {}).get("count", 0)
        try:
            count = int(raw_count)
        except (TypeError, ValueError):
            logger.error(f"Identity system returned an invalid role count for {employee_id}: {raw_count!r}")
            return ConnectorResult(False, "Identity response has an invalid role count",
                                   error=f"invalid count: {raw_count!r}")
        return ConnectorResult(True, result.message, data={"count": count})
