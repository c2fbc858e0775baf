"""
Tests for the collaborator connectors.
"""

from unittest.mock import MagicMock, patch

import pytest
import requests

from offboarding_engine.connectors import (
    HTTPEmployeeDirectory,
    HTTPIdentityConnector,
    HTTPPayrollConnector,
    MockEmployeeDirectory,
    MockIdentityConnector,
    MockPayrollConnector,
    create_connectors,
)


def make_response(status_code=200, payload=None):
    response = MagicMock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 400
    response.content = b"{}" if payload is not None else b""
    response.json.return_value = payload
    response.text = str(payload)
    return response


class TestConnectorFactory:
    """Test cases for create_connectors."""

    def test_mock_connectors_by_default(self):
        """Test that mock connectors are created by default."""
        connectors = create_connectors()

        assert isinstance(connectors["directory"], MockEmployeeDirectory)
        assert isinstance(connectors["payroll"], MockPayrollConnector)
        assert isinstance(connectors["identity"], MockIdentityConnector)
        assert all(c.is_mock_mode() for c in connectors.values())

    def test_http_connectors_in_real_mode(self):
        """Test that real mode creates HTTP connectors."""
        connectors = create_connectors({
            "directory": {"base_url": "https://hr.example.com/api/"},
            "payroll": {"base_url": "https://payroll.example.com", "timeout": 30},
            "identity": {},
        }, mock_mode=False)

        assert isinstance(connectors["directory"], HTTPEmployeeDirectory)
        assert connectors["directory"].base_url == "https://hr.example.com/api"
        assert connectors["payroll"].timeout == 30
        assert connectors["payroll"].validate_config()
        assert not connectors["identity"].validate_config()
        assert connectors["identity"].get_system_name() == "identity"


class TestMockConnectors:
    """Test cases for the in-memory collaborators."""

    def test_directory_lookup(self):
        """Test mock directory hits and misses."""
        directory = MockEmployeeDirectory()
        directory.add_employee("EMP001", "Jane Doe", "E-1001", "jane@company.com")

        found = directory.get_employee("EMP001")
        missing = directory.get_employee("EMP999")

        assert found
        assert found.data["name"] == "Jane Doe"
        assert not missing
        assert missing.error

    def test_payroll_records_initiations(self):
        """Test that the mock payroll records initiations."""
        payroll = MockPayrollConnector()

        result = payroll.initiate_final_settlement("TR-1", "EMP001")

        assert result.success
        assert result.data["reference"].startswith("FS-")
        assert payroll.get_mock_state()["initiated"][0]["termination_id"] == "TR-1"

    def test_payroll_fail_next(self):
        """Test forcing a single mock payroll failure."""
        payroll = MockPayrollConnector()
        payroll.fail_next = True

        assert not payroll.initiate_final_settlement("TR-1", "EMP001")
        assert payroll.initiate_final_settlement("TR-1", "EMP001")
        assert len(payroll.initiated) == 1

    def test_identity_disables_active_roles(self):
        """Test that the mock identity system disables each role once."""
        identity = MockIdentityConnector()
        identity.grant_role("EMP001", "vpn")
        identity.grant_role("EMP001", "erp-user")
        identity.grant_role("EMP001", "vpn")

        first = identity.disable_roles("EMP001")
        second = identity.disable_roles("EMP001")

        assert first.data == {"count": 2}
        assert second.data == {"count": 0}
        assert identity.get_mock_state()["disabled"]["EMP001"] == ["vpn", "erp-user"]


class TestHTTPConnectors:
    """Test cases for the HTTP collaborators."""

    @pytest.fixture
    def session(self):
        return requests.Session()

    def test_directory_get_employee(self, session):
        """Test the directory request and response mapping."""
        directory = HTTPEmployeeDirectory({"base_url": "https://hr.example.com", "api_key": "secret"}, session)
        response = make_response(200, {"full_name": "Jane Doe", "employee_number": "E-1001",
                                        "work_email": "jane@company.com"})

        with patch.object(session, "request", return_value=response) as mock_request:
            result = directory.get_employee("EMP001")

        mock_request.assert_called_once_with("GET", "https://hr.example.com/employees/EMP001",
                                             json=None, timeout=10.0)
        assert session.headers["Authorization"] == "Bearer secret"
        assert result.data == {"name": "Jane Doe", "employee_number": "E-1001", "work_email": "jane@company.com"}

    def test_directory_not_found(self, session):
        """Test that a 404 becomes a failed result."""
        directory = HTTPEmployeeDirectory({"base_url": "https://hr.example.com"}, session)

        with patch.object(session, "request", return_value=make_response(404)):
            result = directory.get_employee("EMP999")

        assert not result
        assert result.error == "not found"

    def test_transport_error(self, session):
        """Test that transport errors become failed results."""
        directory = HTTPEmployeeDirectory({"base_url": "https://hr.example.com"}, session)

        with patch.object(session, "request", side_effect=requests.ConnectionError("refused")):
            result = directory.get_employee("EMP001")

        assert not result
        assert "refused" in result.error

    def test_payroll_initiation(self, session):
        """Test the payroll initiation request."""
        payroll = HTTPPayrollConnector({"base_url": "https://payroll.example.com", "timeout": 5}, session)
        response = make_response(201, {"reference": "PAY-77", "message": "queued"})

        with patch.object(session, "request", return_value=response) as mock_request:
            result = payroll.initiate_final_settlement("TR-1", "EMP001")

        mock_request.assert_called_once_with(
            "POST", "https://payroll.example.com/final-settlements",
            json={"termination_id": "TR-1", "employee_id": "EMP001"}, timeout=5.0,
        )
        assert result.success
        assert result.data["reference"] == "PAY-77"

    def test_payroll_missing_reference_is_failure(self, session):
        """Test that an acknowledgement without a reference fails."""
        payroll = HTTPPayrollConnector({"base_url": "https://payroll.example.com"}, session)

        with patch.object(session, "request", return_value=make_response(200, {"message": "ok"})):
            result = payroll.initiate_final_settlement("TR-1", "EMP001")

        assert not result

    def test_payroll_server_error(self, session):
        """Test that server errors become failed results."""
        payroll = HTTPPayrollConnector({"base_url": "https://payroll.example.com"}, session)

        with patch.object(session, "request", return_value=make_response(503, {"detail": "down"})):
            result = payroll.initiate_final_settlement("TR-1", "EMP001")

        assert not result
        assert result.error == "HTTP 503"

    def test_identity_disable_roles(self, session):
        """Test the role disable request."""
        identity = HTTPIdentityConnector({"base_url": "https://iam.example.com"}, session)

        with patch.object(session, "request", return_value=make_response(200, {"count": 4})) as mock_request:
            result = identity.disable_roles("EMP001")

        assert mock_request.call_args.args == ("POST", "https://iam.example.com/employees/EMP001/roles/disable")
        assert result.data == {"count": 4}

    def test_identity_invalid_count_is_failure(self, session):
        """Test that a non-numeric role count becomes a failed result."""
        identity = HTTPIdentityConnector({"base_url": "https://iam.example.com"}, session)

        with patch.object(session, "request", return_value=make_response(200, {"count": "several"})):
            result = identity.disable_roles("EMP001")

        assert not result
        assert "invalid count" in result.error

    def test_non_object_body_is_failure(self, session):
        """Test that a JSON body that is not an object becomes a failed result."""
        identity = HTTPIdentityConnector({"base_url": "https://iam.example.com"}, session)

        with patch.object(session, "request", return_value=make_response(200, ["vpn", "email"])):
            result = identity.disable_roles("EMP001")

        assert not result
        assert result.error == "expected a JSON object"
