"""
Shared fixtures for the Offboarding Engine tests.
"""

import pytest

from offboarding_engine.connectors import (
    MockEmployeeDirectory,
    MockIdentityConnector,
    MockPayrollConnector,
)
from offboarding_engine.engine import StateManager
from offboarding_engine.service import OffboardingService

from helpers import FIXED_NOW, FUTURE_DATE, FakeClock


def pytest_configure(config):
    config.addinivalue_line("markers", "integration: end-to-end tests across components")


@pytest.fixture
def clock():
    return FakeClock(FIXED_NOW)


@pytest.fixture
def directory():
    directory = MockEmployeeDirectory()
    directory.add_employee("EMP001", "Jane Doe", "E-1001", "jane.doe@company.com")
    directory.add_employee("EMP002", "John Smith", "E-1002", "john.smith@company.com")
    directory.add_employee("EMP003", "Ana Lopez", "E-1003", "ana.lopez@company.com")
    return directory


@pytest.fixture
def payroll():
    return MockPayrollConnector()


@pytest.fixture
def identity():
    return MockIdentityConnector(roles={
        "EMP001": ["erp-user", "vpn", "email"],
        "EMP002": ["email"],
    })


@pytest.fixture
def connectors(directory, payroll, identity):
    return {"directory": directory, "payroll": payroll, "identity": identity}


@pytest.fixture
def state_manager():
    return StateManager()


@pytest.fixture
def service(state_manager, connectors, clock):
    return OffboardingService(state_manager=state_manager, connectors=connectors, clock=clock)


@pytest.fixture
def state_path(tmp_path):
    return tmp_path / "state.json"


@pytest.fixture
def persistent_service(state_path, connectors, clock):
    """Service whose store is persisted to a JSON file."""
    return OffboardingService(state_manager=StateManager(state_path), connectors=connectors, clock=clock)


@pytest.fixture
def approved_case(service):
    """EMP001 approved with IT, Finance, Facilities and a laptop to return."""
    request = service.create_termination_request("EMP001", "EMPLOYEE", "RELOCATION", FUTURE_DATE)
    service.decide_termination_request(
        request.id,
        "APPROVE",
        "hr-1",
        departments=["IT", "Finance", "Facilities"],
        equipment=["Laptop"],
    )
    checklist = service.get_clearance_checklist_by_termination_id(request.id)
    return service.get_termination_request_by_id(request.id), checklist

