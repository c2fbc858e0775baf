"""
Tests for engine configuration and the clearance policy.
"""

import json

import pytest

from offboarding_engine.config import EngineConfig, load_config
from offboarding_engine.engine import ClearancePolicy
from offboarding_engine.exceptions import ValidationError
from offboarding_engine.service import OffboardingService


class TestLoadConfig:
    """Test cases for load_config."""

    @pytest.fixture(autouse=True)
    def clean_env(self, monkeypatch):
        for name in ["OFFBOARDING_STORAGE_PATH", "OFFBOARDING_MOCK_MODE",
                     "OFFBOARDING_POLICY_PATH", "OFFBOARDING_LOG_LEVEL"]:
            monkeypatch.delenv(name, raising=False)

    def test_defaults(self):
        """Test the built-in configuration."""
        config = load_config()

        assert config == EngineConfig()
        assert config.mock_mode is True
        assert config.storage_path is None
        assert config.connectors.payroll.timeout == 10.0

    def test_yaml_file(self, tmp_path):
        """Test loading a YAML configuration file."""
        path = tmp_path / "config.yaml"
        path.write_text(
            "storage_path: data/state.json\n"
            "mock_mode: false\n"
            "connectors:\n"
            "  payroll:\n"
            "    base_url: https://payroll.example.com\n"
            "    timeout: 30\n",
            encoding="utf-8",
        )

        config = load_config(path)

        assert config.storage_path == "data/state.json"
        assert config.mock_mode is False
        assert config.connectors.payroll.base_url == "https://payroll.example.com"
        assert config.connectors.payroll.timeout == 30
        assert config.connectors.identity.base_url == ""

    def test_json_file(self, tmp_path):
        """Test loading a JSON configuration file."""
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"log_level": "DEBUG"}), encoding="utf-8")

        assert load_config(path).log_level == "DEBUG"

    def test_environment_overrides(self, tmp_path, monkeypatch):
        """Test that environment variables override the file."""
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"mock_mode": True, "storage_path": "a.json"}), encoding="utf-8")
        monkeypatch.setenv("OFFBOARDING_MOCK_MODE", "false")
        monkeypatch.setenv("OFFBOARDING_STORAGE_PATH", "b.json")

        config = load_config(path)

        assert config.mock_mode is False
        assert config.storage_path == "b.json"

    def test_missing_file(self, tmp_path):
        """Test that a missing configuration file is an error."""
        with pytest.raises(ValidationError):
            load_config(tmp_path / "missing.yaml")

    def test_invalid_values(self, tmp_path):
        """Test that invalid values are rejected."""
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"mock_mode": "sometimes"}), encoding="utf-8")

        with pytest.raises(ValidationError):
            load_config(path)


class TestClearancePolicy:
    """Test cases for ClearancePolicy."""

    def test_bundled_policy(self):
        """Test the bundled clearance policy."""
        policy = ClearancePolicy()

        assert policy.get_departments() == ["IT", "Finance", "Facilities", "HR", "Admin"]
        assert policy.get_equipment() == []
        assert policy.urgent_after_days == 3

    def test_custom_policy(self, tmp_path):
        """Test loading a custom policy file."""
        path = tmp_path / "policy.yaml"
        path.write_text(
            "default_departments: [IT, Security]\n"
            "default_equipment:\n"
            "  - Laptop\n"
            "  - {name: Phone, equipment_id: PH-1}\n"
            "access_revocation:\n"
            "  urgent_after_days: 1\n",
            encoding="utf-8",
        )

        policy = ClearancePolicy(path)

        assert policy.get_departments() == ["IT", "Security"]
        assert [e.name for e in policy.get_equipment()] == ["Laptop", "Phone"]
        assert policy.get_equipment()[1].equipment_id == "PH-1"
        assert policy.urgent_after_days == 1

    def test_missing_policy_falls_back_to_defaults(self, tmp_path):
        """Test that a missing policy file uses the defaults."""
        policy = ClearancePolicy(tmp_path / "missing.yaml")

        assert policy.get_departments() == ["IT", "Finance", "Facilities", "HR", "Admin"]
        assert policy.urgent_after_days == 3

    def test_service_uses_configured_policy(self, tmp_path, connectors, clock):
        """Test that approvals use the configured policy defaults."""
        path = tmp_path / "policy.yaml"
        path.write_text("default_departments: [Security]\ndefault_equipment: [Badge]\n", encoding="utf-8")
        service = OffboardingService(EngineConfig(policy_path=str(path)), connectors=connectors, clock=clock)

        request = service.create_termination_request("EMP001", "HR", "REDUNDANCY", "2025-02-28")
        service.decide_termination_request(request.id, "APPROVE", "hr-1")

        checklist = service.get_clearance_checklist_by_termination_id(request.id)
        assert [item.department for item in checklist.items] == ["Security"]
        assert [item.name for item in checklist.equipment_list] == ["Badge"]
