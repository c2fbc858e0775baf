"""
Configuration for the Offboarding Engine.

Settings come from an optional JSON or YAML file, then environment
variables prefixed with ``OFFBOARDING_`` override individual fields.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from .exceptions import ValidationError

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

_ENV_OVERRIDES = {
    "OFFBOARDING_STORAGE_PATH": "storage_path",
    "OFFBOARDING_MOCK_MODE": "mock_mode",
    "OFFBOARDING_POLICY_PATH": "policy_path",
    "OFFBOARDING_LOG_LEVEL": "log_level",
}


class ConnectorSettings(BaseModel):
    """Settings for one HTTP collaborator."""
    base_url: str = ""
    timeout: float = 10.0
    api_key: Optional[str] = None


class ConnectorsConfig(BaseModel):
    """Per-collaborator connector settings."""
    directory: ConnectorSettings = Field(default_factory=ConnectorSettings)
    payroll: ConnectorSettings = Field(default_factory=ConnectorSettings)
    identity: ConnectorSettings = Field(default_factory=ConnectorSettings)


class EngineConfig(BaseModel):
    """Top-level engine configuration."""
    storage_path: Optional[str] = Field(None, description="JSON state file; in-memory when unset")
    mock_mode: bool = Field(True, description="Use in-memory collaborators instead of HTTP")
    policy_path: Optional[str] = Field(None, description="Clearance policy YAML; bundled policy when unset")
    log_level: str = "INFO"
    connectors: ConnectorsConfig = Field(default_factory=ConnectorsConfig)


def load_config(path: Optional[Union[str, Path]] = None) -> EngineConfig:
    """
    Load the engine configuration.

    Args:
        path: JSON or YAML configuration file. Optional.

    Returns:
        EngineConfig with environment overrides applied
    """
    data: Dict[str, Any] = {}

    if path:
        config_path = Path(path)
        if not config_path.exists():
            raise ValidationError(f"Configuration file not found: {config_path}", {"path": str(config_path)})

        try:
            with open(config_path, encoding="utf-8") as f:
                if config_path.suffix.lower() in (".yaml", ".yml"):
                    data = yaml.safe_load(f) or {}
                else:
                    data = json.load(f)
        except (OSError, ValueError, yaml.YAMLError) as e:
            raise ValidationError(f"Error loading config {config_path}: {e}", {"path": str(config_path)}) from e

        logger.info(f"Loaded configuration from {config_path}")

    for env_name, field_name in _ENV_OVERRIDES.items():
        value = os.environ.get(env_name)
        if value is not None and value != "":
            data[field_name] = value

    try:
        return EngineConfig.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid configuration: {e}") from e


def configure_logging(level: Union[str, int] = "INFO"):
    """Apply the engine's log format at the given level."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT)
