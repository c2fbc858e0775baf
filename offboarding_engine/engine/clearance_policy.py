"""
Clearance Policy for the Offboarding Engine.

This module reads the clearance policy configuration file and resolves the
departments, equipment and urgency threshold used when a termination request
is approved and when access revocations are ranked.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from ..models import EquipmentSeed

logger = logging.getLogger(__name__)

DEFAULT_DEPARTMENTS = ["IT", "Finance", "Facilities", "HR", "Admin"]
DEFAULT_URGENT_AFTER_DAYS = 3


class ClearancePolicy:
    """
    Maps separation cases to their clearance requirements.

    Reads configuration from clearance_policy.yaml to determine which
    departments must sign off and which equipment must be returned when an
    approver does not provide explicit lists.
    """

    def __init__(self, policy_file: Optional[Union[str, Path]] = None):
        """
        Initialize the clearance policy.

        Args:
            policy_file: Path to a clearance policy YAML file.
                        Defaults to clearance_policy.yaml next to this module.
        """
        if policy_file is None:
            policy_file = Path(__file__).parent / "clearance_policy.yaml"

        self.policy_file = Path(policy_file)
        self.policy: Dict[str, Any] = {}

        self._load_configuration()

    def _load_configuration(self):
        """Load the clearance policy from YAML."""
        if not self.policy_file.exists():
            logger.warning(f"Clearance policy file not found: {self.policy_file}; using built-in defaults")
            self.policy = {}
            return

        try:
            with open(self.policy_file, encoding="utf-8") as f:
                self.policy = yaml.safe_load(f) or {}
            logger.info(f"Loaded clearance policy from {self.policy_file}")
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to load clearance policy: {e}")
            raise

    def get_departments(self) -> List[str]:
        """Get the departments that must clear a case, in sign-off order."""
        return list(self.policy.get("default_departments") or DEFAULT_DEPARTMENTS)

    def get_equipment(self) -> List[EquipmentSeed]:
        """Get the default equipment to be returned."""
        seeds = []
        for entry in self.policy.get("default_equipment") or []:
            if isinstance(entry, str):
                seeds.append(EquipmentSeed(name=entry))
            else:
                seeds.append(EquipmentSeed(**entry))
        return seeds

    @property
    def urgent_after_days(self) -> int:
        """Days after approval beyond which a pending revocation is urgent."""
        revocation = self.policy.get("access_revocation") or {}
        return int(revocation.get("urgent_after_days", DEFAULT_URGENT_AFTER_DAYS))
