"""
Offboarding Clearance Engine

Workflow engine for employee separation: termination requests, multi-party
clearance checklists, the final-settlement gate and access revocation
tracking.
"""

__version__ = "1.0.0"
__author__ = "Offboarding Engine Team"
__email__ = "team@example.com"

from .config import EngineConfig, load_config
from .engine.clearance_policy import ClearancePolicy
from .engine.completion import evaluate_completion
from .engine.state_manager import StateManager
from .service import OffboardingService

__all__ = [
    "EngineConfig",
    "load_config",
    "ClearancePolicy",
    "StateManager",
    "evaluate_completion",
    "OffboardingService",
]
