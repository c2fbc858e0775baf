"""
Engine Package.

This package provides the core state, policy and evaluation components
for tracking separation cases and deriving their clearance status.
"""

from .clearance_policy import ClearancePolicy
from .completion import evaluate_completion
from .state_manager import StateManager

__all__ = [
    "ClearancePolicy",
    "StateManager",
    "evaluate_completion",
]
