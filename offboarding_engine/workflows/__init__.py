"""
Workflows Package for the Offboarding Engine.

This package provides the workflows that move a separation case from the
termination request through clearance to final settlement and access
revocation.
"""

from .base_workflow import BaseWorkflow, system_clock
from .clearance import ClearanceChecklistWorkflow
from .helpers import (
    coerce_enum,
    normalize_departments,
    normalize_equipment,
    parse_termination_date,
    require_text,
)
from .revocation import AccessRevocationScheduler
from .settlement import SettlementGate
from .termination import TerminationRequestWorkflow

__all__ = [
    "BaseWorkflow",
    "system_clock",
    "TerminationRequestWorkflow",
    "ClearanceChecklistWorkflow",
    "SettlementGate",
    "AccessRevocationScheduler",
    "coerce_enum",
    "normalize_departments",
    "normalize_equipment",
    "parse_termination_date",
    "require_text",
]
