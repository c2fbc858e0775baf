"""
Base Workflow Class for the Offboarding Engine.

Provides the shared collaborators (state manager, clearance policy,
connectors and clock) that every offboarding workflow operates on.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

from ..connectors import BaseConnector, create_connectors
from ..engine.clearance_policy import ClearancePolicy
from ..engine.state_manager import StateManager
from ..exceptions import ConnectorError

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def system_clock() -> datetime:
    return datetime.now(timezone.utc)


class BaseWorkflow:
    """
    Common base for the offboarding workflows.

    Workflows are stateless apart from the collaborators they share, so a
    single instance is safe to use from concurrent request handlers.
    """

    def __init__(
        self,
        state_manager: StateManager,
        policy: Optional[ClearancePolicy] = None,
        connectors: Optional[Dict[str, BaseConnector]] = None,
        clock: Optional[Clock] = None,
    ):
        """
        Initialize the workflow.

        Args:
            state_manager: Shared persistent store
            policy: Clearance policy (defaults to the bundled policy file)
            connectors: Collaborator connectors keyed by system name
            clock: Returns the current UTC time; injectable for tests
        """
        self.state_manager = state_manager
        self.policy = policy or ClearancePolicy()
        self.connectors = connectors if connectors is not None else create_connectors(mock_mode=True)
        self.clock = clock or system_clock

        logger.debug(f"Initialized {self.__class__.__name__}")

    def _now(self) -> datetime:
        return self.clock()

    @staticmethod
    def _new_id() -> str:
        return str(uuid.uuid4())

    def _connector(self, system: str) -> BaseConnector:
        connector = self.connectors.get(system)
        if connector is None:
            raise ConnectorError(f"No connector available for system: {system}", {"system": system})
        return connector
