"""
State Manager for the Offboarding Engine.

Owns the persisted state of the engine: termination requests, clearance
checklists, and the settlement and access-revocation markers. Provides
transactional, lock-guarded writes with optional JSON file persistence.
"""

import json
import logging
import os
import tempfile
import threading
import zlib
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Union

from ..exceptions import StoreError
from ..models import (
    ClearanceChecklist,
    RevocationRecord,
    SettlementRecord,
    TerminationRequest,
    TerminationStatus,
)

logger = logging.getLogger(__name__)

KEY_LOCK_STRIPES = 64


class StateManager:
    """
    Manages the persisted state of separation cases.

    All state lives in memory behind a single re-entrant lock, with optional
    JSON file persistence. Writes happen inside ``transaction()``: the
    outermost transaction persists on success and restores the previous
    in-memory state on any exception, so multi-record changes (approving a
    request and creating its checklist) are all-or-nothing.

    Stored models are never mutated in place. Readers get deep copies and
    writers replace whole records, which keeps snapshots cheap.
    """

    def __init__(self, storage_path: Optional[Union[str, Path]] = None):
        """
        Initialize the state manager.

        Args:
            storage_path: Path to store engine state as JSON.
                         If None, state is kept in memory only.
        """
        self.storage_path = Path(storage_path) if storage_path else None
        self.termination_requests: Dict[str, TerminationRequest] = {}
        self.checklists: Dict[str, ClearanceChecklist] = {}
        self.settlements: Dict[str, SettlementRecord] = {}
        self.revocations: Dict[str, RevocationRecord] = {}
        self.commit_sequence = 0

        self._lock = threading.RLock()
        self._depth = 0
        self._key_locks = [threading.Lock() for _ in range(KEY_LOCK_STRIPES)]

        if self.storage_path:
            self.storage_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_state()

        logger.info(
            f"Initialized StateManager with {'persistent' if self.storage_path else 'in-memory'} storage"
        )

    # ------------------------------------------------------------------
    # Transactions and locking
    # ------------------------------------------------------------------

    @contextmanager
    def transaction(self, retain_on_store_error: bool = False) -> Iterator["StateManager"]:
        """
        Run a unit of work atomically.

        Nested transactions join the outer one; only the outermost persists.
        Any exception restores the state captured on entry and propagates.

        Args:
            retain_on_store_error: Keep the in-memory changes when only the
                save fails. Used to record the outcome of an external call
                that has already happened; the next successful commit writes
                it out. The StoreError still propagates.
        """
        with self._lock:
            snapshot = self._snapshot()
            outermost = self._depth == 0
            self._depth += 1
            try:
                yield self
            except Exception:
                self._restore(snapshot)
                raise
            finally:
                self._depth -= 1

            if outermost:
                try:
                    self._save_state()
                except Exception as e:
                    if not (retain_on_store_error and isinstance(e, StoreError)):
                        self._restore(snapshot)
                    raise

    def next_sequence(self) -> int:
        """Advance and return the store's commit sequence."""
        self._require_transaction()
        self.commit_sequence += 1
        return self.commit_sequence

    def key_lock(self, key: str) -> threading.Lock:
        """
        Get the lock serializing single-writer side effects for a key.

        Held around external calls (payroll, identity) so that concurrent
        callers for the same case invoke the collaborator at most once.
        Keys share a fixed pool of locks; unrelated keys on the same stripe
        only wait for each other. Never acquire two key locks at once.
        """
        return self._key_locks[zlib.crc32(key.encode("utf-8")) % len(self._key_locks)]

    def _require_transaction(self):
        if self._depth == 0:
            raise RuntimeError("State changes must be made inside StateManager.transaction()")

    def _snapshot(self) -> Dict[str, Any]:
        return {
            "termination_requests": dict(self.termination_requests),
            "checklists": dict(self.checklists),
            "settlements": dict(self.settlements),
            "revocations": dict(self.revocations),
            "commit_sequence": self.commit_sequence,
        }

    def _restore(self, snapshot: Dict[str, Any]):
        self.termination_requests = snapshot["termination_requests"]
        self.checklists = snapshot["checklists"]
        self.settlements = snapshot["settlements"]
        self.revocations = snapshot["revocations"]
        self.commit_sequence = snapshot["commit_sequence"]

    # ------------------------------------------------------------------
    # Termination requests
    # ------------------------------------------------------------------

    def get_termination_request(self, request_id: str) -> Optional[TerminationRequest]:
        """
        Get a termination request by id.

        Args:
            request_id: Termination request id

        Returns:
            A copy of the TerminationRequest if found, None otherwise
        """
        with self._lock:
            request = self.termination_requests.get(request_id)
            return request.model_copy(deep=True) if request else None

    def list_termination_requests(self) -> List[TerminationRequest]:
        """Get copies of all termination requests, newest first."""
        with self._lock:
            requests = [r.model_copy(deep=True) for r in self.termination_requests.values()]
        return sorted(requests, key=lambda r: r.created_at, reverse=True)

    def get_requests_by_employee(self, employee_id: str) -> List[TerminationRequest]:
        """Get all requests for an employee, newest first."""
        return [r for r in self.list_termination_requests() if r.employee_id == employee_id]

    def get_requests_by_status(self, status: TerminationStatus) -> List[TerminationRequest]:
        """Get all requests with a specific status, newest first."""
        return [r for r in self.list_termination_requests() if r.status == status]

    def put_termination_request(self, request: TerminationRequest):
        """Insert or replace a termination request."""
        self._require_transaction()
        self.termination_requests[request.id] = request.model_copy(deep=True)

    def delete_termination_request(self, request_id: str) -> bool:
        """Remove a termination request. Returns False if it did not exist."""
        self._require_transaction()
        return self.termination_requests.pop(request_id, None) is not None

    # ------------------------------------------------------------------
    # Clearance checklists
    # ------------------------------------------------------------------

    def get_checklist(self, checklist_id: str) -> Optional[ClearanceChecklist]:
        """Get a copy of a clearance checklist by id."""
        with self._lock:
            checklist = self.checklists.get(checklist_id)
            return checklist.model_copy(deep=True) if checklist else None

    def get_checklist_by_termination(self, termination_id: str) -> Optional[ClearanceChecklist]:
        """Get a copy of the checklist belonging to a termination request."""
        with self._lock:
            for checklist in self.checklists.values():
                if checklist.termination_id == termination_id:
                    return checklist.model_copy(deep=True)
        return None

    def list_checklists(self) -> List[ClearanceChecklist]:
        """Get copies of all checklists, newest first."""
        with self._lock:
            checklists = [c.model_copy(deep=True) for c in self.checklists.values()]
        return sorted(checklists, key=lambda c: c.created_at, reverse=True)

    def put_checklist(self, checklist: ClearanceChecklist):
        """Insert or replace a clearance checklist."""
        self._require_transaction()
        self.checklists[checklist.id] = checklist.model_copy(deep=True)

    # ------------------------------------------------------------------
    # Settlement and revocation markers
    # ------------------------------------------------------------------

    def get_settlement(self, termination_id: str) -> Optional[SettlementRecord]:
        """Get the settlement marker for a termination request."""
        with self._lock:
            record = self.settlements.get(termination_id)
            return record.model_copy(deep=True) if record else None

    def put_settlement(self, record: SettlementRecord):
        """Record that final settlement was triggered."""
        self._require_transaction()
        self.settlements[record.termination_id] = record.model_copy(deep=True)

    def delete_settlement(self, termination_id: str) -> bool:
        """Remove a settlement marker. Returns False if it did not exist."""
        self._require_transaction()
        return self.settlements.pop(termination_id, None) is not None

    def get_revocation(self, termination_id: str) -> Optional[RevocationRecord]:
        """Get the access-revocation marker for a termination request."""
        with self._lock:
            record = self.revocations.get(termination_id)
            return record.model_copy(deep=True) if record else None

    def put_revocation(self, record: RevocationRecord):
        """Record that system access was revoked."""
        self._require_transaction()
        self.revocations[record.termination_id] = record.model_copy(deep=True)

    def delete_revocation(self, termination_id: str) -> bool:
        """Remove a revocation marker. Returns False if it did not exist."""
        self._require_transaction()
        return self.revocations.pop(termination_id, None) is not None

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def get_state_summary(self) -> Dict[str, Any]:
        """
        Get a summary of the current engine state.

        Returns:
            Dictionary with case statistics
        """
        with self._lock:
            summary = {
                "total_requests": len(self.termination_requests),
                "requests_by_status": {},
                "requests_by_initiator": {},
                "total_checklists": len(self.checklists),
                "settlements_triggered": len(self.settlements),
                "access_revoked": len(self.revocations),
                "commit_sequence": self.commit_sequence,
            }

            for request in self.termination_requests.values():
                status = request.status.value
                summary["requests_by_status"][status] = summary["requests_by_status"].get(status, 0) + 1

                initiator = request.initiator.value
                summary["requests_by_initiator"][initiator] = (
                    summary["requests_by_initiator"].get(initiator, 0) + 1
                )

        return summary

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _save_state(self):
        """Save current state to persistent storage."""
        if not self.storage_path:
            return

        state_data = {
            "commit_sequence": self.commit_sequence,
            "termination_requests": {
                key: value.model_dump(mode="json") for key, value in self.termination_requests.items()
            },
            "checklists": {key: value.model_dump(mode="json") for key, value in self.checklists.items()},
            "settlements": {key: value.model_dump(mode="json") for key, value in self.settlements.items()},
            "revocations": {key: value.model_dump(mode="json") for key, value in self.revocations.items()},
            "last_updated": datetime.now(timezone.utc).isoformat(),
        }

        # Write to a sibling temp file and swap it in so a failed write never
        # leaves a truncated state file behind.
        try:
            fd, tmp_path = tempfile.mkstemp(
                dir=str(self.storage_path.parent), prefix=f".{self.storage_path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(state_data, f, indent=2)
                os.replace(tmp_path, self.storage_path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            logger.error(f"Failed to save state to {self.storage_path}: {e}")
            raise StoreError(f"Failed to persist state: {e}") from e

    def _load_state(self):
        """Load state from persistent storage."""
        if not self.storage_path or not self.storage_path.exists():
            return

        try:
            with open(self.storage_path, encoding="utf-8") as f:
                state_data = json.load(f)

            self.termination_requests = {
                key: TerminationRequest.model_validate(value)
                for key, value in state_data.get("termination_requests", {}).items()
            }
            self.checklists = {
                key: ClearanceChecklist.model_validate(value)
                for key, value in state_data.get("checklists", {}).items()
            }
            self.settlements = {
                key: SettlementRecord.model_validate(value)
                for key, value in state_data.get("settlements", {}).items()
            }
            self.revocations = {
                key: RevocationRecord.model_validate(value)
                for key, value in state_data.get("revocations", {}).items()
            }
            self.commit_sequence = int(state_data.get("commit_sequence", 0))

            logger.info(
                f"Loaded {len(self.termination_requests)} termination requests and "
                f"{len(self.checklists)} checklists from {self.storage_path}"
            )

        except (OSError, ValueError) as e:
            # Starting empty would overwrite the file on the next commit.
            logger.error(f"Failed to load state from {self.storage_path}: {e}")
            raise StoreError(f"Failed to load state from {self.storage_path}: {e}") from e
