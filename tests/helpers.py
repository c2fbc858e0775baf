"""
Shared constants and helpers for the Offboarding Engine tests.
"""

import os
from datetime import date, datetime, timedelta, timezone

FIXED_NOW = datetime(2025, 1, 15, 9, 0, tzinfo=timezone.utc)
FUTURE_DATE = date(2025, 2, 28)
PAST_DATE = date(2025, 1, 10)


class FakeClock:
    """Settable clock so tests control store time."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


def clear_everything(service, checklist):
    """Approve every department and return every item and the card."""
    for item in checklist.items:
        service.update_clearance_department_item(checklist.id, item.department, "APPROVED", actor_id="approver")
    for item in checklist.equipment_list:
        service.update_clearance_equipment_item(checklist.id, item.name, True, condition="good")
    service.update_clearance_card_return(checklist.id, True)


def replace_failing_on(*attempts):
    """
    Build an ``os.replace`` stand-in that fails the given save attempts.

    Attempts are counted from 1; every other call swaps the file in as usual.
    """
    real_replace = os.replace
    calls = []

    def replace(src, dst):
        calls.append(dst)
        if len(calls) in attempts:
            raise OSError("disk full")
        return real_replace(src, dst)

    return replace
