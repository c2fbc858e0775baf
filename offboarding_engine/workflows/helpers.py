"""
Workflow Helper Functions for the Offboarding Engine.

Boundary validation shared by the workflows: closed-enum coercion, date
parsing and clearance list normalization. Everything here raises
ValidationError so bad input never reaches the state machine.
"""

import logging
from datetime import date, datetime
from enum import Enum
from typing import Any, Iterable, List, Optional, Type, TypeVar

from pydantic import ValidationError as PydanticValidationError

from ..exceptions import ValidationError
from ..models import EquipmentSeed

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Enum)


def require_text(value: Optional[str], field_name: str) -> str:
    """
    Ensure a required string field is present.

    Args:
        value: Raw value
        field_name: Field name for the error message

    Returns:
        The stripped value
    """
    if value is None or not str(value).strip():
        raise ValidationError(f"{field_name} is required", {"field": field_name})
    return str(value).strip()


def coerce_enum(enum_class: Type[E], value: Any, field_name: str) -> E:
    """
    Convert a raw value into a member of a closed enum.

    Matching is case-insensitive on the member value; unrecognized strings
    are rejected rather than propagated.

    Args:
        enum_class: Target enum
        value: Enum member or string
        field_name: Field name for the error message

    Returns:
        The enum member
    """
    if isinstance(value, enum_class):
        return value

    if isinstance(value, str):
        normalized = value.strip().upper()
        for member in enum_class:
            if member.value == normalized:
                return member

    allowed = ", ".join(member.value for member in enum_class)
    raise ValidationError(
        f"Invalid {field_name}: {value!r}. Allowed values: {allowed}",
        {"field": field_name, "allowed": [member.value for member in enum_class]},
    )


def parse_termination_date(value: Any) -> date:
    """
    Parse a termination date.

    Only presence and parseability are enforced here; whether a date in the
    past is acceptable is the caller's policy.

    Args:
        value: date, datetime or ISO-8601 string

    Returns:
        The calendar date
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError("termination_date is required", {"field": "termination_date"})

    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    if isinstance(value, str):
        text = value.strip()
        try:
            return date.fromisoformat(text)
        except ValueError:
            pass
        try:
            # Accept full timestamps such as 2025-01-31T00:00:00Z
            return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
        except ValueError:
            pass

    raise ValidationError(f"Invalid termination_date: {value!r}", {"field": "termination_date"})


def normalize_departments(departments: Iterable[str]) -> List[str]:
    """
    Validate the department list for a new checklist.

    Args:
        departments: Department names

    Returns:
        Stripped names in their original order
    """
    names = []
    seen = set()
    duplicates = []

    for department in departments or []:
        name = require_text(department, "department")
        key = name.casefold()
        if key in seen:
            duplicates.append(name)
        seen.add(key)
        names.append(name)

    if not names:
        raise ValidationError("At least one clearance department is required", {"field": "departments"})

    if duplicates:
        raise ValidationError(
            f"Duplicate clearance departments: {', '.join(duplicates)}",
            {"field": "departments", "duplicates": duplicates},
        )

    return names


def normalize_equipment(equipment: Optional[Iterable[Any]]) -> List[EquipmentSeed]:
    """
    Validate the equipment list for a new checklist.

    Args:
        equipment: EquipmentSeed objects, dicts or plain names

    Returns:
        EquipmentSeed list with unique names
    """
    seeds = []
    seen = set()

    for entry in equipment or []:
        if isinstance(entry, EquipmentSeed):
            seed = entry
        elif isinstance(entry, str):
            seed = EquipmentSeed(name=entry)
        elif isinstance(entry, dict):
            try:
                seed = EquipmentSeed(**entry)
            except PydanticValidationError as e:
                raise ValidationError(f"Invalid equipment entry: {entry!r}", {"field": "equipment"}) from e
        else:
            raise ValidationError(f"Invalid equipment entry: {entry!r}", {"field": "equipment"})

        name = require_text(seed.name, "equipment name")
        if name in seen:
            raise ValidationError(f"Duplicate equipment: {name}", {"field": "equipment", "duplicates": [name]})
        seen.add(name)
        seeds.append(seed.model_copy(update={"name": name}))

    return seeds
