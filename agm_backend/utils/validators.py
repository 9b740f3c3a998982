"""
Input validation utilities
"""
from datetime import datetime
from typing import Optional

from agm_backend.exceptions import ValidationError

MAX_PARTICIPANTS_LIMIT = 500


def require_text(value: Optional[str], field: str) -> str:
    """Reject missing or blank strings"""
    if value is None or not str(value).strip():
        raise ValidationError(f"{field} is required")
    return str(value).strip()


def validate_agm_id(agm_id) -> int:
    if agm_id is None or isinstance(agm_id, bool):
        raise ValidationError("agm_id is required")
    try:
        agm_id = int(agm_id)
    except (TypeError, ValueError):
        raise ValidationError("agm_id must be an integer")
    if agm_id < 1:
        raise ValidationError("agm_id must be positive")
    return agm_id


def validate_max_participants(value: Optional[int]) -> Optional[int]:
    if value is None:
        return None
    if value < 1 or value > MAX_PARTICIPANTS_LIMIT:
        raise ValidationError(f"max_participants must be between 1 and {MAX_PARTICIPANTS_LIMIT}")
    return value


def validate_max_uses(value: Optional[int]) -> Optional[int]:
    if value is not None and value < 1:
        raise ValidationError("max_uses must be at least 1")
    return value


def validate_schedule(start: Optional[datetime], end: Optional[datetime]) -> None:
    if start and end and end < start:
        raise ValidationError("end_time must be after start_time")
