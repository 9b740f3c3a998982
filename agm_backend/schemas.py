"""
Typed records read from the record store.

Every service converts ORM rows into these records before handing them to
business logic, so a malformed stored row surfaces as a DependencyError at the
component edge instead of as a stray None deep inside a transition.
"""
from datetime import datetime
from typing import Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from agm_backend.exceptions import DependencyError
from agm_backend.models.meeting import MeetingStatus
from agm_backend.models.participant import ParticipantRole

RecordT = TypeVar("RecordT", bound=BaseModel)


class MeetingRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    agm_id: int
    building_id: str
    room_name: str = Field(min_length=1)
    host_id: str
    title: str
    description: Optional[str] = None
    status: MeetingStatus
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    actual_start_time: Optional[datetime] = None
    actual_end_time: Optional[datetime] = None
    participants_count: int = 0
    max_participants: int
    recording_enabled: bool
    recording_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ParticipantRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    meeting_id: str
    user_id: Optional[str] = None
    display_name: str
    email: Optional[str] = None
    role: ParticipantRole
    joined_at: datetime
    left_at: Optional[datetime] = None
    is_anonymous: bool
    user_agent: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.left_at is None


class LinkRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    meeting_id: str
    link_token: str = Field(min_length=1)
    access_url: str
    expires_at: Optional[datetime] = None
    max_uses: Optional[int] = None
    current_uses: int
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


def to_record(record_cls: Type[RecordT], row) -> RecordT:
    """Validate a stored row against its record schema"""
    try:
        return record_cls.model_validate(row, from_attributes=True)
    except PydanticValidationError as e:
        raise DependencyError(
            f"Malformed {record_cls.__name__} in record store: {e.error_count()} invalid field(s)",
            operation="read",
        ) from e
