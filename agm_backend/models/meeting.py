"""
AGM video meeting model
"""
import enum
import uuid

from sqlalchemy import Column, Integer, String, DateTime, Text, Boolean, Enum, Index
from sqlalchemy.orm import relationship

from agm_backend.database import Base
from agm_backend.utils.helpers import utcnow


class MeetingStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    ACTIVE = "active"
    ENDED = "ended"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = frozenset({MeetingStatus.ENDED, MeetingStatus.CANCELLED})


def _new_id() -> str:
    return str(uuid.uuid4())


class Meeting(Base):
    __tablename__ = "meetings"

    id = Column(String(36), primary_key=True, default=_new_id)
    agm_id = Column(Integer, nullable=False, index=True)
    building_id = Column(String(64), nullable=False, index=True)
    room_name = Column(String(128), nullable=False, unique=True)  # final backstop for name allocation
    host_id = Column(String(64), nullable=False)

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(
        Enum(MeetingStatus, native_enum=False, length=16),
        nullable=False,
        default=MeetingStatus.SCHEDULED,
    )

    # Scheduled window
    start_time = Column(DateTime, nullable=True)
    end_time = Column(DateTime, nullable=True)

    # Set only by the start/end transitions
    actual_start_time = Column(DateTime, nullable=True)
    actual_end_time = Column(DateTime, nullable=True)

    # Cache, recomputed from open participant rows
    participants_count = Column(Integer, nullable=False, default=0)

    max_participants = Column(Integer, nullable=False, default=50)
    recording_enabled = Column(Boolean, nullable=False, default=False)
    recording_url = Column(String(2048), nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    participants = relationship("MeetingParticipant", back_populates="meeting")
    links = relationship("MeetingLink", back_populates="meeting")

    __table_args__ = (
        Index("idx_meeting_agm_building", "agm_id", "building_id"),
    )

    def __repr__(self):
        return f"<Meeting(id={self.id}, room_name={self.room_name}, status={self.status})>"
