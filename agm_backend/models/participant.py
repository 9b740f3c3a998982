"""
Meeting participant model - one row per join, never deleted
"""
import enum
import uuid

from sqlalchemy import Column, String, DateTime, Boolean, Enum, ForeignKey, Index
from sqlalchemy.orm import relationship

from agm_backend.database import Base
from agm_backend.utils.helpers import utcnow


class ParticipantRole(str, enum.Enum):
    HOST = "host"
    MODERATOR = "moderator"
    PARTICIPANT = "participant"


class MeetingParticipant(Base):
    __tablename__ = "meeting_participants"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    meeting_id = Column(String(36), ForeignKey("meetings.id"), nullable=False)
    user_id = Column(String(64), nullable=True)  # anonymous link joiners have none

    display_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    role = Column(
        Enum(ParticipantRole, native_enum=False, length=16),
        nullable=False,
        default=ParticipantRole.PARTICIPANT,
    )

    joined_at = Column(DateTime, nullable=False, default=utcnow)
    left_at = Column(DateTime, nullable=True)  # null while connected
    is_anonymous = Column(Boolean, nullable=False, default=False)
    user_agent = Column(String(512), nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    meeting = relationship("Meeting", back_populates="participants")

    __table_args__ = (
        Index("idx_participant_open", "meeting_id", "user_id", "left_at"),
    )
