"""
Meeting access link - a bearer capability for one meeting
"""
import uuid

from sqlalchemy import Column, Integer, String, DateTime, Boolean, ForeignKey
from sqlalchemy.orm import relationship

from agm_backend.database import Base
from agm_backend.utils.helpers import utcnow


class MeetingLink(Base):
    __tablename__ = "meeting_links"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    meeting_id = Column(String(36), ForeignKey("meetings.id"), nullable=False, index=True)

    link_token = Column(String(128), nullable=False, unique=True, index=True)
    access_url = Column(String(2048), nullable=False)  # derived from the token, display only

    expires_at = Column(DateTime, nullable=True)  # null = never
    max_uses = Column(Integer, nullable=True)  # null = unlimited
    current_uses = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    meeting = relationship("Meeting", back_populates="links")
