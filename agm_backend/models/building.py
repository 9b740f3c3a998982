"""
Building and membership tables owned by the wider application
"""
import uuid

from sqlalchemy import Column, String, DateTime, ForeignKey, UniqueConstraint

from agm_backend.database import Base
from agm_backend.utils.helpers import utcnow


class Building(Base):
    __tablename__ = "buildings"

    id = Column(String(64), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=utcnow)


class BuildingUser(Base):
    __tablename__ = "building_users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    building_id = Column(String(64), ForeignKey("buildings.id"), nullable=False, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    role = Column(String(32), nullable=False)  # "rtm-director", "rmc-director", "leaseholder", ...

    __table_args__ = (
        UniqueConstraint("building_id", "user_id", name="uq_building_user"),
    )
