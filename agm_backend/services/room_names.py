"""
Room name allocation for AGM video meetings
"""
import secrets
from typing import Collection, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from agm_backend.exceptions import DependencyError
from agm_backend.models.meeting import Meeting
from agm_backend.services.base import BaseService
from agm_backend.services.membership import MembershipService
from agm_backend.utils.helpers import clean_slug, epoch_millis, short_hash

FALLBACK_ID_LENGTH = 8


class RoomNameGenerator(BaseService):
    """
    Builds `agm-{building}-{agm_id}` names and walks a counter suffix until the
    name is free. The check is advisory: the unique constraint on
    meetings.room_name decides, and MeetingService retries on a violation.
    """

    def __init__(self, db: AsyncSession, membership: Optional[MembershipService] = None):
        super().__init__(db)
        self.membership = membership or MembershipService(db)

    async def generate(self, building_id: str, agm_id: int, exclude: Collection[str] = ()) -> str:
        base_name = f"agm-{await self.building_slug(building_id)}-{agm_id}"

        candidate = base_name
        counter = 1
        while candidate in exclude or await self.room_name_exists(candidate):
            if counter > self.settings.ROOM_NAME_MAX_ATTEMPTS:
                candidate = self.fallback_name(agm_id, exclude)
                self.logger.warning(
                    f"Room name {base_name} exhausted {self.settings.ROOM_NAME_MAX_ATTEMPTS} suffixes, using {candidate}"
                )
                break
            candidate = f"{base_name}-{counter}"
            counter += 1

        return candidate

    async def building_slug(self, building_id: str) -> str:
        """Cleaned building display name, or a short id-derived slug when it cannot be resolved"""
        name = None
        try:
            name = await self.membership.get_building_name(building_id)
        except DependencyError as e:
            self.logger.warning(f"Could not fetch building name for {building_id}, using building id: {e}")

        slug = clean_slug(name, self.settings.ROOM_NAME_BUILDING_MAX_LENGTH) if name else ""
        if slug:
            return slug

        slug = clean_slug(building_id, FALLBACK_ID_LENGTH)
        return slug or short_hash(str(building_id), FALLBACK_ID_LENGTH)

    async def room_name_exists(self, room_name: str) -> bool:
        try:
            result = await self.db.execute(
                select(Meeting.id).where(Meeting.room_name == room_name).limit(1)
            )
            return result.first() is not None
        except SQLAlchemyError as e:
            # Treated as free; the insert will hit the unique constraint if it is not
            await self.db.rollback()
            self.logger.warning(f"Error checking room name existence for {room_name}: {e}")
            return False

    @staticmethod
    def fallback_name(agm_id: int, exclude: Collection[str] = ()) -> str:
        name = f"agm-{epoch_millis()}-{agm_id}"
        if name in exclude:
            name = f"{name}-{secrets.token_hex(2)}"
        return name
