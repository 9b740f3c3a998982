"""
Membership lookups against the building_users table
"""
from typing import Optional

from sqlalchemy import select

from agm_backend.models.building import Building, BuildingUser
from agm_backend.services.base import BaseService


class MembershipService(BaseService):
    """Answers "is U a member of B", "what role does U hold in B" and building names"""

    async def get_role(self, building_id: str, user_id: str) -> Optional[str]:
        if not building_id or not user_id:
            return None
        async with self.store_call("membership lookup"):
            result = await self.db.execute(
                select(BuildingUser.role).where(
                    BuildingUser.building_id == building_id,
                    BuildingUser.user_id == user_id,
                )
            )
            return result.scalar_one_or_none()

    async def is_member(self, building_id: str, user_id: str) -> bool:
        return await self.get_role(building_id, user_id) is not None

    async def is_director(self, building_id: str, user_id: str) -> bool:
        role = await self.get_role(building_id, user_id)
        return role in self.settings.DIRECTOR_ROLES

    async def get_building_name(self, building_id: str) -> Optional[str]:
        async with self.store_call("building lookup"):
            result = await self.db.execute(
                select(Building.name).where(Building.id == building_id)
            )
            return result.scalar_one_or_none()
