"""
Meeting lifecycle: creation, lookups, and the status state machine.

    scheduled --start--> active --end--> ended
        |
        +----cancel----> cancelled

ended and cancelled are terminal. Repeating the transition that led into the
current state (start on active, end on ended, cancel on cancelled) is a no-op
success so duplicate callbacks from the conferencing client are harmless.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from agm_backend.exceptions import DependencyError, InvalidTransition, NotFound, ValidationError
from agm_backend.models.meeting import Meeting, MeetingStatus, TERMINAL_STATUSES
from agm_backend.schemas import MeetingRecord, to_record
from agm_backend.services.base import BaseService
from agm_backend.services.membership import MembershipService
from agm_backend.services.room_names import RoomNameGenerator
from agm_backend.utils.helpers import to_naive_utc, utcnow
from agm_backend.utils.validators import (
    require_text,
    validate_agm_id,
    validate_max_participants,
    validate_schedule,
)

# Attributes a host may change through update_meeting
EDITABLE_FIELDS = frozenset({
    "title",
    "description",
    "start_time",
    "end_time",
    "max_participants",
    "recording_enabled",
    "recording_url",
})

# source status -> target status for each transition
TRANSITIONS = {
    "start": (MeetingStatus.SCHEDULED, MeetingStatus.ACTIVE),
    "end": (MeetingStatus.ACTIVE, MeetingStatus.ENDED),
    "cancel": (MeetingStatus.SCHEDULED, MeetingStatus.CANCELLED),
}


class MeetingService(BaseService):

    def __init__(
        self,
        db: AsyncSession,
        membership: Optional[MembershipService] = None,
        room_names: Optional[RoomNameGenerator] = None,
    ):
        super().__init__(db)
        self.membership = membership or MembershipService(db)
        self.room_names = room_names or RoomNameGenerator(db, self.membership)

    # --- Creation ---

    async def create_meeting(
        self,
        agm_id: int,
        building_id: str,
        host_id: str,
        title: str,
        description: Optional[str] = None,
        scheduled_start: Optional[datetime] = None,
        scheduled_end: Optional[datetime] = None,
        max_participants: Optional[int] = None,
        recording_enabled: Optional[bool] = None,
    ) -> MeetingRecord:
        """Allocate a room name and persist a scheduled meeting"""
        building_id = require_text(building_id, "building_id")
        agm_id = validate_agm_id(agm_id)
        host_id = require_text(host_id, "host_id")
        title = require_text(title, "title")
        scheduled_start = to_naive_utc(scheduled_start)
        scheduled_end = to_naive_utc(scheduled_end)
        validate_schedule(scheduled_start, scheduled_end)
        max_participants = validate_max_participants(max_participants) or self.settings.DEFAULT_MAX_PARTICIPANTS

        rejected = set()
        for attempt in range(1, self.settings.ROOM_NAME_INSERT_RETRIES + 1):
            room_name = await self.room_names.generate(building_id, agm_id, exclude=rejected)
            meeting = Meeting(
                agm_id=agm_id,
                building_id=building_id,
                room_name=room_name,
                host_id=host_id,
                title=title,
                description=description,
                status=MeetingStatus.SCHEDULED,
                start_time=scheduled_start,
                end_time=scheduled_end,
                participants_count=0,
                max_participants=max_participants,
                recording_enabled=bool(recording_enabled),
            )
            self.db.add(meeting)
            try:
                await self.db.commit()
                await self.db.refresh(meeting)
            except IntegrityError as e:
                # Lost the check-then-act race for this name; pick another
                await self.db.rollback()
                rejected.add(room_name)
                self.logger.warning(
                    f"Room name {room_name} taken on insert (attempt {attempt}), regenerating: {e.orig}"
                )
                continue
            except SQLAlchemyError as e:
                await self.db.rollback()
                self.logger.error(f"Failed to create meeting for AGM {agm_id} in building {building_id}: {e}")
                raise DependencyError("Failed to create meeting", operation="create_meeting") from e

            self.logger.info(f"Created meeting {meeting.id} ({room_name}) for AGM {agm_id}")
            return to_record(MeetingRecord, meeting)

        raise DependencyError(
            f"Could not allocate a unique room name after {self.settings.ROOM_NAME_INSERT_RETRIES} attempts",
            operation="create_meeting",
        )

    # --- Reads ---

    async def get_meeting(self, meeting_id: str) -> Optional[MeetingRecord]:
        """None when the meeting does not exist"""
        meeting = await self._load(meeting_id)
        return to_record(MeetingRecord, meeting) if meeting else None

    async def require_meeting(self, meeting_id: str) -> MeetingRecord:
        meeting = await self.get_meeting(meeting_id)
        if meeting is None:
            raise NotFound("Meeting", meeting_id)
        return meeting

    async def get_meetings_for_building(self, building_id: str) -> List[MeetingRecord]:
        async with self.store_call("list meetings"):
            result = await self.db.execute(
                select(Meeting)
                .where(Meeting.building_id == building_id)
                .order_by(Meeting.created_at.desc())
                .execution_options(populate_existing=True)
            )
            meetings = result.scalars().all()
        return [to_record(MeetingRecord, m) for m in meetings]

    async def get_meeting_by_agm(self, agm_id: int, building_id: str) -> Optional[MeetingRecord]:
        async with self.store_call("get meeting by agm"):
            result = await self.db.execute(
                select(Meeting)
                .where(Meeting.agm_id == agm_id, Meeting.building_id == building_id)
                .order_by(Meeting.created_at.desc())
                .limit(1)
                .execution_options(populate_existing=True)
            )
            meeting = result.scalars().first()
        return to_record(MeetingRecord, meeting) if meeting else None

    # --- Transitions ---

    async def start_meeting(self, meeting_id: str) -> MeetingRecord:
        return await self._transition(meeting_id, "start", actual_start_time=utcnow())

    async def end_meeting(self, meeting_id: str) -> MeetingRecord:
        # Open participant rows are left alone; leave is driven by the client
        return await self._transition(meeting_id, "end", actual_end_time=utcnow())

    async def cancel_meeting(self, meeting_id: str) -> MeetingRecord:
        return await self._transition(meeting_id, "cancel")

    async def _transition(self, meeting_id: str, action: str, **values) -> MeetingRecord:
        source, target = TRANSITIONS[action]

        # Compare-and-set on status: two racing callers cannot both win
        async with self.store_call(f"{action} meeting"):
            result = await self.db.execute(
                update(Meeting)
                .where(Meeting.id == meeting_id, Meeting.status == source)
                .values(status=target, updated_at=utcnow(), **values)
                .execution_options(synchronize_session=False)
            )
            await self.db.commit()
            changed = result.rowcount == 1

        meeting = await self.get_meeting(meeting_id)
        if meeting is None:
            raise NotFound("Meeting", meeting_id)

        if changed:
            self.logger.info(f"Meeting {meeting_id} {source.value} -> {target.value}")
        elif meeting.status == target:
            self.logger.debug(f"Meeting {meeting_id} already {target.value}, {action} ignored")
        else:
            raise InvalidTransition(
                f"Cannot {action} a meeting that is {meeting.status.value}",
                current_status=meeting.status.value,
            )
        return meeting

    # --- Updates ---

    async def update_meeting(self, meeting_id: str, fields: Dict[str, Any]) -> MeetingRecord:
        """Update host-editable attributes; refused once the meeting is ended or cancelled"""
        unknown = set(fields) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")

        changes = dict(fields)
        if "title" in changes:
            changes["title"] = require_text(changes["title"], "title")
        if "max_participants" in changes:
            if changes["max_participants"] is None:
                raise ValidationError("max_participants cannot be cleared")
            validate_max_participants(changes["max_participants"])
        if "recording_enabled" in changes:
            changes["recording_enabled"] = bool(changes["recording_enabled"])
        for key in ("start_time", "end_time"):
            if key in changes:
                changes[key] = to_naive_utc(changes[key])

        current = await self.require_meeting(meeting_id)
        validate_schedule(
            changes.get("start_time", current.start_time),
            changes.get("end_time", current.end_time),
        )
        if not changes:
            return current

        async with self.store_call("update meeting"):
            result = await self.db.execute(
                update(Meeting)
                .where(Meeting.id == meeting_id, Meeting.status.notin_(TERMINAL_STATUSES))
                .values(updated_at=utcnow(), **changes)
                .execution_options(synchronize_session=False)
            )
            await self.db.commit()
            changed = result.rowcount == 1

        meeting = await self.require_meeting(meeting_id)
        if not changed:
            raise InvalidTransition(
                f"Cannot edit a meeting that is {meeting.status.value}",
                current_status=meeting.status.value,
            )
        self.logger.info(f"Updated meeting {meeting_id}: {', '.join(sorted(changes))}")
        return meeting

    # --- Permissions ---

    async def can_manage(self, meeting: MeetingRecord, user_id: Optional[str]) -> bool:
        """Host of the meeting or a director of its building"""
        if not user_id:
            return False
        if meeting.host_id == user_id:
            return True
        return await self.membership.is_director(meeting.building_id, user_id)

    async def can_host(self, building_id: str, user_id: Optional[str]) -> bool:
        """Only building directors may create meetings"""
        if not user_id:
            return False
        return await self.membership.is_director(building_id, user_id)

    async def can_view(self, meeting: MeetingRecord, user_id: Optional[str]) -> bool:
        if not user_id:
            return False
        if meeting.host_id == user_id:
            return True
        return await self.membership.is_member(meeting.building_id, user_id)

    async def _load(self, meeting_id: str) -> Optional[Meeting]:
        async with self.store_call("get meeting"):
            result = await self.db.execute(
                select(Meeting)
                .where(Meeting.id == meeting_id)
                .execution_options(populate_existing=True)
            )
            return result.scalar_one_or_none()
