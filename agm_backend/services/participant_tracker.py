"""
Participant presence tracking for AGM meetings
"""
from datetime import datetime
from typing import List, Optional

from sqlalchemy import and_, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from agm_backend.exceptions import (
    AccessDenied,
    DenialReason,
    DependencyError,
    InvalidTransition,
    ValidationError,
)
from agm_backend.models.meeting import Meeting, MeetingStatus
from agm_backend.models.participant import MeetingParticipant, ParticipantRole
from agm_backend.schemas import ParticipantRecord, to_record
from agm_backend.services.base import BaseService
from agm_backend.services.meeting_service import MeetingService
from agm_backend.utils.helpers import utcnow
from agm_backend.utils.validators import require_text


class ParticipantTracker(BaseService):
    """
    Records join/leave events. A participant is active while left_at is null.
    Meeting.participants_count is a cache recomputed from those rows after
    every join/leave, never adjusted in place.
    """

    def __init__(self, db: AsyncSession, meetings: Optional[MeetingService] = None):
        super().__init__(db)
        self.meetings = meetings or MeetingService(db)

    async def join(
        self,
        meeting_id: str,
        display_name: str,
        user_id: Optional[str] = None,
        email: Optional[str] = None,
        role: ParticipantRole = ParticipantRole.PARTICIPANT,
        user_agent: Optional[str] = None,
    ) -> ParticipantRecord:
        display_name = require_text(display_name, "display_name")
        try:
            role = ParticipantRole(role)
        except ValueError:
            raise ValidationError(f"Unknown participant role: {role}")

        meeting = await self.meetings.require_meeting(meeting_id)
        if meeting.status == MeetingStatus.CANCELLED:
            raise AccessDenied(DenialReason.CANCELLED)
        if meeting.status == MeetingStatus.ENDED:
            raise AccessDenied(DenialReason.ENDED)

        is_host = user_id is not None and user_id == meeting.host_id
        if is_host and role == ParticipantRole.PARTICIPANT:
            role = ParticipantRole.HOST

        now = utcnow()
        participant = MeetingParticipant(
            meeting_id=meeting_id,
            user_id=user_id,
            display_name=display_name,
            email=email,
            role=role,
            joined_at=now,
            left_at=None,
            is_anonymous=user_id is None,
            user_agent=user_agent,
        )
        async with self.store_call("join meeting"):
            if user_id is not None:
                # Rejoin: close whatever row this user left open
                await self.db.execute(
                    update(MeetingParticipant)
                    .where(
                        MeetingParticipant.meeting_id == meeting_id,
                        MeetingParticipant.user_id == user_id,
                        MeetingParticipant.left_at.is_(None),
                    )
                    .values(left_at=now, updated_at=now)
                    .execution_options(synchronize_session=False)
                )
            self.db.add(participant)
            await self.db.commit()
            await self.db.refresh(participant)
        record = to_record(ParticipantRecord, participant)

        self.logger.info(
            f"{display_name} joined meeting {meeting_id} as {role.value}"
            f"{' (anonymous)' if record.is_anonymous else ''}"
        )
        await self._refresh_count_best_effort(meeting_id)

        if is_host and meeting.status == MeetingStatus.SCHEDULED:
            try:
                await self.meetings.start_meeting(meeting_id)
            except InvalidTransition as e:
                # Cancelled or ended since the status was read; the join itself stands
                self.logger.debug(f"Host join did not start meeting {meeting_id}: {e}")

        return record

    async def leave(
        self,
        meeting_id: str,
        participant_id: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> int:
        """Close the matching open row(s); returns how many were closed (0 for a repeated leave)"""
        if participant_id:
            # A caller may only close its own row; anonymous callers only anonymous rows
            if user_id:
                owner = MeetingParticipant.user_id == user_id
            else:
                owner = MeetingParticipant.is_anonymous.is_(True)
            target = and_(MeetingParticipant.id == participant_id, owner)
        elif user_id:
            target = MeetingParticipant.user_id == user_id
        else:
            raise ValidationError("Cannot identify participant to remove")

        now = utcnow()
        async with self.store_call("leave meeting"):
            result = await self.db.execute(
                update(MeetingParticipant)
                .where(
                    MeetingParticipant.meeting_id == meeting_id,
                    MeetingParticipant.left_at.is_(None),
                    target,
                )
                .values(left_at=now, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            await self.db.commit()
            closed = result.rowcount

        if closed:
            self.logger.info(f"Closed {closed} participant row(s) in meeting {meeting_id}")
        else:
            self.logger.debug(f"Leave for meeting {meeting_id} matched no open participant")
        await self._refresh_count_best_effort(meeting_id)
        return closed

    async def list_participants(self, meeting_id: str) -> List[ParticipantRecord]:
        """All join rows, earliest first"""
        async with self.store_call("list participants"):
            result = await self.db.execute(
                select(MeetingParticipant)
                .where(MeetingParticipant.meeting_id == meeting_id)
                .order_by(MeetingParticipant.joined_at.asc())
                .execution_options(populate_existing=True)
            )
            rows = result.scalars().all()
        return [to_record(ParticipantRecord, p) for p in rows]

    async def active_participants(self, meeting_id: str) -> List[ParticipantRecord]:
        return [p for p in await self.list_participants(meeting_id) if p.is_active]

    @staticmethod
    def compute_duration(participant: ParticipantRecord, now: Optional[datetime] = None) -> int:
        """Whole minutes between join and leave (or now while still connected)"""
        end = participant.left_at or now or utcnow()
        minutes = int((end - participant.joined_at).total_seconds() // 60)
        return max(minutes, 0)

    async def refresh_participant_count(self, meeting_id: str) -> int:
        async with self.store_call("refresh participant count"):
            result = await self.db.execute(
                select(func.count(MeetingParticipant.id)).where(
                    MeetingParticipant.meeting_id == meeting_id,
                    MeetingParticipant.left_at.is_(None),
                )
            )
            count = result.scalar_one()
            await self.db.execute(
                update(Meeting)
                .where(Meeting.id == meeting_id)
                .values(participants_count=count)
                .execution_options(synchronize_session=False)
            )
            await self.db.commit()
        return count

    async def _refresh_count_best_effort(self, meeting_id: str) -> None:
        try:
            await self.refresh_participant_count(meeting_id)
        except DependencyError as e:
            self.logger.warning(f"Participant count for meeting {meeting_id} not refreshed: {e}")
