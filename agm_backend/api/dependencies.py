"""
Request-scoped service wiring and permission gates
"""
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from agm_backend.api.auth import CurrentUser
from agm_backend.database import get_db
from agm_backend.exceptions import AccessDenied, DenialReason, NotAuthorized
from agm_backend.schemas import MeetingRecord
from agm_backend.services.conference import ConferenceEventHandler
from agm_backend.services.link_service import LinkService
from agm_backend.services.meeting_service import MeetingService
from agm_backend.services.participant_tracker import ParticipantTracker


def get_meeting_service(db: AsyncSession = Depends(get_db)) -> MeetingService:
    return MeetingService(db)


def get_link_service(meetings: MeetingService = Depends(get_meeting_service)) -> LinkService:
    return LinkService(meetings.db, meetings=meetings, membership=meetings.membership)


def get_participant_tracker(meetings: MeetingService = Depends(get_meeting_service)) -> ParticipantTracker:
    return ParticipantTracker(meetings.db, meetings=meetings)


def get_event_handler(tracker: ParticipantTracker = Depends(get_participant_tracker)) -> ConferenceEventHandler:
    return ConferenceEventHandler(tracker.db, meetings=tracker.meetings, tracker=tracker)


async def require_manager(meetings: MeetingService, meeting: MeetingRecord, user: CurrentUser) -> None:
    """Host or building director"""
    if not await meetings.can_manage(meeting, user.id):
        raise NotAuthorized()


async def require_viewer(meetings: MeetingService, meeting: MeetingRecord, user: CurrentUser) -> None:
    """Host or any member of the meeting's building"""
    if not await meetings.can_view(meeting, user.id):
        raise AccessDenied(DenialReason.NOT_A_MEMBER)
