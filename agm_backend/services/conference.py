"""
Conferencing client contract.

The browser embeds the Jitsi Meet External API; this module supplies its
configuration and turns the callbacks it fires into explicit event types that
are routed into the participant tracker and lifecycle manager.
"""
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from agm_backend.config import get_settings
from agm_backend.models.meeting import MeetingStatus
from agm_backend.schemas import MeetingRecord, ParticipantRecord
from agm_backend.services.meeting_service import MeetingService
from agm_backend.services.participant_tracker import ParticipantTracker
from agm_backend.utils.logger import get_logger

logger = get_logger(__name__)

BASE_TOOLBAR_BUTTONS = [
    "microphone", "camera", "desktop", "fullscreen",
    "fodeviceselection", "hangup", "chat", "settings", "raisehand",
    "videoquality", "filmstrip", "invite", "tileview",
]
HOST_TOOLBAR_BUTTONS = ["recording", "mute-everyone"]


class ConferenceConfig(BaseModel):
    """What the embedded client needs to open the room"""
    domain: str
    room_name: str
    display_name: str
    email: Optional[str] = None
    is_moderator: bool
    max_participants: int
    recording_enabled: bool
    start_with_audio_muted: bool = True
    start_with_video_muted: bool = False
    disable_remote_mute: bool
    toolbar_buttons: List[str]


def build_conference_config(
    meeting: MeetingRecord,
    display_name: str,
    email: Optional[str] = None,
    user_id: Optional[str] = None,
) -> ConferenceConfig:
    is_moderator = user_id is not None and user_id == meeting.host_id
    buttons = list(BASE_TOOLBAR_BUTTONS)
    if is_moderator:
        buttons += HOST_TOOLBAR_BUTTONS
        if not meeting.recording_enabled:
            buttons.remove("recording")

    return ConferenceConfig(
        domain=get_settings().JITSI_DOMAIN,
        room_name=meeting.room_name,
        display_name=display_name,
        email=email,
        is_moderator=is_moderator,
        max_participants=meeting.max_participants,
        recording_enabled=meeting.recording_enabled,
        disable_remote_mute=not is_moderator,
        toolbar_buttons=buttons,
    )


# --- Inbound events ---

class ParticipantJoinedEvent(BaseModel):
    type: Literal["participantJoined"]
    display_name: str
    email: Optional[str] = None
    user_agent: Optional[str] = None


class ParticipantLeftEvent(BaseModel):
    type: Literal["participantLeft"]
    participant_id: Optional[str] = None


class ErrorOccurredEvent(BaseModel):
    type: Literal["errorOccurred"]
    error: str
    details: Optional[dict] = None


class ReadyToCloseEvent(BaseModel):
    type: Literal["readyToClose"]
    participant_id: Optional[str] = None


ConferenceEvent = Annotated[
    Union[ParticipantJoinedEvent, ParticipantLeftEvent, ErrorOccurredEvent, ReadyToCloseEvent],
    Field(discriminator="type"),
]


class EventOutcome(BaseModel):
    event: str
    participant: Optional[ParticipantRecord] = None
    closed: int = 0
    meeting_status: Optional[MeetingStatus] = None


class ConferenceEventHandler:
    """Routes conferencing-client callbacks into join/leave/end"""

    def __init__(
        self,
        db: AsyncSession,
        meetings: Optional[MeetingService] = None,
        tracker: Optional[ParticipantTracker] = None,
    ):
        self.meetings = meetings or MeetingService(db)
        self.tracker = tracker or ParticipantTracker(db, meetings=self.meetings)

    async def handle(
        self,
        meeting_id: str,
        event: ConferenceEvent,
        user_id: Optional[str] = None,
    ) -> EventOutcome:
        if isinstance(event, ParticipantJoinedEvent):
            participant = await self.tracker.join(
                meeting_id,
                event.display_name,
                user_id=user_id,
                email=event.email,
                user_agent=event.user_agent,
            )
            return await self._outcome(event, meeting_id, participant=participant)

        if isinstance(event, ParticipantLeftEvent):
            closed = await self.tracker.leave(meeting_id, participant_id=event.participant_id, user_id=user_id)
            return await self._outcome(event, meeting_id, closed=closed)

        if isinstance(event, ErrorOccurredEvent):
            logger.warning(f"Conferencing client error in meeting {meeting_id}: {event.error} {event.details or ''}")
            return await self._outcome(event, meeting_id)

        if isinstance(event, ReadyToCloseEvent):
            closed = 0
            if event.participant_id or user_id:
                closed = await self.tracker.leave(meeting_id, participant_id=event.participant_id, user_id=user_id)
            meeting = await self.meetings.require_meeting(meeting_id)
            if user_id is not None and user_id == meeting.host_id and meeting.status in (
                MeetingStatus.ACTIVE, MeetingStatus.ENDED
            ):
                await self.meetings.end_meeting(meeting_id)
            return await self._outcome(event, meeting_id, closed=closed)

        raise TypeError(f"Unhandled conference event: {event!r}")

    async def _outcome(self, event, meeting_id: str, **fields) -> EventOutcome:
        meeting = await self.meetings.get_meeting(meeting_id)
        return EventOutcome(
            event=event.type,
            meeting_status=meeting.status if meeting else None,
            **fields,
        )
