"""
Meeting management endpoints: lifecycle, participants and conferencing events
"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from agm_backend.api.auth import CurrentUser, get_current_user, get_optional_user
from agm_backend.api.dependencies import (
    get_event_handler,
    get_meeting_service,
    get_participant_tracker,
    require_manager,
    require_viewer,
)
from agm_backend.exceptions import AccessDenied, DenialReason, NotAuthorized, NotFound
from agm_backend.models.participant import ParticipantRole
from agm_backend.schemas import MeetingRecord, ParticipantRecord
from agm_backend.services.conference import (
    ConferenceConfig,
    ConferenceEvent,
    ConferenceEventHandler,
    EventOutcome,
    ParticipantJoinedEvent,
    build_conference_config,
)
from agm_backend.services.meeting_service import MeetingService
from agm_backend.services.participant_tracker import ParticipantTracker

router = APIRouter()


# --- Pydantic Schemas ---

class MeetingCreate(BaseModel):
    agm_id: int
    building_id: str
    title: str
    description: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    max_participants: Optional[int] = None
    recording_enabled: Optional[bool] = None


class MeetingUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    max_participants: Optional[int] = None
    recording_enabled: Optional[bool] = None
    recording_url: Optional[str] = None


class ParticipantResponse(BaseModel):
    id: str
    meeting_id: str
    user_id: Optional[str]
    display_name: str
    email: Optional[str]
    role: ParticipantRole
    joined_at: datetime
    left_at: Optional[datetime]
    is_anonymous: bool
    is_active: bool
    duration_minutes: int


class JoinRequest(BaseModel):
    display_name: Optional[str] = None
    email: Optional[str] = None
    user_agent: Optional[str] = None


class LeaveRequest(BaseModel):
    participant_id: Optional[str] = None


class JoinResponse(BaseModel):
    participant: ParticipantResponse
    conference: ConferenceConfig


class LeaveResponse(BaseModel):
    closed: int


# --- Helpers ---

def build_participant_response(p: ParticipantRecord) -> ParticipantResponse:
    return ParticipantResponse(
        id=p.id,
        meeting_id=p.meeting_id,
        user_id=p.user_id,
        display_name=p.display_name,
        email=p.email,
        role=p.role,
        joined_at=p.joined_at,
        left_at=p.left_at,
        is_anonymous=p.is_anonymous,
        is_active=p.is_active,
        duration_minutes=ParticipantTracker.compute_duration(p),
    )


async def _managed_meeting(meetings: MeetingService, meeting_id: str, user: CurrentUser) -> MeetingRecord:
    meeting = await meetings.require_meeting(meeting_id)
    await require_manager(meetings, meeting, user)
    return meeting


async def _visible_meeting(meetings: MeetingService, meeting_id: str, user: CurrentUser) -> MeetingRecord:
    meeting = await meetings.require_meeting(meeting_id)
    await require_viewer(meetings, meeting, user)
    return meeting


# --- Endpoints ---

@router.post("/", response_model=MeetingRecord)
async def create_meeting(
    meeting_data: MeetingCreate,
    meetings: MeetingService = Depends(get_meeting_service),
    current_user: CurrentUser = Depends(get_current_user)
):
    """Create a scheduled AGM meeting (building directors only)"""
    if not await meetings.can_host(meeting_data.building_id, current_user.id):
        raise NotAuthorized("Only building directors can host AGM meetings.")

    return await meetings.create_meeting(
        agm_id=meeting_data.agm_id,
        building_id=meeting_data.building_id,
        host_id=current_user.id,
        title=meeting_data.title,
        description=meeting_data.description,
        scheduled_start=meeting_data.start_time,
        scheduled_end=meeting_data.end_time,
        max_participants=meeting_data.max_participants,
        recording_enabled=meeting_data.recording_enabled,
    )


@router.get("/", response_model=List[MeetingRecord])
async def list_meetings(
    building_id: str,
    meetings: MeetingService = Depends(get_meeting_service),
    current_user: CurrentUser = Depends(get_current_user)
):
    """List a building's meetings, newest first"""
    if not await meetings.membership.is_member(building_id, current_user.id):
        raise AccessDenied(DenialReason.NOT_A_MEMBER)
    return await meetings.get_meetings_for_building(building_id)


@router.get("/by-agm", response_model=MeetingRecord)
async def get_meeting_by_agm(
    agm_id: int,
    building_id: str,
    meetings: MeetingService = Depends(get_meeting_service),
    current_user: CurrentUser = Depends(get_current_user)
):
    """Latest meeting attached to an AGM"""
    if not await meetings.membership.is_member(building_id, current_user.id):
        raise AccessDenied(DenialReason.NOT_A_MEMBER)
    meeting = await meetings.get_meeting_by_agm(agm_id, building_id)
    if meeting is None:
        raise NotFound("Meeting", f"agm {agm_id}")
    return meeting


@router.get("/{meeting_id}", response_model=MeetingRecord)
async def get_meeting(
    meeting_id: str,
    meetings: MeetingService = Depends(get_meeting_service),
    current_user: CurrentUser = Depends(get_current_user)
):
    return await _visible_meeting(meetings, meeting_id, current_user)


@router.patch("/{meeting_id}", response_model=MeetingRecord)
async def update_meeting(
    meeting_id: str,
    updates: MeetingUpdate,
    meetings: MeetingService = Depends(get_meeting_service),
    current_user: CurrentUser = Depends(get_current_user)
):
    """Edit title, description, schedule or capacity"""
    await _managed_meeting(meetings, meeting_id, current_user)
    return await meetings.update_meeting(meeting_id, updates.model_dump(exclude_unset=True))


@router.post("/{meeting_id}/start", response_model=MeetingRecord)
async def start_meeting(
    meeting_id: str,
    meetings: MeetingService = Depends(get_meeting_service),
    current_user: CurrentUser = Depends(get_current_user)
):
    await _managed_meeting(meetings, meeting_id, current_user)
    return await meetings.start_meeting(meeting_id)


@router.post("/{meeting_id}/end", response_model=MeetingRecord)
async def end_meeting(
    meeting_id: str,
    meetings: MeetingService = Depends(get_meeting_service),
    current_user: CurrentUser = Depends(get_current_user)
):
    await _managed_meeting(meetings, meeting_id, current_user)
    return await meetings.end_meeting(meeting_id)


@router.post("/{meeting_id}/cancel", response_model=MeetingRecord)
async def cancel_meeting(
    meeting_id: str,
    meetings: MeetingService = Depends(get_meeting_service),
    current_user: CurrentUser = Depends(get_current_user)
):
    await _managed_meeting(meetings, meeting_id, current_user)
    return await meetings.cancel_meeting(meeting_id)


@router.get("/{meeting_id}/participants", response_model=List[ParticipantResponse])
async def list_participants(
    meeting_id: str,
    active_only: bool = False,
    tracker: ParticipantTracker = Depends(get_participant_tracker),
    current_user: CurrentUser = Depends(get_current_user)
):
    """Join rows in join order; active means left_at is null"""
    await _visible_meeting(tracker.meetings, meeting_id, current_user)
    if active_only:
        participants = await tracker.active_participants(meeting_id)
    else:
        participants = await tracker.list_participants(meeting_id)
    return [build_participant_response(p) for p in participants]


@router.post("/{meeting_id}/join", response_model=JoinResponse)
async def join_meeting(
    meeting_id: str,
    request: JoinRequest,
    tracker: ParticipantTracker = Depends(get_participant_tracker),
    current_user: CurrentUser = Depends(get_current_user)
):
    """Authenticated join by a building member or the host"""
    meeting = await _visible_meeting(tracker.meetings, meeting_id, current_user)
    display_name = request.display_name or current_user.display_name
    email = request.email or current_user.email

    participant = await tracker.join(
        meeting_id,
        display_name,
        user_id=current_user.id,
        email=email,
        user_agent=request.user_agent,
    )
    return JoinResponse(
        participant=build_participant_response(participant),
        conference=build_conference_config(meeting, display_name, email, current_user.id),
    )


@router.post("/{meeting_id}/leave", response_model=LeaveResponse)
async def leave_meeting(
    meeting_id: str,
    request: LeaveRequest,
    tracker: ParticipantTracker = Depends(get_participant_tracker),
    current_user: Optional[CurrentUser] = Depends(get_optional_user)
):
    """Close the caller's open row; anonymous guests identify themselves by participant id"""
    closed = await tracker.leave(
        meeting_id,
        participant_id=request.participant_id,
        user_id=current_user.id if current_user else None,
    )
    return LeaveResponse(closed=closed)


@router.get("/{meeting_id}/conference-config", response_model=ConferenceConfig)
async def get_conference_config(
    meeting_id: str,
    display_name: Optional[str] = None,
    meetings: MeetingService = Depends(get_meeting_service),
    current_user: CurrentUser = Depends(get_current_user)
):
    meeting = await _visible_meeting(meetings, meeting_id, current_user)
    return build_conference_config(
        meeting,
        display_name or current_user.display_name,
        current_user.email,
        current_user.id,
    )


@router.post("/{meeting_id}/events", response_model=EventOutcome)
async def conference_event(
    meeting_id: str,
    event: ConferenceEvent,
    handler: ConferenceEventHandler = Depends(get_event_handler),
    current_user: Optional[CurrentUser] = Depends(get_optional_user)
):
    """Callbacks fired by the embedded conferencing client"""
    if isinstance(event, ParticipantJoinedEvent):
        # Anonymous presence is only recorded through a validated link
        if current_user is None:
            raise HTTPException(status_code=401, detail="Authentication required to join directly")
        await _visible_meeting(handler.meetings, meeting_id, current_user)

    return await handler.handle(meeting_id, event, user_id=current_user.id if current_user else None)
