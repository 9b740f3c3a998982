"""
Link resolution and link-mediated join.

GET  /api/join/{token}  - meeting details, or the specific reason entry is refused
POST /api/join/{token}  - validate, count the use, then record presence
"""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from agm_backend.api.auth import CurrentUser, get_optional_user
from agm_backend.api.dependencies import get_link_service, get_participant_tracker
from agm_backend.api.meetings import ParticipantResponse, build_participant_response
from agm_backend.models.meeting import MeetingStatus
from agm_backend.services.conference import ConferenceConfig, build_conference_config
from agm_backend.services.link_service import LinkService
from agm_backend.services.participant_tracker import ParticipantTracker
from agm_backend.utils.logger import get_logger
from agm_backend.utils.validators import require_text

router = APIRouter()
logger = get_logger(__name__)


class LinkedMeeting(BaseModel):
    meeting_id: str
    title: str
    description: Optional[str]
    status: MeetingStatus
    start_time: Optional[datetime]
    end_time: Optional[datetime]
    link_expires_at: Optional[datetime]
    uses_remaining: Optional[int]


class LinkJoinRequest(BaseModel):
    display_name: Optional[str] = None
    email: Optional[str] = None
    user_agent: Optional[str] = None


class LinkJoinResponse(BaseModel):
    meeting: LinkedMeeting
    participant: ParticipantResponse
    conference: ConferenceConfig


def _describe(meeting, link) -> LinkedMeeting:
    remaining = None
    if link.max_uses is not None:
        remaining = max(link.max_uses - link.current_uses, 0)
    return LinkedMeeting(
        meeting_id=meeting.id,
        title=meeting.title,
        description=meeting.description,
        status=meeting.status,
        start_time=meeting.start_time,
        end_time=meeting.end_time,
        link_expires_at=link.expires_at,
        uses_remaining=remaining,
    )


@router.get("/join/{token}", response_model=LinkedMeeting)
async def resolve_link(
    token: str,
    links: LinkService = Depends(get_link_service),
    current_user: Optional[CurrentUser] = Depends(get_optional_user)
):
    result = await links.validate_access(token, current_user.id if current_user else None)
    result.raise_for_denial()
    return _describe(result.meeting, result.link)


@router.post("/join/{token}", response_model=LinkJoinResponse)
async def join_via_link(
    token: str,
    request: LinkJoinRequest,
    links: LinkService = Depends(get_link_service),
    tracker: ParticipantTracker = Depends(get_participant_tracker),
    current_user: Optional[CurrentUser] = Depends(get_optional_user)
):
    user_id = current_user.id if current_user else None
    display_name = require_text(
        request.display_name or (current_user.display_name if current_user else None),
        "display_name",
    )
    email = request.email or (current_user.email if current_user else None)

    result = (await links.validate_access(token, user_id)).raise_for_denial()

    # Usage is counted before presence is recorded
    link = await links.increment_usage(result.link.id)

    participant = await tracker.join(
        result.meeting.id,
        display_name,
        user_id=user_id,
        email=email,
        user_agent=request.user_agent,
    )
    logger.info(f"Link {link.id} used to join meeting {result.meeting.id} ({link.current_uses} use(s))")

    return LinkJoinResponse(
        meeting=_describe(result.meeting, link),
        participant=build_participant_response(participant),
        conference=build_conference_config(result.meeting, participant.display_name, email, user_id),
    )
