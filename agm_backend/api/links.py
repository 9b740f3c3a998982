"""
Access link management endpoints
"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from agm_backend.api.auth import CurrentUser, get_current_user
from agm_backend.api.dependencies import get_link_service, require_manager
from agm_backend.exceptions import NotFound
from agm_backend.schemas import LinkRecord
from agm_backend.services.link_service import LinkService, link_denial

router = APIRouter()


class LinkCreate(BaseModel):
    expires_at: Optional[datetime] = None
    max_uses: Optional[int] = None


class LinkResponse(LinkRecord):
    usable: bool = True


def build_link_response(link: LinkRecord) -> LinkResponse:
    return LinkResponse(**link.model_dump(), usable=link_denial(link) is None)


async def _require_link_manager(links: LinkService, meeting_id: str, user: CurrentUser) -> None:
    meeting = await links.meetings.require_meeting(meeting_id)
    await require_manager(links.meetings, meeting, user)


@router.post("/meetings/{meeting_id}/links", response_model=LinkResponse)
async def generate_link(
    meeting_id: str,
    link_data: LinkCreate,
    links: LinkService = Depends(get_link_service),
    current_user: CurrentUser = Depends(get_current_user)
):
    """Mint a new access link, optionally with an expiry and a usage quota"""
    await _require_link_manager(links, meeting_id, current_user)
    link = await links.generate_link(meeting_id, expires_at=link_data.expires_at, max_uses=link_data.max_uses)
    return build_link_response(link)


@router.get("/meetings/{meeting_id}/links", response_model=List[LinkResponse])
async def list_links(
    meeting_id: str,
    links: LinkService = Depends(get_link_service),
    current_user: CurrentUser = Depends(get_current_user)
):
    await _require_link_manager(links, meeting_id, current_user)
    return [build_link_response(link) for link in await links.get_links_for_meeting(meeting_id)]


@router.post("/meetings/{meeting_id}/links/homeowner", response_model=LinkResponse)
async def homeowner_link(
    meeting_id: str,
    links: LinkService = Depends(get_link_service),
    current_user: CurrentUser = Depends(get_current_user)
):
    """Shareable link for homeowners; reuses a still-valid link when one exists"""
    await _require_link_manager(links, meeting_id, current_user)
    return build_link_response(await links.generate_homeowner_link(meeting_id))


@router.post("/links/{link_id}/deactivate", response_model=LinkResponse)
async def deactivate_link(
    link_id: str,
    links: LinkService = Depends(get_link_service),
    current_user: CurrentUser = Depends(get_current_user)
):
    link = await links.get_link(link_id)
    if link is None:
        raise NotFound("Link", link_id)
    await _require_link_manager(links, link.meeting_id, current_user)
    return build_link_response(await links.deactivate_link(link_id))
