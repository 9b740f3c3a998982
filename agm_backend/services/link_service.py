"""
Secure access links for AGM meetings.

A link token is a bearer capability: whoever holds the URL and passes
validation may enter the room. Expiry, usage quota and meeting status are all
checked at the moment of use rather than swept in the background.
"""
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from agm_backend.exceptions import (
    DENIAL_MESSAGES,
    AccessDenied,
    DenialReason,
    DependencyError,
    NotFound,
)
from agm_backend.models.link import MeetingLink
from agm_backend.models.meeting import MeetingStatus
from agm_backend.schemas import LinkRecord, MeetingRecord, to_record
from agm_backend.services.base import BaseService
from agm_backend.services.meeting_service import MeetingService
from agm_backend.services.membership import MembershipService
from agm_backend.utils.helpers import to_naive_utc, utcnow
from agm_backend.utils.validators import validate_max_uses

TOKEN_BYTES = 32


@dataclass
class AccessResult:
    """Outcome of resolving or validating a link token"""
    valid: bool
    meeting: Optional[MeetingRecord] = None
    link: Optional[LinkRecord] = None
    reason: Optional[DenialReason] = None

    @classmethod
    def granted(cls, meeting: MeetingRecord, link: LinkRecord) -> "AccessResult":
        return cls(valid=True, meeting=meeting, link=link)

    @classmethod
    def denied(cls, reason: DenialReason, meeting: MeetingRecord = None, link: LinkRecord = None) -> "AccessResult":
        return cls(valid=False, meeting=meeting, link=link, reason=reason)

    @property
    def message(self) -> Optional[str]:
        return DENIAL_MESSAGES[self.reason] if self.reason else None

    def raise_for_denial(self) -> "AccessResult":
        if not self.valid:
            raise AccessDenied(self.reason)
        return self


def link_denial(link: LinkRecord, now: Optional[datetime] = None) -> Optional[DenialReason]:
    """Link-level usability; expiry wins over an exhausted quota"""
    now = now or utcnow()
    if not link.is_active:
        return DenialReason.NOT_FOUND
    if link.expires_at is not None and now >= link.expires_at:
        return DenialReason.EXPIRED
    if link.max_uses is not None and link.current_uses >= link.max_uses:
        return DenialReason.EXHAUSTED
    return None


class LinkService(BaseService):

    def __init__(
        self,
        db: AsyncSession,
        meetings: Optional[MeetingService] = None,
        membership: Optional[MembershipService] = None,
    ):
        super().__init__(db)
        self.membership = membership or MembershipService(db)
        self.meetings = meetings or MeetingService(db, membership=self.membership)

    @staticmethod
    def new_token() -> str:
        return secrets.token_urlsafe(TOKEN_BYTES)

    def build_access_url(self, token: str) -> str:
        return f"{self.settings.PUBLIC_BASE_URL.rstrip('/')}/agm/join/{token}"

    # --- Minting ---

    async def generate_link(
        self,
        meeting_id: str,
        expires_at: Optional[datetime] = None,
        max_uses: Optional[int] = None,
    ) -> LinkRecord:
        max_uses = validate_max_uses(max_uses)
        await self.meetings.require_meeting(meeting_id)

        token = self.new_token()
        link = MeetingLink(
            meeting_id=meeting_id,
            link_token=token,
            access_url=self.build_access_url(token),
            expires_at=to_naive_utc(expires_at),
            max_uses=max_uses,
            current_uses=0,
            is_active=True,
        )
        async with self.store_call("generate link"):
            self.db.add(link)
            await self.db.commit()
            await self.db.refresh(link)

        self.logger.info(
            f"Generated link {link.id} for meeting {meeting_id} "
            f"(expires_at={link.expires_at}, max_uses={link.max_uses})"
        )
        return to_record(LinkRecord, link)

    async def generate_homeowner_link(self, meeting_id: str, now: Optional[datetime] = None) -> LinkRecord:
        """Reuse a still-usable link for the meeting, otherwise mint one valid until a day after the start"""
        now = now or utcnow()
        for link in await self.get_links_for_meeting(meeting_id):
            if link_denial(link, now) is None:
                return link

        meeting = await self.meetings.require_meeting(meeting_id)
        expires_at = (meeting.start_time or now) + timedelta(hours=self.settings.HOMEOWNER_LINK_TTL_HOURS)
        return await self.generate_link(meeting_id, expires_at=expires_at)

    # --- Lookups ---

    async def get_link(self, link_id: str) -> Optional[LinkRecord]:
        async with self.store_call("get link"):
            result = await self.db.execute(
                select(MeetingLink)
                .where(MeetingLink.id == link_id)
                .execution_options(populate_existing=True)
            )
            link = result.scalar_one_or_none()
        return to_record(LinkRecord, link) if link else None

    async def get_links_for_meeting(self, meeting_id: str) -> List[LinkRecord]:
        """Newest first"""
        async with self.store_call("list links"):
            result = await self.db.execute(
                select(MeetingLink)
                .where(MeetingLink.meeting_id == meeting_id)
                .order_by(MeetingLink.created_at.desc())
                .execution_options(populate_existing=True)
            )
            links = result.scalars().all()
        return [to_record(LinkRecord, link) for link in links]

    # --- Validation ---

    async def resolve_token(self, token: str, now: Optional[datetime] = None) -> AccessResult:
        """Find the link and its meeting, re-checking expiry and quota at the time of the call"""
        if not token:
            return AccessResult.denied(DenialReason.NOT_FOUND)

        async with self.store_call("resolve token"):
            result = await self.db.execute(
                select(MeetingLink)
                .where(MeetingLink.link_token == token)
                .execution_options(populate_existing=True)
            )
            row = result.scalar_one_or_none()
        if row is None:
            return AccessResult.denied(DenialReason.NOT_FOUND)

        link = to_record(LinkRecord, row)
        reason = link_denial(link, now)
        if reason == DenialReason.NOT_FOUND:
            return AccessResult.denied(reason)

        meeting = await self.meetings.get_meeting(link.meeting_id)
        if meeting is None:
            return AccessResult.denied(DenialReason.NOT_FOUND)
        if reason is not None:
            return AccessResult.denied(reason, meeting=meeting, link=link)
        return AccessResult.granted(meeting, link)

    async def validate_access(
        self,
        token: str,
        user_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> AccessResult:
        """resolve_token plus meeting status and building membership"""
        resolved = await self.resolve_token(token, now)
        if not resolved.valid:
            return resolved

        meeting, link = resolved.meeting, resolved.link
        if meeting.status == MeetingStatus.CANCELLED:
            return AccessResult.denied(DenialReason.CANCELLED, meeting=meeting, link=link)
        if meeting.status == MeetingStatus.ENDED:
            return AccessResult.denied(DenialReason.ENDED, meeting=meeting, link=link)

        # A failed lookup raises DependencyError rather than letting the caller in
        if user_id and not await self.membership.is_member(meeting.building_id, user_id):
            return AccessResult.denied(DenialReason.NOT_A_MEMBER, meeting=meeting, link=link)

        return resolved

    # --- Mutations ---

    async def increment_usage(self, link_id: str, now: Optional[datetime] = None) -> LinkRecord:
        """Count one successful join; refuses to push a link past its quota or expiry"""
        now = now or utcnow()
        try:
            result = await self.db.execute(
                update(MeetingLink)
                .where(
                    MeetingLink.id == link_id,
                    MeetingLink.is_active.is_(True),
                    or_(MeetingLink.max_uses.is_(None), MeetingLink.current_uses < MeetingLink.max_uses),
                    or_(MeetingLink.expires_at.is_(None), MeetingLink.expires_at > now),
                )
                .values(current_uses=MeetingLink.current_uses + 1, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            self.logger.error(f"Failed to increment usage for link {link_id}: {e}")
            raise DependencyError("Failed to increment link usage", operation="increment_usage") from e

        link = await self.get_link(link_id)
        if link is None:
            raise NotFound("Link", link_id)
        if result.rowcount != 1:
            raise AccessDenied(link_denial(link, now) or DenialReason.EXHAUSTED)
        return link

    async def deactivate_link(self, link_id: str) -> LinkRecord:
        """Irreversible revocation; a replacement must be minted"""
        async with self.store_call("deactivate link"):
            await self.db.execute(
                update(MeetingLink)
                .where(MeetingLink.id == link_id)
                .values(is_active=False, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            await self.db.commit()

        link = await self.get_link(link_id)
        if link is None:
            raise NotFound("Link", link_id)
        self.logger.info(f"Deactivated link {link_id} for meeting {link.meeting_id}")
        return link
