"""
Secure link tests - minting, lazy validation and usage counting.
"""
from datetime import datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from agm_backend.exceptions import AccessDenied, DenialReason, DependencyError, NotFound, ValidationError
from agm_backend.services.link_service import AccessResult
from agm_backend.utils.helpers import utcnow


async def test_generate_link(links, meeting):
    link = await links.generate_link(meeting.id, max_uses=3)

    assert link.meeting_id == meeting.id
    assert link.is_active is True
    assert link.current_uses == 0
    assert link.max_uses == 3
    assert link.expires_at is None
    assert len(link.link_token) >= 43
    assert link.access_url == f"http://localhost:5173/agm/join/{link.link_token}"


async def test_tokens_are_unique(links, meeting):
    first = await links.generate_link(meeting.id)
    second = await links.generate_link(meeting.id)
    assert first.link_token != second.link_token


async def test_generate_link_validation(links, meeting):
    with pytest.raises(ValidationError):
        await links.generate_link(meeting.id, max_uses=0)
    with pytest.raises(NotFound):
        await links.generate_link("no-such-meeting")


async def test_links_for_meeting_newest_first(links, meeting):
    first = await links.generate_link(meeting.id)
    second = await links.generate_link(meeting.id)
    result = await links.get_links_for_meeting(meeting.id)
    assert [l.id for l in result] == [second.id, first.id]


# ===================== VALIDATION =====================


async def test_valid_link_resolves_meeting(links, meeting):
    link = await links.generate_link(meeting.id)
    result = await links.validate_access(link.link_token)

    assert result.valid is True
    assert result.meeting.id == meeting.id
    assert result.link.id == link.id
    assert result.reason is None
    assert result.message is None


async def test_unknown_token_is_not_found(links, seed_data):
    result = await links.validate_access("not-a-real-token")
    assert result.valid is False
    assert result.reason == DenialReason.NOT_FOUND
    assert result.meeting is None

    assert (await links.resolve_token("")).reason == DenialReason.NOT_FOUND


async def test_expired_even_with_uses_left(links, meeting):
    expires = utcnow() + timedelta(hours=1)
    link = await links.generate_link(meeting.id, expires_at=expires, max_uses=10)

    assert (await links.validate_access(link.link_token, now=expires - timedelta(minutes=1))).valid
    result = await links.validate_access(link.link_token, now=expires + timedelta(minutes=1))
    assert result.reason == DenialReason.EXPIRED
    assert result.meeting.id == meeting.id
    assert "expired" in result.message


async def test_expiry_reported_before_exhaustion(links, meeting):
    expires = utcnow() + timedelta(hours=1)
    link = await links.generate_link(meeting.id, expires_at=expires, max_uses=1)
    await links.increment_usage(link.id)

    assert (await links.validate_access(link.link_token)).reason == DenialReason.EXHAUSTED
    late = expires + timedelta(seconds=1)
    assert (await links.validate_access(link.link_token, now=late)).reason == DenialReason.EXPIRED


async def test_two_use_link_is_exhausted_on_third(links, meeting):
    link = await links.generate_link(meeting.id, max_uses=2)

    for expected_uses in (1, 2):
        assert (await links.validate_access(link.link_token)).valid
        updated = await links.increment_usage(link.id)
        assert updated.current_uses == expected_uses

    result = await links.validate_access(link.link_token)
    assert result.valid is False
    assert result.reason == DenialReason.EXHAUSTED


async def test_increment_past_quota_is_refused(links, meeting):
    link = await links.generate_link(meeting.id, max_uses=1)
    await links.increment_usage(link.id)

    with pytest.raises(AccessDenied) as exc:
        await links.increment_usage(link.id)
    assert exc.value.reason == DenialReason.EXHAUSTED
    assert (await links.get_link(link.id)).current_uses == 1


async def test_increment_after_expiry_is_refused(links, meeting):
    expires = utcnow() + timedelta(hours=1)
    link = await links.generate_link(meeting.id, expires_at=expires)

    with pytest.raises(AccessDenied) as exc:
        await links.increment_usage(link.id, now=expires + timedelta(minutes=5))
    assert exc.value.reason == DenialReason.EXPIRED
    assert (await links.get_link(link.id)).current_uses == 0


async def test_increment_unknown_link(links, seed_data):
    with pytest.raises(NotFound):
        await links.increment_usage("missing-link")


async def test_unlimited_link_counts_uses(links, meeting):
    link = await links.generate_link(meeting.id)
    for _ in range(3):
        link = await links.increment_usage(link.id)
    assert link.current_uses == 3
    assert (await links.validate_access(link.link_token)).valid


async def test_cancelled_meeting_denies_link(links, meetings, meeting):
    link = await links.generate_link(meeting.id)
    await meetings.cancel_meeting(meeting.id)

    result = await links.validate_access(link.link_token)
    assert result.reason == DenialReason.CANCELLED
    with pytest.raises(AccessDenied) as exc:
        result.raise_for_denial()
    assert exc.value.reason == DenialReason.CANCELLED


async def test_ended_meeting_denies_link(links, meetings, meeting):
    link = await links.generate_link(meeting.id)
    await meetings.start_meeting(meeting.id)
    await meetings.end_meeting(meeting.id)

    assert (await links.validate_access(link.link_token)).reason == DenialReason.ENDED


async def test_active_meeting_accepts_link(links, meetings, meeting):
    link = await links.generate_link(meeting.id)
    await meetings.start_meeting(meeting.id)
    assert (await links.validate_access(link.link_token)).valid


async def test_membership_checked_for_identified_users(links, meeting, seed_data):
    link = await links.generate_link(meeting.id)

    assert (await links.validate_access(link.link_token, user_id=seed_data["owner_id"])).valid
    assert (await links.validate_access(link.link_token, user_id=None)).valid

    result = await links.validate_access(link.link_token, user_id=seed_data["outsider_id"])
    assert result.reason == DenialReason.NOT_A_MEMBER


async def test_membership_failure_is_not_a_denial(links, meeting, seed_data):
    link = await links.generate_link(meeting.id)
    links.membership.is_member = AsyncMock(side_effect=DependencyError("membership store down"))

    with pytest.raises(DependencyError):
        await links.validate_access(link.link_token, user_id=seed_data["owner_id"])


async def test_deactivated_link_is_not_found(links, meeting):
    link = await links.generate_link(meeting.id)
    revoked = await links.deactivate_link(link.id)
    assert revoked.is_active is False

    result = await links.validate_access(link.link_token)
    assert result.reason == DenialReason.NOT_FOUND
    assert result.meeting is None

    with pytest.raises(AccessDenied) as exc:
        await links.increment_usage(link.id)
    assert exc.value.reason == DenialReason.NOT_FOUND


async def test_deactivate_unknown_link(links, seed_data):
    with pytest.raises(NotFound):
        await links.deactivate_link("missing-link")


def test_access_result_helpers():
    granted = AccessResult(valid=True)
    assert granted.raise_for_denial() is granted

    denied = AccessResult.denied(DenialReason.NOT_A_MEMBER)
    assert denied.message.startswith("You do not have access")


# ===================== HOMEOWNER LINKS =====================


async def test_homeowner_link_is_reused(links, meeting):
    first = await links.generate_homeowner_link(meeting.id)
    second = await links.generate_homeowner_link(meeting.id)

    assert second.id == first.id
    assert second.access_url == first.access_url
    assert len(await links.get_links_for_meeting(meeting.id)) == 1


async def test_homeowner_link_expires_day_after_start(links, meetings, meeting):
    start = datetime(2026, 11, 20, 19, 0)
    await meetings.update_meeting(meeting.id, {"start_time": start})

    link = await links.generate_homeowner_link(meeting.id, now=datetime(2026, 11, 1, 9, 0))
    assert link.expires_at == start + timedelta(hours=24)
    assert link.max_uses is None


async def test_homeowner_link_without_start_uses_now(links, meeting):
    now = utcnow()
    link = await links.generate_homeowner_link(meeting.id, now=now)
    assert link.expires_at == now + timedelta(hours=24)


async def test_homeowner_link_replaced_once_unusable(links, meeting):
    first = await links.generate_homeowner_link(meeting.id)
    await links.deactivate_link(first.id)

    second = await links.generate_homeowner_link(meeting.id)
    assert second.id != first.id
    assert second.access_url != first.access_url


def test_denial_reasons_are_closed_set():
    assert {r.value for r in DenialReason} == {
        "expired", "exhausted", "cancelled", "ended", "not-a-member", "not-found",
    }
