"""
General helper utilities
"""
import hashlib
import re
from datetime import datetime, timezone
from typing import Optional

_NON_ALNUM = re.compile(r"[^a-z0-9]")


def utcnow() -> datetime:
    """Current time as naive UTC, the form every timestamp column stores"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize an aware datetime to naive UTC; naive values are assumed UTC already"""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def clean_slug(text: str, max_length: int) -> str:
    """Lower-case, drop everything outside [a-z0-9], truncate"""
    return _NON_ALNUM.sub("", (text or "").lower())[:max_length]


def short_hash(text: str, length: int = 8) -> str:
    return hashlib.sha1(text.encode("utf-8")).hexdigest()[:length]


def epoch_millis(moment: Optional[datetime] = None) -> int:
    moment = moment or datetime.now(timezone.utc)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return int(moment.timestamp() * 1000)
