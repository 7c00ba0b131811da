"""Sidebar grouping of sessions by how recently they were updated."""
from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional, Sequence

from src.chatstore.models.chat import ChatSession
from src.chatstore.utils.time_utils import ensure_aware, utc_now


def format_relative_day(moment: datetime, now: Optional[datetime] = None) -> str:
    """
    Describe how many whole days ago ``moment`` was.

    Examples: 'Today', 'Yesterday', '3 days ago', '2 weeks ago', 'Oct 5, 2026'
    """
    moment = ensure_aware(moment)
    now = ensure_aware(now) if now else utc_now()
    days = (now - moment).days

    if days <= 0:
        return "Today"
    if days == 1:
        return "Yesterday"
    if days < 7:
        return f"{days} days ago"
    if days < 30:
        weeks = days // 7
        return f"{weeks} week{'s' if weeks != 1 else ''} ago"
    # Use day without leading zero in a cross-platform way
    return moment.strftime("%b %d, %Y").replace(" 0", " ")


def group_sessions_by_date(
    sessions: Sequence[ChatSession],
    now: Optional[datetime] = None,
) -> Dict[str, List[ChatSession]]:
    """
    Bucket sessions under their relative-day label.

    Groups appear in the order their first session appears, and sessions keep
    the store order inside each group.
    """
    reference = now or utc_now()
    groups: Dict[str, List[ChatSession]] = {}
    for session in sessions:
        label = format_relative_day(session.updated_at, reference)
        groups.setdefault(label, []).append(session)
    return groups
