"""Formatting helpers for quests and commits."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from questsync.models import Commit, Quest


def format_time_left(expires_at: datetime, now: datetime) -> str:
    """
    Format the time remaining until ``expires_at``.

    Args:
        expires_at: Expiry time.
        now: Current time.

    Returns:
        "Expired", or the largest two units: "2d 3h left", "5h 10m left",
        "42m left".

    Examples:
        >>> from datetime import timedelta
        >>> t = datetime(2026, 1, 1)
        >>> format_time_left(t + timedelta(days=2, hours=3), t)
        '2d 3h left'
        >>> format_time_left(t, t)
        'Expired'
    """
    remaining = int((expires_at - now).total_seconds())
    if remaining <= 0:
        return "Expired"

    days, remainder = divmod(remaining, 86_400)
    hours, remainder = divmod(remainder, 3_600)
    minutes = remainder // 60

    if days > 0:
        return f"{days}d {hours}h left"
    if hours > 0:
        return f"{hours}h {minutes}m left"
    return f"{minutes}m left"


def format_quest_status(quest: Quest, now: datetime) -> str:
    """One-word-ish status for a quest row."""
    if quest.is_claimed:
        return "Claimed"
    if quest.is_completed or quest.progress_percent >= 100:
        return "Complete!"
    return format_time_left(quest.expires_at, now)


def format_commit(commit: Commit, max_message_chars: int = 72) -> str:
    """Render a commit as ``<short hash> <subject> (<author>)``."""
    message = commit.message
    if len(message) > max_message_chars:
        message = message[: max_message_chars - 3].rstrip() + "..."
    return f"{commit.short_hash} {message} ({commit.author})"
