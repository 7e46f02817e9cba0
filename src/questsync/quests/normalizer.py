"""Quest normalizer: raw registry records to ``Quest`` models.

The registry hands out records shaped like the host's own quest objects
(camelCase keys, nested config and user status). ``normalize`` filters out
quests that are expired or have no supported task, then derives the status
fields from the user status sub-record. It performs no I/O and takes the
current time as an argument, so a poll is a pure function of its inputs.

Record shape (only the fields read here):

    {
        "id": "...",
        "config": {
            "expiresAt": "2026-01-01T00:00:00Z",
            "messages": {"questName": "..."},
            "application": {"name": "..."},
            "taskConfig": {"tasks": {"WATCH_VIDEO": {"target": 900}}},
            "rewardsConfig": {"rewards": [{"type": 1, "asset": "...", "messages": {"name": "..."}}]},
        },
        "userStatus": {
            "enrolledAt": "...", "completedAt": "...", "claimedAt": "...",
            "progress": {"WATCH_VIDEO": {"value": 300}},
        },
    }

``taskConfigV2`` is used when ``taskConfig`` is absent. Records may also be
plain objects exposing the same names as attributes.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from typing import Any

from pydantic import ValidationError

from questsync.constants import (
    ANIMATED_REWARD_IMAGE_URL,
    ANIMATED_REWARD_TYPE,
    DEFAULT_CDN_BASE_URL,
    UNKNOWN_REWARD_NAME,
)
from questsync.logging import get_logger
from questsync.models import Quest, TaskKind

logger = get_logger(__name__)

UNKNOWN_QUEST_NAME = "Unknown Quest"
UNKNOWN_APPLICATION_NAME = "Unknown Application"


class _SkipRecord(Exception):
    """Internal signal that a record is malformed and must be dropped."""


def _dig(obj: Any, *path: str | int) -> Any:
    """Follow a path of keys/attributes/indexes, returning None on any miss."""
    current = obj
    for key in path:
        if current is None:
            return None
        if isinstance(key, int):
            if isinstance(current, (list, tuple)) and -len(current) <= key < len(current):
                current = current[key]
            else:
                return None
        elif isinstance(current, Mapping):
            current = current.get(key)
        else:
            current = getattr(current, key, None)
    return current


def _keys(obj: Any) -> set[str]:
    if isinstance(obj, Mapping):
        return {str(k) for k in obj.keys()}
    if obj is None:
        return set()
    return {k for k in vars(obj) if not k.startswith("_")} if hasattr(obj, "__dict__") else set()


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 string or datetime into an aware UTC datetime."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def select_task_kind(tasks: Any) -> TaskKind | None:
    """Pick the supported task kind with the highest priority.

    Priority is the declaration order of ``TaskKind``; the order of keys in
    the record does not matter.
    """
    present = _keys(tasks)
    for kind in TaskKind:
        if kind.value in present and _dig(tasks, kind.value) is not None:
            return kind
    return None


def resolve_reward_image(reward: Any, cdn_base_url: str = DEFAULT_CDN_BASE_URL) -> str | None:
    """Resolve the media URL shown for a reward.

    Animated rewards map to a fixed asset, other rewards resolve their asset
    path against the CDN, and rewards with neither have no image.
    """
    if reward is None:
        return None
    if _dig(reward, "type") == ANIMATED_REWARD_TYPE:
        return ANIMATED_REWARD_IMAGE_URL
    asset = _dig(reward, "asset")
    if asset:
        return f"{cdn_base_url.rstrip('/')}/{str(asset).lstrip('/')}"
    return None


def _as_seconds(value: Any) -> int:
    try:
        return max(0, int(value))
    except (TypeError, ValueError):
        return 0


def normalize_record(
    record: Any,
    now: datetime,
    *,
    cdn_base_url: str = DEFAULT_CDN_BASE_URL,
) -> Quest | None:
    """Normalize one record.

    Returns:
        The Quest, or None if the record is expired or has no supported task.

    Raises:
        _SkipRecord: If the record is malformed.
    """
    quest_id = _dig(record, "id")
    if quest_id is None:
        raise _SkipRecord("missing id")

    config = _dig(record, "config")
    expires_at = parse_timestamp(_dig(config, "expiresAt"))
    if expires_at is None:
        raise _SkipRecord("missing or invalid expiresAt")
    if expires_at <= now:
        return None

    task_config = _dig(config, "taskConfig") or _dig(config, "taskConfigV2")
    if task_config is None:
        raise _SkipRecord("missing task configuration")

    tasks = _dig(task_config, "tasks")
    task_kind = select_task_kind(tasks)
    if task_kind is None:
        return None

    user_status = _dig(record, "userStatus")
    is_enrolled = _dig(user_status, "enrolledAt") is not None
    seconds_needed = _as_seconds(_dig(tasks, task_kind.value, "target"))
    seconds_done = (
        _as_seconds(_dig(user_status, "progress", task_kind.value, "value")) if is_enrolled else 0
    )
    is_completed = is_enrolled and (
        seconds_done >= seconds_needed or _dig(user_status, "completedAt") is not None
    )

    reward = _dig(config, "rewardsConfig", "rewards", 0)

    return Quest(
        id=str(quest_id),
        quest_name=_dig(config, "messages", "questName") or UNKNOWN_QUEST_NAME,
        application_name=_dig(config, "application", "name") or UNKNOWN_APPLICATION_NAME,
        task_type=task_kind,
        seconds_needed=seconds_needed,
        seconds_done=seconds_done,
        expires_at=expires_at,
        is_enrolled=is_enrolled,
        is_completed=is_completed,
        is_claimed=_dig(user_status, "claimedAt") is not None,
        reward_name=_dig(reward, "messages", "name") or UNKNOWN_REWARD_NAME,
        reward_image=resolve_reward_image(reward, cdn_base_url),
    )


def normalize(
    records: Iterable[Any],
    now: datetime,
    *,
    cdn_base_url: str = DEFAULT_CDN_BASE_URL,
) -> list[Quest]:
    """Normalize raw registry records into live, supported quests.

    Args:
        records: Raw quest records from the registry scanner.
        now: Current time; quests expiring at or before it are dropped.
        cdn_base_url: Base URL reward assets are resolved against.

    Returns:
        Quests in registry order, excluding expired, unsupported and
        malformed records.
    """
    if now.tzinfo is None:
        now = now.replace(tzinfo=UTC)

    quests: list[Quest] = []
    skipped = 0

    for record in records:
        try:
            quest = normalize_record(record, now, cdn_base_url=cdn_base_url)
        except (_SkipRecord, ValidationError) as e:
            logger.debug(
                "Skipping malformed quest record",
                extra={"quest_id": _dig(record, "id"), "reason": str(e)},
            )
            skipped += 1
            continue

        if quest is None:
            skipped += 1
            continue
        quests.append(quest)

    logger.debug("Normalized quests", extra={"count": len(quests), "skipped": skipped})
    return quests
