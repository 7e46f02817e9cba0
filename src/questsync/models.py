"""Pydantic models for QuestSync.

Models are organized by domain:
- Quest models (TaskKind, Quest, QuestSnapshot)
- Revision models (Commit, RepoIdentity, RevisionOk, RevisionFailed)
- Sync state models (DriftStatus, SyncState, ApplyStatus, ApplyOutcome)
- Action and notification models (ActionOutcome, OperationResult, Notification)

All datetime fields use timezone-aware UTC datetimes.
"""

from __future__ import annotations

from datetime import datetime, timedelta  # noqa: TC003 - Required at runtime for Pydantic
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

# =============================================================================
# QUEST MODELS
# =============================================================================


class TaskKind(str, Enum):
    """Supported quest task kinds.

    Declaration order is the selection priority: when a quest carries more
    than one supported task, the first member listed here wins.
    """

    WATCH_VIDEO = "WATCH_VIDEO"
    PLAY_ON_DESKTOP = "PLAY_ON_DESKTOP"
    STREAM_ON_DESKTOP = "STREAM_ON_DESKTOP"
    PLAY_ACTIVITY = "PLAY_ACTIVITY"
    WATCH_VIDEO_ON_MOBILE = "WATCH_VIDEO_ON_MOBILE"

    @property
    def label(self) -> str:
        return _TASK_LABELS[self]


_TASK_LABELS: dict[TaskKind, str] = {
    TaskKind.WATCH_VIDEO: "Watch Video",
    TaskKind.PLAY_ON_DESKTOP: "Play Game",
    TaskKind.STREAM_ON_DESKTOP: "Stream Game",
    TaskKind.PLAY_ACTIVITY: "Play Activity",
    TaskKind.WATCH_VIDEO_ON_MOBILE: "Watch Video (Mobile)",
}


class Quest(BaseModel):
    """A normalized quest, rebuilt from the registry on every poll."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Opaque quest identifier")
    quest_name: str = Field(..., description="Display name of the quest")
    application_name: str = Field(..., description="Application the quest belongs to")
    task_type: TaskKind = Field(..., description="Task kind selected for progress tracking")
    seconds_needed: int = Field(default=0, ge=0, description="Target progress in seconds")
    seconds_done: int = Field(
        default=0,
        ge=0,
        description="Raw progress in seconds, 0 unless enrolled",
    )
    expires_at: datetime = Field(..., description="When the quest expires (UTC)")
    is_enrolled: bool = Field(default=False, description="User has enrolled")
    is_completed: bool = Field(default=False, description="Progress target reached")
    is_claimed: bool = Field(default=False, description="Reward already claimed")
    reward_name: str = Field(..., description="Display name of the first reward")
    reward_image: str | None = Field(default=None, description="Reward media URL")

    @model_validator(mode="after")
    def _completed_requires_enrollment(self) -> Quest:
        if self.is_completed and not self.is_enrolled:
            raise ValueError("a quest cannot be completed without enrollment")
        return self

    @property
    def task_label(self) -> str:
        """Human-readable task kind."""
        return self.task_type.label

    @property
    def display_seconds_done(self) -> int:
        """Progress clamped to ``[0, seconds_needed]`` for display."""
        return max(0, min(self.seconds_done, self.seconds_needed))

    @property
    def progress_percent(self) -> int:
        """Whole-number progress percentage, capped at 100."""
        if self.seconds_needed <= 0:
            return 0
        return min(100, (self.seconds_done * 100) // self.seconds_needed)

    @property
    def minutes_required(self) -> int:
        return self.seconds_needed // 60

    def time_left(self, now: datetime) -> timedelta:
        """Time remaining until expiry, never negative."""
        return max(self.expires_at - now, timedelta(0))


class QuestSnapshot(BaseModel):
    """The published result of one poll."""

    model_config = ConfigDict(frozen=True)

    quests: tuple[Quest, ...] = Field(default=(), description="Live, supported quests")
    taken_at: datetime = Field(..., description="The 'now' the quests were normalized against")

    @property
    def available(self) -> list[Quest]:
        """Quests whose reward has not been claimed yet."""
        return [q for q in self.quests if not q.is_claimed]

    @property
    def enrolled(self) -> list[Quest]:
        return [q for q in self.available if q.is_enrolled]

    @property
    def not_enrolled(self) -> list[Quest]:
        return [q for q in self.available if not q.is_enrolled]

    def find(self, quest_id: str) -> Quest | None:
        for quest in self.quests:
            if quest.id == quest_id:
                return quest
        return None


# =============================================================================
# REVISION MODELS
# =============================================================================


class Commit(BaseModel):
    """One upstream commit not yet applied locally."""

    model_config = ConfigDict(frozen=True)

    short_hash: str = Field(..., description="First seven characters of the hash")
    full_hash: str = Field(..., description="Full commit hash")
    author: str = Field(..., description="Author name")
    message: str = Field(..., description="Commit subject, verbatim")


class RepoIdentity(BaseModel):
    """Remote and local revision of the install, captured per update check."""

    model_config = ConfigDict(frozen=True)

    remote_url: str = Field(..., description="Browsable HTTPS URL of the origin remote")
    local_revision: str = Field(..., description="Hash of the local HEAD")


class RevisionOk(BaseModel):
    """Successful revision control operation."""

    model_config = ConfigDict(frozen=True)

    ok: Literal[True] = True
    value: Any = Field(default=None, description="Operation payload")


class RevisionFailed(BaseModel):
    """Failed revision control operation."""

    model_config = ConfigDict(frozen=True)

    ok: Literal[False] = False
    message: str = Field(..., description="Human-readable failure message")
    error: str | None = Field(default=None, description="Raw stderr or exception text")
    command: tuple[str, ...] = Field(default=(), description="Command that failed")


RevisionResult = RevisionOk | RevisionFailed


# =============================================================================
# SYNC STATE MODELS
# =============================================================================


class DriftStatus(str, Enum):
    """States of the drift tracker."""

    UNKNOWN = "unknown"
    CHECKING = "checking"
    UP_TO_DATE = "up_to_date"
    OUTDATED = "outdated"
    CHECK_FAILED = "check_failed"
    APPLYING = "applying"
    APPLIED = "applied"
    APPLY_FAILED = "apply_failed"


class SyncState(BaseModel):
    """Process-wide synchronization state, replaced wholesale on each change."""

    model_config = ConfigDict(frozen=True)

    status: DriftStatus = Field(default=DriftStatus.UNKNOWN)
    is_outdated: bool = Field(default=False)
    pending_commits: tuple[Commit, ...] = Field(default=())
    repo_identity: RepoIdentity | None = Field(default=None)
    last_error: RevisionFailed | None = Field(default=None)
    last_message: str | None = Field(default=None, description="Latest surfaced message")


class ApplyStatus(str, Enum):
    """Result of an apply attempt."""

    APPLIED = "applied"
    PULL_FAILED = "pull_failed"
    BUILD_FAILED = "build_failed"
    SKIPPED = "skipped"


class ApplyOutcome(BaseModel):
    """What happened when the user confirmed an update."""

    model_config = ConfigDict(frozen=True)

    status: ApplyStatus
    message: str
    relaunched: bool = False

    @property
    def ok(self) -> bool:
        return self.status is ApplyStatus.APPLIED


# =============================================================================
# ACTION AND NOTIFICATION MODELS
# =============================================================================


class OperationResult(BaseModel):
    """Envelope returned by the rebuild and relaunch collaborators."""

    model_config = ConfigDict(frozen=True)

    ok: bool
    message: str | None = None


class ActionOutcome(BaseModel):
    """User-visible result of a state-changing action."""

    model_config = ConfigDict(frozen=True)

    ok: bool
    title: str
    message: str


NotificationLevel = Literal["success", "info", "error"]


class Notification(BaseModel):
    """A message surfaced to the user."""

    model_config = ConfigDict(frozen=True)

    title: str
    body: str
    level: NotificationLevel = "info"
