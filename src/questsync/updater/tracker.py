"""Drift tracker: detects and applies upstream updates of the install.

State machine::

    unknown -> checking -> up_to_date | outdated | check_failed
    outdated | apply_failed -> applying -> applied | apply_failed

``check()`` and ``apply()`` are one-shot per call and never raise; failures
are recorded on the published ``SyncState``. Applying only happens when a
caller explicitly asks for it (after the user confirmed) and runs
pull -> rebuild -> relaunch prompt strictly in sequence.

The tracker is the only writer of the ``SyncStateStore``. Everything else
reads the current state or subscribes to changes.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from questsync.logging import LogContext, get_logger
from questsync.models import (
    ApplyOutcome,
    ApplyStatus,
    DriftStatus,
    OperationResult,
    RevisionFailed,
    SyncState,
)
from questsync.updater.collaborators import Rebuilder, Relauncher
from questsync.updater.git import GitRevisionSource

logger = get_logger(__name__)

PULL_FAILED_MESSAGE = "Failed to update: {reason}"
BUILD_FAILED_MESSAGE = (
    "The update was pulled but the build failed. Please rebuild manually."
)
APPLIED_MESSAGE = "Update applied successfully."
NOTHING_TO_APPLY_MESSAGE = "No update to apply."
ALREADY_APPLYING_MESSAGE = "An update is already being applied."
CHECK_REQUIRED_MESSAGE = "The last update check did not complete. Check again before applying."

# Statuses apply() may start from; apply_failed allows a retry
_APPLICABLE_STATUSES = frozenset({DriftStatus.OUTDATED, DriftStatus.APPLY_FAILED})

StateCallback = Callable[[SyncState], None]


class SyncStateStore:
    """Holds the process-wide ``SyncState`` and notifies subscribers.

    States are immutable; each change replaces the whole value.
    """

    def __init__(self, initial: SyncState | None = None) -> None:
        self._state = initial or SyncState()
        self._subscribers: list[StateCallback] = []

    @property
    def state(self) -> SyncState:
        return self._state

    def subscribe(self, callback: StateCallback) -> Callable[[], None]:
        """Register an observer. Returns a callable that removes it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def publish(self, state: SyncState) -> None:
        self._state = state
        for callback in list(self._subscribers):
            try:
                callback(state)
            except Exception as e:
                logger.error("Sync state subscriber failed", extra={"error": str(e)})


class DriftTracker:
    """Checks the install against upstream and applies updates on request."""

    def __init__(
        self,
        source: GitRevisionSource,
        *,
        rebuilder: Rebuilder,
        relauncher: Relauncher,
        store: SyncStateStore | None = None,
    ) -> None:
        """Initialize the tracker.

        Args:
            source: Revision source for the install's working copy.
            rebuilder: Rebuilds after a successful pull.
            relauncher: Offers and performs a restart after a rebuild.
            store: State store to publish into; a fresh one by default.
        """
        self._source = source
        self._rebuilder = rebuilder
        self._relauncher = relauncher
        self._store = store or SyncStateStore()
        self._applying = False

    @property
    def store(self) -> SyncStateStore:
        return self._store

    @property
    def state(self) -> SyncState:
        return self._store.state

    def _update(self, **changes: Any) -> SyncState:
        state = self._store.state.model_copy(update=changes)
        self._store.publish(state)
        return state

    def _check_failed(self, failure: RevisionFailed, step: str) -> SyncState:
        logger.error(
            "Update check failed",
            extra={"step": step, "reason": failure.message},
        )
        return self._update(
            status=DriftStatus.CHECK_FAILED,
            last_error=failure,
            last_message=failure.message,
        )

    async def check(self) -> SyncState:
        """Compare the local HEAD against the tracked upstream branch.

        Returns:
            The resulting state: up_to_date, outdated or check_failed.
            While an apply is running the current state is returned unchanged.
        """
        if self._applying:
            logger.debug("Skipping update check while applying")
            return self.state

        self._update(status=DriftStatus.CHECKING, last_message=None)

        identity = await self._source.get_repo_identity()
        if not identity.ok:
            return self._check_failed(identity, "repo_identity")

        commits = await self._source.get_new_commits()
        if not commits.ok:
            self._update(repo_identity=identity.value)
            return self._check_failed(commits, "new_commits")

        pending = tuple(commits.value)
        outdated = len(pending) > 0

        logger.info(
            "Update check complete",
            extra={
                "remote": identity.value.remote_url,
                "local_revision": identity.value.local_revision[:7],
                "new_commits": len(pending),
            },
        )

        return self._update(
            status=DriftStatus.OUTDATED if outdated else DriftStatus.UP_TO_DATE,
            is_outdated=outdated,
            pending_commits=pending,
            repo_identity=identity.value,
            last_error=None,
        )

    async def _rebuild(self) -> OperationResult:
        try:
            return await self._rebuilder.rebuild()
        except Exception as e:
            logger.exception("Rebuild collaborator raised")
            return OperationResult(ok=False, message=str(e))

    async def _offer_relaunch(self) -> bool:
        try:
            if not await self._relauncher.confirm_relaunch():
                logger.info("Relaunch declined")
                return False
            result = await self._relauncher.relaunch()
        except Exception as e:
            logger.warning("Relaunch failed", extra={"error": str(e)})
            return False

        if not result.ok:
            logger.warning("Relaunch failed", extra={"error": result.message})
            return False
        return True

    async def apply(self) -> ApplyOutcome:
        """Pull, rebuild and offer a relaunch.

        Only call this after the user confirmed the update. Does nothing
        unless the last completed check found the install outdated. A check
        in flight or a failed re-check skips.

        Returns:
            The outcome. A pull failure and a build failure after a
            successful pull carry different statuses and messages.
        """
        state = self.state
        if self._applying:
            return ApplyOutcome(status=ApplyStatus.SKIPPED, message=ALREADY_APPLYING_MESSAGE)
        if state.status in (DriftStatus.CHECKING, DriftStatus.CHECK_FAILED):
            logger.info("Refusing to apply", extra={"status": state.status.value})
            return ApplyOutcome(status=ApplyStatus.SKIPPED, message=CHECK_REQUIRED_MESSAGE)
        if state.status not in _APPLICABLE_STATUSES or not state.is_outdated:
            return ApplyOutcome(status=ApplyStatus.SKIPPED, message=NOTHING_TO_APPLY_MESSAGE)

        self._applying = True
        try:
            with LogContext(install_root=str(self._source.install_root)):
                return await self._apply()
        finally:
            self._applying = False

    async def _apply(self) -> ApplyOutcome:
        self._update(status=DriftStatus.APPLYING, last_message=None)
        logger.info("Applying update", extra={"commits": len(self.state.pending_commits)})

        pulled = await self._source.pull()
        if not pulled.ok:
            message = PULL_FAILED_MESSAGE.format(reason=pulled.message or "Unknown error")
            logger.error("Pull failed", extra={"reason": pulled.message})
            self._update(
                status=DriftStatus.APPLY_FAILED,
                last_error=pulled,
                last_message=message,
            )
            return ApplyOutcome(status=ApplyStatus.PULL_FAILED, message=message)

        rebuilt = await self._rebuild()
        if not rebuilt.ok:
            logger.error("Rebuild failed after pull", extra={"reason": rebuilt.message})
            self._update(status=DriftStatus.APPLY_FAILED, last_message=BUILD_FAILED_MESSAGE)
            return ApplyOutcome(status=ApplyStatus.BUILD_FAILED, message=BUILD_FAILED_MESSAGE)

        self._update(
            status=DriftStatus.APPLIED,
            is_outdated=False,
            pending_commits=(),
            last_error=None,
            last_message=APPLIED_MESSAGE,
        )
        logger.info("Update applied")

        relaunched = await self._offer_relaunch()
        return ApplyOutcome(
            status=ApplyStatus.APPLIED,
            message=APPLIED_MESSAGE,
            relaunched=relaunched,
        )
