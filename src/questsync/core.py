"""Core wiring for QuestSync.

``QuestSyncCore`` owns the quest poller, the action gateway and the drift
tracker, and turns their outcomes into notifications. It is what a host
embeds: hand it the configuration and a callable returning the host's
module graph, then ``start()`` it.

On start the poller begins publishing snapshots and, if the updater is
enabled, an update check runs as an independent task. When the install is
outdated the user is asked (after a short delay) whether to update; only a
confirmed prompt applies the update.

Example:
    core = QuestSyncCore(config, registry_source=lambda: host.modules)
    core.poller.subscribe(render_quests)
    core.start()
    ...
    await core.stop()
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from questsync.actions import ActionGateway
from questsync.constants import NOTIFY_UPDATE_TITLE
from questsync.logging import get_logger
from questsync.models import (
    ActionOutcome,
    ApplyOutcome,
    ApplyStatus,
    DriftStatus,
    Notification,
    QuestSnapshot,
    SyncState,
)
from questsync.notify import LoggingNotifier, Notifier
from questsync.quests.poller import Clock, QuestPoller, utc_now
from questsync.quests.scanner import RegistryScanner, RegistrySource
from questsync.updater.collaborators import (
    CommandRebuilder,
    DeclineRelauncher,
    Rebuilder,
    Relauncher,
)
from questsync.updater.git import GitRevisionSource
from questsync.updater.tracker import DriftTracker, SyncStateStore

if TYPE_CHECKING:
    from questsync.actions import ScriptExecutor
    from questsync.config import QuestSyncConfig

logger = get_logger(__name__)

_APPLY_TITLES: dict[ApplyStatus, str] = {
    ApplyStatus.APPLIED: "Update Success!",
    ApplyStatus.PULL_FAILED: "Update Failed",
    ApplyStatus.BUILD_FAILED: "Build Failed",
    ApplyStatus.SKIPPED: NOTIFY_UPDATE_TITLE,
}


def update_prompt_body(commit_count: int) -> str:
    plural = "s" if commit_count != 1 else ""
    return (
        f"Update available! {commit_count} new commit{plural}.\n\n"
        "Would you like to update now?"
    )


class QuestSyncCore:
    """Coordinates quest polling, actions and self-updates."""

    def __init__(
        self,
        config: QuestSyncConfig,
        *,
        registry_source: RegistrySource,
        notifier: Notifier | None = None,
        revision_source: GitRevisionSource | None = None,
        rebuilder: Rebuilder | None = None,
        relauncher: Relauncher | None = None,
        executor: ScriptExecutor | None = None,
        gateway: ActionGateway | None = None,
        scanner: RegistryScanner | None = None,
        clock: Clock = utc_now,
    ) -> None:
        """Initialize the core.

        Args:
            config: QuestSync configuration.
            registry_source: Returns the host's current module graph.
            notifier: Surfaces outcomes to the user. Logs only by default.
            revision_source: git source; built from ``config.updater`` by default.
            rebuilder: Runs after a pull; ``config.updater.build_command`` by default.
            relauncher: Offers a restart after rebuilding; declines by default.
            executor: Runs the remote script; refuses by default.
            gateway: Action gateway; built from config by default.
            scanner: Registry scanner with the default lookup strategies.
            clock: Returns the current time.
        """
        self._config = config
        self._notifier: Notifier = notifier or LoggingNotifier()

        updater = config.updater
        self._revision_source = revision_source or GitRevisionSource(
            updater.install_path,
            git_executable=updater.git_executable,
            sandboxed=updater.sandboxed,
        )
        self.store = SyncStateStore()
        self.tracker = DriftTracker(
            self._revision_source,
            rebuilder=rebuilder or CommandRebuilder(updater.build_command, updater.install_path),
            relauncher=relauncher or DeclineRelauncher(),
            store=self.store,
        )

        self.poller = QuestPoller(
            scanner or RegistryScanner(),
            registry_source,
            interval_seconds=config.poller.interval_seconds,
            cdn_base_url=config.quests.cdn_base_url,
            clock=clock,
        )
        self.gateway = gateway or ActionGateway(config.api, config.script, executor=executor)

        self._update_task: asyncio.Task[SyncState] | None = None

    @property
    def sync_state(self) -> SyncState:
        return self.store.state

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def start(self) -> None:
        """Start polling and, if enabled, the startup update check."""
        logger.info("QuestSync started", extra={"updater_enabled": self._config.updater.enabled})
        self.poller.start()
        if self._config.updater.enabled:
            self._update_task = asyncio.get_running_loop().create_task(
                self.check_for_updates_and_notify()
            )

    async def stop(self) -> None:
        """Cancel polling and any pending update prompt, then close clients."""
        await self.poller.aclose()
        if self._update_task is not None and not self._update_task.done():
            self._update_task.cancel()
            await asyncio.gather(self._update_task, return_exceptions=True)
        self._update_task = None
        await self.gateway.close()
        logger.info("QuestSync stopped")

    async def __aenter__(self) -> QuestSyncCore:
        self.start()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.stop()

    # =========================================================================
    # QUESTS
    # =========================================================================

    def refresh(self) -> QuestSnapshot | None:
        """Re-poll the registry immediately."""
        return self.poller.refresh_now()

    async def enroll(self, quest_id: str) -> ActionOutcome:
        """Enroll in a quest and re-poll shortly after a success."""
        outcome = await self.gateway.enroll(quest_id)
        self._notify_outcome(outcome)
        if outcome.ok:
            self.poller.refresh_later(self._config.poller.enroll_refresh_delay_seconds)
        return outcome

    async def run_remote_script(self) -> ActionOutcome:
        """Run the remote script and re-poll shortly after."""
        outcome = await self.gateway.run_remote_script()
        self._notify_outcome(outcome)
        self.poller.refresh_later(self._config.poller.script_refresh_delay_seconds)
        return outcome

    def _notify_outcome(self, outcome: ActionOutcome) -> None:
        self._notifier.notify(
            Notification(
                title=outcome.title,
                body=outcome.message,
                level="success" if outcome.ok else "error",
            )
        )

    # =========================================================================
    # UPDATES
    # =========================================================================

    async def check_for_updates(self) -> SyncState:
        """Run a drift check without prompting."""
        return await self.tracker.check()

    async def check_for_updates_and_notify(self) -> SyncState:
        """Check for updates and ask the user to apply them if outdated.

        A failed check is only logged; it is retried on the next call.
        """
        logger.info("Checking for updates")
        state = await self.tracker.check()

        # Also covers a check that returned the in-flight state of an apply
        if state.status is not DriftStatus.OUTDATED:
            return state

        delay = self._config.updater.notify_delay_seconds
        if delay > 0:
            await asyncio.sleep(delay)

        confirmed = await self._notifier.confirm(
            NOTIFY_UPDATE_TITLE,
            update_prompt_body(len(state.pending_commits)),
            confirm_text="Update",
            cancel_text="Later",
        )
        if confirmed:
            await self.apply_update()
        else:
            logger.info("Update postponed by user")

        return self.store.state

    async def apply_update(self) -> ApplyOutcome:
        """Apply a pending update and report the outcome."""
        outcome = await self.tracker.apply()
        self._notifier.notify(
            Notification(
                title=_APPLY_TITLES[outcome.status],
                body=outcome.message,
                level={
                    ApplyStatus.APPLIED: "success",
                    ApplyStatus.SKIPPED: "info",
                }.get(outcome.status, "error"),
            )
        )
        return outcome
