"""Quest poller for republishing registry snapshots.

The poller re-runs the registry scanner and the normalizer on a fixed
interval and hands each ``QuestSnapshot`` to its subscribers. It publishes
once immediately on start, supports manual refreshes, and can schedule a
one-shot delayed refresh (used after an enroll so the host has time to
update its own state).

Cancellation is final: once ``cancel()`` is called no snapshot is published
again and no new firing starts. ``aclose()`` additionally waits for the timer
tasks to finish unwinding.

Example:
    poller = QuestPoller(RegistryScanner(), lambda: host.modules)
    unsubscribe = poller.subscribe(render)
    poller.start()
    ...
    await poller.aclose()
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import UTC, datetime

from questsync.constants import DEFAULT_CDN_BASE_URL, DEFAULT_POLL_INTERVAL_SECONDS
from questsync.logging import get_logger
from questsync.models import QuestSnapshot
from questsync.quests.normalizer import normalize
from questsync.quests.scanner import RegistryScanner, RegistrySource

logger = get_logger(__name__)

SnapshotCallback = Callable[[QuestSnapshot], None]
Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(UTC)


class QuestPoller:
    """Periodically scans the registry and publishes quest snapshots."""

    def __init__(
        self,
        scanner: RegistryScanner,
        source: RegistrySource,
        *,
        interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        cdn_base_url: str = DEFAULT_CDN_BASE_URL,
        clock: Clock = utc_now,
    ) -> None:
        """Initialize the poller.

        Args:
            scanner: Scanner used to find the quest collection.
            source: Callable returning the host's current module graph.
            interval_seconds: Seconds between polls.
            cdn_base_url: Base URL for reward assets.
            clock: Returns the current time; injectable for tests.
        """
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")

        self._scanner = scanner
        self._source = source
        self._interval = interval_seconds
        self._cdn_base_url = cdn_base_url
        self._clock = clock

        self._subscribers: list[SnapshotCallback] = []
        self._snapshot: QuestSnapshot | None = None
        self._task: asyncio.Task[None] | None = None
        self._delayed: set[asyncio.Task[None]] = set()
        self._cancelled = False

    @property
    def snapshot(self) -> QuestSnapshot | None:
        """The most recently published snapshot."""
        return self._snapshot

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done() and not self._cancelled

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def subscribe(self, callback: SnapshotCallback) -> Callable[[], None]:
        """Register a snapshot observer.

        Returns:
            A callable that removes the observer.
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def poll_once(self) -> QuestSnapshot:
        """Scan and normalize without publishing."""
        now = self._clock()
        try:
            graph = self._source()
        except Exception as e:
            logger.warning("Registry source unavailable", extra={"error": str(e)})
            graph = None

        records = self._scanner.locate_quest_collection(graph)
        quests = normalize(records, now, cdn_base_url=self._cdn_base_url)
        return QuestSnapshot(quests=tuple(quests), taken_at=now)

    def _publish(self, snapshot: QuestSnapshot) -> None:
        self._snapshot = snapshot
        for callback in list(self._subscribers):
            if self._cancelled:
                return
            try:
                callback(snapshot)
            except Exception as e:
                logger.error("Snapshot subscriber failed", extra={"error": str(e)})

    def refresh_now(self) -> QuestSnapshot | None:
        """Poll immediately and publish the result.

        Returns:
            The published snapshot, or None if the poller was cancelled or the
            poll failed.
        """
        if self._cancelled:
            return None

        try:
            snapshot = self.poll_once()
        except Exception as e:
            logger.error("Error polling quests", extra={"error": str(e)})
            return None

        if self._cancelled:
            return None

        self._publish(snapshot)
        return snapshot

    def refresh_later(self, delay_seconds: float) -> None:
        """Schedule a single refresh after ``delay_seconds``."""
        if self._cancelled:
            return

        async def delayed() -> None:
            await asyncio.sleep(delay_seconds)
            self.refresh_now()

        task = asyncio.get_running_loop().create_task(delayed())
        self._delayed.add(task)
        task.add_done_callback(self._delayed.discard)

    async def run(self) -> None:
        """Poll until cancelled. Publishes once immediately."""
        logger.info("Starting quest poller", extra={"interval_seconds": self._interval})

        while not self._cancelled:
            self.refresh_now()
            if self._cancelled:
                break
            await asyncio.sleep(self._interval)

        logger.info("Quest poller stopped")

    def start(self) -> asyncio.Task[None]:
        """Start the polling loop as a background task."""
        if self._cancelled:
            raise RuntimeError("poller has been cancelled")
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self.run())
        return self._task

    def cancel(self) -> None:
        """Stop all future firings.

        Takes effect immediately: pending sleeps are cancelled and nothing is
        published after this call returns.
        """
        if self._cancelled:
            return
        logger.info("Cancelling quest poller")
        self._cancelled = True
        if self._task is not None:
            self._task.cancel()
        for task in list(self._delayed):
            task.cancel()

    async def wait_closed(self) -> None:
        """Wait until the loop and any delayed refreshes have unwound."""
        tasks = [t for t in (self._task, *self._delayed) if t is not None]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._task = None
        self._delayed.clear()

    async def aclose(self) -> None:
        """Cancel and wait for the timer to be released."""
        self.cancel()
        await self.wait_closed()
