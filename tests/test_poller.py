"""Tests for the quest poller."""

import asyncio
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from questsync.models import QuestSnapshot
from questsync.quests.poller import QuestPoller
from questsync.quests.scanner import RegistryScanner

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


class QuestStore:
    def __init__(self, quests: dict[str, Any]) -> None:
        self.quests = quests

    def getQuest(self, quest_id: str) -> Any:
        return self.quests.get(quest_id)


def make_record(quest_id: str) -> dict[str, Any]:
    return {
        "id": quest_id,
        "config": {
            "expiresAt": (NOW + timedelta(days=1)).isoformat(),
            "messages": {"questName": f"Quest {quest_id}"},
            "application": {"name": "Game"},
            "taskConfig": {"tasks": {"PLAY_ON_DESKTOP": {"target": 900}}},
            "rewardsConfig": {"rewards": [{"type": 1, "messages": {"name": "Orb"}}]},
        },
        "userStatus": None,
    }


@pytest.fixture
def store() -> QuestStore:
    """Host store holding one quest."""
    return QuestStore({"1": make_record("1")})


@pytest.fixture
def poller(store: QuestStore) -> QuestPoller:
    """Poller over a graph exporting the store, with a fixed clock."""
    graph = {"quests-module": {"exports": {"Z": store}}}
    return QuestPoller(
        RegistryScanner(),
        lambda: graph,
        interval_seconds=0.01,
        clock=lambda: NOW,
    )


class TestQuestPoller:
    """Tests for QuestPoller."""

    def test_interval_must_be_positive(self) -> None:
        """A non-positive interval is rejected."""
        with pytest.raises(ValueError):
            QuestPoller(RegistryScanner(), lambda: None, interval_seconds=0)

    def test_poll_once(self, poller: QuestPoller) -> None:
        """A poll normalizes the store's records against the clock."""
        snapshot = poller.poll_once()

        assert snapshot.taken_at == NOW
        assert [q.id for q in snapshot.quests] == ["1"]
        assert poller.snapshot is None

    def test_refresh_now_publishes(self, poller: QuestPoller) -> None:
        """A manual refresh publishes to subscribers."""
        seen: list[QuestSnapshot] = []
        poller.subscribe(seen.append)

        snapshot = poller.refresh_now()

        assert seen == [snapshot]
        assert poller.snapshot == snapshot

    def test_source_failure_publishes_empty(self) -> None:
        """An unavailable module graph yields an empty snapshot."""

        def broken() -> Any:
            raise RuntimeError("host not ready")

        poller = QuestPoller(RegistryScanner(), broken, clock=lambda: NOW)
        snapshot = poller.refresh_now()

        assert snapshot is not None
        assert snapshot.quests == ()

    def test_subscriber_error_isolated(self, poller: QuestPoller) -> None:
        """A failing subscriber does not stop the others."""
        seen: list[QuestSnapshot] = []

        def broken(snapshot: QuestSnapshot) -> None:
            raise RuntimeError("render failed")

        poller.subscribe(broken)
        poller.subscribe(seen.append)

        poller.refresh_now()

        assert len(seen) == 1

    async def test_start_publishes_immediately_and_repeats(
        self, poller: QuestPoller, store: QuestStore
    ) -> None:
        """The loop publishes on start and picks up registry changes."""
        seen: list[QuestSnapshot] = []
        two_quests = asyncio.Event()

        def on_snapshot(snapshot: QuestSnapshot) -> None:
            seen.append(snapshot)
            if len(snapshot.quests) == 2:
                two_quests.set()

        poller.subscribe(on_snapshot)
        poller.start()
        await asyncio.sleep(0)
        assert len(seen) == 1

        store.quests["2"] = make_record("2")
        await asyncio.wait_for(two_quests.wait(), timeout=1.0)

        await poller.aclose()
        assert not poller.running

    async def test_no_publication_after_cancel(self, poller: QuestPoller) -> None:
        """Nothing is published once the poller is cancelled."""
        seen: list[QuestSnapshot] = []
        poller.subscribe(seen.append)
        poller.start()
        await asyncio.sleep(0)

        poller.cancel()
        count = len(seen)
        await asyncio.sleep(0.05)

        assert len(seen) == count
        assert poller.refresh_now() is None
        await poller.wait_closed()

    async def test_cancel_during_publication(self, poller: QuestPoller) -> None:
        """A subscriber cancelling the poller stops the remaining deliveries."""
        seen: list[QuestSnapshot] = []
        poller.subscribe(lambda snapshot: poller.cancel())
        poller.subscribe(seen.append)

        poller.refresh_now()

        assert seen == []
        await poller.wait_closed()

    async def test_refresh_later(self, poller: QuestPoller) -> None:
        """A delayed refresh publishes once after the delay."""
        published = asyncio.Event()
        poller.subscribe(lambda snapshot: published.set())

        poller.refresh_later(0.01)
        await asyncio.wait_for(published.wait(), timeout=1.0)

        await poller.aclose()

    async def test_refresh_later_cancelled(self, poller: QuestPoller) -> None:
        """Pending delayed refreshes are dropped on close."""
        seen: list[QuestSnapshot] = []
        poller.subscribe(seen.append)

        poller.refresh_later(0.05)
        await poller.aclose()
        await asyncio.sleep(0.1)

        assert seen == []

    async def test_start_after_cancel_rejected(self, poller: QuestPoller) -> None:
        """A cancelled poller cannot be restarted."""
        await poller.aclose()
        with pytest.raises(RuntimeError):
            poller.start()

    def test_unsubscribe(self, poller: QuestPoller) -> None:
        """Unsubscribed callbacks are not called."""
        seen: list[QuestSnapshot] = []
        unsubscribe = poller.subscribe(seen.append)
        unsubscribe()

        poller.refresh_now()

        assert seen == []

    def test_unscannable_graph_publishes_empty(self) -> None:
        """A graph the scanner cannot read still yields an empty snapshot."""
        poller = QuestPoller(RegistryScanner(), lambda: 42, clock=lambda: NOW)
        seen: list[QuestSnapshot] = []
        poller.subscribe(seen.append)

        snapshot = poller.refresh_now()

        assert snapshot is not None
        assert snapshot.quests == ()
        assert seen == [snapshot]
