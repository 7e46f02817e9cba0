"""Tests for the registry scanner."""

from typing import Any

import pytest

from questsync.quests.scanner import ExportSlotStrategy, RegistryScanner


class QuestStore:
    """Stand-in for the host's quest store."""

    def __init__(self, quests: Any) -> None:
        self.quests = quests

    def getQuest(self, quest_id: str) -> Any:  # noqa: N802 - host method name
        return None


class NotAStore:
    def __init__(self) -> None:
        self.quests = {"x": {"id": "x"}}
        # Instance attribute only; the type does not expose the capability
        self.getQuest = lambda quest_id: None


class ExplodingModule:
    @property
    def exports(self) -> Any:
        raise RuntimeError("accessor blew up")


def module(**exports: Any) -> dict[str, Any]:
    return {"exports": exports}


@pytest.fixture
def scanner() -> RegistryScanner:
    """Scanner with the default strategies."""
    return RegistryScanner()


class TestFindStore:
    """Tests for locating the store."""

    def test_z_slot_preferred_over_a_slot(self, scanner: RegistryScanner) -> None:
        """The Z strategy wins even when an A match appears earlier in the graph."""
        store_a = QuestStore({"a": {"id": "a"}})
        store_z = QuestStore({"z": {"id": "z"}})
        graph = {"1": module(A=store_a), "2": module(Z=store_z)}

        found = scanner.find_store(graph)

        assert found is not None
        store, strategy = found
        assert store is store_z
        assert strategy.slot == "Z"

    def test_a_slot_fallback(self, scanner: RegistryScanner) -> None:
        """The A slot is used when no module exports the store under Z."""
        store_a = QuestStore([{"id": "a"}])
        graph = [module(Z=object()), module(A=store_a)]

        found = scanner.find_store(graph)

        assert found is not None
        assert found[0] is store_a

    def test_capability_must_be_on_the_type(self, scanner: RegistryScanner) -> None:
        """An instance-level method does not qualify as the store."""
        graph = {"1": module(Z=NotAStore())}
        assert scanner.find_store(graph) is None

    def test_raising_module_is_skipped(self, scanner: RegistryScanner) -> None:
        """A module whose accessors raise does not abort the scan."""
        store = QuestStore({})
        graph = [ExplodingModule(), module(Z=store)]

        found = scanner.find_store(graph)

        assert found is not None
        assert found[0] is store

    def test_cyclic_graph(self, scanner: RegistryScanner) -> None:
        """Self-referential graphs are scanned without recursion."""
        graph: dict[str, Any] = {}
        graph["self"] = {"exports": {"Z": graph, "loop": graph}}
        graph["store"] = module(Z=QuestStore([{"id": "1"}]))

        assert scanner.locate_quest_collection(graph) == [{"id": "1"}]

    def test_custom_strategy_order(self) -> None:
        """Strategies are data and can be reordered."""
        store_a = QuestStore([])
        store_z = QuestStore([])
        scanner = RegistryScanner([ExportSlotStrategy("A"), ExportSlotStrategy("Z")])

        found = scanner.find_store([module(Z=store_z), module(A=store_a)])

        assert found is not None
        assert found[0] is store_a


class TestLocateQuestCollection:
    """Tests for returning the raw records."""

    def test_mapping_collection_returns_values(self, scanner: RegistryScanner) -> None:
        """A keyed collection yields its values."""
        records = {"1": {"id": "1"}, "2": {"id": "2"}}
        graph = {"m": module(Z=QuestStore(records))}

        assert scanner.locate_quest_collection(graph) == [{"id": "1"}, {"id": "2"}]

    def test_no_store_returns_empty(self, scanner: RegistryScanner) -> None:
        """A graph without a store is not an error."""
        graph = {"m": module(Q=QuestStore([{"id": "1"}])), "n": {"no_exports": True}}
        assert scanner.locate_quest_collection(graph) == []

    def test_none_graph(self, scanner: RegistryScanner) -> None:
        """A missing graph yields no records."""
        assert scanner.locate_quest_collection(None) == []

    def test_unusable_collection(self, scanner: RegistryScanner) -> None:
        """A store whose collection is not iterable yields no records."""
        graph = [module(Z=QuestStore(42))]
        assert scanner.locate_quest_collection(graph) == []

    def test_object_exports(self, scanner: RegistryScanner) -> None:
        """Modules and exports may be plain objects."""

        class Exports:
            Z = QuestStore([{"id": "obj"}])

        class Module:
            exports = Exports()

        assert scanner.locate_quest_collection([Module()]) == [{"id": "obj"}]

    def test_non_iterable_graph(self, scanner: RegistryScanner) -> None:
        """A graph that cannot be enumerated is a miss, not an error."""
        assert scanner.locate_quest_collection(42) == []

    def test_raising_graph_values(self, scanner: RegistryScanner) -> None:
        """A mapping whose values() raises is a miss."""

        class HostileGraph(dict):
            def values(self):  # type: ignore[override]
                raise RuntimeError("graph locked")

        assert scanner.locate_quest_collection(HostileGraph(m=module(Z=QuestStore([])))) == []

    def test_raising_collection_accessor(self, scanner: RegistryScanner) -> None:
        """A store whose collection accessor raises yields no records."""

        class GuardedStore(QuestStore):
            @property
            def quests(self) -> Any:  # type: ignore[override]
                raise RuntimeError("not hydrated")

            @quests.setter
            def quests(self, value: Any) -> None:
                pass

        assert scanner.locate_quest_collection([module(Z=GuardedStore([]))]) == []
