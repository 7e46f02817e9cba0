"""Registry scanner for locating the host's quest store.

The host keeps its live state in a large object graph of loaded modules that
is not indexed by type and whose export names change between host builds.
The scanner finds the quest store by capability rather than by name: the
first exported object whose type exposes the quest lookup method is the
store, and its collection is returned as raw records.

Search order is data. ``DEFAULT_STRATEGIES`` lists the export slots the store
has been seen under; strategies are tried top-to-bottom, every top-level
module is inspected for each, and the first match wins. There is no fallback
beyond the list.

Only top-level module exports are inspected, so self-referential or cyclic
graphs are safe to scan. The scanner never calls into the store other than
reading its collection attribute.

Example:
    scanner = RegistryScanner()
    records = scanner.locate_quest_collection(host_modules)
    if not records:
        ...  # store not loaded yet, try again on the next poll
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from questsync.constants import (
    QUEST_STORE_CAPABILITY,
    QUEST_STORE_COLLECTION,
    QUEST_STORE_EXPORT_SLOTS,
)
from questsync.logging import get_logger

logger = get_logger(__name__)

# A zero-argument callable returning the host's current module graph
RegistrySource = Callable[[], Any]


def _read(obj: Any, name: str) -> Any:
    """Read a named member from a mapping or a plain object."""
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name, None)


@dataclass(frozen=True)
class ExportSlotStrategy:
    """Look for the store under one export slot of each module.

    Attributes:
        slot: Export name to read from a module's ``exports``.
        capability: Method the candidate's type must define.
        collection: Attribute on the store holding the records.
    """

    slot: str
    capability: str = QUEST_STORE_CAPABILITY
    collection: str = QUEST_STORE_COLLECTION

    def match(self, module: Any) -> Any | None:
        """Return the store exported by ``module`` under this slot, if any."""
        exports = _read(module, "exports")
        if exports is None:
            return None

        candidate = _read(exports, self.slot)
        if candidate is None:
            return None

        # The method must live on the type, not be an ad hoc instance attribute
        if not callable(getattr(type(candidate), self.capability, None)):
            return None

        return candidate


DEFAULT_STRATEGIES: tuple[ExportSlotStrategy, ...] = tuple(
    ExportSlotStrategy(slot=slot) for slot in QUEST_STORE_EXPORT_SLOTS
)


class RegistryScanner:
    """Finds the quest store in a host module graph and exposes its records."""

    def __init__(self, strategies: Sequence[ExportSlotStrategy] = DEFAULT_STRATEGIES) -> None:
        """Initialize the scanner.

        Args:
            strategies: Lookup strategies in priority order.
        """
        self._strategies = tuple(strategies)

    @property
    def strategies(self) -> tuple[ExportSlotStrategy, ...]:
        return self._strategies

    @staticmethod
    def _modules(graph: Any) -> list[Any]:
        if graph is None:
            return []
        try:
            if isinstance(graph, Mapping):
                return list(graph.values())
            return list(graph)
        except Exception as e:
            logger.debug("Module graph is not enumerable", extra={"error": str(e)})
            return []

    def find_store(self, graph: Any) -> tuple[Any, ExportSlotStrategy] | None:
        """Locate the quest store.

        Args:
            graph: Mapping or iterable of host modules.

        Returns:
            The store and the strategy that found it, or None.
        """
        modules = self._modules(graph)

        for strategy in self._strategies:
            for module in modules:
                try:
                    store = strategy.match(module)
                except Exception as e:
                    # Host objects may have accessors that raise
                    logger.debug(
                        "Skipping unreadable module",
                        extra={"slot": strategy.slot, "error": str(e)},
                    )
                    continue
                if store is not None:
                    return store, strategy

        return None

    def locate_quest_collection(self, graph: Any) -> list[Any]:
        """Return the raw quest records, or an empty list if no store is found.

        A missing store is a normal condition (the host may not have loaded
        the feature yet) and is only logged at debug level.
        """
        found = self.find_store(graph)
        if found is None:
            logger.debug(
                "Quest store not found",
                extra={"slots": [s.slot for s in self._strategies]},
            )
            return []

        store, strategy = found
        records: list[Any] | None
        try:
            collection = _read(store, strategy.collection)
            if isinstance(collection, Mapping):
                records = list(collection.values())
            elif isinstance(collection, Iterable) and not isinstance(collection, (str, bytes)):
                records = list(collection)
            else:
                records = None
        except Exception as e:
            logger.warning(
                "Quest collection unreadable",
                extra={"slot": strategy.slot, "error": str(e)},
            )
            return []

        if records is None:
            logger.warning(
                "Quest store has no usable collection",
                extra={"slot": strategy.slot, "collection": strategy.collection},
            )
            return []

        logger.debug(
            "Located quest collection",
            extra={"slot": strategy.slot, "count": len(records)},
        )
        return records
