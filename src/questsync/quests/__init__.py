"""Quest discovery for QuestSync.

Components:
    RegistryScanner: Finds the quest store in the host's module graph
    normalize: Turns raw records into Quest models
    QuestPoller: Re-runs both on an interval and publishes snapshots

Example:
    from questsync.quests import QuestPoller, RegistryScanner

    poller = QuestPoller(RegistryScanner(), lambda: host.modules)
    poller.subscribe(lambda snapshot: print(len(snapshot.quests)))
    poller.start()
"""

from questsync.quests.normalizer import normalize
from questsync.quests.poller import QuestPoller
from questsync.quests.scanner import DEFAULT_STRATEGIES, ExportSlotStrategy, RegistryScanner

__all__ = [
    "DEFAULT_STRATEGIES",
    "ExportSlotStrategy",
    "QuestPoller",
    "RegistryScanner",
    "normalize",
]
