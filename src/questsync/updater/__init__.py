"""Self-update support for QuestSync.

Components:
    GitRevisionSource: git operations on the install, as result envelopes
    DriftTracker: check/apply state machine over the revision source
    SyncStateStore: the published, process-wide SyncState
"""

from questsync.updater.collaborators import (
    CommandRebuilder,
    DeclineRelauncher,
    PromptRelauncher,
    Rebuilder,
    Relauncher,
)
from questsync.updater.git import GitRevisionSource, normalize_remote_url
from questsync.updater.tracker import DriftTracker, SyncStateStore

__all__ = [
    "CommandRebuilder",
    "DeclineRelauncher",
    "DriftTracker",
    "GitRevisionSource",
    "PromptRelauncher",
    "Rebuilder",
    "Relauncher",
    "SyncStateStore",
    "normalize_remote_url",
]
