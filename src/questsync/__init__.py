"""QuestSync - quest progress discovery and self-updating install.

Discovers time-bound quest records in a host's live state registry,
normalizes them into a stable model on a fixed poll interval, and keeps
the installed copy of the add-on in sync with its upstream git repository.
"""

from questsync.constants import VERSION

__version__ = VERSION

__all__ = ["__version__"]
