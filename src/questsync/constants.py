"""Constants and configuration defaults for QuestSync.

This module contains all magic values, default configurations, and constants
used throughout the application. Import from here instead of hardcoding values.
"""

from typing import Final

# =============================================================================
# VERSION
# =============================================================================
VERSION: Final[str] = "0.1.0"

# =============================================================================
# POLLER DEFAULTS
# =============================================================================
DEFAULT_POLL_INTERVAL_SECONDS: Final[float] = 5.0
DEFAULT_ENROLL_REFRESH_DELAY_SECONDS: Final[float] = 0.5
DEFAULT_SCRIPT_REFRESH_DELAY_SECONDS: Final[float] = 2.0

# =============================================================================
# QUEST REGISTRY
# =============================================================================
QUEST_STORE_CAPABILITY: Final[str] = "getQuest"
QUEST_STORE_COLLECTION: Final[str] = "quests"
# Export slots the quest store has been seen under, most recent first
QUEST_STORE_EXPORT_SLOTS: Final[tuple[str, ...]] = ("Z", "A")

# =============================================================================
# QUEST REWARDS
# =============================================================================
DEFAULT_CDN_BASE_URL: Final[str] = "https://cdn.discordapp.com"
ANIMATED_REWARD_TYPE: Final[int] = 4
ANIMATED_REWARD_IMAGE_URL: Final[str] = (
    "https://cdn.discordapp.com/assets/content/"
    "fb761d9c206f93cd8c4e7301798abe3f623039a4054f2e7accd019e1bb059fc8.webm?format=webp"
)
UNKNOWN_REWARD_NAME: Final[str] = "Unknown Reward"

# =============================================================================
# REQUEST API
# =============================================================================
DEFAULT_API_BASE_URL: Final[str] = "https://discord.com/api/v9"
DEFAULT_HTTP_TIMEOUT_SECONDS: Final[float] = 30.0
QUEST_ENROLL_PATH: Final[str] = "/quests/{quest_id}/enroll"
QUEST_ENROLL_LOCATION: Final[int] = 11

# =============================================================================
# REMOTE SCRIPT
# =============================================================================
DEFAULT_SCRIPT_URL: Final[str] = (
    "https://gist.githubusercontent.com/aamiaa/204cd9d42013ded9faf646fae7f89fbb"
    "/raw/CompleteDiscordQuest.md"
)
DEFAULT_SCRIPT_LANGUAGE: Final[str] = "js"

# =============================================================================
# UPDATER / GIT
# =============================================================================
DEFAULT_GIT_EXECUTABLE: Final[str] = "git"
GIT_REMOTE_NAME: Final[str] = "origin"
GIT_LOG_FORMAT: Final[str] = "%H;%an;%s"
GIT_LOG_DELIMITER: Final[str] = ";"
SHORT_HASH_LENGTH: Final[int] = 7
DEFAULT_UPDATE_NOTIFY_DELAY_SECONDS: Final[float] = 3.0

# Sandboxed (flatpak) hosts must bridge every command to the host
SANDBOX_SPAWN_PREFIX: Final[tuple[str, ...]] = ("flatpak-spawn", "--host")
SANDBOX_MARKER_FILE: Final[str] = "/.flatpak-info"
SANDBOX_ENV_VAR: Final[str] = "FLATPAK_ID"

# =============================================================================
# NOTIFICATIONS
# =============================================================================
NOTIFY_TITLE: Final[str] = "Quest Completer"
NOTIFY_ERROR_TITLE: Final[str] = "Quest Completer Error"
NOTIFY_UPDATE_TITLE: Final[str] = "Quest Completer Update"

# =============================================================================
# CONFIG FILE
# =============================================================================
CONFIG_FILE_NAME: Final[str] = ".questsync.yaml"

# =============================================================================
# LOGGING
# =============================================================================
LOG_FORMAT: Final[str] = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATE_FORMAT: Final[str] = "%Y-%m-%d %H:%M:%S"
LOG_FORMAT_NO_TIME: Final[str] = "%(levelname)-8s | %(name)s | %(message)s"
NOISY_LOGGERS: Final[tuple[str, ...]] = ("httpx", "httpcore", "asyncio")
