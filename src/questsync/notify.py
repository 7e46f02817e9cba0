"""User-visible notifications.

The core reports every surfaced outcome through a ``Notifier``. How the
message is shown (toast, alert, terminal) belongs to the host; the default
``LoggingNotifier`` only writes to the log and never confirms prompts.
"""

from __future__ import annotations

import logging
from typing import Protocol

from questsync.logging import get_logger
from questsync.models import Notification, NotificationLevel

logger = get_logger(__name__)

_LEVELS: dict[NotificationLevel, int] = {
    "success": logging.INFO,
    "info": logging.INFO,
    "error": logging.ERROR,
}


class Notifier(Protocol):
    """Shows notifications and asks yes/no questions."""

    def notify(self, notification: Notification) -> None: ...

    async def confirm(
        self,
        title: str,
        body: str,
        *,
        confirm_text: str = "OK",
        cancel_text: str = "Cancel",
    ) -> bool: ...


class LoggingNotifier:
    """Notifier that logs notifications and answers every prompt the same way."""

    def __init__(self, *, auto_confirm: bool = False) -> None:
        self._auto_confirm = auto_confirm
        self.history: list[Notification] = []

    def notify(self, notification: Notification) -> None:
        self.history.append(notification)
        logger.log(
            _LEVELS[notification.level],
            notification.body,
            extra={"title": notification.title},
        )

    async def confirm(
        self,
        title: str,
        body: str,
        *,
        confirm_text: str = "OK",
        cancel_text: str = "Cancel",
    ) -> bool:
        logger.info(
            "Prompt answered automatically",
            extra={"title": title, "answer": confirm_text if self._auto_confirm else cancel_text},
        )
        return self._auto_confirm
