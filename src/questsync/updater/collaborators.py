"""Rebuild and relaunch collaborators used when applying an update.

The tracker only interprets their ``OperationResult``; how a rebuild or a
relaunch actually happens is up to the host. Provided implementations:

    CommandRebuilder   runs a configured build command in the install root
    PromptRelauncher   asks through a notifier, then calls a host callback
    DeclineRelauncher  never restarts (the CLI has nothing to relaunch)
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from questsync.logging import get_logger
from questsync.models import OperationResult
from questsync.updater.git import CommandRunner, run_subprocess

if TYPE_CHECKING:
    from questsync.notify import Notifier

logger = get_logger(__name__)

RELAUNCH_PROMPT_TITLE = "Update Success!"
RELAUNCH_PROMPT_BODY = "Quest Completer updated successfully. Restart to apply changes?"


class Rebuilder(Protocol):
    """Rebuilds the install after new sources were pulled."""

    async def rebuild(self) -> OperationResult: ...


class Relauncher(Protocol):
    """Restarts the host so a rebuilt install takes effect."""

    async def confirm_relaunch(self) -> bool:
        """Ask the user whether to restart now. Declining is not an error."""
        ...

    async def relaunch(self) -> OperationResult: ...


class CommandRebuilder:
    """Runs a build command in the install root."""

    def __init__(
        self,
        command: Sequence[str],
        cwd: Path,
        *,
        runner: CommandRunner | None = None,
    ) -> None:
        self._command = tuple(command)
        self._cwd = cwd
        self._runner = runner or run_subprocess

    async def rebuild(self) -> OperationResult:
        if not self._command:
            return OperationResult(ok=True, message="Nothing to rebuild")

        logger.info("Rebuilding install", extra={"command": " ".join(self._command)})
        try:
            output = await self._runner(self._command, self._cwd)
        except Exception as e:
            return OperationResult(ok=False, message=f"Failed to start build: {e}")

        if output.returncode != 0:
            return OperationResult(
                ok=False,
                message=output.stderr.strip() or f"Build exited with code {output.returncode}",
            )
        return OperationResult(ok=True)


class PromptRelauncher:
    """Asks through a notifier before calling a host-provided relaunch."""

    def __init__(
        self,
        notifier: Notifier,
        relaunch: Callable[[], Awaitable[OperationResult]],
    ) -> None:
        self._notifier = notifier
        self._relaunch = relaunch

    async def confirm_relaunch(self) -> bool:
        return await self._notifier.confirm(
            RELAUNCH_PROMPT_TITLE,
            RELAUNCH_PROMPT_BODY,
            confirm_text="Restart",
            cancel_text="Later",
        )

    async def relaunch(self) -> OperationResult:
        return await self._relaunch()


class DeclineRelauncher:
    """Relauncher that always declines to restart."""

    async def confirm_relaunch(self) -> bool:
        return False

    async def relaunch(self) -> OperationResult:
        return OperationResult(ok=False, message="Relaunch is not supported here")
