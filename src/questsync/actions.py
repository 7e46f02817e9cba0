"""Action gateway for state-changing requests.

Two actions are supported:

    enroll(quest_id)      POST /quests/{id}/enroll on the request API
    run_remote_script()   download a markdown document, extract its first
                          code block for the configured language, and hand it
                          to a script executor

Neither action touches local quest state. The registry is the source of
truth, so callers re-poll after a short delay to see the effect.

Remote script content is never evaluated here. It is passed to an explicitly
injected ``ScriptExecutor``; the default executor refuses, and the action is
also refused unless ``script.enabled`` is set in the configuration.

Example:
    gateway = ActionGateway(config.api, config.script)
    outcome = await gateway.enroll("1234567890")
    print(outcome.title, outcome.message)
    await gateway.close()
"""

from __future__ import annotations

import re
import time
from typing import TYPE_CHECKING, Protocol

import httpx

from questsync.constants import NOTIFY_ERROR_TITLE, NOTIFY_TITLE, QUEST_ENROLL_PATH
from questsync.exceptions import (
    EnrollmentError,
    ScriptError,
    ScriptExecutionError,
    ScriptExtractionError,
    ScriptFetchError,
)
from questsync.logging import get_logger
from questsync.models import ActionOutcome

if TYPE_CHECKING:
    from questsync.config import ApiConfig, ScriptConfig

logger = get_logger(__name__)

ENROLL_SUCCESS_MESSAGE = "Successfully enrolled in quest!"
SCRIPT_STARTED_MESSAGE = (
    "Quest Completion Started! Please check back soon to claim completed quests."
)
SCRIPT_DISABLED_MESSAGE = "Remote script execution is disabled in the configuration."

_STAGE_MESSAGES = {
    "script": "Quest script error: {error}",
    "fetch": "Failed to fetch quest script: {error}",
    "extract": "Failed to read quest script: {error}",
    "execute": "Failed to run quest script: {error}",
}


class ScriptExecutor(Protocol):
    """Runs an extracted script in a sandbox owned by the host."""

    async def execute(self, script: str) -> None:
        """Run the script.

        Raises:
            ScriptExecutionError: If the script cannot be run.
        """
        ...


class DisabledScriptExecutor:
    """Executor that refuses to run anything."""

    async def execute(self, script: str) -> None:
        raise ScriptExecutionError(
            "No script executor is configured",
            {"script_chars": len(script)},
        )


def extract_code_block(markdown: str, language: str) -> str:
    """Return the first fenced code block tagged with ``language``.

    Raises:
        ScriptExtractionError: If there is no such block or it is empty.
    """
    pattern = re.compile(rf"```{re.escape(language)}\r?\n([\s\S]*?)```")
    match = pattern.search(markdown)
    if match is None or not match.group(1).strip():
        raise ScriptExtractionError(f"Could not find {language} code in the script document")
    return match.group(1).strip()


class ActionGateway:
    """Issues enroll and remote script requests."""

    def __init__(
        self,
        api_config: ApiConfig,
        script_config: ScriptConfig,
        *,
        executor: ScriptExecutor | None = None,
    ) -> None:
        """Initialize the gateway.

        Args:
            api_config: Request API settings.
            script_config: Remote script settings.
            executor: Collaborator that runs extracted scripts.
        """
        self._api_config = api_config
        self._script_config = script_config
        self._executor: ScriptExecutor = executor or DisabledScriptExecutor()
        self._api_client: httpx.AsyncClient | None = None
        self._client: httpx.AsyncClient | None = None

    def _get_api_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client for the request API."""
        if self._api_client is None:
            headers = {
                "Accept": "application/json",
                "Content-Type": "application/json",
            }
            if self._api_config.token:
                headers["Authorization"] = self._api_config.token
            self._api_client = httpx.AsyncClient(
                base_url=self._api_config.base_url.rstrip("/"),
                headers=headers,
                timeout=self._api_config.timeout_seconds,
            )
        return self._api_client

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the unauthenticated client used for the script."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._api_config.timeout_seconds,
                follow_redirects=True,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP clients and release resources."""
        for client in (self._api_client, self._client):
            if client is not None:
                await client.aclose()
        self._api_client = None
        self._client = None

    # =========================================================================
    # ENROLL
    # =========================================================================

    async def _post_enroll(self, quest_id: str) -> None:
        client = self._get_api_client()
        body = {
            "location": self._api_config.enroll_location,
            "is_targeted": False,
            "metadata_raw": None,
            "metadata_sealed": None,
        }
        try:
            response = await client.post(QUEST_ENROLL_PATH.format(quest_id=quest_id), json=body)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise EnrollmentError(
                f"Request API returned {e.response.status_code}",
                {"quest_id": quest_id, "status_code": e.response.status_code},
            ) from e
        except httpx.RequestError as e:
            raise EnrollmentError(
                f"Network error: {e}",
                {"quest_id": quest_id},
            ) from e

    async def enroll(self, quest_id: str) -> ActionOutcome:
        """Enroll the user in a quest.

        Returns:
            The user-visible outcome. Local quest state is not updated.
        """
        start_time = time.monotonic()
        try:
            await self._post_enroll(quest_id)
        except EnrollmentError as e:
            logger.error("Failed to enroll in quest", extra={"quest_id": quest_id, "error": str(e)})
            return ActionOutcome(
                ok=False,
                title=NOTIFY_ERROR_TITLE,
                message=f"Failed to enroll: {e.message}",
            )

        duration_ms = int((time.monotonic() - start_time) * 1000)
        logger.info("Enrolled in quest", extra={"quest_id": quest_id, "duration_ms": duration_ms})
        return ActionOutcome(ok=True, title=NOTIFY_TITLE, message=ENROLL_SUCCESS_MESSAGE)

    # =========================================================================
    # REMOTE SCRIPT
    # =========================================================================

    async def fetch_remote_script(self) -> str:
        """Download the script document and extract the script.

        Raises:
            ScriptFetchError: On network errors or a non-2xx response.
            ScriptExtractionError: If the document has no matching code block.
        """
        url = self._script_config.url
        client = self._get_client()

        try:
            response = await client.get(url)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ScriptFetchError(
                f"Failed to fetch: {e.response.status_code}",
                {"url": url},
            ) from e
        except httpx.RequestError as e:
            raise ScriptFetchError(f"Network error: {e}", {"url": url}) from e

        script = extract_code_block(response.text, self._script_config.language)
        logger.info("Fetched remote script", extra={"url": url, "chars": len(script)})
        return script

    async def run_remote_script(self) -> ActionOutcome:
        """Fetch the remote script and hand it to the executor.

        Each failing stage (fetch, extract, execute) produces its own message.
        """
        if not self._script_config.enabled:
            logger.warning("Remote script requested while disabled")
            return ActionOutcome(ok=False, title=NOTIFY_ERROR_TITLE, message=SCRIPT_DISABLED_MESSAGE)

        try:
            logger.info("Fetching quest script")
            script = await self.fetch_remote_script()

            logger.info("Running quest script")
            try:
                await self._executor.execute(script)
            except ScriptError:
                raise
            except Exception as e:
                raise ScriptExecutionError(str(e)) from e

        except ScriptError as e:
            logger.error(
                "Failed to run remote script",
                extra={"stage": e.stage, "error": str(e)},
            )
            return ActionOutcome(
                ok=False,
                title=NOTIFY_ERROR_TITLE,
                message=_STAGE_MESSAGES[e.stage].format(error=e.message),
            )

        return ActionOutcome(ok=True, title=NOTIFY_TITLE, message=SCRIPT_STARTED_MESSAGE)
