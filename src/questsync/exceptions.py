"""Custom exceptions for QuestSync.

Only failures that cross a user-facing boundary are modelled as exceptions.
Revision control failures never raise; they come back as ``RevisionFailed``
envelopes (see ``questsync.models``). A missing quest store or a skipped
quest record are normal conditions and are not errors at all.

Exception Hierarchy:
    QuestSyncError (base)
    ├── ConfigError - Configuration loading/validation failures
    └── ActionError (base for state-changing request failures)
        ├── EnrollmentError - Enroll request rejected or unreachable
        └── ScriptError (base for remote script failures)
            ├── ScriptFetchError - Script document could not be downloaded
            ├── ScriptExtractionError - Document has no usable code block
            └── ScriptExecutionError - Executor refused or failed
"""

from typing import Any


class QuestSyncError(Exception):
    """Base exception for all QuestSync errors.

    Args:
        message: Human-readable error message.
        details: Optional dictionary with additional error context.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigError(QuestSyncError):
    """Raised when configuration loading or validation fails.

    Examples:
        - Invalid YAML syntax in .questsync.yaml
        - Values that fail model validation
    """


class ActionError(QuestSyncError):
    """Base exception for state-changing actions.

    Args:
        message: Human-readable error message.
        action: Name of the action that failed ("enroll", "script").
        details: Optional dictionary with additional error context.
    """

    def __init__(
        self,
        message: str,
        action: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.action = action

    def __str__(self) -> str:
        base = f"[{self.action}] {self.message}"
        if self.details:
            return f"{base} | Details: {self.details}"
        return base


class EnrollmentError(ActionError):
    """Raised when the enroll request is rejected or cannot be sent.

    Examples:
        - Request API returns a non-2xx status
        - Network errors
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, action="enroll", details=details)


class ScriptError(ActionError):
    """Base exception for the remote script action."""

    # Short label used in user-visible messages
    stage: str = "script"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, action="script", details=details)


class ScriptFetchError(ScriptError):
    """Raised when the script document cannot be downloaded."""

    stage = "fetch"


class ScriptExtractionError(ScriptError):
    """Raised when the document has no fenced block for the script language."""

    stage = "extract"


class ScriptExecutionError(ScriptError):
    """Raised when the executor refuses or fails to run the script."""

    stage = "execute"
