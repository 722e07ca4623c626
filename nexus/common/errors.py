"""Error taxonomy shared by the task store, auth gate and assistant proxy.

Every error carries the user-facing ``details`` text and the remediation
``action`` the client should offer (``settings`` for configuration problems,
``retry`` for transient ones).
"""

from __future__ import annotations

from typing import Any


class NexusError(Exception):
    kind = "error"
    action = "retry"
    retryable = False
    status_code = 500
    default_details = "An unexpected error occurred."

    def __init__(self, message: str, details: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or self.default_details

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.message,
            "details": self.details,
            "kind": self.kind,
            "action": self.action,
            "retryable": self.retryable,
        }


class ConfigurationError(NexusError):
    """Missing or invalid credentials. Requires operator action."""

    kind = "configuration"
    action = "settings"
    default_details = (
        "Missing required environment variables. Please ensure OPENAI_API_KEY "
        "and ASSISTANT_ID are set."
    )


class UpstreamError(NexusError):
    """Network failure or non-2xx response from the assistant provider."""

    kind = "upstream"
    retryable = True
    default_details = (
        "Failed to connect to the assistant API. This could be due to network "
        "issues or rate limiting."
    )

    def __init__(
        self,
        message: str,
        details: str | None = None,
        status: int | None = None,
        upstream_message: str | None = None,
    ) -> None:
        super().__init__(message, details)
        self.status = status
        self.upstream_message = upstream_message


class RunNotCompletedError(NexusError):
    """The assistant run failed, was cancelled, needed action or timed out."""

    kind = "timeout"
    retryable = True
    default_details = "The assistant did not finish in time. Please try again."

    def __init__(self, message: str, run_status: str | None = None, attempts: int = 0) -> None:
        super().__init__(message)
        self.run_status = run_status
        self.attempts = attempts


class MalformedResponseError(NexusError):
    kind = "malformed"
    default_details = "The assistant returned an unexpected response."


class TaskStoreError(NexusError):
    kind = "store"
    default_details = "The task database could not complete the request."


class NotFoundError(TaskStoreError):
    kind = "not_found"
    action = "none"
    status_code = 404
    default_details = "The requested record does not exist."


class RequestValidationError(NexusError):
    kind = "validation"
    action = "none"
    status_code = 400
    default_details = "The request body is invalid."


class AuthError(NexusError):
    kind = "auth"
    action = "signin"
    status_code = 401
    default_details = "Please sign in to continue."
