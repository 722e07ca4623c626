"""Thin client for the OpenAI Assistants REST API.

Only the calls the orchestration workflow needs: threads, messages, runs and
the assistant lookup used by the status check. Every failure (network or
non-2xx) surfaces as ``UpstreamError`` carrying the provider's message.
"""

from __future__ import annotations

import logging
from typing import Any

import requests

from nexus.common.errors import ConfigurationError, MalformedResponseError, UpstreamError

logger = logging.getLogger("nexus.assistant.client")


def require_credentials(settings: dict[str, Any]) -> tuple[str, str]:
    """Return ``(api_key, assistant_id)`` or raise ConfigurationError."""
    api_key = settings.get("api_key")
    assistant_id = settings.get("assistant_id")
    if not api_key:
        logger.error("OPENAI_API_KEY is not set")
        raise ConfigurationError(
            "OpenAI API key is not configured. Please set the OPENAI_API_KEY environment variable."
        )
    if not assistant_id:
        logger.error("ASSISTANT_ID is not set")
        raise ConfigurationError(
            "OpenAI Assistant ID is not configured. Please set the ASSISTANT_ID environment variable."
        )
    return api_key, assistant_id


def _upstream_message(resp: requests.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text[:300] or f"HTTP {resp.status_code}"
    if isinstance(body, dict):
        err = body.get("error")
        if isinstance(err, dict) and err.get("message"):
            return str(err["message"])
    return str(body)[:300]


class AssistantClient:
    """HTTP calls against one assistant, authenticated with a bearer key."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.openai.com/v1",
        beta_header: str = "assistants=v2",
        timeout: float = 30,
        session: requests.Session | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._session = session or requests.Session()
        self._headers = {
            "Authorization": f"Bearer {api_key}",
            "OpenAI-Beta": beta_header,
            "Content-Type": "application/json",
        }

    @classmethod
    def from_settings(
        cls, settings: dict[str, Any], session: requests.Session | None = None
    ) -> AssistantClient:
        api_key, _ = require_credentials(settings)
        return cls(
            api_key,
            base_url=settings.get("base_url") or "https://api.openai.com/v1",
            beta_header=settings.get("beta_header") or "assistants=v2",
            timeout=float(settings.get("request_timeout") or 30),
            session=session,
        )

    def _request(self, method: str, path: str, what: str, json_body: dict | None = None) -> dict[str, Any]:
        url = f"{self._base_url}{path}"
        try:
            resp = self._session.request(
                method, url, headers=self._headers, json=json_body, timeout=self._timeout,
            )
        except requests.RequestException as exc:
            logger.error("%s request error: %s", what, exc)
            raise UpstreamError(f"Failed to fetch: {what} request could not reach the assistant API ({exc})") from exc

        if not resp.ok:
            message = _upstream_message(resp)
            logger.error("%s error (HTTP %s): %s", what, resp.status_code, message)
            raise UpstreamError(
                f"Failed to {what}: {message}", status=resp.status_code, upstream_message=message,
            )

        try:
            data = resp.json()
        except ValueError as exc:
            raise UpstreamError(f"Failed to {what}: response was not JSON", status=resp.status_code) from exc
        if not isinstance(data, dict):
            logger.error("%s returned %s instead of an object", what, type(data).__name__)
            raise MalformedResponseError(f"Failed to {what}: response was not a JSON object")
        return data

    # ------------------------------------------------------------------
    # Threads, messages, runs
    # ------------------------------------------------------------------

    def create_thread(self) -> dict[str, Any]:
        return self._request("POST", "/threads", "create thread", {})

    def add_message(self, thread_id: str, content: str) -> dict[str, Any]:
        return self._request(
            "POST", f"/threads/{thread_id}/messages", "create message",
            {"role": "user", "content": content},
        )

    def create_run(self, thread_id: str, assistant_id: str) -> dict[str, Any]:
        return self._request(
            "POST", f"/threads/{thread_id}/runs", "create run",
            {"assistant_id": assistant_id},
        )

    def get_run(self, thread_id: str, run_id: str) -> dict[str, Any]:
        return self._request("GET", f"/threads/{thread_id}/runs/{run_id}", "check run status")

    def list_messages(self, thread_id: str) -> dict[str, Any]:
        return self._request("GET", f"/threads/{thread_id}/messages", "retrieve messages")

    # ------------------------------------------------------------------
    # Assistants
    # ------------------------------------------------------------------

    def get_assistant(self, assistant_id: str) -> dict[str, Any]:
        return self._request("GET", f"/assistants/{assistant_id}", "validate assistant")
