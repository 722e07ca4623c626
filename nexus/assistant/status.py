"""Single-shot check that the assistant credentials and id are usable."""

from __future__ import annotations

import logging
from typing import Any

import requests

from nexus.assistant.client import AssistantClient
from nexus.common.errors import MalformedResponseError, UpstreamError

logger = logging.getLogger("nexus.assistant.status")


def check_assistant_status(
    settings: dict[str, Any], session: requests.Session | None = None
) -> dict[str, Any]:
    """Return ``{configured, error?, details?, assistantName?, assistantModel?}``. Never raises."""
    logger.info("Checking OpenAI API configuration...")

    if not settings.get("api_key"):
        logger.info("OPENAI_API_KEY is not set")
        return {
            "configured": False,
            "error": "Missing API key",
            "details": "OpenAI API key is not configured. Set OPENAI_API_KEY.",
        }
    if not settings.get("assistant_id"):
        logger.info("ASSISTANT_ID is not set")
        return {
            "configured": False,
            "error": "Missing Assistant ID",
            "details": "OpenAI Assistant ID is not configured. Set ASSISTANT_ID.",
        }

    try:
        client = AssistantClient.from_settings(settings, session=session)
        assistant = client.get_assistant(settings["assistant_id"])
    except UpstreamError as exc:
        if exc.status is None:
            logger.error("Error validating OpenAI configuration: %s", exc)
            return {
                "configured": False,
                "error": "Validation error",
                "details": "Failed to connect to OpenAI API to validate configuration",
            }
        logger.error("Error validating assistant: %s", exc)
        return {
            "configured": False,
            "error": "Invalid configuration",
            "details": exc.upstream_message or "Failed to validate OpenAI Assistant configuration",
        }
    except MalformedResponseError as exc:
        logger.error("Unexpected assistant lookup response: %s", exc)
        return {
            "configured": False,
            "error": "Invalid configuration",
            "details": exc.message,
        }

    logger.info("OpenAI API key and Assistant ID are valid")
    return {
        "configured": True,
        "assistantName": assistant.get("name"),
        "assistantModel": assistant.get("model"),
    }
