"""HTTP endpoints for the assistant proxy.

    POST /functions/chat-with-assistant     {"message": "..."}
    POST /functions/analyze-tasks           {"userId": "...", "tasks": [...]}
    POST /functions/check-assistant-status

The workflow blocks while it polls, so each call runs in a worker thread.
Invocations share nothing and cannot be cancelled once started.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from nexus.assistant.analysis import analyze_tasks
from nexus.assistant.status import check_assistant_status
from nexus.assistant.workflow import ask_assistant
from nexus.common.errors import AuthError, NexusError, RequestValidationError
from nexus.dashboard.deps import current_user, db_path, get_config

logger = logging.getLogger("nexus.assistant.routes")

router = APIRouter(prefix="/functions", tags=["assistant"])


async def _optional_json(request: Request) -> dict[str, Any]:
    if not (await request.body()):
        return {}
    try:
        body = await request.json()
    except ValueError:
        raise RequestValidationError("Request body must be JSON")
    return body if isinstance(body, dict) else {}


@router.post("/chat-with-assistant")
async def chat_with_assistant(
    request: Request,
    user: dict[str, Any] = Depends(current_user),
    cfg: dict[str, Any] = Depends(get_config),
) -> JSONResponse:
    body = await _optional_json(request)
    message = str(body.get("message") or "").strip()
    settings = cfg["assistant"]

    try:
        if not message:
            raise RequestValidationError("No message provided in the request body")
        logger.info("User message: %s", message[:200])
        response = await asyncio.to_thread(ask_assistant, settings, message)
    except NexusError as exc:
        logger.error("Error: %s", exc.message)
        return JSONResponse(exc.to_dict(), status_code=exc.status_code)

    logger.info("Assistant response ready to return")
    return JSONResponse({"response": response})


@router.post("/analyze-tasks")
async def analyze(
    request: Request,
    user: dict[str, Any] = Depends(current_user),
    cfg: dict[str, Any] = Depends(get_config),
) -> JSONResponse:
    body = await _optional_json(request)
    user_id = body.get("userId")

    try:
        if user_id and user_id != user["id"]:
            raise AuthError("User ID does not match the signed-in user")
        result = await asyncio.to_thread(
            analyze_tasks, cfg["assistant"], db_path(cfg), user_id, body.get("tasks"),
        )
    except NexusError as exc:
        logger.error("Error: %s", exc.message)
        return JSONResponse({"success": False, **exc.to_dict()}, status_code=exc.status_code)

    return JSONResponse(result)


@router.post("/check-assistant-status")
async def assistant_status(
    user: dict[str, Any] = Depends(current_user),
    cfg: dict[str, Any] = Depends(get_config),
) -> JSONResponse:
    return JSONResponse(await asyncio.to_thread(check_assistant_status, cfg["assistant"]))
