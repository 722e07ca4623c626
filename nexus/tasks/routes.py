"""FastAPI router for tasks, comments and the command bar."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from nexus.common.dates import GROUP_ORDER, format_date, format_time
from nexus.dashboard.deps import current_user, get_store, json_body
from nexus.data.store import NexusStore
from nexus.tasks import service

logger = logging.getLogger("nexus.tasks.routes")

router = APIRouter(prefix="/api", tags=["tasks"])


# ------------------------------------------------------------------
# Task CRUD
# ------------------------------------------------------------------

@router.get("/tasks")
async def list_tasks(
    user: dict[str, Any] = Depends(current_user),
    store: NexusStore = Depends(get_store),
) -> JSONResponse:
    return JSONResponse(service.fetch_tasks(store, user["id"]))


@router.post("/tasks")
async def create_task(
    request: Request,
    user: dict[str, Any] = Depends(current_user),
    store: NexusStore = Depends(get_store),
) -> JSONResponse:
    body = await json_body(request)
    task = service.create_task(store, user["id"], body)
    return JSONResponse(task, status_code=201)


@router.get("/tasks/grouped")
async def grouped_tasks(
    filter: str = "all",
    q: str = "",
    user: dict[str, Any] = Depends(current_user),
    store: NexusStore = Depends(get_store),
) -> JSONResponse:
    """Tasks bucketed Overdue/Today/Tomorrow/Later after filter + search."""
    tasks = service.fetch_tasks(store, user["id"])
    groups = service.grouped_tasks(tasks, filter, q)
    now = datetime.now()
    return JSONResponse({
        "date": format_date(now),
        "time": format_time(now),
        "order": [key for key in GROUP_ORDER if key in groups],
        "groups": groups,
        "stats": service.task_stats(tasks),
    })


@router.get("/tasks/stats")
async def stats(
    user: dict[str, Any] = Depends(current_user),
    store: NexusStore = Depends(get_store),
) -> JSONResponse:
    return JSONResponse(service.task_stats(service.fetch_tasks(store, user["id"])))


@router.patch("/tasks/{task_id}")
async def update_task(
    task_id: str,
    request: Request,
    user: dict[str, Any] = Depends(current_user),
    store: NexusStore = Depends(get_store),
) -> JSONResponse:
    body = await json_body(request)
    service.get_owned_task(store, task_id, user["id"])
    return JSONResponse(service.update_task(store, task_id, body))


@router.post("/tasks/{task_id}/toggle")
async def toggle_task(
    task_id: str,
    user: dict[str, Any] = Depends(current_user),
    store: NexusStore = Depends(get_store),
) -> JSONResponse:
    task = service.get_owned_task(store, task_id, user["id"])
    return JSONResponse(service.toggle_task_completion(store, task))


@router.delete("/tasks/{task_id}")
async def delete_task(
    task_id: str,
    user: dict[str, Any] = Depends(current_user),
    store: NexusStore = Depends(get_store),
) -> JSONResponse:
    service.get_owned_task(store, task_id, user["id"])
    return JSONResponse({"ok": service.delete_task(store, task_id)})


# ------------------------------------------------------------------
# Comments
# ------------------------------------------------------------------

@router.get("/tasks/{task_id}/comments")
async def list_comments(
    task_id: str,
    user: dict[str, Any] = Depends(current_user),
    store: NexusStore = Depends(get_store),
) -> JSONResponse:
    service.get_owned_task(store, task_id, user["id"])
    return JSONResponse(service.get_task_comments(store, task_id))


@router.post("/tasks/{task_id}/comments")
async def add_comment(
    task_id: str,
    request: Request,
    user: dict[str, Any] = Depends(current_user),
    store: NexusStore = Depends(get_store),
) -> JSONResponse:
    body = await json_body(request)
    service.get_owned_task(store, task_id, user["id"])
    comment = service.add_task_comment(store, task_id, user["id"], str(body.get("content", "")))
    return JSONResponse(comment, status_code=201)


# ------------------------------------------------------------------
# Command bar
# ------------------------------------------------------------------

@router.post("/command")
async def command(
    request: Request,
    user: dict[str, Any] = Depends(current_user),
) -> JSONResponse:
    body = await json_body(request)
    return JSONResponse(service.parse_command(str(body.get("command", ""))))
