"""FastAPI router for the insight card."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from nexus.common.errors import NotFoundError
from nexus.dashboard.deps import current_user, get_store
from nexus.data.store import NexusStore
from nexus.insights import heuristic
from nexus.tasks import service

router = APIRouter(prefix="/api/insights", tags=["insights"])


@router.get("/latest")
async def latest_insight(
    user: dict[str, Any] = Depends(current_user),
    store: NexusStore = Depends(get_store),
) -> JSONResponse:
    return JSONResponse({"insight": heuristic.get_latest_insight(store, user["id"])})


@router.post("/generate")
async def generate_insight(
    user: dict[str, Any] = Depends(current_user),
    store: NexusStore = Depends(get_store),
) -> JSONResponse:
    """Local heuristic insight over the user's current tasks."""
    tasks = service.fetch_tasks(store, user["id"])
    insight = heuristic.generate_task_insights(store, user["id"], tasks)
    return JSONResponse({"insight": insight}, status_code=201 if insight else 200)


@router.post("/{insight_id}/read")
async def mark_read(
    insight_id: str,
    user: dict[str, Any] = Depends(current_user),
    store: NexusStore = Depends(get_store),
) -> JSONResponse:
    if not heuristic.mark_insight_as_read(store, insight_id, user["id"]):
        raise NotFoundError("Insight not found")
    return JSONResponse({"ok": True})
