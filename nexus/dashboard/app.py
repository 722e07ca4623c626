#!/usr/bin/env python3
"""Nexus Tasks API -- FastAPI backend for the task panel and the assistant proxy.

Run with:
    python3 -m uvicorn nexus.dashboard.app:app --host 0.0.0.0 --port 8765
"""

from __future__ import annotations

import copy
import logging
from typing import Any

import yaml
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from nexus.common.config import DEFAULTS, load_env_local, setup_logging
from nexus.common.errors import NexusError
from nexus.dashboard import deps
from nexus.data.store import NexusStore

logger = logging.getLogger("nexus.dashboard")


def _startup_config() -> dict[str, Any]:
    load_env_local()
    try:
        return deps.get_config()
    except (OSError, ValueError, yaml.YAMLError) as exc:
        logger.warning("Failed to load config at startup, using defaults: %s", exc)
        return copy.deepcopy(DEFAULTS)


_cfg = _startup_config()

app = FastAPI(title="Nexus Tasks", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(_cfg.get("cors_origins") or []),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

from nexus.assistant.routes import router as assistant_router  # noqa: E402
from nexus.auth.routes import router as auth_router  # noqa: E402
from nexus.insights.routes import router as insights_router  # noqa: E402
from nexus.tasks.routes import router as tasks_router  # noqa: E402

app.include_router(auth_router)
app.include_router(tasks_router)
app.include_router(insights_router)
app.include_router(assistant_router)


@app.exception_handler(NexusError)
async def _nexus_error_handler(request: Request, exc: NexusError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(exc.to_dict(), status_code=exc.status_code)


@app.on_event("startup")
async def _configure_logging() -> None:
    setup_logging(_cfg)
    logger.info("Nexus Tasks API starting")


@app.get("/api/health")
async def api_health(cfg: dict[str, Any] = Depends(deps.get_config)) -> JSONResponse:
    store = NexusStore(deps.db_path(cfg))
    try:
        db_ok = store.ping()
    finally:
        store.close()
    assistant = cfg["assistant"]
    return JSONResponse({
        "status": "ok" if db_ok else "degraded",
        "database": db_ok,
        "assistant_configured": bool(assistant.get("api_key") and assistant.get("assistant_id")),
    })


# ── Entrypoint ───────────────────────────────────────────────────────────────

def main(host: str = "0.0.0.0", port: int = 8765) -> None:
    import uvicorn
    uvicorn.run(
        "nexus.dashboard.app:app",
        host=host,
        port=port,
        reload=False,
        log_level="info",
    )


if __name__ == "__main__":
    main()
