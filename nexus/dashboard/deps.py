"""Per-request helpers shared by the routers: config, store, signed-in user."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterator

from fastapi import Depends, Request

from nexus.common.config import REPO_DIR, load_config
from nexus.common.errors import AuthError, RequestValidationError
from nexus.data.store import NexusStore

logger = logging.getLogger("nexus.dashboard.deps")

CONFIG_PATH = REPO_DIR / "config" / "config.yaml"
COOKIE_NAME = "nexus_session"


def get_config() -> dict[str, Any]:
    return load_config(CONFIG_PATH if CONFIG_PATH.exists() else None)


def db_path(cfg: dict[str, Any]) -> Path:
    return Path(cfg["database"]["path"]).expanduser()


def get_store(cfg: dict[str, Any] = Depends(get_config)) -> Iterator[NexusStore]:
    store = NexusStore(db_path(cfg))
    try:
        yield store
    finally:
        store.close()


def session_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:].strip() or None
    return request.cookies.get(COOKIE_NAME)


def current_user(request: Request, store: NexusStore = Depends(get_store)) -> dict[str, Any]:
    """Auth gate: resolve the bearer/cookie session or reject with 401."""
    token = session_token(request)
    if not token:
        raise AuthError("Not signed in")
    user = store.resolve_auth_session(token)
    if not user:
        raise AuthError("Session expired or invalid")
    return user


async def json_body(request: Request) -> dict[str, Any]:
    try:
        body = await request.json()
    except ValueError:
        raise RequestValidationError("Request body must be JSON")
    if not isinstance(body, dict):
        raise RequestValidationError("Request body must be a JSON object")
    return body
