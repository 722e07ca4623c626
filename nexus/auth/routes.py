"""Sign-up / sign-in / sign-out and the signed-in user's profile.

- POST /api/auth/signup   - create account + profile, returns a session
- POST /api/auth/signin   - email + password, returns a session
- POST /api/auth/signout  - revoke the current session
- GET  /api/auth/session  - who am I
- GET  /api/profile, PUT /api/profile
"""

from __future__ import annotations

import logging
import re
import sqlite3
from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from nexus.common.errors import AuthError, RequestValidationError, TaskStoreError
from nexus.dashboard.deps import COOKIE_NAME, current_user, get_config, get_store, json_body, session_token
from nexus.data.store import PROFILE_FIELDS, NexusStore

logger = logging.getLogger("nexus.auth")

router = APIRouter(prefix="/api", tags=["auth"])

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MIN_PASSWORD_LENGTH = 6


def _session_response(store: NexusStore, user: dict[str, Any], ttl_hours: int, status_code: int = 200) -> JSONResponse:
    session = store.create_auth_session(user["id"], ttl_hours=ttl_hours)
    resp = JSONResponse(
        {
            "user": user,
            "profile": store.get_profile(user["id"]),
            "access_token": session["token"],
            "expires_at": session["expires_at"],
        },
        status_code=status_code,
    )
    resp.set_cookie(
        key=COOKIE_NAME,
        value=session["token"],
        max_age=ttl_hours * 3600,
        httponly=True,
        samesite="lax",
    )
    return resp


@router.post("/auth/signup")
async def signup(
    request: Request,
    store: NexusStore = Depends(get_store),
    cfg: dict[str, Any] = Depends(get_config),
) -> JSONResponse:
    body = await json_body(request)
    email = str(body.get("email", "")).strip()
    password = str(body.get("password", ""))
    full_name = str(body.get("full_name", "")).strip()

    if not _EMAIL_RE.match(email):
        raise RequestValidationError("A valid email is required")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise RequestValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

    try:
        user = store.create_user(email, password, full_name=full_name)
    except sqlite3.IntegrityError:
        raise RequestValidationError("An account with this email already exists")
    except sqlite3.Error as exc:
        raise TaskStoreError("Failed to create account", str(exc)) from exc

    return _session_response(store, user, int(cfg["auth"]["session_ttl_hours"]), status_code=201)


@router.post("/auth/signin")
async def signin(
    request: Request,
    store: NexusStore = Depends(get_store),
    cfg: dict[str, Any] = Depends(get_config),
) -> JSONResponse:
    body = await json_body(request)
    user = store.authenticate(str(body.get("email", "")), str(body.get("password", "")))
    if not user:
        logger.info("Failed sign-in for %s", body.get("email"))
        raise AuthError("Invalid email or password")
    return _session_response(store, user, int(cfg["auth"]["session_ttl_hours"]))


@router.post("/auth/signout")
async def signout(request: Request, store: NexusStore = Depends(get_store)) -> JSONResponse:
    token = session_token(request)
    revoked = store.revoke_auth_session(token) if token else False
    resp = JSONResponse({"ok": True, "revoked": revoked})
    resp.delete_cookie(key=COOKIE_NAME)
    return resp


@router.get("/auth/session")
async def get_session(
    user: dict[str, Any] = Depends(current_user),
    store: NexusStore = Depends(get_store),
) -> JSONResponse:
    return JSONResponse({"user": user, "profile": store.get_profile(user["id"])})


@router.get("/profile")
async def get_profile(
    user: dict[str, Any] = Depends(current_user),
    store: NexusStore = Depends(get_store),
) -> JSONResponse:
    return JSONResponse(store.get_profile(user["id"]))


@router.put("/profile")
async def update_profile(
    request: Request,
    user: dict[str, Any] = Depends(current_user),
    store: NexusStore = Depends(get_store),
) -> JSONResponse:
    body = await json_body(request)
    if "productivity_score" in body:
        try:
            body["productivity_score"] = int(body["productivity_score"])
        except (TypeError, ValueError):
            raise RequestValidationError("productivity_score must be an integer")
    try:
        profile = store.update_profile(user["id"], **{k: v for k, v in body.items() if k in PROFILE_FIELDS})
    except sqlite3.Error as exc:
        raise TaskStoreError("Failed to update profile", str(exc)) from exc
    return JSONResponse(profile)
