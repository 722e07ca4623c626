"""Shared fixtures: temp config + DB, a scripted fake of the assistant API, API client."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable
from unittest.mock import patch
from urllib.parse import urlparse

import httpx
import pytest
import pytest_asyncio
import requests

from nexus.data.store import NexusStore

REPO_DIR = Path(__file__).resolve().parent.parent

_ENV_KEYS = (
    "OPENAI_API_KEY",
    "ASSISTANT_ID",
    "OPENAI_BASE_URL",
    "NEXUS_DB_PATH",
    "NEXUS_LOG_DIR",
    "NEXUS_LOG_LEVEL",
)

BASE_URL = "https://api.test/v1"


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Keep real credentials in the developer's shell out of the tests."""
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def make_response(status: int, body: Any) -> requests.Response:
    resp = requests.Response()
    resp.status_code = status
    resp._content = json.dumps(body).encode()
    resp.headers["Content-Type"] = "application/json"
    return resp


def assistant_message(*texts: str) -> dict[str, Any]:
    return {
        "role": "assistant",
        "content": [{"type": "text", "text": {"value": t, "annotations": []}} for t in texts],
    }


class FakeUpstream:
    """Stands in for ``requests.Session`` against the Assistants API.

    ``run_statuses`` are returned by successive run-status checks (the last
    one repeats). ``errors`` maps ``"METHOD /path"`` to either an exception
    instance (raised) or a ``(status, body)`` tuple (returned).
    """

    def __init__(
        self,
        run_statuses: list[str] | None = None,
        messages: list[dict[str, Any]] | None = None,
        initial_run_status: str = "queued",
        errors: dict[str, Any] | None = None,
    ) -> None:
        self.run_statuses = list(run_statuses or ["in_progress", "completed"])
        self.messages = messages if messages is not None else [
            assistant_message("Focus on the proposal first."),
            {"role": "user", "content": [{"type": "text", "text": {"value": "hi"}}]},
        ]
        self.initial_run_status = initial_run_status
        self.errors = errors or {}
        self.calls: list[tuple[str, str, Any]] = []
        self.headers: list[dict[str, str]] = []
        self._polls = 0

    @property
    def paths(self) -> list[str]:
        return [f"{m} {p}" for m, p, _ in self.calls]

    def request(self, method: str, url: str, headers=None, json=None, timeout=None):
        path = urlparse(url).path
        if path.startswith("/v1"):
            path = path[3:]
        key = f"{method} {path}"
        self.calls.append((method, path, json))
        self.headers.append(dict(headers or {}))

        if key in self.errors:
            err = self.errors[key]
            if isinstance(err, Exception):
                raise err
            return make_response(*err)

        if key == "POST /threads":
            return make_response(200, {"id": "thread_1", "object": "thread"})
        if key == "POST /threads/thread_1/messages":
            return make_response(200, {"id": "msg_1", "role": "user"})
        if key == "POST /threads/thread_1/runs":
            return make_response(200, {"id": "run_1", "status": self.initial_run_status})
        if key == "GET /threads/thread_1/runs/run_1":
            idx = min(self._polls, len(self.run_statuses) - 1)
            self._polls += 1
            status = self.run_statuses[idx]
            body: dict[str, Any] = {"id": "run_1", "status": status}
            if status == "requires_action":
                body["required_action"] = {"type": "submit_tool_outputs"}
            return make_response(200, body)
        if key == "GET /threads/thread_1/messages":
            return make_response(200, {"object": "list", "data": self.messages})
        if key == "GET /assistants/asst_1":
            return make_response(200, {"id": "asst_1", "name": "Nexus Helper", "model": "gpt-4o"})
        return make_response(404, {"error": {"message": f"No route for {key}"}})


@pytest.fixture()
def settings() -> dict[str, Any]:
    return {
        "api_key": "sk-test-fake-key",
        "assistant_id": "asst_1",
        "base_url": BASE_URL,
        "beta_header": "assistants=v2",
        "poll_interval": 0,
        "chat_max_attempts": 5,
        "analyze_max_attempts": 5,
        "request_timeout": 5,
    }


@pytest.fixture()
def no_sleep() -> Callable[[float], None]:
    return lambda _seconds: None


@pytest.fixture()
def db_path(tmp_path) -> Path:
    return tmp_path / "nexus.db"


@pytest.fixture()
def store(db_path):
    s = NexusStore(db_path)
    yield s
    s.close()


@pytest.fixture()
def user(store) -> dict[str, Any]:
    return store.create_user("alex@example.com", "hunter22", full_name="Alex Johnson")


def write_config(tmp_path: Path, api_key: str | None = "sk-test-fake-key", assistant_id: str | None = "asst_1") -> Path:
    config_dir = tmp_path / "config"
    config_dir.mkdir(exist_ok=True)
    assistant_lines = [f"  base_url: {BASE_URL}", "  poll_interval: 0", "  chat_max_attempts: 5",
                       "  analyze_max_attempts: 5"]
    if api_key:
        assistant_lines.append(f"  api_key: {api_key}")
    if assistant_id:
        assistant_lines.append(f"  assistant_id: {assistant_id}")
    config_content = "\n".join([
        "database:",
        f"  path: {tmp_path}/nexus.db",
        "assistant:",
        *assistant_lines,
        f"log_dir: {tmp_path}/logs",
        "log_level: DEBUG",
        "",
    ])
    config_file = config_dir / "config.yaml"
    config_file.write_text(config_content)
    return config_file


@pytest.fixture()
def config_file(tmp_path) -> Path:
    return write_config(tmp_path)


@pytest_asyncio.fixture()
async def client(config_file):
    """Async httpx client bound to the FastAPI app with a temp config and DB."""
    with patch("nexus.dashboard.deps.CONFIG_PATH", config_file):
        from nexus.dashboard.app import app
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
            yield c


async def sign_up(client: httpx.AsyncClient, email: str = "alex@example.com") -> dict[str, Any]:
    """Create an account; returns ``{"headers": ..., "user": ...}``."""
    r = await client.post("/api/auth/signup", json={
        "email": email,
        "password": "hunter22",
        "full_name": "Alex Johnson",
    })
    assert r.status_code == 201, r.text
    data = r.json()
    client.cookies.clear()
    return {"headers": {"Authorization": f"Bearer {data['access_token']}"}, "user": data["user"]}


@pytest_asyncio.fixture()
async def auth(client) -> dict[str, Any]:
    return await sign_up(client)
