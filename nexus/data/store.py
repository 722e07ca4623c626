"""SQLite persistence for users, profiles, tasks, comments and insights.

One ``NexusStore`` owns one connection. Routes open a store per request and
close it when done; the assistant workers open their own inside the worker
thread.
"""

from __future__ import annotations

import hashlib
import json
import logging
import secrets
import sqlite3
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

logger = logging.getLogger("nexus.data.store")

_SCHEMA = """\
CREATE TABLE IF NOT EXISTS users (
    id            TEXT PRIMARY KEY,
    email         TEXT NOT NULL UNIQUE COLLATE NOCASE,
    password_hash TEXT NOT NULL,
    created_at    TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS auth_sessions (
    token_hash TEXT PRIMARY KEY,
    user_id    TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    created_at TEXT NOT NULL,
    expires_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS profiles (
    id                 TEXT PRIMARY KEY,
    user_id            TEXT NOT NULL UNIQUE REFERENCES users(id) ON DELETE CASCADE,
    full_name          TEXT NOT NULL DEFAULT '',
    avatar_url         TEXT NOT NULL DEFAULT '',
    productivity_score INTEGER NOT NULL DEFAULT 0,
    created_at         TEXT NOT NULL,
    updated_at         TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS tasks (
    id          TEXT PRIMARY KEY,
    user_id     TEXT NOT NULL,
    title       TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    deadline    TEXT NOT NULL DEFAULT '',
    priority    TEXT NOT NULL DEFAULT 'medium',
    completed   INTEGER NOT NULL DEFAULT 0,
    labels      TEXT NOT NULL DEFAULT '[]',
    created_at  TEXT NOT NULL,
    updated_at  TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS task_comments (
    id         TEXT PRIMARY KEY,
    task_id    TEXT NOT NULL REFERENCES tasks(id) ON DELETE CASCADE,
    user_id    TEXT NOT NULL,
    content    TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS ai_insights (
    id          TEXT PRIMARY KEY,
    user_id     TEXT NOT NULL,
    content     TEXT NOT NULL,
    action_text TEXT NOT NULL DEFAULT '',
    confidence  REAL NOT NULL DEFAULT 0,
    source      TEXT NOT NULL DEFAULT '',
    is_read     INTEGER NOT NULL DEFAULT 0,
    created_at  TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_tasks_user ON tasks(user_id, created_at);
CREATE INDEX IF NOT EXISTS idx_comments_task ON task_comments(task_id, created_at);
CREATE INDEX IF NOT EXISTS idx_insights_user ON ai_insights(user_id, created_at);
"""

TASK_FIELDS = ("title", "description", "deadline", "priority", "completed", "labels")
PROFILE_FIELDS = ("full_name", "avatar_url", "productivity_score")

_PBKDF2_ROUNDS = 200_000


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def hash_password(password: str, salt: str | None = None) -> str:
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), _PBKDF2_ROUNDS)
    return f"{salt}${digest.hex()}"


def verify_password(password: str, stored: str) -> bool:
    salt, _, _ = stored.partition("$")
    return secrets.compare_digest(hash_password(password, salt), stored)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


class NexusStore:
    """SQLite-backed store for every Nexus table."""

    def __init__(self, db_path: str | Path) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")
        self._conn.executescript(_SCHEMA)

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> NexusStore:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def ping(self) -> bool:
        try:
            self._conn.execute("SELECT 1").fetchone()
            return True
        except sqlite3.Error:
            return False

    # ------------------------------------------------------------------
    # Users & auth sessions
    # ------------------------------------------------------------------

    def create_user(self, email: str, password: str, full_name: str = "") -> dict[str, Any]:
        """Create a user and its profile in one transaction."""
        uid = uuid.uuid4().hex
        now = _now()
        with self._conn:
            self._conn.execute(
                "INSERT INTO users (id, email, password_hash, created_at) VALUES (?, ?, ?, ?)",
                (uid, email.strip(), hash_password(password), now),
            )
            self._conn.execute(
                "INSERT INTO profiles (id, user_id, full_name, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (uuid.uuid4().hex, uid, full_name, now, now),
            )
        logger.info("Created user %s", uid)
        return {"id": uid, "email": email.strip(), "created_at": now}

    def authenticate(self, email: str, password: str) -> dict[str, Any] | None:
        row = self._conn.execute(
            "SELECT * FROM users WHERE email = ?", (email.strip(),)
        ).fetchone()
        if not row or not verify_password(password, row["password_hash"]):
            return None
        return {"id": row["id"], "email": row["email"], "created_at": row["created_at"]}

    def get_user(self, user_id: str) -> dict[str, Any] | None:
        row = self._conn.execute(
            "SELECT id, email, created_at FROM users WHERE id = ?", (user_id,)
        ).fetchone()
        return dict(row) if row else None

    def find_user(self, email_or_id: str) -> dict[str, Any] | None:
        row = self._conn.execute(
            "SELECT id, email, created_at FROM users WHERE email = ? OR id = ?",
            (email_or_id.strip(), email_or_id.strip()),
        ).fetchone()
        return dict(row) if row else None

    def create_auth_session(self, user_id: str, ttl_hours: int = 24) -> dict[str, Any]:
        """Return the raw token once; only its hash is stored."""
        token = secrets.token_urlsafe(32)
        now = datetime.now(timezone.utc)
        expires = (now + timedelta(hours=ttl_hours)).isoformat()
        self._conn.execute(
            "INSERT INTO auth_sessions (token_hash, user_id, created_at, expires_at) VALUES (?, ?, ?, ?)",
            (hash_token(token), user_id, now.isoformat(), expires),
        )
        self._conn.commit()
        return {"token": token, "user_id": user_id, "expires_at": expires}

    def resolve_auth_session(self, token: str) -> dict[str, Any] | None:
        row = self._conn.execute(
            "SELECT * FROM auth_sessions WHERE token_hash = ?", (hash_token(token),)
        ).fetchone()
        if not row:
            return None
        if row["expires_at"] <= _now():
            self.revoke_auth_session(token)
            return None
        return self.get_user(row["user_id"])

    def revoke_auth_session(self, token: str) -> bool:
        cur = self._conn.execute(
            "DELETE FROM auth_sessions WHERE token_hash = ?", (hash_token(token),)
        )
        self._conn.commit()
        return cur.rowcount > 0

    # ------------------------------------------------------------------
    # Profiles
    # ------------------------------------------------------------------

    def get_profile(self, user_id: str) -> dict[str, Any] | None:
        row = self._conn.execute(
            "SELECT * FROM profiles WHERE user_id = ?", (user_id,)
        ).fetchone()
        return dict(row) if row else None

    def update_profile(self, user_id: str, **fields: Any) -> dict[str, Any] | None:
        updates = {k: v for k, v in fields.items() if k in PROFILE_FIELDS}
        if not updates:
            return self.get_profile(user_id)
        updates["updated_at"] = _now()
        set_clause = ", ".join(f"{k} = ?" for k in updates)
        vals = list(updates.values()) + [user_id]
        self._conn.execute(f"UPDATE profiles SET {set_clause} WHERE user_id = ?", vals)
        self._conn.commit()
        return self.get_profile(user_id)

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    @staticmethod
    def _task_row(row: sqlite3.Row) -> dict[str, Any]:
        d = dict(row)
        d["completed"] = bool(d["completed"])
        try:
            d["labels"] = json.loads(d.get("labels") or "[]")
        except (json.JSONDecodeError, TypeError):
            d["labels"] = []
        d.setdefault("comment_count", 0)
        return d

    def fetch_tasks(self, user_id: str) -> list[dict[str, Any]]:
        """All tasks for a user, newest first, with comment counts."""
        rows = self._conn.execute(
            "SELECT t.*, "
            "  (SELECT COUNT(*) FROM task_comments c WHERE c.task_id = t.id) AS comment_count "
            "FROM tasks t WHERE t.user_id = ? "
            "ORDER BY t.created_at DESC, t.rowid DESC",
            (user_id,),
        ).fetchall()
        return [self._task_row(r) for r in rows]

    def get_task(self, task_id: str) -> dict[str, Any] | None:
        row = self._conn.execute(
            "SELECT t.*, "
            "  (SELECT COUNT(*) FROM task_comments c WHERE c.task_id = t.id) AS comment_count "
            "FROM tasks t WHERE t.id = ?",
            (task_id,),
        ).fetchone()
        return self._task_row(row) if row else None

    def create_task(
        self,
        user_id: str,
        title: str,
        deadline: str,
        description: str = "",
        priority: str = "medium",
        completed: bool = False,
        labels: list[str] | None = None,
    ) -> dict[str, Any]:
        tid = uuid.uuid4().hex
        now = _now()
        self._conn.execute(
            "INSERT INTO tasks (id, user_id, title, description, deadline, priority, "
            "completed, labels, created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (tid, user_id, title, description, deadline, priority,
             int(completed), json.dumps(labels or []), now, now),
        )
        self._conn.commit()
        return self.get_task(tid)  # type: ignore[return-value]

    def update_task(self, task_id: str, **fields: Any) -> dict[str, Any] | None:
        updates = {k: v for k, v in fields.items() if k in TASK_FIELDS}
        if not updates:
            return self.get_task(task_id)
        if "labels" in updates:
            updates["labels"] = json.dumps(list(updates["labels"] or []))
        if "completed" in updates:
            updates["completed"] = int(bool(updates["completed"]))
        updates["updated_at"] = _now()
        set_clause = ", ".join(f"{k} = ?" for k in updates)
        vals = list(updates.values()) + [task_id]
        cur = self._conn.execute(f"UPDATE tasks SET {set_clause} WHERE id = ?", vals)
        self._conn.commit()
        if cur.rowcount == 0:
            return None
        return self.get_task(task_id)

    def delete_task(self, task_id: str) -> bool:
        cur = self._conn.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
        self._conn.commit()
        return cur.rowcount > 0

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------

    def get_task_comments(self, task_id: str) -> list[dict[str, Any]]:
        rows = self._conn.execute(
            "SELECT c.*, p.full_name, p.avatar_url FROM task_comments c "
            "LEFT JOIN profiles p ON p.user_id = c.user_id "
            "WHERE c.task_id = ? ORDER BY c.created_at, c.rowid",
            (task_id,),
        ).fetchall()
        results = []
        for r in rows:
            d = dict(r)
            d["profile"] = {"full_name": d.pop("full_name"), "avatar_url": d.pop("avatar_url")}
            results.append(d)
        return results

    def add_task_comment(self, task_id: str, user_id: str, content: str) -> dict[str, Any]:
        cid = uuid.uuid4().hex
        now = _now()
        self._conn.execute(
            "INSERT INTO task_comments (id, task_id, user_id, content, created_at, updated_at) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (cid, task_id, user_id, content, now, now),
        )
        self._conn.commit()
        return {
            "id": cid,
            "task_id": task_id,
            "user_id": user_id,
            "content": content,
            "created_at": now,
            "updated_at": now,
        }

    # ------------------------------------------------------------------
    # Insights
    # ------------------------------------------------------------------

    def insert_insight(
        self,
        user_id: str,
        content: str,
        action_text: str,
        confidence: float,
        source: str = "task_analysis",
    ) -> dict[str, Any]:
        iid = uuid.uuid4().hex
        now = _now()
        self._conn.execute(
            "INSERT INTO ai_insights (id, user_id, content, action_text, confidence, source, "
            "is_read, created_at) VALUES (?, ?, ?, ?, ?, ?, 0, ?)",
            (iid, user_id, content, action_text, confidence, source, now),
        )
        self._conn.commit()
        return {
            "id": iid,
            "user_id": user_id,
            "content": content,
            "action_text": action_text,
            "confidence": confidence,
            "source": source,
            "is_read": False,
            "created_at": now,
        }

    def get_latest_insight(self, user_id: str) -> dict[str, Any] | None:
        row = self._conn.execute(
            "SELECT * FROM ai_insights WHERE user_id = ? "
            "ORDER BY created_at DESC, rowid DESC LIMIT 1",
            (user_id,),
        ).fetchone()
        if not row:
            return None
        d = dict(row)
        d["is_read"] = bool(d["is_read"])
        return d

    def mark_insight_read(self, insight_id: str, user_id: str | None = None) -> bool:
        sql = "UPDATE ai_insights SET is_read = 1 WHERE id = ?"
        params: list[Any] = [insight_id]
        if user_id is not None:
            sql += " AND user_id = ?"
            params.append(user_id)
        cur = self._conn.execute(sql, params)
        self._conn.commit()
        return cur.rowcount > 0
