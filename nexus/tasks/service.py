"""Task operations on top of NexusStore, plus the task-panel behaviours.

Store failures are converted to ``TaskStoreError`` here so callers deal with
a single error type. Filtering, stats and command parsing are pure
functions over task dicts.
"""

from __future__ import annotations

import functools
import logging
import re
import sqlite3
from typing import Any, Callable, Iterable, TypeVar

from nexus.common.dates import group_tasks
from nexus.common.errors import NotFoundError, RequestValidationError, TaskStoreError
from nexus.data.store import TASK_FIELDS, NexusStore

logger = logging.getLogger("nexus.tasks")

PRIORITIES = ("low", "medium", "high")
FILTERS = ("all", "pending", "completed", "high-priority")

F = TypeVar("F", bound=Callable[..., Any])


def _store_call(action: str) -> Callable[[F], F]:
    """Turn sqlite errors raised by ``fn`` into TaskStoreError."""
    def decorator(fn: F) -> F:
        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return fn(*args, **kwargs)
            except sqlite3.Error as exc:
                logger.error("Failed to %s: %s", action, exc)
                raise TaskStoreError(f"Failed to {action}", str(exc)) from exc
        return wrapper  # type: ignore[return-value]
    return decorator


def _clean_labels(labels: Any) -> list[str]:
    if labels is None:
        return []
    if isinstance(labels, str):
        labels = labels.split(",")
    if not isinstance(labels, (list, tuple)):
        raise RequestValidationError("labels must be a list of strings")
    return [str(lbl).strip() for lbl in labels if str(lbl).strip()]


def validate_task_fields(fields: dict[str, Any], partial: bool = False) -> dict[str, Any]:
    """Return only known task fields, normalised. Raises RequestValidationError."""
    clean = {k: v for k, v in fields.items() if k in TASK_FIELDS}

    if not partial:
        if not str(clean.get("title") or "").strip():
            raise RequestValidationError("Task title is required")
        if not str(clean.get("deadline") or "").strip():
            raise RequestValidationError("Task deadline is required")
    elif "title" in clean and not str(clean["title"] or "").strip():
        raise RequestValidationError("Task title cannot be empty")

    if "title" in clean:
        clean["title"] = str(clean["title"]).strip()
    if "description" in clean:
        clean["description"] = str(clean["description"] or "")
    if "deadline" in clean:
        clean["deadline"] = str(clean["deadline"] or "")
    if "priority" in clean:
        priority = str(clean["priority"]).lower()
        if priority not in PRIORITIES:
            raise RequestValidationError(f"Invalid priority: {clean['priority']}")
        clean["priority"] = priority
    if "completed" in clean:
        if not isinstance(clean["completed"], bool):
            raise RequestValidationError("completed must be true or false")
    if "labels" in clean:
        clean["labels"] = _clean_labels(clean["labels"])
    return clean


# ------------------------------------------------------------------
# CRUD
# ------------------------------------------------------------------

@_store_call("fetch tasks")
def fetch_tasks(store: NexusStore, user_id: str) -> list[dict[str, Any]]:
    return store.fetch_tasks(user_id)


@_store_call("create task")
def create_task(store: NexusStore, user_id: str, fields: dict[str, Any]) -> dict[str, Any]:
    clean = validate_task_fields(fields)
    task = store.create_task(user_id, **clean)
    logger.info("Created task %s for user %s", task["id"], user_id)
    return task


@_store_call("load task")
def get_owned_task(store: NexusStore, task_id: str, user_id: str) -> dict[str, Any]:
    task = store.get_task(task_id)
    if not task or task["user_id"] != user_id:
        raise NotFoundError("Task not found")
    return task


@_store_call("update task")
def update_task(store: NexusStore, task_id: str, updates: dict[str, Any]) -> dict[str, Any]:
    clean = validate_task_fields(updates, partial=True)
    task = store.update_task(task_id, **clean)
    if task is None:
        raise NotFoundError("Task not found")
    return task


@_store_call("delete task")
def delete_task(store: NexusStore, task_id: str) -> bool:
    return store.delete_task(task_id)


def toggle_task_completion(store: NexusStore, task: dict[str, Any]) -> dict[str, Any]:
    """Flip ``completed`` with a single update call."""
    return update_task(store, task["id"], {"completed": not task["completed"]})


@_store_call("load comments")
def get_task_comments(store: NexusStore, task_id: str) -> list[dict[str, Any]]:
    return store.get_task_comments(task_id)


@_store_call("add comment")
def add_task_comment(store: NexusStore, task_id: str, user_id: str, content: str) -> dict[str, Any]:
    if not (content or "").strip():
        raise RequestValidationError("Comment content is required")
    return store.add_task_comment(task_id, user_id, content.strip())


# ------------------------------------------------------------------
# Task panel behaviours
# ------------------------------------------------------------------

def filter_tasks(
    tasks: Iterable[dict[str, Any]],
    active_filter: str = "all",
    search_query: str = "",
) -> list[dict[str, Any]]:
    if active_filter not in FILTERS:
        raise RequestValidationError(f"Unknown filter: {active_filter}")
    query = (search_query or "").strip().lower()
    result = []
    for task in tasks:
        if active_filter == "completed" and not task.get("completed"):
            continue
        if active_filter == "pending" and task.get("completed"):
            continue
        if active_filter == "high-priority" and task.get("priority") != "high":
            continue
        if query and not (
            query in (task.get("title") or "").lower()
            or query in (task.get("description") or "").lower()
            or any(query in lbl.lower() for lbl in task.get("labels") or [])
        ):
            continue
        result.append(task)
    return result


def grouped_tasks(
    tasks: Iterable[dict[str, Any]],
    active_filter: str = "all",
    search_query: str = "",
) -> dict[str, list[dict[str, Any]]]:
    return group_tasks(filter_tasks(tasks, active_filter, search_query))


def task_stats(tasks: list[dict[str, Any]]) -> dict[str, int]:
    completed = sum(1 for t in tasks if t.get("completed"))
    return {
        "total": len(tasks),
        "completed": completed,
        "pending": len(tasks) - completed,
        "high_priority": sum(
            1 for t in tasks if t.get("priority") == "high" and not t.get("completed")
        ),
    }


_FILTER_RE = re.compile(r"filter (completed|pending|high|all)", re.IGNORECASE)


def parse_command(command: str) -> dict[str, Any]:
    """Interpret a command-bar entry.

    Returns one of::

        {"action": "new_task"}
        {"action": "filter", "filter": "high-priority"}
        {"action": "search", "query": "budget"}
        {"action": "ask", "message": "..."}
        {"action": "none"}
    """
    text = (command or "").strip()
    lowered = text.lower()
    if not text:
        return {"action": "none"}
    if lowered.startswith("add ") or lowered.startswith("new task"):
        return {"action": "new_task"}
    if "filter " in lowered:
        match = _FILTER_RE.search(text)
        if not match:
            return {"action": "none"}
        name = match.group(1).lower()
        return {"action": "filter", "filter": "high-priority" if name == "high" else name}
    if lowered.startswith("search "):
        return {"action": "search", "query": text[7:].strip()}
    return {"action": "ask", "message": text}
