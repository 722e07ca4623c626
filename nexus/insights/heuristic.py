"""Local productivity insight, computed from task statistics without any AI call.

Rules, first match wins:
  1. unfinished high-priority tasks due today   -> "Optimize Schedule"
  2. completion rate below 30%                  -> "Break Down Tasks"
  3. otherwise                                  -> "Plan Tomorrow"
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Any

from nexus.common.dates import is_today
from nexus.data.store import NexusStore

logger = logging.getLogger("nexus.insights")

LOCAL_CONFIDENCE = 0.85
INSIGHT_SOURCE = "task_analysis"
LOW_COMPLETION_THRESHOLD = 30


def compute_insight(tasks: list[dict[str, Any]]) -> tuple[str, str]:
    """Return ``(content, action_text)`` for a non-empty task list."""
    high_priority_today = sum(
        1 for t in tasks
        if t.get("priority") == "high" and is_today(t.get("deadline") or "") and not t.get("completed")
    )
    completed = sum(1 for t in tasks if t.get("completed"))
    rate = (completed / len(tasks)) * 100 if tasks else 0
    shown = int(rate + 0.5)

    if high_priority_today > 0:
        content = (
            f"You have <span class='text-nexus-accent-pink font-medium'>{high_priority_today} "
            "high-priority tasks</span> due today. Based on your productivity patterns, "
            "scheduling them between 9-11 AM would optimize your completion rate."
        )
        return content, "Optimize Schedule"

    if rate < LOW_COMPLETION_THRESHOLD:
        content = (
            f"Your task completion rate is <span class='text-nexus-accent-pink font-medium'>{shown}%</span>, "
            "which is lower than your usual average. Breaking tasks into smaller steps might "
            "help improve productivity."
        )
        return content, "Break Down Tasks"

    content = (
        f"You're making good progress with a <span class='text-nexus-accent-green font-medium'>{shown}%</span> "
        "completion rate. Consider planning tomorrow's priorities to maintain momentum."
    )
    return content, "Plan Tomorrow"


def generate_task_insights(
    store: NexusStore, user_id: str, tasks: list[dict[str, Any]]
) -> dict[str, Any] | None:
    """Compute and persist a local insight. None for no tasks or a failed write."""
    if not tasks:
        return None
    content, action_text = compute_insight(tasks)
    try:
        return store.insert_insight(
            user_id, content, action_text, LOCAL_CONFIDENCE, source=INSIGHT_SOURCE
        )
    except sqlite3.Error as exc:
        logger.error("Error generating AI insights: %s", exc)
        return None


def get_latest_insight(store: NexusStore, user_id: str) -> dict[str, Any] | None:
    try:
        return store.get_latest_insight(user_id)
    except sqlite3.Error as exc:
        logger.error("Error fetching AI insights: %s", exc)
        return None


def mark_insight_as_read(store: NexusStore, insight_id: str, user_id: str | None = None) -> bool:
    try:
        return store.mark_insight_read(insight_id, user_id)
    except sqlite3.Error as exc:
        logger.error("Error marking insight as read: %s", exc)
        return False
