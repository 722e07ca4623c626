"""Deadline bucketing and display formatting.

Deadlines are free-text labels such as ``"Today, 5:00 PM"``; buckets are
chosen by substring match.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable

GROUP_ORDER = ["Overdue", "Today", "Tomorrow", "Later"]


def format_date(dt: datetime) -> str:
    """``Monday, March 4``"""
    return f"{dt.strftime('%A')}, {dt.strftime('%B')} {dt.day}"


def format_time(dt: datetime) -> str:
    """``9:05 AM``"""
    hour = dt.hour % 12 or 12
    return f"{hour}:{dt.minute:02d} {'AM' if dt.hour < 12 else 'PM'}"


def is_today(deadline: str) -> bool:
    return "Today" in deadline


def is_tomorrow(deadline: str) -> bool:
    return "Tomorrow" in deadline


def is_overdue(deadline: str) -> bool:
    return "Yesterday" in deadline


def get_group_key(deadline: str | None) -> str:
    deadline = deadline or ""
    if is_overdue(deadline):
        return "Overdue"
    if is_today(deadline):
        return "Today"
    if is_tomorrow(deadline):
        return "Tomorrow"
    return "Later"


def group_tasks(tasks: Iterable[dict[str, Any]]) -> dict[str, list[dict[str, Any]]]:
    """Bucket tasks by deadline, keys in GROUP_ORDER, empty buckets dropped."""
    buckets: dict[str, list[dict[str, Any]]] = {}
    for task in tasks:
        buckets.setdefault(get_group_key(task.get("deadline")), []).append(task)
    return {key: buckets[key] for key in GROUP_ORDER if key in buckets}
