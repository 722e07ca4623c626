from __future__ import annotations

import sqlite3
from unittest.mock import MagicMock

import pytest

from nexus.insights.heuristic import (
    LOCAL_CONFIDENCE,
    compute_insight,
    generate_task_insights,
    get_latest_insight,
    mark_insight_as_read,
)


def _task(priority="medium", deadline="Friday", completed=False):
    return {"title": "t", "priority": priority, "deadline": deadline, "completed": completed}


class TestComputeInsight:
    def test_single_high_priority_today(self) -> None:
        content, action = compute_insight([_task("high", "Today, 5:00 PM")])
        assert "1 high-priority tasks" in content
        assert action == "Optimize Schedule"

    def test_high_priority_today_beats_low_completion(self) -> None:
        tasks = [_task("high", "Today, 9:00 AM")] + [_task() for _ in range(9)]
        _, action = compute_insight(tasks)
        assert action == "Optimize Schedule"

    def test_completed_high_priority_today_is_ignored(self) -> None:
        content, action = compute_insight([_task("high", "Today, 9:00 AM", completed=True)])
        assert action == "Plan Tomorrow"
        assert "100%" in content

    def test_low_completion_rate(self) -> None:
        tasks = [_task(completed=True)] + [_task() for _ in range(3)]
        content, action = compute_insight(tasks)
        assert action == "Break Down Tasks"
        assert "25%" in content

    def test_thirty_percent_is_not_low(self) -> None:
        tasks = [_task(completed=True)] * 3 + [_task()] * 7
        _, action = compute_insight(tasks)
        assert action == "Plan Tomorrow"

    def test_rate_rounds_half_up(self) -> None:
        tasks = [_task(completed=True)] + [_task() for _ in range(7)]
        content, action = compute_insight(tasks)
        assert action == "Break Down Tasks"
        assert "13%" in content

    def test_default_progress(self) -> None:
        tasks = [_task(completed=True), _task()]
        content, action = compute_insight(tasks)
        assert action == "Plan Tomorrow"
        assert "50%" in content

    @pytest.mark.parametrize(
        "tasks",
        [
            [_task("high", "Tomorrow")],
            [_task("low", "Today"), _task(completed=True)],
            [_task("high", "Yesterday", completed=True), _task("high", "Today")],
        ],
    )
    def test_exactly_one_branch(self, tasks) -> None:
        _, action = compute_insight(tasks)
        assert action in {"Optimize Schedule", "Break Down Tasks", "Plan Tomorrow"}


class TestGenerateTaskInsights:
    def test_no_tasks_no_insight(self, store, user) -> None:
        assert generate_task_insights(store, user["id"], []) is None
        assert store.get_latest_insight(user["id"]) is None

    def test_persists_insight(self, store, user) -> None:
        insight = generate_task_insights(store, user["id"], [_task("high", "Today, 5:00 PM")])
        assert insight["action_text"] == "Optimize Schedule"
        assert insight["confidence"] == LOCAL_CONFIDENCE
        assert insight["source"] == "task_analysis"
        assert insight["is_read"] is False

        latest = get_latest_insight(store, user["id"])
        assert latest["id"] == insight["id"]

    def test_write_failure_returns_none(self, user) -> None:
        broken = MagicMock()
        broken.insert_insight.side_effect = sqlite3.OperationalError("database is locked")
        assert generate_task_insights(broken, user["id"], [_task()]) is None

    def test_mark_read(self, store, user) -> None:
        insight = generate_task_insights(store, user["id"], [_task()])
        assert mark_insight_as_read(store, insight["id"], user["id"]) is True
        assert store.get_latest_insight(user["id"])["is_read"] is True
        assert mark_insight_as_read(store, "missing", user["id"]) is False
