"""Task service: validation, ownership, toggling, filters, command bar."""

from __future__ import annotations

import sqlite3
from unittest.mock import MagicMock, patch

import pytest

from nexus.common.errors import NotFoundError, RequestValidationError, TaskStoreError
from nexus.tasks import service


def _task(title="t", priority="medium", completed=False, description="", labels=None, deadline="Today"):
    return {
        "title": title,
        "priority": priority,
        "completed": completed,
        "description": description,
        "labels": labels or [],
        "deadline": deadline,
    }


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------


class TestCrud:
    def test_create_requires_title_and_deadline(self, store, user) -> None:
        with pytest.raises(RequestValidationError):
            service.create_task(store, user["id"], {"title": "  ", "deadline": "Today"})
        with pytest.raises(RequestValidationError):
            service.create_task(store, user["id"], {"title": "Plan", "deadline": ""})

    def test_create_normalises_fields(self, store, user) -> None:
        task = service.create_task(store, user["id"], {
            "title": "  Plan sprint ",
            "deadline": "Tomorrow, 10:00 AM",
            "priority": "HIGH",
            "labels": "work, planning,",
            "user_id": "ignored",
        })
        assert task["title"] == "Plan sprint"
        assert task["priority"] == "high"
        assert task["labels"] == ["work", "planning"]
        assert task["user_id"] == user["id"]

    def test_invalid_priority(self, store, user) -> None:
        with pytest.raises(RequestValidationError):
            service.create_task(store, user["id"], {"title": "x", "deadline": "Today", "priority": "urgent"})

    def test_get_owned_task(self, store, user) -> None:
        task = service.create_task(store, user["id"], {"title": "x", "deadline": "Today"})
        other = store.create_user("sam@example.com", "hunter22")
        assert service.get_owned_task(store, task["id"], user["id"])["id"] == task["id"]
        with pytest.raises(NotFoundError):
            service.get_owned_task(store, task["id"], other["id"])
        with pytest.raises(NotFoundError):
            service.get_owned_task(store, "missing", user["id"])

    def test_update_missing_task(self, store) -> None:
        with pytest.raises(NotFoundError):
            service.update_task(store, "missing", {"title": "x"})

    def test_partial_update_rejects_blank_title(self, store, user) -> None:
        task = service.create_task(store, user["id"], {"title": "x", "deadline": "Today"})
        with pytest.raises(RequestValidationError):
            service.update_task(store, task["id"], {"title": ""})

    def test_store_errors_become_task_store_error(self, user) -> None:
        broken = MagicMock()
        broken.fetch_tasks.side_effect = sqlite3.OperationalError("disk I/O error")
        with pytest.raises(TaskStoreError) as excinfo:
            service.fetch_tasks(broken, user["id"])
        assert excinfo.value.message == "Failed to fetch tasks"
        assert "disk I/O error" in excinfo.value.details

    @pytest.mark.parametrize("value", ["false", "0", 1, None])
    def test_completed_must_be_a_bool(self, store, user, value) -> None:
        task = service.create_task(store, user["id"], {"title": "x", "deadline": "Today"})
        with pytest.raises(RequestValidationError):
            service.update_task(store, task["id"], {"completed": value})
        assert store.get_task(task["id"])["completed"] is False

    def test_empty_comment_rejected(self, store, user) -> None:
        task = service.create_task(store, user["id"], {"title": "x", "deadline": "Today"})
        with pytest.raises(RequestValidationError):
            service.add_task_comment(store, task["id"], user["id"], "   ")


class TestToggle:
    def test_toggle_twice_issues_two_updates(self, store, user) -> None:
        task = service.create_task(store, user["id"], {"title": "x", "deadline": "Today"})
        with patch.object(store, "update_task", wraps=store.update_task) as spy:
            once = service.toggle_task_completion(store, task)
            twice = service.toggle_task_completion(store, once)
        assert once["completed"] is True
        assert twice["completed"] is False
        assert spy.call_count == 2
        assert [c.kwargs for c in spy.call_args_list] == [{"completed": True}, {"completed": False}]


# ---------------------------------------------------------------------------
# Filters & stats
# ---------------------------------------------------------------------------


class TestFilters:
    tasks = [
        _task("Budget review", priority="high", labels=["finance"]),
        _task("Team sync", completed=True, description="weekly BUDGET check"),
        _task("Gym", priority="low", labels=["health"]),
    ]

    @pytest.mark.parametrize(
        "active_filter, expected",
        [
            ("all", ["Budget review", "Team sync", "Gym"]),
            ("pending", ["Budget review", "Gym"]),
            ("completed", ["Team sync"]),
            ("high-priority", ["Budget review"]),
        ],
    )
    def test_filters(self, active_filter, expected) -> None:
        assert [t["title"] for t in service.filter_tasks(self.tasks, active_filter)] == expected

    def test_search_matches_title_description_and_labels(self) -> None:
        assert [t["title"] for t in service.filter_tasks(self.tasks, "all", "budget")] == [
            "Budget review", "Team sync",
        ]
        assert [t["title"] for t in service.filter_tasks(self.tasks, "all", "HEALTH")] == ["Gym"]

    def test_filter_and_search_combine(self) -> None:
        assert service.filter_tasks(self.tasks, "completed", "gym") == []

    def test_unknown_filter(self) -> None:
        with pytest.raises(RequestValidationError):
            service.filter_tasks(self.tasks, "overdue")

    def test_grouped_tasks(self) -> None:
        tasks = [_task("a", deadline="Tomorrow"), _task("b", deadline="Yesterday")]
        assert list(service.grouped_tasks(tasks)) == ["Overdue", "Tomorrow"]

    def test_stats(self) -> None:
        assert service.task_stats(self.tasks) == {
            "total": 3,
            "completed": 1,
            "pending": 2,
            "high_priority": 1,
        }


# ---------------------------------------------------------------------------
# Command bar
# ---------------------------------------------------------------------------


class TestParseCommand:
    @pytest.mark.parametrize(
        "command, expected",
        [
            ("add groceries", {"action": "new_task"}),
            ("New task please", {"action": "new_task"}),
            ("filter high", {"action": "filter", "filter": "high-priority"}),
            ("Filter Completed", {"action": "filter", "filter": "completed"}),
            ("filter weird", {"action": "none"}),
            ("search budget ", {"action": "search", "query": "budget"}),
            ("What should I focus on?", {"action": "ask", "message": "What should I focus on?"}),
            ("   ", {"action": "none"}),
        ],
    )
    def test_parse(self, command, expected) -> None:
        assert service.parse_command(command) == expected
