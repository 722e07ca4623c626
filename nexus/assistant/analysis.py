"""Task analysis through the assistant, persisted as an AIInsight."""

from __future__ import annotations

import logging
import sqlite3
import time
from pathlib import Path
from typing import Any, Callable

import requests

from nexus.assistant.client import require_credentials
from nexus.assistant.workflow import AssistantWorkflow
from nexus.common.errors import RequestValidationError
from nexus.data.store import NexusStore

logger = logging.getLogger("nexus.assistant.analysis")

ANALYSIS_ACTION_TEXT = "Optimize Schedule"
ANALYSIS_CONFIDENCE = 0.9
ANALYSIS_SOURCE = "task_analysis"

ANALYSIS_REQUESTS = (
    "Prioritization recommendations",
    "Time management suggestions",
    "Efficiency improvements",
    "Potential bottlenecks or conflicts",
    "A suggested action I should take to improve my productivity",
)


def summarize_tasks(tasks: list[dict[str, Any]]) -> str:
    blocks = []
    for task in tasks:
        labels = task.get("labels") or []
        blocks.append(
            f"Task: {task.get('title')}\n"
            f"Description: {task.get('description') or 'None'}\n"
            f"Priority: {task.get('priority')}\n"
            f"Status: {'Completed' if task.get('completed') else 'Pending'}\n"
            f"Deadline: {task.get('deadline')}\n"
            f"Labels: {', '.join(labels) if labels else 'None'}"
        )
    return "\n\n".join(blocks)


def build_analysis_prompt(tasks: list[dict[str, Any]]) -> str:
    numbered = "\n".join(f"{i}. {req}" for i, req in enumerate(ANALYSIS_REQUESTS, start=1))
    return (
        "Please analyze these tasks and provide insights:\n\n"
        f"{summarize_tasks(tasks)}\n\n"
        "Please provide:\n"
        f"{numbered}"
    )


def analyze_tasks(
    settings: dict[str, Any],
    db_path: str | Path,
    user_id: str | None,
    tasks: Any,
    session: requests.Session | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> dict[str, Any]:
    """Run the analysis and persist the result.

    Raises NexusError subclasses for configuration, validation, upstream,
    timeout and malformed-response failures. A failed insight write is not
    fatal: the analysis is still returned with an ``error`` note.
    """
    require_credentials(settings)

    if not tasks or not isinstance(tasks, list):
        raise RequestValidationError("No tasks provided or invalid tasks format")
    if not all(isinstance(task, dict) for task in tasks):
        raise RequestValidationError("Each task must be an object")
    if not user_id:
        raise RequestValidationError("User ID is required")

    logger.info("Analyzing %d tasks for user: %s", len(tasks), user_id)
    workflow = AssistantWorkflow(
        settings,
        max_attempts=settings.get("analyze_max_attempts"),
        session=session,
        sleep=sleep,
    )
    analysis = workflow.run(build_analysis_prompt(tasks))

    try:
        with NexusStore(db_path) as store:
            insight = store.insert_insight(
                user_id, analysis, ANALYSIS_ACTION_TEXT, ANALYSIS_CONFIDENCE, source=ANALYSIS_SOURCE,
            )
    except sqlite3.Error as exc:
        logger.warning("Database error saving insight: %s", exc)
        return {
            "success": True,
            "fullAnalysis": analysis,
            "error": "Failed to save insight to database, but analysis was successful",
        }

    logger.info("Insight saved to database with ID: %s", insight["id"])
    return {"success": True, "insight": insight, "fullAnalysis": analysis}
