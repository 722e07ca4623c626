"""Command-line interface for Nexus Tasks.

Usage:
    python3 -m nexus.cli status
    python3 -m nexus.cli ask "What should I focus on today?"
    python3 -m nexus.cli tasks --user alex@example.com
    python3 -m nexus.cli tasks --user alex@example.com --filter pending --search budget
    python3 -m nexus.cli insight --user alex@example.com
    python3 -m nexus.cli analyze --user alex@example.com
    python3 -m nexus.cli serve --port 8765
"""

from __future__ import annotations

import argparse
import sys
from datetime import datetime
from pathlib import Path

from nexus.common.config import load_config, load_env_local, setup_logging
from nexus.common.dates import format_date, format_time
from nexus.common.errors import NexusError
from nexus.data.store import NexusStore


def _open_store(cfg: dict) -> NexusStore:
    return NexusStore(Path(cfg["database"]["path"]).expanduser())


def _resolve_user(store: NexusStore, who: str) -> dict:
    user = store.find_user(who)
    if not user:
        print(f"No such user: {who}", file=sys.stderr)
        sys.exit(2)
    return user


def cmd_status(args: argparse.Namespace, cfg: dict) -> None:
    from nexus.assistant.status import check_assistant_status

    status = check_assistant_status(cfg["assistant"])
    if status["configured"]:
        print(f"Assistant OK: {status.get('assistantName')} ({status.get('assistantModel')})")
    else:
        print(f"Assistant not configured: {status.get('error')}")
        print(f"  {status.get('details')}")
        sys.exit(1)


def cmd_ask(args: argparse.Namespace, cfg: dict) -> None:
    from nexus.assistant.workflow import ask_assistant

    print(ask_assistant(cfg["assistant"], " ".join(args.message)))


def cmd_tasks(args: argparse.Namespace, cfg: dict) -> None:
    from nexus.tasks import service

    with _open_store(cfg) as store:
        user = _resolve_user(store, args.user)
        tasks = service.fetch_tasks(store, user["id"])
    groups = service.grouped_tasks(tasks, args.filter, args.search or "")
    now = datetime.now()
    print(f"{format_date(now)}, {format_time(now)}\n")
    if not groups:
        print("No tasks.")
        return
    for key, items in groups.items():
        print(f"{key}:")
        for t in items:
            check = "x" if t["completed"] else " "
            labels = f"  [{', '.join(t['labels'])}]" if t["labels"] else ""
            print(f"  [{check}] {t['title']}  ({t['priority']}, {t['deadline']}){labels}")
        print()
    s = service.task_stats(tasks)
    print(f"{s['total']} total, {s['completed']} completed, {s['pending']} pending, "
          f"{s['high_priority']} high priority open")


def cmd_insight(args: argparse.Namespace, cfg: dict) -> None:
    from nexus.insights.heuristic import generate_task_insights
    from nexus.tasks import service

    with _open_store(cfg) as store:
        user = _resolve_user(store, args.user)
        insight = generate_task_insights(store, user["id"], service.fetch_tasks(store, user["id"]))
    if not insight:
        print("No insight (no tasks).")
        return
    print(f"[{insight['action_text']}] {insight['content']}")


def cmd_analyze(args: argparse.Namespace, cfg: dict) -> None:
    from nexus.assistant.analysis import analyze_tasks
    from nexus.tasks import service

    with _open_store(cfg) as store:
        user = _resolve_user(store, args.user)
        tasks = service.fetch_tasks(store, user["id"])
    result = analyze_tasks(cfg["assistant"], cfg["database"]["path"], user["id"], tasks)
    print(result["fullAnalysis"])
    if result.get("error"):
        print(f"\nWarning: {result['error']}", file=sys.stderr)


def cmd_serve(args: argparse.Namespace, cfg: dict) -> None:
    from nexus.dashboard.app import main as serve

    serve(host=args.host, port=args.port)


def main() -> None:
    parser = argparse.ArgumentParser(prog="nexus", description="Nexus Tasks command line")
    parser.add_argument("--config", type=str, default=None, help="Path to config.yaml")

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("status", help="Check the assistant configuration")

    p_ask = sub.add_parser("ask", help="Ask the assistant a question")
    p_ask.add_argument("message", nargs="+", help="Question text")

    p_tasks = sub.add_parser("tasks", help="List tasks grouped by deadline")
    p_tasks.add_argument("--user", required=True, help="User email or id")
    p_tasks.add_argument("--filter", default="all",
                         choices=["all", "pending", "completed", "high-priority"])
    p_tasks.add_argument("--search", default=None, help="Search title, description, labels")

    p_insight = sub.add_parser("insight", help="Generate a local productivity insight")
    p_insight.add_argument("--user", required=True, help="User email or id")

    p_analyze = sub.add_parser("analyze", help="Analyze tasks with the assistant")
    p_analyze.add_argument("--user", required=True, help="User email or id")

    p_serve = sub.add_parser("serve", help="Run the API server")
    p_serve.add_argument("--host", default="0.0.0.0")
    p_serve.add_argument("--port", type=int, default=8765)

    args = parser.parse_args()
    load_env_local()
    cfg = load_config(args.config)
    setup_logging(cfg)

    dispatch = {
        "status": cmd_status,
        "ask": cmd_ask,
        "tasks": cmd_tasks,
        "insight": cmd_insight,
        "analyze": cmd_analyze,
        "serve": cmd_serve,
    }
    try:
        dispatch[args.command](args, cfg)
    except NexusError as exc:
        print(f"Error ({exc.kind}): {exc.message}", file=sys.stderr)
        print(f"  {exc.details}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
