# src/focusflow/cli/commands.py

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Callable

from ..core.state import AppState
from ..tasks import task_api
from ..tasks.errors import TaskHierarchyError
from ..tasks.hierarchy import DEFAULT_MAX_DEPTH, check_acyclic, depth_mismatches
from ..tasks.stats import aggregate_estimate, stats
from ..tasks.subtasks import flatten
from ..tasks.task_models import Task, TaskStatus

CommandHandler = Callable[[AppState, list[str]], str]

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console (/help, /tree, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(self, state: AppState, line: str) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.

        Hierarchy errors (unknown id, cycle, ...) become a short reply;
        store failures are logged and reported.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            return handler(state, args)
        except (TaskHierarchyError, ValueError) as e:
            return f"Error: {e}"
        except sqlite3.Error:
            logger.exception("Task store failure while handling /%s", name)
            return "Error: task store failure (see log)."

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


_STATUS_MARK = {
    TaskStatus.TODO: "[ ]",
    TaskStatus.IN_PROGRESS: "[~]",
    TaskStatus.COMPLETED: "[x]",
}


def _short(task_id: str) -> str:
    return task_id[:8]


def _fmt_minutes(value: float) -> str:
    return f"{value:g}m"


def _format_line(task: Task, indent: int) -> str:
    mark = _STATUS_MARK.get(task.status, "[?]")
    est = f" ({_fmt_minutes(task.time_estimate)})" if task.time_estimate else ""
    return f"{'  ' * indent}{mark} {task.title} #{_short(task.id)}{est}"


def _max_depth(state: AppState) -> int:
    return int(getattr(state.settings, "max_depth", DEFAULT_MAX_DEPTH) or DEFAULT_MAX_DEPTH)


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_tree(state: AppState, args: list[str]) -> str:
    tasks = state.task_store.list_tasks()
    if not tasks:
        return "No tasks yet. Use /add <title> to create one."
    limit = _max_depth(state)
    lines = [_format_line(ft.task, ft.indent) for ft in flatten(tasks) if ft.indent <= limit]
    return "\n".join(lines)


def cmd_add(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /add <title>"
    task = task_api.add_task(state, " ".join(args))
    return f"Added #{_short(task.id)}: {task.title}"


def cmd_sub(state: AppState, args: list[str]) -> str:
    if len(args) < 2:
        return "Usage: /sub <parent_id> <title>"
    parent_id = task_api.resolve_task_id(state, args[0])
    sub = task_api.add_subtask(state, parent_id, " ".join(args[1:]))
    return f"Added subtask #{_short(sub.id)} under #{_short(parent_id)} (depth {sub.depth})"


def _toggle(state: AppState, args: list[str], completed: bool) -> str:
    if not args:
        return f"Usage: /{'done' if completed else 'undo'} <id>"
    task_id = task_api.resolve_task_id(state, args[0])
    patches = task_api.set_completed(state, task_id, completed)
    lines = [f"#{_short(task_id)} -> {'completed' if completed else 'todo'}"]
    for tid, patch in patches.items():
        if tid != task_id and "status" in patch:
            lines.append(f"  parent #{_short(tid)} -> {patch['status']}")
    return "\n".join(lines)


def cmd_done(state: AppState, args: list[str]) -> str:
    return _toggle(state, args, True)


def cmd_undo(state: AppState, args: list[str]) -> str:
    return _toggle(state, args, False)


def cmd_move(state: AppState, args: list[str]) -> str:
    if len(args) != 2:
        return "Usage: /move <id> <new_parent_id>"
    task_id = task_api.resolve_task_id(state, args[0])
    new_parent_id = task_api.resolve_task_id(state, args[1])
    patches = task_api.move_task(state, task_id, new_parent_id)
    return (
        f"Moved #{_short(task_id)} under #{_short(new_parent_id)} "
        f"(depth {patches[task_id]['depth']}, {len(patches)} record(s) updated)"
    )


def cmd_order(state: AppState, args: list[str]) -> str:
    if len(args) < 2:
        return "Usage: /order <parent_id> <child_id> [<child_id> ...]"
    parent_id = task_api.resolve_task_id(state, args[0])
    ordered = [task_api.resolve_task_id(state, a) for a in args[1:]]
    updated = task_api.reorder_subtasks(state, parent_id, ordered)
    return f"Reordered children of #{_short(parent_id)} ({len(updated)} subtask(s) in order)"


def cmd_rm(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /rm <id>"
    task_id = task_api.resolve_task_id(state, args[0])
    ids = task_api.delete_task(state, task_id)
    return f"Deleted #{_short(task_id)} and {len(ids) - 1} subtask(s)"


def cmd_stats(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /stats <id>"
    task_id = task_api.resolve_task_id(state, args[0])
    tasks = state.task_store.list_tasks()
    depth = _max_depth(state)
    s = stats(task_id, tasks, max_depth=depth)
    return (
        f"Stats for #{_short(task_id)}:\n"
        f"  Subtasks: {s.completed_subtasks}/{s.total_subtasks} ({s.progress_percentage:.0f}%)\n"
        f"  Remaining estimate: {_fmt_minutes(s.estimated_time_remaining)}\n"
        f"  Time spent: {_fmt_minutes(s.total_time_spent)}\n"
        f"  Aggregate estimate: {_fmt_minutes(aggregate_estimate(task_id, tasks, max_depth=depth))}"
    )


def cmd_pomo(state: AppState, args: list[str]) -> str:
    """
    /pomo <id> [minutes]  -> record a finished focus session (default 25 minutes)
    """
    if not args:
        return "Usage: /pomo <id> [minutes]"
    task_id = task_api.resolve_task_id(state, args[0])
    minutes = float(args[1]) if len(args) > 1 else 25.0
    patch = task_api.record_pomodoro(state, task_id, minutes)
    return (
        f"#{_short(task_id)}: {patch['pomodoro_count']} pomodoro(s), "
        f"{_fmt_minutes(patch['time_spent'])} spent"
    )


def cmd_check(state: AppState, args: list[str]) -> str:
    tasks = state.task_store.list_tasks()
    check_acyclic(tasks)
    bad = depth_mismatches(tasks)
    if not bad:
        return f"OK: {len(tasks)} task(s), no cycles, depths consistent."
    lines = [f"{len(bad)} task(s) with inconsistent depth:"]
    for tid, expected in bad.items():
        lines.append(f"  #{_short(tid)} expected depth {expected}")
    return "\n".join(lines)


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("tree", cmd_tree, help_text="Show the task forest.", aliases=["ls"])
registry.register("add", cmd_add, help_text="Add a root task: /add <title>.")
registry.register("sub", cmd_sub, help_text="Add a subtask: /sub <parent_id> <title>.")
registry.register("done", cmd_done, help_text="Complete a task: /done <id>.")
registry.register("undo", cmd_undo, help_text="Reopen a task: /undo <id>.")
registry.register("move", cmd_move, help_text="Re-parent a task: /move <id> <new_parent_id>.")
registry.register("order", cmd_order, help_text="Reorder subtasks: /order <parent_id> <ids...>.")
registry.register("rm", cmd_rm, help_text="Delete a task and its subtasks: /rm <id>.")
registry.register("stats", cmd_stats, help_text="Progress and time stats: /stats <id>.")
registry.register("pomo", cmd_pomo, help_text="Record a focus session: /pomo <id> [minutes].")
registry.register("check", cmd_check, help_text="Validate the forest (cycles, depths).")
