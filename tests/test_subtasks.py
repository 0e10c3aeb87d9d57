# tests/test_subtasks.py

from __future__ import annotations

import pytest

from focusflow.tasks.errors import InvalidOperation, TaskNotFound
from focusflow.tasks.subtasks import (
    DEFAULT_SUBTASK_TITLE,
    cascade_delete_ids,
    create_subtask,
    flatten,
    move_subtask,
    rebase_depths,
    reorder_subtasks,
)
from focusflow.tasks.task_models import TaskPeriod, TaskPriority, TaskStatus, TaskType

from .fakes import make_task

NOW = 1_700_000_000.0


# ---- create ----


def test_create_inherits_type_and_period_from_parent() -> None:
    parent = make_task("p", depth=1, type=TaskType.BRAIN, period=TaskPeriod.MORNING)

    sub = create_subtask(parent, [parent], {"title": "Outline"}, now=NOW)

    assert sub.type == TaskType.BRAIN
    assert sub.period == TaskPeriod.MORNING
    assert sub.sort_order == 1
    assert sub.depth == parent.depth + 1
    assert sub.parent_task_id == "p"
    assert sub.is_subtask is True
    assert sub.status == TaskStatus.TODO and sub.completed is False
    assert sub.time_spent == 0 and sub.pomodoro_count == 0
    assert sub.created_at == NOW and sub.updated_at == NOW
    assert sub.title == "Outline"


def test_create_inherits_schedule_and_energy_unless_overridden() -> None:
    parent = make_task(
        "p",
        type=TaskType.ADMIN,
        period=TaskPeriod.AFTERNOON,
        scheduled_for="2026-10-20",
        due_date="2026-10-24",
        energy="high",
        focus="deep",
        priority=TaskPriority.HIGH,
        tags=["work"],
    )

    sub = create_subtask(
        parent,
        [parent],
        {"type": "brain", "due_date": "2026-10-21", "energy": None, "time_estimate": 25},
        now=NOW,
    )

    assert sub.type == TaskType.BRAIN
    assert sub.period == TaskPeriod.AFTERNOON
    assert sub.scheduled_for == "2026-10-20"
    assert sub.due_date == "2026-10-21"
    assert sub.energy == "high"
    assert sub.focus == "deep"
    assert sub.time_estimate == 25
    # not inherited
    assert sub.priority == TaskPriority.MEDIUM
    assert sub.tags == []
    assert sub.title == DEFAULT_SUBTASK_TITLE


def test_create_appends_after_existing_siblings() -> None:
    parent = make_task("p")
    tasks = [parent, make_task("a", parent, sort_order=1), make_task("b", parent, sort_order=4), make_task("c", parent)]

    sub = create_subtask(parent, tasks, now=NOW, id_factory=lambda: "new")

    assert sub.id == "new"
    assert sub.sort_order == 5


def test_create_requires_parent_in_collection() -> None:
    parent = make_task("p")
    with pytest.raises(TaskNotFound):
        create_subtask(parent, [make_task("other")], now=NOW)


def test_create_rejects_engine_owned_fields() -> None:
    parent = make_task("p")
    with pytest.raises(InvalidOperation):
        create_subtask(parent, [parent], {"depth": 7}, now=NOW)
    with pytest.raises(InvalidOperation):
        create_subtask(parent, [parent], {"no_such_field": 1}, now=NOW)


# ---- reorder ----


def test_reorder_assigns_one_based_positions() -> None:
    p = make_task("p")
    a = make_task("a", p, sort_order=1)
    b = make_task("b", p, sort_order=2)
    c = make_task("c", p, sort_order=3)

    updated = reorder_subtasks("p", ["c", "a", "b"], [p, a, b, c], now=NOW)

    assert {t.id: t.sort_order for t in updated} == {"c": 1, "a": 2, "b": 3}
    assert all(t.updated_at == NOW for t in updated)


def test_reorder_returns_sort_orders_in_given_order() -> None:
    p = make_task("p")
    a = make_task("a", p, sort_order=3)
    b = make_task("b", p, sort_order=1)
    c = make_task("c", p, sort_order=2)

    updated = reorder_subtasks("p", ["a", "b", "c"], [p, a, b, c], now=NOW)
    by_id = {t.id: t.sort_order for t in updated}

    assert by_id == {"a": 1, "b": 2, "c": 3}


def test_reorder_ignores_unknown_and_repeated_ids_and_keeps_group_dense() -> None:
    p = make_task("p")
    a = make_task("a", p, sort_order=1)
    b = make_task("b", p, sort_order=2)
    c = make_task("c", p, sort_order=3)
    stranger = make_task("x", make_task("q"), sort_order=1)

    updated = reorder_subtasks("p", ["x", "c", "c", "ghost"], [p, a, b, c, stranger], now=NOW)
    by_id = {t.id: t.sort_order for t in updated}

    # c first, then the unmentioned siblings in their current order
    assert by_id == {"c": 1, "a": 2, "b": 3}
    assert "x" not in by_id


def test_reorder_returns_every_sibling_even_when_already_in_place() -> None:
    p = make_task("p")
    a = make_task("a", p, sort_order=1)
    b = make_task("b", p, sort_order=2)
    c = make_task("c", p, sort_order=3)

    updated = reorder_subtasks("p", ["a", "b", "c"], [p, a, b, c], now=NOW)

    assert [(t.id, t.sort_order) for t in updated] == [("a", 1), ("b", 2), ("c", 3)]
    assert all(t.updated_at == NOW for t in updated)


def test_reorder_result_follows_requested_order() -> None:
    p = make_task("p")
    a = make_task("a", p, sort_order=1)
    b = make_task("b", p, sort_order=2)

    updated = reorder_subtasks("p", ["b", "a"], [p, a, b], now=NOW)

    assert [(t.id, t.sort_order) for t in updated] == [("b", 1), ("a", 2)]


# ---- move ----


def test_move_recomputes_depth_sort_order_and_inheritance() -> None:
    root = make_task("root")
    deep = make_task("deep", make_task("mid", root), type=TaskType.BRAIN)
    target = make_task("target", type=TaskType.ADMIN, period=TaskPeriod.AFTERNOON)
    existing = make_task("existing", target, sort_order=3)
    tasks = [root, deep, target, existing]

    patch = move_subtask("deep", "target", tasks, now=NOW)

    assert patch["parent_task_id"] == "target"
    assert patch["depth"] == target.depth + 1
    assert patch["sort_order"] == 4
    assert patch["type"] == TaskType.ADMIN
    assert patch["period"] == TaskPeriod.AFTERNOON
    assert patch["updated_at"] == NOW


def test_move_within_same_parent_goes_to_end() -> None:
    p = make_task("p")
    a = make_task("a", p, sort_order=1)
    b = make_task("b", p, sort_order=2)

    patch = move_subtask("a", "p", [p, a, b], now=NOW)

    assert patch["sort_order"] == 3


def test_move_requires_both_ids() -> None:
    p = make_task("p")
    a = make_task("a", p)
    with pytest.raises(TaskNotFound):
        move_subtask("a", "missing", [p, a], now=NOW)
    with pytest.raises(TaskNotFound):
        move_subtask("missing", "p", [p, a], now=NOW)


def test_move_under_own_descendant_is_rejected() -> None:
    root = make_task("root")
    child = make_task("child", root)
    grandchild = make_task("grandchild", child)
    tasks = [root, child, grandchild]

    with pytest.raises(InvalidOperation):
        move_subtask("child", "grandchild", tasks, now=NOW)
    with pytest.raises(InvalidOperation):
        move_subtask("child", "child", tasks, now=NOW)


def test_rebase_depths_updates_whole_subtree() -> None:
    root = make_task("root")
    a = make_task("a", root)
    a1 = make_task("a1", a)
    a11 = make_task("a11", a1)
    a12 = make_task("a12", a1)

    patches = rebase_depths("a", 3, [root, a, a1, a11, a12], now=NOW)

    assert patches == {
        "a1": {"depth": 4, "updated_at": NOW},
        "a11": {"depth": 5, "updated_at": NOW},
        "a12": {"depth": 5, "updated_at": NOW},
    }


# ---- cascade delete ----


def test_cascade_delete_collects_every_descendant() -> None:
    root = make_task("root")
    s = make_task("s", root)
    chain = [s]
    for i in range(6):
        chain.append(make_task(f"d{i}", chain[-1]))
    sibling = make_task("sib", root)

    ids = cascade_delete_ids("s", [root, sibling, *chain])

    assert ids[0] == "s"
    assert set(ids) == {"s", "d0", "d1", "d2", "d3", "d4", "d5"}
    assert len(ids) == len(set(ids))


def test_cascade_delete_on_cycle_has_no_duplicates() -> None:
    s = make_task("s", parent_task_id="t", depth=1)
    t = make_task("t", parent_task_id="s", depth=2)
    u = make_task("u", parent_task_id="t", depth=3)

    ids = cascade_delete_ids("s", [s, t, u])

    assert sorted(ids) == ["s", "t", "u"]


def test_cascade_delete_unknown_id() -> None:
    with pytest.raises(TaskNotFound):
        cascade_delete_ids("ghost", [make_task("a")])


# ---- flatten ----


def test_flatten_orders_roots_then_depth_first_with_indent() -> None:
    r1 = make_task("r1")
    r2 = make_task("r2")
    a = make_task("a", r1, sort_order=2)
    b = make_task("b", r1, sort_order=1)
    b1 = make_task("b1", b, sort_order=1)
    c = make_task("c", r2, sort_order=1)
    orphan = make_task("orphan", parent_task_id="gone", depth=1)

    flat = flatten([a, r1, b1, orphan, r2, b, c])

    assert [(f.task.id, f.indent) for f in flat] == [
        ("r1", 0),
        ("b", 1),
        ("b1", 2),
        ("a", 1),
        ("r2", 0),
        ("c", 1),
    ]
