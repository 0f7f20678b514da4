# tests/test_todo_store.py

from __future__ import annotations

import sqlite3
import threading
from pathlib import Path

import pytest

from todo_notifications.todos.errors import InvalidTransitionError, TodoNotFoundError, ValidationError
from todo_notifications.todos.label_priorities import SqliteLabelPriorities, StaticLabelPriorities
from todo_notifications.todos.todo_models import SortOrder, TargetRef, TodoAction, TodoState, validate_new_todo
from todo_notifications.todos.todo_store import TodoStore

SHA = "0b4bc9a49b562e85de7cc9e834518ea6828729b9"


def _add(store: TodoStore, target: TargetRef, *, user_id: int = 1, now_ts: float | None = None, **kw):
    return store.create(
        action=kw.pop("action", TodoAction.ASSIGNED),
        author_id=kw.pop("author_id", 2),
        user_id=user_id,
        project_id=kw.pop("project_id", 7),
        target=target,
        now_ts=now_ts,
        **kw,
    )


def test_create_then_list_recency_puts_new_todo_first(store: TodoStore) -> None:
    _add(store, TargetRef.issue(10))
    _add(store, TargetRef.merge_request(5))
    newest = _add(store, TargetRef.issue(11), action=TodoAction.MENTIONED)

    todos = list(store.iter_todos(1, state=TodoState.PENDING, order=SortOrder.RECENCY))
    assert [t.id for t in todos][0] == newest.id
    assert [t.id for t in todos] == sorted((t.id for t in todos), reverse=True)


def test_create_stores_pending_todo(store: TodoStore) -> None:
    todo = _add(store, TargetRef.issue(10), note_id=99, now_ts=1000.0)

    assert todo.state == TodoState.PENDING
    assert todo.created_at == 1000.0
    assert todo.target_id == 10
    assert todo.commit_id is None

    stored = store.get(todo.id)
    assert stored == todo


def test_create_commit_todo_uses_commit_id(store: TodoStore) -> None:
    todo = _add(store, TargetRef.commit(SHA))

    assert todo.for_commit
    assert todo.target_id is None
    assert todo.commit_id == SHA
    assert todo.target == TargetRef.commit(SHA)


@pytest.mark.parametrize(
    ("target", "message"),
    [
        (TargetRef("Issue", None), "target_id can't be blank"),
        (TargetRef("MergeRequest", None), "target_id can't be blank"),
        (TargetRef("Commit", None), "commit_id can't be blank"),
        (TargetRef("Commit", "  "), "commit_id can't be blank"),
        (TargetRef("", 10), "target_type can't be blank"),
        (TargetRef("Issue", "abc"), "target_id is not a number"),
        (TargetRef("Issue", 1.7), "target_id is not a number"),
        (TargetRef("MergeRequest", True), "target_id is not a number"),
    ],
)
def test_create_validates_target_reference(store: TodoStore, target: TargetRef, message: str) -> None:
    with pytest.raises(ValidationError) as exc:
        _add(store, target)

    assert exc.value.errors == [message]
    assert store.count_todos() == 0


def test_create_collects_every_missing_attribute(store: TodoStore) -> None:
    with pytest.raises(ValidationError) as exc:
        store.create(action=None, author_id=None, user_id=None, project_id=None, target=TargetRef.issue(1))

    assert exc.value.errors == [
        "action can't be blank",
        "project can't be blank",
        "user can't be blank",
    ]


def test_create_rejects_unknown_action(store: TodoStore) -> None:
    with pytest.raises(ValidationError, match="action is not included"):
        _add(store, TargetRef.issue(1), action=42)


def test_validate_new_todo_returns_normalized_action() -> None:
    action = validate_new_todo(action=5, user_id=1, project_id=7, target=TargetRef("Issue", " 10 "))
    assert action is TodoAction.APPROVAL_REQUIRED

    with pytest.raises(ValidationError) as exc:
        validate_new_todo(action="approval", user_id=1, project_id=7, target=TargetRef.issue(10))
    assert exc.value.errors == ["action is not included in the list ('approval')"]


def test_create_accepts_numeric_string_target_id(store: TodoStore) -> None:
    todo = _add(store, TargetRef("Issue", "10"))
    assert todo.target == TargetRef.issue(10)


def test_complete_is_a_one_way_gate(store: TodoStore) -> None:
    todo = _add(store, TargetRef.issue(10))

    done = store.complete(todo.id)
    assert done.state == TodoState.DONE

    with pytest.raises(InvalidTransitionError) as exc:
        store.complete(todo.id)
    assert exc.value.current_state == "done"
    assert store.get(todo.id).state == TodoState.DONE


def test_complete_unknown_todo(store: TodoStore) -> None:
    with pytest.raises(TodoNotFoundError):
        store.complete(12345)


def test_concurrent_complete_has_exactly_one_winner(store: TodoStore) -> None:
    todo = _add(store, TargetRef.issue(10))
    barrier = threading.Barrier(4)
    outcomes: list[str] = []
    lock = threading.Lock()

    def worker() -> None:
        barrier.wait()
        try:
            store.complete(todo.id)
            result = "ok"
        except InvalidTransitionError:
            result = "rejected"
        with lock:
            outcomes.append(result)

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    assert sorted(outcomes) == ["ok", "rejected", "rejected", "rejected"]


def test_list_is_scoped_to_user_and_state(store: TodoStore) -> None:
    mine = _add(store, TargetRef.issue(10), user_id=1)
    finished = _add(store, TargetRef.issue(11), user_id=1)
    _add(store, TargetRef.issue(12), user_id=2)
    store.complete(finished.id)

    pending = list(store.iter_todos(1, state=TodoState.PENDING, order=SortOrder.RECENCY))
    done = list(store.iter_todos(1, state=TodoState.DONE, order=SortOrder.RECENCY))

    assert [t.id for t in pending] == [mine.id]
    assert [t.id for t in done] == [finished.id]
    assert store.count(1, state=TodoState.PENDING) == 1
    assert store.count(2, state=TodoState.PENDING) == 1


def test_priority_order_example_scenario(store: TodoStore, priorities: StaticLabelPriorities) -> None:
    priorities.set("Issue", 10, 2)
    priorities.set("Issue", 11, 1)

    a = _add(store, TargetRef.issue(10), action=TodoAction.ASSIGNED, now_ts=100.0)
    b = _add(store, TargetRef.issue(11), action=TodoAction.MENTIONED, now_ts=200.0)
    c = _add(store, TargetRef.merge_request(5), action=TodoAction.MARKED, now_ts=300.0)

    ordered = list(store.iter_todos(1, state=TodoState.PENDING, order=SortOrder.PRIORITY))
    assert [t.id for t in ordered] == [b.id, a.id, c.id]


def test_priority_order_nulls_last_with_oldest_first_ties(
    store: TodoStore, priorities: StaticLabelPriorities
) -> None:
    priorities.set("Issue", 1, 3)
    priorities.set("Issue", 2, 1, 5)  # lowest label wins
    priorities.set("Issue", 3, 3)

    # Created newest-to-oldest on purpose; priority must not depend on insertion order.
    unlabeled_new = _add(store, TargetRef.merge_request(9), now_ts=600.0)
    commit = _add(store, TargetRef.commit(SHA), now_ts=500.0)
    p3_new = _add(store, TargetRef.issue(3), now_ts=400.0)
    p3_old = _add(store, TargetRef.issue(1), now_ts=300.0)
    unlabeled_old = _add(store, TargetRef.merge_request(8), now_ts=200.0)
    p1 = _add(store, TargetRef.issue(2), now_ts=100.0)

    ordered = list(store.iter_todos(1, state=TodoState.PENDING, order=SortOrder.PRIORITY))
    assert [t.id for t in ordered] == [
        p1.id,
        p3_old.id,
        p3_new.id,
        unlabeled_old.id,
        commit.id,
        unlabeled_new.id,
    ]


def test_priority_order_ignores_labels_on_other_target_types(store: TodoStore) -> None:
    # A resolver that would prioritize anything; only Issue/MergeRequest may be consulted.
    class Everything:
        def __init__(self) -> None:
            self.asked: list[tuple[str, int]] = []

        def highest_priority(self, target_type: str, target_id: int) -> int | None:
            self.asked.append((target_type, target_id))
            return 1

    resolver = Everything()
    s = TodoStore(store.db_path, priorities=resolver)
    epic = _add(s, TargetRef("Epic", 4), now_ts=100.0)
    issue = _add(s, TargetRef.issue(4), now_ts=200.0)

    ordered = list(s.iter_todos(1, state=TodoState.PENDING, order=SortOrder.PRIORITY))
    assert [t.id for t in ordered] == [issue.id, epic.id]
    assert ("Epic", 4) not in resolver.asked


def test_priority_order_surfaces_resolver_failure(store: TodoStore) -> None:
    class Down:
        def highest_priority(self, target_type: str, target_id: int) -> int | None:
            raise ConnectionError("label service down")

    s = TodoStore(store.db_path, priorities=Down())
    _add(s, TargetRef.issue(4))

    with pytest.raises(ConnectionError, match="label service down") as exc:
        list(s.iter_todos(1, state=TodoState.PENDING, order=SortOrder.PRIORITY))

    assert isinstance(exc.value.__cause__, sqlite3.OperationalError)

    # Other orders never call the resolver.
    assert len(list(s.iter_todos(1, state=TodoState.PENDING, order=SortOrder.RECENCY))) == 1


def test_priority_order_with_sqlite_label_priorities(tmp_path: Path) -> None:
    db = tmp_path / "todos.sqlite3"
    labels = SqliteLabelPriorities(db)
    s = TodoStore(db, priorities=labels)

    labels.set_priority("MergeRequest", 5, "urgent", 0)
    labels.set_priority("Issue", 10, "bug", 4)
    labels.set_priority("Issue", 10, "security", 2)
    assert labels.highest_priority("Issue", 10) == 2
    assert labels.highest_priority("Issue", 99) is None

    issue = _add(s, TargetRef.issue(10), now_ts=100.0)
    mr = _add(s, TargetRef.merge_request(5), now_ts=200.0)
    ordered = list(s.iter_todos(1, state=TodoState.PENDING, order=SortOrder.PRIORITY))
    assert [t.id for t in ordered] == [mr.id, issue.id]

    labels.clear("MergeRequest", 5)
    ordered = list(s.iter_todos(1, state=TodoState.PENDING, order=SortOrder.PRIORITY))
    assert [t.id for t in ordered] == [issue.id, mr.id]


def test_created_and_updated_orders(store: TodoStore) -> None:
    first = _add(store, TargetRef.issue(1), now_ts=300.0)
    second = _add(store, TargetRef.issue(2), now_ts=100.0)

    asc = list(store.iter_todos(1, state=TodoState.PENDING, order=SortOrder.CREATED_ASC))
    desc = list(store.iter_todos(1, state=TodoState.PENDING, order=SortOrder.CREATED_DESC))
    by_id = list(store.iter_todos(1, state=TodoState.PENDING, order=SortOrder.ID_ASC))

    assert [t.id for t in asc] == [second.id, first.id]
    assert [t.id for t in desc] == [first.id, second.id]
    assert [t.id for t in by_id] == [first.id, second.id]

    store.complete(first.id, now_ts=500.0)
    store.complete(second.id, now_ts=400.0)
    updated = list(store.iter_todos(1, state=TodoState.DONE, order=SortOrder.UPDATED_DESC))
    assert [t.id for t in updated] == [first.id, second.id]


def test_iter_todos_is_lazy_and_single_use(store: TodoStore) -> None:
    _add(store, TargetRef.issue(1))
    it = store.iter_todos(1, state=TodoState.PENDING, order=SortOrder.RECENCY)

    # The query has not run yet, so a todo created now is still seen.
    late = _add(store, TargetRef.issue(2))
    first = next(it)
    assert first.id == late.id

    rest = list(it)
    assert len(rest) == 1
    assert list(it) == []


def test_commit_todos_queue_keep_around_on_create_and_complete(store: TodoStore) -> None:
    todo = _add(store, TargetRef.commit(SHA))
    _add(store, TargetRef.issue(3))

    due = store.list_due_keep_arounds(now_ts=todo.created_at + 1)
    assert [(r.todo_id, r.commit_id, r.project_id) for r in due] == [(todo.id, SHA, 7)]

    store.complete(todo.id)
    assert store.keep_around_stats()["pending"] == 2


def test_keep_around_claim_is_exclusive(store: TodoStore) -> None:
    todo = _add(store, TargetRef.commit(SHA))
    (req,) = store.list_due_keep_arounds(now_ts=todo.created_at + 1)

    assert store.try_claim_keep_around(req.id) is True
    assert store.try_claim_keep_around(req.id) is False

    assert store.release_stale_keep_arounds() == 1
    assert store.try_claim_keep_around(req.id) is True


def test_sort_order_parse() -> None:
    assert SortOrder.parse("id_desc") is SortOrder.RECENCY
    assert SortOrder.parse("Priority") is SortOrder.PRIORITY
    assert SortOrder.parse("created_asc") is SortOrder.CREATED_ASC
    with pytest.raises(ValueError):
        SortOrder.parse("label_priority")


def test_reopening_store_keeps_data(tmp_path: Path) -> None:
    db = tmp_path / "todos.sqlite3"
    first = TodoStore(db)
    todo = _add(first, TargetRef.issue(1))

    second = TodoStore(db)
    assert second.count_todos() == 1
    assert second.get(todo.id) == todo
