from core.sync.completions import (
    completion_candidates,
    is_completed,
    item_states,
    mark_completed_at_source,
    pending_completions,
    poll_completions,
)
from core.sync.models import ItemState, MarkResult, TaskFound, TaskNotFound, TaskQueryError
from tests.fakes import FakeListView, FakeTaskSystem, make_item, run


def _store():
    return {
        "milk": make_item("Milk", downstream_id="t-milk"),
        "eggs": make_item("Eggs", downstream_id="t-eggs"),
        "bread": make_item("Bread", downstream_id="t-bread"),
        "jam": make_item("Jam", downstream_id="t-jam", completed=True),
        "tea": make_item("Tea", downstream_id=None),
    }


def test_candidates_skip_completed_and_unsynced_entries():
    names = {e.canonical_name for e in completion_candidates(_store())}
    assert names == {"milk", "eggs", "bread"}


def test_is_completed_classification():
    assert is_completed(TaskNotFound()) is True
    assert is_completed(TaskFound(done=True)) is True
    assert is_completed(TaskFound(done=False)) is False
    assert is_completed(TaskQueryError("timeout")) is None


def test_poll_classifies_each_status():
    tasks = FakeTaskSystem()
    tasks.statuses = {
        "t-milk": TaskNotFound(),
        "t-eggs": TaskFound(done=True),
        "t-bread": TaskFound(done=False),
    }

    completed = run(poll_completions(_store(), tasks.get_task_status))

    assert sorted(completed) == ["eggs", "milk"]


def test_poll_skips_transient_errors_without_marking(caplog):
    tasks = FakeTaskSystem()
    tasks.statuses = {
        "t-milk": TaskQueryError("connection reset"),
        "t-eggs": TaskFound(done=False),
        "t-bread": TaskFound(done=False),
    }

    with caplog.at_level("WARNING"):
        completed = run(poll_completions(_store(), tasks.get_task_status))

    assert completed == []
    assert any("will retry" in rec.message for rec in caplog.records)


def test_poll_treats_raised_exception_as_transient():
    async def _boom(task_id):
        raise RuntimeError("network down")

    store = {"milk": make_item("Milk", downstream_id="t-milk")}

    assert run(poll_completions(store, _boom)) == []


def test_poll_does_not_mutate_store():
    tasks = FakeTaskSystem()
    tasks.statuses = {"t-milk": TaskNotFound(), "t-eggs": TaskNotFound(), "t-bread": TaskNotFound()}
    store = _store()
    before = dict(store)

    run(poll_completions(store, tasks.get_task_status))

    assert store == before


def test_mark_updates_only_confirmed_items():
    view = FakeListView({"Milk": False, "Eggs": True})
    store = _store()

    results, updated = run(mark_completed_at_source(view, ["milk", "eggs", "bread"], store))

    assert results == {
        "milk": MarkResult.MARKED,
        "eggs": MarkResult.ALREADY_DONE,
        "bread": MarkResult.NOT_FOUND,
    }
    assert updated["milk"].state is ItemState.COMPLETED_AT_SOURCE
    assert updated["milk"].completed_at
    assert updated["eggs"].completed_at_source is True
    assert updated["bread"] == store["bread"]
    assert view.clicks == ["Milk"]


def test_marking_twice_is_idempotent():
    view = FakeListView({"Milk": False})
    store = {"milk": make_item("Milk", downstream_id="t-milk")}

    first, store = run(mark_completed_at_source(view, ["milk"], store))
    second, store = run(mark_completed_at_source(view, ["milk"], store))

    assert first["milk"] is MarkResult.MARKED
    assert second["milk"] is MarkResult.ALREADY_DONE
    assert view.clicks == ["Milk"]
    assert store["milk"].completed_at_source is True


def test_view_error_for_one_item_does_not_stop_the_batch():
    class FlakyView(FakeListView):
        async def mark_done(self, name):
            if name == "Milk":
                raise RuntimeError("detached frame")
            return await super().mark_done(name)

    view = FlakyView({"Milk": False, "Eggs": False})
    store = _store()

    results, updated = run(mark_completed_at_source(view, ["milk", "eggs"], store))

    assert results["milk"] is MarkResult.FAILED
    assert results["eggs"] is MarkResult.MARKED
    assert updated["milk"].completed_at_source is False
    assert updated["eggs"].completed_at_source is True


def test_archived_task_with_missing_row_is_logged_not_marked(caplog):
    tasks = FakeTaskSystem()
    tasks.statuses = {"t-milk": TaskNotFound()}
    store = {"milk": make_item("Milk", downstream_id="t-milk")}
    view = FakeListView({"Eggs": False})

    completed = run(poll_completions(store, tasks.get_task_status))
    assert completed == ["milk"]

    with caplog.at_level("WARNING"):
        results, updated = run(mark_completed_at_source(view, completed, store))

    assert results["milk"] is MarkResult.NOT_FOUND
    assert updated["milk"].completed_at_source is False
    assert any("Could not find item" in rec.message for rec in caplog.records)


def test_on_marked_receives_flipped_entries():
    view = FakeListView({"Milk": False})
    store = {"milk": make_item("Milk", downstream_id="t-milk")}
    saved = []

    run(mark_completed_at_source(view, ["milk"], store, on_marked=saved.append))

    assert len(saved) == 1
    assert saved[0].completed_at_source is True


def test_item_states_distinguish_pending_completions():
    store = _store()

    states = item_states(store, ["Milk", "jam"])

    assert states["milk"] is ItemState.COMPLETED_PENDING
    assert states["jam"] is ItemState.COMPLETED_AT_SOURCE
    assert states["eggs"] is ItemState.ACTIVE_SYNCED
    assert states["tea"] is ItemState.ACTIVE_SYNCED


def test_pending_clears_once_the_origin_confirms():
    store = _store()
    assert pending_completions(store, ["milk", "eggs"]) == ["milk", "eggs"]

    store["milk"] = store["milk"].mark_completed()

    assert pending_completions(store, ["milk", "eggs"]) == ["eggs"]
    assert pending_completions(store, []) == []
