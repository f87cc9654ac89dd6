from core.sync.models import ItemOutcome, ItemState
from core.sync.reconcile import normalize_name, push_planned, reconcile, reconcile_and_push
from tests.fakes import FakeTaskSystem, make_item, run


def test_normalize_name_trims_and_lowercases():
    assert normalize_name("  Almond Milk ") == "almond milk"
    assert normalize_name("") == ""
    assert normalize_name(None) == ""


def test_new_items_are_pushed_and_stored(tasks):
    outcomes, store = run(reconcile_and_push(["Milk", "Eggs"], {}, tasks.create_task))

    assert tasks.created == ["Milk", "Eggs"]
    assert set(store) == {"milk", "eggs"}
    assert all(entry.state is ItemState.ACTIVE_SYNCED for entry in store.values())
    assert store["milk"].display_name == "Milk"
    assert store["milk"].downstream_id
    assert outcomes == {"milk": ItemOutcome.PUSHED, "eggs": ItemOutcome.PUSHED}


def test_active_item_is_skipped(tasks):
    store = {"milk": make_item("Milk", downstream_id="t-milk")}

    outcomes, updated = run(reconcile_and_push(["Milk", "Eggs"], store, tasks.create_task))

    assert tasks.created == ["Eggs"]
    assert outcomes["milk"] is ItemOutcome.SKIPPED_ALREADY_SYNCED
    assert updated["milk"].downstream_id == "t-milk"


def test_re_added_item_resets_to_active_with_new_task(tasks):
    store = {"milk": make_item("Milk", downstream_id="t-old", completed=True)}

    outcomes, updated = run(reconcile_and_push(["Milk"], store, tasks.create_task))

    assert tasks.created == ["Milk"]
    assert outcomes["milk"] is ItemOutcome.PUSHED
    entry = updated["milk"]
    assert entry.completed_at_source is False
    assert entry.completed_at is None
    assert entry.downstream_id != "t-old"


def test_empty_scrape_changes_nothing(tasks):
    store = {"milk": make_item("Milk")}

    outcomes, updated = run(reconcile_and_push([], store, tasks.create_task))

    assert tasks.created == []
    assert outcomes == {}
    assert updated == store


def test_duplicate_names_push_once_with_first_casing(tasks):
    plan = reconcile(["Bread", " bread ", "BREAD", "Eggs"], {})

    assert plan.to_push == ["Bread", "Eggs"]

    run(push_planned(plan, {}, tasks.create_task))
    assert tasks.created == ["Bread", "Eggs"]


def test_blank_names_are_ignored():
    plan = reconcile(["", "   ", "Milk"], {})
    assert plan.to_push == ["Milk"]


def test_reconcile_does_not_touch_store():
    store = {"milk": make_item("Milk", completed=True)}
    before = dict(store)

    reconcile(["Milk", "Eggs"], store)

    assert store == before


def test_partial_failure_leaves_failed_item_untouched():
    tasks = FakeTaskSystem(fail_for=["B"])
    store = {"b": make_item("B", downstream_id="t-b-old", completed=True)}

    outcomes, updated = run(reconcile_and_push(["A", "B", "C"], store, tasks.create_task))

    assert tasks.created == ["A", "C"]
    assert outcomes["a"] is ItemOutcome.PUSHED
    assert outcomes["b"] is ItemOutcome.FAILED_WILL_RETRY
    assert outcomes["c"] is ItemOutcome.PUSHED
    assert updated["b"] == store["b"]
    assert updated["a"].downstream_id and updated["c"].downstream_id


def test_failed_push_is_logged(caplog):
    tasks = FakeTaskSystem(fail_for=["Eggs"])

    with caplog.at_level("ERROR"):
        run(reconcile_and_push(["Eggs"], {}, tasks.create_task))

    assert any("Failed to sync" in rec.message for rec in caplog.records)


def test_repeated_runs_never_open_a_second_task(tasks):
    store = {}
    for _ in range(5):
        _, store = run(reconcile_and_push(["Milk", "milk ", "Eggs"], store, tasks.create_task))

    assert sorted(tasks.created) == ["Eggs", "Milk"]
    active = [e for e in store.values() if e.state is ItemState.ACTIVE_SYNCED]
    assert len(active) == len({e.canonical_name for e in active}) == 2


def test_on_pushed_called_per_successful_item():
    tasks = FakeTaskSystem(fail_for=["B"])
    saved = []

    run(reconcile_and_push(["A", "B"], {}, tasks.create_task, on_pushed=saved.append))

    assert [e.canonical_name for e in saved] == ["a"]


def test_on_pushed_failure_does_not_abort_batch(tasks, caplog):
    def _explode(entry):
        raise RuntimeError("db down")

    with caplog.at_level("ERROR"):
        outcomes, store = run(reconcile_and_push(["A", "B"], {}, tasks.create_task, on_pushed=_explode))

    assert tasks.created == ["A", "B"]
    assert set(store) == {"a", "b"}
    assert any("Failed to persist" in rec.message for rec in caplog.records)
