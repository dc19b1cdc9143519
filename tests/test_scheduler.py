import json

from tasktrack_app.tracker.models import Task
from tasktrack_app.tracker.scheduler import RoundScheduler
from tasktrack_app.tracker.storage import ROUNDS_KEY, day_key

DAY = "2026-10-19"


def add(scheduler, task_id, round_number=1, done=False, planned=1, completed=0):
    return scheduler.upsert_task(
        DAY, Task(id=task_id, title=task_id.upper(), assigned_round=round_number, done=done, planned=planned, completed=completed)
    )


def test_current_round_defaults_and_persists(store, clock):
    scheduler = RoundScheduler(store, clock)
    assert scheduler.get_current_round(DAY) == 1
    assert json.loads(store.get(ROUNDS_KEY)) == {DAY: 1}
    assert scheduler.advance_round(DAY) == 2
    assert RoundScheduler(store, clock).get_current_round(DAY) == 2


def test_round_pull_law(store, clock):
    scheduler = RoundScheduler(store, clock)
    add(scheduler, "a", 1)
    add(scheduler, "b", 2)
    assert scheduler.ensure_active_task_for_round(DAY).id == "a"

    scheduler.update_task_round(DAY, "a", 2)
    scheduler.advance_round(DAY)
    # Both are due in round 2; list order breaks the tie.
    assert scheduler.ensure_active_task_for_round(DAY).id == "a"


def test_best_task_prefers_earliest_due_round(store, clock):
    scheduler = RoundScheduler(store, clock)
    add(scheduler, "late", 3)
    add(scheduler, "early", 1)
    add(scheduler, "mid", 2)
    scheduler.advance_round(DAY)
    assert scheduler.find_best_task_for_round(DAY).id == "early"


def test_best_task_falls_back_to_future_round(store, clock):
    scheduler = RoundScheduler(store, clock)
    add(scheduler, "later", 5)
    add(scheduler, "soon", 3)
    add(scheduler, "finished", 1, done=True)
    assert scheduler.find_best_task_for_round(DAY).id == "soon"


def test_no_open_tasks_means_no_active_task(store, clock):
    scheduler = RoundScheduler(store, clock)
    assert scheduler.find_best_task_for_round(DAY) is None
    add(scheduler, "x", done=True)
    assert scheduler.ensure_active_task_for_round(DAY) is None
    assert scheduler.get_active_task_id(DAY) is None


def test_ensure_keeps_valid_active_task(store, clock):
    scheduler = RoundScheduler(store, clock)
    add(scheduler, "a", 1)
    add(scheduler, "b", 1)
    scheduler.set_active_task(DAY, "b")
    assert scheduler.ensure_active_task_for_round(DAY).id == "b"


def test_ensure_replaces_active_task_scheduled_later(store, clock):
    scheduler = RoundScheduler(store, clock)
    add(scheduler, "a", 1)
    add(scheduler, "b", 1)
    scheduler.set_active_task(DAY, "b")
    scheduler.move_to_next_round(DAY, "b")
    assert scheduler.ensure_active_task_for_round(DAY).id == "a"
    assert json.loads(store.get(day_key(DAY)))["activeTaskId"] == "a"


def test_carry_over_task_waits_for_its_round(store, clock):
    scheduler = RoundScheduler(store, clock)
    add(scheduler, "only", 1)
    scheduler.set_active_task(DAY, "only")
    carried = scheduler.update_task_round(DAY, "only", 2)
    assert carried.assigned_round == 2 and not carried.done
    # Still offered as the fallback, but not as a task due this round.
    assert scheduler.find_best_task_for_round(DAY).id == "only"
    add(scheduler, "other", 1)
    assert scheduler.ensure_active_task_for_round(DAY).id == "other"
    scheduler.mark_done(DAY, "other")
    scheduler.advance_round(DAY)
    assert scheduler.ensure_active_task_for_round(DAY).id == "only"


def test_update_task_round_reopens_and_clamps(store, clock):
    scheduler = RoundScheduler(store, clock)
    add(scheduler, "a", 3, done=True)
    task = scheduler.update_task_round(DAY, "a", -4)
    assert task.assigned_round == 1
    assert task.done is False


def test_delete_active_task_clears_pointer(store, clock):
    scheduler = RoundScheduler(store, clock)
    add(scheduler, "a")
    scheduler.set_active_task(DAY, "a")
    assert scheduler.delete_task(DAY, "a") is True
    assert scheduler.get_active_task_id(DAY) is None
    assert scheduler.delete_task(DAY, "a") is False


def test_done_task_cannot_stay_active(store, clock):
    scheduler = RoundScheduler(store, clock)
    add(scheduler, "a")
    scheduler.set_active_task(DAY, "a")
    scheduler.toggle_done(DAY, "a")
    assert scheduler.get_active_task_id(DAY) is None
    assert scheduler.set_active_task(DAY, "a") is False
    scheduler.toggle_done(DAY, "a")
    assert scheduler.set_active_task(DAY, "a") is True


def test_increment_completion_never_negative(store, clock):
    scheduler = RoundScheduler(store, clock)
    add(scheduler, "a", completed=1)
    assert scheduler.increment_completion(DAY, "a").completed == 2
    assert scheduler.increment_completion(DAY, "a", -5).completed == 0
    assert scheduler.increment_completion(DAY, "missing") is None


def test_upsert_keeps_position(store, clock):
    scheduler = RoundScheduler(store, clock)
    add(scheduler, "a")
    add(scheduler, "b")
    scheduler.upsert_task(DAY, Task(id="a", title="Renamed"))
    assert [task.title for task in scheduler.tasks(DAY)] == ["Renamed", "B"]


def test_display_order(store, clock):
    scheduler = RoundScheduler(store, clock)
    add(scheduler, "done1", 1, done=True)
    add(scheduler, "open2", 2)
    add(scheduler, "open1", 1)
    assert [task.id for task in scheduler.display_order(DAY)] == ["open1", "done1", "open2"]


def test_corrupt_day_record_falls_back_to_empty(store, clock):
    store.set(day_key(DAY), "{broken")
    scheduler = RoundScheduler(store, clock)
    assert scheduler.tasks(DAY) == []
    add(scheduler, "a")
    assert RoundScheduler(store, clock).tasks(DAY)[0].id == "a"


def test_week_summary_reads_trailing_days(store, clock):
    scheduler = RoundScheduler(store, clock)
    add(scheduler, "a", planned=3, completed=2)
    add(scheduler, "b", planned=1, completed=1, done=True)
    scheduler.upsert_task("2026-10-13", Task(id="old", title="Old", planned=2, completed=2))
    scheduler.upsert_task("2026-10-12", Task(id="older", title="Too old", planned=9))

    week = scheduler.week_summary()
    assert [day.date for day in week] == [
        "2026-10-13",
        "2026-10-14",
        "2026-10-15",
        "2026-10-16",
        "2026-10-17",
        "2026-10-18",
        "2026-10-19",
    ]
    assert (week[0].planned, week[0].completed) == (2, 2)
    assert (week[-1].planned, week[-1].completed, week[-1].done, week[-1].tasks) == (4, 3, 1, 2)
    assert sum(day.planned for day in week[1:-1]) == 0


def test_new_task_ids_are_namespaced(store, clock):
    scheduler = RoundScheduler(store, clock)
    assert scheduler.new_task_id().startswith(f"task-{clock.now_ms()}-")
