import json
import threading

from tasktrack_app.tracker.models import TimerConfig, TimerMode
from tasktrack_app.tracker.storage import TIMER_STATE_KEY
from tasktrack_app.tracker.timers import ManualTicker, PomodoroTimer, ThreadTicker


def make_timer(store, clock, ticker, config=None, **kwargs):
    timer = PomodoroTimer(store, clock, config=config or TimerConfig(), ticker=ticker, **kwargs)
    timer.load()
    return timer


def stored(store):
    return json.loads(store.get(TIMER_STATE_KEY))


def test_initial_state(store, clock, ticker):
    timer = make_timer(store, clock, ticker)
    assert timer.state.mode is TimerMode.FOCUS
    assert timer.state.remaining_seconds == 1500
    assert not timer.state.is_running
    assert timer.state.last_updated_ms is None


def test_start_is_idempotent(store, clock, ticker):
    prepared = []
    timer = make_timer(store, clock, ticker, prepare_focus=lambda: prepared.append(True))
    assert timer.start() is True
    assert timer.start() is False
    assert ticker.starts == 1
    assert prepared == [True]
    assert stored(store)["isRunning"] is True
    assert stored(store)["lastUpdated"] == clock.now_ms()


def test_pause_twice_equals_once(store, clock, ticker):
    timer = make_timer(store, clock, ticker)
    timer.start()
    clock.advance(3)
    ticker.fire()
    assert timer.pause() is True
    snapshot = stored(store)
    assert timer.pause() is False
    assert stored(store) == snapshot
    assert snapshot == {
        "version": 1,
        "mode": "focus",
        "remaining": 1497,
        "isRunning": False,
        "lastUpdated": None,
        "focusStreak": 0,
    }
    assert not ticker.running


def test_tick_ignores_sub_second_jitter(store, clock, ticker):
    changes = []
    timer = make_timer(store, clock, ticker, on_change=changes.append)
    timer.start()
    changes.clear()
    clock.advance(0.6)
    ticker.fire()
    assert timer.state.remaining_seconds == 1500
    assert changes == []
    clock.advance(0.6)
    ticker.fire()
    assert timer.state.remaining_seconds == 1499


def test_late_tick_catches_up_and_completes_once(store, clock, ticker):
    completions = []
    timer = make_timer(store, clock, ticker, config=TimerConfig(focus_minutes=1), on_complete=completions.append)
    timer.start()
    clock.advance(45)
    ticker.fire()
    assert timer.state.remaining_seconds == 15
    clock.advance(100)
    ticker.fire()
    assert timer.state.remaining_seconds == 0
    assert len(completions) == 1
    assert not ticker.running
    ticker.fire()
    assert len(completions) == 1


def test_start_reloads_exhausted_duration(store, clock, ticker):
    timer = make_timer(store, clock, ticker)
    timer.halt_at_zero()
    timer.start()
    assert timer.state.remaining_seconds == 1500


def test_switch_mode_rejects_unknown_values(store, clock, ticker):
    timer = make_timer(store, clock, ticker)
    timer.state.focus_streak = 2
    timer.start()
    assert timer.switch_mode("siesta") is False
    assert timer.state.is_running

    assert timer.switch_mode("longBreak") is True
    assert timer.state.mode is TimerMode.LONG_BREAK
    assert timer.state.remaining_seconds == 900
    assert not timer.state.is_running
    assert timer.state.focus_streak == 2
    assert not ticker.running


def test_reset_optionally_clears_streak(store, clock, ticker):
    timer = make_timer(store, clock, ticker)
    timer.state.focus_streak = 3
    timer.start()
    clock.advance(10)
    ticker.fire()
    timer.reset()
    assert timer.state.remaining_seconds == 1500
    assert timer.state.focus_streak == 3
    timer.reset(mode=TimerMode.SHORT_BREAK, reset_streak=True)
    assert timer.state.mode is TimerMode.SHORT_BREAK
    assert timer.state.remaining_seconds == 300
    assert timer.state.focus_streak == 0


def test_recovery_subtracts_suspended_time(store, clock, ticker):
    store.set(
        TIMER_STATE_KEY,
        json.dumps({"mode": "focus", "remaining": 100, "isRunning": True, "lastUpdated": clock.now_ms(), "focusStreak": 1}),
    )
    clock.advance(40)
    timer = make_timer(store, clock, ManualTicker())
    assert timer.state.remaining_seconds == 60
    assert timer.state.is_running
    assert timer.state.last_updated_ms == clock.now_ms()
    assert timer.state.focus_streak == 1


def test_recovery_past_zero_does_not_complete(store, clock, ticker):
    completions = []
    store.set(
        TIMER_STATE_KEY,
        json.dumps({"mode": "focus", "remaining": 100, "isRunning": True, "lastUpdated": clock.now_ms(), "focusStreak": 0}),
    )
    clock.advance(120)
    timer = make_timer(store, clock, ticker, on_complete=completions.append)
    assert timer.state.remaining_seconds == 0
    assert timer.state.is_running is False
    timer.resume()
    ticker.fire()
    assert completions == []
    assert not ticker.running


def test_recovery_of_running_state_stopped_at_zero(store, clock, ticker):
    completions = []
    store.set(
        TIMER_STATE_KEY,
        json.dumps({"mode": "focus", "remaining": 0, "isRunning": True, "lastUpdated": clock.now_ms(), "focusStreak": 2}),
    )
    clock.advance(5)
    timer = make_timer(store, clock, ticker, on_complete=completions.append)
    assert timer.state.remaining_seconds == 0
    assert timer.state.is_running is False
    assert timer.state.focus_streak == 2
    assert stored(store)["isRunning"] is False
    timer.resume()
    assert not ticker.running
    assert completions == []

    assert timer.start() is True
    assert timer.state.remaining_seconds == 1500


def test_paused_state_at_zero_loads_full_duration(store, clock, ticker):
    store.set(TIMER_STATE_KEY, json.dumps({"mode": "shortBreak", "remaining": 0, "isRunning": False}))
    timer = make_timer(store, clock, ticker)
    assert timer.state.remaining_seconds == 300


def test_resume_restarts_ticking(store, clock, ticker):
    store.set(
        TIMER_STATE_KEY,
        json.dumps({"mode": "shortBreak", "remaining": 200, "isRunning": True, "lastUpdated": clock.now_ms()}),
    )
    clock.advance(20)
    timer = make_timer(store, clock, ticker)
    timer.resume()
    assert ticker.running
    clock.advance(5)
    ticker.fire()
    assert timer.state.remaining_seconds == 175


def test_focus_completion_streak_sequence(store, clock, ticker):
    timer = make_timer(store, clock, ticker, config=TimerConfig(sessions_before_long_break=4))
    breaks = [timer.record_focus_completion() for _ in range(4)]
    assert breaks == [TimerMode.SHORT_BREAK] * 3 + [TimerMode.LONG_BREAK]
    assert timer.state.focus_streak == 0


def test_thread_ticker_keeps_single_loop():
    ticks = []
    done = threading.Event()

    def on_tick():
        ticks.append(threading.current_thread().name)
        if len(ticks) >= 3:
            done.set()

    ticker = ThreadTicker(interval=0.02)
    ticker.start(lambda: None)
    first_thread = ticker._thread
    ticker.start(on_tick)
    assert first_thread is not None and not first_thread.is_alive()
    assert done.wait(2)
    ticker.stop()
    assert not ticker.running


def test_thread_ticker_uses_dispatch():
    dispatched = []
    done = threading.Event()

    def dispatch(callback):
        dispatched.append(callback)
        done.set()

    ticker = ThreadTicker(interval=0.02, dispatch=dispatch)
    ticker.start(lambda: None)
    assert done.wait(2)
    ticker.stop()
    assert dispatched
