"""Pomodoro countdown state machine and its tick drivers."""
from __future__ import annotations

import logging
import threading
from typing import Callable, Optional, Protocol, Union

from .clock import Clock
from .models import (
    TimerConfig,
    TimerMode,
    TimerState,
    decode_timer_state,
    encode,
    get_duration_seconds,
)
from .storage import TIMER_STATE_KEY, Storage

LOGGER = logging.getLogger(__name__)

TickCallback = Callable[[], None]


class Ticker(Protocol):
    def start(self, callback: TickCallback) -> None:
        ...

    def stop(self) -> None:
        ...


class ThreadTicker:
    """Fire ``callback`` every ``interval`` seconds from a daemon thread.

    ``dispatch`` hands each tick to the thread that owns the timer state
    (``wx.CallAfter`` in the desktop app); without it the callback runs on the
    ticker thread. Starting always stops the previous loop first so only one
    loop is ever alive.
    """

    def __init__(self, interval: float = 1.0, dispatch: Optional[Callable[[TickCallback], None]] = None) -> None:
        self.interval = interval
        self.dispatch = dispatch
        self._thread: Optional[threading.Thread] = None
        self._stop_event: Optional[threading.Event] = None

    @property
    def running(self) -> bool:
        return self._stop_event is not None and not self._stop_event.is_set()

    def start(self, callback: TickCallback) -> None:
        self.stop()
        stop_event = threading.Event()
        self._stop_event = stop_event
        self._thread = threading.Thread(target=self._run_loop, args=(stop_event, callback), daemon=True)
        self._thread.start()

    def stop(self) -> None:
        if self._stop_event:
            self._stop_event.set()
        thread = self._thread
        if thread and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=1)
        self._thread = None
        self._stop_event = None

    def _run_loop(self, stop_event: threading.Event, callback: TickCallback) -> None:
        while not stop_event.wait(self.interval):
            try:
                if self.dispatch:
                    self.dispatch(callback)
                else:
                    callback()
            except Exception:  # pragma: no cover - defensive
                LOGGER.exception("Timer tick failed")


class ManualTicker:
    """Ticker driven by explicit ``fire()`` calls."""

    def __init__(self) -> None:
        self.callback: Optional[TickCallback] = None
        self.starts = 0

    @property
    def running(self) -> bool:
        return self.callback is not None

    def start(self, callback: TickCallback) -> None:
        self.callback = callback
        self.starts += 1

    def stop(self) -> None:
        self.callback = None

    def fire(self) -> None:
        if self.callback:
            self.callback()


class PomodoroTimer:
    """Focus / short-break / long-break countdown.

    Remaining time is derived from wall-clock timestamps rather than counted
    ticks, so a late tick or a suspended process catches up on the next tick
    or on the next load. Every mutation is persisted.
    """

    def __init__(
        self,
        storage: Storage,
        clock: Clock,
        config: Optional[TimerConfig] = None,
        ticker: Optional[Ticker] = None,
        prepare_focus: Optional[Callable[[], None]] = None,
        on_complete: Optional[Callable[[TimerState], None]] = None,
        on_change: Optional[Callable[[TimerState], None]] = None,
    ) -> None:
        self.storage = storage
        self.clock = clock
        self.config = config
        self.ticker: Ticker = ticker or ThreadTicker()
        self.prepare_focus = prepare_focus
        self.on_complete = on_complete
        self.on_change = on_change
        self.state = TimerState.initial(config)

    def duration_for(self, mode: TimerMode) -> int:
        return get_duration_seconds(mode, self.config)

    @property
    def sessions_before_long_break(self) -> int:
        return (self.config or TimerConfig()).sessions_before_long_break

    # Persistence
    def load(self) -> TimerState:
        """Restore the stored state, catching up on time spent suspended.

        A running state whose time ran out while the app was closed comes back
        paused at zero; completion side effects only ever fire from a live tick.
        """
        decoded = decode_timer_state(self.storage.get(TIMER_STATE_KEY), self.config)
        if not decoded.clean:
            LOGGER.warning("Timer state repaired: %s", "; ".join(decoded.errors))
        state = decoded.value
        if state.is_running and state.last_updated_ms is not None:
            now = self.clock.now_ms()
            elapsed = max(0, (now - state.last_updated_ms) // 1000)
            state.remaining_seconds = max(0, state.remaining_seconds - elapsed)
            state.last_updated_ms = now
            if state.remaining_seconds == 0:
                state.is_running = False
                state.last_updated_ms = None
        self.state = state
        self.persist()
        return state

    def resume(self) -> None:
        """Restart the tick loop for a state that was loaded as running."""
        if self.state.is_running:
            self.state.last_updated_ms = self.clock.now_ms()
            self.ticker.start(self.tick)
            self.persist()
            LOGGER.info("Resumed %s timer with %ss remaining", self.state.mode.value, self.state.remaining_seconds)

    def persist(self) -> None:
        self.storage.set(TIMER_STATE_KEY, encode(self.state.to_payload()))

    def _changed(self) -> None:
        self.persist()
        if self.on_change:
            self.on_change(self.state)

    # Operations
    def start(self) -> bool:
        if self.state.is_running:
            return False
        if self.state.mode is TimerMode.FOCUS and self.prepare_focus:
            self.prepare_focus()
        if self.state.remaining_seconds <= 0:
            self.state.remaining_seconds = self.duration_for(self.state.mode)
        self.state.is_running = True
        self.state.last_updated_ms = self.clock.now_ms()
        self.ticker.start(self.tick)
        LOGGER.debug("Started %s timer", self.state.mode.value)
        self._changed()
        return True

    def pause(self) -> bool:
        if not self.state.is_running:
            return False
        self.ticker.stop()
        self.state.is_running = False
        self.state.last_updated_ms = None
        LOGGER.debug("Paused %s timer at %ss", self.state.mode.value, self.state.remaining_seconds)
        self._changed()
        return True

    def tick(self) -> None:
        if not self.state.is_running or self.state.last_updated_ms is None:
            return
        now = self.clock.now_ms()
        elapsed = (now - self.state.last_updated_ms) // 1000
        if elapsed <= 0:
            return
        self.state.remaining_seconds = max(0, self.state.remaining_seconds - elapsed)
        self.state.last_updated_ms = now
        self._changed()
        if self.state.remaining_seconds == 0:
            self.ticker.stop()
            if self.on_complete:
                self.on_complete(self.state)

    def switch_mode(self, mode: Union[TimerMode, str]) -> bool:
        parsed = TimerMode.parse(mode)
        if parsed is None:
            LOGGER.debug("Ignoring unknown timer mode %r", mode)
            return False
        self.reset(mode=parsed)
        return True

    def reset(self, mode: Optional[TimerMode] = None, reset_streak: bool = False) -> None:
        self.ticker.stop()
        if mode is not None:
            self.state.mode = mode
        self.state.remaining_seconds = self.duration_for(self.state.mode)
        self.state.is_running = False
        self.state.last_updated_ms = None
        if reset_streak:
            self.state.focus_streak = 0
        self._changed()

    def halt_at_zero(self) -> None:
        """Stop the countdown at 00:00 ahead of the completion sequence."""
        self.ticker.stop()
        self.state.is_running = False
        self.state.remaining_seconds = 0
        self.state.last_updated_ms = None
        self._changed()

    def record_focus_completion(self) -> TimerMode:
        """Count a finished focus interval and return the break that follows."""
        streak = self.state.focus_streak + 1
        if streak >= self.sessions_before_long_break:
            self.state.focus_streak = 0
            next_mode = TimerMode.LONG_BREAK
        else:
            self.state.focus_streak = streak
            next_mode = TimerMode.SHORT_BREAK
        self.persist()
        return next_mode

    def apply_config(self, config: TimerConfig) -> None:
        self.config = config
        self.reset()
