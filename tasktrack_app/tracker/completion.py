"""Sequencing of the side effects that follow a finished timer phase."""
from __future__ import annotations

import logging
from typing import Callable, Optional, Protocol, Tuple

from .alarms import AlarmUnavailable
from .models import TimerMode
from .scheduler import RoundScheduler
from .timers import PomodoroTimer

LOGGER = logging.getLogger(__name__)

StatusSink = Callable[[str, str], None]


class AlarmPlayer(Protocol):
    unlocked: bool

    def unlock(self) -> bool:
        ...

    def play(self, sound_id: str) -> None:
        ...


class Notifier(Protocol):
    def notify(self, title: str, body: str) -> None:
        ...


class ConfirmationPrompt(Protocol):
    def confirm(self, message: str, confirm_label: str, cancel_label: str) -> bool:
        ...


class SilentAlarm:
    """Alarm player for headless runs; playback is never available."""

    unlocked = False

    def unlock(self) -> bool:
        return False

    def play(self, sound_id: str) -> None:
        raise AlarmUnavailable(f"No audio output for {sound_id}")


class LogNotifier:
    def notify(self, title: str, body: str) -> None:
        LOGGER.info("%s: %s", title, body)


class DeclinePrompt:
    """Prompt that answers every question with "no"."""

    def confirm(self, message: str, confirm_label: str, cancel_label: str) -> bool:
        return False


class GatedNotifier:
    """Forward notifications only while ``allowed()`` is true; never raises."""

    def __init__(self, notifier: Notifier, allowed: Callable[[], bool]) -> None:
        self.notifier = notifier
        self.allowed = allowed

    def notify(self, title: str, body: str) -> None:
        if not self.allowed():
            LOGGER.debug("Notification suppressed: %s", title)
            return
        try:
            self.notifier.notify(title, body)
        except Exception:
            LOGGER.exception("Notification display failed")


class PromptOutcome:
    """Result holder for a confirmation that may be answered several ways.

    The first of ``confirm``/``cancel``/``dismiss`` settles the outcome; later
    calls are ignored. An unanswered or dismissed prompt counts as "no".
    """

    def __init__(self) -> None:
        self.settled = False
        self._result = False

    def _finalize(self, result: bool) -> bool:
        if self.settled:
            return False
        self.settled = True
        self._result = result
        return True

    def confirm(self) -> bool:
        return self._finalize(True)

    def cancel(self) -> bool:
        return self._finalize(False)

    def dismiss(self) -> bool:
        return self._finalize(False)

    @property
    def result(self) -> bool:
        return self._result if self.settled else False


def completion_notification(mode: TimerMode, next_mode: Optional[TimerMode] = None) -> Tuple[str, str]:
    if mode is TimerMode.FOCUS:
        length = "long" if next_mode is TimerMode.LONG_BREAK else "short"
        return "Focus complete", f"Starting your {length} break."
    return "Break finished", "Time to start your next focus session."


class CompletionOrchestrator:
    """Run the completion sequence once per finished phase.

    Steps run in a fixed order: halt at 00:00, alarm, task bookkeeping and
    streak/round advancement (focus only), start of the next phase, and the
    notification. A failing step is logged and the sequence carries on.
    """

    def __init__(
        self,
        timer: PomodoroTimer,
        scheduler: RoundScheduler,
        alarm: Optional[AlarmPlayer] = None,
        notifier: Optional[Notifier] = None,
        prompt: Optional[ConfirmationPrompt] = None,
        status: Optional[StatusSink] = None,
        alarm_sound: Optional[Callable[[], str]] = None,
    ) -> None:
        self.timer = timer
        self.scheduler = scheduler
        self.alarm = alarm or SilentAlarm()
        self.notifier = notifier or LogNotifier()
        self.prompt = prompt or DeclinePrompt()
        self.status = status or (lambda message, tone: None)
        self.alarm_sound = alarm_sound or (lambda: "chime")
        self._in_progress = False

    @property
    def in_progress(self) -> bool:
        return self._in_progress

    def _step(self, name: str, action: Callable[[], object]) -> object:
        try:
            return action()
        except Exception:
            LOGGER.exception("Completion step '%s' failed", name)
            return None

    def handle_timer_complete(self) -> Optional[TimerMode]:
        """Finish the current phase and start the next one.

        Returns the mode that was started, or ``None`` when a completion
        sequence is already underway.
        """
        if self._in_progress:
            LOGGER.warning("Completion already in progress; ignoring duplicate trigger")
            return None
        self._in_progress = True
        try:
            completed_mode = self.timer.state.mode
            self._step("halt", self.timer.halt_at_zero)
            self._step("alarm", self._play_alarm)
            if completed_mode is TimerMode.FOCUS:
                return self._complete_focus()
            return self._complete_break()
        finally:
            self._in_progress = False

    def _play_alarm(self) -> None:
        if not self.alarm.unlocked and not self.alarm.unlock():
            self.status("Tap Start or Preview to enable alarm audio.", "warning")
            return
        try:
            self.alarm.play(self.alarm_sound())
        except Exception:
            LOGGER.exception("Failed to play alarm")
            self.status("Unable to play the alarm sound.", "warning")

    def _settle_task(self, today: str) -> bool:
        """Ask about the active task and record the answer; True if there was one."""
        current_round = self.scheduler.get_current_round(today)
        task = self.scheduler.get_active_task(today)
        if task is None:
            return False
        finished = self.prompt.confirm(
            f'Round {current_round} finished. Did you complete "{task.title}"?',
            "Yes, finished",
            "Not yet",
        )
        if finished:
            self.scheduler.increment_completion(today, task.id, 1)
            self.scheduler.mark_done(today, task.id)
        else:
            self.scheduler.update_task_round(today, task.id, current_round + 1)
            self.status("Carrying this task over to the next round.", "warning")
        return True

    def _complete_focus(self) -> TimerMode:
        today = self.scheduler.today_key()
        had_task = self._step("task", lambda: self._settle_task(today))
        next_mode = self._step("streak", self.timer.record_focus_completion) or TimerMode.SHORT_BREAK
        self._step("round", lambda: self.scheduler.advance_round(today))
        self._step("switch", lambda: self.timer.switch_mode(next_mode))
        self._step("start", self.timer.start)
        title, body = completion_notification(TimerMode.FOCUS, next_mode)
        self._step("notify", lambda: self.notifier.notify(title, body))
        length = "long" if next_mode is TimerMode.LONG_BREAK else "short"
        if had_task:
            self.status(f"Focus complete! Starting a {length} break.", "muted")
        else:
            self.status(f"Focus complete, but no active task was selected. Starting a {length} break.", "warning")
        LOGGER.info("Focus session complete; starting %s", next_mode.value)
        return next_mode

    def _complete_break(self) -> TimerMode:
        self._step("switch", lambda: self.timer.switch_mode(TimerMode.FOCUS))
        self._step("start", self.timer.start)
        title, body = completion_notification(TimerMode.SHORT_BREAK)
        self._step("notify", lambda: self.notifier.notify(title, body))
        self.status("Break finished. Starting the next focus session.", "muted")
        LOGGER.info("Break complete; starting focus")
        return TimerMode.FOCUS
