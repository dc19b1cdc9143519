import sys
from datetime import date, timedelta
from pathlib import Path

import pytest

# Ensure the application packages are importable during tests
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from tasktrack_app.tracker.alarms import AlarmUnavailable  # noqa: E402
from tasktrack_app.tracker.storage import Storage  # noqa: E402
from tasktrack_app.tracker.timers import ManualTicker  # noqa: E402

START_MS = 1_760_000_000_000


class ManualClock:
    def __init__(self, now_ms: int = START_MS, today: date = date(2026, 10, 19)) -> None:
        self.ms = now_ms
        self.day = today

    def now_ms(self) -> int:
        return self.ms

    def today(self) -> date:
        return self.day

    def advance(self, seconds: float) -> None:
        self.ms += int(seconds * 1000)

    def next_day(self) -> None:
        self.day += timedelta(days=1)


class FakeAlarm:
    def __init__(self, unlocked: bool = True, fail: bool = False) -> None:
        self.unlocked = unlocked
        self.fail = fail
        self.played = []

    def unlock(self) -> bool:
        self.unlocked = not self.fail
        return self.unlocked

    def play(self, sound_id: str) -> None:
        if self.fail:
            raise AlarmUnavailable("autoplay blocked")
        self.played.append(sound_id)


class FakeNotifier:
    def __init__(self) -> None:
        self.sent = []

    def notify(self, title: str, body: str) -> None:
        self.sent.append((title, body))


class FakePrompt:
    def __init__(self, *answers: bool) -> None:
        self.answers = list(answers)
        self.asked = []

    def confirm(self, message: str, confirm_label: str, cancel_label: str) -> bool:
        self.asked.append(message)
        return self.answers.pop(0) if self.answers else False


@pytest.fixture
def store(tmp_path):
    return Storage(tmp_path / "tasktrack.db")


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def ticker():
    return ManualTicker()
