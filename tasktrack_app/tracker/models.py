"""Data models and persisted payload schemas for the Pomodoro tracker."""
from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Generic, List, Mapping, Optional, Tuple, TypeVar

T = TypeVar("T")

SCHEMA_VERSION = 1


class InvalidUserInput(ValueError):
    """Raised when a form submission is rejected at the boundary."""


class TimerMode(str, Enum):
    FOCUS = "focus"
    SHORT_BREAK = "shortBreak"
    LONG_BREAK = "longBreak"

    @classmethod
    def parse(cls, value: Any) -> Optional["TimerMode"]:
        if isinstance(value, cls):
            return value
        for mode in cls:
            if mode.value == value:
                return mode
        return None

    @property
    def label(self) -> str:
        return MODE_LABELS[self]


MODE_LABELS: Dict[TimerMode, str] = {
    TimerMode.FOCUS: "Focus",
    TimerMode.SHORT_BREAK: "Short Break",
    TimerMode.LONG_BREAK: "Long Break",
}

FALLBACK_DURATIONS: Dict[TimerMode, int] = {
    TimerMode.FOCUS: 25 * 60,
    TimerMode.SHORT_BREAK: 5 * 60,
    TimerMode.LONG_BREAK: 15 * 60,
}

# (payload key, minimum, maximum, default)
CONFIG_FIELDS: Dict[str, Tuple[str, int, int, int]] = {
    "focus_minutes": ("focusMinutes", 1, 180, 25),
    "short_break_minutes": ("shortBreakMinutes", 1, 60, 5),
    "long_break_minutes": ("longBreakMinutes", 1, 120, 15),
    "sessions_before_long_break": ("sessionsBeforeLongBreak", 1, 12, 4),
}


def config_field_for(mode: TimerMode) -> str:
    if mode is TimerMode.FOCUS:
        return "focus_minutes"
    if mode is TimerMode.SHORT_BREAK:
        return "short_break_minutes"
    if mode is TimerMode.LONG_BREAK:
        return "long_break_minutes"
    raise ValueError(f"Unknown timer mode: {mode!r}")


def parse_int(value: Any) -> Optional[int]:
    """Parse an integer the lenient way a form field would, or return None."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            try:
                number = float(text)
            except ValueError:
                return None
            return int(number) if math.isfinite(number) else None
    return None


def clamp_int(value: Any, low: int, high: int, fallback: int) -> int:
    number = parse_int(value)
    if number is None:
        return fallback
    return min(max(number, low), high)


@dataclass(frozen=True)
class Decoded(Generic[T]):
    """Outcome of decoding a persisted payload.

    ``value`` is always usable: when the payload (or part of it) failed
    validation the matching defaults are substituted and every substitution is
    named in ``errors``.
    """

    value: T
    errors: Tuple[str, ...] = ()

    @property
    def clean(self) -> bool:
        return not self.errors

    @classmethod
    def failure(cls, value: T, error: str) -> "Decoded[T]":
        return cls(value=value, errors=(error,))


def _load_json(raw: Optional[str]) -> Tuple[Optional[Any], Optional[str]]:
    if raw is None:
        return None, None
    try:
        return json.loads(raw), None
    except (TypeError, ValueError) as exc:
        return None, f"invalid JSON: {exc}"


def _check_version(payload: Mapping[str, Any]) -> Optional[str]:
    version = payload.get("version", SCHEMA_VERSION)
    if parse_int(version) != SCHEMA_VERSION:
        return f"unsupported schema version {version!r}"
    return None


@dataclass(frozen=True)
class TimerConfig:
    focus_minutes: int = 25
    short_break_minutes: int = 5
    long_break_minutes: int = 15
    sessions_before_long_break: int = 4

    @classmethod
    def normalize(cls, raw: Optional[Mapping[str, Any]]) -> "TimerConfig":
        """Clamp every field into its range, using defaults for unusable values."""
        raw = raw or {}
        values = {}
        for attr, (key, low, high, default) in CONFIG_FIELDS.items():
            values[attr] = clamp_int(raw.get(key, raw.get(attr)), low, high, default)
        return cls(**values)

    def minutes_for(self, mode: TimerMode) -> Any:
        return getattr(self, config_field_for(mode))

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"version": SCHEMA_VERSION}
        for attr, (key, *_rest) in CONFIG_FIELDS.items():
            payload[key] = getattr(self, attr)
        return payload


DEFAULT_TIMER_CONFIG = TimerConfig()


def decode_timer_config(raw: Optional[str]) -> Decoded[TimerConfig]:
    payload, error = _load_json(raw)
    if error:
        return Decoded.failure(DEFAULT_TIMER_CONFIG, error)
    if payload is None:
        return Decoded(DEFAULT_TIMER_CONFIG)
    if not isinstance(payload, dict):
        return Decoded.failure(DEFAULT_TIMER_CONFIG, "timer settings must be an object")
    version_error = _check_version(payload)
    if version_error:
        return Decoded.failure(DEFAULT_TIMER_CONFIG, version_error)
    config = TimerConfig.normalize(payload)
    errors = []
    for attr, (key, low, high, _default) in CONFIG_FIELDS.items():
        number = parse_int(payload.get(key))
        if number is None or not low <= number <= high:
            errors.append(f"{key} out of range")
    return Decoded(config, tuple(errors))


def get_duration_seconds(mode: TimerMode, config: Optional[TimerConfig]) -> int:
    """Full duration of ``mode`` in seconds, never zero or negative."""
    fallback = FALLBACK_DURATIONS[mode]
    if config is None:
        return fallback
    minutes = config.minutes_for(mode)
    if isinstance(minutes, bool) or not isinstance(minutes, (int, float)) or not math.isfinite(minutes):
        return fallback
    _key, low, high, _default = CONFIG_FIELDS[config_field_for(mode)]
    return int(min(max(int(minutes), low), high)) * 60


@dataclass
class TimerState:
    mode: TimerMode = TimerMode.FOCUS
    remaining_seconds: int = FALLBACK_DURATIONS[TimerMode.FOCUS]
    is_running: bool = False
    last_updated_ms: Optional[int] = None
    focus_streak: int = 0

    @classmethod
    def initial(cls, config: Optional[TimerConfig] = None) -> "TimerState":
        return cls(remaining_seconds=get_duration_seconds(TimerMode.FOCUS, config))

    def to_payload(self) -> Dict[str, Any]:
        return {
            "version": SCHEMA_VERSION,
            "mode": self.mode.value,
            "remaining": self.remaining_seconds,
            "isRunning": self.is_running,
            "lastUpdated": self.last_updated_ms if self.is_running else None,
            "focusStreak": self.focus_streak,
        }


def decode_timer_state(raw: Optional[str], config: Optional[TimerConfig] = None) -> Decoded[TimerState]:
    """Decode a stored timer state field group by field group.

    Elapsed-time recovery is not applied here; the timer does that against
    its clock after decoding.
    """
    payload, error = _load_json(raw)
    if error:
        return Decoded.failure(TimerState.initial(config), error)
    if payload is None:
        return Decoded(TimerState.initial(config))
    if not isinstance(payload, dict):
        return Decoded.failure(TimerState.initial(config), "timer state must be an object")
    version_error = _check_version(payload)
    if version_error:
        return Decoded.failure(TimerState.initial(config), version_error)

    errors: List[str] = []
    mode = TimerMode.parse(payload.get("mode"))
    if mode is None:
        errors.append(f"unknown mode {payload.get('mode')!r}")
        mode = TimerMode.FOCUS
    full = get_duration_seconds(mode, config)

    remaining = payload.get("remaining")
    if isinstance(remaining, bool) or not isinstance(remaining, (int, float)) or not math.isfinite(remaining):
        errors.append("remaining is not a number")
        remaining_seconds = full
    else:
        remaining_seconds = max(0, min(int(remaining), full))

    is_running = payload.get("isRunning")
    if not isinstance(is_running, bool):
        if is_running is not None:
            errors.append("isRunning is not a boolean")
        is_running = False

    last_updated = payload.get("lastUpdated")
    if last_updated is not None and (
        isinstance(last_updated, bool) or not isinstance(last_updated, (int, float)) or not math.isfinite(last_updated)
    ):
        errors.append("lastUpdated is not a timestamp")
        last_updated = None
    if last_updated is None:
        is_running = False
    if remaining_seconds <= 0 and not is_running:
        remaining_seconds = full

    streak = payload.get("focusStreak", 0)
    if isinstance(streak, bool) or not isinstance(streak, (int, float)) or not math.isfinite(streak) or streak < 0:
        errors.append("focusStreak is not a non-negative number")
        streak = 0

    state = TimerState(
        mode=mode,
        remaining_seconds=remaining_seconds,
        is_running=is_running,
        last_updated_ms=int(last_updated) if is_running else None,
        focus_streak=int(streak),
    )
    return Decoded(state, tuple(errors))


@dataclass
class Task:
    """A planned task for one calendar day."""

    id: str
    title: str
    description: str = ""
    planned: int = 1
    completed: int = 0
    done: bool = False
    assigned_round: int = 1

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> Tuple[Optional["Task"], List[str]]:
        errors: List[str] = []
        task_id = data.get("id")
        title = data.get("title")
        if not isinstance(task_id, str) or not task_id:
            return None, ["task without id dropped"]
        if not isinstance(title, str) or not title.strip():
            return None, [f"task {task_id} without title dropped"]

        description = data.get("description", "")
        if not isinstance(description, str):
            errors.append(f"task {task_id}: description reset")
            description = ""
        planned = parse_int(data.get("planned", 1))
        if planned is None or planned < 0:
            errors.append(f"task {task_id}: planned reset")
            planned = 1
        completed = parse_int(data.get("completed", 0))
        if completed is None or completed < 0:
            errors.append(f"task {task_id}: completed reset")
            completed = 0
        assigned_round = parse_int(data.get("assignedRound", 1))
        if assigned_round is None or assigned_round < 1:
            errors.append(f"task {task_id}: assignedRound reset")
            assigned_round = 1
        return (
            cls(
                id=task_id,
                title=title,
                description=description,
                planned=planned,
                completed=completed,
                done=bool(data.get("done", False)),
                assigned_round=assigned_round,
            ),
            errors,
        )

    def to_payload(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "planned": self.planned,
            "completed": self.completed,
            "done": self.done,
            "assignedRound": self.assigned_round,
        }


@dataclass
class DayRecord:
    """Tasks and active-task pointer for one date key (``YYYY-MM-DD``)."""

    tasks: List[Task] = field(default_factory=list)
    active_task_id: Optional[str] = None

    def find(self, task_id: Optional[str]) -> Optional[Task]:
        if not task_id:
            return None
        return next((task for task in self.tasks if task.id == task_id), None)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "version": SCHEMA_VERSION,
            "tasks": [task.to_payload() for task in self.tasks],
            "activeTaskId": self.active_task_id,
        }


def decode_day_record(raw: Optional[str]) -> Decoded[DayRecord]:
    payload, error = _load_json(raw)
    if error:
        return Decoded.failure(DayRecord(), error)
    if payload is None:
        return Decoded(DayRecord())
    if not isinstance(payload, dict):
        return Decoded.failure(DayRecord(), "day record must be an object")
    version_error = _check_version(payload)
    if version_error:
        return Decoded.failure(DayRecord(), version_error)

    errors: List[str] = []
    raw_tasks = payload.get("tasks", [])
    if not isinstance(raw_tasks, list):
        errors.append("tasks is not a list")
        raw_tasks = []
    tasks: List[Task] = []
    seen = set()
    for item in raw_tasks:
        if not isinstance(item, dict):
            errors.append("task entry is not an object")
            continue
        task, task_errors = Task.from_payload(item)
        errors.extend(task_errors)
        if task is None:
            continue
        if task.id in seen:
            errors.append(f"duplicate task {task.id} dropped")
            continue
        seen.add(task.id)
        tasks.append(task)

    record = DayRecord(tasks=tasks)
    active_id = payload.get("activeTaskId")
    active = record.find(active_id) if isinstance(active_id, str) else None
    if active is not None and not active.done:
        record.active_task_id = active.id
    elif active_id is not None:
        errors.append(f"activeTaskId {active_id!r} cleared")
    return Decoded(record, tuple(errors))


def decode_round_counters(raw: Optional[str]) -> Decoded[Dict[str, int]]:
    payload, error = _load_json(raw)
    if error:
        return Decoded.failure({}, error)
    if payload is None:
        return Decoded({})
    if not isinstance(payload, dict):
        return Decoded.failure({}, "round counters must be an object")
    errors: List[str] = []
    counters: Dict[str, int] = {}
    for key, value in payload.items():
        if key == "version":
            continue
        number = parse_int(value)
        if number is None:
            errors.append(f"round for {key} dropped")
            continue
        counters[key] = max(1, number)
    return Decoded(counters, tuple(errors))


def encode(payload: Mapping[str, Any]) -> str:
    return json.dumps(payload, separators=(",", ":"))


@dataclass
class DaySummary:
    """Planned vs completed pomodoros for a single day."""

    date: str
    planned: int
    completed: int
    tasks: int = 0
    done: int = 0
