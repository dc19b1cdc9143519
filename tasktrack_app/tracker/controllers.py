"""Controllers wiring storage, scheduler, timer and completion side effects."""
from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass, replace
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Tuple

from . import __version__
from .alarms import AlarmLibrary
from .clock import Clock, SystemClock
from .completion import (
    AlarmPlayer,
    CompletionOrchestrator,
    ConfirmationPrompt,
    GatedNotifier,
    LogNotifier,
    Notifier,
)
from .models import (
    CONFIG_FIELDS,
    DEFAULT_TIMER_CONFIG,
    DaySummary,
    InvalidUserInput,
    Task,
    TimerConfig,
    TimerMode,
    TimerState,
    decode_timer_config,
    encode,
    parse_int,
)
from .scheduler import RoundScheduler
from .storage import TIMER_SETTINGS_KEY, Storage
from .timers import PomodoroTimer, Ticker

if TYPE_CHECKING:
    from reports.excel_export import ExcelExporter

LOGGER = logging.getLogger(__name__)


CONFIG_DIR = Path.home() / ".tasktrack"
CONFIG_FILE = CONFIG_DIR / "config.toml"
DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / "config" / "default_config.toml"
LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR"}

Listener = Callable[[str], None]


@dataclass
class AppConfig:
    data_path: str = "~/.tasktrack/data.db"
    export_path: str = "~/.tasktrack/weekly_report.xlsx"
    notifications_enabled: bool = True
    log_level: str = "INFO"
    last_window_width: int = 960
    last_window_height: int = 720
    last_view: str = "today"

    @classmethod
    def from_toml(cls, data: dict) -> "AppConfig":
        defaults = cls()

        def _int(name: str) -> int:
            value = parse_int(data.get(name))
            return value if value is not None and value > 0 else getattr(defaults, name)

        log_level = str(data.get("log_level", defaults.log_level)).upper()
        notifications = data.get("notifications_enabled", defaults.notifications_enabled)
        return cls(
            data_path=str(data.get("data_path") or defaults.data_path),
            export_path=str(data.get("export_path") or defaults.export_path),
            notifications_enabled=notifications if isinstance(notifications, bool) else defaults.notifications_enabled,
            log_level=log_level if log_level in LOG_LEVELS else defaults.log_level,
            last_window_width=_int("last_window_width"),
            last_window_height=_int("last_window_height"),
            last_view=str(data.get("last_view") or defaults.last_view),
        )

    def to_toml(self) -> str:
        lines = [
            f"data_path = \"{self.data_path}\"",
            f"export_path = \"{self.export_path}\"",
            f"notifications_enabled = {str(bool(self.notifications_enabled)).lower()}",
            f"log_level = \"{self.log_level}\"",
            f"last_window_width = {self.last_window_width}",
            f"last_window_height = {self.last_window_height}",
            f"last_view = \"{self.last_view}\"",
        ]
        return "\n".join(lines) + "\n"

    @property
    def data_file(self) -> Path:
        return Path(self.data_path).expanduser()

    @property
    def export_file(self) -> Path:
        return Path(self.export_path).expanduser()


class ConfigManager:
    def __init__(self, config_file: Path = CONFIG_FILE) -> None:
        self.config_file = Path(config_file)
        self.config_file.parent.mkdir(parents=True, exist_ok=True)
        self.config = self._load()

    def _load(self) -> AppConfig:
        if self.config_file.exists():
            try:
                with open(self.config_file, "rb") as fh:
                    return AppConfig.from_toml(tomllib.load(fh))
            except (OSError, tomllib.TOMLDecodeError):
                LOGGER.exception("Unable to read %s; using defaults", self.config_file)
        try:
            with open(DEFAULT_CONFIG_PATH, "rb") as fh:
                config = AppConfig.from_toml(tomllib.load(fh))
        except (OSError, tomllib.TOMLDecodeError):
            LOGGER.exception("Unable to read shipped defaults %s", DEFAULT_CONFIG_PATH)
            config = AppConfig()
        self.save(config)
        return config

    def save(self, config: Optional[AppConfig] = None) -> None:
        cfg = config or self.config
        self.config_file.parent.mkdir(parents=True, exist_ok=True)
        self.config_file.write_text(cfg.to_toml(), encoding="utf-8")
        LOGGER.info("Saved configuration to %s", self.config_file)


def load_timer_config(storage: Storage) -> TimerConfig:
    decoded = decode_timer_config(storage.get(TIMER_SETTINGS_KEY))
    if not decoded.clean:
        LOGGER.warning("Timer settings repaired: %s", "; ".join(decoded.errors))
    return decoded.value


def validate_timer_settings(values: Dict[str, Any]) -> TimerConfig:
    """Build a config from form values, rejecting anything out of range."""
    parsed = {}
    for attr, (_key, low, high, _default) in CONFIG_FIELDS.items():
        number = parse_int(values.get(attr))
        label = attr.replace("_", " ")
        if number is None:
            raise InvalidUserInput(f"Enter a whole number for {label}.")
        if not low <= number <= high:
            raise InvalidUserInput(f"{label.capitalize()} must be between {low} and {high}.")
        parsed[attr] = number
    return TimerConfig(**parsed)


class AppController:
    """Single owner of the timer, the round scheduler and their side effects."""

    def __init__(
        self,
        storage: Storage,
        config_manager: Optional[ConfigManager] = None,
        clock: Optional[Clock] = None,
        ticker: Optional[Ticker] = None,
        exporter: Optional["ExcelExporter"] = None,
    ) -> None:
        self.storage = storage
        self.config_manager = config_manager
        self.clock = clock or SystemClock()
        self.exporter = exporter
        self.scheduler = RoundScheduler(storage, self.clock)
        self.alarms = AlarmLibrary(storage)
        self.timer = PomodoroTimer(
            storage,
            self.clock,
            config=load_timer_config(storage),
            ticker=ticker,
            prepare_focus=self._prepare_focus,
            on_complete=self._on_timer_complete,
            on_change=self._on_timer_change,
        )
        self.status: Tuple[str, str] = ("", "muted")
        self._listeners: List[Listener] = []
        self.orchestrator = CompletionOrchestrator(
            self.timer,
            self.scheduler,
            notifier=self._gate(LogNotifier()),
            status=self.set_status,
            alarm_sound=self.alarms.selected_id,
        )
        self.timer.load()
        LOGGER.info("Tasktrack controller v%s ready", __version__)

    # Wiring
    def _gate(self, notifier: Notifier) -> GatedNotifier:
        return GatedNotifier(notifier, self._notifications_allowed)

    def _notifications_allowed(self) -> bool:
        if self.config_manager is None:
            return True
        return self.config_manager.config.notifications_enabled

    def attach_side_effects(
        self,
        alarm: Optional[AlarmPlayer] = None,
        notifier: Optional[Notifier] = None,
        prompt: Optional[ConfirmationPrompt] = None,
    ) -> None:
        if alarm is not None:
            self.orchestrator.alarm = alarm
        if notifier is not None:
            self.orchestrator.notifier = self._gate(notifier)
        if prompt is not None:
            self.orchestrator.prompt = prompt

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def _emit(self, topic: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(topic)
            except Exception:
                LOGGER.exception("Listener failed for %s", topic)

    def set_status(self, message: str = "", tone: str = "muted") -> None:
        self.status = (message, tone)
        self._emit("status")

    def today_key(self) -> str:
        return self.scheduler.today_key()

    def _prepare_focus(self) -> None:
        self.scheduler.ensure_active_task_for_round(self.today_key())

    def _on_timer_change(self, _state: TimerState) -> None:
        self._emit("timer")

    def _on_timer_complete(self, _state: TimerState) -> None:
        self.orchestrator.handle_timer_complete()
        self._emit("tasks")

    # Timer
    @property
    def timer_state(self) -> TimerState:
        return self.timer.state

    @property
    def timer_config(self) -> TimerConfig:
        return self.timer.config or DEFAULT_TIMER_CONFIG

    def resume(self) -> None:
        self.timer.resume()

    def _unlock_alarm(self) -> None:
        alarm = self.orchestrator.alarm
        if alarm.unlocked:
            return
        try:
            alarm.unlock()
        except Exception:
            LOGGER.exception("Alarm unlock failed")

    def start_timer(self) -> bool:
        self._unlock_alarm()
        started = self.timer.start()
        if started:
            self.set_status("")
            self._emit("tasks")
        return started

    def pause_timer(self) -> bool:
        return self.timer.pause()

    def reset_timer(self) -> None:
        self.timer.reset(reset_streak=True)

    def switch_mode(self, mode: Any) -> bool:
        switched = self.timer.switch_mode(mode)
        if switched:
            self.set_status("")
        return switched

    def submit_timer_settings(self, **values: Any) -> TimerConfig:
        config = validate_timer_settings(values)
        self._apply_timer_config(config)
        return config

    def restore_default_timer_settings(self) -> TimerConfig:
        self._apply_timer_config(DEFAULT_TIMER_CONFIG)
        return DEFAULT_TIMER_CONFIG

    def _apply_timer_config(self, config: TimerConfig) -> None:
        self.storage.set(TIMER_SETTINGS_KEY, encode(config.to_payload()))
        self.timer.apply_config(config)
        self.set_status("Timer settings updated. New durations apply to the next session.")
        LOGGER.info("Timer settings updated: %s", config)

    # Tasks
    def tasks_for_display(self) -> List[Task]:
        today = self.today_key()
        self.scheduler.ensure_active_task_for_round(today)
        return self.scheduler.display_order(today)

    def active_task(self) -> Optional[Task]:
        return self.scheduler.get_active_task(self.today_key())

    def current_round(self) -> int:
        return self.scheduler.get_current_round(self.today_key())

    def submit_task(
        self,
        title: str,
        description: str = "",
        planned: Any = None,
        assigned_round: Any = None,
        editing_id: Optional[str] = None,
    ) -> Task:
        today = self.today_key()
        title = (title or "").strip()
        if not title:
            raise InvalidUserInput("Please add a title for your task.")
        planned_value = parse_int(planned)
        round_value = parse_int(assigned_round)
        existing = self.scheduler.get_task(today, editing_id) if editing_id else None
        task = Task(
            id=existing.id if existing else self.scheduler.new_task_id(),
            title=title,
            description=description or "",
            planned=max(0, planned_value) if planned_value is not None else 1,
            completed=existing.completed if existing else 0,
            done=existing.done if existing else False,
            assigned_round=max(1, round_value) if round_value is not None else self.scheduler.get_current_round(today),
        )
        self.scheduler.upsert_task(today, task)
        if not self.scheduler.get_active_task_id(today) and not task.done:
            self.scheduler.set_active_task(today, task.id)
        self._emit("tasks")
        return task

    def toggle_task(self, task_id: str) -> Optional[Task]:
        task = self.scheduler.toggle_done(self.today_key(), task_id)
        self._emit("tasks")
        return task

    def move_task_to_next_round(self, task_id: str) -> Optional[Task]:
        task = self.scheduler.move_to_next_round(self.today_key(), task_id)
        self._emit("tasks")
        return task

    def activate_task(self, task_id: str) -> bool:
        activated = self.scheduler.set_active_task(self.today_key(), task_id)
        self._emit("tasks")
        return activated

    def delete_task(self, task_id: str) -> bool:
        confirmed = self.orchestrator.prompt.confirm("Delete this task?", "Delete", "Cancel")
        if not confirmed:
            return False
        deleted = self.scheduler.delete_task(self.today_key(), task_id)
        self._emit("tasks")
        return deleted

    # Summaries and reports
    def today_summary(self) -> DaySummary:
        return self.scheduler.day_summary(self.today_key())

    def week_summary(self) -> List[DaySummary]:
        return self.scheduler.week_summary()

    def export_week(self, path: Optional[Path] = None) -> Path:
        if self.exporter is None:
            from reports.excel_export import ExcelExporter

            target = path or (self.config_manager.config.export_file if self.config_manager else Path("weekly_report.xlsx"))
            self.exporter = ExcelExporter(target)
        elif path is not None:
            self.exporter.export_path = Path(path)
        return self.exporter.export(self.week_summary(), self.scheduler.tasks(self.today_key()))

    # Settings
    def select_alarm(self, sound_id: str) -> str:
        resolved = self.alarms.select(sound_id)
        self.set_status("Notification tone updated.")
        return resolved

    def set_custom_alarm(self, path: Path) -> str:
        sound = self.alarms.set_custom_sound(path)
        self.set_status("Custom notification tone saved.")
        return sound.id

    def preview_alarm(self, sound_id: str) -> bool:
        self._unlock_alarm()
        try:
            self.orchestrator.alarm.play(self.alarms.source_for(sound_id).id)
        except Exception:
            LOGGER.exception("Failed to play preview")
            self.set_status("Unable to play the preview tone.", "warning")
            return False
        return True

    def set_notifications_enabled(self, enabled: bool) -> None:
        if self.config_manager is None:
            return
        self.config_manager.config = replace(self.config_manager.config, notifications_enabled=bool(enabled))
        self.config_manager.save()

    def clear_all_data(self) -> bool:
        confirmed = self.orchestrator.prompt.confirm(
            "This will erase all locally stored data. Continue?", "Confirm", "Cancel"
        )
        if not confirmed:
            return False
        self.timer.ticker.stop()
        self.storage.clear_all()
        self.scheduler.reload()
        self.timer.config = load_timer_config(self.storage)
        self.timer.state = TimerState.initial(self.timer.config)
        self.timer.persist()
        self.set_status("")
        self._emit("timer")
        self._emit("tasks")
        return True

    def save_window(self, width: int, height: int, view: Optional[str] = None) -> None:
        if self.config_manager is None:
            return
        cfg = self.config_manager.config
        cfg.last_window_width, cfg.last_window_height = width, height
        if view:
            cfg.last_view = view
        self.config_manager.save()

    def shutdown(self) -> None:
        self.timer.ticker.stop()
        self.timer.persist()
