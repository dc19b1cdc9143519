"""Per-day task lists scheduled across numbered Pomodoro rounds."""
from __future__ import annotations

import logging
import random
from dataclasses import replace
from typing import Dict, List, Optional

from .clock import Clock, date_key, trailing_days
from .models import (
    DayRecord,
    DaySummary,
    Task,
    decode_day_record,
    decode_round_counters,
    encode,
)
from .storage import ROUNDS_KEY, Storage, day_key

LOGGER = logging.getLogger(__name__)


class RoundScheduler:
    """Own the task lists, active-task pointers and round counters per day.

    Every mutation is persisted immediately. Records are loaded lazily the
    first time a date is touched and cached afterwards; this object is the
    only writer of those keys.
    """

    def __init__(self, storage: Storage, clock: Clock) -> None:
        self.storage = storage
        self.clock = clock
        self._days: Dict[str, DayRecord] = {}
        self._rounds: Optional[Dict[str, int]] = None

    # Persistence
    def _record(self, date: str) -> DayRecord:
        if date not in self._days:
            decoded = decode_day_record(self.storage.get(day_key(date)))
            if not decoded.clean:
                LOGGER.warning("Day record %s repaired: %s", date, "; ".join(decoded.errors))
            self._days[date] = decoded.value
        return self._days[date]

    def _persist(self, date: str) -> None:
        self.storage.set(day_key(date), encode(self._record(date).to_payload()))

    def _round_counters(self) -> Dict[str, int]:
        if self._rounds is None:
            decoded = decode_round_counters(self.storage.get(ROUNDS_KEY))
            if not decoded.clean:
                LOGGER.warning("Round counters repaired: %s", "; ".join(decoded.errors))
            self._rounds = dict(decoded.value)
        return self._rounds

    def _persist_rounds(self) -> None:
        self.storage.set(ROUNDS_KEY, encode(self._round_counters()))

    def reload(self) -> None:
        """Forget cached records so the next access re-reads storage."""
        self._days.clear()
        self._rounds = None

    def today_key(self) -> str:
        return date_key(self.clock.today())

    # Rounds
    def get_current_round(self, date: str) -> int:
        counters = self._round_counters()
        if date not in counters:
            counters[date] = 1
            self._persist_rounds()
        return counters[date]

    def advance_round(self, date: str) -> int:
        counters = self._round_counters()
        counters[date] = self.get_current_round(date) + 1
        self._persist_rounds()
        LOGGER.debug("Advanced %s to round %d", date, counters[date])
        return counters[date]

    # Queries
    def tasks(self, date: str) -> List[Task]:
        return list(self._record(date).tasks)

    def get_task(self, date: str, task_id: str) -> Optional[Task]:
        return self._record(date).find(task_id)

    def get_active_task_id(self, date: str) -> Optional[str]:
        return self._record(date).active_task_id

    def get_active_task(self, date: str) -> Optional[Task]:
        task = self._record(date).find(self._record(date).active_task_id)
        if task is None or task.done:
            return None
        return task

    def find_best_task_for_round(self, date: str) -> Optional[Task]:
        """Pick the task that should be worked on in the current round.

        The earliest-assigned open task already due wins; ties keep list
        order. With nothing due yet, the open task with the smallest round is
        offered instead so an open task is never hidden.
        """
        pending = sorted(
            (task for task in self._record(date).tasks if not task.done),
            key=lambda task: task.assigned_round,
        )
        if not pending:
            return None
        current_round = self.get_current_round(date)
        for task in pending:
            if task.assigned_round <= current_round:
                return task
        return pending[0]

    def ensure_active_task_for_round(self, date: str) -> Optional[Task]:
        record = self._record(date)
        active = record.find(record.active_task_id)
        if active is not None and not active.done and active.assigned_round <= self.get_current_round(date):
            return active
        candidate = self.find_best_task_for_round(date)
        new_id = candidate.id if candidate else None
        if record.active_task_id != new_id:
            record.active_task_id = new_id
            self._persist(date)
            LOGGER.debug("Active task for %s is now %s", date, new_id)
        return candidate

    def display_order(self, date: str) -> List[Task]:
        """Tasks sorted by round, open tasks before finished ones."""
        return sorted(self._record(date).tasks, key=lambda task: (task.assigned_round, task.done))

    # Mutations
    def new_task_id(self) -> str:
        return f"task-{self.clock.now_ms()}-{random.randint(0, 9999)}"

    def upsert_task(self, date: str, task: Task) -> Task:
        record = self._record(date)
        for index, existing in enumerate(record.tasks):
            if existing.id == task.id:
                record.tasks[index] = task
                break
        else:
            record.tasks.append(task)
        if task.done and record.active_task_id == task.id:
            record.active_task_id = None
        self._persist(date)
        return task

    def set_active_task(self, date: str, task_id: Optional[str]) -> bool:
        record = self._record(date)
        if task_id is not None:
            task = record.find(task_id)
            if task is None or task.done:
                LOGGER.warning("Cannot activate task %s on %s", task_id, date)
                return False
        record.active_task_id = task_id
        self._persist(date)
        return True

    def delete_task(self, date: str, task_id: str) -> bool:
        record = self._record(date)
        remaining = [task for task in record.tasks if task.id != task_id]
        if len(remaining) == len(record.tasks):
            return False
        record.tasks = remaining
        if record.active_task_id == task_id:
            record.active_task_id = None
        self._persist(date)
        return True

    def toggle_done(self, date: str, task_id: str) -> Optional[Task]:
        task = self.get_task(date, task_id)
        if task is None:
            return None
        return self.upsert_task(date, replace(task, done=not task.done))

    def mark_done(self, date: str, task_id: str) -> Optional[Task]:
        task = self.get_task(date, task_id)
        if task is None:
            return None
        return self.upsert_task(date, replace(task, done=True))

    def increment_completion(self, date: str, task_id: str, delta: int = 1) -> Optional[Task]:
        task = self.get_task(date, task_id)
        if task is None:
            return None
        return self.upsert_task(date, replace(task, completed=max(0, task.completed + delta)))

    def update_task_round(self, date: str, task_id: str, round_number: int) -> Optional[Task]:
        """Reassign a task to ``round_number``; a carried task is always open."""
        task = self.get_task(date, task_id)
        if task is None:
            return None
        return self.upsert_task(date, replace(task, assigned_round=max(1, int(round_number)), done=False))

    def move_to_next_round(self, date: str, task_id: str) -> Optional[Task]:
        task = self.get_task(date, task_id)
        if task is None:
            return None
        return self.update_task_round(date, task_id, task.assigned_round + 1)

    # Rollups
    def day_summary(self, date: str) -> DaySummary:
        tasks = self._record(date).tasks
        return DaySummary(
            date=date,
            planned=sum(task.planned for task in tasks),
            completed=sum(task.completed for task in tasks),
            tasks=len(tasks),
            done=sum(1 for task in tasks if task.done),
        )

    def week_summary(self) -> List[DaySummary]:
        """Planned and completed counts for the trailing seven days, oldest first."""
        return [self.day_summary(date_key(day)) for day in trailing_days(self.clock.today())]
