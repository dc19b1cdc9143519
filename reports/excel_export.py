"""Excel export of the weekly Pomodoro rollup."""
from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Iterable

import pandas as pd

from tasktrack_app.tracker.models import DaySummary, Task

LOGGER = logging.getLogger(__name__)

WEEK_COLUMNS = ["Date", "Planned", "Completed", "Tasks", "Done"]
TASK_COLUMNS = ["Title", "Description", "Round", "Planned", "Completed", "Done"]


class ExcelExporter:
    def __init__(self, export_path: Path):
        self.export_path = Path(export_path)
        self.export_path.parent.mkdir(parents=True, exist_ok=True)

    def export(self, week: Iterable[DaySummary], tasks: Iterable[Task]) -> Path:
        """Write the weekly rollup and today's tasks, keeping older days already in the file."""
        week_df = pd.DataFrame(
            [(day.date, day.planned, day.completed, day.tasks, day.done) for day in week],
            columns=WEEK_COLUMNS,
        )
        week_df["Date"] = pd.to_datetime(week_df["Date"]).dt.date

        existing = None
        if self.export_path.exists():
            try:
                existing = pd.read_excel(self.export_path, sheet_name="Week")
            except Exception:
                LOGGER.warning("Existing Excel file unreadable, recreating: %s", self.export_path)
        if existing is not None and not set(WEEK_COLUMNS).issubset(existing.columns):
            LOGGER.warning("Existing Week sheet has unexpected columns, replacing: %s", self.export_path)
            existing = None

        if existing is not None and not existing.empty:
            existing["Date"] = pd.to_datetime(existing["Date"]).dt.date
            combined = pd.concat([existing[WEEK_COLUMNS], week_df], ignore_index=True)
            combined.drop_duplicates(subset=["Date"], keep="last", inplace=True)
            week_df = combined.sort_values("Date").reset_index(drop=True)

        tasks_df = pd.DataFrame(
            [
                (task.title, task.description, task.assigned_round, task.planned, task.completed, task.done)
                for task in tasks
            ],
            columns=TASK_COLUMNS,
        )

        with pd.ExcelWriter(self.export_path, engine="openpyxl", mode="w") as writer:
            week_df.to_excel(writer, sheet_name="Week", index=False)
            tasks_df.to_excel(writer, sheet_name="Today", index=False)
            meta_df = pd.DataFrame(
                [[datetime.now(), len(week_df), int(week_df["Completed"].sum())]],
                columns=["ExportedAt", "DayCount", "CompletedPomodoros"],
            )
            meta_df.to_excel(writer, sheet_name="Meta", index=False)
        LOGGER.info("Exported weekly statistics to %s", self.export_path)
        return self.export_path
