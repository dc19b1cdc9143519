"""Week summary chart rendering."""
from __future__ import annotations

import io
from datetime import date
from typing import Sequence

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt  # noqa: E402

from tasktrack_app.tracker.models import DaySummary  # noqa: E402

PLANNED_COLOR = "#8A8C93"
COMPLETED_COLOR = "#4A90E2"


def day_label(key: str) -> str:
    return date.fromisoformat(key).strftime("%a %d")


def render_week_chart(week: Sequence[DaySummary], width: float = 5.0, height: float = 2.6) -> bytes:
    """Render planned vs completed pomodoros per day as PNG bytes."""
    labels = [day_label(day.date) for day in week]
    positions = range(len(week))
    fig, ax = plt.subplots(figsize=(width, height))
    ax.bar([p - 0.2 for p in positions], [day.planned for day in week], width=0.4, label="Planned", color=PLANNED_COLOR)
    ax.bar([p + 0.2 for p in positions], [day.completed for day in week], width=0.4, label="Completed", color=COMPLETED_COLOR)
    ax.set_xticks(list(positions))
    ax.set_xticklabels(labels)
    ax.set_ylabel("Pomodoros")
    ax.legend(loc="upper left", fontsize="small")
    buf = io.BytesIO()
    fig.tight_layout()
    fig.savefig(buf, format="png")
    plt.close(fig)
    return buf.getvalue()
