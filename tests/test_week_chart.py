import pytest

pytest.importorskip("matplotlib")

from tasktrack_app.tracker.models import DaySummary  # noqa: E402
from tasktrack_app.tracker.views.week_chart import day_label, render_week_chart  # noqa: E402


def test_day_label():
    assert day_label("2026-10-19") == "Mon 19"


def test_render_week_chart_returns_png():
    week = [DaySummary(f"2026-10-{day:02d}", day % 3, day % 2) for day in range(13, 20)]
    png = render_week_chart(week)
    assert png.startswith(b"\x89PNG\r\n\x1a\n")


def test_render_empty_week():
    assert render_week_chart([]).startswith(b"\x89PNG")
