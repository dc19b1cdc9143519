"""Pomodoro timer and round-based task scheduler."""

__version__ = "1.0.0"
