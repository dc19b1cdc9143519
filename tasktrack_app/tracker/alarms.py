"""Alarm tone catalogue and the persisted tone selection."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

from .models import InvalidUserInput
from .storage import ALARM_SOUND_KEY, CUSTOM_ALARM_KEY, Storage

LOGGER = logging.getLogger(__name__)

AUDIO_DIR = Path(__file__).resolve().parent.parent / "assets" / "audio"
CUSTOM_ALARM_MAX_BYTES = 2 * 1024 * 1024
AUDIO_SUFFIXES = {".wav", ".ogg", ".mp3", ".flac", ".m4a", ".aiff"}
DEFAULT_ALARM = "chime"
CUSTOM_ALARM = "custom"


class AlarmUnavailable(RuntimeError):
    """Raised when an alarm tone cannot be played."""


@dataclass(frozen=True)
class AlarmSound:
    id: str
    label: str
    path: Path


ALARM_SOUNDS: Dict[str, AlarmSound] = {
    "chime": AlarmSound("chime", "Soft chime", AUDIO_DIR / "pomodoro-chime.wav"),
    "bell": AlarmSound("bell", "Long ringing bell", AUDIO_DIR / "long-bell.wav"),
    "beeps": AlarmSound("beeps", "Series of beeps", AUDIO_DIR / "beeps.wav"),
}


class AlarmLibrary:
    """Resolve the selected alarm tone, including a user supplied file."""

    def __init__(self, storage: Storage) -> None:
        self.storage = storage

    def custom_sound(self) -> Optional[AlarmSound]:
        raw = self.storage.get(CUSTOM_ALARM_KEY)
        if not raw:
            return None
        try:
            payload = json.loads(raw)
        except ValueError:
            LOGGER.warning("Ignoring unreadable custom alarm entry")
            return None
        if not isinstance(payload, dict) or not isinstance(payload.get("src"), str):
            return None
        return AlarmSound(CUSTOM_ALARM, payload.get("name") or "Custom tone", Path(payload["src"]))

    def selected_id(self) -> str:
        raw = self.storage.get(ALARM_SOUND_KEY)
        if raw == CUSTOM_ALARM and self.custom_sound():
            return CUSTOM_ALARM
        if raw in ALARM_SOUNDS:
            return raw
        return DEFAULT_ALARM

    def source_for(self, sound_id: str) -> AlarmSound:
        if sound_id == CUSTOM_ALARM:
            custom = self.custom_sound()
            if custom:
                return custom
        return ALARM_SOUNDS.get(sound_id, ALARM_SOUNDS[DEFAULT_ALARM])

    def select(self, sound_id: str) -> str:
        resolved = self.source_for(sound_id).id
        self.storage.set(ALARM_SOUND_KEY, resolved)
        return resolved

    def set_custom_sound(self, path: Path) -> AlarmSound:
        path = Path(path)
        if not path.is_file():
            raise InvalidUserInput("Please choose an audio file.")
        if path.suffix.lower() not in AUDIO_SUFFIXES:
            raise InvalidUserInput("Please choose an audio file.")
        if path.stat().st_size > CUSTOM_ALARM_MAX_BYTES:
            raise InvalidUserInput("Custom tone must be 2MB or smaller.")
        self.storage.set(CUSTOM_ALARM_KEY, json.dumps({"name": path.name, "src": str(path)}))
        self.select(CUSTOM_ALARM)
        return self.source_for(CUSTOM_ALARM)

    def clear_custom_sound(self) -> None:
        self.storage.remove(CUSTOM_ALARM_KEY)
        if self.storage.get(ALARM_SOUND_KEY) == CUSTOM_ALARM:
            self.select(DEFAULT_ALARM)
