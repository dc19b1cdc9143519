import json

import pytest

from tasktrack_app.tracker.alarms import (
    ALARM_SOUNDS,
    CUSTOM_ALARM_MAX_BYTES,
    AlarmLibrary,
)
from tasktrack_app.tracker.models import InvalidUserInput
from tasktrack_app.tracker.storage import ALARM_SOUND_KEY, CUSTOM_ALARM_KEY


def test_bundled_tones_exist():
    for sound in ALARM_SOUNDS.values():
        assert sound.path.is_file()
        assert sound.path.read_bytes()[:4] == b"RIFF"


def test_selection_falls_back_to_chime(store):
    library = AlarmLibrary(store)
    assert library.selected_id() == "chime"
    store.set(ALARM_SOUND_KEY, "kazoo")
    assert library.selected_id() == "chime"
    assert library.select("beeps") == "beeps"
    assert library.selected_id() == "beeps"


def test_custom_selection_requires_a_saved_tone(store):
    library = AlarmLibrary(store)
    assert library.select("custom") == "chime"
    store.set(ALARM_SOUND_KEY, "custom")
    assert library.selected_id() == "chime"


def test_custom_tone_is_saved_and_selected(store, tmp_path):
    tone = tmp_path / "ding.wav"
    tone.write_bytes(b"RIFF0000WAVE")
    library = AlarmLibrary(store)

    sound = library.set_custom_sound(tone)
    assert sound.id == "custom"
    assert sound.label == "ding.wav"
    assert library.selected_id() == "custom"
    assert json.loads(store.get(CUSTOM_ALARM_KEY))["src"] == str(tone)

    library.clear_custom_sound()
    assert library.custom_sound() is None
    assert library.selected_id() == "chime"


@pytest.mark.parametrize("name,size", [("notes.txt", 10), ("huge.mp3", CUSTOM_ALARM_MAX_BYTES + 1)])
def test_custom_tone_rejected(store, tmp_path, name, size):
    path = tmp_path / name
    path.write_bytes(b"\0" * size)
    library = AlarmLibrary(store)
    with pytest.raises(InvalidUserInput):
        library.set_custom_sound(path)
    assert store.get(CUSTOM_ALARM_KEY) is None


def test_missing_custom_file_rejected(store, tmp_path):
    with pytest.raises(InvalidUserInput):
        AlarmLibrary(store).set_custom_sound(tmp_path / "gone.wav")


def test_unreadable_custom_entry_is_ignored(store):
    store.set(CUSTOM_ALARM_KEY, "{not json")
    assert AlarmLibrary(store).custom_sound() is None
