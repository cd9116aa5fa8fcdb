import json
from datetime import datetime

import pytest

from alarms.storage import AlarmRecord, ConfigStore, GlobalSettings


def _sample_alarms():
    return [
        AlarmRecord(
            id="a1",
            hour=7,
            minute=30,
            name="Wake up",
            custom_ringing_seconds=8,
            max_ringing_minutes=0,
            music_file_path="C:/music/song.wav",
            days_of_week={1, 2, 3, 4, 5},
            exclude_holidays=True,
            volume=80,
        ),
        AlarmRecord(id="a2", hour=22, minute=5, name="", enabled=False),
    ]


def test_save_then_load_round_trip(tmp_path):
    store = ConfigStore(tmp_path / "alarm_config.json")
    settings = GlobalSettings(
        default_ringing_duration_seconds=7,
        max_ringing_duration_minutes=3,
        idle_threshold_seconds=45,
        music_folder_path="/tmp/music",
    )
    alarms = _sample_alarms()

    assert store.save(settings, alarms)
    loaded_settings, loaded_alarms = store.load()

    assert loaded_settings == settings
    assert [a.id for a in loaded_alarms] == ["a1", "a2"]
    assert loaded_alarms == alarms


def test_persisted_json_uses_documented_keys(tmp_path):
    path = tmp_path / "alarm_config.json"
    ConfigStore(path).save(GlobalSettings(), _sample_alarms()[:1])
    payload = json.loads(path.read_text(encoding="utf-8"))

    assert set(payload) == {
        "alarms",
        "defaultRingingDurationSeconds",
        "maxRingingDurationMinutes",
        "idleThresholdSeconds",
        "musicFolderPath",
    }
    assert payload["alarms"][0] == {
        "id": "a1",
        "hour": 7,
        "minute": 30,
        "name": "Wake up",
        "isEnabled": True,
        "customRingingDurationSeconds": 8,
        "maxRingingDurationMinutes": 0,
        "musicFilePath": "C:/music/song.wav",
        "daysOfWeek": [1, 2, 3, 4, 5],
        "excludeHolidays": True,
        "volume": 80,
    }


def test_runtime_fields_are_not_persisted(tmp_path):
    path = tmp_path / "alarm_config.json"
    alarm = AlarmRecord(id="a1", hour=6, minute=0)
    alarm.is_ringing = True
    alarm.ringing_start_time = datetime(2025, 1, 1, 6, 0)
    store = ConfigStore(path)
    store.save(GlobalSettings(), [alarm])

    assert "isRinging" not in path.read_text(encoding="utf-8")
    _, loaded = store.load()
    assert loaded[0].is_ringing is False
    assert loaded[0].ringing_start_time is None


def test_missing_file_gives_defaults(tmp_path):
    settings, alarms = ConfigStore(tmp_path / "nope.json").load()
    assert settings == GlobalSettings(5, 10, 30, "")
    assert [(a.hour, a.minute) for a in alarms] == [(23, 0), (0, 0)]
    assert len({a.id for a in alarms}) == 2


@pytest.mark.parametrize(
    "content",
    [
        "{not json",
        "[1, 2, 3]",
        '{"idleThresholdSeconds": "soon"}',
        '{"alarms": 5, "idleThresholdSeconds": 30}',
        '{"alarms": true}',
        '{"alarms": "07:00"}',
    ],
)
def test_malformed_file_gives_defaults(tmp_path, content):
    path = tmp_path / "alarm_config.json"
    path.write_text(content, encoding="utf-8")
    settings, alarms = ConfigStore(path).load()
    assert settings.idle_threshold_seconds == 30
    assert len(alarms) == 2


def test_bad_alarm_entries_are_skipped(tmp_path):
    path = tmp_path / "alarm_config.json"
    payload = {
        "alarms": [
            {"id": "ok", "hour": 6, "minute": 15, "daysOfWeek": [0, 6, 9]},
            {"id": "bad-hour", "hour": 25, "minute": 0},
            {"id": "no-time"},
            "garbage",
        ],
        "idleThresholdSeconds": 12,
    }
    path.write_text(json.dumps(payload), encoding="utf-8")

    settings, alarms = ConfigStore(path).load()

    assert settings.idle_threshold_seconds == 12
    assert [a.id for a in alarms] == ["ok"]
    assert alarms[0].days_of_week == {0, 6}
    assert alarms[0].volume == 50


def test_save_failure_is_reported_not_raised(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("file, not a directory", encoding="utf-8")
    store = ConfigStore(blocker / "alarm_config.json")
    assert store.save(GlobalSettings(), _sample_alarms()) is False


def test_save_overwrites_without_leaving_temp_files(tmp_path):
    store = ConfigStore(tmp_path / "alarm_config.json")
    store.save(GlobalSettings(), _sample_alarms())
    store.save(GlobalSettings(), _sample_alarms()[:1])
    assert [p.name for p in tmp_path.iterdir()] == ["alarm_config.json"]
    _, alarms = store.load()
    assert len(alarms) == 1


def test_record_validation():
    with pytest.raises(ValueError):
        AlarmRecord(id="x", hour=24, minute=0)
    with pytest.raises(ValueError):
        AlarmRecord(id="x", hour=1, minute=0, custom_ringing_seconds=-1)
    assert AlarmRecord(id="x", hour=1, minute=0, volume=150).volume == 100
