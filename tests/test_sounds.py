import wave

from alarms import sounds
from alarms.sounds import AlarmSoundPlayer, ensure_alarm_sound
from alarms.storage import AlarmRecord
from alarms.volume import MemoryVolumeController


def test_default_tone_is_generated_once(tmp_path):
    path = tmp_path / "data" / "alarm.wav"
    ensure_alarm_sound(path, duration_seconds=0.5)
    with wave.open(str(path), "rb") as wav:
        assert wav.getnchannels() == 1
        assert wav.getframerate() == sounds.SAMPLE_RATE
        assert wav.getnframes() == sounds.SAMPLE_RATE // 2
    mtime = path.stat().st_mtime_ns
    ensure_alarm_sound(path)
    assert path.stat().st_mtime_ns == mtime


def test_resolve_sound_prefers_existing_wav(tmp_path):
    player = AlarmSoundPlayer(tmp_path / "default.wav")
    custom = tmp_path / "custom.wav"
    custom.write_bytes(b"RIFF")

    assert player.resolve_sound(str(custom)) == custom
    assert player.resolve_sound(str(tmp_path / "missing.wav")) == tmp_path / "default.wav"
    assert player.resolve_sound("") == tmp_path / "default.wav"
    assert (tmp_path / "default.wav").exists()


def test_volume_applied_and_restored(tmp_path, monkeypatch):
    monkeypatch.setattr(sounds, "winsound", None)
    volume = MemoryVolumeController(initial=30)
    player = AlarmSoundPlayer(tmp_path / "default.wav", volume)

    player.play_alarm(AlarmRecord(id="a", hour=7, minute=0, volume=90))
    assert volume.get_volume() == 90

    player.stop_loop()
    assert volume.get_volume() == 30
