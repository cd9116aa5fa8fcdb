from datetime import datetime

from alarms.music import MAX_FILE_SIZE_BYTES, MusicLibrary, format_file_size, is_music_extension


def test_extension_check_is_case_insensitive():
    assert is_music_extension("song.MP3")
    assert is_music_extension("a/b/c.m4a")
    assert not is_music_extension("notes.txt")


def test_format_file_size():
    assert format_file_size(512) == "512 B"
    assert format_file_size(2048) == "2.00 KB"
    assert format_file_size(3 * 1024 * 1024) == "3.00 MB"


def test_library_creates_folder(tmp_path):
    folder = tmp_path / "Music"
    MusicLibrary(folder)
    assert folder.is_dir()


def test_validation_rules(tmp_path):
    library = MusicLibrary(tmp_path / "lib")
    good = tmp_path / "good.wav"
    good.write_bytes(b"RIFF")
    wrong_ext = tmp_path / "song.ogg"
    wrong_ext.write_bytes(b"OggS")
    too_big = tmp_path / "big.mp3"
    too_big.write_bytes(b"\0" * (MAX_FILE_SIZE_BYTES + 1))

    assert library.is_valid_music_file(good)
    assert not library.is_valid_music_file(wrong_ext)
    assert not library.is_valid_music_file(too_big)
    assert not library.is_valid_music_file(tmp_path / "missing.mp3")


def test_copy_adds_timestamp_on_collision(tmp_path):
    library = MusicLibrary(tmp_path / "lib")
    source = tmp_path / "wake.mp3"
    source.write_bytes(b"ID3")

    first = library.copy_into_library(source)
    second = library.copy_into_library(source, now=datetime(2025, 3, 10, 7, 0, 0))

    assert first == library.folder / "wake.mp3"
    assert second == library.folder / "wake_20250310070000.mp3"
    assert second.read_bytes() == b"ID3"
    assert library.copy_into_library(tmp_path / "absent.mp3") is None


def test_list_and_delete(tmp_path):
    library = MusicLibrary(tmp_path / "lib")
    for name in ("b.wav", "a.mp3", "readme.txt"):
        (library.folder / name).write_bytes(b"x")

    assert [p.name for p in library.list_music_files()] == ["a.mp3", "b.wav"]
    assert library.delete_music_file(library.folder / "a.mp3")
    assert not library.delete_music_file(library.folder / "a.mp3")
    assert [p.name for p in library.list_music_files()] == ["b.wav"]
