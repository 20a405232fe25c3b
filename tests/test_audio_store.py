from __future__ import annotations

import os
import wave
from pathlib import Path

import pytest

from audio_store import FileAudioStore, wav_duration_ms


def _write_wav(path: Path, frames: int, rate: int = 16000, mtime: float | None = None) -> Path:
    with wave.open(str(path), "wb") as wf:
        wf.setnchannels(1)
        wf.setsampwidth(2)
        wf.setframerate(rate)
        wf.writeframes(b"\x00\x00" * frames)
    if mtime is not None:
        os.utime(path, (mtime, mtime))
    return path


def test_list_clips_sorted_with_stable_ids(tmp_path: Path) -> None:
    _write_wav(tmp_path / "b.wav", 16000)
    _write_wav(tmp_path / "a.wav", 8000)
    (tmp_path / "notes.txt").write_text("ignored", encoding="utf-8")

    store = FileAudioStore(tmp_path)
    clips = store.list_clips()

    assert [c.name for c in clips] == ["a.wav", "b.wav"]
    assert [c.id for c in clips] == [1, 2]
    assert [c.duration_ms for c in clips] == [500, 1000]
    assert clips[0].locator == tmp_path / "a.wav"
    assert clips[0].created_at_ms > 0

    _write_wav(tmp_path / "0.wav", 100)
    again = store.list_clips()
    assert [(c.name, c.id) for c in again] == [("0.wav", 3), ("a.wav", 1), ("b.wav", 2)]


def test_list_clips_missing_dir(tmp_path: Path) -> None:
    store = FileAudioStore(tmp_path / "nope")
    assert store.list_clips() == []
    assert store.get_most_recent_clip() is None


def test_broken_header_reports_zero_duration(tmp_path: Path) -> None:
    broken = tmp_path / "broken.wav"
    broken.write_bytes(b"not a wav")
    assert wav_duration_ms(broken) == 0
    assert FileAudioStore(tmp_path).list_clips()[0].duration_ms == 0


def test_most_recent_clip_by_mtime(tmp_path: Path) -> None:
    _write_wav(tmp_path / "old.wav", 16000, mtime=1_000_000)
    _write_wav(tmp_path / "new.wav", 32000, mtime=2_000_000)

    clip = FileAudioStore(tmp_path).get_most_recent_clip()

    assert clip is not None
    assert clip.name == "new.wav"
    assert clip.duration_ms == 2000
    assert clip.created_at_ms == 2_000_000_000


def test_most_recent_clip_discards_empty_capture(tmp_path: Path) -> None:
    _write_wav(tmp_path / "old.wav", 16000, mtime=1_000_000)
    _write_wav(tmp_path / "empty.wav", 0, mtime=2_000_000)
    store = FileAudioStore(tmp_path)

    assert store.get_most_recent_clip() is None
    assert not (tmp_path / "empty.wav").exists()
    assert [c.name for c in store.list_clips()] == ["old.wav"]


def test_list_clips_hides_header_only_files(tmp_path: Path) -> None:
    _write_wav(tmp_path / "a.wav", 16000)
    _write_wav(tmp_path / "b.wav", 0)

    clips = FileAudioStore(tmp_path).list_clips()

    assert [c.name for c in clips] == ["a.wav"]
    assert (tmp_path / "b.wav").exists()


def test_locator_for_validates_and_refuses_overwrite(tmp_path: Path) -> None:
    root = tmp_path / "memos"
    store = FileAudioStore(root)

    assert store.locator_for("Audio_1") == root / "Audio_1.wav"
    assert root.is_dir()

    _write_wav(root / "Audio_1.wav", 10)
    with pytest.raises(FileExistsError):
        store.locator_for("Audio_1")
    for bad in ("", "   ", "../escape", "a/b", ".hidden", "c:d"):
        with pytest.raises(ValueError):
            store.locator_for(bad)


def test_delete_clip_is_idempotent(tmp_path: Path) -> None:
    _write_wav(tmp_path / "Audio_1.wav", 10)
    store = FileAudioStore(tmp_path)

    assert store.delete_clip("Audio_1") is True
    assert not (tmp_path / "Audio_1.wav").exists()
    assert store.delete_clip("Audio_1") is True


def test_rename_keeps_id(tmp_path: Path) -> None:
    _write_wav(tmp_path / "Audio_1.wav", 10)
    _write_wav(tmp_path / "Audio_2.wav", 10)
    store = FileAudioStore(tmp_path)
    original = {c.name: c.id for c in store.list_clips()}

    assert store.rename_clip("Audio_1", "standup") == tmp_path / "standup.wav"
    assert store.rename_clip("standup", "Audio_2") is None
    assert store.rename_clip("missing", "other") is None

    renamed = {c.name: c.id for c in store.list_clips()}
    assert renamed["standup.wav"] == original["Audio_1.wav"]
