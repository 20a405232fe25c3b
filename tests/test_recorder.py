"""Tests for SoundDeviceRecorder."""

from __future__ import annotations

import threading
import wave
from pathlib import Path
from queue import Full
from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from recorder import SoundDeviceRecorder


def _frames(n_samples: int = 1600, value: int = 7) -> np.ndarray:
    return np.full((n_samples, 1), value, dtype=np.int16)


@patch("recorder.sd")
def test_start_creates_stream_and_stop_finalizes_wav(mock_sd: MagicMock, tmp_path: Path) -> None:
    mock_stream = MagicMock()
    mock_sd.InputStream.return_value = mock_stream
    target = tmp_path / "memos" / "Audio_1.wav"

    recorder = SoundDeviceRecorder(sample_rate=16000, channels=1, chunk_ms=100)
    recorder.start(target)

    kwargs = mock_sd.InputStream.call_args.kwargs
    assert kwargs["samplerate"] == 16000
    assert kwargs["blocksize"] == 1600
    assert kwargs["dtype"] == "int16"
    mock_stream.start.assert_called_once()
    assert recorder.running is True

    recorder._on_audio(_frames(), frames=1600, time_info=None, status=None)
    recorder._on_audio(_frames(), frames=1600, time_info=None, status=None)
    recorder.stop()

    mock_stream.stop.assert_called_once()
    mock_stream.close.assert_called_once()
    assert recorder.running is False
    with wave.open(str(target), "rb") as wf:
        assert wf.getnframes() == 3200
        assert wf.getframerate() == 16000
        assert wf.getnchannels() == 1


@patch("recorder.sd")
def test_start_is_idempotent(mock_sd: MagicMock, tmp_path: Path) -> None:
    mock_sd.InputStream.return_value = MagicMock()

    recorder = SoundDeviceRecorder()
    recorder.start(tmp_path / "a.wav")
    recorder.start(tmp_path / "b.wav")  # should be no-op

    assert mock_sd.InputStream.call_count == 1
    assert not (tmp_path / "b.wav").exists()
    recorder.stop()


@patch("recorder.sd")
def test_stop_is_idempotent(mock_sd: MagicMock, tmp_path: Path) -> None:
    mock_stream = MagicMock()
    mock_sd.InputStream.return_value = mock_stream

    recorder = SoundDeviceRecorder()
    recorder.stop()  # never started
    recorder.start(tmp_path / "a.wav")
    recorder.stop()
    recorder.stop()

    mock_stream.close.assert_called_once()


@patch("recorder.sd")
def test_queue_full_increments_dropped_chunks(mock_sd: MagicMock, tmp_path: Path) -> None:
    mock_sd.InputStream.return_value = MagicMock()

    recorder = SoundDeviceRecorder(queue_maxsize=1)
    recorder.start(tmp_path / "a.wav")
    # Keep the writer from draining while we flood the queue.
    with patch.object(recorder, "_chunks") as chunks:
        chunks.put_nowait.side_effect = [None, Full()]
        recorder._on_audio(_frames(), frames=1600, time_info=None, status=None)
        assert recorder.dropped_chunks == 0
        recorder._on_audio(_frames(), frames=1600, time_info=None, status=None)
        assert recorder.dropped_chunks == 1
    recorder.stop()


@patch("recorder.sd")
def test_callback_after_stop_is_noop(mock_sd: MagicMock, tmp_path: Path) -> None:
    mock_sd.InputStream.return_value = MagicMock()
    target = tmp_path / "a.wav"

    recorder = SoundDeviceRecorder()
    recorder.start(target)
    recorder.stop()
    recorder._on_audio(_frames(), frames=1600, time_info=None, status=None)

    with wave.open(str(target), "rb") as wf:
        assert wf.getnframes() == 0


@patch("recorder.sd")
def test_stream_open_failure_removes_target(mock_sd: MagicMock, tmp_path: Path) -> None:
    mock_sd.InputStream.side_effect = OSError("no input device")
    target = tmp_path / "a.wav"

    recorder = SoundDeviceRecorder()
    with pytest.raises(OSError):
        recorder.start(target)

    assert not target.exists()
    assert recorder.running is False


@patch("recorder.sd")
def test_unwritable_target_raises(mock_sd: MagicMock, tmp_path: Path) -> None:
    blocker = tmp_path / "file"
    blocker.write_text("x", encoding="utf-8")

    recorder = SoundDeviceRecorder()
    with pytest.raises(OSError):
        recorder.start(blocker / "a.wav")
    mock_sd.InputStream.assert_not_called()


def test_start_raises_without_sounddevice(monkeypatch, tmp_path: Path) -> None:  # noqa: ANN001
    import recorder as rec_mod
    monkeypatch.setattr(rec_mod, "sd", None)

    recorder = SoundDeviceRecorder()
    with pytest.raises(RuntimeError, match="sounddevice is not installed"):
        recorder.start(tmp_path / "a.wav")


@patch("recorder.sd")
def test_write_failure_does_not_block_stop(mock_sd: MagicMock, tmp_path: Path) -> None:
    mock_sd.InputStream.return_value = MagicMock()

    recorder = SoundDeviceRecorder(queue_maxsize=2)
    recorder.start(tmp_path / "a.wav")
    recorder._wav.writeframes = MagicMock(side_effect=OSError("No space left on device"))
    for _ in range(12):
        recorder._on_audio(_frames(), frames=1600, time_info=None, status=None)

    raised: list[BaseException] = []

    def _stop() -> None:
        try:
            recorder.stop()
        except OSError as exc:
            raised.append(exc)

    worker = threading.Thread(target=_stop, daemon=True)
    worker.start()
    worker.join(timeout=5.0)

    assert not worker.is_alive()
    assert len(raised) == 1
    assert "No space left" in str(raised[0])
    assert recorder.running is False
    recorder.stop()  # error is reported once
