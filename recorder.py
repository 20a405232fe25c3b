"""Microphone recorder writing WAV files."""

from __future__ import annotations

import threading
import wave
from pathlib import Path
from queue import Full, Queue
from typing import Any, Optional

from logger import get_logger

try:
    import numpy as np
except Exception:  # pragma: no cover
    np = None  # type: ignore

try:
    import sounddevice as sd
except Exception:  # pragma: no cover
    sd = None  # type: ignore

logger = get_logger("recorder")


class SoundDeviceRecorder:
    def __init__(
        self,
        sample_rate: int = 16000,
        channels: int = 1,
        chunk_ms: int = 100,
        queue_maxsize: int = 200,
    ) -> None:
        self.sample_rate = sample_rate
        self.channels = channels
        self.chunk_ms = chunk_ms
        self.dropped_chunks = 0
        self._queue_maxsize = queue_maxsize
        self._stream: Any = None
        self._running = False
        self._lock = threading.Lock()
        self._chunks: Optional[Queue[bytes | None]] = None
        self._writer: Optional[threading.Thread] = None
        self._wav: Optional[wave.Wave_write] = None
        self._target: Optional[Path] = None
        self._write_error: Optional[Exception] = None

    @property
    def running(self) -> bool:
        return self._running

    def start(self, target: Path) -> None:
        with self._lock:
            if self._running:
                return
            if sd is None:
                raise RuntimeError("sounddevice is not installed")
            target = Path(target)
            target.parent.mkdir(parents=True, exist_ok=True)
            wav = wave.open(str(target), "wb")
            wav.setnchannels(self.channels)
            wav.setsampwidth(2)
            wav.setframerate(self.sample_rate)

            blocksize = int(self.sample_rate * (self.chunk_ms / 1000.0))
            try:
                stream = sd.InputStream(
                    samplerate=self.sample_rate,
                    channels=self.channels,
                    dtype="int16",
                    blocksize=blocksize,
                    callback=self._on_audio,
                )
            except Exception:
                wav.close()
                target.unlink(missing_ok=True)
                raise

            self._wav = wav
            self._target = target
            self.dropped_chunks = 0
            self._write_error = None
            self._chunks = Queue(maxsize=self._queue_maxsize)
            self._writer = threading.Thread(target=self._drain, args=(self._chunks, wav), daemon=True)
            self._writer.start()
            self._stream = stream
            self._running = True
            try:
                stream.start()
            except Exception:
                self._running = False
                self._close_stream()
                self._finish_writer()
                target.unlink(missing_ok=True)
                raise
            logger.info("Capturing %d Hz x%d into %s", self.sample_rate, self.channels, target)

    def stop(self) -> None:
        with self._lock:
            if not self._running:
                return
            self._running = False
            self._close_stream()
            self._finish_writer()
            if self.dropped_chunks:
                logger.warning("Dropped %d audio chunks while recording %s", self.dropped_chunks, self._target)
            logger.info("Capture stopped: %s", self._target)
            self._target = None
            error, self._write_error = self._write_error, None
            if error is not None:
                raise error

    def _on_audio(self, indata: Any, frames: int, time_info: Any, status: Any) -> None:
        if not self._running or self._chunks is None:
            return
        if np is None:
            return
        payload = np.asarray(indata, dtype=np.int16).tobytes()
        try:
            self._chunks.put_nowait(payload)
        except Full:
            self.dropped_chunks += 1

    def _close_stream(self) -> None:
        if self._stream is not None:
            self._stream.stop()
            self._stream.close()
            self._stream = None

    def _finish_writer(self) -> None:
        if self._chunks is not None:
            try:
                self._chunks.put(None, timeout=1.0)
            except Full:
                logger.warning("Writer queue still full, abandoning %s", self._target)
        if self._writer is not None:
            self._writer.join(timeout=2.0)
        if self._wav is not None:
            try:
                self._wav.close()
            except (OSError, wave.Error) as exc:
                logger.exception("Closing %s failed", self._target)
                if self._write_error is None:
                    self._write_error = exc
        self._chunks = None
        self._writer = None
        self._wav = None

    def _drain(self, chunks: Queue[bytes | None], wav: wave.Wave_write) -> None:
        # Keeps consuming after a write failure so the queue never fills up.
        while True:
            payload = chunks.get()
            if payload is None:
                return
            if self._write_error is not None:
                continue
            try:
                wav.writeframes(payload)
            except (OSError, wave.Error) as exc:
                logger.exception("Writing audio to %s failed", self._target)
                self._write_error = exc
