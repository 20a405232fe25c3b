"""WAV playback through a sounddevice output stream."""

from __future__ import annotations

import threading
import wave
from pathlib import Path
from typing import Any, Optional, Sequence

from logger import get_logger
from models import AudioClip, PlayerStatus

try:
    import numpy as np
except Exception:  # pragma: no cover
    np = None  # type: ignore

try:
    import sounddevice as sd
except Exception:  # pragma: no cover
    sd = None  # type: ignore

logger = get_logger("player")


def load_wav(path: Path) -> tuple[Any, int]:
    """Read a 16-bit PCM WAV into a ``(frames, channels)`` int16 array."""
    with wave.open(str(path), "rb") as wf:
        if wf.getsampwidth() != 2:
            raise ValueError(f"{path.name}: only 16-bit PCM is supported")
        channels = wf.getnchannels()
        rate = wf.getframerate()
        raw = wf.readframes(wf.getnframes())
    samples = np.frombuffer(raw, dtype=np.int16).reshape(-1, channels)
    return samples, rate


class SoundDevicePlayer:
    def __init__(self, blocksize: int = 1024) -> None:
        self._blocksize = blocksize
        self._lock = threading.Lock()
        self._stream: Any = None
        self._samples: Any = None
        self._sample_rate = 0
        self._cursor = 0
        self._playing = False
        self._locator: Optional[Path] = None
        self._playlist: list[AudioClip] = []

    @property
    def playlist(self) -> list[AudioClip]:
        return list(self._playlist)

    def set_playlist(self, clips: Sequence[AudioClip]) -> None:
        self._playlist = list(clips)

    def play_from_locator(self, locator: Path) -> None:
        if sd is None or np is None:
            raise RuntimeError("sounddevice is not installed")
        locator = Path(locator)
        samples, rate = load_wav(locator)
        self.stop()
        stream = sd.OutputStream(
            samplerate=rate,
            channels=samples.shape[1],
            dtype="int16",
            blocksize=self._blocksize,
            callback=self._on_audio,
        )
        with self._lock:
            self._samples = samples
            self._sample_rate = rate
            self._cursor = 0
            self._locator = locator
            self._stream = stream
            self._playing = True
        stream.start()
        logger.info("Playing %s (%d frames @ %d Hz)", locator.name, len(samples), rate)

    def play(self) -> None:
        with self._lock:
            stream = self._stream
            if stream is None or self._playing:
                return
            if self._cursor >= len(self._samples):
                self._cursor = 0
            self._playing = True
        # A stream ended by CallbackStop must be stopped before it can restart.
        stream.stop()
        stream.start()

    def pause(self) -> None:
        with self._lock:
            stream = self._stream
            if stream is None or not self._playing:
                return
            self._playing = False
        stream.stop()

    def stop(self) -> None:
        with self._lock:
            stream = self._stream
            self._stream = None
            self._samples = None
            self._sample_rate = 0
            self._cursor = 0
            self._playing = False
            self._locator = None
        if stream is not None:
            stream.stop()
            stream.close()

    def seek_to(self, position_ms: int) -> None:
        with self._lock:
            if self._samples is None or self._sample_rate <= 0:
                return
            frame = int(position_ms * self._sample_rate / 1000)
            self._cursor = min(max(0, frame), len(self._samples))

    def status(self) -> PlayerStatus:
        with self._lock:
            if self._samples is None or self._sample_rate <= 0:
                return PlayerStatus()
            return PlayerStatus(
                position_ms=int(self._cursor * 1000 / self._sample_rate),
                duration_ms=int(len(self._samples) * 1000 / self._sample_rate),
                is_playing=self._playing,
                active_locator=self._locator,
            )

    def _on_audio(self, outdata: Any, frames: int, time_info: Any, status: Any) -> None:
        with self._lock:
            if self._samples is None or not self._playing:
                outdata.fill(0)
                return
            chunk = self._samples[self._cursor : self._cursor + frames]
            count = len(chunk)
            outdata[:count] = chunk
            outdata[count:] = 0
            self._cursor += count
            finished = count < frames
            if finished:
                self._playing = False
        if finished:
            raise sd.CallbackStop()
