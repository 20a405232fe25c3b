"""WAV clip storage in an app-private directory."""

from __future__ import annotations

import threading
import wave
from pathlib import Path
from typing import Optional

from logger import get_logger
from models import AudioClip

logger = get_logger("store")

_FORBIDDEN_CHARS = set('/\\:*?"<>|\0')


def read_wav_duration_ms(path: Path) -> Optional[int]:
    """Duration of a WAV file in milliseconds, None if the header is unreadable."""
    try:
        with wave.open(str(path), "rb") as wf:
            rate = wf.getframerate()
            if rate <= 0:
                return None
            return int(wf.getnframes() * 1000 / rate)
    except (wave.Error, EOFError, OSError):
        return None


def wav_duration_ms(path: Path) -> int:
    return read_wav_duration_ms(path) or 0


def is_empty_capture(path: Path) -> bool:
    """A readable WAV holding less than a millisecond of audio."""
    return read_wav_duration_ms(path) == 0


class FileAudioStore:
    def __init__(self, root: Path, extension: str = ".wav") -> None:
        self._root = Path(root).expanduser()
        self._extension = extension
        self._lock = threading.Lock()
        self._ids: dict[str, int] = {}
        self._next_id = 1

    @property
    def root(self) -> Path:
        return self._root

    def list_clips(self) -> list[AudioClip]:
        if not self._root.is_dir():
            return []
        paths = sorted(
            (p for p in self._root.iterdir() if p.is_file() and p.suffix == self._extension),
            key=lambda p: p.name,
        )
        # Header-only files are aborted captures, not clips.
        return [self._to_clip(p) for p in paths if not is_empty_capture(p)]

    def get_most_recent_clip(self) -> Optional[AudioClip]:
        if not self._root.is_dir():
            return None
        paths = [p for p in self._root.iterdir() if p.is_file() and p.suffix == self._extension]
        if not paths:
            return None
        newest = max(paths, key=lambda p: p.stat().st_mtime_ns)
        if is_empty_capture(newest):
            logger.info("Discarding empty recording %s", newest.name)
            self._discard(newest)
            return None
        clip = self._to_clip(newest)
        if clip.duration_ms <= 0:
            logger.warning("Ignoring unreadable recording %s", newest.name)
            return None
        return clip

    def locator_for(self, name: str) -> Path:
        path = self._path_for(name)
        if path.exists():
            raise FileExistsError(f"recording {name!r} already exists")
        self._root.mkdir(parents=True, exist_ok=True)
        return path

    def delete_clip(self, name: str) -> bool:
        path = self._path_for(name)
        try:
            path.unlink(missing_ok=True)
        except OSError:
            logger.exception("Failed to delete %s", path)
            return False
        with self._lock:
            self._ids.pop(path.name, None)
        return True

    def rename_clip(self, name: str, new_name: str) -> Optional[Path]:
        source = self._path_for(name)
        target = self._path_for(new_name)
        if not source.exists() or target.exists():
            return None
        try:
            source.rename(target)
        except OSError:
            logger.exception("Failed to rename %s to %s", source, target)
            return None
        with self._lock:
            clip_id = self._ids.pop(source.name, None)
            if clip_id is not None:
                self._ids[target.name] = clip_id
        return target

    def _discard(self, path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError:
            logger.exception("Failed to remove %s", path)
            return
        with self._lock:
            self._ids.pop(path.name, None)

    def _path_for(self, name: str) -> Path:
        name = name.strip()
        if not name or name.startswith(".") or any(ch in _FORBIDDEN_CHARS for ch in name):
            raise ValueError(f"invalid recording name: {name!r}")
        return self._root / f"{name}{self._extension}"

    def _to_clip(self, path: Path) -> AudioClip:
        with self._lock:
            clip_id = self._ids.get(path.name)
            if clip_id is None:
                clip_id = self._next_id
                self._next_id += 1
                self._ids[path.name] = clip_id
        try:
            created_at_ms = int(path.stat().st_mtime * 1000)
        except OSError:
            created_at_ms = 0
        return AudioClip(
            id=clip_id,
            name=path.name,
            locator=path,
            duration_ms=wav_duration_ms(path),
            created_at_ms=created_at_ms,
        )
