"""Core data models for the app."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional


class RecordingPhase(str, Enum):
    IDLE = "IDLE"
    AWAITING_NAME = "AWAITING_NAME"
    RECORDING = "RECORDING"


@dataclass(frozen=True)
class AudioClip:
    id: int
    name: str
    locator: Path
    duration_ms: int = 0
    created_at_ms: int = 0


@dataclass(frozen=True)
class PlayerStatus:
    position_ms: int = 0
    duration_ms: int = 0
    is_playing: bool = False
    active_locator: Optional[Path] = None


@dataclass(frozen=True)
class PlaybackState:
    active_clip_id: int
    is_playing: bool = False
    position_ms: int = 0
    duration_ms: int = 0
    progress_pct: float = 0.0


@dataclass(frozen=True)
class ErrorNotice:
    code: str
    message: str


@dataclass(frozen=True)
class SessionSnapshot:
    """Read-only view of the coordinator state handed to the UI."""

    clips: tuple[AudioClip, ...] = ()
    recording_phase: RecordingPhase = RecordingPhase.IDLE
    elapsed_s: int = 0
    playback: Optional[PlaybackState] = None
    pending_delete_clip_id: Optional[int] = None
    pending_rename_clip_id: Optional[int] = None
    pending_name_draft: str = ""
    last_error: Optional[ErrorNotice] = None
    elapsed_text: str = "00:00:00"

    @property
    def is_recording(self) -> bool:
        return self.recording_phase == RecordingPhase.RECORDING
