"""Protocol interfaces used by SessionCoordinator."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Optional, Protocol, Sequence

from models import AudioClip, PlayerStatus


class AudioStore(Protocol):
    def list_clips(self) -> list[AudioClip]: ...

    def get_most_recent_clip(self) -> Optional[AudioClip]: ...

    def locator_for(self, name: str) -> Path: ...

    def delete_clip(self, name: str) -> bool: ...

    def rename_clip(self, name: str, new_name: str) -> Optional[Path]: ...


class Recorder(Protocol):
    def start(self, target: Path) -> None: ...

    def stop(self) -> None: ...


class Player(Protocol):
    def set_playlist(self, clips: Sequence[AudioClip]) -> None: ...

    def play_from_locator(self, locator: Path) -> None: ...

    def play(self) -> None: ...

    def pause(self) -> None: ...

    def stop(self) -> None: ...

    def seek_to(self, position_ms: int) -> None: ...

    def status(self) -> PlayerStatus: ...


class Ticker(Protocol):
    def start(self) -> None: ...

    def cancel(self) -> None: ...


TickerFactory = Callable[[float, Callable[[], None], str], Ticker]


class ConfigStore(Protocol):
    def get_storage_dir(self) -> Path: ...

    def set_storage_dir(self, path: Path) -> None: ...

    def get_hotkey(self) -> str: ...

    def set_hotkey(self, hotkey: str) -> None: ...

    def get_sample_rate(self) -> int: ...

    def get_log_level(self) -> str: ...
