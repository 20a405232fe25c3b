"""Simple JSON-based config store."""

from __future__ import annotations

import json
from pathlib import Path

DEFAULT_STORAGE_DIR = Path.home() / "VoiceMemos"
DEFAULT_HOTKEY = "Key.f9"
DEFAULT_SAMPLE_RATE = 16000
DEFAULT_LOG_LEVEL = "INFO"


class JsonConfigStore:
    def __init__(self, path: Path | None = None) -> None:
        self._path = path or Path.home() / ".config" / "voicememo" / "config.json"
        self._path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self._path

    def get_storage_dir(self) -> Path:
        data = self._read_all()
        value = data.get("storage_dir")
        if not value:
            return DEFAULT_STORAGE_DIR
        return Path(str(value)).expanduser()

    def set_storage_dir(self, path: Path) -> None:
        data = self._read_all()
        data["storage_dir"] = str(path)
        self._write_all(data)

    def get_hotkey(self) -> str:
        data = self._read_all()
        return str(data.get("hotkey", DEFAULT_HOTKEY))

    def set_hotkey(self, hotkey: str) -> None:
        data = self._read_all()
        data["hotkey"] = hotkey
        self._write_all(data)

    def get_sample_rate(self) -> int:
        data = self._read_all()
        try:
            rate = int(data.get("sample_rate", DEFAULT_SAMPLE_RATE))
        except (TypeError, ValueError):
            return DEFAULT_SAMPLE_RATE
        return rate if rate > 0 else DEFAULT_SAMPLE_RATE

    def get_log_level(self) -> str:
        data = self._read_all()
        return str(data.get("log_level", DEFAULT_LOG_LEVEL)).upper()

    def _read_all(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict) -> None:
        self._path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
