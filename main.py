"""Application entrypoint."""

from __future__ import annotations

import sys
from concurrent.futures import ThreadPoolExecutor
from typing import Callable

from audio_store import FileAudioStore
from config import JsonConfigStore
from hotkey import GlobalHotkeyAdapter
from interfaces import ConfigStore
from logger import get_logger, setup_logging
from models import AudioClip, RecordingPhase, SessionSnapshot
from overlay import OverlayWindow
from player import SoundDevicePlayer
from recorder import SoundDeviceRecorder
from session_coordinator import SessionCoordinator, format_elapsed

try:
    from PySide6.QtCore import QObject, QSize, Signal
    from PySide6.QtGui import QAction, QBrush, QColor, QIcon, QPainter, QPixmap
    from PySide6.QtWidgets import QApplication, QInputDialog, QMenu, QMessageBox, QSystemTrayIcon
except Exception as exc:  # pragma: no cover
    raise SystemExit(f"PySide6 is required to run the desktop app: {exc}")

logger = get_logger("app")

ICON_IDLE = "#888888"      # grey
ICON_RECORDING = "#FF4444"  # red
ICON_PLAYING = "#44AA66"    # green

SEEK_PRESETS = (0, 25, 50, 75)


def _create_icon(color: str = ICON_IDLE, size: int = 22) -> QIcon:
    """Generate a simple circular tray icon with the given color."""
    pixmap = QPixmap(QSize(size, size))
    pixmap.fill(QColor(0, 0, 0, 0))
    painter = QPainter(pixmap)
    painter.setRenderHint(QPainter.Antialiasing, True)
    painter.setBrush(QBrush(QColor(color)))
    painter.setPen(QColor(color))
    painter.drawEllipse(2, 2, size - 4, size - 4)
    painter.end()
    return QIcon(pixmap)


class UIBridge(QObject):
    state_signal = Signal(object)  # SessionSnapshot
    error_signal = Signal(str)
    hotkey_signal = Signal()


class App:
    def __init__(self) -> None:
        self.app = QApplication(sys.argv)
        self.app.setQuitOnLastWindowClosed(False)
        self.config_store: ConfigStore = JsonConfigStore()
        storage_dir = self.config_store.get_storage_dir()
        setup_logging(self.config_store.get_log_level(), storage_dir / "logs")

        self.overlay = OverlayWindow()
        self.ui = UIBridge()
        self.ui.state_signal.connect(self._on_state_change_ui)
        self.ui.error_signal.connect(self._on_error_ui)
        self.ui.hotkey_signal.connect(self._toggle_recording)

        # One worker keeps I/O-bound commands off the Qt thread and in order.
        self._commands = ThreadPoolExecutor(max_workers=1, thread_name_prefix="session-cmd")

        self.controller = SessionCoordinator(
            store=FileAudioStore(storage_dir),
            recorder=SoundDeviceRecorder(sample_rate=self.config_store.get_sample_rate()),
            player=SoundDevicePlayer(),
            on_state_change=self._on_state_change,
            on_error=self._on_error,
        )
        self._snapshot = self.controller.snapshot()
        self.hotkey = GlobalHotkeyAdapter(hotkey_name=self.config_store.get_hotkey())

        self.tray = QSystemTrayIcon()
        self.tray.setIcon(_create_icon(ICON_IDLE))
        self.tray.setToolTip("Voice Memos")
        self._menu = QMenu()
        self.tray.setContextMenu(self._menu)
        self._rebuild_menu()
        self.tray.show()

    # ------------------------------------------------------------------
    # Menu
    # ------------------------------------------------------------------

    def _rebuild_menu(self) -> None:
        snap = self._snapshot
        menu = self._menu
        menu.clear()

        if snap.is_recording:
            self._add_action(menu, f"Stop recording ({snap.elapsed_text})", self._stop_recording)
        else:
            self._add_action(menu, "Start recording…", self._start_recording)

        clips_menu = menu.addMenu(f"Recordings ({len(snap.clips)})")
        clips_menu.setEnabled(bool(snap.clips))
        for clip in snap.clips:
            self._add_clip_menu(clips_menu, clip)

        if snap.playback is not None:
            playback_menu = menu.addMenu("Playback")
            self._add_action(playback_menu, "Previous", lambda: self._submit(self.controller.play_previous))
            self._add_action(playback_menu, "Next", lambda: self._submit(self.controller.play_next))
            playback_menu.addSeparator()
            for pct in SEEK_PRESETS:
                self._add_action(
                    playback_menu,
                    f"Seek to {pct}%",
                    lambda pct=pct: self._submit(self.controller.seek, pct),
                )

        menu.addSeparator()
        self._add_action(menu, "Quit", self.quit)

    def _add_clip_menu(self, parent: QMenu, clip: AudioClip) -> None:
        playback = self._snapshot.playback
        active = playback is not None and playback.active_clip_id == clip.id
        title = f"{clip.name}  [{format_elapsed(clip.duration_ms // 1000)}]"
        if active:
            title = f"▶ {title}"
        sub = parent.addMenu(title)
        play_label = "Pause" if active and playback.is_playing else "Play"
        self._add_action(sub, play_label, lambda: self._submit(self.controller.play_or_toggle, clip.id))
        self._add_action(sub, "Rename…", lambda: self._rename_clip(clip))
        self._add_action(sub, "Delete…", lambda: self._delete_clip(clip))

    def _add_action(self, menu: QMenu, text: str, handler: Callable[[], None]) -> QAction:
        action = QAction(text, menu)
        action.triggered.connect(lambda _checked=False: handler())
        menu.addAction(action)
        return action

    # ------------------------------------------------------------------
    # Intents
    # ------------------------------------------------------------------

    def _submit(self, command: Callable[..., None], *args: object) -> None:
        self._commands.submit(command, *args)

    def _toggle_recording(self) -> None:
        if self._snapshot.is_recording:
            self._stop_recording()
        elif self._snapshot.recording_phase == RecordingPhase.IDLE:
            self._start_recording()

    def _start_recording(self) -> None:
        # The name prompt opens once the coordinator publishes AWAITING_NAME.
        self._submit(self.controller.request_start_recording)

    def _prompt_recording_name(self) -> None:
        draft = self._snapshot.pending_name_draft
        value, ok = QInputDialog.getText(None, "New recording", "Name", text=draft)
        if not ok:
            self._submit(self.controller.cancel_recording_name)
            return
        self._submit(self.controller.confirm_recording_name, value)

    def _stop_recording(self) -> None:
        self._submit(self.controller.request_stop_recording)

    def _delete_clip(self, clip: AudioClip) -> None:
        self._submit(self.controller.request_delete, clip.id)
        answer = QMessageBox.question(None, "Delete recording", f"Delete “{clip.name}”?")
        if answer == QMessageBox.Yes:
            self._submit(self.controller.confirm_delete)
        else:
            self._submit(self.controller.cancel_delete)

    def _rename_clip(self, clip: AudioClip) -> None:
        self._submit(self.controller.request_rename, clip.id)
        value, ok = QInputDialog.getText(None, "Rename recording", "Name", text=clip.name)
        if not ok:
            self._submit(self.controller.cancel_rename)
            return
        self._submit(self.controller.confirm_rename, value)

    # ------------------------------------------------------------------
    # Callbacks (called from worker threads → emit signals for UI thread)
    # ------------------------------------------------------------------

    def _on_state_change(self, snapshot: SessionSnapshot) -> None:
        self.ui.state_signal.emit(snapshot)

    def _on_error(self, code: str, message: str) -> None:
        self.ui.error_signal.emit(message)

    # ------------------------------------------------------------------
    # UI thread handlers (safe for Qt)
    # ------------------------------------------------------------------

    def _on_state_change_ui(self, snapshot: SessionSnapshot) -> None:
        previous = self._snapshot
        self._snapshot = snapshot
        if snapshot.is_recording:
            self.tray.setIcon(_create_icon(ICON_RECORDING))
            self.tray.setToolTip(f"Voice Memos — Recording {snapshot.elapsed_text}")
            self.overlay.show_timer(snapshot.elapsed_text)
        else:
            playing = snapshot.playback is not None and snapshot.playback.is_playing
            self.tray.setIcon(_create_icon(ICON_PLAYING if playing else ICON_IDLE))
            self.tray.setToolTip("Voice Memos")
            if previous.is_recording and len(snapshot.clips) > len(previous.clips):
                self.overlay.show_message("Saved")
        self._rebuild_menu()
        if (
            snapshot.recording_phase == RecordingPhase.AWAITING_NAME
            and previous.recording_phase != RecordingPhase.AWAITING_NAME
        ):
            self._prompt_recording_name()

    def _on_error_ui(self, message: str) -> None:
        self.overlay.show_error(message)
        self._submit(self.controller.dismiss_error)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def run(self) -> int:
        self.controller.start()
        try:
            self.hotkey.start(on_toggle=self.ui.hotkey_signal.emit)
        except Exception as exc:
            logger.warning("Hotkey disabled: %s", exc)
            self.overlay.show_error(f"Hotkey disabled: {exc}")
        return self.app.exec()

    def quit(self) -> None:
        self.hotkey.stop()
        self._commands.shutdown(wait=True)
        self.controller.teardown()
        self.app.quit()


def main() -> int:
    app = App()
    return app.run()


if __name__ == "__main__":
    raise SystemExit(main())
