"""Overlay window for the recording timer and notices."""

from __future__ import annotations

try:
    from PySide6.QtCore import Qt, QTimer
    from PySide6.QtWidgets import QApplication, QLabel, QWidget, QVBoxLayout
except Exception:  # pragma: no cover
    Qt = None  # type: ignore
    QTimer = None  # type: ignore
    QApplication = None  # type: ignore
    QLabel = object  # type: ignore
    QWidget = object  # type: ignore
    QVBoxLayout = object  # type: ignore

_BASE_STYLE = "font-size: 18px; padding: 12px 16px; border-radius: 12px;"
_NORMAL_STYLE = "color: white; background: rgba(0,0,0,190);" + _BASE_STYLE
_RECORDING_STYLE = "color: #FF6B6B; background: rgba(0,0,0,190);" + _BASE_STYLE
_ERROR_STYLE = "color: #FFB347; background: rgba(0,0,0,210);" + _BASE_STYLE


class OverlayWindow(QWidget):
    def __init__(self) -> None:
        if Qt is None:
            raise RuntimeError("PySide6 is not installed")
        super().__init__()
        self.setWindowFlags(
            Qt.WindowStaysOnTopHint | Qt.FramelessWindowHint | Qt.Tool
        )
        self.setAttribute(Qt.WA_TranslucentBackground, True)

        self._label = QLabel("")
        self._label.setStyleSheet(_NORMAL_STYLE)

        layout = QVBoxLayout()
        layout.setContentsMargins(0, 0, 0, 0)
        layout.addWidget(self._label)
        self.setLayout(layout)

        self._hide_timer: QTimer | None = None

    def _top_right(self) -> None:
        if QApplication is None:
            return
        screen = QApplication.primaryScreen()
        if screen is None:
            return
        geom = screen.availableGeometry()
        self.adjustSize()
        self.move(geom.x() + geom.width() - self.width() - 24, geom.y() + 40)

    def set_text(self, text: str) -> None:
        self._cancel_hide_timer()
        self._label.setText(text)
        self._top_right()
        self.show()

    def show_timer(self, elapsed_text: str) -> None:
        """Show the running recording clock, e.g. ``REC 00:01:05``."""
        self._label.setStyleSheet(_RECORDING_STYLE)
        self.set_text(f"● REC {elapsed_text}")

    def show_message(self, text: str, hide_after_ms: int = 1500) -> None:
        self._label.setStyleSheet(_NORMAL_STYLE)
        self.set_text(text)
        self.hide_with_delay(hide_after_ms)

    def show_error(self, text: str, hide_after_ms: int = 3000) -> None:
        self._label.setStyleSheet(_ERROR_STYLE)
        self.set_text(f"⚠ {text}")
        self.hide_with_delay(hide_after_ms)

    def hide_with_delay(self, delay_ms: int = 400) -> None:
        self._cancel_hide_timer()
        if QTimer is not None:
            self._hide_timer = QTimer()
            self._hide_timer.setSingleShot(True)
            self._hide_timer.timeout.connect(self.hide)
            self._hide_timer.start(delay_ms)

    def _cancel_hide_timer(self) -> None:
        if self._hide_timer is not None:
            self._hide_timer.stop()
            self._hide_timer = None
