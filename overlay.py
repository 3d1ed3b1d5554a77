"""Overlay panel showing the last answer and transient notices."""

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

OUTPUT_STYLE = (
    "color: white; font-size: 18px; padding: 16px;"
    "background: rgba(0,0,0,190); border-radius: 12px;"
)
NOTICE_STYLE = (
    "color: #FF6B6B; font-size: 18px; padding: 16px;"
    "background: rgba(0,0,0,210); border-radius: 12px;"
)
READY_TEXT = "Ready. Tap the output key to repeat, hold a key for a voice question."


class OverlayWindow(QWidget):
    def __init__(self) -> None:
        if Qt is None:
            raise RuntimeError("PySide6 is not installed")
        super().__init__()
        self.setWindowFlags(
            Qt.WindowStaysOnTopHint | Qt.FramelessWindowHint | Qt.Tool
        )
        self.setAttribute(Qt.WA_TranslucentBackground, True)
        self.setFixedWidth(600)

        self._label = QLabel(READY_TEXT)
        self._label.setWordWrap(True)
        self._label.setStyleSheet(OUTPUT_STYLE)

        layout = QVBoxLayout()
        layout.setContentsMargins(0, 0, 0, 0)
        layout.addWidget(self._label)
        self.setLayout(layout)

        self._output_text = READY_TEXT
        self._restore_timer: QTimer | None = None

    def _place_bottom(self) -> None:
        """Position the panel at the bottom center of the primary screen."""
        if QApplication is None:
            return
        screen = QApplication.primaryScreen()
        if screen is None:
            return
        geom = screen.availableGeometry()
        self.adjustSize()
        x = geom.x() + (geom.width() - self.width()) // 2
        y = geom.y() + geom.height() - self.height() - 40
        self.move(x, y)

    def set_text(self, text: str) -> None:
        """Replace the displayed answer."""
        self._cancel_restore_timer()
        self._output_text = text or READY_TEXT
        self._label.setStyleSheet(OUTPUT_STYLE)
        self._label.setText(self._output_text)
        self._place_bottom()
        self.show()

    def show_error(self, text: str, restore_after_ms: int = 3000) -> None:
        """Show a notice, then fall back to the last answer."""
        self._cancel_restore_timer()
        self._label.setStyleSheet(NOTICE_STYLE)
        self._label.setText(f"⚠️ {text}")
        self._place_bottom()
        self.show()
        if QTimer is not None:
            self._restore_timer = QTimer()
            self._restore_timer.setSingleShot(True)
            self._restore_timer.timeout.connect(lambda: self.set_text(self._output_text))
            self._restore_timer.start(restore_after_ms)

    def _cancel_restore_timer(self) -> None:
        if self._restore_timer is not None:
            self._restore_timer.stop()
            self._restore_timer = None
