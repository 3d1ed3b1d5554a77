"""Application entrypoint."""

from __future__ import annotations

import logging
import sys

from camera import OpenCVCaptureService
from config import JsonConfigStore
from interfaces import ConfigStore
from gesture_input import KeyboardGestureInput
from live_recognizer import DashscopeLiveRecognizer
from models import RecordingState, SpeechOptions
from orchestrator import InteractionOrchestrator
from overlay import OverlayWindow
from recorder import WavFileRecorder
from speech_output import Pyttsx3SpeechOutput
from transcription_client import RelayTranscriptionClient
from vision_client import GeminiVisionClient

try:
    from PySide6.QtCore import QObject, Signal, QSize
    from PySide6.QtGui import QAction, QIcon, QPixmap, QPainter, QColor, QBrush
    from PySide6.QtWidgets import QApplication, QInputDialog, QMenu, QMessageBox, QSystemTrayIcon
except Exception as exc:  # pragma: no cover
    raise SystemExit(f"PySide6 is required to run the desktop app: {exc}")

logger = logging.getLogger(__name__)


def _create_icon(color: str = "#888888", size: int = 22) -> QIcon:
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


ICON_IDLE = "#888888"       # grey
ICON_BUSY = "#4F46E5"       # indigo
ICON_RECORDING = "#FF4444"  # red
ICON_SPEAKING = "#22AA55"   # green


class UIBridge(QObject):
    output_signal = Signal(str)
    notice_signal = Signal(str)
    state_signal = Signal(dict)


class App:
    def __init__(self) -> None:
        self.app = QApplication(sys.argv)
        self.app.setQuitOnLastWindowClosed(False)
        self.config_store: ConfigStore = JsonConfigStore()
        self.overlay = OverlayWindow()
        self.ui = UIBridge()
        self.ui.output_signal.connect(self._on_output_ui)
        self.ui.notice_signal.connect(self._on_notice_ui)
        self.ui.state_signal.connect(self._on_state_change_ui)

        self.camera = OpenCVCaptureService()
        self.speech = Pyttsx3SpeechOutput()
        self.controller = self._build_controller()
        self.gestures = KeyboardGestureInput(
            capture_key=self.config_store.get_capture_key(),
            output_key=self.config_store.get_output_key(),
        )

        self.tray = QSystemTrayIcon()
        self.tray.setIcon(_create_icon(ICON_IDLE))
        self.tray.setToolTip("Vision Assist — Ready")
        self._setup_menu()
        self.tray.show()

    def _build_controller(self) -> InteractionOrchestrator:
        store = self.config_store
        return InteractionOrchestrator(
            camera=self.camera,
            vision=self._build_vision(),
            speech=self.speech,
            recognizer=DashscopeLiveRecognizer(api_key=store.get_dashscope_api_key()),
            recorder=WavFileRecorder(),
            transcriber=RelayTranscriptionClient(store.get_relay_url()),
            speech_options=SpeechOptions(
                locale=store.get_locale(),
                pitch=store.get_speech_pitch(),
                rate=store.get_speech_rate(),
            ),
            on_output=self._on_output,
            on_notice=self._on_notice,
            on_state_change=self._on_state_change,
        )

    def _build_vision(self) -> GeminiVisionClient:
        store = self.config_store
        return GeminiVisionClient(
            api_key=store.get_vision_api_key(),
            model=store.get_vision_model(),
            endpoint=store.get_vision_endpoint(),
        )

    def _setup_menu(self) -> None:
        menu = QMenu()

        api_action = QAction("Set Gemini API Key", menu)
        api_action.triggered.connect(self._set_api_key)
        menu.addAction(api_action)

        relay_action = QAction("Set STT Server URL", menu)
        relay_action.triggered.connect(self._set_relay_url)
        menu.addAction(relay_action)

        menu.addSeparator()
        quit_action = QAction("Quit", menu)
        quit_action.triggered.connect(self.quit)
        menu.addAction(quit_action)

        self.tray.setContextMenu(menu)

    def _set_api_key(self) -> None:
        value, ok = QInputDialog.getText(None, "API Key", "Gemini API Key")
        if not ok:
            return
        self.config_store.set_vision_api_key(value)
        # Hot-swap vision client with new key
        self.controller.replace_vision(self._build_vision())
        QMessageBox.information(None, "Saved", "API Key saved and applied.")

    def _set_relay_url(self) -> None:
        value, ok = QInputDialog.getText(None, "STT Server", "Transcription server URL")
        if not ok:
            return
        self.config_store.set_relay_url(value)
        self.controller.replace_transcriber(RelayTranscriptionClient(self.config_store.get_relay_url()))
        QMessageBox.information(None, "Saved", "STT server saved and applied.")

    # ------------------------------------------------------------------
    # Callbacks (called from worker threads → emit signals for UI thread)
    # ------------------------------------------------------------------

    def _on_output(self, text: str) -> None:
        self.ui.output_signal.emit(text)

    def _on_notice(self, code: str, message: str) -> None:
        self.ui.notice_signal.emit(message)

    def _on_state_change(self, snapshot: dict) -> None:
        self.ui.state_signal.emit(snapshot)

    # ------------------------------------------------------------------
    # UI thread handlers (safe for Qt)
    # ------------------------------------------------------------------

    def _on_output_ui(self, text: str) -> None:
        self.overlay.set_text(text or "Thinking…")

    def _on_notice_ui(self, msg: str) -> None:
        self.overlay.show_error(msg)

    def _on_state_change_ui(self, snapshot: dict) -> None:
        if snapshot["recording"] == RecordingState.RECORDING.value:
            self.tray.setIcon(_create_icon(ICON_RECORDING))
            self.tray.setToolTip("Vision Assist — Recording...")
        elif snapshot["listening"]:
            self.tray.setIcon(_create_icon(ICON_RECORDING))
            self.tray.setToolTip("Vision Assist — Listening...")
        elif snapshot["busy_inferring"] or snapshot["recording"] == RecordingState.UPLOADING.value:
            self.tray.setIcon(_create_icon(ICON_BUSY))
            self.tray.setToolTip("Vision Assist — Thinking...")
        elif snapshot["speaking"]:
            self.tray.setIcon(_create_icon(ICON_SPEAKING))
            self.tray.setToolTip("Vision Assist — Speaking")
        else:
            self.tray.setIcon(_create_icon(ICON_IDLE))
            self.tray.setToolTip("Vision Assist — Ready")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def run(self) -> int:
        try:
            self.gestures.start(on_gesture=lambda gesture: self.controller.dispatch(gesture))
        except Exception as exc:
            logger.error("Gesture input disabled: %s", exc)
            self.overlay.show_error(f"Gesture input disabled: {exc}")
        self.controller.announce_usage()
        return self.app.exec()

    def quit(self) -> None:
        self.gestures.stop()
        self.controller.stop_listening()
        self.controller.cancel_recording()
        self.speech.close()
        self.camera.close()
        self.app.quit()


def main() -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    app = App()
    return app.run()


if __name__ == "__main__":
    raise SystemExit(main())
