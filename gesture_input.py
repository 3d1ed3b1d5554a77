"""Global keyboard gesture input based on pynput."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

from errors import CapabilityUnavailable
from gestures import GestureClassifier
from models import Gesture, Surface

try:
    from pynput import keyboard
except Exception:  # pragma: no cover
    keyboard = None  # type: ignore

logger = logging.getLogger(__name__)

GestureCallback = Callable[[Gesture], None]


class KeyboardGestureInput:
    """Maps one key per surface onto the gesture classifier."""

    def __init__(
        self,
        capture_key: str = "Key.f8",
        output_key: str = "Key.f9",
        classifier: GestureClassifier | None = None,
        poll_interval_s: float = 0.05,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._surfaces = {capture_key: Surface.CAPTURE, output_key: Surface.OUTPUT}
        self._classifier = classifier or GestureClassifier()
        self._poll_interval_s = poll_interval_s
        self._clock = clock
        self._lock = threading.Lock()
        self._listener: Optional[object] = None
        self._poller: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._on_gesture: Optional[GestureCallback] = None

    def start(self, on_gesture: GestureCallback) -> None:
        if keyboard is None:
            raise CapabilityUnavailable("pynput is not installed")
        self._on_gesture = on_gesture
        self._stop_event.clear()
        self._listener = keyboard.Listener(on_press=self.handle_press, on_release=self.handle_release)
        self._listener.start()
        self._poller = threading.Thread(target=self._poll_loop, daemon=True)
        self._poller.start()
        logger.info("Gesture input started: %s", ", ".join(f"{k}={s.value}" for k, s in self._surfaces.items()))

    def stop(self) -> None:
        self._stop_event.set()
        listener = self._listener
        if listener is not None:
            listener.stop()
            self._listener = None
        if self._poller is not None and self._poller.is_alive():
            self._poller.join(timeout=0.5)
        self._poller = None

    def handle_press(self, key: object) -> None:
        surface = self._surfaces.get(str(key))
        if surface is None:
            return
        with self._lock:
            gestures = self._classifier.press(surface, self._clock())
        self._deliver(gestures)

    def handle_release(self, key: object) -> None:
        surface = self._surfaces.get(str(key))
        if surface is None:
            return
        with self._lock:
            gestures = self._classifier.release(surface, self._clock())
        self._deliver(gestures)

    def poll(self) -> None:
        with self._lock:
            gestures = self._classifier.poll(self._clock())
        self._deliver(gestures)

    def _poll_loop(self) -> None:
        while not self._stop_event.wait(self._poll_interval_s):
            self.poll()

    def _deliver(self, gestures: list[Gesture]) -> None:
        if self._on_gesture is None:
            return
        for gesture in gestures:
            try:
                self._on_gesture(gesture)
            except Exception:
                logger.exception("Gesture handler failed for %s", gesture)
