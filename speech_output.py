"""Text-to-speech output backed by pyttsx3.

pyttsx3's ``runAndWait`` blocks, so utterances are played on one worker
thread fed by a queue.  Lifecycle events are reported through the single
subscriber registered with ``subscribe``.
"""

from __future__ import annotations

import logging
import threading
from queue import Queue
from typing import Any, Callable, Optional

from models import SpeechEvent, SpeechEventKind, SpeechOptions

try:
    import pyttsx3
except Exception:  # pragma: no cover
    pyttsx3 = None  # type: ignore

logger = logging.getLogger(__name__)

BASE_WORDS_PER_MINUTE = 200


class Pyttsx3SpeechOutput:
    def __init__(self) -> None:
        self._engine: Any = None
        self._queue: Queue[tuple[str, SpeechOptions, int] | None] = Queue()
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()
        self._on_event: Optional[Callable[[SpeechEvent], None]] = None
        self._current_id: Optional[int] = None

    def subscribe(self, on_event: Callable[[SpeechEvent], None]) -> None:
        self._on_event = on_event

    def speak(self, text: str, options: SpeechOptions, utterance_id: int) -> None:
        if pyttsx3 is None:
            self._emit(SpeechEvent(SpeechEventKind.ERROR, utterance_id, "pyttsx3 is not installed"))
            return
        self._queue.put((text, options, utterance_id))
        self._ensure_worker()

    def stop(self) -> None:
        dropped: list[int] = []
        with self._lock:
            while not self._queue.empty():
                item = self._queue.get_nowait()
                if item is not None:
                    dropped.append(item[2])
            engine = self._engine if self._current_id is not None else None
        for utterance_id in dropped:
            self._emit(SpeechEvent(SpeechEventKind.DONE, utterance_id))
        if engine is not None:
            try:
                engine.stop()
            except Exception as exc:
                logger.warning("Error stopping speech engine: %s", exc)

    def close(self) -> None:
        self.stop()
        if self._thread and self._thread.is_alive():
            self._queue.put(None)
            self._thread.join(timeout=1.0)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _ensure_worker(self) -> None:
        with self._lock:
            if self._thread and self._thread.is_alive():
                return
            self._thread = threading.Thread(target=self._worker, daemon=True)
            self._thread.start()

    def _worker(self) -> None:
        try:
            self._engine = pyttsx3.init()
        except Exception as exc:
            logger.error("Failed to initialize pyttsx3: %s", exc)
            self._drain_with_error(str(exc))
            return

        while True:
            item = self._queue.get()
            if item is None:
                break
            text, options, utterance_id = item
            with self._lock:
                self._current_id = utterance_id
            self._emit(SpeechEvent(SpeechEventKind.STARTED, utterance_id))
            try:
                self._apply_options(options)
                self._engine.say(text)
                self._engine.runAndWait()
            except Exception as exc:
                logger.error("Speech playback failed: %s", exc)
                self._emit(SpeechEvent(SpeechEventKind.ERROR, utterance_id, str(exc)))
            else:
                self._emit(SpeechEvent(SpeechEventKind.DONE, utterance_id))
            finally:
                with self._lock:
                    self._current_id = None

    def _apply_options(self, options: SpeechOptions) -> None:
        self._engine.setProperty("rate", int(BASE_WORDS_PER_MINUTE * options.rate))
        # pyttsx3 exposes no portable pitch control; options.pitch is not applied
        voice_id = self._voice_for_locale(options.locale)
        if voice_id:
            self._engine.setProperty("voice", voice_id)

    def _voice_for_locale(self, locale: str) -> str:
        wanted = locale.replace("-", "_").lower()
        short = wanted.split("_")[0]
        for voice in self._engine.getProperty("voices") or []:
            languages = [
                lang.decode("utf-8", "ignore") if isinstance(lang, bytes) else str(lang)
                for lang in getattr(voice, "languages", []) or []
            ]
            normalized = [lang.strip("\x05").replace("-", "_").lower() for lang in languages]
            if wanted in normalized or short in normalized:
                return voice.id
        return ""

    def _drain_with_error(self, message: str) -> None:
        while not self._queue.empty():
            item = self._queue.get_nowait()
            if item is not None:
                self._emit(SpeechEvent(SpeechEventKind.ERROR, item[2], message))

    def _emit(self, event: SpeechEvent) -> None:
        if self._on_event is not None:
            self._on_event(event)
