"""Live speech recognition using the microphone and DashScope qwen3-asr-flash.

A session listens until the speaker goes quiet (energy-based end of
utterance), converts the captured PCM to WAV and streams it through the
model.  The last hypothesis is delivered as a single RESULT event tagged
with the session id; any failure is delivered as an ERROR event instead.
"""

from __future__ import annotations

import base64
import io
import logging
import os
import threading
import wave
from queue import Empty, Queue
from typing import Callable, Optional

from errors import AUTH_FAILED, RECOGNITION_FAILED, UPSTREAM_ERROR
from interfaces import AudioStream
from models import AudioFrame, RecognitionEvent, RecognitionKind
import recorder
from recorder import SoundDeviceStream

try:
    import numpy as np
except Exception:  # pragma: no cover
    np = None  # type: ignore

try:
    import dashscope
except Exception:  # pragma: no cover
    dashscope = None  # type: ignore

logger = logging.getLogger(__name__)


def _pcm_to_wav_base64(
    pcm: bytes,
    sample_rate: int = 16000,
    channels: int = 1,
    sample_width: int = 2,
) -> str:
    """Convert raw PCM bytes to a base64-encoded WAV string."""
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(sample_width)
        wf.setframerate(sample_rate)
        wf.writeframes(pcm)
    return base64.b64encode(buf.getvalue()).decode("ascii")


def _frame_rms(pcm16: bytes) -> float:
    if np is None or not pcm16:
        return 0.0
    samples = np.frombuffer(pcm16, dtype=np.int16).astype(np.float64)
    if samples.size == 0:
        return 0.0
    return float(np.sqrt(np.mean(samples * samples)))


class DashscopeLiveRecognizer:
    def __init__(
        self,
        api_key: str,
        stream: AudioStream | None = None,
        model: str = "qwen3-asr-flash",
        request_timeout_s: float = 10.0,
        silence_threshold: float = 500.0,
        silence_s: float = 1.5,
        max_record_s: float = 15.0,
    ) -> None:
        self._api_key = api_key
        self._stream = stream or SoundDeviceStream()
        self._model = model
        self._request_timeout_s = request_timeout_s
        self._silence_threshold = silence_threshold
        self._silence_s = silence_s
        self._max_record_s = max_record_s
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._lock = threading.Lock()
        self._on_event: Optional[Callable[[RecognitionEvent], None]] = None

    def is_available(self) -> bool:
        return dashscope is not None and np is not None and recorder.sd is not None

    def subscribe(self, on_event: Callable[[RecognitionEvent], None]) -> None:
        self._on_event = on_event

    def start(self, locale: str, session_id: int) -> None:
        # a previous session may still be finishing its request; retire it
        # and give this session its own stop event and worker
        with self._lock:
            self._stop_event.set()
            self._stream.stop()
            stop_event = threading.Event()
            self._stop_event = stop_event
            audio_queue: Queue[AudioFrame | None] = Queue(maxsize=int(self._max_record_s * 20))
            self._stream.start(audio_queue)
            self._thread = threading.Thread(
                target=self._worker,
                args=(audio_queue, locale, session_id, stop_event),
                daemon=True,
            )
            self._thread.start()
        logger.info("Live recognition session %d started (%s)", session_id, locale)

    def stop(self) -> None:
        with self._lock:
            self._stop_event.set()
            self._stream.stop()
            thread = self._thread
        if thread and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=0.5)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _worker(
        self,
        audio_queue: Queue[AudioFrame | None],
        locale: str,
        session_id: int,
        stop_event: threading.Event,
    ) -> None:
        pcm, sample_rate, channels = self._collect_utterance(audio_queue, stop_event)
        with self._lock:
            if stop_event.is_set():
                return
            self._stream.stop()
        if not pcm:
            self._emit(RecognitionEvent(kind=RecognitionKind.RESULT, session_id=session_id))
            return
        wav_b64 = _pcm_to_wav_base64(pcm, sample_rate, channels)
        self._recognize(wav_b64, locale, session_id, stop_event)

    def _collect_utterance(
        self, audio_queue: Queue[AudioFrame | None], stop_event: threading.Event
    ) -> tuple[bytes, int, int]:
        """Consume frames until silence follows speech, the cap is hit, or the stream ends."""
        pcm = bytearray()
        sample_rate = self._stream.sample_rate
        channels = self._stream.channels
        heard_speech = False
        silent_ms = 0.0
        total_ms = 0.0

        while not stop_event.is_set():
            try:
                frame = audio_queue.get(timeout=0.2)
            except Empty:
                continue
            if frame is None:
                break
            pcm.extend(frame.pcm16_bytes)
            sample_rate = frame.sample_rate
            channels = frame.channels
            frame_ms = len(frame.pcm16_bytes) / 2 / max(1, channels) / sample_rate * 1000.0
            total_ms += frame_ms

            if _frame_rms(frame.pcm16_bytes) < self._silence_threshold:
                silent_ms += frame_ms
            else:
                heard_speech = True
                silent_ms = 0.0

            if heard_speech and silent_ms >= self._silence_s * 1000.0:
                break
            if total_ms >= self._max_record_s * 1000.0:
                break

        if not heard_speech:
            return b"", sample_rate, channels
        return bytes(pcm), sample_rate, channels

    def _recognize(
        self, wav_base64: str, locale: str, session_id: int, stop_event: threading.Event
    ) -> None:
        if dashscope is None:
            self._emit_error(session_id, RECOGNITION_FAILED, "dashscope is not installed")
            return

        api_key = self._api_key or os.getenv("DASHSCOPE_API_KEY", "")
        if not api_key:
            self._emit_error(session_id, AUTH_FAILED, "No API key configured")
            return

        language = locale.split("-")[0].lower() if locale else ""
        asr_options: dict = {"enable_itn": False}
        if language:
            asr_options["language"] = language

        latest_text = ""
        try:
            response = dashscope.MultiModalConversation.call(
                api_key=api_key,
                model=self._model,
                messages=[
                    {"role": "system", "content": [{"text": ""}]},
                    {"role": "user", "content": [{"audio": wav_base64}]},
                ],
                result_format="message",
                asr_options=asr_options,
                stream=True,
                timeout=self._request_timeout_s,
            )
            for chunk in response:
                if stop_event.is_set():
                    return
                text = self._extract_text(chunk)
                if text:
                    latest_text = text
        except Exception as exc:
            logger.warning("Live recognition failed: %s", exc)
            self._emit_error(session_id, self._error_code(exc), str(exc))
            return

        alternatives = [latest_text] if latest_text.strip() else []
        self._emit(
            RecognitionEvent(
                kind=RecognitionKind.RESULT,
                session_id=session_id,
                alternatives=alternatives,
            )
        )

    def _extract_text(self, chunk: object) -> str:
        """Pull text from a dashscope streaming chunk dict."""
        if isinstance(chunk, dict):
            output = chunk.get("output", {})
            choices = output.get("choices", [])
            if not choices:
                return ""
            message = choices[0].get("message", {})
            content = message.get("content", [])
            if not content:
                return ""
            value = content[0]
            if isinstance(value, dict):
                return str(value.get("text", ""))
        return ""

    def _error_code(self, exc: Exception) -> str:
        low = str(exc).lower()
        if "401" in low or "auth" in low or "api key" in low:
            return AUTH_FAILED
        if "timeout" in low or "network" in low or "connection" in low:
            return UPSTREAM_ERROR
        return RECOGNITION_FAILED

    def _emit_error(self, session_id: int, code: str, message: str) -> None:
        self._emit(
            RecognitionEvent(
                kind=RecognitionKind.ERROR,
                session_id=session_id,
                code=code,
                message=message,
            )
        )

    def _emit(self, event: RecognitionEvent) -> None:
        if self._on_event is not None:
            self._on_event(event)
