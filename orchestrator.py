"""State-machine based orchestration of capture, inference, speech and voice input."""

from __future__ import annotations

import itertools
import logging
import threading
from pathlib import Path
from typing import Callable, Optional

from errors import (
    CAPABILITY_UNAVAILABLE,
    CONFIGURATION_MISSING,
    ERROR_MESSAGES,
    NOTHING_UNDERSTOOD,
    RECOGNITION_FAILED,
    RECORDING_FAILED,
    RELAY_URL_MISSING_MESSAGE,
    UPSTREAM_ERROR,
    VISION_KEY_MISSING_MESSAGE,
)
from interfaces import (
    AudioRecorder,
    CaptureService,
    LiveRecognizer,
    SpeechOutput,
    TranscriptionClient,
    VisionClient,
)
from models import (
    Gesture,
    GestureKind,
    InferenceRequest,
    InferenceResult,
    InteractionState,
    RecognitionEvent,
    RecognitionKind,
    RecordingState,
    SpeechEvent,
    SpeechEventKind,
    SpeechOptions,
    Surface,
)

logger = logging.getLogger(__name__)

DESCRIBE_PROMPT = "Describe this scene in a concise paragraph."
USAGE_MESSAGE = (
    "Welcome to Vision Assist. Tap the capture key to describe what the camera sees. "
    "Hold either key to ask a question with your voice, and release to send it. "
    "Tap the output key to hear the last response again, or to stop speaking. "
    "Triple tap the output key to ask a question with live speech recognition."
)

OutputCallback = Callable[[str], None]
NoticeCallback = Callable[[str, str], None]
StateCallback = Callable[[dict], None]
Runner = Callable[[Callable[[], None]], None]


def _spawn(fn: Callable[[], None]) -> None:
    threading.Thread(target=fn, daemon=True).start()


class InteractionOrchestrator:
    def __init__(
        self,
        camera: CaptureService,
        vision: VisionClient,
        speech: SpeechOutput,
        recognizer: LiveRecognizer,
        recorder: AudioRecorder,
        transcriber: TranscriptionClient,
        speech_options: SpeechOptions | None = None,
        run_in_background: Runner = _spawn,
        on_output: Optional[OutputCallback] = None,
        on_notice: Optional[NoticeCallback] = None,
        on_state_change: Optional[StateCallback] = None,
    ) -> None:
        self._camera = camera
        self._vision = vision
        self._speech = speech
        self._recognizer = recognizer
        self._recorder = recorder
        self._transcriber = transcriber
        self._speech_options = speech_options or SpeechOptions()
        self._run = run_in_background
        self._on_output = on_output
        self._on_notice = on_notice
        self._on_state_change = on_state_change

        self._lock = threading.RLock()
        self._state = InteractionState()
        self._utterance_ids = itertools.count(1)
        self._listen_ids = itertools.count(1)
        self._utterance_id = 0
        self._listen_session_id = 0

        self._live_available = self._probe_live_recognition()
        self._speech.subscribe(self._handle_speech_event)
        self._recognizer.subscribe(self._handle_recognition_event)

    @property
    def state(self) -> InteractionState:
        return self._state

    @property
    def live_recognition_available(self) -> bool:
        return self._live_available

    def dispatch(self, gesture: Gesture) -> None:
        kind, surface = gesture.kind, gesture.surface
        logger.debug("Gesture %s on %s", kind.value, surface.value)
        if kind == GestureKind.TAP and surface == Surface.CAPTURE:
            self.describe()
        elif kind == GestureKind.TAP and surface == Surface.OUTPUT:
            self.toggle_replay()
        elif kind == GestureKind.LONG_PRESS_START:
            self.start_recording()
        elif kind == GestureKind.LONG_PRESS_END:
            self.finish_recording()
        elif kind == GestureKind.REPEAT_PATTERN and surface == Surface.OUTPUT:
            if self._state.listening:
                self.stop_listening()
            else:
                self.start_listening()

    def announce_usage(self) -> None:
        self._speak(USAGE_MESSAGE)

    def replace_vision(self, vision: VisionClient) -> None:
        """Swap the vision client; an inference already in flight finishes on the old one."""
        with self._lock:
            self._vision = vision

    def replace_transcriber(self, transcriber: TranscriptionClient) -> None:
        with self._lock:
            self._transcriber = transcriber

    # ------------------------------------------------------------------
    # Intents
    # ------------------------------------------------------------------

    def describe(self) -> bool:
        return self._submit_intent(DESCRIBE_PROMPT)

    def ask(self, question: str) -> bool:
        question = (question or "").strip()
        if not question:
            return False
        return self._submit_intent(question)

    def _submit_intent(self, prompt: str) -> bool:
        with self._lock:
            if self._state.busy_inferring:
                logger.info("Inference already in flight; intent dropped")
                return False
            vision = self._vision
            if not vision.is_configured():
                self._state.set_output(VISION_KEY_MISSING_MESSAGE)
                configured = False
            else:
                self._state.begin_inference()
                configured = True
            self._state_changed()

        if not configured:
            self._emit_output(VISION_KEY_MISSING_MESSAGE)
            self._speak(VISION_KEY_MISSING_MESSAGE)
            return False

        self._emit_output("")
        self._run(lambda: self._execute_intent(vision, prompt))
        return True

    def _execute_intent(self, vision: VisionClient, prompt: str) -> None:
        result = InferenceResult(text="")
        try:
            image = self._camera.capture_still()
            result = vision.generate(InferenceRequest(prompt_text=prompt, image=image))
        except Exception as exc:
            logger.warning("Intent failed: %s", exc)
            result = InferenceResult(text=str(exc) or exc.__class__.__name__)
        finally:
            with self._lock:
                self._state.finish_inference(result.text)
                self._state_changed()
            self._emit_output(result.text)
            self._speak(result.text)

    # ------------------------------------------------------------------
    # Speech output
    # ------------------------------------------------------------------

    def toggle_replay(self) -> None:
        with self._lock:
            if self._state.speaking or self._utterance_id:
                self.stop_speaking()
                return
            if self._state.busy_inferring or not self._state.last_output_text:
                return
            text = self._state.last_output_text
        self._speak(text)

    def stop_speaking(self) -> None:
        with self._lock:
            if not self._state.speaking and not self._utterance_id:
                return
            self._utterance_id = 0
            self._state.set_speaking(False)
            self._state_changed()
        self._safe_stop_speech()

    def _speak(self, text: str) -> None:
        if not text:
            return
        with self._lock:
            if self._state.speaking or self._utterance_id:
                self._state.set_speaking(False)
                self._safe_stop_speech()
            utterance_id = next(self._utterance_ids)
            self._utterance_id = utterance_id
        try:
            self._speech.speak(text, self._speech_options, utterance_id)
        except Exception as exc:
            logger.error("Speech output failed: %s", exc)
            self._handle_speech_event(SpeechEvent(SpeechEventKind.ERROR, utterance_id, str(exc)))

    def _handle_speech_event(self, event: SpeechEvent) -> None:
        with self._lock:
            if event.utterance_id != self._utterance_id:
                return
            if event.kind == SpeechEventKind.STARTED:
                self._state.set_speaking(True)
            else:
                if event.kind == SpeechEventKind.ERROR:
                    logger.warning("Speech error: %s", event.message)
                self._state.set_speaking(False)
                self._utterance_id = 0
            self._state_changed()

    # ------------------------------------------------------------------
    # Live recognition
    # ------------------------------------------------------------------

    def start_listening(self) -> bool:
        if not self._live_available:
            self._notify(CAPABILITY_UNAVAILABLE, ERROR_MESSAGES[CAPABILITY_UNAVAILABLE])
            return False
        self.stop_speaking()
        with self._lock:
            if self._state.listening:
                return False
            session_id = next(self._listen_ids)
            self._listen_session_id = session_id
            self._state.set_listening(True)
            self._state_changed()
            try:
                self._recognizer.start(self._speech_options.locale, session_id)
            except Exception as exc:
                logger.error("Could not start voice recognition: %s", exc)
                self._listen_session_id = 0
                self._state.set_listening(False)
                self._state_changed()
                failed = True
            else:
                failed = False
        if failed:
            self._notify(RECOGNITION_FAILED, "Could not start voice recognition.")
            return False
        return True

    def stop_listening(self) -> None:
        with self._lock:
            if not self._state.listening:
                return
            self._listen_session_id = 0
            self._state.set_listening(False)
            self._state_changed()
        try:
            self._recognizer.stop()
        except Exception as exc:
            logger.warning("Error stopping voice recognition: %s", exc)

    def _handle_recognition_event(self, event: RecognitionEvent) -> None:
        with self._lock:
            if event.session_id != self._listen_session_id:
                return
            self._listen_session_id = 0
            self._state.set_listening(False)
            self._state_changed()

        if event.kind == RecognitionKind.ERROR:
            logger.warning("Speech recognition error %s: %s", event.code, event.message)
            self._notify(RECOGNITION_FAILED, ERROR_MESSAGES[RECOGNITION_FAILED])
            return
        spoken = next((text.strip() for text in event.alternatives if text and text.strip()), "")
        if not spoken:
            self._notify(NOTHING_UNDERSTOOD, "Could not understand the question.")
            return
        self.ask(spoken)

    # ------------------------------------------------------------------
    # Audio capture session: IDLE -> RECORDING -> UPLOADING -> IDLE
    # ------------------------------------------------------------------

    def start_recording(self) -> bool:
        with self._lock:
            if self._state.recording != RecordingState.IDLE:
                return False
            try:
                self._recorder.start()
            except Exception as exc:
                logger.error("Failed to start recording: %s", exc)
                failed = True
            else:
                self._transition_recording(RecordingState.RECORDING)
                failed = False
        if failed:
            self._notify(RECORDING_FAILED, ERROR_MESSAGES[RECORDING_FAILED])
            return False
        self.stop_speaking()
        return True

    def finish_recording(self) -> bool:
        with self._lock:
            if self._state.recording != RecordingState.RECORDING:
                return False
            self._transition_recording(RecordingState.UPLOADING)
        self._run(self._upload_recording)
        return True

    def cancel_recording(self) -> None:
        with self._lock:
            if self._state.recording != RecordingState.RECORDING:
                return
            self._transition_recording(RecordingState.IDLE)
        try:
            path = self._recorder.stop()
        except Exception as exc:
            logger.warning("Error stopping recording: %s", exc)
            return
        self._discard_recording(path)

    def _upload_recording(self) -> None:
        path: Optional[Path] = None
        transcript = ""
        try:
            try:
                path = self._recorder.stop()
            except Exception as exc:
                logger.error("Failed to finalize recording: %s", exc)
                self._notify(RECORDING_FAILED, f"Recording error: {exc}")
                return
            if not path:
                logger.info("Recording produced no file; nothing to upload")
                return
            with self._lock:
                transcriber = self._transcriber
            if not transcriber.is_configured():
                self._notify(CONFIGURATION_MISSING, RELAY_URL_MISSING_MESSAGE)
                return
            try:
                transcript = transcriber.transcribe(path).strip()
            except Exception as exc:
                logger.error("Transcription failed: %s", exc)
                self._notify(UPSTREAM_ERROR, f"Transcription failed: {exc}")
                return
            if not transcript:
                self._notify(NOTHING_UNDERSTOOD, ERROR_MESSAGES[NOTHING_UNDERSTOOD])
                return
            self.ask(transcript)
        finally:
            self._discard_recording(path)
            with self._lock:
                self._transition_recording(RecordingState.IDLE)

    def _discard_recording(self, path: Optional[Path]) -> None:
        if not path:
            return
        try:
            Path(path).unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Could not delete recording %s: %s", path, exc)

    def _transition_recording(self, to_state: RecordingState) -> None:
        from_state = self._state.move_recording(to_state)
        if from_state != to_state:
            logger.info("Recording: %s -> %s", from_state.value, to_state.value)
            self._state_changed()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _probe_live_recognition(self) -> bool:
        try:
            available = bool(self._recognizer.is_available())
        except Exception as exc:
            logger.warning("Live recognition probe failed: %s", exc)
            available = False
        if not available:
            logger.warning("Live speech recognition is unavailable in this build")
        return available

    def _notify(self, code: str, message: str) -> None:
        logger.info("Notice %s: %s", code, message)
        if self._on_notice:
            self._on_notice(code, message)
        self._speak(message)

    def _emit_output(self, text: str) -> None:
        if self._on_output:
            self._on_output(text)

    def _state_changed(self) -> None:
        if self._on_state_change:
            self._on_state_change(self._state.snapshot())

    def _safe_stop_speech(self) -> None:
        try:
            self._speech.stop()
        except Exception as exc:
            logger.warning("Error stopping speech: %s", exc)
