"""Core data models for the app."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class RecordingState(str, Enum):
    IDLE = "IDLE"
    RECORDING = "RECORDING"
    UPLOADING = "UPLOADING"


class Surface(str, Enum):
    CAPTURE = "capture"
    OUTPUT = "output"


class GestureKind(str, Enum):
    TAP = "tap"
    LONG_PRESS_START = "long_press_start"
    LONG_PRESS_END = "long_press_end"
    REPEAT_PATTERN = "repeat_pattern"


class RecognitionKind(str, Enum):
    RESULT = "result"
    ERROR = "error"


class SpeechEventKind(str, Enum):
    STARTED = "started"
    DONE = "done"
    ERROR = "error"


@dataclass(frozen=True)
class Gesture:
    kind: GestureKind
    surface: Surface
    timestamp: float = 0.0


@dataclass
class CapturedImage:
    data: bytes
    mime_type: str = "image/jpeg"


@dataclass(frozen=True)
class InferenceRequest:
    prompt_text: str
    image: CapturedImage


@dataclass
class InferenceResult:
    text: str


@dataclass
class AudioFrame:
    pcm16_bytes: bytes
    sample_rate: int = 16000
    channels: int = 1
    timestamp_ms: int = 0


@dataclass
class RecognitionEvent:
    kind: RecognitionKind
    session_id: int
    alternatives: list[str] = field(default_factory=list)
    code: str = ""
    message: str = ""


@dataclass
class SpeechEvent:
    kind: SpeechEventKind
    utterance_id: int
    message: str = ""


@dataclass
class SpeechOptions:
    locale: str = "en-US"
    pitch: float = 1.0
    rate: float = 0.9


@dataclass
class TranscriptionResult:
    transcript_text: str = ""


class InteractionState:
    """Flags owned by the orchestrator.

    Fields are read-only from the outside; every change goes through one of
    the transition methods so the busy-flag invariant stays checkable.
    """

    def __init__(self) -> None:
        self._busy_inferring = False
        self._speaking = False
        self._listening = False
        self._recording = RecordingState.IDLE
        self._last_output_text = ""

    @property
    def busy_inferring(self) -> bool:
        return self._busy_inferring

    @property
    def speaking(self) -> bool:
        return self._speaking

    @property
    def listening(self) -> bool:
        return self._listening

    @property
    def recording(self) -> RecordingState:
        return self._recording

    @property
    def last_output_text(self) -> str:
        return self._last_output_text

    def begin_inference(self) -> bool:
        if self._busy_inferring:
            return False
        self._busy_inferring = True
        self._last_output_text = ""
        return True

    def finish_inference(self, text: str) -> None:
        self._last_output_text = text
        self._busy_inferring = False

    def set_output(self, text: str) -> None:
        self._last_output_text = text

    def set_speaking(self, value: bool) -> None:
        self._speaking = value

    def set_listening(self, value: bool) -> None:
        self._listening = value

    def move_recording(self, to_state: RecordingState) -> RecordingState:
        from_state = self._recording
        self._recording = to_state
        return from_state

    def snapshot(self) -> dict:
        return {
            "busy_inferring": self._busy_inferring,
            "speaking": self._speaking,
            "listening": self._listening,
            "recording": self._recording.value,
            "last_output_text": self._last_output_text,
        }
