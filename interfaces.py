"""Protocol interfaces used by InteractionOrchestrator and the relay pipeline."""

from __future__ import annotations

from pathlib import Path
from queue import Queue
from typing import Callable, Optional, Protocol, Sequence

from models import (
    AudioFrame,
    CapturedImage,
    InferenceRequest,
    InferenceResult,
    RecognitionEvent,
    SpeechEvent,
    SpeechOptions,
)


class CaptureService(Protocol):
    def capture_still(self) -> CapturedImage: ...


class VisionClient(Protocol):
    def is_configured(self) -> bool: ...

    def generate(self, request: InferenceRequest) -> InferenceResult: ...


class SpeechOutput(Protocol):
    def subscribe(self, on_event: Callable[[SpeechEvent], None]) -> None: ...

    def speak(self, text: str, options: SpeechOptions, utterance_id: int) -> None: ...

    def stop(self) -> None: ...


class LiveRecognizer(Protocol):
    def is_available(self) -> bool: ...

    def subscribe(self, on_event: Callable[[RecognitionEvent], None]) -> None: ...

    def start(self, locale: str, session_id: int) -> None: ...

    def stop(self) -> None: ...


class AudioStream(Protocol):
    sample_rate: int
    channels: int
    chunk_ms: int

    def start(self, audio_queue: Queue[AudioFrame | None]) -> None: ...

    def stop(self) -> None: ...


class AudioRecorder(Protocol):
    def start(self) -> None: ...

    def stop(self) -> Optional[Path]: ...


class TranscriptionClient(Protocol):
    def is_configured(self) -> bool: ...

    def transcribe(self, audio_path: Path) -> str: ...


class Transcoder(Protocol):
    def to_pcm_wav(self, source: Path, target: Path) -> None: ...


class SpeechBackend(Protocol):
    def recognize(self, wav_bytes: bytes) -> Sequence[Sequence[str]]: ...


class ConfigStore(Protocol):
    def get_vision_api_key(self) -> str: ...

    def set_vision_api_key(self, key: str) -> None: ...

    def get_vision_model(self) -> str: ...

    def get_vision_endpoint(self) -> str: ...

    def get_relay_url(self) -> str: ...

    def set_relay_url(self, url: str) -> None: ...

    def get_dashscope_api_key(self) -> str: ...

    def get_locale(self) -> str: ...

    def get_speech_rate(self) -> float: ...

    def get_speech_pitch(self) -> float: ...

    def get_capture_key(self) -> str: ...

    def get_output_key(self) -> str: ...
