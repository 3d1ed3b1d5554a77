"""Google Cloud Speech-to-Text backend for the relay."""

from __future__ import annotations

import logging
import threading
from typing import Any

from errors import UpstreamError
from relay_pipeline import TARGET_SAMPLE_RATE

try:
    from google.cloud import speech
except Exception:  # pragma: no cover
    speech = None  # type: ignore

logger = logging.getLogger(__name__)


class GoogleSpeechBackend:
    """Whole-utterance recognition of LINEAR16 audio.

    The client is created on first use so the relay can start (and answer
    liveness checks) before credentials are in place.  Credentials come from
    ``GOOGLE_APPLICATION_CREDENTIALS`` or the ambient cloud environment.
    """

    def __init__(
        self,
        language_code: str = "en-US",
        client: Any = None,
        timeout_s: float = 30.0,
    ) -> None:
        self._language_code = language_code
        self._client = client
        self._timeout_s = timeout_s
        self._lock = threading.Lock()

    def recognize(self, wav_bytes: bytes) -> list[list[str]]:
        if speech is None:
            raise UpstreamError("google-cloud-speech is not installed")
        config = speech.RecognitionConfig(
            encoding=speech.RecognitionConfig.AudioEncoding.LINEAR16,
            sample_rate_hertz=TARGET_SAMPLE_RATE,
            language_code=self._language_code,
            enable_automatic_punctuation=True,
        )
        audio = speech.RecognitionAudio(content=wav_bytes)
        try:
            client = self._get_client()
            response = client.recognize(config=config, audio=audio, timeout=self._timeout_s)
        except Exception as exc:
            raise UpstreamError(str(exc) or exc.__class__.__name__) from exc
        return [
            [alternative.transcript for alternative in result.alternatives]
            for result in (response.results or [])
        ]

    def _get_client(self) -> Any:
        with self._lock:
            if self._client is None:
                self._client = speech.SpeechClient()
                logger.info("Google Speech client created (%s)", self._language_code)
            return self._client

