"""Microphone capture: a raw frame stream and a WAV file recorder built on it."""

from __future__ import annotations

import logging
import os
import tempfile
import threading
import time
import wave
from pathlib import Path
from queue import Empty, Full, Queue
from typing import Any, Optional

from errors import CapabilityUnavailable
from interfaces import AudioStream
from models import AudioFrame

try:
    import numpy as np
except Exception:  # pragma: no cover
    np = None  # type: ignore

try:
    import sounddevice as sd
except Exception:  # pragma: no cover
    sd = None  # type: ignore

logger = logging.getLogger(__name__)


class SoundDeviceStream:
    def __init__(
        self,
        sample_rate: int = 16000,
        channels: int = 1,
        chunk_ms: int = 100,
    ) -> None:
        self.sample_rate = sample_rate
        self.channels = channels
        self.chunk_ms = chunk_ms
        self._stream: Any = None
        self._running = False
        self._lock = threading.Lock()
        self.dropped_chunks = 0
        self._audio_queue: Queue[AudioFrame | None] | None = None

    def start(self, audio_queue: Queue[AudioFrame | None]) -> None:
        with self._lock:
            if self._running:
                return
            if sd is None:
                raise CapabilityUnavailable("sounddevice is not installed")
            self._audio_queue = audio_queue
            self.dropped_chunks = 0
            blocksize = int(self.sample_rate * (self.chunk_ms / 1000.0))
            self._stream = sd.InputStream(
                samplerate=self.sample_rate,
                channels=self.channels,
                dtype="int16",
                blocksize=blocksize,
                callback=self._on_audio,
            )
            self._stream.start()
            self._running = True

    def stop(self) -> None:
        with self._lock:
            if not self._running:
                return
            self._running = False
            if self._stream is not None:
                self._stream.stop()
                self._stream.close()
                self._stream = None
            self._emit_sentinel()

    def _on_audio(self, indata: Any, frames: int, time_info: Any, status: Any) -> None:
        if not self._running or self._audio_queue is None:
            return
        if np is None:
            return
        payload = np.asarray(indata, dtype=np.int16).tobytes()
        frame = AudioFrame(
            pcm16_bytes=payload,
            sample_rate=self.sample_rate,
            channels=self.channels,
            timestamp_ms=int(time.time() * 1000),
        )
        try:
            self._audio_queue.put_nowait(frame)
        except Full:
            self.dropped_chunks += 1

    def _emit_sentinel(self) -> None:
        if self._audio_queue is None:
            return
        try:
            self._audio_queue.put_nowait(None)
        except Full:
            pass


class WavFileRecorder:
    """Records one utterance at a time into a temporary WAV file.

    ``stop()`` returns the file path, or ``None`` when nothing was captured.
    The caller owns the returned file and must delete it.
    """

    def __init__(
        self,
        stream: AudioStream | None = None,
        max_seconds: float = 60.0,
        directory: Path | None = None,
    ) -> None:
        self._stream = stream or SoundDeviceStream()
        chunks = int(max_seconds * 1000 / self._stream.chunk_ms)
        self._queue_maxsize = max(1, chunks)
        self._directory = directory
        self._lock = threading.Lock()
        self._audio_queue: Optional[Queue[AudioFrame | None]] = None

    @property
    def active(self) -> bool:
        return self._audio_queue is not None

    def start(self) -> None:
        with self._lock:
            if self._audio_queue is not None:
                return
            audio_queue: Queue[AudioFrame | None] = Queue(maxsize=self._queue_maxsize)
            self._stream.start(audio_queue)
            self._audio_queue = audio_queue
            logger.info("Recording started")

    def stop(self) -> Optional[Path]:
        with self._lock:
            audio_queue = self._audio_queue
            if audio_queue is None:
                return None
            self._audio_queue = None
            self._stream.stop()

        pcm = bytearray()
        sample_rate = self._stream.sample_rate
        channels = self._stream.channels
        while True:
            try:
                frame = audio_queue.get_nowait()
            except Empty:
                break
            if frame is None:
                break
            pcm.extend(frame.pcm16_bytes)
            sample_rate = frame.sample_rate
            channels = frame.channels

        if not pcm:
            logger.info("Recording stopped with no audio")
            return None
        path = self._write_wav(bytes(pcm), sample_rate, channels)
        logger.info("Recording saved to %s (%d bytes of PCM)", path, len(pcm))
        return path

    def _write_wav(self, pcm: bytes, sample_rate: int, channels: int) -> Path:
        fd, name = tempfile.mkstemp(prefix="recording-", suffix=".wav", dir=self._directory)
        os.close(fd)
        with wave.open(name, "wb") as wf:
            wf.setnchannels(channels)
            wf.setsampwidth(2)
            wf.setframerate(sample_rate)
            wf.writeframes(pcm)
        return Path(name)
