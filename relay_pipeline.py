"""Stateless upload -> transcode -> recognize pipeline behind /transcribe.

Each call gets its own temporary directory which owns every file derived
from the upload; the directory is removed on every exit path.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Sequence

from errors import TranscodeFailure
from interfaces import SpeechBackend, Transcoder
from models import TranscriptionResult

logger = logging.getLogger(__name__)

TARGET_SAMPLE_RATE = 16000
TARGET_CHANNELS = 1


class FfmpegTranscoder:
    """Decodes anything ffmpeg understands into 16 kHz mono PCM16 WAV."""

    def __init__(self, ffmpeg_bin: str = "ffmpeg", timeout_s: float = 60.0) -> None:
        self._ffmpeg_bin = ffmpeg_bin
        self._timeout_s = timeout_s

    def to_pcm_wav(self, source: Path, target: Path) -> None:
        if shutil.which(self._ffmpeg_bin) is None:
            raise TranscodeFailure(f"{self._ffmpeg_bin} not found")
        cmd = [
            self._ffmpeg_bin,
            "-nostdin",
            "-hide_banner",
            "-loglevel",
            "error",
            "-y",
            "-i",
            str(source),
            "-ac",
            str(TARGET_CHANNELS),
            "-ar",
            str(TARGET_SAMPLE_RATE),
            "-acodec",
            "pcm_s16le",
            "-f",
            "wav",
            str(target),
        ]
        try:
            subprocess.run(  # noqa: S603
                cmd,
                check=True,
                capture_output=True,
                timeout=self._timeout_s,
            )
        except subprocess.CalledProcessError as exc:
            stderr = (exc.stderr or b"").decode("utf-8", "replace").strip()
            raise TranscodeFailure(f"ffmpeg failed ({exc.returncode}): {stderr}") from exc
        except subprocess.TimeoutExpired as exc:
            raise TranscodeFailure(f"ffmpeg timed out after {self._timeout_s:g}s") from exc
        except OSError as exc:
            raise TranscodeFailure(f"ffmpeg could not run: {exc}") from exc


def join_transcripts(segments: Sequence[Sequence[str]]) -> str:
    """Top alternative of every segment, newline separated."""
    return "\n".join(str(alternatives[0]) for alternatives in segments if alternatives)


class AudioRelayPipeline:
    def __init__(
        self,
        transcoder: Transcoder,
        backend: SpeechBackend,
        tmp_root: Path | None = None,
    ) -> None:
        self._transcoder = transcoder
        self._backend = backend
        self._tmp_root = tmp_root

    def transcribe(self, data: bytes) -> TranscriptionResult:
        with self._workdir() as workdir:
            source = workdir / "input"
            target = workdir / "out.wav"
            source.write_bytes(data)
            self._transcoder.to_pcm_wav(source, target)
            wav_bytes = target.read_bytes()
            segments = self._backend.recognize(wav_bytes)
            transcript = join_transcripts(segments)
        logger.info("Transcribed %d bytes into %d characters", len(data), len(transcript))
        return TranscriptionResult(transcript_text=transcript)

    @contextmanager
    def _workdir(self) -> Iterator[Path]:
        workdir = Path(tempfile.mkdtemp(prefix="upload-", dir=self._tmp_root))
        try:
            yield workdir
        finally:
            try:
                shutil.rmtree(workdir)
            except OSError as exc:
                logger.warning("Could not remove %s: %s", workdir, exc)
