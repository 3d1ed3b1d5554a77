from __future__ import annotations

import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

import relay_pipeline
from errors import TranscodeFailure
from relay_pipeline import AudioRelayPipeline, FfmpegTranscoder, join_transcripts


def test_join_transcripts_takes_first_alternative_per_segment() -> None:
    assert join_transcripts([["a", "b"], [], ["c"]]) == "a\nc"
    assert join_transcripts([]) == ""


def test_ffmpeg_command_targets_16k_mono_pcm(tmp_path: Path) -> None:
    src, dst = tmp_path / "input", tmp_path / "out.wav"
    with patch.object(relay_pipeline.shutil, "which", return_value="/usr/bin/ffmpeg"), patch.object(
        relay_pipeline.subprocess, "run"
    ) as run:
        FfmpegTranscoder(timeout_s=12).to_pcm_wav(src, dst)

    cmd = run.call_args.args[0]
    assert cmd[0] == "ffmpeg"
    assert cmd[cmd.index("-i") + 1] == str(src)
    assert cmd[cmd.index("-ac") + 1] == "1"
    assert cmd[cmd.index("-ar") + 1] == "16000"
    assert cmd[cmd.index("-acodec") + 1] == "pcm_s16le"
    assert cmd[-1] == str(dst)
    assert run.call_args.kwargs["timeout"] == 12
    assert run.call_args.kwargs["check"] is True


def test_missing_ffmpeg_is_transcode_failure(tmp_path: Path) -> None:
    with patch.object(relay_pipeline.shutil, "which", return_value=None):
        with pytest.raises(TranscodeFailure, match="not found"):
            FfmpegTranscoder().to_pcm_wav(tmp_path / "a", tmp_path / "b")


def test_ffmpeg_error_carries_stderr(tmp_path: Path) -> None:
    error = subprocess.CalledProcessError(1, ["ffmpeg"], stderr=b"Invalid data found when processing input")
    with patch.object(relay_pipeline.shutil, "which", return_value="/usr/bin/ffmpeg"), patch.object(
        relay_pipeline.subprocess, "run", side_effect=error
    ):
        with pytest.raises(TranscodeFailure, match="Invalid data found"):
            FfmpegTranscoder().to_pcm_wav(tmp_path / "a", tmp_path / "b")


def test_ffmpeg_timeout_is_transcode_failure(tmp_path: Path) -> None:
    error = subprocess.TimeoutExpired(["ffmpeg"], 60)
    with patch.object(relay_pipeline.shutil, "which", return_value="/usr/bin/ffmpeg"), patch.object(
        relay_pipeline.subprocess, "run", side_effect=error
    ):
        with pytest.raises(TranscodeFailure, match="timed out"):
            FfmpegTranscoder().to_pcm_wav(tmp_path / "a", tmp_path / "b")


class _CopyTranscoder:
    def __init__(self) -> None:
        self.workdirs: list[Path] = []

    def to_pcm_wav(self, source: Path, target: Path) -> None:
        self.workdirs.append(source.parent)
        target.write_bytes(source.read_bytes().upper())


class _EchoBackend:
    def recognize(self, wav_bytes: bytes):  # noqa: ANN201
        return [[wav_bytes.decode()]]


def test_pipeline_uses_fresh_workdir_per_call(tmp_path: Path) -> None:
    transcoder = _CopyTranscoder()
    pipeline = AudioRelayPipeline(transcoder, _EchoBackend(), tmp_root=tmp_path)

    first = pipeline.transcribe(b"one")
    second = pipeline.transcribe(b"two")

    assert first.transcript_text == "ONE"
    assert second.transcript_text == "TWO"
    assert transcoder.workdirs[0] != transcoder.workdirs[1]
    assert all(d.parent == tmp_path for d in transcoder.workdirs)
    assert list(tmp_path.iterdir()) == []
