"""Tests for SoundDeviceStream and WavFileRecorder."""

from __future__ import annotations

import wave
from pathlib import Path
from queue import Queue
from unittest.mock import MagicMock, patch

import pytest

from errors import CapabilityUnavailable
from models import AudioFrame
from recorder import SoundDeviceStream, WavFileRecorder


# ---------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------

class _FakeNp:
    """Minimal numpy stand-in so SoundDeviceStream._on_audio doesn't bail."""

    class int16:
        pass

    @staticmethod
    def asarray(data, dtype=None):
        return data


class _FakeAudioInput:
    """Fake audio input similar to what sounddevice callback provides."""

    def __init__(self, n_samples: int = 1600) -> None:
        self._data = b"\x01\x00" * n_samples

    def tobytes(self) -> bytes:
        return self._data


# ---------------------------------------------------------------
# SoundDeviceStream
# ---------------------------------------------------------------

@patch("recorder.sd")
def test_start_creates_stream_and_stop_emits_sentinel(mock_sd: MagicMock) -> None:
    mock_stream = MagicMock()
    mock_sd.InputStream.return_value = mock_stream

    stream = SoundDeviceStream()
    q: Queue[AudioFrame | None] = Queue()
    stream.start(q)

    mock_sd.InputStream.assert_called_once()
    assert mock_sd.InputStream.call_args.kwargs["blocksize"] == 1600
    mock_stream.start.assert_called_once()

    stream.stop()
    mock_stream.stop.assert_called_once()
    mock_stream.close.assert_called_once()
    assert q.get_nowait() is None


@patch("recorder.sd")
def test_start_is_idempotent(mock_sd: MagicMock) -> None:
    mock_sd.InputStream.return_value = MagicMock()

    stream = SoundDeviceStream()
    q: Queue[AudioFrame | None] = Queue()
    stream.start(q)
    stream.start(q)

    assert mock_sd.InputStream.call_count == 1
    stream.stop()


@patch("recorder.sd")
def test_second_stop_emits_no_extra_sentinel(mock_sd: MagicMock) -> None:
    mock_sd.InputStream.return_value = MagicMock()

    stream = SoundDeviceStream()
    q: Queue[AudioFrame | None] = Queue()
    stream.start(q)
    stream.stop()
    stream.stop()

    assert q.get_nowait() is None
    assert q.empty()


@patch("recorder.np", _FakeNp())
@patch("recorder.sd")
def test_callback_pushes_audio_frames(mock_sd: MagicMock) -> None:
    mock_sd.InputStream.return_value = MagicMock()

    stream = SoundDeviceStream(sample_rate=16000, channels=1, chunk_ms=100)
    q: Queue[AudioFrame | None] = Queue(maxsize=50)
    stream.start(q)
    stream._on_audio(_FakeAudioInput(1600), frames=1600, time_info=None, status=None)

    frame = q.get_nowait()
    assert isinstance(frame, AudioFrame)
    assert frame.sample_rate == 16000
    assert len(frame.pcm16_bytes) == 1600 * 2
    stream.stop()


@patch("recorder.np", _FakeNp())
@patch("recorder.sd")
def test_queue_full_increments_dropped_chunks(mock_sd: MagicMock) -> None:
    mock_sd.InputStream.return_value = MagicMock()

    stream = SoundDeviceStream()
    q: Queue[AudioFrame | None] = Queue(maxsize=1)
    stream.start(q)

    stream._on_audio(_FakeAudioInput(), frames=1600, time_info=None, status=None)
    assert stream.dropped_chunks == 0
    stream._on_audio(_FakeAudioInput(), frames=1600, time_info=None, status=None)
    assert stream.dropped_chunks == 1
    stream.stop()


@patch("recorder.np", _FakeNp())
@patch("recorder.sd")
def test_callback_after_stop_is_noop(mock_sd: MagicMock) -> None:
    mock_sd.InputStream.return_value = MagicMock()

    stream = SoundDeviceStream()
    q: Queue[AudioFrame | None] = Queue()
    stream.start(q)
    stream.stop()
    q.get_nowait()

    stream._on_audio(_FakeAudioInput(), frames=1600, time_info=None, status=None)
    assert q.empty()


def test_start_raises_without_sounddevice(monkeypatch) -> None:  # noqa: ANN001
    import recorder as rec_mod
    monkeypatch.setattr(rec_mod, "sd", None)

    with pytest.raises(CapabilityUnavailable, match="sounddevice is not installed"):
        SoundDeviceStream().start(Queue())


# ---------------------------------------------------------------
# WavFileRecorder
# ---------------------------------------------------------------

class _ScriptedStream:
    sample_rate = 16000
    channels = 1
    chunk_ms = 100

    def __init__(self, chunks: list[bytes]) -> None:
        self._chunks = chunks
        self._queue: Queue | None = None
        self.starts = 0

    def start(self, audio_queue: Queue) -> None:
        self.starts += 1
        self._queue = audio_queue

    def stop(self) -> None:
        assert self._queue is not None
        for chunk in self._chunks:
            self._queue.put(AudioFrame(pcm16_bytes=chunk))
        self._queue.put(None)


def test_recorder_writes_wav_file(tmp_path: Path) -> None:
    recorder = WavFileRecorder(stream=_ScriptedStream([b"\x01\x00" * 800, b"\x02\x00" * 800]), directory=tmp_path)

    recorder.start()
    assert recorder.active
    path = recorder.stop()

    assert path is not None and path.parent == tmp_path
    assert path.name.startswith("recording-") and path.suffix == ".wav"
    with wave.open(str(path), "rb") as wf:
        assert wf.getframerate() == 16000
        assert wf.getnchannels() == 1
        assert wf.getsampwidth() == 2
        assert wf.getnframes() == 1600
    assert not recorder.active


def test_recorder_with_no_audio_returns_none(tmp_path: Path) -> None:
    recorder = WavFileRecorder(stream=_ScriptedStream([]), directory=tmp_path)

    recorder.start()
    assert recorder.stop() is None
    assert list(tmp_path.iterdir()) == []


def test_recorder_stop_without_start_returns_none(tmp_path: Path) -> None:
    recorder = WavFileRecorder(stream=_ScriptedStream([b"\x01\x00"]), directory=tmp_path)

    assert recorder.stop() is None


def test_recorder_start_is_idempotent(tmp_path: Path) -> None:
    stream = _ScriptedStream([b"\x01\x00"])
    recorder = WavFileRecorder(stream=stream, directory=tmp_path)

    recorder.start()
    recorder.start()

    assert stream.starts == 1
    path = recorder.stop()
    assert path is not None
