from __future__ import annotations

import io
from pathlib import Path

from errors import TranscodeFailure, UpstreamError
from relay_pipeline import AudioRelayPipeline
from relay_server import LIVENESS_TEXT, create_app


class FakeTranscoder:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.sources: list[bytes] = []

    def to_pcm_wav(self, source: Path, target: Path) -> None:
        self.sources.append(source.read_bytes())
        if self.error is not None:
            raise self.error
        target.write_bytes(b"RIFF-pcm")


class FakeBackend:
    def __init__(self, segments=None, error: Exception | None = None) -> None:  # noqa: ANN001
        self.segments = segments if segments is not None else []
        self.error = error
        self.received: list[bytes] = []

    def recognize(self, wav_bytes: bytes):  # noqa: ANN201
        self.received.append(wav_bytes)
        if self.error is not None:
            raise self.error
        return self.segments


def _client(tmp_path: Path, transcoder: FakeTranscoder, backend: FakeBackend):  # noqa: ANN202
    app = create_app(AudioRelayPipeline(transcoder, backend, tmp_root=tmp_path))
    app.config["TESTING"] = True
    return app.test_client()


def _upload(client, payload: bytes = b"webm-bytes"):  # noqa: ANN001, ANN202
    return client.post(
        "/transcribe",
        data={"file": (io.BytesIO(payload), "clip.webm")},
        content_type="multipart/form-data",
    )


def test_liveness(tmp_path: Path) -> None:
    client = _client(tmp_path, FakeTranscoder(), FakeBackend())

    resp = client.get("/")

    assert resp.status_code == 200
    assert resp.get_data(as_text=True) == LIVENESS_TEXT
    assert resp.mimetype == "text/plain"


def test_transcribe_joins_top_alternatives(tmp_path: Path) -> None:
    transcoder = FakeTranscoder()
    backend = FakeBackend([["hello", "yellow"], ["world"]])
    client = _client(tmp_path, transcoder, backend)

    resp = _upload(client, b"raw audio")

    assert resp.status_code == 200
    assert resp.get_json() == {"transcript": "hello\nworld"}
    assert transcoder.sources == [b"raw audio"]
    assert backend.received == [b"RIFF-pcm"]
    assert list(tmp_path.iterdir()) == []


def test_no_speech_is_empty_transcript(tmp_path: Path) -> None:
    client = _client(tmp_path, FakeTranscoder(), FakeBackend([]))

    resp = _upload(client)

    assert resp.status_code == 200
    assert resp.get_json() == {"transcript": ""}


def test_corrupt_upload_is_500_and_leaves_no_temp_dir(tmp_path: Path) -> None:
    transcoder = FakeTranscoder(TranscodeFailure("ffmpeg failed (1): Invalid data found"))
    backend = FakeBackend()
    client = _client(tmp_path, transcoder, backend)

    resp = _upload(client, b"not audio")

    assert resp.status_code == 500
    assert "Invalid data found" in resp.get_data(as_text=True)
    assert backend.received == []
    assert list(tmp_path.iterdir()) == []


def test_backend_failure_is_500_and_cleans_up(tmp_path: Path) -> None:
    client = _client(tmp_path, FakeTranscoder(), FakeBackend(error=UpstreamError("permission denied")))

    resp = _upload(client)

    assert resp.status_code == 500
    assert resp.get_data(as_text=True) == "permission denied"
    assert list(tmp_path.iterdir()) == []


def test_missing_file_field_is_400_without_temp_dir(tmp_path: Path) -> None:
    transcoder = FakeTranscoder()
    client = _client(tmp_path, transcoder, FakeBackend())

    resp = client.post("/transcribe", data={"other": "x"}, content_type="multipart/form-data")

    assert resp.status_code == 400
    assert resp.get_data(as_text=True) == "No file uploaded"
    assert transcoder.sources == []
    assert list(tmp_path.iterdir()) == []


def test_transcribe_rejects_get(tmp_path: Path) -> None:
    client = _client(tmp_path, FakeTranscoder(), FakeBackend())

    assert client.get("/transcribe").status_code == 405
