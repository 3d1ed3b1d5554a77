#!/usr/bin/env python3
"""Flask relay that turns uploaded recordings into transcript text.

Routes:
- GET  /            liveness text
- POST /transcribe  multipart field ``file`` -> {"transcript": str}

Configuration comes from the environment: PORT, STT_LANGUAGE,
MAX_UPLOAD_BYTES and the Google credentials variables.
"""

from __future__ import annotations

import logging
import os

from flask import Flask, jsonify, request

from relay_pipeline import AudioRelayPipeline, FfmpegTranscoder
from speech_backend import GoogleSpeechBackend

logger = logging.getLogger(__name__)

TEXT_PLAIN = {"Content-Type": "text/plain; charset=utf-8"}
LIVENESS_TEXT = "Vision Assist STT server"
DEFAULT_MAX_UPLOAD_BYTES = 25 * 1024 * 1024


def build_pipeline() -> AudioRelayPipeline:
    language = os.getenv("STT_LANGUAGE", "en-US")
    return AudioRelayPipeline(FfmpegTranscoder(), GoogleSpeechBackend(language_code=language))


def create_app(pipeline: AudioRelayPipeline | None = None) -> Flask:
    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = int(os.getenv("MAX_UPLOAD_BYTES", DEFAULT_MAX_UPLOAD_BYTES))
    relay = pipeline or build_pipeline()

    @app.get("/")
    def liveness():
        return LIVENESS_TEXT, 200, TEXT_PLAIN

    @app.post("/transcribe")
    def transcribe():
        upload = request.files.get("file")
        if upload is None:
            return "No file uploaded", 400, TEXT_PLAIN
        data = upload.read()
        try:
            result = relay.transcribe(data)
        except Exception as exc:
            logger.exception("Transcription error")
            return str(exc) or exc.__class__.__name__, 500, TEXT_PLAIN
        return jsonify(transcript=result.transcript_text)

    return app


def main() -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    port = int(os.getenv("PORT", "3000"))
    app = create_app()
    logger.info("STT server listening on %d", port)
    app.run(host="0.0.0.0", port=port, threaded=True)  # noqa: S104
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
