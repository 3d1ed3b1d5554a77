"""Uploads a recorded file to the relay's /transcribe endpoint."""

from __future__ import annotations

import logging
import mimetypes
from pathlib import Path

import requests

from errors import ConfigurationMissing, RELAY_URL_MISSING_MESSAGE, UpstreamError

logger = logging.getLogger(__name__)

TRANSCRIBE_PATH = "/transcribe"


class RelayTranscriptionClient:
    def __init__(
        self,
        base_url: str,
        timeout_s: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        self._base_url = base_url.strip().rstrip("/")
        self._timeout_s = timeout_s
        self._session = session or requests.Session()

    def is_configured(self) -> bool:
        return bool(self._base_url)

    @property
    def url(self) -> str:
        if self._base_url.endswith(TRANSCRIBE_PATH):
            return self._base_url
        return f"{self._base_url}{TRANSCRIBE_PATH}"

    def transcribe(self, audio_path: Path) -> str:
        if not self.is_configured():
            raise ConfigurationMissing(RELAY_URL_MISSING_MESSAGE)

        mime = mimetypes.guess_type(audio_path.name)[0] or "application/octet-stream"
        try:
            with open(audio_path, "rb") as fh:
                resp = self._session.post(
                    self.url,
                    files={"file": (audio_path.name, fh, mime)},
                    timeout=self._timeout_s,
                )
        except requests.Timeout as exc:
            raise UpstreamError(f"STT server timed out after {self._timeout_s:g}s") from exc
        except requests.RequestException as exc:
            raise UpstreamError(f"STT server unreachable: {exc}") from exc

        if not resp.ok:
            logger.warning("STT server returned %d", resp.status_code)
            raise UpstreamError(
                f"STT server error {resp.status_code}: {resp.text}",
                status=resp.status_code,
                body=resp.text,
            )
        try:
            payload = resp.json()
        except ValueError as exc:
            raise UpstreamError(
                f"STT server returned malformed JSON: {resp.text}",
                status=resp.status_code,
                body=resp.text,
            ) from exc
        if not isinstance(payload, dict):
            return ""
        return str(payload.get("transcript") or "")
