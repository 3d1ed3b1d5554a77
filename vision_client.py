"""Gemini generateContent client for image + prompt inference."""

from __future__ import annotations

import base64
import logging

import requests

from config import DEFAULT_VISION_ENDPOINT, DEFAULT_VISION_MODEL
from errors import ConfigurationMissing, UpstreamError, VISION_KEY_MISSING_MESSAGE
from models import InferenceRequest, InferenceResult

logger = logging.getLogger(__name__)

NO_RESPONSE_TEXT = "No response"


class GeminiVisionClient:
    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_VISION_MODEL,
        endpoint: str = DEFAULT_VISION_ENDPOINT,
        timeout_s: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._endpoint = endpoint.rstrip("/")
        self._timeout_s = timeout_s
        self._session = session or requests.Session()

    def is_configured(self) -> bool:
        return bool(self._api_key and self._endpoint and self._model)

    def generate(self, request: InferenceRequest) -> InferenceResult:
        if not self.is_configured():
            raise ConfigurationMissing(VISION_KEY_MISSING_MESSAGE)

        url = f"{self._endpoint}/{self._model}:generateContent"
        body = {
            "contents": [
                {
                    "role": "user",
                    "parts": [
                        {"text": request.prompt_text},
                        {
                            "inline_data": {
                                "mime_type": request.image.mime_type,
                                "data": base64.b64encode(request.image.data).decode("ascii"),
                            }
                        },
                    ],
                }
            ]
        }
        try:
            resp = self._session.post(
                url,
                params={"key": self._api_key},
                json=body,
                timeout=self._timeout_s,
            )
        except requests.Timeout as exc:
            raise UpstreamError(f"Gemini request timed out after {self._timeout_s:g}s") from exc
        except requests.RequestException as exc:
            raise UpstreamError(f"Gemini request failed: {exc}") from exc

        if not resp.ok:
            logger.warning("Gemini returned %d", resp.status_code)
            raise UpstreamError(
                f"Gemini error {resp.status_code}: {resp.text}",
                status=resp.status_code,
                body=resp.text,
            )

        try:
            payload = resp.json()
        except ValueError as exc:
            raise UpstreamError(
                f"Gemini error {resp.status_code}: malformed response {resp.text}",
                status=resp.status_code,
                body=resp.text,
            ) from exc
        return InferenceResult(text=self._extract_text(payload) or NO_RESPONSE_TEXT)

    def _extract_text(self, payload: object) -> str:
        if not isinstance(payload, dict):
            return ""
        candidates = payload.get("candidates") or []
        if not candidates or not isinstance(candidates[0], dict):
            return ""
        content = candidates[0].get("content") or {}
        parts = content.get("parts") or []
        texts = [str(part.get("text", "")) for part in parts if isinstance(part, dict)]
        return "\n".join(texts)
