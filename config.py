"""Simple JSON-based config store with environment fallbacks."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_VISION_MODEL = "gemini-2.5-flash-lite"
DEFAULT_VISION_ENDPOINT = "https://generativelanguage.googleapis.com/v1/models"


class JsonConfigStore:
    def __init__(self, path: Path | None = None) -> None:
        self._path = path or Path.home() / ".config" / "vision_assist" / "config.json"
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def get_vision_api_key(self) -> str:
        return self._get("vision_api_key", "") or os.getenv("GEMINI_API_KEY", "")

    def set_vision_api_key(self, key: str) -> None:
        self._set("vision_api_key", key)

    def get_vision_model(self) -> str:
        return self._get("vision_model", DEFAULT_VISION_MODEL)

    def get_vision_endpoint(self) -> str:
        return self._get("vision_endpoint", DEFAULT_VISION_ENDPOINT)

    def get_relay_url(self) -> str:
        return self._get("relay_url", "") or os.getenv("STT_SERVER_URL", "")

    def set_relay_url(self, url: str) -> None:
        self._set("relay_url", url)

    def get_dashscope_api_key(self) -> str:
        return self._get("dashscope_api_key", "") or os.getenv("DASHSCOPE_API_KEY", "")

    def get_locale(self) -> str:
        return self._get("locale", "en-US")

    def get_speech_rate(self) -> float:
        return self._get_float("speech_rate", 0.9)

    def get_speech_pitch(self) -> float:
        return self._get_float("speech_pitch", 1.0)

    def get_capture_key(self) -> str:
        return self._get("capture_key", "Key.f8")

    def set_capture_key(self, key: str) -> None:
        self._set("capture_key", key)

    def get_output_key(self) -> str:
        return self._get("output_key", "Key.f9")

    def set_output_key(self, key: str) -> None:
        self._set("output_key", key)

    def _get(self, name: str, default: str) -> str:
        data = self._read_all()
        return str(data.get(name, default))

    def _get_float(self, name: str, default: float) -> float:
        data = self._read_all()
        try:
            return float(data.get(name, default))
        except (TypeError, ValueError):
            logger.warning("Ignoring invalid %s in %s", name, self._path)
            return default

    def _set(self, name: str, value: str) -> None:
        data = self._read_all()
        data[name] = value
        self._write_all(data)

    def _read_all(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            return json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            return {}

    def _write_all(self, data: dict) -> None:
        self._path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
