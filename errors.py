"""Shared error codes, user-facing messages and exception types."""

from __future__ import annotations

CONFIGURATION_MISSING = "CONFIGURATION_MISSING"
CAPTURE_FAILURE = "CAPTURE_FAILURE"
UPSTREAM_ERROR = "UPSTREAM_ERROR"
TRANSCODE_FAILURE = "TRANSCODE_FAILURE"
CAPABILITY_UNAVAILABLE = "CAPABILITY_UNAVAILABLE"
AUTH_FAILED = "AUTH_FAILED"
RECORDING_FAILED = "RECORDING_FAILED"
RECOGNITION_FAILED = "RECOGNITION_FAILED"
NOTHING_UNDERSTOOD = "NOTHING_UNDERSTOOD"

ERROR_MESSAGES = {
    CONFIGURATION_MISSING: "Required setting is missing.",
    CAPTURE_FAILURE: "Camera is not ready.",
    UPSTREAM_ERROR: "Remote service failed, please retry.",
    TRANSCODE_FAILURE: "Audio could not be decoded.",
    CAPABILITY_UNAVAILABLE: "Speech-to-text is not available in this build.",
    AUTH_FAILED: "API key is invalid.",
    RECORDING_FAILED: "Could not start recording.",
    RECOGNITION_FAILED: "Could not recognize speech. Please try again.",
    NOTHING_UNDERSTOOD: "Could not transcribe the recording.",
}

VISION_KEY_MISSING_MESSAGE = (
    "Set your Gemini API key in config.json > vision_api_key "
    "or the GEMINI_API_KEY environment variable."
)
RELAY_URL_MISSING_MESSAGE = (
    "STT server not configured. Set config.json > relay_url "
    "or the STT_SERVER_URL environment variable."
)


class AssistError(Exception):
    code = UPSTREAM_ERROR


class ConfigurationMissing(AssistError):
    code = CONFIGURATION_MISSING


class CaptureFailure(AssistError):
    code = CAPTURE_FAILURE


class UpstreamError(AssistError):
    """Non-2xx, malformed or unreachable remote service."""

    code = UPSTREAM_ERROR

    def __init__(self, message: str, status: int | None = None, body: str = "") -> None:
        super().__init__(message)
        self.status = status
        self.body = body


class TranscodeFailure(AssistError):
    code = TRANSCODE_FAILURE


class CapabilityUnavailable(AssistError):
    code = CAPABILITY_UNAVAILABLE
