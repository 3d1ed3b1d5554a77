"""Still-image capture from a local camera via OpenCV."""

from __future__ import annotations

import logging
import threading
from typing import Any

from errors import CaptureFailure
from models import CapturedImage

try:
    import cv2
except Exception:  # pragma: no cover
    cv2 = None  # type: ignore

logger = logging.getLogger(__name__)


class OpenCVCaptureService:
    def __init__(self, device_index: int = 0, jpeg_quality: int = 70, warmup_frames: int = 2) -> None:
        self._device_index = device_index
        self._jpeg_quality = jpeg_quality
        self._warmup_frames = warmup_frames
        self._capture: Any = None
        self._lock = threading.Lock()

    def capture_still(self) -> CapturedImage:
        with self._lock:
            if cv2 is None:
                raise CaptureFailure("opencv-python is not installed")
            capture = self._ensure_open()
            ok, frame = capture.read()
            if not ok or frame is None:
                self._release()
                raise CaptureFailure("Camera not ready")
            ok, buffer = cv2.imencode(
                ".jpg", frame, [int(cv2.IMWRITE_JPEG_QUALITY), self._jpeg_quality]
            )
            if not ok or buffer is None or buffer.size == 0:
                raise CaptureFailure("No image data")
            return CapturedImage(data=buffer.tobytes(), mime_type="image/jpeg")

    def close(self) -> None:
        with self._lock:
            self._release()

    def _ensure_open(self) -> Any:
        if self._capture is not None and self._capture.isOpened():
            return self._capture
        capture = cv2.VideoCapture(self._device_index)
        if not capture.isOpened():
            capture.release()
            raise CaptureFailure("Camera not ready")
        # first frames after open are often dark while exposure settles
        for _ in range(self._warmup_frames):
            capture.read()
        logger.info("Camera %d opened", self._device_index)
        self._capture = capture
        return capture

    def _release(self) -> None:
        if self._capture is not None:
            self._capture.release()
            self._capture = None
