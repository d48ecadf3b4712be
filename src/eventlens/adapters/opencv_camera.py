"""OpenCV-backed live camera."""

import asyncio
import logging
from dataclasses import dataclass

import cv2

from eventlens.domain.errors import DeviceError
from eventlens.services.capture import CameraDevice

_logger = logging.getLogger(__name__)


@dataclass
class OpenCVCamera(CameraDevice):
    """Camera reading frames from a local capture device."""

    device_index: int = 0
    jpeg_quality: int = 95
    _capture: cv2.VideoCapture | None = None

    async def start(
        self, facing: str = "user", width: int = 1280, height: int = 720
    ) -> None:
        """Open the device with resolution hints.

        ``facing`` is informational; local devices are selected by index.
        """
        capture = await asyncio.to_thread(cv2.VideoCapture, self.device_index)
        if not capture.isOpened():
            capture.release()
            raise DeviceError(f"Unable to open camera {self.device_index}")
        capture.set(cv2.CAP_PROP_FRAME_WIDTH, width)
        capture.set(cv2.CAP_PROP_FRAME_HEIGHT, height)
        self._capture = capture
        _logger.info("Camera %s opened (%s)", self.device_index, facing)

    async def read_frame(self) -> bytes | None:
        """Grab the current frame as JPEG bytes."""
        if self._capture is None:
            return None
        ok, frame = await asyncio.to_thread(self._capture.read)
        if not ok or frame is None:
            return None
        encoded, buffer = cv2.imencode(
            ".jpg", frame, [cv2.IMWRITE_JPEG_QUALITY, self.jpeg_quality]
        )
        if not encoded:
            return None
        return buffer.tobytes()

    def stop(self) -> None:
        """Release the device."""
        if self._capture is not None:
            self._capture.release()
            self._capture = None
            _logger.info("Camera %s released", self.device_index)
