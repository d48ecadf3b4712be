"""Domain error types."""


class EventLensError(Exception):
    """Base class for EventLens failures."""


class DecodeError(EventLensError):
    """Raised when an image cannot be decoded."""


class DeviceError(EventLensError):
    """Raised when the capture device is unavailable or permission is denied."""


class OracleError(EventLensError):
    """Raised when the matching service fails, times out or misbehaves."""


class CaptureError(EventLensError):
    """Raised when no frame is available at a capture tick."""
