"""Pydantic models for HTTP payloads."""

from datetime import datetime

from pydantic import BaseModel, Field


class UploadPhotosRequest(BaseModel):
    """Base64-encoded event photos."""

    images: list[str] = Field(min_length=1)


class UploadPhotosResponse(BaseModel):
    """Ids assigned to uploaded photos."""

    photo_ids: list[str]


class ReferenceRequest(BaseModel):
    """A base64-encoded selfie."""

    image: str


class GalleryResponse(BaseModel):
    """Photographer dashboard summary."""

    event_id: str
    total: int
    indexed: int
    pending: int
    in_flight: list[str]


class CaptureResponse(BaseModel):
    """Guided capture progress."""

    step: str
    step_progress_percent: float
    frames_collected: int
    error: str | None = None


class ScanResponse(BaseModel):
    """Current scan state."""

    status: str
    progress_percent: int
    matched_ids: list[str]
    reference_frames: int
    error: str | None = None


class MatchedPhoto(BaseModel):
    """A photo the guest was found in."""

    id: str
    captured_at: datetime
