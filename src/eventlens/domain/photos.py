"""Domain models for event photos and reference sets."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from uuid import uuid4

MAX_REFERENCE_FRAMES = 4


def new_photo_id() -> str:
    """Return an opaque unique photo id."""
    return uuid4().hex


@dataclass
class Photo:
    """An uploaded event photo and its cached normalized representation."""

    image: bytes
    id: str = field(default_factory=new_photo_id)
    captured_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))
    indexed: bool = False
    normalized: bytes | None = None

    def mark_indexed(self, normalized: bytes) -> None:
        """Attach the normalized representation and flag the photo as indexed."""
        self.normalized = normalized
        self.indexed = True


@dataclass(frozen=True)
class ReferenceSet:
    """Normalized frames of one person, possibly from several angles."""

    frames: tuple[bytes, ...]

    def __post_init__(self) -> None:
        if not 1 <= len(self.frames) <= MAX_REFERENCE_FRAMES:
            raise ValueError(
                f"A reference set holds 1 to {MAX_REFERENCE_FRAMES} frames, "
                f"got {len(self.frames)}"
            )

    @property
    def thumbnail(self) -> bytes:
        """Frontal frame used as the display avatar."""
        return self.frames[0]


@dataclass(frozen=True)
class GalleryStats:
    """Counters shown on the photographer dashboard."""

    total: int
    indexed: int
    pending: int
    in_flight: tuple[str, ...] = ()
