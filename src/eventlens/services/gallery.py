"""In-memory event photo gallery."""

import logging
import secrets
import string
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from eventlens.domain.photos import GalleryStats, Photo

_logger = logging.getLogger(__name__)

_EVENT_ID_ALPHABET = string.ascii_uppercase + string.digits


def new_event_id() -> str:
    """Return a short event identifier such as ``evt_4K2QZ``."""
    suffix = "".join(secrets.choice(_EVENT_ID_ALPHABET) for _ in range(5))
    return f"evt_{suffix}"


@dataclass
class PhotoGallery:
    """Ordered photo store shared by upload, indexing and scanning.

    Upload appends, indexing updates entries in place and ``clear`` resets
    everything. Every clear bumps ``generation`` so that work started
    against the old photo set can tell its results are stale.
    """

    event_id: str = field(default_factory=new_event_id)
    generation: int = 0
    _photos: dict[str, Photo] = field(default_factory=dict)
    _listeners: list[Callable[[], None]] = field(default_factory=list)

    def subscribe(self, listener: Callable[[], None]) -> None:
        """Register a callback invoked after every change to the photo set."""
        self._listeners.append(listener)

    def add_photos(self, images: Iterable[bytes]) -> list[Photo]:
        """Append uploaded images as unindexed photos."""
        added = [Photo(image=image) for image in images]
        for photo in added:
            self._photos[photo.id] = photo
        if added:
            _logger.info("Added %s photos to %s", len(added), self.event_id)
            self._notify()
        return added

    def clear(self) -> None:
        """Remove every photo and invalidate in-flight work."""
        self._photos = {}
        self.generation += 1
        _logger.info("Cleared gallery %s", self.event_id)
        self._notify()

    def photos(self) -> list[Photo]:
        """Return a snapshot of the photos in upload order."""
        return list(self._photos.values())

    def get(self, photo_id: str) -> Photo | None:
        return self._photos.get(photo_id)

    def pending(self) -> list[Photo]:
        """Return photos that have not been indexed yet."""
        return [photo for photo in self._photos.values() if not photo.indexed]

    def mark_indexed(self, photo_id: str, normalized: bytes, generation: int) -> bool:
        """Attach a normalized representation unless the work is stale."""
        if generation != self.generation:
            return False
        photo = self._photos.get(photo_id)
        if photo is None or photo.indexed:
            return False
        photo.mark_indexed(normalized)
        return True

    def stats(self, in_flight: tuple[str, ...] = ()) -> GalleryStats:
        """Summarize indexing progress."""
        total = len(self._photos)
        indexed = sum(1 for photo in self._photos.values() if photo.indexed)
        return GalleryStats(
            total=total,
            indexed=indexed,
            pending=total - indexed,
            in_flight=in_flight,
        )

    def __len__(self) -> int:
        return len(self._photos)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener()
