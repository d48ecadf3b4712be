"""Background indexing of uploaded photos."""

import asyncio
import logging
from dataclasses import dataclass, field

from eventlens.domain.errors import DecodeError
from eventlens.domain.photos import Photo
from eventlens.services.gallery import PhotoGallery
from eventlens.services.normalizer import ImageNormalizer

_logger = logging.getLogger(__name__)


@dataclass
class IndexingProcessor:
    """Precomputes normalized representations in small concurrent batches.

    At most one batch is in flight at a time. Change notifications that
    arrive while a batch runs do not start another one; the drain loop
    re-checks for pending photos once the batch finishes.
    """

    gallery: PhotoGallery
    normalizer: ImageNormalizer
    batch_size: int = 3
    retry_delay_seconds: float = 0.1
    in_flight: tuple[str, ...] = ()
    _processing: bool = False
    _failed: set[str] = field(default_factory=set)
    _failed_generation: int = 0
    _task: asyncio.Task[None] | None = None

    def attach(self) -> None:
        """Listen for gallery changes."""
        self.gallery.subscribe(self.notify)

    def notify(self) -> None:
        """Schedule a drain pass unless one is already running."""
        if self._task is not None and not self._task.done():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            _logger.debug("No running loop; indexing deferred")
            return
        self._task = loop.create_task(self.drain())

    async def drain(self) -> None:
        """Process batches until no indexable photo remains."""
        while True:
            await self.process_batch()
            if not self._indexable():
                return
            await asyncio.sleep(self.retry_delay_seconds)

    async def wait_idle(self) -> None:
        """Wait for the current drain pass, if any."""
        if self._task is not None:
            await self._task

    async def process_batch(self) -> int:
        """Index one batch of pending photos and return how many succeeded."""
        if self._processing:
            return 0
        batch = self._indexable()[: self.batch_size]
        if not batch:
            return 0

        self._processing = True
        generation = self.gallery.generation
        self.in_flight = tuple(photo.id for photo in batch)
        try:
            results = await asyncio.gather(
                *(self._normalize(photo) for photo in batch)
            )
            indexed = 0
            for photo, normalized in zip(batch, results, strict=True):
                if normalized is None:
                    continue
                if self.gallery.mark_indexed(photo.id, normalized, generation):
                    indexed += 1
            if generation != self.gallery.generation:
                _logger.info("Discarded indexing batch from a cleared gallery")
            else:
                _logger.info("Indexed %s/%s photos", indexed, len(batch))
            return indexed
        finally:
            self.in_flight = ()
            self._processing = False

    def _indexable(self) -> list[Photo]:
        if self._failed_generation != self.gallery.generation:
            self._failed = set()
            self._failed_generation = self.gallery.generation
        return [
            photo for photo in self.gallery.pending() if photo.id not in self._failed
        ]

    async def _normalize(self, photo: Photo) -> bytes | None:
        try:
            return await self.normalizer.normalize(photo.image)
        except DecodeError:
            _logger.warning(
                "Indexing failed for photo; leaving it for on-demand normalization",
                extra={"photo_id": photo.id},
                exc_info=True,
            )
            self._failed.add(photo.id)
            return None
