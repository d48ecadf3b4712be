"""Chunked orchestration of match calls over the gallery."""

import asyncio
import logging
from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass

from eventlens.domain.photos import Photo, ReferenceSet
from eventlens.domain.scans import ScanUpdate
from eventlens.services.matching import MatchService
from eventlens.services.normalizer import ImageNormalizer

_logger = logging.getLogger(__name__)


@dataclass
class MatchOrchestrator:
    """Submits candidates to the matching service in fixed-size chunks.

    Chunks run strictly one after another. Within a chunk the candidates are
    normalized concurrently, but the indices returned by the matching service
    always refer to the chunk's input order.
    """

    normalizer: ImageNormalizer
    match_service: MatchService
    chunk_size: int = 4

    async def scan(
        self, reference_set: ReferenceSet | None, candidates: Sequence[Photo]
    ) -> AsyncIterator[ScanUpdate]:
        """Yield matched ids and progress after every chunk."""
        if reference_set is None or not reference_set.frames or not candidates:
            return

        total = len(candidates)
        processed = 0
        for start in range(0, total, self.chunk_size):
            chunk = list(candidates[start : start + self.chunk_size])
            representations = await asyncio.gather(
                *(self._representation(photo) for photo in chunk)
            )
            indices = await self.match_service.find_matches(
                reference_set.frames, representations
            )
            processed += len(chunk)
            matched = tuple(chunk[index].id for index in indices)
            progress = min(100, round(processed / total * 100))
            _logger.info(
                "Scanned %s/%s candidates, %s matched in chunk",
                processed,
                total,
                len(matched),
            )
            yield ScanUpdate(
                matched_ids=matched,
                progress_percent=progress,
                processed=processed,
                total=total,
            )

    async def _representation(self, photo: Photo) -> bytes:
        if photo.indexed and photo.normalized is not None:
            return photo.normalized
        return await self.normalizer.normalize(photo.image)
