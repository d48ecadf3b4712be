"""Guest session state shared by capture, scanning and the UI."""

import logging
from contextlib import aclosing
from dataclasses import dataclass, field

from eventlens.domain.errors import EventLensError
from eventlens.domain.photos import Photo, ReferenceSet
from eventlens.domain.scans import ScanSession, ScanStatus
from eventlens.services.capture import CaptureStateMachine
from eventlens.services.gallery import PhotoGallery
from eventlens.services.normalizer import ImageNormalizer
from eventlens.services.scans import MatchOrchestrator

SCAN_FAILED_MESSAGE = "AI service unavailable or interrupted. Please try again."
UPLOAD_FAILED_MESSAGE = "Failed to process photo. Please try again."

_logger = logging.getLogger(__name__)


@dataclass
class GuestSession:
    """Reference frames, matches and status flags for one guest.

    Each new reference set or scan bumps ``generation``; a scan run only
    writes results while its generation and the gallery generation are
    still current, so the most recent run is always authoritative.
    """

    gallery: PhotoGallery
    normalizer: ImageNormalizer
    orchestrator: MatchOrchestrator
    scan: ScanSession = field(default_factory=ScanSession)
    display_frame: bytes | None = None
    capture_error: str | None = None
    generation: int = 0

    @property
    def reference_set(self) -> ReferenceSet | None:
        return self.scan.reference_set

    @property
    def is_scanning(self) -> bool:
        return self.scan.status is ScanStatus.RUNNING

    def set_reference_set(self, reference_set: ReferenceSet) -> None:
        """Adopt new reference frames and drop prior match results."""
        self.generation += 1
        self.scan.reference_set = reference_set
        self.scan.reset()
        self.display_frame = reference_set.thumbnail
        self.capture_error = None

    async def use_uploaded_reference(self, image: bytes) -> ReferenceSet:
        """Normalize a single uploaded selfie into the reference set."""
        normalized = await self.normalizer.normalize(image)
        reference_set = ReferenceSet(frames=(normalized,))
        self.set_reference_set(reference_set)
        return reference_set

    async def capture_reference(
        self, machine: CaptureStateMachine
    ) -> ReferenceSet:
        """Run a guided capture and adopt its frames."""
        self.capture_error = None
        try:
            reference_set = await machine.run()
        except EventLensError:
            self.capture_error = machine.error
            raise
        self.set_reference_set(reference_set)
        return reference_set

    async def run_scan(self) -> ScanSession:
        """Scan the whole gallery against the current reference set."""
        reference_set = self.scan.reference_set
        candidates = self.gallery.photos()
        if reference_set is None or not candidates:
            return self.scan

        self.generation += 1
        generation = self.generation
        gallery_generation = self.gallery.generation
        self.scan.reset(status=ScanStatus.RUNNING)
        _logger.info("Scan started over %s photos", len(candidates))

        def is_current() -> bool:
            return (
                generation == self.generation
                and gallery_generation == self.gallery.generation
            )

        try:
            async with aclosing(
                self.orchestrator.scan(reference_set, candidates)
            ) as updates:
                async for update in updates:
                    if not is_current():
                        return self._discard_stale(generation)
                    self._apply_matches(update.matched_ids)
                    self.scan.progress_percent = max(
                        self.scan.progress_percent, update.progress_percent
                    )
        except Exception:
            _logger.exception("Scan failed")
            if not is_current():
                return self._discard_stale(generation)
            self.scan.status = ScanStatus.FAILED
            self.scan.last_error = SCAN_FAILED_MESSAGE
            return self.scan

        if not is_current():
            return self._discard_stale(generation)
        self.scan.status = ScanStatus.DONE
        self.scan.progress_percent = 100
        _logger.info("Scan finished with %s matches", len(self.scan.matched_ids))
        return self.scan

    def deselect(self, photo_id: str) -> bool:
        """Remove a match the guest says is not them.

        Gallery photos not yet matched are still remembered, so a later
        chunk of the running scan cannot add them back.
        """
        matched = photo_id in self.scan.matched_ids
        if not matched and self.gallery.get(photo_id) is None:
            return False
        self.scan.rejected_ids.add(photo_id)
        if matched:
            self.scan.matched_ids.remove(photo_id)
            return True
        return False

    def matched_photos(self) -> list[Photo]:
        """Return matched photos in discovery order."""
        photos = (self.gallery.get(photo_id) for photo_id in self.scan.matched_ids)
        return [photo for photo in photos if photo is not None]

    def _discard_stale(self, generation: int) -> ScanSession:
        _logger.info("Discarding results of a superseded scan")
        if generation == self.generation:
            # gallery was cleared under this run
            self.scan.reset()
        return self.scan

    def _apply_matches(self, matched_ids: tuple[str, ...]) -> None:
        for photo_id in matched_ids:
            if photo_id in self.scan.rejected_ids:
                continue
            if photo_id not in self.scan.matched_ids:
                self.scan.matched_ids.append(photo_id)
