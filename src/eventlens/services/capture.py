"""Timed state machine for guided multi-angle face capture."""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Protocol

from eventlens.domain.capture import (
    POSE_SEQUENCE,
    CaptureSnapshot,
    CaptureStep,
    next_step,
)
from eventlens.domain.errors import CaptureError, DeviceError, EventLensError
from eventlens.domain.photos import ReferenceSet
from eventlens.services.normalizer import ImageNormalizer

_logger = logging.getLogger(__name__)


class CameraDevice(Protocol):
    """Interface for a live camera."""

    async def start(
        self, facing: str = "user", width: int = 1280, height: int = 720
    ) -> None:
        """Open the device; raise DeviceError when unavailable."""

    async def read_frame(self) -> bytes | None:
        """Return the current frame as an encoded image, or None."""

    def stop(self) -> None:
        """Release the device."""


class Clock(Protocol):
    """Time source driving capture ticks."""

    def now(self) -> float:
        """Return the current time in seconds."""

    async def sleep(self, seconds: float) -> None:
        """Suspend for the given number of seconds."""


class MonotonicClock:
    """Wall-clock implementation backed by ``time.monotonic``."""

    def now(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


@dataclass
class CaptureStateMachine:
    """Runs STRAIGHT, LEFT, RIGHT and SMILE poses on a fixed timer.

    State is the pair of current step and its deadline; ``tick`` is the only
    transition and is driven by the injected clock. The camera is released
    on every exit from ``run``, and only a fully completed sequence yields a
    ReferenceSet.
    """

    camera: CameraDevice
    normalizer: ImageNormalizer
    clock: Clock = field(default_factory=MonotonicClock)
    step_seconds: float = 4.5
    tick_seconds: float = 0.05
    finish_delay_seconds: float = 1.0
    step: CaptureStep = CaptureStep.IDLE
    step_progress_percent: float = 0.0
    error: str | None = None
    _frames: list[bytes] = field(default_factory=list)
    _deadline: float | None = None
    _camera_open: bool = False
    _reference_set: ReferenceSet | None = None

    @property
    def camera_open(self) -> bool:
        return self._camera_open

    @property
    def reference_set(self) -> ReferenceSet | None:
        return self._reference_set

    async def open(self) -> None:
        """Start the camera and wait in IDLE for the start trigger."""
        self._discard()
        self.error = None
        if self._camera_open:
            return
        await self.camera.start(facing="user", width=1280, height=720)
        self._camera_open = True

    def start(self) -> None:
        """Begin the pose sequence."""
        if self.step is not CaptureStep.IDLE:
            raise RuntimeError(f"Capture already running in {self.step}")
        if not self._camera_open:
            raise DeviceError("Camera is not open")
        self._frames = []
        self._enter(CaptureStep.STRAIGHT)

    async def tick(self) -> CaptureStep:
        """Advance progress and capture a frame when the pose expires."""
        if self.step not in POSE_SEQUENCE or self._deadline is None:
            return self.step
        now = self.clock.now()
        elapsed = self.step_seconds - (self._deadline - now)
        self.step_progress_percent = min(
            100.0, max(0.0, elapsed / self.step_seconds * 100)
        )
        if now < self._deadline:
            return self.step

        try:
            frame = await self._capture_frame()
        except EventLensError:
            self.cancel()
            raise
        self._frames.append(frame)
        following = next_step(self.step)
        if following is CaptureStep.COMPLETED:
            self._reference_set = ReferenceSet(frames=tuple(self._frames))
            self.step = CaptureStep.COMPLETED
            self.step_progress_percent = 100.0
            self._deadline = None
            _logger.info("Capture completed with %s frames", len(self._frames))
        else:
            self._enter(following)
        return self.step

    async def run(self) -> ReferenceSet:
        """Run the whole sequence and return the captured reference set."""
        completed = False
        try:
            await self.open()
            self.start()
            while self.step is not CaptureStep.COMPLETED:
                await self.clock.sleep(self.tick_seconds)
                await self.tick()
            await self.clock.sleep(self.finish_delay_seconds)
            reference_set = self._reference_set
            if reference_set is None:
                raise CaptureError("Failed to capture video frames.")
            completed = True
            return reference_set
        except DeviceError:
            self.error = (
                "Unable to access camera. Please allow permissions "
                "or use the upload option."
            )
            _logger.exception("Camera unavailable")
            raise
        except EventLensError:
            self.error = "Failed to capture video frames."
            _logger.exception("Capture failed")
            raise
        finally:
            self._release()
            if not completed:
                self._discard()

    def cancel(self) -> None:
        """Release the camera and drop any partially collected frames."""
        self._release()
        self._discard()

    def snapshot(self) -> CaptureSnapshot:
        return CaptureSnapshot(
            step=self.step,
            step_progress_percent=self.step_progress_percent,
            frames_collected=len(self._frames),
            error=self.error,
        )

    def _enter(self, step: CaptureStep) -> None:
        self.step = step
        self.step_progress_percent = 0.0
        self._deadline = self.clock.now() + self.step_seconds

    async def _capture_frame(self) -> bytes:
        raw = await self.camera.read_frame()
        if raw is None:
            raise CaptureError(f"No video frame available at {self.step}")
        return await self.normalizer.normalize(raw)

    def _release(self) -> None:
        if self._camera_open:
            self._camera_open = False
            self.camera.stop()

    def _discard(self) -> None:
        self._frames = []
        self._reference_set = None
        self._deadline = None
        self.step = CaptureStep.IDLE
        self.step_progress_percent = 0.0
