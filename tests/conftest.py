"""Shared test fixtures and fakes."""

import asyncio
import io
from collections.abc import Callable
from dataclasses import dataclass, field

import pytest
from PIL import Image

from eventlens.config import Settings
from eventlens.containers import AppContainer
from eventlens.domain.errors import DecodeError, DeviceError
from eventlens.services.capture import CameraDevice, CaptureStateMachine
from eventlens.services.gallery import PhotoGallery
from eventlens.services.indexing import IndexingProcessor
from eventlens.services.matching import MatchClient, MatchService
from eventlens.services.normalizer import ImageNormalizer
from eventlens.services.scans import MatchOrchestrator
from eventlens.services.session import GuestSession


def make_image(
    width: int = 64, height: int = 48, image_format: str = "JPEG"
) -> bytes:
    """Return an encoded solid-color test image."""
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color=(200, 120, 40)).save(
        buffer, format=image_format
    )
    return buffer.getvalue()


@dataclass
class FakeMatchClient(MatchClient):
    """Fake match client returning scripted payloads per call.

    Each entry of ``responses`` is either a payload dict or an exception to
    raise. Calls beyond the script return no matches.
    """

    responses: list[dict[str, object] | Exception] = field(default_factory=list)
    calls: list[dict[str, object]] = field(default_factory=list)
    on_call: Callable[[int], None] | None = None
    delay_seconds: float = 0.0

    async def find_matches(  # noqa: PLR0913
        self,
        *,
        model: str,
        reasoning_effort: str | None,
        store: bool,
        reference_data_urls: list[str],
        candidate_data_urls: list[str],
        schema: dict[str, object],
        prompt: str,
    ) -> dict[str, object]:
        index = len(self.calls)
        self.calls.append(
            {
                "model": model,
                "references": reference_data_urls,
                "candidates": candidate_data_urls,
                "prompt": prompt,
            }
        )
        if self.on_call is not None:
            self.on_call(index)
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)
        if index < len(self.responses):
            response = self.responses[index]
            if isinstance(response, Exception):
                raise response
            return response
        return {"matches": []}

    @property
    def chunk_sizes(self) -> list[int]:
        return [len(call["candidates"]) for call in self.calls]


@dataclass
class ScriptedNormalizer(ImageNormalizer):
    """Normalizer that tags bytes instead of decoding them.

    Images listed in ``broken`` raise DecodeError; ``delays`` maps an image to
    the seconds its normalization should take.
    """

    broken: set[bytes] = field(default_factory=set)
    delays: dict[bytes, float] = field(default_factory=dict)
    calls: list[bytes] = field(default_factory=list)
    active: int = 0
    max_active: int = 0

    async def normalize(self, image: bytes) -> bytes:
        self.calls.append(image)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self.delays.get(image, 0))
            if image in self.broken:
                raise DecodeError("broken image")
            return b"norm:" + image
        finally:
            self.active -= 1


@dataclass
class FakeCamera(CameraDevice):
    """Camera returning a fixed frame."""

    frame: bytes | None = field(default_factory=make_image)
    fail_start: bool = False
    starts: int = 0
    stops: int = 0
    is_open: bool = False

    async def start(
        self, facing: str = "user", width: int = 1280, height: int = 720
    ) -> None:
        self.starts += 1
        if self.fail_start:
            raise DeviceError("permission denied")
        self.is_open = True

    async def read_frame(self) -> bytes | None:
        return self.frame

    def stop(self) -> None:
        self.stops += 1
        self.is_open = False


@dataclass
class FakeClock:
    """Virtual clock; sleeping advances time instantly."""

    current: float = 0.0

    def now(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds

    async def sleep(self, seconds: float) -> None:
        self.current += seconds
        await asyncio.sleep(0)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        openai_api_key="openai-key",
        photographer_token="photographer-token",
        environment="test",
    )


@pytest.fixture
def match_client() -> FakeMatchClient:
    return FakeMatchClient()


@pytest.fixture
def camera() -> FakeCamera:
    return FakeCamera()


@pytest.fixture
def container(
    settings: Settings, match_client: FakeMatchClient, camera: FakeCamera
) -> AppContainer:
    normalizer = ImageNormalizer()
    gallery = PhotoGallery()
    indexing_processor = IndexingProcessor(
        gallery=gallery, normalizer=normalizer, retry_delay_seconds=0
    )
    indexing_processor.attach()
    match_service = MatchService(
        client=match_client,
        model=settings.openai_model,
        reasoning_effort=settings.openai_reasoning_effort,
        store=settings.openai_store,
    )
    orchestrator = MatchOrchestrator(
        normalizer=normalizer, match_service=match_service
    )
    guest_session = GuestSession(
        gallery=gallery, normalizer=normalizer, orchestrator=orchestrator
    )

    def capture_factory() -> CaptureStateMachine:
        return CaptureStateMachine(
            camera=camera,
            normalizer=normalizer,
            step_seconds=settings.capture_step_seconds,
            tick_seconds=settings.capture_tick_seconds,
            finish_delay_seconds=settings.capture_finish_delay_seconds,
        )

    async def close_resources() -> None:
        await indexing_processor.wait_idle()

    return AppContainer(
        settings=settings,
        gallery=gallery,
        normalizer=normalizer,
        indexing_processor=indexing_processor,
        match_service=match_service,
        orchestrator=orchestrator,
        guest_session=guest_session,
        capture_factory=capture_factory,
        close_resources=close_resources,
    )
