"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from eventlens.adapters.openai_match_client import OpenAIMatchClient
from eventlens.adapters.opencv_camera import OpenCVCamera
from eventlens.config import Settings
from eventlens.services.capture import CaptureStateMachine
from eventlens.services.gallery import PhotoGallery
from eventlens.services.indexing import IndexingProcessor
from eventlens.services.matching import MatchService
from eventlens.services.normalizer import ImageNormalizer
from eventlens.services.scans import MatchOrchestrator
from eventlens.services.session import GuestSession


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    gallery: PhotoGallery
    normalizer: ImageNormalizer
    indexing_processor: IndexingProcessor
    match_service: MatchService
    orchestrator: MatchOrchestrator
    guest_session: GuestSession
    capture_factory: Callable[[], CaptureStateMachine]
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    normalizer = ImageNormalizer(
        max_width=resolved_settings.normalize_max_width,
        quality=resolved_settings.normalize_quality,
    )
    gallery = PhotoGallery()
    indexing_processor = IndexingProcessor(
        gallery=gallery,
        normalizer=normalizer,
        batch_size=resolved_settings.index_batch_size,
        retry_delay_seconds=resolved_settings.index_retry_delay_seconds,
    )
    indexing_processor.attach()
    openai_client = OpenAIMatchClient.create(resolved_settings.openai_api_key)
    match_service = MatchService(
        client=openai_client,
        model=resolved_settings.openai_model,
        reasoning_effort=resolved_settings.openai_reasoning_effort,
        store=resolved_settings.openai_store,
        timeout_seconds=resolved_settings.match_timeout_seconds,
        retry_attempts=resolved_settings.match_retry_attempts,
    )
    orchestrator = MatchOrchestrator(
        normalizer=normalizer,
        match_service=match_service,
        chunk_size=resolved_settings.match_chunk_size,
    )
    guest_session = GuestSession(
        gallery=gallery,
        normalizer=normalizer,
        orchestrator=orchestrator,
    )

    def capture_factory() -> CaptureStateMachine:
        return CaptureStateMachine(
            camera=OpenCVCamera(device_index=resolved_settings.camera_index),
            normalizer=normalizer,
            step_seconds=resolved_settings.capture_step_seconds,
            tick_seconds=resolved_settings.capture_tick_seconds,
            finish_delay_seconds=resolved_settings.capture_finish_delay_seconds,
        )

    async def close_resources() -> None:
        await indexing_processor.wait_idle()
        await openai_client.close()

    return AppContainer(
        settings=resolved_settings,
        gallery=gallery,
        normalizer=normalizer,
        indexing_processor=indexing_processor,
        match_service=match_service,
        orchestrator=orchestrator,
        guest_session=guest_session,
        capture_factory=capture_factory,
        close_resources=close_resources,
    )
