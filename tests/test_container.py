"""Tests for container wiring."""

import asyncio

from eventlens.containers import build_container


def test_build_container_creates_services(settings) -> None:
    container = build_container(settings)

    assert container.guest_session.gallery is container.gallery
    assert container.orchestrator.chunk_size == 4
    assert container.indexing_processor.batch_size == 3
    machine = container.capture_factory()
    assert machine.step_seconds == 4.5
    asyncio.run(container.close_resources())
