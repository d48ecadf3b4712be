"""Tests for the guided capture state machine."""

import asyncio

import pytest

from eventlens.domain.capture import CaptureStep
from eventlens.domain.errors import CaptureError, DeviceError
from eventlens.services.capture import CaptureStateMachine
from tests.conftest import FakeCamera, FakeClock, ScriptedNormalizer


def _machine(camera: FakeCamera, clock: FakeClock) -> CaptureStateMachine:
    return CaptureStateMachine(
        camera=camera, normalizer=ScriptedNormalizer(), clock=clock
    )


def test_four_pose_durations_complete_the_capture() -> None:
    camera = FakeCamera(frame=b"frame")
    clock = FakeClock()
    machine = _machine(camera, clock)

    async def scenario() -> list[CaptureStep]:
        await machine.open()
        assert machine.step is CaptureStep.IDLE
        machine.start()
        steps = [machine.step]
        for _ in range(4):
            clock.advance(4.5)
            steps.append(await machine.tick())
        return steps

    steps = asyncio.run(scenario())

    assert steps == [
        CaptureStep.STRAIGHT,
        CaptureStep.LEFT,
        CaptureStep.RIGHT,
        CaptureStep.SMILE,
        CaptureStep.COMPLETED,
    ]
    assert machine.reference_set is not None
    assert len(machine.reference_set.frames) == 4
    assert machine.step_progress_percent == 100.0


def test_step_progress_advances_linearly() -> None:
    clock = FakeClock()
    machine = _machine(FakeCamera(), clock)

    async def scenario() -> list[float]:
        await machine.open()
        machine.start()
        progress = []
        for _ in range(3):
            clock.advance(1.125)
            await machine.tick()
            progress.append(machine.step_progress_percent)
        return progress

    assert asyncio.run(scenario()) == [25.0, 50.0, 75.0]
    assert machine.step is CaptureStep.STRAIGHT


@pytest.mark.parametrize(
    ("completed_poses", "step"),
    [
        (0, CaptureStep.STRAIGHT),
        (1, CaptureStep.LEFT),
        (2, CaptureStep.RIGHT),
        (3, CaptureStep.SMILE),
    ],
)
def test_cancel_mid_sequence_releases_camera_and_discards_frames(
    completed_poses: int, step: CaptureStep
) -> None:
    camera = FakeCamera()
    clock = FakeClock()
    machine = _machine(camera, clock)

    async def scenario() -> None:
        await machine.open()
        machine.start()
        for _ in range(completed_poses):
            clock.advance(4.5)
            await machine.tick()

    asyncio.run(scenario())
    assert machine.step is step
    assert machine.snapshot().frames_collected == completed_poses

    machine.cancel()

    assert machine.step is CaptureStep.IDLE
    assert machine.reference_set is None
    assert machine.snapshot().frames_collected == 0
    assert camera.stops == 1
    assert not camera.is_open


def test_missing_frame_halts_capture() -> None:
    camera = FakeCamera(frame=None)
    clock = FakeClock()
    machine = _machine(camera, clock)

    async def scenario() -> None:
        await machine.open()
        machine.start()
        clock.advance(4.5)
        await machine.tick()

    with pytest.raises(CaptureError):
        asyncio.run(scenario())

    assert machine.step is CaptureStep.IDLE
    assert machine.reference_set is None
    assert camera.stops == 1


def test_camera_failure_keeps_machine_idle() -> None:
    camera = FakeCamera(fail_start=True)
    machine = _machine(camera, FakeClock())

    with pytest.raises(DeviceError):
        asyncio.run(machine.run())

    assert machine.step is CaptureStep.IDLE
    assert machine.error is not None
    assert "camera" in machine.error.lower()
    assert camera.stops == 0


def test_start_requires_open_camera() -> None:
    machine = _machine(FakeCamera(), FakeClock())

    with pytest.raises(DeviceError):
        machine.start()


def test_run_completes_and_releases_camera() -> None:
    camera = FakeCamera(frame=b"frame")
    clock = FakeClock()
    machine = CaptureStateMachine(
        camera=camera,
        normalizer=ScriptedNormalizer(),
        clock=clock,
        step_seconds=1.0,
        tick_seconds=0.25,
        finish_delay_seconds=1.0,
    )

    reference_set = asyncio.run(machine.run())

    assert reference_set.frames == (b"norm:frame",) * 4
    assert reference_set.thumbnail == b"norm:frame"
    assert machine.step is CaptureStep.COMPLETED
    assert clock.now() == 5.0
    assert camera.stops == 1


def test_cancelling_run_task_releases_camera() -> None:
    camera = FakeCamera()
    machine = CaptureStateMachine(
        camera=camera,
        normalizer=ScriptedNormalizer(),
        step_seconds=60.0,
        tick_seconds=0.001,
    )

    async def scenario() -> None:
        task = asyncio.create_task(machine.run())
        await asyncio.sleep(0.01)
        assert machine.step is CaptureStep.STRAIGHT
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(scenario())

    assert camera.stops == 1
    assert machine.step is CaptureStep.IDLE
    assert machine.reference_set is None
