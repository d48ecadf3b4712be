"""Domain models for guided multi-angle capture."""

from dataclasses import dataclass
from enum import StrEnum


class CaptureStep(StrEnum):
    """Capture states in their fixed order."""

    IDLE = "IDLE"
    STRAIGHT = "STRAIGHT"
    LEFT = "LEFT"
    RIGHT = "RIGHT"
    SMILE = "SMILE"
    COMPLETED = "COMPLETED"


POSE_SEQUENCE: tuple[CaptureStep, ...] = (
    CaptureStep.STRAIGHT,
    CaptureStep.LEFT,
    CaptureStep.RIGHT,
    CaptureStep.SMILE,
)


def next_step(step: CaptureStep) -> CaptureStep:
    """Return the state following a pose."""
    index = POSE_SEQUENCE.index(step)
    if index + 1 < len(POSE_SEQUENCE):
        return POSE_SEQUENCE[index + 1]
    return CaptureStep.COMPLETED


@dataclass(frozen=True)
class CaptureSnapshot:
    """Point-in-time view of a capture for the UI."""

    step: CaptureStep
    step_progress_percent: float
    frames_collected: int
    error: str | None = None
