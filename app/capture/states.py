"""Recording state machine as a pure transition table.

Backend callbacks and public session methods never assign states directly;
they ask :func:`transition` for the next state so every legal move is listed
in one place and can be tested without a microphone.
"""

from __future__ import annotations

from enum import Enum
from typing import Final, Mapping


class RecordingState(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"
    PAUSED = "paused"
    STOPPED = "stopped"
    PROCESSING = "processing"
    COMPLETED = "completed"


class CaptureEvent(str, Enum):
    START = "start"
    PAUSE = "pause"
    RESUME = "resume"
    STOP = "stop"
    ANALYZE = "analyze"
    COMPLETE = "complete"
    FAIL = "fail"
    RESET = "reset"
    ADOPT = "adopt"


class InvalidTransitionError(RuntimeError):
    """Raised when an event is not legal in the current recording state."""

    def __init__(self, state: RecordingState, event: CaptureEvent) -> None:
        super().__init__(f"Cannot apply '{event.value}' while {state.value}")
        self.state = state
        self.event = event


_TRANSITIONS: Final[Mapping[tuple[RecordingState, CaptureEvent], RecordingState]] = {
    (RecordingState.IDLE, CaptureEvent.START): RecordingState.RECORDING,
    (RecordingState.IDLE, CaptureEvent.ADOPT): RecordingState.STOPPED,
    (RecordingState.RECORDING, CaptureEvent.PAUSE): RecordingState.PAUSED,
    (RecordingState.PAUSED, CaptureEvent.RESUME): RecordingState.RECORDING,
    (RecordingState.RECORDING, CaptureEvent.STOP): RecordingState.STOPPED,
    (RecordingState.PAUSED, CaptureEvent.STOP): RecordingState.STOPPED,
    (RecordingState.STOPPED, CaptureEvent.ANALYZE): RecordingState.PROCESSING,
    (RecordingState.PROCESSING, CaptureEvent.COMPLETE): RecordingState.COMPLETED,
    # Failed processing keeps the artifact so the caller may re-record or retry.
    (RecordingState.PROCESSING, CaptureEvent.FAIL): RecordingState.STOPPED,
    (RecordingState.STOPPED, CaptureEvent.RESET): RecordingState.IDLE,
    (RecordingState.COMPLETED, CaptureEvent.RESET): RecordingState.IDLE,
}

ARTIFACT_STATES: Final[frozenset[RecordingState]] = frozenset(
    {RecordingState.STOPPED, RecordingState.PROCESSING, RecordingState.COMPLETED}
)
ACTIVE_STATES: Final[frozenset[RecordingState]] = frozenset(
    {RecordingState.RECORDING, RecordingState.PAUSED}
)


def transition(state: RecordingState, event: CaptureEvent) -> RecordingState:
    """Return the state reached by applying ``event`` to ``state``."""

    try:
        return _TRANSITIONS[(state, event)]
    except KeyError:
        raise InvalidTransitionError(state, event) from None


def can_transition(state: RecordingState, event: CaptureEvent) -> bool:
    return (state, event) in _TRANSITIONS


__all__ = [
    "ACTIVE_STATES",
    "ARTIFACT_STATES",
    "CaptureEvent",
    "InvalidTransitionError",
    "RecordingState",
    "can_transition",
    "transition",
]
