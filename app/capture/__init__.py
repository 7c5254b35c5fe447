"""Audio capture: recording state machine, microphone backends and waveform."""

from .microphone import (
    AudioStream,
    CaptureConstraints,
    CaptureError,
    MicrophoneBackend,
    SoundDeviceMicrophone,
)
from .scheduling import AsyncioScheduler, ManualScheduler, Scheduler
from .session import AudioCaptureSession, format_duration
from .states import (
    ARTIFACT_STATES,
    CaptureEvent,
    InvalidTransitionError,
    RecordingState,
    transition,
)
from .waveform import WaveformMonitor, bar_heights, rms_amplitude

__all__ = [
    "ARTIFACT_STATES",
    "AsyncioScheduler",
    "AudioCaptureSession",
    "AudioStream",
    "CaptureConstraints",
    "CaptureError",
    "CaptureEvent",
    "InvalidTransitionError",
    "ManualScheduler",
    "MicrophoneBackend",
    "RecordingState",
    "Scheduler",
    "SoundDeviceMicrophone",
    "WaveformMonitor",
    "bar_heights",
    "format_duration",
    "rms_amplitude",
    "transition",
]
