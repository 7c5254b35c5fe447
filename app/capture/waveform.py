"""Scrolling amplitude visualization for a live recording.

Purely observational: the monitor reads the latest sample buffer from the
capture session and never touches the recorded chunks.
"""

from __future__ import annotations

import logging
import math
from collections import deque
from typing import Callable, Deque, List, Optional, Protocol, Sequence

import numpy as np

from app.config.settings import RecorderConfig, settings

from .scheduling import AsyncioScheduler, Scheduler, TimerHandle
from .session import AudioCaptureSession
from .states import RecordingState

logger = logging.getLogger(__name__)

MIN_BAR_HEIGHT = 4.0


class WaveformRenderer(Protocol):
    def render(self, history: Sequence[float]) -> None: ...


def visible_bar_count(config: RecorderConfig | None = None) -> int:
    config = config or settings.recorder
    return math.ceil(config.waveform_width / (config.waveform_bar_width + config.waveform_bar_gap))


def rms_amplitude(samples: np.ndarray, gain: float = 4.0) -> float:
    """Root-mean-square level of ``samples`` scaled by ``gain`` and capped at 1.

    Unsigned 8-bit buffers (centred on 128) are normalised first; float
    buffers are assumed to already lie in [-1, 1].
    """

    if samples is None or samples.size == 0:
        return 0.0
    if samples.dtype == np.uint8:
        values = (samples.astype(np.float64) - 128.0) / 128.0
    else:
        values = samples.astype(np.float64)
    rms = float(np.sqrt(np.mean(np.square(values))))
    return min(rms * gain, 1.0)


def bar_heights(history: Sequence[float], height: float, minimum: float = MIN_BAR_HEIGHT) -> List[float]:
    """Pixel heights for each bar of a canvas ``height`` pixels tall."""

    return [max(height * amplitude * 0.9, minimum) for amplitude in history]


class WaveformMonitor:
    """Sample the session's live audio once per frame while it is recording."""

    def __init__(
        self,
        session: AudioCaptureSession,
        *,
        scheduler: Scheduler | None = None,
        renderer: WaveformRenderer | None = None,
        bar_count: int | None = None,
        gain: float | None = None,
        fps: int | None = None,
    ) -> None:
        self._session = session
        self._scheduler = scheduler or AsyncioScheduler()
        self._renderer = renderer
        self._gain = settings.recorder.waveform_gain if gain is None else gain
        self._frame_interval = 1.0 / (fps or settings.recorder.waveform_fps)
        size = bar_count or visible_bar_count()
        self._history: Deque[float] = deque([0.0] * size, maxlen=size)
        self._frame: TimerHandle | None = None
        self._unsubscribe: Optional[Callable[[], None]] = session.add_listener(self._on_state_change)
        if session.state is RecordingState.RECORDING:
            self._start_loop()

    @property
    def history(self) -> List[float]:
        return list(self._history)

    @property
    def is_running(self) -> bool:
        return self._frame is not None

    @property
    def frame_interval(self) -> float:
        return self._frame_interval

    def _on_state_change(self, _previous: RecordingState, current: RecordingState) -> None:
        if current is RecordingState.RECORDING:
            self._start_loop()
        else:
            self._cancel_loop()

    def _start_loop(self) -> None:
        self._cancel_loop()
        self._frame = self._scheduler.call_every(self._frame_interval, self.sample)

    def _cancel_loop(self) -> None:
        if self._frame is not None:
            self._frame.cancel()
            self._frame = None

    def sample(self) -> None:
        samples = self._session.latest_samples()
        if samples is None:
            return
        self._history.append(rms_amplitude(samples, self._gain))
        if self._renderer is not None:
            self._renderer.render(tuple(self._history))

    def close(self) -> None:
        self._cancel_loop()
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None


__all__ = [
    "MIN_BAR_HEIGHT",
    "WaveformMonitor",
    "WaveformRenderer",
    "bar_heights",
    "rms_amplitude",
    "visible_bar_count",
]
