"""Waveform sampling loop follows the recording state."""

from __future__ import annotations

import numpy as np
import pytest

from app.capture import WaveformMonitor, bar_heights, rms_amplitude
from app.capture.waveform import visible_bar_count

pytestmark = pytest.mark.anyio

FRAME = 1 / 60


class CollectingRenderer:
    def __init__(self) -> None:
        self.frames = []

    def render(self, history) -> None:
        self.frames.append(list(history))


def test_visible_bar_count_matches_default_canvas():
    assert visible_bar_count() == 100


def test_rms_amplitude_float_and_uint8():
    assert rms_amplitude(np.zeros(128, dtype=np.float32)) == 0.0
    assert rms_amplitude(np.full(64, 0.1, dtype=np.float32), gain=4.0) == pytest.approx(0.4)
    assert rms_amplitude(np.full(64, 128, dtype=np.uint8)) == 0.0
    assert rms_amplitude(np.full(64, 0.9, dtype=np.float32), gain=4.0) == 1.0


def test_bar_heights_have_a_floor():
    assert bar_heights([0.0, 0.5, 1.0], height=100) == [4.0, 45.0, 90.0]


async def test_loop_runs_only_while_recording(capture, microphone, scheduler):
    renderer = CollectingRenderer()
    monitor = WaveformMonitor(capture, scheduler=scheduler, renderer=renderer, bar_count=5, fps=60)
    assert not monitor.is_running

    await capture.start()
    assert monitor.is_running
    microphone.stream.emit([0.1] * 32)
    scheduler.advance(3, interval=FRAME)
    assert len(renderer.frames) == 3
    assert monitor.history[-1] == pytest.approx(0.4)

    capture.toggle_pause()
    assert not monitor.is_running
    scheduler.advance(10, interval=FRAME)
    assert len(renderer.frames) == 3

    capture.toggle_pause()
    assert monitor.is_running
    capture.stop()
    assert not monitor.is_running
    assert [t.interval for t in scheduler.active_timers] == []


async def test_history_is_fixed_length(capture, microphone, scheduler):
    monitor = WaveformMonitor(capture, scheduler=scheduler, bar_count=4, fps=60)
    await capture.start()

    for level in (0.05, 0.1, 0.15, 0.2, 0.25, 0.3):
        microphone.stream.emit([level] * 16)
        scheduler.advance(1, interval=FRAME)

    history = monitor.history
    assert len(history) == 4
    assert history == pytest.approx([0.6, 0.8, 1.0, 1.0])


async def test_close_unsubscribes(capture, scheduler):
    monitor = WaveformMonitor(capture, scheduler=scheduler, fps=60)
    monitor.close()
    await capture.start()

    assert not monitor.is_running
    assert all(t.interval != FRAME for t in scheduler.active_timers)


async def test_sampling_never_changes_the_artifact(capture, microphone, scheduler):
    WaveformMonitor(capture, scheduler=scheduler, fps=60)
    await capture.start()
    microphone.stream.emit([0.25] * 8)
    scheduler.advance(20, interval=FRAME)
    artifact = capture.stop()

    assert len(artifact.data) == 44 + 8 * 2
