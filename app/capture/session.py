"""Microphone-backed recording session with an elapsed-time clock."""

from __future__ import annotations

import logging
from typing import Callable, List, Optional

import numpy as np
from fastapi.concurrency import run_in_threadpool

from app.config.settings import settings
from app.domain.models import AudioArtifact

from .microphone import AudioStream, CaptureConstraints, CaptureError, MicrophoneBackend
from .scheduling import AsyncioScheduler, Scheduler, TimerHandle
from .states import (
    ACTIVE_STATES,
    CaptureEvent,
    InvalidTransitionError,
    RecordingState,
    transition,
)

logger = logging.getLogger(__name__)

StateListener = Callable[[RecordingState, RecordingState], None]

CLOCK_INTERVAL_SECONDS = 1.0


def format_duration(seconds: int) -> str:
    """Render whole seconds as ``m:ss``."""

    minutes, secs = divmod(max(0, int(seconds)), 60)
    return f"{minutes}:{secs:02d}"


class AudioCaptureSession:
    """Own one exclusive microphone stream and the recording state machine.

    The artifact exists exactly while the state is ``stopped``, ``processing``
    or ``completed``. Only one elapsed-time timer is ever live: the previous
    handle is cancelled before a new one is created.
    """

    def __init__(
        self,
        backend: MicrophoneBackend | None = None,
        *,
        scheduler: Scheduler | None = None,
        max_duration_seconds: int | None = None,
        auto_stop: bool | None = None,
        constraints: CaptureConstraints | None = None,
    ) -> None:
        self._backend = backend
        self._scheduler = scheduler or AsyncioScheduler()
        self._max_duration = (
            max_duration_seconds
            if max_duration_seconds is not None
            else settings.recorder.max_duration_seconds
        )
        self._auto_stop = settings.recorder.auto_stop if auto_stop is None else auto_stop
        self._constraints = constraints or CaptureConstraints.from_config()

        self._state = RecordingState.IDLE
        self._elapsed = 0
        self._artifact: AudioArtifact | None = None
        self._stream: AudioStream | None = None
        self._chunks: List[np.ndarray] = []
        self._timer: TimerHandle | None = None
        self._listeners: List[StateListener] = []
        # Bumped by teardown so a start still awaiting the device knows to back out.
        self._generation = 0
        self._opening = False
        self.error: str | None = None

    # ------------------------------------------------------------------ state
    @property
    def state(self) -> RecordingState:
        return self._state

    @property
    def elapsed_seconds(self) -> int:
        return self._elapsed

    @property
    def artifact(self) -> AudioArtifact | None:
        return self._artifact

    @property
    def max_duration_seconds(self) -> int:
        return self._max_duration

    @property
    def is_active(self) -> bool:
        return self._state in ACTIVE_STATES

    @property
    def has_live_timer(self) -> bool:
        return self._timer is not None

    def add_listener(self, listener: StateListener) -> Callable[[], None]:
        """Register ``listener(previous, current)``; returns an unsubscribe callable."""

        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    def _set_state(self, new_state: RecordingState) -> None:
        previous = self._state
        if previous is new_state:
            return
        self._state = new_state
        logger.debug("Capture state %s -> %s", previous.value, new_state.value)
        for listener in list(self._listeners):
            listener(previous, new_state)

    def _apply(self, event: CaptureEvent) -> None:
        self._set_state(transition(self._state, event))

    # ------------------------------------------------------------------ clock
    def _start_clock(self) -> None:
        self._cancel_clock()
        self._timer = self._scheduler.call_every(CLOCK_INTERVAL_SECONDS, self.tick)

    def _cancel_clock(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def tick(self) -> None:
        """Advance the clock by one second; auto-stops at the ceiling."""

        if self._state is not RecordingState.RECORDING:
            return
        next_value = self._elapsed + 1
        if self._auto_stop and next_value >= self._max_duration:
            self._elapsed = self._max_duration
            logger.info("Auto-stopping recording at %ss", self._max_duration)
            self.stop()
            return
        self._elapsed = next_value

    # -------------------------------------------------------------- lifecycle
    async def start(self) -> None:
        """Acquire the microphone and begin recording.

        Raises :class:`CaptureError` and stays ``idle`` when the device cannot
        be opened. There is no automatic retry.
        """

        next_state = transition(self._state, CaptureEvent.START)
        if self._backend is None:
            raise CaptureError("No microphone backend configured")
        if self._opening:
            raise CaptureError("The microphone is already being opened")

        self._release_stream()
        self.error = None
        generation = self._generation
        self._opening = True
        try:
            stream = await run_in_threadpool(self._backend.open, self._constraints)
        except CaptureError as exc:
            self._fail_start(exc)
            raise
        except Exception as exc:
            raise self._fail_start(exc) from exc
        finally:
            if generation == self._generation:
                self._opening = False

        if generation != self._generation:
            # Torn down while the device was opening: hand the stream straight back.
            logger.info("Capture torn down while opening the microphone; releasing stream")
            self._discard_stream(stream)
            return

        self._stream = stream
        try:
            stream.start(self._on_chunk)
        except Exception as exc:
            self._release_stream()
            error = self._fail_start(exc)
            if isinstance(exc, CaptureError):
                raise
            raise error from exc

        self._chunks = []
        self._elapsed = 0
        self._set_state(next_state)
        self._start_clock()

    def _fail_start(self, exc: Exception) -> CaptureError:
        self.error = str(exc) if isinstance(exc, CaptureError) else f"Failed to start recording: {exc}"
        logger.warning("Failed to start recording: %s", exc)
        return CaptureError(self.error)

    def _on_chunk(self, chunk: np.ndarray) -> None:
        self._chunks.append(chunk)

    def toggle_pause(self) -> RecordingState:
        """Pause a recording or resume a paused one; the clock follows."""

        if self._state is RecordingState.RECORDING:
            self._apply(CaptureEvent.PAUSE)
            self._cancel_clock()
            if self._stream is not None:
                self._stream.pause()
        elif self._state is RecordingState.PAUSED:
            self._apply(CaptureEvent.RESUME)
            if self._stream is not None:
                self._stream.resume()
            self._start_clock()
        else:
            raise InvalidTransitionError(self._state, CaptureEvent.PAUSE)
        return self._state

    def stop(self) -> AudioArtifact | None:
        """Finalize the artifact and release the hardware handle.

        A stop without an active recorder is a no-op.
        """

        if self._state not in ACTIVE_STATES or self._stream is None:
            logger.debug("Stop requested while %s; ignoring", self._state.value)
            return self._artifact

        self._cancel_clock()
        stream = self._stream
        stream.stop()
        data = stream.encode(self._chunks)
        self._chunks = []
        self._release_stream()

        self._artifact = AudioArtifact(
            data=data,
            mime_type=stream.mime_type,
            duration_seconds=float(self._elapsed),
        )
        self._apply(CaptureEvent.STOP)
        logger.info(
            "Recording stopped after %ss (%d bytes, %s)",
            self._elapsed,
            len(data),
            stream.mime_type,
        )
        return self._artifact

    def adopt(self, artifact: AudioArtifact, elapsed_seconds: float | None = None) -> None:
        """Take ownership of an artifact recorded elsewhere (e.g. a browser upload)."""

        next_state = transition(self._state, CaptureEvent.ADOPT)
        seconds = elapsed_seconds if elapsed_seconds is not None else artifact.duration_seconds
        self._elapsed = min(int(round(seconds or 0)), self._max_duration)
        self._artifact = artifact
        self._set_state(next_state)

    def begin_processing(self) -> AudioArtifact:
        if self._artifact is None:
            raise InvalidTransitionError(self._state, CaptureEvent.ANALYZE)
        self._apply(CaptureEvent.ANALYZE)
        return self._artifact

    def mark_completed(self) -> None:
        self._apply(CaptureEvent.COMPLETE)

    def mark_failed(self) -> None:
        self._apply(CaptureEvent.FAIL)

    def reset(self) -> None:
        """Drop the artifact and return to ``idle`` (from stopped/completed)."""

        next_state = transition(self._state, CaptureEvent.RESET)
        self._cancel_clock()
        self._artifact = None
        self._elapsed = 0
        self._chunks = []
        self._set_state(next_state)

    def teardown(self) -> None:
        """Release everything regardless of state, including a start still opening the device."""

        self._generation += 1
        self._opening = False
        self._cancel_clock()
        if self._stream is not None:
            try:
                self._stream.stop()
            except Exception:  # pragma: no cover - best effort during teardown
                logger.exception("Error stopping microphone stream during teardown")
        self._release_stream()
        self._chunks = []
        self._artifact = None
        self._elapsed = 0
        self._set_state(RecordingState.IDLE)

    def _release_stream(self) -> None:
        stream, self._stream = self._stream, None
        if stream is not None:
            self._discard_stream(stream)

    @staticmethod
    def _discard_stream(stream: AudioStream) -> None:
        try:
            stream.release()
        except Exception:  # pragma: no cover - best effort release
            logger.exception("Error releasing microphone stream")

    # ------------------------------------------------------------- observers
    def latest_samples(self) -> Optional[np.ndarray]:
        if self._state is not RecordingState.RECORDING or self._stream is None:
            return None
        return self._stream.latest_samples()

    def format_elapsed(self) -> str:
        return format_duration(self._elapsed)


__all__ = ["AudioCaptureSession", "StateListener", "format_duration"]
