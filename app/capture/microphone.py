"""Microphone backends for :class:`app.capture.session.AudioCaptureSession`.

The session only talks to the :class:`MicrophoneBackend` protocol. The
default implementation records through PortAudio with ``sounddevice`` and
encodes the captured chunks as 16-bit PCM WAV.
"""

from __future__ import annotations

import io
import logging
import threading
import wave
from dataclasses import dataclass
from typing import Callable, Optional, Protocol, Sequence

import numpy as np

from app.config.settings import RecorderConfig, settings

logger = logging.getLogger(__name__)

ChunkCallback = Callable[[np.ndarray], None]


class CaptureError(RuntimeError):
    """Raised when the microphone cannot be acquired or fails mid-recording."""


@dataclass(frozen=True)
class CaptureConstraints:
    """Requested properties of the exclusive microphone stream."""

    channels: int = 1
    sample_rate: int = 48000
    echo_cancellation: bool = True
    noise_suppression: bool = True
    auto_gain_control: bool = True

    @classmethod
    def from_config(cls, config: RecorderConfig | None = None) -> "CaptureConstraints":
        config = config or settings.recorder
        return cls(
            channels=config.channels,
            sample_rate=config.sample_rate,
            echo_cancellation=config.echo_cancellation,
            noise_suppression=config.noise_suppression,
            auto_gain_control=config.auto_gain_control,
        )


class AudioStream(Protocol):
    """A live, exclusively-held input stream."""

    mime_type: str

    def start(self, on_chunk: ChunkCallback) -> None: ...

    def pause(self) -> None: ...

    def resume(self) -> None: ...

    def stop(self) -> None: ...

    def release(self) -> None: ...

    def latest_samples(self) -> Optional[np.ndarray]: ...

    def encode(self, chunks: Sequence[np.ndarray]) -> bytes: ...


class MicrophoneBackend(Protocol):
    def open(self, constraints: CaptureConstraints) -> AudioStream: ...


def encode_wav(chunks: Sequence[np.ndarray], *, sample_rate: int, channels: int) -> bytes:
    """Concatenate float32 chunks in [-1, 1] and return a 16-bit PCM WAV file."""

    if chunks:
        data = np.concatenate(chunks, axis=0)
    else:
        data = np.zeros((0, channels), dtype=np.float32)

    scaled = np.int16(np.clip(data, -1.0, 1.0) * 32767)
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(2)
        wf.setframerate(sample_rate)
        wf.writeframes(scaled.tobytes())
    return buffer.getvalue()


class _SoundDeviceStream:
    mime_type = "audio/wav"

    def __init__(self, sd_module, constraints: CaptureConstraints) -> None:
        self._sd = sd_module
        self._constraints = constraints
        self._on_chunk: ChunkCallback | None = None
        self._paused = threading.Event()
        self._latest: Optional[np.ndarray] = None
        self._stream = sd_module.InputStream(
            samplerate=constraints.sample_rate,
            channels=constraints.channels,
            dtype="float32",
            callback=self._callback,
        )

    def _callback(self, indata: np.ndarray, _frames: int, _time, status) -> None:
        # Runs on the PortAudio thread.
        if status:
            logger.debug("Recording status: %s", status)
        if self._paused.is_set():
            return
        chunk = indata.copy()
        self._latest = chunk[:, 0]
        if self._on_chunk is not None:
            self._on_chunk(chunk)

    def start(self, on_chunk: ChunkCallback) -> None:
        self._on_chunk = on_chunk
        try:
            self._stream.start()
        except self._sd.PortAudioError as exc:
            raise CaptureError(f"Unable to start recording: {exc}") from exc

    def pause(self) -> None:
        self._paused.set()

    def resume(self) -> None:
        self._paused.clear()

    def stop(self) -> None:
        self._stream.stop()
        self._on_chunk = None

    def release(self) -> None:
        self._stream.close()
        self._latest = None

    def latest_samples(self) -> Optional[np.ndarray]:
        if self._paused.is_set():
            return None
        return self._latest

    def encode(self, chunks: Sequence[np.ndarray]) -> bytes:
        return encode_wav(
            chunks,
            sample_rate=self._constraints.sample_rate,
            channels=self._constraints.channels,
        )


class SoundDeviceMicrophone:
    """Open the default input device through PortAudio."""

    def __init__(self, device: int | str | None = None) -> None:
        self._device = device

    def open(self, constraints: CaptureConstraints) -> AudioStream:
        # Imported lazily: PortAudio is only needed on machines that record.
        try:
            import sounddevice as sd
        except (ImportError, OSError) as exc:
            raise CaptureError(
                "Audio recording not supported on this machine (sounddevice/PortAudio unavailable)"
            ) from exc

        if constraints.echo_cancellation or constraints.noise_suppression or constraints.auto_gain_control:
            logger.debug(
                "PortAudio does not apply echo cancellation, noise suppression or AGC; "
                "relying on the OS input pipeline"
            )

        if self._device is not None:
            sd.default.device = (self._device, sd.default.device[1])

        try:
            return _SoundDeviceStream(sd, constraints)
        except sd.PortAudioError as exc:
            raise CaptureError(f"Microphone unavailable: {exc}") from exc


__all__ = [
    "AudioStream",
    "CaptureConstraints",
    "CaptureError",
    "ChunkCallback",
    "MicrophoneBackend",
    "SoundDeviceMicrophone",
    "encode_wav",
]
