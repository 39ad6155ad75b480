"""
Host audio for the live voice session.

This module provides:
- PCM16 helpers to convert between float samples and the little-endian 16-bit frames
  exchanged with Gemini Live
- AudioPipeline, a capture or playback pipeline at a fixed sample rate with its own
  monotonic clock and an idempotent close()
- Microphone, the exclusive capture handle
- PyAudioBackend, the default platform implementation on top of PyAudio

PyAudio is imported when a device is actually opened, so the rest of the
application (and its tests) can run on hosts without PortAudio.
"""

import asyncio
import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Callable, Optional

import numpy as np

from replydesk.config.constants import LOGGER_NAME, PCM16_SAMPLE_WIDTH, PLAYBACK_SLICE_FRAMES
from replydesk.services.errors import MicrophonePermissionError

logger = logging.getLogger(LOGGER_NAME)


def encode_pcm16(samples) -> bytes:
    """Convert float samples in [-1, 1] to little-endian 16-bit PCM bytes."""
    data = np.asarray(samples, dtype=np.float32)
    scaled = np.clip(data * 32768.0, -32768, 32767)
    return scaled.astype("<i2").tobytes()


def decode_pcm16(data: bytes) -> np.ndarray:
    """Convert little-endian 16-bit PCM bytes to float32 samples in [-1, 1)."""
    return np.frombuffer(data, dtype="<i2").astype(np.float32) / 32768.0


def pcm_duration(data: bytes, sample_rate: int) -> float:
    """Playback duration in seconds of mono PCM16 data."""
    return len(data) / PCM16_SAMPLE_WIDTH / sample_rate


class Microphone:
    """Exclusive capture handle. Releasing twice is a no-op."""

    def __init__(self, device_index: Optional[int] = None, release: Optional[Callable[[], None]] = None):
        self.device_index = device_index
        self._release = release
        self.released = False

    def release(self) -> None:
        if self.released:
            return
        self.released = True
        if self._release:
            self._release()
        logger.info("Microphone released")


class PlaybackSource:
    """One scheduled chunk of output audio."""

    def __init__(self, task: asyncio.Task, start_time: float, duration: float):
        self.task = task
        self.start_time = start_time
        self.duration = duration

    @property
    def end_time(self) -> float:
        return self.start_time + self.duration

    @property
    def finished(self) -> bool:
        return self.task.done()

    def add_done_callback(self, callback: Callable[["PlaybackSource"], None]) -> None:
        self.task.add_done_callback(lambda _: callback(self))

    def stop(self) -> None:
        if not self.task.done():
            self.task.cancel()


class AudioPipeline(ABC):
    """
    Audio-processing pipeline at a fixed sample rate.

    current_time is a monotonic clock in seconds since the pipeline was opened and is
    the reference for playback scheduling.
    """

    def __init__(self, sample_rate: int):
        self.sample_rate = sample_rate
        self.closed = False
        self._opened_at = time.monotonic()

    @property
    def current_time(self) -> float:
        return time.monotonic() - self._opened_at

    @abstractmethod
    def start_capture(
        self, microphone: Microphone, block_size: int, on_block: Callable[[np.ndarray], None]
    ) -> None:
        """Deliver fixed-size blocks of captured float samples to on_block on the event loop."""

    @abstractmethod
    def play(self, pcm: bytes, start_time: float) -> PlaybackSource:
        """Schedule PCM16 data to start playing at start_time on this pipeline's clock."""

    def close(self) -> None:
        """Release the pipeline. Closing an already closed pipeline is a no-op."""
        if self.closed:
            return
        self.closed = True
        self._release()
        logger.info(f"Audio pipeline at {self.sample_rate} Hz closed")

    def _release(self) -> None:
        pass


class PyAudioPipeline(AudioPipeline):
    """PortAudio-backed pipeline using float32 mono streams."""

    def __init__(self, sample_rate: int):
        import pyaudio

        super().__init__(sample_rate)
        self._pyaudio = pyaudio
        self._pa = pyaudio.PyAudio()
        self._stream = None
        self._write_lock = asyncio.Lock()
        self._stream_lock = threading.Lock()

    def start_capture(self, microphone, block_size, on_block):
        loop = asyncio.get_running_loop()

        def callback(in_data, frame_count, time_info, status):
            samples = np.frombuffer(in_data, dtype=np.float32).copy()
            loop.call_soon_threadsafe(on_block, samples)
            return (None, self._pyaudio.paContinue)

        self._stream = self._pa.open(
            format=self._pyaudio.paFloat32,
            channels=1,
            rate=self.sample_rate,
            input=True,
            input_device_index=microphone.device_index,
            frames_per_buffer=block_size,
            stream_callback=callback,
        )
        self._stream.start_stream()
        logger.info(f"Capture started at {self.sample_rate} Hz, {block_size} frames per block")

    def _output_stream(self):
        if self._stream is None:
            self._stream = self._pa.open(
                format=self._pyaudio.paFloat32,
                channels=1,
                rate=self.sample_rate,
                output=True,
            )
        return self._stream

    def _write_slice(self, data: bytes) -> bool:
        """Blocking write of one slice; returns False once the pipeline is closed."""
        with self._stream_lock:
            if self.closed:
                return False
            self._output_stream().write(data)
            return True

    def play(self, pcm, start_time):
        duration = pcm_duration(pcm, self.sample_rate)

        async def run():
            delay = start_time - self.current_time
            if delay > 0:
                await asyncio.sleep(delay)
            samples = decode_pcm16(pcm)
            async with self._write_lock:
                # Cancellation takes effect between slices, so a stopped chunk
                # plays at most one more slice
                for offset in range(0, len(samples), PLAYBACK_SLICE_FRAMES):
                    chunk = samples[offset:offset + PLAYBACK_SLICE_FRAMES].tobytes()
                    if not await asyncio.to_thread(self._write_slice, chunk):
                        return

        return PlaybackSource(asyncio.create_task(run()), start_time, duration)

    def _release(self):
        # Waits for a writer thread to leave stream.write before the stream goes away
        with self._stream_lock:
            stream, self._stream = self._stream, None
            if stream is not None:
                try:
                    stream.stop_stream()
                    stream.close()
                except Exception as e:
                    logger.warning(f"Error closing audio stream: {e}")
            self._pa.terminate()


class PyAudioBackend:
    """Default platform audio backend."""

    async def acquire_microphone(self) -> Microphone:
        """
        Acquire the default input device.

        Raises:
            MicrophonePermissionError: if there is no usable input device or access is refused
        """
        return await asyncio.to_thread(self._probe_microphone)

    def _probe_microphone(self) -> Microphone:
        try:
            import pyaudio
        except ImportError as e:
            raise MicrophonePermissionError(f"Audio support is not installed: {e}") from e

        pa = pyaudio.PyAudio()
        try:
            info = pa.get_default_input_device_info()
        except (IOError, OSError) as e:
            pa.terminate()
            raise MicrophonePermissionError(str(e)) from e

        if int(info.get("maxInputChannels", 0)) < 1:
            pa.terminate()
            raise MicrophonePermissionError("Default input device has no input channels")

        logger.info(f"Microphone acquired: {info.get('name')}")
        return Microphone(int(info["index"]), release=pa.terminate)

    def open_pipeline(self, sample_rate: int) -> AudioPipeline:
        return PyAudioPipeline(sample_rate)
