import asyncio
import threading
import time
from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from replydesk.bot.audio import (
    AudioPipeline,
    Microphone,
    PyAudioBackend,
    PyAudioPipeline,
    decode_pcm16,
    encode_pcm16,
    pcm_duration,
)
from replydesk.config.constants import PCM16_SAMPLE_WIDTH, PLAYBACK_SLICE_FRAMES
from replydesk.services.errors import MicrophonePermissionError


class SilentPipeline(AudioPipeline):
    def start_capture(self, microphone, block_size, on_block):
        pass

    def play(self, pcm, start_time):
        raise RuntimeError("no output device")


class FakeOutputStream:
    """Blocking output stream that notes a stop or close arriving mid-write."""

    def __init__(self):
        self.writes = 0
        self.writing = False
        self.closed_during_write = False
        self.first_write = threading.Event()

    def write(self, data):
        self.writing = True
        self.first_write.set()
        time.sleep(0.02)
        self.writes += 1
        self.writing = False

    def stop_stream(self):
        if self.writing:
            self.closed_during_write = True

    def close(self):
        if self.writing:
            self.closed_during_write = True


class TestPcm16:
    def test_encode_is_little_endian_int16(self):
        data = encode_pcm16([0.0, 0.5, -1.0])
        assert data == b"\x00\x00\x00\x40\x00\x80"

    def test_encode_clips_out_of_range_samples(self):
        data = encode_pcm16([1.0, 2.0, -2.0])
        assert np.frombuffer(data, dtype="<i2").tolist() == [32767, 32767, -32768]

    def test_decode(self):
        samples = decode_pcm16(b"\x00\x40\x00\xc0")
        assert samples.dtype == np.float32
        assert samples.tolist() == [0.5, -0.5]

    def test_duration(self):
        assert pcm_duration(b"\x00" * 48000, 24000) == 1.0
        assert pcm_duration(b"", 16000) == 0.0


class TestResources:
    def test_microphone_release_is_idempotent(self):
        release = MagicMock()
        microphone = Microphone(device_index=1, release=release)

        microphone.release()
        microphone.release()

        release.assert_called_once()
        assert microphone.released

    def test_pipeline_close_is_idempotent(self):
        pipeline = SilentPipeline(24000)
        pipeline._release = MagicMock()

        pipeline.close()
        pipeline.close()

        pipeline._release.assert_called_once()
        assert pipeline.closed

    def test_pipeline_clock_is_monotonic(self):
        pipeline = SilentPipeline(16000)
        first = pipeline.current_time
        assert first >= 0
        assert pipeline.current_time >= first

    def test_pipeline_requires_play_and_capture(self):
        with pytest.raises(TypeError):
            AudioPipeline(16000)


class TestPyAudioBackend:
    @pytest.mark.asyncio
    async def test_missing_pyaudio_is_permission_error(self):
        with patch.dict("sys.modules", {"pyaudio": None}):
            with pytest.raises(MicrophonePermissionError):
                await PyAudioBackend().acquire_microphone()

    @pytest.mark.asyncio
    async def test_no_input_device_is_permission_error(self):
        fake_pyaudio = MagicMock()
        pa = fake_pyaudio.PyAudio.return_value
        pa.get_default_input_device_info.side_effect = IOError("No Default Input Device Available")

        with patch.dict("sys.modules", {"pyaudio": fake_pyaudio}):
            with pytest.raises(MicrophonePermissionError):
                await PyAudioBackend().acquire_microphone()
        pa.terminate.assert_called_once()

    @pytest.mark.asyncio
    async def test_acquire_default_input_device(self):
        fake_pyaudio = MagicMock()
        pa = fake_pyaudio.PyAudio.return_value
        pa.get_default_input_device_info.return_value = {"index": 3, "name": "Mic", "maxInputChannels": 1}

        with patch.dict("sys.modules", {"pyaudio": fake_pyaudio}):
            microphone = await PyAudioBackend().acquire_microphone()

        assert microphone.device_index == 3
        microphone.release()
        pa.terminate.assert_called_once()


def open_output_pipeline(stream):
    fake_pyaudio = MagicMock()
    fake_pyaudio.PyAudio.return_value.open.return_value = stream
    with patch.dict("sys.modules", {"pyaudio": fake_pyaudio}):
        pipeline = PyAudioPipeline(24000)
    return pipeline, fake_pyaudio.PyAudio.return_value


class TestPyAudioPlayback:
    SLICES = 10

    def ten_slices(self):
        return b"\x00" * (PCM16_SAMPLE_WIDTH * PLAYBACK_SLICE_FRAMES * self.SLICES)

    @pytest.mark.asyncio
    async def test_chunk_is_written_in_slices(self):
        stream = FakeOutputStream()
        pipeline, pa = open_output_pipeline(stream)

        source = pipeline.play(self.ten_slices(), 0.0)
        await source.task

        assert stream.writes == self.SLICES
        pipeline.close()
        pa.terminate.assert_called_once()

    @pytest.mark.asyncio
    async def test_stop_ends_playback_before_the_chunk_finishes(self):
        stream = FakeOutputStream()
        pipeline, pa = open_output_pipeline(stream)

        source = pipeline.play(self.ten_slices(), 0.0)
        await asyncio.to_thread(stream.first_write.wait, 1.0)
        source.stop()
        pipeline.close()

        await asyncio.gather(source.task, return_exceptions=True)
        assert source.task.cancelled()
        assert stream.writes < self.SLICES
        assert not stream.closed_during_write
        pa.terminate.assert_called_once()

    @pytest.mark.asyncio
    async def test_close_waits_for_the_write_in_progress(self):
        stream = FakeOutputStream()
        pipeline, _ = open_output_pipeline(stream)

        source = pipeline.play(self.ten_slices(), 0.0)
        await asyncio.to_thread(stream.first_write.wait, 1.0)
        pipeline.close()
        await source.task

        assert not stream.closed_during_write
        assert stream.writes < self.SLICES
