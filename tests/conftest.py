import asyncio
import logging
from unittest.mock import AsyncMock, MagicMock

import pytest

from replydesk.bot.audio import AudioPipeline, Microphone, PlaybackSource
from replydesk.services.errors import MicrophonePermissionError


@pytest.fixture(autouse=True)
def reset_logging():
    """Reset logging configuration before each test"""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    logging.basicConfig(level=logging.NOTSET)
    yield


class FakePipeline(AudioPipeline):
    """Pipeline with a settable clock that records what it is asked to do."""

    def __init__(self, sample_rate):
        super().__init__(sample_rate)
        self.now = 0.0
        self.played = []
        self.sources = []
        self.on_block = None
        self.capture_block_size = None

    @property
    def current_time(self):
        return self.now

    def start_capture(self, microphone, block_size, on_block):
        self.capture_block_size = block_size
        self.on_block = on_block

    def play(self, pcm, start_time):
        self.played.append((pcm, start_time))
        task = asyncio.create_task(asyncio.Event().wait())
        source = PlaybackSource(task, start_time, len(pcm) / 2 / self.sample_rate)
        self.sources.append(source)
        return source


class FakeAudioBackend:
    def __init__(self, deny=False):
        self.deny = deny
        self.microphone = None
        self.pipelines = []

    async def acquire_microphone(self):
        if self.deny:
            raise MicrophonePermissionError("Permission denied")
        self.microphone = Microphone(device_index=0, release=MagicMock())
        return self.microphone

    def open_pipeline(self, sample_rate):
        pipeline = FakePipeline(sample_rate)
        self.pipelines.append(pipeline)
        return pipeline


class FakeLiveService:
    """Gateway stand-in whose channel is driven by the test through on_event."""

    def __init__(self, error=None):
        self.error = error
        self.on_event = None
        self.channel = MagicMock()
        self.channel.send_audio = AsyncMock()
        self.channel.close = AsyncMock()

    async def connect_live_session(self, on_event):
        if self.error is not None:
            raise self.error
        self.on_event = on_event
        return self.channel


class GatedLiveService(FakeLiveService):
    """Holds connect_live_session open until the test sets the gate."""

    def __init__(self, error=None):
        super().__init__(error)
        self.gate = asyncio.Event()
        self.connecting = asyncio.Event()

    async def connect_live_session(self, on_event):
        self.connecting.set()
        await self.gate.wait()
        return await super().connect_live_session(on_event)


@pytest.fixture
def audio_backend():
    return FakeAudioBackend()


@pytest.fixture
def live_service():
    return FakeLiveService()
