"""
Live voice-session orchestrator.

LiveConversation manages a bidirectional streaming audio conversation with the
assistant: it captures the host microphone, streams it to Gemini Live, assembles
the streamed transcripts and plays the answer back gaplessly.

Lifecycle:
    IDLE -> REQUESTING_PERMISSION -> CONNECTING -> ACTIVE -> CLOSING -> IDLE

While ACTIVE three duties run side by side without blocking each other:
- capture: fixed-size microphone blocks are encoded and sent in order
- transcript: speaker fragments are accumulated into in-place transcript entries
- playback: inbound audio chunks are scheduled back to back on the output clock

Every event coming from the channel goes through handle_event(), the single
transition function, so the state machine can be exercised without audio devices
or a network connection.
"""

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional, Set

from replydesk.bot.audio import AudioPipeline, Microphone, PlaybackSource, PyAudioBackend, encode_pcm16, pcm_duration
from replydesk.bot.events import LiveEvent, LiveEventType
from replydesk.config.constants import (
    CAPTURE_BLOCK_SIZE,
    INPUT_SAMPLE_RATE,
    LIVE_QUOTA_NOTICE,
    LOGGER_NAME,
    OUTPUT_SAMPLE_RATE,
    STATUS_CONNECTED,
    STATUS_CONNECTING,
    STATUS_ERROR,
    STATUS_IDLE,
    STATUS_PERMISSION_DENIED,
    STATUS_REQUESTING_PERMISSION,
)
from replydesk.models.schemas import LiveStatus, TranscriptEntry
from replydesk.services.errors import MicrophonePermissionError, is_quota_error

logger = logging.getLogger(LOGGER_NAME)

UpdateHandler = Callable[[LiveStatus], Awaitable[None]]
ApiErrorHandler = Callable[[str], Awaitable[None]]


class SessionState(str, Enum):
    IDLE = "idle"
    REQUESTING_PERMISSION = "requesting_permission"
    CONNECTING = "connecting"
    ACTIVE = "active"
    CLOSING = "closing"


class _Turn:
    """Accumulation buffer of one speaker."""

    def __init__(self):
        self.open = False
        self.text = ""
        self.entry: Optional[TranscriptEntry] = None

    def close(self) -> None:
        self.open = False
        self.text = ""
        self.entry = None


class TranscriptAssembler:
    """
    Builds transcript entries from streamed fragments.

    The first fragment of a speaker's turn opens a new entry; later fragments of the
    same turn are concatenated into that entry in place. complete_turn() freezes every
    open entry and closes both turns.
    """

    def __init__(self, transcript: Optional[List[TranscriptEntry]] = None):
        self.transcript = transcript if transcript is not None else []
        self._turns: Dict[str, _Turn] = {"user": _Turn(), "model": _Turn()}

    def is_turn_open(self, speaker: str) -> bool:
        return self._turns[speaker].open

    def add_fragment(self, speaker: str, text: str) -> TranscriptEntry:
        turn = self._turns[speaker]
        if not turn.open:
            turn.entry = TranscriptEntry(speaker=speaker, text="", isFinal=False)
            turn.open = True
            self.transcript.append(turn.entry)
        turn.text += text
        turn.entry.text = turn.text
        return turn.entry

    def complete_turn(self) -> None:
        for entry in self.transcript:
            if not entry.isFinal:
                entry.isFinal = True
        self.reset()

    def reset(self) -> None:
        """Discard accumulation state, keeping the transcript itself."""
        for turn in self._turns.values():
            turn.close()


class PlaybackScheduler:
    """
    Gapless sequential playback on an output pipeline.

    Each chunk starts at the later of the output clock's current time and the end of
    the previously scheduled chunk.
    """

    def __init__(self, pipeline: AudioPipeline):
        self.pipeline = pipeline
        self.next_start_time = 0.0
        self.sources: Set[PlaybackSource] = set()

    def schedule(self, pcm: bytes) -> PlaybackSource:
        start_time = max(self.next_start_time, self.pipeline.current_time)
        source = self.pipeline.play(pcm, start_time)
        self.next_start_time = start_time + pcm_duration(pcm, self.pipeline.sample_rate)
        self.sources.add(source)
        source.add_done_callback(self.sources.discard)
        return source

    def stop_all(self) -> None:
        """Stop every chunk that is scheduled or still playing."""
        for source in list(self.sources):
            source.stop()
        self.sources.clear()
        self.next_start_time = 0.0


class LiveConversation:
    """
    Voice conversation with the assistant.

    The microphone and both audio pipelines are owned exclusively by the conversation
    while a session runs and are released on every exit path.
    """

    def __init__(
        self,
        service,
        audio_backend=None,
        on_update: Optional[UpdateHandler] = None,
        on_api_error: Optional[ApiErrorHandler] = None,
        block_size: int = CAPTURE_BLOCK_SIZE,
    ):
        """
        Initialize an idle conversation.

        Args:
            service: AI gateway providing connect_live_session(on_event)
            audio_backend: Platform audio (acquire_microphone, open_pipeline); PyAudio by default
            on_update: Coroutine receiving a LiveStatus snapshot after every change
            on_api_error: Coroutine receiving the quota notice
            block_size: Frames per captured block
        """
        self.service = service
        self.audio_backend = audio_backend or PyAudioBackend()
        self.on_update = on_update
        self.on_api_error = on_api_error
        self.block_size = block_size

        self.state = SessionState.IDLE
        self.status_message = STATUS_IDLE
        self.transcript: List[TranscriptEntry] = []

        self._assembler = TranscriptAssembler(self.transcript)
        self._microphone: Optional[Microphone] = None
        self._input_pipeline: Optional[AudioPipeline] = None
        self._output_pipeline: Optional[AudioPipeline] = None
        self._playback: Optional[PlaybackScheduler] = None
        self._channel = None
        self._capture_queue: Optional[asyncio.Queue] = None
        self._capture_task: Optional[asyncio.Task] = None
        self._attempt: Optional[object] = None

    @property
    def is_active(self) -> bool:
        return self.state != SessionState.IDLE

    def snapshot(self) -> LiveStatus:
        return LiveStatus(
            state=self.state.value,
            statusMessage=self.status_message,
            isActive=self.is_active,
            transcript=[entry.model_copy() for entry in self.transcript],
        )

    async def _notify(self) -> None:
        if self.on_update is None:
            return
        try:
            await self.on_update(self.snapshot())
        except Exception as e:
            logger.warning(f"Error delivering live status update: {e}")

    async def publish_status(self) -> None:
        """Push the current snapshot to the update handler."""
        await self._notify()

    async def _set_state(self, state: SessionState, status_message: str) -> None:
        logger.info(f"Live session {self.state.value} -> {state.value}")
        self.state = state
        self.status_message = status_message
        await self._notify()

    async def toggle(self) -> None:
        """Stop an active session, or start one when idle."""
        if self.is_active:
            await self.stop()
        else:
            await self.start()

    async def start(self) -> None:
        """Acquire the microphone, open both pipelines and connect the channel."""
        if self.state != SessionState.IDLE:
            logger.warning(f"Cannot start live session while {self.state.value}")
            return

        self.transcript = []
        self._assembler = TranscriptAssembler(self.transcript)
        await self._set_state(SessionState.REQUESTING_PERMISSION, STATUS_REQUESTING_PERMISSION)

        try:
            self._microphone = await self.audio_backend.acquire_microphone()
        except MicrophonePermissionError as e:
            logger.error(f"Error getting microphone: {e}")
            await self._set_state(SessionState.IDLE, STATUS_PERMISSION_DENIED)
            return

        attempt = self._attempt = object()
        await self._set_state(SessionState.CONNECTING, STATUS_CONNECTING)
        try:
            self._input_pipeline = self.audio_backend.open_pipeline(INPUT_SAMPLE_RATE)
            self._output_pipeline = self.audio_backend.open_pipeline(OUTPUT_SAMPLE_RATE)
            self._playback = PlaybackScheduler(self._output_pipeline)
            channel = await self.service.connect_live_session(self.handle_event)
        except Exception as e:
            if self._attempt is not attempt:
                logger.info(f"Live connection failed after the session was stopped: {e}")
                return
            await self._fail(e)
            return

        # stop() ran while the connection was being opened
        if self._attempt is not attempt:
            logger.info("Live session stopped while connecting, closing the new channel")
            try:
                await channel.close()
            except Exception as e:
                logger.warning(f"Error closing live channel: {e}")
            return

        self._channel = channel

    async def handle_event(self, event: LiveEvent) -> None:
        """Apply one channel event to the session."""
        if self.state in (SessionState.IDLE, SessionState.CLOSING):
            logger.debug(f"Ignoring {event.type.value} event while {self.state.value}")
            return

        if event.type == LiveEventType.OPENED:
            await self._on_opened()
        elif event.type == LiveEventType.TRANSCRIPT_FRAGMENT:
            self._assembler.add_fragment(event.speaker, event.text)
            await self._notify()
        elif event.type == LiveEventType.TURN_COMPLETE:
            self._assembler.complete_turn()
            await self._notify()
        elif event.type == LiveEventType.AUDIO_CHUNK:
            if self._playback is not None and event.audio:
                self._playback.schedule(event.audio)
        elif event.type == LiveEventType.ERROR:
            await self._fail(event.error)
        elif event.type == LiveEventType.CLOSED:
            logger.info("Live session closed")
            await self.stop()

    async def _on_opened(self) -> None:
        await self._set_state(SessionState.ACTIVE, STATUS_CONNECTED)
        if self._input_pipeline is None or self._microphone is None:
            return

        self._capture_queue = asyncio.Queue()
        self._capture_task = asyncio.create_task(self._capture_loop(self._capture_queue))
        try:
            self._input_pipeline.start_capture(self._microphone, self.block_size, self._enqueue_block)
        except Exception as e:
            await self._fail(e)

    def _enqueue_block(self, samples) -> None:
        if self._capture_queue is not None:
            self._capture_queue.put_nowait(samples)

    async def _capture_loop(self, queue: asyncio.Queue) -> None:
        """Send captured blocks in order; a failed send does not stop the next one."""
        while True:
            samples = await queue.get()
            channel = self._channel
            if channel is None:
                continue
            try:
                await channel.send_audio(encode_pcm16(samples))
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(f"Failed to send audio block: {e}")

    async def _fail(self, error) -> None:
        message = str(error)
        logger.error(f"Live session error: {message}")
        await self._teardown()
        if is_quota_error(error):
            if self.on_api_error is not None:
                await self.on_api_error(LIVE_QUOTA_NOTICE)
            await self._set_state(SessionState.IDLE, STATUS_IDLE)
        else:
            await self._set_state(SessionState.IDLE, STATUS_ERROR.format(error=message))

    async def stop(self) -> None:
        """End the session. Stopping an idle session is a no-op apart from the status."""
        await self._teardown()
        await self._set_state(SessionState.IDLE, STATUS_IDLE)

    async def _teardown(self) -> None:
        """Release every session resource, tolerating ones already released."""
        if self.state != SessionState.IDLE:
            self.state = SessionState.CLOSING
        self._attempt = None

        channel, self._channel = self._channel, None
        if channel is not None:
            try:
                await channel.close()
            except Exception as e:
                logger.warning(f"Error closing live channel: {e}")

        task, self._capture_task = self._capture_task, None
        self._capture_queue = None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                logger.debug("Capture task cancelled")

        microphone, self._microphone = self._microphone, None
        if microphone is not None:
            try:
                microphone.release()
            except Exception as e:
                logger.warning(f"Error releasing microphone: {e}")

        for pipeline in (self._input_pipeline, self._output_pipeline):
            if pipeline is not None:
                try:
                    pipeline.close()
                except Exception as e:
                    logger.warning(f"Error closing audio pipeline: {e}")
        self._input_pipeline = None
        self._output_pipeline = None

        playback, self._playback = self._playback, None
        if playback is not None:
            playback.stop_all()

        self._assembler.reset()
