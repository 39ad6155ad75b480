"""
Realtime channel to the Gemini Live API.

GeminiLiveChannel owns the live connection: it sends captured PCM frames and runs a
receive loop that translates every server message into LiveEvents, delivered to the
orchestrator strictly in arrival order.
"""

import asyncio
import logging
import traceback
from typing import Awaitable, Callable, List, Optional

from google.genai import types
from websockets.exceptions import ConnectionClosedOK

from replydesk.bot.events import LiveEvent
from replydesk.config.constants import INPUT_AUDIO_MIME_TYPE, LOGGER_NAME

logger = logging.getLogger(LOGGER_NAME)


def translate_server_message(message) -> List[LiveEvent]:
    """
    Translate one LiveServerMessage into orchestrator events.

    Transcript fragments come first, then the turn-complete signal, then any audio,
    matching the order in which the session applies them.
    """
    content = getattr(message, "server_content", None)
    if content is None:
        return []

    events = []
    output_transcription = getattr(content, "output_transcription", None)
    input_transcription = getattr(content, "input_transcription", None)
    if output_transcription is not None and output_transcription.text is not None:
        events.append(LiveEvent.fragment("model", output_transcription.text))
    elif input_transcription is not None and input_transcription.text is not None:
        events.append(LiveEvent.fragment("user", input_transcription.text))

    if getattr(content, "turn_complete", False):
        events.append(LiveEvent.turn_complete())

    model_turn = getattr(content, "model_turn", None)
    parts = getattr(model_turn, "parts", None) or []
    for part in parts:
        inline_data = getattr(part, "inline_data", None)
        if inline_data is not None and inline_data.data:
            events.append(LiveEvent.audio_chunk(inline_data.data))
    return events


class GeminiLiveChannel:
    """
    Bidirectional audio + transcript channel to Gemini Live.
    """

    def __init__(
        self,
        client,
        model: str,
        config: types.LiveConnectConfig,
        on_event: Callable[[LiveEvent], Awaitable[None]],
    ):
        self.client = client
        self.model = model
        self.config = config
        self.on_event = on_event
        self.session = None
        self._connect_cm = None
        self._recv_task: Optional[asyncio.Task] = None
        self._closed = False
        logger.info(f"GeminiLiveChannel initialized with model: {model}")

    @property
    def is_closed(self) -> bool:
        return self._closed

    async def open(self) -> None:
        """Connect and start the receive loop."""
        logger.info(f"Connecting to Gemini Live API with model: {self.model}")
        self._connect_cm = self.client.aio.live.connect(model=self.model, config=self.config)
        self.session = await self._connect_cm.__aenter__()
        self._recv_task = asyncio.create_task(self._recv_loop())
        logger.info("Successfully connected to Gemini Live API")

    async def send_audio(self, frame: bytes) -> None:
        """
        Send one PCM16 frame captured at the input sample rate.

        Raises:
            RuntimeError: if the channel is closed
        """
        if self._closed or self.session is None:
            raise RuntimeError("Live channel is closed")
        await self.session.send_realtime_input(
            audio=types.Blob(data=frame, mime_type=INPUT_AUDIO_MIME_TYPE)
        )

    async def _recv_loop(self) -> None:
        """Deliver server messages as events until the connection ends."""
        try:
            await self.on_event(LiveEvent.opened())
            while not self._closed:
                received = False
                # receive() ends after each completed turn, so keep re-entering it
                async for message in self.session.receive():
                    received = True
                    for event in translate_server_message(message):
                        if self._closed:
                            return
                        await self.on_event(event)
                if not received:
                    break
        except asyncio.CancelledError:
            logger.debug("Live receive loop cancelled")
            raise
        except ConnectionClosedOK:
            logger.info("Live connection closed normally")
        except Exception as e:
            if self._closed:
                return
            logger.error(f"Error in live receive loop: {e}")
            logger.debug(f"Receive loop error details: {traceback.format_exc()}")
            await self.on_event(LiveEvent.failed(str(e)))
            return

        if not self._closed:
            logger.info("Live session closed by server")
            await self.on_event(LiveEvent.closed())

    async def close(self) -> None:
        """Close the connection. Closing an already closed channel is a no-op."""
        if self._closed:
            return
        self._closed = True
        logger.info("Closing Gemini Live channel")

        task = self._recv_task
        self._recv_task = None
        if task and not task.done() and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                logger.debug("Receive task cancelled successfully")
            except Exception as e:
                logger.warning(f"Error while cancelling receive task: {e}")

        connect_cm, self._connect_cm = self._connect_cm, None
        if connect_cm is not None:
            try:
                await connect_cm.__aexit__(None, None, None)
            except Exception as e:
                logger.warning(f"Error closing live connection: {e}")
        self.session = None
        logger.info("Gemini Live channel closed")
