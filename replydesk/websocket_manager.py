"""
WebSocket connection manager for the live voice session.

Each WebSocket connection drives one LiveConversation. The client sends small JSON
control messages and the server pushes the session status after every change:

- client -> server: {"type": "live.start" | "live.stop" | "live.toggle" | "live.status"}
- server -> client: {"type": "live.status", "state", "statusMessage", "isActive", "transcript"}
- server -> client: {"type": "api.error", "message", "billingUrl"}

The microphone and speaker are those of the host running the service. Closing the
connection always ends the session and releases the audio devices.
"""

import json
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from fastapi import WebSocket, WebSocketDisconnect

from replydesk.bot.live_session import LiveConversation
from replydesk.config.constants import (
    BILLING_URL,
    LOGGER_NAME,
    MESSAGE_TYPE_API_ERROR,
    MESSAGE_TYPE_LIVE_START,
    MESSAGE_TYPE_LIVE_STATUS,
    MESSAGE_TYPE_LIVE_STOP,
    MESSAGE_TYPE_LIVE_TOGGLE,
)
from replydesk.models.schemas import LiveStatus
from replydesk.models.store import AppStore

logger = logging.getLogger(LOGGER_NAME)

# Type hint for handler functions
HandlerFunc = Callable[[LiveConversation], Awaitable[None]]


async def handle_live_start(conversation: LiveConversation) -> None:
    if conversation.is_active:
        logger.info("Live session already active, ignoring start")
        return
    await conversation.start()


async def handle_live_stop(conversation: LiveConversation) -> None:
    await conversation.stop()


async def handle_live_toggle(conversation: LiveConversation) -> None:
    await conversation.toggle()


async def handle_live_status(conversation: LiveConversation) -> None:
    await conversation.publish_status()


class WebSocketManager:
    """Routes live-session control messages to the conversation of each connection."""

    def __init__(self, service, store: AppStore, audio_backend_factory: Optional[Callable[[], Any]] = None):
        """
        Args:
            service: AI gateway used to open the realtime channel
            store: Application state receiving the API error notice
            audio_backend_factory: Builds the audio backend of a new conversation;
                the PyAudio backend is used when None
        """
        self.service = service
        self.store = store
        self.audio_backend_factory = audio_backend_factory
        self.conversations: Dict[int, LiveConversation] = {}

        self.handlers: Dict[str, HandlerFunc] = {
            MESSAGE_TYPE_LIVE_START: handle_live_start,
            MESSAGE_TYPE_LIVE_STOP: handle_live_stop,
            MESSAGE_TYPE_LIVE_TOGGLE: handle_live_toggle,
            MESSAGE_TYPE_LIVE_STATUS: handle_live_status,
        }

    def create_conversation(self, websocket: WebSocket) -> LiveConversation:
        async def send_status(status: LiveStatus) -> None:
            await websocket.send_text(status.model_dump_json())

        async def send_api_error(message: str) -> None:
            self.store.set_api_error(message)
            await websocket.send_text(
                json.dumps({"type": MESSAGE_TYPE_API_ERROR, "message": message, "billingUrl": BILLING_URL})
            )

        audio_backend = self.audio_backend_factory() if self.audio_backend_factory else None
        return LiveConversation(
            self.service,
            audio_backend=audio_backend,
            on_update=send_status,
            on_api_error=send_api_error,
        )

    async def stop_all(self) -> None:
        """Stop every running conversation (application shutdown)."""
        for conversation in list(self.conversations.values()):
            await conversation.stop()

    async def handle_websocket(self, websocket: WebSocket):
        """Handle a WebSocket connection throughout its lifecycle.

        Args:
            websocket (WebSocket): The FastAPI WebSocket connection object

        The current status is sent right after the connection is accepted. Unknown
        or malformed messages are logged and ignored.
        """
        await websocket.accept()
        logger.info("Live WebSocket connection established")
        conversation = self.create_conversation(websocket)
        self.conversations[id(websocket)] = conversation

        try:
            await websocket.send_text(conversation.snapshot().model_dump_json())
            while True:
                data = await websocket.receive_text()
                try:
                    message_dict = json.loads(data)
                except json.JSONDecodeError:
                    logger.warning(f"Invalid JSON received: {data[:100]}")
                    continue

                message_type = message_dict.get("type") if isinstance(message_dict, dict) else None
                logger.info(f"Received message type: {message_type}")

                if message_type in self.handlers:
                    await self.handlers[message_type](conversation)
                else:
                    logger.warning(f"Unhandled message type received: {message_type}")

        except WebSocketDisconnect:
            logger.info("Live WebSocket client disconnected")
        except Exception as e:
            logger.error(f"Error in WebSocket connection: {e}", exc_info=True)
        finally:
            self.conversations.pop(id(websocket), None)
            conversation.on_update = None
            conversation.on_api_error = None
            await conversation.stop()
            logger.info("Live WebSocket connection closed")
