"""
In-memory application state for the messaging assistant.

This module provides the AppStore class which holds the state shared by every view:
the inbound message feed, the operator's quick responses, the history of copied
replies and the pending API error notice. Nothing here survives a restart.
"""

import logging
import uuid
from datetime import datetime
from typing import List, Optional

from replydesk.config.constants import LOGGER_NAME
from replydesk.models.schemas import HistoryItem, Message, QuickResponse

logger = logging.getLogger(LOGGER_NAME)

DEFAULT_QUICK_RESPONSES = [
    "Nosso endereço é Rua Exemplo, 123, Bairro Modelo.",
    "Aceitamos PIX, cartão de crédito e débito.",
    "Olá! Agradecemos seu contato. Como podemos ajudar?",
]


def new_id() -> str:
    return uuid.uuid4().hex


class AppStore:
    """
    Holds the shared state rendered by the views.

    Messages and history are kept newest-first. History is append-only: items are
    only ever inserted at the front and never reordered or removed.
    """

    def __init__(self, quick_responses: Optional[List[str]] = None):
        """Initialize the store, seeding the default quick responses."""
        self.messages: List[Message] = []
        self.history: List[HistoryItem] = []
        self.api_error: Optional[str] = None
        seed = DEFAULT_QUICK_RESPONSES if quick_responses is None else quick_responses
        self.quick_responses: List[QuickResponse] = [
            QuickResponse(id=new_id(), text=text) for text in seed
        ]

    # Message feed
    def add_message(self, message: Message) -> None:
        self.messages.insert(0, message)
        logger.info(f"New message from {message.sender}: {message.id}")

    def get_message(self, message_id: str) -> Optional[Message]:
        return next((m for m in self.messages if m.id == message_id), None)

    # Quick responses
    def add_quick_response(self, text: str) -> QuickResponse:
        """
        Append a quick response with a fresh unique id.

        Args:
            text: Reply text

        Returns:
            The created QuickResponse
        """
        quick_response = QuickResponse(id=new_id(), text=text)
        self.quick_responses.append(quick_response)
        logger.info(f"Quick response added: {quick_response.id}")
        return quick_response

    def update_quick_response(self, quick_response_id: str, text: str) -> Optional[QuickResponse]:
        """
        Replace the text of a quick response, keeping its id.

        Returns:
            The updated QuickResponse, or None if the id does not exist
        """
        for quick_response in self.quick_responses:
            if quick_response.id == quick_response_id:
                quick_response.text = text
                logger.info(f"Quick response updated: {quick_response_id}")
                return quick_response
        return None

    def delete_quick_response(self, quick_response_id: str) -> bool:
        """
        Remove a quick response.

        Returns:
            True if an entry was removed, False if the id does not exist
        """
        remaining = [qr for qr in self.quick_responses if qr.id != quick_response_id]
        removed = len(remaining) != len(self.quick_responses)
        self.quick_responses = remaining
        if removed:
            logger.info(f"Quick response deleted: {quick_response_id}")
        return removed

    def quick_response_texts(self) -> List[str]:
        return [qr.text for qr in self.quick_responses]

    # History
    def add_history(self, item: HistoryItem) -> HistoryItem:
        self.history.insert(0, item)
        return item

    def record_response(self, original_message: str, response: str) -> HistoryItem:
        """Log a copied reply as responded."""
        item = HistoryItem(
            id=new_id(),
            originalMessage=original_message,
            response=response,
            timestamp=datetime.now(),
            status="responded",
        )
        logger.info(f"Response recorded in history: {item.id}")
        return self.add_history(item)

    # API error notice
    def set_api_error(self, message: str) -> None:
        logger.warning(f"API error notice raised: {message}")
        self.api_error = message

    def clear_api_error(self) -> None:
        self.api_error = None
