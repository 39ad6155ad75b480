"""
Simulated inbound customer messages.

MockMessageSource delivers a fixed list of messages on a fixed schedule: the first
one after an initial delay, then one per interval, in list order, until the list is
exhausted.
"""

import asyncio
import inspect
import logging
import uuid
from datetime import datetime
from typing import Callable, Dict, List

from replydesk.config.constants import FIRST_MESSAGE_DELAY, LOGGER_NAME, MESSAGE_INTERVAL
from replydesk.models.schemas import Message

logger = logging.getLogger(LOGGER_NAME)

MOCK_MESSAGES: List[Dict[str, str]] = [
    {"sender": "Ana Silva", "text": "Olá, qual o horário de funcionamento de vocês?"},
    {"sender": "Carlos Souza", "text": "Gostaria de agendar um corte de cabelo para amanhã."},
    {"sender": "Mariana Lima", "text": "Vocês aceitam cartão de crédito?"},
    {"sender": "Pedro Costa", "text": "Qual o endereço?"},
    {"sender": "Juliana Alves", "text": "Oi, tudo bem? Tem horário disponível para sábado de manhã?"},
    {"sender": "Rafael Martins", "text": "Quanto custa o serviço de manicure?"},
]


class MockMessageSource:
    def __init__(
        self,
        messages: List[Dict[str, str]] = None,
        first_delay: float = FIRST_MESSAGE_DELAY,
        interval: float = MESSAGE_INTERVAL,
    ):
        self.messages = MOCK_MESSAGES if messages is None else messages
        self.first_delay = first_delay
        self.interval = interval

    async def _deliver(self, callback) -> None:
        for index, template in enumerate(self.messages):
            await asyncio.sleep(self.first_delay if index == 0 else self.interval)
            message = Message(
                id=uuid.uuid4().hex,
                sender=template["sender"],
                text=template["text"],
                timestamp=datetime.now(),
            )
            result = callback(message)
            if inspect.isawaitable(result):
                await result
        logger.info("Mock message source exhausted")

    def subscribe(self, callback) -> Callable[[], None]:
        """
        Start delivering messages to callback (a function or coroutine function).

        Returns:
            A function that stops the delivery
        """
        task = asyncio.create_task(self._deliver(callback))

        def unsubscribe() -> None:
            if not task.done():
                task.cancel()

        return unsubscribe
