"""
Text chat with the business assistant.

ChatAssistant keeps the chat transcript of the session and routes each user message
either to the multi-turn ChatSession or, right after the operator asked for a
competitor analysis, to the web-grounded competitor news lookup.
"""

import logging
from typing import Awaitable, Callable, List, Optional

from replydesk.config.constants import (
    CHAT_ERROR_REPLY,
    CHAT_GREETING,
    COMPETITOR_ERROR_REPLY,
    COMPETITOR_QUESTION,
    COMPETITOR_REQUEST,
    LOGGER_NAME,
    QUOTA_NOTICE,
)
from replydesk.models.schemas import ChatMessage, ChatTranscript
from replydesk.services.errors import QuotaExceededError

logger = logging.getLogger(LOGGER_NAME)

ApiErrorHandler = Callable[[str], Awaitable[None]]


class ChatBusyError(Exception):
    """A reply is still pending."""


class ChatAssistant:
    def __init__(self, service, on_api_error: Optional[ApiErrorHandler] = None):
        self.service = service
        self.session = service.new_chat_session()
        self.on_api_error = on_api_error
        self.messages: List[ChatMessage] = [ChatMessage(role="model", text=CHAT_GREETING)]
        self.is_loading = False
        self.is_awaiting_business_type = False

    def transcript(self) -> ChatTranscript:
        return ChatTranscript(
            messages=list(self.messages),
            isLoading=self.is_loading,
            isAwaitingBusinessType=self.is_awaiting_business_type,
        )

    def request_competitor_analysis(self) -> ChatTranscript:
        """Ask the operator for their line of business before searching."""
        if self.is_loading:
            raise ChatBusyError()
        self.messages.append(ChatMessage(role="user", text=COMPETITOR_REQUEST))
        self.messages.append(ChatMessage(role="model", text=COMPETITOR_QUESTION))
        self.is_awaiting_business_type = True
        return self.transcript()

    async def send(self, text: str) -> Optional[ChatMessage]:
        """
        Send a user message and append the model's reply.

        Returns:
            The reply, or None for blank input

        Raises:
            ChatBusyError: if a reply is still pending
        """
        text = text.strip()
        if not text:
            return None
        if self.is_loading:
            raise ChatBusyError()

        self.messages.append(ChatMessage(role="user", text=text))
        self.is_loading = True

        competitor_lookup = self.is_awaiting_business_type
        self.is_awaiting_business_type = False
        try:
            if competitor_lookup:
                reply_text = await self.service.get_competitor_news(text)
            else:
                reply_text = await self.session.send_message(text)
        except QuotaExceededError:
            if self.on_api_error is not None:
                await self.on_api_error(QUOTA_NOTICE)
            reply_text = COMPETITOR_ERROR_REPLY if competitor_lookup else CHAT_ERROR_REPLY
        except Exception as e:
            logger.error(f"Error in chat: {e}", exc_info=True)
            reply_text = COMPETITOR_ERROR_REPLY if competitor_lookup else CHAT_ERROR_REPLY
        finally:
            self.is_loading = False

        reply = ChatMessage(role="model", text=reply_text)
        self.messages.append(reply)
        return reply
