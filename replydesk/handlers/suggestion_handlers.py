"""
Reply suggestions for the inbound message feed.

The SuggestionPipeline asks the AI gateway for a suggestion for every message it has
not processed yet, one message at a time and in arrival order. A quota failure
abandons the rest of the batch and raises the billing notice once; any other
failure only affects the message being processed.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, List, Optional

from replydesk.config.constants import (
    LOGGER_NAME,
    QUOTA_NOTICE,
    SUGGESTION_GENERIC_ERROR,
    SUGGESTION_QUOTA_ERROR,
)
from replydesk.models.schemas import CopyResult, MessageCard, SuggestionState
from replydesk.models.store import AppStore
from replydesk.services.clipboard import Clipboard
from replydesk.services.errors import QuotaExceededError

logger = logging.getLogger(LOGGER_NAME)

ApiErrorHandler = Callable[[str], Awaitable[None]]


class SuggestionError(Exception):
    """A suggestion cannot be used for the requested action."""


class SuggestionPipeline:
    """
    Produces and tracks one SuggestionState per message.
    """

    def __init__(
        self,
        service,
        store: AppStore,
        clipboard: Optional[Clipboard] = None,
        on_api_error: Optional[ApiErrorHandler] = None,
    ):
        self.service = service
        self.store = store
        self.clipboard = clipboard or Clipboard()
        self.on_api_error = on_api_error
        self.suggestions: Dict[str, SuggestionState] = {}
        self._lock = asyncio.Lock()

    def get_state(self, message_id: str) -> SuggestionState:
        """State of a message; unprocessed messages read as loading."""
        return self.suggestions.get(message_id) or SuggestionState(isLoading=True)

    def cards(self) -> List[MessageCard]:
        return [
            MessageCard(message=message, suggestion=self.get_state(message.id))
            for message in self.store.messages
        ]

    async def _report_quota(self) -> None:
        if self.on_api_error is not None:
            await self.on_api_error(QUOTA_NOTICE)
        else:
            self.store.set_api_error(QUOTA_NOTICE)

    async def process_new_messages(self) -> None:
        """Analyze every message without a suggestion state, oldest first."""
        async with self._lock:
            pending = [m for m in reversed(self.store.messages) if m.id not in self.suggestions]
            if not pending:
                return

            logger.info(f"Processing {len(pending)} new message(s)")
            for message in pending:
                self.suggestions[message.id] = SuggestionState(isLoading=True)
                try:
                    result = await self.service.analyze_message(
                        message.text, self.store.quick_response_texts()
                    )
                    self.suggestions[message.id] = SuggestionState(
                        suggestion=result.suggestion,
                        isAppointment=result.isAppointment,
                        isLoading=False,
                    )
                except QuotaExceededError:
                    logger.warning(f"Quota exceeded while analyzing message {message.id}")
                    self.suggestions[message.id] = SuggestionState(error=SUGGESTION_QUOTA_ERROR)
                    await self._report_quota()
                    break
                except Exception as e:
                    logger.error(f"Error fetching suggestion: {e}", exc_info=True)
                    self.suggestions[message.id] = SuggestionState(error=SUGGESTION_GENERIC_ERROR)

    async def retry(self, message_id: str) -> SuggestionState:
        """Discard the state of a message and analyze it again."""
        if self.store.get_message(message_id) is None:
            raise KeyError(message_id)
        async with self._lock:
            self.suggestions.pop(message_id, None)
        await self.process_new_messages()
        return self.get_state(message_id)

    def edit_suggestion(self, message_id: str, text: str) -> SuggestionState:
        """
        Replace the suggested reply with the operator's edit.

        Raises:
            KeyError: unknown message
            SuggestionError: the suggestion is still loading or failed
        """
        state = self._usable_state(message_id)
        state.suggestion = text
        return state

    async def copy_suggestion(self, message_id: str, text: Optional[str] = None) -> CopyResult:
        """
        Copy the suggestion (or the given edited text) and log it in the history.

        Raises:
            KeyError: unknown message
            SuggestionError: the suggestion is still loading or failed
        """
        message = self.store.get_message(message_id)
        if message is None:
            raise KeyError(message_id)
        state = self._usable_state(message_id)

        text_to_copy = text if text is not None else state.suggestion
        status = await self.clipboard.copy(text_to_copy)
        item = self.store.record_response(message.text, text_to_copy)
        return CopyResult(status=status, historyItem=item)

    def _usable_state(self, message_id: str) -> SuggestionState:
        if self.store.get_message(message_id) is None:
            raise KeyError(message_id)
        state = self.suggestions.get(message_id)
        if state is None or state.isLoading:
            raise SuggestionError("Suggestion is still loading")
        if state.error:
            raise SuggestionError(state.error)
        return state
