"""
Appointment scheduling helper.

CalendarPicker loads today's free slots and turns a chosen slot into a ready-to-send
appointment offer that is copied to the clipboard and logged in the history.
"""

import logging
from datetime import datetime
from typing import Awaitable, Callable, List, Optional

from replydesk.config.constants import APPOINTMENT_ORIGINAL_MESSAGE, LOGGER_NAME, SLOT_OFFER_TEMPLATE
from replydesk.models.schemas import CalendarSlot, CopyResult
from replydesk.models.store import AppStore
from replydesk.services.clipboard import Clipboard
from replydesk.services.mock_calendar import get_available_slots

logger = logging.getLogger(LOGGER_NAME)

SlotProvider = Callable[[], Awaitable[List[CalendarSlot]]]


def format_time(value: datetime) -> str:
    return value.strftime("%H:%M")


def slot_offer_text(slot: CalendarSlot) -> str:
    return SLOT_OFFER_TEMPLATE.format(time=format_time(slot.startTime))


class CalendarPicker:
    def __init__(
        self,
        store: AppStore,
        clipboard: Optional[Clipboard] = None,
        slot_provider: Optional[SlotProvider] = None,
    ):
        self.store = store
        self.clipboard = clipboard or Clipboard()
        self.slot_provider = slot_provider or get_available_slots
        self.slots: List[CalendarSlot] = []

    async def load(self) -> List[CalendarSlot]:
        """Regenerate the list of free slots."""
        self.slots = await self.slot_provider()
        logger.info(f"Loaded {len(self.slots)} free calendar slot(s)")
        return self.slots

    async def offer(self, slot_id: str) -> CopyResult:
        """
        Copy an appointment offer for a loaded slot and log it.

        Raises:
            KeyError: if the slot is not in the last loaded list
        """
        slot = next((s for s in self.slots if s.id == slot_id), None)
        if slot is None:
            raise KeyError(slot_id)

        text = slot_offer_text(slot)
        status = await self.clipboard.copy(text)
        item = self.store.record_response(APPOINTMENT_ORIGINAL_MESSAGE, text)
        return CopyResult(status=status, historyItem=item)
