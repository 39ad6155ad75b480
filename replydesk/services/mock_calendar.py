"""
Simulated calendar backend.

Free slots are generated for the next hours of today, restricted to the morning and
afternoon business windows, with some slots randomly busy.
"""

import asyncio
import random
from datetime import datetime, timedelta
from typing import List, Optional

from replydesk.config.constants import (
    BUSINESS_WINDOWS,
    CALENDAR_LATENCY,
    SLOT_BUSY_PROBABILITY,
    SLOT_LOOKAHEAD_HOURS,
)
from replydesk.models.schemas import CalendarSlot


def in_business_hours(hour: int) -> bool:
    return any(start <= hour < end for start, end in BUSINESS_WINDOWS)


def generate_slots(now: Optional[datetime] = None, rng: Optional[random.Random] = None) -> List[CalendarSlot]:
    """Generate one-hour slots starting at the current hour."""
    rng = rng or random.Random()
    base = (now or datetime.now()).replace(minute=0, second=0, microsecond=0)

    slots = []
    for offset in range(SLOT_LOOKAHEAD_HOURS):
        start_time = base + timedelta(hours=offset)
        if not in_business_hours(start_time.hour):
            continue
        if rng.random() > SLOT_BUSY_PROBABILITY:
            slots.append(
                CalendarSlot(
                    id=f"slot-{offset}",
                    startTime=start_time,
                    endTime=start_time + timedelta(hours=1),
                )
            )
    return slots


async def get_available_slots(
    now: Optional[datetime] = None,
    rng: Optional[random.Random] = None,
    latency: float = CALENDAR_LATENCY,
) -> List[CalendarSlot]:
    """Return today's free slots after a simulated network delay."""
    await asyncio.sleep(latency)
    return generate_slots(now, rng)
