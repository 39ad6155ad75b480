"""
Usage report built from the history of copied replies.
"""

from typing import List

from replydesk.config.constants import REPORT_AVG_RESPONSE_TIME
from replydesk.models.schemas import HistoryItem, Report


def build_report(history: List[HistoryItem]) -> Report:
    total = len(history)
    responded = sum(1 for item in history if item.status == "responded")
    rate = round(100 * responded / total) if total else 0
    return Report(
        totalMessages=total,
        responseRate=f"{rate}%",
        avgResponseTime=REPORT_AVG_RESPONSE_TIME,
        history=list(history),
    )
