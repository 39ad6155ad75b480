"""
Models module for data structures and state management in the messaging assistant.

Key components:
- schemas: Pydantic models for every entity (messages, quick responses, history,
  calendar slots, chat and transcript entries, suggestion states) and for the
  request and response bodies of the HTTP API.
- store: the in-memory AppStore shared by every view.

Usage examples:
```python
from replydesk.models.store import AppStore

store = AppStore()
quick_response = store.add_quick_response("Funcionamos das 9h às 18h.")
store.record_response("Qual o horário?", quick_response.text)
```
"""

from replydesk.models.schemas import (
    AnalysisResult,
    CalendarSlot,
    ChatMessage,
    HistoryItem,
    LiveStatus,
    Message,
    QuickResponse,
    Report,
    SuggestionState,
    TranscriptEntry,
)
from replydesk.models.store import AppStore
