"""
Handlers module with the logic behind each view of the messaging assistant.

Key components:
- suggestion_handlers: SuggestionPipeline, which drafts a reply for every inbound
  message and supports editing, copying and retrying suggestions.
- chat_handlers: ChatAssistant, the text chat including the competitor analysis flow.
- calendar_handlers: CalendarPicker, which offers free slots to customers.
- report_handlers: build_report(), the usage report.

The live voice session is handled by replydesk.websocket_manager and replydesk.bot.

Usage example:
```python
from replydesk.handlers.suggestion_handlers import SuggestionPipeline

pipeline = SuggestionPipeline(service, store)
await pipeline.process_new_messages()
result = await pipeline.copy_suggestion(store.messages[0].id)
```
"""

# Handlers module initialization
