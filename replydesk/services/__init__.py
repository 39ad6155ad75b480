"""
Services module for external integrations of the messaging assistant.

Key components:
- gemini_service: the AI gateway (suggestions, chat sessions, competitor news and
  the realtime channel) on top of the Google GenAI SDK
- errors: QuotaExceededError, MicrophonePermissionError and is_quota_error()
- clipboard: host clipboard helper with transient copy status
- mock_messages: simulated inbound customer messages
- mock_calendar: simulated free calendar slots

Usage example:
```python
from replydesk.services.gemini_service import GeminiService

service = GeminiService(api_key=os.getenv("GEMINI_API_KEY"))
result = await service.analyze_message("Posso marcar um horário?", [])
print(result.suggestion, result.isAppointment)
```
"""

# Services module initialization
