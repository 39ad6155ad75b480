"""
Bot module for the live voice conversation with the assistant.

Key components:
- events: LiveEvent / LiveEventType, the events driving the session state machine
- audio: PCM16 helpers, audio pipelines, the microphone handle and the PyAudio backend
- gemini_live: the realtime channel to the Gemini Live API
- live_session: LiveConversation, the orchestrator, plus its TranscriptAssembler and
  PlaybackScheduler

Usage example:
```python
from replydesk.bot.live_session import LiveConversation
from replydesk.services.gemini_service import GeminiService

async def talk():
    conversation = LiveConversation(GeminiService(api_key=os.getenv("GEMINI_API_KEY")))
    await conversation.start()
    ...
    await conversation.stop()
```
"""

# Bot module initialization
