"""
Events consumed by the live voice-session state machine.

Every callback of the realtime channel is turned into a LiveEvent so the
orchestrator can be driven by a single transition function, with or without a
real network connection.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class LiveEventType(str, Enum):
    OPENED = "opened"
    TRANSCRIPT_FRAGMENT = "transcript_fragment"
    TURN_COMPLETE = "turn_complete"
    AUDIO_CHUNK = "audio_chunk"
    CLOSED = "closed"
    ERROR = "error"


@dataclass(frozen=True)
class LiveEvent:
    type: LiveEventType
    speaker: Optional[str] = None
    text: str = ""
    audio: bytes = b""
    error: Optional[str] = None

    @classmethod
    def opened(cls) -> "LiveEvent":
        return cls(LiveEventType.OPENED)

    @classmethod
    def fragment(cls, speaker: str, text: str) -> "LiveEvent":
        return cls(LiveEventType.TRANSCRIPT_FRAGMENT, speaker=speaker, text=text)

    @classmethod
    def turn_complete(cls) -> "LiveEvent":
        return cls(LiveEventType.TURN_COMPLETE)

    @classmethod
    def audio_chunk(cls, audio: bytes) -> "LiveEvent":
        return cls(LiveEventType.AUDIO_CHUNK, audio=audio)

    @classmethod
    def closed(cls) -> "LiveEvent":
        return cls(LiveEventType.CLOSED)

    @classmethod
    def failed(cls, error: str) -> "LiveEvent":
        return cls(LiveEventType.ERROR, error=error)
