"""
Pydantic models for the messaging assistant.

This module defines the data model shared by the HTTP API, the WebSocket protocol of
the live voice session and the AI gateway. Field names follow the wire format
(camelCase) so models can be returned directly from the API.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

Speaker = Literal["user", "model"]
HistoryStatus = Literal["responded", "pending"]
CopyStatus = Literal["inactive", "copied", "failed"]


# Entities
class Message(BaseModel):
    """Inbound customer message."""

    id: str = Field(..., description="Unique message identifier")
    sender: str = Field(..., description="Display name of the customer")
    text: str = Field(..., description="Message body")
    timestamp: datetime = Field(..., description="When the message arrived")


class QuickResponse(BaseModel):
    """Canned reply maintained by the operator."""

    id: str
    text: str


class HistoryItem(BaseModel):
    """Record of a reply that was copied to the clipboard."""

    id: str
    originalMessage: str = Field(..., description="Customer message the reply answers")
    response: str = Field(..., description="Reply text that was copied")
    timestamp: datetime
    status: HistoryStatus = "responded"


class CalendarSlot(BaseModel):
    """Free one-hour slot in today's agenda."""

    id: str
    startTime: datetime
    endTime: datetime


class ChatMessage(BaseModel):
    role: Speaker
    text: str


class TranscriptEntry(BaseModel):
    """One speaker turn of a live voice session; mutated in place while streaming."""

    speaker: Speaker
    text: str = ""
    isFinal: bool = False


class AnalysisResult(BaseModel):
    """Structured suggestion returned by the model."""

    suggestion: str = Field(
        ...,
        description="A resposta curta, amigável e profissional para a mensagem do cliente em português do Brasil.",
    )
    isAppointment: bool = Field(
        ...,
        description="True se a mensagem for um pedido de agendamento, false caso contrário.",
    )


class SuggestionState(BaseModel):
    """Per-message suggestion status."""

    suggestion: str = ""
    isAppointment: bool = False
    isLoading: bool = False
    error: Optional[str] = None


# Views
class MessageCard(BaseModel):
    message: Message
    suggestion: SuggestionState


class Report(BaseModel):
    totalMessages: int
    responseRate: str
    avgResponseTime: str
    history: List[HistoryItem]


class CopyResult(BaseModel):
    status: CopyStatus
    historyItem: Optional[HistoryItem] = None


class ChatTranscript(BaseModel):
    messages: List[ChatMessage]
    isLoading: bool = False
    isAwaitingBusinessType: bool = False


class LiveStatus(BaseModel):
    """Snapshot of the live voice session pushed to the client."""

    type: Literal["live.status"] = "live.status"
    state: str
    statusMessage: str
    isActive: bool
    transcript: List[TranscriptEntry]


class ApiErrorNotice(BaseModel):
    message: Optional[str] = None
    billingUrl: Optional[str] = None


# Request bodies
class TextRequest(BaseModel):
    """Request carrying a single non-blank text field."""

    text: str = Field(..., description="Text content")

    @field_validator("text")
    def validate_text(cls, v):
        """Strip surrounding whitespace and reject blank text."""
        v = v.strip()
        if not v:
            raise ValueError("Text cannot be empty")
        return v


class QuickResponseRequest(TextRequest):
    pass


class ChatRequest(TextRequest):
    pass


class SuggestionEditRequest(TextRequest):
    pass


class CopyRequest(BaseModel):
    text: Optional[str] = Field(None, description="Edited text to copy instead of the suggestion")
