"""
FastAPI server for the ReplyDesk small-business messaging assistant.

This module initializes the FastAPI application and the module-level singletons that
hold the in-memory state of every view:

- Suggestions: inbound messages from the mock feed with AI reply suggestions
- Quick responses: the operator's canned replies
- Calendar: free slots offered to customers as appointment proposals
- Reports: history of copied replies
- Chat: text chat with the assistant, including competitor analysis
- Live: voice conversation over the /ws/live WebSocket

Nothing is persisted; restarting the server resets the state.
"""

import asyncio
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import List, Optional

import dotenv
from fastapi import FastAPI, HTTPException, WebSocket

from replydesk.config.constants import BILLING_URL, DEFAULT_LIVE_MODEL, DEFAULT_TEXT_MODEL
from replydesk.config.logging_config import configure_logging
from replydesk.handlers.calendar_handlers import CalendarPicker
from replydesk.handlers.chat_handlers import ChatAssistant, ChatBusyError
from replydesk.handlers.report_handlers import build_report
from replydesk.handlers.suggestion_handlers import SuggestionError, SuggestionPipeline
from replydesk.models.schemas import (
    ApiErrorNotice,
    CalendarSlot,
    ChatMessage,
    ChatRequest,
    ChatTranscript,
    CopyRequest,
    CopyResult,
    Message,
    MessageCard,
    QuickResponse,
    QuickResponseRequest,
    Report,
    SuggestionEditRequest,
    SuggestionState,
)
from replydesk.models.store import AppStore
from replydesk.services.clipboard import Clipboard
from replydesk.services.gemini_service import GeminiService
from replydesk.services.mock_messages import MockMessageSource
from replydesk.websocket_manager import WebSocketManager

# Load environment variables from .env file if it exists
env_path = Path(".") / ".env"
if env_path.exists():
    dotenv.load_dotenv(env_path)

# Configure logging
logger = configure_logging()

# Get configuration from environment variables
PORT = int(os.getenv("PORT", "8000"))
HOST = os.getenv("HOST", "0.0.0.0")
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", DEFAULT_TEXT_MODEL)
GEMINI_LIVE_MODEL = os.getenv("GEMINI_LIVE_MODEL", DEFAULT_LIVE_MODEL)
MESSAGE_FEED_ENABLED = os.getenv("MESSAGE_FEED_ENABLED", "true").lower() in ("1", "true", "yes")


async def report_api_error(message: str) -> None:
    store.set_api_error(message)


store = AppStore()
gemini_service = GeminiService(api_key=GEMINI_API_KEY, model=GEMINI_MODEL, live_model=GEMINI_LIVE_MODEL)
clipboard = Clipboard()
suggestion_pipeline = SuggestionPipeline(gemini_service, store, clipboard, on_api_error=report_api_error)
chat_assistant = ChatAssistant(gemini_service, on_api_error=report_api_error)
calendar_picker = CalendarPicker(store, clipboard)
message_source = MockMessageSource()
websocket_manager = WebSocketManager(gemini_service, store)

_pipeline_tasks = set()


def schedule_suggestions() -> None:
    """Process unanswered messages in the background."""
    task = asyncio.create_task(suggestion_pipeline.process_new_messages())
    _pipeline_tasks.add(task)
    task.add_done_callback(_pipeline_tasks.discard)


def on_new_message(message: Message) -> None:
    store.add_message(message)
    schedule_suggestions()


@asynccontextmanager
async def lifespan(app: FastAPI):
    unsubscribe = None
    if MESSAGE_FEED_ENABLED:
        unsubscribe = message_source.subscribe(on_new_message)
        logger.info("Mock message feed started")
    try:
        yield
    finally:
        if unsubscribe is not None:
            unsubscribe()
        await websocket_manager.stop_all()
        for task in list(_pipeline_tasks):
            task.cancel()
        logger.info("Application shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="ReplyDesk",
    description="AI messaging assistant for small businesses, powered by Google Gemini",
    version="1.0.0",
    lifespan=lifespan,
)


# Suggestions
@app.get("/messages", response_model=List[MessageCard])
async def list_messages():
    """Inbound messages, newest first, each with its suggestion state."""
    return suggestion_pipeline.cards()


@app.post("/messages/{message_id}/suggestion/retry", response_model=SuggestionState)
async def retry_suggestion(message_id: str):
    try:
        return await suggestion_pipeline.retry(message_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="Message not found")


@app.put("/messages/{message_id}/suggestion", response_model=SuggestionState)
async def edit_suggestion(message_id: str, request: SuggestionEditRequest):
    try:
        return suggestion_pipeline.edit_suggestion(message_id, request.text)
    except KeyError:
        raise HTTPException(status_code=404, detail="Message not found")
    except SuggestionError as e:
        raise HTTPException(status_code=409, detail=str(e))


@app.post("/messages/{message_id}/copy", response_model=CopyResult)
async def copy_suggestion(message_id: str, request: Optional[CopyRequest] = None):
    """Copy the suggestion, or the edited text in the body, and log it as responded."""
    text = request.text if request is not None else None
    try:
        return await suggestion_pipeline.copy_suggestion(message_id, text)
    except KeyError:
        raise HTTPException(status_code=404, detail="Message not found")
    except SuggestionError as e:
        raise HTTPException(status_code=409, detail=str(e))


# Quick responses
@app.get("/quick-responses", response_model=List[QuickResponse])
async def list_quick_responses():
    return store.quick_responses


@app.post("/quick-responses", response_model=QuickResponse, status_code=201)
async def add_quick_response(request: QuickResponseRequest):
    return store.add_quick_response(request.text)


@app.put("/quick-responses/{quick_response_id}", response_model=QuickResponse)
async def update_quick_response(quick_response_id: str, request: QuickResponseRequest):
    quick_response = store.update_quick_response(quick_response_id, request.text)
    if quick_response is None:
        raise HTTPException(status_code=404, detail="Quick response not found")
    return quick_response


@app.delete("/quick-responses/{quick_response_id}", status_code=204)
async def delete_quick_response(quick_response_id: str):
    if not store.delete_quick_response(quick_response_id):
        raise HTTPException(status_code=404, detail="Quick response not found")


# Calendar
@app.get("/calendar/slots", response_model=List[CalendarSlot])
async def list_calendar_slots():
    """Free slots for the rest of today's business hours (regenerated on every call)."""
    return await calendar_picker.load()


@app.post("/calendar/slots/{slot_id}/offer", response_model=CopyResult)
async def offer_calendar_slot(slot_id: str):
    try:
        return await calendar_picker.offer(slot_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="Slot not found")


# Reports
@app.get("/reports", response_model=Report)
async def get_report():
    return build_report(store.history)


# Chat
@app.get("/chat", response_model=ChatTranscript)
async def get_chat():
    return chat_assistant.transcript()


@app.post("/chat", response_model=ChatMessage)
async def send_chat_message(request: ChatRequest):
    try:
        return await chat_assistant.send(request.text)
    except ChatBusyError:
        raise HTTPException(status_code=409, detail="A reply is still pending")


@app.post("/chat/competitor-analysis", response_model=ChatTranscript)
async def request_competitor_analysis():
    try:
        return chat_assistant.request_competitor_analysis()
    except ChatBusyError:
        raise HTTPException(status_code=409, detail="A reply is still pending")


# API error notice
@app.get("/api-error", response_model=ApiErrorNotice)
async def get_api_error():
    if store.api_error is None:
        return ApiErrorNotice()
    return ApiErrorNotice(message=store.api_error, billingUrl=BILLING_URL)


@app.delete("/api-error", status_code=204)
async def dismiss_api_error():
    store.clear_api_error()


# Live voice session
@app.websocket("/ws/live")
async def live_websocket_endpoint(websocket: WebSocket):
    """WebSocket endpoint driving a live voice conversation on the host's audio devices."""
    await websocket_manager.handle_websocket(websocket)


@app.get("/health")
async def health_check():
    """Health check endpoint for monitoring system status.

    Returns:
        dict: Status information indicating the server is operational.
    """
    return {
        "status": "healthy",
        "gemini_api_key_configured": gemini_service.available,
        "messages": len(store.messages),
        "active_live_sessions": sum(1 for c in websocket_manager.conversations.values() if c.is_active),
    }


@app.get("/")
async def root():
    """Root endpoint to display basic information about the API."""
    return {
        "name": "ReplyDesk",
        "description": "AI messaging assistant for small businesses, powered by Google Gemini",
        "version": "1.0.0",
        "endpoints": {
            "/messages": "Inbound messages with reply suggestions",
            "/quick-responses": "Canned replies",
            "/calendar/slots": "Free appointment slots",
            "/reports": "Usage report",
            "/chat": "Text chat with the assistant",
            "/api-error": "Pending API error notice",
            "/ws/live": "WebSocket endpoint for the live voice session",
            "/health": "Health check endpoint",
        },
    }


if __name__ == "__main__":
    import uvicorn

    logger.info(f"Starting server on http://{HOST}:{PORT}")
    uvicorn.run(app, host=HOST, port=PORT, http="h11")
