"""
Unit tests for the pydantic models.

These tests validate that request bodies are normalized and rejected as expected and
that the view models serialize with their wire field names.
"""

import json
from datetime import datetime

import pytest
from pydantic import ValidationError

from replydesk.models.schemas import (
    AnalysisResult,
    CopyRequest,
    HistoryItem,
    LiveStatus,
    QuickResponseRequest,
    SuggestionState,
    TextRequest,
    TranscriptEntry,
)


class TestTextRequest:
    """Tests for text request bodies."""

    def test_text_is_stripped(self):
        request = QuickResponseRequest(text="  Aceitamos PIX.  ")
        assert request.text == "Aceitamos PIX."

    @pytest.mark.parametrize("text", ["", "   ", "\n\t"])
    def test_blank_text_rejected(self, text):
        with pytest.raises(ValidationError):
            TextRequest(text=text)

    def test_copy_request_text_optional(self):
        assert CopyRequest().text is None
        assert CopyRequest(text="editado").text == "editado"


class TestModels:
    """Tests for entities and views."""

    def test_history_item_defaults_to_responded(self):
        item = HistoryItem(id="1", originalMessage="Oi", response="Olá!", timestamp=datetime.now())
        assert item.status == "responded"

    def test_history_item_rejects_unknown_status(self):
        with pytest.raises(ValidationError):
            HistoryItem(
                id="1", originalMessage="Oi", response="Olá!", timestamp=datetime.now(), status="sent"
            )

    def test_analysis_result_from_model_json(self):
        result = AnalysisResult.model_validate_json('{"suggestion": "Claro!", "isAppointment": true}')
        assert result.suggestion == "Claro!"
        assert result.isAppointment is True

    def test_analysis_result_requires_both_fields(self):
        with pytest.raises(ValidationError):
            AnalysisResult.model_validate_json('{"suggestion": "Claro!"}')

    def test_suggestion_state_defaults(self):
        state = SuggestionState()
        assert state.suggestion == ""
        assert state.isAppointment is False
        assert state.isLoading is False
        assert state.error is None

    def test_live_status_wire_format(self):
        status = LiveStatus(
            state="active",
            statusMessage="Conectado. Pode falar!",
            isActive=True,
            transcript=[TranscriptEntry(speaker="user", text="Oi")],
        )
        payload = json.loads(status.model_dump_json())
        assert payload["type"] == "live.status"
        assert payload["isActive"] is True
        assert payload["transcript"] == [{"speaker": "user", "text": "Oi", "isFinal": False}]
