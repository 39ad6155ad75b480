import json
import pytest
from unittest.mock import AsyncMock, MagicMock

from fastapi import WebSocket, WebSocketDisconnect

from conftest import FakeAudioBackend, FakeLiveService
from replydesk.config.constants import BILLING_URL, LIVE_QUOTA_NOTICE
from replydesk.models.store import AppStore
from replydesk.services.errors import QuotaExceededError
from replydesk.websocket_manager import WebSocketManager


def sent_payloads(websocket):
    return [json.loads(call.args[0]) for call in websocket.send_text.await_args_list]


@pytest.fixture
def store():
    return AppStore()


@pytest.fixture
def backend():
    return FakeAudioBackend()


@pytest.fixture
def websocket_manager(live_service, store, backend):
    return WebSocketManager(live_service, store, audio_backend_factory=lambda: backend)


def make_websocket(*messages):
    websocket = AsyncMock(spec=WebSocket)
    websocket.receive_text.side_effect = [json.dumps(m) if isinstance(m, dict) else m for m in messages] + [
        WebSocketDisconnect()
    ]
    return websocket


@pytest.mark.asyncio
async def test_websocket_manager_initialization(websocket_manager):
    """Test that WebSocketManager initializes correctly"""
    assert len(websocket_manager.handlers) == 4
    assert "live.start" in websocket_manager.handlers
    assert "live.stop" in websocket_manager.handlers
    assert "live.toggle" in websocket_manager.handlers
    assert "live.status" in websocket_manager.handlers
    assert websocket_manager.conversations == {}


@pytest.mark.asyncio
async def test_initial_status_sent_on_connect(websocket_manager):
    websocket = make_websocket()

    await websocket_manager.handle_websocket(websocket)

    websocket.accept.assert_awaited_once()
    first = sent_payloads(websocket)[0]
    assert first["type"] == "live.status"
    assert first["state"] == "idle"
    assert first["isActive"] is False
    assert websocket_manager.conversations == {}


@pytest.mark.asyncio
async def test_start_and_stop(websocket_manager, live_service, backend):
    websocket = make_websocket({"type": "live.start"}, {"type": "live.stop"})

    await websocket_manager.handle_websocket(websocket)

    states = [p["state"] for p in sent_payloads(websocket)]
    assert states == ["idle", "requesting_permission", "connecting", "idle"]
    assert backend.microphone.released
    live_service.channel.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_disconnect_stops_active_session(websocket_manager, live_service, backend):
    websocket = make_websocket({"type": "live.toggle"})

    await websocket_manager.handle_websocket(websocket)

    assert backend.microphone.released
    assert all(p.closed for p in backend.pipelines)
    live_service.channel.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_status_request(websocket_manager):
    websocket = make_websocket({"type": "live.status"})

    await websocket_manager.handle_websocket(websocket)

    assert [p["type"] for p in sent_payloads(websocket)] == ["live.status", "live.status"]


@pytest.mark.asyncio
async def test_unknown_and_invalid_messages_are_ignored(websocket_manager):
    websocket = make_websocket({"type": "bogus"}, "not json", '["list"]', {"type": "live.status"})

    await websocket_manager.handle_websocket(websocket)

    assert len(sent_payloads(websocket)) == 2


@pytest.mark.asyncio
async def test_quota_error_pushes_notice(store, backend):
    manager = WebSocketManager(
        FakeLiveService(error=QuotaExceededError()), store, audio_backend_factory=lambda: backend
    )
    websocket = make_websocket({"type": "live.start"})

    await manager.handle_websocket(websocket)

    notices = [p for p in sent_payloads(websocket) if p["type"] == "api.error"]
    assert notices == [{"type": "api.error", "message": LIVE_QUOTA_NOTICE, "billingUrl": BILLING_URL}]
    assert store.api_error == LIVE_QUOTA_NOTICE


@pytest.mark.asyncio
async def test_unexpected_error_still_stops_session(websocket_manager, backend):
    websocket = AsyncMock(spec=WebSocket)
    websocket.receive_text.side_effect = [json.dumps({"type": "live.start"}), RuntimeError("socket broke")]

    await websocket_manager.handle_websocket(websocket)

    assert backend.microphone.released
    assert websocket_manager.conversations == {}


@pytest.mark.asyncio
async def test_stop_all(websocket_manager):
    conversation = MagicMock()
    conversation.stop = AsyncMock()
    websocket_manager.conversations[1] = conversation

    await websocket_manager.stop_all()

    conversation.stop.assert_awaited_once()
