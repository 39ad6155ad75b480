import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from replydesk.bot.events import LiveEvent, LiveEventType
from replydesk.bot.gemini_live import GeminiLiveChannel, translate_server_message


def server_message(output_text=None, input_text=None, turn_complete=False, audio=None):
    parts = [SimpleNamespace(inline_data=SimpleNamespace(data=chunk)) for chunk in (audio or [])]
    content = SimpleNamespace(
        output_transcription=SimpleNamespace(text=output_text) if output_text is not None else None,
        input_transcription=SimpleNamespace(text=input_text) if input_text is not None else None,
        turn_complete=turn_complete,
        model_turn=SimpleNamespace(parts=parts) if parts else None,
    )
    return SimpleNamespace(server_content=content)


class FakeLiveSession:
    """receive() yields one turn of messages per call, then nothing."""

    def __init__(self, turns=None, error=None):
        self.turns = list(turns or [])
        self.error = error
        self.send_realtime_input = AsyncMock()

    def receive(self):
        messages = self.turns.pop(0) if self.turns else []
        error = self.error

        async def generator():
            if error is not None:
                raise error
            for message in messages:
                yield message

        return generator()


class FakeConnect:
    def __init__(self, session):
        self.session = session
        self.exited = False

    async def __aenter__(self):
        return self.session

    async def __aexit__(self, exc_type, exc, tb):
        self.exited = True


def make_channel(session):
    events = []

    async def on_event(event):
        events.append(event)

    connect = FakeConnect(session)
    client = MagicMock()
    client.aio.live.connect.return_value = connect
    channel = GeminiLiveChannel(client, "live-model", MagicMock(), on_event)
    return channel, connect, events


class TestTranslateServerMessage:
    def test_output_transcription_is_model_fragment(self):
        events = translate_server_message(server_message(output_text="Olá"))
        assert events == [LiveEvent.fragment("model", "Olá")]

    def test_input_transcription_is_user_fragment(self):
        events = translate_server_message(server_message(input_text="Oi"))
        assert events == [LiveEvent.fragment("user", "Oi")]

    def test_output_wins_over_input(self):
        events = translate_server_message(server_message(output_text="a", input_text="b"))
        assert events == [LiveEvent.fragment("model", "a")]

    def test_fragment_then_turn_complete_then_audio(self):
        events = translate_server_message(
            server_message(output_text="fim", turn_complete=True, audio=[b"\x01\x00", b"\x02\x00"])
        )
        assert [e.type for e in events] == [
            LiveEventType.TRANSCRIPT_FRAGMENT,
            LiveEventType.TURN_COMPLETE,
            LiveEventType.AUDIO_CHUNK,
            LiveEventType.AUDIO_CHUNK,
        ]
        assert events[3].audio == b"\x02\x00"

    def test_message_without_server_content(self):
        assert translate_server_message(SimpleNamespace(server_content=None)) == []


class TestGeminiLiveChannel:
    @pytest.mark.asyncio
    async def test_events_delivered_in_order_until_server_closes(self):
        session = FakeLiveSession(
            turns=[[server_message(input_text="Oi"), server_message(output_text="Olá", turn_complete=True)]]
        )
        channel, connect, events = make_channel(session)

        await channel.open()
        await asyncio.wait_for(channel._recv_task, timeout=1)

        assert [e.type for e in events] == [
            LiveEventType.OPENED,
            LiveEventType.TRANSCRIPT_FRAGMENT,
            LiveEventType.TRANSCRIPT_FRAGMENT,
            LiveEventType.TURN_COMPLETE,
            LiveEventType.CLOSED,
        ]
        assert events[1].speaker == "user"
        assert events[2].speaker == "model"

        await channel.close()
        assert connect.exited

    @pytest.mark.asyncio
    async def test_receive_error_emits_failure(self):
        channel, _, events = make_channel(FakeLiveSession(error=Exception("RESOURCE_EXHAUSTED")))

        await channel.open()
        await asyncio.wait_for(channel._recv_task, timeout=1)

        assert events[0].type == LiveEventType.OPENED
        assert events[-1].type == LiveEventType.ERROR
        assert "RESOURCE_EXHAUSTED" in events[-1].error
        await channel.close()

    @pytest.mark.asyncio
    async def test_send_audio(self):
        session = FakeLiveSession()
        channel, _, _ = make_channel(session)
        await channel.open()

        await channel.send_audio(b"\x00\x01")

        blob = session.send_realtime_input.call_args.kwargs["audio"]
        assert blob.data == b"\x00\x01"
        assert blob.mime_type == "audio/pcm;rate=16000"
        await channel.close()

    @pytest.mark.asyncio
    async def test_send_audio_after_close_raises(self):
        channel, _, _ = make_channel(FakeLiveSession())
        await channel.open()
        await channel.close()

        assert channel.is_closed
        with pytest.raises(RuntimeError):
            await channel.send_audio(b"\x00\x00")

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self):
        channel, connect, _ = make_channel(FakeLiveSession())
        await channel.open()

        await channel.close()
        await channel.close()

        assert connect.exited
