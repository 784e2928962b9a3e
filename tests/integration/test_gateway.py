"""Integration test: gateway dispatch over a real Socket.IO server object.

Outbound ``emit`` is mocked so each event can be checked for its name,
payload and target sid; the pipeline adapters are mocked.
"""

import asyncio
import base64
from unittest.mock import AsyncMock

import httpx
import pytest
import socketio
from uvicorn.importer import import_from_string

from pisight.config import Settings
from pisight.gateway import Gateway, create_server
from pisight import main as entrypoint
from pisight.main import APP_FACTORY, create_api
from pisight.pipeline.relay import RelayPipeline
from pisight.session_manager import SessionManager

WAV = b"RIFF\x24\x00\x00\x00WAVEfmt "


@pytest.fixture
def settings():
    return Settings(assemblyai_api_key="test-key", google_api_key="test-key")


@pytest.fixture
def pipeline():
    stt, llm, tts = AsyncMock(), AsyncMock(), AsyncMock()
    stt.transcribe.return_value = "hello"
    llm.infer.return_value = "4."
    tts.synthesize.return_value = WAV
    return RelayPipeline(stt, llm, tts)


@pytest.fixture
def sessions(pipeline):
    return SessionManager(pipeline)


@pytest.fixture
def gateway(settings, sessions):
    sio = create_server(settings)
    sio.emit = AsyncMock()
    return Gateway(sio, sessions)


def _emitted(gateway: Gateway, sid: str):
    return [
        (c.args[0], c.args[1])
        for c in gateway.sio.emit.await_args_list
        if c.kwargs.get("to") == sid
    ]


class TestConnectionLifecycle:
    async def test_connect_allocates_session(self, gateway: Gateway, sessions: SessionManager):
        await gateway.on_connect("a", {})
        await gateway.on_connect("b", {}, None)

        assert sessions.active_count == 2
        assert sessions.get("a") is not sessions.get("b")

    async def test_disconnect_discards_session(self, gateway: Gateway, sessions: SessionManager):
        await gateway.on_connect("a", {})
        await gateway.on_image_chunk("a", {"chunk": b"img", "isLast": True})
        session = sessions.get("a")

        await gateway.on_disconnect("a", "client disconnect")

        assert sessions.get("a") is None
        assert sessions.active_count == 0
        assert session.image is None

    async def test_events_for_unknown_sid_are_ignored(self, gateway: Gateway, pipeline):
        await gateway.on_text_message("ghost", "hi")
        await gateway.on_clear_image("ghost")

        pipeline.llm.infer.assert_not_awaited()
        gateway.sio.emit.assert_not_awaited()

    def test_handlers_registered(self, gateway: Gateway):
        handlers = gateway.sio.handlers["/"]
        for event in ("connect", "disconnect", "audio_full", "image_chunk", "text_message", "clear_image"):
            assert event in handlers


class TestRelay:
    async def test_ai_response_payload(self, gateway: Gateway):
        await gateway.on_connect("a", {})
        await gateway.on_text_message("a", "What is 2+2?")

        [(event, payload)] = _emitted(gateway, "a")
        assert event == "ai_response"
        assert payload["text"] == "4."
        assert isinstance(payload["audio"], str)
        assert base64.b64decode(payload["audio"]) == WAV
        assert isinstance(payload["timestamp"], int)

    async def test_image_events(self, gateway: Gateway):
        await gateway.on_connect("a", {})
        await gateway.on_image_chunk("a", {"chunk": b"ab", "isLast": False})
        await gateway.on_image_chunk("a", {"chunk": b"cd", "isLast": True})
        await gateway.on_clear_image("a")

        emitted = _emitted(gateway, "a")
        assert emitted[0][0] == "image_received"
        assert emitted[0][1]["size"] == 4
        assert emitted[1] == ("image_cleared", None)

    async def test_error_payload(self, gateway: Gateway, pipeline):
        pipeline.stt.transcribe.side_effect = RuntimeError("upstream down")
        await gateway.on_connect("a", {})
        await gateway.on_audio_full("a", b"audio")

        assert _emitted(gateway, "a") == [
            ("error", {"type": "full_audio", "message": "upstream down"})
        ]

    async def test_sessions_are_isolated(self, gateway: Gateway, sessions: SessionManager, pipeline):
        gate = asyncio.Event()

        async def slow_infer(image, text):
            await gate.wait()
            return "slow"

        pipeline.llm.infer.side_effect = slow_infer
        await gateway.on_connect("a", {})
        await gateway.on_connect("b", {})
        await gateway.on_image_chunk("a", {"chunk": b"only-a", "isLast": True})

        turn_a = asyncio.create_task(gateway.on_text_message("a", "one"))
        for _ in range(50):
            if sessions.get("a").busy:
                break
            await asyncio.sleep(0)

        # b is not blocked by a's pipeline and never sees a's image
        turn_b = asyncio.create_task(gateway.on_text_message("b", "two"))
        for _ in range(50):
            if pipeline.llm.infer.await_count == 2:
                break
            await asyncio.sleep(0)
        gate.set()
        await asyncio.gather(turn_a, turn_b)

        images = sorted((c.args[1], c.args[0]) for c in pipeline.llm.infer.await_args_list)
        assert images == [("one", b"only-a"), ("two", None)]
        assert [e for e, _ in _emitted(gateway, "b")] == ["ai_response"]
        assert sessions.get("b").image is None


class TestStatusEndpoints:
    async def test_root(self, sessions: SessionManager, settings: Settings):
        transport = httpx.ASGITransport(app=create_api(sessions, settings))
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            resp = await client.get("/")

        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "online"
        assert body["service"] == "PISIGHT Backend"
        assert "timestamp" in body

    async def test_health_reports_connections(
        self, gateway: Gateway, sessions: SessionManager, settings: Settings
    ):
        await gateway.on_connect("a", {})
        await gateway.on_connect("b", {})
        await gateway.on_disconnect("b")

        transport = httpx.ASGITransport(app=create_api(sessions, settings))
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            resp = await client.get("/health")

        assert resp.json() == {"status": "healthy", "connections": 1}


class TestEntrypoint:
    def test_factory_target_builds_asgi_app(self, settings: Settings, pipeline, monkeypatch):
        monkeypatch.setattr(entrypoint, "setup_logging", lambda level: None)
        factory = import_from_string(APP_FACTORY)

        app = factory(settings, pipeline)

        assert factory is entrypoint.create_app
        assert isinstance(app, socketio.ASGIApp)

    def test_logging_configured_once(self, settings: Settings, pipeline, monkeypatch):
        calls = []
        monkeypatch.setattr(entrypoint, "setup_logging", calls.append)
        monkeypatch.setattr(entrypoint, "get_settings", lambda: settings)
        runs = []
        monkeypatch.setattr(entrypoint.uvicorn, "run", lambda app, **kw: runs.append((app, kw)))

        entrypoint.main()
        assert calls == []
        [(target, kwargs)] = runs
        assert target == APP_FACTORY
        assert kwargs["factory"] is True
        assert kwargs["port"] == settings.port

        entrypoint.create_app(settings, pipeline)
        assert calls == [settings.log_level]
