"""Tests for server — webhook, completion callback and health routes."""

import pytest
from aiohttp.test_utils import TestClient, TestServer

from ccrelay.server import SECRET_HEADER, create_app, format_completion


def make_client(bridge) -> TestClient:
    return TestClient(TestServer(create_app(bridge)))


# ── format_completion ────────────────────────────────────────────────────


class TestFormatCompletion:
    def test_header_and_body(self):
        text = format_completion("**done**", "/tmp", "abcdef123456")
        assert text == "📂 <code>/tmp</code> · <code>abcdef12</code>\n\n<b>done</b>"

    def test_header_escaped(self):
        text = format_completion("x", "/a<b>", "s")
        assert "<code>/a&lt;b&gt;</code>" in text

    def test_missing_fields(self):
        assert format_completion("x", "", "").startswith("📂 <code>?</code> · <code>?</code>")


# ── webhook ──────────────────────────────────────────────────────────────


class TestWebhook:
    @pytest.mark.asyncio
    async def test_update_routed(self, bridge, sender, state):
        async with make_client(bridge) as client:
            resp = await client.post("/", json={"message": {"chat": {"id": 111}, "text": "/mute"}})
            assert resp.status == 200
            assert await resp.text() == "OK"
        assert state.muted is True
        assert state.chat_id == 111

    @pytest.mark.asyncio
    async def test_any_path_is_webhook(self, bridge, state):
        async with make_client(bridge) as client:
            resp = await client.post("/telegram/xyz", json={"message": {"chat": {"id": 111}, "text": "/mute"}})
            assert resp.status == 200
        assert state.muted is True

    @pytest.mark.asyncio
    async def test_invalid_json(self, bridge):
        async with make_client(bridge) as client:
            resp = await client.post("/", data="{not json")
            assert resp.status == 500
            assert (await resp.text()).startswith("Internal Server Error")

    @pytest.mark.asyncio
    async def test_unauthorized_chat_still_ok(self, bridge, sender, state):
        async with make_client(bridge) as client:
            resp = await client.post("/", json={"message": {"chat": {"id": 999}, "text": "hi"}})
            assert resp.status == 200
        assert "not authorized" in sender.last_text
        assert state.chat_id is None

    @pytest.mark.asyncio
    async def test_secret_required_when_configured(self, bridge, state):
        bridge.webhook_secret = "s3cret"
        update = {"message": {"chat": {"id": 111}, "text": "/mute"}}
        async with make_client(bridge) as client:
            resp = await client.post("/", json=update)
            assert resp.status == 403
            assert state.muted is False

            resp = await client.post("/", json=update, headers={SECRET_HEADER: "s3cret"})
            assert resp.status == 200
        assert state.muted is True


# ── completion hook ──────────────────────────────────────────────────────


class TestHookRoute:
    @pytest.mark.asyncio
    async def test_completion_delivered(self, bridge, sender, state, typing_indicator):
        state.set_chat_id(111)
        state.mark_pending()
        typing_indicator.start(111)

        async with make_client(bridge) as client:
            resp = await client.post(
                "/hook", json={"message": "**done**", "cwd": "/tmp", "sessionId": "abc"}
            )
            assert resp.status == 200
            assert await resp.json() == {"ok": True}

        assert not typing_indicator.active
        assert not state.is_pending()
        assert len(sender.messages) == 1
        chat_id, text = sender.messages[0]
        assert chat_id == 111
        assert "<b>done</b>" in text
        assert "/tmp" in text
        assert "abc" in text

    @pytest.mark.asyncio
    async def test_muted_stops_typing_without_sending(self, bridge, sender, state, typing_indicator):
        state.set_chat_id(111)
        state.muted = True
        state.mark_pending()
        typing_indicator.start(111)

        async with make_client(bridge) as client:
            resp = await client.post("/hook", json={"message": "hi", "cwd": "/tmp", "sessionId": "abc"})
            assert await resp.json() == {"ok": True, "muted": True}

        assert sender.messages == []
        assert not typing_indicator.active
        assert not state.is_pending()

    @pytest.mark.asyncio
    async def test_empty_message(self, bridge, sender, state):
        state.set_chat_id(111)
        state.mark_pending()
        async with make_client(bridge) as client:
            resp = await client.post("/hook", json={"message": "  ", "cwd": "/tmp", "sessionId": "abc"})
            assert await resp.json() == {"ok": True, "empty": True}
        assert sender.messages == []
        assert not state.is_pending()

    @pytest.mark.asyncio
    async def test_no_chat_configured(self, bridge, sender):
        async with make_client(bridge) as client:
            resp = await client.post("/hook", json={"message": "hi"})
            assert resp.status == 400
            body = await resp.json()
        assert body["ok"] is False
        assert "No chat ID configured" in body["error"]
        assert sender.messages == []

    @pytest.mark.asyncio
    async def test_delivery_failure(self, bridge, sender, state):
        state.set_chat_id(111)
        sender.fail_with = "chat not found"
        async with make_client(bridge) as client:
            resp = await client.post("/hook", json={"message": "hi"})
            assert resp.status == 500
            assert await resp.json() == {"ok": False, "error": "chat not found"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "body",
        [
            pytest.param("{broken", id="invalid-json"),
            pytest.param("[1, 2]", id="not-an-object"),
            pytest.param(b'{"message": "\xff\xfe"}', id="not-utf8"),
        ],
    )
    async def test_bad_body(self, bridge, body):
        async with make_client(bridge) as client:
            resp = await client.post("/hook", data=body, headers={"Content-Type": "application/json"})
            assert resp.status == 400
            assert (await resp.json())["ok"] is False


# ── health ───────────────────────────────────────────────────────────────


class TestHealth:
    @pytest.mark.asyncio
    async def test_health_reports_mute(self, bridge, state):
        async with make_client(bridge) as client:
            resp = await client.get("/health")
            assert await resp.json() == {"ok": True, "muted": False}
            state.muted = True
            resp = await client.get("/health")
            assert await resp.json() == {"ok": True, "muted": True}
