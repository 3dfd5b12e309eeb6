# tests/test_events_api.py
"""API tests for the camera webhook and health endpoints."""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from redis.exceptions import ConnectionError as RedisConnectionError

from cam_alarm.config import Settings
from cam_alarm.context import build_context
from cam_alarm.main import app

URL = "/api/v1/events/camera"


def xml_event(serial="CAM1", when="2026-10-19T10:00:00Z"):
    return (
        f"<EventNotificationAlert><serial>{serial}</serial>"
        f"<eventType>VMD</eventType><dateTime>{when}</dateTime></EventNotificationAlert>"
    ).encode()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        ARCHIVE_PATH=str(tmp_path / "event"),
        EVENTS_DIR=str(tmp_path / "events_files"),
        ROLLUP_ENABLED=False,
        STORE_LOOKUP_RETRIES=3,
        STORE_RETRY_BACKOFF_SECONDS=0,
        STAMP_RECEIPT_TIME=False,
    )


@pytest_asyncio.fixture
async def ctx(settings, store):
    ctx = build_context(settings, store=store)
    ctx.sink.start()
    app.state.ctx = ctx
    yield ctx
    await ctx.sink.stop()
    app.state.ctx = None


@pytest_asyncio.fixture
async def client(ctx):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


def archived(ctx):
    try:
        with open(ctx.settings.ARCHIVE_PATH, encoding="utf-8") as f:
            return f.read().splitlines()
    except FileNotFoundError:
        return []


class TestCameraWebhook:
    @pytest.mark.asyncio
    async def test_accepted_event_is_archived(self, client, ctx):
        resp = await client.post(URL, content=xml_event(), headers={"Content-Type": "application/xml"})
        await ctx.sink.stop()

        assert resp.status_code == 200
        assert resp.content == b""
        assert len(archived(ctx)) == 1
        assert '"serial":"CAM1"' in archived(ctx)[0]

    @pytest.mark.asyncio
    async def test_repeat_within_window_not_archived(self, client, ctx):
        await client.post(URL, content=xml_event(when="2026-10-19T10:00:00Z"))
        resp = await client.post(URL, content=xml_event(when="2026-10-19T10:00:10Z"))
        await ctx.sink.stop()

        assert resp.status_code == 200
        assert len(archived(ctx)) == 1
        assert (await ctx.store.get_state("CAM1")).count == 1

    @pytest.mark.asyncio
    async def test_json_event(self, client, ctx):
        resp = await client.post(URL, json={"serial": "CAM2", "event_type": "VMD", "ts": 25000})

        assert resp.status_code == 200
        state = await ctx.store.get_state("CAM2")
        assert state.last_ts == 25000

    @pytest.mark.asyncio
    async def test_root_path_accepts_events(self, client, ctx):
        resp = await client.post("/", content=xml_event(serial="ROOT"))
        assert resp.status_code == 200
        assert await ctx.store.get_state("ROOT") is not None

    @pytest.mark.asyncio
    async def test_malformed_payload_is_400(self, client, ctx, fake_redis):
        resp = await client.post(URL, content=b"<EventNotificationAlert><serial>",
                                 headers={"Content-Type": "application/xml"})

        assert resp.status_code == 400
        assert "malformed XML" in resp.text
        assert fake_redis.calls == []

    @pytest.mark.asyncio
    async def test_missing_serial_is_400(self, client, ctx):
        resp = await client.post(URL, json={"event_type": "VMD"})
        assert resp.status_code == 400
        assert resp.text == "missing serial"

    @pytest.mark.asyncio
    async def test_store_failure_keeps_200_contract(self, client, ctx, fake_redis):
        fake_redis.fail_on.add("get")
        resp = await client.post(URL, content=xml_event())
        await ctx.sink.stop()

        assert resp.status_code == 200
        assert resp.content == b""
        assert archived(ctx) == []
        assert sum(1 for c in fake_redis.calls if c[0] == "get") == 3

    @pytest.mark.asyncio
    async def test_transient_store_failure_is_retried(self, client, ctx, fake_redis):
        original_get = fake_redis.get
        failures = [True]

        async def flaky_get(key):
            if failures:
                failures.pop()
                fake_redis.fail_on.add("get")
            try:
                return await original_get(key)
            finally:
                fake_redis.fail_on.discard("get")

        fake_redis.get = flaky_get
        resp = await client.post(URL, content=xml_event())

        assert resp.status_code == 200
        assert (await ctx.store.get_state("CAM1")).count == 1


    @pytest.mark.asyncio
    async def test_write_with_lost_reply_is_still_archived(self, client, ctx, fake_redis):
        original_set = fake_redis.set
        lost = [True]

        async def set_then_lose_reply(key, value):
            await original_set(key, value)
            if lost:
                lost.pop()
                raise RedisConnectionError("reply lost")
            return True

        fake_redis.set = set_then_lose_reply
        resp = await client.post(URL, content=xml_event())
        await ctx.sink.stop()

        assert resp.status_code == 200
        assert (await ctx.store.get_state("CAM1")).count == 1
        assert len(archived(ctx)) == 1


class TestHealth:
    @pytest.mark.asyncio
    async def test_health_ok(self, client, ctx):
        resp = await client.get("/api/v1/health")
        body = resp.json()

        assert resp.status_code == 200
        assert body["status"] == "ok"
        assert body["store"] == "ok"
        assert body["rollup"]["cadence"] == "disabled"

    @pytest.mark.asyncio
    async def test_health_degraded_when_store_down(self, client, ctx, fake_redis):
        fake_redis.fail_on.add("ping")
        body = (await client.get("/api/v1/health")).json()

        assert body["status"] == "degraded"
        assert body["store"].startswith("error:")
