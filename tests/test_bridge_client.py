# Tests for the kernel host and the bridge client frame handling.
# Created: 2026-03-08

import asyncio
import json
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from domshell.bridge.client import BRIDGE_UNAUTHORIZED, BridgeClient, KernelHost
from domshell.errors import Unauthorized


@pytest.fixture
def host(controller):
    return KernelHost(controller, navigation_timeout=1.0)


@pytest.fixture
def client(host):
    return BridgeClient(host, "ws://127.0.0.1:9876/bridge", "s3cret/+", initial_delay=1.0, max_delay=8.0)


@pytest.fixture
def ws():
    socket = MagicMock()
    socket.send = AsyncMock()
    return socket


def sent(ws):
    return [json.loads(call.args[0]) for call in ws.send.await_args_list]


async def drain(client):
    await asyncio.gather(*list(client._tasks))


class TestKernelHost:
    async def test_sessions_are_separate(self, host):
        await host.execute("a", "cd tabs/7")
        await host.execute("b", "cd tabs/8")
        assert await host.execute("a", "pwd") == "~/tabs/7"
        assert await host.execute("b", "pwd") == "~/tabs/8"

    async def test_current_url(self, host):
        assert await host.current_url("a") is None
        await host.execute("a", "cd tabs/8")
        assert await host.current_url("a") == "https://github.com/login"

    async def test_current_url_outside_tab(self, host):
        await host.execute("a", "cd tabs")
        assert await host.current_url("a") is None

    async def test_current_url_for_closed_tab(self, host, controller):
        await host.execute("a", "cd tabs/8")
        controller.windows[0].tabs.pop()
        assert await host.current_url("a") is None

    async def test_close_session(self, host):
        await host.execute("a", "cd tabs/7")
        host.close_session("a")
        assert "a" not in host.sessions
        assert await host.execute("a", "pwd") == "~"
        host.close_session("never-seen")


class TestFrames:
    async def test_ping(self, client, ws):
        await client.handle_frame(ws, json.dumps({"type": "ping"}))
        assert sent(ws) == [{"type": "pong"}]

    async def test_execute(self, client, ws):
        frame = {"type": "EXECUTE", "id": "abc", "session": "s1", "command": "cd tabs/9"}
        await client.handle_frame(ws, json.dumps(frame))
        await drain(client)
        [reply] = sent(ws)
        assert reply["type"] == "RESULT"
        assert reply["id"] == "abc"
        assert reply["result"].startswith("Entered tab 9")

    async def test_execute_default_session(self, client, ws, host):
        await client.handle_frame(ws, json.dumps({"type": "EXECUTE", "id": "1", "command": "pwd"}))
        await drain(client)
        assert "default" in host.sessions

    async def test_url(self, client, ws, host):
        await host.execute("s1", "cd tabs/7")
        await client.handle_frame(ws, json.dumps({"type": "URL", "id": "u1", "session": "s1"}))
        assert sent(ws) == [{"type": "RESULT", "id": "u1", "result": "https://example.com/"}]

    async def test_url_outside_tab(self, client, ws):
        await client.handle_frame(ws, json.dumps({"type": "URL", "id": "u2", "session": "s1"}))
        assert sent(ws) == [{"type": "RESULT", "id": "u2", "result": None}]

    async def test_close_session(self, client, ws, host):
        await host.execute("s1", "cd tabs/7")
        await client.handle_frame(ws, json.dumps({"type": "CLOSE_SESSION", "session": "s1"}))
        assert "s1" not in host.sessions
        ws.send.assert_not_awaited()

    @pytest.mark.parametrize(
        "raw",
        [
            "not json",
            "[]",
            json.dumps({"type": "EXECUTE", "command": "ls"}),
            json.dumps({"type": "URL"}),
            json.dumps({"type": "REBOOT"}),
        ],
    )
    async def test_bad_frames_dropped(self, client, ws, raw):
        await client.handle_frame(ws, raw)
        await drain(client)
        ws.send.assert_not_awaited()


class TestReconnect:
    def test_endpoint_carries_token(self, client):
        assert client.endpoint == "ws://127.0.0.1:9876/bridge?token=s3cret%2F%2B"

    def test_endpoint_with_existing_query(self, host):
        bridge = BridgeClient(host, "ws://h/bridge?v=1", "t")
        assert bridge.endpoint == "ws://h/bridge?v=1&token=t"

    def test_backoff_doubles_and_caps(self, client):
        delays = [1.0]
        for _ in range(5):
            delays.append(client.next_delay(delays[-1]))
        assert delays == [1.0, 2.0, 4.0, 8.0, 8.0, 8.0]

    async def test_retries_with_backoff(self, client):
        waits = []

        async def fake_sleep(delay):
            waits.append(delay)
            if len(waits) == 4:
                raise RuntimeError("stop")

        with (
            patch("domshell.bridge.client.websockets.connect", side_effect=OSError("refused")),
            patch("domshell.bridge.client.asyncio.sleep", fake_sleep),
        ):
            with pytest.raises(RuntimeError, match="stop"):
                await client.run()
        assert waits == [1.0, 2.0, 4.0, 8.0]

    async def test_unauthorized_stops(self, client):
        urls = []

        class ClosedSocket:
            close_code = BRIDGE_UNAUTHORIZED

            def __aiter__(self):
                return self

            async def __anext__(self):
                raise StopAsyncIteration

        @asynccontextmanager
        async def fake_connect(url):
            urls.append(url)
            yield ClosedSocket()

        with patch("domshell.bridge.client.websockets.connect", fake_connect):
            with pytest.raises(Unauthorized):
                await client.run()
        assert urls == [client.endpoint]
