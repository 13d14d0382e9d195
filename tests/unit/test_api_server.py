# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Tests for the HTTP API server."""

import pytest
from aiohttp.test_utils import TestClient, TestServer

from editor_control import __version__
from editor_control.api.server import EditorControlAPIServer
from editor_control.api.websocket import EditorControlWebSocketServer
from editor_control.core import protocol
from editor_control.core.errors import ServerAlreadyRunningError


@pytest.fixture
def api_server(dispatcher):
    return EditorControlAPIServer(dispatcher, port=0)


class TestEndpoints:
    """Tests for the API routes."""

    @pytest.mark.asyncio
    async def test_health(self, api_server):
        async with TestClient(TestServer(api_server.app)) as client:
            resp = await client.get("/health")
            assert resp.status == 200
            assert await resp.json() == {"status": "healthy", "version": __version__}

    @pytest.mark.asyncio
    async def test_instances(self, api_server):
        async with TestClient(TestServer(api_server.app)) as client:
            resp = await client.get("/api/instances")
            data = await resp.json()

            assert resp.status == 200
            assert data["instance"]["id"] == "instance-1"
            assert data["instance"]["type"] == "vscode"

    @pytest.mark.asyncio
    async def test_commands(self, api_server):
        async with TestClient(TestServer(api_server.app)) as client:
            resp = await client.get("/api/commands")
            data = await resp.json()

            assert resp.status == 200
            assert "editor.action.selectAll" in data["commands"]

    @pytest.mark.asyncio
    async def test_execute_command(self, api_server):
        async with TestClient(TestServer(api_server.app)) as client:
            resp = await client.post(
                "/api/commands/execute", json={"command": "demo.echo", "args": [1, "two"]}
            )
            assert resp.status == 200
            assert await resp.json() == {"success": True, "result": [1, "two"]}

    @pytest.mark.asyncio
    async def test_execute_command_null_result(self, api_server):
        async with TestClient(TestServer(api_server.app)) as client:
            resp = await client.post(
                "/api/commands/execute", json={"command": "editor.action.selectAll"}
            )
            assert await resp.json() == {"success": True, "result": None}

    @pytest.mark.asyncio
    async def test_execute_without_command_is_400(self, api_server):
        async with TestClient(TestServer(api_server.app)) as client:
            resp = await client.post("/api/commands/execute", json={})
            assert resp.status == 400
            assert await resp.json() == {"error": "Command name is required"}

    @pytest.mark.asyncio
    async def test_invalid_json_is_400(self, api_server):
        async with TestClient(TestServer(api_server.app)) as client:
            resp = await client.post(
                "/api/commands/execute",
                data="{broken",
                headers={"Content-Type": "application/json"},
            )
            assert resp.status == 400
            assert "Invalid JSON" in (await resp.json())["error"]

    @pytest.mark.asyncio
    async def test_non_utf8_body_is_400(self, api_server):
        async with TestClient(TestServer(api_server.app)) as client:
            resp = await client.post(
                "/api/commands/execute",
                data=b'{"command": "\xff\xfe"}',
                headers={"Content-Type": "application/json"},
            )
            assert resp.status == 400
            assert resp.content_type == "application/json"
            assert "Invalid JSON" in (await resp.json())["error"]

    @pytest.mark.asyncio
    async def test_set_result_is_sent_as_list(self, api_server, host):
        host.register_command("demo.tags", lambda: {"a"})
        async with TestClient(TestServer(api_server.app)) as client:
            resp = await client.post("/api/commands/execute", json={"command": "demo.tags"})
            assert resp.status == 200
            assert await resp.json() == {"success": True, "result": ["a"]}

    @pytest.mark.asyncio
    async def test_unserializable_result_is_500(self, api_server, host):
        host.register_command("demo.opaque", lambda: object())
        async with TestClient(TestServer(api_server.app)) as client:
            resp = await client.post("/api/commands/execute", json={"command": "demo.opaque"})
            assert resp.status == 500
            assert await resp.json() == {
                "success": False,
                "error": "Command result is not serializable: object",
            }

    @pytest.mark.asyncio
    async def test_host_failure_is_500(self, api_server):
        async with TestClient(TestServer(api_server.app)) as client:
            resp = await client.post("/api/commands/execute", json={"command": "missing.cmd"})
            assert resp.status == 500
            assert await resp.json() == {
                "success": False,
                "error": "command 'missing.cmd' not found",
            }

    @pytest.mark.asyncio
    async def test_toggle_devtools(self, api_server):
        async with TestClient(TestServer(api_server.app)) as client:
            first = await (await client.post("/api/devtools/toggle")).json()
            second = await (await client.post("/api/devtools/toggle")).json()

            assert first == {"success": True, "devToolsOpen": True}
            assert second == {"success": True, "devToolsOpen": False}
            assert api_server.dispatcher.tracker.get_state() is False

    @pytest.mark.asyncio
    async def test_execute_in_devtools(self, api_server):
        async with TestClient(TestServer(api_server.app)) as client:
            resp = await client.post("/api/devtools/execute", json={"script": "1 + 1"})
            assert await resp.json() == {"success": True, "message": "Script execution started"}

            resp = await client.post("/api/devtools/execute", json={})
            assert resp.status == 400
            assert await resp.json() == {"error": "Script is required"}

    @pytest.mark.asyncio
    async def test_unknown_route_is_json(self, api_server):
        async with TestClient(TestServer(api_server.app)) as client:
            resp = await client.get("/api/nope")
            assert resp.status == 404
            assert "error" in await resp.json()


class TestCors:
    """Tests for the local-origin CORS middleware."""

    @pytest.mark.asyncio
    async def test_local_origin_is_echoed(self, api_server):
        async with TestClient(TestServer(api_server.app)) as client:
            resp = await client.get("/api/instances", headers={"Origin": "http://localhost:5173"})
            assert resp.headers["Access-Control-Allow-Origin"] == "http://localhost:5173"

    @pytest.mark.asyncio
    async def test_foreign_origin_is_not_echoed(self, api_server):
        async with TestClient(TestServer(api_server.app)) as client:
            resp = await client.get("/api/instances", headers={"Origin": "http://evil.example"})
            assert resp.status == 200
            assert "Access-Control-Allow-Origin" not in resp.headers

    @pytest.mark.asyncio
    async def test_preflight(self, api_server):
        async with TestClient(TestServer(api_server.app)) as client:
            ok = await client.options(
                "/api/commands/execute", headers={"Origin": "http://127.0.0.1:8080"}
            )
            denied = await client.options(
                "/api/commands/execute", headers={"Origin": "https://example.com"}
            )

            assert ok.status == 204
            assert "POST" in ok.headers["Access-Control-Allow-Methods"]
            assert denied.status == 403


class TestTransportEquivalence:
    """The same host outcome looks the same over HTTP and over the WebSocket."""

    async def run_both(self, dispatcher, command):
        api = EditorControlAPIServer(dispatcher, port=0)
        ws_server = EditorControlWebSocketServer(dispatcher, port=0)
        async with TestClient(TestServer(api.app)) as http, TestClient(
            TestServer(ws_server.app)
        ) as events:
            resp = await http.post("/api/commands/execute", json={"command": command})
            http_body = await resp.json()

            ws = await events.ws_connect("/")
            await ws.receive_json(timeout=2)
            await ws.send_str(protocol.execute_command(1, command).to_json())
            ws_reply = await ws.receive_json(timeout=2)
            await ws.close()
        return resp.status, http_body, ws_reply

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "handler, expected",
        [
            (lambda: {"a"}, ["a"]),
            (lambda: ("x", 1), ["x", 1]),
            (lambda: None, None),
            (lambda: {"nested": {"k": [1, 2]}}, {"nested": {"k": [1, 2]}}),
        ],
    )
    async def test_same_result(self, dispatcher, host, handler, expected):
        host.register_command("demo.value", handler)

        status, http_body, ws_reply = await self.run_both(dispatcher, "demo.value")

        assert status == 200
        assert http_body == {"success": True, "result": expected}
        assert ws_reply == {"type": "command_result", "id": 1, "success": True, "result": expected}

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "command, handler, message",
        [
            ("demo.fail", lambda: 1 / 0, "division by zero"),
            ("demo.opaque", lambda: object(), "Command result is not serializable: object"),
        ],
    )
    async def test_same_error(self, dispatcher, host, command, handler, message):
        host.register_command(command, handler)

        status, http_body, ws_reply = await self.run_both(dispatcher, command)

        assert status == 500
        assert http_body == {"success": False, "error": message}
        assert ws_reply == {"type": "command_result", "id": 1, "success": False, "error": message}


class TestLifecycle:
    """Tests for start/stop of the server handle."""

    @pytest.mark.asyncio
    async def test_start_stop(self, api_server):
        await api_server.start()
        try:
            assert api_server.is_running
            assert api_server.port != 0
            with pytest.raises(ServerAlreadyRunningError):
                await api_server.start()
        finally:
            await api_server.stop()

        assert not api_server.is_running
        await api_server.stop()
