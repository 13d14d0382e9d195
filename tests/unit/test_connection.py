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

"""Tests for the connection lifecycle manager."""

import asyncio

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from editor_control.api.websocket import EditorControlWebSocketServer
from editor_control.client.connection import ConnectionManager, ConnectionState
from editor_control.core import protocol
from editor_control.core.correlation import CorrelationEngine
from editor_control.core.errors import ConnectionClosedError, NotConnectedError
from editor_control.core.protocol import MessageType
from editor_control.core.retry import FixedDelayStrategy


async def wait_until(predicate, timeout=2.0):
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


@pytest_asyncio.fixture
async def ws_server(dispatcher):
    server = EditorControlWebSocketServer(dispatcher, port=0)
    await server.start()
    yield server
    await server.stop()


def make_manager(port, received=None, engine=None, **kwargs):
    kwargs.setdefault("strategy", FixedDelayStrategy(max_attempts=3, delay=0.05))
    kwargs.setdefault("heartbeat_interval", 30.0)
    return ConnectionManager(
        f"ws://127.0.0.1:{port}/",
        engine=engine if engine is not None else CorrelationEngine(),
        message_handler=received.append if received is not None else None,
        **kwargs,
    )


class TestConnect:
    """Tests for connecting and sending."""

    @pytest.mark.asyncio
    async def test_connect_and_receive_greeting(self, ws_server):
        received = []
        manager = make_manager(ws_server.port, received)
        states = []
        connected = []
        manager.add_on_state_change(states.append)
        manager.add_on_connected(lambda: connected.append(True))

        try:
            assert await manager.connect()
            assert manager.state == ConnectionState.CONNECTED
            assert manager.reconnect_attempts == 0
            assert connected == [True]
            assert states == [ConnectionState.CONNECTING, ConnectionState.CONNECTED]

            await wait_until(lambda: received)
            assert received[0].type == MessageType.INSTANCE_INFO
        finally:
            await manager.disconnect()

    @pytest.mark.asyncio
    async def test_send_requires_connection(self):
        manager = ConnectionManager("ws://127.0.0.1:1/")
        with pytest.raises(NotConnectedError):
            await manager.send(protocol.ping())

    @pytest.mark.asyncio
    async def test_second_connect_is_noop(self, ws_server):
        manager = make_manager(ws_server.port)
        try:
            assert await manager.connect()
            assert await manager.connect()
            assert ws_server.client_count == 1
        finally:
            await manager.disconnect()

    @pytest.mark.asyncio
    async def test_heartbeat_pings_while_connected(self, ws_server):
        received = []
        manager = make_manager(ws_server.port, received, heartbeat_interval=0.02)
        try:
            await manager.connect()
            assert manager.heartbeat_running
            await wait_until(lambda: any(m.type == MessageType.PONG for m in received))
        finally:
            await manager.disconnect()

        assert not manager.heartbeat_running

    @pytest.mark.asyncio
    async def test_malformed_frames_are_skipped(self):
        async def handler(request):
            ws = web.WebSocketResponse()
            await ws.prepare(request)
            await ws.send_str("{not json")
            await ws.send_str('{"type": "reboot"}')
            await ws.send_str('{"type": "pong", "timestamp": 1}')
            async for _ in ws:
                pass
            return ws

        app = web.Application()
        app.router.add_get("/", handler)
        received = []

        async with TestServer(app) as server:
            manager = ConnectionManager(
                str(server.make_url("/")).replace("http://", "ws://", 1),
                message_handler=received.append,
            )
            try:
                await manager.connect()
                await wait_until(lambda: received)
                await asyncio.sleep(0.05)
            finally:
                await manager.disconnect()

        assert [m.type for m in received] == [MessageType.PONG]
        assert manager.state == ConnectionState.DISCONNECTED


class TestDisconnect:
    """Tests for teardown and recovery."""

    @pytest.mark.asyncio
    async def test_server_loss_cancels_pending_and_reconnects(self, dispatcher):
        server = EditorControlWebSocketServer(dispatcher, port=0)
        await server.start()
        port = server.port

        engine = CorrelationEngine()
        manager = make_manager(
            port, engine=engine, strategy=FixedDelayStrategy(max_attempts=100, delay=0.05)
        )
        disconnected = []
        manager.add_on_disconnected(lambda: disconnected.append(True))

        await manager.connect()
        waiter = engine.waiter(engine.begin())

        await server.stop()
        with pytest.raises(ConnectionClosedError):
            await asyncio.wait_for(waiter, 2)

        await wait_until(lambda: disconnected)
        assert len(engine) == 0
        await wait_until(lambda: manager.reconnect_attempts >= 1)

        restarted = EditorControlWebSocketServer(dispatcher, port=port)
        await restarted.start()
        try:
            await wait_until(lambda: manager.is_connected)
            assert manager.reconnect_attempts == 0
        finally:
            await manager.disconnect()
            await restarted.stop()

    @pytest.mark.asyncio
    async def test_reconnect_stops_at_max_attempts(self, unused_tcp_port):
        exhausted = []
        errors = []
        manager = ConnectionManager(
            f"ws://127.0.0.1:{unused_tcp_port}/",
            strategy=FixedDelayStrategy(max_attempts=2, delay=0.01),
        )
        manager.add_on_max_attempts(exhausted.append)
        manager.add_on_error(errors.append)

        try:
            assert not await manager.connect()
            await wait_until(lambda: exhausted)

            assert exhausted == [2]
            assert manager.reconnect_attempts == 2
            assert len(errors) == 3
            assert not manager.reconnect_pending
            assert manager.state == ConnectionState.DISCONNECTED
        finally:
            await manager.disconnect()

    @pytest.mark.asyncio
    async def test_connect_without_retry(self, unused_tcp_port):
        manager = ConnectionManager(f"ws://127.0.0.1:{unused_tcp_port}/")
        try:
            assert not await manager.connect(retry=False)
            assert not manager.reconnect_pending
        finally:
            await manager.disconnect()

    @pytest.mark.asyncio
    async def test_disconnect_is_idempotent_and_final(self, ws_server):
        engine = CorrelationEngine()
        manager = make_manager(ws_server.port, engine=engine)
        disconnected = []
        manager.add_on_disconnected(lambda: disconnected.append(True))

        await manager.connect()
        waiter = engine.waiter(engine.begin())

        await manager.disconnect()
        await manager.disconnect()

        with pytest.raises(ConnectionClosedError):
            await waiter
        assert disconnected == [True]
        assert manager.state == ConnectionState.DISCONNECTED
        assert not manager.reconnect_pending

        await asyncio.sleep(0.1)
        assert manager.state == ConnectionState.DISCONNECTED
