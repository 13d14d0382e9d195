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

"""WebSocket server for editor control.

Event front end of the dispatcher. Each client gets ``instance_info`` right
after connecting. Frames on one socket are handled strictly in arrival order.
Protocol problems are answered with an ``error`` frame and never close the
connection.

DevTools changes recorded by the shared state tracker (from either transport)
are pushed to every connected client as ``devtools_state``.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Set

from aiohttp import WSMsgType, web
from aiohttp.web import Request

from editor_control.api.dispatcher import CommandDispatcher
from editor_control.core import protocol
from editor_control.core.errors import EditorControlError, ProtocolError, ServerAlreadyRunningError, log_failure
from editor_control.core.protocol import Message, MessageType

logger = logging.getLogger(__name__)


class EditorControlWebSocketServer:
    """WebSocket server handle with explicit start/stop."""

    def __init__(
        self,
        dispatcher: CommandDispatcher,
        host: str = "127.0.0.1",
        port: int = 3001,
        path: str = "/",
    ):
        self.dispatcher = dispatcher
        self.host = host
        self.port = port
        self.path = path

        self._app = web.Application()
        self._app.router.add_get(path, self._websocket_handler)
        self._runner: Optional[web.AppRunner] = None

        self._ws_clients: List[web.WebSocketResponse] = []
        self._push_tasks: Set[asyncio.Task] = set()
        dispatcher.tracker.subscribe(self._on_devtools_change)

    @property
    def app(self) -> web.Application:
        return self._app

    @property
    def client_count(self) -> int:
        return len(self._ws_clients)

    @property
    def is_running(self) -> bool:
        return self._runner is not None

    # =========================================================================
    # Connection handling
    # =========================================================================

    async def _websocket_handler(self, request: Request) -> web.WebSocketResponse:
        """Handle one client connection for its whole lifetime."""
        ws = web.WebSocketResponse()
        await ws.prepare(request)

        self._ws_clients.append(ws)
        logger.info(f"WebSocket client connected. Total: {len(self._ws_clients)}")

        try:
            await self._send(ws, protocol.instance_info(self.dispatcher.instance_info()))

            async for msg in ws:
                if msg.type == WSMsgType.TEXT:
                    await self._handle_frame(ws, msg.data)
                elif msg.type == WSMsgType.BINARY:
                    await self._send(ws, protocol.error("Binary frames are not supported"))
                elif msg.type == WSMsgType.ERROR:
                    logger.error(f"WebSocket error: {ws.exception()}")
        finally:
            self._ws_clients.remove(ws)
            logger.info(f"WebSocket client disconnected. Total: {len(self._ws_clients)}")

        return ws

    async def _handle_frame(self, ws: web.WebSocketResponse, raw: str) -> None:
        try:
            message = protocol.parse_message(raw)
        except ProtocolError as e:
            await self._send(ws, protocol.error(e.message))
            return

        try:
            reply = await self.handle_message(message)
        except Exception as e:
            logger.exception("Failed to process WebSocket message")
            reply = protocol.error(f"Failed to process message: {e}", message.id)

        if reply is not None:
            await self._send(ws, reply)

    async def handle_message(self, message: Message) -> Optional[Message]:
        """Compute the reply to one client message."""
        msg_type = message.type

        if msg_type == MessageType.PING:
            return protocol.pong()

        if msg_type == MessageType.EXECUTE_COMMAND:
            data: Dict[str, Any] = message.data if isinstance(message.data, dict) else {}
            request_id = message.id if message.id is not None else data.get("id")
            try:
                result = await self.dispatcher.invoke(data.get("command"), data.get("args"))
            except EditorControlError as e:
                log_failure(logger, "Execute command error", e)
                return protocol.command_result(request_id, False, error=e.message)
            return protocol.command_result(request_id, True, result=result)

        if msg_type == MessageType.GET_INSTANCE_INFO:
            return protocol.instance_info(self.dispatcher.instance_info())

        if msg_type == MessageType.TOGGLE_DEVTOOLS:
            try:
                is_open = await self.dispatcher.toggle_devtools()
            except EditorControlError as e:
                log_failure(logger, "Toggle DevTools error", e)
                return protocol.error(f"Failed to toggle DevTools: {e.message}", message.id)
            return protocol.devtools_state(is_open, message.id)

        return protocol.error(f"Unsupported message type: {msg_type.value}", message.id)

    async def _send(self, ws: web.WebSocketResponse, message: Message) -> None:
        if ws.closed:
            return
        try:
            text = message.to_json()
        except (TypeError, ValueError) as e:
            logger.warning(f"Message is not JSON serializable: {e}")
            text = protocol.error(f"Result is not serializable: {e}", message.id).to_json()
        try:
            await ws.send_str(text)
        except (ConnectionResetError, RuntimeError) as e:
            logger.debug(f"Dropping {message.type.value} for closing client: {e}")

    # =========================================================================
    # Push notifications
    # =========================================================================

    async def broadcast(self, message: Message) -> None:
        """Send a message to all connected WebSocket clients."""
        for ws in list(self._ws_clients):
            await self._send(ws, message)

    def _on_devtools_change(self, is_open: bool) -> None:
        if not self._ws_clients:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        task = loop.create_task(self.broadcast(protocol.devtools_state(is_open)))
        self._push_tasks.add(task)
        task.add_done_callback(self._push_tasks.discard)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self) -> None:
        """Bind and start serving.

        Raises:
            ServerAlreadyRunningError: If already started
        """
        if self._runner is not None:
            raise ServerAlreadyRunningError("WebSocket")

        runner = web.AppRunner(self._app)
        await runner.setup()
        site = web.TCPSite(runner, self.host, self.port)
        try:
            await site.start()
        except OSError:
            await runner.cleanup()
            raise

        self._runner = runner
        if self.port == 0 and runner.addresses:
            self.port = runner.addresses[0][1]
        logger.info(f"Editor control WebSocket server running on {self.host}:{self.port}")

    async def stop(self) -> None:
        """Close all clients and stop serving. Safe to call when not running."""
        for task in list(self._push_tasks):
            task.cancel()
        for ws in list(self._ws_clients):
            await ws.close()
        if self._runner is None:
            return
        runner, self._runner = self._runner, None
        await runner.cleanup()
        logger.info("Editor control WebSocket server stopped")
