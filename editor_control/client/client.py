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

"""Client for a running editor-control service.

Request/response calls go over HTTP; correlated calls go over the persistent
WebSocket managed by :class:`ConnectionManager`.

Example:
    async with EditorControlClient() as client:
        await client.connect()
        await client.execute_command_ws("editor.action.selectAll")
        is_open = await client.toggle_devtools_ws()
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Callable, Dict, List, Optional, Sequence

import aiohttp

from editor_control.client.connection import ConnectionManager
from editor_control.config.settings import Settings
from editor_control.core import protocol
from editor_control.core.correlation import CorrelationEngine
from editor_control.core.devtools import DevToolsStateTracker
from editor_control.core.errors import (
    BadRequestError,
    EditorControlError,
    HostCommandError,
    NotConnectedError,
    TransportError,
)
from editor_control.core.instance import EditorInstance
from editor_control.core.protocol import Message, MessageType
from editor_control.core.retry import BaseRetryStrategy, create_strategy

logger = logging.getLogger(__name__)


class EditorControlClient:
    """HTTP and WebSocket client for one editor instance."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        strategy: Optional[BaseRetryStrategy] = None,
    ):
        """Initialize the client.

        Args:
            settings: Endpoints and timing; defaults to ``Settings()``
            strategy: Reconnect strategy; built from settings when omitted
        """
        self.settings = settings or Settings()
        self.api_url = self.settings.api_base_url
        self.request_timeout = self.settings.request_timeout

        self.engine = CorrelationEngine(default_timeout=self.request_timeout)
        self.tracker = DevToolsStateTracker()
        self.instance: Optional[EditorInstance] = None

        if strategy is None:
            strategy = create_strategy(
                self.settings.reconnect_strategy,
                max_attempts=self.settings.max_reconnect_attempts,
                interval=self.settings.reconnect_interval,
                max_delay=self.settings.max_reconnect_delay,
            )
        self.connection = ConnectionManager(
            self.settings.ws_url,
            engine=self.engine,
            strategy=strategy,
            heartbeat_interval=self.settings.heartbeat_interval,
            connect_timeout=self.request_timeout,
            message_handler=self._handle_message,
        )

        self._session: Optional[aiohttp.ClientSession] = None
        self._instance_waiters: List[asyncio.Future] = []
        self._instance_listeners: List[Callable[[EditorInstance], None]] = []

    async def __aenter__(self) -> "EditorControlClient":
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        await self.close()

    @property
    def is_connected(self) -> bool:
        return self.connection.is_connected

    @property
    def devtools_open(self) -> bool:
        return self.tracker.get_state()

    def on_devtools_state_change(self, listener: Callable[[bool], None]) -> Callable[[], None]:
        """Subscribe to devtools changes reported by the editor. Returns an unsubscribe function."""
        return self.tracker.subscribe(listener)

    def on_instance_info(self, listener: Callable[[EditorInstance], None]) -> None:
        self._instance_listeners.append(listener)

    # =========================================================================
    # HTTP API
    # =========================================================================

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.request_timeout)
            )
        return self._session

    async def _request(self, method: str, path: str, body: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = f"{self.api_url}{path}"
        try:
            async with self._get_session().request(method, url, json=body) as response:
                text = await response.text()
                status = response.status
        except asyncio.TimeoutError as e:
            raise TransportError(f"Request to {url} timed out", cause=e) from e
        except aiohttp.ClientError as e:
            raise TransportError(f"Request to {url} failed: {e}", cause=e) from e

        try:
            data = json.loads(text) if text else {}
        except json.JSONDecodeError as e:
            raise TransportError(f"Invalid JSON response from {url}", cause=e) from e

        if status >= 400:
            message = data.get("error") if isinstance(data, dict) else None
            message = message or f"HTTP {status}"
            if status == 400:
                raise BadRequestError(message)
            if status >= 500:
                raise HostCommandError(message)
            raise TransportError(message, details={"status": status})
        return data if isinstance(data, dict) else {}

    async def get_instance_info(self) -> EditorInstance:
        data = await self._request("GET", "/instances")
        self.instance = EditorInstance.from_dict(data.get("instance") or {})
        return self.instance

    async def list_commands(self) -> List[str]:
        data = await self._request("GET", "/commands")
        return list(data.get("commands") or [])

    async def execute_command(self, command: str, args: Optional[Sequence[Any]] = None) -> Any:
        """Run a command through the HTTP API and return its result."""
        data = await self._request(
            "POST", "/commands/execute", {"command": command, "args": list(args or [])}
        )
        return data.get("result")

    async def toggle_devtools(self) -> bool:
        data = await self._request("POST", "/devtools/toggle")
        is_open = bool(data.get("devToolsOpen"))
        self.tracker.set_state(is_open)
        return is_open

    async def execute_in_devtools(self, script: str) -> str:
        data = await self._request("POST", "/devtools/execute", {"script": script})
        self.tracker.set_state(True)
        return str(data.get("message", ""))

    # =========================================================================
    # WebSocket API
    # =========================================================================

    async def connect(self) -> EditorInstance:
        """Check the editor over HTTP, then open the WebSocket.

        Raises:
            TransportError: If the HTTP API is unreachable
        """
        instance = await self.get_instance_info()
        await self.connection.connect()
        return instance

    async def disconnect(self) -> None:
        await self.connection.disconnect()

    async def close(self) -> None:
        """Disconnect and release the HTTP session."""
        await self.disconnect()
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def execute_command_ws(
        self,
        command: str,
        args: Optional[Sequence[Any]] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """Run a command over the WebSocket and wait for its correlated result.

        Raises:
            NotConnectedError: If the socket is not open
            HostCommandError: If the editor reports failure
            CorrelationTimeoutError: If no result arrives in time
            ConnectionClosedError: If the connection drops first
        """
        if not self.connection.is_connected:
            raise NotConnectedError()
        request_id = self.engine.begin(timeout, kind="command")
        return await self._send_correlated(
            request_id, protocol.execute_command(request_id, command, list(args or []))
        )

    async def toggle_devtools_ws(self, timeout: Optional[float] = None) -> bool:
        """Toggle devtools over the WebSocket; returns the new state."""
        if not self.connection.is_connected:
            raise NotConnectedError()
        request_id = self.engine.begin(timeout, kind="devtools")
        return bool(await self._send_correlated(request_id, protocol.toggle_devtools(request_id)))

    async def get_instance_info_ws(self, timeout: Optional[float] = None) -> EditorInstance:
        """Ask for ``instance_info`` and wait for the next one to arrive."""
        if not self.connection.is_connected:
            raise NotConnectedError()
        waiter = asyncio.get_running_loop().create_future()
        self._instance_waiters.append(waiter)
        try:
            await self.connection.send(protocol.get_instance_info())
            return await asyncio.wait_for(waiter, timeout or self.request_timeout)
        finally:
            if waiter in self._instance_waiters:
                self._instance_waiters.remove(waiter)

    async def _send_correlated(self, request_id: int, message: Message) -> Any:
        # Take the future before sending; the reply may beat the send's return.
        waiter = self.engine.waiter(request_id)
        try:
            await self.connection.send(message)
        except EditorControlError as e:
            self.engine.reject(request_id, e)
        return await waiter

    # =========================================================================
    # Incoming messages
    # =========================================================================

    def _handle_message(self, message: Message) -> None:
        msg_type = message.type

        if msg_type == MessageType.COMMAND_RESULT:
            if message.success:
                self.engine.resolve(message.id, message.result)
            else:
                self.engine.reject(message.id, HostCommandError(message.error or "Command failed"))

        elif msg_type == MessageType.DEVTOOLS_STATE:
            if message.open is None:
                logger.warning("Ignoring devtools_state without 'open'")
                return
            is_open = bool(message.open)
            if message.id is not None:
                self.engine.resolve(message.id, is_open)
            self.tracker.set_state(is_open)

        elif msg_type == MessageType.INSTANCE_INFO:
            self._set_instance(EditorInstance.from_dict(message.data or {}))

        elif msg_type == MessageType.ERROR:
            error_text = message.message or "Unknown error"
            if message.id is not None and message.id in self.engine:
                self.engine.reject(message.id, EditorControlError(error_text))
            else:
                logger.error(f"Server error: {error_text}")

        elif msg_type == MessageType.PONG:
            logger.debug("Heartbeat pong received")

        else:
            logger.debug(f"Ignoring {msg_type.value} message")

    def _set_instance(self, instance: EditorInstance) -> None:
        self.instance = instance
        for waiter in self._instance_waiters:
            if not waiter.done():
                waiter.set_result(instance)
        for listener in list(self._instance_listeners):
            try:
                listener(instance)
            except Exception:
                logger.exception("Instance info listener failed")
