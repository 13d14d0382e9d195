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

"""Connection Lifecycle Manager - client side of the persistent WebSocket.

State machine:

    DISCONNECTED -> CONNECTING      connect attempt initiated
    CONNECTING   -> CONNECTED       handshake succeeded
    CONNECTING   -> DISCONNECTED    connect failed
    CONNECTED    -> DISCONNECTED    socket closed or errored

Responsibilities:
- Heartbeat: a ``ping`` every ``heartbeat_interval`` while connected. A
  missing ``pong`` is not a failure; only a transport close triggers recovery.
- Disconnect handling: cancel timers, fail every pending correlated request
  with ``ConnectionClosedError``, schedule a reconnect.
- Reconnect: delay and attempt bound come from a retry strategy; when it gives
  up the ``on_max_attempts`` callbacks fire and the manager stays idle.
- Teardown: ``disconnect()`` closes everything and is idempotent.

Timers are explicit task handles. Every transition into DISCONNECTED or
CONNECTED cancels both the heartbeat and the reconnect task, so at most one of
each exists at any time.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from enum import Enum
from typing import Any, Callable, List, Optional, Union

import aiohttp

from editor_control.core import protocol
from editor_control.core.correlation import CorrelationEngine
from editor_control.core.errors import NotConnectedError, ProtocolError, TransportError, error_message
from editor_control.core.protocol import Message
from editor_control.core.retry import BaseRetryStrategy, FixedDelayStrategy, RetryContext

logger = logging.getLogger(__name__)

MessageHandler = Callable[[Message], Any]


class ConnectionState(str, Enum):
    """WebSocket connection states."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class ConnectionManager:
    """Owns one WebSocket connection and keeps it alive."""

    def __init__(
        self,
        url: str,
        engine: Optional[CorrelationEngine] = None,
        strategy: Optional[BaseRetryStrategy] = None,
        heartbeat_interval: float = 30.0,
        connect_timeout: float = 10.0,
        message_handler: Optional[MessageHandler] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """Initialize the connection manager.

        Args:
            url: WebSocket URL, e.g. ``ws://127.0.0.1:3001/``
            engine: Correlation engine whose entries die with the connection
            strategy: Reconnect strategy (fixed 5s, 10 attempts by default)
            heartbeat_interval: Seconds between pings
            connect_timeout: Seconds allowed for one handshake
            message_handler: Called with every parsed incoming message, in order
            session: Client session to use; one is created (and owned) if omitted
        """
        self.url = url
        self.engine = engine if engine is not None else CorrelationEngine()
        self.strategy = strategy or FixedDelayStrategy()
        self.heartbeat_interval = heartbeat_interval
        self.connect_timeout = connect_timeout
        self.message_handler = message_handler

        self._session = session
        self._owns_session = session is None
        self._ws: Optional[aiohttp.ClientWebSocketResponse] = None
        self._state = ConnectionState.DISCONNECTED
        self._closing = False

        self._retry = RetryContext()
        self._heartbeat_task: Optional[asyncio.Task] = None
        self._reconnect_task: Optional[asyncio.Task] = None
        self._reader_task: Optional[asyncio.Task] = None

        self._on_connected: List[Callable[[], None]] = []
        self._on_disconnected: List[Callable[[], None]] = []
        self._on_error: List[Callable[[BaseException], None]] = []
        self._on_max_attempts: List[Callable[[int], None]] = []
        self._on_state_change: List[Callable[[ConnectionState], None]] = []

    # =========================================================================
    # Observers
    # =========================================================================

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == ConnectionState.CONNECTED

    @property
    def reconnect_attempts(self) -> int:
        return self._retry.attempt

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_task is not None and not self._reconnect_task.done()

    @property
    def heartbeat_running(self) -> bool:
        return self._heartbeat_task is not None and not self._heartbeat_task.done()

    def add_on_connected(self, callback: Callable[[], None]) -> None:
        self._on_connected.append(callback)

    def add_on_disconnected(self, callback: Callable[[], None]) -> None:
        self._on_disconnected.append(callback)

    def add_on_error(self, callback: Callable[[BaseException], None]) -> None:
        self._on_error.append(callback)

    def add_on_max_attempts(self, callback: Callable[[int], None]) -> None:
        """Called once reconnecting gives up, with the number of attempts made."""
        self._on_max_attempts.append(callback)

    def add_on_state_change(self, callback: Callable[[ConnectionState], None]) -> None:
        self._on_state_change.append(callback)

    # =========================================================================
    # Public API
    # =========================================================================

    async def connect(self, retry: bool = True) -> bool:
        """Open the WebSocket.

        A manual connect starts a fresh reconnect sequence.

        Args:
            retry: Schedule reconnect attempts if this attempt fails

        Returns:
            True if connected
        """
        if self._state != ConnectionState.DISCONNECTED:
            return self.is_connected

        self._closing = False
        self._cancel_task("_reconnect_task")
        self._retry.reset()

        error = await self._open()
        if error is None:
            return self.is_connected
        if retry:
            self._schedule_reconnect(error)
        return False

    async def send(self, message: Union[Message, dict]) -> None:
        """Send one message.

        Raises:
            NotConnectedError: If the socket is not open
            TransportError: If the write fails
        """
        ws = self._ws
        if self._state != ConnectionState.CONNECTED or ws is None or ws.closed:
            raise NotConnectedError()

        if not isinstance(message, Message):
            message = Message.model_validate(message)
        payload = message.to_json()
        try:
            await ws.send_str(payload)
        except (ConnectionResetError, RuntimeError) as e:
            raise TransportError(f"Failed to send message: {e}", cause=e) from e

    async def disconnect(self) -> None:
        """Close the socket and stop all timers. No reconnect follows."""
        self._closing = True
        self._cancel_timers()

        ws, self._ws = self._ws, None
        if ws is not None and not ws.closed:
            await ws.close()

        reader = self._reader_task
        self._reader_task = None
        if reader is not None and reader is not asyncio.current_task():
            reader.cancel()
            await asyncio.gather(reader, return_exceptions=True)

        if self._state != ConnectionState.DISCONNECTED:
            self._set_state(ConnectionState.DISCONNECTED)
            self.engine.cancel_all("disconnected")
            self._notify(self._on_disconnected)

        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None
        logger.info("Disconnected from editor")

    # =========================================================================
    # Internals
    # =========================================================================

    async def _open(self) -> Optional[BaseException]:
        """One connect attempt. Returns the error, or None on success."""
        self._set_state(ConnectionState.CONNECTING)
        if self._session is None:
            self._session = aiohttp.ClientSession()
            self._owns_session = True

        try:
            ws = await asyncio.wait_for(self._session.ws_connect(self.url), self.connect_timeout)
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            logger.warning(f"WebSocket connect to {self.url} failed: {error_message(e)}")
            self._set_state(ConnectionState.DISCONNECTED)
            self._notify(self._on_error, e)
            return e

        if self._closing:
            await ws.close()
            self._set_state(ConnectionState.DISCONNECTED)
            return None

        self._ws = ws
        self._set_state(ConnectionState.CONNECTED)
        self._retry.reset()
        logger.info(f"WebSocket connection established: {self.url}")

        loop = asyncio.get_running_loop()
        self._heartbeat_task = loop.create_task(self._heartbeat_loop())
        self._reader_task = loop.create_task(self._reader_loop(ws))
        self._notify(self._on_connected)
        return None

    async def _reader_loop(self, ws: aiohttp.ClientWebSocketResponse) -> None:
        async for msg in ws:
            if msg.type == aiohttp.WSMsgType.TEXT:
                await self._dispatch(msg.data)
            elif msg.type == aiohttp.WSMsgType.ERROR:
                logger.error(f"WebSocket connection error: {ws.exception()}")
                self._notify(self._on_error, ws.exception())
        await self._handle_disconnect(ws, ws.exception())

    async def _dispatch(self, raw: str) -> None:
        try:
            message = protocol.parse_message(raw)
        except ProtocolError as e:
            logger.error(f"Error processing message: {e.message}")
            return

        if self.message_handler is None:
            return
        try:
            result = self.message_handler(message)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception(f"Message handler failed for {message.type.value}")

    async def _handle_disconnect(
        self, ws: aiohttp.ClientWebSocketResponse, exc: Optional[BaseException] = None
    ) -> None:
        if self._ws is not ws:
            return
        self._ws = None
        self._reader_task = None

        logger.info("WebSocket connection closed")
        self._set_state(ConnectionState.DISCONNECTED)
        self.engine.cancel_all("connection closed")
        self._notify(self._on_disconnected)

        if not self._closing:
            self._schedule_reconnect(exc)

    def _schedule_reconnect(self, exc: Optional[BaseException] = None) -> None:
        self._retry.record_exception(exc)
        if not self.strategy.should_retry(self._retry):
            last = self._retry.last_exception
            logger.error(
                f"Maximum reconnect attempts reached ({self._retry.attempt}/{self.strategy.max_attempts}) "
                f"after {self._retry.total_delay:.1f}s of backoff"
                + (f"; last error: {error_message(last)}" if last is not None else "")
            )
            self._notify(self._on_max_attempts, self._retry.attempt)
            return

        self._retry.attempt += 1
        delay = self.strategy.get_delay(self._retry)
        self._retry.record_delay(delay)
        logger.info(
            f"Reconnecting ({self._retry.attempt}/{self.strategy.max_attempts}) in {delay:.1f}s"
        )

        self._cancel_task("_reconnect_task")
        self._reconnect_task = asyncio.get_running_loop().create_task(self._reconnect_after(delay))

    async def _reconnect_after(self, delay: float) -> None:
        await asyncio.sleep(delay)
        # Detach first: the transition out of CONNECTING cancels the reconnect task.
        self._reconnect_task = None
        if self._closing or self._state != ConnectionState.DISCONNECTED:
            return
        error = await self._open()
        if error is not None and not self._closing:
            self._schedule_reconnect(error)

    async def _heartbeat_loop(self) -> None:
        while True:
            await asyncio.sleep(self.heartbeat_interval)
            ws = self._ws
            if self._state != ConnectionState.CONNECTED or ws is None or ws.closed:
                continue
            try:
                await ws.send_str(protocol.ping().to_json())
                logger.debug("Heartbeat ping sent")
            except (ConnectionResetError, RuntimeError) as e:
                logger.debug(f"Heartbeat ping failed: {e}")

    def _set_state(self, new_state: ConnectionState) -> None:
        if new_state in (ConnectionState.DISCONNECTED, ConnectionState.CONNECTED):
            self._cancel_timers()
        if new_state == self._state:
            return
        logger.debug(f"Connection state {self._state.value} -> {new_state.value}")
        self._state = new_state
        self._notify(self._on_state_change, new_state)

    def _cancel_timers(self) -> None:
        self._cancel_task("_heartbeat_task")
        self._cancel_task("_reconnect_task")

    def _cancel_task(self, attr: str) -> None:
        task: Optional[asyncio.Task] = getattr(self, attr)
        setattr(self, attr, None)
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    @staticmethod
    def _notify(callbacks: List[Callable[..., None]], *args: Any) -> None:
        for callback in list(callbacks):
            try:
                callback(*args)
            except Exception:
                logger.exception("Connection callback failed")
