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

"""Command Correlation Engine.

Links asynchronous requests sent over the WebSocket to the result messages
that eventually answer them.

Each request gets an id from a monotonic counter and a future that settles
exactly once, by whichever comes first:
- a matching result (``resolve`` / ``reject``)
- its deadline (rejected with ``CorrelationTimeoutError``)
- connection teardown (``cancel_all``)

Results for ids that are no longer pending (late arrivals, unknown ids) are
ignored; the caller already has an outcome.

Usage:
    engine = CorrelationEngine(default_timeout=10.0)
    request_id = engine.begin()
    waiter = engine.waiter(request_id)   # grab before any await
    await send({"type": "execute_command", "id": request_id, ...})
    result = await waiter
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from editor_control.core.errors import (
    ConnectionClosedError,
    CorrelationTimeoutError,
    EditorControlError,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


@dataclass
class PendingCommand:
    """An outstanding correlated request."""

    id: int
    future: asyncio.Future
    timeout: float
    kind: str = "command"
    created_at: float = field(default_factory=time.monotonic)
    timeout_handle: Optional[asyncio.TimerHandle] = None

    @property
    def age(self) -> float:
        return time.monotonic() - self.created_at


class CorrelationEngine:
    """Tracks pending requests by correlation id."""

    def __init__(self, default_timeout: float = DEFAULT_TIMEOUT):
        self.default_timeout = default_timeout
        self._pending: Dict[int, PendingCommand] = {}
        self._next_id = 1

    def begin(self, timeout: Optional[float] = None, kind: str = "command") -> int:
        """Allocate a pending entry and start its deadline.

        Must be called from a running event loop.
        """
        loop = asyncio.get_running_loop()
        timeout = self.default_timeout if timeout is None else timeout

        request_id = self._next_id
        self._next_id += 1

        future: asyncio.Future = loop.create_future()
        entry = PendingCommand(id=request_id, future=future, timeout=timeout, kind=kind)
        entry.timeout_handle = loop.call_later(timeout, self._expire, request_id)
        future.add_done_callback(lambda f, rid=request_id: self._on_done(rid, f))

        self._pending[request_id] = entry
        logger.debug(f"Pending {kind} {request_id} (timeout {timeout}s)")
        return request_id

    def waiter(self, request_id: int) -> asyncio.Future:
        """Future of a pending entry.

        Raises:
            KeyError: If the id is not pending
        """
        return self._pending[request_id].future

    async def wait(self, request_id: int) -> Any:
        return await self.waiter(request_id)

    def resolve(self, request_id: Any, result: Any = None) -> bool:
        """Complete an entry successfully. Returns False for non-pending ids."""
        entry = self._take(request_id)
        if entry is None:
            return False
        if not entry.future.done():
            entry.future.set_result(result)
        return True

    def reject(self, request_id: Any, error: Any) -> bool:
        """Fail an entry. ``error`` may be an exception or a message string."""
        entry = self._take(request_id)
        if entry is None:
            return False
        if not entry.future.done():
            if not isinstance(error, BaseException):
                error = EditorControlError(str(error))
            entry.future.set_exception(error)
        return True

    def cancel_all(self, reason: str = "connection closed") -> int:
        """Reject every pending entry with ``ConnectionClosedError``.

        Returns:
            Number of entries rejected
        """
        ids = list(self._pending)
        for request_id in ids:
            self.reject(request_id, ConnectionClosedError(reason))
        if ids:
            logger.info(f"Cancelled {len(ids)} pending request(s): {reason}")
        return len(ids)

    def pending_ids(self) -> List[int]:
        return sorted(self._pending)

    def get(self, request_id: int) -> Optional[PendingCommand]:
        return self._pending.get(request_id)

    def __contains__(self, request_id: object) -> bool:
        return request_id in self._pending

    def __len__(self) -> int:
        return len(self._pending)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _take(self, request_id: Any) -> Optional[PendingCommand]:
        entry = self._pending.pop(request_id, None)
        if entry is None:
            logger.debug(f"Ignoring result for non-pending request {request_id!r}")
            return None
        if entry.timeout_handle is not None:
            entry.timeout_handle.cancel()
        return entry

    def _expire(self, request_id: int) -> None:
        entry = self._pending.get(request_id)
        if entry is None:
            return
        logger.warning(f"Request {request_id} timed out after {entry.timeout}s")
        self.reject(request_id, CorrelationTimeoutError(request_id, entry.timeout))

    def _on_done(self, request_id: int, future: asyncio.Future) -> None:
        # Caller cancelled its wait: drop the entry so it cannot linger.
        if future.cancelled():
            self._take(request_id)
            return
        # Mark the exception retrieved; the awaiting caller still receives it.
        future.exception()
