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

"""Tests for the command correlation engine."""

import asyncio

import pytest

from editor_control.core.correlation import CorrelationEngine
from editor_control.core.errors import ConnectionClosedError, CorrelationTimeoutError


class TestCorrelationEngine:
    """Tests for CorrelationEngine."""

    @pytest.mark.asyncio
    async def test_ids_are_monotonic(self):
        engine = CorrelationEngine()
        ids = [engine.begin() for _ in range(3)]

        assert ids == [1, 2, 3]
        assert engine.pending_ids() == [1, 2, 3]
        engine.cancel_all("test over")

    @pytest.mark.asyncio
    async def test_resolve_with_null_result(self):
        engine = CorrelationEngine()
        request_id = engine.begin()
        waiter = engine.waiter(request_id)

        assert engine.resolve(request_id, None)
        assert await waiter is None
        assert request_id not in engine

    @pytest.mark.asyncio
    async def test_waiter_receives_result(self):
        engine = CorrelationEngine()
        request_id = engine.begin()
        waiter = engine.waiter(request_id)

        asyncio.get_running_loop().call_soon(engine.resolve, request_id, {"ok": True})

        assert await waiter == {"ok": True}
        assert len(engine) == 0

    @pytest.mark.asyncio
    async def test_reject_with_string(self):
        engine = CorrelationEngine()
        request_id = engine.begin()
        waiter = engine.waiter(request_id)

        assert engine.reject(request_id, "command 'x' not found")

        with pytest.raises(Exception, match="command 'x' not found"):
            await waiter

    @pytest.mark.asyncio
    async def test_late_and_unknown_results_are_ignored(self):
        engine = CorrelationEngine()
        request_id = engine.begin()
        engine.resolve(request_id, 1)

        assert not engine.resolve(request_id, 2)
        assert not engine.reject(request_id, "late")
        assert not engine.resolve(999, None)
        assert not engine.resolve(None, None)

    @pytest.mark.asyncio
    async def test_timeout_rejects_and_removes_entry(self):
        engine = CorrelationEngine()
        for _ in range(6):
            engine.resolve(engine.begin(), None)

        request_id = engine.begin(timeout=0.02)
        assert request_id == 7
        waiter = engine.waiter(request_id)

        with pytest.raises(CorrelationTimeoutError) as exc_info:
            await waiter

        assert exc_info.value.request_id == 7
        assert 7 not in engine
        assert not engine.resolve(7, "too late")

    @pytest.mark.asyncio
    async def test_cancel_all_rejects_every_entry(self):
        engine = CorrelationEngine()
        waiters = [engine.waiter(engine.begin()) for _ in range(3)]

        assert engine.cancel_all("connection closed") == 3
        assert len(engine) == 0

        for waiter in waiters:
            with pytest.raises(ConnectionClosedError, match="connection closed"):
                await waiter

    @pytest.mark.asyncio
    async def test_cancelled_wait_drops_entry(self):
        engine = CorrelationEngine()
        request_id = engine.begin()
        task = asyncio.ensure_future(engine.wait(request_id))
        await asyncio.sleep(0)

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert request_id not in engine

    @pytest.mark.asyncio
    async def test_entry_metadata(self):
        engine = CorrelationEngine(default_timeout=3.0)
        request_id = engine.begin(kind="devtools")
        entry = engine.get(request_id)

        assert entry.kind == "devtools"
        assert entry.timeout == 3.0
        assert entry.age >= 0
        engine.cancel_all()

    @pytest.mark.asyncio
    async def test_waiter_for_unknown_id(self):
        engine = CorrelationEngine()
        with pytest.raises(KeyError):
            engine.waiter(42)
