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

"""DevTools State Tracker.

Mirrors whether the developer tools panel is open. The editor host owns the
real panel; this tracker is only written with values the host reported, and
listeners hear about a value only when it actually changes.
"""

from __future__ import annotations

import logging
from typing import Callable, List

logger = logging.getLogger(__name__)

DevToolsListener = Callable[[bool], None]


class DevToolsStateTracker:
    """Boolean flag with change notification."""

    def __init__(self, initial: bool = False):
        self._open = initial
        self._listeners: List[DevToolsListener] = []
        self._once: List[DevToolsListener] = []

    def get_state(self) -> bool:
        return self._open

    def set_state(self, is_open: bool) -> bool:
        """Record a host-reported value.

        Returns:
            True if the value changed and listeners were notified
        """
        is_open = bool(is_open)
        if is_open == self._open:
            return False
        self._open = is_open
        logger.debug(f"DevTools state changed: {'open' if is_open else 'closed'}")

        once, self._once = self._once, []
        for listener in list(self._listeners) + once:
            try:
                listener(is_open)
            except Exception:
                logger.exception("DevTools state listener failed")
        return True

    def subscribe(self, listener: DevToolsListener) -> Callable[[], None]:
        """Register a listener for every change. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def once(self, listener: DevToolsListener) -> Callable[[], None]:
        """Register a listener for the next change only."""
        self._once.append(listener)

        def cancel() -> None:
            if listener in self._once:
                self._once.remove(listener)

        return cancel

    @property
    def listener_count(self) -> int:
        return len(self._listeners) + len(self._once)
