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

"""Editor host collaborator interface and an in-process command registry.

The control plane never interprets commands. It only needs two capabilities
from the host:

    execute_host_command(name, args) -> result   (may raise)
    list_host_commands() -> list of names

Both may be plain or ``async`` callables. :class:`CommandRegistry` is a
self-contained host: Python callables registered under command names, the
same shape as an editor's command registry.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Sequence, Union, runtime_checkable

from editor_control.core.errors import HostCommandError

logger = logging.getLogger(__name__)

CommandHandler = Callable[..., Union[Any, Awaitable[Any]]]


@runtime_checkable
class CommandHost(Protocol):
    """Capabilities consumed from the editor host."""

    def execute_host_command(self, name: str, args: Sequence[Any]) -> Any: ...

    def list_host_commands(self) -> Any: ...


async def resolve_maybe_awaitable(value: Any) -> Any:
    """Await ``value`` if it is awaitable, else return it unchanged."""
    if inspect.isawaitable(value):
        return await value
    return value


class CommandRegistry:
    """Named command table implementing :class:`CommandHost`."""

    def __init__(self) -> None:
        self._commands: Dict[str, CommandHandler] = {}

    def register_command(self, name: str, handler: CommandHandler) -> Callable[[], None]:
        """Register ``handler`` under ``name``.

        Returns:
            A function that unregisters the command

        Raises:
            ValueError: If the name is already registered
        """
        if name in self._commands:
            raise ValueError(f"command '{name}' already exists")
        self._commands[name] = handler

        def dispose() -> None:
            if self._commands.get(name) is handler:
                del self._commands[name]

        return dispose

    def has_command(self, name: str) -> bool:
        return name in self._commands

    async def execute_host_command(self, name: str, args: Optional[Sequence[Any]] = None) -> Any:
        handler = self._commands.get(name)
        if handler is None:
            raise HostCommandError(f"command '{name}' not found", command=name)
        logger.debug(f"Executing host command {name}")
        return await resolve_maybe_awaitable(handler(*(args or ())))

    async def execute(self, name: str, *args: Any) -> Any:
        """Convenience for commands calling other commands."""
        return await self.execute_host_command(name, args)

    async def list_host_commands(self, filter_internal: bool = True) -> List[str]:
        """Registered command names, sorted.

        Args:
            filter_internal: Hide commands whose name starts with an underscore
        """
        names = sorted(self._commands)
        if filter_internal:
            names = [n for n in names if not n.startswith("_")]
        return names
