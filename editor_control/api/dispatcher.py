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

"""Semantic core shared by the HTTP and WebSocket front ends.

Both transports translate their requests into the operations below, so a
command invoked over HTTP and over the WebSocket reaches the host the same way,
returns the same JSON value and fails with the same message.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

from pydantic_core import PydanticSerializationError, to_jsonable_python

from editor_control.core.devtools import DevToolsStateTracker
from editor_control.core.errors import BadRequestError, EditorControlError, HostCommandError, error_message
from editor_control.core.instance import InstanceRegistry
from editor_control.host.devtools import EXECUTE_IN_DEVTOOLS_COMMAND, TOGGLE_DEVTOOLS_COMMAND
from editor_control.host.registry import CommandHost, resolve_maybe_awaitable

logger = logging.getLogger(__name__)

SCRIPT_STARTED_MESSAGE = "Script execution started"


class CommandDispatcher:
    """Invoke commands and toggle devtools on behalf of either transport."""

    def __init__(
        self,
        host: CommandHost,
        registry: InstanceRegistry,
        tracker: Optional[DevToolsStateTracker] = None,
    ):
        self.host = host
        self.registry = registry
        self.tracker = tracker or DevToolsStateTracker()

    def instance_info(self) -> Dict[str, Any]:
        return self.registry.snapshot().to_dict()

    async def list_commands(self) -> List[str]:
        try:
            commands = await resolve_maybe_awaitable(self.host.list_host_commands())
        except EditorControlError:
            raise
        except Exception as e:
            raise HostCommandError(error_message(e), cause=e) from e
        return list(commands)

    async def invoke(self, command: Any, args: Optional[Sequence[Any]] = None) -> Any:
        """Run a host command.

        Raises:
            BadRequestError: Missing command name or malformed args; the host
                is not called
            HostCommandError: The host raised
        """
        if not command or not isinstance(command, str):
            raise BadRequestError("Command name is required", missing_fields=["command"])
        if args is None:
            args = []
        elif not isinstance(args, (list, tuple)):
            raise BadRequestError("args must be an array")

        logger.debug(f"Invoking {command} with {len(args)} arg(s)")
        try:
            result = await resolve_maybe_awaitable(self.host.execute_host_command(command, list(args)))
        except EditorControlError:
            raise
        except Exception as e:
            raise HostCommandError(error_message(e), command=command, cause=e) from e
        return self._to_jsonable(command, result)

    @staticmethod
    def _to_jsonable(command: str, result: Any) -> Any:
        """Normalize a host result to plain JSON types (sets become lists, and so on)."""
        try:
            return to_jsonable_python(result)
        except (PydanticSerializationError, TypeError, ValueError) as e:
            logger.debug(f"Unserializable result from {command}: {e}")
            raise HostCommandError(
                f"Command result is not serializable: {type(result).__name__}",
                command=command,
                cause=e,
            ) from e

    async def toggle_devtools(self) -> bool:
        """Toggle the panel and record the state the host reports."""
        is_open = bool(await self.invoke(TOGGLE_DEVTOOLS_COMMAND))
        self.tracker.set_state(is_open)
        return is_open

    async def execute_in_devtools(self, script: Any) -> str:
        if not script or not isinstance(script, str):
            raise BadRequestError("Script is required", missing_fields=["script"])
        await self.invoke(EXECUTE_IN_DEVTOOLS_COMMAND, [script])
        # The host opens the panel before running the script.
        self.tracker.set_state(True)
        return SCRIPT_STARTED_MESSAGE
