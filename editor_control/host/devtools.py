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

"""Host-side devtools commands.

Registers the two commands the control plane relies on:

- ``editor-control.toggleDevTools`` runs the editor's own toggle command and
  returns the new open/closed state.
- ``editor-control.executeInDevTools`` makes sure the panel is open, waits for
  it to come up, then hands the script to the editor's developer tools
  command.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, List

from editor_control.host.registry import CommandRegistry

logger = logging.getLogger(__name__)

TOGGLE_DEVTOOLS_COMMAND = "editor-control.toggleDevTools"
EXECUTE_IN_DEVTOOLS_COMMAND = "editor-control.executeInDevTools"

# Commands provided by the editor itself
WORKBENCH_TOGGLE_DEVTOOLS = "workbench.action.toggleDevTools"
WORKBENCH_OPEN_WEBVIEW_DEVTOOLS = "workbench.action.webview.openDeveloperTools"


class DevToolsPanel:
    """Host-side view of the developer tools panel."""

    def __init__(self, registry: CommandRegistry, open_delay: float = 1.0):
        self._registry = registry
        self.open_delay = open_delay
        self.is_open = False

    async def toggle(self) -> bool:
        await self._registry.execute(WORKBENCH_TOGGLE_DEVTOOLS)
        self.is_open = not self.is_open
        logger.info(f"DevTools {'opened' if self.is_open else 'closed'}")
        return self.is_open

    async def execute_script(self, script: str):
        if not self.is_open:
            await self.toggle()
            await asyncio.sleep(self.open_delay)
        return await self._registry.execute(WORKBENCH_OPEN_WEBVIEW_DEVTOOLS, script)


def register_devtools_commands(
    registry: CommandRegistry, open_delay: float = 1.0
) -> List[Callable[[], None]]:
    """Register the devtools commands on ``registry``.

    Returns:
        Disposers for the registered commands
    """
    panel = DevToolsPanel(registry, open_delay=open_delay)
    return [
        registry.register_command(TOGGLE_DEVTOOLS_COMMAND, panel.toggle),
        registry.register_command(EXECUTE_IN_DEVTOOLS_COMMAND, panel.execute_script),
    ]
