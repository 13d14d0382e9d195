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

"""Stand-alone host used by ``editor-control serve``.

Stands in for a real editor: workbench commands only log what they would do.
"""

from __future__ import annotations

import logging
from typing import Any, List

from editor_control.host.devtools import (
    WORKBENCH_OPEN_WEBVIEW_DEVTOOLS,
    WORKBENCH_TOGGLE_DEVTOOLS,
    register_devtools_commands,
)
from editor_control.host.registry import CommandRegistry

logger = logging.getLogger(__name__)


def create_demo_host(open_delay: float = 1.0) -> CommandRegistry:
    registry = CommandRegistry()
    untitled: List[str] = []

    def toggle_devtools() -> None:
        logger.info("[demo] toggling developer tools")

    def open_webview_devtools(script: str = "") -> None:
        logger.info(f"[demo] developer tools script: {script}")

    def new_untitled_file() -> str:
        untitled.append(f"Untitled-{len(untitled) + 1}")
        return untitled[-1]

    def select_all() -> None:
        return None

    def echo(*args: Any) -> List[Any]:
        return list(args)

    registry.register_command(WORKBENCH_TOGGLE_DEVTOOLS, toggle_devtools)
    registry.register_command(WORKBENCH_OPEN_WEBVIEW_DEVTOOLS, open_webview_devtools)
    registry.register_command("workbench.action.files.newUntitledFile", new_untitled_file)
    registry.register_command("editor.action.selectAll", select_all)
    registry.register_command("demo.echo", echo)
    register_devtools_commands(registry, open_delay=open_delay)
    return registry
