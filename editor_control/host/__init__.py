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

"""Editor host collaborator: interface, command registry and devtools commands."""

from editor_control.host.devtools import (
    EXECUTE_IN_DEVTOOLS_COMMAND,
    TOGGLE_DEVTOOLS_COMMAND,
    DevToolsPanel,
    register_devtools_commands,
)
from editor_control.host.registry import CommandHost, CommandRegistry, resolve_maybe_awaitable

__all__ = [
    "CommandHost",
    "CommandRegistry",
    "DevToolsPanel",
    "EXECUTE_IN_DEVTOOLS_COMMAND",
    "TOGGLE_DEVTOOLS_COMMAND",
    "register_devtools_commands",
    "resolve_maybe_awaitable",
]
