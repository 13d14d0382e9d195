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

"""Core control-plane components.

    errors.py       -> exception hierarchy shared by both transports
    protocol.py     -> WebSocket envelope and message builders
    instance.py     -> Instance Registry
    correlation.py  -> Command Correlation Engine
    devtools.py     -> DevTools State Tracker
    retry.py        -> reconnect strategies
    store.py        -> key/value state stores
"""

from editor_control.core.correlation import CorrelationEngine, PendingCommand
from editor_control.core.devtools import DevToolsStateTracker
from editor_control.core.errors import (
    BadRequestError,
    ConnectionClosedError,
    CorrelationTimeoutError,
    EditorControlError,
    HostCommandError,
    NotConnectedError,
    ProtocolError,
    TransportError,
)
from editor_control.core.instance import (
    EditorInstance,
    EditorType,
    HostMetadata,
    InstanceRegistry,
    detect_editor_type,
)
from editor_control.core.protocol import Message, MessageType, parse_message
from editor_control.core.retry import (
    BaseRetryStrategy,
    ExponentialBackoffStrategy,
    FixedDelayStrategy,
    create_strategy,
)
from editor_control.core.store import FileStateStore, MemoryStateStore, StateStore

__all__ = [
    "BadRequestError",
    "BaseRetryStrategy",
    "ConnectionClosedError",
    "CorrelationEngine",
    "CorrelationTimeoutError",
    "DevToolsStateTracker",
    "EditorControlError",
    "EditorInstance",
    "EditorType",
    "ExponentialBackoffStrategy",
    "FileStateStore",
    "FixedDelayStrategy",
    "HostCommandError",
    "HostMetadata",
    "InstanceRegistry",
    "MemoryStateStore",
    "Message",
    "MessageType",
    "NotConnectedError",
    "PendingCommand",
    "ProtocolError",
    "StateStore",
    "TransportError",
    "create_strategy",
    "detect_editor_type",
    "parse_message",
]
