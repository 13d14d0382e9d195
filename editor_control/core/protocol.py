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

"""WebSocket wire protocol.

Every frame is a JSON object with a ``type`` drawn from a closed set:

    Client -> Server: ping, execute_command, get_instance_info, toggle_devtools
    Server -> Client: pong, command_result, instance_info, devtools_state, error

No field is required across all types. Builders below only set the fields a
given type carries, and serialization keeps explicitly-set ``None`` values
(``command_result`` with ``result: null`` is meaningful).
"""

from __future__ import annotations

import json
import time
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, ValidationError

from editor_control.core.errors import ProtocolError

RequestId = Union[int, str]


class MessageType(str, Enum):
    """Closed set of envelope types."""

    PING = "ping"
    PONG = "pong"
    EXECUTE_COMMAND = "execute_command"
    COMMAND_RESULT = "command_result"
    GET_INSTANCE_INFO = "get_instance_info"
    INSTANCE_INFO = "instance_info"
    TOGGLE_DEVTOOLS = "toggle_devtools"
    DEVTOOLS_STATE = "devtools_state"
    ERROR = "error"


class Message(BaseModel):
    """Wire-level envelope."""

    model_config = ConfigDict(extra="ignore")

    type: MessageType
    id: Optional[RequestId] = None
    data: Optional[Any] = None
    success: Optional[bool] = None
    result: Optional[Any] = None
    error: Optional[str] = None
    open: Optional[bool] = None
    timestamp: Optional[int] = None
    message: Optional[str] = None

    def to_wire(self) -> Dict[str, Any]:
        """Serialize, keeping only the fields that were set."""
        return self.model_dump(mode="json", exclude_unset=True)

    def to_json(self) -> str:
        return json.dumps(self.to_wire())


def now_ms() -> int:
    """Milliseconds since the epoch."""
    return int(time.time() * 1000)


def parse_message(raw: Union[str, bytes, Dict[str, Any]]) -> Message:
    """Parse and validate an incoming frame.

    Raises:
        ProtocolError: On invalid JSON, a non-object payload, a missing or
            unknown ``type``, or fields of the wrong shape.
    """
    if isinstance(raw, (str, bytes)):
        try:
            payload = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ProtocolError(f"Invalid JSON: {e}", cause=e) from e
    else:
        payload = raw

    if not isinstance(payload, dict):
        raise ProtocolError("Message must be a JSON object")

    msg_type = payload.get("type")
    if msg_type is None:
        raise ProtocolError("Message type is required")
    try:
        MessageType(msg_type)
    except ValueError:
        raise ProtocolError(f"Unknown message type: {msg_type}", message_type=str(msg_type))

    try:
        return Message.model_validate(payload)
    except ValidationError as e:
        raise ProtocolError(
            f"Invalid {msg_type} message: {e.errors()[0]['msg']}",
            message_type=str(msg_type),
            cause=e,
        ) from e


# =============================================================================
# Builders
# =============================================================================


def ping() -> Message:
    return Message(type=MessageType.PING)


def pong() -> Message:
    return Message(type=MessageType.PONG, timestamp=now_ms())


def execute_command(request_id: RequestId, command: str, args: Optional[List[Any]] = None) -> Message:
    return Message(
        type=MessageType.EXECUTE_COMMAND,
        id=request_id,
        data={"command": command, "args": list(args or []), "id": request_id},
    )


def command_result(
    request_id: Optional[RequestId],
    success: bool,
    result: Any = None,
    error: Optional[str] = None,
) -> Message:
    if success:
        return Message(
            type=MessageType.COMMAND_RESULT, id=request_id, success=True, result=result
        )
    return Message(type=MessageType.COMMAND_RESULT, id=request_id, success=False, error=error)


def get_instance_info() -> Message:
    return Message(type=MessageType.GET_INSTANCE_INFO)


def instance_info(data: Dict[str, Any]) -> Message:
    return Message(type=MessageType.INSTANCE_INFO, data=data)


def toggle_devtools(request_id: RequestId) -> Message:
    return Message(type=MessageType.TOGGLE_DEVTOOLS, id=request_id)


def devtools_state(is_open: bool, request_id: Optional[RequestId] = None) -> Message:
    if request_id is None:
        return Message(type=MessageType.DEVTOOLS_STATE, open=is_open)
    return Message(type=MessageType.DEVTOOLS_STATE, id=request_id, open=is_open)


def error(message: str, request_id: Optional[RequestId] = None) -> Message:
    if request_id is None:
        return Message(type=MessageType.ERROR, message=message)
    return Message(type=MessageType.ERROR, id=request_id, message=message)
