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

"""Instance Registry - identity of the local editor instance.

One registry exists per process. Callers only ever receive frozen snapshots,
so a workspace change or heartbeat refresh can never be observed half-way.

Usage:
    registry = InstanceRegistry.create(HostMetadata(app_name="Visual Studio Code"), store)
    registry.start_heartbeat(30.0)
    info = registry.snapshot().to_dict()
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, Optional, Sequence, Tuple

from editor_control.core.protocol import now_ms
from editor_control.core.store import StateStore

logger = logging.getLogger(__name__)

INSTANCE_ID_KEY = "instanceId"


class EditorType(str, Enum):
    """Flavour of editor hosting the extension."""

    VSCODE = "vscode"
    CURSOR = "cursor"
    WINDSURF = "windsurf"
    UNKNOWN = "unknown"


def detect_editor_type(app_name: str) -> EditorType:
    """Derive the editor type from the host application name."""
    name = (app_name or "").lower()

    if "cursor" in name:
        return EditorType.CURSOR
    if "windsurf" in name or "codeium" in name:
        return EditorType.WINDSURF
    if "visual studio code" in name or "vscode" in name:
        return EditorType.VSCODE
    return EditorType.UNKNOWN


@dataclass
class HostMetadata:
    """What the editor host tells us about itself at startup."""

    app_name: str = ""
    machine_id: str = ""
    session_id: str = ""
    workspace_folders: Sequence[str] = field(default_factory=tuple)


@dataclass(frozen=True)
class EditorInstance:
    """Immutable snapshot of the instance identity."""

    id: str
    machine_id: str
    session_id: str
    workspace_folders: Tuple[str, ...]
    type: EditorType
    start_time: int
    last_heartbeat: int

    def to_dict(self) -> Dict[str, Any]:
        """Wire representation (camelCase keys)."""
        return {
            "id": self.id,
            "machineId": self.machine_id,
            "sessionId": self.session_id,
            "workspaceFolders": list(self.workspace_folders),
            "type": self.type.value,
            "startTime": self.start_time,
            "lastHeartbeat": self.last_heartbeat,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EditorInstance":
        try:
            editor_type = EditorType(data.get("type", "unknown"))
        except ValueError:
            editor_type = EditorType.UNKNOWN
        return cls(
            id=str(data.get("id", "")),
            machine_id=str(data.get("machineId", "")),
            session_id=str(data.get("sessionId", "")),
            workspace_folders=tuple(data.get("workspaceFolders") or ()),
            type=editor_type,
            start_time=int(data.get("startTime", 0)),
            last_heartbeat=int(data.get("lastHeartbeat", 0)),
        )


class InstanceRegistry:
    """Owner of the single :class:`EditorInstance` of this process."""

    def __init__(self, instance: EditorInstance, clock: Callable[[], int] = now_ms):
        self._instance = instance
        self._clock = clock
        self._heartbeat_task: Optional[asyncio.Task] = None

    @classmethod
    def create(
        cls,
        metadata: HostMetadata,
        store: StateStore,
        clock: Callable[[], int] = now_ms,
    ) -> "InstanceRegistry":
        """Build the registry, reusing a persisted instance id when present."""
        instance_id = store.get(INSTANCE_ID_KEY)
        if not instance_id:
            instance_id = str(uuid.uuid4())
            store.update(INSTANCE_ID_KEY, instance_id)
            logger.info(f"Minted new instance id {instance_id}")

        started = clock()
        instance = EditorInstance(
            id=instance_id,
            machine_id=metadata.machine_id,
            session_id=metadata.session_id,
            workspace_folders=tuple(metadata.workspace_folders),
            type=detect_editor_type(metadata.app_name),
            start_time=started,
            last_heartbeat=started,
        )
        return cls(instance, clock=clock)

    def snapshot(self) -> EditorInstance:
        return self._instance

    def on_workspace_changed(self, folders: Sequence[str]) -> None:
        """Replace the workspace folder list."""
        self._instance = replace(self._instance, workspace_folders=tuple(folders))
        logger.debug(f"Workspace folders updated: {len(folders)} folder(s)")

    def refresh_heartbeat(self) -> None:
        # Never moves backwards, even if the wall clock does.
        now = max(self._instance.last_heartbeat, self._clock())
        self._instance = replace(self._instance, last_heartbeat=now)

    # ------------------------------------------------------------------
    # Periodic refresh
    # ------------------------------------------------------------------

    def start_heartbeat(self, interval: float = 30.0) -> None:
        """Refresh the heartbeat every ``interval`` seconds on the running loop."""
        self.stop()
        self._heartbeat_task = asyncio.get_running_loop().create_task(
            self._heartbeat_loop(interval)
        )

    async def _heartbeat_loop(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            self.refresh_heartbeat()

    def stop(self) -> None:
        if self._heartbeat_task is not None:
            self._heartbeat_task.cancel()
            self._heartbeat_task = None

    @property
    def heartbeat_running(self) -> bool:
        return self._heartbeat_task is not None and not self._heartbeat_task.done()
