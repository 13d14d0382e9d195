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

"""Composition root for the editor side of the control plane.

Wires the instance registry, devtools tracker, dispatcher and both servers
around one editor host, and starts or stops them as a unit:

    service = EditorControlService(settings, host, HostMetadata(app_name="Visual Studio Code"))
    await service.start()
    ...
    await service.stop()
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Sequence

from editor_control.api.dispatcher import CommandDispatcher
from editor_control.api.server import EditorControlAPIServer
from editor_control.api.websocket import EditorControlWebSocketServer
from editor_control.config.settings import Settings
from editor_control.core.devtools import DevToolsStateTracker
from editor_control.core.instance import HostMetadata, InstanceRegistry
from editor_control.core.store import FileStateStore, StateStore
from editor_control.host.registry import CommandHost

logger = logging.getLogger(__name__)


class EditorControlService:
    """Owns every server-side component for one editor instance."""

    def __init__(
        self,
        settings: Settings,
        host: CommandHost,
        metadata: Optional[HostMetadata] = None,
        store: Optional[StateStore] = None,
    ):
        self.settings = settings
        self.host = host
        self.store = store or FileStateStore(settings.state_file)

        self.registry = InstanceRegistry.create(metadata or HostMetadata(), self.store)
        self.tracker = DevToolsStateTracker()
        self.dispatcher = CommandDispatcher(host, self.registry, self.tracker)
        self.api_server = EditorControlAPIServer(
            self.dispatcher, host=settings.host, port=settings.api_port
        )
        self.ws_server = EditorControlWebSocketServer(
            self.dispatcher, host=settings.host, port=settings.ws_port
        )

    @property
    def is_running(self) -> bool:
        return self.api_server.is_running and self.ws_server.is_running

    async def start(self) -> None:
        """Start the heartbeat and both servers.

        If the WebSocket server cannot bind, the API server is stopped again
        and the error propagates.
        """
        self.registry.start_heartbeat(self.settings.instance_heartbeat_interval)
        try:
            await self.api_server.start()
            try:
                await self.ws_server.start()
            except Exception:
                await self.api_server.stop()
                raise
        except Exception:
            self.registry.stop()
            raise
        logger.info(
            f"Editor control started for instance {self.registry.snapshot().id} "
            f"(api {self.api_server.port}, ws {self.ws_server.port})"
        )

    async def stop(self) -> None:
        await self.ws_server.stop()
        await self.api_server.stop()
        self.registry.stop()
        logger.info("Editor control stopped")

    def on_workspace_changed(self, folders: Sequence[str]) -> None:
        self.registry.on_workspace_changed(folders)

    async def __aenter__(self) -> "EditorControlService":
        await self.start()
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        await self.stop()
