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

"""HTTP API server for editor control.

Request/response front end of the dispatcher. Every response is JSON;
failures carry ``{"error": message}``:

    GET  /api/instances         -> {"instance": {...}}
    GET  /api/commands          -> {"commands": [...]}
    POST /api/commands/execute  -> {"success": true, "result": ...}
    POST /api/devtools/toggle   -> {"success": true, "devToolsOpen": bool}
    POST /api/devtools/execute  -> {"success": true, "message": "..."}
    GET  /health                -> {"status": "healthy", "version": "..."}
"""

import json
import logging
from typing import Any, Dict, Optional

from aiohttp import web
from aiohttp.web import Request, Response

from editor_control import __version__
from editor_control.api.dispatcher import CommandDispatcher
from editor_control.api.middleware import APIMiddlewareStack
from editor_control.core.errors import (
    BadRequestError,
    EditorControlError,
    ServerAlreadyRunningError,
    log_failure,
)

logger = logging.getLogger(__name__)


class EditorControlAPIServer:
    """HTTP API server handle with explicit start/stop."""

    def __init__(
        self,
        dispatcher: CommandDispatcher,
        host: str = "127.0.0.1",
        port: int = 3000,
        enable_cors: bool = True,
    ):
        """Initialize the API server.

        Args:
            dispatcher: Semantic core shared with the WebSocket server
            host: Host to bind to (loopback)
            port: Port to listen on (0 picks a free port)
            enable_cors: Enable local-origin CORS headers
        """
        self.dispatcher = dispatcher
        self.host = host
        self.port = port

        middleware_stack = APIMiddlewareStack()
        if enable_cors:
            middleware_stack.add_cors()
        middleware_stack.add_json_errors()

        self._app = web.Application(middlewares=middleware_stack.build())
        self._runner: Optional[web.AppRunner] = None
        self._setup_routes()

    @property
    def app(self) -> web.Application:
        return self._app

    @property
    def is_running(self) -> bool:
        return self._runner is not None

    def _setup_routes(self) -> None:
        """Set up API routes."""
        self._app.router.add_get("/health", self._health)

        self._app.router.add_get("/api/instances", self._instances)

        self._app.router.add_get("/api/commands", self._list_commands)
        self._app.router.add_post("/api/commands/execute", self._execute_command)

        self._app.router.add_post("/api/devtools/toggle", self._toggle_devtools)
        self._app.router.add_post("/api/devtools/execute", self._execute_in_devtools)

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    async def _read_json(request: Request) -> Dict[str, Any]:
        if not request.can_read_body:
            return {}
        try:
            data = await request.json()
        except json.JSONDecodeError as e:
            raise BadRequestError(f"Invalid JSON body: {e.msg}") from e
        except UnicodeDecodeError as e:
            raise BadRequestError("Invalid JSON body: not valid UTF-8") from e
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise BadRequestError("Request body must be a JSON object")
        return data

    @staticmethod
    def _error_response(error: EditorControlError, with_success: bool = False) -> Response:
        status = 400 if isinstance(error, BadRequestError) else 500
        body: Dict[str, Any] = {"error": error.message}
        if with_success and status == 500:
            body = {"success": False, "error": error.message}
        return web.json_response(body, status=status)

    # =========================================================================
    # Endpoints
    # =========================================================================

    async def _health(self, request: Request) -> Response:
        """Health check endpoint."""
        return web.json_response({"status": "healthy", "version": __version__})

    async def _instances(self, request: Request) -> Response:
        """Snapshot of the local editor instance."""
        return web.json_response({"instance": self.dispatcher.instance_info()})

    async def _list_commands(self, request: Request) -> Response:
        try:
            commands = await self.dispatcher.list_commands()
        except EditorControlError as e:
            log_failure(logger, "List commands error", e)
            return self._error_response(e)
        return web.json_response({"commands": commands})

    async def _execute_command(self, request: Request) -> Response:
        try:
            data = await self._read_json(request)
            result = await self.dispatcher.invoke(data.get("command"), data.get("args"))
        except EditorControlError as e:
            log_failure(logger, "Execute command error", e)
            return self._error_response(e, with_success=True)
        return web.json_response({"success": True, "result": result})

    async def _toggle_devtools(self, request: Request) -> Response:
        try:
            is_open = await self.dispatcher.toggle_devtools()
        except EditorControlError as e:
            log_failure(logger, "Toggle DevTools error", e)
            return self._error_response(e, with_success=True)
        return web.json_response({"success": True, "devToolsOpen": is_open})

    async def _execute_in_devtools(self, request: Request) -> Response:
        try:
            data = await self._read_json(request)
            message = await self.dispatcher.execute_in_devtools(data.get("script"))
        except EditorControlError as e:
            log_failure(logger, "DevTools script error", e)
            return self._error_response(e, with_success=True)
        return web.json_response({"success": True, "message": message})

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self) -> None:
        """Bind and start serving.

        Raises:
            ServerAlreadyRunningError: If already started
        """
        if self._runner is not None:
            raise ServerAlreadyRunningError("API")

        runner = web.AppRunner(self._app)
        await runner.setup()
        site = web.TCPSite(runner, self.host, self.port)
        try:
            await site.start()
        except OSError:
            await runner.cleanup()
            raise

        self._runner = runner
        if self.port == 0 and runner.addresses:
            self.port = runner.addresses[0][1]
        logger.info(f"Editor control API server running on {self.host}:{self.port}")

    async def stop(self) -> None:
        """Stop serving. Safe to call when not running."""
        if self._runner is None:
            return
        runner, self._runner = self._runner, None
        await runner.cleanup()
        logger.info("Editor control API server stopped")
