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

"""aiohttp middleware for the control API.

- Local-origin CORS: only http(s)://localhost and http(s)://127.0.0.1 origins
  (any port) are echoed back
- JSON error bodies for routing errors (404/405) so every response is JSON
"""

from __future__ import annotations

import logging
import re
from typing import Awaitable, Callable, List, Optional, Pattern

from aiohttp import web
from aiohttp.web import Request, StreamResponse

logger = logging.getLogger(__name__)

Handler = Callable[[Request], Awaitable[StreamResponse]]
Middleware = Callable[[Request, Handler], Awaitable[StreamResponse]]

LOCAL_ORIGIN_PATTERN = re.compile(r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$")

CORS_ALLOW_METHODS = "GET, POST, OPTIONS"
CORS_ALLOW_HEADERS = "Content-Type"


def create_cors_middleware(origin_pattern: Pattern[str] = LOCAL_ORIGIN_PATTERN) -> Middleware:
    """CORS restricted to origins matching ``origin_pattern``."""

    @web.middleware
    async def cors_middleware(request: Request, handler: Handler) -> StreamResponse:
        origin = request.headers.get("Origin")
        allowed = origin is not None and bool(origin_pattern.match(origin))

        if request.method == "OPTIONS" and origin is not None:
            if not allowed:
                logger.debug(f"Rejected CORS preflight from {origin}")
                return web.json_response({"error": "Origin not allowed"}, status=403)
            return web.Response(
                status=204,
                headers={
                    "Access-Control-Allow-Origin": origin,
                    "Access-Control-Allow-Methods": CORS_ALLOW_METHODS,
                    "Access-Control-Allow-Headers": CORS_ALLOW_HEADERS,
                    "Vary": "Origin",
                },
            )

        response = await handler(request)
        if allowed:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
        return response

    return cors_middleware


@web.middleware
async def json_error_middleware(request: Request, handler: Handler) -> StreamResponse:
    """Render aiohttp routing errors as ``{"error": ...}``."""
    try:
        return await handler(request)
    except web.HTTPException as e:
        if e.status < 400:
            raise
        return web.json_response({"error": e.reason}, status=e.status)


class APIMiddlewareStack:
    """Builder for the ordered middleware list."""

    def __init__(self) -> None:
        self._middlewares: List[Middleware] = []

    def add_cors(self, origin_pattern: Optional[Pattern[str]] = None) -> "APIMiddlewareStack":
        self._middlewares.append(create_cors_middleware(origin_pattern or LOCAL_ORIGIN_PATTERN))
        return self

    def add_json_errors(self) -> "APIMiddlewareStack":
        self._middlewares.append(json_error_middleware)
        return self

    def build(self) -> List[Middleware]:
        return list(self._middlewares)
