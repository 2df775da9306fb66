"""Starlette application factory.

Route organization:
- /health - Bridge status (strategy, routes, known commands)
- <settings.command_route> (default /client-command) - POST endpoint
  answering commands from client code
- <settings.asset_route> (default /client-js) - compiled client modules
  from <settings.output_dir>, imported by pages using ES module output
- caller-supplied routes (pages embedding client modules)

Bridge errors raised while handling a request are turned into JSON error
bodies ``{"error": ..., "code": ...}`` with the error's status code.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import cast

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import BaseRoute, Mount, Route
from starlette.staticfiles import StaticFiles

from .config import BridgeSettings
from .errors import BridgeError
from .protocol import CommandCodec, CommandDispatcher, CommandHandler
from .routes import status_routes

logger = logging.getLogger(__name__)


async def bridge_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Render a BridgeError as a JSON error response."""
    # Registered for BridgeError only
    error = cast(BridgeError, exc)
    if error.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {error.message}")
    else:
        logger.warning(f"{request.method} {request.url.path} rejected: {error.message}")
    return JSONResponse(error.to_dict(), status_code=error.status_code)


def create_app(
    handler: CommandHandler,
    codec: CommandCodec,
    *,
    settings: BridgeSettings | None = None,
    routes: Sequence[BaseRoute] = (),
    debug: bool = False,
) -> Starlette:
    """Create an application answering client commands.

    Args:
        handler: Application logic called as ``handler(respond, command)``
        codec: Codec for the application's command union
        settings: Bridge settings (defaults from the environment)
        routes: Additional routes, e.g. pages embedding client modules
        debug: Starlette debug mode

    Returns:
        Configured Starlette application
    """
    settings = settings or BridgeSettings.from_env()
    dispatcher = CommandDispatcher(codec, handler)

    all_routes: list[BaseRoute] = []
    all_routes.extend(status_routes)
    all_routes.append(Route(settings.command_route, dispatcher.endpoint, methods=["POST"]))

    # Modules not built yet are simply not found
    output_dir = settings.output_dir
    output_dir.mkdir(parents=True, exist_ok=True)
    all_routes.append(Mount(settings.asset_route, app=StaticFiles(directory=output_dir), name="client-js"))
    all_routes.extend(routes)

    # CORS middleware for local development
    middleware = [
        Middleware(
            CORSMiddleware,
            allow_origin_regex=r"http://(localhost|127\.0\.0\.1)(:\d+)?",
            allow_methods=["*"],
            allow_headers=["*"],
        ),
    ]

    app = Starlette(
        debug=debug,
        routes=all_routes,
        middleware=middleware,
        exception_handlers={BridgeError: bridge_error_handler},
    )
    app.state.bridge_settings = settings
    app.state.dispatcher = dispatcher
    return app
