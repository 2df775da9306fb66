"""Bridge status endpoint.

Reports how the running application serves client code, so tooling can
verify that compiled clients post to the route the server listens on.
"""

from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

STATUS_PATH = "/health"


async def bridge_status(request: Request) -> JSONResponse:
    settings = request.app.state.bridge_settings
    dispatcher = request.app.state.dispatcher
    return JSONResponse(
        {
            "status": "ok",
            "strategy": "reload" if settings.reload else "prebuilt",
            "command_route": settings.command_route,
            "asset_route": settings.asset_route,
            "commands": dispatcher.codec.variant_names,
        }
    )


status_routes = [
    Route(STATUS_PATH, bridge_status, methods=["GET"]),
]
