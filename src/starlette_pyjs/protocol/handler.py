"""Command dispatch - server-side answers to client commands.

The client posts a form with a single ``json`` field holding the encoded
command. The dispatcher decodes it and hands it, together with a responder,
to application code:

    async def handle(respond: Responder, command: Command) -> Response:
        match command:
            case GetFib(n=n, returns=r):
                return respond(r, fib(n))
            case Echo(contents=text):
                return respond(Returns[str](), text)

    dispatcher = CommandDispatcher(codec, handle)
    routes = [dispatcher.route("/client-command")]

Each request gets its own responder, which may be called exactly once. A
handler that never calls it, or calls it twice, fails the request with an
explicit error instead of hanging or silently overwriting the answer.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from typing import Any, TypeVar

from starlette.requests import Request
from starlette.responses import Response
from starlette.routing import Route

from ..errors import BridgeError, HandlerFailure, MissingPayload, NoResponse, ResponderAlreadyUsed
from ..returns import Returns
from .codec import CommandCodec

logger = logging.getLogger(__name__)

T = TypeVar("T")

PAYLOAD_FIELD = "json"


class Responder:
    """Single-use callback that turns a result value into the HTTP response."""

    def __init__(self, codec: CommandCodec) -> None:
        self._codec = codec
        self._response: Response | None = None

    @property
    def used(self) -> bool:
        return self._response is not None

    @property
    def response(self) -> Response | None:
        return self._response

    def __call__(self, returns: Returns[T], value: T) -> Response:
        """Encode ``value`` as the answer to the current command.

        Raises:
            ResponderAlreadyUsed: if an answer was already produced.
            UnencodableResult: if the value has no JSON form.
        """
        if self._response is not None:
            raise ResponderAlreadyUsed()
        self._response = Response(
            content=self._codec.encode(value, returns),
            media_type="application/json",
        )
        return self._response


# Handlers may be coroutine functions or plain functions
CommandHandler = Callable[[Responder, Any], Any]


async def read_payload(request: Request, field: str = PAYLOAD_FIELD) -> str:
    """Get the raw command text from the form body or query string."""
    value: Any = None
    if request.method == "POST":
        form = await request.form()
        value = form.get(field)
    if value is None:
        value = request.query_params.get(field)
    if value is None:
        raise MissingPayload(field)
    if not isinstance(value, str):
        # An uploaded file rather than a plain field
        value = (await value.read()).decode("utf-8", errors="replace")
    return value


async def run_command_handler(
    request: Request,
    handler: CommandHandler,
    codec: CommandCodec,
) -> Response:
    """Run a command handler for one request.

    Raises:
        MissingPayload: the request has no ``json`` field.
        UnparseableCommand: the payload does not decode to a command.
        NoResponse: the handler returned without answering.
        ResponderAlreadyUsed: the handler answered twice.
        HandlerFailure: the handler raised any other exception.
    """
    raw = await read_payload(request)
    command = codec.decode(raw)
    command_name = type(command).__name__
    logger.debug(f"Dispatching {command_name}")

    respond = Responder(codec)
    try:
        result = handler(respond, command)
        if inspect.isawaitable(result):
            await result
    except BridgeError:
        raise
    except Exception as e:
        logger.exception(f"Error handling command {command_name}: {e}")
        raise HandlerFailure(command_name, e) from e

    if respond.response is None:
        raise NoResponse(command_name)
    return respond.response


class CommandDispatcher:
    """Binds a codec and an application handler to a Starlette endpoint."""

    def __init__(self, codec: CommandCodec, handler: CommandHandler) -> None:
        self.codec = codec
        self.handler = handler

    async def endpoint(self, request: Request) -> Response:
        return await run_command_handler(request, self.handler, self.codec)

    def route(self, path: str) -> Route:
        """Route answering POST requests at ``path``."""
        return Route(path, self.endpoint, methods=["POST"])
