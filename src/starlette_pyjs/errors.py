"""Error taxonomy for the client bridge.

Every error carries a machine-readable ``code`` and the HTTP status used when
it escapes a request. Build-time errors (type checking, ahead-of-time
compilation) share the ``BuildError`` base so start-up code can catch them
together.
"""

from __future__ import annotations

from typing import Any


class BridgeError(Exception):
    """Base class for all bridge errors."""

    code = "BRIDGE_ERROR"
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        """Error body sent to the client."""
        return {"error": self.message, "code": self.code}


# =============================================================================
# Request-time errors
# =============================================================================


class MissingPayload(BridgeError):
    """The request carried no ``json`` field."""

    code = "MISSING_PAYLOAD"
    status_code = 400

    def __init__(self, field: str = "json") -> None:
        super().__init__(f"No JSON provided (missing '{field}' field)")
        self.field = field


class UnparseableCommand(BridgeError):
    """The payload was not valid JSON or matched no command variant."""

    code = "UNPARSEABLE_COMMAND"
    status_code = 400

    def __init__(self, raw: str, reason: str) -> None:
        super().__init__(f"Unable to parse input: {raw!r} ({reason})")
        self.raw = raw
        self.reason = reason

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["raw"] = self.raw
        return data


class NoResponse(BridgeError):
    """The command handler returned without calling the responder."""

    code = "NO_RESPONSE"

    def __init__(self, command_name: str) -> None:
        super().__init__(f"Handler for {command_name} did not produce a response")
        self.command_name = command_name


class ResponderAlreadyUsed(BridgeError):
    """The responder was called more than once for a single request."""

    code = "RESPONDER_REUSED"

    def __init__(self) -> None:
        super().__init__("Responder called more than once")


class HandlerFailure(BridgeError):
    """The command handler raised something other than a bridge error."""

    code = "HANDLER_FAILURE"

    def __init__(self, command_name: str, cause: BaseException) -> None:
        super().__init__(f"Handler for {command_name} failed: {type(cause).__name__}")
        self.command_name = command_name
        self.cause = cause


class UnencodableResult(BridgeError):
    """The result value has no JSON form (NaN, infinity, cycles)."""

    code = "UNENCODABLE_RESULT"

    def __init__(self, detail: str) -> None:
        super().__init__(f"Unable to encode result: {detail}")
        self.detail = detail


# =============================================================================
# Build-time errors
# =============================================================================


class InvalidModuleName(BridgeError):
    """A client module name is not a dotted Python identifier."""

    code = "INVALID_MODULE_NAME"

    def __init__(self, name: str) -> None:
        super().__init__(f"Invalid client module name: {name!r}")
        self.name = name


class BuildError(BridgeError):
    """A client module could not be turned into JavaScript."""

    def __init__(self, module: str, message: str, output: str = "") -> None:
        super().__init__(message)
        self.module = module
        self.output = output


class TypeCheckFailure(BuildError):
    """The type checker exited with a non-zero status."""

    code = "TYPECHECK_FAILURE"

    def __init__(self, module: str, output: str = "") -> None:
        super().__init__(module, f"Type checking of client module failed: {module}", output)


class CompileFailure(BuildError):
    """The client-language compiler reported an error."""

    code = "COMPILE_FAILURE"

    def __init__(self, module: str, detail: str, output: str = "") -> None:
        super().__init__(module, f'Unable to compile client module "{module}": {detail}', output)
        self.detail = detail
