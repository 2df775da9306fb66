"""starlette-pyjs: client-side Python for Starlette applications.

Compiles client modules to JavaScript, embeds them in pages, and carries
typed commands from client code to server handlers.

Project layout assumed by default:
- ``client/``: client-side modules (``client/Home.py`` is module ``Home``)
- ``shared/``: code used by both sides, notably the command types

Shared command types are plain dataclasses so both the server and the
client compiler can read them:

    # shared/shared_types.py
    from dataclasses import dataclass
    from starlette_pyjs.returns import Returns

    @dataclass
    class GetFib:
        n: int = 0
        returns: Returns[int] = Returns()

    Command = GetFib

On the server:

    from starlette_pyjs import CommandCodec, create_app

    async def handle(respond, command):
        match command:
            case GetFib(n=n, returns=r):
                return respond(r, fib(n))

    app = create_app(handle, CommandCodec.for_union(Command))
"""

from .app import create_app
from .config import BridgeSettings
from .errors import (
    BridgeError,
    BuildError,
    CompileFailure,
    HandlerFailure,
    InvalidModuleName,
    MissingPayload,
    NoResponse,
    ResponderAlreadyUsed,
    TypeCheckFailure,
    UnencodableResult,
    UnparseableCommand,
)
from .fragments import PageFragment, fragment_response, link_module_imports, require_jquery
from .modules import (
    ClientModule,
    ModuleLayout,
    PrecompiledModule,
    ReloadingModule,
    client_file_prod,
    client_file_reload,
)
from .protocol import CommandCodec, CommandDispatcher, CommandHandler, Responder, run_command_handler
from .returns import Returns
from .toolchain import CommandCompiler, CompileConfig, Compiler, CompilerError, TypeChecker

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Application
    "create_app",
    "BridgeSettings",
    # Commands
    "CommandCodec",
    "CommandDispatcher",
    "CommandHandler",
    "Responder",
    "Returns",
    "run_command_handler",
    # Client modules
    "ClientModule",
    "ModuleLayout",
    "PrecompiledModule",
    "ReloadingModule",
    "client_file_prod",
    "client_file_reload",
    "PageFragment",
    "fragment_response",
    "link_module_imports",
    "require_jquery",
    # Toolchain
    "CommandCompiler",
    "CompileConfig",
    "Compiler",
    "CompilerError",
    "TypeChecker",
    # Errors
    "BridgeError",
    "BuildError",
    "CompileFailure",
    "HandlerFailure",
    "InvalidModuleName",
    "MissingPayload",
    "NoResponse",
    "ResponderAlreadyUsed",
    "TypeCheckFailure",
    "UnencodableResult",
    "UnparseableCommand",
]
