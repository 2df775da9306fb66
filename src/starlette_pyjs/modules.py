"""Client module resolution and compilation strategies.

A client module named ``Home`` lives at ``<client_root>/Home.py``; dotted
names map to subdirectories (``admin.Users`` -> ``<client_root>/admin/Users.py``).
Imports are resolved from the client root first, then the shared root.
Compiled output goes to ``settings.output_dir``; with ES module output the
page embeds the main module inline and its imports load from
``settings.asset_route``, which serves that directory.

Two interchangeable strategies turn a module into a page fragment:

- ``client_file_prod``: type check, then compile once when the object is
  created (application start-up or ``starlette-pyjs build``). The JavaScript
  is kept as a constant; later edits to the source are not picked up. Any
  failure aborts start-up.
- ``client_file_reload``: no type check; the module is recompiled from
  scratch every time a fragment is requested. A failure only fails that
  request. Nothing is cached between requests.

Usage:
    home = client_file_prod("Home", settings)

    async def homepage(request):
        return fragment_response(await home.fragment(), title="Home")
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

from starlette.concurrency import run_in_threadpool

from .config import BridgeSettings
from .errors import CompileFailure, InvalidModuleName, TypeCheckFailure
from .fragments import PageFragment, link_module_imports, require_jquery
from .scaffold import write_shim
from .toolchain import CommandCompiler, CompileConfig, Compiler, CompilerError, TypeChecker

logger = logging.getLogger(__name__)

SOURCE_SUFFIX = ".py"
_MODULE_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)*$")


@dataclass(frozen=True)
class ModuleLayout:
    """Where client and shared sources live."""

    client_root: Path
    shared_root: Path
    out_dir: Path | None = None

    @classmethod
    def from_settings(cls, settings: BridgeSettings) -> ModuleLayout:
        return cls(
            client_root=Path(settings.client_root),
            shared_root=Path(settings.shared_root),
            out_dir=settings.output_dir,
        )

    def source_path(self, name: str) -> Path:
        """The single source file for module ``name``.

        Raises:
            InvalidModuleName: if ``name`` is not a dotted identifier.
        """
        if not _MODULE_NAME.match(name):
            raise InvalidModuleName(name)
        return self.client_root.joinpath(*name.split(".")).with_suffix(SOURCE_SUFFIX)

    def compile_config(self) -> CompileConfig:
        return CompileConfig(search_dirs=[self.client_root, self.shared_root], out_dir=self.out_dir)


def build_compiler(settings: BridgeSettings) -> CommandCompiler:
    return CommandCompiler(
        settings.compiler_command,
        output=settings.compiler_output,
        path_separator=settings.compiler_path_separator,
    )


def build_type_checker(settings: BridgeSettings) -> TypeChecker:
    return TypeChecker(settings.typecheck_command)


class ClientModule(ABC):
    """A client source module that can be embedded in a page."""

    def __init__(
        self,
        name: str,
        settings: BridgeSettings | None = None,
        compiler: Compiler | None = None,
    ) -> None:
        self.name = name
        self.settings = settings or BridgeSettings()
        self.layout = ModuleLayout.from_settings(self.settings)
        self.source = self.layout.source_path(name)
        self.compiler = compiler or build_compiler(self.settings)

    def write_shim(self) -> Path:
        return write_shim(self.layout.client_root, self.settings.command_route)

    def compile(self) -> str:
        """Compile the module to JavaScript.

        Raises:
            CompileFailure: if the compiler reports an error.
        """
        try:
            return self.compiler.compile_file(self.source, self.layout.compile_config())
        except CompilerError as e:
            raise CompileFailure(self.name, e.message, e.output) from e

    def _fragment_for(self, javascript: str) -> PageFragment:
        if self.settings.es_modules:
            body = PageFragment(modules=[link_module_imports(javascript, self.settings.asset_route)])
        else:
            body = PageFragment(inline=[javascript])
        return require_jquery(self.settings.jquery_url) + body

    @abstractmethod
    async def fragment(self) -> PageFragment:
        """Script tags embedding this module."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"


class PrecompiledModule(ClientModule):
    """Type checked and compiled once, embedded as a constant."""

    def __init__(
        self,
        name: str,
        settings: BridgeSettings | None = None,
        compiler: Compiler | None = None,
        type_checker: TypeChecker | None = None,
    ) -> None:
        super().__init__(name, settings, compiler)
        self.type_checker = type_checker or build_type_checker(self.settings)
        self.javascript = self._build()

    def _build(self) -> str:
        self.write_shim()

        result = self.type_checker.check(self.source, self.layout.compile_config())
        if not result.ok:
            raise TypeCheckFailure(self.name, result.output)

        javascript = self.compile()
        logger.info(f"Built client module {self.name} ({len(javascript)} bytes)")
        return javascript

    async def fragment(self) -> PageFragment:
        return self._fragment_for(self.javascript)

    def write(self, out_dir: Path) -> Path:
        """Save the compiled JavaScript as ``<out_dir>/<name>.js``."""
        out_dir.mkdir(parents=True, exist_ok=True)
        target = out_dir / f"{self.name}.js"
        target.write_text(self.javascript, encoding="utf-8")
        return target


class ReloadingModule(ClientModule):
    """Recompiled from source on every request."""

    def __init__(
        self,
        name: str,
        settings: BridgeSettings | None = None,
        compiler: Compiler | None = None,
    ) -> None:
        super().__init__(name, settings, compiler)
        self.write_shim()

    async def fragment(self) -> PageFragment:
        # The compiler blocks for seconds; keep it off the event loop
        javascript = await run_in_threadpool(self.compile)
        return self._fragment_for(javascript)


def client_file_prod(
    name: str,
    settings: BridgeSettings | None = None,
    compiler: Compiler | None = None,
    type_checker: TypeChecker | None = None,
) -> PrecompiledModule:
    """Type check and compile ``name`` now; embed the result as a constant."""
    return PrecompiledModule(name, settings, compiler, type_checker)


def client_file_reload(
    name: str,
    settings: BridgeSettings | None = None,
    compiler: Compiler | None = None,
) -> ReloadingModule:
    """Recompile ``name`` each time its fragment is requested."""
    return ReloadingModule(name, settings, compiler)
