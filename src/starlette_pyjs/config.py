"""Bridge configuration.

Settings default to the conventional project layout (a ``client`` folder for
client-side modules and a ``shared`` folder for code used by both sides) and
can be overridden through ``PYJS_*`` environment variables.
"""

from __future__ import annotations

import os
import shlex
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .modules import ClientModule

DEFAULT_JQUERY_URL = "https://ajax.googleapis.com/ajax/libs/jquery/1.7.2/jquery.min.js"
DEFAULT_COMMAND_ROUTE = "/client-command"
DEFAULT_ASSET_ROUTE = "/client-js"
BUILD_DIR_NAME = "__target__"

# Transcrypt writes one ES module per Python module into {out_dir}, imported
# from one another with relative paths, and joins extra search paths with "$".
# --build is left out: it wipes the output directory other modules share.
DEFAULT_COMPILER_COMMAND = (
    "transcrypt",
    "--nomin",
    "--outdir",
    "{out_dir}",
    "--xpath",
    "{search_path}",
    "{source}",
)
DEFAULT_COMPILER_OUTPUT = "{out_dir}/{module}.js"
DEFAULT_COMPILER_PATH_SEPARATOR = "$"


def _default_typecheck_command() -> tuple[str, ...]:
    return (sys.executable, "-m", "mypy")


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").lower() in ("1", "true", "yes")


@dataclass
class BridgeSettings:
    """Configuration for compiling and serving client modules."""

    client_root: Path = Path("client")
    shared_root: Path = Path("shared")
    command_route: str = DEFAULT_COMMAND_ROUTE
    jquery_url: str = DEFAULT_JQUERY_URL
    compiler_command: tuple[str, ...] = DEFAULT_COMPILER_COMMAND
    compiler_output: str | None = DEFAULT_COMPILER_OUTPUT
    compiler_path_separator: str = DEFAULT_COMPILER_PATH_SEPARATOR
    typecheck_command: tuple[str, ...] = field(default_factory=_default_typecheck_command)
    # Compiler output tree, served under asset_route; None means <client_root>/__target__
    build_dir: Path | None = None
    asset_route: str = DEFAULT_ASSET_ROUTE
    # Compiled code is ES modules importing siblings from build_dir
    es_modules: bool = True
    # Recompile on every request instead of building once at start-up
    reload: bool = False

    @classmethod
    def from_env(cls) -> BridgeSettings:
        """Build settings from ``PYJS_*`` environment variables."""
        settings = cls()
        if value := os.environ.get("PYJS_CLIENT_ROOT"):
            settings.client_root = Path(value)
        if value := os.environ.get("PYJS_SHARED_ROOT"):
            settings.shared_root = Path(value)
        if value := os.environ.get("PYJS_COMMAND_ROUTE"):
            settings.command_route = value
        if value := os.environ.get("PYJS_JQUERY_URL"):
            settings.jquery_url = value
        if value := os.environ.get("PYJS_COMPILER"):
            settings.compiler_command = tuple(shlex.split(value))
        if "PYJS_COMPILER_OUTPUT" in os.environ:
            # An empty value means the compiler prints JavaScript to stdout
            settings.compiler_output = os.environ["PYJS_COMPILER_OUTPUT"] or None
        if value := os.environ.get("PYJS_COMPILER_PATH_SEPARATOR"):
            settings.compiler_path_separator = value
        if value := os.environ.get("PYJS_TYPECHECK"):
            settings.typecheck_command = tuple(shlex.split(value))
        if value := os.environ.get("PYJS_BUILD_DIR"):
            settings.build_dir = Path(value)
        if value := os.environ.get("PYJS_ASSET_ROUTE"):
            settings.asset_route = value
        if "PYJS_ES_MODULES" in os.environ:
            settings.es_modules = _env_flag("PYJS_ES_MODULES")
        settings.reload = _env_flag("PYJS_RELOAD")
        return settings

    @property
    def output_dir(self) -> Path:
        """Directory the compiler writes to and the asset route serves."""
        if self.build_dir is not None:
            return Path(self.build_dir)
        return Path(self.client_root) / BUILD_DIR_NAME

    def client_file(self, name: str) -> ClientModule:
        """Load a client module with the strategy selected by ``reload``.

        Intended to be bound once in an application's shared imports, so
        development uses on-demand compilation and production builds once.
        """
        from .modules import client_file_prod, client_file_reload

        if self.reload:
            return client_file_reload(name, self)
        return client_file_prod(name, self)
