"""Client-side bridge shim.

Client modules and shared command types import ``Returns`` from
``starlette_pyjs.returns``. On the server that resolves to this package; the
client compiler has no access to installed packages, so a client-side twin
of the module is written into the client source tree before every compile
or type check. The file is overwritten unconditionally.
"""

from __future__ import annotations

import logging
from pathlib import Path
from string import Template

from .config import DEFAULT_COMMAND_ROUTE

logger = logging.getLogger(__name__)

SHIM_PACKAGE = "starlette_pyjs"
SHIM_MODULE = "returns.py"

# The same source is read by the type checker, by CPython and by Transcrypt.
# Lines between the skip pragmas exist for the first two only; "#?" lines
# exist for Transcrypt only. Transcrypt ships no Generic, and its dataclasses
# list their constructor fields in __initfields__ instead of __dict__.
SHIM_TEMPLATE = '''"""Client-side half of the command bridge.

Generated by starlette-pyjs and overwritten before every build. Do not edit.
"""

# __pragma__ ('ecom')

# __pragma__ ('skip')
from typing import Any, Callable, Generic, TypeVar

T = TypeVar("T")

# Globals provided by the page
JSON: Any
jQuery: Any
# __pragma__ ('noskip')

COMMAND_URL = $command_route


# __pragma__ ('skip')
class Returns(Generic[T]):
    """Phantom marker pinning the expected result type of a command."""

    def __init__(self) -> None:
        self.tag = "Returns"
# __pragma__ ('noskip')
#?class Returns:
#?    def __init__(self):
#?        self.tag = "Returns"


def _field_names(value: Any) -> Any:
    # __pragma__ ('skip')
    return list(vars(value))
    # __pragma__ ('noskip')
    #?return list(value.__initfields__)


def to_wire(value: Any) -> Any:
    """Encode a command the way the server decodes it."""
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (list, tuple)):
        return [to_wire(item) for item in value]
    if isinstance(value, dict):
        return {key: to_wire(item) for key, item in value.items()}
    data = {"tag": value.__class__.__name__}
    for key in _field_names(value):
        data[key] = to_wire(getattr(value, key))
    return data


def call(command: Any, on_result: Callable[[Any], None], url: str = COMMAND_URL) -> None:
    """Send a command to the server and pass the decoded answer to on_result."""
    jQuery.ajax(
        {
            "url": url,
            "type": "POST",
            "data": {"json": JSON.stringify(to_wire(command))},
            "dataType": "json",
            "success": on_result,
        }
    )
'''


def render_shim(command_route: str = DEFAULT_COMMAND_ROUTE) -> str:
    """Source of the client-side ``starlette_pyjs.returns`` module."""
    return Template(SHIM_TEMPLATE).substitute(command_route=repr(command_route))


def write_shim(client_root: Path, command_route: str = DEFAULT_COMMAND_ROUTE) -> Path:
    """Write the shim into ``client_root`` and return its path."""
    package_dir = client_root / SHIM_PACKAGE
    package_dir.mkdir(parents=True, exist_ok=True)
    (package_dir / "__init__.py").write_text("", encoding="utf-8")

    target = package_dir / SHIM_MODULE
    target.write_text(render_shim(command_route), encoding="utf-8")
    logger.info(f"Wrote client bridge shim to {target}")
    return target
