"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import shutil
import threading
from pathlib import Path

import pytest
from shared_types import Command

from starlette_pyjs.config import BridgeSettings
from starlette_pyjs.protocol import CommandCodec
from starlette_pyjs.toolchain import CompileConfig, CompilerError, TypeCheckResult

FIXTURES = Path(__file__).parent / "fixtures"


@pytest.fixture(scope="module")
def anyio_backend():
    """Configure anyio to use asyncio backend."""
    return "asyncio"


@pytest.fixture
def codec() -> CommandCodec:
    return CommandCodec.for_union(Command)


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """A copy of the sample client/shared tree."""
    shutil.copytree(FIXTURES / "client", tmp_path / "client")
    shutil.copytree(FIXTURES / "shared", tmp_path / "shared")
    return tmp_path


@pytest.fixture
def settings(project: Path) -> BridgeSettings:
    return BridgeSettings(
        client_root=project / "client",
        shared_root=project / "shared",
        jquery_url="/static/jquery.js",
    )


class FakeCompiler:
    """Records calls and returns canned JavaScript."""

    def __init__(self, javascript: str = "console.log('compiled');", error: CompilerError | None = None):
        self.javascript = javascript
        self.error = error
        self.calls: list[tuple[Path, CompileConfig]] = []
        self._lock = threading.Lock()

    def compile_file(self, source: Path, config: CompileConfig) -> str:
        with self._lock:
            self.calls.append((source, config))
        if self.error is not None:
            raise self.error
        return self.javascript


class FakeTypeChecker:
    """Type checker returning a fixed result."""

    def __init__(self, returncode: int = 0, output: str = ""):
        self.result = TypeCheckResult(returncode=returncode, output=output)
        self.calls: list[tuple[Path, CompileConfig]] = []

    def check(self, source: Path, config: CompileConfig) -> TypeCheckResult:
        self.calls.append((source, config))
        return self.result


@pytest.fixture
def fake_compiler() -> FakeCompiler:
    return FakeCompiler()


@pytest.fixture
def fake_type_checker() -> FakeTypeChecker:
    return FakeTypeChecker()
