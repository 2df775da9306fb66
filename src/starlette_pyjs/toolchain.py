"""External toolchain: the client-language compiler and the type checker.

Both are separate programs invoked synchronously. A call blocks until the
program exits; there is no timeout unless one is configured, no retry, and
no pooling. The exit status decides success.

The compiler is anything implementing ``Compiler``. ``CommandCompiler``
covers command-line compilers via an argument template:

    compiler = CommandCompiler(
        ["transcrypt", "--nomin", "--outdir", "{out_dir}", "--xpath", "{search_path}", "{source}"],
        output="{out_dir}/{module}.js",
        path_separator="$",
    )
    js = compiler.compile_file(Path("client/Home.py"), CompileConfig([...]))
"""

from __future__ import annotations

import logging
import os
import subprocess
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from string import Formatter
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)

PLACEHOLDERS = frozenset({"source", "source_dir", "module", "search_path", "out_dir"})


@dataclass
class CompileConfig:
    """Compile-time configuration shared by compiler and type checker."""

    # Directories imports are resolved from, in priority order
    search_dirs: list[Path] = field(default_factory=list)
    # Where the compiler writes its output tree; None means next to the source
    out_dir: Path | None = None

    def search_path(self, separator: str = os.pathsep) -> str:
        return separator.join(str(d) for d in self.search_dirs)

    def out_dir_for(self, source: Path) -> Path:
        if self.out_dir is None:
            return source.parent / "__target__"
        return self.out_dir


class CompilerError(Exception):
    """Structured error reported by the client-language compiler."""

    def __init__(self, message: str, output: str = "", returncode: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.output = output
        self.returncode = returncode

    def __str__(self) -> str:
        if self.output:
            return f"{self.message}\n{self.output}"
        return self.message


@runtime_checkable
class Compiler(Protocol):
    """Turns one client source file into JavaScript text."""

    def compile_file(self, source: Path, config: CompileConfig) -> str:
        """Compile ``source``.

        Raises:
            CompilerError: if compilation fails.
        """
        ...


def check_template(template: str) -> None:
    """Reject templates with malformed braces or unknown placeholders.

    Raises:
        ValueError: describing the first problem found.
    """
    try:
        fields = [(name, conversion) for _, name, _, conversion in Formatter().parse(template) if name is not None]
    except ValueError as e:
        raise ValueError(f"Malformed compiler template {template!r}: {e}") from e
    if any(conversion not in (None, "r", "s", "a") for _, conversion in fields):
        raise ValueError(f"Malformed compiler template {template!r}: bad conversion")
    names = {name for name, _ in fields}
    unknown = names - PLACEHOLDERS
    if unknown:
        listed = ", ".join(repr(name) for name in sorted(unknown))
        raise ValueError(f"Unknown placeholder {listed} in compiler template {template!r}")


class CommandCompiler:
    """Compiler backed by an external command.

    Placeholders in ``args`` and ``output``:
        {source}       path of the module being compiled
        {source_dir}   its directory
        {module}       its file name without extension
        {search_path}  search directories joined by ``path_separator``
        {out_dir}      absolute output directory from the compile config

    If ``output`` is None the JavaScript is read from stdout; otherwise from
    the file it names once the command has exited.
    """

    def __init__(
        self,
        args: Sequence[str],
        output: str | None = None,
        path_separator: str = os.pathsep,
        timeout: float | None = None,
    ) -> None:
        if not args:
            raise ValueError("Compiler command must not be empty")
        for template in [*args, *([output] if output is not None else [])]:
            check_template(template)
        self.args = list(args)
        self.output = output
        self.path_separator = path_separator
        self.timeout = timeout

    def _placeholders(self, source: Path, config: CompileConfig) -> dict[str, str]:
        return {
            "source": str(source),
            "source_dir": str(source.parent),
            "module": source.stem,
            "search_path": config.search_path(self.path_separator),
            "out_dir": str(config.out_dir_for(source).resolve()),
        }

    def command_for(self, source: Path, config: CompileConfig) -> list[str]:
        values = self._placeholders(source, config)
        return [arg.format(**values) for arg in self.args]

    def compile_file(self, source: Path, config: CompileConfig) -> str:
        command = self.command_for(source, config)
        logger.debug(f"Compiling {source}: {' '.join(command)}")

        try:
            proc = subprocess.run(
                command,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise CompilerError(f"Compiler not found: {command[0]}") from e
        except subprocess.TimeoutExpired as e:
            raise CompilerError(f"Compiler timed out after {self.timeout}s") from e

        if proc.returncode != 0:
            raise CompilerError(
                f"Compiler exited with status {proc.returncode}",
                output=(proc.stderr or proc.stdout).strip(),
                returncode=proc.returncode,
            )

        if self.output is None:
            return proc.stdout

        target = Path(self.output.format(**self._placeholders(source, config)))
        try:
            return target.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise CompilerError(f"Compiler produced no output at {target}") from e


@dataclass
class TypeCheckResult:
    """Outcome of one type-checker run."""

    returncode: int
    output: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class TypeChecker:
    """Runs the host language's type checker over client and shared code.

    The search directories are exposed through ``MYPYPATH`` so that shared
    modules and the bridge shim resolve the same way they do for the
    compiler.
    """

    def __init__(self, command: Sequence[str]) -> None:
        if not command:
            raise ValueError("Type checker command must not be empty")
        self.command = list(command)

    def check(self, source: Path, config: CompileConfig) -> TypeCheckResult:
        command = [*self.command, str(source)]
        env = dict(os.environ)
        env["MYPYPATH"] = config.search_path(os.pathsep)
        logger.debug(f"Type checking {source}: {' '.join(command)}")

        try:
            proc = subprocess.run(command, capture_output=True, text=True, env=env)
        except FileNotFoundError:
            return TypeCheckResult(returncode=127, output=f"Type checker not found: {command[0]}")

        return TypeCheckResult(returncode=proc.returncode, output=(proc.stdout + proc.stderr).strip())
