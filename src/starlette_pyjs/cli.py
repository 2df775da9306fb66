"""starlette-pyjs CLI.

Usage:
    starlette-pyjs scaffold                  # Write the bridge shim into the client root
    starlette-pyjs check Home                # Type check a client module
    starlette-pyjs build Home --out static   # Ahead-of-time build to static/Home.js
    starlette-pyjs serve myapp:app           # Run an application with uvicorn
    starlette-pyjs serve myapp:create --factory --reload
    starlette-pyjs send '{"tag": "Echo", "contents": "hi"}'
    starlette-pyjs status --url http://localhost:8000

Global options override the PYJS_* environment variables:
    starlette-pyjs --client-root web/client --shared-root web/shared build Home
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import Any

import click
import httpx

from .config import BridgeSettings
from .errors import BridgeError
from .modules import ModuleLayout, build_type_checker, client_file_prod
from .routes import STATUS_PATH
from .scaffold import write_shim

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


@click.group()
@click.option("--client-root", type=click.Path(file_okay=False, path_type=Path), help="Client source folder")
@click.option("--shared-root", type=click.Path(file_okay=False, path_type=Path), help="Shared source folder")
@click.option("--log-level", type=click.Choice(LOG_LEVELS, case_sensitive=False), default="WARNING")
@click.pass_context
def main(
    ctx: click.Context,
    client_root: Path | None,
    shared_root: Path | None,
    log_level: str,
) -> None:
    """Compile client-side Python modules and serve them from Starlette."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )

    settings = BridgeSettings.from_env()
    if client_root is not None:
        settings.client_root = client_root
    if shared_root is not None:
        settings.shared_root = shared_root
    ctx.obj = settings


@main.command()
@click.pass_obj
def scaffold(settings: BridgeSettings) -> None:
    """Write the client-side bridge shim."""
    path = write_shim(settings.client_root, settings.command_route)
    click.echo(f"Wrote {path}")


@main.command()
@click.argument("name")
@click.pass_obj
def check(settings: BridgeSettings, name: str) -> None:
    """Type check client module NAME against client and shared code."""
    layout = ModuleLayout.from_settings(settings)
    try:
        source = layout.source_path(name)
    except BridgeError as e:
        raise click.ClickException(e.message) from e

    write_shim(settings.client_root, settings.command_route)
    result = build_type_checker(settings).check(source, layout.compile_config())
    if result.output:
        click.echo(result.output)
    if not result.ok:
        click.echo(f"Type checking of client module failed: {name}", err=True)
        sys.exit(1)
    click.echo(f"{name}: ok")


@main.command()
@click.argument("names", nargs=-1, required=True)
@click.option(
    "--out",
    "out_dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=Path("static/js"),
    show_default=True,
    help="Directory for the compiled JavaScript",
)
@click.pass_obj
def build(settings: BridgeSettings, names: tuple[str, ...], out_dir: Path) -> None:
    """Type check and compile client modules NAMES ahead of time."""
    for name in names:
        try:
            module = client_file_prod(name, settings)
        except BridgeError as e:
            click.echo(f"Error: {e.message}", err=True)
            output = getattr(e, "output", "")
            if output:
                click.echo(output, err=True)
            sys.exit(1)
        except ValueError as e:
            # A malformed PYJS_COMPILER template
            raise click.ClickException(str(e)) from e
        target = module.write(out_dir)
        click.echo(f"{name} -> {target}")


@main.command()
@click.argument("app")
@click.option("--host", default="127.0.0.1", help="Host to bind to")
@click.option("--port", default=8000, help="Port to bind to")
@click.option("--reload", is_flag=True, help="Recompile client modules per request and reload on code changes")
@click.option("--factory", is_flag=True, help="Treat APP as an application factory")
@click.pass_obj
def serve(settings: BridgeSettings, app: str, host: str, port: int, reload: bool, factory: bool) -> None:
    """Run APP (module:attribute) with uvicorn."""
    import uvicorn

    # Settings reach the application through the environment
    os.environ["PYJS_CLIENT_ROOT"] = str(settings.client_root)
    os.environ["PYJS_SHARED_ROOT"] = str(settings.shared_root)
    if reload:
        os.environ["PYJS_RELOAD"] = "1"

    click.echo(f"Starting {app} on http://{host}:{port}", err=True)
    click.echo("Press Ctrl+C to stop", err=True)

    uvicorn.run(app, factory=factory, host=host, port=port, reload=reload)


def _request(method: str, url: str, **kwargs: Any) -> httpx.Response:
    try:
        return httpx.request(method, url, timeout=10.0, **kwargs)
    except httpx.ConnectError:
        click.echo(f"Cannot connect to server at {url}", err=True)
        sys.exit(1)


@main.command()
@click.argument("payload")
@click.option("--url", default="http://localhost:8000", help="Server URL")
@click.pass_obj
def send(settings: BridgeSettings, payload: str, url: str) -> None:
    """Post a JSON-encoded command PAYLOAD to a running server."""
    response = _request("POST", f"{url}{settings.command_route}", data={"json": payload})
    click.echo(response.text)
    if response.status_code != 200:
        sys.exit(1)


@main.command()
@click.option("--url", default="http://localhost:8000", help="Server URL")
@click.pass_obj
def status(settings: BridgeSettings, url: str) -> None:
    """Show how a running server answers client code.

    Fails when the server listens for commands on another route than the
    one compiled into local client modules.
    """
    response = _request("GET", f"{url}{STATUS_PATH}")
    if response.status_code != 200:
        click.echo(f"Server returned {response.status_code}", err=True)
        sys.exit(1)

    info = response.json()
    click.echo(f"strategy:      {info['strategy']}")
    click.echo(f"command route: {info['command_route']}")
    click.echo(f"asset route:   {info['asset_route']}")
    click.echo(f"commands:      {', '.join(info['commands'])}")

    if info["command_route"] != settings.command_route:
        click.echo(
            f"Client modules post to {settings.command_route}, server listens on {info['command_route']}",
            err=True,
        )
        sys.exit(1)


if __name__ == "__main__":
    main()
