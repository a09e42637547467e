"""Typer CLI entrypoint."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import typer

from capturectl.api import Client
from capturectl.core.errors import CapturectlError

LOGGER = logging.getLogger(__name__)

app = typer.Typer(help="Capture game server query responses as replayable fixtures")


def _build_client(config: Path | None, use_worker: bool | None = None) -> Client:
    client = Client(config_path=config, use_worker=use_worker)
    for warning in getattr(client, "warnings", ()):
        typer.echo(f"Warning: {warning}", err=True)
    return client


def _parse_options(pairs: list[str]) -> dict[str, str]:
    options: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"Expected key=value, got '{pair}'", param_hint="--option")
        options[key] = value
    return options


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@app.command("capture")
def capture(
    ip: str,
    port: int = typer.Argument(..., min=1, max=65535),
    protocol: str = typer.Argument("auto", help="Protocol name or 'auto'"),
    option: list[str] | None = typer.Option(None, "--option", "-o", help="Extra capture option as key=value"),
    direct: bool = typer.Option(False, "--direct", help="Query in-process instead of in a worker process"),
    config: Path | None = typer.Option(None, "--config", help="Path to a capture.yaml"),
) -> None:
    """Query a server and store the response as a fixture."""
    options = _parse_options(option or [])
    try:
        client = _build_client(config, use_worker=False if direct else None)
        path = client.capture(ip, port, protocol, options)
    except CapturectlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None
    except Exception as exc:
        # Direct captures surface handler errors (socket failures and the like) unwrapped.
        LOGGER.debug("Capture of %s:%s failed", ip, port, exc_info=True)
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None
    typer.echo(path)


@app.command("list")
def list_captures(
    protocol: str | None = typer.Argument(None, help="Only show fixtures of this protocol"),
    config: Path | None = typer.Option(None, "--config", help="Path to a capture.yaml"),
) -> None:
    """Print stored fixtures as JSON."""
    try:
        client = _build_client(config)
        captures = client.list_fixtures(protocol)
    except CapturectlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None
    for capture_record in captures:
        typer.echo(json.dumps(capture_record, indent=4))


@app.command("protocols")
def list_protocols(
    config: Path | None = typer.Option(None, "--config", help="Path to a capture.yaml"),
) -> None:
    """List registered protocol names."""
    try:
        client = _build_client(config)
        names = client.list_protocols()
    except CapturectlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None
    if not names:
        typer.echo("No protocols registered")
        raise typer.Exit(code=1)
    for name in names:
        typer.echo(name)


def run() -> None:
    app()


if __name__ == "__main__":
    run()
