"""Typer CLI entrypoint."""

from __future__ import annotations

import logging

import typer

from noisectl.core.errors import NoisectlError
from noisectl.core.model import DeviceProfile, Mode
from noisectl.core.service import NoiseService

app = typer.Typer(help="Noise-control mode switching for Bluetooth headsets")

_LEVEL_TOKENS = ", ".join(mode.token for mode in Mode)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _build_service() -> NoiseService:
    service = NoiseService()
    for warning in getattr(service, "load_warnings", ()):
        typer.echo(f"Warning: {warning}", err=True)
    for warning in getattr(service, "runtime_warnings", ()):
        typer.echo(f"Warning: {warning}", err=True)
    return service


@app.command("profiles")
def list_profiles() -> None:
    """List device profiles and the modes they support."""
    try:
        service = _build_service()
        for table in service.list_profiles():
            typer.echo(f"{table.profile.code}: {table.name}")
            for mode, frame in table.frames.items():
                typer.echo(f"  {mode.token}: {frame.hex(' ')}")
    except NoisectlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("devices")
def list_devices() -> None:
    """List registered devices and whether they are connected for audio."""
    try:
        service = _build_service()
        devices = service.list_devices()
        if not devices:
            typer.echo("No devices registered. Use 'noisectl discover --add' or 'noisectl add'.")
            return

        connected = {device.address for device in service.connected_devices()}
        for device in devices:
            state = "connected" if device.address in connected else "disconnected"
            typer.echo(f"{device.address} {device.name} [{device.profile.code}] {state}")
    except NoisectlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("add")
def add_device(
    address: str,
    name: str = typer.Option("", "--name", help="Display name"),
    profile: str = typer.Option(
        DeviceProfile.default().code,
        "--profile",
        help=f"Profile code ({', '.join(p.code for p in DeviceProfile)})",
    ),
) -> None:
    """Register a bonded device by address."""
    try:
        service = _build_service()
        device = service.add_device(address, name, profile_code=profile)
        typer.echo(f"Added {device.address} {device.name} [{device.profile.code}]")
    except NoisectlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("remove")
def remove_device(address: str) -> None:
    """Remove a registered device."""
    try:
        service = _build_service()
        if service.remove_device(address):
            typer.echo(f"Removed {address}")
        else:
            typer.echo(f"{address} is not registered")
    except NoisectlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("discover")
def discover(
    add: bool = typer.Option(False, "--add", help="Register the discovered devices"),
) -> None:
    """List bonded headsets from a known vendor that are not registered yet."""
    try:
        service = _build_service()
        devices = service.discover(add=add)
        if not devices:
            typer.echo("No new supported devices found")
            return
        verb = "Added" if add else "Found"
        for device in devices:
            typer.echo(f"{verb} {device.address} {device.name} [{device.profile.code}]")
    except NoisectlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("set")
def set_mode(
    level: str = typer.Argument(..., help=f"Noise-cancelling level: {_LEVEL_TOKENS}"),
) -> None:
    """Send a noise-control mode to every connected registered device.

    Unrecognized LEVEL values turn noise cancelling off.
    """
    try:
        service = _build_service()
        result = service.set_mode(Mode.from_token(level))
        for line in result.summary_lines():
            typer.echo(line, err=not result.ok)
        if not result.ok:
            raise typer.Exit(code=1)
    except NoisectlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


def run() -> None:
    app()


if __name__ == "__main__":
    run()
