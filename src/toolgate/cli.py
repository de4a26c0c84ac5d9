"""
Toolgate CLI

Commands:
    toolgate serve                       — Serve over stdin/stdout
    toolgate serve --transport http      — Serve POST /mcp and GET /tools
    toolgate serve --transport sse       — HTTP plus a GET /events push stream
    toolgate tools                       — Print tool definitions as JSON
    toolgate call NAME [ARGUMENTS_JSON]  — Dispatch one call and print the envelope

Settings come from TOOLGATE_* environment variables.
"""

from __future__ import annotations

import asyncio
import json
import sys

import click

from toolgate import __version__
from toolgate.config import GatewaySettings
from toolgate.exceptions import ConfigurationError
from toolgate.gateway.dispatcher import build_gateway
from toolgate.logging import configure_logging

DEFAULT_PORT = 8008


def _load_settings() -> GatewaySettings:
    try:
        settings = GatewaySettings.from_env()
    except ConfigurationError as e:
        raise click.ClickException(f"{e.message}: {'; '.join(e.details.get('errors', []))}") from e
    configure_logging(settings.log_level, settings.json_logs)
    return settings


@click.group()
@click.version_option(version=__version__, prog_name="toolgate")
def cli() -> None:
    """Toolgate — tool invocation gateway for AI agents"""


@cli.command()
@click.option(
    "--transport",
    "-t",
    type=click.Choice(["stdio", "http", "sse"]),
    default="stdio",
    show_default=True,
    help="Transport binding",
)
@click.option("--host", default="127.0.0.1", help="Bind address for http/sse")
@click.option("--port", "-p", default=DEFAULT_PORT, type=int, help="Port for http/sse")
def serve(transport: str, host: str, port: int) -> None:
    """Start the gateway on the chosen transport."""
    settings = _load_settings()
    gateway = build_gateway(settings)

    if transport == "stdio":
        from toolgate.transports.pipe import PipeTransport

        asyncio.run(PipeTransport(gateway).run())
        return

    import uvicorn

    from toolgate.transports.http import create_http_app

    broadcaster = None
    if transport == "sse":
        from toolgate.transports.sse import SseBroadcaster

        broadcaster = SseBroadcaster(
            queue_size=settings.sse_queue_size,
            keepalive_s=settings.sse_keepalive_s,
        )
        gateway.add_listener(broadcaster.broadcast)

    click.echo(f"Toolgate {transport} transport on http://{host}:{port}", err=True)
    uvicorn.run(
        create_http_app(gateway, broadcaster),
        host=host,
        port=port,
        log_level=settings.log_level.lower(),
    )


@cli.command()
def tools() -> None:
    """Print tool definitions as JSON."""
    gateway = build_gateway(_load_settings())
    click.echo(json.dumps(gateway.list_tools(), indent=2))


@cli.command()
@click.argument("name")
@click.argument("arguments_json", required=False, default="{}")
def call(name: str, arguments_json: str) -> None:
    """Dispatch one tool call and print the response envelope."""
    try:
        arguments = json.loads(arguments_json)
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"not valid JSON: {e}", param_hint="ARGUMENTS_JSON") from e

    gateway = build_gateway(_load_settings())
    try:
        envelope = asyncio.run(gateway.handle_raw({"name": name, "arguments": arguments}))
    finally:
        gateway.shutdown()

    click.echo(json.dumps(envelope.to_wire(), indent=2))
    if not envelope.success:
        sys.exit(1)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
