"""CLI entry point for mdns-scout."""

import asyncio
import json
import sys
from pathlib import Path
from typing import List, Optional

import click

from .config import Config, ServiceConfig
from .discovery.query import discover
from .exceptions import ConfigurationError, MDNSError
from .logging_setup import setup_logging
from .server import Responder, Zone


@click.group()
@click.option(
    "--config-file", "-c",
    type=click.Path(exists=True, dir_okay=False, resolve_path=True),
    help="Path to a JSON configuration file.",
    envvar="MDNS_SCOUT_CONFIG_FILE"
)
@click.option(
    "--log-level", "-l",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    default=None,
    help="Override the logging level (e.g., DEBUG, INFO).",
)
@click.option(
    "--log-format",
    type=click.Choice(["console", "json"], case_sensitive=False),
    default=None,
    help="Override logging format.",
)
@click.pass_context
def cli(ctx: click.Context, config_file: Optional[str], log_level: Optional[str], log_format: Optional[str]) -> None:
    """mdns-scout - advertise and discover services with multicast DNS."""
    try:
        if config_file:
            cfg = Config.from_file(Path(config_file))
        else:
            cfg = Config()
    except Exception as e:
        click.echo(f"Error loading configuration: {e}", err=True)
        sys.exit(1)

    if log_level:
        cfg.logging.level = log_level.upper()
    if log_format:
        cfg.logging.format = log_format.lower()

    setup_logging(cfg.logging)
    ctx.ensure_object(dict)
    ctx.obj["config"] = cfg


@cli.command()
@click.argument("service", required=False)
@click.option("--domain", "-d", default=None, help="Domain to search (default from config, 'local').")
@click.option("--timeout", "-t", type=float, default=None, help="Seconds to wait for answers.")
@click.option("--json", "as_json", is_flag=True, help="Print results as JSON.")
@click.pass_context
def lookup(ctx: click.Context, service: Optional[str], domain: Optional[str], timeout: Optional[float], as_json: bool) -> None:
    """Look up instances of SERVICE, e.g. '_http._tcp'."""
    config: Config = ctx.obj["config"]
    service = service or config.discovery.service
    domain = domain or config.discovery.domain
    timeout = timeout if timeout is not None else config.discovery.timeout_seconds

    try:
        entries = asyncio.run(discover(service, domain, timeout, config.transport))
    except MDNSError as e:
        click.echo(f"Lookup failed: {e}", err=True)
        sys.exit(1)
    except KeyboardInterrupt:
        click.echo("\nLookup interrupted by user.", err=True)
        sys.exit(130)

    if as_json:
        click.echo(json.dumps([entry.model_dump(mode="json") for entry in entries], indent=2))
        return
    if not entries:
        click.echo(f"No instances of {service} found in {domain}.")
        return
    for entry in entries:
        click.echo(f"{entry.name}\t{entry.addr}:{entry.port}\t{entry.info}")


@cli.command()
@click.option("--service-type", "-s", default=None, help="Service type to advertise, e.g. '_http._tcp'.")
@click.option("--port", "-p", type=int, default=None, help="Port the service listens on.")
@click.option("--instance", "-i", default=None, help="Instance name (default: hostname).")
@click.option("--host", default=None, help="Host name for the SRV record; must name the instance (default: the instance name).")
@click.option("--ip", "ips", multiple=True, help="Address to advertise. Can be used multiple times.")
@click.option("--text", "texts", multiple=True, help="TXT fragment. Can be used multiple times.")
@click.option("--domain", "-d", default=None, help="Domain to advertise in.")
@click.pass_context
def serve(
    ctx: click.Context,
    service_type: Optional[str],
    port: Optional[int],
    instance: Optional[str],
    host: Optional[str],
    ips: List[str],
    texts: List[str],
    domain: Optional[str],
) -> None:
    """Advertise a service until interrupted."""
    config: Config = ctx.obj["config"]
    overrides = {
        key: value for key, value in {
            "service_type": service_type,
            "port": port,
            "instance": instance,
            "host": host,
            "ips": list(ips) or None,
            "text": list(texts) or None,
            "domain": domain,
        }.items() if value is not None
    }
    try:
        service_config = ServiceConfig.model_validate({**config.service.model_dump(), **overrides})
        zone = Zone.from_config(service_config)
    except (ConfigurationError, ValueError) as e:
        click.echo(f"Invalid service configuration: {e}", err=True)
        sys.exit(1)

    async def run_responder():
        responder = Responder(zone, config.transport)
        await responder.start()
        try:
            await asyncio.Event().wait()
        finally:
            await responder.shutdown()

    for service in zone.services:
        click.echo(f"Advertising {service.instance_addr} on port {service.port}")
    try:
        asyncio.run(run_responder())
    except MDNSError as e:
        click.echo(f"Responder failed: {e}", err=True)
        sys.exit(1)
    except KeyboardInterrupt:
        click.echo("\nResponder stopped.", err=True)


@cli.command()
def version() -> None:
    """Show version information."""
    from . import __version__
    click.echo(f"mdns-scout v{__version__}")


@cli.command()
@click.pass_context
def config_show(ctx: click.Context) -> None:
    """Show current configuration."""
    config: Config = ctx.obj["config"]
    click.echo(json.dumps(config.model_dump(mode="json"), indent=2))


if __name__ == "__main__":
    cli()
