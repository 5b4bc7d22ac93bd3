"""rewardhook CLI -- run the receiver and craft test deliveries.

Thin wrapper around the app factory and verifier using click.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import BinaryIO

import click
from lifxlan import LifxLAN
from lifxlan.errors import WorkflowException

from rewardhook.config import Settings
from rewardhook.envelope import MessageType
from rewardhook.lighting import LifxBulb
from rewardhook.verify import (
    HASH_ALGORITHMS,
    MESSAGE_ID_HEADER,
    MESSAGE_SIGNATURE_HEADER,
    MESSAGE_TIMESTAMP_HEADER,
    MESSAGE_TYPE_HEADER,
    compute_signature,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _error(msg: str) -> None:
    """Print an error message to stderr and exit 1."""
    click.echo(msg, err=True)
    raise SystemExit(1)


def _check_tls(settings: Settings) -> None:
    """Exit if TLS is half-configured or its files are missing."""
    if bool(settings.tls_certfile) != bool(settings.tls_keyfile):
        _error("Set both REWARDHOOK_TLS_CERTFILE and REWARDHOOK_TLS_KEYFILE, or neither.")
    for path in (settings.tls_certfile, settings.tls_keyfile):
        if path and not Path(path).is_file():
            _error(f"TLS file not found: {path}")


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(package_name="rewardhook")
def cli() -> None:
    """rewardhook -- channel-point reward webhook receiver."""


# ---------------------------------------------------------------------------
# rewardhook serve
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--host", default=None, help="Bind address (default: REWARDHOOK_HOST).")
@click.option("--port", "-p", type=int, default=None, help="Bind port (default: REWARDHOOK_PORT).")
def serve(host: str | None, port: int | None) -> None:
    """Discover the bulbs and serve POST /webhook."""
    import uvicorn

    settings = Settings()
    _check_tls(settings)

    uvicorn.run(
        "rewardhook.app:create_app",
        factory=True,
        host=host or settings.host,
        port=port or settings.port,
        ssl_certfile=settings.tls_certfile,
        ssl_keyfile=settings.tls_keyfile,
        log_level=settings.log_level.lower(),
    )


# ---------------------------------------------------------------------------
# rewardhook sign
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("body", type=click.File("rb"))
@click.option(
    "--secret",
    "-s",
    envvar="REWARDHOOK_PRIMARY_SECRET",
    required=True,
    help="Signing secret (default: REWARDHOOK_PRIMARY_SECRET).",
)
@click.option("--message-id", default=None, help="Message id (default: random UUID).")
@click.option("--timestamp", default=None, help="Message timestamp (default: now, RFC 3339).")
@click.option(
    "--algorithm",
    "-a",
    type=click.Choice(sorted(HASH_ALGORITHMS)),
    default="sha256",
    show_default=True,
)
@click.option(
    "--type",
    "message_type",
    type=click.Choice([t.value for t in MessageType]),
    default=MessageType.NOTIFICATION.value,
    show_default=True,
)
def sign(
    body: BinaryIO,
    secret: str,
    message_id: str | None,
    timestamp: str | None,
    algorithm: str,
    message_type: str,
) -> None:
    """Print the headers for delivering BODY (a file, or - for stdin)."""
    payload = body.read()
    message_id = message_id or str(uuid.uuid4())
    timestamp = timestamp or datetime.now(timezone.utc).isoformat(
        timespec="milliseconds"
    ).replace("+00:00", "Z")
    signature = compute_signature(
        secret.encode("utf-8"), message_id, timestamp, payload, algorithm
    )
    click.echo(f"{MESSAGE_ID_HEADER}: {message_id}")
    click.echo(f"{MESSAGE_TIMESTAMP_HEADER}: {timestamp}")
    click.echo(f"{MESSAGE_SIGNATURE_HEADER}: {signature}")
    click.echo(f"{MESSAGE_TYPE_HEADER}: {message_type}")


# ---------------------------------------------------------------------------
# rewardhook discover
# ---------------------------------------------------------------------------


@cli.command()
def discover() -> None:
    """List bulbs on the LAN, marking the configured bed and ceiling bulbs."""
    settings = Settings()
    roles = {
        settings.bed_bulb_mac: "bed",
        settings.ceiling_bulb_mac: "ceiling",
    }
    try:
        lights = LifxLAN().get_lights()
    except WorkflowException as exc:
        _error(f"Failed to find bulbs: {exc}")
        return

    if not lights:
        click.echo("No bulbs found.")
        return
    for light in lights:
        mac = LifxBulb(light).mac
        role = roles.get(mac)
        click.echo(f"{mac}  ({role})" if role else mac)
