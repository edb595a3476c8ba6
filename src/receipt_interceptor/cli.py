"""CLI entry point for receipt-interceptor."""

from __future__ import annotations

import json
import logging
import signal
import threading
from pathlib import Path
from typing import TYPE_CHECKING

import click
from pydantic import ValidationError

from receipt_interceptor.config import (
    InterceptorConfig,
    ensure_terminal_id,
    generate_terminal_id,
    get_config_path,
    get_log_dir,
    get_mac_address,
    load_config,
    save_config,
)
from receipt_interceptor.exceptions import SpoolPathMissingError
from receipt_interceptor.extraction import extract_text
from receipt_interceptor.logging_config import setup_logging
from receipt_interceptor.parser import parse_receipt
from receipt_interceptor.status import (
    NullStatusChannel,
    StreamStatusChannel,
    error_event,
)
from receipt_interceptor.watcher import SpoolWatcher

if TYPE_CHECKING:
    from types import FrameType

logger = logging.getLogger(__name__)

_config_option = click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Path to config.json (default: %APPDATA%/ReceiptInterceptor/config.json).",
)


def _load(config_path: Path) -> InterceptorConfig:
    try:
        return ensure_terminal_id(load_config(config_path), config_path)
    except ValidationError as exc:
        msg = f"Invalid configuration in {config_path}:\n{exc}"
        raise click.ClickException(msg) from exc


@click.group()
def cli() -> None:
    """Receipt Interceptor: forward printed receipts to the cloud."""


@cli.command()
@_config_option
@click.option(
    "--spool-path",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Override the print spool directory.",
)
@click.option(
    "--status/--no-status",
    default=True,
    help="Emit JSON status events on stdout for a supervising process.",
)
def run(config_path: Path | None, spool_path: Path | None, status: bool) -> None:
    """Watch the print spool and deliver receipts until interrupted."""
    config_path = config_path or get_config_path()
    config = _load(config_path)
    if spool_path is not None:
        config = config.model_copy(update={"print_spool_path": spool_path})

    channel = StreamStatusChannel() if status else NullStatusChannel()
    setup_logging(
        logging.DEBUG if config.debug_mode else logging.INFO,
        log_dir=get_log_dir(),
        channel=channel if status else None,
    )

    watcher = SpoolWatcher(
        config,
        channel=channel,
        save_config=lambda updated: save_config(updated, config_path),
    )
    stop_event = threading.Event()

    def _handle_signal(signum: int, _frame: FrameType | None) -> None:
        logger.info("Received %s, stopping", signal.Signals(signum).name)
        stop_event.set()

    previous = {
        sig: signal.signal(sig, _handle_signal)
        for sig in (signal.SIGINT, signal.SIGTERM)
    }
    try:
        watcher.run(stop_event)
    except SpoolPathMissingError as exc:
        logger.error("%s", exc)
        logger.error("The print spooler must be enabled")
        raise SystemExit(1) from exc
    except Exception as exc:
        logger.exception("Uncaught error")
        channel.emit(error_event(exc))
        raise SystemExit(1) from exc
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)


@cli.command()
@click.argument(
    "job_file", type=click.Path(exists=True, dir_okay=False, path_type=Path)
)
@click.option("--show-text", is_flag=True, help="Print the extracted text first.")
def parse(job_file: Path, show_text: bool) -> None:
    """Extract and parse one spool file, printing the receipt as JSON."""
    text = extract_text(job_file.read_bytes())
    if show_text:
        click.echo(text)
        click.echo("-" * 40)

    receipt = parse_receipt(text)
    if receipt is None:
        click.echo("No receipt found.", err=True)
        raise SystemExit(1)
    click.echo(json.dumps(receipt.to_payload(), indent=2))


@cli.command()
@_config_option
def register(config_path: Path | None) -> None:
    """Register this terminal with the API and save the credentials."""
    config_path = config_path or get_config_path()
    config = _load(config_path)
    if not config.api_endpoint:
        msg = "API endpoint not configured (set apiEndpoint or API_ENDPOINT)"
        raise click.ClickException(msg)

    setup_logging(logging.DEBUG if config.debug_mode else logging.INFO)
    watcher = SpoolWatcher(
        config, save_config=lambda updated: save_config(updated, config_path)
    )
    try:
        registered = watcher.auto_register()
    finally:
        watcher.client.close()

    if not registered:
        msg = "Registration failed, see log for details"
        raise click.ClickException(msg)
    click.echo(f"Registered {config.terminal_id} (config saved to {config_path})")


@cli.command()
def identity() -> None:
    """Show the terminal id this host derives."""
    click.echo(f"Terminal ID: {generate_terminal_id()}")
    click.echo(f"MAC address: {get_mac_address()}")
