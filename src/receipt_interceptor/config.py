"""Configuration: persisted JSON merged over defaults and environment variables."""

from __future__ import annotations

import hashlib
import json
import logging
import os
import socket
import sys
import uuid
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

load_dotenv()

logger = logging.getLogger(__name__)

VERSION = "3.0.0"
APP_DIR_NAME = "ReceiptInterceptor"

_MULTICAST_BIT = 1 << 40


def default_spool_path() -> Path:
    """Return the platform print-queue folder."""
    if sys.platform == "win32":
        root = os.environ.get("SystemRoot", r"C:\Windows")
        return Path(root) / "System32" / "spool" / "PRINTERS"
    return Path("/var/spool/cups")


class InterceptorConfig(BaseModel):
    """Runtime configuration.

    Stored on disk with camelCase keys (apiEndpoint, retryAttempts, ...).
    Intervals and the API timeout are in milliseconds.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    api_endpoint: str = ""
    api_key: str = ""
    terminal_id: str = ""
    location_id: str = ""
    print_spool_path: Path = Field(default_factory=default_spool_path)
    api_timeout: int = Field(default=5000, gt=0)
    retry_attempts: int = Field(default=3, ge=1)
    health_check_interval: int = Field(default=60_000, gt=0)
    poll_interval: int = Field(default=500, gt=0)
    status_interval: int = Field(default=10_000, gt=0)
    auto_register: bool = True
    debug_mode: bool = False
    ledger_capacity: int = Field(default=10_000, ge=2)
    min_job_bytes: int = Field(default=50, ge=0)
    min_receipt_length: int = Field(default=10, ge=0)
    max_raw_content_chars: int = Field(default=5000, ge=0)

    @property
    def api_timeout_seconds(self) -> float:
        return self.api_timeout / 1000

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


def get_app_dir() -> Path:
    """Return the per-user application directory.

    Uses %APPDATA% on Windows, falling back to the working directory.
    """
    base = os.environ.get("APPDATA") or os.getcwd()
    return Path(base).resolve() / APP_DIR_NAME


def get_config_path() -> Path:
    """Return INTERCEPTOR_CONFIG_PATH, defaulting to <app dir>/config.json."""
    override = os.environ.get("INTERCEPTOR_CONFIG_PATH")
    if override:
        return Path(override).resolve()
    return get_app_dir() / "config.json"


def get_log_dir() -> Path:
    """Return INTERCEPTOR_LOG_DIR, defaulting to <app dir>/logs."""
    override = os.environ.get("INTERCEPTOR_LOG_DIR")
    if override:
        return Path(override).resolve()
    return get_app_dir() / "logs"


def _env_overrides() -> dict[str, Any]:
    """Read the environment variables that seed the defaults."""
    values: dict[str, Any] = {}
    for var, name in (
        ("API_ENDPOINT", "api_endpoint"),
        ("API_KEY", "api_key"),
        ("TERMINAL_ID", "terminal_id"),
        ("LOCATION_ID", "location_id"),
    ):
        value = os.environ.get(var)
        if value:
            values[name] = value
    if os.environ.get("DEBUG") == "true":
        values["debug_mode"] = True
    return values


def _read_saved(path: Path) -> dict[str, Any]:
    """Read a saved config file, keyed by field name. Missing or bad -> {}."""
    if not path.exists():
        return {}
    try:
        saved = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        logger.warning("Unreadable config at %s, using default configuration", path)
        return {}
    if not isinstance(saved, dict):
        logger.warning("Config at %s is not an object, ignoring it", path)
        return {}

    by_alias = {
        f.alias: name for name, f in InterceptorConfig.model_fields.items() if f.alias
    }
    logger.info("Loaded saved configuration from %s", path)
    return {by_alias.get(key, key): value for key, value in saved.items()}


def load_config(path: Path | None = None) -> InterceptorConfig:
    """Build the configuration: defaults, then environment, then saved file.

    Raises:
        pydantic.ValidationError: if the merged values are invalid.
    """
    path = path or get_config_path()
    values = {**_env_overrides(), **_read_saved(path)}
    return InterceptorConfig.model_validate(values)


def save_config(config: InterceptorConfig, path: Path | None = None) -> Path:
    """Write the configuration as pretty-printed JSON and return the path."""
    path = path or get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(config.to_json(), indent=2), encoding="utf-8")
    return path


def get_mac_address() -> str:
    """Return the primary hardware address as aa:bb:..., or "unknown".

    uuid.getnode() falls back to a random number with the multicast bit set
    when no interface address can be read.
    """
    node = uuid.getnode()
    if node & _MULTICAST_BIT or node == 0:
        return "unknown"
    return ":".join(f"{(node >> shift) & 0xFF:02x}" for shift in range(40, -1, -8))


def generate_terminal_id(hostname: str | None = None, mac: str | None = None) -> str:
    """Derive a stable terminal id from hostname and MAC address.

    Format: ``T-`` followed by eight upper-case hex digits.
    """
    hostname = hostname if hostname is not None else socket.gethostname()
    mac = mac if mac is not None else get_mac_address()
    digest = hashlib.md5(f"{hostname}-{mac}".encode(), usedforsecurity=False)
    return f"T-{digest.hexdigest()[:8].upper()}"


def ensure_terminal_id(
    config: InterceptorConfig, path: Path | None = None
) -> InterceptorConfig:
    """Generate and persist a terminal id on first start."""
    if config.terminal_id:
        return config
    updated = config.model_copy(update={"terminal_id": generate_terminal_id()})
    saved_to = save_config(updated, path)
    logger.info("Generated terminal id %s (saved to %s)", updated.terminal_id, saved_to)
    return updated
