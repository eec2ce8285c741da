"""
eventsub configuration.

Subscription timing, transport settings, the status server and the list of
endpoints to keep subscribed. Reads from ~/.eventsub/config.toml with
environment variable overrides.
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------

EVENTSUB_HOME = Path(os.getenv("EVENTSUB_HOME", Path.home() / ".eventsub"))
CONFIG_PATH = EVENTSUB_HOME / "config.toml"


# ---------------------------------------------------------------------------
# Subscription targets
# ---------------------------------------------------------------------------

@dataclass
class SubscriptionTarget:
    """One endpoint to keep subscribed."""

    subscribe_url: str
    notification_url: str

    def __post_init__(self):
        if not self.subscribe_url or not isinstance(self.subscribe_url, str):
            raise ValueError("subscribe_url must be a non-empty string")
        if not self.notification_url or not isinstance(self.notification_url, str):
            raise ValueError("notification_url must be a non-empty string")


# ---------------------------------------------------------------------------
# Main config
# ---------------------------------------------------------------------------

@dataclass
class EventSubConfig:
    """Top-level eventsub configuration."""

    # Status server
    host: str = "0.0.0.0"
    port: int = 5006

    # Subscription timing. Production leaves these alone.
    subscription_interval: int = 600     # seconds
    retry_interval_ms: int = 5000

    # Transport
    transport_timeout: float = 10.0
    user_agent: str = "eventsub/0.1.0 UPnP/1.0"

    # Watchdog
    monitor_enabled: bool = True

    # Logging
    log_level: str = "INFO"

    subscriptions: list[SubscriptionTarget] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

def _apply_toml(config: EventSubConfig, data: dict[str, Any]) -> None:
    """Overlay TOML data onto an EventSubConfig."""
    server = data.get("server", {})
    if "host" in server:
        config.host = server["host"]
    if "port" in server:
        config.port = int(server["port"])

    timing = data.get("subscription", {})
    if "interval" in timing:
        config.subscription_interval = int(timing["interval"])
    if "retry_interval_ms" in timing:
        config.retry_interval_ms = int(timing["retry_interval_ms"])

    transport = data.get("transport", {})
    if "timeout" in transport:
        config.transport_timeout = float(transport["timeout"])
    if "user_agent" in transport:
        config.user_agent = transport["user_agent"]

    monitor = data.get("monitor", {})
    if "enabled" in monitor:
        config.monitor_enabled = bool(monitor["enabled"])

    logging_section = data.get("logging", {})
    if "level" in logging_section:
        config.log_level = str(logging_section["level"]).upper()

    for entry in data.get("subscriptions", []):
        config.subscriptions.append(
            SubscriptionTarget(entry["subscribe_url"], entry["notification_url"])
        )


def load_config(config_path: Path | None = None) -> EventSubConfig:
    """
    Build config from defaults → TOML file → environment variables.

    Precedence (highest wins):
        1. Environment variables
        2. ~/.eventsub/config.toml
        3. Built-in defaults
    """
    config = EventSubConfig()

    path = config_path or CONFIG_PATH
    if path.exists():
        with open(path, "rb") as f:
            toml_data = tomllib.load(f)
        _apply_toml(config, toml_data)

    # Env overrides
    if os.getenv("EVENTSUB_HOST"):
        config.host = os.getenv("EVENTSUB_HOST")  # type: ignore[assignment]
    if os.getenv("EVENTSUB_PORT"):
        config.port = int(os.getenv("EVENTSUB_PORT"))  # type: ignore[arg-type]
    if os.getenv("EVENTSUB_LOG_LEVEL"):
        config.log_level = os.getenv("EVENTSUB_LOG_LEVEL").upper()  # type: ignore[union-attr]
    if os.getenv("EVENTSUB_SUBSCRIPTION_INTERVAL"):
        config.subscription_interval = int(os.getenv("EVENTSUB_SUBSCRIPTION_INTERVAL"))  # type: ignore[arg-type]
    if os.getenv("EVENTSUB_RETRY_INTERVAL_MS"):
        config.retry_interval_ms = int(os.getenv("EVENTSUB_RETRY_INTERVAL_MS"))  # type: ignore[arg-type]

    return config


# ---------------------------------------------------------------------------
# Global singleton
# ---------------------------------------------------------------------------

_config: EventSubConfig | None = None


def get_config() -> EventSubConfig:
    global _config
    if _config is None:
        _config = load_config()
    return _config
