"""Command-line entry point: ``python -m eventsub`` or ``eventsub``."""

import argparse
import logging
from pathlib import Path

import uvicorn

from eventsub.config import load_config
from eventsub.server import create_app

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(prog="eventsub", description="Keep UPnP event subscriptions alive.")
    parser.add_argument("--config", type=Path, default=None, help="Path to config.toml")
    parser.add_argument("--host", default=None)
    parser.add_argument("--port", type=int, default=None)
    args = parser.parse_args(argv)

    config = load_config(args.config)
    configure_logging(config.log_level)

    uvicorn.run(
        create_app(args.config),
        host=args.host or config.host,
        port=args.port or config.port,
        log_level=config.log_level.lower(),
    )


if __name__ == "__main__":
    main()
