#!/usr/bin/env python3
"""
v2rayN Publisher entry point

Loads the configuration, refuses to start on any configuration error, then
serves the publish endpoints with uvicorn.

Usage:
    python3 publisher_cli.py --config config.json --address 0.0.0.0:3000
    python3 publisher_cli.py --config config.yaml --cert-file cert.pem --key-file key.pem
    python3 publisher_cli.py --config config.json --check

Environment Variables:
    PUBLISHER_CONFIG: Path to config file
    PUBLISHER_ADDRESS: host:port to listen on
    PUBLISHER_CERT_FILE / PUBLISHER_KEY_FILE: TLS cert and key
    BUILD_TIME / BUILD_GIT_HASH: build metadata shown in the banner
    LOG_LEVEL / DEBUG: log level (see log_config)
"""

import argparse
import logging
import os
import platform
import sys
from typing import List, Optional, Tuple

import uvicorn

from api_server import create_app
from config_loader import ConfigError, load_config_file
from log_config import setup_logging
from publisher import Publisher

VERSION = "0.1.0"

DEFAULT_CONFIG_PATH = "config.json"
DEFAULT_ADDRESS = "localhost:3000"

# handlers and level are set up in main()
logger = logging.getLogger("publisher_cli")


def parse_address(address: str) -> Tuple[str, int]:
    """Split host:port; an empty host means all interfaces."""
    host, sep, port_str = address.rpartition(":")
    if not sep:
        raise ValueError(f"address must be host:port, got '{address}'")
    try:
        port = int(port_str)
    except ValueError:
        raise ValueError(f"invalid port in address '{address}'") from None
    if not (1 <= port <= 65535):
        raise ValueError(f"port out of range (1-65535) in address '{address}'")
    # [::1]:3000
    host = host.strip("[]") or "0.0.0.0"
    return host, port


def banner() -> str:
    return "\n".join([
        f"v2rayN Publisher {VERSION}",
        f"Build Time: {os.environ.get('BUILD_TIME', '(Not provided)')}",
        f"Commit Git hash: {os.environ.get('BUILD_GIT_HASH', '(Not provided)')}",
        f"Runtime: {platform.system()} ({platform.machine()}), Python {platform.python_version()}",
    ])


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Publish VMess servers and routing rules to v2rayN subscribers"
    )
    parser.add_argument(
        "--config", "-c",
        type=str,
        default=os.environ.get("PUBLISHER_CONFIG", DEFAULT_CONFIG_PATH),
        help="Path to config file, JSON or YAML (default: config.json)"
    )
    parser.add_argument(
        "--address", "-a",
        type=str,
        default=os.environ.get("PUBLISHER_ADDRESS", DEFAULT_ADDRESS),
        help="Address the HTTP server listens on (default: localhost:3000)"
    )
    parser.add_argument(
        "--cert-file",
        type=str,
        default=os.environ.get("PUBLISHER_CERT_FILE", ""),
        help="TLS server cert file"
    )
    parser.add_argument(
        "--key-file",
        type=str,
        default=os.environ.get("PUBLISHER_KEY_FILE", ""),
        help="TLS server key file"
    )
    parser.add_argument(
        "--check",
        action="store_true",
        help="Validate the config file and exit"
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if bool(args.cert_file) != bool(args.key_file):
        parser.error("--cert-file and --key-file must be given together")
    try:
        host, port = parse_address(args.address)
    except ValueError as e:
        parser.error(str(e))

    setup_logging()
    print(banner() + "\n")

    try:
        config = load_config_file(args.config)
    except ConfigError:
        # already logged by the loader
        return 1

    if args.check:
        logger.info(f"Config file {args.config} is valid")
        return 0

    app = create_app(Publisher(config))

    ssl_kwargs = {}
    if args.cert_file and args.key_file:
        ssl_kwargs = {"ssl_certfile": args.cert_file, "ssl_keyfile": args.key_file}
        logger.info(f"Publisher listen on: https://{args.address}")
    else:
        logger.warning(
            "Publisher running without HTTPS, this is not recommended. It may disclose your "
            "server information to unauthorized people! Unless a reverse proxy such as nginx "
            "terminates HTTPS in front of it, do not run it this way."
        )
        logger.info(f"Publisher listen on: http://{args.address}")

    uvicorn.run(app, host=host, port=port, log_config=None, **ssl_kwargs)
    return 0


if __name__ == "__main__":
    sys.exit(main())
