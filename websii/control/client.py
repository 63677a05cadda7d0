#!/usr/bin/env python3
"""
Remote control client for a running Websii server.

Usage:
    websii-ctl status
    websii-ctl set-dir ./site
    websii-ctl set-file ./site/readme.txt
    websii-ctl stop --url http://localhost:3000
"""

import argparse
import os
import sys

import requests

from websii.control.protocol import ControlResponse, GetStatus, SetDirectory, SetFile, Stop, encode_command
from websii.utils.logging_config import get_logger

logger = get_logger("control.client")

DEFAULT_URL = "http://localhost:3000"
DEFAULT_CONTROL_PATH = "/control"


class ControlClient:
    """Sends control commands over HTTP and decodes the responses."""

    def __init__(self, base_url: str = DEFAULT_URL, control_path: str = DEFAULT_CONTROL_PATH,
                 timeout: float = 5.0, session=None):
        self.url = base_url.rstrip("/") + control_path
        self.timeout = timeout
        self.session = session or requests.Session()

    def send(self, command) -> ControlResponse:
        """Post one command. Transport errors propagate as requests exceptions."""
        response = self.session.post(self.url, json=encode_command(command), timeout=self.timeout)
        try:
            payload = response.json()
        except ValueError:
            response.raise_for_status()
            raise
        logger.debug(f"{type(command).__name__} -> {payload}")
        return ControlResponse.from_dict(payload)

    def set_directory(self, path) -> ControlResponse:
        return self.send(SetDirectory(os.path.abspath(path)))

    def set_file(self, path) -> ControlResponse:
        return self.send(SetFile(os.path.abspath(path)))

    def get_status(self) -> ControlResponse:
        return self.send(GetStatus())

    def stop(self) -> ControlResponse:
        return self.send(Stop())


def parse_arguments(argv=None):
    parser = argparse.ArgumentParser(description="Control a running Websii server")
    parser.add_argument("--url", default=os.getenv("WEBSII_URL", DEFAULT_URL),
                        help=f"Server base URL (default: {DEFAULT_URL})")
    parser.add_argument("--timeout", type=float, default=5.0, help="Request timeout in seconds")
    subparsers = parser.add_subparsers(dest="action", required=True)
    subparsers.add_parser("status", help="Show the served directory and port")
    set_dir = subparsers.add_parser("set-dir", help="Serve a directory")
    set_dir.add_argument("path")
    set_file = subparsers.add_parser("set-file", help="Serve a single file at the root URL")
    set_file.add_argument("path")
    subparsers.add_parser("stop", help="Stop the server")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_arguments(argv)
    client = ControlClient(args.url, timeout=args.timeout)

    try:
        if args.action == "status":
            result = client.get_status()
        elif args.action == "set-dir":
            result = client.set_directory(args.path)
        elif args.action == "set-file":
            result = client.set_file(args.path)
        else:
            result = client.stop()
    except requests.RequestException as e:
        print(f"✗ Server not reachable: {e}")
        return 2

    if not result.success:
        print(f"✗ {result.message}")
        return 1

    print(f"✓ {result.message}")
    if result.current_path:
        print(f"Serving: {result.current_path}")
    if result.port:
        print(f"Port: {result.port}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
