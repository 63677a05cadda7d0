#!/usr/bin/env python3
"""
Websii server startup script.

Serves a directory with live reload and accepts remote control commands.

Usage:
    websii-server [--port PORT] [--dir DIR] [--host HOST] [--log-level LEVEL] [--config CONFIG] [--debug]
"""

import argparse
import os
import signal
import sys
from contextlib import contextmanager
from typing import Any, Dict, Optional

import waitress

from websii import __version__
from websii.api.app import create_app
from websii.control.handler import ControlHandler, terminate_process
from websii.errors import WebsiiError
from websii.reload.broadcast import ReloadChannel
from websii.reload.watcher import RootWatcher
from websii.serving.state import ServingState
from websii.utils.config import get_config
from websii.utils.logging_config import configure_from_config, get_logger

logger = get_logger("api.run_api")

DEFAULT_CONFIG_PATH = "config/config.yaml"


class WebsiiServer:
    """Wires the serving state, reload channel, watcher and Flask app together."""

    def __init__(self, config: Dict[str, Any], root, stop_callback=terminate_process):
        self.config = config
        reload_config = config["reload"]
        server_config = config["server"]

        # Streams may occupy every worker except the reserved ones.
        max_streams = max(1, server_config["threads"] - server_config.get("reserved_threads", 0))
        self.channel = ReloadChannel(reload_config["subscriber_queue_size"], max_subscribers=max_streams)
        self.state = ServingState(root, self.channel)
        self.control = ControlHandler(
            self.state,
            port=config["server"]["port"],
            stop_callback=stop_callback,
            stop_grace_seconds=config["control"]["stop_grace_seconds"],
        )
        self.app = create_app(config, control=self.control, channel=self.channel)
        self.watcher = RootWatcher(
            self.state,
            self.channel,
            retry_interval=config["watcher"]["retry_interval"],
            debounce=reload_config["debounce_ms"] / 1000.0,
        )
        self._server = None

    def bind(self, host: str, port: int):
        """Create the waitress server and record the port it actually listens on."""
        server_config = self.config["server"]
        self._server = waitress.create_server(
            self.app,
            host=host,
            port=port,
            threads=server_config["threads"],
            channel_timeout=server_config["channel_timeout"],
            channel_request_lookahead=server_config.get("channel_request_lookahead", 1),
        )
        # waitress reports the port as a string
        self.control.port = int(self._server.effective_port)
        return self._server

    def run(self) -> None:
        self.watcher.start()
        try:
            self._server.run()
        finally:
            self.shutdown()

    def run_debug(self, host: str, port: int) -> None:
        self.control.port = port
        self.watcher.start()
        try:
            self.app.run(host=host, port=port, debug=True, threaded=True, use_reloader=False)
        finally:
            self.shutdown()

    def shutdown(self) -> None:
        self.watcher.stop()
        self.channel.close()
        if self._server is not None:
            self._server.close()
            self._server = None


def parse_arguments(argv=None):
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(description="Serve a directory with live reload")
    parser.add_argument("--port", type=int, default=None,
                        help="Port to listen on (default: server.port from config, 3000)")
    parser.add_argument("--dir", type=str, default=None,
                        help="Directory to serve (default: current directory)")
    parser.add_argument("--host", type=str, default=None,
                        help="Host to bind to (default: server.host from config)")
    parser.add_argument("--config", type=str, default=os.getenv("WEBSII_CONFIG", DEFAULT_CONFIG_PATH),
                        help="Path to the configuration file")
    parser.add_argument("--log-level", type=str, default=None,
                        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
                        help="Logging level")
    parser.add_argument("--debug", action="store_true", help="Run Flask's development server")
    return parser.parse_args(argv)


@contextmanager
def graceful_shutdown(on_signal=None):
    """Turn SIGINT/SIGTERM into SystemExit(0) in the main thread."""
    original_sigint = signal.getsignal(signal.SIGINT)
    original_sigterm = signal.getsignal(signal.SIGTERM)

    def handle_shutdown(signum, frame):
        logger.info(f"Received signal {signum}, shutting down...")
        if on_signal is not None:
            on_signal()
        sys.exit(0)

    signal.signal(signal.SIGINT, handle_shutdown)
    signal.signal(signal.SIGTERM, handle_shutdown)

    try:
        yield
    finally:
        signal.signal(signal.SIGINT, original_sigint)
        signal.signal(signal.SIGTERM, original_sigterm)
        logger.info("Shutdown complete")


def run_server(args, config: Optional[Dict[str, Any]] = None) -> int:
    """Initialize and run the server. Returns the process exit status."""
    config = config or get_config(args.config)
    configure_from_config(config, args.log_level)

    host = args.host or config["server"]["host"]
    port = args.port if args.port is not None else config["server"]["port"]
    initial_dir = args.dir or os.getcwd()

    try:
        server = WebsiiServer(config, initial_dir)
    except WebsiiError as e:
        logger.error(f"Cannot serve {initial_dir}: {e.message}")
        return 1

    if args.debug:
        logger.info("Running in development mode with Flask development server")
    else:
        try:
            server.bind(host, port)
        except OSError as e:
            logger.error(f"Cannot listen on {host}:{port}: {e}")
            return 1
        port = server.control.port

    stream_path = config["reload"]["stream_path"]
    control_paths = config["control"]["paths"]
    control_path = control_paths if isinstance(control_paths, str) else control_paths[0]
    logger.info(f"Websii Server v{__version__}")
    logger.info(f"Serving directory: {server.state.get_root()}")
    logger.info(f"Server: http://localhost:{port}")
    logger.info(f"Control API: http://localhost:{port}{control_path}")
    logger.info(f"Live reload enabled at {stream_path}")

    with graceful_shutdown(on_signal=server.channel.close):
        try:
            if args.debug:
                server.run_debug(host, port)
            else:
                server.run()
        except SystemExit as e:
            return e.code or 0

    return 0


def main(argv=None) -> int:
    """Main entry point."""
    return run_server(parse_arguments(argv))


if __name__ == "__main__":
    sys.exit(main())
