"""
Control command handler.

The only code path that mutates the serving state. Domain errors are
reported as ``success=false`` responses and never propagate to the HTTP
layer.
"""

import os
import signal
import threading
from typing import Callable, Optional

from websii.control.protocol import ControlResponse, GetStatus, SetDirectory, SetFile, Stop
from websii.errors import WebsiiError
from websii.serving.state import ServingState
from websii.utils.logging_config import get_logger

logger = get_logger("control.handler")


def terminate_process() -> None:
    """Deliver SIGTERM to this process so the main thread shuts down."""
    os.kill(os.getpid(), signal.SIGTERM)


class ControlHandler:
    """Applies control commands to a ``ServingState``.

    Args:
        state: The shared serving state
        port: Listening port reported by GetStatus, set once the server is bound
        stop_callback: Called from a timer thread after a Stop command
        stop_grace_seconds: Delay between answering Stop and calling stop_callback
    """

    def __init__(self, state: ServingState, port: Optional[int] = None,
                 stop_callback: Callable[[], None] = terminate_process,
                 stop_grace_seconds: float = 1.0):
        self.state = state
        self.port = port
        self.stop_callback = stop_callback
        self.stop_grace_seconds = stop_grace_seconds
        self._stop_timer: Optional[threading.Timer] = None

    def handle(self, command) -> ControlResponse:
        try:
            if isinstance(command, SetDirectory):
                canonical = self.state.set_directory(command.path)
                return ControlResponse.ok(f"Directory set to: {canonical}")
            if isinstance(command, SetFile):
                canonical = self.state.set_file(command.path)
                return ControlResponse.ok(f"Direct file set to: {canonical}")
            if isinstance(command, GetStatus):
                return ControlResponse.status("Server running", self.state.get_root(), self.port)
            if isinstance(command, Stop):
                return self.schedule_stop()
        except WebsiiError as e:
            logger.warning(f"Control command {type(command).__name__} failed: {e.message}")
            return ControlResponse.error(e.message)

        return ControlResponse.error(f"Unsupported command: {command!r}")

    def schedule_stop(self) -> ControlResponse:
        if self._stop_timer is None:
            logger.info(f"Stop command received - shutting down in {self.stop_grace_seconds}s")
            self._stop_timer = threading.Timer(self.stop_grace_seconds, self.stop_callback)
            self._stop_timer.daemon = True
            self._stop_timer.start()
        return ControlResponse.ok("Server stopping")
