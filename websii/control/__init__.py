"""Remote control protocol, command handler and HTTP client."""

from .protocol import (
    ControlResponse,
    GetStatus,
    InvalidCommand,
    SetDirectory,
    SetFile,
    Stop,
    encode_command,
    parse_command,
)
from .handler import ControlHandler

__all__ = [
    'ControlResponse',
    'ControlHandler',
    'GetStatus',
    'InvalidCommand',
    'SetDirectory',
    'SetFile',
    'Stop',
    'encode_command',
    'parse_command',
]
