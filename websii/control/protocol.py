"""
Control protocol messages.

Commands are externally tagged JSON values::

    {"SetDirectory": {"path": "/srv/site"}}
    {"SetFile": {"path": "/srv/site/readme.txt"}}
    "GetStatus"
    "Stop"

Every response carries ``success``, ``message``, ``current_path`` and
``port``; the last two are ``null`` unless the command reports status.
"""

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional


class InvalidCommand(ValueError):
    """The request body is not a well-formed control command."""


@dataclass(frozen=True)
class SetDirectory:
    path: str


@dataclass(frozen=True)
class SetFile:
    path: str


@dataclass(frozen=True)
class GetStatus:
    pass


@dataclass(frozen=True)
class Stop:
    pass


PATH_COMMANDS = {"SetDirectory": SetDirectory, "SetFile": SetFile}
UNIT_COMMANDS = {"GetStatus": GetStatus, "Stop": Stop}


def parse_command(payload: Any):
    """
    Build a command object from decoded JSON.

    Raises:
        InvalidCommand: unknown tag, wrong shape or missing path
    """
    if isinstance(payload, str):
        if payload in UNIT_COMMANDS:
            return UNIT_COMMANDS[payload]()
        raise InvalidCommand(f"Unknown command: {payload!r}")

    if not isinstance(payload, dict) or len(payload) != 1:
        raise InvalidCommand("Command must be a string or an object with exactly one key")

    tag, body = next(iter(payload.items()))
    if tag in UNIT_COMMANDS:
        if body not in (None, {}):
            raise InvalidCommand(f"{tag} takes no arguments")
        return UNIT_COMMANDS[tag]()

    if tag in PATH_COMMANDS:
        if not isinstance(body, dict) or not isinstance(body.get("path"), str) or not body["path"]:
            raise InvalidCommand(f"{tag} requires a non-empty string 'path'")
        return PATH_COMMANDS[tag](body["path"])

    raise InvalidCommand(f"Unknown command: {tag!r}")


def encode_command(command) -> Any:
    """Inverse of ``parse_command``."""
    tag = type(command).__name__
    if tag in UNIT_COMMANDS:
        return tag
    if tag in PATH_COMMANDS:
        return {tag: {"path": command.path}}
    raise TypeError(f"Not a control command: {command!r}")


@dataclass
class ControlResponse:
    success: bool
    message: str
    current_path: Optional[str] = None
    port: Optional[int] = None

    @classmethod
    def ok(cls, message: str) -> "ControlResponse":
        return cls(True, message)

    @classmethod
    def error(cls, message: str) -> "ControlResponse":
        return cls(False, message)

    @classmethod
    def status(cls, message: str, current_path, port: Optional[int]) -> "ControlResponse":
        return cls(True, message, str(current_path), port)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ControlResponse":
        return cls(
            success=bool(data.get("success", False)),
            message=str(data.get("message", "")),
            current_path=data.get("current_path"),
            port=data.get("port"),
        )
