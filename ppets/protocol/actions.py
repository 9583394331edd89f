"""
Actions are outputs from the PPETS states.

Each state returns exactly one Action per inbound message. The state machine
applies it: moves to next_index and hands command + payload to the transport.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Union


class Status(Enum):
    CONTINUE = auto()
    END_SUCCESS = auto()
    END_FAILURE = auto()

    @property
    def terminal(self) -> bool:
        return self is not Status.CONTINUE


class ReaderCommand(Enum):
    """Commands the reader (server) can run against the channel."""

    OPEN = auto()
    SELECT = auto()
    GET = auto()
    GET_INTERNAL = auto()
    PUT = auto()
    PUT_INTERNAL = auto()
    CLOSE = auto()


class DeviceCommand(Enum):
    """The device only ever answers the reader."""

    RESPONSE = auto()


Command = Union[ReaderCommand, DeviceCommand]

# Status words terminating every device response
RESPONSE_OK = b"\x90\x00"
RESPONSE_FAIL = b"\x6f\x00"

# Milliseconds; 0 leaves the choice to the transport
DEFAULT_TIMEOUT_MS = 0


@dataclass(frozen=True)
class Action:
    """What the state machine must do next."""

    status: Status
    next_index: int
    command: Command
    payload: bytes = b""
    timeout_ms: int = DEFAULT_TIMEOUT_MS
