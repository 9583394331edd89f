"""
PPETS protocol states.

A State is one step of the protocol: it consumes the inbound Message and the
session's SharedContext and returns the Action to take. States are stateless
objects; everything they remember lives in the context.

Phase groups contiguous states for logging and for composing variants.
"""
from __future__ import annotations

from enum import Enum, auto
from typing import ClassVar

from .actions import (
    DEFAULT_TIMEOUT_MS,
    RESPONSE_OK,
    Action,
    DeviceCommand,
    ReaderCommand,
    Status,
)
from .context import SharedContext
from .message import Message


class Phase(Enum):
    """Protocol phases, in registration order."""

    SETUP = auto()
    REGISTRATION = auto()
    ISSUING = auto()
    VALIDATION = auto()


class State:
    """
    Base class for all protocol states.

    Subclasses set `phase` and `successors` (the absolute indices the state
    may continue to) and override get_action(). Returning None means the
    message is not one this state handles.
    """

    phase: ClassVar[Phase] = Phase.SETUP
    successors: ClassVar[tuple[int, ...]] = ()

    def get_action(self, message: Message, context: SharedContext) -> Action | None:
        return None

    @property
    def name(self) -> str:
        return type(self).__name__

    def __repr__(self) -> str:
        return f"<{self.name} {self.phase.name}>"


class ReaderState(State):
    """State run by the reader (server) side; emits reader commands."""

    timeout_ms: ClassVar[int] = DEFAULT_TIMEOUT_MS

    def send(self, command: ReaderCommand, next_index: int, payload: bytes = b"") -> Action:
        return Action(Status.CONTINUE, next_index, command, payload, self.timeout_ms)

    def finish(self, command: ReaderCommand = ReaderCommand.CLOSE, payload: bytes = b"",
               success: bool = True) -> Action:
        status = Status.END_SUCCESS if success else Status.END_FAILURE
        return Action(status, 0, command, payload)


class DeviceState(State):
    """State run by the device (ticket holder); answers every exchange."""

    def respond(self, next_index: int, data: bytes = b"", final: bool = False) -> Action:
        status = Status.END_SUCCESS if final else Status.CONTINUE
        return Action(status, next_index, DeviceCommand.RESPONSE, data + RESPONSE_OK)
