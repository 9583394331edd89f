"""
Messages are inputs to the PPETS state machine.

One message arrives per exchange. A DATA message without payload asks the
receiving state for data; a DATA message with payload carries data or a reply.
CONTROL messages carry session signals produced by the transport or engine.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto


class MessageType(Enum):
    DATA = auto()
    CONTROL = auto()


# === Control signals (payload of CONTROL messages) ===

START = b"start"      # begin the session on the initiating peer
CLOSE = b"close"      # peer closed the channel or the session was cancelled
TIMEOUT = b"timeout"  # no reply within the action's timeout
ERROR = b"error"      # peer reported a failure


@dataclass(frozen=True)
class Message:
    """A single inbound message."""

    type: MessageType
    payload: bytes | None = None

    @classmethod
    def data(cls, payload: bytes | None = None) -> Message:
        return cls(MessageType.DATA, payload)

    @classmethod
    def control(cls, signal: bytes) -> Message:
        return cls(MessageType.CONTROL, signal)

    @classmethod
    def start(cls) -> Message:
        return cls.control(START)

    @property
    def is_request(self) -> bool:
        """True for a DATA message asking for data (no payload)."""
        return self.type is MessageType.DATA and self.payload is None

    @property
    def has_data(self) -> bool:
        return self.type is MessageType.DATA and self.payload is not None

    def is_signal(self, signal: bytes) -> bool:
        return self.type is MessageType.CONTROL and self.payload == signal
