"""
Transport interface - carries reader commands to the device.

The transport layer handles:
- Channel lifecycle (open, application select, close)
- Delivery of one command + payload per exchange
- Status word checking and timeouts

It presents a single request/response exchange to the engine. Failures are
reported as CONTROL messages, never raised.
"""
from __future__ import annotations

from typing import Protocol, runtime_checkable

from ..protocol.actions import ReaderCommand
from ..protocol.message import Message


@runtime_checkable
class ITransport(Protocol):
    """
    Reader-side transport interface.

    Strictly half-duplex: exactly one outstanding exchange at a time.
    """

    def exchange(self, command: ReaderCommand, payload: bytes, timeout_ms: int) -> Message:
        """
        Run one command against the channel and return the reply.

        A timeout_ms of 0 means the transport's default timeout.
        Timeouts, peer failures and closed channels come back as CONTROL
        messages (TIMEOUT, ERROR, CLOSE).
        """
        ...

    def close(self) -> None:
        """Close the channel; later exchanges answer CLOSE."""
        ...
