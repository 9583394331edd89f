"""
Loopback transport.

Runs the device state machine in-process, in place of a physical channel.
OPEN and SELECT are answered by the channel itself, GET and PUT are handed
to the device, and the *_INTERNAL commands never leave the reader.
"""
from __future__ import annotations

import time
from typing import Callable

from ..log import LogSink, null_sink
from ..protocol.actions import RESPONSE_OK, ReaderCommand, Status
from ..protocol.machine import StateMachine
from ..protocol.message import CLOSE, ERROR, TIMEOUT, Message
from ..protocols.setup import AID
from .interface import ITransport

DEFAULT_TIMEOUT_MS = 5_000


class LoopbackTransport(ITransport):
    """
    In-memory channel to a device StateMachine.

    Usage:
        device = PPETSFGP().device()
        transport = LoopbackTransport(device)
        reply = transport.exchange(ReaderCommand.OPEN, b"", 0)
    """

    def __init__(
        self,
        device: StateMachine,
        aid: bytes = AID,
        default_timeout_ms: int = DEFAULT_TIMEOUT_MS,
        logger: LogSink | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._device = device
        self._aid = aid
        self.default_timeout_ms = default_timeout_ms
        self._logger = logger or null_sink
        self._clock = clock

        self._open = False
        self._selected = False
        self._closed = False
        self._cancelled = False

    @property
    def device(self) -> StateMachine:
        return self._device

    # === Exchange ===

    def exchange(self, command: ReaderCommand, payload: bytes, timeout_ms: int) -> Message:
        if self._cancelled or self._closed:
            return Message.control(CLOSE)

        match command:
            case ReaderCommand.OPEN:
                self._device.reset()
                self._open = True
                self._selected = False
                self._logger("debug", "[Loopback] channel open")
                return Message.data()

            case ReaderCommand.SELECT:
                if not self._open or payload != self._aid:
                    self._logger("warn", f"[Loopback] select failed for AID {payload.hex()}")
                    return Message.control(ERROR)
                self._selected = True
                return Message.data()

            case ReaderCommand.GET:
                return self._to_device(None, timeout_ms)

            case ReaderCommand.PUT:
                return self._to_device(payload, timeout_ms)

            case ReaderCommand.GET_INTERNAL:
                return Message.data()

            case ReaderCommand.PUT_INTERNAL:
                return Message.data(payload)

            case ReaderCommand.CLOSE:
                self.close()
                return Message.control(CLOSE)

        self._logger("error", f"[Loopback] unknown command: {command}")
        return Message.control(ERROR)

    def _to_device(self, payload: bytes | None, timeout_ms: int) -> Message:
        if not self._selected or self._device.finished:
            self._logger("warn", "[Loopback] device not ready")
            return Message.control(ERROR)

        started = self._clock()
        step = self._device.advance(Message.data(payload))
        elapsed_ms = (self._clock() - started) * 1000

        limit = timeout_ms or self.default_timeout_ms
        if limit and elapsed_ms > limit:
            self._logger("error", f"[Loopback] device took {elapsed_ms:.0f}ms (limit {limit}ms)")
            return Message.control(TIMEOUT)

        if step.status is Status.END_FAILURE:
            self._logger("warn", f"[Loopback] device failed: {step.reason}")
            return Message.control(ERROR)

        if not step.payload.endswith(RESPONSE_OK):
            self._logger("warn", "[Loopback] bad status word from device")
            return Message.control(ERROR)

        data = step.payload[:-len(RESPONSE_OK)]
        return Message.data(data or None)

    # === Lifecycle ===

    def cancel(self) -> None:
        """User-initiated cancellation: the next exchange answers CLOSE."""
        self._cancelled = True

    def close(self) -> None:
        if not self._closed:
            self._logger("debug", "[Loopback] channel closed")
        self._closed = True
        self._open = False
        self._selected = False
