"""
PPETS Engine - runs a protocol session over a transport.

The engine bridges the state machine to the channel:
- starts the session with a START control message,
- sends each step's command + payload through the transport,
- feeds the reply back into the state machine,
- closes the transport once the session reaches a terminal status.

Exactly one exchange is outstanding at any time. Timeouts and cancellations
arrive from the transport as CONTROL messages and end the session with
failure; the engine never retries.
"""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .config import load_scenario
from .crypto.provider import CryptoProvider, DefaultCryptoProvider
from .log import LogSink, null_sink, prefixed
from .protocol import Message, StateMachine, Status, ValidationOutcome
from .protocols import PPETSProtocol, get_protocol
from .transport.interface import ITransport
from .transport.loopback import DEFAULT_TIMEOUT_MS, LoopbackTransport


@dataclass(frozen=True)
class SessionResult:
    """How a session ended, as seen by the reader."""

    status: Status
    outcomes: tuple[ValidationOutcome, ...] = ()
    reason: str | None = None
    # verification checks that failed but were let through by skip_verification
    skipped_checks: tuple[str, ...] = ()
    exchanges: int = 0

    @property
    def succeeded(self) -> bool:
        return self.status is Status.END_SUCCESS

    @property
    def fully_verified(self) -> bool:
        return self.succeeded and not self.skipped_checks


class SessionEngine:
    """
    Executes one session.

    Usage:
        engine = SessionEngine(reader_machine, transport, logger=sink)
        result = engine.run()
    """

    def __init__(
        self,
        machine: StateMachine,
        transport: ITransport,
        logger: LogSink | None = None,
    ):
        self._machine = machine
        self._transport = transport
        self._logger = logger or null_sink

    @property
    def machine(self) -> StateMachine:
        return self._machine

    def run(self) -> SessionResult:
        context = self._machine.context
        exchanges = 0

        try:
            step = self._machine.advance(Message.start())
            while not step.terminal:
                reply = self._transport.exchange(step.command, step.payload, step.timeout_ms)
                exchanges += 1
                step = self._machine.advance(reply)
        finally:
            self._transport.close()

        result = SessionResult(
            status=step.status,
            outcomes=tuple(ValidationOutcome.decode_all(step.payload)),
            reason=step.reason,
            skipped_checks=tuple(context.skipped_checks),
            exchanges=exchanges,
        )
        if result.skipped_checks:
            self._logger("warn", f"[Engine] session passed only with skipped checks: "
                                 f"{', '.join(result.skipped_checks)}")
        self._logger("info", f"[Engine] session ended {result.status.name} "
                             f"outcomes={[o.name for o in result.outcomes]}")
        return result


# === Convenience runners ===

def run_loopback(
    protocol: str | PPETSProtocol,
    parameters: list[str] | None = None,
    attributes: dict[str, Any] | None = None,
    crypto: CryptoProvider | None = None,
    logger: LogSink | None = None,
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
) -> SessionResult:
    """Run a complete session between a reader and an in-process device."""
    variant = get_protocol(protocol) if isinstance(protocol, str) else protocol
    crypto = crypto or DefaultCryptoProvider()
    logger = logger or null_sink

    reader = variant.reader(parameters, crypto, prefixed(logger, "[reader]"))
    device = variant.device(attributes, crypto, prefixed(logger, "[device]"))
    transport = LoopbackTransport(device, default_timeout_ms=timeout_ms, logger=logger)
    return SessionEngine(reader, transport, logger).run()


def run_scenario(
    path: str | Path,
    crypto: CryptoProvider | None = None,
    logger: LogSink | None = None,
) -> SessionResult:
    """Run the session described by a YAML scenario file."""
    scenario = load_scenario(path)
    return run_loopback(
        scenario.protocol,
        parameters=scenario.parameters,
        attributes=scenario.attributes or None,
        crypto=crypto,
        logger=logger,
        timeout_ms=scenario.timeout_ms or DEFAULT_TIMEOUT_MS,
    )
