"""
PPETS protocol state machine driver.

The driver owns a fixed, ordered sequence of States, the index of the current
one and the session's SharedContext. Each advance() feeds one inbound Message
to the current State and applies the returned Action:

    CONTINUE     -> move to next_index, hand command + payload to the transport
    END_SUCCESS  -> session over
    END_FAILURE  -> session over

The driver holds no cryptographic logic. Anything that goes wrong inside a
State surfaces as an END_FAILURE step; nothing continues with a stale index.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Sequence

from ..config import SessionConfig, parse_parameters
from ..errors import ConfigurationError, InvalidStateIndexError, PPETSError, SessionClosedError
from ..log import LogSink, null_sink
from .actions import Action, Command, ReaderCommand, Status
from .context import SharedContext
from .message import CLOSE, ERROR, START, TIMEOUT, Message, MessageType
from .state import State


@dataclass(frozen=True)
class Step:
    """Result of one advance() call."""

    status: Status
    command: Command
    payload: bytes = b""
    timeout_ms: int = 0
    reason: str | None = None

    @property
    def terminal(self) -> bool:
        return self.status.terminal


_SIGNAL_REASONS = {
    CLOSE: "channel closed by peer",
    TIMEOUT: "transport timeout",
    ERROR: "peer reported failure",
}


class StateMachine:
    """
    Drives one protocol session.

    Usage:
        machine = StateMachine(states, SharedContext.server())
        step = machine.advance(Message.start())
        while not step.terminal:
            reply = transport.exchange(step.command, step.payload, step.timeout_ms)
            step = machine.advance(reply)
    """

    def __init__(
        self,
        states: Sequence[State],
        context: SharedContext,
        logger: LogSink | None = None,
        failure_command: Command = ReaderCommand.CLOSE,
        failure_payload: bytes = b"",
        context_factory: Callable[[], SharedContext] | None = None,
    ):
        self._states = tuple(states)
        if not self._states:
            raise InvalidStateIndexError("a state machine needs at least one state")
        for position, state in enumerate(self._states):
            for successor in state.successors:
                if not 0 <= successor < len(self._states):
                    raise InvalidStateIndexError(
                        f"{state.name} at {position} points at {successor}, "
                        f"sequence has {len(self._states)} states"
                    )

        self._log = logger or null_sink
        self._failure_command = failure_command
        self._failure_payload = failure_payload
        self._context_factory = context_factory
        self._context = context
        self._context.log = self._log
        self._index = 0
        self._finished = False

    # === Properties ===

    @property
    def states(self) -> tuple[State, ...]:
        return self._states

    @property
    def context(self) -> SharedContext:
        return self._context

    @property
    def index(self) -> int:
        return self._index

    @property
    def current(self) -> State:
        return self._states[self._index]

    @property
    def finished(self) -> bool:
        return self._finished

    # === Configuration ===

    def set_parameters(self, parameters: list[str]) -> bool:
        """
        Apply the positional parameter list.

        Errors are logged and the previous configuration is kept as a whole.
        Returns True if the parameters were applied.
        """
        try:
            config = parse_parameters(parameters, self._context.config)
        except ConfigurationError as e:
            self._log("error", f"[Machine] could not set parameters: {e}")
            return False

        self._context.config = config
        self._log("debug", f"[Machine] ignore verification failures: {config.skip_verification}")
        self._log("debug", f"[Machine] bilinear group parameters {config.describe()}")
        return True

    def reset(self) -> None:
        """Start over at index 0 with a fresh context."""
        config = self._context.config
        if self._context_factory is not None:
            self._context = self._context_factory()
        else:
            self._context = SharedContext(
                self._context.local_actors,
                crypto=self._context.crypto,
            )
        self._context.config = config
        self._context.log = self._log
        self._index = 0
        self._finished = False

    # === Driving ===

    def advance(self, message: Message) -> Step:
        if self._finished:
            raise SessionClosedError("session already ended; reset() before reuse")

        if message.type is MessageType.CONTROL and message.payload != START:
            reason = _SIGNAL_REASONS.get(message.payload or b"", "unknown control signal")
            return self._fail(reason)

        state = self.current
        try:
            action = state.get_action(message, self._context)
        except (PPETSError, ValueError) as e:
            return self._fail(f"{state.name}: {e}")

        if action is None:
            return self._fail(f"unhandled protocol message in {state.name} ({message.type.name})")

        return self._apply(state, action)

    def _apply(self, state: State, action: Action) -> Step:
        if action.status is Status.CONTINUE:
            if not 0 <= action.next_index < len(self._states):
                return self._fail(
                    f"{state.name} returned next index {action.next_index} "
                    f"outside 0..{len(self._states) - 1}"
                )
            self._log("debug", f"[Machine] {state.name} -> {self._states[action.next_index].name} "
                               f"({action.command.name}, {len(action.payload)} bytes)")
            self._index = action.next_index
            return Step(Status.CONTINUE, action.command, action.payload, action.timeout_ms)

        self._log("info", f"[Machine] {state.name} ended session: {action.status.name}")
        reason = f"{state.name} failed the session" if action.status is Status.END_FAILURE else None
        return self._end(Step(action.status, action.command, action.payload, action.timeout_ms, reason))

    def _fail(self, reason: str) -> Step:
        self._log("error", f"[Machine] {reason}")
        return self._end(Step(Status.END_FAILURE, self._failure_command, self._failure_payload, reason=reason))

    def _end(self, step: Step) -> Step:
        self._finished = True
        self._context.discard()
        return step
