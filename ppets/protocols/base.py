"""
Composition of PPETS protocol variants.

A variant is a fixed list of reader states and a fixed list of device
states. Variants differ only in which concrete states they register at the
issuing and validation positions; each state's successors are absolute
indices, so a replacement must sit at the position of the state it replaces.

    reader:  0 OpenChannel          6 IssueTicket*
             1 SelectApplication    7 SendChallenge
             2 SendSetup            8 RequestTicketProof
             3 RequestUserKeys      9 VerifyTicket*
             4 RegisterUser        10 FinishValidation
             5 RequestTicketRequest

    device:  0 ReceiveSetup         4 StoreTicket
             1 SendUserKeys         5 StoreChallenge
             2 StoreCredential      6 ProveTicket*
             3 SendTicketRequest*

    * substituted by variants
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, ClassVar

from ..crypto.provider import CryptoProvider
from ..log import LogSink
from ..protocol.actions import RESPONSE_FAIL, DeviceCommand, ReaderCommand
from ..protocol.context import SharedContext
from ..protocol.data import Actor, UserData
from ..protocol.machine import StateMachine
from ..protocol.state import State
from .issuing import IssueTicket, SendTicketRequest, StoreTicket
from .policy import TicketPolicy
from .registration import RegisterUser, RequestTicketRequest, StoreCredential
from .setup import (
    OpenChannel,
    ReceiveSetup,
    RequestUserKeys,
    SelectApplication,
    SendSetup,
    SendUserKeys,
)
from .validation import (
    FinishValidation,
    ProveTicket,
    RequestTicketProof,
    SendChallenge,
    StoreChallenge,
    VerifyTicket,
)

DEFAULT_ATTRIBUTES: dict[str, Any] = {"age": 30, "category": "adult"}


class PPETSProtocol(ABC):
    """Base class for the protocol variants."""

    name: ClassVar[str] = ""

    def __init__(self, policy: TicketPolicy | None = None):
        self.policy = policy or self.default_policy()

    @abstractmethod
    def default_policy(self) -> TicketPolicy:
        ...

    # === Substitutable positions ===

    def reader_issue(self) -> State:
        return IssueTicket(self.policy)

    def reader_verify(self) -> State:
        return VerifyTicket(self.policy)

    def device_request(self) -> State:
        return SendTicketRequest()

    def device_prove(self) -> State:
        return ProveTicket()

    # === Sequences ===

    def reader_states(self) -> list[State]:
        return [
            OpenChannel(),
            SelectApplication(),
            SendSetup(),
            RequestUserKeys(),
            RegisterUser(),
            RequestTicketRequest(),
            self.reader_issue(),
            SendChallenge(),
            RequestTicketProof(),
            self.reader_verify(),
            FinishValidation(),
        ]

    def device_states(self) -> list[State]:
        return [
            ReceiveSetup(),
            SendUserKeys(),
            StoreCredential(),
            self.device_request(),
            StoreTicket(),
            StoreChallenge(),
            self.device_prove(),
        ]

    # === Machines ===

    def reader(
        self,
        parameters: list[str] | None = None,
        crypto: CryptoProvider | None = None,
        logger: LogSink | None = None,
    ) -> StateMachine:
        """State machine for the issuing/verifying server."""

        def fresh() -> SharedContext:
            return SharedContext.server(crypto=crypto)

        machine = StateMachine(
            self.reader_states(),
            fresh(),
            logger=logger,
            failure_command=ReaderCommand.CLOSE,
            context_factory=fresh,
        )
        if parameters:
            machine.set_parameters(parameters)
        return machine

    def device(
        self,
        attributes: dict[str, Any] | None = None,
        crypto: CryptoProvider | None = None,
        logger: LogSink | None = None,
    ) -> StateMachine:
        """State machine for the ticket-holding device."""
        attributes = dict(DEFAULT_ATTRIBUTES if attributes is None else attributes)

        def fresh() -> SharedContext:
            context = SharedContext.device(crypto=crypto)
            context.data_for(Actor.USER, UserData).attributes = dict(attributes)
            return context

        return StateMachine(
            self.device_states(),
            fresh(),
            logger=logger,
            failure_command=DeviceCommand.RESPONSE,
            failure_payload=RESPONSE_FAIL,
            context_factory=fresh,
        )

    def __repr__(self) -> str:
        return f"<{self.name} {self.policy}>"
