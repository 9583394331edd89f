"""
PPETS Protocol - state machine core.

States turn (Message, SharedContext) into an Action; the StateMachine
driver applies actions and keeps the session's index and context.
"""
from .message import Message, MessageType, START, CLOSE, TIMEOUT, ERROR
from .actions import (
    Action,
    Status,
    ReaderCommand,
    DeviceCommand,
    RESPONSE_OK,
    RESPONSE_FAIL,
)
from .data import (
    Actor,
    ActorData,
    CentralVerifierData,
    SellerData,
    UserData,
    ValidatorData,
    Ticket,
    ValidationOutcome,
)
from .context import SharedContext, WireForm
from .state import State, ReaderState, DeviceState, Phase
from .machine import StateMachine, Step

__all__ = [
    # Messages
    "Message",
    "MessageType",
    "START",
    "CLOSE",
    "TIMEOUT",
    "ERROR",
    # Actions
    "Action",
    "Status",
    "ReaderCommand",
    "DeviceCommand",
    "RESPONSE_OK",
    "RESPONSE_FAIL",
    # Context
    "Actor",
    "ActorData",
    "CentralVerifierData",
    "SellerData",
    "UserData",
    "ValidatorData",
    "Ticket",
    "ValidationOutcome",
    "SharedContext",
    "WireForm",
    # States
    "State",
    "ReaderState",
    "DeviceState",
    "Phase",
    # Driver
    "StateMachine",
    "Step",
]
