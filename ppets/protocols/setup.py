"""
Setup states of the PPETS protocols.

Reader: opens the channel, selects the ticket application, creates the
group and the server-side keys, and pushes the public snapshot. Device:
rebuilds its context from that snapshot and answers with the user's key.
"""
from __future__ import annotations

from ..crypto.proofs import prove_dlog
from ..protocol.actions import Action, ReaderCommand
from ..protocol.codec import pack_fields
from ..protocol.context import SharedContext
from ..protocol.data import Actor, CentralVerifierData, SellerData, UserData
from ..protocol.message import START, Message, MessageType
from ..protocol.state import DeviceState, Phase, ReaderState

# Application identifier selected on the device
AID = b"\xf0PPETS\x01"

# Context string binding the user's key proof to registration
REGISTER_CONTEXT = b"ppets-register"


def acknowledged(message: Message) -> bool:
    """Reader side: the previous command completed without returning data."""
    return message.type is MessageType.DATA and message.payload is None


# === Reader states ===

class OpenChannel(ReaderState):
    """State 0: create the group and server keys, then open the channel."""

    phase = Phase.SETUP
    successors = (1,)

    def get_action(self, message: Message, context: SharedContext) -> Action | None:
        if not message.is_signal(START):
            return None

        config = context.config
        group = context.crypto.create_group(config.pairing_type, config.param1, config.param2)
        context.group = group
        context.log("info", f"[Setup] created group {config.describe()}, |p|={group.order.bit_length()} bits")

        cv = context.act_as(Actor.CENTRAL_VERIFIER, CentralVerifierData)
        cv.x_cv = context.crypto.secure_random(group.order)
        context.public_keys[Actor.CENTRAL_VERIFIER] = group.exp(group.g, cv.x_cv)

        seller = context.act_as(Actor.SELLER, SellerData)
        seller.x_s = context.crypto.secure_random(group.order)
        context.public_keys[Actor.SELLER] = group.exp(group.g, seller.x_s)

        return self.send(ReaderCommand.OPEN, 1)


class SelectApplication(ReaderState):
    phase = Phase.SETUP
    successors = (2,)

    def get_action(self, message: Message, context: SharedContext) -> Action | None:
        if acknowledged(message):
            return self.send(ReaderCommand.SELECT, 2, AID)
        return None


class SendSetup(ReaderState):
    phase = Phase.SETUP
    successors = (3,)

    def get_action(self, message: Message, context: SharedContext) -> Action | None:
        if acknowledged(message):
            snapshot = context.to_wire()
            context.log("debug", f"[Setup] sending public parameters ({len(snapshot)} bytes)")
            return self.send(ReaderCommand.PUT, 3, snapshot)
        return None


class RequestUserKeys(ReaderState):
    phase = Phase.SETUP
    successors = (4,)

    def get_action(self, message: Message, context: SharedContext) -> Action | None:
        if acknowledged(message):
            return self.send(ReaderCommand.GET, 4)
        return None


# === Device states ===

class ReceiveSetup(DeviceState):
    """Device state 0: rebuild the public parameters from the snapshot."""

    phase = Phase.SETUP
    successors = (1,)

    def get_action(self, message: Message, context: SharedContext) -> Action | None:
        if not message.has_data:
            return None

        context.load_wire(message.payload)
        context.log("debug", "[Setup] deserialised the shared context")
        return self.respond(1)


class SendUserKeys(DeviceState):
    """Device state 1: generate the user's secret and prove knowledge of it."""

    phase = Phase.SETUP
    successors = (2,)

    def get_action(self, message: Message, context: SharedContext) -> Action | None:
        if not message.is_request:
            return None

        group = context.require_group()
        user = context.act_as(Actor.USER, UserData)
        user.x_u = context.crypto.secure_random(group.order)
        user.y_u = group.exp(group.g, user.x_u)
        proof = prove_dlog(context.crypto, group, user.x_u, user.y_u, REGISTER_CONTEXT)

        context.log("debug", "[Setup] generated user keys")
        return self.respond(2, pack_fields(user.y_u, user.attributes, proof.c, proof.s))
