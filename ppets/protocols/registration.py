"""
Registration states: the central verifier certifies the user's key and
attributes, the device checks and stores the credential.
"""
from __future__ import annotations

from typing import Any

from ..crypto.proofs import DlogProof, sign, verify_dlog, verify_signature
from ..protocol.actions import Action, ReaderCommand
from ..protocol.codec import Fields, pack_fields
from ..protocol.context import SharedContext
from ..protocol.data import Actor, CentralVerifierData, UserData
from ..protocol.message import Message
from ..protocol.state import DeviceState, Phase, ReaderState
from .setup import REGISTER_CONTEXT, acknowledged


def credential_message(y_u: int, attributes: dict[str, Any]) -> bytes:
    return pack_fields(b"credential", y_u, attributes)


class RegisterUser(ReaderState):
    phase = Phase.REGISTRATION
    successors = (5,)

    def get_action(self, message: Message, context: SharedContext) -> Action | None:
        if not message.has_data:
            return None

        fields = Fields(message.payload, 4)
        y_u = fields.integer()
        attributes = fields.mapping()
        proof = DlogProof(c=fields.integer(), s=fields.integer())

        group = context.require_group()
        cv = context.act_as(Actor.CENTRAL_VERIFIER, CentralVerifierData)
        context.require_verified(
            verify_dlog(context.crypto, group, y_u, proof, REGISTER_CONTEXT),
            "user key proof",
        )

        cv.registered[y_u] = attributes
        credential = sign(context.crypto, group, cv.x_cv, credential_message(y_u, attributes))
        context.log("info", f"[Registration] registered user with attributes {sorted(attributes)}")
        return self.send(ReaderCommand.PUT, 5, pack_fields(credential.c, credential.s))


class RequestTicketRequest(ReaderState):
    phase = Phase.REGISTRATION
    successors = (6,)

    def get_action(self, message: Message, context: SharedContext) -> Action | None:
        if acknowledged(message):
            return self.send(ReaderCommand.GET, 6)
        return None


class StoreCredential(DeviceState):
    phase = Phase.REGISTRATION
    successors = (3,)

    def get_action(self, message: Message, context: SharedContext) -> Action | None:
        if not message.has_data:
            return None

        fields = Fields(message.payload, 2)
        credential = DlogProof(c=fields.integer(), s=fields.integer())

        group = context.require_group()
        user = context.act_as(Actor.USER, UserData)
        context.require_verified(
            verify_signature(
                context.crypto,
                group,
                context.public_key(Actor.CENTRAL_VERIFIER),
                credential_message(user.y_u, user.attributes),
                credential,
            ),
            "registration credential",
        )

        user.credential = credential
        return self.respond(3)
